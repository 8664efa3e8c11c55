"""Import ebooks into a local library and read them from the terminal."""

__version__ = "0.1.0"
