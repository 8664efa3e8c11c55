"""Catalog file models."""

from datetime import datetime

from pydantic import BaseModel, Field

from readshelf.models.book import CatalogRecord


class CatalogIndex(BaseModel):
    """On-disk catalog: record id -> record."""

    catalog_version: str = "1.0"
    updated_at: datetime = Field(default_factory=datetime.now)
    records: dict[str, CatalogRecord] = Field(default_factory=dict)
