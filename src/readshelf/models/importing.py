"""Data models for the staged import pipeline."""

from enum import Enum

from pydantic import BaseModel, Field


class ImportStep(str, Enum):
    """Ordered import stage."""

    VALIDATION = "validation"
    METADATA_EXTRACTION = "metadata_extraction"
    COVER_GENERATION = "cover_generation"
    PERSISTENCE = "persistence"

    @property
    def weight(self) -> int:
        return STEP_WEIGHTS[self]

    @property
    def ordinal(self) -> int:
        return list(ImportStep).index(self)


# Share of overall progress per stage, sums to 100
STEP_WEIGHTS: dict[ImportStep, int] = {
    ImportStep.VALIDATION: 10,
    ImportStep.METADATA_EXTRACTION: 40,
    ImportStep.COVER_GENERATION: 30,
    ImportStep.PERSISTENCE: 20,
}


def overall_progress(step: ImportStep, percent: int) -> int:
    """Convert a stage-local percentage into the aggregate 0-100 value."""
    percent = max(0, min(100, percent))
    completed = sum(STEP_WEIGHTS[s] for s in ImportStep if s.ordinal < step.ordinal)
    return completed + STEP_WEIGHTS[step] * percent // 100


class ImportProgress(BaseModel):
    """Progress event emitted after every sub-step of an import."""

    step: ImportStep
    percent: int = Field(ge=0, le=100)
    file_name: str

    @property
    def overall(self) -> int:
        return overall_progress(self.step, self.percent)


class ImportResult(BaseModel):
    """Terminal outcome of one import."""

    success: bool
    message: str = ""
    record_id: str | None = None
    title: str | None = None

    @classmethod
    def ok(cls, record_id: str, title: str) -> "ImportResult":
        return cls(success=True, record_id=record_id, title=title)

    @classmethod
    def failure(cls, message: str) -> "ImportResult":
        return cls(success=False, message=message)
