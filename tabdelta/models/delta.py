"""Delta manifest record model."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field as PydanticField, field_validator


class DeltaRecord(BaseModel):
    """High-water mark captured for one table at the end of a run.

    Written once into the run's manifest and only ever read by later runs.
    ``max_value`` is held in UTC; a naive value from the source is taken to
    be UTC already.
    """

    table_name: str = PydanticField(..., description="Source table name")

    column_name: str = PydanticField(..., description="Delta (timestamp) column name")

    max_value: datetime = PydanticField(
        ...,
        description="Maximum value of the delta column observed during the run",
    )

    row_count: int = PydanticField(
        ...,
        description="Table row count at capture time",
        ge=0,
    )

    model_config = {"extra": "forbid", "frozen": True}

    @field_validator("max_value")
    @classmethod
    def normalize_to_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)
