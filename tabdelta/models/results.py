"""Result models for table exports and extraction runs."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, Field as PydanticField, field_validator


class TableExportResult(BaseModel):
    """Outcome of exporting a single table.

    ``status`` is one of:
    - exported: the query ran and every row was written
    - failed: the query or the write raised; the worker stopped
    - skipped: the table never reached a healthy worker
    """

    table_name: str = PydanticField(..., description="Table name")

    status: str = PydanticField(..., description="'exported', 'failed' or 'skipped'")

    rows_written: int = PydanticField(0, description="Rows written to the export", ge=0)

    output_file: Optional[str] = PydanticField(None, description="Path of the export file")

    worker_id: Optional[int] = PydanticField(None, description="Worker that ran the export")

    filter_value: Optional[datetime] = PydanticField(
        None, description="Delta lower bound used for the query"
    )

    duration_seconds: float = PydanticField(0.0, description="Export duration", ge=0.0)

    error_message: Optional[str] = PydanticField(None, description="Error if not exported")

    model_config = {"extra": "forbid"}

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str) -> str:
        """Validate export status."""
        valid_statuses = {"exported", "failed", "skipped"}
        if v not in valid_statuses:
            raise ValueError(f"Invalid status: {v}. Must be one of: {valid_statuses}")
        return v

    @property
    def success(self) -> bool:
        """Whether the table was exported."""
        return self.status == "exported"


class RunResult(BaseModel):
    """Result of one extraction run.

    ``completed`` is False only when the run aborted before or during the
    catalog stage (configuration, connection or catalog failure). A completed
    run may still contain failed or skipped tables.
    """

    run_date: date = PydanticField(..., description="Calendar date identifying the run")

    run_dir: str = PydanticField(..., description="Run folder")

    completed: bool = PydanticField(..., description="Whether the run reached the end")

    tables_discovered: int = PydanticField(0, ge=0)

    tables_dispatched: int = PydanticField(0, ge=0)

    tables_exported: int = PydanticField(0, ge=0)

    tables_failed: int = PydanticField(0, ge=0)

    tables_skipped: int = PydanticField(0, ge=0)

    delta_records: int = PydanticField(0, description="Records in this run's manifest", ge=0)

    previous_run: Optional[date] = PydanticField(
        None, description="Run whose manifest supplied the delta bounds"
    )

    total_rows_written: int = PydanticField(0, ge=0)

    duration_seconds: float = PydanticField(0.0, ge=0.0)

    started_at: datetime = PydanticField(..., description="Run start time")

    completed_at: Optional[datetime] = PydanticField(None, description="Run end time")

    table_results: list[TableExportResult] = PydanticField(default_factory=list)

    error_message: Optional[str] = PydanticField(None, description="Why the run aborted")

    metadata: dict[str, Any] = PydanticField(default_factory=dict)

    model_config = {"extra": "forbid"}

    @property
    def success(self) -> bool:
        """Whether the run completed with no failed or skipped tables."""
        return self.completed and self.tables_failed == 0 and self.tables_skipped == 0
