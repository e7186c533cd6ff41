"""Table and column descriptor models.

A TableDescriptor is built once per run from the catalog scan, annotated in
place by the classifier and by delta resolution, and then handed to exactly
one export worker.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field as PydanticField


class ColumnDescriptor(BaseModel):
    """Column metadata as reported by the source catalog.

    Every attribute is optional. A missing attribute renders as an empty
    field in the metadata dump and never fails the run.
    """

    name: Optional[str] = PydanticField(None, description="Column name")
    data_type: Optional[str] = PydanticField(
        None,
        description="Declared data type as reported by the source (e.g. 'nvarchar', 'image')",
    )
    max_length: Optional[int] = PydanticField(None, description="Maximum length in bytes")
    precision: Optional[int] = PydanticField(None, description="Numeric precision")
    scale: Optional[int] = PydanticField(None, description="Numeric scale")
    nullable: Optional[bool] = PydanticField(None, description="Whether NULL is allowed")
    ordinal_position: Optional[int] = PydanticField(
        None, description="1-based position of the column in the table"
    )
    collation_name: Optional[str] = PydanticField(None, description="Column collation")
    primary_key: Optional[bool] = PydanticField(
        None, description="Whether the column is part of the primary key"
    )

    model_config = {"extra": "forbid"}

    def has_type(self, type_names: set[str]) -> bool:
        """Check whether the declared type is one of ``type_names``.

        Args:
            type_names: Lower-cased type names

        Returns:
            True if the declared type matches, ignoring case
        """
        if self.data_type is None:
            return False
        return self.data_type.lower() in type_names


class TableDescriptor(BaseModel):
    """One extractable table.

    Examples:
        >>> table = TableDescriptor(name="orders", row_count=120)
        >>> table.is_incremental
        False
        >>> table.delta_column = "UPDATED_AT"
        >>> table.is_incremental
        True
    """

    name: str = PydanticField(..., description="Table name, unique within a run")

    columns: list[ColumnDescriptor] = PydanticField(
        default_factory=list,
        description="Columns in ordinal order",
    )

    row_count: int = PydanticField(
        0,
        description="Row count captured during the catalog scan; 0 skips export",
        ge=0,
    )

    is_full_reload: bool = PydanticField(
        False,
        description="Type-2 table: always exported in full, never delta-filtered",
    )

    delta_column: Optional[str] = PydanticField(
        None,
        description="Timestamp column used for incremental filtering",
    )

    filter_value: Optional[datetime] = PydanticField(
        None,
        description="Lower bound for delta_column on this run; None exports everything",
    )

    output_path: Optional[Path] = PydanticField(
        None,
        description="Directory that receives the compressed export",
    )

    model_config = {"extra": "forbid"}

    @property
    def is_incremental(self) -> bool:
        """Whether this table is eligible for a delta-filtered export."""
        return not self.is_full_reload and bool(self.delta_column)

    @property
    def column_names(self) -> list[str]:
        """Column names in ordinal order (missing names render empty)."""
        return [column.name or "" for column in self.columns]

    @property
    def output_file(self) -> Optional[Path]:
        """Path of the compressed export for this table."""
        if self.output_path is None:
            return None
        return self.output_path / f"{self.name}.csv.gz"
