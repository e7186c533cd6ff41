"""Schema artifacts written for every run.

For each described table two files are written next to the exports:

- ``metadata/<table>.csv``: one row per column with the catalog attributes
  and the row count captured during the scan
- ``describe/<table>.sql``: a ``CREATE TABLE`` statement rebuilt from the
  column metadata
"""

from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Any, Iterable, Optional

from tabdelta.exceptions import ExportError
from tabdelta.models.table import ColumnDescriptor, TableDescriptor

logger = logging.getLogger(__name__)

METADATA_HEADER = [
    "Column Name",
    "Data Type",
    "Max Length",
    "Precision",
    "Scale",
    "Nullable",
    "Ordinal Position",
    "Collation Name",
    "Primary Key",
    "Row Count",
]

# Types rendered with their maximum length, e.g. [nvarchar](50)
LENGTH_TYPES = {
    "binary",
    "char",
    "datetimeoffset",
    "nchar",
    "nvarchar",
    "time",
    "varbinary",
    "varchar",
}

# Types rendered with precision and scale, e.g. [decimal](18, 2)
PRECISION_TYPES = {"decimal", "numeric"}


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def metadata_row(column: ColumnDescriptor, row_count: int) -> list[str]:
    """Render one column as a metadata row. Missing attributes render empty."""
    return [
        _text(column.name),
        _text(column.data_type),
        _text(column.max_length),
        _text(column.precision),
        _text(column.scale),
        _text(column.nullable),
        _text(column.ordinal_position),
        _text(column.collation_name),
        _text(column.primary_key),
        str(row_count),
    ]


def render_type(column: ColumnDescriptor) -> str:
    """Render a column's declared type in bracketed form.

    Examples:
        >>> render_type(ColumnDescriptor(data_type="nvarchar", max_length=50))
        '[nvarchar](50)'
        >>> render_type(ColumnDescriptor(data_type="decimal", precision=18, scale=2))
        '[decimal](18, 2)'
        >>> render_type(ColumnDescriptor(data_type="image"))
        '[image]'
    """
    data_type = (column.data_type or "").lower()
    rendered = f"[{column.data_type or ''}]"

    if data_type in LENGTH_TYPES and column.max_length is not None:
        # sys.columns reports (max) columns as -1
        length = "max" if column.max_length == -1 else str(column.max_length)
        return f"{rendered}({length})"

    if data_type in PRECISION_TYPES and column.precision is not None:
        return f"{rendered}({column.precision}, {column.scale or 0})"

    return rendered


def render_column(column: ColumnDescriptor) -> str:
    null = "NOT NULL" if column.nullable is False else "NULL"
    primary_key = " PRIMARY KEY" if column.primary_key else ""
    return f"\t[{column.name or ''}] {render_type(column)} {null}{primary_key}"


def render_create_table(table: TableDescriptor) -> str:
    """Rebuild a ``CREATE TABLE`` statement from column metadata.

    Examples:
        >>> print(render_create_table(orders))
        CREATE TABLE [orders] (
            [id] [int] NOT NULL PRIMARY KEY,
            [note] [nvarchar](200) NULL
        );
    """
    columns = ",\n".join(render_column(column) for column in table.columns)
    return f"CREATE TABLE [{table.name}] (\n{columns}\n);\n"


def write_metadata(table: TableDescriptor, directory: Path) -> Path:
    """Write ``<table>.csv`` with one row per column."""
    path = directory / f"{table.name}.csv"
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(METADATA_HEADER)
        for column in table.columns:
            writer.writerow(metadata_row(column, table.row_count))
    return path


def write_describe(table: TableDescriptor, directory: Path) -> Path:
    """Write ``<table>.sql`` with the rebuilt ``CREATE TABLE`` statement."""
    path = directory / f"{table.name}.sql"
    path.write_text(render_create_table(table), encoding="utf-8")
    return path


def dump_schema(
    tables: Iterable[TableDescriptor],
    metadata_dir: Path,
    describe_dir: Optional[Path] = None,
) -> int:
    """Write the metadata and describe artifacts for every table.

    Args:
        tables: Described tables
        metadata_dir: Directory for ``<table>.csv``
        describe_dir: Directory for ``<table>.sql`` (skipped if None)

    Returns:
        Number of tables written

    Raises:
        ExportError: If a file cannot be written
    """
    count = 0
    logger.info("Writing out the metadata to disk")
    for table in tables:
        try:
            write_metadata(table, metadata_dir)
            if describe_dir is not None:
                write_describe(table, describe_dir)
        except OSError as e:
            raise ExportError(f"Failed to write schema for {table.name}: {e}") from e
        count += 1
    return count
