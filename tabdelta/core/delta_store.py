"""Delta store: high-water marks persisted between runs.

The store has two independent halves:

- Resolution (read path) finds the nearest earlier run that left a delta
  manifest and loads its records, keyed by table name.
- Capture (write path) issues one ``MAX(delta_column)`` summary query per
  incremental table and writes this run's manifest before export starts.

Manifest format (``delta/delta.csv``)::

    TABLE_NAME,COLUMN_NAME,MAX_TIMESTAMP,TOTAL_RECORDS
    Incidents,LastModified,2024-01-03T10:15:00Z,5120
"""

from __future__ import annotations

import csv
import logging
from datetime import date
from pathlib import Path
from typing import Iterable, Mapping, Optional

from tabdelta.core.connector import Connector
from tabdelta.core.values import coerce_timestamp, format_timestamp, parse_timestamp
from tabdelta.exceptions import CatalogError, DeltaError
from tabdelta.models.delta import DeltaRecord
from tabdelta.models.table import TableDescriptor
from tabdelta.utils.run_dir import RunLayout, list_runs, parse_run_date

logger = logging.getLogger(__name__)

MANIFEST_HEADER = ["TABLE_NAME", "COLUMN_NAME", "MAX_TIMESTAMP", "TOTAL_RECORDS"]


def find_previous_run_date(run_names: Iterable[str], today: date) -> Optional[date]:
    """Pick the nearest run date strictly before ``today``.

    Names that do not parse as run dates are ignored. The result is computed
    from the given names alone, so an empty listing returns None at once.

    Args:
        run_names: Run folder names (``YYYY_MM_DD``)
        today: Date of the current run

    Returns:
        The nearest earlier run date, or None

    Examples:
        >>> find_previous_run_date(["2024_01_01", "2024_01_03"], date(2024, 1, 5))
        datetime.date(2024, 1, 3)
        >>> find_previous_run_date([], date(2024, 1, 5)) is None
        True
    """
    candidates = [
        run_date
        for run_date in (parse_run_date(name) for name in run_names)
        if run_date is not None and run_date < today
    ]
    return max(candidates, default=None)


def parse_manifest_row(row: list[str]) -> DeltaRecord:
    """Parse one manifest row.

    Raises:
        ValueError: If the row is malformed
    """
    if len(row) != len(MANIFEST_HEADER):
        raise ValueError(f"expected {len(MANIFEST_HEADER)} fields, got {len(row)}")

    table_name, column_name, max_timestamp, total_records = row
    if not table_name or not column_name:
        raise ValueError("table and column name are required")

    return DeltaRecord(
        table_name=table_name,
        column_name=column_name,
        max_value=parse_timestamp(max_timestamp),
        row_count=int(total_records),
    )


def format_manifest_row(record: DeltaRecord) -> list[str]:
    """Render a record as a manifest row."""
    return [
        record.table_name,
        record.column_name,
        format_timestamp(record.max_value),
        str(record.row_count),
    ]


def read_manifest(path: Path) -> list[DeltaRecord]:
    """Read a delta manifest.

    Malformed rows are logged and skipped; the rest of the file is still
    read.

    Args:
        path: Manifest file

    Returns:
        Records in file order

    Raises:
        DeltaError: If the file cannot be opened
    """
    records = []
    try:
        with open(path, newline="", encoding="utf-8") as f:
            for line_number, row in enumerate(csv.reader(f), start=1):
                if line_number == 1 and row == MANIFEST_HEADER:
                    continue
                if not row:
                    continue
                try:
                    records.append(parse_manifest_row(row))
                except ValueError as e:
                    logger.warning("Skipping malformed delta row %s:%d: %s", path, line_number, e)
    except OSError as e:
        raise DeltaError(f"Failed to read delta manifest {path}: {e}") from e

    return records


def write_manifest(path: Path, records: Iterable[DeltaRecord]) -> Path:
    """Write a delta manifest, replacing any existing file.

    Raises:
        DeltaError: If the file cannot be written
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(MANIFEST_HEADER)
            for record in records:
                writer.writerow(format_manifest_row(record))
    except OSError as e:
        raise DeltaError(f"Failed to write delta manifest {path}: {e}") from e

    return path


def apply_prior_deltas(
    tables: Iterable[TableDescriptor], prior: Mapping[str, DeltaRecord]
) -> None:
    """Set each table's filter value from the prior run's records.

    A table gets the prior maximum as its lower bound when a record exists
    for it, it is not a full-reload table, and the record was taken on the
    table's current delta column. Every other table exports in full.
    """
    for table in tables:
        record = prior.get(table.name)
        table.filter_value = None
        if record is None or table.is_full_reload or not table.delta_column:
            continue
        if record.column_name.casefold() != table.delta_column.casefold():
            logger.warning(
                "Delta column for %s changed from %s to %s; exporting in full",
                table.name,
                record.column_name,
                table.delta_column,
            )
            continue
        table.filter_value = record.max_value


class DeltaStore:
    """Reads and writes delta manifests under the output directory.

    Examples:
        >>> store = DeltaStore(Path("results"))
        >>> previous, prior = store.resolve(date.today())
        >>> records = store.capture(tables, connector)
        >>> store.write(RunLayout(Path("results"), date.today()), records)
    """

    def __init__(self, output_dir: Path):
        self.output_dir = Path(output_dir)

    def manifest_path(self, run_date: date) -> Path:
        return RunLayout(self.output_dir, run_date).manifest_path

    def previous_run(self, today: date) -> Optional[date]:
        """Nearest earlier run that has a manifest."""
        usable = [
            name
            for name in list_runs(self.output_dir)
            if (self.output_dir / name / "delta" / "delta.csv").is_file()
        ]
        return find_previous_run_date(usable, today)

    def load(self, run_date: date) -> dict[str, DeltaRecord]:
        """Load a run's manifest keyed by table name.

        Raises:
            DeltaError: If the manifest cannot be read
        """
        return {record.table_name: record for record in read_manifest(self.manifest_path(run_date))}

    def resolve(self, today: date) -> tuple[Optional[date], dict[str, DeltaRecord]]:
        """Resolve the prior high-water marks for a run on ``today``.

        Returns:
            Tuple of (previous run date, records by table name). Both are
            empty when no earlier run exists.
        """
        previous = self.previous_run(today)
        if previous is None:
            logger.info("No previous delta found; exporting every table in full")
            return None, {}

        records = self.load(previous)
        logger.info("Using delta from %s (%d tables)", previous, len(records))
        return previous, records

    def capture(
        self,
        tables: Iterable[TableDescriptor],
        connector: Connector,
        on_error: str = "fail",
    ) -> list[DeltaRecord]:
        """Capture this run's high-water marks.

        One summary query per incremental table with rows. Tables whose
        maximum is NULL (or not a timestamp) are left out.

        Args:
            tables: Classified tables
            connector: Connected source connector
            on_error: 'fail' to raise on a failed summary query, 'skip' to log it

        Returns:
            Records for the manifest

        Raises:
            CatalogError: If a summary query fails and on_error is 'fail'
        """
        records = []
        for table in tables:
            if table.row_count == 0 or not table.is_incremental:
                continue

            try:
                raw = connector.max_value(table.name, table.delta_column)
            except CatalogError as e:
                if on_error == "fail":
                    raise
                logger.error("Skipping delta for %s: %s", table.name, e)
                continue

            max_value = coerce_timestamp(raw)
            if max_value is None:
                logger.info("No usable maximum for %s.%s", table.name, table.delta_column)
                continue

            records.append(
                DeltaRecord(
                    table_name=table.name,
                    column_name=table.delta_column,
                    max_value=max_value,
                    row_count=table.row_count,
                )
            )

        return records

    def write(self, layout: RunLayout, records: Iterable[DeltaRecord]) -> Path:
        """Write the manifest for a run."""
        records = list(records)
        path = write_manifest(layout.manifest_path, records)
        logger.info("Wrote %d delta records to %s", len(records), path)
        return path
