"""Row streamer: one table export from query to compressed file.

The streamer builds the projection/filter query for a table, runs it on a
dedicated connection with a streaming cursor, renders every value through
``tabdelta.core.values`` and writes the rows to ``<table>.csv.gz`` with no
header row.
"""

from __future__ import annotations

import csv
import gzip
import logging
import threading
import time
from typing import Any, Iterable, Optional

from sqlalchemy import text

from tabdelta.core.connector import Connector
from tabdelta.core.values import format_row
from tabdelta.exceptions import ExportCancelledError, ExportError, ExportTimeoutError
from tabdelta.models.results import TableExportResult
from tabdelta.models.table import TableDescriptor

logger = logging.getLogger(__name__)

FILTER_PARAM = "filter_value"


def _quote_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


class RowStreamer:
    """Exports tables as gzip-compressed CSV files.

    Examples:
        >>> streamer = RowStreamer(connector, binary_types={"image"})
        >>> result = streamer.export(table)
        >>> result.rows_written
        5120
    """

    def __init__(
        self,
        connector: Connector,
        placeholder: str = "{img}",
        binary_types: Optional[Iterable[str]] = None,
        delta_bound: str = "inclusive",
        flush_every_row: bool = True,
        table_timeout: Optional[float] = None,
    ):
        """Initialize the streamer.

        Args:
            connector: Connected source connector
            placeholder: Literal emitted in place of large binary columns
            binary_types: Declared types replaced by the placeholder
            delta_bound: 'inclusive' (>=) or 'exclusive' (>)
            flush_every_row: Flush the compressed stream after every row
            table_timeout: Deadline in seconds for one table, checked between rows
        """
        if delta_bound not in {"inclusive", "exclusive"}:
            raise ValueError(f"Invalid delta_bound: {delta_bound}")
        self.connector = connector
        self.placeholder = placeholder
        self.binary_types = {name.lower() for name in (binary_types or {"image"})}
        self.delta_bound = delta_bound
        self.flush_every_row = flush_every_row
        self.table_timeout = table_timeout

    def build_query(self, table: TableDescriptor) -> tuple[str, dict[str, Any]]:
        """Build the export query for a table.

        Every column is listed by quoted name, except large binary columns,
        which are replaced by the placeholder literal aliased to the column
        name. A filter on the delta column is added only when the table
        carries a filter value.

        Args:
            table: Classified table with its filter value applied

        Returns:
            Tuple of (SQL text, bound parameters)

        Raises:
            ExportError: If the table has no columns
        """
        if not table.columns:
            raise ExportError(f"Table {table.name} has no columns")

        projection = []
        for column in table.columns:
            quoted = self.connector.quote_identifier(column.name or "")
            if column.has_type(self.binary_types):
                projection.append(f"{_quote_literal(self.placeholder)} AS {quoted}")
            else:
                projection.append(quoted)

        query = f"SELECT {', '.join(projection)} FROM {self.connector.quote_identifier(table.name)}"
        params: dict[str, Any] = {}

        if table.filter_value is not None and table.delta_column:
            operator = ">=" if self.delta_bound == "inclusive" else ">"
            delta = self.connector.quote_identifier(table.delta_column)
            query += f" WHERE {delta} {operator} :{FILTER_PARAM}"
            params[FILTER_PARAM] = self.connector.format_filter_value(table.filter_value)

        return query, params

    def export(
        self,
        table: TableDescriptor,
        cancel_event: Optional[threading.Event] = None,
        worker_id: Optional[int] = None,
    ) -> TableExportResult:
        """Export one table.

        Args:
            table: Table to export; ``output_path`` must be set
            cancel_event: Set by the scheduler when the run deadline passes
            worker_id: Worker running the export, recorded on the result

        Returns:
            TableExportResult with status 'exported'

        Raises:
            ExportCancelledError: If the cancel event is set mid-export
            ExportTimeoutError: If the table deadline passes mid-export
            ExportError: If the query or the write fails
        """
        path = table.output_file
        if path is None:
            raise ExportError(f"No output path for table {table.name}")

        query, params = self.build_query(table)
        started = time.monotonic()
        deadline = started + self.table_timeout if self.table_timeout else None
        rows_written = 0

        logger.info(
            "Exporting %s%s",
            table.name,
            f" from {table.filter_value}" if table.filter_value is not None else "",
        )
        logger.debug("Query for %s: %s", table.name, query)

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with self.connector.open_connection() as conn:
                result = conn.execution_options(stream_results=True).execute(text(query), params)
                with gzip.open(path, "wt", encoding="utf-8", newline="") as f:
                    writer = csv.writer(f)
                    for row in result:
                        if cancel_event is not None and cancel_event.is_set():
                            raise ExportCancelledError(
                                f"Export of {table.name} cancelled after {rows_written} rows"
                            )
                        if deadline is not None and time.monotonic() > deadline:
                            raise ExportTimeoutError(
                                f"Export of {table.name} exceeded {self.table_timeout}s "
                                f"after {rows_written} rows"
                            )
                        writer.writerow(format_row(row))
                        rows_written += 1
                        if self.flush_every_row:
                            f.flush()
        except ExportError:
            raise
        except Exception as e:
            raise ExportError(f"Failed to export table {table.name}: {e}") from e

        duration = time.monotonic() - started
        logger.info("Exported %s: %d rows in %.2fs", table.name, rows_written, duration)

        return TableExportResult(
            table_name=table.name,
            status="exported",
            rows_written=rows_written,
            output_file=str(path),
            worker_id=worker_id,
            filter_value=table.filter_value,
            duration_seconds=duration,
        )
