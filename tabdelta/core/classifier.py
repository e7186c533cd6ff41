"""Table classification: type-2 (full reload) versus timestamp-incremental."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from tabdelta.models.table import TableDescriptor

logger = logging.getLogger(__name__)


def find_delta_column(table: TableDescriptor, timestamp_names: set[str]) -> Optional[str]:
    """Find the delta column of a table.

    Columns are scanned in ordinal order and the last column whose name
    matches (case-insensitively) one of ``timestamp_names`` wins.

    Args:
        table: Table to scan
        timestamp_names: Case-folded delta column names

    Returns:
        The matching column name as declared by the source, or None
    """
    matches = [
        column.name
        for column in table.columns
        if column.name and column.name.casefold() in timestamp_names
    ]
    if not matches:
        return None
    if len(matches) > 1:
        logger.warning(
            "Table %s has several delta columns %s; using %s",
            table.name,
            matches,
            matches[-1],
        )
    return matches[-1]


def classify_tables(
    tables: Iterable[TableDescriptor],
    type2_names: Iterable[str],
    timestamp_names: Iterable[str],
) -> None:
    """Annotate tables in place with their type-2 flag and delta column.

    A table named in ``type2_names`` is a full-reload table and gets no
    delta column. Any other table gets the delta column found by
    ``find_delta_column``, if any.

    Args:
        tables: Tables to annotate
        type2_names: Type-2 table names (any case)
        timestamp_names: Delta column names (any case)
    """
    type2 = {name.casefold() for name in type2_names}
    timestamps = {name.casefold() for name in timestamp_names}

    for table in tables:
        if table.name.casefold() in type2:
            table.is_full_reload = True
            table.delta_column = None
            logger.info("Type 2 table: %s", table.name)
            continue

        table.is_full_reload = False
        table.delta_column = find_delta_column(table, timestamps)
        if table.delta_column:
            logger.debug("Delta column for %s: %s", table.name, table.delta_column)
