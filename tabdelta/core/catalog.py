"""Metadata catalog.

This module turns the configured table selection into TableDescriptor
objects: it enumerates table names (whitelist or blacklist mode), describes
each table's columns and snapshots its row count.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from tabdelta.core.connector import Connector
from tabdelta.exceptions import CatalogError
from tabdelta.models.settings import ExtractionConfig
from tabdelta.models.table import TableDescriptor

logger = logging.getLogger(__name__)


class MetadataCatalog:
    """Reads table and column definitions and row counts from the source.

    Catalog failures abort the run by default. With ``on_error="skip"`` a
    table whose describe or count query fails is logged and left out, and
    the remaining tables are still collected.

    Examples:
        >>> catalog = MetadataCatalog(connector)
        >>> tables = catalog.collect(config, output_path=Path("results/2024_01_05/tables"))
        >>> [t.name for t in tables if t.row_count > 0]
        ['orders', 'customers']
    """

    def __init__(self, connector: Connector, on_error: str = "fail"):
        """Initialize the catalog.

        Args:
            connector: Connected source connector
            on_error: 'fail' to raise on catalog errors, 'skip' to drop the table
        """
        if on_error not in {"fail", "skip"}:
            raise ValueError(f"Invalid on_error policy: {on_error}")
        self.connector = connector
        self.on_error = on_error

    def list_tables(self, config: ExtractionConfig) -> list[str]:
        """Table names selected by the configuration.

        Whitelist mode uses the configured names as given. Blacklist mode
        lists every base table of the catalog minus the blacklist.

        Raises:
            CatalogError: If the table listing fails
        """
        if config.mode == "whitelist":
            logger.info("Using the table whitelist (%d tables)", len(config.whitelist))
            return list(config.whitelist)

        logger.info("Fetching the table list for %s", config.database)
        return self.connector.list_tables(config.database, config.blacklist)

    @staticmethod
    def _check_unique(names: list[str]) -> None:
        """Table names key the delta manifest and the export files."""
        seen: set[str] = set()
        repeated = []
        for name in names:
            if name.casefold() in seen:
                repeated.append(name)
            seen.add(name.casefold())
        if repeated:
            raise CatalogError(f"Tables selected more than once: {', '.join(repeated)}")

    def describe(self, name: str, output_path: Optional[Path] = None) -> TableDescriptor:
        """Describe one table and snapshot its row count.

        Raises:
            CatalogError: If the describe or count query fails
        """
        columns = self.connector.describe_table(name)
        row_count = self.connector.count_rows(name)
        return TableDescriptor(
            name=name,
            columns=columns,
            row_count=row_count,
            output_path=output_path,
        )

    def collect(
        self, config: ExtractionConfig, output_path: Optional[Path] = None
    ) -> list[TableDescriptor]:
        """Build descriptors for every selected table.

        Args:
            config: Extraction configuration
            output_path: Directory that will receive the table exports

        Returns:
            Table descriptors in listing order

        Raises:
            CatalogError: If a table name is selected twice, whatever the
                error policy, or on the first failure when on_error is 'fail'
        """
        names = self.list_tables(config)
        self._check_unique(names)

        logger.info("Getting the metadata and row counts for %d tables", len(names))
        tables = []
        for name in names:
            try:
                table = self.describe(name, output_path)
            except CatalogError as e:
                if self.on_error == "fail":
                    raise
                logger.error("Skipping table %s: %s", name, e)
                continue
            logger.debug("%s: %d columns, %d rows", name, len(table.columns), table.row_count)
            tables.append(table)

        return tables
