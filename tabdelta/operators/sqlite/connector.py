"""SQLite connector implementation using SQLAlchemy.

This module provides a SQLite source, used for local extracts and tests.
"""

from __future__ import annotations

from datetime import datetime

from tabdelta.core.values import as_naive_utc
from tabdelta.exceptions import CatalogError, ConnectorError
from tabdelta.models.table import ColumnDescriptor
from tabdelta.operators.sql.connector import SQLConnector, parse_declared_type


class SQLiteConnector(SQLConnector):
    """SQLite source connector.

    Configuration keys:
        - connection_string: Full connection string (e.g. "sqlite:///source.db")
        - path: Database file path (alternative)
        - echo: Enable SQL logging (default: False)

    SQLite keeps the declared column type verbatim in ``PRAGMA table_info``,
    so ``describe_table`` reads it from there rather than from the inspector,
    which reduces unknown names such as ``IMAGE`` to a type affinity.

    Examples:
        >>> config = {"connection_string": "sqlite:////data/source.db"}
        >>> with SQLiteConnector(config) as conn:
        ...     columns = conn.describe_table("orders")
    """

    def _build_connection_string(self) -> str:
        """Build SQLite connection string from config.

        Raises:
            ConnectorError: If neither connection_string nor path is set
        """
        if self.config.get("connection_string"):
            return self.config["connection_string"]

        if not self.config.get("path"):
            raise ConnectorError("Missing required config key: path")

        return f"sqlite:///{self.config['path']}"

    def _get_database_name(self) -> str:
        return "SQLite"

    def describe_table(self, table: str) -> list[ColumnDescriptor]:
        """Describe a table from ``PRAGMA table_info``."""
        query = f"PRAGMA table_info({self.quote_identifier(table)})"
        try:
            rows = self.execute_query(query)
        except ConnectorError as e:
            raise CatalogError(f"Failed to describe table {table}: {e}") from e

        if not rows:
            raise CatalogError(f"Table does not exist: {table}")

        descriptors = []
        for row in rows:
            data_type, sizes = parse_declared_type(row["type"])
            descriptors.append(
                ColumnDescriptor(
                    name=row["name"],
                    data_type=data_type,
                    nullable=not row["notnull"],
                    ordinal_position=row["cid"] + 1,
                    primary_key=row["pk"] > 0,
                    **sizes,
                )
            )
        return descriptors

    def format_filter_value(self, value: datetime) -> str:
        """SQLite timestamps are stored as text: ``YYYY-MM-DD HH:MM:SS[.ffffff]``.

        The bound is written in the same naive form so that the text
        comparison matches the stored values.
        """
        return as_naive_utc(value).isoformat(sep=" ")
