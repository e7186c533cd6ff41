"""SQL-based connector base class using SQLAlchemy.

This module provides a base class for source connectors that use
SQLAlchemy for connection management, catalog introspection and
streaming result sets.
"""

from __future__ import annotations

import re
from abc import abstractmethod
from typing import Any, ContextManager, Optional

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Connection, Engine

from tabdelta.core.connector import Connector
from tabdelta.exceptions import CatalogError, ConnectionError, ConnectorError
from tabdelta.models.table import ColumnDescriptor

_TYPE_PATTERN = re.compile(r"^\s*([^(]+?)\s*(?:\(\s*(\w+)\s*(?:,\s*(\d+)\s*)?\))?\s*$")

_NUMERIC_TYPES = {"decimal", "numeric"}


def parse_declared_type(declared: Optional[str]) -> tuple[Optional[str], dict[str, int]]:
    """Split a declared type such as ``VARCHAR(50)`` into name and size.

    Args:
        declared: Declared type string

    Returns:
        Tuple of (lower-cased type name, size attributes). Size attributes
        hold ``precision``/``scale`` for numeric types and ``max_length``
        otherwise.

    Examples:
        >>> parse_declared_type("VARCHAR(50)")
        ('varchar', {'max_length': 50})
        >>> parse_declared_type("DECIMAL(10, 2)")
        ('decimal', {'precision': 10, 'scale': 2})
        >>> parse_declared_type("image")
        ('image', {})
    """
    if not declared:
        return None, {}

    match = _TYPE_PATTERN.match(declared)
    if match is None:
        return declared.strip().lower(), {}

    name = match.group(1).lower()
    first, second = match.group(2), match.group(3)
    sizes: dict[str, int] = {}

    if first is not None and first.isdigit():
        if name in _NUMERIC_TYPES:
            sizes["precision"] = int(first)
            if second is not None:
                sizes["scale"] = int(second)
        else:
            sizes["max_length"] = int(first)

    return name, sizes


class SQLConnector(Connector):
    """Base class for SQL source connectors using SQLAlchemy.

    Provides:
    - SQLAlchemy engine management (connect, disconnect, test)
    - Catalog queries through the SQLAlchemy inspector
    - COUNT and MAX summary queries
    - Dedicated connections for streaming exports

    Subclasses must implement:
    - _build_connection_string(): Database-specific connection string
    - _get_database_name(): Human-readable name for error messages

    Subclasses override list_tables/describe_table where the source offers
    richer catalog views than the inspector exposes.
    """

    def __init__(self, config: dict[str, Any]):
        """Initialize SQL connector.

        Args:
            config: Connection configuration dictionary
        """
        super().__init__(config)
        self.engine: Optional[Engine] = None

    @abstractmethod
    def _build_connection_string(self) -> str:
        """Build database-specific connection string from config.

        Returns:
            SQLAlchemy connection string (e.g., "mssql+pyodbc://...", "sqlite:///...")

        Raises:
            ConnectorError: If required config is missing or invalid
        """
        pass

    @abstractmethod
    def _get_database_name(self) -> str:
        """Get database name for error messages (e.g. "SQLite")."""
        pass

    def connect(self) -> None:
        """Create the SQLAlchemy engine and verify the database answers.

        Raises:
            ConnectionError: If connection fails
        """
        try:
            connection_string = self._build_connection_string()
            self.engine = create_engine(
                connection_string,
                pool_pre_ping=True,
                echo=self.config.get("echo", False),
            )
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            self.connection = self.engine
        except ConnectorError:
            raise
        except Exception as e:
            db_name = self._get_database_name()
            raise ConnectionError(f"Failed to connect to {db_name}: {e}") from e

    def disconnect(self) -> None:
        """Dispose the engine. Safe to call when already disconnected."""
        if self.engine is not None:
            self.engine.dispose()
            self.engine = None
            self.connection = None

    def test_connection(self) -> bool:
        """Test connectivity to the database.

        Returns:
            True if connection is successful, False otherwise
        """
        try:
            if not self.is_connected:
                self.connect()
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception:
            return False

    def _require_engine(self) -> Engine:
        if self.engine is None:
            raise ConnectorError("Not connected to database")
        return self.engine

    def open_connection(self) -> ContextManager[Connection]:
        """Check out a dedicated connection from the engine pool."""
        return self._require_engine().connect()

    def quote_identifier(self, name: str) -> str:
        """Quote a name with the dialect's identifier preparer."""
        return self._require_engine().dialect.identifier_preparer.quote_identifier(name)

    def execute_query(self, query: str, params: Optional[dict[str, Any]] = None) -> list[dict[str, Any]]:
        """Execute a query and return its rows as dictionaries.

        Args:
            query: SQL query string
            params: Bound parameters

        Returns:
            List of records as dictionaries (column_name -> value)

        Raises:
            ConnectorError: If not connected or query execution fails
        """
        engine = self._require_engine()
        try:
            with engine.connect() as conn:
                result = conn.execute(text(query), params or {})
                return [dict(row._mapping) for row in result]
        except Exception as e:
            raise ConnectorError(f"Failed to execute query: {e}") from e

    def _scalar(self, query: str, params: Optional[dict[str, Any]] = None) -> Any:
        engine = self._require_engine()
        with engine.connect() as conn:
            return conn.execute(text(query), params or {}).scalar()

    def list_tables(self, catalog: str, blacklist: list[str]) -> list[str]:
        """List tables through the SQLAlchemy inspector.

        The catalog name is implied by the connection; blacklisted names are
        compared case-insensitively.
        """
        engine = self._require_engine()
        excluded = {name.casefold() for name in blacklist}
        try:
            names = inspect(engine).get_table_names()
        except Exception as e:
            raise CatalogError(f"Failed to list tables in {catalog}: {e}") from e
        return [name for name in names if name.casefold() not in excluded]

    def describe_table(self, table: str) -> list[ColumnDescriptor]:
        """Describe a table through the SQLAlchemy inspector."""
        engine = self._require_engine()
        try:
            inspector = inspect(engine)
            columns = inspector.get_columns(table)
            primary_keys = set(
                inspector.get_pk_constraint(table).get("constrained_columns") or []
            )
        except Exception as e:
            raise CatalogError(f"Failed to describe table {table}: {e}") from e

        descriptors = []
        for position, column in enumerate(columns, start=1):
            data_type, sizes = parse_declared_type(str(column["type"]))
            descriptors.append(
                ColumnDescriptor(
                    name=column["name"],
                    data_type=data_type,
                    nullable=column.get("nullable"),
                    ordinal_position=position,
                    collation_name=getattr(column["type"], "collation", None),
                    primary_key=column["name"] in primary_keys,
                    **sizes,
                )
            )
        return descriptors

    def count_rows(self, table: str) -> int:
        """Run ``SELECT COUNT(*)`` on a table."""
        query = f"SELECT COUNT(*) FROM {self.quote_identifier(table)}"
        try:
            return int(self._scalar(query) or 0)
        except Exception as e:
            raise CatalogError(f"Failed to count rows in {table}: {e}") from e

    def max_value(self, table: str, column: str) -> Any:
        """Run ``SELECT MAX(column)`` on a table."""
        query = (
            f"SELECT MAX({self.quote_identifier(column)}) "
            f"FROM {self.quote_identifier(table)}"
        )
        try:
            return self._scalar(query)
        except Exception as e:
            raise CatalogError(f"Failed to read MAX({column}) from {table}: {e}") from e
