"""Base Connector abstract class.

This module defines the Connector interface for the source database: the
connection lifecycle, the catalog queries the run needs, and the hooks the
row streamer uses to build and execute its export query.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, ContextManager, Optional

from tabdelta.core.values import as_naive_utc
from tabdelta.models.table import ColumnDescriptor


class Connector(ABC):
    """Base class for managing connections to a source database.

    Connectors are shared by the catalog scan and the export workers. Each
    export checks out its own connection through ``open_connection`` and
    releases it when the table is done.

    Examples:
        Using a connector as a context manager:
        >>> with SQLiteConnector({"connection_string": "sqlite:///source.db"}) as conn:
        ...     tables = conn.list_tables("main", blacklist=[])
        ...     columns = conn.describe_table(tables[0])
    """

    def __init__(self, config: dict[str, Any]):
        """Initialize connector with configuration.

        Args:
            config: Connection configuration dictionary
        """
        self.config = config
        self.connection: Optional[Any] = None

    @abstractmethod
    def connect(self) -> None:
        """Establish connection to the database.

        Raises:
            ConnectionError: If connection fails
        """
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Close connection to the database.

        Should handle cases where connection is already closed gracefully.
        """
        pass

    @abstractmethod
    def test_connection(self) -> bool:
        """Test connectivity to the database.

        Returns:
            True if connection is successful, False otherwise
        """
        pass

    @abstractmethod
    def list_tables(self, catalog: str, blacklist: list[str]) -> list[str]:
        """List base tables in a catalog, leaving out blacklisted names.

        Args:
            catalog: Catalog (database) name
            blacklist: Table names to leave out

        Returns:
            Table names in catalog order

        Raises:
            CatalogError: If the catalog cannot be read
        """
        pass

    @abstractmethod
    def describe_table(self, table: str) -> list[ColumnDescriptor]:
        """Describe the columns of a table.

        Args:
            table: Table name

        Returns:
            Column descriptors in ordinal order

        Raises:
            CatalogError: If the table cannot be described
        """
        pass

    @abstractmethod
    def count_rows(self, table: str) -> int:
        """Count the rows of a table.

        Raises:
            CatalogError: If the count query fails
        """
        pass

    @abstractmethod
    def max_value(self, table: str, column: str) -> Any:
        """Return ``MAX(column)`` for a table, as returned by the driver.

        Raises:
            CatalogError: If the summary query fails
        """
        pass

    @abstractmethod
    def open_connection(self) -> ContextManager[Any]:
        """Check out a dedicated connection for one table export.

        Returns:
            Context manager yielding a connection that is released on exit

        Raises:
            ConnectorError: If not connected
        """
        pass

    @abstractmethod
    def quote_identifier(self, name: str) -> str:
        """Quote a table or column name for the source dialect."""
        pass

    def format_filter_value(self, value: datetime) -> Any:
        """Convert a delta bound into the parameter passed to the driver.

        Delta bounds are held in UTC. The default binds them as naive UTC
        datetimes, matching the naive values the source returned for
        ``MAX()``. Sources that store timestamps as text override this.

        Args:
            value: Delta lower bound

        Returns:
            Value bound to the filter parameter
        """
        return as_naive_utc(value)

    def __enter__(self) -> Connector:
        """Context manager entry: establish connection.

        Returns:
            Self
        """
        self.connect()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Context manager exit: close connection."""
        self.disconnect()

    @property
    def is_connected(self) -> bool:
        """Check if connection is established.

        Returns:
            True if connected, False otherwise
        """
        return self.connection is not None
