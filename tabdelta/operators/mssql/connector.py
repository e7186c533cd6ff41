"""SQL Server connector implementation using SQLAlchemy and pyodbc.

This module provides the SQL Server source with catalog queries against
INFORMATION_SCHEMA and the sys catalog views.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import bindparam, text
from sqlalchemy.engine import URL

from tabdelta.exceptions import CatalogError, ConnectorError
from tabdelta.models.table import ColumnDescriptor
from tabdelta.operators.sql.connector import SQLConnector

LIST_TABLES_QUERY = """
    SELECT
        TABLE_NAME
    FROM
        INFORMATION_SCHEMA.TABLES
    WHERE
        TABLE_TYPE = 'BASE TABLE' AND TABLE_CATALOG = :catalog
"""

DESCRIBE_TABLE_QUERY = """
    SELECT
        c.name AS column_name,
        t.name AS data_type,
        c.max_length AS max_length,
        c.precision AS precision,
        c.scale AS scale,
        c.is_nullable AS is_nullable,
        c.column_id AS ordinal_position,
        c.collation_name AS collation_name,
        CAST(CASE WHEN EXISTS (
            SELECT 1
            FROM sys.index_columns ic
            INNER JOIN sys.indexes i
                ON ic.object_id = i.object_id AND ic.index_id = i.index_id
            WHERE ic.object_id = c.object_id
                AND ic.column_id = c.column_id
                AND i.is_primary_key = 1
        ) THEN 1 ELSE 0 END AS bit) AS primary_key
    FROM
        sys.columns c
    INNER JOIN
        sys.types t ON c.user_type_id = t.user_type_id
    WHERE
        c.object_id = OBJECT_ID(:table)
    ORDER BY
        c.column_id
"""


class MSSQLConnector(SQLConnector):
    """SQL Server source connector.

    Configuration keys:
        - connection_string: Full SQLAlchemy URL (alternative to the keys below)
        - server: Host name, with "\\instance" appended for named instances
        - database: Catalog name (required)
        - username, password: SQL login
        - crypto: Value for the ODBC "Encrypt" option
        - driver: ODBC driver name (default: "ODBC Driver 18 for SQL Server")
        - echo: Enable SQL logging (default: False)

    Examples:
        >>> config = {"server": "db01\\\\SM", "database": "ServiceManager",
        ...           "username": "reader", "password": "secret"}
        >>> with MSSQLConnector(config) as conn:
        ...     tables = conn.list_tables("ServiceManager", blacklist=["AuditLog"])
    """

    def _build_connection_string(self) -> str:
        """Build the mssql+pyodbc URL from config.

        Raises:
            ConnectorError: If server or database is missing
        """
        if self.config.get("connection_string"):
            return self.config["connection_string"]

        for key in ("server", "database"):
            if not self.config.get(key):
                raise ConnectorError(f"Missing required config key: {key}")

        query: dict[str, Any] = {
            "driver": self.config.get("driver") or "ODBC Driver 18 for SQL Server",
            "APP": "tabdelta",
        }
        if self.config.get("crypto"):
            query["Encrypt"] = self.config["crypto"]

        url = URL.create(
            "mssql+pyodbc",
            username=self.config.get("username"),
            password=self.config.get("password"),
            host=self.config["server"],
            database=self.config["database"],
            query=query,
        )
        return url.render_as_string(hide_password=False)

    def _get_database_name(self) -> str:
        return "SQL Server"

    def list_tables(self, catalog: str, blacklist: list[str]) -> list[str]:
        """List base tables from INFORMATION_SCHEMA.TABLES."""
        engine = self._require_engine()
        query = LIST_TABLES_QUERY
        params: dict[str, Any] = {"catalog": catalog}
        if blacklist:
            query += " AND TABLE_NAME NOT IN :blacklist"
            params["blacklist"] = list(blacklist)

        statement = text(query)
        if blacklist:
            statement = statement.bindparams(bindparam("blacklist", expanding=True))

        try:
            with engine.connect() as conn:
                return [row[0] for row in conn.execute(statement, params)]
        except Exception as e:
            raise CatalogError(f"Failed to list tables in {catalog}: {e}") from e

    def describe_table(self, table: str) -> list[ColumnDescriptor]:
        """Describe a table from sys.columns, sys.types and sys.indexes."""
        try:
            rows = self.execute_query(DESCRIBE_TABLE_QUERY, {"table": table})
        except ConnectorError as e:
            raise CatalogError(f"Failed to describe table {table}: {e}") from e

        return [
            ColumnDescriptor(
                name=row["column_name"],
                data_type=row["data_type"],
                max_length=row["max_length"],
                precision=row["precision"],
                scale=row["scale"],
                nullable=None if row["is_nullable"] is None else bool(row["is_nullable"]),
                ordinal_position=row["ordinal_position"],
                collation_name=row["collation_name"],
                primary_key=None if row["primary_key"] is None else bool(row["primary_key"]),
            )
            for row in rows
        ]
