"""SQL Server operators for tabdelta."""

from tabdelta.operators.mssql.connector import MSSQLConnector

__all__ = ["MSSQLConnector"]
