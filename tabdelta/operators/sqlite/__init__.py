"""SQLite operators for tabdelta."""

from tabdelta.operators.sqlite.connector import SQLiteConnector

__all__ = ["SQLiteConnector"]
