"""Generic SQL operators built on SQLAlchemy."""

from tabdelta.operators.sql.connector import SQLConnector, parse_declared_type

__all__ = ["SQLConnector", "parse_declared_type"]
