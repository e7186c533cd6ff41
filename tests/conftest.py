"""Shared fixtures: a small SQLite source database."""

import sqlite3

import pytest

SOURCE_SCHEMA = """
CREATE TABLE Incidents (
    Id INTEGER PRIMARY KEY,
    Title VARCHAR(100) NOT NULL,
    Amount DECIMAL(10, 2),
    Attachment IMAGE,
    LastModified DATETIME
);

INSERT INTO Incidents (Id, Title, Amount, Attachment, LastModified) VALUES
    (1, 'Printer on fire', 12.5, X'FFD8FFE0', '2024-01-01 10:00:00'),
    (2, 'VPN down', NULL, NULL, '2024-01-02 11:00:00'),
    (3, 'Password reset', 7, X'0102', '2024-01-03 12:00:00');

CREATE TABLE Customers (
    Id INTEGER PRIMARY KEY,
    Name TEXT NOT NULL,
    LastModified DATETIME
);

INSERT INTO Customers (Id, Name, LastModified) VALUES
    (1, 'Alice', '2024-01-01 09:00:00'),
    (2, 'Bob', '2024-01-02 09:00:00');

CREATE TABLE EmptyTable (
    Id INTEGER,
    LastModified DATETIME
);

CREATE TABLE Lookup (
    Code TEXT,
    Label TEXT
);

INSERT INTO Lookup (Code, Label) VALUES
    ('P1', 'Critical'),
    ('P2', 'High');
"""


@pytest.fixture
def source_db(tmp_path):
    """Create a SQLite source database with four tables.

    - Incidents: 3 rows, delta column LastModified, one IMAGE column
    - Customers: 2 rows, used as a type 2 table
    - EmptyTable: no rows
    - Lookup: 2 rows, no delta column
    """
    db_path = tmp_path / "source.db"
    conn = sqlite3.connect(db_path)
    try:
        conn.executescript(SOURCE_SCHEMA)
        conn.commit()
    finally:
        conn.close()
    return db_path


@pytest.fixture
def execute_sql(source_db):
    """Run statements against the source database."""

    def _execute(sql):
        conn = sqlite3.connect(source_db)
        try:
            conn.executescript(sql)
            conn.commit()
        finally:
            conn.close()

    return _execute
