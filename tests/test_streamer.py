"""Tests for the row streamer."""

import csv
import gzip
import threading
from datetime import datetime, timezone

import pytest

from tabdelta.core.delta_store import DeltaStore, apply_prior_deltas, read_manifest, write_manifest
from tabdelta.core.streamer import RowStreamer
from tabdelta.exceptions import ExportCancelledError, ExportError, ExportTimeoutError
from tabdelta.models.table import TableDescriptor
from tabdelta.operators.sqlite import SQLiteConnector


@pytest.fixture
def sqlite_connector(source_db):
    connector = SQLiteConnector({"path": str(source_db)})
    connector.connect()
    yield connector
    connector.disconnect()


@pytest.fixture
def incidents(sqlite_connector, tmp_path):
    """Described Incidents table writing into tmp_path/tables."""
    return TableDescriptor(
        name="Incidents",
        columns=sqlite_connector.describe_table("Incidents"),
        row_count=3,
        delta_column="LastModified",
        output_path=tmp_path / "tables",
    )


def read_export(path):
    with gzip.open(path, "rt", encoding="utf-8", newline="") as f:
        return list(csv.reader(f))


class TestBuildQuery:
    """Test projection and filter generation."""

    def test_full_export(self, sqlite_connector, incidents):
        query, params = RowStreamer(sqlite_connector).build_query(incidents)
        assert query == (
            'SELECT "Id", "Title", "Amount", \'{img}\' AS "Attachment", "LastModified" '
            'FROM "Incidents"'
        )
        assert params == {}

    def test_inclusive_filter(self, sqlite_connector, incidents):
        incidents.filter_value = datetime(2024, 1, 2, 11, 0)
        query, params = RowStreamer(sqlite_connector).build_query(incidents)
        assert query.endswith('WHERE "LastModified" >= :filter_value')
        assert params == {"filter_value": "2024-01-02 11:00:00"}

    def test_exclusive_filter(self, sqlite_connector, incidents):
        incidents.filter_value = datetime(2024, 1, 2, 11, 0)
        query, _ = RowStreamer(sqlite_connector, delta_bound="exclusive").build_query(incidents)
        assert query.endswith('WHERE "LastModified" > :filter_value')

    def test_custom_placeholder_and_types(self, sqlite_connector, incidents):
        streamer = RowStreamer(
            sqlite_connector, placeholder="<blob>", binary_types=["IMAGE", "DECIMAL"]
        )
        query, _ = streamer.build_query(incidents)
        assert "'<blob>' AS \"Attachment\"" in query
        assert "'<blob>' AS \"Amount\"" in query

    def test_no_columns(self, sqlite_connector):
        with pytest.raises(ExportError):
            RowStreamer(sqlite_connector).build_query(TableDescriptor(name="Empty"))

    def test_invalid_bound(self, sqlite_connector):
        with pytest.raises(ValueError):
            RowStreamer(sqlite_connector, delta_bound="sideways")


class TestExport:
    """Test streaming a table to a compressed file."""

    def test_full_export(self, sqlite_connector, incidents):
        result = RowStreamer(sqlite_connector).export(incidents, worker_id=4)

        assert result.status == "exported"
        assert result.rows_written == 3
        assert result.worker_id == 4
        assert result.output_file == str(incidents.output_file)

        rows = read_export(incidents.output_file)
        assert rows == [
            ["1", "Printer on fire", "12.50", "{img}", "2024-01-01 10:00:00"],
            ["2", "VPN down", "", "{img}", "2024-01-02 11:00:00"],
            ["3", "Password reset", "7", "{img}", "2024-01-03 12:00:00"],
        ]

    def test_incremental_export_includes_boundary(self, sqlite_connector, incidents):
        incidents.filter_value = datetime(2024, 1, 2, 11, 0)
        result = RowStreamer(sqlite_connector).export(incidents)

        assert result.rows_written == 2
        assert result.filter_value == datetime(2024, 1, 2, 11, 0)
        assert [row[0] for row in read_export(incidents.output_file)] == ["2", "3"]

    def test_exclusive_export_skips_boundary(self, sqlite_connector, incidents):
        incidents.filter_value = datetime(2024, 1, 2, 11, 0)
        RowStreamer(sqlite_connector, delta_bound="exclusive").export(incidents)
        assert [row[0] for row in read_export(incidents.output_file)] == ["3"]

    def test_overwrites_existing_file(self, sqlite_connector, incidents):
        streamer = RowStreamer(sqlite_connector)
        streamer.export(incidents)
        incidents.filter_value = datetime(2024, 1, 3, 12, 0)
        streamer.export(incidents)
        assert len(read_export(incidents.output_file)) == 1

    def test_no_output_path(self, sqlite_connector, incidents):
        incidents.output_path = None
        with pytest.raises(ExportError):
            RowStreamer(sqlite_connector).export(incidents)

    def test_query_failure_wrapped(self, sqlite_connector, incidents):
        incidents.name = "Vanished"
        with pytest.raises(ExportError, match="Vanished"):
            RowStreamer(sqlite_connector).export(incidents)

    def test_cancelled(self, sqlite_connector, incidents):
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(ExportCancelledError):
            RowStreamer(sqlite_connector).export(incidents, cancel_event=cancel)

    def test_table_timeout(self, sqlite_connector, incidents):
        streamer = RowStreamer(sqlite_connector, table_timeout=1e-9)
        with pytest.raises(ExportTimeoutError):
            streamer.export(incidents)

    def test_filter_from_written_manifest(self, sqlite_connector, incidents, tmp_path):
        manifest = tmp_path / "delta" / "delta.csv"
        write_manifest(manifest, DeltaStore(tmp_path).capture([incidents], sqlite_connector))
        assert "2024-01-03T12:00:00Z" in manifest.read_text(encoding="utf-8")

        prior = {record.table_name: record for record in read_manifest(manifest)}
        apply_prior_deltas([incidents], prior)
        assert incidents.filter_value == datetime(2024, 1, 3, 12, 0, tzinfo=timezone.utc)

        _, params = RowStreamer(sqlite_connector).build_query(incidents)
        assert params == {"filter_value": "2024-01-03 12:00:00"}
        RowStreamer(sqlite_connector).export(incidents)
        assert [row[0] for row in read_export(incidents.output_file)] == ["3"]
