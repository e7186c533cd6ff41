"""Extraction runner.

This module orchestrates one extraction run end to end:

    resolve prior delta -> connect -> catalog scan -> schema dump ->
    classify -> capture and write delta -> apply prior marks ->
    export on the worker pool -> join

A run is identified by its calendar date and writes into
``{output_dir}/{YYYY_MM_DD}/``.
"""

from __future__ import annotations

import importlib
import json
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, Optional

from tabdelta.core.catalog import MetadataCatalog
from tabdelta.core.classifier import classify_tables
from tabdelta.core.config import config as env_config
from tabdelta.core.connector import Connector
from tabdelta.core.delta_store import DeltaStore, apply_prior_deltas
from tabdelta.core.scheduler import ExportScheduler
from tabdelta.core.schema_dump import dump_schema
from tabdelta.core.streamer import RowStreamer
from tabdelta.exceptions import ConfigurationError, TabDeltaError
from tabdelta.models.results import RunResult, TableExportResult
from tabdelta.models.settings import ExtractionConfig
from tabdelta.utils.run_dir import RunLayout, get_output_dir

logger = logging.getLogger(__name__)

# Default connectors - maps connection protocol to connector class
DEFAULT_CONNECTORS = {
    "mssql": "tabdelta.operators.mssql.connector.MSSQLConnector",
    "sqlite": "tabdelta.operators.sqlite.connector.SQLiteConnector",
}

RUN_METADATA_NAME = "_metadata.json"


class ExtractionRunner:
    """Runs incremental extractions.

    Values passed to the runner override the configuration file, which in
    turn overrides the environment settings.

    Examples:
        >>> runner = ExtractionRunner(output_dir="results")
        >>> result = runner.run(load_extraction_config("tabdelta.yaml"))
        >>> print(f"Exported {result.tables_exported} tables")
    """

    def __init__(
        self,
        output_dir: str | Path | None = None,
        workers: Optional[int] = None,
        dispatch_interval: Optional[float] = None,
    ):
        """Initialize the runner.

        Args:
            output_dir: Base output directory override
            workers: Worker pool size override
            dispatch_interval: Dispatch pause override in seconds
        """
        self.output_dir = output_dir
        self.workers = workers
        self.dispatch_interval = dispatch_interval

    def run(self, config: ExtractionConfig, today: Optional[date] = None) -> RunResult:
        """Run one extraction.

        Args:
            config: Extraction configuration
            today: Run date (defaults to the current date)

        Returns:
            RunResult. ``completed`` is False when the run aborted before the
            export stage; failed tables do not abort the run.
        """
        started_at = datetime.now()
        today = today or started_at.date()
        output_dir = get_output_dir(self.output_dir or config.output_dir)
        layout = RunLayout(output_dir, today)
        store = DeltaStore(output_dir)

        workers = self.workers or config.workers or env_config.max_workers
        dispatch_interval = self._first_set(
            self.dispatch_interval, config.dispatch_interval, env_config.dispatch_interval
        )

        tables = []
        records = []
        previous = None

        logger.info("Starting run %s in %s", today, layout.run_dir)
        try:
            previous, prior = store.resolve(today)

            connector = self.create_connector(config)
            with connector:
                layout.create()
                self._init_run(layout, started_at, config, previous)

                catalog = MetadataCatalog(connector, on_error=config.catalog_errors)
                tables = catalog.collect(config, output_path=layout.tables_dir)
                dump_schema(tables, layout.metadata_dir, layout.describe_dir)

                classify_tables(tables, config.type2_names, config.timestamp_names)

                records = store.capture(tables, connector, on_error=config.catalog_errors)
                store.write(layout, records)

                apply_prior_deltas(tables, prior)

                streamer = RowStreamer(
                    connector,
                    placeholder=config.binary_placeholder,
                    binary_types=config.binary_type_names,
                    delta_bound=config.delta_bound,
                    flush_every_row=config.flush_every_row,
                    table_timeout=config.table_timeout,
                )
                scheduler = ExportScheduler(
                    streamer.export,
                    workers=workers,
                    dispatch_interval=dispatch_interval,
                    run_timeout=config.run_timeout,
                )
                table_results = scheduler.run(tables)

        except TabDeltaError as e:
            logger.error("Run %s aborted: %s", today, e)
            completed_at = datetime.now()
            result = RunResult(
                run_date=today,
                run_dir=str(layout.run_dir),
                completed=False,
                tables_discovered=len(tables),
                delta_records=len(records),
                previous_run=previous,
                duration_seconds=(completed_at - started_at).total_seconds(),
                started_at=started_at,
                completed_at=completed_at,
                error_message=str(e),
            )
            self._finalize_run(layout, result)
            return result

        completed_at = datetime.now()
        result = RunResult(
            run_date=today,
            run_dir=str(layout.run_dir),
            completed=True,
            tables_discovered=len(tables),
            tables_dispatched=len(table_results),
            tables_exported=self._count(table_results, "exported"),
            tables_failed=self._count(table_results, "failed"),
            tables_skipped=self._count(table_results, "skipped"),
            delta_records=len(records),
            previous_run=previous,
            total_rows_written=sum(r.rows_written for r in table_results),
            duration_seconds=(completed_at - started_at).total_seconds(),
            started_at=started_at,
            completed_at=completed_at,
            table_results=table_results,
            metadata={
                "workers": workers,
                "empty_tables": sum(1 for t in tables if t.row_count == 0),
                "full_reload_tables": sum(1 for t in tables if t.is_full_reload),
                "incremental_tables": sum(1 for t in tables if t.filter_value is not None),
            },
        )
        self._finalize_run(layout, result)

        logger.info(
            "Run %s finished: %d exported, %d failed, %d skipped",
            today,
            result.tables_exported,
            result.tables_failed,
            result.tables_skipped,
        )
        return result

    @staticmethod
    def _first_set(*values: Optional[float]) -> float:
        return next(value for value in values if value is not None)

    @staticmethod
    def _count(results: list[TableExportResult], status: str) -> int:
        return sum(1 for r in results if r.status == status)

    def _init_run(
        self,
        layout: RunLayout,
        started_at: datetime,
        config: ExtractionConfig,
        previous: Optional[date],
    ) -> None:
        """Write the run metadata file with status 'running'."""
        metadata = {
            "run_date": layout.run_date.isoformat(),
            "database": config.database,
            "mode": config.mode,
            "previous_run": previous.isoformat() if previous else None,
            "started_at": started_at.isoformat(),
            "status": "running",
            "config": config.redacted(),
        }

        with open(layout.run_dir / RUN_METADATA_NAME, "w") as f:
            json.dump(metadata, f, indent=2)

    def _finalize_run(self, layout: RunLayout, result: RunResult) -> None:
        """Update the run metadata file with the final status.

        Nothing is written when the run aborted before its folder existed.
        """
        metadata_path = layout.run_dir / RUN_METADATA_NAME
        if not metadata_path.exists():
            return

        with open(metadata_path) as f:
            metadata = json.load(f)

        metadata["status"] = "completed" if result.completed else "aborted"
        metadata["completed_at"] = result.completed_at.isoformat() if result.completed_at else None
        metadata["error_message"] = result.error_message
        metadata["table_results"] = {
            r.table_name: {
                "status": r.status,
                "rows_written": r.rows_written,
                "error_message": r.error_message,
            }
            for r in result.table_results
        }

        with open(metadata_path, "w") as f:
            json.dump(metadata, f, indent=2)

    def create_connector(self, config: ExtractionConfig) -> Connector:
        """Create the source connector using dynamic loading.

        Args:
            config: Extraction configuration

        Returns:
            Connector instance (not yet connected)

        Raises:
            ConfigurationError: If the connector class cannot be resolved
        """
        class_path = config.connector or self._get_default_connector(
            self._get_connection_protocol(config)
        )
        connector_class = self._load_connector_class(class_path)
        return connector_class(self._connector_config(config))

    def _get_connection_protocol(self, config: ExtractionConfig) -> str:
        """Connection protocol from the URL scheme, or 'mssql' for a server name.

        Examples:
            "sqlite:///source.db" -> "sqlite"
            "mssql+pyodbc://..." -> "mssql"
        """
        if config.connection:
            if "://" not in config.connection:
                raise ConfigurationError(
                    f"Connection must be a URL with a scheme, got: {config.connection}"
                )
            protocol = config.connection.split("://")[0]
            return protocol.split("+")[0]
        return "mssql"

    def _get_default_connector(self, protocol: str) -> str:
        if protocol not in DEFAULT_CONNECTORS:
            raise ConfigurationError(
                f"No default connector registered for protocol '{protocol}'.\n"
                f"Available protocols: {', '.join(DEFAULT_CONNECTORS.keys())}\n"
                f"Please specify a connector in your configuration:\n"
                f"  connector: mypackage.connectors.ClassName"
            )
        return DEFAULT_CONNECTORS[protocol]

    def _load_connector_class(self, class_path: str) -> type:
        """Dynamically import and return a connector class.

        Args:
            class_path: Dotted path, e.g. "tabdelta.operators.sqlite.connector.SQLiteConnector"

        Raises:
            ConfigurationError: If the module or class is not found
        """
        module_path, _, class_name = class_path.rpartition(".")
        if not module_path:
            raise ConfigurationError(f"Connector must be a dotted path, got: {class_path}")

        try:
            module = importlib.import_module(module_path)
        except ImportError as e:
            raise ConfigurationError(
                f"Failed to import connector module '{module_path}'.\n"
                f"Error: {e}\n"
                f"Make sure the module exists and is importable."
            ) from e

        connector_class = getattr(module, class_name, None)
        if connector_class is None:
            available = [name for name in dir(module) if not name.startswith("_")]
            raise ConfigurationError(
                f"Class '{class_name}' not found in module '{module_path}'.\n"
                f"Available classes: {available}"
            )
        if not (isinstance(connector_class, type) and issubclass(connector_class, Connector)):
            raise ConfigurationError(f"'{class_path}' is not a Connector subclass")
        return connector_class

    def _connector_config(self, config: ExtractionConfig) -> dict[str, Any]:
        """Connector config dict with the password decoded."""
        connector_cfg: dict[str, Any] = {
            "database": config.database,
            "driver": config.driver,
            "echo": config.echo,
        }
        if config.connection:
            connector_cfg["connection_string"] = config.connection
        if config.server:
            connector_cfg["server"] = config.server_instance
        if config.username:
            connector_cfg["username"] = config.username
        if config.password:
            connector_cfg["password"] = config.decoded_password
        if config.crypto:
            connector_cfg["crypto"] = config.crypto
        return connector_cfg
