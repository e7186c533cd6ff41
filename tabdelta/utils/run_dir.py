"""Run folder utilities for tabdelta.

A run is identified by its calendar date. Each run owns one folder under
the output directory:

    {output_dir}/{YYYY_MM_DD}/
        metadata/<table>.csv
        describe/<table>.sql
        tables/<table>.csv.gz
        delta/delta.csv
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Optional

from tabdelta.core.config import config

logger = logging.getLogger(__name__)

RUN_DATE_FORMAT = "%Y_%m_%d"

MANIFEST_NAME = "delta.csv"


def format_run_date(run_date: date) -> str:
    """Folder name for a run date.

    Examples:
        >>> format_run_date(date(2024, 1, 3))
        '2024_01_03'
    """
    return run_date.strftime(RUN_DATE_FORMAT)


def parse_run_date(name: str) -> Optional[date]:
    """Parse a run folder name into a date.

    Args:
        name: Folder name

    Returns:
        The date, or None if the name is not a run folder
    """
    try:
        return datetime.strptime(name, RUN_DATE_FORMAT).date()
    except ValueError:
        return None


def get_output_dir(output_dir: str | Path | None = None) -> Path:
    """Resolve the base output directory."""
    if output_dir:
        return Path(output_dir)
    return config.get_output_dir()


def list_runs(output_dir: Path) -> list[str]:
    """List run folder names, newest first.

    Entries that are not directories or whose names do not parse as run
    dates are ignored.

    Args:
        output_dir: Base output directory

    Returns:
        Run folder names sorted newest first
    """
    if not output_dir.exists():
        return []

    runs = [
        entry.name
        for entry in output_dir.iterdir()
        if entry.is_dir() and parse_run_date(entry.name) is not None
    ]

    # YYYY_MM_DD sorts lexicographically
    return sorted(runs, reverse=True)


@dataclass(frozen=True)
class RunLayout:
    """Paths that make up a single run folder."""

    output_dir: Path
    run_date: date

    @property
    def run_dir(self) -> Path:
        return self.output_dir / format_run_date(self.run_date)

    @property
    def metadata_dir(self) -> Path:
        return self.run_dir / "metadata"

    @property
    def describe_dir(self) -> Path:
        return self.run_dir / "describe"

    @property
    def tables_dir(self) -> Path:
        return self.run_dir / "tables"

    @property
    def delta_dir(self) -> Path:
        return self.run_dir / "delta"

    @property
    def manifest_path(self) -> Path:
        return self.delta_dir / MANIFEST_NAME

    def create(self) -> RunLayout:
        """Create the run folder and its subfolders.

        A folder left by an earlier invocation on the same day is reused.

        Returns:
            Self
        """
        if self.run_dir.exists():
            logger.info("Reusing run folder %s", self.run_dir)
        for path in (self.metadata_dir, self.describe_dir, self.tables_dir, self.delta_dir):
            path.mkdir(parents=True, exist_ok=True)
        return self
