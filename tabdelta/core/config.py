"""tabdelta environment settings.

This module centralizes process-level settings read from environment
variables. Run-specific configuration (source connection, table lists,
type-2 and timestamp names) lives in the configuration file and is modelled
by ``tabdelta.models.settings.ExtractionConfig``.

Environment Variables:
    TABDELTA_OUTPUT_DIR: Base directory that holds one folder per run
                         Default: results (relative to cwd)

    TABDELTA_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
                        Default: INFO

    TABDELTA_LOG_FORMAT: Log output format (text, json)
                         Default: text

    TABDELTA_MAX_WORKERS: Default export worker pool size
                          Default: 10

    TABDELTA_DISPATCH_INTERVAL: Pause in seconds before a worker starts a table
                                Default: 0.1
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


def _get_int(key: str, default: int) -> int:
    """Get integer from environment variable."""
    value = os.environ.get(key, "")
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_float(key: str, default: float) -> float:
    """Get float from environment variable."""
    value = os.environ.get(key, "")
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _get_str(key: str, default: str) -> str:
    """Get string from environment variable."""
    return os.environ.get(key, default)


@dataclass
class TabDeltaConfig:
    """Environment settings container.

    Usage:
        from tabdelta.core.config import config

        output_dir = config.get_output_dir()
    """

    output_dir: Path = field(default_factory=lambda: Path(_get_str("TABDELTA_OUTPUT_DIR", "results")))

    # Logging
    log_level: str = field(default_factory=lambda: _get_str("TABDELTA_LOG_LEVEL", "INFO").upper())
    log_format: str = field(default_factory=lambda: _get_str("TABDELTA_LOG_FORMAT", "text"))

    # Export pool
    max_workers: int = field(default_factory=lambda: _get_int("TABDELTA_MAX_WORKERS", 10))
    dispatch_interval: float = field(
        default_factory=lambda: _get_float("TABDELTA_DISPATCH_INTERVAL", 0.1)
    )

    def __post_init__(self) -> None:
        """Validate settings after initialization."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if self.log_level not in valid_levels:
            raise ValueError(
                f"Invalid TABDELTA_LOG_LEVEL: {self.log_level}. "
                f"Must be one of: {valid_levels}"
            )

        valid_formats = {"text", "json"}
        if self.log_format not in valid_formats:
            raise ValueError(
                f"Invalid TABDELTA_LOG_FORMAT: {self.log_format}. "
                f"Must be one of: {valid_formats}"
            )

        if self.max_workers < 1:
            raise ValueError(f"TABDELTA_MAX_WORKERS must be >= 1, got {self.max_workers}")

        if self.dispatch_interval < 0:
            raise ValueError(
                f"TABDELTA_DISPATCH_INTERVAL must be >= 0, got {self.dispatch_interval}"
            )

    def get_output_dir(self) -> Path:
        """Get the output directory as an absolute path."""
        path = self.output_dir
        if not path.is_absolute():
            path = Path.cwd() / path
        return path

    def as_dict(self) -> dict:
        """Export settings as dictionary."""
        return {
            "output_dir": str(self.output_dir),
            "log_level": self.log_level,
            "log_format": self.log_format,
            "max_workers": self.max_workers,
            "dispatch_interval": self.dispatch_interval,
        }


def load_config() -> TabDeltaConfig:
    """Load settings from the current environment.

    Returns:
        New TabDeltaConfig instance
    """
    return TabDeltaConfig()


# Loaded once at import time; call load_config() to refresh.
config = load_config()
