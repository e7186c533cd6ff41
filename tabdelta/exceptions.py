"""tabdelta exception hierarchy."""

from __future__ import annotations


class TabDeltaError(Exception):
    """Base exception for all tabdelta errors."""

    pass


class ConfigurationError(TabDeltaError):
    """Raised when configuration is invalid or missing."""

    pass


class ValidationError(TabDeltaError):
    """Raised when a configuration file fails validation."""

    pass


class ConnectionError(TabDeltaError):
    """Raised when connection to the source database fails."""

    pass


class ConnectorError(TabDeltaError):
    """Raised when a connector operation fails."""

    pass


class CatalogError(TabDeltaError):
    """Raised when a metadata, count or summary query fails."""

    pass


class DeltaError(TabDeltaError):
    """Raised when a delta manifest cannot be read or written."""

    pass


class ExportError(TabDeltaError):
    """Raised when exporting a table fails."""

    pass


class ExportTimeoutError(ExportError):
    """Raised when a table export exceeds its deadline."""

    pass


class ExportCancelledError(ExportError):
    """Raised when a table export is cancelled by the run deadline."""

    pass


class SchedulerError(TabDeltaError):
    """Raised when the export scheduler is misconfigured."""

    pass
