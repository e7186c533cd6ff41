"""tabdelta - incremental table extraction to compressed files."""

__version__ = "0.1.0"

# Re-export key models for convenience
from tabdelta.models import (
    ColumnDescriptor,
    DeltaRecord,
    ExtractionConfig,
    RunResult,
    TableDescriptor,
    TableExportResult,
)

# Re-export core classes for custom connectors
from tabdelta.core import (
    Connector,
    DeltaStore,
    ExportScheduler,
    ExtractionRunner,
    MetadataCatalog,
    RowStreamer,
)

__all__ = [
    # Version
    "__version__",
    # Models
    "ExtractionConfig",
    "ColumnDescriptor",
    "TableDescriptor",
    "DeltaRecord",
    "TableExportResult",
    "RunResult",
    # Core
    "Connector",
    "MetadataCatalog",
    "DeltaStore",
    "ExportScheduler",
    "RowStreamer",
    "ExtractionRunner",
]
