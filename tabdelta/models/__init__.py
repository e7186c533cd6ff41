"""tabdelta models package.

This package contains the Pydantic models for run configuration, table
descriptors, delta records and results.
"""

from tabdelta.models.delta import DeltaRecord
from tabdelta.models.results import RunResult, TableExportResult
from tabdelta.models.settings import ExtractionConfig
from tabdelta.models.table import ColumnDescriptor, TableDescriptor

__all__ = [
    # Configuration
    "ExtractionConfig",
    # Catalog
    "ColumnDescriptor",
    "TableDescriptor",
    # Delta
    "DeltaRecord",
    # Results
    "TableExportResult",
    "RunResult",
]
