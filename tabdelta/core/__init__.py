"""tabdelta core package.

This package contains the connector interface and the stages of an
extraction run: catalog, classifier, delta store, scheduler and streamer.
"""

from tabdelta.core.catalog import MetadataCatalog
from tabdelta.core.connector import Connector
from tabdelta.core.delta_store import DeltaStore
from tabdelta.core.runner import ExtractionRunner
from tabdelta.core.scheduler import ExportScheduler
from tabdelta.core.streamer import RowStreamer

__all__ = [
    "Connector",
    "MetadataCatalog",
    "DeltaStore",
    "ExportScheduler",
    "RowStreamer",
    "ExtractionRunner",
]
