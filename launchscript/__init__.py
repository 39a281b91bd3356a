"""Detects whether desktop applications are installed, and at which version, on Windows."""

from launchscript.inventory_cache import InventoryCache
from launchscript.models import (ApplicationDescriptor, BatchReport, DetectionOptions, DetectionResult,
                                 InstallationRecord, InstallationStatus, InventoryProduct, InventorySnapshot,
                                 SourceKind)
from launchscript.name_extractor import extract
from launchscript.pipeline import DetectionPipeline

__version__ = "1.0.0"

__all__ = [
    "ApplicationDescriptor", "BatchReport", "DetectionOptions", "DetectionPipeline", "DetectionResult",
    "InstallationRecord", "InstallationStatus", "InventoryCache", "InventoryProduct", "InventorySnapshot",
    "SourceKind", "extract",
]
