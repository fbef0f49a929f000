"""Export pipelines."""

from .export import ExportOrchestrator, ImageSummary, TableState

__all__ = ["ExportOrchestrator", "ImageSummary", "TableState"]
