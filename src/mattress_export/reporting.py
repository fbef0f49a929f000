"""Progress events emitted by the export pipeline.

The pipeline calls an :class:`ExportReporter` at each step. The base class
ignores every event; :class:`LoggingReporter` turns them into structlog
lines, which is what the CLI uses.
"""

from typing import Optional

from .export_logging import get_logger


class ExportReporter:
    """Observer for export progress. Subclass and override what you need."""

    def table_loaded(self, table: str, count: int) -> None:
        """A table was read from a previous run's JSON file."""

    def table_fetched(self, table: str, count: int) -> None:
        """A table was fetched from the API and persisted."""

    def mattress_started(self, mattress_id: str) -> None:
        """Work on one mattress record began."""

    def image_skipped(self, mattress_id: str, position: int, size: int) -> None:
        """An image already on disk matched its declared size."""

    def image_size_mismatch(self, mattress_id: str, position: int, existing: int, declared: Optional[int]) -> None:
        """An image on disk differs from its declared size and will be replaced."""

    def image_downloaded(self, mattress_id: str, position: int) -> None:
        """An image was downloaded."""

    def image_failed(self, mattress_id: str, position: int, error: str) -> None:
        """An image could not be downloaded and was dropped."""

    def images_summary(self, total: int, present: int, missing: int) -> None:
        """Image files on disk after re-checking cached mattresses."""


class LoggingReporter(ExportReporter):
    """Reports progress through the structured logger."""

    def __init__(self, logger_name: str = "mattress_export.progress") -> None:
        self.logger = get_logger(logger_name)

    def table_loaded(self, table: str, count: int) -> None:
        self.logger.info("Loaded table from file", table=table, count=count)

    def table_fetched(self, table: str, count: int) -> None:
        self.logger.info("Downloaded table", table=table, count=count)

    def mattress_started(self, mattress_id: str) -> None:
        self.logger.info("Processing mattress record", mattress_id=mattress_id)

    def image_skipped(self, mattress_id: str, position: int, size: int) -> None:
        self.logger.info(
            "Image already exists with matching size, skipping download",
            mattress_id=mattress_id,
            image=position,
            size=size,
        )

    def image_size_mismatch(self, mattress_id: str, position: int, existing: int, declared: Optional[int]) -> None:
        self.logger.info(
            "Image exists but size differs, re-downloading",
            mattress_id=mattress_id,
            image=position,
            existing_size=existing,
            declared_size=declared,
        )

    def image_downloaded(self, mattress_id: str, position: int) -> None:
        self.logger.info("Downloaded image", mattress_id=mattress_id, image=position)

    def image_failed(self, mattress_id: str, position: int, error: str) -> None:
        self.logger.error("Failed to download image", mattress_id=mattress_id, image=position, error=error)

    def images_summary(self, total: int, present: int, missing: int) -> None:
        self.logger.info("Images summary", total=total, downloaded=present, missing=missing)
