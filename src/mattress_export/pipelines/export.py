"""Resumable export of the photographer, location and mattress tables."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

from pydantic import ValidationError

from ..config import Tables
from ..export_logging import get_logger
from ..io_clients import AirtableClient
from ..materialize import ImageMaterializer, image_filename
from ..models import ExportDataset, RemoteAttachment, TableRecord
from ..persist import ensure_dir, read_json, write_json
from ..reporting import ExportReporter
from ..transformers import resolve_mattress, to_location, to_photographer
from ..transformers.references import MATTRESS_IMAGES_FIELD

logger = get_logger(__name__)

COMBINED_FILENAME = "mattresses-data.json"


class TableState(str, Enum):
    """Where a table's data came from in the current run."""
    NOT_STARTED = "not-started"
    LOADED_FROM_CACHE = "loaded-from-cache"
    FRESHLY_FETCHED = "freshly-fetched"


@dataclass(frozen=True)
class ImageSummary:
    """Image files found on disk after re-checking cached mattresses."""

    total: int
    present: int

    @property
    def missing(self) -> int:
        return self.total - self.present


class ExportOrchestrator:
    """Fetches or reloads each table, then materializes images.

    Output layout under ``output_dir``::

        tables/photographer.json
        tables/location.json
        tables/allMatresses.json
        images/<mattress id>/<n>.jpg
        mattresses-data.json
    """

    def __init__(
        self,
        client: AirtableClient,
        output_dir: Path = Path("data"),
        max_records: Optional[Mapping[str, Optional[int]]] = None,
        reporter: Optional[ExportReporter] = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            client: Airtable client used for records and images
            output_dir: Root of all exported files
            max_records: Optional per-table record caps keyed by table name
            reporter: Receives progress events
        """
        self.client = client
        self.output_dir = Path(output_dir)
        self.tables_dir = self.output_dir / "tables"
        self.images_dir = self.output_dir / "images"
        self.combined_path = self.output_dir / COMBINED_FILENAME
        self.max_records: Dict[str, Optional[int]] = dict(max_records or {})
        self.reporter = reporter or ExportReporter()
        self.materializer = ImageMaterializer(client, self.output_dir, self.reporter)

        self.states: Dict[str, TableState] = {t.value: TableState.NOT_STARTED for t in Tables}
        self.image_summary: Optional[ImageSummary] = None

    def table_path(self, table: str) -> Path:
        return self.tables_dir / f"{table}.json"

    async def run(self) -> ExportDataset:
        """Build the dataset, reusing any table files from a previous run.

        Photographers and locations come first since mattresses embed them.
        Table files are written as each table completes; the combined file
        is left to :meth:`write_combined`.
        """
        for directory in (self.output_dir, self.images_dir, self.tables_dir):
            ensure_dir(directory)

        logger.info(
            "Starting data download with all references",
            sample_sizes={t.value: self.max_records.get(t.value) or "ALL" for t in Tables},
            api_delay_s=self.client.request_delay,
        )

        photographers = await self._load_or_fetch_references(Tables.PHOTOGRAPHER.value, to_photographer)
        locations = await self._load_or_fetch_references(Tables.LOCATION.value, to_location)
        mattresses = await self._load_or_fetch_mattresses(photographers, locations)

        return ExportDataset(all_matresses=mattresses, photographer=photographers, location=locations)

    def write_combined(self, dataset: ExportDataset) -> Path:
        """Write all three tables to the combined file, replacing it."""
        write_json(self.combined_path, dataset.to_json())
        logger.info("Data has been saved", path=str(self.combined_path))
        return self.combined_path

    async def export(self) -> ExportDataset:
        """Run the pipeline and write the combined file."""
        dataset = await self.run()
        self.write_combined(dataset)
        return dataset

    async def _load_or_fetch_references(
        self,
        table: str,
        project: Callable[[TableRecord], Any],
    ) -> List[Any]:
        path = self.table_path(table)
        if path.exists():
            # Trusted as written by the previous run
            entries = read_json(path)
            self.states[table] = TableState.LOADED_FROM_CACHE
            self.reporter.table_loaded(table, len(entries))
            return entries

        records = await self.client.fetch_records(table, self.max_records.get(table))
        entries = [project(record).to_json() for record in records]
        write_json(path, entries)
        self.states[table] = TableState.FRESHLY_FETCHED
        self.reporter.table_fetched(table, len(entries))
        return entries

    async def _load_or_fetch_mattresses(
        self,
        photographers: List[Any],
        locations: List[Any],
    ) -> List[Any]:
        table = Tables.MATTRESSES.value
        path = self.table_path(table)

        if path.exists():
            mattresses = read_json(path)
            self.states[table] = TableState.LOADED_FROM_CACHE
            self.reporter.table_loaded(table, len(mattresses))
            # Cached metadata says nothing about the image files themselves
            self.image_summary = await self._refresh_images(mattresses)
            return mattresses

        records = await self.client.fetch_records(table, self.max_records.get(table))
        mattresses = []
        for record in records:
            self.reporter.mattress_started(record.id)
            attachments = [
                RemoteAttachment.model_validate(a) for a in record.fields.get(MATTRESS_IMAGES_FIELD) or []
            ]
            images = await self.materializer.materialize(attachments, self.images_dir / record.id, record.id)
            mattresses.append(resolve_mattress(record, photographers, locations, images).to_json())

        write_json(path, mattresses)
        self.states[table] = TableState.FRESHLY_FETCHED
        self.reporter.table_fetched(table, len(mattresses))
        return mattresses

    @staticmethod
    def _cached_images(mattress: Any) -> List[Dict[str, Any]]:
        if not isinstance(mattress, dict) or not isinstance(mattress.get("id"), str):
            return []
        return [image for image in mattress.get("images") or [] if isinstance(image, dict)]

    @staticmethod
    def _cached_filename(image: Dict[str, Any], position: int) -> str:
        return image.get("filename") or image_filename(position)

    async def _refresh_images(self, mattresses: List[Any]) -> ImageSummary:
        logger.info("Checking for missing images", mattresses=len(mattresses))
        for mattress in mattresses:
            images = self._cached_images(mattress)
            if not images:
                continue
            self.reporter.mattress_started(mattress["id"])

            attachments: List[RemoteAttachment] = []
            filenames: List[str] = []
            for position, image in enumerate(images, start=1):
                try:
                    attachments.append(RemoteAttachment.from_image_entry(image))
                except ValidationError as e:
                    logger.warning(
                        "Skipping cached image without id or url",
                        mattress_id=mattress["id"],
                        position=position,
                        error=str(e),
                    )
                    continue
                filenames.append(self._cached_filename(image, position))

            await self.materializer.materialize(
                attachments,
                self.images_dir / mattress["id"],
                mattress["id"],
                filenames=filenames,
            )

        total = 0
        present = 0
        for mattress in mattresses:
            images = self._cached_images(mattress)
            total += len(images)
            for position, image in enumerate(images, start=1):
                if (self.images_dir / mattress["id"] / self._cached_filename(image, position)).exists():
                    present += 1

        summary = ImageSummary(total=total, present=present)
        self.reporter.images_summary(summary.total, summary.present, summary.missing)
        return summary
