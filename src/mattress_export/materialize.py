"""Local image cache for mattress attachments."""

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from .errors import ImageDownloadError
from .export_logging import get_logger
from .io_clients import AirtableClient
from .models import ImageDescriptor, RemoteAttachment
from .persist import ensure_dir
from .reporting import ExportReporter

logger = get_logger(__name__)

# Relative size difference, in percent, under which a local file counts as
# the declared attachment.
SIZE_TOLERANCE_PCT = 1.0


def image_filename(position: int) -> str:
    """Local name of the ``position``-th image (1-based)."""
    return f"{position}.jpg"


def size_matches(existing: int, declared: Optional[int], tolerance_pct: float = SIZE_TOLERANCE_PCT) -> bool:
    """Whether an on-disk size is within tolerance of the declared size.

    A missing or zero declared size never matches.
    """
    if not declared or declared <= 0:
        return False
    return abs(existing - declared) / declared * 100 < tolerance_pct


@dataclass
class MaterializeStats:
    """Running counters across all calls to one materializer."""

    checked: int = 0
    skipped: int = 0
    downloaded: int = 0
    failed: int = 0


class ImageMaterializer:
    """Makes sure every attachment of a record exists under the output root."""

    def __init__(
        self,
        client: AirtableClient,
        output_root: Path,
        reporter: Optional[ExportReporter] = None,
    ) -> None:
        self.client = client
        self.output_root = Path(output_root)
        self.reporter = reporter or ExportReporter()
        self.stats = MaterializeStats()

    def _needs_download(self, owner_id: str, position: int, path: Path, declared: Optional[int]) -> bool:
        try:
            existing = path.stat().st_size
        except FileNotFoundError:
            return True
        except OSError as e:
            logger.error("Error checking existing image", path=str(path), error=str(e))
            return True

        if size_matches(existing, declared):
            self.reporter.image_skipped(owner_id, position, existing)
            return False
        self.reporter.image_size_mismatch(owner_id, position, existing, declared)
        return True

    async def materialize(
        self,
        attachments: Sequence[RemoteAttachment],
        target_dir: Path,
        owner_id: Optional[str] = None,
        filenames: Optional[Sequence[str]] = None,
    ) -> List[ImageDescriptor]:
        """Ensure each attachment exists in ``target_dir`` as ``{n}.jpg``.

        Files already present within tolerance of their declared size are
        not requested again. An image that fails to download is dropped
        from the returned list; the rest keep their input order.

        Args:
            attachments: Remote attachments in record order
            target_dir: Directory for this record's images, created if needed
            owner_id: Record id used in progress events (defaults to the
                directory name)
            filenames: Local names to use instead of ``{n}.jpg``, one per
                attachment; lets a resumed run keep previously recorded names
        """
        target_dir = Path(target_dir)
        owner_id = owner_id or target_dir.name
        descriptors: List[ImageDescriptor] = []

        if not attachments:
            return descriptors

        ensure_dir(target_dir)

        for position, attachment in enumerate(attachments, start=1):
            filename = filenames[position - 1] if filenames else image_filename(position)
            local_path = target_dir / filename
            self.stats.checked += 1

            if self._needs_download(owner_id, position, local_path, attachment.size):
                try:
                    await self.client.download(attachment.url, local_path)
                except ImageDownloadError as e:
                    self.stats.failed += 1
                    self.reporter.image_failed(owner_id, position, str(e))
                    continue
                self.stats.downloaded += 1
                self.reporter.image_downloaded(owner_id, position)
            else:
                self.stats.skipped += 1

            descriptors.append(
                ImageDescriptor(
                    id=attachment.id,
                    filename=filename,
                    original_filename=attachment.filename,
                    path=local_path.relative_to(self.output_root).as_posix(),
                    url=attachment.url,
                    size=attachment.size,
                    type=attachment.type,
                )
            )

        return descriptors
