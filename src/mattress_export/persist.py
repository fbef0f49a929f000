"""JSON persistence for exported tables."""

import json
from pathlib import Path
from typing import Any

from .export_logging import get_logger

logger = get_logger(__name__)


def ensure_dir(path: Path) -> None:
    """Ensure directory exists, creating parent directories as needed."""
    try:
        path.mkdir(parents=True, exist_ok=True)
        logger.debug("Directory ensured", path=str(path))
    except OSError as e:
        logger.error("Failed to create directory", path=str(path), error=str(e))
        raise


def write_json(path: Path, payload: Any) -> int:
    """Write pretty JSON to ``path``, replacing any existing file.

    The payload is written to a sibling temp file first and then moved into
    place, so a crash mid-write leaves the previous file intact.

    Returns:
        Number of bytes written
    """
    ensure_dir(path.parent)

    json_bytes = json.dumps(payload, indent=2, ensure_ascii=False).encode("utf-8")
    tmp_path = path.with_name(path.name + ".tmp")
    try:
        tmp_path.write_bytes(json_bytes)
        tmp_path.replace(path)
    except OSError as e:
        logger.error("Failed to write JSON file", path=str(path), error=str(e))
        tmp_path.unlink(missing_ok=True)
        raise

    logger.debug("Wrote JSON file", path=str(path), size=len(json_bytes))
    return len(json_bytes)


def read_json(path: Path) -> Any:
    """Load a JSON document written by :func:`write_json`."""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)
