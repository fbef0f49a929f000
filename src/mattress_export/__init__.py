"""Airtable mattress archive export.

Fetches the photographer, location and mattress tables from an Airtable
base, embeds the cross-table references, downloads the attached images and
writes everything out as JSON.
"""

from .version import __version__
from .config import AppSettings, get_settings

__all__ = [
    "__version__",
    "AppSettings",
    "get_settings",
    # Key subpackages
    "models",
    "io_clients",
    "transformers",
    "pipelines",
]
