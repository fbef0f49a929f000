"""Pydantic models for Airtable records and exported entities."""

from .records import (
    ExportDataset,
    ImageDescriptor,
    Location,
    MattressRecord,
    Photographer,
    RemoteAttachment,
    TableRecord,
)

__all__ = [
    "ExportDataset",
    "ImageDescriptor",
    "Location",
    "MattressRecord",
    "Photographer",
    "RemoteAttachment",
    "TableRecord",
]
