"""Transformations from Airtable records to exported entities."""

from .references import (
    resolve_location,
    resolve_mattress,
    resolve_photographers,
    to_location,
    to_photographer,
)

__all__ = [
    "resolve_location",
    "resolve_mattress",
    "resolve_photographers",
    "to_location",
    "to_photographer",
]
