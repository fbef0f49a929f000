"""HTTP clients for remote data sources."""

from .airtable import AirtableClient

__all__ = ["AirtableClient"]
