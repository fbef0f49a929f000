"""Linked-record resolution for mattress records."""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from ..models import ImageDescriptor, Location, MattressRecord, Photographer, TableRecord

PHOTOGRAPHER_NAME_FIELD = "photographerName"
LOCATION_NAME_FIELD = "locationName"

MATTRESS_PHOTOGRAPHER_FIELD = "photographer"
MATTRESS_LOCATION_FIELD = "location"
MATTRESS_DATE_FIELD = "date"
MATTRESS_IMAGES_FIELD = "images"

TableEntries = Iterable[Mapping[str, Any]]


def _copied(record: TableRecord, source: str, target: str) -> Dict[str, Any]:
    # Absent fields stay absent rather than becoming null
    return {target: record.fields[source]} if source in record.fields else {}


def to_photographer(record: TableRecord) -> Photographer:
    return Photographer(id=record.id, **_copied(record, PHOTOGRAPHER_NAME_FIELD, "name"))


def to_location(record: TableRecord) -> Location:
    return Location(id=record.id, **_copied(record, LOCATION_NAME_FIELD, "name"))


def _index(entries: TableEntries) -> Dict[str, Mapping[str, Any]]:
    # First occurrence wins, like a linear scan
    index: Dict[str, Mapping[str, Any]] = {}
    for entry in entries:
        if isinstance(entry, Mapping) and isinstance(entry.get("id"), str):
            index.setdefault(entry["id"], entry)
    return index


def resolve_photographers(ids: Sequence[str], photographers: TableEntries) -> List[Photographer]:
    """Embed each photographer id, keeping order; unknown ids become stubs.

    ``photographers`` holds photographer table entries as written to
    ``photographer.json``; a matched entry is embedded with all of its keys.
    """
    index = _index(photographers)
    return [Photographer.model_validate(index[pid]) if pid in index else Photographer(id=pid) for pid in ids]


def resolve_location(ids: Sequence[str], locations: TableEntries) -> Optional[Location]:
    """Embed the first location id only; None when there is none."""
    if not ids:
        return None
    location_id = ids[0]
    entry = _index(locations).get(location_id)
    return Location.model_validate(entry) if entry is not None else Location(id=location_id)


def resolve_mattress(
    record: TableRecord,
    photographers: TableEntries,
    locations: TableEntries,
    images: Sequence[ImageDescriptor] = (),
) -> MattressRecord:
    """Build a mattress record with its photographer and location embedded.

    Args:
        record: Raw mattress row
        photographers: Photographer table entries
        locations: Location table entries
        images: Already materialized images for this record
    """
    return MattressRecord(
        id=record.id,
        photographers=resolve_photographers(record.field_ids(MATTRESS_PHOTOGRAPHER_FIELD), photographers),
        location=resolve_location(record.field_ids(MATTRESS_LOCATION_FIELD), locations),
        images=list(images),
        **_copied(record, MATTRESS_DATE_FIELD, "date"),
    )
