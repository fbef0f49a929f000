"""Record models for the Airtable base and the exported JSON."""

from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field


class TableRecord(BaseModel):
    """A row as returned by the Airtable list endpoint."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str = Field(..., description="Airtable record id")
    fields: Dict[str, Any] = Field(default_factory=dict, description="Field name to value")
    created_time: Optional[str] = Field(None, alias="createdTime", description="Creation timestamp")

    def field_ids(self, name: str) -> List[str]:
        """Linked-record ids stored in a field, or an empty list."""
        value = self.fields.get(name)
        if not value:
            return []
        if isinstance(value, str):
            return [value]
        return list(value)


class RemoteAttachment(BaseModel):
    """An attachment object from an Airtable attachment field."""

    model_config = ConfigDict(extra="ignore")

    id: str
    url: str
    filename: Optional[str] = None
    size: Optional[int] = None
    type: Optional[str] = None

    @classmethod
    def from_image_entry(cls, entry: Mapping[str, Any]) -> "RemoteAttachment":
        """Rebuild the remote attachment behind an exported image entry.

        Raises:
            pydantic.ValidationError: if the entry lacks an id or url
        """
        return cls(
            id=entry.get("id"),
            url=entry.get("url"),
            filename=entry.get("originalFilename"),
            size=entry.get("size"),
            type=entry.get("type"),
        )


class _Reference(BaseModel):
    """An embedded linked record, or a bare ``{id}`` stub when unresolved.

    Field values are opaque. Only keys that were actually given are written
    back, and keys beyond ``id`` and ``name`` are kept as they came.
    """

    model_config = ConfigDict(extra="allow")

    id: str
    name: Optional[Any] = None

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class Photographer(_Reference):
    """Photographer projected from the photographer table."""


class Location(_Reference):
    """Location projected from the location table."""


class ImageDescriptor(BaseModel):
    """A downloaded image and where it lives on disk."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="Airtable attachment id")
    filename: str = Field(..., description="Local file name, e.g. 1.jpg")
    original_filename: Optional[str] = Field(
        None, alias="originalFilename", description="File name as uploaded to Airtable"
    )
    path: str = Field(..., description="Path relative to the output root")
    url: str = Field(..., description="Remote URL the image was fetched from")
    size: Optional[int] = Field(None, description="Declared size in bytes")
    type: Optional[str] = Field(None, description="MIME type")


class MattressRecord(BaseModel):
    """A mattress with its references embedded and images materialized.

    ``date`` is written only when the source row has one.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    date: Optional[Any] = None
    photographers: List[Photographer] = Field(default_factory=list)
    location: Optional[Location] = None
    images: List[ImageDescriptor] = Field(default_factory=list)

    def to_json(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id}
        if "date" in self.model_fields_set:
            data["date"] = self.date
        data["photographers"] = [p.to_json() for p in self.photographers]
        data["location"] = self.location.to_json() if self.location is not None else None
        data["images"] = [image.model_dump(by_alias=True) for image in self.images]
        return data


class ExportDataset(BaseModel):
    """All three tables as JSON payloads, written to the combined file as-is.

    Entries loaded from a previous run's table files are kept exactly as read.
    """

    model_config = ConfigDict(populate_by_name=True)

    all_matresses: List[Any] = Field(default_factory=list, alias="allMatresses")
    photographer: List[Any] = Field(default_factory=list)
    location: List[Any] = Field(default_factory=list)

    def to_json(self) -> Dict[str, Any]:
        return {
            "allMatresses": self.all_matresses,
            "photographer": self.photographer,
            "location": self.location,
        }
