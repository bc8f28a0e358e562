"""
Pydantic schema definitions for the resource library.

``Resource`` mirrors the record persisted in each category's
``data.json``. Persisted keys are camelCase (``createdAt``,
``filePath``...), so the models declare aliases and always dump
``by_alias``. Records routinely carry free-form text fields such as
``history`` or ``funFact``; those are kept as extras rather than being
dropped on validation.
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

MediaType = Literal["image", "video", "audio", "document"]


class MediaRef(BaseModel):
    """Metadata for one stored media file attached to a resource."""

    name: str = ""
    type: MediaType = "document"
    size: int = 0
    url: str = ""


def _split_terms(value: Any) -> Any:
    # Form-style clients send tags/keywords as one comma separated string.
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return value


class ResourceBase(BaseModel):
    """Fields shared by stored resources and creation requests."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    title: str = ""
    description: str = ""
    category: str = ""
    tags: List[str] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)
    media: List[MediaRef] = Field(default_factory=list)
    file_path: Optional[str] = Field(default=None, alias="filePath")
    file_name: Optional[str] = Field(default=None, alias="fileName")
    file_size: Optional[int] = Field(default=None, alias="fileSize")
    mime_type: Optional[str] = Field(default=None, alias="mimeType")
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")

    @field_validator("tags", "keywords", mode="before")
    @classmethod
    def _coerce_terms(cls, value: Any) -> Any:
        return _split_terms(value)

    @model_validator(mode="after")
    def _single_video(self) -> "ResourceBase":
        videos = [m for m in self.media if m.type == "video"]
        if len(videos) > 1:
            raise ValueError("a resource can hold at most one video")
        return self

    def to_record(self) -> Dict[str, Any]:
        """Return the JSON-ready dict persisted in ``data.json``."""
        return self.model_dump(by_alias=True, mode="json")


class Resource(ResourceBase):
    """A catalogued resource as stored in a category."""

    id: str


class ResourceCreate(ResourceBase):
    """Body accepted when creating a resource; the id is assigned if absent."""

    id: Optional[str] = None
    title: str = "未命名资源"


class Pagination(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    current_page: int
    items_per_page: int
    total_items: int
    total_pages: int
    has_prev_page: bool
    has_next_page: bool


class PaginatedResources(BaseModel):
    """A wrapper for paginated results returned from ``/load-all``."""

    success: bool = True
    resources: Dict[str, Dict[str, Dict[str, Any]]]
    pagination: Pagination


class BatchRef(BaseModel):
    """A (category, id) pair identifying one resource in a batch request.

    Both members are optional at the schema level so that an incomplete
    reference fails only its own item instead of the whole request.
    """

    category: Optional[str] = None
    id: Optional[str] = None

    @field_validator("category", "id", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return str(value)


class BatchOptions(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    target_category: Optional[str] = Field(default=None, alias="targetCategory")
    updates: Dict[str, Any] = Field(default_factory=dict)
    tags: List[str] = Field(default_factory=list)

    @field_validator("tags", mode="before")
    @classmethod
    def _coerce_tags(cls, value: Any) -> Any:
        return _split_terms(value)


class BatchRequest(BaseModel):
    action: str
    resources: List[BatchRef] = Field(min_length=1)
    options: BatchOptions = Field(default_factory=BatchOptions)


class BatchResult(BaseModel):
    """Per-item outcome of a batch operation."""

    success: List[Dict[str, Any]] = Field(default_factory=list)
    failed: List[Dict[str, Any]] = Field(default_factory=list)
    total: int = 0


class ExportRequest(BaseModel):
    resources: List[BatchRef] = Field(min_length=1)
    format: str = "json"
    filename: str = "exported_resources"
