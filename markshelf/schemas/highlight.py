"""Highlight-related schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


class HighlightCreate(BaseModel):
    """Request to highlight a selection of a file."""

    resource_path: str = Field(
        min_length=1,
        max_length=4096,
        description="File path, absolute or relative to the served directory",
    )
    highlighted_text: str = Field(
        min_length=1,
        max_length=100_000,
        description="Selected text as shown to the reader",
    )
    occurrence_index: int | None = Field(
        default=None,
        ge=0,
        description="Zero-based occurrence to pick when the text appears more than once",
    )
    notes: str | None = Field(default=None, max_length=20_000)

    @field_validator("highlighted_text")
    @classmethod
    def reject_blank_text(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("highlighted_text must contain non-whitespace characters")
        return v


class HighlightCreateResponse(BaseModel):
    id: str
    is_stale: bool
    start_offset: int
    end_offset: int


class HighlightResponse(BaseModel):
    """A highlight as stored (or as just reconciled)."""

    id: str
    resource_id: str
    start_offset: int
    end_offset: int
    highlighted_text: str
    content_hash: str
    is_stale: bool
    notes: str | None = None
    created_at: str
    updated_at: str


class DirectoryHighlightResponse(HighlightResponse):
    resource_path: str


class ResourceHighlightsResponse(BaseModel):
    highlights: list[HighlightResponse]


class DirectoryHighlightsResponse(BaseModel):
    directory: str
    highlights: list[DirectoryHighlightResponse]


class RestoreRequest(BaseModel):
    use_timestamp: bool = False


class RestoreResponse(BaseModel):
    restored_path: str
    resource_id: str
    created_copy: bool


class ExportRequest(BaseModel):
    directory: str | None = Field(default=None, max_length=4096)


class ExportResponse(BaseModel):
    file_path: str
    filename: str
    count: int = Field(ge=0)


class CleanupRequest(BaseModel):
    directory: str | None = Field(default=None, max_length=4096)


class CleanupResponse(BaseModel):
    resources_checked: int = Field(ge=0)
    deleted: int = Field(ge=0)
