"""Backup archive schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field


class BackupSummary(BaseModel):
    name: str
    path: str
    resource_id: str
    original_name: str
    created_at: str
    size: int = Field(ge=0)


class BackupListResponse(BaseModel):
    backups: list[BackupSummary]
    total_size: int = Field(ge=0)


class BackupDetail(BackupSummary):
    content: str


class ArchiveClearResponse(BaseModel):
    count: int = Field(ge=0)
    bytes_freed: int = Field(ge=0)
