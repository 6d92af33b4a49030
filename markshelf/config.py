"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

APP_DIR_NAME = "markshelf"


def _xdg_dir(env_var: str, fallback: Path) -> Path:
    """Resolve an XDG base directory, falling back when the variable is unset or empty."""
    value = os.environ.get(env_var)
    return Path(value) if value else fallback


def default_backup_dir() -> Path:
    """Backup cache location: ``$XDG_CACHE_HOME/markshelf/file-backups``."""
    base = _xdg_dir("XDG_CACHE_HOME", Path.home() / ".cache")
    return base / APP_DIR_NAME / "file-backups"


def default_database_url() -> str:
    """Database location: ``$XDG_DATA_HOME/markshelf/markshelf.db``."""
    base = _xdg_dir("XDG_DATA_HOME", Path.home() / ".local" / "share")
    return f"sqlite+aiosqlite:///{base / APP_DIR_NAME / 'markshelf.db'}"


def default_export_dir() -> Path:
    return Path.home() / f".{APP_DIR_NAME}"


class Settings(BaseSettings):
    """Markshelf application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core
    debug: bool = False
    expose_docs: bool = False

    # Database
    database_url: str = Field(default_factory=default_database_url)

    # Paths
    content_dir: Path = Path(".")
    backup_dir: Path = Field(default_factory=default_backup_dir)
    export_dir: Path = Field(default_factory=default_export_dir)
    scan_max_depth: int = Field(default=10, ge=0)

    # Server
    host: str = "127.0.0.1"
    port: int = Field(default=8000, ge=1, le=65535)

    # Highlights
    highlights_enabled: bool = True

    def validate_runtime(self) -> None:
        """Validate settings that can only be checked against the filesystem."""
        if not self.content_dir.exists():
            raise ValueError(f"Content directory not found: {self.content_dir}")
        if not self.content_dir.is_dir():
            raise ValueError(f"Content path is not a directory: {self.content_dir}")
