"""Backup store: immutable snapshots of highlighted files, and restoration."""

from __future__ import annotations

import logging
import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from markshelf.exceptions import BackupNotFoundError
from markshelf.services.datetime_service import format_compact_timestamp, from_epoch_ms

if TYPE_CHECKING:
    from datetime import datetime

logger = logging.getLogger(__name__)

# {resource_id}_{timestamp_ms}_{original_filename}; resource ids are UUIDs (no underscores)
_BACKUP_NAME_RE = re.compile(r"^(?P<resource_id>[^_]+)_(?P<timestamp>\d+)_(?P<original_name>.+)$")


@dataclass(frozen=True)
class BackupInfo:
    """Metadata recovered from a backup file name."""

    path: Path
    resource_id: str
    timestamp: int
    original_name: str
    size: int

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def created_at(self) -> datetime:
        return from_epoch_ms(self.timestamp)


@dataclass(frozen=True)
class ClearResult:
    """Outcome of clearing the backup cache."""

    count: int
    bytes_freed: int


def backup_file_name(resource_id: str, timestamp: int, file_name: str) -> str:
    """Build the deterministic backup file name."""
    return f"{resource_id}_{timestamp}_{file_name}"


def parse_backup_name(name: str) -> tuple[str, int, str] | None:
    """Split a backup file name into (resource_id, timestamp, original_name)."""
    match = _BACKUP_NAME_RE.match(name)
    if match is None:
        return None
    return match["resource_id"], int(match["timestamp"]), match["original_name"]


def timestamped_sibling(original_path: Path, timestamp: int) -> Path:
    """Path next to ``original_path`` with a timestamp inserted before the extension."""
    stamp = format_compact_timestamp(timestamp)
    return original_path.with_name(f"{original_path.stem}_{stamp}{original_path.suffix}")


@dataclass
class BackupStore:
    """Flat directory of file snapshots, one per highlighted resource."""

    backup_dir: Path

    def ensure_dir(self) -> Path:
        self.backup_dir.mkdir(parents=True, exist_ok=True)
        return self.backup_dir

    def backup(self, file_path: Path, resource_id: str, timestamp: int) -> Path:
        """Copy ``file_path`` byte for byte into the backup directory.

        Raises FileExistsError rather than overwriting an existing snapshot, and
        OSError when the source cannot be read.
        """
        target = self.ensure_dir() / backup_file_name(resource_id, timestamp, file_path.name)
        with file_path.open("rb") as src, target.open("xb") as dst:
            shutil.copyfileobj(src, dst)
        logger.info("Backed up %s to %s", file_path, target)
        return target

    def restore(
        self,
        backup_path: Path,
        original_path: Path,
        *,
        use_timestamp: bool,
        timestamp: int,
    ) -> Path:
        """Write backup content back to disk.

        With ``use_timestamp`` false the original file is overwritten in place
        and ``original_path`` is returned. Otherwise a new sibling copy stamped
        with ``timestamp`` is written and its path returned; the original is left
        untouched and an existing sibling raises FileExistsError.
        """
        if not backup_path.is_file():
            raise BackupNotFoundError(f"Backup file not found: {backup_path}")

        original_path.parent.mkdir(parents=True, exist_ok=True)
        if not use_timestamp:
            shutil.copyfile(backup_path, original_path)
            logger.info("Restored %s from backup %s", original_path, backup_path)
            return original_path

        target = timestamped_sibling(original_path, timestamp)
        with backup_path.open("rb") as src, target.open("xb") as dst:
            shutil.copyfileobj(src, dst)
        logger.info("Restored backup %s to %s", backup_path, target)
        return target

    def _info(self, path: Path) -> BackupInfo | None:
        parsed = parse_backup_name(path.name)
        if parsed is None:
            return None
        resource_id, timestamp, original_name = parsed
        return BackupInfo(
            path=path,
            resource_id=resource_id,
            timestamp=timestamp,
            original_name=original_name,
            size=path.stat().st_size,
        )

    def list_backups(self) -> list[BackupInfo]:
        """All recognizable backups, newest first. Unparseable names are skipped."""
        if not self.backup_dir.is_dir():
            return []
        backups: list[BackupInfo] = []
        for path in self.backup_dir.iterdir():
            if not path.is_file():
                continue
            info = self._info(path)
            if info is None:
                logger.debug("Ignoring unrecognized file in backup directory: %s", path.name)
                continue
            backups.append(info)
        backups.sort(key=lambda b: (b.timestamp, b.name), reverse=True)
        return backups

    def get_backup(self, key: str) -> BackupInfo:
        """Find a backup by file name, path, or resource id (newest wins)."""
        candidate = Path(key)
        if candidate.name == key or candidate.parent.resolve() == self.backup_dir.resolve():
            path = self.backup_dir / candidate.name
            if path.is_file():
                info = self._info(path)
                if info is not None:
                    return info
        for info in self.list_backups():
            if info.resource_id == key:
                return info
        raise BackupNotFoundError(f"Backup not found: {key}")

    def read_backup(self, info: BackupInfo) -> str:
        if not info.path.is_file():
            raise BackupNotFoundError(f"Backup file not found: {info.path}")
        return info.path.read_bytes().decode("utf-8")

    def clear(self) -> ClearResult:
        """Delete every backup file, reporting how many and how many bytes."""
        count = 0
        bytes_freed = 0
        for info in self.list_backups():
            info.path.unlink(missing_ok=True)
            count += 1
            bytes_freed += info.size
        logger.info("Cleared %d backups (%d bytes)", count, bytes_freed)
        return ClearResult(count=count, bytes_freed=bytes_freed)
