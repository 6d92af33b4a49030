"""Served-directory scanner and file reader."""

from __future__ import annotations

import hashlib
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

MARKDOWN_SUFFIX = ".md"

IGNORED_DIRECTORIES = frozenset(
    {
        "node_modules",
        ".git",
        ".next",
        ".svelte-kit",
        "dist",
        "build",
        ".cache",
        ".turbo",
        ".vercel",
    }
)


def hash_content(content: str | bytes) -> str:
    """Compute SHA-256 hash of content."""
    if isinstance(content, str):
        content = content.encode("utf-8")
    return hashlib.sha256(content).hexdigest()


def _is_ignored(name: str) -> bool:
    return name in IGNORED_DIRECTORIES or name.startswith(".")


def discover_markdown(root: Path, max_depth: int = 10) -> tuple[list[Path], list[Path]]:
    """Recursively discover markdown files and the directories that contain them.

    Hidden entries and well-known build/vendor directories are skipped.
    Returns ``(directories, files)``, both sorted; ``directories`` always
    starts with ``root`` itself.
    """
    directories: list[Path] = [root]
    files: list[Path] = []

    def _scan(directory: Path, depth: int) -> None:
        if depth >= max_depth:
            return
        try:
            entries = sorted(os.scandir(directory), key=lambda e: e.name)
        except OSError as exc:
            logger.warning("Cannot scan directory %s: %s", directory, exc)
            return
        for entry in entries:
            if _is_ignored(entry.name):
                continue
            try:
                if entry.is_file() and entry.name.endswith(MARKDOWN_SUFFIX):
                    files.append(Path(entry.path))
                elif entry.is_dir():
                    directories.append(Path(entry.path))
                    _scan(Path(entry.path), depth + 1)
            except OSError:
                continue

    _scan(root, 0)
    return sorted(directories), sorted(files)


@dataclass
class ContentManager:
    """Resolves and reads files under the served directory."""

    content_dir: Path
    max_depth: int = 10
    _root: Path | None = field(default=None, repr=False)

    @property
    def root(self) -> Path:
        """Absolute, symlink-resolved served directory."""
        if self._root is None:
            self._root = self.content_dir.resolve()
        return self._root

    def resolve_path(self, path: str | Path) -> Path:
        """Turn a client-supplied path into an absolute path inside the served directory.

        Relative paths are joined onto the served directory. Raises ValueError
        if the resolved path escapes it.
        """
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self.root / candidate
        full_path = candidate.resolve()
        if not full_path.is_relative_to(self.root):
            raise ValueError(f"Path traversal detected: {path}")
        return full_path

    def read_text(self, path: str | Path) -> str:
        """Read a file's raw UTF-8 source with line endings untouched.

        Offsets and hashes refer to this text. Raises OSError/UnicodeDecodeError
        on failure.
        """
        return Path(path).read_bytes().decode("utf-8")

    def try_read_text(self, path: str | Path) -> str | None:
        """Read a file as UTF-8 text, returning None when it cannot be read."""
        try:
            return self.read_text(path)
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Cannot read %s: %s", path, exc)
            return None

    def scan(self) -> tuple[list[Path], list[Path]]:
        """Discover markdown files under the served directory."""
        return discover_markdown(self.root, self.max_depth)
