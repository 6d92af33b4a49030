"""Maintenance CLI for a Markshelf installation: backups, exports, cleanup, database."""

from __future__ import annotations

import argparse
import asyncio
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from markshelf.config import Settings
from markshelf.database import create_engine, ensure_sqlite_directory, init_schema
from markshelf.exceptions import NotFoundError
from markshelf.filesystem.content_manager import ContentManager
from markshelf.services.backup_service import BackupStore
from markshelf.services.datetime_service import format_iso
from markshelf.services.highlight_service import cleanup_highlights, export_highlights
from markshelf.services.highlight_store import SqlHighlightStore

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from sqlalchemy.ext.asyncio import AsyncSession


def format_size(size: int) -> str:
    """Human-readable byte count."""
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


@asynccontextmanager
async def open_session(settings: Settings) -> AsyncGenerator[AsyncSession]:
    """Open a session on a schema-initialized database, disposing the engine afterwards."""
    ensure_sqlite_directory(settings.database_url)
    engine, session_factory = create_engine(settings)
    try:
        await init_schema(engine)
        async with session_factory() as session:
            yield session
    finally:
        await engine.dispose()


def _confirm(prompt: str, assume_yes: bool) -> bool:
    if assume_yes:
        return True
    return input(f"{prompt} [y/N] ").strip().lower() in {"y", "yes"}


def cmd_archive(args: argparse.Namespace, settings: Settings) -> int:
    store = BackupStore(backup_dir=settings.backup_dir)

    if args.archive_command == "list":
        backups = store.list_backups()
        if not backups:
            print(f"No backups in {settings.backup_dir}")
            return 0
        print(f"Backups in {settings.backup_dir}:")
        for info in backups:
            print(
                f"  {info.name}  {format_iso(info.created_at)}  "
                f"{format_size(info.size)}  {info.original_name}"
            )
        print(f"Total: {len(backups)} ({format_size(sum(b.size for b in backups))})")
        return 0

    if args.archive_command == "show":
        info = store.get_backup(args.key)
        print(f"Backup:   {info.name}")
        print(f"Resource: {info.resource_id}")
        print(f"Created:  {format_iso(info.created_at)}")
        print(f"Size:     {format_size(info.size)}")
        print()
        print(store.read_backup(info))
        return 0

    if not _confirm(f"Delete all backups in {settings.backup_dir}?", args.yes):
        print("Aborted")
        return 1
    result = store.clear()
    print(f"Deleted {result.count} backups ({format_size(result.bytes_freed)} freed)")
    return 0


async def cmd_export(args: argparse.Namespace, settings: Settings) -> int:
    content_manager = ContentManager(settings.content_dir, settings.scan_max_depth)
    async with open_session(settings) as session:
        result = await export_highlights(
            session, content_manager, settings.export_dir, args.path
        )
    print(f"Exported {result.count} highlights to {result.file_path}")
    return 0


async def cmd_cleanup(args: argparse.Namespace, settings: Settings) -> int:
    content_manager = ContentManager(settings.content_dir, settings.scan_max_depth)
    async with open_session(settings) as session:
        result = await cleanup_highlights(session, content_manager, args.path)
    print(
        f"Checked {result.resources_checked} resources, "
        f"deleted {result.deleted} invalid highlights"
    )
    return 0


async def cmd_db(args: argparse.Namespace, settings: Settings) -> int:
    async with open_session(settings) as session:
        store = SqlHighlightStore(session)
        if args.db_command == "check":
            counts = await store.counts()
            print(f"Database:   {settings.database_url}")
            print(f"Resources:  {counts.resources}")
            print(f"Highlights: {counts.highlights} ({counts.stale_highlights} stale)")
            return 0

        if not _confirm("Delete all resources and highlights?", args.yes):
            print("Aborted")
            return 1
        removed = await store.clear()
    print(f"Deleted {removed.resources} resources and {removed.highlights} highlights")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="markshelf-manage",
        description="Manage Markshelf highlights, backups and database",
    )
    parser.add_argument("--dir", "-d", help="Served content directory (default: from settings)")

    subparsers = parser.add_subparsers(dest="command")

    archive = subparsers.add_parser("archive", help="Inspect or clear file backups")
    archive_sub = archive.add_subparsers(dest="archive_command", required=True)
    archive_sub.add_parser("list", help="List backups, newest first")
    show = archive_sub.add_parser("show", help="Print one backup")
    show.add_argument("key", help="Backup file name or resource id")
    clear = archive_sub.add_parser("clear", help="Delete all backups")
    clear.add_argument("--yes", "-y", action="store_true", help="Do not ask for confirmation")

    export = subparsers.add_parser("export", help="Export highlights to Markdown")
    export.add_argument("path", nargs="?", help="Directory to export (default: content root)")

    cleanup = subparsers.add_parser("cleanup", help="Delete highlights whose text is gone")
    cleanup.add_argument("path", nargs="?", help="Directory to clean (default: content root)")

    db = subparsers.add_parser("db", help="Inspect or clear the highlight database")
    db_sub = db.add_subparsers(dest="db_command", required=True)
    db_sub.add_parser("check", help="Show resource and highlight counts")
    db_clear = db_sub.add_parser("clear", help="Delete all resources and highlights")
    db_clear.add_argument("--yes", "-y", action="store_true", help="Do not ask for confirmation")

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 1

    settings = Settings()
    if args.dir:
        settings = settings.model_copy(update={"content_dir": Path(args.dir)})

    try:
        if args.command == "archive":
            return cmd_archive(args, settings)
        if args.command == "export":
            return asyncio.run(cmd_export(args, settings))
        if args.command == "cleanup":
            return asyncio.run(cmd_cleanup(args, settings))
        return asyncio.run(cmd_db(args, settings))
    except (NotFoundError, ValueError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
