"""Tests for the markshelf-manage maintenance CLI."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest

from cli.manage import format_size, main, open_session
from markshelf.filesystem.content_manager import ContentManager
from markshelf.services.backup_service import BackupStore
from markshelf.services.highlight_service import create_highlight
from tests.conftest import ALPHA_TEXT

if TYPE_CHECKING:
    from pathlib import Path

    from markshelf.config import Settings


@pytest.fixture
def cli_settings(
    test_settings: Settings, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> Settings:
    """Point the CLI's environment-loaded settings at the test directories."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DATABASE_URL", test_settings.database_url)
    monkeypatch.setenv("CONTENT_DIR", str(test_settings.content_dir))
    monkeypatch.setenv("BACKUP_DIR", str(test_settings.backup_dir))
    monkeypatch.setenv("EXPORT_DIR", str(test_settings.export_dir))
    return test_settings


def _seed_highlight(settings: Settings, path: str, text: str) -> str:
    async def _seed() -> str:
        async with open_session(settings) as session:
            result = await create_highlight(
                session,
                ContentManager(settings.content_dir),
                BackupStore(settings.backup_dir),
                resource_path=path,
                highlighted_text=text,
            )
            return result.id

    return asyncio.run(_seed())


class TestFormatSize:
    def test_units(self) -> None:
        assert format_size(0) == "0 B"
        assert format_size(1023) == "1023 B"
        assert format_size(2048) == "2.0 KB"
        assert format_size(3 * 1024 * 1024) == "3.0 MB"


class TestUsage:
    def test_no_command_prints_help(
        self, cli_settings: Settings, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert main([]) == 1
        assert "markshelf-manage" in capsys.readouterr().out


class TestArchiveCommands:
    def test_list_empty(self, cli_settings: Settings, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["archive", "list"]) == 0
        assert "No backups" in capsys.readouterr().out

    def test_list_show_and_clear(
        self, cli_settings: Settings, capsys: pytest.CaptureFixture[str]
    ) -> None:
        _seed_highlight(cli_settings, "alpha.md", "alpha")
        backup = BackupStore(cli_settings.backup_dir).list_backups()[0]

        assert main(["archive", "list"]) == 0
        listing = capsys.readouterr().out
        assert backup.name in listing
        assert "Total: 1" in listing

        assert main(["archive", "show", backup.resource_id]) == 0
        assert ALPHA_TEXT in capsys.readouterr().out

        assert main(["archive", "clear", "--yes"]) == 0
        assert "Deleted 1 backups" in capsys.readouterr().out
        assert BackupStore(cli_settings.backup_dir).list_backups() == []

    def test_clear_can_be_aborted(
        self,
        cli_settings: Settings,
        capsys: pytest.CaptureFixture[str],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        _seed_highlight(cli_settings, "alpha.md", "alpha")
        monkeypatch.setattr("builtins.input", lambda _prompt: "n")

        assert main(["archive", "clear"]) == 1
        assert "Aborted" in capsys.readouterr().out
        assert len(BackupStore(cli_settings.backup_dir).list_backups()) == 1

    def test_show_unknown_backup(
        self, cli_settings: Settings, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert main(["archive", "show", "nothing"]) == 1
        assert "Error: Backup not found" in capsys.readouterr().err


class TestExportAndCleanup:
    def test_export(self, cli_settings: Settings, capsys: pytest.CaptureFixture[str]) -> None:
        _seed_highlight(cli_settings, "alpha.md", "alpha paragraph")

        assert main(["export"]) == 0

        assert "Exported 1 highlights" in capsys.readouterr().out
        exports = list(cli_settings.export_dir.iterdir())
        assert len(exports) == 1
        assert "> alpha paragraph" in exports[0].read_text(encoding="utf-8")

    def test_export_nothing(
        self, cli_settings: Settings, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert main(["export"]) == 1
        assert "No highlights to export" in capsys.readouterr().err

    def test_cleanup(self, cli_settings: Settings, capsys: pytest.CaptureFixture[str]) -> None:
        _seed_highlight(cli_settings, "alpha.md", "alpha paragraph")
        (cli_settings.content_dir / "alpha.md").write_text("Gone.\n", encoding="utf-8")

        assert main(["cleanup"]) == 0
        assert "deleted 1 invalid highlights" in capsys.readouterr().out

    def test_dir_option_overrides_content_dir(
        self, cli_settings: Settings, capsys: pytest.CaptureFixture[str]
    ) -> None:
        _seed_highlight(cli_settings, "notes/gamma.md", "Gamma")

        assert main(["--dir", str(cli_settings.content_dir / "notes"), "export"]) == 0
        assert "Exported 1 highlights" in capsys.readouterr().out
        assert [p.name.startswith("notes-") for p in cli_settings.export_dir.iterdir()] == [True]


class TestDbCommands:
    def test_check_and_clear(
        self, cli_settings: Settings, capsys: pytest.CaptureFixture[str]
    ) -> None:
        _seed_highlight(cli_settings, "alpha.md", "alpha")

        assert main(["db", "check"]) == 0
        report = capsys.readouterr().out
        assert "Resources:  1" in report
        assert "Highlights: 1 (0 stale)" in report

        assert main(["db", "clear", "--yes"]) == 0
        assert "Deleted 1 resources and 1 highlights" in capsys.readouterr().out

        assert main(["db", "check"]) == 0
        assert "Highlights: 0 (0 stale)" in capsys.readouterr().out
