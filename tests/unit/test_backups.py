"""Unit tests for shadowcache.backups."""

from __future__ import annotations

import os
import shutil
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest

from shadowcache.backups import BackupRotator, parse_backup_name
from shadowcache.errors import ErrorCode, ShadowCacheError

if TYPE_CHECKING:
    from pathlib import Path

    from tests.unit.conftest import FakeClock

STAMP = "20260314150926"


@pytest.fixture()
def rotator(active_dir: Path, clock: FakeClock) -> BackupRotator:
    return BackupRotator(active_dir, clock=clock)


def _backup_names(root: Path, active_name: str = "Files") -> list[str]:
    return sorted(p.name for p in root.iterdir() if p.is_dir() and p.name != active_name)


# ---------------------------------------------------------------------------
# parse_backup_name
# ---------------------------------------------------------------------------


class TestParseBackupName:
    def test_bare_stamp(self) -> None:
        assert parse_backup_name(STAMP) == (datetime(2026, 3, 14, 15, 9, 26, tzinfo=UTC), 0)

    def test_with_suffix(self) -> None:
        assert parse_backup_name(f"{STAMP}-12") == (
            datetime(2026, 3, 14, 15, 9, 26, tzinfo=UTC),
            12,
        )

    @pytest.mark.parametrize("name", ["Files", "2026031415092", f"{STAMP}-", "20261399999999"])
    def test_rejects_other_names(self, name: str) -> None:
        assert parse_backup_name(name) is None


# ---------------------------------------------------------------------------
# has_residue
# ---------------------------------------------------------------------------


class TestHasResidue:
    def test_empty_directory(self, rotator: BackupRotator) -> None:
        assert rotator.has_residue() is False

    def test_missing_directory(self, tmp_path: Path) -> None:
        assert BackupRotator(tmp_path / "nope" / "Files").has_residue() is False

    def test_files_without_mapping(self, rotator: BackupRotator, active_dir: Path) -> None:
        (active_dir / "fw_000001").write_text("orphan")
        assert rotator.has_residue() is False

    def test_mapping_present(self, rotator: BackupRotator, active_dir: Path) -> None:
        (active_dir / "mapping").write_text("")
        assert rotator.has_residue() is True

    def test_mapping_directory_does_not_count(
        self, rotator: BackupRotator, active_dir: Path
    ) -> None:
        (active_dir / "mapping").mkdir()
        assert rotator.has_residue() is False


# ---------------------------------------------------------------------------
# rotate
# ---------------------------------------------------------------------------


class TestRotate:
    def test_moves_contents_and_recreates_active(
        self, rotator: BackupRotator, active_dir: Path
    ) -> None:
        (active_dir / "mapping").write_text("fw_000001 /a.txt\n", encoding="utf-8")
        (active_dir / "fw_000001").write_text("draft", encoding="utf-8")

        backup = rotator.rotate()

        assert backup == active_dir.parent / STAMP
        assert (backup / "fw_000001").read_text(encoding="utf-8") == "draft"
        assert (backup / "mapping").exists()
        assert active_dir.is_dir()
        assert list(active_dir.iterdir()) == []
        assert os.access(active_dir, os.W_OK)

    def test_same_second_gets_suffix(self, rotator: BackupRotator, active_dir: Path) -> None:
        first = rotator.rotate()
        second = rotator.rotate()
        third = rotator.rotate()
        assert [first.name, second.name, third.name] == [STAMP, f"{STAMP}-1", f"{STAMP}-2"]

    def test_suffix_follows_highest_existing(
        self, rotator: BackupRotator, active_dir: Path
    ) -> None:
        (active_dir.parent / STAMP).mkdir()
        (active_dir.parent / f"{STAMP}-4").mkdir()
        assert rotator.rotate().name == f"{STAMP}-5"

    def test_new_second_has_no_suffix(
        self, rotator: BackupRotator, active_dir: Path, clock: FakeClock
    ) -> None:
        rotator.rotate()
        clock.advance()
        assert rotator.rotate().name == "20260314150927"

    def test_missing_active_dir_raises(self, tmp_path: Path, clock: FakeClock) -> None:
        missing = tmp_path / "root" / "Files"
        missing.parent.mkdir()
        with pytest.raises(ShadowCacheError) as exc_info:
            BackupRotator(missing, clock=clock).rotate()
        assert exc_info.value.code == ErrorCode.FILESYSTEM_ERROR
        assert list(missing.parent.iterdir()) == []


# ---------------------------------------------------------------------------
# Retention
# ---------------------------------------------------------------------------


class TestRetention:
    def test_keeps_five_newest(
        self, rotator: BackupRotator, active_dir: Path, clock: FakeClock
    ) -> None:
        created = []
        for _ in range(8):
            created.append(rotator.rotate().name)
            clock.advance()
            assert len(rotator.list_backups()) <= 5

        assert _backup_names(active_dir.parent) == created[-5:]

    def test_custom_retention(self, active_dir: Path, clock: FakeClock) -> None:
        rotator = BackupRotator(active_dir, retention=2, clock=clock)
        for _ in range(4):
            rotator.rotate()
            clock.advance()
        assert _backup_names(active_dir.parent) == ["20260314150928", "20260314150929"]

    def test_unrelated_directories_untouched(
        self, rotator: BackupRotator, active_dir: Path, clock: FakeClock
    ) -> None:
        (active_dir.parent / "notes").mkdir()
        for _ in range(7):
            rotator.rotate()
            clock.advance()
        assert (active_dir.parent / "notes").is_dir()
        assert len(rotator.list_backups()) == 5

    def test_list_orders_numeric_suffixes(self, rotator: BackupRotator, active_dir: Path) -> None:
        for name in (f"{STAMP}-10", f"{STAMP}-9", STAMP, "20260101000000"):
            (active_dir.parent / name).mkdir()
        assert [b.name for b in rotator.list_backups()] == [
            "20260101000000",
            STAMP,
            f"{STAMP}-9",
            f"{STAMP}-10",
        ]

    def test_prune_failure_does_not_raise(
        self,
        rotator: BackupRotator,
        active_dir: Path,
        clock: FakeClock,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """A backup that cannot be deleted is skipped — rotation still succeeds."""
        for _ in range(5):
            rotator.rotate()
            clock.advance()

        def failing_rmtree(*args, **kwargs):
            raise PermissionError(13, "Permission denied")

        monkeypatch.setattr(shutil, "rmtree", failing_rmtree)
        backup = rotator.rotate()

        assert backup.is_dir()
        assert len(rotator.list_backups()) == 6

    def test_prune_returns_removed_paths(
        self, rotator: BackupRotator, active_dir: Path
    ) -> None:
        for name in ("20250101000000", "20250101000001"):
            (active_dir.parent / name).mkdir()
        for name in ("20260101000000", "20260101000001", "20260101000002", "20260101000003"):
            (active_dir.parent / name).mkdir()
        removed = rotator.prune()
        assert [p.name for p in removed] == ["20250101000000"]
