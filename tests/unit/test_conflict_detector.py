"""Tests for sync conflict detection and resolution."""

import json
from datetime import timedelta
from pathlib import Path
from types import SimpleNamespace

import pytest

from rss_reader_service.sync.conflict_detector import SyncConflictDetector, local_changes_win
from rss_reader_service.utils import utc_now


def local_article(**overrides):
    values = {
        "id": 7,
        "feed_id": 3,
        "inoreader_id": "tag:google.com,2005:reader/item/7",
        "is_read": True,
        "is_starred": False,
        "last_local_update": utc_now(),
        "last_sync_update": utc_now() - timedelta(hours=1),
        "updated_at": utc_now() - timedelta(hours=1),
    }
    values.update(overrides)
    return SimpleNamespace(**values)


class TestLocalChangesWin:
    def test_local_change_after_sync_wins(self) -> None:
        assert local_changes_win(local_article())

    def test_sync_after_local_change_loses(self) -> None:
        article = local_article(last_local_update=utc_now() - timedelta(days=1))
        assert not local_changes_win(article)

    def test_untouched_row_never_wins(self) -> None:
        assert not local_changes_win(local_article(last_local_update=None))

    def test_falls_back_to_updated_at(self) -> None:
        article = local_article(
            last_sync_update=None,
            updated_at=utc_now() - timedelta(minutes=5),
        )
        assert local_changes_win(article)

    def test_naive_timestamps_are_treated_as_utc(self) -> None:
        now = utc_now()
        article = local_article(
            last_local_update=now.replace(tzinfo=None),
            last_sync_update=now - timedelta(minutes=1),
        )
        assert local_changes_win(article)


class TestSyncConflictDetector:
    def test_no_conflict_when_states_match(self, tmp_path: Path) -> None:
        detector = SyncConflictDetector("s1", log_path=tmp_path / "c.jsonl")

        assert detector.detect_conflict(local_article(), True, False) is None
        assert detector.summary.total_conflicts == 0

    def test_no_conflict_without_local_update(self, tmp_path: Path) -> None:
        detector = SyncConflictDetector("s1", log_path=tmp_path / "c.jsonl")
        article = local_article(last_local_update=None)

        assert detector.detect_conflict(article, False, False) is None

    @pytest.mark.parametrize(
        ("remote_read", "remote_starred", "expected"),
        [
            (False, False, "read_status"),
            (True, True, "starred_status"),
            (False, True, "both"),
        ],
    )
    def test_conflict_types(
        self, tmp_path: Path, remote_read: bool, remote_starred: bool, expected: str
    ) -> None:
        detector = SyncConflictDetector("s1", log_path=tmp_path / "c.jsonl")

        entry = detector.detect_conflict(local_article(), remote_read, remote_starred, "local")

        assert entry is not None
        assert entry.conflict_type == expected
        assert entry.resolution == "local"
        assert detector.summary.total_conflicts == 1
        assert detector.summary.resolutions == {"local": 1, "remote": 0}

    def test_report(self, tmp_path: Path) -> None:
        detector = SyncConflictDetector("s1", log_path=tmp_path / "c.jsonl")
        assert detector.generate_report() == "Sync s1: no conflicts"

        detector.detect_conflict(local_article(), False, False, "remote")

        report = detector.generate_report()
        assert "1 conflicts" in report
        assert "remote wins=1" in report

    def test_write_conflicts_appends_json_lines(self, tmp_path: Path) -> None:
        log_path = tmp_path / "logs" / "sync-conflicts.jsonl"
        detector = SyncConflictDetector("s1", log_path=log_path)
        detector.detect_conflict(local_article(), False, False, "local")
        detector.detect_conflict(local_article(id=8, inoreader_id="x"), True, True, "remote")

        assert detector.write_conflicts() == 2
        assert detector.write_conflicts() == 2

        lines = log_path.read_text().splitlines()
        assert len(lines) == 4
        first = json.loads(lines[0])
        assert first["sync_session_id"] == "s1"
        assert first["local_value"] == {"read": True, "starred": False}
        assert first["remote_value"] == {"read": False, "starred": False}

    def test_write_failure_returns_zero(self, tmp_path: Path) -> None:
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")
        detector = SyncConflictDetector("s1", log_path=blocker / "c.jsonl")
        detector.detect_conflict(local_article(), False, False)

        assert detector.write_conflicts() == 0

    def test_nothing_to_write(self, tmp_path: Path) -> None:
        detector = SyncConflictDetector("s1", log_path=tmp_path / "c.jsonl")
        assert detector.write_conflicts() == 0
        assert not (tmp_path / "c.jsonl").exists()
