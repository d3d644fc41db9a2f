"""Detection and logging of read/starred conflicts during sync.

Inoreader does not report when an item's read or starred state changed, so
a conflict can only be detected as "local and remote state differ", not
ordered in time. Conflicts are only recorded for rows the reader touched
locally (``last_local_update`` set); anything else is a plain upstream
update.

Each sync writes its conflicts as JSON lines to the conflict log for later
inspection. Logging is best effort and never fails the sync.
"""

from datetime import datetime
from pathlib import Path
from typing import Literal, Protocol

from pydantic import BaseModel, Field

from rss_reader_service.config import settings
from rss_reader_service.logging_config import get_logger
from rss_reader_service.utils import ensure_utc, utc_now

logger = get_logger(__name__)

ConflictType = Literal["read_status", "starred_status", "both"]
Resolution = Literal["local", "remote"]


class LocalState(Protocol):
    """Fields of a local article the detector reads (an Article row fits)."""

    id: int | None
    feed_id: int | None
    inoreader_id: str
    is_read: bool
    is_starred: bool
    last_local_update: datetime | None
    last_sync_update: datetime | None
    updated_at: datetime | None


class ReadStarState(BaseModel):
    read: bool
    starred: bool


class ConflictLogEntry(BaseModel):
    """One line of the conflict log."""

    timestamp: datetime
    sync_session_id: str
    article_id: int | None = None
    feed_id: int | None = None
    inoreader_id: str
    conflict_type: ConflictType
    local_value: ReadStarState
    remote_value: ReadStarState
    resolution: Resolution
    last_local_update: datetime | None = None
    last_sync_update: datetime | None = None
    note: str


class ConflictSummary(BaseModel):
    total_conflicts: int = 0
    read_conflicts: int = 0
    starred_conflicts: int = 0
    both_conflicts: int = 0
    resolutions: dict[Resolution, int] = Field(
        default_factory=lambda: {"local": 0, "remote": 0}
    )


def local_changes_win(local: LocalState) -> bool:
    """True when the local state was changed after the last sync wrote it.

    Rows never written by a sync are compared against ``updated_at``.
    """
    local_update = ensure_utc(local.last_local_update)
    if local_update is None:
        return False
    sync_update = ensure_utc(local.last_sync_update or local.updated_at)
    if sync_update is None:
        return True
    return local_update > sync_update


class SyncConflictDetector:
    """Collects conflicts for one sync run.

    Usage:
        detector = SyncConflictDetector(sync_id)
        detector.detect_conflict(article, remote_read, remote_starred, "local")
        detector.write_conflicts()
    """

    def __init__(self, sync_session_id: str | None = None, log_path: str | Path | None = None):
        self.sync_session_id = sync_session_id or f"sync_{utc_now().isoformat()}"
        self.log_path = Path(log_path or settings.conflict_log_path)
        self.conflicts: list[ConflictLogEntry] = []
        self.summary = ConflictSummary()

    def detect_conflict(
        self,
        local: LocalState,
        remote_read: bool,
        remote_starred: bool,
        resolution: Resolution = "remote",
    ) -> ConflictLogEntry | None:
        """Record a conflict if local and remote state differ.

        Returns:
            The recorded entry, or None when there is no conflict
        """
        read_differs = bool(local.is_read) != remote_read
        starred_differs = bool(local.is_starred) != remote_starred
        if not (read_differs or starred_differs):
            return None
        if local.last_local_update is None:
            return None

        conflict_type: ConflictType
        if read_differs and starred_differs:
            conflict_type = "both"
            self.summary.both_conflicts += 1
        elif read_differs:
            conflict_type = "read_status"
            self.summary.read_conflicts += 1
        else:
            conflict_type = "starred_status"
            self.summary.starred_conflicts += 1

        self.summary.total_conflicts += 1
        self.summary.resolutions[resolution] += 1

        entry = ConflictLogEntry(
            timestamp=utc_now(),
            sync_session_id=self.sync_session_id,
            article_id=local.id,
            feed_id=local.feed_id,
            inoreader_id=local.inoreader_id,
            conflict_type=conflict_type,
            local_value=ReadStarState(read=bool(local.is_read), starred=bool(local.is_starred)),
            remote_value=ReadStarState(read=remote_read, starred=remote_starred),
            resolution=resolution,
            last_local_update=ensure_utc(local.last_local_update),
            last_sync_update=ensure_utc(local.last_sync_update),
            note=(
                "Local wins: local changes preserved"
                if resolution == "local"
                else "Remote wins: local changes overwritten (no remote timestamps available)"
            ),
        )
        self.conflicts.append(entry)
        return entry

    def generate_report(self) -> str:
        """Human-readable summary for logs."""
        s = self.summary
        if s.total_conflicts == 0:
            return f"Sync {self.sync_session_id}: no conflicts"
        return (
            f"Sync {self.sync_session_id}: {s.total_conflicts} conflicts "
            f"(read={s.read_conflicts}, starred={s.starred_conflicts}, both={s.both_conflicts}; "
            f"local wins={s.resolutions['local']}, remote wins={s.resolutions['remote']})"
        )

    def write_conflicts(self) -> int:
        """Append collected conflicts to the JSON lines log.

        Returns:
            Number of lines written (0 on failure or nothing to write)
        """
        if not self.conflicts:
            return 0
        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_path, "a", encoding="utf-8") as f:
                for conflict in self.conflicts:
                    f.write(conflict.model_dump_json() + "\n")
        except OSError as e:
            logger.error("conflict_log_write_failed", path=str(self.log_path), error=str(e))
            return 0
        logger.info("conflict_log_written", count=len(self.conflicts), path=str(self.log_path))
        return len(self.conflicts)
