"""
Persist sync runs as SyncSession and SyncEvent rows.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from django.utils import timezone

if TYPE_CHECKING:
    from savesync.sync.engine import SyncResult
    from savesync.sync.targets import SyncRequest

from savesync.sync.cancellation import CancellationToken
from savesync.sync.engine import SyncListener
from savesync.sync.models import SyncEvent, SyncSession
from savesync.sync.targets import SingleItem

logger = logging.getLogger(__name__)


class SessionRecorder(SyncListener):
    """
    Listener that records a run in the database.

    Wraps another listener so progress still reaches the caller.
    """

    def __init__(self, request: SyncRequest, targets: int = 0, inner: SyncListener | None = None):
        self.inner = inner or SyncListener()
        is_single = isinstance(request, SingleItem)
        self.session = SyncSession.objects.create(
            scope="single" if is_single else "all",
            game_md5=request.md5 if is_single else "",
            targets=targets,
        )

    def report_progress(self, label: str) -> None:
        self.inner.report_progress(label)

    def on_entry_deleted(self, name: str) -> None:
        SyncEvent.objects.create(
            session=self.session,
            event_type="entry_deleted",
            entry_name=name,
            message="Local copy removed",
        )
        self.inner.on_entry_deleted(name)

    def on_entry_downloaded(self, name: str, path: Path) -> None:
        SyncEvent.objects.create(
            session=self.session,
            event_type="entry_downloaded",
            entry_name=name,
            message=f"Downloaded to {path}",
        )
        self.inner.on_entry_downloaded(name, path)

    def on_entry_skipped(self, name: str, reason: str) -> None:
        SyncEvent.objects.create(
            session=self.session,
            event_type="entry_skipped",
            entry_name=name,
            message=reason,
        )
        self.inner.on_entry_skipped(name, reason)

    def on_finished(self, result: SyncResult) -> None:
        self.session.status = result.outcome.value
        self.session.completed_at = timezone.now()
        self.session.entries_listed = result.entries_listed
        self.session.entries_matched = result.entries_matched
        self.session.entries_deleted = result.entries_deleted
        self.session.entries_downloaded = result.entries_downloaded

        if result.error is not None:
            self.session.error_message = str(result.error)
            SyncEvent.objects.create(
                session=self.session,
                event_type="error",
                message=str(result.error),
            )

        # cancel_requested may have been set by another process
        self.session.save(
            update_fields=[
                "status",
                "completed_at",
                "entries_listed",
                "entries_matched",
                "entries_deleted",
                "entries_downloaded",
                "error_message",
            ]
        )
        logger.debug(f"Recorded sync session {self.session.id}: {self.session.status}")

        self.inner.on_finished(result)


def record_rejected_request(md5: str | None, reason: str) -> SyncSession:
    """
    Record a request that never ran because its fields were inconsistent.

    A mixed request names some single-game fields, so it is logged with the
    single scope.
    """
    now = timezone.now()
    session = SyncSession.objects.create(
        scope="single",
        game_md5=md5 or "",
        status="rejected",
        completed_at=now,
        error_message=reason,
    )
    SyncEvent.objects.create(session=session, event_type="error", message=reason)
    logger.info(f"Recorded rejected sync request as session {session.id}")
    return session


class SessionCancellationToken(CancellationToken):
    """
    Token that also honours a stop request stored on the session row.

    Lets a process other than the worker, such as a Celery task or the
    admin, stop a running sync.
    """

    def __init__(self, session_id: int):
        super().__init__()
        self.session_id = session_id

    @property
    def is_cancelled(self) -> bool:
        if super().is_cancelled:
            return True
        if SyncSession.objects.filter(id=self.session_id, cancel_requested=True).exists():
            logger.info(f"Stop requested for sync session {self.session_id}")
            self.cancel()
            return True
        return False


def request_cancel(session_id: int) -> bool:
    """
    Ask a running session to stop before its next entry.

    Returns:
        True if a running session was flagged
    """
    updated = SyncSession.objects.filter(id=session_id, status="running").update(
        cancel_requested=True
    )
    return updated > 0
