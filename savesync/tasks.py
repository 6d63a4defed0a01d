"""
Celery tasks for save data sync.

A single worker with concurrency 1 consuming the sync queue gives the
one-run-at-a-time behaviour the engine expects.
"""

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task
def sync_saves_task(
    md5: str | None = None,
    crc: str | None = None,
    header_name: str | None = None,
    good_name: str | None = None,
    country_code: int | str | None = None,
):
    """
    Download save data for one game, or for the whole catalog.

    The run can be stopped from another process with cancel_sync_task,
    using the session_id the run records. The stop takes effect before
    the next remote entry.

    Args:
        md5: ROM MD5 checksum (all five fields or none)
        crc: ROM CRC
        header_name: ROM header name
        good_name: ROM good name
        country_code: ROM country code byte
    """
    from savesync.catalog import CatalogStore
    from savesync.providers.google_drive import GoogleDriveClient
    from savesync.sync import InvalidSyncRequest, SyncEngine
    from savesync.sync import parse_request, resolve_targets
    from savesync.sync.destination import resolve_destination_root
    from savesync.sync.recorder import (
        SessionCancellationToken,
        SessionRecorder,
        record_rejected_request,
    )

    try:
        request = parse_request(md5, crc, header_name, good_name, country_code)
    except InvalidSyncRequest as e:
        logger.warning(f"Rejected sync request: {e}")
        session = record_rejected_request(md5, str(e))
        return {"status": "rejected", "session_id": session.id, "reason": str(e)}

    targets = resolve_targets(request, CatalogStore())
    recorder = SessionRecorder(request, targets=len(targets))

    logger.info(f"Starting sync session {recorder.session.id} for {len(targets)} games")

    engine = SyncEngine(
        client=GoogleDriveClient(),
        destination_root=resolve_destination_root(),
        listener=recorder,
    )
    result = engine.run(targets, SessionCancellationToken(recorder.session.id))

    return {
        "status": result.outcome.value,
        "session_id": recorder.session.id,
        "entries_matched": result.entries_matched,
        "entries_deleted": result.entries_deleted,
        "entries_downloaded": result.entries_downloaded,
        "entries_skipped": len(result.skipped),
        "error": str(result.error) if result.error else None,
    }


@shared_task
def cancel_sync_task(session_id: int):
    """Request that a running sync session stop before its next entry."""
    from savesync.sync.recorder import request_cancel

    flagged = request_cancel(session_id)
    if flagged:
        logger.info(f"Cancellation requested for sync session {session_id}")
    else:
        logger.info(f"Sync session {session_id} is not running, nothing to cancel")
    return {"session_id": session_id, "cancel_requested": flagged}
