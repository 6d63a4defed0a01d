"""
Core sync engine for save data downloads.

Walks the remote listing of the app folder and, for every entry that
belongs to a requested game, deletes the local copy and downloads the
remote one in its place. There is no diffing: every match is a full
replace.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Sequence

from django.conf import settings
from googleapiclient.errors import HttpError

if TYPE_CHECKING:
    from savesync.providers.google_drive import DriveFile, GoogleDriveClient
    from savesync.sync.cancellation import CancellationToken
    from savesync.sync.targets import TargetItem

from savesync.paths import is_safe_entry_name
from savesync.providers.google_drive import GoogleDriveError
from savesync.sync.destination import LocalMirror, mirror_folder_name
from savesync.sync.exceptions import DownloadError, ListingError, TransferError
from savesync.sync.targets import contains_match

logger = logging.getLogger(__name__)

# Progress labels are cut to this many characters
MAX_LABEL_LENGTH = 30


class SyncOutcome(enum.Enum):
    NOOP = "noop"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class SyncResult:
    """Result of a sync run."""

    outcome: SyncOutcome = SyncOutcome.NOOP
    entries_listed: int = 0
    entries_matched: int = 0
    entries_deleted: int = 0
    entries_downloaded: int = 0
    processed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    error: Exception | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is not SyncOutcome.FAILED


class SyncListener:
    """
    Receives progress and completion signals from a run.

    All methods are called from the thread executing the run.
    """

    def report_progress(self, label: str) -> None:
        pass

    def on_entry_deleted(self, name: str) -> None:
        pass

    def on_entry_downloaded(self, name: str, path: Path) -> None:
        pass

    def on_entry_skipped(self, name: str, reason: str) -> None:
        pass

    def on_finished(self, result: SyncResult) -> None:
        pass


def progress_label(name: str) -> str:
    """Cut an entry name down to a progress label."""
    return name[:MAX_LABEL_LENGTH]


def skip_reason(entry: DriveFile) -> str | None:
    """
    Why a matched entry cannot be mirrored, or None if it can.

    Checked before the local copy is touched, so a skipped entry leaves
    the mirror unchanged.
    """
    if not is_safe_entry_name(entry.name):
        return "name is not a single local path component"
    if not entry.is_folder and not entry.is_downloadable:
        return f"{entry.mime_type} has no downloadable content"
    return None


class SyncEngine:
    """
    Cancellable delete-then-download loop over one remote folder.

    The engine owns no state between runs; each call to run() gets its
    targets and cancellation token from the caller.
    """

    def __init__(
        self,
        client: GoogleDriveClient,
        destination_root: Path | None,
        listener: SyncListener | None = None,
        app_folder_name: str | None = None,
        folder_name: str | None = None,
    ):
        self.client = client
        self.destination_root = destination_root
        self.listener = listener or SyncListener()
        self.app_folder_name = app_folder_name or settings.SAVESYNC_APP_FOLDER_NAME
        self.folder_name = folder_name or mirror_folder_name()

    def run(self, targets: Sequence[TargetItem], cancel_token: CancellationToken) -> SyncResult:
        """
        Execute one sync run.

        Transfer failures abort the run and are reported through the
        result rather than raised. The listener's on_finished is called
        exactly once, whatever the outcome.

        Args:
            targets: Games to sync; empty means every entry is skipped
            cancel_token: Checked before each remote entry

        Returns:
            SyncResult describing what was done
        """
        result = SyncResult()

        try:
            self._run(targets, cancel_token, result)
        except TransferError as e:
            result.outcome = SyncOutcome.FAILED
            result.error = e
            logger.error(f"Sync aborted after {len(result.processed)} entries: {e}")
        except Exception as e:
            result.outcome = SyncOutcome.FAILED
            result.error = e
            logger.error(f"Sync failed: {e}", exc_info=True)
            raise
        finally:
            self.listener.on_finished(result)

        return result

    def _run(
        self,
        targets: Sequence[TargetItem],
        cancel_token: CancellationToken,
        result: SyncResult,
    ) -> None:
        if self.destination_root is None:
            logger.info("No destination storage available, nothing to sync")
            return

        root_folder = self._find_root_folder()
        if root_folder is None:
            logger.info(f"Remote folder '{self.app_folder_name}' does not exist, nothing to sync")
            return

        mirror = LocalMirror(self.destination_root, self.folder_name)
        mirror.ensure()

        entries = self._list_entries(root_folder)
        result.entries_listed = len(entries)
        logger.info(
            f"Syncing {len(targets)} games against {len(entries)} remote entries into {mirror.path}"
        )

        result.outcome = SyncOutcome.COMPLETED

        for entry in entries:
            if cancel_token.is_cancelled:
                result.outcome = SyncOutcome.CANCELLED
                logger.info(f"Sync cancelled after {len(result.processed)} entries")
                break

            if not contains_match(targets, entry.name):
                continue

            result.entries_matched += 1

            reason = skip_reason(entry)
            if reason is not None:
                logger.warning(f"Skipping {entry.name!r}: {reason}")
                result.skipped.append(entry.name)
                self.listener.on_entry_skipped(entry.name, reason)
                continue

            self.listener.report_progress(progress_label(entry.name))

            existing = mirror.find(entry.name)
            if existing is not None:
                mirror.delete(existing)
                result.entries_deleted += 1
                self.listener.on_entry_deleted(entry.name)

            local_path = self._download(entry, mirror)
            result.entries_downloaded += 1
            result.processed.append(entry.name)
            self.listener.on_entry_downloaded(entry.name, local_path)

        if result.outcome is SyncOutcome.COMPLETED:
            logger.info(
                f"Sync completed: {result.entries_matched} matched, "
                f"{result.entries_deleted} replaced, {result.entries_downloaded} downloaded"
            )

    def _download(self, entry: DriveFile, mirror: LocalMirror) -> Path:
        """
        Download a remote entry into the mirror folder.

        Raises:
            DownloadError: If the download fails
        """
        try:
            return self.client.download_entry(entry, mirror.path)
        except (GoogleDriveError, HttpError, OSError) as e:
            raise DownloadError(f"Failed to download {entry.name}: {e}") from e

    def _find_root_folder(self) -> DriveFile | None:
        try:
            return self.client.find_root_folder(self.app_folder_name)
        except (GoogleDriveError, HttpError, OSError) as e:
            raise ListingError(f"Failed to look up '{self.app_folder_name}': {e}") from e

    def _list_entries(self, root_folder: DriveFile) -> list[DriveFile]:
        """Snapshot the remote listing; it is not re-read during the run."""
        try:
            return list(self.client.list_entries(root_folder.id))
        except (GoogleDriveError, HttpError, OSError) as e:
            raise ListingError(f"Failed to list '{root_folder.name}': {e}") from e
