"""
Exceptions for sync operations.
"""


class SyncError(Exception):
    """Base exception for sync operations."""

    pass


class InvalidSyncRequest(SyncError):
    """Request fields describe neither a single game nor the whole catalog."""

    pass


class TransferError(SyncError):
    """A local delete or remote download failed; the run is aborted."""

    pass


class DownloadError(TransferError):
    """Failed to download an entry from the remote store."""

    pass


class DeleteError(TransferError):
    """Failed to remove the stale local copy of an entry."""

    pass


class ListingError(TransferError):
    """Failed to look up or list the remote app folder."""

    pass


class UnsafePathError(TransferError):
    """A remote name would resolve to a path outside the mirror folder."""

    pass
