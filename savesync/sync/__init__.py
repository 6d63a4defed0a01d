"""
Sync engine for save data downloads.
"""

from savesync.sync.cancellation import CancellationToken
from savesync.sync.engine import SyncEngine, SyncListener, SyncOutcome, SyncResult
from savesync.sync.exceptions import (
    DeleteError,
    DownloadError,
    InvalidSyncRequest,
    ListingError,
    SyncError,
    TransferError,
)
from savesync.sync.targets import (
    AllItems,
    SingleItem,
    TargetItem,
    contains_match,
    parse_request,
    resolve_targets,
)

__all__ = [
    "SyncEngine",
    "SyncListener",
    "SyncOutcome",
    "SyncResult",
    "CancellationToken",
    "SingleItem",
    "AllItems",
    "TargetItem",
    "parse_request",
    "resolve_targets",
    "contains_match",
    "SyncError",
    "InvalidSyncRequest",
    "TransferError",
    "DownloadError",
    "DeleteError",
    "ListingError",
]
