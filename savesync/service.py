"""
Sync service context.

Owns the single worker thread that runs sync requests one at a time.
Callers submit requests and get a Future for the run's result. Each
request carries its own cancellation token, so a stop request reaches it
whether it is running or still queued.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from savesync.providers.google_drive import GoogleDriveClient
    from savesync.sync.targets import CatalogSource, SyncRequest

from savesync.sync.cancellation import CancellationToken
from savesync.sync.engine import SyncEngine, SyncListener, SyncResult
from savesync.sync.targets import resolve_targets

logger = logging.getLogger(__name__)

ListenerFactory = Callable[["SyncRequest", int], SyncListener]


class SyncService:
    """
    Runs sync requests on one background worker.

    Requests are queued and executed strictly in submission order, so two
    runs never touch the destination folder at the same time.

    Usage:
        with SyncService(client, catalog, destination_root) as service:
            future = service.submit(AllItems())
            result = future.result()
    """

    def __init__(
        self,
        client: GoogleDriveClient,
        catalog: CatalogSource,
        destination_root: Path | None,
        listener_factory: ListenerFactory | None = None,
        app_folder_name: str | None = None,
        folder_name: str | None = None,
    ):
        """
        Args:
            client: Remote store client shared by all runs
            catalog: Catalog used to resolve AllItems requests
            destination_root: Root to mirror into, or None if unavailable
            listener_factory: Builds a listener per run from (request, target count)
            app_folder_name: Remote folder override
            folder_name: Local mirror folder override
        """
        self.client = client
        self.catalog = catalog
        self.destination_root = destination_root
        self.listener_factory = listener_factory
        self.app_folder_name = app_folder_name
        self.folder_name = folder_name

        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="savesync")
        self._lock = threading.Lock()
        # Tokens of submitted requests that have not finished, oldest first
        self._tokens: deque[CancellationToken] = deque()
        self._future_tokens: dict[Future, CancellationToken] = {}
        self._closed = False

    def submit(self, request: SyncRequest) -> Future:
        """
        Queue a sync request.

        Returns:
            Future resolving to the run's SyncResult

        Raises:
            RuntimeError: If the service has been closed
        """
        token = CancellationToken()
        with self._lock:
            if self._closed:
                raise RuntimeError("SyncService is closed")
            logger.debug(f"Queued sync request: {request!r}")
            future = self._executor.submit(self._execute, request, token)
            self._tokens.append(token)
            self._future_tokens[future] = token
        future.add_done_callback(self._forget)
        return future

    def cancel(self, future: Future | None = None) -> None:
        """
        Ask a request to stop before its next remote entry.

        Args:
            future: Request to stop, as returned by submit(). Defaults to
                the oldest unfinished request, which is the running one or,
                if the worker has not picked it up yet, the next to run.
                A request stopped before it starts finishes as CANCELLED
                without touching any entry.
        """
        with self._lock:
            if future is not None:
                token = self._future_tokens.get(future)
            else:
                token = self._tokens[0] if self._tokens else None
        if token is not None:
            logger.info("Stop requested for sync request")
            token.cancel()

    def close(self, wait: bool = True) -> None:
        """Cancel the running request, drop queued ones and stop the worker."""
        with self._lock:
            self._closed = True
        self.cancel()
        self._executor.shutdown(wait=wait, cancel_futures=True)

    def __enter__(self) -> "SyncService":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def _forget(self, future: Future) -> None:
        with self._lock:
            token = self._future_tokens.pop(future, None)
            if token is not None:
                self._tokens.remove(token)

    def _execute(self, request: SyncRequest, token: CancellationToken) -> SyncResult:
        targets = resolve_targets(request, self.catalog)
        listener = (
            self.listener_factory(request, len(targets))
            if self.listener_factory
            else None
        )
        engine = SyncEngine(
            client=self.client,
            destination_root=self.destination_root,
            listener=listener,
            app_folder_name=self.app_folder_name,
            folder_name=self.folder_name,
        )
        return engine.run(targets, token)
