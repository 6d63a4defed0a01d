"""
Cooperative cancellation for sync runs.
"""

import threading


class CancellationToken:
    """
    Stop request shared between the caller and the worker running a sync.

    The engine checks the token once before each remote entry, so a
    cancellation never interrupts a delete or download in flight.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request that the run stop before the next entry."""
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def __repr__(self):
        return f"CancellationToken(cancelled={self.is_cancelled})"
