"""Cooperative cancellation shared by the engine and providers."""

from __future__ import annotations

import threading

from copyrc.errors import SyncCancelledError


class CancelToken:
    """A one-way cancellation flag checked between units of work.

    Work already in progress is allowed to finish; callers check the
    token before starting the next file, request, or chunk.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise SyncCancelledError("Sync pass was cancelled")


def check(token: CancelToken | None) -> None:
    """``raise_if_cancelled`` for an optional token."""
    if token is not None:
        token.raise_if_cancelled()
