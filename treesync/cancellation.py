"""Cooperative cancellation for analysis and sync runs."""

from __future__ import annotations

import threading


class OperationCancelled(RuntimeError):
    """Raised when a run observes a cancellation request."""


class CancelToken:
    """Thread-safe flag checked at every loop iteration of a run."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelled("Operation canceled.")


def check(token: CancelToken | None) -> None:
    if token is not None:
        token.raise_if_cancelled()


__all__ = ["CancelToken", "OperationCancelled", "check"]
