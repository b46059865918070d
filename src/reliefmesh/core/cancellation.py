# Copyright 2025 Allard Peper (Dragon Ace / DragonAceNL)
# Licensed under the Apache License, Version 2.0 (see LICENSE).

"""Cooperative cancellation for long-running mesh operations."""

from typing import Optional
import threading
import time

from .errors import OperationCancelledError


class CancellationToken:
    """
    Cancellation flag with an optional deadline.

    Operations call ``raise_if_cancelled()`` between passes; the token may be
    cancelled from another thread.

    Example:
        token = CancellationToken(deadline_s=5.0)
        mesh = smooth(mesh, iterations=50, cancel=token)
    """

    def __init__(self, deadline_s: Optional[float] = None):
        self._event = threading.Event()
        self._deadline = (
            time.monotonic() + deadline_s if deadline_s is not None else None
        )

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    @property
    def expired(self) -> bool:
        """True once the deadline (if any) has passed."""
        return self._deadline is not None and time.monotonic() >= self._deadline

    @property
    def cancelled(self) -> bool:
        return self._event.is_set() or self.expired

    def raise_if_cancelled(self, operation: str = "operation") -> None:
        if self._event.is_set():
            raise OperationCancelledError(f"{operation} cancelled")
        if self.expired:
            raise OperationCancelledError(f"{operation} exceeded its deadline")


def check_cancelled(cancel: Optional[CancellationToken], operation: str) -> None:
    """Raise if ``cancel`` is set; a ``None`` token never cancels."""
    if cancel is not None:
        cancel.raise_if_cancelled(operation)
