"""Cancellation tokens for cooperative interruption of agent runs.

A token travels inside the run options; the agent checks it at the start of
each loop and the replay mock checks it before delivering each recorded
chunk, so a cancelled stream never advances the replay pointer.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable


class CancelledError(Exception):
    """Raised when an operation is cancelled via CancellationToken."""


@dataclass
class CancellationToken:
    """Mutable token for cooperative cancellation.

    Usage:
        token = CancellationToken()

        async for chunk in stream:
            token.raise_if_cancelled()
            handle(chunk)

        # elsewhere
        token.cancel()
    """

    reason: str | None = None
    _event: asyncio.Event = field(default_factory=asyncio.Event, init=False, repr=False)
    _callbacks: list[Callable[[], Any]] = field(default_factory=list, init=False, repr=False)
    _noop: bool = field(default=False, init=False, repr=False)

    @property
    def is_cancelled(self) -> bool:
        """Check if cancellation was requested."""
        if self._noop:
            return False
        return self._event.is_set()

    def cancel(self, reason: str | None = None) -> None:
        """Request cancellation (idempotent).

        Registered callbacks run once, on the first call.
        """
        if self._noop or self._event.is_set():
            return
        self.reason = reason or self.reason
        self._event.set()
        for cb in self._callbacks:
            try:
                cb()
            except Exception:
                # a failing callback must not block cancellation
                pass

    async def wait(self) -> None:
        """Block until cancel() is called."""
        if self._noop:
            await asyncio.Future()
            return
        await self._event.wait()

    def on_cancel(self, callback: Callable[[], Any]) -> None:
        """Register a zero-argument callback; runs immediately if already cancelled."""
        self._callbacks.append(callback)
        if self.is_cancelled:
            try:
                callback()
            except Exception:
                pass

    def raise_if_cancelled(self) -> None:
        """Raise CancelledError if cancellation was requested."""
        if self.is_cancelled:
            raise CancelledError(self.reason or "Operation was cancelled")

    @classmethod
    def none(cls) -> CancellationToken:
        """Return the shared no-op token (never cancels)."""
        global _NEVER_CANCEL
        if _NEVER_CANCEL is None:
            token = cls()
            token._noop = True
            _NEVER_CANCEL = token
        return _NEVER_CANCEL


# Created lazily so importing this module never needs an event loop.
_NEVER_CANCEL: CancellationToken | None = None


__all__ = ["CancellationToken", "CancelledError"]
