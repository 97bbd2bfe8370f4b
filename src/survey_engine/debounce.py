"""Trailing-edge debouncer used by both autosave loops.

A ``Debouncer`` owns one cancellable timer.  Each ``schedule()`` restarts
the timer, so a burst of edits produces a single call ``delay`` seconds
after the last one.  ``max_wait`` caps how long a continuous burst can
postpone the call: the timer never fires later than ``max_wait`` seconds
after the first unsaved edit.

The owner must call ``close()`` on teardown; a closed debouncer drops its
pending call and ignores further scheduling, so no write is issued for a
view that no longer exists.  Calls already running are not cancelled.

Outside a running event loop (plain synchronous use) the call is kept
pending until ``flush()``.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)


class Debouncer:
    """Coalesce rapid ``schedule()`` calls into one trailing callback.

    Args:
        callback: sync function or coroutine function taking no arguments
        delay: quiet period in seconds before the callback fires
        max_wait: optional cap in seconds on the total postponement
    """

    def __init__(
        self,
        callback: Callable[[], Any],
        delay: float,
        *,
        max_wait: float | None = None,
    ) -> None:
        self._callback = callback
        self._delay = delay
        self._max_wait = max_wait
        self._handle: asyncio.TimerHandle | None = None
        self._first_pending_at: float | None = None
        self._pending = False
        self._closed = False
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        """True if a call is scheduled but has not fired yet."""
        return self._pending

    @property
    def closed(self) -> bool:
        return self._closed

    def schedule(self) -> None:
        """(Re)start the timer for a trailing call."""
        if self._closed:
            return
        self._pending = True

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: stay pending until flush()
            return

        now = loop.time()
        if self._first_pending_at is None:
            self._first_pending_at = now

        wait = self._delay
        if self._max_wait is not None:
            remaining = self._first_pending_at + self._max_wait - now
            wait = max(0.0, min(wait, remaining))

        if self._handle is not None:
            self._handle.cancel()
        self._handle = loop.call_later(wait, self._fire)

    def flush(self) -> None:
        """Run the pending call now, if any."""
        if self._pending:
            self._fire()

    def cancel(self) -> None:
        """Drop the pending call without running it."""
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
        self._pending = False
        self._first_pending_at = None

    def close(self) -> None:
        """Cancel the pending call and refuse further scheduling."""
        self.cancel()
        self._closed = True

    async def wait(self) -> None:
        """Wait for async callbacks that are already running."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _fire(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
        self._pending = False
        self._first_pending_at = None

        result = self._callback()
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
