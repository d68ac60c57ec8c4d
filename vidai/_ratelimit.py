"""Minimum-spacing gate shared by every outbound request."""
from __future__ import annotations

import collections
import threading
import time
from contextlib import contextmanager
from typing import Callable, Iterator

from .exceptions import OperationCancelled

# Upper bound on how long a queued caller sleeps before re-checking its
# cancellation event.
_CANCEL_CHECK_INTERVAL = 0.1


class RateLimiter:
    """Single-permit gate with a minimum spacing between grants.

    Only one permit is outstanding at a time, and a permit is never granted
    earlier than *interval* seconds after the previous grant (grant to
    grant, so slow calls do not stretch the schedule). Waiters are served in
    arrival order. One instance may be shared by several clients.

    ``acquire`` returns a release callable; :meth:`permit` wraps the pair
    in a context manager::

        with limiter.permit(cancel):
            transport.send(...)
    """

    def __init__(self, interval: float, clock: Callable[[], float] = time.monotonic):
        if interval < 0:
            raise ValueError("interval must be >= 0")
        self.interval = interval
        self._clock = clock
        self._cond = threading.Condition()
        self._queue: collections.deque[object] = collections.deque()
        self._held = False
        self._last_grant: float | None = None

    def acquire(self, cancel: threading.Event | None = None) -> Callable[[], None]:
        """Wait for a permit and return the function that releases it.

        Raises:
            OperationCancelled: if *cancel* fires before the permit is
                granted. No permit is issued in that case.
        """
        ticket = object()
        with self._cond:
            self._queue.append(ticket)
            try:
                while True:
                    if cancel is not None and cancel.is_set():
                        raise OperationCancelled("cancelled while waiting for rate limit permit")
                    if self._queue[0] is ticket and not self._held:
                        remaining = self._remaining()
                        if remaining <= 0:
                            break
                        self._cond.wait(min(remaining, _CANCEL_CHECK_INTERVAL))
                    else:
                        self._cond.wait(_CANCEL_CHECK_INTERVAL)
            except BaseException:
                self._queue.remove(ticket)
                self._cond.notify_all()
                raise
            self._queue.popleft()
            self._held = True
            self._last_grant = self._clock()

        released = False

        def release() -> None:
            nonlocal released
            with self._cond:
                if released:
                    return
                released = True
                self._held = False
                self._cond.notify_all()

        return release

    @contextmanager
    def permit(self, cancel: threading.Event | None = None) -> Iterator[None]:
        release = self.acquire(cancel)
        try:
            yield
        finally:
            release()

    def _remaining(self) -> float:
        if self._last_grant is None:
            return 0.0
        return self._last_grant + self.interval - self._clock()
