"""Cancellable waits used by the backoff and poll loops."""
from __future__ import annotations

import threading
import time
from typing import Callable, Optional

from .exceptions import OperationCancelled

Sleeper = Callable[[float, Optional[threading.Event]], None]


def sleep(seconds: float, cancel: threading.Event | None = None) -> None:
    """Block for *seconds*, returning early with :exc:`OperationCancelled`
    if *cancel* is set while waiting."""
    if cancel is None:
        time.sleep(seconds)
        return
    if cancel.wait(seconds):
        raise OperationCancelled("operation cancelled while waiting")
