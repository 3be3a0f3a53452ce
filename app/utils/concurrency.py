"""
Concurrency utilities.

Provides a `synchronized` decorator that acquires an instance `_lock` if
present, and a `single_flight` decorator that skips a call while a previous
call on the same instance is still running.
"""

from __future__ import annotations

import logging
import threading
from functools import wraps
from typing import Callable

logger = logging.getLogger(__name__)


def synchronized(func: Callable) -> Callable:
    """Decorator that acquires `self._lock` if present on the instance.

    If no `_lock` attribute exists on `self`, the function is executed
    without locking.
    """

    @wraps(func)
    def _wrapped(*args, **kwargs):
        self = args[0] if args else None
        lock = getattr(self, "_lock", None)
        if lock is None:
            return func(*args, **kwargs)
        with lock:
            return func(*args, **kwargs)

    return _wrapped


def single_flight(func: Callable) -> Callable:
    """Decorator that runs at most one call per instance at a time.

    Overlapping calls return ``None`` immediately instead of waiting. The
    guard lock is created lazily as ``self._flight_lock`` and the number of
    skipped calls is kept in ``self._skipped_runs``.
    """

    @wraps(func)
    def _wrapped(self, *args, **kwargs):
        lock = self.__dict__.setdefault("_flight_lock", threading.Lock())
        if not lock.acquire(blocking=False):
            self._skipped_runs = getattr(self, "_skipped_runs", 0) + 1
            logger.info(f"{type(self).__name__}.{func.__name__} still running; skipping this run")
            return None
        try:
            return func(self, *args, **kwargs)
        finally:
            lock.release()

    return _wrapped
