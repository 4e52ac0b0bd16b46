"""Deduplicating work queue with per-key serialization."""

from __future__ import annotations

import threading
from collections import deque
from typing import Deque, Optional, Set

from .events import ReconcileKey


class WorkQueue:
    """FIFO of reconcile keys.

    A key waiting in the queue is held once no matter how often it is added.
    A key handed out by :meth:`get` is *processing* until :meth:`done` is
    called; adding it meanwhile marks it dirty and it is queued again on
    ``done``, so no two workers ever hold the same key.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._queue: Deque[ReconcileKey] = deque()
        self._dirty: Set[ReconcileKey] = set()
        self._processing: Set[ReconcileKey] = set()
        self._shutting_down = False

    def add(self, key: ReconcileKey) -> None:
        with self._cond:
            if self._shutting_down or key in self._dirty:
                return
            self._dirty.add(key)
            if key in self._processing:
                return
            self._queue.append(key)
            self._cond.notify()

    def get(self, timeout: Optional[float] = None) -> Optional[ReconcileKey]:
        """Pop the next key, waiting up to ``timeout`` seconds.

        Returns ``None`` on timeout or once the queue is shut down.
        """

        with self._cond:
            self._cond.wait_for(
                lambda: self._queue or self._shutting_down, timeout=timeout
            )
            if not self._queue:
                return None
            key = self._queue.popleft()
            self._processing.add(key)
            self._dirty.discard(key)
            return key

    def done(self, key: ReconcileKey) -> None:
        with self._cond:
            self._processing.discard(key)
            if key in self._dirty:
                self._queue.append(key)
                self._cond.notify()

    def shut_down(self) -> None:
        with self._cond:
            self._shutting_down = True
            self._cond.notify_all()

    @property
    def shutting_down(self) -> bool:
        return self._shutting_down

    def is_processing(self, key: ReconcileKey) -> bool:
        with self._cond:
            return key in self._processing

    def __len__(self) -> int:
        with self._cond:
            return len(self._queue)
