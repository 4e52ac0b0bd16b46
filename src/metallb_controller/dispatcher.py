"""Turn store watch notifications into serialized reconcile calls."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, FrozenSet, List, Optional

from .events import ReconcileKey, WatchEvent
from .exceptions import TransientError
from .handlers import ReconcileHandler
from .store import ResourceStore
from .workqueue import WorkQueue

LOG = logging.getLogger(__name__)


class EventDispatcher:
    """Dispatch store events to registered handlers through a work queue.

    Each handler owns one pipeline identified by ``handler.kind``.  Keys are
    delivered at least once; a transient failure requeues the key after an
    exponential back-off, any other exception marks the pipeline as failed and
    stops feeding it while the other pipelines keep running.
    """

    def __init__(
        self,
        store: ResourceStore,
        *,
        resync_interval: Optional[float] = None,
        retry_base_delay: float = 0.05,
        retry_max_delay: float = 5.0,
    ) -> None:
        self._store = store
        self._resync_interval = resync_interval
        self._retry_base_delay = retry_base_delay
        self._retry_max_delay = retry_max_delay
        self._handlers: Dict[str, ReconcileHandler] = {}
        self._subscriptions: Dict[str, Callable[[], None]] = {}
        self._failed: Dict[str, BaseException] = {}
        self._failures: Dict[ReconcileKey, int] = {}
        self._timers: List[threading.Timer] = []
        self._queue = WorkQueue()
        self._stop_event = threading.Event()
        self._threads: List[threading.Thread] = []
        self._lock = threading.Lock()

    @property
    def queue(self) -> WorkQueue:
        return self._queue

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------
    def register(self, handler: ReconcileHandler) -> None:
        if handler.kind in self._handlers:
            raise ValueError(f"handler for '{handler.kind}' already registered")
        self._handlers[handler.kind] = handler
        for kind in handler.watched_kinds:
            if kind not in self._subscriptions:
                self._subscriptions[kind] = self._store.watch(kind, self.handle)

    def unregister(self, kind: str) -> None:
        self._handlers.pop(kind, None)
        self._failed.pop(kind, None)

    # ------------------------------------------------------------------
    # Event intake
    # ------------------------------------------------------------------
    def handle(self, event: WatchEvent) -> None:
        for handler in list(self._handlers.values()):
            if event.resource.kind not in handler.watched_kinds:
                continue
            for key in handler.keys_for(event):
                self.enqueue(key)

    def enqueue(self, key: ReconcileKey) -> None:
        if key.kind in self._failed:
            self._forget_retries(key.kind)
            LOG.debug("dropping %s: pipeline '%s' has failed", key, key.kind)
            return
        LOG.debug("queueing %s", key)
        self._queue.add(key)

    def resync(self) -> None:
        """Queue every live key of every healthy pipeline."""

        for kind, handler in list(self._handlers.items()):
            if kind in self._failed:
                continue
            for key in handler.resync_keys():
                self.enqueue(key)

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------
    def process_next(self, timeout: Optional[float] = 0) -> bool:
        """Reconcile one queued key; return ``False`` if none was available."""

        key = self._queue.get(timeout=timeout)
        if key is None:
            return False
        try:
            self._reconcile(key)
        finally:
            self._queue.done(key)
        return True

    def drain(self, max_passes: int = 1000) -> int:
        """Process queued keys in the calling thread until the queue is empty."""

        passes = 0
        while passes < max_passes and self.process_next(timeout=0):
            passes += 1
        return passes

    def _reconcile(self, key: ReconcileKey) -> None:
        handler = self._handlers.get(key.kind)
        if handler is None:
            LOG.warning("no handler registered for %s", key)
            return
        if key.kind in self._failed:
            return

        try:
            handler.reconcile(key)
        except TransientError as exc:
            self._requeue(key, exc)
        except Exception as exc:
            LOG.exception("pipeline '%s' failed reconciling %s", key.kind, key)
            self._failed[key.kind] = exc
            self._forget_retries(key.kind)
        else:
            with self._lock:
                self._failures.pop(key, None)

    def _forget_retries(self, kind: str) -> None:
        with self._lock:
            for key in [k for k in self._failures if k.kind == kind]:
                del self._failures[key]

    def _requeue(self, key: ReconcileKey, exc: TransientError) -> None:
        with self._lock:
            attempts = self._failures.get(key, 0) + 1
            self._failures[key] = attempts
        delay = min(
            self._retry_base_delay * (2 ** (attempts - 1)), self._retry_max_delay
        )
        LOG.info(
            "transient error reconciling %s (attempt %d), retrying in %.2fs: %s",
            key,
            attempts,
            delay,
            exc,
        )
        if delay <= 0:
            self.enqueue(key)
            return
        timer = threading.Timer(delay, self.enqueue, args=(key,))
        timer.daemon = True
        with self._lock:
            self._timers = [t for t in self._timers if t.is_alive()]
            self._timers.append(timer)
        timer.start()

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------
    @property
    def retrying(self) -> FrozenSet[ReconcileKey]:
        """Keys currently waiting on a transient-error retry."""

        with self._lock:
            return frozenset(self._failures)

    @property
    def healthy(self) -> bool:
        return not self._failed

    def health(self) -> Dict[str, str]:
        report = {}
        for kind in self._handlers:
            error = self._failed.get(kind)
            report[kind] = "ok" if error is None else f"failed: {error}"
        return report

    # ------------------------------------------------------------------
    # Threaded operation
    # ------------------------------------------------------------------
    def start(self, workers: int = 1, poll_interval: float = 0.5) -> None:
        if workers < 1:
            raise ValueError("at least one worker is required")
        self._stop_event.clear()
        for index in range(workers):
            thread = threading.Thread(
                target=self._worker,
                args=(poll_interval,),
                name=f"reconcile-worker-{index}",
                daemon=True,
            )
            thread.start()
            self._threads.append(thread)
        if self._resync_interval:
            thread = threading.Thread(target=self._resync_loop, name="resync", daemon=True)
            thread.start()
            self._threads.append(thread)
        LOG.info("dispatcher started with %d worker(s)", workers)

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        self._queue.shut_down()
        with self._lock:
            timers, self._timers = self._timers, []
            self._failures.clear()
        for timer in timers:
            timer.cancel()
        for thread in self._threads:
            thread.join(timeout)
        self._threads = []
        for unsubscribe in self._subscriptions.values():
            unsubscribe()
        self._subscriptions = {}
        LOG.info("dispatcher stopped")

    def _worker(self, poll_interval: float) -> None:
        while not self._stop_event.is_set():
            try:
                self.process_next(timeout=poll_interval)
            except Exception:  # pragma: no cover - logged and ignored
                LOG.exception("reconcile worker encountered an error")

    def _resync_loop(self) -> None:
        while not self._stop_event.wait(self._resync_interval):
            try:
                self.resync()
            except Exception:  # pragma: no cover - logged and ignored
                LOG.exception("periodic resync failed")
