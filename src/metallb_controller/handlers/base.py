"""Abstract interface for reconcile handlers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, Sequence

from ..events import ReconcileKey, WatchEvent


class ReconcileHandler(ABC):
    """Base class for handlers managed by :class:`EventDispatcher`.

    ``kind`` names the pipeline and is the ``kind`` of every key the handler
    produces.  ``watched_kinds`` lists the store kinds whose events feed it.
    """

    kind: str = ""
    watched_kinds: Sequence[str] = ()

    @abstractmethod
    def keys_for(self, event: WatchEvent) -> Iterable[ReconcileKey]:
        """Map a store event onto the keys that need reconciling."""

    @abstractmethod
    def reconcile(self, key: ReconcileKey) -> None:
        """Bring the derived state for ``key`` in line with the store."""

    @abstractmethod
    def resync_keys(self) -> Iterable[ReconcileKey]:
        """Return every key currently worth re-checking on a resync tick."""
