"""Resource store contract and the in-memory implementation.

The controller never talks to a cluster API directly; it consumes the
:class:`ResourceStore` interface below.  :class:`InMemoryStore` implements it
with the same optimistic-concurrency rules a real API server applies, which is
enough to run the reconcilers standalone and in unit tests.
"""

from __future__ import annotations

import itertools
import logging
import threading
import uuid
from abc import ABC, abstractmethod
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .events import Resource, WatchEvent, WatchEventType
from .exceptions import (
    AlreadyExistsError,
    ConflictError,
    KindNotRegisteredError,
    NotFoundError,
)

LOG = logging.getLogger(__name__)

WatchCallback = Callable[[WatchEvent], None]


class ResourceStore(ABC):
    """Versioned, namespaced key-value store of typed resources."""

    @abstractmethod
    def get(self, kind: str, namespace: str, name: str) -> Resource:
        """Return a copy of the object or raise :class:`NotFoundError`."""

    @abstractmethod
    def list(self, kind: str, namespace: Optional[str] = None) -> List[Resource]:
        """Return copies of every object of ``kind`` (optionally per namespace)."""

    @abstractmethod
    def create(self, resource: Resource) -> Resource:
        """Store a new object, raising :class:`AlreadyExistsError` on clashes."""

    @abstractmethod
    def update(self, resource: Resource) -> Resource:
        """Replace spec/data of an existing object.

        When ``resource.resource_version`` is set it must match the stored
        version, otherwise :class:`ConflictError` is raised.
        """

    @abstractmethod
    def update_status(self, resource: Resource) -> Resource:
        """Replace only the status sub-object, with the same version rule."""

    @abstractmethod
    def delete(
        self,
        kind: str,
        namespace: str,
        name: str,
        resource_version: Optional[str] = None,
    ) -> None:
        """Remove an object or raise :class:`NotFoundError`."""

    @abstractmethod
    def watch(self, kind: str, callback: WatchCallback) -> Callable[[], None]:
        """Subscribe ``callback`` to changes of ``kind``; return an unsubscriber."""


class InMemoryStore(ResourceStore):
    """Thread-safe store keeping objects in a dictionary.

    Watch callbacks are invoked synchronously in the writer's thread once the
    store lock has been released, in the order the writes were committed.
    """

    def __init__(self, kinds: Iterable[str]) -> None:
        self._kinds = set(kinds)
        self._objects: Dict[Tuple[str, str, str], Resource] = {}
        self._watchers: Dict[str, List[WatchCallback]] = {k: [] for k in self._kinds}
        self._lock = threading.RLock()
        self._versions = itertools.count(1)

    @property
    def kinds(self) -> frozenset:
        return frozenset(self._kinds)

    def _check_kind(self, kind: str) -> None:
        if kind not in self._kinds:
            raise KindNotRegisteredError(kind)

    def _next_version(self) -> str:
        return str(next(self._versions))

    def get(self, kind: str, namespace: str, name: str) -> Resource:
        self._check_kind(kind)
        with self._lock:
            obj = self._objects.get((kind, namespace, name))
            if obj is None:
                raise NotFoundError(kind, namespace, name)
            return obj.copy()

    def list(self, kind: str, namespace: Optional[str] = None) -> List[Resource]:
        self._check_kind(kind)
        with self._lock:
            return [
                obj.copy()
                for (obj_kind, obj_ns, _), obj in sorted(self._objects.items())
                if obj_kind == kind and (namespace is None or obj_ns == namespace)
            ]

    def create(self, resource: Resource) -> Resource:
        self._check_kind(resource.kind)
        with self._lock:
            if resource.key in self._objects:
                raise AlreadyExistsError(*resource.key)
            stored = resource.copy()
            stored.uid = str(uuid.uuid4())
            stored.resource_version = self._next_version()
            stored.generation = 1
            self._objects[stored.key] = stored
            result = stored.copy()
        LOG.debug("created %s %s/%s", *resource.key)
        self._notify(WatchEventType.ADDED, result)
        return result.copy()

    def _current_for_write(self, resource: Resource) -> Resource:
        current = self._objects.get(resource.key)
        if current is None:
            raise NotFoundError(*resource.key)
        if (
            resource.resource_version is not None
            and resource.resource_version != current.resource_version
        ):
            raise ConflictError(*resource.key)
        return current

    def update(self, resource: Resource) -> Resource:
        self._check_kind(resource.kind)
        with self._lock:
            current = self._current_for_write(resource)
            stored = current.copy()
            if resource.spec != current.spec:
                stored.generation += 1
            stored.spec = resource.copy().spec
            stored.data = dict(resource.data)
            stored.resource_version = self._next_version()
            self._objects[stored.key] = stored
            result = stored.copy()
        self._notify(WatchEventType.MODIFIED, result)
        return result.copy()

    def update_status(self, resource: Resource) -> Resource:
        self._check_kind(resource.kind)
        with self._lock:
            current = self._current_for_write(resource)
            stored = current.copy()
            stored.status = resource.copy().status
            stored.resource_version = self._next_version()
            self._objects[stored.key] = stored
            result = stored.copy()
        self._notify(WatchEventType.MODIFIED, result)
        return result.copy()

    def delete(
        self,
        kind: str,
        namespace: str,
        name: str,
        resource_version: Optional[str] = None,
    ) -> None:
        self._check_kind(kind)
        with self._lock:
            current = self._objects.get((kind, namespace, name))
            if current is None:
                raise NotFoundError(kind, namespace, name)
            if resource_version is not None and resource_version != current.resource_version:
                raise ConflictError(kind, namespace, name)
            del self._objects[(kind, namespace, name)]
        LOG.debug("deleted %s %s/%s", kind, namespace, name)
        self._notify(WatchEventType.DELETED, current)

    def watch(self, kind: str, callback: WatchCallback) -> Callable[[], None]:
        self._check_kind(kind)
        with self._lock:
            self._watchers[kind].append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                if callback in self._watchers[kind]:
                    self._watchers[kind].remove(callback)

        return _unsubscribe

    def _notify(self, event_type: WatchEventType, resource: Resource) -> None:
        with self._lock:
            callbacks = list(self._watchers[resource.kind])
        for callback in callbacks:
            callback(WatchEvent(event_type, resource.copy()))
