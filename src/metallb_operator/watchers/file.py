"""File-based manifest watcher."""

from __future__ import annotations

import logging
from pathlib import Path
from threading import Event, Thread
from typing import Dict, Tuple

import yaml

from metallb_controller.events import Resource
from metallb_controller.exceptions import (
    AlreadyExistsError,
    ConflictError,
    NotFoundError,
)
from metallb_controller.store import ResourceStore

from .utils import load_manifests

LOG = logging.getLogger(__name__)

ResourceKey = Tuple[str, str, str]


class FileManifestWatcher(Thread):
    """Poll a YAML manifests file and apply its objects to the store.

    The watcher plays the part of the user: objects that appear in the file
    are created, changed specs are updated and objects that disappear from
    the file are deleted.  Only objects it applied itself are ever deleted.
    """

    def __init__(
        self,
        store: ResourceStore,
        path: Path,
        interval: float,
        stop_event: Event,
        namespace: str,
    ) -> None:
        super().__init__(daemon=True)
        self._store = store
        self._path = Path(path)
        self._interval = interval
        self._stop_event = stop_event
        self._namespace = namespace
        self._state: Dict[ResourceKey, dict] = {}

    def run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.poll()
            except Exception:  # pragma: no cover - logged below
                LOG.exception("manifest watcher encountered an error")
            self._stop_event.wait(self._interval)

    def poll(self) -> None:
        if not self._path.exists():
            LOG.debug("manifests file %s does not exist yet", self._path)
            return

        try:
            resources = load_manifests(self._path.read_text(), self._namespace)
        except yaml.YAMLError as exc:
            LOG.warning("failed to parse manifests file %s: %s", self._path, exc)
            return
        except ValueError as exc:
            LOG.warning("invalid manifests file %s: %s", self._path, exc)
            return

        desired = {resource.key: resource for resource in resources}

        for key, resource in desired.items():
            if self._state.get(key) == resource.spec:
                continue
            if self._apply(resource):
                self._state[key] = resource.spec

        for key in set(self._state) - set(desired):
            LOG.debug("%s %s/%s removed from manifests", *key)
            try:
                self._store.delete(*key)
            except NotFoundError:
                pass
            del self._state[key]

    def _apply(self, resource: Resource) -> bool:
        try:
            self._store.create(resource)
            LOG.debug("applied new %s %s/%s", *resource.key)
            return True
        except AlreadyExistsError:
            pass

        try:
            current = self._store.get(*resource.key)
        except NotFoundError:
            # Deleted between create and get; the next poll creates it.
            return False
        if current.spec == resource.spec:
            return True
        current.spec = resource.spec
        try:
            self._store.update(current)
        except (ConflictError, NotFoundError) as exc:
            LOG.debug("update of %s %s/%s deferred: %s", *resource.key, exc)
            return False
        LOG.debug("applied updated %s %s/%s", *resource.key)
        return True
