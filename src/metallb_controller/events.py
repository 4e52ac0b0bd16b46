"""Event primitives flowing from the store to the dispatcher."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


@dataclass
class Resource:
    """A versioned, namespaced object held by a :class:`ResourceStore`.

    ``spec`` carries user intent, ``status`` is owned by the controller and
    ``data`` holds the string payload of ConfigMap-like kinds.  The store
    assigns ``uid``, ``resource_version`` and ``generation``; callers pass the
    version they read back on writes for optimistic concurrency.
    """

    kind: str
    namespace: str
    name: str
    spec: Dict[str, Any] = field(default_factory=dict)
    status: Dict[str, Any] = field(default_factory=dict)
    data: Dict[str, str] = field(default_factory=dict)
    uid: Optional[str] = None
    resource_version: Optional[str] = None
    generation: int = 0

    @property
    def key(self) -> Tuple[str, str, str]:
        return self.kind, self.namespace, self.name

    def copy(self) -> "Resource":
        return copy.deepcopy(self)


class WatchEventType(Enum):
    ADDED = "Added"
    MODIFIED = "Modified"
    DELETED = "Deleted"


@dataclass(frozen=True)
class WatchEvent:
    """A single change notification published by the store."""

    type: WatchEventType
    resource: Resource


@dataclass(frozen=True)
class ReconcileKey:
    """Identity of a unit of reconcile work.

    Address pools are reconciled per namespace so ``name`` is left empty for
    them; control resources are reconciled per object.
    """

    kind: str
    namespace: str
    name: str = ""

    def __str__(self) -> str:
        if self.name:
            return f"{self.kind}:{self.namespace}/{self.name}"
        return f"{self.kind}:{self.namespace}"
