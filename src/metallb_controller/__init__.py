"""Lightweight controller runtime for the MetalLB reconcilers.

A real operator would sit on top of a Kubernetes client and its informers.
Here the same moving parts are kept small and explicit so the reconcilers can
be exercised end-to-end in tests and in the standalone operator:

* :class:`~metallb_controller.store.ResourceStore` is the contract for the
  versioned object store, with an in-memory implementation;
* :class:`~metallb_controller.dispatcher.EventDispatcher` turns watch
  notifications into a deduplicated, per-key serialized work queue;
* handlers in :mod:`metallb_controller.handlers` adapt the reconcilers to
  the dispatcher.
"""

from .events import ReconcileKey, Resource, WatchEvent, WatchEventType  # noqa: F401
from .store import InMemoryStore, ResourceStore  # noqa: F401

__all__ = [
    "InMemoryStore",
    "ReconcileKey",
    "Resource",
    "ResourceStore",
    "WatchEvent",
    "WatchEventType",
]
