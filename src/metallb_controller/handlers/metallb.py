"""Adapter between the identity validator and the dispatcher contract."""

from __future__ import annotations

from typing import Iterable

from metallb_config.consts import KIND_METALLB
from metallb_config.validator import IdentityValidator

from ..events import ReconcileKey, WatchEvent
from .base import ReconcileHandler


class MetalLBHandler(ReconcileHandler):
    """Validate each MetalLB instance under its own key."""

    kind = KIND_METALLB
    watched_kinds = (KIND_METALLB,)

    def __init__(self, validator: IdentityValidator) -> None:
        self._validator = validator

    @property
    def validator(self) -> IdentityValidator:
        return self._validator

    def keys_for(self, event: WatchEvent) -> Iterable[ReconcileKey]:
        resource = event.resource
        return [ReconcileKey(self.kind, resource.namespace, resource.name)]

    def reconcile(self, key: ReconcileKey) -> None:
        self._validator.reconcile(key.namespace, key.name)

    def resync_keys(self) -> Iterable[ReconcileKey]:
        return [
            ReconcileKey(self.kind, namespace, name)
            for namespace, name in self._validator.instances()
        ]


def build_metallb_handler(validator: IdentityValidator) -> MetalLBHandler:
    return MetalLBHandler(validator)
