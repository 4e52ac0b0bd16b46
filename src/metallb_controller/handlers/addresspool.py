"""Adapter between the address-pool aggregator and the dispatcher contract."""

from __future__ import annotations

from typing import Iterable, Optional

from metallb_config.aggregator import AddressPoolAggregator, ReconcileResult
from metallb_config.consts import KIND_ADDRESS_POOL, KIND_CONFIGMAP

from ..events import ReconcileKey, WatchEvent
from .base import ReconcileHandler


class AddressPoolHandler(ReconcileHandler):
    """Reconcile the merged config of a namespace on any pool change.

    ConfigMap events are watched too so a hand-edited or deleted merged
    config is rebuilt.
    """

    kind = KIND_ADDRESS_POOL
    watched_kinds = (KIND_ADDRESS_POOL, KIND_CONFIGMAP)

    def __init__(self, aggregator: AddressPoolAggregator) -> None:
        self._aggregator = aggregator
        self.last_result: Optional[ReconcileResult] = None

    @property
    def aggregator(self) -> AddressPoolAggregator:
        return self._aggregator

    def keys_for(self, event: WatchEvent) -> Iterable[ReconcileKey]:
        resource = event.resource
        if (
            resource.kind == KIND_CONFIGMAP
            and resource.name != self._aggregator.configmap_name
        ):
            return []
        return [ReconcileKey(self.kind, resource.namespace)]

    def reconcile(self, key: ReconcileKey) -> None:
        self.last_result = self._aggregator.reconcile(key.namespace)

    def resync_keys(self) -> Iterable[ReconcileKey]:
        return [
            ReconcileKey(self.kind, namespace)
            for namespace in sorted(self._aggregator.namespaces())
        ]


def build_addresspool_handler(aggregator: AddressPoolAggregator) -> AddressPoolHandler:
    return AddressPoolHandler(aggregator)
