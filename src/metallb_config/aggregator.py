"""Merge engine folding AddressPool resources into the MetalLB ConfigMap.

Every reconcile re-reads the full set of pools in the namespace and rebuilds
the document from scratch; nothing is cached between passes.  The rebuilt
document is compared with the stored ConfigMap and written only when it
differs, using the ConfigMap's resource version so concurrent writers are
detected and the whole pass is retried.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple

from metallb_controller.events import Resource
from metallb_controller.exceptions import ConflictError, InvalidAddressPoolError, NotFoundError
from metallb_controller.store import ResourceStore

from .codec import configs_equivalent, pool_from_resource, render_config
from .config import AddressPool
from .consts import CONFIGMAP_KEY, CONFIGMAP_NAME, KIND_ADDRESS_POOL, KIND_CONFIGMAP
from .status import (
    CONDITION_AVAILABLE,
    CONDITION_DEGRADED,
    STATUS_FALSE,
    STATUS_TRUE,
    Condition,
    StatusReporter,
)

LOG = logging.getLogger(__name__)

REASON_CONFIG_APPLIED = "ConfigApplied"
REASON_INVALID_POOL = "InvalidAddressPool"


class ReconcileAction(Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    UNCHANGED = "unchanged"


@dataclass
class ReconcileResult:
    """Outcome of one :meth:`AddressPoolAggregator.reconcile` call."""

    namespace: str
    action: ReconcileAction
    pools: List[AddressPool] = field(default_factory=list)
    config_text: Optional[str] = None
    invalid: Dict[str, str] = field(default_factory=dict)
    attempts: int = 1


def pool_conditions(error: Optional[str] = None) -> List[Condition]:
    if error is None:
        return [
            Condition(CONDITION_AVAILABLE, STATUS_TRUE, REASON_CONFIG_APPLIED),
            Condition(CONDITION_DEGRADED, STATUS_FALSE, REASON_CONFIG_APPLIED),
        ]
    return [
        Condition(CONDITION_AVAILABLE, STATUS_FALSE, REASON_INVALID_POOL, error),
        Condition(CONDITION_DEGRADED, STATUS_TRUE, REASON_INVALID_POOL, error),
    ]


class AddressPoolAggregator:
    """Keep one merged configuration artifact per namespace."""

    def __init__(
        self,
        store: ResourceStore,
        reporter: Optional[StatusReporter] = None,
        *,
        configmap_name: str = CONFIGMAP_NAME,
        configmap_key: str = CONFIGMAP_KEY,
        max_conflict_retries: int = 5,
    ) -> None:
        self._store = store
        self._reporter = reporter
        self._configmap_name = configmap_name
        self._configmap_key = configmap_key
        self._max_conflict_retries = max_conflict_retries

    @property
    def configmap_name(self) -> str:
        return self._configmap_name

    # ------------------------------------------------------------------
    # Desired state
    # ------------------------------------------------------------------
    def desired_pools(self, namespace: str) -> Tuple[List[AddressPool], Dict[str, str]]:
        """Decode every pool in ``namespace``.

        Returns the valid pools ordered by name and a mapping of invalid pool
        names to the decode error.
        """

        pools: List[AddressPool] = []
        invalid: Dict[str, str] = {}
        for resource in self._store.list(KIND_ADDRESS_POOL, namespace):
            try:
                pools.append(pool_from_resource(resource))
            except InvalidAddressPoolError as exc:
                LOG.warning("skipping AddressPool %s/%s: %s", namespace, resource.name, exc.reason)
                invalid[resource.name] = exc.reason
        pools.sort(key=lambda pool: pool.name)
        return pools, invalid

    # ------------------------------------------------------------------
    # Reconcile
    # ------------------------------------------------------------------
    def reconcile(self, namespace: str) -> ReconcileResult:
        """Make the namespace's ConfigMap match its current pools.

        Version conflicts restart the pass from the listing step; after
        ``max_conflict_retries`` restarts the conflict is raised so the caller
        can requeue.
        """

        for attempt in range(1, self._max_conflict_retries + 2):
            try:
                result = self._reconcile_once(namespace)
            except ConflictError as exc:
                LOG.debug(
                    "conflict reconciling namespace %s (attempt %d): %s",
                    namespace,
                    attempt,
                    exc,
                )
                continue
            result.attempts = attempt
            self._report_pool_status(namespace, result)
            return result

        raise ConflictError(
            KIND_CONFIGMAP,
            namespace,
            self._configmap_name,
            f"merged config for namespace {namespace} kept conflicting after "
            f"{self._max_conflict_retries} retries",
        )

    def _reconcile_once(self, namespace: str) -> ReconcileResult:
        pools, invalid = self.desired_pools(namespace)
        existing = self._get_configmap(namespace)

        if not pools:
            if existing is None:
                LOG.debug("namespace %s has no pools and no config", namespace)
                return ReconcileResult(namespace, ReconcileAction.UNCHANGED, invalid=invalid)
            try:
                self._store.delete(
                    KIND_CONFIGMAP,
                    namespace,
                    self._configmap_name,
                    resource_version=existing.resource_version,
                )
            except NotFoundError:
                return ReconcileResult(namespace, ReconcileAction.UNCHANGED, invalid=invalid)
            LOG.info("deleted merged config %s/%s", namespace, self._configmap_name)
            return ReconcileResult(namespace, ReconcileAction.DELETED, invalid=invalid)

        text = render_config(pools)

        if existing is None:
            self._store.create(
                Resource(
                    kind=KIND_CONFIGMAP,
                    namespace=namespace,
                    name=self._configmap_name,
                    data={self._configmap_key: text},
                )
            )
            LOG.info(
                "created merged config %s/%s with %d pool(s)",
                namespace,
                self._configmap_name,
                len(pools),
            )
            return ReconcileResult(namespace, ReconcileAction.CREATED, pools, text, invalid)

        current = existing.data.get(self._configmap_key)
        if current is not None and configs_equivalent(current, text):
            LOG.debug("merged config %s/%s already up to date", namespace, self._configmap_name)
            return ReconcileResult(namespace, ReconcileAction.UNCHANGED, pools, current, invalid)

        existing.data = dict(existing.data)
        existing.data[self._configmap_key] = text
        try:
            self._store.update(existing)
        except NotFoundError as exc:
            # Deleted underneath us; start over and recreate it.
            raise ConflictError(*existing.key) from exc
        LOG.info(
            "updated merged config %s/%s with %d pool(s)",
            namespace,
            self._configmap_name,
            len(pools),
        )
        return ReconcileResult(namespace, ReconcileAction.UPDATED, pools, text, invalid)

    def _report_pool_status(self, namespace: str, result: ReconcileResult) -> None:
        if self._reporter is None:
            return
        for pool in result.pools:
            self._reporter.apply(KIND_ADDRESS_POOL, namespace, pool.name, pool_conditions())
        for name, reason in result.invalid.items():
            self._reporter.apply(KIND_ADDRESS_POOL, namespace, name, pool_conditions(reason))

    # ------------------------------------------------------------------
    # Introspection helpers
    # ------------------------------------------------------------------
    def _get_configmap(self, namespace: str) -> Optional[Resource]:
        try:
            return self._store.get(KIND_CONFIGMAP, namespace, self._configmap_name)
        except NotFoundError:
            return None

    def current_config(self, namespace: str) -> Optional[str]:
        configmap = self._get_configmap(namespace)
        if configmap is None:
            return None
        return configmap.data.get(self._configmap_key)

    def namespaces(self) -> Set[str]:
        """Namespaces holding pools or a merged config."""

        found = {r.namespace for r in self._store.list(KIND_ADDRESS_POOL)}
        found.update(
            r.namespace
            for r in self._store.list(KIND_CONFIGMAP)
            if r.name == self._configmap_name
        )
        return found
