"""Identity validation for MetalLB control resources.

Only one MetalLB resource name is acted upon.  Every instance found in the
store is classified on its own, keyed by namespace and name, so a wrongly
named instance can never change what a correctly named one reports.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Sequence, Tuple

from metallb_controller.events import Resource
from metallb_controller.exceptions import NotFoundError
from metallb_controller.store import ResourceStore

from .consts import KIND_METALLB, METALLB_RESOURCE_NAME
from .status import (
    CONDITION_AVAILABLE,
    CONDITION_DEGRADED,
    CONDITION_PROGRESSING,
    StatusReporter,
    build_conditions,
)

LOG = logging.getLogger(__name__)

REASON_INCORRECT_NAME = "IncorrectMetalLBResourceName"
REASON_DEPENDENCY_NOT_READY = "DependencyNotReady"
REASON_CONFIGURATION_VALID = "ConfigurationValid"

Precondition = Callable[[ResourceStore, Resource], Optional[str]]


class IdentityState(Enum):
    PENDING = "Pending"
    AVAILABLE = "Available"
    DEGRADED = "Degraded"


@dataclass(frozen=True)
class Evaluation:
    state: IdentityState
    reason: str
    message: str = ""


@dataclass
class _InstanceRecord:
    uid: Optional[str]
    state: IdentityState = IdentityState.PENDING


def requires(kind: str, name: str) -> Precondition:
    """Precondition failing until ``kind``/``name`` exists in the same namespace."""

    def _check(store: ResourceStore, resource: Resource) -> Optional[str]:
        try:
            store.get(kind, resource.namespace, name)
        except NotFoundError:
            return f"waiting for {kind} {resource.namespace}/{name}"
        return None

    return _check


class IdentityValidator:
    """Classify MetalLB instances as Pending, Available or Degraded.

    A Degraded instance is left alone for as long as it exists: once its
    status has been written no further writes are made for it.

    The record table is shared by all workers and guarded by a lock.  A
    single record is only touched by the worker holding its key, which the
    work queue hands to one worker at a time.
    """

    def __init__(
        self,
        store: ResourceStore,
        reporter: StatusReporter,
        *,
        canonical_name: str = METALLB_RESOURCE_NAME,
        preconditions: Sequence[Precondition] = (),
    ) -> None:
        self._store = store
        self._reporter = reporter
        self._canonical_name = canonical_name
        self._preconditions = list(preconditions)
        self._records: Dict[Tuple[str, str], _InstanceRecord] = {}
        self._lock = threading.Lock()

    @property
    def canonical_name(self) -> str:
        return self._canonical_name

    def state_of(self, namespace: str, name: str) -> Optional[IdentityState]:
        with self._lock:
            record = self._records.get((namespace, name))
        return record.state if record else None

    def evaluate(self, resource: Resource) -> Evaluation:
        if resource.name != self._canonical_name:
            return Evaluation(
                IdentityState.DEGRADED,
                REASON_INCORRECT_NAME,
                f"MetalLB resource name must be '{self._canonical_name}'",
            )
        for check in self._preconditions:
            failure = check(self._store, resource)
            if failure:
                return Evaluation(IdentityState.PENDING, REASON_DEPENDENCY_NOT_READY, failure)
        return Evaluation(IdentityState.AVAILABLE, REASON_CONFIGURATION_VALID)

    def reconcile(self, namespace: str, name: str) -> Optional[IdentityState]:
        """Evaluate one instance and publish its conditions.

        Returns the instance's state, or ``None`` once it no longer exists.
        """

        try:
            resource = self._store.get(KIND_METALLB, namespace, name)
        except NotFoundError:
            with self._lock:
                forgotten = self._records.pop((namespace, name), None)
            if forgotten is not None:
                LOG.debug("forgetting deleted MetalLB %s/%s", namespace, name)
            return None

        with self._lock:
            record = self._records.get((namespace, name))
            if record is None or record.uid != resource.uid:
                # First sighting, or the name was deleted and created again.
                record = _InstanceRecord(uid=resource.uid)
                self._records[(namespace, name)] = record

        if record.state is IdentityState.DEGRADED:
            return record.state

        evaluation = self.evaluate(resource)
        active = {
            IdentityState.AVAILABLE: CONDITION_AVAILABLE,
            IdentityState.DEGRADED: CONDITION_DEGRADED,
            IdentityState.PENDING: CONDITION_PROGRESSING,
        }[evaluation.state]
        self._reporter.apply(
            KIND_METALLB,
            namespace,
            name,
            build_conditions(active, evaluation.reason, evaluation.message),
        )

        if record.state is not evaluation.state:
            LOG.info(
                "MetalLB %s/%s: %s -> %s (%s)",
                namespace,
                name,
                record.state.value,
                evaluation.state.value,
                evaluation.reason,
            )
        record.state = evaluation.state
        return record.state

    def instances(self) -> Sequence[Tuple[str, str]]:
        return [(r.namespace, r.name) for r in self._store.list(KIND_METALLB)]
