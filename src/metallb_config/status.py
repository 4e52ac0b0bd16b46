"""Status conditions and the reporter that writes them to the store."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from metallb_controller.exceptions import ConflictError, NotFoundError
from metallb_controller.store import ResourceStore

LOG = logging.getLogger(__name__)

CONDITION_AVAILABLE = "Available"
CONDITION_PROGRESSING = "Progressing"
CONDITION_DEGRADED = "Degraded"
CONDITION_UPGRADEABLE = "Upgradeable"

CONDITION_TYPES = (
    CONDITION_AVAILABLE,
    CONDITION_PROGRESSING,
    CONDITION_DEGRADED,
    CONDITION_UPGRADEABLE,
)

STATUS_TRUE = "True"
STATUS_FALSE = "False"
STATUS_UNKNOWN = "Unknown"


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass(frozen=True)
class Condition:
    """A typed health signal without its transition time.

    The transition time is owned by :func:`merge_conditions`; it only moves
    when ``status`` changes.
    """

    type: str
    status: str
    reason: str
    message: str = ""

    def matches(self, entry: Dict[str, Any]) -> bool:
        return (
            entry.get("type") == self.type
            and entry.get("status") == self.status
            and entry.get("reason") == self.reason
            and entry.get("message", "") == self.message
        )

    def to_dict(self, last_transition_time: str) -> Dict[str, Any]:
        return {
            "type": self.type,
            "status": self.status,
            "reason": self.reason,
            "message": self.message,
            "lastTransitionTime": last_transition_time,
        }


def build_conditions(active: str, reason: str, message: str = "") -> List[Condition]:
    """Return the full condition set with only ``active`` set to True.

    ``Upgradeable`` follows ``Available``.
    """

    if active not in CONDITION_TYPES:
        raise ValueError(f"unknown condition type '{active}'")
    conditions = []
    for condition_type in CONDITION_TYPES:
        is_true = condition_type == active or (
            condition_type == CONDITION_UPGRADEABLE and active == CONDITION_AVAILABLE
        )
        conditions.append(
            Condition(
                type=condition_type,
                status=STATUS_TRUE if is_true else STATUS_FALSE,
                reason=reason,
                message=message,
            )
        )
    return conditions


def find_condition(
    entries: Sequence[Dict[str, Any]], condition_type: str
) -> Optional[Dict[str, Any]]:
    return next((e for e in entries if e.get("type") == condition_type), None)


def conditions_current(
    entries: Sequence[Dict[str, Any]], desired: Sequence[Condition]
) -> bool:
    """Return True when every desired condition is already present as-is."""

    for condition in desired:
        entry = find_condition(entries, condition.type)
        if entry is None or not condition.matches(entry):
            return False
    return True


def merge_conditions(
    entries: Sequence[Dict[str, Any]],
    desired: Sequence[Condition],
    now: str,
) -> List[Dict[str, Any]]:
    """Apply ``desired`` over ``entries``, keeping unrelated condition types."""

    merged = [dict(e) for e in entries]
    for condition in desired:
        entry = find_condition(merged, condition.type)
        if entry is None:
            merged.append(condition.to_dict(now))
            continue
        transition = entry.get("lastTransitionTime") or now
        if entry.get("status") != condition.status:
            transition = now
        entry.clear()
        entry.update(condition.to_dict(transition))
    return merged


class StatusReporter:
    """Write condition sets onto a resource's status sub-object.

    Writes use the store's status-only update so ``spec`` is never touched.
    On a version conflict the object is re-read and the same conditions are
    applied again; they are not re-derived.
    """

    def __init__(
        self,
        store: ResourceStore,
        *,
        clock: Callable[[], str] = utc_timestamp,
        max_retries: int = 5,
    ) -> None:
        self._store = store
        self._clock = clock
        self._max_retries = max_retries

    def apply(
        self,
        kind: str,
        namespace: str,
        name: str,
        conditions: Sequence[Condition],
    ) -> bool:
        """Return True if a status write happened."""

        for attempt in range(1, self._max_retries + 1):
            try:
                resource = self._store.get(kind, namespace, name)
            except NotFoundError:
                LOG.debug("%s %s/%s is gone, skipping status update", kind, namespace, name)
                return False

            entries = resource.status.get("conditions", [])
            if conditions_current(entries, conditions):
                LOG.debug("%s %s/%s conditions already current", kind, namespace, name)
                return False

            resource.status = dict(resource.status)
            resource.status["conditions"] = merge_conditions(
                entries, conditions, self._clock()
            )
            try:
                self._store.update_status(resource)
            except ConflictError:
                LOG.debug(
                    "status update of %s %s/%s conflicted (attempt %d)",
                    kind,
                    namespace,
                    name,
                    attempt,
                )
                continue
            except NotFoundError:
                return False

            LOG.info(
                "%s %s/%s status: %s",
                kind,
                namespace,
                name,
                ", ".join(f"{c.type}={c.status}" for c in conditions),
            )
            return True

        raise ConflictError(
            kind,
            namespace,
            name,
            f"status of {kind} {namespace}/{name} kept conflicting after "
            f"{self._max_retries} attempts",
        )
