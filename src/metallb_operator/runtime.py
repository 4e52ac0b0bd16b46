"""Wire the store, reconcilers and dispatcher together."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from metallb_controller.config_extensions import ControllerSettings
from metallb_controller.dispatcher import EventDispatcher
from metallb_controller.handlers import build_addresspool_handler, build_metallb_handler
from metallb_controller.store import InMemoryStore, ResourceStore
from metallb_config.aggregator import AddressPoolAggregator
from metallb_config.consts import ALL_KINDS
from metallb_config.status import StatusReporter
from metallb_config.validator import IdentityValidator, Precondition


@dataclass
class OperatorRuntime:
    store: ResourceStore
    dispatcher: EventDispatcher
    aggregator: AddressPoolAggregator
    validator: IdentityValidator

    def start(self, workers: int) -> None:
        # Pick up objects that existed before the watches were registered.
        self.dispatcher.resync()
        self.dispatcher.start(workers=workers)

    def stop(self) -> None:
        self.dispatcher.stop()


def build_runtime(
    settings: ControllerSettings,
    store: Optional[ResourceStore] = None,
    *,
    preconditions: Sequence[Precondition] = (),
    retry_base_delay: float = 0.05,
) -> OperatorRuntime:
    store = store or InMemoryStore(ALL_KINDS)
    reporter = StatusReporter(store)
    aggregator = AddressPoolAggregator(
        store,
        reporter,
        configmap_name=settings.configmap_name,
        configmap_key=settings.configmap_key,
        max_conflict_retries=settings.max_conflict_retries,
    )
    validator = IdentityValidator(
        store,
        reporter,
        canonical_name=settings.metallb_name,
        preconditions=preconditions,
    )

    dispatcher = EventDispatcher(
        store,
        resync_interval=settings.resync_interval,
        retry_base_delay=retry_base_delay,
    )
    dispatcher.register(build_addresspool_handler(aggregator))
    dispatcher.register(build_metallb_handler(validator))

    return OperatorRuntime(
        store=store,
        dispatcher=dispatcher,
        aggregator=aggregator,
        validator=validator,
    )
