"""MetalLB address-pool configuration reconcilers.

This package holds the logic that turns declared resources into derived
state:

* folding every AddressPool of a namespace into the single ``config``
  ConfigMap consumed by the MetalLB speaker and controller;
* rendering and parsing that document deterministically so a rebuilt
  document can be compared with the stored one;
* validating that MetalLB control resources carry the one supported name and
  publishing the verdict as status conditions.

Nothing here talks to a cluster directly.  All reads and writes go through the
:class:`metallb_controller.store.ResourceStore` interface.
"""

from .aggregator import AddressPoolAggregator, ReconcileAction, ReconcileResult  # noqa: F401
from .config import AddressPool, Protocol  # noqa: F401
from .validator import IdentityState, IdentityValidator  # noqa: F401

__all__ = [
    "AddressPool",
    "AddressPoolAggregator",
    "IdentityState",
    "IdentityValidator",
    "Protocol",
    "ReconcileAction",
    "ReconcileResult",
]
