"""Reconcile handlers exposed to the dispatcher."""

from .base import ReconcileHandler  # noqa: F401
from .addresspool import AddressPoolHandler, build_addresspool_handler  # noqa: F401
from .metallb import MetalLBHandler, build_metallb_handler  # noqa: F401

__all__ = [
    "AddressPoolHandler",
    "MetalLBHandler",
    "ReconcileHandler",
    "build_addresspool_handler",
    "build_metallb_handler",
]
