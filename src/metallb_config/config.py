"""Configuration data structures for the address-pool reconciler.

These dataclasses describe the address pools users declare and the entries
the merged MetalLB configuration is built from.  They carry no store
plumbing so the codec and the aggregator can be exercised in isolation.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple


class Protocol(Enum):
    """Announcement protocols an address pool may use.

    Only layer2 is handled today; new members only need a value here and
    the codec picks them up.
    """

    LAYER2 = "layer2"

    @classmethod
    def parse(cls, value: str) -> "Protocol":
        for member in cls:
            if member.value == value:
                return member
        raise ValueError(f"unsupported protocol '{value}'")


@dataclass(frozen=True)
class AddressPool:
    """One address pool as declared by a user.

    Attributes
    ----------
    name:
        Pool name, unique within its namespace.
    protocol:
        Announcement protocol.
    addresses:
        Range, CIDR or single-address expressions in declaration order.
    auto_assign:
        ``None`` when the user did not set the field, which MetalLB reads as
        ``True``.
    """

    name: str
    protocol: Protocol
    addresses: Tuple[str, ...] = ()
    auto_assign: Optional[bool] = None

    @classmethod
    def create(
        cls,
        name: str,
        addresses: Sequence[str] = (),
        protocol: Protocol = Protocol.LAYER2,
        auto_assign: Optional[bool] = None,
    ) -> "AddressPool":
        return cls(
            name=name,
            protocol=protocol,
            addresses=tuple(addresses),
            auto_assign=auto_assign,
        )

    @property
    def effective_auto_assign(self) -> bool:
        return True if self.auto_assign is None else self.auto_assign
