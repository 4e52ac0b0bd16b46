"""Serialization of address pools into the MetalLB configuration document."""

from __future__ import annotations

import ipaddress
from typing import Any, Dict, Iterable, List, Mapping

import yaml

from metallb_controller.events import Resource
from metallb_controller.exceptions import ConfigParseError, InvalidAddressPoolError

from .config import AddressPool, Protocol
from .consts import ADDRESS_POOLS_KEY


def entry_to_dict(pool: AddressPool) -> Dict[str, Any]:
    """Return the document form of ``pool``.

    ``auto-assign`` is only written when it differs from MetalLB's default.
    """

    entry: Dict[str, Any] = {"name": pool.name, "protocol": pool.protocol.value}
    if pool.auto_assign is False:
        entry["auto-assign"] = False
    entry["addresses"] = list(pool.addresses)
    return entry


def render_config(pools: Iterable[AddressPool]) -> str:
    document = {ADDRESS_POOLS_KEY: [entry_to_dict(pool) for pool in pools]}
    return yaml.safe_dump(document, sort_keys=False, default_flow_style=False)


def _entry_from_dict(entry: Any, index: int) -> AddressPool:
    if not isinstance(entry, dict):
        raise ConfigParseError(f"address pool #{index} must be a mapping")
    try:
        name = entry["name"]
        protocol = Protocol.parse(str(entry["protocol"]))
    except KeyError as exc:
        raise ConfigParseError(f"address pool #{index} missing {exc}") from exc
    except ValueError as exc:
        raise ConfigParseError(f"address pool #{index}: {exc}") from exc

    addresses = entry.get("addresses") or []
    if not isinstance(addresses, list):
        raise ConfigParseError(f"address pool '{name}': addresses must be a list")
    auto_assign = entry.get("auto-assign")
    if auto_assign is not None and not isinstance(auto_assign, bool):
        raise ConfigParseError(f"address pool '{name}': auto-assign must be a boolean")

    return AddressPool.create(
        name=str(name),
        protocol=protocol,
        addresses=[str(a) for a in addresses],
        auto_assign=auto_assign,
    )


def parse_config(text: str) -> List[AddressPool]:
    """Parse a configuration document back into pools.

    Blank text means no pools.  A missing ``auto-assign`` is kept as ``None``,
    which :attr:`AddressPool.effective_auto_assign` reads as ``True``.
    """

    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigParseError(f"configuration is not valid YAML: {exc}") from exc

    if document is None:
        return []
    if not isinstance(document, dict):
        raise ConfigParseError("configuration must be a mapping")
    entries = document.get(ADDRESS_POOLS_KEY) or []
    if not isinstance(entries, list):
        raise ConfigParseError(f"'{ADDRESS_POOLS_KEY}' must be a list")
    return [_entry_from_dict(entry, index) for index, entry in enumerate(entries)]


def _normalized_document(text: str) -> Any:
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigParseError(f"configuration is not valid YAML: {exc}") from exc
    if document is None:
        return {}
    if isinstance(document, dict) and isinstance(document.get(ADDRESS_POOLS_KEY), list):
        document = dict(document)
        document[ADDRESS_POOLS_KEY] = [
            {k: v for k, v in entry.items() if not (k == "auto-assign" and v is True)}
            if isinstance(entry, dict)
            else entry
            for entry in document[ADDRESS_POOLS_KEY]
        ]
    return document


def configs_equivalent(left: str, right: str) -> bool:
    """Compare two documents structurally, ignoring formatting.

    The whole document is compared, so keys the renderer never writes make
    the documents differ.  ``auto-assign: true`` equals an omitted value.
    """

    try:
        return _normalized_document(left) == _normalized_document(right)
    except ConfigParseError:
        return False


def validate_address(expression: str) -> None:
    """Check ``expression`` is a CIDR, a single IP or an ``a-b`` IP range."""

    value = expression.strip()
    if not value:
        raise ValueError("address expression cannot be empty")
    if "/" in value:
        ipaddress.ip_network(value, strict=False)
        return
    if "-" in value:
        start_raw, _, end_raw = value.partition("-")
        start = ipaddress.ip_address(start_raw.strip())
        end = ipaddress.ip_address(end_raw.strip())
        if start.version != end.version:
            raise ValueError(f"range '{value}' mixes address families")
        if start > end:
            raise ValueError(f"range '{value}' ends before it starts")
        return
    ipaddress.ip_address(value)


def pool_from_spec(name: str, spec: Mapping[str, Any]) -> AddressPool:
    """Build an :class:`AddressPool` from a stored resource spec."""

    try:
        protocol = Protocol.parse(str(spec.get("protocol", "")))
    except ValueError as exc:
        raise InvalidAddressPoolError(name, str(exc)) from exc

    addresses = spec.get("addresses", [])
    if addresses is None:
        addresses = []
    if not isinstance(addresses, list):
        raise InvalidAddressPoolError(name, "addresses must be a list")
    for address in addresses:
        if not isinstance(address, str):
            raise InvalidAddressPoolError(name, f"address {address!r} is not a string")
        try:
            validate_address(address)
        except ValueError as exc:
            raise InvalidAddressPoolError(name, f"address '{address}': {exc}") from exc

    auto_assign = spec.get("autoAssign")
    if auto_assign is not None and not isinstance(auto_assign, bool):
        raise InvalidAddressPoolError(name, "autoAssign must be a boolean")

    return AddressPool.create(
        name=name,
        protocol=protocol,
        addresses=addresses,
        auto_assign=auto_assign,
    )


def pool_from_resource(resource: Resource) -> AddressPool:
    return pool_from_spec(resource.name, resource.spec or {})
