from __future__ import annotations

from typing import Any, Iterable, List, Mapping

import yaml

from metallb_controller.events import Resource
from metallb_config.consts import KIND_ADDRESS_POOL, KIND_METALLB

MANAGED_KINDS = (KIND_ADDRESS_POOL, KIND_METALLB)


def resource_from_manifest(doc: Mapping[str, Any], default_namespace: str) -> Resource:
    kind = doc.get("kind")
    if kind not in MANAGED_KINDS:
        raise ValueError(f"unsupported manifest kind {kind!r}")
    metadata = doc.get("metadata") or {}
    if not isinstance(metadata, dict) or not metadata.get("name"):
        raise ValueError(f"{kind} manifest missing metadata.name")
    spec = doc.get("spec") or {}
    if not isinstance(spec, dict):
        raise ValueError(f"{kind} {metadata['name']}: spec must be a mapping")
    return Resource(
        kind=str(kind),
        namespace=str(metadata.get("namespace") or default_namespace),
        name=str(metadata["name"]),
        spec=dict(spec),
    )


def load_manifests(text: str, default_namespace: str) -> List[Resource]:
    """Parse a multi-document YAML stream of manifests.

    A document may also be a ``List`` object whose ``items`` are manifests.
    """

    resources: List[Resource] = []
    for doc in yaml.safe_load_all(text):
        if doc is None:
            continue
        if not isinstance(doc, dict):
            raise ValueError("manifest documents must be mappings")
        items: Iterable[Any] = doc.get("items", []) if doc.get("kind") == "List" else [doc]
        for item in items:
            resources.append(resource_from_manifest(item, default_namespace))
    return resources
