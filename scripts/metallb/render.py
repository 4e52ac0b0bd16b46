#!/usr/bin/env python3
"""Render the merged MetalLB configuration for a manifests file offline."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[2]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from metallb_controller.config_extensions import default_namespace  # noqa: E402
from metallb_controller.store import InMemoryStore  # noqa: E402
from metallb_config.aggregator import AddressPoolAggregator  # noqa: E402
from metallb_config.consts import ALL_KINDS, KIND_ADDRESS_POOL  # noqa: E402
from metallb_operator.watchers.utils import load_manifests  # noqa: E402


LOG = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--manifests",
        type=Path,
        default=Path("deploy/metallb/addresspools.yaml"),
        help="Path to a YAML stream of AddressPool manifests",
    )
    parser.add_argument(
        "--namespace",
        default=default_namespace(),
        help="Namespace used for manifests without metadata.namespace",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Directory where <namespace>.yaml files are written "
             "(prints to stdout when omitted)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    store = InMemoryStore(ALL_KINDS)
    resources = load_manifests(args.manifests.read_text(), args.namespace)
    for resource in resources:
        if resource.kind != KIND_ADDRESS_POOL:
            LOG.debug("ignoring %s %s", resource.kind, resource.name)
            continue
        store.create(resource)

    aggregator = AddressPoolAggregator(store)
    namespaces = sorted(aggregator.namespaces())
    if not namespaces:
        LOG.warning("No address pools found in %s", args.manifests)

    for namespace in namespaces:
        result = aggregator.reconcile(namespace)
        for name, reason in result.invalid.items():
            LOG.warning("AddressPool %s/%s skipped: %s", namespace, name, reason)
        if result.config_text is None:
            continue
        if args.output_dir is None:
            sys.stdout.write(f"# namespace: {namespace}\n{result.config_text}")
            continue
        args.output_dir.mkdir(parents=True, exist_ok=True)
        output_path = args.output_dir / f"{namespace}.yaml"
        output_path.write_text(result.config_text)
        LOG.info("Rendered config written to %s", output_path)


if __name__ == "__main__":
    main()
