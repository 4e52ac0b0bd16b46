"""Entry point for the standalone MetalLB operator."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path
from threading import Event

from .config import load_config
from .exporter import ConfigFileExporter
from .runtime import build_runtime
from .watchers import FileManifestWatcher

LOG = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run the MetalLB operator")
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("/etc/metallb-operator/operator.yaml"),
        help="Path to the operator configuration file",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    config = load_config(args.config)
    settings = config.controller.to_settings()

    runtime = build_runtime(settings)

    exporter = None
    if config.exporter is not None:
        exporter = ConfigFileExporter(
            config.exporter.output_dir,
            configmap_name=settings.configmap_name,
            configmap_key=settings.configmap_key,
        )
        exporter.attach(runtime.store)

    stop_event = Event()

    runtime.start(workers=settings.workers)

    watchers = []
    for watcher_cfg in config.watchers:
        if watcher_cfg.type == "file":
            watcher = FileManifestWatcher(
                store=runtime.store,
                path=watcher_cfg.path,
                interval=watcher_cfg.interval,
                stop_event=stop_event,
                namespace=settings.namespace,
            )
        else:
            raise ValueError(f"unsupported watcher type '{watcher_cfg.type}'")
        # Perform an initial poll so we react immediately
        try:
            watcher.poll()
        except Exception:  # pragma: no cover - logged inside watcher
            LOG.exception("initial poll failed for watcher %s", watcher_cfg.path)
        watcher.start()
        watchers.append(watcher)

    if not watchers:
        LOG.warning("no watchers configured; operator will idle")

    def _shutdown(signum, frame):  # pragma: no cover - signal handler
        LOG.info("received signal %s, shutting down", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    exit_code = 0
    try:
        while not stop_event.is_set():
            if not runtime.dispatcher.healthy:
                LOG.error("pipeline failure: %s", runtime.dispatcher.health())
                exit_code = 1
                stop_event.set()
                break
            stop_event.wait(1.0)
    except KeyboardInterrupt:  # pragma: no cover - fallback if signal not set
        stop_event.set()

    for watcher in watchers:
        watcher.join()
    runtime.stop()
    if exporter is not None:
        exporter.detach()

    LOG.info("MetalLB operator stopped")
    return exit_code


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
