"""YAML configuration loader for the standalone MetalLB operator."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

import yaml

from metallb_controller.config_extensions import ControllerSettings, default_namespace
from metallb_config.consts import CONFIGMAP_KEY, CONFIGMAP_NAME, METALLB_RESOURCE_NAME


@dataclass
class ControllerConfig:
    namespace: str
    metallb_name: str = METALLB_RESOURCE_NAME
    configmap_name: str = CONFIGMAP_NAME
    configmap_key: str = CONFIGMAP_KEY
    workers: int = 2
    resync_interval: Optional[float] = 300.0
    max_conflict_retries: int = 5

    def to_settings(self) -> ControllerSettings:
        return ControllerSettings(
            namespace=self.namespace,
            metallb_name=self.metallb_name,
            configmap_name=self.configmap_name,
            configmap_key=self.configmap_key,
            workers=self.workers,
            resync_interval=self.resync_interval,
            max_conflict_retries=self.max_conflict_retries,
        )


@dataclass
class WatcherConfig:
    type: str
    path: Path
    interval: float = 5.0


@dataclass
class ExporterConfig:
    output_dir: Path


@dataclass
class OperatorConfig:
    controller: ControllerConfig
    watchers: Sequence[WatcherConfig] = field(default_factory=list)
    exporter: Optional[ExporterConfig] = None


def _parse_controller(section: dict) -> ControllerConfig:
    if not isinstance(section, dict):
        raise ValueError("'controller' section must be a mapping")
    workers = int(section.get("workers", 2))
    if workers < 1:
        raise ValueError("'controller.workers' must be at least 1")
    retries = int(section.get("max_conflict_retries", 5))
    if retries < 0:
        raise ValueError("'controller.max_conflict_retries' cannot be negative")
    resync = float(section.get("resync_interval", 300.0))

    return ControllerConfig(
        namespace=str(section.get("namespace") or default_namespace()),
        metallb_name=str(section.get("metallb_name", METALLB_RESOURCE_NAME)),
        configmap_name=str(section.get("configmap_name", CONFIGMAP_NAME)),
        configmap_key=str(section.get("configmap_key", CONFIGMAP_KEY)),
        workers=workers,
        resync_interval=resync if resync > 0 else None,
        max_conflict_retries=retries,
    )


def _parse_watchers(entries: Iterable[dict]) -> List[WatcherConfig]:
    watchers: List[WatcherConfig] = []
    for entry in entries:
        watchers.append(
            WatcherConfig(
                type=str(entry["type"]),
                path=Path(entry.get("path", ".")),
                interval=float(entry.get("interval", entry.get("poll_interval", 5.0))),
            )
        )
    return watchers


def _parse_exporter(section: Optional[dict]) -> Optional[ExporterConfig]:
    if section is None:
        return None
    if not isinstance(section, dict) or "output_dir" not in section:
        raise ValueError("'exporter' section requires 'output_dir'")
    return ExporterConfig(output_dir=Path(section["output_dir"]))


def load_config(path: Path) -> OperatorConfig:
    data = yaml.safe_load(path.read_text())
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError("Operator configuration must be a mapping")

    controller = _parse_controller(data.get("controller") or {})

    watchers_section = data.get("watchers", [])
    if not isinstance(watchers_section, list):
        raise ValueError("'watchers' section must be a list")
    watchers = _parse_watchers(watchers_section)

    exporter = _parse_exporter(data.get("exporter"))

    return OperatorConfig(controller=controller, watchers=watchers, exporter=exporter)
