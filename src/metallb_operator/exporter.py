"""Mirror the merged configuration to disk for the data plane."""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from metallb_controller.events import Resource, WatchEvent, WatchEventType
from metallb_controller.store import ResourceStore
from metallb_config.consts import CONFIGMAP_KEY, CONFIGMAP_NAME, KIND_CONFIGMAP

LOG = logging.getLogger(__name__)


@dataclass
class ExportResult:
    config_text: Optional[str]
    output_path: Path


def _atomic_write(path: Path, content: str) -> None:
    """Write ``content`` next to ``path`` and move it into place."""

    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp_", suffix=".yaml")
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
        os.replace(tmp_path, path)
    except Exception:
        tmp_path.unlink(missing_ok=True)
        raise


class ConfigFileExporter:
    """Write ``<output_dir>/<namespace>/<key>.yaml`` whenever the merged
    ConfigMap changes, and remove it when the ConfigMap is deleted."""

    def __init__(
        self,
        output_dir: Path,
        *,
        configmap_name: str = CONFIGMAP_NAME,
        configmap_key: str = CONFIGMAP_KEY,
    ) -> None:
        self._output_dir = Path(output_dir)
        self._configmap_name = configmap_name
        self._configmap_key = configmap_key
        self._unsubscribe: Optional[Callable[[], None]] = None

    def path_for(self, namespace: str) -> Path:
        return self._output_dir / namespace / f"{self._configmap_key}.yaml"

    def attach(self, store: ResourceStore) -> None:
        self._unsubscribe = store.watch(KIND_CONFIGMAP, self.handle)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def handle(self, event: WatchEvent) -> Optional[ExportResult]:
        resource = event.resource
        if resource.name != self._configmap_name:
            return None
        if event.type is WatchEventType.DELETED:
            return self.remove(resource.namespace)
        return self.export(resource)

    def export(self, resource: Resource) -> ExportResult:
        output_path = self.path_for(resource.namespace)
        text = resource.data.get(self._configmap_key, "")
        _atomic_write(output_path, text)
        LOG.info("exported merged config to %s", output_path)
        return ExportResult(config_text=text, output_path=output_path)

    def remove(self, namespace: str) -> ExportResult:
        output_path = self.path_for(namespace)
        if output_path.exists():
            output_path.unlink()
            LOG.info("removed merged config %s", output_path)
        return ExportResult(config_text=None, output_path=output_path)
