from pathlib import Path

import pytest

from metallb_controller.events import Resource
from metallb_controller.store import InMemoryStore
from metallb_config.consts import ALL_KINDS
from metallb_operator import exporter as exporter_module
from metallb_operator.exporter import ConfigFileExporter


def test_exporter_mirrors_configmap(tmp_path: Path):
    store = InMemoryStore(ALL_KINDS)
    exporter = ConfigFileExporter(tmp_path)
    exporter.attach(store)

    created = store.create(
        Resource(
            kind="ConfigMap",
            namespace="metallb-system",
            name="config",
            data={"config": "address-pools: []\n"},
        )
    )
    output = tmp_path / "metallb-system" / "config.yaml"
    assert output.read_text() == "address-pools: []\n"

    created.data = {"config": "address-pools:\n- name: p1\n"}
    store.update(created)
    assert "p1" in output.read_text()

    store.delete("ConfigMap", "metallb-system", "config")
    assert not output.exists()

    exporter.detach()


def test_exporter_ignores_other_configmaps(tmp_path: Path):
    store = InMemoryStore(ALL_KINDS)
    exporter = ConfigFileExporter(tmp_path)
    exporter.attach(store)

    store.create(
        Resource(kind="ConfigMap", namespace="metallb-system", name="unrelated", data={"x": "y"})
    )

    assert list(tmp_path.iterdir()) == []


def test_failed_export_keeps_previous_file(tmp_path: Path, monkeypatch):
    store = InMemoryStore(ALL_KINDS)
    exporter = ConfigFileExporter(tmp_path)
    exporter.attach(store)
    created = store.create(
        Resource(
            kind="ConfigMap",
            namespace="metallb-system",
            name="config",
            data={"config": "address-pools: []\n"},
        )
    )
    output = tmp_path / "metallb-system" / "config.yaml"

    def failing_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(exporter_module.os, "replace", failing_replace)
    created.data = {"config": "address-pools:\n- name: p1\n"}
    with pytest.raises(OSError):
        exporter.export(created)

    assert output.read_text() == "address-pools: []\n"
    assert [p.name for p in output.parent.iterdir()] == ["config.yaml"]
