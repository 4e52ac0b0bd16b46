from pathlib import Path
from threading import Event

from metallb_controller.exceptions import NotFoundError
from metallb_controller.store import InMemoryStore
from metallb_config.consts import ALL_KINDS
from metallb_operator.watchers.file import FileManifestWatcher

POOL_1 = """
apiVersion: metallb.io/v1alpha1
kind: AddressPool
metadata:
  name: addresspool1
spec:
  protocol: layer2
  addresses:
    - 1.1.1.1
    - 1.1.1.100
"""

POOL_2 = """
apiVersion: metallb.io/v1alpha1
kind: AddressPool
metadata:
  name: addresspool2
  namespace: other
spec:
  protocol: layer2
  autoAssign: false
  addresses:
    - 2.2.2.1
"""


def build_watcher(tmp_path: Path):
    store = InMemoryStore(ALL_KINDS)
    manifests = tmp_path / "manifests.yaml"
    watcher = FileManifestWatcher(
        store=store,
        path=manifests,
        interval=0.1,
        stop_event=Event(),
        namespace="metallb-system",
    )
    return store, manifests, watcher


def test_missing_file_is_ignored(tmp_path: Path):
    store, _, watcher = build_watcher(tmp_path)

    watcher.poll()

    assert store.list("AddressPool") == []


def test_file_watcher_applies_manifests(tmp_path: Path):
    store, manifests, watcher = build_watcher(tmp_path)
    manifests.write_text(POOL_1 + "---" + POOL_2)

    watcher.poll()

    pool1 = store.get("AddressPool", "metallb-system", "addresspool1")
    pool2 = store.get("AddressPool", "other", "addresspool2")
    assert pool1.spec["addresses"] == ["1.1.1.1", "1.1.1.100"]
    assert pool2.spec["autoAssign"] is False

    manifests.write_text(POOL_1.replace("1.1.1.100", "1.1.1.200"))
    watcher.poll()

    pool1 = store.get("AddressPool", "metallb-system", "addresspool1")
    assert pool1.spec["addresses"] == ["1.1.1.1", "1.1.1.200"]
    try:
        store.get("AddressPool", "other", "addresspool2")
    except NotFoundError:
        pass
    else:
        raise AssertionError("removed manifest was not deleted")


def test_unchanged_file_makes_no_writes(tmp_path: Path):
    store, manifests, watcher = build_watcher(tmp_path)
    manifests.write_text(POOL_1)
    watcher.poll()
    version = store.get("AddressPool", "metallb-system", "addresspool1").resource_version

    watcher.poll()

    assert store.get("AddressPool", "metallb-system", "addresspool1").resource_version == version


def test_invalid_file_keeps_previous_state(tmp_path: Path):
    store, manifests, watcher = build_watcher(tmp_path)
    manifests.write_text(POOL_1)
    watcher.poll()

    manifests.write_text("kind: Widget\nmetadata: {name: w}\n")
    watcher.poll()

    assert store.get("AddressPool", "metallb-system", "addresspool1")
