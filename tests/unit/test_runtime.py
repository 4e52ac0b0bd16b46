"""End-to-end scenarios driven through store events and the dispatcher."""

import threading
import time

import yaml

from metallb_controller.config_extensions import ControllerSettings
from metallb_controller.events import Resource
from metallb_controller.exceptions import ConflictError, NotFoundError
from metallb_operator.runtime import build_runtime

NAMESPACE = "metallb-system"


def settings(**overrides):
    values = dict(namespace=NAMESPACE, resync_interval=None)
    values.update(overrides)
    return ControllerSettings(**values)


def pool(name, addresses, auto_assign=None):
    spec = {"protocol": "layer2", "addresses": list(addresses)}
    if auto_assign is not None:
        spec["autoAssign"] = auto_assign
    return Resource(kind="AddressPool", namespace=NAMESPACE, name=name, spec=spec)


def merged(runtime):
    text = runtime.aggregator.current_config(NAMESPACE)
    return None if text is None else yaml.safe_load(text)


def expected_entry(resource):
    entry = {"name": resource.name, "protocol": "layer2"}
    if resource.spec.get("autoAssign") is False:
        entry["auto-assign"] = False
    entry["addresses"] = resource.spec["addresses"]
    return entry


def conditions(runtime, name):
    resource = runtime.store.get("MetalLB", NAMESPACE, name)
    return {c["type"]: c["status"] for c in resource.status.get("conditions", [])}


def test_address_pool_lifecycle_through_events():
    runtime = build_runtime(settings(), retry_base_delay=0)
    store, dispatcher = runtime.store, runtime.dispatcher

    store.create(pool("addresspool1", ["1.1.1.1", "1.1.1.100"]))
    dispatcher.drain()
    assert merged(runtime) == {
        "address-pools": [
            {"name": "addresspool1", "protocol": "layer2", "addresses": ["1.1.1.1", "1.1.1.100"]}
        ]
    }

    store.create(pool("addresspool2", ["2.2.2.1", "2.2.2.100"], auto_assign=False))
    dispatcher.drain()
    assert [e["name"] for e in merged(runtime)["address-pools"]] == [
        "addresspool1",
        "addresspool2",
    ]

    store.delete("AddressPool", NAMESPACE, "addresspool1")
    dispatcher.drain()
    assert merged(runtime) == {
        "address-pools": [
            {
                "name": "addresspool2",
                "protocol": "layer2",
                "auto-assign": False,
                "addresses": ["2.2.2.1", "2.2.2.100"],
            }
        ]
    }

    store.delete("AddressPool", NAMESPACE, "addresspool2")
    dispatcher.drain()
    assert merged(runtime) is None
    assert dispatcher.healthy


def test_deleted_config_is_recreated():
    runtime = build_runtime(settings(), retry_base_delay=0)
    runtime.store.create(pool("p1", ["1.1.1.1"]))
    runtime.dispatcher.drain()

    runtime.store.delete("ConfigMap", NAMESPACE, "config")
    runtime.dispatcher.drain()

    assert merged(runtime)["address-pools"][0]["name"] == "p1"


def test_orphaned_config_is_removed():
    runtime = build_runtime(settings(), retry_base_delay=0)
    runtime.store.create(
        Resource(
            kind="ConfigMap",
            namespace="stale",
            name="config",
            data={"config": "address-pools: []\n"},
        )
    )
    runtime.dispatcher.drain()

    try:
        runtime.store.get("ConfigMap", "stale", "config")
    except NotFoundError:
        pass
    else:
        raise AssertionError("orphaned merged config was kept")


def test_metallb_instances_do_not_interfere():
    runtime = build_runtime(settings(), retry_base_delay=0)
    store, dispatcher = runtime.store, runtime.dispatcher

    store.create(Resource(kind="MetalLB", namespace=NAMESPACE, name="metallb"))
    store.create(Resource(kind="MetalLB", namespace=NAMESPACE, name="incorrectname"))
    store.create(pool("p1", ["1.1.1.1"]))
    dispatcher.drain()

    assert conditions(runtime, "incorrectname")["Degraded"] == "True"
    assert conditions(runtime, "metallb")["Available"] == "True"
    before = store.get("MetalLB", NAMESPACE, "metallb")

    store.delete("MetalLB", NAMESPACE, "incorrectname")
    dispatcher.drain()

    after = store.get("MetalLB", NAMESPACE, "metallb")
    assert after.status == before.status
    assert after.resource_version == before.resource_version
    assert [e["name"] for e in merged(runtime)["address-pools"]] == ["p1"]


def test_concurrent_writers_converge():
    runtime = build_runtime(settings(workers=4), retry_base_delay=0.01)
    store = runtime.store
    runtime.start(workers=4)

    def writer(prefix):
        for index in range(10):
            name = f"{prefix}-{index}"
            store.create(pool(name, [f"10.{len(prefix)}.0.{index + 1}"]))
            if index % 3 == 0:
                store.delete("AddressPool", NAMESPACE, name)
            elif index % 3 == 1:
                while True:
                    current = store.get("AddressPool", NAMESPACE, name)
                    current.spec = dict(current.spec, autoAssign=False)
                    try:
                        store.update(current)
                        break
                    except ConflictError:
                        continue

    threads = [threading.Thread(target=writer, args=(p,)) for p in ("a", "bb", "ccc")]
    try:
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        live = sorted(store.list("AddressPool", NAMESPACE), key=lambda r: r.name)
        expected = {"address-pools": [expected_entry(r) for r in live]}
        deadline = time.monotonic() + 10
        document = None
        while time.monotonic() < deadline:
            document = merged(runtime)
            if document == expected:
                break
            time.sleep(0.05)
    finally:
        runtime.stop()

    assert document == expected
    for entry in expected["address-pools"]:
        if int(entry["name"].rsplit("-", 1)[1]) % 3 == 1:
            assert entry["auto-assign"] is False
        else:
            assert "auto-assign" not in entry
    assert runtime.dispatcher.healthy
