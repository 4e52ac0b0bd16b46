import pytest

from metallb_controller.events import Resource, WatchEventType
from metallb_controller.exceptions import (
    AlreadyExistsError,
    ConflictError,
    KindNotRegisteredError,
    NotFoundError,
)
from metallb_controller.store import InMemoryStore


def make_pool(name: str, namespace: str = "metallb-system") -> Resource:
    return Resource(
        kind="AddressPool",
        namespace=namespace,
        name=name,
        spec={"protocol": "layer2", "addresses": ["1.1.1.1"]},
    )


def test_create_assigns_identity():
    store = InMemoryStore(["AddressPool"])

    created = store.create(make_pool("p1"))

    assert created.uid
    assert created.resource_version
    assert created.generation == 1
    assert store.get("AddressPool", "metallb-system", "p1").uid == created.uid


def test_create_rejects_duplicates():
    store = InMemoryStore(["AddressPool"])
    store.create(make_pool("p1"))

    with pytest.raises(AlreadyExistsError):
        store.create(make_pool("p1"))


def test_update_with_stale_version_conflicts():
    store = InMemoryStore(["AddressPool"])
    first = store.create(make_pool("p1"))
    stale = first.copy()

    first.spec["addresses"] = ["2.2.2.2"]
    updated = store.update(first)

    assert updated.generation == 2
    stale.spec["addresses"] = ["3.3.3.3"]
    with pytest.raises(ConflictError):
        store.update(stale)


def test_update_status_leaves_spec_alone():
    store = InMemoryStore(["AddressPool"])
    created = store.create(make_pool("p1"))

    created.spec = {"protocol": "layer2", "addresses": []}
    created.status = {"conditions": [{"type": "Available", "status": "True"}]}
    store.update_status(created)

    stored = store.get("AddressPool", "metallb-system", "p1")
    assert stored.spec["addresses"] == ["1.1.1.1"]
    assert stored.status["conditions"][0]["type"] == "Available"
    assert stored.generation == 1


def test_returned_objects_are_copies():
    store = InMemoryStore(["AddressPool"])
    store.create(make_pool("p1"))

    fetched = store.get("AddressPool", "metallb-system", "p1")
    fetched.spec["addresses"].append("9.9.9.9")

    assert store.get("AddressPool", "metallb-system", "p1").spec["addresses"] == ["1.1.1.1"]


def test_list_filters_by_namespace():
    store = InMemoryStore(["AddressPool"])
    store.create(make_pool("b", "ns1"))
    store.create(make_pool("a", "ns1"))
    store.create(make_pool("c", "ns2"))

    assert [r.name for r in store.list("AddressPool", "ns1")] == ["a", "b"]
    assert len(store.list("AddressPool")) == 3


def test_delete_missing_raises_not_found():
    store = InMemoryStore(["AddressPool"])

    with pytest.raises(NotFoundError):
        store.delete("AddressPool", "metallb-system", "p1")


def test_unknown_kind_is_rejected():
    store = InMemoryStore(["AddressPool"])

    with pytest.raises(KindNotRegisteredError):
        store.list("Widget")


def test_watch_reports_lifecycle():
    store = InMemoryStore(["AddressPool"])
    events = []
    unsubscribe = store.watch("AddressPool", events.append)

    created = store.create(make_pool("p1"))
    created.spec["addresses"] = ["2.2.2.2"]
    store.update(created)
    store.delete("AddressPool", "metallb-system", "p1")
    unsubscribe()
    store.create(make_pool("p2"))

    assert [e.type for e in events] == [
        WatchEventType.ADDED,
        WatchEventType.MODIFIED,
        WatchEventType.DELETED,
    ]
    assert events[1].resource.spec["addresses"] == ["2.2.2.2"]
