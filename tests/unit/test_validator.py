import threading

from metallb_controller.events import Resource
from metallb_controller.store import InMemoryStore
from metallb_config.consts import ALL_KINDS
from metallb_config.status import StatusReporter
from metallb_config.validator import IdentityState, IdentityValidator, requires

NAMESPACE = "metallb-system"


def build(preconditions=()):
    store = InMemoryStore(ALL_KINDS)
    validator = IdentityValidator(store, StatusReporter(store), preconditions=preconditions)
    return store, validator


def create_metallb(store, name):
    return store.create(Resource(kind="MetalLB", namespace=NAMESPACE, name=name, spec={}))


def active_condition(store, name):
    resource = store.get("MetalLB", NAMESPACE, name)
    active = [
        c["type"]
        for c in resource.status.get("conditions", [])
        if c["type"] in ("Available", "Degraded", "Progressing") and c["status"] == "True"
    ]
    assert len(active) <= 1
    return active[0] if active else None


def test_canonical_name_becomes_available():
    store, validator = build()
    create_metallb(store, "metallb")

    assert validator.state_of(NAMESPACE, "metallb") is None
    assert validator.reconcile(NAMESPACE, "metallb") is IdentityState.AVAILABLE
    assert active_condition(store, "metallb") == "Available"


def test_incorrect_name_is_degraded():
    store, validator = build()
    create_metallb(store, "incorrectname")

    assert validator.reconcile(NAMESPACE, "incorrectname") is IdentityState.DEGRADED

    resource = store.get("MetalLB", NAMESPACE, "incorrectname")
    degraded = {c["type"]: c for c in resource.status["conditions"]}["Degraded"]
    assert degraded["status"] == "True"
    assert degraded["reason"] == "IncorrectMetalLBResourceName"
    assert "'metallb'" in degraded["message"]


def test_degraded_instance_makes_no_further_writes():
    store, validator = build()
    create_metallb(store, "incorrectname")
    validator.reconcile(NAMESPACE, "incorrectname")
    version = store.get("MetalLB", NAMESPACE, "incorrectname").resource_version

    for _ in range(3):
        assert validator.reconcile(NAMESPACE, "incorrectname") is IdentityState.DEGRADED

    assert store.get("MetalLB", NAMESPACE, "incorrectname").resource_version == version


def test_coexisting_instances_are_isolated():
    store, validator = build()
    create_metallb(store, "metallb")
    create_metallb(store, "incorrectname")

    validator.reconcile(NAMESPACE, "incorrectname")
    validator.reconcile(NAMESPACE, "metallb")
    assert active_condition(store, "incorrectname") == "Degraded"
    assert active_condition(store, "metallb") == "Available"
    valid_before = store.get("MetalLB", NAMESPACE, "metallb")

    store.delete("MetalLB", NAMESPACE, "incorrectname")
    assert validator.reconcile(NAMESPACE, "incorrectname") is None
    assert validator.reconcile(NAMESPACE, "metallb") is IdentityState.AVAILABLE

    valid_after = store.get("MetalLB", NAMESPACE, "metallb")
    assert valid_after.resource_version == valid_before.resource_version
    assert valid_after.status == valid_before.status
    assert validator.state_of(NAMESPACE, "incorrectname") is None


def test_recreated_instance_is_evaluated_again():
    store, validator = build()
    create_metallb(store, "incorrectname")
    validator.reconcile(NAMESPACE, "incorrectname")

    # Delete and recreate without the validator seeing the gap.
    store.delete("MetalLB", NAMESPACE, "incorrectname")
    create_metallb(store, "incorrectname")
    validator.reconcile(NAMESPACE, "incorrectname")

    assert active_condition(store, "incorrectname") == "Degraded"


def test_failing_precondition_keeps_instance_pending():
    store, validator = build(preconditions=[requires("ConfigMap", "speaker-settings")])
    create_metallb(store, "metallb")

    assert validator.reconcile(NAMESPACE, "metallb") is IdentityState.PENDING
    assert active_condition(store, "metallb") == "Progressing"

    store.create(Resource(kind="ConfigMap", namespace=NAMESPACE, name="speaker-settings"))
    assert validator.reconcile(NAMESPACE, "metallb") is IdentityState.AVAILABLE
    assert active_condition(store, "metallb") == "Available"


def test_wrong_name_wins_over_preconditions():
    store, validator = build(preconditions=[requires("ConfigMap", "speaker-settings")])
    create_metallb(store, "other")

    assert validator.reconcile(NAMESPACE, "other") is IdentityState.DEGRADED


def test_instances_reconciled_from_many_threads():
    store, validator = build()
    names = ["metallb"] + [f"extra-{index}" for index in range(15)]
    for name in names:
        create_metallb(store, name)

    threads = [
        threading.Thread(target=validator.reconcile, args=(NAMESPACE, name)) for name in names
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert validator.state_of(NAMESPACE, "metallb") is IdentityState.AVAILABLE
    for name in names[1:]:
        assert validator.state_of(NAMESPACE, name) is IdentityState.DEGRADED
