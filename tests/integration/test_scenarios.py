"""Integration tests for end-to-end proxy, subscription and snapshot behavior."""

import pytest

from snapstate import (
    DeleteOperation,
    FrozenSnapshotError,
    SetOperation,
    get_version,
    proxy,
    ref,
    snapshot,
    subscribe,
)


@pytest.mark.integration
@pytest.mark.subscription
def test_counter_write_reports_operation_and_bumps_version_once(recorder):
    """A single write produces one operation and exactly one version step"""
    # Arrange
    state = proxy({"count": 0})
    subscribe(state, recorder, notify_in_sync=True)
    before = get_version(state)

    # Act
    state["count"] = 5

    # Assert
    assert recorder.ops == [SetOperation(("count",), 5, 0)]
    assert recorder.ops[0].to_tuple() == ("set", ("count",), 5, 0)
    assert get_version(state) == before + 1


@pytest.mark.integration
@pytest.mark.subscription
def test_nested_write_reaches_root_subscriber_with_path(recorder):
    """Writing a nested property notifies the root with the full path"""
    # Arrange
    state = proxy({"a": {"b": 1}})
    subscribe(state, recorder, notify_in_sync=True)

    # Act
    state["a"]["b"] = 2

    # Assert
    (op,) = recorder.ops
    assert op.path == ("a", "b")
    assert op.value == 2
    assert op.prev_value == 1


@pytest.mark.integration
@pytest.mark.snapshot
def test_append_extends_list_snapshot(recorder):
    """Appending to a proxied list sets the next index and grows the snapshot"""
    # Arrange
    items = proxy([1, 2, 3])
    subscribe(items, recorder, notify_in_sync=True)

    # Act
    items.append(4)

    # Assert
    assert recorder.ops == [SetOperation((3,), 4, None)]
    snap = snapshot(items)
    assert len(snap) == 4
    assert list(snap) == [1, 2, 3, 4]


@pytest.mark.integration
@pytest.mark.snapshot
def test_opaque_payload_appears_by_reference_in_snapshots():
    """Opaque values are neither wrapped nor copied"""
    # Arrange
    big = ref({"huge": True})
    state = proxy({"payload": big})

    # Act
    first = snapshot(state)
    state["other"] = 1
    second = snapshot(state)

    # Assert
    assert state["payload"] is big
    assert first["payload"] is big
    assert second["payload"] is big


@pytest.mark.integration
@pytest.mark.snapshot
def test_delete_removes_key_and_reports_previous_value(recorder):
    """Deleting a key removes it from the next snapshot and reports its old value"""
    # Arrange
    state = proxy({"x": 1})
    subscribe(state, recorder, notify_in_sync=True)

    # Act
    del state["x"]

    # Assert
    assert "x" not in snapshot(state)
    assert recorder.ops == [DeleteOperation(("x",), 1)]


@pytest.mark.integration
def test_wrapping_is_idempotent_for_nested_targets():
    """The handle stored in a parent is the handle returned for its target"""
    inner = {"n": 0}
    state = proxy({"inner": inner})

    assert proxy(inner) is state["inner"]


@pytest.mark.integration
@pytest.mark.subscription
def test_noop_writes_never_notify(recorder):
    """Writing equal values leaves version and subscribers untouched"""
    state = proxy({"n": 1, "s": "x", "child": {}})
    subscribe(state, recorder, notify_in_sync=True)
    before = get_version(state)

    state["n"] = 1
    state["s"] = "x"
    state["child"] = state["child"]

    assert get_version(state) == before
    assert recorder.batches == []


@pytest.mark.integration
@pytest.mark.snapshot
def test_prior_snapshots_are_unchanged_by_later_writes():
    """Snapshots are frozen and keep their values after the source changes"""
    state = proxy({"user": {"name": "Ada"}, "tags": ["a"]})
    first = snapshot(state)

    state["user"]["name"] = "Grace"
    state["tags"].append("b")

    assert first["user"]["name"] == "Ada"
    assert first["tags"] == ["a"]
    with pytest.raises(FrozenSnapshotError):
        first["user"]["name"] = "Linus"
    assert snapshot(state)["user"]["name"] == "Grace"


@pytest.mark.integration
@pytest.mark.snapshot
def test_untouched_branches_keep_their_snapshot_identity():
    """Only the path to a changed leaf is rebuilt"""
    state = proxy({"left": {"n": 0}, "right": {"n": 0}})
    first = snapshot(state)

    state["left"]["n"] = 1
    second = snapshot(state)

    assert second is not first
    assert second["left"] is not first["left"]
    assert second["right"] is first["right"]


@pytest.mark.integration
@pytest.mark.subscription
def test_todo_list_workflow(recorder):
    """A realistic sequence of edits produces ordered, fully-pathed operations"""
    # Arrange
    state = proxy({"todos": [], "filter": "all"})
    subscribe(state, recorder)

    # Act
    state["todos"].append({"text": "write tests", "done": False})
    state["todos"].append({"text": "ship", "done": False})
    state["todos"][0]["done"] = True
    state["filter"] = "active"
    state["todos"].pop(0)

    # Assert
    assert recorder.paths == [
        ("todos", 0),
        ("todos", 1),
        ("todos", 0, "done"),
        ("filter",),
        ("todos", 0),
        ("todos", 1),
    ]
    assert isinstance(recorder.ops[-1], DeleteOperation)
    snap = snapshot(state)
    assert [todo["text"] for todo in snap["todos"]] == ["ship"]
    assert snap["filter"] == "active"


@pytest.mark.integration
@pytest.mark.subscription
def test_plain_instance_methods_mutate_through_the_proxy(recorder):
    """Methods called on an object proxy are intercepted like direct writes"""

    class Account:
        def __init__(self):
            self.balance = 0
            self.history = []

        def deposit(self, amount):
            self.balance += amount
            self.history.append(amount)

    account = proxy(Account())
    subscribe(account, recorder, notify_in_sync=True)

    account.deposit(10)

    assert recorder.paths == [("balance",), ("history", 0)]
    snap = snapshot(account)
    assert isinstance(snap, Account)
    assert snap.balance == 10
    assert list(snap.history) == [10]


@pytest.mark.integration
def test_cyclic_graph_snapshot_resolves_to_itself():
    """A self-referencing graph produces a self-referencing snapshot"""
    state = proxy({"name": "root"})
    state["self"] = state

    snap = snapshot(state)

    assert snap["self"] is snap
