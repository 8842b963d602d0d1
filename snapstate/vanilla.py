"""
SnapState Core - Proxies, Versions, Subscriptions and Snapshots
===============================================================

This module ties the layers together and exposes the public operations:

- ``proxy(obj)``: wrap a dict, list or plain instance in a tracking handle
- ``get_version(handle)``: current version, pulled lazily from children
- ``subscribe(handle, callback, notify_in_sync=False)``: receive operations
- ``snapshot(handle)``: memoized immutable deep view
- ``replace_internal_function(name, fn)``: swap a pluggable internal

Basic Usage
-----------

```python
from snapstate import proxy, snapshot, subscribe

state = proxy({"count": 0, "user": {"name": "Ada"}})

unsubscribe = subscribe(state, lambda ops: print(ops), notify_in_sync=True)
state["user"]["name"] = "Grace"
# [SetOperation(['user', 'name']: 'Ada' -> 'Grace')]

snap = snapshot(state)
snap["user"]["name"]      # 'Grace'
snap is snapshot(state)   # True until the next mutation
unsubscribe()
```

Versions and child links
------------------------

Each proxy keeps a version. A write takes the next global mutation number and
pushes it to local listeners. Parents only listen to their children while
they have listeners themselves; a parent nobody listens to instead refreshes
its version on demand by asking its children (``ensure_version``), using the
global check counter so one pass visits every object at most once.
"""

import logging
from typing import Any, Callable, Dict, Hashable, List, Optional, Tuple

from . import reflect
from .config import is_dev_mode
from .errors import NotAProxyError, ObjectRequiredError, ProtocolViolationError
from .handler import create_handler_default
from .handles import new_proxy_default
from .operations import Operation
from .policy import can_proxy_default, is_object, is_ref, object_is
from .registry import (
    Listener,
    ProxyState,
    RemoveListener,
    find_handle,
    functions,
    get_state,
    register,
)
from .scheduler import FlushScheduler
from .snapshot import create_snapshot_default
from .versions import version_holder

logger = logging.getLogger(__name__)

_MISSING = object()


def _protocol_violation(message: str) -> None:
    if is_dev_mode():
        raise ProtocolViolationError(message)
    logger.debug(f"Tolerated listener bookkeeping violation: {message}")


class ProxyNode:
    """
    Version, listeners and child links of one proxied object.

    The node never references its handle. It owns the handle's ProxyState,
    and the handle keeps the node alive through its handler.
    """

    def __init__(self) -> None:
        self.version = version_holder.mutation
        self.check_version = version_holder.check
        self.listeners: Dict[Listener, None] = {}
        # key -> (child state, remove function of the forwarding link if installed)
        self.prop_proxy_states: Dict[Hashable, Tuple[ProxyState, Optional[RemoveListener]]] = {}
        self.initializing = True
        self.state: Optional[ProxyState] = None

    def is_initializing(self) -> bool:
        return self.initializing

    def notify_update(self, op: Operation, next_version: Optional[int] = None) -> None:
        if next_version is None:
            next_version = version_holder.next_mutation()
        if self.version != next_version:
            self.version = next_version
            for listener in list(self.listeners):
                listener(op, next_version)

    def ensure_version(self, next_check_version: Optional[int] = None) -> int:
        if next_check_version is None:
            next_check_version = version_holder.next_check()
        if self.check_version != next_check_version and not self.listeners:
            self.check_version = next_check_version
            for prop_state, _ in list(self.prop_proxy_states.values()):
                prop_version = prop_state.ensure_version(next_check_version)
                if prop_version > self.version:
                    self.version = prop_version
        return self.version

    def _create_prop_listener(self, key: Hashable) -> Listener:
        def forward(op: Operation, next_version: int) -> None:
            self.notify_update(op.with_prefix(key), next_version)

        return forward

    def _link(self, key: Hashable, prop_state: ProxyState) -> None:
        remove = prop_state.add_listener(self._create_prop_listener(key))
        self.prop_proxy_states[key] = (prop_state, remove)

    def add_prop_listener(self, key: Hashable, value: Any) -> None:
        prop_state = None if is_ref(value) else get_state(value)
        if prop_state is None:
            return
        if key in self.prop_proxy_states:
            _protocol_violation("prop listener already exists")
            self.remove_prop_listener(key)
        if self.listeners:
            self._link(key, prop_state)
        else:
            self.prop_proxy_states[key] = (prop_state, None)

    def remove_prop_listener(self, key: Hashable) -> None:
        entry = self.prop_proxy_states.pop(key, None)
        if entry is not None and entry[1] is not None:
            entry[1]()

    def add_listener(self, listener: Listener) -> RemoveListener:
        self.listeners[listener] = None
        if len(self.listeners) == 1:
            for key, (prop_state, prev_remove) in list(self.prop_proxy_states.items()):
                if prev_remove is not None:
                    _protocol_violation("remove already exists")
                    prev_remove()
                self._link(key, prop_state)

        def remove_listener() -> None:
            if listener not in self.listeners:
                _protocol_violation("listener already removed")
                return
            del self.listeners[listener]
            if not self.listeners:
                for key, (prop_state, remove) in list(self.prop_proxy_states.items()):
                    if remove is not None:
                        remove()
                        self.prop_proxy_states[key] = (prop_state, None)

        return remove_listener


def proxy(base_object: Any = _MISSING) -> Any:
    """
    Return the tracking handle for ``base_object``.

    Wrapping the same object twice returns the same handle, and passing a
    handle returns it unchanged. Nested dicts, lists and plain instances are
    wrapped as they are stored.

    Raises:
        ObjectRequiredError: ``base_object`` is a scalar or cannot be proxied.
    """
    if base_object is _MISSING:
        base_object = {}
    if not is_object(base_object):
        raise ObjectRequiredError(base_object)
    if get_state(base_object) is not None:
        return base_object
    found = find_handle(base_object)
    if found is not None:
        return found

    node = ProxyNode()
    handler = functions.create_handler(
        node.is_initializing,
        node.add_prop_listener,
        node.remove_prop_listener,
        node.notify_update,
    )
    handle = functions.new_proxy(base_object, handler)
    node.state = ProxyState(base_object, node.ensure_version, node.add_listener)
    register(base_object, handle, node.state)
    with FlushScheduler.turn():
        for key in reflect.own_keys(base_object):
            if reflect.is_writable(base_object, key):
                handler.set(base_object, key, reflect.get(base_object, key))
    node.initializing = False
    return handle


def get_version(proxy_object: Any) -> Optional[int]:
    """Return the handle's current version, or None if it is not a handle."""
    state = get_state(proxy_object)
    return state.ensure_version() if state is not None else None


def _require_state(proxy_object: Any) -> ProxyState:
    state = get_state(proxy_object)
    if state is None:
        if is_dev_mode():
            logger.warning("Please use proxy object")
        raise NotAProxyError(proxy_object)
    return state


class Subscription:
    """
    Buffers operations for one subscriber and delivers them in batches.

    Calling the subscription (or ``unsubscribe()``) cancels it; operations
    still buffered at that point are dropped.
    """

    def __init__(self, callback: Callable[[List[Operation]], None], notify_in_sync: bool = False):
        self.callback = callback
        self.notify_in_sync = notify_in_sync
        self.active = False
        self._ops: List[Operation] = []
        self._scheduled = False
        self._remove_listener: Optional[RemoveListener] = None

    def _attach(self, state: ProxyState) -> None:
        self._remove_listener = state.add_listener(self._listener)
        self.active = True

    def _listener(self, op: Operation, next_version: int) -> None:
        self._ops.append(op)
        if self.notify_in_sync:
            self._deliver()
            return
        if not self._scheduled:
            self._scheduled = True
            FlushScheduler.schedule(self._flush)

    def _flush(self) -> None:
        self._scheduled = False
        if self.active:
            self._deliver()

    def _deliver(self) -> None:
        ops, self._ops = self._ops, []
        if ops:
            self.callback(ops)

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self._ops = []
        self._remove_listener()

    def __call__(self) -> None:
        self.unsubscribe()


def subscribe(
    proxy_object: Any,
    callback: Callable[[List[Operation]], None],
    notify_in_sync: bool = False,
) -> Subscription:
    """
    Call ``callback`` with the operations applied to ``proxy_object`` or below.

    By default operations are coalesced and delivered at the end of the current
    turn (see ``snapstate.scheduler``). Inside a running asyncio loop a turn
    lasts until the current callback yields. Without a loop every top-level
    write is its own turn, so two consecutive writes produce two callbacks;
    wrap them in ``batch()`` to receive them together. With ``notify_in_sync``
    the callback runs inside the write that caused it.

    Returns:
        A Subscription; call it to unsubscribe.
    """
    state = _require_state(proxy_object)
    subscription = Subscription(callback, notify_in_sync)
    subscription._attach(state)
    return subscription


def snapshot(proxy_object: Any) -> Any:
    """Return the immutable snapshot of ``proxy_object`` at its current version."""
    state = _require_state(proxy_object)
    return functions.create_snapshot(state.target, state.ensure_version())


# ============================================================================
# REPLACEABLE INTERNALS
# ============================================================================

_DEFAULTS = {
    "object_is": object_is,
    "new_proxy": new_proxy_default,
    "can_proxy": can_proxy_default,
    "create_snapshot": create_snapshot_default,
    "create_handler": create_handler_default,
}


def reset_internal_functions() -> None:
    """Restore every replaceable internal to its default."""
    for name, fn in _DEFAULTS.items():
        setattr(functions, name, fn)


def replace_internal_function(name: str, fn: Callable[[Callable], Callable]) -> Callable:
    """
    Replace an internal function.

    ``fn`` receives the current implementation and returns its replacement,
    which fully takes over. The previous implementation is returned so it can
    be restored later.

    Example:
        previous = replace_internal_function(
            "object_is", lambda prev: lambda a, b: a == b
        )
        ...
        replace_internal_function("object_is", lambda _: previous)

    Raises:
        ValueError: ``name`` is not a replaceable internal.
    """
    if name not in _DEFAULTS:
        raise ValueError(f"unknown function: {name}")
    previous = getattr(functions, name)
    setattr(functions, name, fn(previous))
    return previous


reset_internal_functions()
