"""
SnapState Handler - Interception of Reads, Writes and Deletes
=============================================================

The handler decides what a write means: whether it is a no-op, which child
object must be wrapped, which child links must move, and which operation is
emitted. It is built per proxy by ``create_handler`` from four hooks the core
supplies:

- is_initializing(): True while the proxy copies its initial entries
- add_prop_listener(key, value): link a child proxy stored under ``key``
- remove_prop_listener(key): unlink whatever child was stored under ``key``
- notify_update(op): bump the version and tell local listeners

Propagation to ancestors is not the handler's job; the child links installed
through ``add_prop_listener`` take care of it.
"""

from typing import Any, Callable, Hashable

from . import reflect, registry
from .operations import DeleteOperation, Operation, SetOperation
from .policy import is_object
from .tracking import get_untracked


class ProxyHandler:
    """Default interception handler."""

    def __init__(
        self,
        is_initializing: Callable[[], bool],
        add_prop_listener: Callable[[Hashable, Any], None],
        remove_prop_listener: Callable[[Hashable], None],
        notify_update: Callable[[Operation], None],
    ):
        self._is_initializing = is_initializing
        self._add_prop_listener = add_prop_listener
        self._remove_prop_listener = remove_prop_listener
        self._notify_update = notify_update

    def get(self, target: Any, key: Hashable) -> Any:
        return reflect.get(target, key)

    def _is_unchanged(self, prev_value: Any, value: Any) -> bool:
        object_is = registry.functions.object_is
        if object_is(prev_value, value):
            return True
        if is_object(value):
            handle = registry.find_handle(value)
            return handle is not None and object_is(prev_value, handle)
        return False

    def set(self, target: Any, key: Hashable, value: Any) -> bool:
        if not reflect.can_assign(target, key):
            return False
        has_prev_value = not self._is_initializing() and reflect.has(target, key)
        prev_value = reflect.get(target, key)
        if has_prev_value and self._is_unchanged(prev_value, value):
            return True

        if is_object(value):
            untracked = get_untracked(value)
            if untracked is not None:
                value = untracked
        next_value = value
        if registry.get_state(value) is None and registry.functions.can_proxy(value):
            from .vanilla import proxy

            next_value = proxy(value)
        # Links move only once the target accepted the value
        if not reflect.assign(target, key, next_value):
            return False
        self._remove_prop_listener(key)
        self._add_prop_listener(key, next_value)
        self._notify_update(SetOperation((key,), value, prev_value))
        return True

    def delete(self, target: Any, key: Hashable) -> bool:
        if isinstance(target, list) and key != len(target) - 1:
            return False
        prev_value = reflect.get(target, key)
        deleted = reflect.remove(target, key)
        if deleted:
            self._remove_prop_listener(key)
            self._notify_update(DeleteOperation((key,), prev_value))
        return deleted


def create_handler_default(
    is_initializing: Callable[[], bool],
    add_prop_listener: Callable[[Hashable, Any], None],
    remove_prop_listener: Callable[[Hashable], None],
    notify_update: Callable[[Operation], None],
) -> ProxyHandler:
    return ProxyHandler(is_initializing, add_prop_listener, remove_prop_listener, notify_update)
