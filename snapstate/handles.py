"""
SnapState Handles - Transparent Proxies for Targets
===================================================

A handle is the object users hold and mutate. It forwards every read to the
handler's ``get`` and every write or delete to the handler's ``set`` and
``delete``; the handler owns versioning and notification.

Handle kinds:
- DictProxy: ``MutableMapping`` over a ``dict``
- ListProxy: ``MutableSequence`` over a ``list``
- ObjectProxy: attribute access over a plain instance

Every mutating entry point runs inside one scheduler turn, so deferred
subscribers see a compound mutation (``update``, ``extend``, ``sort``, ...) as
a single batch.
"""

import types
from collections.abc import MutableMapping, MutableSequence
from reprlib import recursive_repr
from typing import Any, Hashable, Iterable, Iterator, List

from . import reflect
from .errors import ObjectRequiredError
from .scheduler import FlushScheduler


class ProxyHandle:
    """Base class of every handle. Holds the target and its handler."""

    __slots__ = ("_proxy_target_", "_proxy_handler_", "__weakref__")

    def __init__(self, target: Any, handler: Any):
        object.__setattr__(self, "_proxy_target_", target)
        object.__setattr__(self, "_proxy_handler_", handler)


class DictProxy(ProxyHandle, MutableMapping):
    """Handle for ``dict`` targets."""

    __slots__ = ()

    def __getitem__(self, key: Hashable) -> Any:
        target = self._proxy_target_
        if key not in target:
            raise KeyError(key)
        return self._proxy_handler_.get(target, key)

    def __setitem__(self, key: Hashable, value: Any) -> None:
        with FlushScheduler.turn():
            self._proxy_handler_.set(self._proxy_target_, key, value)

    def __delitem__(self, key: Hashable) -> None:
        target = self._proxy_target_
        if key not in target:
            raise KeyError(key)
        with FlushScheduler.turn():
            self._proxy_handler_.delete(target, key)

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self._proxy_target_)

    def __len__(self) -> int:
        return len(self._proxy_target_)

    def __contains__(self, key: object) -> bool:
        return key in self._proxy_target_

    def update(self, *args: Any, **kwargs: Any) -> None:
        with FlushScheduler.turn():
            MutableMapping.update(self, *args, **kwargs)

    def clear(self) -> None:
        with FlushScheduler.turn():
            for key in list(self._proxy_target_):
                del self[key]

    @recursive_repr()
    def __repr__(self) -> str:
        return f"DictProxy({self._proxy_target_!r})"


class ListProxy(ProxyHandle, MutableSequence):
    """
    Handle for ``list`` targets.

    Structural edits are rewritten as index assignments followed by deletion of
    the trailing indices, e.g. removing the head of ``[1, 2, 3]`` emits
    ``set [0] 2``, ``set [1] 3`` and ``delete [2]``. Assigning an unchanged
    value is a no-op, so only shifted positions produce operations.
    """

    __slots__ = ()

    def _normalize(self, index: int) -> int:
        size = len(self._proxy_target_)
        if index < 0:
            index += size
        if not 0 <= index < size:
            raise IndexError("list index out of range")
        return index

    def _rewrite(self, updated: List[Any], start: int = 0) -> None:
        target = self._proxy_target_
        handler = self._proxy_handler_
        previous_size = len(target)
        with FlushScheduler.turn():
            for index in range(start, len(updated)):
                handler.set(target, index, updated[index])
            for index in range(previous_size - 1, len(updated) - 1, -1):
                handler.delete(target, index)

    def __getitem__(self, index: Any) -> Any:
        target = self._proxy_target_
        if isinstance(index, slice):
            return [self._proxy_handler_.get(target, i) for i in range(*index.indices(len(target)))]
        return self._proxy_handler_.get(target, self._normalize(index))

    def __setitem__(self, index: Any, value: Any) -> None:
        if isinstance(index, slice):
            updated = list(self._proxy_target_)
            updated[index] = list(value)
            start = index.indices(len(self._proxy_target_))[0]
            self._rewrite(updated, start if index.step in (None, 1) else 0)
            return
        index = self._normalize(index)
        with FlushScheduler.turn():
            self._proxy_handler_.set(self._proxy_target_, index, value)

    def __delitem__(self, index: Any) -> None:
        updated = list(self._proxy_target_)
        if isinstance(index, slice):
            del updated[index]
            self._rewrite(updated)
            return
        index = self._normalize(index)
        del updated[index]
        self._rewrite(updated, index)

    def __len__(self) -> int:
        return len(self._proxy_target_)

    def insert(self, index: int, value: Any) -> None:
        updated = list(self._proxy_target_)
        updated.insert(index, value)
        size = len(self._proxy_target_)
        start = max(0, index + size) if index < 0 else min(index, size)
        self._rewrite(updated, start)

    def append(self, value: Any) -> None:
        with FlushScheduler.turn():
            self._proxy_handler_.set(self._proxy_target_, len(self._proxy_target_), value)

    def extend(self, values: Iterable[Any]) -> None:
        values = list(values)
        with FlushScheduler.turn():
            for value in values:
                self.append(value)

    def pop(self, index: int = -1) -> Any:
        index = self._normalize(index)
        value = self[index]
        del self[index]
        return value

    def clear(self) -> None:
        self._rewrite([])

    def reverse(self) -> None:
        self._rewrite(list(reversed(self._proxy_target_)))

    def sort(self, *, key: Any = None, reverse: bool = False) -> None:
        self._rewrite(sorted(self, key=key, reverse=reverse))

    def __iadd__(self, values: Iterable[Any]) -> "ListProxy":
        self.extend(values)
        return self

    def __eq__(self, other: object) -> bool:
        if isinstance(other, (list, ListProxy)):
            return list(self) == list(other)
        return NotImplemented

    __hash__ = None

    @recursive_repr()
    def __repr__(self) -> str:
        return f"ListProxy({self._proxy_target_!r})"


class ObjectProxy(ProxyHandle):
    """
    Handle for plain instances.

    Methods read through the handle are bound to the handle, so assignments
    made inside a method body are intercepted like any other write.
    """

    __slots__ = ()

    def __getattr__(self, name: str) -> Any:
        target = self._proxy_target_
        if not reflect.has(target, name):
            raise AttributeError(name)
        value = self._proxy_handler_.get(target, name)
        if isinstance(value, types.MethodType) and value.__self__ is target:
            return types.MethodType(value.__func__, self)
        return value

    def __setattr__(self, name: str, value: Any) -> None:
        with FlushScheduler.turn():
            self._proxy_handler_.set(self._proxy_target_, name, value)

    def __delattr__(self, name: str) -> None:
        target = self._proxy_target_
        if name not in vars(target):
            raise AttributeError(name)
        with FlushScheduler.turn():
            self._proxy_handler_.delete(target, name)

    def __dir__(self) -> List[str]:
        return dir(self._proxy_target_)

    @recursive_repr()
    def __repr__(self) -> str:
        return f"ObjectProxy({self._proxy_target_!r})"


_HANDLE_CLASSES = {
    reflect.TargetKind.MAPPING: DictProxy,
    reflect.TargetKind.SEQUENCE: ListProxy,
    reflect.TargetKind.ATTRIBUTES: ObjectProxy,
}


def new_proxy_default(target: Any, handler: Any) -> ProxyHandle:
    """Build the handle matching the target's kind."""
    kind = reflect.kind_of(target)
    if kind is None:
        raise ObjectRequiredError(target)
    return _HANDLE_CLASSES[kind](target, handler)
