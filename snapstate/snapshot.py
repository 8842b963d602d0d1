"""
SnapState Snapshots - Memoized Immutable Views
==============================================

A snapshot is an immutable structural copy of a proxy target at one version.
Nested proxies are replaced by their own snapshots, opaque (``ref``) values are
kept by reference, and everything else is copied as-is.

Snapshots are memoized per target and version: asking again without an
intervening mutation returns the very same object, so consumers can compare
snapshots by identity.

Snapshot containers:
- SnapshotDict: immutable ``Mapping`` for ``dict`` targets
- SnapshotList: immutable ``Sequence`` for ``list`` targets
- frozen instance snapshots: an instance of a cached frozen subclass of the
  target's class, so ``isinstance`` checks, methods and properties keep working
- ObjectSnapshot: plain frozen attribute bag for classes that cannot be
  subclassed or allocated without arguments
"""

import weakref
from collections.abc import Mapping, Sequence
from reprlib import recursive_repr
from typing import Any, Dict, Hashable, Iterator, List

from . import reflect
from .errors import FrozenSnapshotError
from .policy import AtomicKind, is_ref, register_atomic_kind
from .registry import cache_snapshot, get_state, snap_cache
from .tracking import mark_to_track


class Snapshot:
    """Marker base class shared by every snapshot container."""

    __slots__ = ()

    def __setattr__(self, name: str, value: Any) -> None:
        raise FrozenSnapshotError(f"cannot set {name!r} on a snapshot")

    def __delattr__(self, name: str) -> None:
        raise FrozenSnapshotError(f"cannot delete {name!r} from a snapshot")


class SnapshotDict(Snapshot, Mapping):
    """Immutable mapping snapshot of a ``dict`` target."""

    __slots__ = ("_data", "__weakref__")

    def __init__(self, data: Dict[Hashable, Any] = None):
        object.__setattr__(self, "_data", dict(data or {}))

    def __getitem__(self, key: Hashable) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __setitem__(self, key: Hashable, value: Any) -> None:
        raise FrozenSnapshotError(f"cannot set {key!r} on a snapshot")

    def __delitem__(self, key: Hashable) -> None:
        raise FrozenSnapshotError(f"cannot delete {key!r} from a snapshot")

    @recursive_repr()
    def __repr__(self) -> str:
        return f"SnapshotDict({self._data!r})"


class SnapshotList(Snapshot, Sequence):
    """Immutable sequence snapshot of a ``list`` target."""

    __slots__ = ("_items", "__weakref__")

    def __init__(self, items: List[Any] = None):
        object.__setattr__(self, "_items", list(items or []))

    def __getitem__(self, index: Any) -> Any:
        if isinstance(index, slice):
            return tuple(self._items[index])
        return self._items[index]

    def __len__(self) -> int:
        return len(self._items)

    def __setitem__(self, index: Any, value: Any) -> None:
        raise FrozenSnapshotError("cannot assign into a snapshot")

    def __delitem__(self, index: Any) -> None:
        raise FrozenSnapshotError("cannot delete from a snapshot")

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SnapshotList):
            return self._items == other._items
        if isinstance(other, (list, tuple)):
            return self._items == list(other)
        return NotImplemented

    __hash__ = None

    @recursive_repr()
    def __repr__(self) -> str:
        return f"SnapshotList({self._items!r})"


class FrozenObjectSnapshot(Snapshot):
    """Mixin placed in front of a target's class to freeze its instances."""

    __slots__ = ()


class ObjectSnapshot(FrozenObjectSnapshot):
    """Frozen attribute bag for instances whose class cannot be frozen in place."""

    __slots__ = ("__dict__", "__weakref__")

    def __repr__(self) -> str:
        fields = ", ".join(f"{k}={v!r}" for k, v in self.__dict__.items())
        return f"ObjectSnapshot({fields})"


_frozen_classes: "weakref.WeakKeyDictionary[type, type]" = weakref.WeakKeyDictionary()


register_atomic_kind(AtomicKind.SNAPSHOT, Snapshot)


def frozen_class_for(cls: type) -> type:
    """Return (creating once) the frozen snapshot subclass of ``cls``."""
    frozen = _frozen_classes.get(cls)
    if frozen is None:
        frozen = type(
            cls.__name__,
            (FrozenObjectSnapshot, cls),
            {"__slots__": (), "__module__": cls.__module__, "__qualname__": cls.__qualname__},
        )
        _frozen_classes[cls] = frozen
    return frozen


# ============================================================================
# BUILDER
# ============================================================================


def _new_container(target: Any) -> Any:
    kind = reflect.kind_of(target)
    if kind is reflect.TargetKind.MAPPING:
        return SnapshotDict()
    if kind is reflect.TargetKind.SEQUENCE:
        return SnapshotList()
    try:
        frozen = frozen_class_for(type(target))
    except TypeError:
        return ObjectSnapshot()
    for allocate in (frozen.__new__, object.__new__):
        try:
            return allocate(frozen)
        except TypeError:
            continue
    # builtin layouts that refuse both allocators
    return ObjectSnapshot()


def _define(snap: Any, key: Hashable, value: Any) -> None:
    if isinstance(snap, SnapshotDict):
        snap._data[key] = value
    elif isinstance(snap, SnapshotList):
        snap._items.append(value)
    else:
        snap.__dict__[key] = value


def create_snapshot_default(target: Any, version: int) -> Any:
    """
    Build the snapshot of ``target`` at ``version``, or return the cached one.

    The container is cached before it is filled so cyclic graphs resolve to the
    snapshot under construction.
    """
    cached = snap_cache.get(target)
    if cached is not None and cached[0] == version:
        return cached[1]

    snap = _new_container(target)
    mark_to_track(snap, True)
    cache_snapshot(target, version, snap)
    for key in reflect.own_keys(target):
        value = reflect.get(target, key)
        if is_ref(value):
            mark_to_track(value, False)
        else:
            state = get_state(value)
            if state is not None:
                value = create_snapshot_default(state.target, state.ensure_version())
        _define(snap, key, value)
    return snap
