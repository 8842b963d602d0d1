"""
SnapState Tracking - Access-Aware Snapshot Comparison
=====================================================

Consumers that re-render from snapshots only care about the parts they read.
This module records which keys were read from a snapshot and later answers
whether a newer snapshot differs in any of those keys.

Usage:
    affected = IdentityMap()
    view = track(snapshot(state), affected)
    render(view["user"]["name"])           # records "user" and "name"

    next_snap = snapshot(state)
    if is_changed_safely(prev_snap, next_snap, affected):
        rerender()

Snapshot builders mark their containers with ``mark_to_track(snap, True)`` and
opaque values with ``mark_to_track(value, False)``; only marked containers are
wrapped in views and compared structurally. Everything else compares by
identity (or by value for scalars).
"""

import logging
from collections.abc import Mapping, Sequence
from typing import Any, Dict, Hashable, Iterator, List, Optional, Set, Tuple

from .policy import is_object, object_is
from .util.identity import IdentityMap

logger = logging.getLogger(__name__)

track_marks: IdentityMap = IdentityMap()


class _AllKeys:
    """Marker recorded when a consumer depends on the full key set."""

    def __repr__(self) -> str:
        return "ALL_KEYS"


ALL_KEYS = _AllKeys()


def mark_to_track(obj: Any, mark: bool = True) -> None:
    if is_object(obj):
        track_marks.set(obj, mark)


def is_marked_to_track(obj: Any) -> bool:
    return is_object(obj) and track_marks.get(obj, False) is True


# ============================================================================
# SNAPSHOT ACCESS
# ============================================================================


def _keys(snap: Any) -> List[Hashable]:
    if isinstance(snap, Mapping):
        return list(snap)
    if isinstance(snap, Sequence):
        return list(range(len(snap)))
    return list(vars(snap))


def _has(snap: Any, key: Hashable) -> bool:
    if isinstance(snap, Mapping):
        return key in snap
    if isinstance(snap, Sequence):
        return isinstance(key, int) and 0 <= key < len(snap)
    return key in vars(snap)


def _get(snap: Any, key: Hashable) -> Any:
    if isinstance(snap, Mapping):
        return snap.get(key)
    if isinstance(snap, Sequence):
        return snap[key] if _has(snap, key) else None
    return vars(snap).get(key)


# ============================================================================
# TRACKED VIEWS
# ============================================================================


class _TrackedBase:
    __slots__ = ("_tracked_target_", "_tracked_affected_", "__weakref__")

    def __init__(self, target: Any, affected: IdentityMap):
        object.__setattr__(self, "_tracked_target_", target)
        object.__setattr__(self, "_tracked_affected_", affected)

    def _record(self, key: Hashable) -> None:
        affected = self._tracked_affected_
        keys = affected.get(self._tracked_target_)
        if keys is None:
            keys = set()
            affected.set(self._tracked_target_, keys)
        keys.add(key)

    def _read(self, key: Hashable, value: Any) -> Any:
        self._record(key)
        if is_marked_to_track(value):
            return track(value, self._tracked_affected_)
        return value

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("tracked views are read-only")

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._tracked_target_!r})"


class TrackedMapping(_TrackedBase, Mapping):
    __slots__ = ()

    def __getitem__(self, key: Hashable) -> Any:
        return self._read(key, self._tracked_target_[key])

    def __contains__(self, key: object) -> bool:
        self._record(key)
        return key in self._tracked_target_

    def __iter__(self) -> Iterator[Hashable]:
        self._record(ALL_KEYS)
        return iter(self._tracked_target_)

    def __len__(self) -> int:
        self._record(ALL_KEYS)
        return len(self._tracked_target_)


class TrackedSequence(_TrackedBase, Sequence):
    __slots__ = ()

    def __getitem__(self, index: Any) -> Any:
        target = self._tracked_target_
        if isinstance(index, slice):
            return [self[i] for i in range(*index.indices(len(target)))]
        if index < 0:
            index += len(target)
        return self._read(index, target[index])

    def __len__(self) -> int:
        self._record(ALL_KEYS)
        return len(self._tracked_target_)


class TrackedObject(_TrackedBase):
    __slots__ = ()

    def __getattr__(self, name: str) -> Any:
        target = self._tracked_target_
        if name in vars(target):
            return self._read(name, vars(target)[name])
        return getattr(target, name)


def track(snap: Any, affected: IdentityMap) -> Any:
    """Wrap ``snap`` in a read-only view that records key access into ``affected``."""
    if isinstance(snap, _TrackedBase) or not is_marked_to_track(snap):
        return snap
    if isinstance(snap, Mapping):
        return TrackedMapping(snap, affected)
    if isinstance(snap, Sequence):
        return TrackedSequence(snap, affected)
    return TrackedObject(snap, affected)


def get_untracked(value: Any) -> Optional[Any]:
    """Return the snapshot behind a tracked view, or None when ``value`` is not a view."""
    if isinstance(value, _TrackedBase):
        return value._tracked_target_
    return None


# ============================================================================
# COMPARISON
# ============================================================================


def is_changed(
    prev_obj: Any,
    next_obj: Any,
    affected: IdentityMap,
    _visiting: Optional[Set[Tuple[int, int]]] = None,
) -> bool:
    """
    Return True if any key recorded in ``affected`` reads differently in ``next_obj``.

    Snapshots that were never read count as changed.
    """
    if prev_obj is next_obj:
        return False
    if not is_object(prev_obj) or not is_object(next_obj):
        return not object_is(prev_obj, next_obj)
    if not is_marked_to_track(prev_obj) or not is_marked_to_track(next_obj):
        return True
    keys = affected.get(prev_obj)
    if keys is None:
        return True

    visiting = _visiting if _visiting is not None else set()
    pair = (id(prev_obj), id(next_obj))
    if pair in visiting:
        return False
    visiting.add(pair)

    if ALL_KEYS in keys and _keys(prev_obj) != _keys(next_obj):
        return True
    for key in keys:
        if key is ALL_KEYS:
            continue
        if _has(prev_obj, key) != _has(next_obj, key):
            return True
        if is_changed(_get(prev_obj, key), _get(next_obj, key), affected, visiting):
            return True
    return False


def is_changed_safely(prev_obj: Any, next_obj: Any, affected: IdentityMap) -> bool:
    """Like ``is_changed``, but a failing comparison counts as a change."""
    try:
        return is_changed(prev_obj, next_obj, affected)
    except Exception as e:
        logger.debug(f"Snapshot comparison failed, treating as changed: {e}")
        return True


def affected_paths(snap: Any, affected: IdentityMap) -> List[Tuple[Hashable, ...]]:
    """List the key paths recorded for ``snap``, for debugging."""
    paths: List[Tuple[Hashable, ...]] = []
    seen: Dict[int, bool] = {}

    def walk(obj: Any, path: Tuple[Hashable, ...]) -> None:
        if id(obj) in seen:
            return
        seen[id(obj)] = True
        keys = affected.get(obj)
        if not keys:
            return
        for key in keys:
            if key is ALL_KEYS:
                paths.append(path)
                continue
            value = _get(obj, key)
            if is_marked_to_track(value) and affected.get(value):
                walk(value, path + (key,))
            else:
                paths.append(path + (key,))

    walk(snap, ())
    return paths
