"""
Identity Map - Weakly Owned Identity-Keyed Storage
=================================================

Python's ``weakref.WeakKeyDictionary`` needs keys that are hashable and weakly
referenceable. Proxy targets are usually ``dict`` and ``list`` instances, which
are neither, and proxy handles that behave like mappings are not hashable. This
module provides ``IdentityMap``: a map keyed by object identity whose entries
never keep an otherwise unreachable object alive.

Ownership rules:
- Weak-referenceable keys are held through ``weakref.ref``; the entry is
  evicted when the key is collected.
- With an explicit ``owner``, only the owner is referenced (weakly) and the
  entry is evicted when the owner is collected. The owner must keep the key
  alive. Proxies register their target this way, using the handle as owner.
- Keys that cannot be weakly referenced and have no owner are *pinned*. Pinned
  entries are released by ``prune()`` once the map holds the last reference;
  pruning runs automatically as pinned entries accumulate.
"""

import sys
import weakref
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

K = TypeVar("K")
V = TypeVar("V")


class _StrongRef:
    """Strong counterpart of ``weakref.ref`` so entries can be dereferenced uniformly."""

    __slots__ = ("obj",)

    def __init__(self, obj: Any):
        self.obj = obj

    def __call__(self) -> Any:
        return self.obj


# Reference count of a pinned object referenced only by its _StrongRef,
# measured with the exact expression prune() uses.
_sample = _StrongRef(object())
_PINNED_BASELINE = sys.getrefcount(_sample.obj)
del _sample


class _Entry:
    __slots__ = ("ref", "value", "pinned", "owned")

    def __init__(self, ref: Callable[[], Any], value: Any, pinned: bool = False, owned: bool = False):
        self.ref = ref
        self.value = value
        self.pinned = pinned
        self.owned = owned

    def matches(self, key: Any) -> bool:
        # An owned entry's id cannot be reused while its owner keeps the key alive
        if self.owned:
            return self.ref() is not None
        return self.ref() is key


class IdentityMap(Generic[K, V]):
    """
    Identity-keyed map with garbage-collector cooperative ownership.

    Example:
        cache = IdentityMap()
        target = {"a": 1}
        cache.set(target, "meta", owner=handle)
        cache.get(target)  # "meta" while handle is alive
    """

    def __init__(self, prune_threshold: int = 64):
        self._entries: Dict[int, _Entry] = {}
        self._pinned = 0
        self._prune_threshold = prune_threshold
        self._prune_at = prune_threshold

    def _lookup(self, key: Any) -> Optional[_Entry]:
        entry = self._entries.get(id(key))
        if entry is None or not entry.matches(key):
            return None
        return entry

    def get(self, key: K, default: Optional[V] = None) -> Optional[V]:
        entry = self._lookup(key)
        return default if entry is None else entry.value

    def __contains__(self, key: object) -> bool:
        return self._lookup(key) is not None

    def __len__(self) -> int:
        return len(self._entries)

    def set(self, key: K, value: V, owner: Any = None) -> None:
        """
        Associate ``value`` with ``key``.

        Args:
            key: Any object; identity is the key.
            value: Stored value. It must not reference ``owner`` (or ``key`` when
                it is held weakly) or the entry keeps itself alive.
            owner: Optional weak-referenceable object that keeps ``key`` alive
                and bounds the entry's lifetime.
        """
        entry = self._lookup(key)
        if entry is not None:
            entry.value = value
            return

        ident = id(key)
        if owner is not None and owner is not key:
            entry = _Entry(weakref.ref(owner, self._evictor(ident)), value, owned=True)
        else:
            try:
                entry = _Entry(weakref.ref(key, self._evictor(ident)), value)
            except TypeError:
                entry = _Entry(_StrongRef(key), value, pinned=True)

        stale = self._entries.get(ident)
        if stale is not None:
            self._remove(ident, stale)
        self._entries[ident] = entry
        if entry.pinned:
            self._pinned += 1
            if self._pinned >= self._prune_at:
                self.prune()

    def discard(self, key: K) -> None:
        entry = self._lookup(key)
        if entry is not None:
            self._remove(id(key), entry)

    def prune(self) -> int:
        """Release pinned entries nobody else references. Returns how many were dropped."""
        dropped = 0
        for ident, entry in list(self._entries.items()):
            if entry.pinned and sys.getrefcount(entry.ref.obj) <= _PINNED_BASELINE:
                self._remove(ident, entry)
                dropped += 1
        self._prune_at = max(self._prune_threshold, self._pinned * 2)
        return dropped

    def _remove(self, ident: int, entry: _Entry) -> None:
        if self._entries.get(ident) is entry:
            del self._entries[ident]
            if entry.pinned:
                self._pinned -= 1

    def _evict(self, ident: int, ref: Any) -> None:
        entry = self._entries.get(ident)
        if entry is not None and entry.ref is ref:
            self._remove(ident, entry)

    def _evictor(self, ident: int) -> Callable[[Any], None]:
        self_ref = weakref.ref(self)

        def evict(ref: Any) -> None:
            owner = self_ref()
            if owner is not None:
                owner._evict(ident, ref)

        return evict
