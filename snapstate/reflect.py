"""
SnapState Reflect - Uniform Access to Proxy Targets
===================================================

Targets come in three shapes: mappings (``dict``), sequences (``list``) and
attribute bags (plain instances with a ``__dict__``). The handler and the
snapshot builder talk to all of them through the functions here, keyed by
``TargetKind``.

Sequences never have holes: ``assign`` accepts an existing index or the index one
past the end, and ``remove`` only removes the last index.
"""

from enum import Enum
from typing import Any, Hashable, List, Optional

from .policy import atomic_kind_of, is_frozen_instance, is_object


class TargetKind(Enum):
    MAPPING = "mapping"
    SEQUENCE = "sequence"
    ATTRIBUTES = "attributes"


def kind_of(target: Any) -> Optional[TargetKind]:
    """Return the target kind, or None when ``target`` cannot be proxied at all."""
    if isinstance(target, dict):
        return TargetKind.MAPPING
    if isinstance(target, list):
        return TargetKind.SEQUENCE
    if is_object(target) and hasattr(target, "__dict__") and atomic_kind_of(target) is None:
        return TargetKind.ATTRIBUTES
    return None


def has(target: Any, key: Hashable) -> bool:
    if isinstance(target, dict):
        return key in target
    if isinstance(target, list):
        return isinstance(key, int) and 0 <= key < len(target)
    return isinstance(key, str) and hasattr(target, key)


def get(target: Any, key: Hashable) -> Any:
    """Read ``key``; missing keys read as None."""
    if isinstance(target, dict):
        return target.get(key)
    if isinstance(target, list):
        if isinstance(key, int) and 0 <= key < len(target):
            return target[key]
        return None
    return getattr(target, key, None)


def assign(target: Any, key: Hashable, value: Any) -> bool:
    if isinstance(target, dict):
        target[key] = value
        return True
    if isinstance(target, list):
        if not isinstance(key, int) or key < 0 or key > len(target):
            return False
        if key == len(target):
            target.append(value)
        else:
            target[key] = value
        return True
    setattr(target, key, value)
    return True


def remove(target: Any, key: Hashable) -> bool:
    if isinstance(target, dict):
        if key not in target:
            return False
        del target[key]
        return True
    if isinstance(target, list):
        if not target or key != len(target) - 1:
            return False
        target.pop()
        return True
    if key not in vars(target):
        return False
    delattr(target, key)
    return True


def own_keys(target: Any) -> List[Hashable]:
    if isinstance(target, dict):
        return list(target)
    if isinstance(target, list):
        return list(range(len(target)))
    return list(vars(target))


def can_assign(target: Any, key: Hashable) -> bool:
    """Return True if ``assign(target, key, ...)`` would succeed for this key."""
    if isinstance(target, list):
        return isinstance(key, int) and 0 <= key <= len(target)
    if isinstance(target, dict):
        return True
    return isinstance(key, str)


def is_writable(target: Any, key: Hashable) -> bool:
    """Return True if the own entry ``key`` can be re-assigned in place."""
    if isinstance(target, (dict, list)):
        return True
    if is_frozen_instance(target):
        return False
    descriptor = getattr(type(target), key, None) if isinstance(key, str) else None
    return not (hasattr(descriptor, "__get__") and hasattr(descriptor, "__set__"))
