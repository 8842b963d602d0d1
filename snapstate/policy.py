"""
SnapState Reference Policy
==========================

Decides which values become proxies and which are kept as atomic references.

Two mechanisms live here:

**Opaque marking** (``ref``): an identity-based mark meaning "never wrap, never
deep-copy". Marked objects appear by reference in every snapshot.

**Wrap eligibility** (``can_proxy_default``): a value is wrapped when it is an
object, is not opaque, is a ``list`` or is not a generic iterable (``dict`` is
the keyed-object case and always qualifies), is neither callable nor a frozen
dataclass instance, and does not belong to one of the atomic kinds listed in
``ATOMIC_KINDS``.

The atomic-kind exclusion list is configuration data, resolved once per
concrete type and memoized.
"""

import array
import asyncio
import concurrent.futures
import dataclasses
import datetime
import decimal
import functools
import math
import numbers
import re
import types
import weakref
from enum import Enum
from typing import Any, Dict, Optional, Tuple, TypeVar

from cachetools import LRUCache, cached

from .errors import ObjectRequiredError
from .util.identity import IdentityMap

T = TypeVar("T")

# Values that are never "objects": they cannot be proxied, referenced or tracked.
SCALAR_TYPES: Tuple[type, ...] = (
    type(None),
    bool,
    int,
    float,
    complex,
    str,
    bytes,
)


class AtomicKind(Enum):
    """Kinds of non-plain objects that are never wrapped."""

    WEAK_MAPPING = "weak_mapping"
    WEAK_SET = "weak_set"
    ERROR = "error"
    NUMBER = "number"
    DATE = "date"
    STRING = "string"
    PATTERN = "pattern"
    BINARY = "binary"
    FUTURE = "future"
    CALLABLE = "callable"
    SNAPSHOT = "snapshot"


ATOMIC_KINDS: Dict[AtomicKind, Tuple[type, ...]] = {
    AtomicKind.WEAK_MAPPING: (weakref.WeakKeyDictionary, weakref.WeakValueDictionary),
    AtomicKind.WEAK_SET: (weakref.WeakSet,),
    AtomicKind.ERROR: (BaseException,),
    AtomicKind.NUMBER: (numbers.Number, decimal.Decimal),
    AtomicKind.DATE: (datetime.date, datetime.time, datetime.timedelta),
    AtomicKind.STRING: (str,),
    AtomicKind.PATTERN: (re.Pattern,),
    AtomicKind.BINARY: (bytes, bytearray, memoryview, array.array),
    AtomicKind.FUTURE: (asyncio.Future, concurrent.futures.Future),
    AtomicKind.CALLABLE: (
        type,
        types.FunctionType,
        types.BuiltinFunctionType,
        types.MethodType,
        types.ModuleType,
        functools.partial,
        functools.partialmethod,
    ),
    AtomicKind.SNAPSHOT: (),
}

_kind_cache: LRUCache = LRUCache(maxsize=1024)


@cached(_kind_cache)
def _kind_for_type(tp: type) -> Optional[AtomicKind]:
    for kind, kinds in ATOMIC_KINDS.items():
        if issubclass(tp, kinds):
            return kind
    return None


def atomic_kind_of(value: Any) -> Optional[AtomicKind]:
    """Return the atomic kind of ``value``, or None for plain objects."""
    return _kind_for_type(type(value))


def register_atomic_kind(kind: AtomicKind, *kinds: type) -> None:
    """
    Add types to an atomic kind.

    Example:
        register_atomic_kind(AtomicKind.DATE, pendulum.DateTime)
    """
    ATOMIC_KINDS[kind] = ATOMIC_KINDS.get(kind, ()) + tuple(kinds)
    _kind_cache.clear()


def is_object(value: Any) -> bool:
    return not isinstance(value, SCALAR_TYPES)


# ============================================================================
# OPAQUE REFERENCES
# ============================================================================

ref_set: IdentityMap = IdentityMap()


def ref(obj: T) -> T:
    """
    Mark ``obj`` so it is never proxied or copied into snapshots.

    Returns ``obj`` unchanged so it can be used inline:

        state = proxy({"canvas": ref(Canvas()), "items": []})
    """
    if not is_object(obj):
        raise ObjectRequiredError(obj)
    ref_set.set(obj, True)
    return obj


def is_ref(value: Any) -> bool:
    return is_object(value) and value in ref_set


# ============================================================================
# DEFAULT POLICY FUNCTIONS
# ============================================================================


def _is_iterable(value: Any) -> bool:
    return hasattr(type(value), "__iter__") or hasattr(type(value), "__getitem__")


def is_frozen_instance(value: Any) -> bool:
    """Return True for instances whose attributes cannot be reassigned (frozen dataclasses)."""
    params = getattr(type(value), "__dataclass_params__", None)
    return params is not None and dataclasses.is_dataclass(value) and params.frozen


def can_proxy_default(value: Any) -> bool:
    if not is_object(value) or is_ref(value):
        return False
    if isinstance(value, (list, dict)):
        return True
    if _is_iterable(value) or not hasattr(value, "__dict__"):
        return False
    if callable(value) or is_frozen_instance(value):
        return False
    return atomic_kind_of(value) is None


def object_is(a: Any, b: Any) -> bool:
    """
    Default equality for the no-op write check.

    Identity for objects; value equality for scalars of the same type, with
    NaN equal to itself and 0.0 distinct from -0.0.
    """
    if a is b:
        return True
    if type(a) is not type(b) or not isinstance(a, SCALAR_TYPES):
        return False
    if isinstance(a, float):
        if math.isnan(a) and math.isnan(b):
            return True
        return a == b and math.copysign(1.0, a) == math.copysign(1.0, b)
    return a == b
