"""
SnapState - Transparent Change Tracking with Immutable Snapshots
================================================================

Wrap plain dicts, lists and objects in proxies, mutate them as usual, and get
versioned change notifications with full property paths plus memoized
immutable snapshots for reactive consumers.
"""

__version__ = "0.1.0"

from .config import dev_mode, is_dev_mode, set_dev_mode
from .errors import (
    FrozenSnapshotError,
    NotAProxyError,
    ObjectRequiredError,
    ProtocolViolationError,
    SnapStateError,
)
from .handles import DictProxy, ListProxy, ObjectProxy, ProxyHandle
from .operations import ChangeType, DeleteOperation, Operation, SetOperation
from .policy import AtomicKind, can_proxy_default, is_ref, ref, register_atomic_kind
from .registry import ProxyState, get_internal_states
from .scheduler import batch, flush
from .snapshot import ObjectSnapshot, Snapshot, SnapshotDict, SnapshotList
from .tracking import affected_paths, get_untracked, is_changed, is_changed_safely, track
from .vanilla import (
    Subscription,
    get_version,
    proxy,
    replace_internal_function,
    reset_internal_functions,
    snapshot,
    subscribe,
)

__all__ = [
    # Core operations
    "proxy",
    "get_version",
    "subscribe",
    "snapshot",
    "ref",
    "is_ref",
    "batch",
    "flush",
    "Subscription",
    # Handles and snapshots
    "ProxyHandle",
    "DictProxy",
    "ListProxy",
    "ObjectProxy",
    "Snapshot",
    "SnapshotDict",
    "SnapshotList",
    "ObjectSnapshot",
    # Operations
    "ChangeType",
    "Operation",
    "SetOperation",
    "DeleteOperation",
    # Policy and extension points
    "AtomicKind",
    "can_proxy_default",
    "register_atomic_kind",
    "replace_internal_function",
    "reset_internal_functions",
    "get_internal_states",
    "ProxyState",
    # Comparison
    "track",
    "get_untracked",
    "is_changed",
    "is_changed_safely",
    "affected_paths",
    # Configuration
    "dev_mode",
    "is_dev_mode",
    "set_dev_mode",
    # Exceptions
    "SnapStateError",
    "ObjectRequiredError",
    "NotAProxyError",
    "ProtocolViolationError",
    "FrozenSnapshotError",
]
