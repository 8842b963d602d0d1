"""
SnapState Registries
====================

Process-wide identity registries shared by every proxy, plus the table of
replaceable internal functions.

Registries:
- proxy_state_map: handle -> weak reference to its ProxyState
- proxy_cache: target -> weak reference to its handle
- snap_cache: target -> (version, snapshot)
- ref_set: opaque marks (see ``policy.ref``)

Target-keyed entries are owned by the handle: they disappear as soon as the
handle is collected, and never keep the handle alive themselves.
"""

import weakref
from dataclasses import dataclass
from typing import Any, Callable, NamedTuple, Optional

from .operations import Operation
from .policy import ref_set
from .util.identity import IdentityMap
from .versions import VersionHolder, version_holder

Listener = Callable[[Operation, int], None]
RemoveListener = Callable[[], None]


class ProxyState:
    """
    Registry entry for one handle.

    The registry only references it weakly; its node keeps it alive for as long
    as the handle holds the handler built around that node.
    """

    __slots__ = ("target", "ensure_version", "add_listener", "__weakref__")

    def __init__(
        self,
        target: Any,
        ensure_version: Callable[..., int],
        add_listener: Callable[[Listener], RemoveListener],
    ):
        self.target = target
        self.ensure_version = ensure_version
        self.add_listener = add_listener

    def __repr__(self) -> str:
        return f"ProxyState(target={type(self.target).__name__})"


proxy_state_map: IdentityMap = IdentityMap()
proxy_cache: IdentityMap = IdentityMap()
snap_cache: IdentityMap = IdentityMap()


def register(target: Any, handle: Any, state: ProxyState) -> None:
    proxy_cache.set(target, weakref.ref(handle), owner=handle)
    proxy_state_map.set(handle, weakref.ref(state))


def find_handle(target: Any) -> Optional[Any]:
    """Return the live handle wrapping ``target``, if any."""
    handle_ref = proxy_cache.get(target)
    return handle_ref() if handle_ref is not None else None


def get_state(value: Any) -> Optional[ProxyState]:
    state_ref = proxy_state_map.get(value)
    return state_ref() if state_ref is not None else None


def cache_snapshot(target: Any, version: int, snap: Any) -> None:
    snap_cache.set(target, (version, snap), owner=find_handle(target))


@dataclass
class InternalFunctions:
    """
    Replaceable internals. Defaults are installed by ``snapstate.vanilla``.

    Attributes:
        object_is: equality used by the no-op write check
        new_proxy: builds the handle object for a target and handler
        can_proxy: wrap-eligibility policy
        create_snapshot: snapshot builder
        create_handler: interception handler factory
    """

    object_is: Optional[Callable[[Any, Any], bool]] = None
    new_proxy: Optional[Callable[[Any, Any], Any]] = None
    can_proxy: Optional[Callable[[Any], bool]] = None
    create_snapshot: Optional[Callable[[Any, int], Any]] = None
    create_handler: Optional[Callable[..., Any]] = None


functions = InternalFunctions()


class InternalStates(NamedTuple):
    proxy_state_map: IdentityMap
    ref_set: IdentityMap
    snap_cache: IdentityMap
    version_holder: VersionHolder
    proxy_cache: IdentityMap


def get_internal_states() -> InternalStates:
    """Expose the registries and counters for debugging and tests."""
    return InternalStates(
        proxy_state_map=proxy_state_map,
        ref_set=ref_set,
        snap_cache=snap_cache,
        version_holder=version_holder,
        proxy_cache=proxy_cache,
    )
