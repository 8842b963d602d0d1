"""
SnapState Operations
====================

Records of individual mutations delivered to listeners and subscribers.

An operation carries the property path from the object a listener is attached
to down to the mutated property. Paths start with a single key at the mutated
object and grow by one prefix per ancestor as the operation bubbles up.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, ClassVar, Hashable, Tuple, Union

Key = Hashable
Path = Tuple[Key, ...]


class ChangeType(Enum):
    """Types of changes that can occur on a proxied object."""

    SET = "set"
    DELETE = "delete"


@dataclass(frozen=True)
class SetOperation:
    """A property was assigned a new value. ``prev_value`` is None for new keys."""

    path: Path
    value: Any
    prev_value: Any = None

    change_type: ClassVar[ChangeType] = ChangeType.SET

    def with_prefix(self, key: Key) -> "SetOperation":
        return replace(self, path=(key,) + self.path)

    def to_tuple(self) -> Tuple[str, Path, Any, Any]:
        return (self.change_type.value, self.path, self.value, self.prev_value)

    def __repr__(self) -> str:
        return f"SetOperation({list(self.path)}: {self.prev_value!r} -> {self.value!r})"


@dataclass(frozen=True)
class DeleteOperation:
    """A property was removed. ``prev_value`` is the value held right before removal."""

    path: Path
    prev_value: Any = None

    change_type: ClassVar[ChangeType] = ChangeType.DELETE

    def with_prefix(self, key: Key) -> "DeleteOperation":
        return replace(self, path=(key,) + self.path)

    def to_tuple(self) -> Tuple[str, Path, Any]:
        return (self.change_type.value, self.path, self.prev_value)

    def __repr__(self) -> str:
        return f"DeleteOperation({list(self.path)}: {self.prev_value!r})"


Operation = Union[SetOperation, DeleteOperation]
