"""
Test utilities for SnapState.

This package contains shared testing utilities to help write
better, more maintainable tests.
"""

from .memory_utils import (
    RegistryTracker,
    assert_collected,
    assert_no_object_leak,
    collect,
    count_types,
    registry_sizes,
)

__all__ = [
    "assert_collected",
    "assert_no_object_leak",
    "collect",
    "count_types",
    "registry_sizes",
    "RegistryTracker",
]
