"""
SnapState Utilities
===================

Support structures for the SnapState core.

Classes:
- IdentityMap: identity-keyed map that never keeps its keys alive on its own
"""

from .identity import IdentityMap

__all__ = ["IdentityMap"]
