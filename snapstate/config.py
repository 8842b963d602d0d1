"""
SnapState Configuration
=======================

Process-wide settings. The only setting today is development mode, which turns
listener bookkeeping violations into exceptions and enables diagnostic
warnings.

Resolution order for the default:

1. ``SNAPSTATE_DEV`` set to ``1``/``true``/``0``/``false`` forces the flag.
2. ``SNAPSTATE_ENV=production`` disables it.
3. Otherwise ``__debug__`` decides (``python -O`` runs in production mode).
"""

import os
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")


def _default_dev_mode() -> bool:
    forced = os.environ.get("SNAPSTATE_DEV", "").strip().lower()
    if forced in _TRUE:
        return True
    if forced in _FALSE:
        return False
    if os.environ.get("SNAPSTATE_ENV", "").strip().lower() == "production":
        return False
    return __debug__


@dataclass
class Settings:
    """Mutable process-wide settings."""

    dev_mode: bool


settings = Settings(dev_mode=_default_dev_mode())


def is_dev_mode() -> bool:
    return settings.dev_mode


def set_dev_mode(enabled: bool) -> bool:
    """Set development mode and return the previous value."""
    previous = settings.dev_mode
    settings.dev_mode = bool(enabled)
    return previous


@contextmanager
def dev_mode(enabled: bool = True) -> Iterator[None]:
    """Temporarily switch development mode."""
    previous = set_dev_mode(enabled)
    try:
        yield
    finally:
        set_dev_mode(previous)
