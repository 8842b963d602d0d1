"""
SnapState Errors
================

Exception hierarchy shared by the proxy, snapshot and subscription layers.

Every error raised by SnapState derives from ``SnapStateError`` and also from
the closest built-in exception, so callers can catch either.
"""


class SnapStateError(Exception):
    """Base class for all SnapState errors."""

    pass


class ObjectRequiredError(SnapStateError, TypeError):
    """Raised when a scalar or an unsupported value is passed where an object is required."""

    def __init__(self, value=None):
        super().__init__("object required")
        self.value = value


class NotAProxyError(SnapStateError, TypeError):
    """Raised when an operation that needs a proxy handle receives something else."""

    def __init__(self, value=None):
        super().__init__(f"Please use proxy object (got {type(value).__name__})")
        self.value = value


class ProtocolViolationError(SnapStateError, RuntimeError):
    """
    Raised when listener bookkeeping is inconsistent.

    Only raised in development mode; production mode logs and tolerates it.
    """

    pass


class FrozenSnapshotError(SnapStateError, TypeError):
    """Raised on any attempt to mutate a snapshot."""

    pass
