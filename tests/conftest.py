"""
Shared pytest fixtures and configuration for SnapState tests.
"""

import pytest

from snapstate import reset_internal_functions, set_dev_mode
from snapstate.scheduler import FlushScheduler


@pytest.fixture(autouse=True)
def reset_snapstate():
    """Restore internals, scheduler state and dev mode around each test."""
    reset_internal_functions()
    FlushScheduler._reset_state()
    previous = set_dev_mode(True)
    yield
    set_dev_mode(previous)
    reset_internal_functions()
    FlushScheduler._reset_state()


@pytest.fixture
def recorder():
    """Callback that records every batch of operations it receives."""

    class Recorder:
        def __init__(self):
            self.batches = []

        def __call__(self, ops):
            self.batches.append(list(ops))

        @property
        def ops(self):
            return [op for batch in self.batches for op in batch]

        @property
        def paths(self):
            return [op.path for op in self.ops]

    return Recorder()
