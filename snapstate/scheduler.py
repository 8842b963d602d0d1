"""
SnapState Scheduler - Deferred Subscriber Delivery
==================================================

Deferred subscriptions coalesce every operation produced during one execution
turn into a single callback. This module provides the explicit task queue that
defines what "one turn" means:

- With an asyncio event loop running in the current thread, a flush task is
  handed to ``loop.call_soon`` and runs once the current callback yields.
- Otherwise the task is queued and drained when the outermost scheduler turn
  exits. Every write through a proxy handle is a turn, and ``batch()`` opens
  one explicitly, so a block of writes inside ``batch()`` is delivered once.

Errors raised by deferred tasks are logged; they never reach the writer whose
mutation happened to end the turn.
"""

import asyncio
import logging
import threading
from collections import deque
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

logger = logging.getLogger(__name__)

Task = Callable[[], None]


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class FlushScheduler:
    """Per-thread queue of deferred flush tasks."""

    _local = threading.local()

    @classmethod
    def _get_state(cls) -> dict:
        if not hasattr(cls._local, "state"):
            cls._local.state = {"depth": 0, "is_draining": False, "pending": deque()}
        return cls._local.state

    @classmethod
    def schedule(cls, task: Task) -> None:
        """Run ``task`` at the end of the current turn."""
        loop = _running_loop()
        if loop is not None:
            loop.call_soon(cls._run_task, task)
            return
        state = cls._get_state()
        state["pending"].append(task)
        if state["depth"] == 0:
            cls.drain()

    @classmethod
    @contextmanager
    def turn(cls) -> Iterator[None]:
        state = cls._get_state()
        state["depth"] += 1
        try:
            yield
        finally:
            state["depth"] -= 1
            if state["depth"] == 0:
                cls.drain()

    @classmethod
    def drain(cls) -> None:
        state = cls._get_state()
        if state["is_draining"]:
            return
        state["is_draining"] = True
        try:
            while state["pending"]:
                cls._run_task(state["pending"].popleft())
        finally:
            state["is_draining"] = False

    @classmethod
    def pending_count(cls) -> int:
        return len(cls._get_state()["pending"])

    @staticmethod
    def _run_task(task: Task) -> None:
        try:
            task()
        except Exception:
            logger.exception("Error in deferred subscriber flush")

    @classmethod
    def _reset_state(cls) -> None:
        """Reset the scheduler state for testing."""
        cls._local.__dict__.clear()


def batch():
    """
    Coalesce all writes inside the block into one delivery per deferred subscriber.

    Example:
        with batch():
            state["first"] = "Ada"
            state["last"] = "Lovelace"
        # subscribers are called once, with both operations
    """
    return FlushScheduler.turn()


def flush() -> None:
    """Deliver pending deferred notifications now."""
    FlushScheduler.drain()
