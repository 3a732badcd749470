"""
Per-conversation turn lock.

A conversation must not be mutated by a second request while a provider call
for it is in flight. Hosts may dispatch requests on parallel threads, on one
event loop, or on several event loops at once, so the lock is a plain
``threading.Lock`` with an awaitable acquire on top.
"""

import asyncio
import logging
import threading
from typing import Any

logger = logging.getLogger(__name__)

# Backoff bounds for async waiters, in seconds
POLL_INITIAL_DELAY = 0.005
POLL_MAX_DELAY = 0.1


class TurnLock:
    """
    Mutex held from conversation resolution until the turn is recorded.

    ``acquire``/``release`` are the blocking thread API. ``acquire_async`` polls
    with a non-blocking acquire and sleeps between attempts, so a waiter holds
    no thread and the event loop keeps serving other conversations.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()

    def locked(self) -> bool:
        return self._lock.locked()

    def acquire(self, timeout: float | None = None) -> bool:
        if timeout is None:
            return self._lock.acquire()
        return self._lock.acquire(timeout=timeout)

    def release(self) -> None:
        self._lock.release()

    async def acquire_async(self, timeout: float | None = None) -> bool:
        """
        Acquire the lock without blocking the running event loop.

        Args:
            timeout: Seconds to wait; None waits indefinitely

        Returns:
            True if the lock was acquired, False on timeout
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        delay = POLL_INITIAL_DELAY

        while not self._lock.acquire(blocking=False):
            if deadline is not None:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    logger.debug(f"Turn lock not acquired within {timeout}s")
                    return False
                delay = min(delay, remaining)
            await asyncio.sleep(delay)
            delay = min(delay * 2, POLL_MAX_DELAY)

        return True

    def __enter__(self) -> "TurnLock":
        self.acquire()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.release()
