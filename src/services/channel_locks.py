"""Per-channel mutual exclusion for sync runs.

Two sync runs against the same channel could import the same order twice or
interleave inventory writes, so every run holds its channel's lock for its
whole duration. Different channels run in parallel.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from src.errors.domain import SyncInProgressError

logger = logging.getLogger(__name__)


class ChannelLockRegistry:
    """One ``asyncio.Lock`` per channel id, created on first use.

    Single-process only (one event loop).
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, channel_id: str) -> asyncio.Lock:
        lock = self._locks.get(channel_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[channel_id] = lock
        return lock

    def is_locked(self, channel_id: str) -> bool:
        lock = self._locks.get(channel_id)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, channel_id: str, wait: bool = True) -> AsyncIterator[None]:
        """Hold the channel lock for the body of an ``async with``.

        Args:
            channel_id: Channel to serialize on.
            wait: Queue behind a running sync when True; otherwise raise.

        Raises:
            SyncInProgressError: If ``wait`` is False and the lock is held.
        """
        lock = self._lock_for(channel_id)
        if not wait and lock.locked():
            raise SyncInProgressError(channel_id)
        if lock.locked():
            logger.info("Waiting for running sync on channel %s", channel_id)
        async with lock:
            yield


_registry = ChannelLockRegistry()


def get_channel_locks() -> ChannelLockRegistry:
    """Process-wide lock registry shared by the API and CLI."""
    return _registry
