"""Tests for per-channel sync locks."""

import asyncio

import pytest

from src.errors.domain import SyncInProgressError
from src.services.channel_locks import ChannelLockRegistry, get_channel_locks


async def test_no_wait_raises_while_held(locks):
    async with locks.hold("ch-1"):
        assert locks.is_locked("ch-1")
        with pytest.raises(SyncInProgressError) as exc_info:
            async with locks.hold("ch-1", wait=False):
                pass
        assert exc_info.value.channel_id == "ch-1"
    assert not locks.is_locked("ch-1")


async def test_channels_are_independent(locks):
    async with locks.hold("ch-1"):
        async with locks.hold("ch-2", wait=False):
            assert locks.is_locked("ch-2")


async def test_waiters_run_in_turn(locks):
    order = []

    async def run(name):
        async with locks.hold("ch-1"):
            order.append(f"{name}-start")
            await asyncio.sleep(0)
            order.append(f"{name}-end")

    await asyncio.gather(run("a"), run("b"))

    assert order == ["a-start", "a-end", "b-start", "b-end"]


def test_unknown_channel_unlocked():
    assert not ChannelLockRegistry().is_locked("never-used")


def test_registry_is_shared():
    assert get_channel_locks() is get_channel_locks()
