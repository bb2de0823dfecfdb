"""
Tests for the per-claim lock manager.
"""

import asyncio

import pytest

from guardian.core.exceptions import ConcurrencyConflict
from guardian.services.claims.locks import ClaimLockManager


class TestClaimLockManager:
    @pytest.mark.asyncio
    async def test_same_claim_is_serialized(self):
        locks = ClaimLockManager()
        events = []

        async def worker(name):
            async with locks.hold("claim-1"):
                events.append(f"{name}:start")
                await asyncio.sleep(0.02)
                events.append(f"{name}:end")

        await asyncio.gather(worker("a"), worker("b"))

        assert events == ["a:start", "a:end", "b:start", "b:end"]

    @pytest.mark.asyncio
    async def test_different_claims_do_not_contend(self):
        locks = ClaimLockManager(timeout_seconds=0.05)

        async with locks.hold("claim-1"):
            async with locks.hold("claim-2"):
                assert locks.is_locked("claim-1")
                assert locks.is_locked("claim-2")

    @pytest.mark.asyncio
    async def test_timeout_raises_concurrency_conflict(self):
        locks = ClaimLockManager(timeout_seconds=0.05)
        holding = asyncio.Event()
        release = asyncio.Event()

        async def holder():
            async with locks.hold("claim-1"):
                holding.set()
                await release.wait()

        task = asyncio.create_task(holder())
        await holding.wait()

        with pytest.raises(ConcurrencyConflict) as exc_info:
            async with locks.hold("claim-1"):
                pass

        assert exc_info.value.retryable is True
        assert exc_info.value.claim_id == "claim-1"

        release.set()
        await task
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_lock_released_on_error(self):
        locks = ClaimLockManager()

        with pytest.raises(RuntimeError):
            async with locks.hold("claim-1"):
                raise RuntimeError("boom")

        assert not locks.is_locked("claim-1")
        async with locks.hold("claim-1", timeout_seconds=0.05):
            pass

    @pytest.mark.asyncio
    async def test_unused_locks_are_dropped(self):
        locks = ClaimLockManager()
        for n in range(5):
            async with locks.hold(f"claim-{n}"):
                assert len(locks) == 1
        assert len(locks) == 0
