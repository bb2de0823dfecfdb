"""
Per-claim lock manager.

Serializes operations on the same claim within one process. Locks are
created on first use and dropped once nobody holds or waits on them, so
unrelated claims never contend.
"""
import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

from guardian.core.exceptions import ConcurrencyConflict
from guardian.core.logging import get_logger

logger = get_logger(__name__)


class _LockEntry:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = asyncio.Lock()
        self.users = 0


class ClaimLockManager:
    def __init__(self, timeout_seconds: Optional[float] = None):
        self.timeout_seconds = timeout_seconds or None
        self._entries: Dict[str, _LockEntry] = {}

    @asynccontextmanager
    async def hold(self, claim_id, timeout_seconds: Optional[float] = None) -> AsyncIterator[None]:
        """
        Hold the claim's lock for the duration of the block.

        Raises:
            ConcurrencyConflict: lock not acquired within the timeout.
        """
        key = str(claim_id)
        timeout = timeout_seconds if timeout_seconds is not None else self.timeout_seconds

        entry = self._entries.get(key)
        if entry is None:
            entry = _LockEntry()
            self._entries[key] = entry
        entry.users += 1

        try:
            try:
                if timeout:
                    await asyncio.wait_for(entry.lock.acquire(), timeout)
                else:
                    await entry.lock.acquire()
            except asyncio.TimeoutError:
                logger.warning(f"Claim {key}: lock not acquired within {timeout:g}s")
                raise ConcurrencyConflict(
                    "Another operation on this claim is still in progress",
                    details={"timeout_seconds": timeout},
                    claim_id=key,
                )

            try:
                yield
            finally:
                entry.lock.release()
        finally:
            entry.users -= 1
            if entry.users == 0 and self._entries.get(key) is entry:
                del self._entries[key]

    def is_locked(self, claim_id) -> bool:
        entry = self._entries.get(str(claim_id))
        return entry is not None and entry.lock.locked()

    def __len__(self) -> int:
        return len(self._entries)
