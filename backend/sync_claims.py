"""
Run one carrier status sync sweep over all filed claims.

Meant for cron: `python sync_claims.py` from the backend directory.
"""
import asyncio
import sys

from guardian.core.config import settings
from guardian.core.logging import logger
from guardian.db.session import SessionLocal
from guardian.services.carriers.registry import build_carrier_registry
from guardian.services.claims.locks import ClaimLockManager
from guardian.services.claims.sync import SyncSweep


async def run_sweep() -> int:
    registry = build_carrier_registry(settings)
    sweep = SyncSweep(
        SessionLocal,
        registry,
        ClaimLockManager(timeout_seconds=settings.CLAIM_LOCK_TIMEOUT_SECONDS),
        timeout_seconds=settings.CARRIER_TIMEOUT_SECONDS,
        max_retries=settings.SYNC_SWEEP_MAX_RETRIES,
        retry_delay=settings.SYNC_SWEEP_RETRY_DELAY,
        request_spacing=settings.SYNC_SWEEP_REQUEST_SPACING,
    )
    try:
        report = await sweep.run()
    finally:
        await registry.aclose()

    print("\n--- Carrier Sync Sweep ---")
    print(f"Synced:    {report.synced}")
    print(f"Conflicts: {report.conflicts}")
    print(f"Failed:    {report.failed}")
    for error in report.errors:
        print(f"  {error['claim_id']:<36} | {error['carrier']:<15} | {error['message']}")
    print("--- End of Sweep ---\n")

    logger.info(f"Sync sweep report: {report.to_dict()}")
    return 1 if report.failed else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(run_sweep()))
