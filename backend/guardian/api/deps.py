"""
API dependencies
"""
from typing import Callable, Optional

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from guardian.core.config import settings
from guardian.db import SessionLocal, get_db
from guardian.services.carriers.registry import CarrierRegistry
from guardian.services.claims.locks import ClaimLockManager
from guardian.services.claims.service import ClaimService
from guardian.services.claims.sync import SyncSweep

DEFAULT_ACTOR = "dashboard"


def get_registry(request: Request) -> CarrierRegistry:
    return request.app.state.carrier_registry


def get_lock_manager(request: Request) -> ClaimLockManager:
    return request.app.state.claim_locks


def get_session_factory() -> Callable[[], Session]:
    """Factory for work that opens a session per unit, like the sync sweep."""
    return SessionLocal


def get_actor(x_actor: Optional[str] = Header(default=None)) -> str:
    """Who is acting; authentication lives in front of this service."""
    return (x_actor or DEFAULT_ACTOR).strip()[:100] or DEFAULT_ACTOR


def get_claim_service(
    db: Session = Depends(get_db),
    registry: CarrierRegistry = Depends(get_registry),
    locks: ClaimLockManager = Depends(get_lock_manager),
) -> ClaimService:
    return ClaimService(db, registry, locks, carrier_timeout_seconds=settings.CARRIER_TIMEOUT_SECONDS)


def get_sync_sweep(
    session_factory: Callable[[], Session] = Depends(get_session_factory),
    registry: CarrierRegistry = Depends(get_registry),
    locks: ClaimLockManager = Depends(get_lock_manager),
    actor: str = Depends(get_actor),
) -> SyncSweep:
    return SyncSweep(
        session_factory,
        registry,
        locks,
        timeout_seconds=settings.CARRIER_TIMEOUT_SECONDS,
        max_retries=settings.SYNC_SWEEP_MAX_RETRIES,
        retry_delay=settings.SYNC_SWEEP_RETRY_DELAY,
        request_spacing=settings.SYNC_SWEEP_REQUEST_SPACING,
        actor=actor,
    )


__all__ = [
    "get_db",
    "get_registry",
    "get_lock_manager",
    "get_session_factory",
    "get_actor",
    "get_claim_service",
    "get_sync_sweep",
]
