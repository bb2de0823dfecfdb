"""
Carrier status sync.

SyncOrchestrator refreshes one claim from its carrier. It applies money
unconditionally (the carrier is authoritative once filed) but only ever
moves the status forward; a carrier reporting an older status is recorded
as a history note and handed back as a SyncConflict.

SyncSweep runs the orchestrator over every filed, syncable claim.
"""
import asyncio
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from guardian.core.exceptions import (
    CarrierError,
    CarrierTimeout,
    ClaimEngineError,
    ConcurrencyConflict,
    InvalidState,
    InvariantViolation,
    SyncConflict,
    UnsupportedOperation,
)
from guardian.core.logging import get_logger
from guardian.db.models import ClaimStatus, InsuranceClaim
from guardian.services.audit import AuditService
from guardian.services.carriers.registry import CarrierRegistry
from guardian.services.carriers.types import CarrierClaimStatus, CarrierStatusSnapshot
from guardian.services.claims import state_machine
from guardian.services.claims.filing import adjuster_details, apply_adjuster
from guardian.services.claims.locks import ClaimLockManager
from guardian.services.claims.store import ClaimStore

logger = get_logger(__name__)


CARRIER_STATUS_MAP: Dict[CarrierClaimStatus, ClaimStatus] = {
    CarrierClaimStatus.RECEIVED: ClaimStatus.FILED,
    CarrierClaimStatus.ASSIGNED: ClaimStatus.ADJUSTER_ASSIGNED,
    CarrierClaimStatus.INSPECTION_SCHEDULED: ClaimStatus.INSPECTION_SCHEDULED,
    CarrierClaimStatus.INSPECTION_COMPLETE: ClaimStatus.INSPECTION_SCHEDULED,
    CarrierClaimStatus.UNDER_REVIEW: ClaimStatus.INSPECTION_SCHEDULED,
    CarrierClaimStatus.APPROVED: ClaimStatus.APPROVED,
    CarrierClaimStatus.PARTIALLY_APPROVED: ClaimStatus.APPROVED,
    CarrierClaimStatus.PAYMENT_PROCESSING: ClaimStatus.APPROVED,
    CarrierClaimStatus.SUPPLEMENT_REQUESTED: ClaimStatus.SUPPLEMENT,
    CarrierClaimStatus.SUPPLEMENT_APPROVED: ClaimStatus.SUPPLEMENT,
    CarrierClaimStatus.PAYMENT_ISSUED: ClaimStatus.PAID,
    CarrierClaimStatus.DENIED: ClaimStatus.DENIED,
    CarrierClaimStatus.CLOSED: ClaimStatus.CLOSED,
}


def map_carrier_status(status: CarrierClaimStatus) -> ClaimStatus:
    return CARRIER_STATUS_MAP[CarrierClaimStatus(status)]


@dataclass
class SyncOutcome:
    claim: InsuranceClaim
    conflict: Optional[SyncConflict] = None
    snapshot: Optional[CarrierStatusSnapshot] = None
    status_changed: bool = False


class SyncOrchestrator:
    def __init__(
        self,
        store: ClaimStore,
        registry: CarrierRegistry,
        locks: ClaimLockManager,
        audit: Optional[AuditService] = None,
        timeout_seconds: float = 30.0,
    ):
        self.store = store
        self.registry = registry
        self.locks = locks
        self.audit = audit
        self.timeout_seconds = timeout_seconds

    async def sync(self, claim_id: Any, actor: str) -> SyncOutcome:
        """
        Refresh a claim from its carrier.

        The attempt time is written on success and failure alike. On failure
        the error is stored in last_sync_error, committed, then raised.

        Raises:
            NotFound: unknown claim or carrier.
            UnsupportedOperation: carrier has no status sync (adapter never called).
            InvalidState: claim was never filed with the carrier.
            CarrierError / CarrierTimeout: carrier failed; retryable.
            InvariantViolation: carrier reported inconsistent money; nothing applied.
        """
        async with self.locks.hold(claim_id):
            claim = self.store.get(claim_id)
            claim_key = str(claim.claim_id)

            adapter = self.registry.require_sync_adapter(claim.carrier, claim_id=claim_key)

            if not claim.is_filed_with_carrier or not claim.carrier_claim_id:
                raise InvalidState(
                    "Claim has not been filed with the carrier yet",
                    details={"carrier": claim.carrier},
                    claim_id=claim_key,
                )

            attempted_at = datetime.utcnow()
            try:
                snapshot = await asyncio.wait_for(
                    adapter.fetch_status(claim.carrier_claim_id),
                    self.timeout_seconds,
                )
            except asyncio.TimeoutError:
                error = CarrierTimeout(claim.carrier, self.timeout_seconds, claim_id=claim_key)
                self._record_failure(claim, error, attempted_at, actor)
                raise error
            except CarrierError as exc:
                exc.claim_id = claim_key
                self._record_failure(claim, exc, attempted_at, actor)
                raise

            try:
                outcome = self._apply_snapshot(claim, snapshot, attempted_at, actor)
            except InvariantViolation as exc:
                self.store.rollback()
                self._record_failure(claim, exc, attempted_at, actor)
                raise

            self.store.commit(claim)

        if outcome.conflict:
            logger.warning(f"Sync conflict on claim {claim_key}: {outcome.conflict.message}")
        else:
            logger.info(f"Claim {claim_key} synced from {claim.carrier}: {claim.status.value}")
        return outcome

    def _apply_snapshot(
        self,
        claim: InsuranceClaim,
        snapshot: CarrierStatusSnapshot,
        attempted_at: datetime,
        actor: str,
    ) -> SyncOutcome:
        claim_key = str(claim.claim_id)

        # Money first: carrier figures apply regardless of the status outcome
        money = {
            "approved_value": snapshot.approved_value,
            "acv": snapshot.acv,
            "total_paid": snapshot.paid_to_date,
        }
        changes = {name: value for name, value in money.items() if value is not None}
        if changes:
            state_machine.apply_financial_update(claim, **changes)

        apply_adjuster(claim, snapshot.adjuster)
        if snapshot.inspection_date:
            claim.inspection_date = snapshot.inspection_date
        if snapshot.claim_number and not claim.claim_number:
            claim.claim_number = snapshot.claim_number

        claim.carrier_status = snapshot.status.value
        claim.carrier_last_sync = attempted_at
        claim.last_sync_error = None

        mapped = map_carrier_status(snapshot.status)
        details = {
            "carrier": claim.carrier,
            "carrier_status": snapshot.status.value,
            "raw_status": snapshot.raw_status,
            "status_message": snapshot.status_message,
            "approved_value": str(snapshot.approved_value) if snapshot.approved_value is not None else None,
            "acv": str(snapshot.acv) if snapshot.acv is not None else None,
            "paid_to_date": str(snapshot.paid_to_date) if snapshot.paid_to_date is not None else None,
            "adjuster": adjuster_details(snapshot.adjuster),
        }

        conflict = None
        status_changed = False
        previous = claim.status
        if mapped == claim.status:
            pass
        elif state_machine.can_transition(claim.status, mapped) or state_machine.is_forward_move(claim.status, mapped):
            state_machine.advance(
                claim,
                mapped,
                actor,
                note=f"Status updated from {claim.carrier}: {snapshot.raw_status}",
                details=details,
            )
            status_changed = True
        else:
            conflict = SyncConflict(
                local_status=claim.status.value,
                carrier_status=snapshot.status.value,
                mapped_status=mapped.value,
                claim_id=claim_key,
            )
            state_machine.record_note(
                claim,
                actor,
                note=f"Sync conflict: {conflict.message}",
                details={**details, "conflict": conflict.details},
            )

        if self.audit:
            self.audit.log_claim_event(
                "claim.synced",
                actor,
                claim_key,
                details={
                    "carrier": claim.carrier,
                    "from": previous.value,
                    "to": claim.status.value,
                    "carrier_status": snapshot.status.value,
                    "conflict": conflict is not None,
                },
            )

        return SyncOutcome(claim=claim, conflict=conflict, snapshot=snapshot, status_changed=status_changed)

    def _record_failure(
        self,
        claim: InsuranceClaim,
        error: ClaimEngineError,
        attempted_at: datetime,
        actor: str,
    ) -> None:
        """Persist the failed attempt on its own; the caller re-raises the error."""
        error_code = getattr(error, "error_code", error.code)
        claim.carrier_last_sync = attempted_at
        claim.last_sync_error = f"{error_code}: {error.message}"
        if self.audit:
            self.audit.log_claim_event(
                "carrier.sync_failed",
                actor,
                claim.claim_id,
                details=error.to_dict(),
            )
        logger.error(f"Sync of claim {claim.claim_id} with {claim.carrier} failed: {error}")
        try:
            self.store.commit(claim)
        except ConcurrencyConflict as conflict:
            # Someone else wrote the claim meanwhile; their write already moved carrier_last_sync on
            logger.warning(f"Could not record sync failure for claim {claim.claim_id}: {conflict}")


@dataclass
class SweepReport:
    synced: int = 0
    conflicts: int = 0
    failed: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.synced + self.conflicts + self.failed

    def merge(self, other: "SweepReport") -> None:
        self.synced += other.synced
        self.conflicts += other.conflicts
        self.failed += other.failed
        self.errors.extend(other.errors)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "synced": self.synced,
            "conflicts": self.conflicts,
            "failed": self.failed,
            "total": self.total,
            "errors": self.errors,
        }


class SyncSweep:
    """
    Batch sync over the filed claims of syncable carriers.

    Carriers run concurrently so one carrier's outage never holds up another.
    Within a carrier, claims go one at a time with a small spacing between
    requests. Retryable failures are retried with exponential backoff; each
    attempt uses its own session.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        registry: CarrierRegistry,
        locks: ClaimLockManager,
        timeout_seconds: float = 30.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        request_spacing: float = 0.1,
        actor: str = "sync-sweep",
    ):
        self.session_factory = session_factory
        self.registry = registry
        self.locks = locks
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.request_spacing = request_spacing
        self.actor = actor

    async def run(self, carriers: Optional[Iterable[str]] = None) -> SweepReport:
        """
        Sync every syncable claim, or only those of the named carriers.

        Raises:
            NotFound: a named carrier is not registered.
            UnsupportedOperation: a named carrier has no status sync.
        """
        if carriers is None:
            syncable = [c.code for c in self.registry.list_carriers() if c.supports_status_sync]
        else:
            syncable = []
            for carrier in carriers:
                capabilities = self.registry.get_capabilities(carrier)
                if not capabilities.supports_status_sync:
                    raise UnsupportedOperation(capabilities.code, "status sync")
                syncable.append(capabilities.code)

        with self.session_factory() as db:
            rows = ClaimStore(db).syncable_claim_ids(syncable)

        by_carrier: Dict[str, List[Any]] = defaultdict(list)
        for claim_id, carrier in rows:
            by_carrier[carrier].append(claim_id)

        logger.info(f"Sync sweep: {len(rows)} claims across {len(by_carrier)} carriers")

        report = SweepReport()
        results = await asyncio.gather(
            *(self._sweep_carrier(carrier, claim_ids) for carrier, claim_ids in by_carrier.items())
        )
        for carrier_report in results:
            report.merge(carrier_report)

        logger.info(
            f"Sync sweep finished: {report.synced} synced, {report.conflicts} conflicts, {report.failed} failed"
        )
        return report

    async def _sweep_carrier(self, carrier: str, claim_ids: List[Any]) -> SweepReport:
        report = SweepReport()
        for index, claim_id in enumerate(claim_ids):
            if index and self.request_spacing:
                await asyncio.sleep(self.request_spacing)
            await self._sync_with_retry(carrier, claim_id, report)
        return report

    async def _sync_with_retry(self, carrier: str, claim_id: Any, report: SweepReport) -> None:
        delay = self.retry_delay

        for attempt in range(self.max_retries + 1):
            try:
                with self.session_factory() as db:
                    orchestrator = SyncOrchestrator(
                        ClaimStore(db),
                        self.registry,
                        self.locks,
                        audit=AuditService(db),
                        timeout_seconds=self.timeout_seconds,
                    )
                    outcome = await orchestrator.sync(claim_id, self.actor)
            except ClaimEngineError as exc:
                if exc.retryable and attempt < self.max_retries:
                    logger.warning(
                        f"Sync of claim {claim_id} ({carrier}) failed "
                        f"(attempt {attempt + 1}/{self.max_retries + 1}), retrying in {delay:g}s: {exc.message}"
                    )
                    await asyncio.sleep(delay)
                    delay *= 2
                    continue

                report.failed += 1
                report.errors.append({"claim_id": str(claim_id), "carrier": carrier, **exc.to_dict()})
                return

            if outcome.conflict:
                report.conflicts += 1
            else:
                report.synced += 1
            return
