"""
Filing orchestrator.

Submits a claim to its carrier and records the result. The claim is only
touched after the carrier has accepted the submission; any failure leaves
it exactly as it was.
"""
import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from guardian.core.exceptions import CarrierError, CarrierTimeout, InvalidState
from guardian.core.logging import get_logger
from guardian.db.models import ClaimStatus, InsuranceClaim
from guardian.services.audit import AuditService
from guardian.services.carriers.registry import CarrierRegistry
from guardian.services.carriers.types import AdjusterInfo, FilingRequest, FilingResult
from guardian.services.claims import state_machine
from guardian.services.claims.locks import ClaimLockManager
from guardian.services.claims.store import ClaimStore

logger = get_logger(__name__)

FILEABLE_STATUSES = {ClaimStatus.PENDING, ClaimStatus.FILED}


@dataclass
class FilingOutcome:
    claim: InsuranceClaim
    result: FilingResult
    refiled: bool = False
    warnings: List[str] = field(default_factory=list)


def adjuster_details(adjuster: Optional[AdjusterInfo]) -> Optional[Dict[str, Any]]:
    if adjuster is None:
        return None
    return {
        "name": adjuster.name,
        "phone": adjuster.phone,
        "email": adjuster.email,
        "company": adjuster.company,
    }


def apply_adjuster(claim: InsuranceClaim, adjuster: Optional[AdjusterInfo]) -> None:
    if adjuster is None:
        return
    claim.adjuster_name = adjuster.name or claim.adjuster_name
    claim.adjuster_phone = adjuster.phone or claim.adjuster_phone
    claim.adjuster_email = adjuster.email or claim.adjuster_email
    claim.adjuster_company = adjuster.company or claim.adjuster_company


class FilingOrchestrator:
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

    async def file(self, claim_id: Any, request: FilingRequest, actor: str) -> FilingOutcome:
        """
        File a claim with its carrier.

        Filing an already filed claim is allowed and recorded as a re-filing;
        the carrier's newest identifiers replace the old ones.

        Raises:
            ValidationError: request missing required data.
            NotFound: unknown claim or carrier.
            InvalidState: claim is past the filing stage.
            UnsupportedOperation: carrier has no direct filing (adapter never called).
            CarrierError / CarrierTimeout: carrier rejected or did not answer; claim unchanged.
        """
        request.validate()

        async with self.locks.hold(claim_id):
            claim = self.store.get(claim_id)
            claim_key = str(claim.claim_id)

            if claim.status not in FILEABLE_STATUSES:
                raise InvalidState(
                    f"Claim in status '{claim.status.value}' cannot be filed with a carrier",
                    details={"status": claim.status.value},
                    claim_id=claim_key,
                )

            adapter = self.registry.require_filing_adapter(claim.carrier, claim_id=claim_key)

            warnings = []
            refiled = bool(claim.is_filed_with_carrier)
            if refiled:
                warnings.append(
                    f"Claim was already filed with {claim.carrier} as {claim.carrier_claim_id}; filing again"
                )
                logger.warning(
                    f"Re-filing claim {claim_key} with {claim.carrier} "
                    f"(previous carrier claim id {claim.carrier_claim_id})"
                )

            if not request.internal_claim_id:
                request.internal_claim_id = claim_key

            try:
                result = await asyncio.wait_for(adapter.file_claim(request), self.timeout_seconds)
            except asyncio.TimeoutError:
                error = CarrierTimeout(claim.carrier, self.timeout_seconds, claim_id=claim_key)
                self._log_failure(claim, error, actor)
                raise error
            except CarrierError as exc:
                exc.claim_id = claim_key
                self._log_failure(claim, exc, actor)
                raise

            # Carrier accepted: commit everything in one step, no awaits from here on
            self._apply_result(claim, result, actor, refiled)
            if self.audit:
                self.audit.log_claim_event(
                    "claim.filed",
                    actor,
                    claim_key,
                    details={
                        "carrier": claim.carrier,
                        "carrier_claim_id": result.carrier_claim_id,
                        "claim_number": result.claim_number,
                        "refiled": refiled,
                    },
                )
            self.store.commit(claim)

        logger.info(f"Claim {claim_key} filed with {claim.carrier}: {result.claim_number}")
        return FilingOutcome(claim=claim, result=result, refiled=refiled, warnings=warnings)

    def _apply_result(self, claim: InsuranceClaim, result: FilingResult, actor: str, refiled: bool) -> None:
        details = {
            "carrier": claim.carrier,
            "carrier_claim_id": result.carrier_claim_id,
            "claim_number": result.claim_number,
            "carrier_status": result.status.value,
            "confirmation": result.status_message,
            "estimated_response_date": (
                result.estimated_response_date.isoformat() if result.estimated_response_date else None
            ),
            "adjuster": adjuster_details(result.assigned_adjuster),
            "next_steps": list(result.next_steps),
            "tracking_url": result.tracking_url,
        }

        note = f"Filed with {claim.carrier}: claim #{result.claim_number}"
        if refiled:
            details["previous_carrier_claim_id"] = claim.carrier_claim_id
            details["previous_claim_number"] = claim.claim_number
            note = f"Re-filed with {claim.carrier}: claim #{result.claim_number}"

        if claim.status == ClaimStatus.PENDING:
            state_machine.transition(claim, ClaimStatus.FILED, actor, note=note, details=details)
        else:
            # Already 'filed' (re-filing, or marked filed by hand before)
            state_machine.record_note(claim, actor, note=note, details=details)

        claim.carrier_claim_id = result.carrier_claim_id
        claim.claim_number = result.claim_number
        claim.is_filed_with_carrier = True
        claim.carrier_status = result.status.value
        apply_adjuster(claim, result.assigned_adjuster)

    def _log_failure(self, claim: InsuranceClaim, error: CarrierError, actor: str) -> None:
        logger.error(f"Filing claim {claim.claim_id} with {claim.carrier} failed: {error}")
        if self.audit:
            self.audit.log(
                "carrier.filing_failed",
                action="file",
                actor_id=actor,
                resource_type="claim",
                resource_id=str(claim.claim_id),
                details=error.to_dict(),
            )
