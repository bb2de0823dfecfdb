"""
Claim State Machine

Enforces the claim lifecycle. Every accepted move updates the status,
appends exactly one history event and re-validates the claim's money
fields. Rejected moves leave the claim untouched. Nothing here commits;
callers persist the claim in the same transaction.
"""
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, List, Optional

from guardian.core.exceptions import InvalidTransition, InvariantViolation, ValidationError
from guardian.core.logging import get_logger
from guardian.db.models import ClaimStatus, InsuranceClaim
from guardian.services.claims.reconciler import ClaimFinancials, reconcile

logger = get_logger(__name__)


STATUS_TRANSITIONS: Dict[ClaimStatus, List[ClaimStatus]] = {
    ClaimStatus.PENDING: [ClaimStatus.FILED],
    ClaimStatus.FILED: [
        ClaimStatus.ADJUSTER_ASSIGNED,
        ClaimStatus.INSPECTION_SCHEDULED,
        ClaimStatus.APPROVED,
        ClaimStatus.DENIED,
    ],
    ClaimStatus.ADJUSTER_ASSIGNED: [
        ClaimStatus.INSPECTION_SCHEDULED,
        ClaimStatus.APPROVED,
        ClaimStatus.DENIED,
    ],
    ClaimStatus.INSPECTION_SCHEDULED: [ClaimStatus.APPROVED, ClaimStatus.DENIED],
    ClaimStatus.APPROVED: [ClaimStatus.SUPPLEMENT, ClaimStatus.PAID, ClaimStatus.DENIED],
    ClaimStatus.SUPPLEMENT: [ClaimStatus.APPROVED, ClaimStatus.PAID],
    ClaimStatus.PAID: [ClaimStatus.SUPPLEMENT, ClaimStatus.CLOSED],
    ClaimStatus.CLOSED: [],
    ClaimStatus.DENIED: [],
}

# Pipeline order used to tell forward from backward. Denied sits outside it.
STATUS_ORDER = [
    ClaimStatus.PENDING,
    ClaimStatus.FILED,
    ClaimStatus.ADJUSTER_ASSIGNED,
    ClaimStatus.INSPECTION_SCHEDULED,
    ClaimStatus.APPROVED,
    ClaimStatus.SUPPLEMENT,
    ClaimStatus.PAID,
    ClaimStatus.CLOSED,
]

TERMINAL_STATUSES = {ClaimStatus.CLOSED, ClaimStatus.DENIED}


def get_next_states(current: ClaimStatus) -> List[ClaimStatus]:
    """Valid next states from the current state."""
    return STATUS_TRANSITIONS.get(current, [])


def can_transition(current: ClaimStatus, target: ClaimStatus) -> bool:
    return target in get_next_states(current)


def is_terminal(status: ClaimStatus) -> bool:
    return status in TERMINAL_STATUSES


def status_rank(status: ClaimStatus) -> Optional[int]:
    try:
        return STATUS_ORDER.index(status)
    except ValueError:
        return None


def is_forward_move(current: ClaimStatus, target: ClaimStatus) -> bool:
    """True when target lies strictly ahead of current in the pipeline."""
    if is_terminal(current):
        return False
    current_rank = status_rank(current)
    target_rank = status_rank(target)
    if current_rank is None or target_rank is None:
        return False
    return target_rank > current_rank


def _apply_status(
    claim: InsuranceClaim,
    target: ClaimStatus,
    actor: str,
    note: Optional[str],
    details: Optional[Dict[str, Any]],
) -> None:
    # Validate money before touching anything
    financials = reconcile(ClaimFinancials.from_claim(claim))

    previous = claim.status
    claim.status = target
    financials.apply_to(claim)
    if target == ClaimStatus.SUPPLEMENT:
        claim.supplement_count = (claim.supplement_count or 0) + 1
        claim.last_supplement_date = datetime.utcnow()
    claim.append_history(target, actor=actor, note=note, details=details)
    logger.info(f"Claim {claim.claim_id}: {previous.value} -> {target.value} by {actor}")


def transition(
    claim: InsuranceClaim,
    target: ClaimStatus,
    actor: str,
    note: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> InsuranceClaim:
    """
    Move a claim along an allowed edge.

    Requesting the current status is a no-op and appends no history.

    Raises:
        InvalidTransition: edge not in STATUS_TRANSITIONS; claim unchanged.
        InvariantViolation: claim money fields are inconsistent; claim unchanged.
    """
    target = ClaimStatus(target)
    if claim.status == target:
        return claim

    if not can_transition(claim.status, target):
        raise InvalidTransition(claim.status.value, target.value, claim_id=claim.claim_id)

    _apply_status(claim, target, actor, note, details)
    return claim


def advance(
    claim: InsuranceClaim,
    target: ClaimStatus,
    actor: str,
    note: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> InsuranceClaim:
    """
    Like transition(), but also accepts forward jumps along STATUS_ORDER.

    Carriers may skip intermediate states (filed straight to paid). Only the
    sync path uses this; it never moves a claim backward.
    """
    target = ClaimStatus(target)
    if claim.status == target:
        return claim

    if not (can_transition(claim.status, target) or is_forward_move(claim.status, target)):
        raise InvalidTransition(claim.status.value, target.value, claim_id=claim.claim_id)

    _apply_status(claim, target, actor, note, details)
    return claim


def record_note(
    claim: InsuranceClaim,
    actor: str,
    note: str,
    details: Optional[Dict[str, Any]] = None,
):
    """Append a history event that keeps the current status (re-filings, sync conflicts)."""
    return claim.append_history(claim.status, actor=actor, note=note, details=details)


def apply_financial_update(claim: InsuranceClaim, **changes: Any) -> InsuranceClaim:
    """
    Apply money changes through the reconciler.

    Depreciation is derived and cannot be set directly. The claim is only
    mutated when the reconciled result satisfies every invariant.
    """
    if "depreciation" in changes:
        raise ValidationError(
            "Depreciation is derived from approved value and ACV and cannot be set directly",
            details={"field": "depreciation"},
            claim_id=claim.claim_id,
        )

    unknown = set(changes) - {f for f in ClaimFinancials.__dataclass_fields__}
    if unknown:
        raise ValidationError(
            f"Not a financial field: {', '.join(sorted(unknown))}",
            details={"fields": sorted(unknown)},
            claim_id=claim.claim_id,
        )

    current = ClaimFinancials.from_claim(claim)
    try:
        reconciled = reconcile(replace(current, **changes))
    except InvariantViolation as exc:
        exc.claim_id = str(claim.claim_id)
        raise

    reconciled.apply_to(claim)
    return claim
