"""
Claim statistics for the dashboard overview.
"""
from collections import Counter
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from guardian.db.models import ClaimStatus, InsuranceClaim

ZERO = Decimal("0.00")

RECENT_WINDOW_DAYS = 30
AT_RISK_AFTER_DAYS = 30
AT_RISK_LIMIT = 10

NEEDS_ACTION_STATUSES = {
    ClaimStatus.PENDING,
    ClaimStatus.FILED,
    ClaimStatus.ADJUSTER_ASSIGNED,
    ClaimStatus.SUPPLEMENT,
}
APPROVED_OUTCOMES = {ClaimStatus.APPROVED, ClaimStatus.PAID, ClaimStatus.CLOSED}


def _sum(claims: List[InsuranceClaim], field: str) -> Decimal:
    return sum((getattr(c, field) or ZERO for c in claims), ZERO)


def compute_claim_stats(claims: Iterable[InsuranceClaim], now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Aggregate counts and money totals over a set of claims.

    Money is returned as strings to keep Decimal precision in JSON.
    """
    claims = list(claims)
    now = now or datetime.utcnow()
    recent_cutoff = now - timedelta(days=RECENT_WINDOW_DAYS)
    at_risk_cutoff = now - timedelta(days=AT_RISK_AFTER_DAYS)

    status_counts = Counter(c.status for c in claims)
    status_breakdown = {status.value: status_counts.get(status, 0) for status in ClaimStatus}

    decided = sum(status_counts.get(s, 0) for s in APPROVED_OUTCOMES) + status_counts.get(ClaimStatus.DENIED, 0)
    approved_outcomes = sum(status_counts.get(s, 0) for s in APPROVED_OUTCOMES)
    approval_rate = round(approved_outcomes / decided * 100) if decided else 0

    total_approved = _sum(claims, "approved_value")
    total_paid = _sum(claims, "total_paid")

    by_carrier: Dict[str, Dict[str, Any]] = {}
    for claim in claims:
        entry = by_carrier.setdefault(claim.carrier, {"carrier": claim.carrier, "count": 0, "approved_value": ZERO})
        entry["count"] += 1
        entry["approved_value"] += claim.approved_value or ZERO

    type_counts = Counter(c.claim_type.value for c in claims)

    at_risk = [
        c for c in claims
        if c.status == ClaimStatus.APPROVED and (c.updated_at or c.created_at) < at_risk_cutoff
    ]
    at_risk.sort(key=lambda c: c.updated_at or c.created_at)

    return {
        "total_claims": len(claims),
        "recent_claims": sum(1 for c in claims if c.created_at and c.created_at >= recent_cutoff),
        "needs_action": sum(1 for c in claims if c.status in NEEDS_ACTION_STATUSES),
        "approval_rate": approval_rate,
        "status_breakdown": status_breakdown,
        "financials": {
            "total_estimated": str(_sum(claims, "initial_estimate")),
            "total_approved": str(total_approved),
            "total_paid": str(total_paid),
            "total_supplements": str(_sum(claims, "supplement_value")),
            "pending_revenue": str(total_approved - total_paid),
        },
        "by_carrier": [
            {**entry, "approved_value": str(entry["approved_value"])}
            for entry in sorted(by_carrier.values(), key=lambda e: e["count"], reverse=True)
        ],
        "by_type": [{"type": claim_type, "count": count} for claim_type, count in type_counts.most_common()],
        "at_risk_claims": [
            {
                "claim_id": str(c.claim_id),
                "customer": c.customer.full_name if c.customer else None,
                "carrier": c.carrier,
                "approved_value": str(c.approved_value) if c.approved_value is not None else None,
                "days_since_approval": (now - (c.updated_at or c.created_at)).days,
            }
            for c in at_risk[:AT_RISK_LIMIT]
        ],
    }
