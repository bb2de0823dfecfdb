"""
Financial reconciler for insurance claims.

Pure functions over ClaimFinancials. Violations raise InvariantViolation and
are never clamped or silently corrected.
"""
from dataclasses import dataclass, fields, replace
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from guardian.core.exceptions import InvariantViolation

ZERO = Decimal("0.00")

MONEY_FIELDS = (
    "initial_estimate",
    "approved_value",
    "acv",
    "deductible",
    "supplement_value",
    "total_paid",
)


def round_currency(value: Optional[Decimal]) -> Optional[Decimal]:
    """Round to cents using standard rounding."""
    if value is None:
        return None
    return Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class ClaimFinancials:
    initial_estimate: Optional[Decimal] = None
    approved_value: Optional[Decimal] = None
    acv: Optional[Decimal] = None
    depreciation: Optional[Decimal] = None
    deductible: Optional[Decimal] = None
    supplement_value: Optional[Decimal] = None
    supplement_count: int = 0
    total_paid: Optional[Decimal] = None

    @classmethod
    def from_claim(cls, claim) -> "ClaimFinancials":
        return cls(**{f.name: getattr(claim, f.name) for f in fields(cls)})

    def apply_to(self, claim) -> None:
        for f in fields(self):
            setattr(claim, f.name, getattr(self, f.name))


@dataclass(frozen=True)
class FinancialSummary:
    total_claim_value: Decimal
    recoverable_depreciation: Decimal
    outstanding_balance: Decimal
    net_of_deductible: Decimal

    def to_dict(self) -> dict:
        return {
            "total_claim_value": str(self.total_claim_value),
            "recoverable_depreciation": str(self.recoverable_depreciation),
            "outstanding_balance": str(self.outstanding_balance),
            "net_of_deductible": str(self.net_of_deductible),
        }


def reconcile(financials: ClaimFinancials) -> ClaimFinancials:
    """
    Validate money fields and recompute derived values.

    Returns a new ClaimFinancials with amounts rounded to cents and
    depreciation set to approved_value - acv (None unless both are present).

    Raises:
        InvariantViolation: negative amount, ACV above RCV, or payments
            exceeding approved value plus supplements.
    """
    normalized = {name: round_currency(getattr(financials, name)) for name in MONEY_FIELDS}

    for name, value in normalized.items():
        if value is not None and value < 0:
            raise InvariantViolation(
                f"{name} cannot be negative",
                field=name,
                details={"value": str(value)},
            )

    supplement_count = financials.supplement_count or 0
    if supplement_count < 0:
        raise InvariantViolation(
            "supplement_count cannot be negative",
            field="supplement_count",
            details={"value": supplement_count},
        )

    approved = normalized["approved_value"]
    acv = normalized["acv"]
    if approved is not None and acv is not None:
        if acv > approved:
            raise InvariantViolation(
                "ACV cannot exceed approved value",
                field="acv",
                details={"acv": str(acv), "approved_value": str(approved)},
            )
        depreciation = approved - acv
    else:
        depreciation = None

    total_paid = normalized["total_paid"]
    if total_paid is not None:
        ceiling = (approved or ZERO) + (normalized["supplement_value"] or ZERO)
        if total_paid > ceiling:
            raise InvariantViolation(
                "Total paid cannot exceed approved value plus supplements",
                field="total_paid",
                details={"total_paid": str(total_paid), "ceiling": str(ceiling)},
            )

    return replace(financials, depreciation=depreciation, supplement_count=supplement_count, **normalized)


def summarize(financials: ClaimFinancials) -> FinancialSummary:
    """Derived figures for display; assumes financials already reconciled."""
    total_claim_value = (financials.approved_value or ZERO) + (financials.supplement_value or ZERO)
    paid = financials.total_paid or ZERO
    return FinancialSummary(
        total_claim_value=total_claim_value,
        recoverable_depreciation=financials.depreciation or ZERO,
        outstanding_balance=max(total_claim_value - paid, ZERO),
        net_of_deductible=max(total_claim_value - (financials.deductible or ZERO), ZERO),
    )
