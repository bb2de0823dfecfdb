"""
Claim service: the operations the API layer calls.

Wires the store, state machine, reconciler and orchestrators together for
one database session. Every mutating operation holds the claim's lock.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from guardian.core.exceptions import ValidationError
from guardian.core.logging import get_logger
from guardian.db.models import ClaimStatus, ClaimType, InsuranceClaim
from guardian.services.audit import AuditService
from guardian.services.carriers.registry import CarrierRegistry, normalize_carrier_code
from guardian.services.carriers.types import (
    CauseOfLoss,
    DamageArea,
    FilingRequest,
    PhotoReference,
    PolicyholderInfo,
    PropertyInfo,
)
from guardian.services.claims import state_machine
from guardian.services.claims.filing import FilingOrchestrator, FilingOutcome
from guardian.services.claims.locks import ClaimLockManager
from guardian.services.claims.reconciler import ClaimFinancials, FinancialSummary, reconcile, summarize
from guardian.services.claims.stats import compute_claim_stats
from guardian.services.claims.store import ClaimStore, CustomerDirectory, PhotoLibrary
from guardian.services.claims.sync import SyncOrchestrator, SyncOutcome

logger = get_logger(__name__)

FINANCIAL_FIELDS = {
    "initial_estimate",
    "approved_value",
    "acv",
    "deductible",
    "supplement_value",
    "supplement_count",
    "total_paid",
}
INFO_FIELDS = {
    "claim_type",
    "date_of_loss",
    "inspection_date",
    "reinspection_date",
    "last_supplement_date",
    "adjuster_name",
    "adjuster_phone",
    "adjuster_email",
    "adjuster_company",
    "scope_of_work",
    "notes",
}
# Owned by filing, sync and the state machine
PROTECTED_FIELDS = {
    "status",
    "carrier",
    "carrier_claim_id",
    "is_filed_with_carrier",
    "depreciation",
    "carrier_status",
    "carrier_last_sync",
    "last_sync_error",
    "version",
}
# Required columns; an explicit null is rejected rather than cleared
NON_NULLABLE_FIELDS = {"claim_type", "date_of_loss"}


def _check_date_of_loss(value: date) -> None:
    if value > date.today():
        raise ValidationError("Date of loss cannot be in the future", details={"field": "date_of_loss"})


class ClaimService:
    def __init__(
        self,
        db: Session,
        registry: CarrierRegistry,
        locks: ClaimLockManager,
        carrier_timeout_seconds: float = 30.0,
    ):
        self.db = db
        self.registry = registry
        self.locks = locks
        self.store = ClaimStore(db)
        self.customers = CustomerDirectory(db)
        self.photos = PhotoLibrary(db)
        self.audit = AuditService(db)
        self.filing = FilingOrchestrator(
            self.store, registry, locks, audit=self.audit, timeout_seconds=carrier_timeout_seconds
        )
        self.syncer = SyncOrchestrator(
            self.store, registry, locks, audit=self.audit, timeout_seconds=carrier_timeout_seconds
        )

    # Reads

    def get_claim(self, claim_id: Any) -> InsuranceClaim:
        return self.store.get(claim_id)

    def list_claims(
        self,
        customer_id: Any = None,
        status: Optional[ClaimStatus] = None,
        carrier: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[InsuranceClaim], int]:
        if carrier:
            carrier = normalize_carrier_code(carrier)
        return self.store.list(
            customer_id=customer_id,
            status=status,
            carrier=carrier,
            search=search,
            limit=limit,
            offset=offset,
        )

    def financial_summary(self, claim: InsuranceClaim) -> FinancialSummary:
        return summarize(ClaimFinancials.from_claim(claim))

    def claim_stats(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        return compute_claim_stats(self.store.all(), now=now)

    # Writes

    def create_claim(
        self,
        customer_id: Any,
        carrier: str,
        claim_type: ClaimType,
        date_of_loss: date,
        actor: str,
        **fields: Any,
    ) -> InsuranceClaim:
        """Create a claim in 'pending' with its first history entry."""
        customer = self.customers.get(customer_id)
        capabilities = self.registry.get_capabilities(carrier)
        _check_date_of_loss(date_of_loss)

        unknown = set(fields) - (FINANCIAL_FIELDS | INFO_FIELDS | {"claim_number"})
        if unknown:
            raise ValidationError(
                f"Unknown or read-only claim fields: {', '.join(sorted(unknown))}",
                details={"fields": sorted(unknown)},
            )

        money = {k: v for k, v in fields.items() if k in FINANCIAL_FIELDS}
        financials = reconcile(ClaimFinancials(**{"supplement_count": 0, **money}))

        claim = InsuranceClaim(
            customer_id=customer.customer_id,
            carrier=normalize_carrier_code(capabilities.code),
            claim_type=ClaimType(claim_type),
            date_of_loss=date_of_loss,
            status=ClaimStatus.PENDING,
            is_filed_with_carrier=False,
            **{k: v for k, v in fields.items() if k not in FINANCIAL_FIELDS},
        )
        financials.apply_to(claim)
        claim.append_history(ClaimStatus.PENDING, actor=actor, note="Claim created")

        self.store.add(claim)
        self.db.flush()
        self.audit.log_claim_event(
            "claim.created",
            actor,
            claim.claim_id,
            details={"carrier": claim.carrier, "claim_type": claim.claim_type.value},
        )
        self.store.commit(claim)

        logger.info(f"Claim {claim.claim_id} created for customer {customer.customer_id} ({claim.carrier})")
        return claim

    async def update_claim(self, claim_id: Any, changes: Dict[str, Any], actor: str) -> InsuranceClaim:
        """
        Update informational and money fields.

        Status, carrier linkage and depreciation are not editable here. The
        claim number may be entered by hand only while the claim is not
        linked to a carrier filing.
        """
        changes = dict(changes)
        protected = set(changes) & PROTECTED_FIELDS
        if protected:
            raise ValidationError(
                f"Fields cannot be updated directly: {', '.join(sorted(protected))}",
                details={"fields": sorted(protected)},
            )
        unknown = set(changes) - (FINANCIAL_FIELDS | INFO_FIELDS | {"claim_number"})
        if unknown:
            raise ValidationError(
                f"Unknown claim fields: {', '.join(sorted(unknown))}",
                details={"fields": sorted(unknown)},
            )
        cleared = sorted(name for name in NON_NULLABLE_FIELDS if name in changes and changes[name] is None)
        if cleared:
            raise ValidationError(
                f"Fields cannot be cleared: {', '.join(cleared)}",
                details={"fields": cleared},
            )

        async with self.locks.hold(claim_id):
            claim = self.store.get(claim_id)

            if "claim_number" in changes and claim.is_filed_with_carrier:
                raise ValidationError(
                    "Claim number is assigned by the carrier for claims filed through the system",
                    details={"field": "claim_number"},
                    claim_id=claim.claim_id,
                )
            if changes.get("date_of_loss") is not None:
                _check_date_of_loss(changes["date_of_loss"])
            if changes.get("claim_type") is not None:
                try:
                    changes["claim_type"] = ClaimType(changes["claim_type"])
                except ValueError:
                    raise ValidationError(
                        f"Unknown claim type: {changes['claim_type']}", details={"field": "claim_type"}
                    )

            money = {k: v for k, v in changes.items() if k in FINANCIAL_FIELDS}
            if money:
                state_machine.apply_financial_update(claim, **money)

            for name, value in changes.items():
                if name in FINANCIAL_FIELDS:
                    continue
                setattr(claim, name, value)

            self.audit.log_claim_event(
                "claim.updated",
                actor,
                claim.claim_id,
                details={"fields": sorted(changes)},
            )
            self.store.commit(claim)

        return claim

    async def transition(
        self,
        claim_id: Any,
        target: ClaimStatus,
        actor: str,
        note: Optional[str] = None,
    ) -> InsuranceClaim:
        async with self.locks.hold(claim_id):
            claim = self.store.get(claim_id)
            previous = claim.status
            state_machine.transition(claim, ClaimStatus(target), actor, note=note)

            if claim.status != previous:
                self.audit.log_claim_event(
                    "claim.transitioned",
                    actor,
                    claim.claim_id,
                    details={"from": previous.value, "to": claim.status.value},
                )
                self.store.commit(claim)

        return claim

    async def file_claim(self, claim_id: Any, request: FilingRequest, actor: str) -> FilingOutcome:
        return await self.filing.file(claim_id, request, actor)

    async def sync_claim(self, claim_id: Any, actor: str) -> SyncOutcome:
        return await self.syncer.sync(claim_id, actor)

    async def delete_claim(self, claim_id: Any, actor: str) -> None:
        async with self.locks.hold(claim_id):
            claim = self.store.get(claim_id)
            claim_key = str(claim.claim_id)
            self.store.delete(claim)
            self.audit.log_claim_event(
                "claim.deleted",
                actor,
                claim_key,
                details={"carrier": claim.carrier, "status": claim.status.value},
            )
            self.store.commit()

        logger.info(f"Claim {claim_key} deleted by {actor}")

    # Filing request assembly

    def build_filing_request(
        self,
        claim_id: Any,
        cause_of_loss: CauseOfLoss,
        loss_description: str,
        damage_areas: Iterable[DamageArea],
        photo_ids: Iterable[Any] = (),
        emergency_repairs_needed: bool = False,
        emergency_repair_cost: Optional[Decimal] = None,
        policy_number: Optional[str] = None,
    ) -> FilingRequest:
        """
        Assemble a FilingRequest pre-filled from the claim, its customer and photos.

        An explicit policy number overrides the one on file for the customer.
        """
        claim = self.store.get(claim_id)
        customer = self.customers.get(claim.customer_id)
        photos = self.photos.get_many(photo_ids, customer_id=customer.customer_id)

        return FilingRequest(
            policy_number=policy_number or customer.policy_number or "",
            cause_of_loss=CauseOfLoss(cause_of_loss),
            loss_description=loss_description,
            damage_areas=list(damage_areas),
            emergency_repairs_needed=emergency_repairs_needed,
            emergency_repair_cost=emergency_repair_cost,
            photos=[
                PhotoReference(
                    photo_id=str(photo.photo_id),
                    url=photo.url,
                    filename=photo.filename,
                    category=photo.category or "damage",
                    description=photo.description,
                    captured_at=photo.captured_at,
                )
                for photo in photos
            ],
            policyholder=PolicyholderInfo(
                first_name=customer.first_name,
                last_name=customer.last_name,
                email=customer.email,
                phone=customer.phone,
            ),
            property=PropertyInfo(
                address=customer.address,
                city=customer.city,
                state=customer.state,
                zip_code=customer.zip_code,
                property_type=customer.property_type,
            ),
            date_of_loss=claim.date_of_loss,
            initial_estimate=claim.initial_estimate,
            internal_claim_id=str(claim.claim_id),
        )
