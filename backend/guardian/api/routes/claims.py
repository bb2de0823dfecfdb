"""
Insurance claims API routes
"""
from dataclasses import asdict
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field, field_validator

from guardian.api.deps import get_actor, get_claim_service
from guardian.core import log_audit_event
from guardian.db.models import ClaimStatus, ClaimType, InsuranceClaim
from guardian.services.carriers.types import CauseOfLoss, DamageArea, DamageSeverity, DamageType
from guardian.services.claims.service import ClaimService
from guardian.services.claims.state_machine import get_next_states

router = APIRouter()


# Request/Response schemas
class CreateClaimRequest(BaseModel):
    customer_id: UUID
    carrier: str = Field(min_length=1, max_length=100)
    claim_type: ClaimType
    date_of_loss: date
    claim_number: Optional[str] = None
    initial_estimate: Optional[Decimal] = None
    deductible: Optional[Decimal] = None
    scope_of_work: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("date_of_loss")
    @classmethod
    def validate_date_of_loss(cls, v: date) -> date:
        if v > date.today():
            raise ValueError("date_of_loss cannot be in the future")
        return v

    @field_validator("initial_estimate", "deductible")
    @classmethod
    def validate_amounts(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        if v is not None and v < 0:
            raise ValueError("amount cannot be negative")
        return v


class UpdateClaimRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    claim_number: Optional[str] = None
    claim_type: Optional[ClaimType] = None
    date_of_loss: Optional[date] = None
    inspection_date: Optional[datetime] = None
    reinspection_date: Optional[datetime] = None
    initial_estimate: Optional[Decimal] = None
    approved_value: Optional[Decimal] = None
    acv: Optional[Decimal] = None
    deductible: Optional[Decimal] = None
    supplement_value: Optional[Decimal] = None
    supplement_count: Optional[int] = None
    last_supplement_date: Optional[datetime] = None
    total_paid: Optional[Decimal] = None
    adjuster_name: Optional[str] = None
    adjuster_phone: Optional[str] = None
    adjuster_email: Optional[str] = None
    adjuster_company: Optional[str] = None
    scope_of_work: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("date_of_loss")
    @classmethod
    def validate_date_of_loss(cls, v: Optional[date]) -> Optional[date]:
        if v is not None and v > date.today():
            raise ValueError("date_of_loss cannot be in the future")
        return v


class TransitionRequest(BaseModel):
    status: ClaimStatus
    note: Optional[str] = None


class DamageAreaSchema(BaseModel):
    damage_type: DamageType
    severity: DamageSeverity
    description: Optional[str] = None


class FileClaimRequest(BaseModel):
    cause_of_loss: CauseOfLoss
    loss_description: str
    damage_areas: List[DamageAreaSchema] = []
    photo_ids: List[UUID] = []
    emergency_repairs_needed: bool = False
    emergency_repair_cost: Optional[Decimal] = None
    policy_number: Optional[str] = None


class StatusEventResponse(BaseModel):
    sequence: int
    status: str
    actor: str
    note: Optional[str]
    details: Dict[str, Any]
    created_at: datetime


class ClaimResponse(BaseModel):
    claim_id: str
    customer_id: str
    carrier: str
    carrier_claim_id: Optional[str]
    claim_number: Optional[str]
    claim_type: str
    status: str
    is_filed_with_carrier: bool
    next_statuses: List[str]
    date_of_loss: date
    inspection_date: Optional[datetime]
    reinspection_date: Optional[datetime]
    initial_estimate: Optional[Decimal]
    approved_value: Optional[Decimal]
    acv: Optional[Decimal]
    depreciation: Optional[Decimal]
    deductible: Optional[Decimal]
    supplement_value: Optional[Decimal]
    supplement_count: int
    last_supplement_date: Optional[datetime]
    total_paid: Optional[Decimal]
    financial_summary: Dict[str, str]
    adjuster_name: Optional[str]
    adjuster_phone: Optional[str]
    adjuster_email: Optional[str]
    adjuster_company: Optional[str]
    carrier_status: Optional[str]
    carrier_last_sync: Optional[datetime]
    last_sync_error: Optional[str]
    scope_of_work: Optional[str]
    notes: Optional[str]
    version: int
    status_history: List[StatusEventResponse]
    created_at: datetime
    updated_at: Optional[datetime]


class ClaimListResponse(BaseModel):
    claims: List[ClaimResponse]
    total: int
    limit: int
    offset: int


class FileClaimResponse(BaseModel):
    claim: ClaimResponse
    claim_number: str
    carrier_claim_id: str
    carrier_status: str
    status_message: Optional[str]
    next_steps: List[str]
    estimated_response_date: Optional[datetime]
    tracking_url: Optional[str]
    refiled: bool
    warnings: List[str]


class SyncClaimResponse(BaseModel):
    claim: ClaimResponse
    status_changed: bool
    conflict: Optional[Dict[str, Any]]


def to_claim_response(claim: InsuranceClaim, service: ClaimService) -> ClaimResponse:
    return ClaimResponse(
        claim_id=str(claim.claim_id),
        customer_id=str(claim.customer_id),
        carrier=claim.carrier,
        carrier_claim_id=claim.carrier_claim_id,
        claim_number=claim.claim_number,
        claim_type=claim.claim_type.value,
        status=claim.status.value,
        is_filed_with_carrier=claim.is_filed_with_carrier,
        next_statuses=[s.value for s in get_next_states(claim.status)],
        date_of_loss=claim.date_of_loss,
        inspection_date=claim.inspection_date,
        reinspection_date=claim.reinspection_date,
        initial_estimate=claim.initial_estimate,
        approved_value=claim.approved_value,
        acv=claim.acv,
        depreciation=claim.depreciation,
        deductible=claim.deductible,
        supplement_value=claim.supplement_value,
        supplement_count=claim.supplement_count or 0,
        last_supplement_date=claim.last_supplement_date,
        total_paid=claim.total_paid,
        financial_summary=service.financial_summary(claim).to_dict(),
        adjuster_name=claim.adjuster_name,
        adjuster_phone=claim.adjuster_phone,
        adjuster_email=claim.adjuster_email,
        adjuster_company=claim.adjuster_company,
        carrier_status=claim.carrier_status,
        carrier_last_sync=claim.carrier_last_sync,
        last_sync_error=claim.last_sync_error,
        scope_of_work=claim.scope_of_work,
        notes=claim.notes,
        version=claim.version,
        status_history=[
            StatusEventResponse(
                sequence=event.sequence,
                status=event.status.value,
                actor=event.actor,
                note=event.note,
                details=event.details or {},
                created_at=event.created_at,
            )
            for event in claim.status_history
        ],
        created_at=claim.created_at,
        updated_at=claim.updated_at,
    )


@router.post("/", response_model=ClaimResponse, status_code=status.HTTP_201_CREATED)
async def create_claim(
    request: CreateClaimRequest,
    actor: str = Depends(get_actor),
    service: ClaimService = Depends(get_claim_service),
):
    """Create a new insurance claim in 'pending'."""
    fields = request.model_dump(
        exclude={"customer_id", "carrier", "claim_type", "date_of_loss"},
        exclude_none=True,
    )
    claim = service.create_claim(
        customer_id=request.customer_id,
        carrier=request.carrier,
        claim_type=request.claim_type,
        date_of_loss=request.date_of_loss,
        actor=actor,
        **fields,
    )
    log_audit_event("claim_created", actor, "user", {"claim_id": str(claim.claim_id), "carrier": claim.carrier})
    return to_claim_response(claim, service)


@router.get("/", response_model=ClaimListResponse)
async def list_claims(
    customer_id: Optional[UUID] = None,
    claim_status: Optional[ClaimStatus] = Query(default=None, alias="status"),
    carrier: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    service: ClaimService = Depends(get_claim_service),
):
    """List claims, newest first."""
    claims, total = service.list_claims(
        customer_id=customer_id,
        status=claim_status,
        carrier=carrier,
        search=search,
        limit=limit,
        offset=offset,
    )
    return ClaimListResponse(
        claims=[to_claim_response(c, service) for c in claims],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/stats")
async def claim_stats(service: ClaimService = Depends(get_claim_service)):
    """Dashboard statistics across all claims."""
    return service.claim_stats()


@router.get("/{claim_id}", response_model=ClaimResponse)
async def get_claim(
    claim_id: UUID,
    service: ClaimService = Depends(get_claim_service),
):
    return to_claim_response(service.get_claim(claim_id), service)


@router.patch("/{claim_id}", response_model=ClaimResponse)
async def update_claim(
    claim_id: UUID,
    request: UpdateClaimRequest,
    actor: str = Depends(get_actor),
    service: ClaimService = Depends(get_claim_service),
):
    """Update claim details and money fields. Status changes go through /transition."""
    claim = await service.update_claim(claim_id, request.model_dump(exclude_unset=True), actor)
    return to_claim_response(claim, service)


@router.delete("/{claim_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_claim(
    claim_id: UUID,
    actor: str = Depends(get_actor),
    service: ClaimService = Depends(get_claim_service),
):
    await service.delete_claim(claim_id, actor)
    log_audit_event("claim_deleted", actor, "user", {"claim_id": str(claim_id)})


@router.post("/{claim_id}/transition", response_model=ClaimResponse)
async def transition_claim(
    claim_id: UUID,
    request: TransitionRequest,
    actor: str = Depends(get_actor),
    service: ClaimService = Depends(get_claim_service),
):
    """Move a claim to another status along an allowed edge."""
    claim = await service.transition(claim_id, request.status, actor, note=request.note)
    return to_claim_response(claim, service)


@router.get("/{claim_id}/filing-request")
async def get_filing_request(
    claim_id: UUID,
    service: ClaimService = Depends(get_claim_service),
):
    """Filing form pre-filled from the claim and its customer, plus what the carrier supports."""
    claim = service.get_claim(claim_id)
    capabilities = service.registry.get_capabilities(claim.carrier)
    draft = service.build_filing_request(
        claim_id,
        cause_of_loss=CauseOfLoss.OTHER,
        loss_description="",
        damage_areas=[],
    )
    return {
        "carrier": capabilities.to_dict(),
        "is_filed_with_carrier": claim.is_filed_with_carrier,
        "draft": asdict(draft),
    }


@router.post("/{claim_id}/file", response_model=FileClaimResponse)
async def file_claim(
    claim_id: UUID,
    request: FileClaimRequest,
    actor: str = Depends(get_actor),
    service: ClaimService = Depends(get_claim_service),
):
    """File the claim with its carrier."""
    filing_request = service.build_filing_request(
        claim_id,
        cause_of_loss=request.cause_of_loss,
        loss_description=request.loss_description,
        damage_areas=[
            DamageArea(damage_type=a.damage_type, severity=a.severity, description=a.description)
            for a in request.damage_areas
        ],
        photo_ids=request.photo_ids,
        emergency_repairs_needed=request.emergency_repairs_needed,
        emergency_repair_cost=request.emergency_repair_cost,
        policy_number=request.policy_number,
    )
    outcome = await service.file_claim(claim_id, filing_request, actor)
    result = outcome.result

    return FileClaimResponse(
        claim=to_claim_response(outcome.claim, service),
        claim_number=result.claim_number,
        carrier_claim_id=result.carrier_claim_id,
        carrier_status=result.status.value,
        status_message=result.status_message,
        next_steps=result.next_steps,
        estimated_response_date=result.estimated_response_date,
        tracking_url=result.tracking_url,
        refiled=outcome.refiled,
        warnings=outcome.warnings,
    )


@router.post("/{claim_id}/sync", response_model=SyncClaimResponse)
async def sync_claim(
    claim_id: UUID,
    actor: str = Depends(get_actor),
    service: ClaimService = Depends(get_claim_service),
):
    """Refresh the claim from its carrier. A stale carrier status comes back as a conflict."""
    outcome = await service.sync_claim(claim_id, actor)
    return SyncClaimResponse(
        claim=to_claim_response(outcome.claim, service),
        status_changed=outcome.status_changed,
        conflict=outcome.conflict.to_dict() if outcome.conflict else None,
    )
