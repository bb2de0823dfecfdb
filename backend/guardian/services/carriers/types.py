"""
Insurance carrier integration types.

Carrier payloads are translated into these fixed types at the adapter
boundary; nothing outside an adapter ever sees a carrier's raw response.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from guardian.core.exceptions import ValidationError


class CauseOfLoss(str, Enum):
    HAIL = "hail"
    WIND = "wind"
    TORNADO = "tornado"
    HURRICANE = "hurricane"
    FIRE = "fire"
    WATER = "water"
    LIGHTNING = "lightning"
    FALLEN_TREE = "fallen-tree"
    OTHER = "other"


class DamageType(str, Enum):
    ROOF = "roof"
    SIDING = "siding"
    GUTTERS = "gutters"
    WINDOWS = "windows"
    DOORS = "doors"
    INTERIOR = "interior"
    HVAC = "hvac"
    FENCE = "fence"
    GARAGE = "garage"
    DECK = "deck"
    OTHER = "other"


class DamageSeverity(str, Enum):
    MINOR = "minor"
    MODERATE = "moderate"
    SEVERE = "severe"


class CarrierClaimStatus(str, Enum):
    """Canonical carrier-side status vocabulary shared by all adapters."""
    RECEIVED = "received"
    ASSIGNED = "assigned"
    INSPECTION_SCHEDULED = "inspection-scheduled"
    INSPECTION_COMPLETE = "inspection-complete"
    UNDER_REVIEW = "under-review"
    APPROVED = "approved"
    PARTIALLY_APPROVED = "partially-approved"
    DENIED = "denied"
    SUPPLEMENT_REQUESTED = "supplement-requested"
    SUPPLEMENT_APPROVED = "supplement-approved"
    PAYMENT_PROCESSING = "payment-processing"
    PAYMENT_ISSUED = "payment-issued"
    CLOSED = "closed"


@dataclass
class DamageArea:
    damage_type: DamageType
    severity: DamageSeverity
    description: Optional[str] = None


@dataclass
class PhotoReference:
    photo_id: str
    url: str
    filename: str
    category: str = "damage"
    description: Optional[str] = None
    captured_at: Optional[datetime] = None


@dataclass
class PolicyholderInfo:
    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: Optional[str] = None


@dataclass
class PropertyInfo:
    address: str
    city: str
    state: str
    zip_code: str
    property_type: Optional[str] = None


@dataclass
class FilingRequest:
    """Everything a carrier needs to open a claim."""
    policy_number: str
    cause_of_loss: CauseOfLoss
    loss_description: str
    damage_areas: List[DamageArea]
    emergency_repairs_needed: bool = False
    emergency_repair_cost: Optional[Decimal] = None
    photos: List[PhotoReference] = field(default_factory=list)

    # Pre-filled from the customer and claim records
    policyholder: Optional[PolicyholderInfo] = None
    property: Optional[PropertyInfo] = None
    date_of_loss: Optional[date] = None
    initial_estimate: Optional[Decimal] = None
    internal_claim_id: Optional[str] = None

    def validate(self) -> None:
        """Raise ValidationError for requests no carrier should ever receive."""
        if not self.policy_number or not self.policy_number.strip():
            raise ValidationError("Policy number is required", details={"field": "policy_number"})
        if not self.loss_description or not self.loss_description.strip():
            raise ValidationError("Loss description is required", details={"field": "loss_description"})
        if not self.damage_areas:
            raise ValidationError("At least one damage area is required", details={"field": "damage_areas"})
        if self.emergency_repair_cost is not None and self.emergency_repair_cost < 0:
            raise ValidationError(
                "Emergency repair cost cannot be negative",
                details={"field": "emergency_repair_cost"},
            )
        if self.date_of_loss is not None and self.date_of_loss > date.today():
            raise ValidationError("Date of loss cannot be in the future", details={"field": "date_of_loss"})


@dataclass
class AdjusterInfo:
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    company: Optional[str] = None
    assigned_date: Optional[datetime] = None


@dataclass
class FilingResult:
    claim_number: str
    status: CarrierClaimStatus = CarrierClaimStatus.RECEIVED
    carrier_claim_id: Optional[str] = None
    status_message: Optional[str] = None
    assigned_adjuster: Optional[AdjusterInfo] = None
    next_steps: List[str] = field(default_factory=list)
    estimated_response_date: Optional[datetime] = None
    tracking_url: Optional[str] = None

    def __post_init__(self) -> None:
        # Some carriers only hand back a claim number
        if not self.carrier_claim_id:
            self.carrier_claim_id = self.claim_number


@dataclass
class CarrierStatusSnapshot:
    carrier_claim_id: str
    status: CarrierClaimStatus
    raw_status: str
    claim_number: Optional[str] = None
    status_message: Optional[str] = None
    approved_value: Optional[Decimal] = None
    acv: Optional[Decimal] = None
    paid_to_date: Optional[Decimal] = None
    adjuster: Optional[AdjusterInfo] = None
    inspection_date: Optional[datetime] = None
    last_updated: Optional[datetime] = None


@dataclass
class CarrierConnection:
    """Endpoint and credentials for one carrier API."""
    carrier_code: str
    api_endpoint: Optional[str] = None
    access_token: Optional[str] = None
    api_key: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    is_test_mode: bool = True
