"""
Insurance claim database models
"""
import uuid
from datetime import datetime
from enum import Enum as PyEnum
from typing import Any, Optional

from sqlalchemy import (
    Boolean, Column, String, Date, DateTime, Enum, ForeignKey, Integer, JSON,
    Numeric, Text, UniqueConstraint, Uuid,
)
from sqlalchemy.orm import relationship

from guardian.db.base import Base


class ClaimType(str, PyEnum):
    ROOF = "roof"
    SIDING = "siding"
    GUTTERS = "gutters"
    FULL_EXTERIOR = "full-exterior"
    INTERIOR = "interior"


class ClaimStatus(str, PyEnum):
    PENDING = "pending"
    FILED = "filed"
    ADJUSTER_ASSIGNED = "adjuster-assigned"
    INSPECTION_SCHEDULED = "inspection-scheduled"
    APPROVED = "approved"
    SUPPLEMENT = "supplement"
    PAID = "paid"
    CLOSED = "closed"
    DENIED = "denied"


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


class InsuranceClaim(Base):
    """Insurance claim filed on behalf of a customer."""

    __tablename__ = "insurance_claims"

    claim_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    customer_id = Column(Uuid, ForeignKey("customers.customer_id"), nullable=False, index=True)

    # Carrier identity (absent until filed)
    carrier = Column(String(100), nullable=False, index=True)
    carrier_claim_id = Column(String(100), nullable=True, index=True)
    claim_number = Column(String(100), nullable=True, index=True)

    claim_type = Column(
        Enum(ClaimType, values_callable=_enum_values, native_enum=False, name="claim_type"),
        nullable=False,
    )
    status = Column(
        Enum(ClaimStatus, values_callable=_enum_values, native_enum=False, name="claim_status"),
        default=ClaimStatus.PENDING,
        nullable=False,
        index=True,
    )
    is_filed_with_carrier = Column(Boolean, default=False, nullable=False)

    # Dates
    date_of_loss = Column(Date, nullable=False)
    inspection_date = Column(DateTime, nullable=True)
    reinspection_date = Column(DateTime, nullable=True)

    # Money
    initial_estimate = Column(Numeric(12, 2), nullable=True)
    approved_value = Column(Numeric(12, 2), nullable=True)  # RCV
    acv = Column(Numeric(12, 2), nullable=True)
    depreciation = Column(Numeric(12, 2), nullable=True)  # derived: approved_value - acv
    deductible = Column(Numeric(12, 2), nullable=True)
    supplement_value = Column(Numeric(12, 2), nullable=True)
    supplement_count = Column(Integer, default=0, nullable=False)
    last_supplement_date = Column(DateTime, nullable=True)
    total_paid = Column(Numeric(12, 2), nullable=True)

    # Adjuster contact (informational)
    adjuster_name = Column(String(200), nullable=True)
    adjuster_phone = Column(String(50), nullable=True)
    adjuster_email = Column(String(255), nullable=True)
    adjuster_company = Column(String(200), nullable=True)

    # Carrier sync bookkeeping
    carrier_status = Column(String(50), nullable=True)
    carrier_last_sync = Column(DateTime, nullable=True)
    last_sync_error = Column(Text, nullable=True)

    scope_of_work = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    customer = relationship("Customer", back_populates="claims")
    status_history = relationship(
        "ClaimStatusEvent",
        back_populates="claim",
        order_by="ClaimStatusEvent.sequence",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        status = self.status.value if self.status else None
        return f"<InsuranceClaim {self.claim_id} ({status})>"

    def append_history(
        self,
        status: ClaimStatus,
        actor: str,
        note: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> "ClaimStatusEvent":
        """Append a status history event. History is never edited or reordered."""
        sequence = len(self.status_history) + 1
        event = ClaimStatusEvent(
            sequence=sequence,
            status=status,
            actor=actor,
            note=note,
            details=details or {},
            created_at=datetime.utcnow(),
        )
        self.status_history.append(event)
        return event

    @property
    def last_history_status(self) -> Optional[ClaimStatus]:
        if not self.status_history:
            return None
        return self.status_history[-1].status


class ClaimStatusEvent(Base):
    """One entry of a claim's append-only status history."""

    __tablename__ = "claim_status_events"
    __table_args__ = (
        UniqueConstraint("claim_id", "sequence", name="uq_claim_status_events_sequence"),
    )

    event_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    claim_id = Column(Uuid, ForeignKey("insurance_claims.claim_id", ondelete="CASCADE"), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)
    status = Column(
        Enum(ClaimStatus, values_callable=_enum_values, native_enum=False, name="claim_status"),
        nullable=False,
    )
    actor = Column(String(100), nullable=False)
    note = Column(Text, nullable=True)
    # Carrier confirmation, estimated response date, adjuster, conflict info...
    details = Column(JSON, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    claim = relationship("InsuranceClaim", back_populates="status_history")

    def __repr__(self) -> str:
        return f"<ClaimStatusEvent #{self.sequence} {self.status.value}>"
