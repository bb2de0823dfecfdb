"""
Mock carrier adapter.

Simulates a carrier API in memory for development and demos. Claims filed
here start as "received" and only move when set_status() is called, so the
behavior is deterministic.
"""
import asyncio
import itertools
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, Optional

from guardian.core.exceptions import CarrierError
from guardian.services.carriers.base import CarrierAdapter
from guardian.services.carriers.types import (
    AdjusterInfo,
    CarrierClaimStatus,
    CarrierStatusSnapshot,
    FilingRequest,
    FilingResult,
)


STATUS_MAP = {
    "NEW": CarrierClaimStatus.RECEIVED,
    "RECEIVED": CarrierClaimStatus.RECEIVED,
    "ASSIGNED": CarrierClaimStatus.ASSIGNED,
    "SCHEDULED": CarrierClaimStatus.INSPECTION_SCHEDULED,
    "INSPECTED": CarrierClaimStatus.INSPECTION_COMPLETE,
    "REVIEW": CarrierClaimStatus.UNDER_REVIEW,
    "APPROVED": CarrierClaimStatus.APPROVED,
    "PARTIAL": CarrierClaimStatus.PARTIALLY_APPROVED,
    "DENIED": CarrierClaimStatus.DENIED,
    "SUPPLEMENT": CarrierClaimStatus.SUPPLEMENT_REQUESTED,
    "PROCESSING": CarrierClaimStatus.PAYMENT_PROCESSING,
    "PAID": CarrierClaimStatus.PAYMENT_ISSUED,
    "CLOSED": CarrierClaimStatus.CLOSED,
}

STATUS_MESSAGES = {
    CarrierClaimStatus.RECEIVED: "Your claim has been received and is being processed.",
    CarrierClaimStatus.ASSIGNED: "An adjuster has been assigned to your claim.",
    CarrierClaimStatus.INSPECTION_SCHEDULED: "An inspection has been scheduled for your property.",
    CarrierClaimStatus.INSPECTION_COMPLETE: "The inspection has been completed. Your claim is under review.",
    CarrierClaimStatus.UNDER_REVIEW: "Your claim is being reviewed by our claims department.",
    CarrierClaimStatus.APPROVED: "Your claim has been approved!",
    CarrierClaimStatus.PARTIALLY_APPROVED: "Your claim has been partially approved.",
    CarrierClaimStatus.DENIED: "Unfortunately, your claim has been denied.",
    CarrierClaimStatus.SUPPLEMENT_REQUESTED: "Additional information has been requested for your claim.",
    CarrierClaimStatus.SUPPLEMENT_APPROVED: "Your supplement request has been approved.",
    CarrierClaimStatus.PAYMENT_PROCESSING: "Your payment is being processed.",
    CarrierClaimStatus.PAYMENT_ISSUED: "Payment has been issued for your claim.",
    CarrierClaimStatus.CLOSED: "Your claim has been closed.",
}

MOCK_ADJUSTER = AdjusterInfo(
    name="John Smith",
    phone="1-800-555-0123",
    email="jsmith@mock-insurance.com",
    company="Mock Adjusting Services",
)


class MockCarrierAdapter(CarrierAdapter):
    carrier_code = "mock"
    carrier_name = "Mock Insurance Co."

    def __init__(self, latency_seconds: float = 0.0):
        self.latency_seconds = latency_seconds
        self._claims: Dict[str, dict] = {}
        self._sequence = itertools.count(1)

    async def _simulate_latency(self) -> None:
        if self.latency_seconds:
            await asyncio.sleep(self.latency_seconds)

    async def file_claim(self, request: FilingRequest) -> FilingResult:
        await self._simulate_latency()

        if request.policy_number.upper().startswith("INVALID"):
            raise CarrierError(
                "Policy number not found in system",
                carrier_code=self.carrier_code,
                error_code="VALIDATION_ERROR",
                retryable=False,
            )

        number = next(self._sequence)
        now = datetime.utcnow()
        claim_number = f"MCK{now.year}-{number:06d}"
        carrier_claim_id = f"MCK-{number:06d}"

        self._claims[carrier_claim_id] = {
            "claim_number": claim_number,
            "status": "RECEIVED",
            "approved_value": None,
            "acv": None,
            "paid": None,
            "received_at": now,
            "updated_at": now,
        }

        return FilingResult(
            carrier_claim_id=carrier_claim_id,
            claim_number=claim_number,
            status=CarrierClaimStatus.RECEIVED,
            status_message=STATUS_MESSAGES[CarrierClaimStatus.RECEIVED],
            assigned_adjuster=None,
            next_steps=[
                "An adjuster will contact you within 2-3 business days",
                "Gather any additional documentation of damage",
                "Do not dispose of damaged materials until inspection",
            ],
            estimated_response_date=now + timedelta(days=3),
            tracking_url=f"https://claims.mock-insurance.dev/track/{claim_number}",
        )

    async def fetch_status(self, carrier_claim_id: str) -> CarrierStatusSnapshot:
        await self._simulate_latency()

        record = self._claims.get(carrier_claim_id)
        if record is None:
            raise CarrierError(
                f"Claim {carrier_claim_id} not found",
                carrier_code=self.carrier_code,
                error_code="CLAIM_NOT_FOUND",
                retryable=False,
            )

        status = self.map_status(record["status"])
        return CarrierStatusSnapshot(
            carrier_claim_id=carrier_claim_id,
            claim_number=record["claim_number"],
            status=status,
            raw_status=record["status"],
            status_message=STATUS_MESSAGES.get(status),
            approved_value=record["approved_value"],
            acv=record["acv"],
            paid_to_date=record["paid"],
            adjuster=MOCK_ADJUSTER if status != CarrierClaimStatus.RECEIVED else None,
            last_updated=record["updated_at"],
        )

    def set_status(
        self,
        carrier_claim_id: str,
        status: str,
        approved_value: Optional[Decimal] = None,
        acv: Optional[Decimal] = None,
        paid: Optional[Decimal] = None,
    ) -> None:
        """Move a simulated claim along on the carrier side."""
        record = self._claims[carrier_claim_id]
        record["status"] = status.upper()
        if approved_value is not None:
            record["approved_value"] = Decimal(approved_value)
        if acv is not None:
            record["acv"] = Decimal(acv)
        if paid is not None:
            record["paid"] = Decimal(paid)
        record["updated_at"] = datetime.utcnow()

    def map_status(self, carrier_status: str) -> CarrierClaimStatus:
        return STATUS_MAP.get(carrier_status.upper(), CarrierClaimStatus.RECEIVED)
