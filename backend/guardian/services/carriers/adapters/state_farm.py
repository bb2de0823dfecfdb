"""
State Farm carrier adapter.

Built on common insurance API patterns; endpoint paths and field names follow
State Farm's claims API layout.
"""
from typing import Any, Dict

from guardian.core.exceptions import CarrierError
from guardian.services.carriers.base import HttpCarrierAdapter
from guardian.services.carriers.types import (
    AdjusterInfo,
    CarrierClaimStatus,
    CarrierStatusSnapshot,
    FilingRequest,
    FilingResult,
)


STATUS_MAP = {
    "RECEIVED": CarrierClaimStatus.RECEIVED,
    "PENDING": CarrierClaimStatus.RECEIVED,
    "ASSIGNED": CarrierClaimStatus.ASSIGNED,
    "ADJUSTER_ASSIGNED": CarrierClaimStatus.ASSIGNED,
    "INSPECTION_SCHEDULED": CarrierClaimStatus.INSPECTION_SCHEDULED,
    "SCHEDULED": CarrierClaimStatus.INSPECTION_SCHEDULED,
    "INSPECTION_COMPLETE": CarrierClaimStatus.INSPECTION_COMPLETE,
    "INSPECTED": CarrierClaimStatus.INSPECTION_COMPLETE,
    "UNDER_REVIEW": CarrierClaimStatus.UNDER_REVIEW,
    "IN_REVIEW": CarrierClaimStatus.UNDER_REVIEW,
    "APPROVED": CarrierClaimStatus.APPROVED,
    "PARTIALLY_APPROVED": CarrierClaimStatus.PARTIALLY_APPROVED,
    "DENIED": CarrierClaimStatus.DENIED,
    "REJECTED": CarrierClaimStatus.DENIED,
    "SUPPLEMENT_REQUESTED": CarrierClaimStatus.SUPPLEMENT_REQUESTED,
    "SUPPLEMENT_PENDING": CarrierClaimStatus.SUPPLEMENT_REQUESTED,
    "SUPPLEMENT_APPROVED": CarrierClaimStatus.SUPPLEMENT_APPROVED,
    "PAYMENT_PENDING": CarrierClaimStatus.PAYMENT_PROCESSING,
    "PROCESSING_PAYMENT": CarrierClaimStatus.PAYMENT_PROCESSING,
    "PAYMENT_ISSUED": CarrierClaimStatus.PAYMENT_ISSUED,
    "PAID": CarrierClaimStatus.PAYMENT_ISSUED,
    "CLOSED": CarrierClaimStatus.CLOSED,
    "COMPLETE": CarrierClaimStatus.CLOSED,
}

CAUSE_OF_LOSS_MAP = {
    "hail": "HAIL",
    "wind": "WIND",
    "tornado": "TORNADO",
    "hurricane": "HURRICANE",
    "fire": "FIRE",
    "water": "WATER_DAMAGE",
    "lightning": "LIGHTNING",
    "fallen-tree": "FALLING_OBJECTS",
    "other": "OTHER",
}


class StateFarmAdapter(HttpCarrierAdapter):
    carrier_code = "state-farm"
    carrier_name = "State Farm"

    def default_endpoint(self) -> str:
        if self.connection.is_test_mode:
            return "https://api-sandbox.statefarm.com/v1"
        return "https://api.statefarm.com/v1"

    def build_filing_payload(self, request: FilingRequest) -> Dict[str, Any]:
        """Transform a filing request into State Farm's submission format."""
        policyholder = request.policyholder
        prop = request.property
        return {
            "claim": {
                "policyInfo": {
                    "policyNumber": request.policy_number,
                    "insuredName": {
                        "firstName": policyholder.first_name if policyholder else None,
                        "lastName": policyholder.last_name if policyholder else None,
                    },
                    "contact": {
                        "email": policyholder.email if policyholder else None,
                        "phone": self.sanitize_phone(policyholder.phone if policyholder else None),
                    },
                },
                "lossInfo": {
                    "dateOfLoss": self.format_date(request.date_of_loss),
                    "causeOfLoss": CAUSE_OF_LOSS_MAP.get(request.cause_of_loss.value, "OTHER"),
                    "lossDescription": request.loss_description,
                },
                "propertyInfo": {
                    "address": {
                        "street": prop.address if prop else None,
                        "city": prop.city if prop else None,
                        "state": prop.state if prop else None,
                        "zipCode": prop.zip_code if prop else None,
                    },
                    "propertyType": (prop.property_type if prop else None) or "single-family",
                },
                "damageInfo": {
                    "areas": [
                        {
                            "type": area.damage_type.value.upper(),
                            "severity": area.severity.value,
                            "description": area.description,
                        }
                        for area in request.damage_areas
                    ],
                    "emergencyRepairs": request.emergency_repairs_needed,
                    "emergencyRepairsCost": (
                        str(request.emergency_repair_cost) if request.emergency_repair_cost is not None else None
                    ),
                },
                "estimate": (
                    {"amount": str(request.initial_estimate), "currency": "USD"}
                    if request.initial_estimate is not None
                    else None
                ),
                "photos": [
                    {"url": photo.url, "filename": photo.filename, "category": photo.category}
                    for photo in request.photos
                ],
                "externalReference": request.internal_claim_id,
            }
        }

    async def file_claim(self, request: FilingRequest) -> FilingResult:
        data = await self._request("POST", "/claims/submit", json=self.build_filing_payload(request))

        if not data.get("claimNumber"):
            raise CarrierError(
                "State Farm accepted the submission but returned no claim number",
                carrier_code=self.carrier_code,
                error_code="BAD_RESPONSE",
                retryable=False,
            )

        adjuster = data.get("adjuster")
        return FilingResult(
            carrier_claim_id=data.get("claimId"),
            claim_number=data["claimNumber"],
            status=self.map_status(data.get("status", "RECEIVED")),
            status_message=data.get("statusMessage"),
            assigned_adjuster=self._parse_adjuster(adjuster) if adjuster else None,
            next_steps=data.get("nextSteps") or [],
            estimated_response_date=self.parse_datetime(data.get("estimatedResponseDate")),
            tracking_url=f"https://www.statefarm.com/claims/track/{data['claimNumber']}",
        )

    async def fetch_status(self, carrier_claim_id: str) -> CarrierStatusSnapshot:
        data = await self._request("GET", f"/claims/{carrier_claim_id}/status")

        raw_status = data.get("status") or "RECEIVED"
        adjuster = data.get("adjuster")
        inspection = data.get("inspection") or {}
        return CarrierStatusSnapshot(
            carrier_claim_id=data.get("claimId") or carrier_claim_id,
            claim_number=data.get("claimNumber"),
            status=self.map_status(raw_status),
            raw_status=raw_status,
            status_message=data.get("statusMessage"),
            approved_value=self.parse_amount(data.get("rcv") or data.get("approvedAmount")),
            acv=self.parse_amount(data.get("acv")),
            paid_to_date=self.parse_amount(data.get("paidAmount")),
            adjuster=self._parse_adjuster(adjuster) if adjuster else None,
            inspection_date=self.parse_datetime(inspection.get("date")),
            last_updated=self.parse_datetime(data.get("lastUpdated")),
        )

    def map_status(self, carrier_status: str) -> CarrierClaimStatus:
        return STATUS_MAP.get(carrier_status.upper(), CarrierClaimStatus.RECEIVED)

    def _parse_adjuster(self, data: Dict[str, Any]) -> AdjusterInfo:
        return AdjusterInfo(
            name=data.get("name") or "",
            phone=data.get("phone"),
            email=data.get("email"),
            company=data.get("company") or "State Farm",
            assigned_date=self.parse_datetime(data.get("assignedDate")),
        )
