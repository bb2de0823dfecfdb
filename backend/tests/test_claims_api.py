"""
Tests for claims and carriers API endpoints.
"""

import uuid
from datetime import date, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from main import status_code_for
from guardian.core.exceptions import (
    CarrierError,
    CarrierTimeout,
    ConcurrencyConflict,
    InvalidState,
    NotFound,
    UnsupportedOperation,
)
from guardian.db.models import ClaimStatus
from guardian.services.carriers.types import CarrierClaimStatus


FILE_BODY = {
    "cause_of_loss": "hail",
    "loss_description": "Hail storm damaged shingles on the north slope",
    "damage_areas": [{"damage_type": "roof", "severity": "severe"}],
}


class TestHealth:
    def test_root(self, client: TestClient):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestCreateAndRead:
    """Test creating, listing and reading claims."""

    def test_create_claim(self, client: TestClient, test_customer):
        response = client.post(
            "/claims/",
            headers={"X-Actor": "jane.rep"},
            json={
                "customer_id": str(test_customer.customer_id),
                "carrier": "Fake",
                "claim_type": "roof",
                "date_of_loss": (date.today() - timedelta(days=5)).isoformat(),
                "initial_estimate": "14250.50",
            },
        )
        assert response.status_code == 201
        claim = response.json()
        assert claim["status"] == "pending"
        assert claim["carrier"] == "fake"
        assert claim["next_statuses"] == ["filed"]
        assert claim["initial_estimate"] == "14250.50"
        assert claim["is_filed_with_carrier"] is False
        assert len(claim["status_history"]) == 1
        assert claim["status_history"][0]["actor"] == "jane.rep"
        assert claim["financial_summary"]["outstanding_balance"] == "0.00"

    def test_create_claim_future_date(self, client: TestClient, test_customer):
        response = client.post(
            "/claims/",
            json={
                "customer_id": str(test_customer.customer_id),
                "carrier": "fake",
                "claim_type": "roof",
                "date_of_loss": (date.today() + timedelta(days=1)).isoformat(),
            },
        )
        assert response.status_code == 422

    def test_create_claim_unknown_carrier(self, client: TestClient, test_customer):
        response = client.post(
            "/claims/",
            json={
                "customer_id": str(test_customer.customer_id),
                "carrier": "Acme Mutual",
                "claim_type": "roof",
                "date_of_loss": date.today().isoformat(),
            },
        )
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_get_claim(self, client: TestClient, make_claim):
        claim = make_claim(status=ClaimStatus.APPROVED, approved_value=Decimal("18000"), acv=Decimal("16000"))
        response = client.get(f"/claims/{claim.claim_id}")
        assert response.status_code == 200
        data = response.json()
        assert data["claim_id"] == str(claim.claim_id)
        assert data["next_statuses"] == ["supplement", "paid", "denied"]
        assert data["financial_summary"]["total_claim_value"] == "18000.00"

    def test_get_claim_not_found(self, client: TestClient):
        response = client.get(f"/claims/{uuid.uuid4()}")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_list_claims(self, client: TestClient, make_claim):
        make_claim()
        make_claim(status=ClaimStatus.FILED)
        make_claim(carrier="allstate")

        response = client.get("/claims/", params={"status": "pending"})
        assert response.status_code == 200
        assert response.json()["total"] == 2

        response = client.get("/claims/", params={"carrier": "Allstate", "limit": 1})
        data = response.json()
        assert data["total"] == 1
        assert data["limit"] == 1
        assert data["claims"][0]["carrier"] == "allstate"

    def test_stats(self, client: TestClient, make_claim):
        make_claim()
        response = client.get("/claims/stats")
        assert response.status_code == 200
        assert response.json()["total_claims"] == 1

    def test_filing_request_draft(self, client: TestClient, make_claim):
        claim = make_claim()
        response = client.get(f"/claims/{claim.claim_id}/filing-request")
        assert response.status_code == 200
        data = response.json()
        assert data["carrier"]["supports_direct_filing"] is True
        assert data["is_filed_with_carrier"] is False
        assert data["draft"]["policy_number"] == "SF-88-1234567"
        assert data["draft"]["property"]["city"] == "Columbus"


class TestUpdateAndTransition:
    def test_update_notes(self, client: TestClient, make_claim):
        claim = make_claim()
        response = client.patch(f"/claims/{claim.claim_id}", json={"notes": "Ladder assist needed"})
        assert response.status_code == 200
        assert response.json()["notes"] == "Ladder assist needed"

    def test_update_status_rejected(self, client: TestClient, make_claim):
        claim = make_claim()
        response = client.patch(f"/claims/{claim.claim_id}", json={"status": "paid"})
        assert response.status_code == 422

    @pytest.mark.parametrize("field", ["date_of_loss", "claim_type"])
    def test_update_null_required_field_rejected(self, client: TestClient, make_claim, field):
        claim = make_claim()
        response = client.patch(f"/claims/{claim.claim_id}", json={field: None})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"
        assert client.get(f"/claims/{claim.claim_id}").json()[field] is not None

    def test_update_overpayment_rejected(self, client: TestClient, make_claim):
        claim = make_claim(status=ClaimStatus.APPROVED, approved_value=Decimal("10000"))
        response = client.patch(f"/claims/{claim.claim_id}", json={"total_paid": "15000"})
        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "INVARIANT_VIOLATION"
        assert error["details"]["field"] == "total_paid"

    def test_transition(self, client: TestClient, make_claim):
        claim = make_claim()
        response = client.post(
            f"/claims/{claim.claim_id}/transition",
            json={"status": "filed", "note": "Filed over the phone"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "filed"
        assert data["status_history"][-1]["note"] == "Filed over the phone"

    def test_invalid_transition(self, client: TestClient, make_claim):
        claim = make_claim()
        response = client.post(f"/claims/{claim.claim_id}/transition", json={"status": "paid"})
        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "INVALID_TRANSITION"
        assert error["details"] == {"from": "pending", "to": "paid"}

    def test_delete(self, client: TestClient, make_claim):
        claim = make_claim()
        response = client.delete(f"/claims/{claim.claim_id}")
        assert response.status_code == 204
        assert client.get(f"/claims/{claim.claim_id}").status_code == 404


class TestFileAndSync:
    """Test carrier operations through the API."""

    def test_file_then_sync(self, client: TestClient, make_claim, fake_adapter):
        claim = make_claim()

        response = client.post(f"/claims/{claim.claim_id}/file", json=FILE_BODY)
        assert response.status_code == 200
        data = response.json()
        assert data["claim_number"] == "CLM-1001"
        assert data["refiled"] is False
        assert data["claim"]["status"] == "filed"
        assert data["claim"]["is_filed_with_carrier"] is True
        assert len(data["claim"]["status_history"]) == 2

        fake_adapter.report(
            CarrierClaimStatus.APPROVED,
            approved_value=Decimal("18000"),
            acv=Decimal("16000"),
        )
        response = client.post(f"/claims/{claim.claim_id}/sync")
        assert response.status_code == 200
        data = response.json()
        assert data["status_changed"] is True
        assert data["conflict"] is None
        assert data["claim"]["status"] == "approved"
        assert data["claim"]["depreciation"] == "2000.00"
        assert len(data["claim"]["status_history"]) == 3

    def test_file_with_photos(self, client: TestClient, make_claim, fake_adapter, test_photos):
        claim = make_claim()
        body = {**FILE_BODY, "photo_ids": [str(p.photo_id) for p in test_photos]}

        response = client.post(f"/claims/{claim.claim_id}/file", json=body)

        assert response.status_code == 200
        assert [p.filename for p in fake_adapter.requests[0].photos] == ["roof-1.jpg", "roof-2.jpg"]

    def test_file_without_damage_areas(self, client: TestClient, make_claim, fake_adapter):
        claim = make_claim()
        response = client.post(f"/claims/{claim.claim_id}/file", json={**FILE_BODY, "damage_areas": []})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"
        assert fake_adapter.file_calls == 0

    def test_file_display_only_carrier(self, client: TestClient, make_claim):
        claim = make_claim(carrier="allstate")
        response = client.post(f"/claims/{claim.claim_id}/file", json=FILE_BODY)
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "UNSUPPORTED_OPERATION"

    def test_carrier_rejection_is_bad_gateway(self, client: TestClient, make_claim, fake_adapter):
        fake_adapter.file_errors.append(
            CarrierError("Policy is not active", carrier_code="fake", error_code="POLICY_INACTIVE")
        )
        claim = make_claim()

        response = client.post(f"/claims/{claim.claim_id}/file", json=FILE_BODY)

        assert response.status_code == 502
        error = response.json()["error"]
        assert error["code"] == "CARRIER_ERROR"
        assert error["details"]["carrier_error_code"] == "POLICY_INACTIVE"
        assert client.get(f"/claims/{claim.claim_id}").json()["status"] == "pending"

    def test_sync_conflict_returned(self, client: TestClient, make_claim, fake_adapter):
        claim = make_claim(
            status=ClaimStatus.APPROVED,
            is_filed_with_carrier=True,
            carrier_claim_id="CLM-1001",
        )
        fake_adapter.report(CarrierClaimStatus.RECEIVED)

        response = client.post(f"/claims/{claim.claim_id}/sync")

        assert response.status_code == 200
        data = response.json()
        assert data["claim"]["status"] == "approved"
        assert data["conflict"]["code"] == "SYNC_CONFLICT"

    def test_sync_unfiled_claim(self, client: TestClient, make_claim):
        claim = make_claim()
        response = client.post(f"/claims/{claim.claim_id}/sync")
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_STATE"


class TestCarriersEndpoints:
    def test_list_carriers(self, client: TestClient):
        response = client.get("/carriers/")
        assert response.status_code == 200
        codes = {c["code"] for c in response.json()}
        assert {"fake", "filing-only", "sync-only", "allstate"} <= codes

    def test_get_carrier(self, client: TestClient):
        response = client.get("/carriers/Fake")
        assert response.status_code == 200
        data = response.json()
        assert data["supports_direct_filing"] is True
        assert data["supports_status_sync"] is True

    def test_unknown_carrier(self, client: TestClient):
        assert client.get("/carriers/acme").status_code == 404

    def test_sync_one_carrier(self, client: TestClient, db, make_claim, fake_adapter, gated_adapter):
        claim = make_claim(status=ClaimStatus.FILED, is_filed_with_carrier=True, carrier_claim_id="CLM-1001")
        make_claim(carrier="sync-only", status=ClaimStatus.FILED, is_filed_with_carrier=True, carrier_claim_id="SO-1")
        fake_adapter.report(CarrierClaimStatus.ASSIGNED)

        response = client.post("/carriers/Fake/sync")

        assert response.status_code == 200
        data = response.json()
        assert data["carrier"] == "fake"
        assert data["synced"] == 1
        assert data["failed"] == 0
        assert data["errors"] == []
        assert gated_adapter.status_calls == 0

        db.expire_all()
        assert client.get(f"/claims/{claim.claim_id}").json()["status"] == "adjuster-assigned"

    def test_sync_reports_claim_failures(self, client: TestClient, make_claim, fake_adapter):
        make_claim(status=ClaimStatus.FILED, is_filed_with_carrier=True, carrier_claim_id="CLM-1001")
        fake_adapter.status_errors.append(
            CarrierError("Claim not found", carrier_code="fake", error_code="CLAIM_NOT_FOUND")
        )

        response = client.post("/carriers/fake/sync")

        assert response.status_code == 200
        data = response.json()
        assert data["failed"] == 1
        assert data["errors"][0]["details"]["carrier_error_code"] == "CLAIM_NOT_FOUND"

    @pytest.mark.parametrize("carrier", ["allstate", "filing-only"])
    def test_sync_carrier_without_status_sync(self, client: TestClient, gated_adapter, carrier):
        response = client.post(f"/carriers/{carrier}/sync")
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "UNSUPPORTED_OPERATION"
        assert gated_adapter.status_calls == 0

    def test_sync_unknown_carrier(self, client: TestClient):
        assert client.post("/carriers/acme/sync").status_code == 404


class TestErrorStatusCodes:
    @pytest.mark.parametrize(
        "error,status_code",
        [
            (CarrierTimeout("fake", 30), 504),
            (CarrierError("boom", carrier_code="fake"), 502),
            (ConcurrencyConflict("busy"), 409),
            (NotFound("claim", "x"), 404),
            (InvalidState("nope"), 400),
            (UnsupportedOperation("allstate", "direct filing"), 400),
        ],
    )
    def test_status_code_for(self, error, status_code):
        assert status_code_for(error) == status_code
