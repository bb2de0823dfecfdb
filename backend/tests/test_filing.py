"""
Tests for filing claims with carriers.
"""

import asyncio
import uuid

import pytest

from guardian.core.exceptions import (
    CarrierError,
    CarrierTimeout,
    InvalidState,
    NotFound,
    UnsupportedOperation,
    ValidationError,
)
from guardian.db.models import AuditLog, ClaimStatus
from guardian.services.carriers.types import AdjusterInfo, CarrierClaimStatus, FilingResult
from guardian.services.claims.filing import FilingOrchestrator
from guardian.services.claims.store import ClaimStore


class TestFileClaim:
    """Test the happy path and re-filing."""

    @pytest.mark.asyncio
    async def test_file_pending_claim(self, service, make_claim, fake_adapter, filing_request):
        """Filing moves the claim to 'filed' and links the carrier's ids."""
        claim = make_claim()

        outcome = await service.file_claim(claim.claim_id, filing_request, "rep-1")

        assert outcome.refiled is False
        assert outcome.warnings == []
        assert outcome.claim.status == ClaimStatus.FILED
        assert outcome.claim.carrier_claim_id == "CLM-1001"
        assert outcome.claim.claim_number == "CLM-1001"
        assert outcome.claim.is_filed_with_carrier is True
        assert outcome.claim.carrier_status == "received"
        assert len(outcome.claim.status_history) == 2
        assert outcome.claim.status_history[-1].status == ClaimStatus.FILED
        assert outcome.claim.status_history[-1].details["carrier_claim_id"] == "CLM-1001"
        assert fake_adapter.file_calls == 1

    @pytest.mark.asyncio
    async def test_internal_claim_id_passed_to_carrier(self, service, make_claim, fake_adapter, filing_request):
        claim = make_claim()
        await service.file_claim(claim.claim_id, filing_request, "rep-1")
        assert fake_adapter.requests[0].internal_claim_id == str(claim.claim_id)

    @pytest.mark.asyncio
    async def test_filing_is_audited(self, db, service, make_claim, filing_request):
        claim = make_claim()
        await service.file_claim(claim.claim_id, filing_request, "rep-1")

        entry = db.query(AuditLog).filter(AuditLog.event_type == "claim.filed").one()
        assert entry.resource_id == str(claim.claim_id)
        assert entry.actor_id == "rep-1"
        assert entry.details["carrier_claim_id"] == "CLM-1001"

    @pytest.mark.asyncio
    async def test_adjuster_from_filing_result(self, service, make_claim, fake_adapter, filing_request):
        fake_adapter.filing_results.append(
            FilingResult(
                claim_number="FK-2024-77",
                carrier_claim_id="fk-77",
                status=CarrierClaimStatus.ASSIGNED,
                assigned_adjuster=AdjusterInfo(name="Pat Lee", phone="555-0100", company="Fake Adjusting"),
            )
        )
        claim = make_claim()

        outcome = await service.file_claim(claim.claim_id, filing_request, "rep-1")

        assert outcome.claim.carrier_claim_id == "fk-77"
        assert outcome.claim.claim_number == "FK-2024-77"
        assert outcome.claim.adjuster_name == "Pat Lee"
        assert outcome.claim.adjuster_company == "Fake Adjusting"
        # Carrier-side status is recorded; local status is only 'filed'
        assert outcome.claim.status == ClaimStatus.FILED
        assert outcome.claim.carrier_status == "assigned"

    @pytest.mark.asyncio
    async def test_double_filing_replaces_ids(self, service, make_claim, fake_adapter, filing_request):
        """Filing twice is allowed; the newest carrier ids win and it is recorded."""
        claim = make_claim()
        await service.file_claim(claim.claim_id, filing_request, "rep-1")

        outcome = await service.file_claim(claim.claim_id, filing_request, "rep-2")

        assert outcome.refiled is True
        assert len(outcome.warnings) == 1
        assert "CLM-1001" in outcome.warnings[0]
        assert outcome.claim.carrier_claim_id == "CLM-1002"
        assert outcome.claim.claim_number == "CLM-1002"
        assert outcome.claim.status == ClaimStatus.FILED
        assert len(outcome.claim.status_history) == 3
        last = outcome.claim.status_history[-1]
        assert last.note.startswith("Re-filed")
        assert last.details["previous_carrier_claim_id"] == "CLM-1001"
        assert fake_adapter.file_calls == 2

    @pytest.mark.asyncio
    async def test_file_claim_marked_filed_by_hand(self, service, make_claim, filing_request):
        """A claim moved to 'filed' manually can still be filed through the carrier."""
        claim = make_claim(status=ClaimStatus.FILED)

        outcome = await service.file_claim(claim.claim_id, filing_request, "rep-1")

        assert outcome.refiled is False
        assert outcome.claim.is_filed_with_carrier is True
        assert outcome.claim.status == ClaimStatus.FILED
        assert len(outcome.claim.status_history) == 3
        assert outcome.claim.status_history[-1].note.startswith("Filed with fake")

    @pytest.mark.asyncio
    async def test_concurrent_filings_are_serialized(self, service, make_claim, fake_adapter, filing_request):
        """Two filings of one claim never interleave; the second sees the first."""
        fake_adapter.delay_seconds = 0.05
        claim = make_claim()

        first, second = await asyncio.gather(
            service.file_claim(claim.claim_id, filing_request, "rep-1"),
            service.file_claim(claim.claim_id, filing_request, "rep-2"),
        )

        assert sorted([first.refiled, second.refiled]) == [False, True]
        assert len(second.claim.status_history) == 3
        assert fake_adapter.file_calls == 2


class TestFilingGuards:
    """Test that rejected filings never reach the carrier or change the claim."""

    @pytest.mark.asyncio
    async def test_display_only_carrier_rejected(self, service, make_claim, filing_request):
        claim = make_claim(carrier="allstate")

        with pytest.raises(UnsupportedOperation) as exc_info:
            await service.file_claim(claim.claim_id, filing_request, "rep-1")

        assert exc_info.value.carrier_code == "allstate"
        assert exc_info.value.operation == "direct filing"

    @pytest.mark.asyncio
    async def test_sync_only_carrier_never_calls_adapter(self, service, make_claim, gated_adapter, filing_request):
        claim = make_claim(carrier="sync-only")

        with pytest.raises(UnsupportedOperation):
            await service.file_claim(claim.claim_id, filing_request, "rep-1")

        assert gated_adapter.file_calls == 0
        reloaded = service.get_claim(claim.claim_id)
        assert reloaded.status == ClaimStatus.PENDING
        assert len(reloaded.status_history) == 1

    @pytest.mark.asyncio
    async def test_claim_past_filing_stage_rejected(self, service, make_claim, fake_adapter, filing_request):
        claim = make_claim(status=ClaimStatus.APPROVED)

        with pytest.raises(InvalidState):
            await service.file_claim(claim.claim_id, filing_request, "rep-1")

        assert fake_adapter.file_calls == 0

    @pytest.mark.asyncio
    async def test_empty_damage_areas_rejected(self, service, make_claim, fake_adapter, filing_request):
        claim = make_claim()
        filing_request.damage_areas = []

        with pytest.raises(ValidationError):
            await service.file_claim(claim.claim_id, filing_request, "rep-1")

        assert fake_adapter.file_calls == 0

    @pytest.mark.asyncio
    async def test_blank_policy_number_rejected(self, service, make_claim, fake_adapter, filing_request):
        claim = make_claim()
        filing_request.policy_number = "   "

        with pytest.raises(ValidationError) as exc_info:
            await service.file_claim(claim.claim_id, filing_request, "rep-1")

        assert exc_info.value.details["field"] == "policy_number"
        assert fake_adapter.file_calls == 0

    @pytest.mark.asyncio
    async def test_unknown_claim(self, service, filing_request):
        with pytest.raises(NotFound):
            await service.file_claim(uuid.uuid4(), filing_request, "rep-1")


class TestFilingFailures:
    """Test carrier failures leave the claim exactly as it was."""

    @pytest.mark.asyncio
    async def test_carrier_rejection_leaves_claim_unchanged(self, db, service, make_claim, fake_adapter, filing_request):
        fake_adapter.file_errors.append(
            CarrierError("Policy is not active", carrier_code="fake", error_code="POLICY_INACTIVE")
        )
        claim = make_claim()

        with pytest.raises(CarrierError) as exc_info:
            await service.file_claim(claim.claim_id, filing_request, "rep-1")

        assert exc_info.value.error_code == "POLICY_INACTIVE"
        assert exc_info.value.retryable is False
        assert exc_info.value.claim_id == str(claim.claim_id)

        reloaded = service.get_claim(claim.claim_id)
        assert reloaded.status == ClaimStatus.PENDING
        assert reloaded.carrier_claim_id is None
        assert reloaded.is_filed_with_carrier is False
        assert len(reloaded.status_history) == 1

        failure = db.query(AuditLog).filter(AuditLog.event_type == "carrier.filing_failed").one()
        assert failure.resource_id == str(claim.claim_id)

    @pytest.mark.asyncio
    async def test_carrier_timeout(self, db, registry, locks, make_claim, fake_adapter, filing_request):
        """A carrier that does not answer in time is a retryable failure."""
        fake_adapter.delay_seconds = 1.0
        orchestrator = FilingOrchestrator(ClaimStore(db), registry, locks, timeout_seconds=0.05)
        claim = make_claim()

        with pytest.raises(CarrierTimeout) as exc_info:
            await orchestrator.file(claim.claim_id, filing_request, "rep-1")

        assert exc_info.value.retryable is True
        assert exc_info.value.claim_id == str(claim.claim_id)
        reloaded = ClaimStore(db).get(claim.claim_id)
        assert reloaded.status == ClaimStatus.PENDING
        assert reloaded.carrier_claim_id is None
        assert len(reloaded.status_history) == 1
        assert not locks.is_locked(claim.claim_id)

    @pytest.mark.asyncio
    async def test_cancelled_filing_releases_lock(self, service, locks, make_claim, fake_adapter, filing_request):
        """Cancelling mid-call leaves the claim untouched and the lock free."""
        fake_adapter.delay_seconds = 1.0
        claim = make_claim()

        task = asyncio.create_task(service.file_claim(claim.claim_id, filing_request, "rep-1"))
        await asyncio.sleep(0.05)
        assert locks.is_locked(claim.claim_id)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert not locks.is_locked(claim.claim_id)
        assert len(locks) == 0
        reloaded = service.get_claim(claim.claim_id)
        assert reloaded.status == ClaimStatus.PENDING
        assert reloaded.is_filed_with_carrier is False
        assert len(reloaded.status_history) == 1

    @pytest.mark.asyncio
    async def test_refile_failure_keeps_previous_ids(self, service, make_claim, fake_adapter, filing_request):
        claim = make_claim()
        await service.file_claim(claim.claim_id, filing_request, "rep-1")
        fake_adapter.file_errors.append(
            CarrierError("Upstream unavailable", carrier_code="fake", error_code="HTTP_503", retryable=True)
        )

        with pytest.raises(CarrierError):
            await service.file_claim(claim.claim_id, filing_request, "rep-1")

        reloaded = service.get_claim(claim.claim_id)
        assert reloaded.carrier_claim_id == "CLM-1001"
        assert len(reloaded.status_history) == 2
