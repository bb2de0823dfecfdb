"""
Test configuration and fixtures for Guardian Claims backend tests.
"""

import os

# Must be set before the app (and its settings) are imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("APP_ENV", "development")

import asyncio
from datetime import date, timedelta
from typing import Generator, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from main import app
from guardian.api.deps import get_lock_manager, get_registry, get_session_factory
from guardian.db.base import Base
from guardian.db.session import get_db
from guardian.db.models import ClaimStatus, ClaimType, Customer, InsuranceClaim, Photo
from guardian.services.carriers.base import CarrierAdapter
from guardian.services.carriers.registry import CarrierCapabilities, CarrierRegistry
from guardian.services.carriers.types import (
    CarrierClaimStatus,
    CarrierStatusSnapshot,
    CauseOfLoss,
    DamageArea,
    DamageSeverity,
    DamageType,
    FilingRequest,
    FilingResult,
)
from guardian.services.claims.locks import ClaimLockManager
from guardian.services.claims.service import ClaimService


# Use in-memory SQLite for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeCarrierAdapter(CarrierAdapter):
    """In-memory carrier that counts calls and returns scripted responses."""

    carrier_code = "fake"
    carrier_name = "Fake Carrier"

    def __init__(self):
        self.file_calls = 0
        self.status_calls = 0
        self.requests: List[FilingRequest] = []
        self.filing_results: List[FilingResult] = []
        self.snapshot: Optional[CarrierStatusSnapshot] = None
        self.file_errors: List[Exception] = []
        self.status_errors: List[Exception] = []
        self.delay_seconds = 0.0

    async def file_claim(self, request: FilingRequest) -> FilingResult:
        self.file_calls += 1
        self.requests.append(request)
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if self.file_errors:
            raise self.file_errors.pop(0)
        if self.filing_results:
            return self.filing_results.pop(0)
        return FilingResult(claim_number=f"CLM-{1000 + self.file_calls}", status=CarrierClaimStatus.RECEIVED)

    async def fetch_status(self, carrier_claim_id: str) -> CarrierStatusSnapshot:
        self.status_calls += 1
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if self.status_errors:
            raise self.status_errors.pop(0)
        if self.snapshot is not None:
            return self.snapshot
        return CarrierStatusSnapshot(
            carrier_claim_id=carrier_claim_id,
            status=CarrierClaimStatus.RECEIVED,
            raw_status="received",
        )

    def map_status(self, carrier_status: str) -> CarrierClaimStatus:
        return CarrierClaimStatus(carrier_status)

    def report(self, status: CarrierClaimStatus, **fields) -> None:
        """Script the next status snapshot."""
        self.snapshot = CarrierStatusSnapshot(
            carrier_claim_id=fields.pop("carrier_claim_id", "CLM-1001"),
            status=status,
            raw_status=status.value,
            **fields,
        )


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory(db: Session) -> sessionmaker:
    """Session factory bound to the test database, for code that opens its own sessions."""
    return TestingSessionLocal


@pytest.fixture
def fake_adapter() -> FakeCarrierAdapter:
    return FakeCarrierAdapter()


@pytest.fixture
def gated_adapter() -> FakeCarrierAdapter:
    """Adapter behind carriers that lack one of the two capabilities."""
    return FakeCarrierAdapter()


@pytest.fixture
def registry(fake_adapter: FakeCarrierAdapter, gated_adapter: FakeCarrierAdapter) -> CarrierRegistry:
    registry = CarrierRegistry()
    registry.register(
        CarrierCapabilities(
            code="fake",
            display_name="Fake Carrier",
            supports_direct_filing=True,
            supports_status_sync=True,
        ),
        lambda: fake_adapter,
    )
    registry.register(
        CarrierCapabilities(code="filing-only", display_name="Filing Only Mutual", supports_direct_filing=True),
        lambda: gated_adapter,
    )
    registry.register(
        CarrierCapabilities(code="sync-only", display_name="Sync Only Insurance", supports_status_sync=True),
        lambda: gated_adapter,
    )
    registry.register(CarrierCapabilities(code="allstate", display_name="Allstate"))
    return registry


@pytest.fixture
def locks() -> ClaimLockManager:
    return ClaimLockManager(timeout_seconds=5)


@pytest.fixture
def service(db: Session, registry: CarrierRegistry, locks: ClaimLockManager) -> ClaimService:
    return ClaimService(db, registry, locks, carrier_timeout_seconds=1.0)


@pytest.fixture(scope="function")
def client(db: Session, registry: CarrierRegistry, locks: ClaimLockManager) -> Generator[TestClient, None, None]:
    """Create a test client with database and carrier overrides."""
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_lock_manager] = lambda: locks
    app.dependency_overrides[get_session_factory] = lambda: TestingSessionLocal
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def test_customer(db: Session) -> Customer:
    """Create a test customer."""
    customer = Customer(
        first_name="Dana",
        last_name="Whitfield",
        email="dana.whitfield@example.com",
        phone="(614) 555-0142",
        address="418 Maple Ridge Dr",
        city="Columbus",
        state="OH",
        zip_code="43215",
        property_type="single-family",
        policy_number="SF-88-1234567",
        insurance_carrier="State Farm",
    )
    db.add(customer)
    db.commit()
    db.refresh(customer)
    return customer


@pytest.fixture
def test_photos(db: Session, test_customer: Customer) -> List[Photo]:
    photos = [
        Photo(
            customer_id=test_customer.customer_id,
            url=f"https://cdn.example.com/photos/roof-{n}.jpg",
            filename=f"roof-{n}.jpg",
            category="damage",
            description=f"Hail impact, slope {n}",
        )
        for n in (1, 2)
    ]
    db.add_all(photos)
    db.commit()
    for photo in photos:
        db.refresh(photo)
    return photos


@pytest.fixture
def make_claim(db: Session, test_customer: Customer):
    """Insert a claim directly, bypassing the engine (for arranging state)."""

    def _make(carrier: str = "fake", status: ClaimStatus = ClaimStatus.PENDING, **fields) -> InsuranceClaim:
        claim = InsuranceClaim(
            customer_id=test_customer.customer_id,
            carrier=carrier,
            claim_type=fields.pop("claim_type", ClaimType.ROOF),
            date_of_loss=fields.pop("date_of_loss", date.today() - timedelta(days=10)),
            status=status,
            is_filed_with_carrier=fields.pop("is_filed_with_carrier", False),
            supplement_count=fields.pop("supplement_count", 0),
            **fields,
        )
        claim.append_history(ClaimStatus.PENDING, actor="test", note="Claim created")
        if status != ClaimStatus.PENDING:
            claim.append_history(status, actor="test")
        db.add(claim)
        db.commit()
        db.refresh(claim)
        return claim

    return _make


@pytest.fixture
def filing_request() -> FilingRequest:
    return FilingRequest(
        policy_number="SF-88-1234567",
        cause_of_loss=CauseOfLoss.HAIL,
        loss_description="Hail storm damaged shingles on the north and west slopes",
        damage_areas=[
            DamageArea(damage_type=DamageType.ROOF, severity=DamageSeverity.SEVERE),
            DamageArea(damage_type=DamageType.GUTTERS, severity=DamageSeverity.MINOR),
        ],
        date_of_loss=date.today() - timedelta(days=10),
    )
