"""
Claim persistence and read-only lookups for the claims engine.
"""
import uuid
from typing import Any, Iterable, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError

from guardian.core.exceptions import ConcurrencyConflict, NotFound
from guardian.core.logging import get_logger
from guardian.db.models import ClaimStatus, Customer, InsuranceClaim, Photo

logger = get_logger(__name__)


def as_uuid(value: Any, resource_type: str) -> uuid.UUID:
    """Coerce an id to UUID; malformed ids are reported as missing resources."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        raise NotFound(resource_type, value)


class ClaimStore:
    """Loads and persists InsuranceClaim rows with their status history."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, claim_id: Any) -> InsuranceClaim:
        claim = (
            self.db.query(InsuranceClaim)
            .options(selectinload(InsuranceClaim.status_history))
            .filter(InsuranceClaim.claim_id == as_uuid(claim_id, "claim"))
            .first()
        )
        if claim is None:
            raise NotFound("claim", claim_id)
        return claim

    def add(self, claim: InsuranceClaim) -> InsuranceClaim:
        self.db.add(claim)
        return claim

    def commit(self, claim: Optional[InsuranceClaim] = None) -> None:
        """
        Commit the unit of work.

        A concurrent writer bumping the version first surfaces as
        ConcurrencyConflict; the session is rolled back either way.
        """
        try:
            self.db.commit()
        except StaleDataError as exc:
            self.db.rollback()
            claim_id = str(claim.claim_id) if claim is not None else None
            logger.warning(f"Stale write rejected for claim {claim_id}: {exc}")
            raise ConcurrencyConflict(
                "Claim was modified by another operation; reload and retry",
                claim_id=claim_id,
            ) from exc
        except (IntegrityError, OperationalError):
            self.db.rollback()
            raise

        if claim is not None:
            self.db.refresh(claim)

    def rollback(self) -> None:
        self.db.rollback()

    def delete(self, claim: InsuranceClaim) -> None:
        self.db.delete(claim)

    def list(
        self,
        customer_id: Any = None,
        status: Optional[ClaimStatus] = None,
        carrier: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[InsuranceClaim], int]:
        """Filtered page of claims (newest first) and the total match count."""
        query = self.db.query(InsuranceClaim)

        if customer_id is not None:
            query = query.filter(InsuranceClaim.customer_id == as_uuid(customer_id, "customer"))
        if status is not None:
            query = query.filter(InsuranceClaim.status == ClaimStatus(status))
        if carrier:
            query = query.filter(InsuranceClaim.carrier == carrier)
        if search:
            pattern = f"%{search}%"
            query = query.filter(
                or_(
                    InsuranceClaim.claim_number.ilike(pattern),
                    InsuranceClaim.carrier_claim_id.ilike(pattern),
                    InsuranceClaim.carrier.ilike(pattern),
                    InsuranceClaim.notes.ilike(pattern),
                )
            )

        total = query.count()
        claims = (
            query.order_by(InsuranceClaim.created_at.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return claims, total

    def all(self) -> List[InsuranceClaim]:
        return self.db.query(InsuranceClaim).all()

    def syncable_claim_ids(self, carriers: Iterable[str]) -> List[Tuple[uuid.UUID, str]]:
        """(claim_id, carrier) for filed, non-terminal claims of the given carriers."""
        carriers = list(carriers)
        if not carriers:
            return []
        rows = (
            self.db.query(InsuranceClaim.claim_id, InsuranceClaim.carrier)
            .filter(
                InsuranceClaim.is_filed_with_carrier.is_(True),
                InsuranceClaim.carrier_claim_id.isnot(None),
                InsuranceClaim.carrier.in_(carriers),
                InsuranceClaim.status.notin_([ClaimStatus.CLOSED, ClaimStatus.DENIED]),
            )
            .order_by(InsuranceClaim.carrier, InsuranceClaim.created_at)
            .all()
        )
        return [(row.claim_id, row.carrier) for row in rows]


class CustomerDirectory:
    def __init__(self, db: Session):
        self.db = db

    def get(self, customer_id: Any) -> Customer:
        customer = (
            self.db.query(Customer)
            .filter(Customer.customer_id == as_uuid(customer_id, "customer"))
            .first()
        )
        if customer is None:
            raise NotFound("customer", customer_id)
        return customer


class PhotoLibrary:
    def __init__(self, db: Session):
        self.db = db

    def get_many(self, photo_ids: Iterable[Any], customer_id: Any = None) -> List[Photo]:
        """Photos in the requested order; NotFound if any id is unknown."""
        ids = [as_uuid(photo_id, "photo") for photo_id in photo_ids]
        if not ids:
            return []

        query = self.db.query(Photo).filter(Photo.photo_id.in_(ids))
        if customer_id is not None:
            query = query.filter(Photo.customer_id == as_uuid(customer_id, "customer"))
        found = {photo.photo_id: photo for photo in query.all()}

        for photo_id in ids:
            if photo_id not in found:
                raise NotFound("photo", photo_id)
        return [found[photo_id] for photo_id in ids]
