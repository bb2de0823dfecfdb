"""
Database models package
"""
from guardian.db.models.customer import Customer, Photo
from guardian.db.models.claim import InsuranceClaim, ClaimStatusEvent, ClaimType, ClaimStatus
from guardian.db.models.audit import AuditLog

__all__ = [
    # Customer
    "Customer",
    "Photo",
    # Claim
    "InsuranceClaim",
    "ClaimStatusEvent",
    "ClaimType",
    "ClaimStatus",
    # Audit
    "AuditLog",
]
