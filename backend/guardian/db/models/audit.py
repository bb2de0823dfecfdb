"""
Audit database model for system-wide audit logging
"""
import uuid
from datetime import datetime

from sqlalchemy import Column, String, DateTime, JSON, Uuid

from guardian.db.base import Base


class AuditLog(Base):
    """System-wide audit log for all operations."""

    __tablename__ = "audit_logs"

    log_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    event_type = Column(String(100), nullable=False, index=True)

    # Resource being accessed/modified
    resource_type = Column(String(50), nullable=True)  # e.g., "claim", "customer"
    resource_id = Column(String(100), nullable=True, index=True)

    # Actor
    actor_id = Column(String(100), nullable=True)
    actor_type = Column(String(50), nullable=False)  # e.g., "user", "system", "sweep"

    # Details
    action = Column(String(100), nullable=False)  # e.g., "create", "update", "delete", "file", "sync"
    details = Column(JSON, default=dict)

    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<AuditLog {self.event_type} at {self.timestamp}>"
