"""
Audit service for claim lifecycle events.
Writes AuditLog rows alongside the claim changes they describe.
"""

from datetime import datetime
from typing import Any, Optional
from sqlalchemy.orm import Session

from guardian.db.models import AuditLog
from guardian.core.data_classification import sanitize_for_logging, highest_classification
from guardian.core.logging import get_logger

logger = get_logger(__name__)


class AuditService:
    """Service for creating and querying audit logs."""

    CLAIM_EVENTS = [
        "claim.created",
        "claim.updated",
        "claim.deleted",
        "claim.transitioned",
        "claim.filed",
        "claim.synced",
    ]
    CARRIER_EVENTS = ["carrier.filing_failed", "carrier.sync_failed"]

    def __init__(self, db: Session):
        self.db = db

    def log(
        self,
        event_type: str,
        action: str,
        actor_id: str,
        resource_type: str,
        resource_id: str,
        details: Optional[dict[str, Any]] = None,
        actor_type: str = "user",
        commit: bool = True,
    ) -> AuditLog:
        """
        Create an audit log entry.

        Args:
            event_type: Type of event (e.g., "claim.filed")
            action: Short verb ("create", "update", "delete", "file", "sync")
            actor_id: Who performed the action
            resource_type: Type of resource affected
            resource_id: ID of the resource
            details: Additional event details (will be sanitized)
            actor_type: "user", "system" or "sweep"
            commit: Commit immediately; pass False to ride on the caller's transaction
        """
        sanitized_details = sanitize_for_logging(details or {})
        sanitized_details["_metadata"] = {
            "timestamp": datetime.utcnow().isoformat(),
            "data_classification": highest_classification(details or {}).value,
        }

        audit_log = AuditLog(
            event_type=event_type,
            action=action,
            actor_type=actor_type,
            actor_id=actor_id,
            resource_type=resource_type,
            resource_id=str(resource_id),
            details=sanitized_details,
            timestamp=datetime.utcnow(),
        )
        self.db.add(audit_log)
        if commit:
            self.db.commit()

        log_msg = f"AUDIT: {event_type} | {actor_type}:{actor_id} | {resource_type}:{resource_id}"
        if event_type in self.CARRIER_EVENTS:
            logger.warning(log_msg)
        else:
            logger.info(log_msg)

        return audit_log

    def log_claim_event(
        self,
        event_type: str,
        actor_id: str,
        claim_id: Any,
        details: Optional[dict] = None,
        actor_type: str = "user",
        commit: bool = False,
    ) -> AuditLog:
        """Log a claim event inside the caller's transaction."""
        return self.log(
            event_type=event_type,
            action=event_type.split(".", 1)[-1],
            actor_id=actor_id,
            resource_type="claim",
            resource_id=str(claim_id),
            details=details,
            actor_type=actor_type,
            commit=commit,
        )

    def get_resource_history(
        self,
        resource_type: str,
        resource_id: str,
        limit: int = 50,
    ) -> list[AuditLog]:
        """Get audit history for a specific resource."""
        return (
            self.db.query(AuditLog)
            .filter(
                AuditLog.resource_type == resource_type,
                AuditLog.resource_id == str(resource_id),
            )
            .order_by(AuditLog.timestamp.desc())
            .limit(limit)
            .all()
        )
