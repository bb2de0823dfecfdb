"""
Claims engine error taxonomy.

Caller errors (ValidationError, InvalidState, InvalidTransition,
InvariantViolation, UnsupportedOperation, NotFound) are returned immediately
and never retried by the engine. CarrierError and CarrierTimeout are retryable
by the caller. SyncConflict is a warning handed back next to a valid claim.
"""
from typing import Any, Optional


class ClaimEngineError(Exception):
    """Base exception for all claims engine errors."""

    code = "CLAIM_ENGINE_ERROR"
    retryable = False

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
        claim_id: Optional[str] = None,
    ):
        self.message = message
        self.details = details or {}
        self.claim_id = str(claim_id) if claim_id is not None else None
        super().__init__(message)

    def __str__(self) -> str:
        if self.claim_id:
            return f"[{self.code}] {self.message} (claim: {self.claim_id})"
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Serialize for logging and API responses."""
        result: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
            "retryable": self.retryable,
        }
        if self.details:
            result["details"] = self.details
        if self.claim_id:
            result["claim_id"] = self.claim_id
        return result


class ValidationError(ClaimEngineError):
    """Bad input: missing policy number, empty damage list, invalid date."""
    code = "VALIDATION_ERROR"


class InvalidState(ClaimEngineError):
    """Operation not possible in the claim's current state (e.g. sync before filing)."""
    code = "INVALID_STATE"


class InvalidTransition(ClaimEngineError):
    """The state machine rejected a status edge."""
    code = "INVALID_TRANSITION"

    def __init__(self, current: str, target: str, claim_id: Optional[str] = None):
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot move claim from '{current}' to '{target}'",
            details={"from": current, "to": target},
            claim_id=claim_id,
        )


class InvariantViolation(ClaimEngineError):
    """The financial reconciler rejected a monetary update."""
    code = "INVARIANT_VIOLATION"

    def __init__(self, message: str, field: str, details: Optional[dict[str, Any]] = None, claim_id: Optional[str] = None):
        self.field = field
        super().__init__(message, details={"field": field, **(details or {})}, claim_id=claim_id)


class UnsupportedOperation(ClaimEngineError):
    """Carrier does not support the requested operation."""
    code = "UNSUPPORTED_OPERATION"

    def __init__(self, carrier_code: str, operation: str, claim_id: Optional[str] = None):
        self.carrier_code = carrier_code
        self.operation = operation
        super().__init__(
            f"Carrier '{carrier_code}' does not support {operation}",
            details={"carrier": carrier_code, "operation": operation},
            claim_id=claim_id,
        )


class NotFound(ClaimEngineError):
    """Claim, customer, photo or carrier missing."""
    code = "NOT_FOUND"

    def __init__(self, resource_type: str, resource_id: Any):
        self.resource_type = resource_type
        self.resource_id = str(resource_id)
        super().__init__(
            f"{resource_type.capitalize()} not found: {resource_id}",
            details={"resource_type": resource_type, "resource_id": str(resource_id)},
        )


class ConcurrencyConflict(ClaimEngineError):
    """Per-claim lock contention or stale version on write."""
    code = "CONCURRENCY_CONFLICT"
    retryable = True


class CarrierError(ClaimEngineError):
    """Carrier-side rejection or transport failure, carrier code/message preserved."""
    code = "CARRIER_ERROR"

    def __init__(
        self,
        message: str,
        carrier_code: str,
        error_code: str = "CARRIER_ERROR",
        retryable: bool = False,
        details: Optional[dict[str, Any]] = None,
        claim_id: Optional[str] = None,
    ):
        self.carrier_code = carrier_code
        self.error_code = error_code
        self.retryable = retryable
        super().__init__(
            message,
            details={"carrier": carrier_code, "carrier_error_code": error_code, **(details or {})},
            claim_id=claim_id,
        )


class CarrierTimeout(CarrierError):
    """Carrier call did not finish within the configured timeout."""
    code = "CARRIER_TIMEOUT"

    def __init__(self, carrier_code: str, timeout_seconds: float, claim_id: Optional[str] = None):
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Carrier '{carrier_code}' did not respond within {timeout_seconds:g}s",
            carrier_code=carrier_code,
            error_code="TIMEOUT",
            retryable=True,
            details={"timeout_seconds": timeout_seconds},
            claim_id=claim_id,
        )


class SyncConflict(ClaimEngineError):
    """Carrier reported a status behind the local one; recorded, not applied."""
    code = "SYNC_CONFLICT"

    def __init__(self, local_status: str, carrier_status: str, mapped_status: str, claim_id: Optional[str] = None):
        self.local_status = local_status
        self.carrier_status = carrier_status
        self.mapped_status = mapped_status
        super().__init__(
            f"Carrier reports '{carrier_status}' ({mapped_status}) but claim is already '{local_status}'",
            details={
                "local_status": local_status,
                "carrier_status": carrier_status,
                "mapped_status": mapped_status,
            },
            claim_id=claim_id,
        )
