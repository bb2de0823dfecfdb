"""
Core module exports
"""
from guardian.core.config import settings, get_settings, Settings
from guardian.core.logging import logger, get_logger, log_audit_event
from guardian.core.exceptions import (
    ClaimEngineError,
    ValidationError,
    InvalidState,
    InvalidTransition,
    InvariantViolation,
    UnsupportedOperation,
    NotFound,
    ConcurrencyConflict,
    CarrierError,
    CarrierTimeout,
    SyncConflict,
)

__all__ = [
    "settings",
    "get_settings",
    "Settings",
    "logger",
    "get_logger",
    "log_audit_event",
    "ClaimEngineError",
    "ValidationError",
    "InvalidState",
    "InvalidTransition",
    "InvariantViolation",
    "UnsupportedOperation",
    "NotFound",
    "ConcurrencyConflict",
    "CarrierError",
    "CarrierTimeout",
    "SyncConflict",
]
