"""
Data classification for audit trail details.
Customer contact data is masked before it reaches audit rows or logs.
"""

from enum import Enum
from typing import Any


class DataClassification(Enum):
    """Data sensitivity classification levels."""
    PUBLIC = "public"
    INTERNAL = "internal"
    CONFIDENTIAL = "confidential"
    RESTRICTED = "restricted"  # credentials, payment details


FIELD_CLASSIFICATIONS: dict[str, DataClassification] = {
    # Customer fields
    "email": DataClassification.CONFIDENTIAL,
    "phone": DataClassification.CONFIDENTIAL,
    "address": DataClassification.CONFIDENTIAL,

    # Claim fields
    "policy_number": DataClassification.INTERNAL,
    "claim_number": DataClassification.INTERNAL,
    "carrier_claim_id": DataClassification.INTERNAL,
    "adjuster_email": DataClassification.CONFIDENTIAL,
    "adjuster_phone": DataClassification.CONFIDENTIAL,

    # Carrier credentials
    "access_token": DataClassification.RESTRICTED,
    "api_key": DataClassification.RESTRICTED,
    "client_secret": DataClassification.RESTRICTED,
}


def get_field_classification(field_name: str) -> DataClassification:
    return FIELD_CLASSIFICATIONS.get(field_name.lower(), DataClassification.INTERNAL)


def mask_value(value: str, classification: DataClassification) -> str:
    """Mask a value based on its classification."""
    if classification in (DataClassification.PUBLIC, DataClassification.INTERNAL):
        return value
    if classification == DataClassification.CONFIDENTIAL:
        # Show first and last characters
        if len(value) <= 4:
            return "*" * len(value)
        return f"{value[0]}{'*' * (len(value) - 2)}{value[-1]}"
    return "*" * min(len(value), 8)


def sanitize_for_logging(data: dict[str, Any]) -> dict[str, Any]:
    """Sanitize a dictionary for safe logging."""
    sanitized = {}

    for key, value in data.items():
        classification = get_field_classification(key)

        if isinstance(value, str):
            sanitized[key] = mask_value(value, classification)
        elif isinstance(value, dict):
            sanitized[key] = sanitize_for_logging(value)
        elif isinstance(value, list):
            sanitized[key] = [
                sanitize_for_logging(item) if isinstance(item, dict) else item
                for item in value
            ]
        else:
            sanitized[key] = value

    return sanitized


def highest_classification(data: dict[str, Any]) -> DataClassification:
    """Highest classification level among the keys of a payload."""
    order = list(DataClassification)
    highest = DataClassification.PUBLIC
    for key, value in data.items():
        level = get_field_classification(key)
        if isinstance(value, dict):
            level = max(level, highest_classification(value), key=order.index)
        highest = max(highest, level, key=order.index)
    return highest
