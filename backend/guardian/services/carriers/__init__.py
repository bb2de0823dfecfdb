"""Insurance carrier integrations."""
from guardian.services.carriers.base import CarrierAdapter, HttpCarrierAdapter
from guardian.services.carriers.registry import (
    CarrierCapabilities,
    CarrierRegistry,
    build_carrier_registry,
    normalize_carrier_code,
)
from guardian.services.carriers.types import (
    AdjusterInfo,
    CarrierClaimStatus,
    CarrierConnection,
    CarrierStatusSnapshot,
    CauseOfLoss,
    DamageArea,
    DamageSeverity,
    DamageType,
    FilingRequest,
    FilingResult,
    PhotoReference,
    PolicyholderInfo,
    PropertyInfo,
)

__all__ = [
    "CarrierAdapter",
    "HttpCarrierAdapter",
    "CarrierCapabilities",
    "CarrierRegistry",
    "build_carrier_registry",
    "normalize_carrier_code",
    "AdjusterInfo",
    "CarrierClaimStatus",
    "CarrierConnection",
    "CarrierStatusSnapshot",
    "CauseOfLoss",
    "DamageArea",
    "DamageSeverity",
    "DamageType",
    "FilingRequest",
    "FilingResult",
    "PhotoReference",
    "PolicyholderInfo",
    "PropertyInfo",
]
