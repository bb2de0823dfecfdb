"""
Carrier capability API routes
"""
from typing import Any, Dict, List

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from guardian.api.deps import get_registry, get_sync_sweep
from guardian.services.carriers.registry import CarrierCapabilities, CarrierRegistry
from guardian.services.claims.sync import SyncSweep

router = APIRouter()


class CarrierResponse(BaseModel):
    code: str
    display_name: str
    supports_direct_filing: bool
    supports_status_sync: bool
    required_fields: List[str]
    is_test_mode: bool


class SweepResponse(BaseModel):
    carrier: str
    synced: int
    conflicts: int
    failed: int
    total: int
    errors: List[Dict[str, Any]]


def to_carrier_response(capabilities: CarrierCapabilities) -> CarrierResponse:
    return CarrierResponse(**capabilities.to_dict())


@router.get("/", response_model=List[CarrierResponse])
async def list_carriers(registry: CarrierRegistry = Depends(get_registry)):
    """All known carriers and what each one supports."""
    return [to_carrier_response(c) for c in registry.list_carriers()]


@router.get("/{carrier_code}", response_model=CarrierResponse)
async def get_carrier(carrier_code: str, registry: CarrierRegistry = Depends(get_registry)):
    return to_carrier_response(registry.get_capabilities(carrier_code))


@router.post("/{carrier_code}/sync", response_model=SweepResponse)
async def sync_carrier_claims(
    carrier_code: str,
    registry: CarrierRegistry = Depends(get_registry),
    sweep: SyncSweep = Depends(get_sync_sweep),
):
    """
    Sync every filed, open claim of one carrier.

    Per-claim failures are reported in the body; the request itself only
    fails for unknown carriers or carriers without status sync.
    """
    capabilities = registry.get_capabilities(carrier_code)
    report = await sweep.run(carriers=[capabilities.code])
    return SweepResponse(carrier=capabilities.code, **report.to_dict())
