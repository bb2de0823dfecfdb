"""
Carrier capability registry.

Maps carrier codes to what each carrier supports and, for carriers with an
integration, to the adapter that talks to it. Built once at startup and
injected wherever carriers are needed.
"""
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from guardian.core.config import Settings
from guardian.core.exceptions import NotFound, UnsupportedOperation
from guardian.core.logging import get_logger
from guardian.services.carriers.adapters import MockCarrierAdapter, StateFarmAdapter
from guardian.services.carriers.base import CarrierAdapter
from guardian.services.carriers.types import CarrierConnection

logger = get_logger(__name__)

AdapterFactory = Callable[[], CarrierAdapter]

DEFAULT_REQUIRED_FIELDS: Tuple[str, ...] = (
    "policy_number",
    "date_of_loss",
    "cause_of_loss",
    "loss_description",
    "damage_areas",
)


@dataclass(frozen=True)
class CarrierCapabilities:
    code: str
    display_name: str
    supports_direct_filing: bool = False
    supports_status_sync: bool = False
    required_fields: Tuple[str, ...] = field(default=DEFAULT_REQUIRED_FIELDS)
    is_test_mode: bool = False

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "display_name": self.display_name,
            "supports_direct_filing": self.supports_direct_filing,
            "supports_status_sync": self.supports_status_sync,
            "required_fields": list(self.required_fields),
            "is_test_mode": self.is_test_mode,
        }


def normalize_carrier_code(name: str) -> str:
    """'State Farm' -> 'state-farm', 'Liberty Mutual ' -> 'liberty-mutual'."""
    return re.sub(r"[^a-z0-9]+", "-", name.strip().lower()).strip("-")


class CarrierRegistry:
    """Carrier code -> capabilities and (optional) adapter."""

    def __init__(self):
        self._capabilities: Dict[str, CarrierCapabilities] = {}
        self._factories: Dict[str, AdapterFactory] = {}
        self._adapters: Dict[str, CarrierAdapter] = {}

    def register(
        self,
        capabilities: CarrierCapabilities,
        adapter_factory: Optional[AdapterFactory] = None,
    ) -> None:
        """Register a carrier. Carriers that file or sync must come with an adapter."""
        if (capabilities.supports_direct_filing or capabilities.supports_status_sync) and adapter_factory is None:
            raise ValueError(f"Carrier '{capabilities.code}' declares integration support but has no adapter")

        code = normalize_carrier_code(capabilities.code)
        self._capabilities[code] = capabilities
        self._adapters.pop(code, None)
        if adapter_factory is not None:
            self._factories[code] = adapter_factory
        else:
            self._factories.pop(code, None)

    def get_capabilities(self, carrier_code: str) -> CarrierCapabilities:
        code = normalize_carrier_code(carrier_code)
        capabilities = self._capabilities.get(code)
        if capabilities is None:
            raise NotFound("carrier", carrier_code)
        return capabilities

    def is_registered(self, carrier_code: str) -> bool:
        return normalize_carrier_code(carrier_code) in self._capabilities

    def list_carriers(self) -> List[CarrierCapabilities]:
        return sorted(self._capabilities.values(), key=lambda c: c.display_name)

    def supports_direct_filing(self, carrier_code: str) -> bool:
        return self.get_capabilities(carrier_code).supports_direct_filing

    def supports_status_sync(self, carrier_code: str) -> bool:
        return self.get_capabilities(carrier_code).supports_status_sync

    def get_adapter(self, carrier_code: str) -> Optional[CarrierAdapter]:
        """Adapter for the carrier, created on first use. None for display-only carriers."""
        code = normalize_carrier_code(self.get_capabilities(carrier_code).code)
        adapter = self._adapters.get(code)
        if adapter is None:
            factory = self._factories.get(code)
            if factory is None:
                return None
            adapter = factory()
            self._adapters[code] = adapter
        return adapter

    def require_filing_adapter(self, carrier_code: str, claim_id: Optional[str] = None) -> CarrierAdapter:
        """Adapter for direct filing; raises before any adapter is touched if unsupported."""
        if not self.supports_direct_filing(carrier_code):
            raise UnsupportedOperation(carrier_code, "direct filing", claim_id=claim_id)
        return self.get_adapter(carrier_code)

    def require_sync_adapter(self, carrier_code: str, claim_id: Optional[str] = None) -> CarrierAdapter:
        if not self.supports_status_sync(carrier_code):
            raise UnsupportedOperation(carrier_code, "status sync", claim_id=claim_id)
        return self.get_adapter(carrier_code)

    async def aclose(self) -> None:
        for code, adapter in list(self._adapters.items()):
            await adapter.aclose()
            logger.debug(f"Closed carrier adapter: {code}")
        self._adapters.clear()


# Carriers shown in the dashboard without any integration
DISPLAY_ONLY_CARRIERS = {
    "allstate": "Allstate",
    "usaa": "USAA",
    "liberty-mutual": "Liberty Mutual",
    "farmers": "Farmers Insurance",
    "nationwide": "Nationwide",
    "progressive": "Progressive",
    "travelers": "Travelers",
    "amica": "Amica",
    "auto-owners": "Auto-Owners Insurance",
    "erie": "Erie Insurance",
    "american-family": "American Family Insurance",
}


def build_carrier_registry(settings: Settings) -> CarrierRegistry:
    """Build the registry from settings. Called once from the app lifespan."""
    registry = CarrierRegistry()

    if settings.ENABLE_MOCK_CARRIER:
        registry.register(
            CarrierCapabilities(
                code="mock",
                display_name="Mock Insurance Co.",
                supports_direct_filing=True,
                supports_status_sync=True,
                is_test_mode=True,
            ),
            MockCarrierAdapter,
        )

    has_state_farm_credentials = bool(
        settings.STATE_FARM_ACCESS_TOKEN
        or (settings.STATE_FARM_CLIENT_ID and settings.STATE_FARM_CLIENT_SECRET)
    )
    if has_state_farm_credentials:
        connection = CarrierConnection(
            carrier_code="state-farm",
            api_endpoint=settings.STATE_FARM_API_ENDPOINT or None,
            access_token=settings.STATE_FARM_ACCESS_TOKEN or None,
            client_id=settings.STATE_FARM_CLIENT_ID or None,
            client_secret=settings.STATE_FARM_CLIENT_SECRET or None,
            is_test_mode=settings.CARRIER_TEST_MODE,
        )
        registry.register(
            CarrierCapabilities(
                code="state-farm",
                display_name="State Farm",
                supports_direct_filing=True,
                supports_status_sync=True,
                is_test_mode=settings.CARRIER_TEST_MODE,
            ),
            lambda: StateFarmAdapter(connection, timeout_seconds=settings.CARRIER_TIMEOUT_SECONDS),
        )
    else:
        logger.info("State Farm credentials not configured, registering as display-only")
        registry.register(CarrierCapabilities(code="state-farm", display_name="State Farm"))

    for code, display_name in DISPLAY_ONLY_CARRIERS.items():
        registry.register(CarrierCapabilities(code=code, display_name=display_name))

    logger.info(
        f"Carrier registry ready: {len(registry.list_carriers())} carriers, "
        f"integrated: {[c.code for c in registry.list_carriers() if c.supports_direct_filing]}"
    )
    return registry
