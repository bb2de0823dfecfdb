"""
Carrier adapter contract and shared HTTP plumbing.

Every carrier integration implements CarrierAdapter. Adapters raise
CarrierError (or CarrierTimeout) on failure and return the engine's fixed
result types on success.
"""
import base64
import re
import time
from abc import ABC, abstractmethod
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

import httpx

from guardian.core.exceptions import CarrierError, CarrierTimeout
from guardian.core.logging import get_logger
from guardian.services.carriers.types import (
    CarrierClaimStatus,
    CarrierConnection,
    CarrierStatusSnapshot,
    FilingRequest,
    FilingResult,
)

logger = get_logger(__name__)


class CarrierAdapter(ABC):
    """Translates the engine's file/fetch-status operations into one carrier's protocol."""

    carrier_code: str = ""
    carrier_name: str = ""

    @abstractmethod
    async def file_claim(self, request: FilingRequest) -> FilingResult:
        """Submit a new claim to the carrier."""
        pass

    @abstractmethod
    async def fetch_status(self, carrier_claim_id: str) -> CarrierStatusSnapshot:
        """Fetch the carrier's current view of a filed claim."""
        pass

    @abstractmethod
    def map_status(self, carrier_status: str) -> CarrierClaimStatus:
        """Map the carrier's own status label onto the canonical vocabulary."""
        pass

    async def aclose(self) -> None:
        """Release network resources."""
        return None


class HttpCarrierAdapter(CarrierAdapter):
    """Base class for carriers reached over a JSON HTTP API."""

    def __init__(
        self,
        connection: CarrierConnection,
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.connection = connection
        self.timeout_seconds = timeout_seconds
        self.base_url = (connection.api_endpoint or self.default_endpoint()).rstrip("/")
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @abstractmethod
    def default_endpoint(self) -> str:
        pass

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout_seconds,
                transport=self._transport,
                headers={"Content-Type": "application/json", **self._auth_headers()},
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _auth_headers(self) -> Dict[str, str]:
        if self.connection.access_token:
            return {"Authorization": f"Bearer {self.connection.access_token}"}
        if self.connection.api_key:
            return {"X-API-Key": self.connection.api_key}
        if self.connection.client_id and self.connection.client_secret:
            raw = f"{self.connection.client_id}:{self.connection.client_secret}".encode("utf-8")
            return {"Authorization": f"Basic {base64.b64encode(raw).decode('ascii')}"}
        return {}

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Perform a request and return the decoded JSON body, or raise CarrierError."""
        started = time.monotonic()
        client = self._get_client()

        try:
            response = await client.request(method, path, json=json, params=params)
        except httpx.TimeoutException:
            logger.warning(f"[{self.carrier_code}] {method} {path} timed out after {self.timeout_seconds:g}s")
            raise CarrierTimeout(self.carrier_code, self.timeout_seconds)
        except httpx.HTTPError as exc:
            logger.error(f"[{self.carrier_code}] {method} {path} network error: {exc}")
            raise CarrierError(
                str(exc) or "Network error occurred",
                carrier_code=self.carrier_code,
                error_code="NETWORK_ERROR",
                retryable=True,
            ) from exc

        duration_ms = int((time.monotonic() - started) * 1000)

        try:
            data = response.json()
        except ValueError:
            data = {}

        if not response.is_success:
            error = self._parse_error(data, response.status_code)
            logger.warning(
                f"[{self.carrier_code}] {method} {path} - failed ({response.status_code}) "
                f"{duration_ms}ms: {error.error_code} {error.message}"
            )
            raise error

        logger.info(f"[{self.carrier_code}] {method} {path} - success ({response.status_code}) {duration_ms}ms")
        if not isinstance(data, dict):
            raise CarrierError(
                "Carrier returned an unexpected response body",
                carrier_code=self.carrier_code,
                error_code="BAD_RESPONSE",
            )
        return data

    def _parse_error(self, data: Any, status_code: int) -> CarrierError:
        if not isinstance(data, dict):
            data = {}
        nested = data.get("error") if isinstance(data.get("error"), dict) else {}
        code = nested.get("code") or data.get("errorCode") or f"HTTP_{status_code}"
        message = (
            nested.get("message")
            or data.get("message")
            or data.get("errorMessage")
            or "Unknown error"
        )
        details = nested.get("details") or data.get("details")
        return CarrierError(
            message,
            carrier_code=self.carrier_code,
            error_code=code,
            retryable=status_code >= 500 or status_code == 429,
            details={"status_code": status_code, "carrier_details": details} if details else {"status_code": status_code},
        )

    # Field helpers shared by concrete adapters

    @staticmethod
    def parse_amount(value: Any) -> Optional[Decimal]:
        if value is None or value == "":
            return None
        cleaned = re.sub(r"[^0-9.\-]", "", str(value))
        try:
            return Decimal(cleaned).quantize(Decimal("0.01"))
        except InvalidOperation:
            return None

    @staticmethod
    def parse_datetime(value: Any) -> Optional[datetime]:
        if not value:
            return None
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
        # Stored naive in UTC
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        return parsed

    @staticmethod
    def format_date(value: Optional[date]) -> Optional[str]:
        return value.isoformat() if value else None

    @staticmethod
    def sanitize_phone(phone: Optional[str]) -> str:
        return re.sub(r"\D", "", phone or "")
