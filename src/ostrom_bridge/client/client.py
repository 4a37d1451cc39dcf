"""
Typed client for the Ostrom data API.

Every operation ensures a fresh credential first and then issues the request
through the shared rate limiter. Failures are not retried.
"""

from datetime import datetime
from typing import Any, List, Optional

import httpx
from pydantic import ValidationError

from ostrom_bridge.client.authenticator import Authenticator
from ostrom_bridge.client.rate_limiter import RateLimiter
from ostrom_bridge.exceptions import UpstreamRequestError
from ostrom_bridge.logging_config import get_logger
from ostrom_bridge.models.contract import ConsumptionPoint, Contract, Resolution
from ostrom_bridge.models.price import PricePoint
from ostrom_bridge.utils.time_utils import to_utc_iso

logger = get_logger(__name__)

SPOT_PRICES_PATH = "/spot-prices"
USER_CONTRACTS_PATH = "/users/{external_user_id}/contracts"
ENERGY_CONSUMPTION_PATH = "/users/{external_user_id}/contracts/{contract_id}/energy-consumption"
ACCOUNT_LINK_PATH = "/users/{external_user_id}/account-links"


class OstromClient:
    """Facade over the Ostrom prices, contracts, consumption and account-link endpoints."""

    def __init__(
        self,
        api_url: str,
        authenticator: Authenticator,
        rate_limiter: RateLimiter,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url.rstrip("/")
        self._authenticator = authenticator
        self._rate_limiter = rate_limiter
        self._timeout = timeout
        self._transport = transport

    async def retrieve_spot_prices(
        self, start: datetime, end: datetime, zip_code: Optional[str] = None
    ) -> List[PricePoint]:
        """Hourly spot prices for the half-open range [start, end)."""
        params = {
            "startDate": to_utc_iso(start),
            "endDate": to_utc_iso(end),
            "resolution": Resolution.HOUR.value,
        }
        if zip_code:
            params["zip"] = zip_code

        data = await self._request("retrieve_spot_prices", "GET", SPOT_PRICES_PATH, params=params)
        prices = self._parse_list("retrieve_spot_prices", data, PricePoint)

        logger.debug("Retrieved spot prices", start=params["startDate"], end=params["endDate"], count=len(prices))
        return prices

    async def retrieve_contracts(self, external_user_id: str) -> List[Contract]:
        path = USER_CONTRACTS_PATH.format(external_user_id=external_user_id)
        data = await self._request("retrieve_contracts", "GET", path)
        contracts = self._parse_list("retrieve_contracts", data, Contract)

        logger.info("Retrieved contract information", external_user_id=external_user_id, count=len(contracts))
        return contracts

    async def retrieve_smart_meter_consumption(
        self,
        external_user_id: str,
        contract_id: int,
        start: datetime,
        end: datetime,
        resolution: Resolution = Resolution.HOUR,
    ) -> List[ConsumptionPoint]:
        """Consumption deltas for [start, end) at the given resolution."""
        path = ENERGY_CONSUMPTION_PATH.format(external_user_id=external_user_id, contract_id=contract_id)
        params = {
            "startDate": to_utc_iso(start),
            "endDate": to_utc_iso(end),
            "resolution": Resolution(resolution).value,
        }

        data = await self._request("retrieve_smart_meter_consumption", "GET", path, params=params)
        consumption = self._parse_list("retrieve_smart_meter_consumption", data, ConsumptionPoint)

        logger.debug(
            "Retrieved consumption",
            contract_id=contract_id,
            start=params["startDate"],
            end=params["endDate"],
            count=len(consumption),
        )
        return consumption

    async def create_account_link(self, external_user_id: str, redirect_url: str, scopes: List[str]) -> str:
        """Create a link the user follows to grant access to their contracts."""
        path = ACCOUNT_LINK_PATH.format(external_user_id=external_user_id)
        data = await self._request(
            "create_account_link",
            "POST",
            path,
            json={"redirectUrl": redirect_url, "scopes": scopes},
        )

        if not isinstance(data, dict) or not data.get("link"):
            raise UpstreamRequestError("create_account_link", data)

        logger.info("Received account link", external_user_id=external_user_id)
        return data["link"]

    async def _request(self, operation: str, method: str, path: str, **kwargs) -> Any:
        await self._authenticator.ensure_fresh()
        return await self._rate_limiter.wrap(self._send)(operation, method, path, **kwargs)

    async def _send(self, operation: str, method: str, path: str, **kwargs) -> Any:
        headers = {
            "Accept": "application/json",
            "Authorization": self._authenticator.header(),
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.request(method, f"{self.api_url}{path}", headers=headers, **kwargs)
        except httpx.HTTPError as e:
            logger.error("Upstream request failed", operation=operation, error=str(e))
            raise UpstreamRequestError(operation, f"HTTP error: {e}")

        if response.is_error:
            payload = _payload(response)
            logger.error("Upstream returned an error", operation=operation, status_code=response.status_code)
            raise UpstreamRequestError(operation, payload, response.status_code)

        try:
            return response.json()
        except ValueError:
            raise UpstreamRequestError(operation, response.text, response.status_code)

    @staticmethod
    def _parse_list(operation: str, data: Any, model) -> list:
        # Some endpoints wrap the array: {"data": [...]}
        if isinstance(data, dict) and "data" in data:
            data = data["data"]

        if not isinstance(data, list):
            raise UpstreamRequestError(operation, data)

        try:
            return [model(**item) for item in data]
        except (TypeError, ValidationError) as e:
            raise UpstreamRequestError(operation, f"Malformed response: {e}")


def _payload(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return {"body": response.text}
