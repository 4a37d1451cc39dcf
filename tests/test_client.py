"""
Unit tests for the Ostrom data API client.
A single httpx.MockTransport serves both the token and the data endpoints.
"""

import json

import httpx
import pytest
import pytest_asyncio

from ostrom_bridge.client.authenticator import Authenticator
from ostrom_bridge.client.client import OstromClient
from ostrom_bridge.client.rate_limiter import RateLimiter
from ostrom_bridge.exceptions import UpstreamRequestError
from ostrom_bridge.models.contract import Resolution

from conftest import FakeClock, utc

SPOT_PRICES = [
    {
        "date": "2024-07-01T10:00:00.000Z",
        "netMwhPrice": 92.6,
        "netKwhPrice": 9.26,
        "grossKwhPrice": 11.02,
        "netKwhTaxAndLevies": 16.2,
        "grossKwhTaxAndLevies": 19.28,
        "netMonthlyOstromBaseFee": 5.04,
        "grossMonthlyOstromBaseFee": 6.0,
    },
    {
        "date": "2024-07-01T11:00:00.000Z",
        "netMwhPrice": -5.0,
        "netKwhPrice": -0.5,
        "grossKwhPrice": -0.6,
    },
]

CONTRACTS = [
    {
        "id": 100523456,
        "type": "ELECTRICITY",
        "productCode": "SIMPLY_DYNAMIC",
        "status": "ACTIVE",
        "customerFirstName": "Max",
        "customerLastName": "Mustermann",
        "startDate": "2023-01-01T00:00:00.000Z",
        "currentMonthlyDepositAmount": 120,
        "address": {"zip": "10115", "city": "Berlin", "street": "Invalidenstraße", "houseNumber": "117"},
    }
]


class FakeOstrom:
    """Routes token and data requests; records every data request."""

    def __init__(self):
        self.requests = []
        self.responses = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/oauth2/token":
            return httpx.Response(200, json={"access_token": "abc", "expires_in": 3600})

        self.requests.append(request)
        status_code, body = self.responses.get(request.url.path, (404, {"error": "not found"}))
        if isinstance(body, str):
            return httpx.Response(status_code, text=body)
        return httpx.Response(status_code, json=body)


@pytest.fixture
def upstream():
    return FakeOstrom()


@pytest.fixture
def limiter():
    return RateLimiter(capacity=10, refill_interval=3600)


@pytest_asyncio.fixture
async def client(upstream, limiter):
    transport = httpx.MockTransport(upstream)
    authenticator = Authenticator(
        auth_url="https://auth.example.test",
        client_id="client",
        client_secret="secret",
        rate_limiter=limiter,
        transport=transport,
        clock=FakeClock(utc(2024, 7, 1, 12)),
    )
    yield OstromClient("https://api.example.test", authenticator, limiter, transport=transport)
    await limiter.close()


class TestSpotPrices:
    """Tests for retrieve_spot_prices."""

    @pytest.mark.asyncio
    async def test_request_parameters(self, client, upstream):
        upstream.responses["/spot-prices"] = (200, {"data": SPOT_PRICES})

        await client.retrieve_spot_prices(utc(2024, 7, 1, 10), utc(2024, 7, 1, 12), "10115")

        request = upstream.requests[0]
        assert request.method == "GET"
        assert request.headers["Authorization"] == "Bearer abc"
        assert request.url.params["startDate"] == "2024-07-01T10:00:00.000Z"
        assert request.url.params["endDate"] == "2024-07-01T12:00:00.000Z"
        assert request.url.params["resolution"] == "HOUR"
        assert request.url.params["zip"] == "10115"

    @pytest.mark.asyncio
    async def test_zip_is_optional(self, client, upstream):
        upstream.responses["/spot-prices"] = (200, {"data": SPOT_PRICES})

        await client.retrieve_spot_prices(utc(2024, 7, 1, 10), utc(2024, 7, 1, 12))

        assert "zip" not in upstream.requests[0].url.params

    @pytest.mark.asyncio
    async def test_parses_wire_format(self, client, upstream):
        upstream.responses["/spot-prices"] = (200, {"data": SPOT_PRICES})

        prices = await client.retrieve_spot_prices(utc(2024, 7, 1, 10), utc(2024, 7, 1, 12))

        assert len(prices) == 2
        assert prices[0].date == utc(2024, 7, 1, 10)
        assert prices[0].net_price == 9.26
        assert prices[0].total_gross_price == pytest.approx(30.3)
        assert prices[1].net_price == -0.5
        assert prices[1].gross_kwh_tax_and_levies is None

    @pytest.mark.asyncio
    async def test_unwrapped_list_accepted(self, client, upstream):
        upstream.responses["/spot-prices"] = (200, SPOT_PRICES)

        prices = await client.retrieve_spot_prices(utc(2024, 7, 1, 10), utc(2024, 7, 1, 12))

        assert len(prices) == 2

    @pytest.mark.asyncio
    async def test_error_status(self, client, upstream):
        upstream.responses["/spot-prices"] = (500, {"message": "internal"})

        with pytest.raises(UpstreamRequestError) as exc_info:
            await client.retrieve_spot_prices(utc(2024, 7, 1, 10), utc(2024, 7, 1, 12))

        assert exc_info.value.operation == "retrieve_spot_prices"
        assert exc_info.value.status_code == 500
        assert exc_info.value.payload == {"message": "internal"}

    @pytest.mark.asyncio
    async def test_non_json_error_body(self, client, upstream):
        upstream.responses["/spot-prices"] = (503, "Service Unavailable")

        with pytest.raises(UpstreamRequestError) as exc_info:
            await client.retrieve_spot_prices(utc(2024, 7, 1, 10), utc(2024, 7, 1, 12))

        assert exc_info.value.payload == {"body": "Service Unavailable"}

    @pytest.mark.asyncio
    async def test_unexpected_shape(self, client, upstream):
        upstream.responses["/spot-prices"] = (200, {"prices": []})

        with pytest.raises(UpstreamRequestError):
            await client.retrieve_spot_prices(utc(2024, 7, 1, 10), utc(2024, 7, 1, 12))

    @pytest.mark.asyncio
    async def test_every_call_consumes_rate_token(self, client, upstream, limiter):
        """One token for the exchange plus one per data request."""
        upstream.responses["/spot-prices"] = (200, {"data": []})

        await client.retrieve_spot_prices(utc(2024, 7, 1, 10), utc(2024, 7, 1, 12))
        await client.retrieve_spot_prices(utc(2024, 7, 1, 10), utc(2024, 7, 1, 12))

        assert limiter.remaining == 7


class TestContractsAndConsumption:
    """Tests for contract and smart-meter retrieval."""

    @pytest.mark.asyncio
    async def test_retrieve_contracts(self, client, upstream):
        upstream.responses["/users/user-1/contracts"] = (200, {"data": CONTRACTS})

        contracts = await client.retrieve_contracts("user-1")

        assert len(contracts) == 1
        assert contracts[0].id == 100523456
        assert contracts[0].is_active
        assert contracts[0].address.zip == "10115"
        assert contracts[0].display_name == "Invalidenstraße 117"

    @pytest.mark.asyncio
    async def test_retrieve_consumption(self, client, upstream):
        path = "/users/user-1/contracts/42/energy-consumption"
        upstream.responses[path] = (200, {"data": [
            {"date": "2024-07-01T00:00:00.000Z", "kWh": 0.42},
            {"date": "2024-07-01T01:00:00.000Z", "kWh": 0.38},
        ]})

        consumption = await client.retrieve_smart_meter_consumption(
            "user-1", 42, utc(2024, 7, 1), utc(2024, 7, 1, 2), Resolution.HOUR
        )

        assert [point.kwh for point in consumption] == [0.42, 0.38]
        params = upstream.requests[0].url.params
        assert params["startDate"] == "2024-07-01T00:00:00.000Z"
        assert params["endDate"] == "2024-07-01T02:00:00.000Z"
        assert params["resolution"] == "HOUR"

    @pytest.mark.asyncio
    async def test_consumption_failure(self, client, upstream):
        path = "/users/user-1/contracts/42/energy-consumption"
        upstream.responses[path] = (400, {"message": "range too long"})

        with pytest.raises(UpstreamRequestError) as exc_info:
            await client.retrieve_smart_meter_consumption("user-1", 42, utc(2022, 1, 1), utc(2024, 1, 1))

        assert exc_info.value.operation == "retrieve_smart_meter_consumption"
        assert exc_info.value.status_code == 400


class TestAccountLink:
    """Tests for create_account_link."""

    @pytest.mark.asyncio
    async def test_create_account_link(self, client, upstream):
        upstream.responses["/users/user-1/account-links"] = (201, {"link": "https://ostrom.example/link/xyz"})

        link = await client.create_account_link("user-1", "https://bridge.example/redirect", ["contract:read:data"])

        request = upstream.requests[0]
        assert link == "https://ostrom.example/link/xyz"
        assert request.method == "POST"
        assert json.loads(request.content) == {
            "redirectUrl": "https://bridge.example/redirect",
            "scopes": ["contract:read:data"],
        }

    @pytest.mark.asyncio
    async def test_missing_link(self, client, upstream):
        upstream.responses["/users/user-1/account-links"] = (200, {"status": "pending"})

        with pytest.raises(UpstreamRequestError):
            await client.create_account_link("user-1", "https://bridge.example/redirect", [])

    @pytest.mark.asyncio
    async def test_transport_error(self, limiter):
        def unreachable(request):
            if request.url.path == "/oauth2/token":
                return httpx.Response(200, json={"access_token": "abc", "expires_in": 3600})
            raise httpx.ConnectTimeout("timed out", request=request)

        transport = httpx.MockTransport(unreachable)
        authenticator = Authenticator("https://auth.example.test", "client", "secret", limiter, transport=transport)
        client = OstromClient("https://api.example.test", authenticator, limiter, transport=transport)

        with pytest.raises(UpstreamRequestError, match="HTTP error: timed out"):
            await client.create_account_link("user-1", "https://bridge.example/redirect", [])
        await limiter.close()
