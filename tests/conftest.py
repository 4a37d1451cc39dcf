"""
Test configuration and fixtures for the Ostrom spot-price bridge tests.
Contains shared fixtures and test utilities.
"""

from datetime import datetime, timedelta
from typing import List, Sequence
from unittest.mock import AsyncMock

import pytest
import pytz
from fastapi.testclient import TestClient

from ostrom_bridge.database import InMemoryMeterStore
from ostrom_bridge.main import create_app
from ostrom_bridge.models.contract import Address, ConsumptionPoint, Contract
from ostrom_bridge.models.price import PricePoint
from ostrom_bridge.models.price_series import PriceSeries

UTC = pytz.UTC


def utc(*args) -> datetime:
    """Aware UTC datetime shortcut."""
    return datetime(*args, tzinfo=UTC)


def make_points(prices: Sequence[float], start: datetime) -> List[PricePoint]:
    """Consecutive hourly price points starting at `start`."""
    return [
        PricePoint(
            date=start + timedelta(hours=hour),
            net_kwh_price=price,
            gross_kwh_price=round(price * 1.19, 4),
        )
        for hour, price in enumerate(prices)
    ]


def make_consumption(values: Sequence[float], start: datetime) -> List[ConsumptionPoint]:
    """Consecutive hourly consumption deltas starting at `start`."""
    return [
        ConsumptionPoint(date=start + timedelta(hours=hour), kwh=value)
        for hour, value in enumerate(values)
    ]


class FakeClock:
    """Callable clock that tests can move forward."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def day_start() -> datetime:
    return utc(2024, 7, 1, 0, 0)


@pytest.fixture
def hourly_points(day_start) -> List[PricePoint]:
    """
    24 hourly points priced 10..33, strictly increasing.
    """
    return make_points([10 + hour for hour in range(24)], day_start)


@pytest.fixture
def price_series(hourly_points) -> PriceSeries:
    return PriceSeries(hourly_points)


@pytest.fixture
def contract() -> Contract:
    return Contract(
        id=42,
        status="ACTIVE",
        product_code="SIMPLY_DYNAMIC",
        start_date=utc(2023, 1, 1),
        address=Address(zip="10115", city="Berlin", street="Invalidenstraße", house_number="117"),
    )


@pytest.fixture
def meter_store() -> InMemoryMeterStore:
    return InMemoryMeterStore()


@pytest.fixture
def mock_client():
    """
    Create a mock Ostrom client for testing.
    """
    return AsyncMock()


@pytest.fixture
def test_app():
    """
    Create a test instance of the FastAPI application.
    """
    app = create_app()
    return app


@pytest.fixture
def test_client(test_app):
    """
    Create a test client for the FastAPI application.
    """
    return TestClient(test_app)
