"""
Data models package for the Ostrom spot-price bridge.
Contains Pydantic models for upstream data, meter state and API responses.
"""

from .auth import Credential, TokenResponse
from .contract import Address, ConsumptionPoint, Contract, MeterState, Resolution
from .device import DeviceState, HealthResponse
from .price import PricePoint
from .price_series import PriceSeries

__all__ = [
    "Address",
    "ConsumptionPoint",
    "Contract",
    "Credential",
    "DeviceState",
    "HealthResponse",
    "MeterState",
    "PricePoint",
    "PriceSeries",
    "Resolution",
    "TokenResponse",
]
