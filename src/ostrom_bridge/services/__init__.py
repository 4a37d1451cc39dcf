"""
Services package for the Ostrom spot-price bridge.
Contains the meter synchronizer, price service, trigger engine and device session.
"""

from ostrom_bridge.client import ostrom_client
from ostrom_bridge.config import settings
from ostrom_bridge.database import meter_store

from .bridge_service import BridgeService, select_contract
from .consumption_sync import ConsumptionSynchronizer
from .device_session import DeviceSession
from .price_service import PriceService
from .triggers import CATALOGUE, TriggerEngine

# Global bridge service instance
bridge_service = BridgeService(ostrom_client, meter_store, settings)

__all__ = [
    "BridgeService",
    "CATALOGUE",
    "ConsumptionSynchronizer",
    "DeviceSession",
    "PriceService",
    "TriggerEngine",
    "bridge_service",
    "select_contract",
]
