"""
Database package for the Ostrom spot-price bridge.
Contains the meter state stores.
"""

from typing import Optional, Union

from ostrom_bridge.config import settings

from .memory import InMemoryMeterStore
from .service import DatabaseService

MeterStore = Union[DatabaseService, InMemoryMeterStore]


def create_meter_store(database_url: Optional[str] = None) -> MeterStore:
    """PostgreSQL store when a URL is configured, in-memory otherwise."""
    if database_url:
        return DatabaseService(database_url)
    return InMemoryMeterStore()


# Global meter store instance
meter_store = create_meter_store(settings.database_url)

__all__ = [
    "DatabaseService",
    "InMemoryMeterStore",
    "MeterStore",
    "create_meter_store",
    "meter_store",
]
