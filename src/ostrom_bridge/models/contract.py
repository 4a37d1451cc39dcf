"""
Pydantic data models for contracts, smart-meter consumption and the meter state.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

from ostrom_bridge.utils.time_utils import ensure_aware


class Resolution(str, Enum):
    """Granularity of smart-meter consumption queries."""
    HOUR = "HOUR"
    DAY = "DAY"
    MONTH = "MONTH"


class Address(BaseModel):
    zip: Optional[str] = None
    city: Optional[str] = None
    street: Optional[str] = None
    house_number: Optional[str] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class Contract(BaseModel):
    """
    An Ostrom energy contract linked to an external user.
    """
    id: int = Field(description="The id of the contract")
    type: Optional[str] = Field(default=None, description="Type of the contract")
    product_code: Optional[str] = Field(default=None, description="Product code of the contract")
    status: Optional[str] = Field(default=None, description="Status of the contract")
    customer_first_name: Optional[str] = Field(default=None, description="Customer first name")
    customer_last_name: Optional[str] = Field(default=None, description="Customer last name")
    start_date: datetime = Field(description="Start date of the contract")
    current_monthly_deposit_amount: Optional[float] = Field(
        default=None, description="Current monthly deposit amount in EUR"
    )
    address: Optional[Address] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    @field_validator("start_date")
    @classmethod
    def _aware_start_date(cls, value: datetime) -> datetime:
        return ensure_aware(value)

    @property
    def display_name(self) -> str:
        """Name shown when listing contracts during pairing."""
        if self.address and (self.address.street or self.address.house_number):
            return f"{self.address.street or ''} {self.address.house_number or ''}".strip()
        return f"Contract {self.id}"

    @property
    def is_active(self) -> bool:
        return (self.status or "").upper() == "ACTIVE"


class ConsumptionPoint(BaseModel):
    """
    Energy consumed during one interval; a delta, not a meter reading.
    """
    date: datetime = Field(description="Start of the interval")
    kwh: float = Field(alias="kWh", description="Energy consumed in the interval in kWh")

    class Config:
        frozen = True
        populate_by_name = True

    @field_validator("date")
    @classmethod
    def _aware_date(cls, value: datetime) -> datetime:
        return ensure_aware(value)


class MeterState(BaseModel):
    """
    Cumulative imported energy and the last hour folded into it.
    """
    cumulative_kwh: float = Field(ge=0.0, description="Total imported energy since contract start")
    last_fetched_hour: datetime = Field(description="Start of the last hour included in the total")

    class Config:
        frozen = True

    @field_validator("last_fetched_hour")
    @classmethod
    def _aware_hour(cls, value: datetime) -> datetime:
        return ensure_aware(value)
