"""
Pydantic data models for Ostrom spot-price data.
Field names follow the upstream camelCase wire format through aliases.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

from ostrom_bridge.utils.time_utils import ensure_aware


class PricePoint(BaseModel):
    """
    Represents a single hourly day-ahead spot price.

    Based on the upstream response:
    {"date": "2023-10-22T01:00:00.000Z", "netMwhPrice": 926, "netKwhPrice": 92.6,
     "grossKwhPrice": 110.2, "netKwhTaxAndLevies": 16.2, "grossKwhTaxAndLevies": 19.28, ...}
    """
    date: datetime = Field(description="Start of the hour the price applies to")
    net_kwh_price: float = Field(
        description="kWh spot price without VAT in cents - can be negative in some markets"
    )
    net_mwh_price: Optional[float] = Field(default=None, description="MWh spot price without VAT in EUR")
    gross_kwh_price: Optional[float] = Field(default=None, description="kWh spot price with VAT in cents")
    net_kwh_tax_and_levies: Optional[float] = Field(
        default=None, description="kWh taxes and levies without VAT in cents"
    )
    gross_kwh_tax_and_levies: Optional[float] = Field(
        default=None, description="kWh taxes and levies with VAT in cents"
    )
    net_monthly_ostrom_base_fee: Optional[float] = Field(default=None, description="Monthly base fee without VAT in EUR")
    gross_monthly_ostrom_base_fee: Optional[float] = Field(default=None, description="Monthly base fee with VAT in EUR")
    net_monthly_grid_fees: Optional[float] = Field(default=None, description="Monthly grid fees without VAT in EUR")
    gross_monthly_grid_fees: Optional[float] = Field(default=None, description="Monthly grid fees with VAT in EUR")

    class Config:
        frozen = True
        alias_generator = to_camel
        populate_by_name = True

    @field_validator("date")
    @classmethod
    def _aware_date(cls, value: datetime) -> datetime:
        return ensure_aware(value)

    @property
    def net_price(self) -> float:
        """The price all analytics operate on."""
        return self.net_kwh_price

    @property
    def total_gross_price(self) -> Optional[float]:
        """Gross spot price plus gross taxes and levies, when both are known."""
        if self.gross_kwh_price is None or self.gross_kwh_tax_and_levies is None:
            return None
        return self.gross_kwh_price + self.gross_kwh_tax_and_levies
