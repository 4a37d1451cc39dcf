"""
Pydantic models for device state and API request/response formats.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ostrom_bridge.models.contract import Resolution


class DeviceState(BaseModel):
    """
    Values published to the automation host after every refresh cycle.
    """
    contract_id: int = Field(description="Contract the device is bound to")
    current_price: Optional[float] = Field(default=None, description="Net price of the current hour (ct/kWh)")
    lowest_price: Optional[float] = Field(default=None, description="Lowest net price today (ct/kWh)")
    highest_price: Optional[float] = Field(default=None, description="Highest net price today (ct/kWh)")
    average_price: Optional[float] = Field(default=None, description="Average net price today (ct/kWh)")
    meter_power_imported: Optional[float] = Field(default=None, description="Cumulative imported energy (kWh)")
    last_cycle: Optional[datetime] = Field(default=None, description="When the last refresh cycle completed")


class HealthResponse(BaseModel):
    """
    Health check response model.
    """
    status: str = Field(description="Health status")
    timestamp: datetime = Field(description="Health check timestamp")
    details: Optional[dict] = Field(default=None, description="Additional health details")


class AccountLinkRequest(BaseModel):
    external_user_id: str = Field(min_length=1, description="External user the link is created for")
    redirect_url: str = Field(min_length=1, description="Where the user returns after linking")


class AccountLinkResponse(BaseModel):
    link: str


class ConsumptionRequest(BaseModel):
    start_date: datetime
    end_date: datetime
    resolution: Resolution


class TriggerArgumentDescription(BaseModel):
    name: str
    type: str


class TriggerDescription(BaseModel):
    """Catalogue entry exposed to the automation host."""
    id: str
    kind: str
    family: str
    title: str
    arguments: List[TriggerArgumentDescription]


class TriggerEvaluationRequest(BaseModel):
    args: Dict[str, Any] = Field(default_factory=dict)


class TriggerEvaluationResponse(BaseModel):
    rule_id: str
    matches: bool
