"""
FastAPI route handlers.
Validates inbound requests and forwards them to the Ostrom client or the device session.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import PlainTextResponse

from ostrom_bridge.client import ostrom_client
from ostrom_bridge.config import settings
from ostrom_bridge.database import meter_store
from ostrom_bridge.exceptions import (
    ContractNotFoundError,
    DataAbsentError,
    InvalidTriggerArgumentError,
    OstromBridgeError,
    UpstreamRequestError,
)
from ostrom_bridge.logging_config import get_logger
from ostrom_bridge.models.contract import ConsumptionPoint, Contract
from ostrom_bridge.models.device import (
    AccountLinkRequest,
    AccountLinkResponse,
    ConsumptionRequest,
    DeviceState,
    HealthResponse,
    TriggerArgumentDescription,
    TriggerDescription,
    TriggerEvaluationRequest,
    TriggerEvaluationResponse,
)
from ostrom_bridge.models.price import PricePoint
from ostrom_bridge.services import bridge_service
from ostrom_bridge.services.triggers import CATALOGUE

logger = get_logger(__name__)

router = APIRouter()


def _upstream_failure(e: Exception, **fields) -> HTTPException:
    """Map bridge errors to HTTP errors, logging the unexpected ones."""
    if isinstance(e, UpstreamRequestError):
        logger.error("Upstream error", error=str(e), operation=e.operation, **fields)
        return HTTPException(status_code=502, detail=f"Upstream request failed: {e.operation}")
    if isinstance(e, (ContractNotFoundError, DataAbsentError)):
        logger.warning("Requested data not found", error=str(e), **fields)
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, OstromBridgeError):
        logger.error("Bridge error", error=str(e), **fields)
        return HTTPException(status_code=500, detail="Internal server error")
    logger.error("Unexpected error", error=str(e), **fields)
    return HTTPException(status_code=500, detail="Internal server error")


@router.get("/ping", response_class=PlainTextResponse)
async def ping():
    return "pong"


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Health check endpoint for monitoring and load balancers.
    Reports meter store connectivity and when the last refresh cycle completed.
    """
    try:
        store_healthy = await meter_store.health_check()
        session = bridge_service.session

        details = {
            "service": "ostrom-price-bridge",
            "store": "ok" if store_healthy else "unavailable",
            "contract_id": session.contract.id if session else None,
            "last_cycle": session.state.last_cycle.isoformat() if session and session.state.last_cycle else None,
            "next_run": session.scheduler.next_run.isoformat() if session and session.scheduler.next_run else None,
        }

        return HealthResponse(
            status="healthy" if store_healthy else "unhealthy",
            timestamp=datetime.now(),
            details=details
        )

    except Exception as e:
        logger.error("Health check failed", error=str(e))
        return HealthResponse(
            status="unhealthy",
            timestamp=datetime.now(),
            details={"service": "ostrom-price-bridge", "error": str(e)}
        )


@router.get("/prices", response_model=List[PricePoint], response_model_by_alias=True)
async def get_prices(
    start_date: datetime = Query(description="Start of the range (ISO 8601, inclusive)"),
    end_date: datetime = Query(description="End of the range (ISO 8601, exclusive)"),
    zip: Optional[str] = Query(
        default=None,
        description="Postal code the prices apply to",
        pattern="^[0-9A-Za-z -]{3,10}$"
    ),
):
    """
    Hourly spot prices for a time range.
    """
    if end_date <= start_date:
        raise HTTPException(status_code=400, detail="end_date must be after start_date")

    try:
        return await ostrom_client.retrieve_spot_prices(start_date, end_date, zip)
    except Exception as e:
        raise _upstream_failure(e, start_date=start_date.isoformat(), end_date=end_date.isoformat())


@router.post("/account/link", response_model=AccountLinkResponse)
async def create_account_link(request: AccountLinkRequest):
    """
    Create the link a user follows to connect their Ostrom account.
    """
    try:
        link = await ostrom_client.create_account_link(
            request.external_user_id,
            request.redirect_url,
            settings.account_link_scopes,
        )
        return AccountLinkResponse(link=link)
    except Exception as e:
        raise _upstream_failure(e, external_user_id=request.external_user_id)


@router.get("/users/{external_user_id}/contracts", response_model=List[Contract], response_model_by_alias=True)
async def get_contracts(external_user_id: str):
    try:
        return await ostrom_client.retrieve_contracts(external_user_id)
    except Exception as e:
        raise _upstream_failure(e, external_user_id=external_user_id)


@router.post(
    "/users/{external_user_id}/contracts/{contract_id}/energy-consumption",
    response_model=List[ConsumptionPoint],
    response_model_by_alias=True,
)
async def get_energy_consumption(external_user_id: str, contract_id: int, request: ConsumptionRequest):
    """
    Smart-meter consumption of a contract for a time range.
    """
    if request.end_date <= request.start_date:
        raise HTTPException(status_code=400, detail="end_date must be after start_date")

    try:
        return await ostrom_client.retrieve_smart_meter_consumption(
            external_user_id,
            contract_id,
            request.start_date,
            request.end_date,
            request.resolution,
        )
    except Exception as e:
        raise _upstream_failure(e, external_user_id=external_user_id, contract_id=contract_id)


@router.get("/device/state", response_model=DeviceState)
async def get_device_state():
    """
    Latest values published by the refresh cycle.
    """
    session = bridge_service.session
    if session is None:
        raise HTTPException(status_code=404, detail="No contract has been activated yet")
    return session.state


@router.get("/triggers", response_model=List[TriggerDescription])
async def list_triggers():
    """
    The trigger and condition catalogue with argument schemas.
    """
    return [
        TriggerDescription(
            id=rule.id,
            kind=rule.kind.value,
            family=rule.family.value,
            title=rule.title,
            arguments=[TriggerArgumentDescription(name=arg.name, type=arg.type.value) for arg in rule.arguments],
        )
        for rule in CATALOGUE.values()
    ]


@router.post("/triggers/{rule_id}/evaluate", response_model=TriggerEvaluationResponse)
async def evaluate_trigger(rule_id: str, request: TriggerEvaluationRequest):
    """
    Evaluate a trigger or condition against the current hour.
    """
    session = bridge_service.session
    if session is None:
        raise HTTPException(status_code=404, detail="No contract has been activated yet")

    try:
        matches = session.evaluate(rule_id, request.args)
    except InvalidTriggerArgumentError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DataAbsentError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return TriggerEvaluationResponse(rule_id=rule_id, matches=matches)
