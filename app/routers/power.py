import logging
from typing import Annotated
from fastapi import APIRouter, Depends
from app.models.power import PowerStatus, PowerCommandAccepted
from app.services.power_controller import PowerController
from app.dependencies import get_power_controller

router = APIRouter(tags=["power"])
log = logging.getLogger("app.router.power")

# Type alias for the power controller dependency
PowerDep = Annotated[PowerController, Depends(get_power_controller)]

@router.get("", response_model=PowerStatus)
async def power_status(power: PowerDep):
    snap = power.get_status()
    log.debug("power -> connected=%s state=%s requested=%s",
              snap.connected, snap.power_state.value, snap.requested_power_state.value)
    return PowerStatus(
        connected=snap.connected,
        powered_on=snap.powered_on,
        power_state=snap.power_state,
        requested_power_state=snap.requested_power_state,
    )

@router.api_route("/on", methods=["GET", "POST"], status_code=202, response_model=PowerCommandAccepted)
async def power_on(power: PowerDep):
    snap = power.request_power_on()
    return PowerCommandAccepted(
        message="Starting server...",
        power_state=snap.power_state,
        requested_power_state=snap.requested_power_state,
    )

@router.api_route("/off", methods=["GET", "POST"], status_code=202, response_model=PowerCommandAccepted)
async def power_off(power: PowerDep):
    snap = power.request_power_off()
    return PowerCommandAccepted(
        message="Stopping server...",
        power_state=snap.power_state,
        requested_power_state=snap.requested_power_state,
    )
