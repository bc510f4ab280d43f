from pydantic import BaseModel, Field
from typing import Optional

from app.services.types import ActualPowerState, RequestedPowerState

class PowerStatus(BaseModel):
    connected: bool
    powered_on: bool
    power_state: ActualPowerState
    requested_power_state: RequestedPowerState
    code: int = 200

class PowerCommandAccepted(BaseModel):
    message: str
    power_state: ActualPowerState
    requested_power_state: RequestedPowerState
    code: int = 202

class ServiceMessage(BaseModel):
    message: str
    code: int

class PowerHealth(BaseModel):
    status: str
    configured: bool
    connected: bool
    session_state: str
    power_state: ActualPowerState
    requested_power_state: RequestedPowerState
    scheduler_running: bool
    queue_depth: int = Field(0, description="Commands waiting for dispatch")
    unrecognized_responses: int = 0
    error: Optional[str] = None
