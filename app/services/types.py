# shared enums for the power services (kept apart from models to avoid cycles)
from enum import Enum


class ActualPowerState(str, Enum):
    UNKNOWN = "unknown"
    STARTED = "started"
    STOPPED = "stopped"


class RequestedPowerState(str, Enum):
    UNKNOWN = "unknown"
    ON = "on"
    OFF = "off"


class Command(str, Enum):
    STATUS = "status"
    POWER_ON = "power_on"
    POWER_OFF = "power_off"
