import logging
import time
from typing import List, Optional

from app.services.types import ActualPowerState, Command, RequestedPowerState

log = logging.getLogger("app.reconciler")


class PowerReconciler:
    """
    Tracks the last reported power state of the server and the state a caller asked for.

    Actual state only moves on a parsed status response. A pending request is
    cleared as soon as the actual state satisfies it.
    """

    def __init__(self):
        self.actual = ActualPowerState.UNKNOWN
        self.requested = RequestedPowerState.UNKNOWN
        self.unrecognized_responses = 0
        self.last_status_at: Optional[float] = None

    @property
    def powered_on(self) -> bool:
        return self.actual is ActualPowerState.STARTED

    def apply_status(self, token: str) -> ActualPowerState:
        """Apply a parsed status token ('on' / 'off'); anything else leaves state alone."""
        previous = self.actual
        if token == "on":
            self.actual = ActualPowerState.STARTED
            self.last_status_at = time.time()
        elif token == "off":
            self.actual = ActualPowerState.STOPPED
            self.last_status_at = time.time()
        else:
            self.unrecognized_responses += 1
            log.debug("Ignoring unrecognized power token %r", token)

        if previous is not self.actual:
            log.info("Power state %s -> %s", previous.value, self.actual.value)
        self._settle_request()
        return self.actual

    def _settle_request(self) -> None:
        satisfied = (
            (self.requested is RequestedPowerState.ON and self.actual is ActualPowerState.STARTED)
            or (self.requested is RequestedPowerState.OFF and self.actual is ActualPowerState.STOPPED)
        )
        if satisfied:
            log.info("Requested power state '%s' reached", self.requested.value)
            self.requested = RequestedPowerState.UNKNOWN

    # ---- caller intents ----
    def request_power_on(self) -> bool:
        if self.actual is ActualPowerState.STARTED:
            return False
        self.requested = RequestedPowerState.ON
        return True

    def request_power_off(self) -> bool:
        if self.actual is ActualPowerState.STOPPED:
            return False
        self.requested = RequestedPowerState.OFF
        return True

    def pending_commands(self) -> List[Command]:
        """Commands for one producer tick: always a status poll, plus a transition if one is due."""
        commands = [Command.STATUS]
        if self.requested is RequestedPowerState.ON and self.actual is ActualPowerState.STOPPED:
            commands.append(Command.POWER_ON)
        elif self.requested is RequestedPowerState.OFF and self.actual is ActualPowerState.STARTED:
            commands.append(Command.POWER_OFF)
        return commands
