import asyncio
import logging
from typing import Dict

from app.core.config import settings
from app.exceptions.power import SessionError, SessionNotConnectedError
from app.services.power_reconciler import PowerReconciler
from app.services.ssh_session import SessionManager
from app.services.types import Command

log = logging.getLogger("app.executor")

# iLO3 SMASH CLP commands
DEVICE_COMMANDS: Dict[Command, str] = {
    Command.STATUS: "power",
    Command.POWER_ON: "power on",
    Command.POWER_OFF: "power off",
}


def parse_power_token(response: str) -> str:
    """'power: server power is currently: On' -> 'on'. Whatever follows the last colon, trimmed and lowercased."""
    return response.split(":")[-1].strip().lower()


class CommandExecutor:
    """Runs one queued command on the session and feeds status output to the reconciler."""

    def __init__(
        self,
        session: SessionManager,
        reconciler: PowerReconciler,
        timeout: float = settings.COMMAND_TIMEOUT_SEC,
    ):
        self._session = session
        self._reconciler = reconciler
        self._timeout = timeout
        self._stats = {
            "executed": 0,
            "skipped_disconnected": 0,
            "failed": 0,
            "timed_out": 0,
        }

    def stats(self) -> Dict[str, int]:
        return dict(self._stats)

    async def execute(self, command: Command) -> bool:
        """Returns True if the command completed. Failures are logged and the command is dropped."""
        device_command = DEVICE_COMMANDS[command]
        if command is Command.STATUS:
            log.debug("Fetching power state...")
        else:
            log.info("Sending '%s'", device_command)

        try:
            output = await asyncio.wait_for(self._session.execute(device_command), timeout=self._timeout)
        except SessionNotConnectedError as e:
            self._stats["skipped_disconnected"] += 1
            log.warning("%s", e)
            return False
        except SessionError as e:
            self._stats["failed"] += 1
            log.error("Command %s", e)
            return False
        except asyncio.TimeoutError:
            self._stats["timed_out"] += 1
            log.error("'%s' did not complete within %.1fs", device_command, self._timeout)
            return False

        self._stats["executed"] += 1
        if command is Command.STATUS:
            self._reconciler.apply_status(parse_power_token(output))
        else:
            log.info("'%s' -> %s", device_command, output.strip() or "<no output>")
        return True
