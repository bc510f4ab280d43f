import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import paramiko

from app.core.config import Settings, settings as default_settings
from app.exceptions.power import PowerServiceUnavailableException, PowerStateConflictException
from app.services.command_executor import CommandExecutor
from app.services.command_queue import CommandQueue
from app.services.power_reconciler import PowerReconciler
from app.services.scheduler import CommandScheduler
from app.services.ssh_session import SessionManager
from app.services.types import ActualPowerState, RequestedPowerState

log = logging.getLogger("app.power")


@dataclass(frozen=True)
class PowerSnapshot:
    connected: bool
    power_state: ActualPowerState
    requested_power_state: RequestedPowerState

    @property
    def powered_on(self) -> bool:
        return self.power_state is ActualPowerState.STARTED


class PowerController:
    """
    Single owner of the iLO session, command queue, scheduler and power state.
    Routers only talk to this object.
    """

    def __init__(self, config: Settings = default_settings, client_factory: Callable[[], Any] = paramiko.SSHClient):
        self.reconciler = PowerReconciler()
        self.queue = CommandQueue(max_size=config.COMMAND_QUEUE_MAX)
        self.session = SessionManager(
            config.SSH_HOST,
            config.SSH_PORT,
            config.SSH_USERNAME,
            config.SSH_PASSWORD.get_secret_value(),
            connect_timeout=config.SSH_CONNECT_TIMEOUT,
            settle_delay=config.SSH_SETTLE_SEC,
            reconnect_interval=config.SSH_RECONNECT_INTERVAL_SEC,
            retry_delay=config.SSH_RETRY_DELAY_SEC,
            backoff_max=config.SSH_BACKOFF_MAX_SEC,
            command_timeout=config.COMMAND_TIMEOUT_SEC,
            client_factory=client_factory,
            on_first_ready=self._on_first_ready,
        )
        self.executor = CommandExecutor(self.session, self.reconciler, timeout=config.COMMAND_TIMEOUT_SEC)
        self.scheduler = CommandScheduler(
            self.queue,
            self.reconciler,
            self.executor,
            poll_interval=config.POLL_INTERVAL_SEC,
            dispatch_interval=config.DISPATCH_INTERVAL_SEC,
        )

    # ---- lifecycle ----
    async def start(self):
        log.info("Starting power controller for %s:%s", self.session.host, self.session.port)
        await self.session.start()

    async def stop(self):
        await self.scheduler.stop()
        await self.session.stop()
        log.info("Power controller stopped")

    def _on_first_ready(self):
        self.scheduler.start()

    # ---- API ----
    def is_connected(self) -> bool:
        return self.session.is_connected()

    def snapshot(self) -> PowerSnapshot:
        return PowerSnapshot(
            connected=self.is_connected(),
            power_state=self.reconciler.actual,
            requested_power_state=self.reconciler.requested,
        )

    def get_status(self) -> PowerSnapshot:
        """Current state; refuses to answer while the session is down rather than report stale data."""
        self._require_connected()
        return self.snapshot()

    def request_power_on(self) -> PowerSnapshot:
        self._require_connected()
        if not self.reconciler.request_power_on():
            raise PowerStateConflictException("Already on", self.reconciler.actual.value)
        log.info("Power on requested (currently %s)", self.reconciler.actual.value)
        return self.snapshot()

    def request_power_off(self) -> PowerSnapshot:
        self._require_connected()
        if not self.reconciler.request_power_off():
            raise PowerStateConflictException("Already off", self.reconciler.actual.value)
        log.info("Power off requested (currently %s)", self.reconciler.actual.value)
        return self.snapshot()

    def stats(self) -> Dict[str, Any]:
        return {
            "session": self.session.stats(),
            "scheduler_running": self.scheduler.running,
            "queue_depth": len(self.queue),
            "queue_dropped": self.queue.dropped,
            "commands": self.executor.stats(),
            "unrecognized_responses": self.reconciler.unrecognized_responses,
            "last_status_at": self.reconciler.last_status_at,
        }

    def _require_connected(self):
        if not self.is_connected():
            raise PowerServiceUnavailableException()
