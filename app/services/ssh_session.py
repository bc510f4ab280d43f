import asyncio
import logging
import time
from enum import Enum
from functools import partial
from typing import Any, Awaitable, Callable, Dict, Optional, Union

import paramiko

from app.core.config import settings
from app.exceptions.power import CommandExecutionError, SessionNotConnectedError

log = logging.getLogger("app.ssh")

FirstReadyCallback = Callable[[], Union[None, Awaitable[None]]]


class SessionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    SETTLING = "settling"
    READY = "ready"
    DISCONNECTING = "disconnecting"


class SessionManager:
    """
    Owns the single SSH session to the iLO.

      - connect(): open a password-authenticated paramiko client, then settle
      - a background task rebuilds the session every reconnect_interval
      - failed connects are retried by the same task with backoff
      - on_first_ready fires once, the first time the session becomes ready

    Blocking paramiko calls run in the loop's default executor; all state lives on the loop.

    Public API:
      start(), stop(), connect(), disconnect(), is_connected(), execute(), stats()
    """

    def __init__(
        self,
        host: str = settings.SSH_HOST,
        port: int = settings.SSH_PORT,
        username: str = settings.SSH_USERNAME,
        password: str = settings.SSH_PASSWORD.get_secret_value(),
        *,
        connect_timeout: float = settings.SSH_CONNECT_TIMEOUT,
        settle_delay: float = settings.SSH_SETTLE_SEC,
        reconnect_interval: float = settings.SSH_RECONNECT_INTERVAL_SEC,
        retry_delay: float = settings.SSH_RETRY_DELAY_SEC,
        backoff_max: float = settings.SSH_BACKOFF_MAX_SEC,
        command_timeout: float = settings.COMMAND_TIMEOUT_SEC,
        client_factory: Callable[[], Any] = paramiko.SSHClient,
        on_first_ready: Optional[FirstReadyCallback] = None,
    ):
        self.host = host
        self.port = port
        self.username = username
        self._password = password
        self._connect_timeout = connect_timeout
        self._settle_delay = settle_delay
        self._reconnect_interval = reconnect_interval
        self._retry_delay = retry_delay
        self._backoff_max = backoff_max
        self._command_timeout = command_timeout
        self._client_factory = client_factory
        self._on_first_ready = on_first_ready

        self._client: Optional[Any] = None
        self._state = SessionState.DISCONNECTED
        self._first_ready_done = False
        self._task: Optional[asyncio.Task] = None

        self._stats = {
            "connects": 0,
            "connect_failures": 0,
            "commands_sent": 0,
            "command_failures": 0,
        }
        self._connected_at: Optional[float] = None

    # ---- state ----
    @property
    def state(self) -> SessionState:
        return self._state

    def is_connected(self) -> bool:
        return self._state is SessionState.READY

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def stats(self) -> Dict[str, Any]:
        return {
            "state": self._state.value,
            "connected": self.is_connected(),
            "connected_since": self._connected_at,
            **self._stats,
        }

    # ---- lifecycle ----
    async def start(self):
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="ilo-ssh-session")

    async def stop(self):
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        await self.disconnect()
        log.info("SSH session stopped")

    async def connect(self) -> bool:
        """Open a new session. Returns False (and logs) on failure; never raises."""
        if self._client is not None:
            await self.disconnect()

        self._state = SessionState.CONNECTING
        log.info("Connecting to iLO %s:%s as %s", self.host, self.port, self.username)
        client = self._client_factory()
        try:
            client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
            await asyncio.get_running_loop().run_in_executor(
                None,
                partial(
                    client.connect,
                    hostname=self.host,
                    port=self.port,
                    username=self.username,
                    password=self._password,
                    timeout=self._connect_timeout,
                    banner_timeout=self._connect_timeout,
                    look_for_keys=False,
                    allow_agent=False,
                ),
            )
        except asyncio.CancelledError:
            self._state = SessionState.DISCONNECTED
            client.close()
            raise
        except (paramiko.SSHException, OSError) as e:
            self._stats["connect_failures"] += 1
            self._state = SessionState.DISCONNECTED
            log.error("SSH connect to %s:%s failed: %s", self.host, self.port, e)
            try:
                client.close()
            except Exception:
                pass
            return False

        self._client = client
        self._state = SessionState.SETTLING
        self._stats["connects"] += 1
        log.info("Connected to SSH, settling for %.1fs", self._settle_delay)
        return True

    async def disconnect(self):
        client, self._client = self._client, None
        if client is None:
            self._state = SessionState.DISCONNECTED
            return
        self._state = SessionState.DISCONNECTING
        log.info("Disconnecting from SSH")
        try:
            client.close()
        except Exception:
            log.debug("SSH close failed", exc_info=True)
        self._connected_at = None
        self._state = SessionState.DISCONNECTED

    async def _mark_ready(self):
        self._state = SessionState.READY
        self._connected_at = time.time()
        log.info("SSH session ready")
        if not self._first_ready_done:
            self._first_ready_done = True
            if self._on_first_ready is not None:
                result = self._on_first_ready()
                if asyncio.iscoroutine(result):
                    await result

    async def _run(self):
        backoff = 1.0
        while True:
            try:
                if not await self.connect():
                    await asyncio.sleep(min(backoff, self._backoff_max))
                    backoff = min(backoff * 1.5, self._backoff_max)
                    continue
                backoff = 1.0

                await asyncio.sleep(self._settle_delay)
                if self._state is SessionState.SETTLING:
                    await self._mark_ready()

                await asyncio.sleep(self._reconnect_interval)
                await self.disconnect()
            except asyncio.CancelledError:
                raise
            except Exception:
                log.exception("Unexpected error in SSH session loop")
                await self.disconnect()
            await asyncio.sleep(self._retry_delay)

    def _drop(self, client: Any):
        """Mark a failed session dead; the reconnect loop brings up the next one."""
        if self._client is not client:
            return
        self._client = None
        self._connected_at = None
        self._state = SessionState.DISCONNECTED
        try:
            client.close()
        except Exception:
            log.debug("SSH close failed", exc_info=True)

    # ---- commands ----
    async def execute(self, command: str) -> str:
        """Run one command and return its stdout. Raises SessionError subclasses."""
        client = self._client
        if not self.is_connected() or client is None:
            raise SessionNotConnectedError(command)

        def _exec() -> str:
            # close() from a teardown leaves the client without a transport
            transport = client.get_transport()
            if transport is None or not transport.is_active():
                raise paramiko.SSHException("SSH session not active")
            _, stdout, _ = client.exec_command(command, timeout=self._command_timeout)
            return stdout.read().decode("utf-8", errors="replace")

        self._stats["commands_sent"] += 1
        try:
            output = await asyncio.get_running_loop().run_in_executor(None, _exec)
        except (paramiko.SSHException, OSError, EOFError) as e:
            self._stats["command_failures"] += 1
            log.warning("SSH session lost while running '%s': %s", command, e)
            self._drop(client)
            raise CommandExecutionError(command, str(e) or e.__class__.__name__) from e
        log.debug("'%s' -> %r", command, output)
        return output
