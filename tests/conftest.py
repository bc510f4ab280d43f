import asyncio
import io
import os
import time
from types import SimpleNamespace
from typing import Callable, List, Optional

import pytest

# must be set before app.main builds its middleware stack
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

from app.core.config import Settings


class FakeILO:
    """Stand-in for the iLO3 SMASH CLP: answers power / power on / power off."""

    def __init__(self, powered_on: bool = False):
        self.powered_on = powered_on
        self.commands: List[str] = []

    def handle(self, command: str) -> str:
        self.commands.append(command)
        if command == "power":
            state = "On" if self.powered_on else "Off"
            return (
                "status=0\r\nstatus_tag=COMMAND COMPLETED\r\n\r\n"
                f"power: server power is currently: {state}\r\n"
            )
        if command == "power on":
            self.powered_on = True
            return "status=0\r\nstatus_tag=COMMAND COMPLETED\r\n\r\nServer powering on .......\r\n"
        if command == "power off":
            self.powered_on = False
            return "status=0\r\nstatus_tag=COMMAND COMPLETED\r\n\r\nServer powering off .......\r\n"
        return "status=2\r\nstatus_tag=COMMAND PROCESSING FAILED\r\n"


class FakeSSHClient:
    def __init__(self, device: FakeILO, fail: bool = False):
        self.device = device
        self.fail = fail
        self.policy = None
        self.connect_kwargs: Optional[dict] = None
        self.closed = False

    def set_missing_host_key_policy(self, policy):
        self.policy = policy

    def connect(self, **kwargs):
        self.connect_kwargs = kwargs
        if self.fail:
            raise OSError("Connection refused")

    def get_transport(self):
        # paramiko drops the transport on close()
        if self.closed or self.connect_kwargs is None:
            return None
        return SimpleNamespace(is_active=lambda: True)

    def exec_command(self, command, timeout=None):
        output = self.device.handle(command).encode()
        return None, io.BytesIO(output), io.BytesIO(b"")

    def close(self):
        self.closed = True


class FakeClientFactory:
    """paramiko.SSHClient replacement; the first `failures` clients refuse to connect."""

    def __init__(self, device: FakeILO, failures: int = 0):
        self.device = device
        self.failures = failures
        self.clients: List[FakeSSHClient] = []

    def __call__(self) -> FakeSSHClient:
        client = FakeSSHClient(self.device, fail=len(self.clients) < self.failures)
        self.clients.append(client)
        return client


async def wait_until(predicate: Callable[[], bool], timeout: float = 3.0, interval: float = 0.01) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        await asyncio.sleep(interval)
    return predicate()


@pytest.fixture
def device() -> FakeILO:
    return FakeILO()


@pytest.fixture
def fast_settings() -> Settings:
    return Settings(
        _env_file=None,
        SSH_HOST="ilo.test",
        SSH_PORT=2222,
        SSH_USERNAME="Administrator",
        SSH_PASSWORD="hunter2",
        SSH_SETTLE_SEC=0.01,
        SSH_RECONNECT_INTERVAL_SEC=60.0,
        SSH_RETRY_DELAY_SEC=0.01,
        SSH_BACKOFF_MAX_SEC=0.02,
        POLL_INTERVAL_SEC=0.03,
        DISPATCH_INTERVAL_SEC=0.01,
        COMMAND_TIMEOUT_SEC=1.0,
        RATE_LIMIT_ENABLED=False,
    )
