import asyncio
import logging
from typing import List, Optional

from app.core.config import settings
from app.services.command_executor import CommandExecutor
from app.services.command_queue import CommandQueue
from app.services.power_reconciler import PowerReconciler
from app.services.types import Command

log = logging.getLogger("app.scheduler")


class CommandScheduler:
    """
    Producer/consumer pair sharing one command queue.

    The producer enqueues whatever the reconciler asks for every poll_interval.
    The consumer pops one command every dispatch_interval and awaits it before
    the next tick, so results reach the reconciler in dispatch order.
    """

    def __init__(
        self,
        queue: CommandQueue,
        reconciler: PowerReconciler,
        executor: CommandExecutor,
        poll_interval: float = settings.POLL_INTERVAL_SEC,
        dispatch_interval: float = settings.DISPATCH_INTERVAL_SEC,
    ):
        self._queue = queue
        self._reconciler = reconciler
        self._executor = executor
        self._poll_interval = poll_interval
        self._dispatch_interval = dispatch_interval
        self._producer_task: Optional[asyncio.Task] = None
        self._consumer_task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return any(t is not None and not t.done() for t in (self._producer_task, self._consumer_task))

    def start(self):
        if self.running:
            return
        log.info(
            "Starting command loops (poll every %.1fs, dispatch every %.1fs)",
            self._poll_interval, self._dispatch_interval,
        )
        self._producer_task = asyncio.create_task(self._producer_loop(), name="ilo-producer")
        self._consumer_task = asyncio.create_task(self._consumer_loop(), name="ilo-consumer")

    async def stop(self):
        tasks = [t for t in (self._producer_task, self._consumer_task) if t and not t.done()]
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._producer_task = None
        self._consumer_task = None

    # ---- single ticks ----
    def produce_once(self) -> List[Command]:
        commands = self._reconciler.pending_commands()
        self._queue.extend(commands)
        log.debug("Queued %s (depth %d)", [c.value for c in commands], len(self._queue))
        return commands

    async def consume_once(self) -> Optional[Command]:
        command = self._queue.pop()
        if command is None:
            return None
        await self._executor.execute(command)
        return command

    # ---- loops ----
    async def _producer_loop(self):
        while True:
            await asyncio.sleep(self._poll_interval)
            try:
                self.produce_once()
            except Exception:
                log.exception("Unexpected error while queueing commands")

    async def _consumer_loop(self):
        while True:
            await asyncio.sleep(self._dispatch_interval)
            try:
                await self.consume_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                log.exception("Unexpected error while dispatching command")
