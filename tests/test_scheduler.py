import asyncio
from typing import List

import pytest

from app.services.command_queue import CommandQueue
from app.services.power_reconciler import PowerReconciler
from app.services.scheduler import CommandScheduler
from app.services.types import Command

from conftest import wait_until


class _Executor:
    def __init__(self, delay=0.0):
        self.delay = delay
        self.executed: List[Command] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def execute(self, command):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            self.executed.append(command)
            return True
        finally:
            self.in_flight -= 1


def test_queue_is_fifo():
    queue = CommandQueue()
    queue.extend([Command.STATUS, Command.POWER_ON, Command.STATUS])

    assert len(queue) == 3
    assert queue.pop() is Command.STATUS
    assert queue.pop() is Command.POWER_ON
    assert queue.pop() is Command.STATUS
    assert queue.pop() is None


def test_bounded_queue_drops_oldest():
    queue = CommandQueue(max_size=2)
    queue.extend([Command.STATUS, Command.POWER_ON, Command.POWER_OFF])

    assert queue.snapshot() == [Command.POWER_ON, Command.POWER_OFF]
    assert queue.dropped == 1


def test_unbounded_queue_keeps_everything():
    queue = CommandQueue()
    for _ in range(100):
        queue.push(Command.STATUS)

    assert len(queue) == 100
    assert queue.dropped == 0


def test_produce_once_enqueues_status_then_power_on():
    rec = PowerReconciler()
    rec.apply_status("off")
    rec.request_power_on()
    queue = CommandQueue()
    scheduler = CommandScheduler(queue, rec, _Executor(), poll_interval=1, dispatch_interval=1)

    assert scheduler.produce_once() == [Command.STATUS, Command.POWER_ON]
    assert queue.snapshot() == [Command.STATUS, Command.POWER_ON]


@pytest.mark.asyncio
async def test_consume_once_dispatches_one_command():
    queue = CommandQueue()
    queue.extend([Command.STATUS, Command.POWER_OFF])
    executor = _Executor()
    scheduler = CommandScheduler(queue, PowerReconciler(), executor, poll_interval=1, dispatch_interval=1)

    assert await scheduler.consume_once() is Command.STATUS
    assert executor.executed == [Command.STATUS]
    assert queue.snapshot() == [Command.POWER_OFF]


@pytest.mark.asyncio
async def test_consume_once_on_empty_queue():
    executor = _Executor()
    scheduler = CommandScheduler(CommandQueue(), PowerReconciler(), executor, poll_interval=1, dispatch_interval=1)

    assert await scheduler.consume_once() is None
    assert executor.executed == []


@pytest.mark.asyncio
async def test_loops_dispatch_serially_in_order():
    queue = CommandQueue()
    executor = _Executor(delay=0.03)
    scheduler = CommandScheduler(queue, PowerReconciler(), executor, poll_interval=0.02, dispatch_interval=0.005)

    scheduler.start()
    scheduler.start()  # idempotent
    try:
        assert await wait_until(lambda: len(executor.executed) >= 3)
    finally:
        await scheduler.stop()

    assert scheduler.running is False
    assert executor.max_in_flight == 1
    assert set(executor.executed) == {Command.STATUS}


@pytest.mark.asyncio
async def test_consumer_survives_executor_errors():
    class _Boom(_Executor):
        async def execute(self, command):
            await super().execute(command)
            raise RuntimeError("boom")

    queue = CommandQueue()
    queue.extend([Command.STATUS, Command.STATUS])
    executor = _Boom()
    scheduler = CommandScheduler(queue, PowerReconciler(), executor, poll_interval=10, dispatch_interval=0.005)

    scheduler.start()
    try:
        assert await wait_until(lambda: len(executor.executed) == 2)
    finally:
        await scheduler.stop()


@pytest.mark.asyncio
async def test_producer_survives_reconciler_errors():
    class _Flaky(PowerReconciler):
        def __init__(self):
            super().__init__()
            self.calls = 0

        def pending_commands(self):
            self.calls += 1
            if self.calls == 1:
                raise RuntimeError("boom")
            return super().pending_commands()

    queue = CommandQueue()
    rec = _Flaky()
    scheduler = CommandScheduler(queue, rec, _Executor(), poll_interval=0.005, dispatch_interval=10)

    scheduler.start()
    try:
        assert await wait_until(lambda: len(queue) >= 2)
        assert scheduler.running is True
    finally:
        await scheduler.stop()

    assert set(queue.snapshot()) == {Command.STATUS}
