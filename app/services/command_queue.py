import logging
from collections import deque
from typing import Deque, Iterable, List, Optional

from app.services.types import Command

log = logging.getLogger("app.queue")


class CommandQueue:
    """FIFO of pending commands. Unbounded unless max_size > 0, then the oldest entry is dropped."""

    def __init__(self, max_size: int = 0):
        self._items: Deque[Command] = deque()
        self._max_size = max(0, int(max_size))
        self.dropped = 0

    def push(self, command: Command) -> None:
        if self._max_size and len(self._items) >= self._max_size:
            stale = self._items.popleft()
            self.dropped += 1
            log.warning("Command queue full (%d), dropping oldest '%s'", self._max_size, stale.value)
        self._items.append(command)

    def extend(self, commands: Iterable[Command]) -> None:
        for command in commands:
            self.push(command)

    def pop(self) -> Optional[Command]:
        if not self._items:
            return None
        return self._items.popleft()

    def snapshot(self) -> List[Command]:
        return list(self._items)

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)
