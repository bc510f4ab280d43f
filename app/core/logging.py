import logging
import os
import sys
from typing import Dict

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Chatty libraries never log below these levels, whatever LOG_LEVEL says.
# paramiko reports every kex/auth step and the iLO session is rebuilt every few minutes.
LIBRARY_FLOORS: Dict[str, int] = {
    "paramiko": logging.WARNING,
    "paramiko.transport": logging.WARNING,
}

# Served by uvicorn; these follow the app's level.
SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def resolve_level(level: str | None) -> int:
    name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    resolved = logging.getLevelName(name)
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(level: str | None = None) -> int:
    lvl = resolve_level(level)

    logging.basicConfig(level=lvl, format=LOG_FORMAT, datefmt="%H:%M:%S", stream=sys.stdout)
    logging.getLogger().setLevel(lvl)

    for name in SERVER_LOGGERS:
        logging.getLogger(name).setLevel(lvl)
    for name, floor in LIBRARY_FLOORS.items():
        logging.getLogger(name).setLevel(max(lvl, floor))
    return lvl
