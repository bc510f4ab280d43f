from fastapi import Request
from fastapi.responses import JSONResponse
import logging
import time
from typing import Optional, Dict, Any

log = logging.getLogger("app.exceptions.power")


# ---- transport errors (raised by the SSH session, handled by the executor) ----

class SessionError(Exception):
    """Base error for the iLO SSH session"""


class SessionNotConnectedError(SessionError):
    """Command attempted while the session is not ready"""
    def __init__(self, command: str):
        self.command = command
        super().__init__(f"SSH not connected, dropping '{command}'")


class CommandExecutionError(SessionError):
    """Transport failure while running a command"""
    def __init__(self, command: str, reason: str):
        self.command = command
        self.reason = reason
        super().__init__(f"'{command}' failed: {reason}")


# ---- caller-facing errors (rendered as JSON responses) ----

class PowerException(Exception):
    """Base power-control exception carrying an HTTP status"""
    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        timestamp: Optional[float] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code or self.__class__.__name__
        self.context = context or {}
        self.timestamp = timestamp or time.time()
        super().__init__(self.message)

class PowerServiceUnavailableException(PowerException):
    """SSH session to the iLO is not ready"""
    def __init__(self, message: str = "SSH not connected", context: Optional[Dict[str, Any]] = None):
        super().__init__(message, 503, "SSH_NOT_CONNECTED", context)

class PowerStateConflictException(PowerException):
    """Requested transition matches the current power state"""
    def __init__(self, message: str, power_state: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        ctx = {"power_state": power_state, **(context or {})} if power_state else (context or {})
        super().__init__(message, 409, "POWER_STATE_CONFLICT", ctx)


# Exception handlers
async def power_exception_handler(request: Request, exc: PowerException):
    log.warning(
        "Power exception [%s] on %s %s: %s",
        exc.error_code, request.method, request.url.path, exc.message,
        extra={"context": exc.context, "timestamp": exc.timestamp},
    )
    content = {
        "message": exc.message,
        "code": exc.status_code,
        "error": exc.error_code,
    }
    if exc.context:
        safe_context = {
            k: v for k, v in exc.context.items()
            if k not in ["password", "token", "key", "secret"]
        }
        if safe_context:
            content.update(safe_context)
    return JSONResponse(status_code=exc.status_code, content=content)

async def general_exception_handler(request: Request, exc: Exception):
    log.error(
        f"Unexpected error on {request.method} {request.url.path}: {exc}",
        exc_info=True,
        extra={"error_type": exc.__class__.__name__, "timestamp": time.time()},
    )
    return JSONResponse(
        status_code=500,
        content={
            "message": "An unexpected error occurred",
            "code": 500,
            "error": "INTERNAL_SERVER_ERROR",
        }
    )
