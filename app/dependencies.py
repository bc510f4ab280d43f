"""
Dependency injection for the FastAPI application.
Holds the single PowerController and manages its lifecycle.
"""
import logging
from typing import Optional

from app.core.config import settings
from app.exceptions.power import PowerServiceUnavailableException
from app.models.power import PowerHealth
from app.services.power_controller import PowerController

log = logging.getLogger("app.dependencies")

# Global instance for the singleton service
_power_controller: Optional[PowerController] = None


async def start_services() -> PowerController:
    """
    Create the PowerController and start its SSH session loop.
    With incomplete SSH settings the controller is created but never connects,
    so every power route answers 503.
    """
    global _power_controller

    if _power_controller is not None:
        return _power_controller

    log.info("Initializing PowerController")
    _power_controller = PowerController(settings)
    missing = settings.missing_ssh_settings()
    if missing:
        log.error("SSH settings missing (%s); power control disabled", ", ".join(missing))
        return _power_controller

    await _power_controller.start()
    return _power_controller


def get_power_controller() -> PowerController:
    """Dependency returning the running PowerController."""
    if _power_controller is None:
        raise PowerServiceUnavailableException("Power service not initialized")
    return _power_controller


async def cleanup_services():
    """
    Cleanup function to be called during application shutdown.
    """
    global _power_controller

    if _power_controller:
        log.info("Shutting down PowerController")
        try:
            await _power_controller.stop()
        except Exception as e:
            log.error(f"Error shutting down PowerController: {e}")

    _power_controller = None
    log.info("Service cleanup completed")


async def check_power_health() -> PowerHealth:
    """Check power service health"""
    configured = not settings.missing_ssh_settings()
    try:
        controller = get_power_controller()
    except PowerServiceUnavailableException as e:
        return PowerHealth(
            status="unhealthy",
            configured=configured,
            connected=False,
            session_state="disconnected",
            power_state="unknown",
            requested_power_state="unknown",
            scheduler_running=False,
            error=e.message,
        )

    stats = controller.stats()
    snapshot = controller.snapshot()
    return PowerHealth(
        status="healthy" if snapshot.connected else "unhealthy",
        configured=configured,
        connected=snapshot.connected,
        session_state=stats["session"]["state"],
        power_state=snapshot.power_state,
        requested_power_state=snapshot.requested_power_state,
        scheduler_running=stats["scheduler_running"],
        queue_depth=stats["queue_depth"],
        unrecognized_responses=stats["unrecognized_responses"],
    )
