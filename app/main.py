from contextlib import asynccontextmanager
import logging
from fastapi import FastAPI
from app.core.config import settings
from app.core.logging import setup_logging
from app.core.rate_limit import RateLimitMiddleware
from app.dependencies import start_services, cleanup_services, check_power_health
from app.exceptions.power import PowerException, power_exception_handler, general_exception_handler
from app.models.power import PowerHealth, ServiceMessage
from app.routers import power

setup_logging(settings.LOG_LEVEL)
log = logging.getLogger("app.main")

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    The SSH session loop starts with the app rather than on first request.
    """
    log.info("Application startup - connecting to iLO")
    await start_services()
    yield
    log.info("Application shutdown - cleaning up services")
    await cleanup_services()
    log.info("App services stopped")

app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    docs_url="/docs",
    redoc_url=None,
    lifespan=lifespan,
)

if settings.RATE_LIMIT_ENABLED:
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=settings.RATE_LIMIT_MAX_REQUESTS,
        window_sec=settings.RATE_LIMIT_WINDOW_SEC,
    )

# Add custom exception handlers
app.add_exception_handler(PowerException, power_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

app.include_router(power.router, prefix="/power")

@app.get("/", response_model=ServiceMessage)
async def root():
    return ServiceMessage(message="ILO Rest API up and running!", code=200)

@app.get("/health", response_model=PowerHealth)
async def health_check():
    """Power service health, including session and queue diagnostics"""
    return await check_power_health()


def run():
    import uvicorn
    log.info(f"ILO REST API listening on port {settings.PORT}")
    uvicorn.run(app, host=settings.HOST, port=settings.PORT, log_config=None)


if __name__ == "__main__":
    run()
