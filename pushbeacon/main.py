"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pushbeacon import __version__
from pushbeacon.api import campaigns, subscribers, tracking, websites
from pushbeacon.config import get_settings
from pushbeacon.services.exceptions import ServiceError

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown events."""
    logger.info(f"Starting pushbeacon {__version__} ({settings.environment})")
    yield


app = FastAPI(
    title="Pushbeacon API",
    description="Web push subscriber registration, delivery and tracking",
    version=__version__,
    lifespan=lifespan,
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None if settings.is_production else "/redoc",
)

# Registration and tracking are called from arbitrary customer origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Render service errors as {"error": reason}."""
    return JSONResponse(status_code=exc.status_code, content={"error": exc.reason})


# Register routers
app.include_router(subscribers.router)
app.include_router(subscribers.legacy_router)
app.include_router(tracking.router)
app.include_router(websites.router)
app.include_router(campaigns.router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "environment": settings.environment}
