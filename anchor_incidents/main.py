"""
Main FastAPI application for the Anchor incident service.
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError
import uvicorn

from anchor_incidents.api.routes.health import router as health_router
from anchor_incidents.api.routes.incidents import (
    router as incidents_router,
    get_event_publisher,
    incident_error_handler,
    request_validation_error_handler,
)
from anchor_incidents.config.app_config import get_app_config
from anchor_incidents.services.errors import IncidentError
from anchor_incidents.utils.logging import get_logger, set_correlation_id

logger = get_logger(__name__)
config = get_app_config()

# Create FastAPI app
app = FastAPI(
    title="Anchor Incident Service",
    description="Incident tracking with lifecycle rules and domain events",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=config["cors_allow_origins"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Origin", "Content-Type", "Accept", "X-Correlation-ID"],
)


@app.middleware("http")
async def correlation_id_middleware(request: Request, call_next):
    """Tag every request (and its log lines) with a correlation ID."""
    correlation_id = set_correlation_id(request.headers.get("X-Correlation-ID"))
    response = await call_next(request)
    response.headers["X-Correlation-ID"] = correlation_id
    logger.info(
        "http_request_completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
    )
    return response


app.add_exception_handler(IncidentError, incident_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_error_handler)

app.include_router(health_router)
app.include_router(incidents_router, prefix=config["api_prefix"])


# Startup and shutdown events
@app.on_event("startup")
async def startup_event():
    """Initialize services on startup."""
    logger.info("incident_service_starting", environment=config["environment"])

    try:
        from anchor_incidents.database import init_db
        init_db()
    except SQLAlchemyError as e:
        logger.warning("database_init_failed", error=str(e))

    logger.info("incident_service_started", api_prefix=config["api_prefix"])


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    publisher = get_event_publisher()
    close = getattr(publisher, "close", None)
    if close is not None:
        close()
    logger.info("incident_service_stopped")


# Development server
if __name__ == "__main__":
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=config["port"],
        log_level="info"
    )
