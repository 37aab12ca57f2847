"""
Health and root endpoints.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from anchor_incidents.config.app_config import get_app_config, get_event_config
from anchor_incidents.database import get_db, check_db

router = APIRouter(tags=["health"])


@router.get("/")
def root():
    config = get_app_config()
    return {
        "message": "Anchor Incident Service",
        "status": "healthy",
        "endpoints": {
            "docs": "/docs",
            "health": "/health",
            "incidents": f"{config['api_prefix']}/incidents",
        }
    }


@router.get("/health")
def health_check(db: Session = Depends(get_db)):
    """Health check with database reachability."""
    health_status = {
        "status": "ok",
        "service": get_app_config()["service_name"],
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "dependencies": {
            "event_publisher": get_event_config()["publisher"],
        },
    }

    try:
        check_db(db)
        health_status["dependencies"]["database"] = "healthy"
    except SQLAlchemyError as e:
        health_status["status"] = "degraded"
        health_status["dependencies"]["database"] = f"unhealthy: {str(e)}"

    return health_status
