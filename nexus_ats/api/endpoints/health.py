"""
Health check and monitoring endpoints.

Provides detailed health status for the database, the candidates table and
the document storage backend.
"""

import logging
from typing import Dict, Any
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from sqlalchemy import text
from datetime import datetime

from nexus_ats.core.database import get_db
from nexus_ats.core.deps import get_storage_backend
from nexus_ats.core.storage import StorageBackend
from nexus_ats.crud import candidate as crud_candidate

router = APIRouter(tags=["Health"])
logger = logging.getLogger(__name__)


@router.get("/health", status_code=status.HTTP_200_OK)
def health_check() -> Dict[str, str]:
    """
    Basic health check endpoint.

    Returns 200 OK if the service is running.
    Use this for simple uptime monitoring and load balancer health checks.
    """
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat() + "Z"
    }


@router.get("/health/detailed")
def detailed_health_check(
    db: Session = Depends(get_db),
    storage: StorageBackend = Depends(get_storage_backend)
):
    """
    Detailed health check with dependency status.

    Checks:
    - Database connectivity
    - Candidates table reachability and candidate counts
    - Document storage availability

    Returns 200 if all systems are operational, 503 otherwise, with the
    status of each component. Error details are logged, not returned.
    """
    health_status: Dict[str, Any] = {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat() + "Z",
        "checks": {}
    }

    try:
        db.execute(text("SELECT 1"))
        health_status["checks"]["database"] = {
            "status": "healthy",
            "message": "Database connection successful"
        }
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        health_status["status"] = "unhealthy"
        health_status["checks"]["database"] = {
            "status": "unhealthy",
            "message": "Database connection failed"
        }

    candidates_check = crud_candidate.perform_health_check(db)
    if candidates_check["status"] == "healthy":
        try:
            candidates_check["stats"] = crud_candidate.get_stats(db)
        except Exception as e:
            logger.error(f"Candidate statistics failed: {e}")
    else:
        health_status["status"] = "unhealthy"
    health_status["checks"]["candidates"] = candidates_check

    try:
        storage_ok = storage.health_check()
    except Exception as e:
        logger.error(f"Storage health check failed: {e}")
        storage_ok = False

    health_status["checks"]["storage"] = {
        "status": "healthy" if storage_ok else "unhealthy",
        "backend": type(storage).__name__,
        "message": "Storage accessible" if storage_ok else "Storage not accessible"
    }
    if not storage_ok:
        health_status["status"] = "unhealthy"

    status_code = status.HTTP_200_OK if health_status["status"] == "healthy" else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(status_code=status_code, content=health_status)
