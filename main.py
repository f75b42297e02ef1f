import logging
from fastapi import FastAPI
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from nexus_ats.core.config import settings
from nexus_ats.core.database import SessionLocal, init_db
from nexus_ats.core.exceptions import (
    ServiceError,
    general_exception_handler,
    http_exception_handler,
    request_validation_exception_handler,
    service_exception_handler,
)
from nexus_ats.core.logging_config import setup_logging
from nexus_ats.core.storage import get_storage
from nexus_ats.crud import candidate as crud_candidate
from nexus_ats.schemas.candidate import ErrorResponse
from nexus_ats.api.endpoints import applications, candidates, documents, health, pipeline, search

setup_logging(log_level=settings.LOG_LEVEL, json_logs=settings.JSON_LOGS)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    """
    # Startup
    logger.info("Starting up Nexus ATS API...")
    init_db()

    if settings.DATABASE_URL.startswith("sqlite"):
        # Local SQLite setups have no migrations run against them
        db = SessionLocal()
        try:
            crud_candidate.ensure_indexes(db)
        finally:
            db.close()

    app.state.storage = get_storage()
    logger.info(f"Document storage: {type(app.state.storage).__name__}")

    yield

    # Shutdown
    logger.info("Shutting down Nexus ATS API...")


# Create FastAPI application
app = FastAPI(
    title=settings.PROJECT_NAME,
    version="1.0.0",
    description="Candidate pipeline, document and search API for applicant tracking",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Map errors onto the {"success": false, "error": {...}} envelope
app.add_exception_handler(ServiceError, service_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

# Error statuses the service routes document with the failure envelope
ERROR_RESPONSES = {code: {"model": ErrorResponse} for code in (400, 404, 409, 500)}

# Include routers (static /candidates/... paths before /candidates/{candidate_id})
app.include_router(health.router)
app.include_router(search.router, prefix=settings.API_V1_STR, responses=ERROR_RESPONSES)
app.include_router(pipeline.router, prefix=settings.API_V1_STR, responses=ERROR_RESPONSES)
app.include_router(candidates.router, prefix=settings.API_V1_STR, responses=ERROR_RESPONSES)
app.include_router(documents.router, prefix=settings.API_V1_STR, responses=ERROR_RESPONSES)
app.include_router(applications.router, prefix=settings.API_V1_STR, responses=ERROR_RESPONSES)


@app.get("/")
def root():
    """Root endpoint"""
    return {
        "message": "Nexus ATS API",
        "version": "1.0.0",
        "status": "healthy"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,  # Enable auto-reload during development
        log_level="info"
    )
