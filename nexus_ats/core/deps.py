"""
FastAPI dependencies: caller identity, storage backend and per-request
service construction.

Identity is asserted by the caller through the ``X-User-Id`` header and is
only recorded for audit (created_by, deleted_by, uploaded_by ...).
"""

from typing import Any, Dict, List, Optional

from fastapi import Depends, Header, Query, Request
from sqlalchemy.orm import Session

from nexus_ats.core.config import settings
from nexus_ats.core.database import get_db
from nexus_ats.core.storage import StorageBackend
from nexus_ats.services.candidate_service import CandidateService
from nexus_ats.services.document_service import DocumentService
from nexus_ats.services.job_application_service import JobApplicationService
from nexus_ats.services.pipeline_service import PipelineService
from nexus_ats.services.search_service import SearchService


def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> Optional[str]:
    """Acting user from the X-User-Id header (None when absent or blank)."""
    if x_user_id is None:
        return None
    return x_user_id.strip() or None


def get_storage_backend(request: Request) -> StorageBackend:
    """The storage backend created at startup."""
    return request.app.state.storage


def get_candidate_service(db: Session = Depends(get_db)) -> CandidateService:
    return CandidateService(db)


def get_pipeline_service(db: Session = Depends(get_db)) -> PipelineService:
    return PipelineService(db)


def get_search_service(db: Session = Depends(get_db)) -> SearchService:
    return SearchService(db)


def get_document_service(
    db: Session = Depends(get_db),
    storage: StorageBackend = Depends(get_storage_backend)
) -> DocumentService:
    return DocumentService(
        db,
        storage,
        max_file_size=settings.MAX_FILE_SIZE,
        allowed_mime_types=settings.ALLOWED_DOCUMENT_MIME_TYPES,
    )


def get_job_application_service(db: Session = Depends(get_db)) -> JobApplicationService:
    return JobApplicationService(db, settings.MAX_APPLICATIONS_PER_CANDIDATE)


def get_search_filters(
    stage: Optional[str] = Query(None, description="Exact pipeline stage"),
    skills: Optional[List[str]] = Query(None, description="Any of these skills (substring match)"),
    location: Optional[str] = Query(None),
    experience: Optional[str] = Query(None),
    source: Optional[str] = Query(None),
    applied_date_from: Optional[str] = Query(None, description="ISO date, inclusive"),
    applied_date_to: Optional[str] = Query(None, description="ISO date, inclusive"),
) -> Dict[str, Any]:
    """Structured search filters from the query string; unset ones are omitted."""
    filters = {
        "stage": stage,
        "skills": skills,
        "location": location,
        "experience": experience,
        "source": source,
        "applied_date_from": applied_date_from,
        "applied_date_to": applied_date_to,
    }
    return {key: value for key, value in filters.items() if value is not None}


def get_pagination(
    page: Optional[int] = Query(None, description="Page number, from 1"),
    limit: Optional[int] = Query(None, description="Page size, 1-100 (default 20)"),
) -> Dict[str, Optional[int]]:
    return {"page": page, "limit": limit}
