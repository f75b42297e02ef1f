"""
API endpoints for candidate management.

Create, read, partial update and soft delete of candidates, listing with
filters, and candidate notes. Every response uses the
``{"success": ..., "data" | "error": ...}`` envelope.
"""

import logging
from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, Query, status

from nexus_ats.core.deps import (
    get_candidate_service,
    get_current_user_id,
    get_pagination,
    get_search_filters,
)
from nexus_ats.core.exceptions import CandidateServiceError
from nexus_ats.schemas.candidate import (
    CandidateCreateRequest,
    CandidateUpdateRequest,
    NoteCreateRequest,
    SuccessResponse,
)
from nexus_ats.services.candidate_service import CandidateService

router = APIRouter(prefix="/candidates", tags=["Candidates"])
logger = logging.getLogger(__name__)


@router.post("", response_model=SuccessResponse, status_code=status.HTTP_201_CREATED)
def create_candidate(
    payload: CandidateCreateRequest,
    user_id: Optional[str] = Depends(get_current_user_id),
    service: CandidateService = Depends(get_candidate_service)
):
    """
    Create a candidate.

    Accepts nested (``personal_info``, ``professional_info``, ``pipeline_info``)
    or flat fields. The email is stored trimmed and lower-cased and must not
    belong to another active candidate.

    Raises:
        400 VALIDATION_ERROR: With one entry per invalid field
        409 DUPLICATE_EMAIL: Another active candidate has this email
    """
    candidate = service.create_candidate(payload.model_dump(exclude_unset=True), user_id)
    return SuccessResponse(data=candidate, message="Candidate created successfully")


@router.get("", response_model=SuccessResponse)
def list_candidates(
    search: Optional[str] = Query(None, description="Free-text query"),
    sort_field: Optional[str] = Query(None, description="name, applied_date, created_at, updated_at or stage"),
    sort_direction: Optional[str] = Query(None, description="asc or desc"),
    filters: Dict[str, Any] = Depends(get_search_filters),
    pagination: Dict[str, Any] = Depends(get_pagination),
    service: CandidateService = Depends(get_candidate_service)
):
    """List active candidates, newest first by default."""
    if search:
        filters = {**filters, "search": search}
    sort = {"field": sort_field, "direction": sort_direction} if sort_field else None
    return SuccessResponse(data=service.list_candidates(filters, pagination, sort))


@router.get("/stats", response_model=SuccessResponse)
def candidate_stats(service: CandidateService = Depends(get_candidate_service)):
    """Total, active and per-stage candidate counts."""
    return SuccessResponse(data=service.get_candidate_stats())


@router.get("/{candidate_id}", response_model=SuccessResponse)
def get_candidate(
    candidate_id: str,
    service: CandidateService = Depends(get_candidate_service)
):
    candidate = service.get_candidate_by_id(candidate_id)
    if candidate is None:
        raise CandidateServiceError("Candidate not found", "CANDIDATE_NOT_FOUND", 404)
    return SuccessResponse(data=candidate)


@router.patch("/{candidate_id}", response_model=SuccessResponse)
def update_candidate(
    candidate_id: str,
    payload: CandidateUpdateRequest,
    user_id: Optional[str] = Depends(get_current_user_id),
    service: CandidateService = Depends(get_candidate_service)
):
    """
    Partially update a candidate. Fields not in the body are left as they are.
    """
    candidate = service.update_candidate(candidate_id, payload.model_dump(exclude_unset=True), user_id)
    return SuccessResponse(data=candidate, message="Candidate updated successfully")


@router.delete("/{candidate_id}", response_model=SuccessResponse)
def delete_candidate(
    candidate_id: str,
    user_id: Optional[str] = Depends(get_current_user_id),
    service: CandidateService = Depends(get_candidate_service)
):
    """
    Soft-delete a candidate.

    The record, its documents and its job links are kept for audit; the
    candidate simply stops appearing anywhere.
    """
    service.delete_candidate(candidate_id, user_id)
    return SuccessResponse(message="Candidate deleted successfully")


@router.get("/{candidate_id}/notes", response_model=SuccessResponse)
def list_notes(
    candidate_id: str,
    service: CandidateService = Depends(get_candidate_service)
):
    return SuccessResponse(data=service.list_notes(candidate_id))


@router.post("/{candidate_id}/notes", response_model=SuccessResponse, status_code=status.HTTP_201_CREATED)
def add_note(
    candidate_id: str,
    payload: NoteCreateRequest,
    user_id: Optional[str] = Depends(get_current_user_id),
    service: CandidateService = Depends(get_candidate_service)
):
    note = service.add_note(candidate_id, payload.model_dump(exclude_unset=True), user_id)
    return SuccessResponse(data=note, message="Note added successfully")
