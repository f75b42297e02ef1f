"""
Candidate search endpoints: full-text search with filters, typeahead
suggestions and search statistics.
"""

from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, Query

from nexus_ats.core.deps import get_pagination, get_search_filters, get_search_service
from nexus_ats.schemas.candidate import SuccessResponse
from nexus_ats.services.search_service import SearchService

router = APIRouter(prefix="/candidates/search", tags=["Candidate Search"])


@router.get("", response_model=SuccessResponse)
def search_candidates(
    q: Optional[str] = Query(None, description="Free-text query"),
    sort_field: Optional[str] = Query(None),
    sort_direction: Optional[str] = Query(None),
    filters: Dict[str, Any] = Depends(get_search_filters),
    pagination: Dict[str, Any] = Depends(get_pagination),
    service: SearchService = Depends(get_search_service)
):
    """
    Search active candidates.

    Results are ordered by relevance when ``q`` is given. The response echoes
    the query and filters and carries a total computed separately from the
    returned page.
    """
    options = {
        **pagination,
        "filters": filters,
        "sort": {"field": sort_field, "direction": sort_direction} if sort_field else None,
    }
    return SuccessResponse(data=service.search_candidates(q, options))


@router.get("/suggestions", response_model=SuccessResponse)
def search_suggestions(
    q: str = Query("", description="At least 2 characters"),
    field: str = Query("skills", description="skills, location or role"),
    limit: int = Query(10, ge=1, le=50),
    service: SearchService = Depends(get_search_service)
):
    return SuccessResponse(data=service.get_search_suggestions(q, field, limit))


@router.get("/stats", response_model=SuccessResponse)
def search_stats(
    q: Optional[str] = Query(None),
    filters: Dict[str, Any] = Depends(get_search_filters),
    service: SearchService = Depends(get_search_service)
):
    return SuccessResponse(data=service.get_search_stats(q, filters))
