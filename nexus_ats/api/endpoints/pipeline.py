"""
Pipeline endpoints: stage changes, stage history, board view and
pipeline statistics.
"""

import logging
from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, Query

from nexus_ats.core.deps import get_current_user_id, get_pipeline_service, get_search_filters
from nexus_ats.schemas.candidate import BulkStageUpdateRequest, StageUpdateRequest, SuccessResponse
from nexus_ats.services.pipeline_service import PipelineService

router = APIRouter(prefix="/candidates", tags=["Pipeline"])
logger = logging.getLogger(__name__)


@router.get("/pipeline", response_model=SuccessResponse)
def candidates_by_stage(
    search: Optional[str] = Query(None),
    filters: Dict[str, Any] = Depends(get_search_filters),
    service: PipelineService = Depends(get_pipeline_service)
):
    """Active candidates grouped by stage (board view)."""
    if search:
        filters = {**filters, "search": search}
    return SuccessResponse(data=service.get_candidates_by_stage(filters))


@router.get("/pipeline/stats", response_model=SuccessResponse)
def pipeline_stats(
    date_from: Optional[str] = Query(None),
    date_to: Optional[str] = Query(None),
    service: PipelineService = Depends(get_pipeline_service)
):
    return SuccessResponse(data=service.get_pipeline_stats({"date_from": date_from, "date_to": date_to}))


@router.get("/pipeline/stages/{stage}/next", response_model=SuccessResponse)
def valid_next_stages(stage: str, service: PipelineService = Depends(get_pipeline_service)):
    return SuccessResponse(data=service.get_valid_next_stages(stage))


@router.post("/pipeline/bulk-stage", response_model=SuccessResponse)
def bulk_update_stages(
    payload: BulkStageUpdateRequest,
    user_id: Optional[str] = Depends(get_current_user_id),
    service: PipelineService = Depends(get_pipeline_service)
):
    """
    Move several candidates at once. Each update succeeds or fails on its own;
    the response lists both outcomes.
    """
    updates = [item.model_dump() for item in payload.updates]
    results = service.bulk_update_stages(updates, user_id)
    logger.info(f"Bulk stage update: {len(results['successful'])} ok, {len(results['failed'])} failed")
    return SuccessResponse(data=results)


@router.put("/{candidate_id}/stage", response_model=SuccessResponse)
def update_stage(
    candidate_id: str,
    payload: StageUpdateRequest,
    user_id: Optional[str] = Depends(get_current_user_id),
    service: PipelineService = Depends(get_pipeline_service)
):
    """
    Move a candidate to another stage.

    Raises:
        400 VALIDATION_ERROR: Unknown stage or a move the stage graph does not
            allow (the message lists the valid next stages)
        404 CANDIDATE_NOT_FOUND
    """
    candidate = service.update_candidate_stage(candidate_id, payload.stage, user_id, payload.notes or "")
    return SuccessResponse(data=candidate, message=f"Candidate moved to {payload.stage}")


@router.get("/{candidate_id}/stage/history", response_model=SuccessResponse)
def stage_history(candidate_id: str, service: PipelineService = Depends(get_pipeline_service)):
    return SuccessResponse(data=service.get_stage_history(candidate_id))
