"""
Job application link endpoints: a candidate's links, a job's candidates,
conversion of job-board applicants, and link statistics.
"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query, status

from nexus_ats.core.deps import get_current_user_id, get_job_application_service
from nexus_ats.schemas.candidate import (
    ConvertApplicantRequest,
    JobApplicationLinkRequest,
    JobApplicationUpdateRequest,
    SuccessResponse,
)
from nexus_ats.services.job_application_service import JobApplicationService

router = APIRouter(tags=["Job Applications"])
logger = logging.getLogger(__name__)


@router.get("/candidates/{candidate_id}/applications", response_model=SuccessResponse)
def candidate_applications(
    candidate_id: str,
    service: JobApplicationService = Depends(get_job_application_service)
):
    return SuccessResponse(data=service.get_candidate_applications(candidate_id))


@router.post(
    "/candidates/{candidate_id}/applications",
    response_model=SuccessResponse,
    status_code=status.HTTP_201_CREATED
)
def link_application(
    candidate_id: str,
    payload: JobApplicationLinkRequest,
    service: JobApplicationService = Depends(get_job_application_service)
):
    """
    Link a candidate to a job.

    Raises:
        400 APPLICATION_LIMIT_EXCEEDED: Candidate already has the maximum number of links
        409 DUPLICATE_APPLICATION: Candidate is already linked to this job
    """
    application = service.link_job_application(candidate_id, payload.model_dump(exclude_unset=True))
    return SuccessResponse(data=application, message="Job application linked successfully")


@router.patch("/candidates/{candidate_id}/applications/{application_id}", response_model=SuccessResponse)
def update_application(
    candidate_id: str,
    application_id: str,
    payload: JobApplicationUpdateRequest,
    service: JobApplicationService = Depends(get_job_application_service)
):
    application = service.update_job_application(candidate_id, application_id, payload.model_dump(exclude_unset=True))
    return SuccessResponse(data=application, message="Job application updated successfully")


@router.delete("/candidates/{candidate_id}/applications/{application_id}", response_model=SuccessResponse)
def unlink_application(
    candidate_id: str,
    application_id: str,
    service: JobApplicationService = Depends(get_job_application_service)
):
    service.unlink_job_application(candidate_id, application_id)
    return SuccessResponse(message="Job application unlinked successfully")


@router.get("/jobs/{job_id}/candidates", response_model=SuccessResponse)
def job_candidates(
    job_id: str,
    sort_by: Optional[str] = Query(None, description="applied_date or name"),
    sort_order: Optional[str] = Query(None, description="asc or desc"),
    page: Optional[int] = Query(None),
    limit: Optional[int] = Query(None),
    service: JobApplicationService = Depends(get_job_application_service)
):
    """Active candidates linked to a job, each with its application."""
    options = {"sort_by": sort_by, "sort_order": sort_order, "page": page, "limit": limit}
    return SuccessResponse(data=service.get_job_candidates(job_id, options))


@router.post("/jobs/{job_id}/candidates/convert", response_model=SuccessResponse, status_code=status.HTTP_201_CREATED)
def convert_applicant(
    job_id: str,
    payload: ConvertApplicantRequest,
    user_id: Optional[str] = Depends(get_current_user_id),
    service: JobApplicationService = Depends(get_job_application_service)
):
    """
    Bring a job-board applicant into the pipeline.

    Reuses the active candidate with the same email or creates a new one, then
    links it to the job.
    """
    result = service.convert_applicant_to_candidate(job_id, payload.model_dump(exclude_unset=True), user_id)
    return SuccessResponse(data=result, message="Applicant converted to candidate successfully")


@router.get("/applications/stats", response_model=SuccessResponse)
def application_stats(
    date_from: Optional[str] = Query(None),
    date_to: Optional[str] = Query(None),
    service: JobApplicationService = Depends(get_job_application_service)
):
    return SuccessResponse(data=service.get_application_stats({"date_from": date_from, "date_to": date_to}))
