"""
Pydantic schemas for Candidate API requests/responses.

Request bodies are deliberately loose (mostly optional strings): field rules
live in the validation layer so every problem is reported in one response
with its field and code. Bodies are passed on with ``exclude_unset`` so an
absent field stays absent.
"""

from datetime import datetime
from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class PersonalInfo(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None


class ProfessionalInfo(BaseModel):
    current_role: Optional[str] = None
    experience: Optional[str] = None
    skills: Optional[List[str]] = None
    applied_for_role: Optional[str] = None
    source: Optional[str] = Field(None, description="linkedin, website, referral, agency, job_board or other")


class PipelineInfo(BaseModel):
    current_stage: Optional[str] = Field(None, description="Initial stage, defaults to Applied")
    applied_date: Optional[datetime] = None


class CandidateUpdateRequest(PersonalInfo, ProfessionalInfo):
    """Partial update; nested sections win over the flat fields."""
    model_config = ConfigDict(extra="ignore")

    personal_info: Optional[PersonalInfo] = None
    professional_info: Optional[ProfessionalInfo] = None


class CandidateCreateRequest(CandidateUpdateRequest):
    """New candidate, nested (``personal_info`` ...) or flat."""
    pipeline_info: Optional[PipelineInfo] = None
    current_stage: Optional[str] = None


class StageUpdateRequest(BaseModel):
    stage: str = Field(..., description="Target pipeline stage")
    notes: Optional[str] = Field("", description="Reason for the move, kept in stage history")


class BulkStageUpdateItem(BaseModel):
    candidate_id: str
    new_stage: str
    notes: Optional[str] = ""


class BulkStageUpdateRequest(BaseModel):
    updates: List[BulkStageUpdateItem]


class NoteCreateRequest(BaseModel):
    content: Optional[str] = None
    type: Optional[str] = Field(None, description="general, screening, interview or feedback")


class JobApplicationLinkRequest(BaseModel):
    job_id: Optional[str] = Field(None, description="Opaque id of the job posting")
    applied_date: Optional[datetime] = None
    status: Optional[str] = Field(None, description="active, withdrawn, rejected or hired")
    source: Optional[str] = None
    notes: Optional[str] = None


class JobApplicationUpdateRequest(BaseModel):
    status: Optional[str] = None
    notes: Optional[str] = None


class ConvertApplicantRequest(PersonalInfo, ProfessionalInfo):
    """An external job-board applicant to bring into the pipeline."""
    applied_date: Optional[datetime] = None
    cover_letter: Optional[str] = None
    application_id: Optional[str] = Field(None, description="Reference of the external application")


class SuccessResponse(BaseModel):
    """Envelope for every successful response."""
    success: bool = True
    data: Any = None
    message: Optional[str] = None


class ErrorDetail(BaseModel):
    field: str
    message: str
    code: str


class ErrorBody(BaseModel):
    message: str
    code: str
    details: Optional[List[ErrorDetail]] = None


class ErrorResponse(BaseModel):
    """Envelope for every failed response."""
    success: bool = False
    error: ErrorBody
