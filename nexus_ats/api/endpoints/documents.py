"""
API endpoints for candidate documents (resumes, cover letters, portfolios).
"""

import logging
from typing import Optional
from urllib.parse import quote
from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.responses import Response

from nexus_ats.core.deps import get_current_user_id, get_document_service
from nexus_ats.models.candidate import DocumentType
from nexus_ats.schemas.candidate import SuccessResponse
from nexus_ats.services.document_service import DocumentService

router = APIRouter(prefix="/candidates/{candidate_id}/documents", tags=["Candidate Documents"])
logger = logging.getLogger(__name__)


@router.post("", response_model=SuccessResponse, status_code=status.HTTP_201_CREATED)
def upload_document(
    candidate_id: str,
    file: UploadFile = File(...),
    document_type: str = Form(DocumentType.OTHER.value),
    user_id: Optional[str] = Depends(get_current_user_id),
    service: DocumentService = Depends(get_document_service)
):
    """
    Upload a document for a candidate.

    Flow:
    1. Validate the document type and file (PDF, DOC or DOCX, at most 10MB)
    2. Store the bytes under a freshly generated unique filename
    3. Attach the metadata to the candidate (bytes are removed again if this fails)

    Raises:
        400 FILE_TOO_LARGE / INVALID_FILE_TYPE / VALIDATION_ERROR
        404 CANDIDATE_NOT_FOUND
    """
    data = file.file.read()
    file_data = {
        "original_name": file.filename,
        "mime_type": file.content_type,
        "size": len(data),
        "buffer": data,
    }
    document = service.upload_document(candidate_id, file_data, document_type, user_id)
    return SuccessResponse(data=document, message="Document uploaded successfully")


@router.get("", response_model=SuccessResponse)
def list_documents(
    candidate_id: str,
    service: DocumentService = Depends(get_document_service)
):
    """Active documents of a candidate, oldest first."""
    return SuccessResponse(data=service.list_documents(candidate_id))


@router.get("/stats", response_model=SuccessResponse)
def document_stats(
    candidate_id: str,
    service: DocumentService = Depends(get_document_service)
):
    return SuccessResponse(data=service.get_document_stats(candidate_id))


@router.get("/{document_id}")
def download_document(
    candidate_id: str,
    document_id: str,
    service: DocumentService = Depends(get_document_service)
):
    """
    Download a document's bytes.

    Raises:
        404 DOCUMENT_NOT_FOUND: No active document with this id
        404 FILE_NOT_FOUND: The record exists but its bytes are gone from storage
    """
    result = service.get_document(candidate_id, document_id)
    metadata = result["metadata"]
    return Response(
        content=result["buffer"],
        media_type=metadata["mime_type"],
        headers={
            "Content-Disposition": f"attachment; filename*=UTF-8''{quote(metadata['original_name'])}"
        }
    )


@router.delete("/{document_id}", response_model=SuccessResponse)
def delete_document(
    candidate_id: str,
    document_id: str,
    user_id: Optional[str] = Depends(get_current_user_id),
    service: DocumentService = Depends(get_document_service)
):
    """Soft-delete a document. The stored file is kept."""
    service.delete_document(candidate_id, document_id, user_id)
    return SuccessResponse(message="Document deleted successfully")
