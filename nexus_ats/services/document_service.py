"""
Candidate document service.

Upload order is bytes first, then the metadata row. If the row cannot be
written the bytes are deleted again (best effort). Deleting a document only
flags the row; the stored bytes are kept for recovery.
"""

import logging
import os
import re
import secrets
import time
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from nexus_ats.core.config import settings
from nexus_ats.core.exceptions import DocumentServiceError, service_errors
from nexus_ats.core.storage import StorageBackend, StorageFileNotFoundError
from nexus_ats.crud import candidate as crud_candidate
from nexus_ats.models.candidate import CandidateDocument, DocumentType, utcnow
from nexus_ats.services.candidate_validation import (
    is_valid_id,
    validate_document_metadata,
    validate_document_type,
    validate_document_upload,
)

logger = logging.getLogger(__name__)

UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


def generate_unique_filename(original_name: str, candidate_id: str) -> str:
    """
    ``{candidate_id}_{time_ns}_{16 hex}_{sanitized base}{ext}``

    Fresh for every call, so retried or concurrent uploads of the same file
    never collide.
    """
    base_name, extension = os.path.splitext(os.path.basename(original_name))
    sanitized = UNSAFE_FILENAME_CHARS.sub("_", base_name)
    return f"{candidate_id}_{time.time_ns()}_{secrets.token_hex(8)}_{sanitized}{extension}"


class DocumentService:
    """Service for candidate document storage and metadata."""

    def __init__(
        self,
        db: Session,
        storage: StorageBackend,
        max_file_size: Optional[int] = None,
        allowed_mime_types: Optional[List[str]] = None,
    ):
        self.db = db
        self.storage = storage
        self.max_file_size = max_file_size or settings.MAX_FILE_SIZE
        self.allowed_mime_types = list(allowed_mime_types or settings.ALLOWED_DOCUMENT_MIME_TYPES)

    def _require_valid_ids(self, *ids: Any) -> None:
        if not all(is_valid_id(value) for value in ids):
            message = "Invalid candidate ID format" if len(ids) == 1 else "Invalid ID format"
            raise DocumentServiceError(message, "INVALID_ID", 400)

    def _active_document(self, candidate_id: str, document_id: str) -> CandidateDocument:
        if crud_candidate.get_active(self.db, candidate_id) is None:
            raise DocumentServiceError("Candidate not found", "CANDIDATE_NOT_FOUND", 404)

        document = self.db.query(CandidateDocument).filter(
            CandidateDocument.id == document_id,
            CandidateDocument.candidate_id == candidate_id,
            CandidateDocument.is_active.is_(True)
        ).first()
        if document is None:
            raise DocumentServiceError("Document not found", "DOCUMENT_NOT_FOUND", 404)
        return document

    def _active_documents(self, candidate_id: str) -> List[CandidateDocument]:
        if crud_candidate.get_active(self.db, candidate_id) is None:
            raise DocumentServiceError("Candidate not found", "CANDIDATE_NOT_FOUND", 404)

        return self.db.query(CandidateDocument).filter(
            CandidateDocument.candidate_id == candidate_id,
            CandidateDocument.is_active.is_(True)
        ).order_by(CandidateDocument.upload_date, CandidateDocument.id).all()

    def upload_document(
        self,
        candidate_id: Any,
        file_data: Dict[str, Any],
        document_type: str = DocumentType.OTHER.value,
        uploaded_by: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Store an uploaded file and attach its metadata to the candidate.

        Args:
            candidate_id: Owning candidate
            file_data: ``original_name``, ``mime_type``, ``size`` and ``buffer`` (bytes)
            document_type: resume, cover_letter, portfolio or other
            uploaded_by: Acting user

        Returns:
            Metadata of the stored document

        Raises:
            DocumentServiceError: INVALID_ID, VALIDATION_ERROR, FILE_TOO_LARGE,
                INVALID_FILE_TYPE (400), CANDIDATE_NOT_FOUND (404), UPLOAD_ERROR (500)
        """
        with service_errors(DocumentServiceError, "UPLOAD_ERROR", "Failed to upload document", self.db):
            self._require_valid_ids(candidate_id)
            validate_document_type(document_type)
            validate_document_upload(file_data)

            if file_data["size"] > self.max_file_size:
                raise DocumentServiceError(
                    f"File size exceeds maximum allowed size of {self.max_file_size} bytes",
                    "FILE_TOO_LARGE",
                    400
                )

            if file_data["mime_type"] not in self.allowed_mime_types:
                raise DocumentServiceError(
                    f"File type {file_data['mime_type']} is not allowed",
                    "INVALID_FILE_TYPE",
                    400
                )

            if crud_candidate.get_active(self.db, candidate_id) is None:
                raise DocumentServiceError("Candidate not found", "CANDIDATE_NOT_FOUND", 404)

            filename = generate_unique_filename(file_data["original_name"], candidate_id)
            validate_document_metadata({
                "filename": filename,
                "original_name": file_data["original_name"],
                "mime_type": file_data["mime_type"],
                "size": file_data["size"],
                "document_type": document_type,
            }, self.allowed_mime_types, self.max_file_size)
            file_path = self.storage.write(filename, bytes(file_data["buffer"]), file_data["mime_type"])

            try:
                now = utcnow()
                document = CandidateDocument(
                    candidate_id=candidate_id,
                    filename=filename,
                    original_name=file_data["original_name"],
                    mime_type=file_data["mime_type"],
                    size=file_data["size"],
                    document_type=document_type,
                    file_path=file_path,
                    uploaded_by=uploaded_by,
                    upload_date=now,
                    is_active=True,
                )
                self.db.add(document)
                if not crud_candidate.touch(self.db, candidate_id, now):
                    raise DocumentServiceError(
                        "Candidate not found or document upload failed",
                        "CANDIDATE_NOT_FOUND",
                        404
                    )
                self.db.commit()
            except Exception:
                self.db.rollback()
                if not self.storage.delete(file_path):
                    logger.warning(f"Could not remove orphaned upload {file_path}")
                raise

            self.db.refresh(document)
            logger.info(
                f"Document uploaded for candidate {candidate_id}: {filename}",
                extra={"event": "document_uploaded", "candidate_id": candidate_id, "document_id": document.id},
            )
            return document.to_dict()

    def get_document(self, candidate_id: Any, document_id: Any) -> Dict[str, Any]:
        """
        Metadata and bytes of an active document.

        A missing record is DOCUMENT_NOT_FOUND; a record whose bytes are gone
        from storage is FILE_NOT_FOUND.
        """
        with service_errors(DocumentServiceError, "RETRIEVAL_ERROR", "Failed to retrieve document"):
            self._require_valid_ids(candidate_id, document_id)
            document = self._active_document(candidate_id, document_id)

            try:
                buffer = self.storage.read(document.file_path)
            except StorageFileNotFoundError:
                logger.error(f"Document {document.id} has no bytes at {document.file_path}")
                raise DocumentServiceError("Document file not found in storage", "FILE_NOT_FOUND", 404)

            return {"metadata": document.to_dict(), "buffer": buffer}

    def list_documents(self, candidate_id: Any) -> List[Dict[str, Any]]:
        with service_errors(DocumentServiceError, "LIST_ERROR", "Failed to list documents"):
            self._require_valid_ids(candidate_id)
            return [document.to_dict() for document in self._active_documents(candidate_id)]

    def delete_document(self, candidate_id: Any, document_id: Any, deleted_by: Optional[str] = None) -> bool:
        """Soft delete: flags the row inactive, stored bytes stay in place."""
        with service_errors(DocumentServiceError, "DELETE_ERROR", "Failed to delete document", self.db):
            self._require_valid_ids(candidate_id, document_id)
            document = self._active_document(candidate_id, document_id)

            now = utcnow()
            document.is_active = False
            document.deleted_at = now
            document.deleted_by = deleted_by
            crud_candidate.touch(self.db, candidate_id, now)
            self.db.commit()

            logger.info(
                f"Document {document_id} soft-deleted for candidate {candidate_id}",
                extra={"event": "document_deleted", "candidate_id": candidate_id, "document_id": document_id},
            )
            return True

    def get_document_stats(self, candidate_id: Any) -> Dict[str, Any]:
        """Count, total size, per-type counts and oldest/newest active documents."""
        with service_errors(DocumentServiceError, "STATS_ERROR", "Failed to get document statistics"):
            self._require_valid_ids(candidate_id)
            documents = self._active_documents(candidate_id)

            document_types: Dict[str, int] = {}
            for document in documents:
                document_types[document.document_type] = document_types.get(document.document_type, 0) + 1

            return {
                "total_documents": len(documents),
                "total_size": sum(document.size for document in documents),
                "document_types": document_types,
                "oldest_document": documents[0].to_dict() if documents else None,
                "newest_document": documents[-1].to_dict() if documents else None,
            }
