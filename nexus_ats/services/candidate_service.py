"""
Candidate lifecycle service.

Create, read, partial update, soft delete, list/search and notes for the
Candidate aggregate. Uniqueness of the normalized email among active
candidates is checked up front for a clear error and enforced by the
partial unique index on ``candidates.email``; both paths raise
DUPLICATE_EMAIL.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from nexus_ats.core.exceptions import CandidateServiceError, ValidationError, service_errors
from nexus_ats.crud import candidate as crud_candidate
from nexus_ats.models.candidate import Candidate, CandidateNote, NoteType, utcnow
from nexus_ats.services.candidate_validation import (
    PERSONAL_FIELDS,
    PROFESSIONAL_FIELDS,
    create_candidate_document,
    extract_section,
    is_valid_id,
    normalize_candidate_fields,
    personal_info_errors,
    professional_info_errors,
    validate_candidate_data,
    validate_note_data,
    validate_pagination_params,
)
from nexus_ats.services.search_service import (
    SearchService,
    build_sort_spec,
    order_by_clauses,
    paginate,
)

logger = logging.getLogger(__name__)


def duplicate_email_error() -> CandidateServiceError:
    return CandidateServiceError(
        "A candidate with this email address already exists",
        "DUPLICATE_EMAIL",
        409
    )


class CandidateService:
    """Service for managing candidates."""

    def __init__(self, db: Session):
        self.db = db

    def _require_valid_id(self, candidate_id: Any) -> None:
        if not is_valid_id(candidate_id):
            raise CandidateServiceError("Invalid candidate ID format", "INVALID_ID", 400)

    def get_active_candidate(self, candidate_id: Any) -> Candidate:
        """Load an active candidate or raise INVALID_ID / CANDIDATE_NOT_FOUND."""
        self._require_valid_id(candidate_id)
        candidate = crud_candidate.get_active(self.db, candidate_id)
        if candidate is None:
            raise CandidateServiceError("Candidate not found", "CANDIDATE_NOT_FOUND", 404)
        return candidate

    def create_candidate(self, candidate_data: Dict[str, Any], user_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Create a new candidate.

        Args:
            candidate_data: Flat or nested candidate fields
            user_id: Acting user, recorded as ``created_by``

        Returns:
            The stored candidate aggregate

        Raises:
            CandidateServiceError: VALIDATION_ERROR (400), DUPLICATE_EMAIL (409)
                or CREATE_ERROR (500)
        """
        with service_errors(CandidateServiceError, "CREATE_ERROR", "Failed to create candidate", self.db):
            validate_candidate_data(candidate_data)
            document = create_candidate_document(candidate_data, created_by=user_id)

            email = document["personal_info"]["email"]
            if email and crud_candidate.email_exists(self.db, email):
                raise duplicate_email_error()

            try:
                candidate = crud_candidate.insert(self.db, document)
                self.db.commit()
            except IntegrityError:
                # Lost a race with a concurrent create
                self.db.rollback()
                raise duplicate_email_error()

            self.db.refresh(candidate)
            logger.info(
                f"Created candidate {candidate.id}",
                extra={"event": "candidate_created", "candidate_id": candidate.id, "user_id": user_id},
            )
            return candidate.to_dict()

    def get_candidate_by_id(self, candidate_id: Any) -> Optional[Dict[str, Any]]:
        """Return the active candidate, or None when missing or soft-deleted."""
        with service_errors(CandidateServiceError, "GET_ERROR", "Failed to get candidate"):
            self._require_valid_id(candidate_id)
            candidate = crud_candidate.get_active(self.db, candidate_id)
            return candidate.to_dict() if candidate else None

    def update_candidate(
        self,
        candidate_id: Any,
        updates: Dict[str, Any],
        user_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Field-level partial update.

        Only the personal/professional fields present in ``updates`` (nested
        or flat) are written; everything else keeps its stored value. Stage
        changes go through the pipeline service, not here.
        """
        with service_errors(CandidateServiceError, "UPDATE_ERROR", "Failed to update candidate", self.db):
            if not isinstance(updates, dict):
                raise ValidationError("Update data must be an object", field="updates")

            candidate = self.get_active_candidate(candidate_id)

            personal = extract_section(updates, "personal_info", PERSONAL_FIELDS)
            professional = extract_section(updates, "professional_info", PROFESSIONAL_FIELDS)

            # Validate the record as it would look after the update
            errors = personal_info_errors({**candidate.personal_info(), **personal})
            errors.extend(professional_info_errors({**candidate.professional_info(), **professional}))
            if errors:
                raise ValidationError("Candidate validation failed", errors)

            values = normalize_candidate_fields({**personal, **professional})
            skills = values.pop("skills", None)

            if "email" in values:
                if values["email"] == candidate.email:
                    del values["email"]
                elif crud_candidate.email_exists(self.db, values["email"], exclude_id=candidate.id):
                    raise duplicate_email_error()

            values["updated_at"] = utcnow()

            try:
                if not crud_candidate.update_fields(self.db, candidate.id, values):
                    raise CandidateServiceError("Candidate not found", "CANDIDATE_NOT_FOUND", 404)
                if skills is not None:
                    candidate.skills = skills
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                raise duplicate_email_error()

            self.db.refresh(candidate)
            logger.info(
                f"Updated candidate {candidate.id} fields={sorted(values)}",
                extra={"event": "candidate_updated", "candidate_id": candidate.id, "user_id": user_id},
            )
            return candidate.to_dict()

    def delete_candidate(self, candidate_id: Any, user_id: Optional[str] = None) -> bool:
        """
        Soft delete. Documents, applications and notes are kept as they are.
        """
        with service_errors(CandidateServiceError, "DELETE_ERROR", "Failed to delete candidate", self.db):
            self._require_valid_id(candidate_id)

            now = utcnow()
            updated = crud_candidate.update_fields(self.db, candidate_id, {
                "is_active": False,
                "deleted_at": now,
                "deleted_by": user_id,
                "updated_at": now,
            })
            if not updated:
                raise CandidateServiceError("Candidate not found", "CANDIDATE_NOT_FOUND", 404)

            self.db.commit()
            logger.info(
                f"Soft-deleted candidate {candidate_id}",
                extra={"event": "candidate_deleted", "candidate_id": candidate_id, "user_id": user_id},
            )
            return True

    def _list(
        self,
        query: Optional[str],
        filters: Optional[Dict[str, Any]],
        pagination: Optional[Dict[str, Any]],
        sort: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        page_params = validate_pagination_params(pagination)
        page, limit, skip = page_params["page"], page_params["limit"], page_params["skip"]

        base, score = SearchService(self.db).filtered_query(query, filters)
        total = base.order_by(None).count()

        candidates = base.options(
            selectinload(Candidate.skill_entries),
            selectinload(Candidate.stage_history),
            selectinload(Candidate.documents),
            selectinload(Candidate.job_applications),
            selectinload(Candidate.notes),
        ).order_by(
            *order_by_clauses(build_sort_spec(sort, query), score)
        ).offset(skip).limit(limit).all()

        return {
            "candidates": [candidate.to_dict() for candidate in candidates],
            "pagination": paginate(page, limit, total),
        }

    def list_candidates(
        self,
        filters: Optional[Dict[str, Any]] = None,
        pagination: Optional[Dict[str, Any]] = None,
        sort: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Active candidates matching ``filters`` (same rules as search filters),
        newest first unless ``sort`` says otherwise. A ``search`` key in the
        filters is treated as a free-text query.
        """
        with service_errors(CandidateServiceError, "LIST_ERROR", "Failed to list candidates"):
            filters = dict(filters or {})
            return self._list(filters.pop("search", None), filters, pagination, sort)

    def search_candidates(
        self,
        query: Optional[str],
        filters: Optional[Dict[str, Any]] = None,
        pagination: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        with service_errors(CandidateServiceError, "SEARCH_ERROR", "Failed to search candidates"):
            return self._list(query, filters, pagination)

    def add_note(self, candidate_id: Any, note_data: Dict[str, Any], user_id: Optional[str] = None) -> Dict[str, Any]:
        """Append a note (default type ``general``) and bump ``updated_at``."""
        with service_errors(CandidateServiceError, "NOTE_ERROR", "Failed to add note", self.db):
            if not isinstance(note_data, dict):
                raise ValidationError("Note data must be an object", field="note")
            validate_note_data(note_data)

            candidate = self.get_active_candidate(candidate_id)

            now = utcnow()
            note = CandidateNote(
                content=note_data["content"].strip(),
                type=note_data.get("type") or NoteType.GENERAL.value,
                created_by=user_id,
                created_at=now,
                updated_at=now,
            )
            candidate.notes.append(note)
            candidate.updated_at = now
            self.db.commit()
            self.db.refresh(note)

            return note.to_dict()

    def list_notes(self, candidate_id: Any) -> List[Dict[str, Any]]:
        with service_errors(CandidateServiceError, "NOTE_ERROR", "Failed to retrieve notes"):
            candidate = self.get_active_candidate(candidate_id)
            return [note.to_dict() for note in candidate.notes]

    def get_candidate_stats(self) -> Dict[str, Any]:
        with service_errors(CandidateServiceError, "STATS_ERROR", "Failed to get candidate statistics"):
            return crud_candidate.get_stats(self.db)
