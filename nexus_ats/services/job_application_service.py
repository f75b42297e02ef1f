"""
Links between candidates and external job postings.

Jobs are referenced by id only. A candidate can be linked to a job once
(unique ``(candidate_id, job_id)``) and to at most
``max_applications_per_candidate`` jobs. Unlinking removes the link row
outright.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from nexus_ats.core.config import settings
from nexus_ats.core.exceptions import (
    FieldError,
    JobApplicationServiceError,
    ValidationError,
    service_errors,
)
from nexus_ats.crud import candidate as crud_candidate
from nexus_ats.models.candidate import (
    APPLICATION_SOURCES,
    APPLICATION_STATUSES,
    ApplicationSource,
    ApplicationStatus,
    Candidate,
    CandidateJobApplication,
    NoteType,
    utcnow,
)
from nexus_ats.services.candidate_service import CandidateService
from nexus_ats.services.candidate_validation import (
    is_valid_id,
    normalize_email,
    validate_pagination_params,
)
from nexus_ats.services.search_service import parse_date

logger = logging.getLogger(__name__)

MAX_JOB_ID_LENGTH = 64
MAX_APPLICATION_NOTES_LENGTH = 1000


def is_valid_job_id(job_id: Any) -> bool:
    """Job ids are opaque: any non-blank string without whitespace, up to 64 chars."""
    return (
        isinstance(job_id, str)
        and 0 < len(job_id) <= MAX_JOB_ID_LENGTH
        and not any(ch.isspace() for ch in job_id)
    )


def _status_and_notes_errors(data: Dict[str, Any]) -> List[FieldError]:
    errors: List[FieldError] = []

    status = data.get("status")
    if status is not None and status not in APPLICATION_STATUSES:
        errors.append(FieldError(
            "status",
            f"Status must be one of: {', '.join(APPLICATION_STATUSES)}",
            "STATUS_INVALID_VALUE",
        ))

    notes = data.get("notes")
    if notes is not None:
        if not isinstance(notes, str):
            errors.append(FieldError("notes", "Notes must be a string", "NOTES_INVALID_TYPE"))
        elif len(notes) > MAX_APPLICATION_NOTES_LENGTH:
            errors.append(FieldError(
                "notes",
                f"Notes cannot exceed {MAX_APPLICATION_NOTES_LENGTH} characters",
                "NOTES_TOO_LONG",
            ))

    return errors


def validate_application_data(application_data: Dict[str, Any]) -> Optional[datetime]:
    """
    Check a new link payload, reporting every problem at once.

    Returns:
        The parsed ``applied_date`` (None when absent)
    """
    errors: List[FieldError] = []

    if not application_data.get("job_id"):
        errors.append(FieldError("job_id", "Job ID is required", "JOB_ID_REQUIRED"))

    errors.extend(_status_and_notes_errors(application_data))

    source = application_data.get("source")
    if source is not None and source not in APPLICATION_SOURCES:
        errors.append(FieldError(
            "source",
            f"Source must be one of: {', '.join(APPLICATION_SOURCES)}",
            "SOURCE_INVALID_VALUE",
        ))

    applied_date = None
    raw_date = application_data.get("applied_date")
    if raw_date is not None:
        applied_date = parse_date(raw_date)
        if applied_date is None:
            errors.append(FieldError("applied_date", "Applied date must be a valid date", "APPLIED_DATE_INVALID_VALUE"))
        elif applied_date > utcnow():
            errors.append(FieldError("applied_date", "Applied date cannot be in the future", "APPLIED_DATE_INVALID_VALUE"))

    if errors:
        raise ValidationError("Job application validation failed", errors)
    return applied_date


def validate_update_data(update_data: Dict[str, Any]) -> None:
    errors = _status_and_notes_errors(update_data)
    if errors:
        raise ValidationError("Update data validation failed", errors)


class JobApplicationService:
    """Service for linking candidates to job postings."""

    def __init__(self, db: Session, max_applications_per_candidate: Optional[int] = None):
        self.db = db
        self.max_applications_per_candidate = (
            max_applications_per_candidate or settings.MAX_APPLICATIONS_PER_CANDIDATE
        )

    def _require_valid_ids(self, candidate_id: Any, application_id: Any) -> None:
        if not is_valid_id(candidate_id) or not is_valid_id(application_id):
            raise JobApplicationServiceError("Invalid ID format", "INVALID_ID", 400)

    def _require_valid_job_id(self, job_id: Any) -> None:
        if not is_valid_job_id(job_id):
            raise JobApplicationServiceError("Invalid job ID format", "INVALID_JOB_ID", 400)

    def _active_application(self, candidate_id: str, application_id: str) -> CandidateJobApplication:
        application = self.db.query(CandidateJobApplication).join(
            Candidate, Candidate.id == CandidateJobApplication.candidate_id
        ).filter(
            CandidateJobApplication.id == application_id,
            CandidateJobApplication.candidate_id == candidate_id,
            Candidate.is_active.is_(True)
        ).first()
        if application is None:
            raise JobApplicationServiceError("Job application not found", "APPLICATION_NOT_FOUND", 404)
        return application

    def link_job_application(self, candidate_id: Any, application_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Link an active candidate to a job.

        Args:
            candidate_id: Candidate to link
            application_data: ``job_id`` plus optional ``applied_date``,
                ``status``, ``source`` and ``notes``

        Raises:
            JobApplicationServiceError: INVALID_ID / INVALID_JOB_ID / VALIDATION_ERROR (400),
                CANDIDATE_NOT_FOUND (404), APPLICATION_LIMIT_EXCEEDED (400),
                DUPLICATE_APPLICATION (409) or LINK_ERROR (500)
        """
        with service_errors(JobApplicationServiceError, "LINK_ERROR", "Failed to link job application", self.db):
            if not is_valid_id(candidate_id):
                raise JobApplicationServiceError("Invalid candidate ID format", "INVALID_ID", 400)
            if not isinstance(application_data, dict):
                raise ValidationError("Application data must be an object", field="application")

            applied_date = validate_application_data(application_data)
            job_id = application_data["job_id"]
            self._require_valid_job_id(job_id)

            candidate = CandidateService(self.db).get_active_candidate(candidate_id)

            current_count = self.db.query(func.count(CandidateJobApplication.id)).filter(
                CandidateJobApplication.candidate_id == candidate.id
            ).scalar() or 0
            if current_count >= self.max_applications_per_candidate:
                raise JobApplicationServiceError(
                    f"Candidate has reached maximum applications limit ({self.max_applications_per_candidate})",
                    "APPLICATION_LIMIT_EXCEEDED",
                    400
                )

            if crud_candidate.application_exists(self.db, candidate.id, job_id):
                raise JobApplicationServiceError(
                    "Candidate has already applied for this job",
                    "DUPLICATE_APPLICATION",
                    409
                )

            now = utcnow()
            application = CandidateJobApplication(
                candidate_id=candidate.id,
                job_id=job_id,
                applied_date=applied_date or now,
                status=application_data.get("status") or ApplicationStatus.ACTIVE.value,
                source=application_data.get("source") or ApplicationSource.OTHER.value,
                notes=application_data.get("notes") or "",
                created_at=now,
                updated_at=now,
            )

            try:
                self.db.add(application)
                crud_candidate.touch(self.db, candidate.id, now)
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                raise JobApplicationServiceError(
                    "Candidate has already applied for this job",
                    "DUPLICATE_APPLICATION",
                    409
                )

            self.db.refresh(application)
            logger.info(
                f"Job application linked: candidate {candidate.id} -> job {job_id}",
                extra={"event": "job_linked", "candidate_id": candidate.id, "job_id": job_id},
            )
            return application.to_dict()

    def update_job_application(
        self,
        candidate_id: Any,
        application_id: Any,
        update_data: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Change the status and/or notes of one link."""
        with service_errors(JobApplicationServiceError, "UPDATE_ERROR", "Failed to update job application", self.db):
            self._require_valid_ids(candidate_id, application_id)
            if not isinstance(update_data, dict):
                raise ValidationError("Update data must be an object", field="update")
            validate_update_data(update_data)

            application = self._active_application(candidate_id, application_id)

            now = utcnow()
            if update_data.get("status"):
                application.status = update_data["status"]
            if update_data.get("notes") is not None:
                application.notes = update_data["notes"]
            application.updated_at = now
            crud_candidate.touch(self.db, candidate_id, now)
            self.db.commit()
            self.db.refresh(application)

            logger.info(f"Job application updated for candidate {candidate_id}: {application_id}")
            return application.to_dict()

    def unlink_job_application(self, candidate_id: Any, application_id: Any) -> bool:
        """Remove a link. This is a hard delete of the link row."""
        with service_errors(JobApplicationServiceError, "UNLINK_ERROR", "Failed to unlink job application", self.db):
            self._require_valid_ids(candidate_id, application_id)
            application = self._active_application(candidate_id, application_id)

            self.db.delete(application)
            crud_candidate.touch(self.db, candidate_id, utcnow())
            self.db.commit()

            logger.info(
                f"Job application unlinked for candidate {candidate_id}: {application_id}",
                extra={"event": "job_unlinked", "candidate_id": candidate_id, "application_id": application_id},
            )
            return True

    def get_candidate_applications(self, candidate_id: Any) -> List[Dict[str, Any]]:
        with service_errors(JobApplicationServiceError, "GET_ERROR", "Failed to get candidate applications"):
            candidate = CandidateService(self.db).get_active_candidate(candidate_id)
            return [application.to_dict() for application in candidate.job_applications]

    def get_job_candidates(self, job_id: Any, options: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """
        Active candidates linked to ``job_id``, each with its link to that job.

        Options:
            sort_by: ``applied_date`` or ``name`` (anything else: newest application first)
            sort_order: ``asc`` (default) or ``desc``
            page, limit: paginate only when ``limit`` is given
        """
        with service_errors(JobApplicationServiceError, "GET_JOB_CANDIDATES_ERROR", "Failed to get job candidates"):
            self._require_valid_job_id(job_id)
            options = options or {}

            query = self.db.query(Candidate, CandidateJobApplication).join(
                CandidateJobApplication, CandidateJobApplication.candidate_id == Candidate.id
            ).filter(
                Candidate.is_active.is_(True),
                CandidateJobApplication.job_id == job_id
            )

            sort_by = options.get("sort_by")
            descending = options.get("sort_order") == "desc"
            if sort_by == "applied_date":
                column = CandidateJobApplication.applied_date
                query = query.order_by(column.desc() if descending else column.asc())
            elif sort_by == "name":
                columns = (Candidate.first_name, Candidate.last_name)
                query = query.order_by(*[c.desc() if descending else c.asc() for c in columns])
            else:
                query = query.order_by(CandidateJobApplication.applied_date.desc())
            query = query.order_by(Candidate.id)

            if options.get("limit"):
                page_params = validate_pagination_params({"page": options.get("page"), "limit": options["limit"]})
                query = query.offset(page_params["skip"]).limit(page_params["limit"])

            return [
                {
                    "id": candidate.id,
                    "personal_info": candidate.personal_info(),
                    "professional_info": candidate.professional_info(),
                    "pipeline_info": candidate.pipeline_info(),
                    "metadata": {
                        "created_at": candidate.created_at,
                        "updated_at": candidate.updated_at,
                    },
                    "application": application.to_dict(),
                }
                for candidate, application in query.all()
            ]

    def get_application_stats(self, filters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Totals and distributions over the links of active candidates,
        optionally limited to an applied-date range (``date_from``/``date_to``).
        """
        with service_errors(JobApplicationServiceError, "STATS_ERROR", "Failed to get application statistics"):
            filters = filters or {}
            conditions = [Candidate.is_active.is_(True)]
            date_from = parse_date(filters.get("date_from"))
            date_to = parse_date(filters.get("date_to"))
            if date_from is not None:
                conditions.append(CandidateJobApplication.applied_date >= date_from)
            if date_to is not None:
                conditions.append(CandidateJobApplication.applied_date <= date_to)

            def scoped(*columns):
                return self.db.query(*columns).select_from(CandidateJobApplication).join(
                    Candidate, Candidate.id == CandidateJobApplication.candidate_id
                ).filter(*conditions)

            total, unique_candidates, unique_jobs, earliest, latest = scoped(
                func.count(CandidateJobApplication.id),
                func.count(func.distinct(CandidateJobApplication.candidate_id)),
                func.count(func.distinct(CandidateJobApplication.job_id)),
                func.min(CandidateJobApplication.applied_date),
                func.max(CandidateJobApplication.applied_date),
            ).one()

            if not total:
                return {
                    "total_applications": 0,
                    "unique_candidates": 0,
                    "unique_jobs": 0,
                    "status_distribution": {},
                    "source_distribution": {},
                    "avg_applications_per_candidate": 0,
                    "earliest_application": None,
                    "latest_application": None,
                }

            status_rows = scoped(CandidateJobApplication.status, func.count(CandidateJobApplication.id)).group_by(
                CandidateJobApplication.status
            ).all()
            source_rows = scoped(CandidateJobApplication.source, func.count(CandidateJobApplication.id)).group_by(
                CandidateJobApplication.source
            ).all()

            return {
                "total_applications": total,
                "unique_candidates": unique_candidates,
                "unique_jobs": unique_jobs,
                "status_distribution": dict(status_rows),
                "source_distribution": dict(source_rows),
                "avg_applications_per_candidate": round(total / unique_candidates, 2),
                "earliest_application": earliest,
                "latest_application": latest,
            }

    def convert_applicant_to_candidate(
        self,
        job_id: Any,
        applicant: Dict[str, Any],
        user_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Bring a job-board applicant into the pipeline.

        Reuses the active candidate with the applicant's email, otherwise
        creates one (source ``job_board``), then links the job. A cover
        letter, if given, is kept as a note on a newly created candidate.

        Args:
            job_id: The job applied for
            applicant: Candidate fields plus optional ``applied_date``,
                ``cover_letter`` and ``application_id``
            user_id: Acting user

        Returns:
            ``{"candidate", "application", "created"}``
        """
        with service_errors(JobApplicationServiceError, "CONVERT_ERROR", "Failed to convert applicant", self.db):
            self._require_valid_job_id(job_id)
            if not isinstance(applicant, dict):
                raise ValidationError("Applicant data must be an object", field="applicant")

            reference = applicant.get("application_id")
            link_data = {
                "job_id": job_id,
                "applied_date": applicant.get("applied_date"),
                "status": ApplicationStatus.ACTIVE.value,
                "source": ApplicationSource.JOB_BOARD.value,
                "notes": f"Converted from job application #{str(reference)[-8:]}" if reference else "Converted from job applicant",
            }
            # Reject a bad link before any candidate is written
            validate_application_data(link_data)

            candidate_service = CandidateService(self.db)
            email = normalize_email(applicant.get("email"))
            existing = crud_candidate.get_active_by_email(self.db, email) if email else None

            created = existing is None
            if created:
                candidate_data = {
                    key: value for key, value in applicant.items()
                    if key not in ("applied_date", "cover_letter", "application_id")
                }
                candidate_data["source"] = ApplicationSource.JOB_BOARD.value
                candidate_id = candidate_service.create_candidate(candidate_data, user_id)["id"]
            else:
                candidate_id = existing.id

            application = self.link_job_application(candidate_id, link_data)

            cover_letter = applicant.get("cover_letter")
            if created and isinstance(cover_letter, str) and cover_letter.strip():
                candidate_service.add_note(candidate_id, {
                    "content": f"Cover Letter: {cover_letter.strip()}"[:1000],
                    "type": NoteType.GENERAL.value,
                }, user_id)

            logger.info(f"Converted applicant for job {job_id} into candidate {candidate_id} (created={created})")
            return {
                "candidate": candidate_service.get_candidate_by_id(candidate_id),
                "application": application,
                "created": created,
            }
