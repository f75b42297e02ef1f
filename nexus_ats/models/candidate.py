"""
Candidate aggregate database models.

A Candidate owns its skills, stage history, documents, job application links
and notes. The child tables are only ever reached through the candidate and
are keyed by (candidate_id, id); jobs and users are referenced by id only.

Pipeline lifecycle:

    Applied <-> Screening <-> Interview <-> Offer -> Hired
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text,
    UniqueConstraint, true,
)
from sqlalchemy.orm import relationship
from sqlalchemy.ext.orderinglist import ordering_list

from nexus_ats.core.database import Base


class PipelineStage(str, enum.Enum):
    """Position of a candidate in the hiring workflow."""
    APPLIED = "Applied"
    SCREENING = "Screening"
    INTERVIEW = "Interview"
    OFFER = "Offer"
    HIRED = "Hired"


class ApplicationSource(str, enum.Enum):
    """Where a candidate or an application came from."""
    LINKEDIN = "linkedin"
    WEBSITE = "website"
    REFERRAL = "referral"
    AGENCY = "agency"
    JOB_BOARD = "job_board"
    OTHER = "other"


class DocumentType(str, enum.Enum):
    RESUME = "resume"
    COVER_LETTER = "cover_letter"
    PORTFOLIO = "portfolio"
    OTHER = "other"


class NoteType(str, enum.Enum):
    GENERAL = "general"
    SCREENING = "screening"
    INTERVIEW = "interview"
    FEEDBACK = "feedback"


class ApplicationStatus(str, enum.Enum):
    ACTIVE = "active"
    WITHDRAWN = "withdrawn"
    REJECTED = "rejected"
    HIRED = "hired"


PIPELINE_STAGES = [stage.value for stage in PipelineStage]
APPLICATION_SOURCES = [source.value for source in ApplicationSource]
DOCUMENT_TYPES = [doc_type.value for doc_type in DocumentType]
NOTE_TYPES = [note_type.value for note_type in NoteType]
APPLICATION_STATUSES = [status.value for status in ApplicationStatus]

# Allowed moves between stages (same-stage moves are always allowed)
VALID_STAGE_TRANSITIONS = {
    PipelineStage.APPLIED.value: [PipelineStage.SCREENING.value],
    PipelineStage.SCREENING.value: [PipelineStage.INTERVIEW.value, PipelineStage.APPLIED.value],
    PipelineStage.INTERVIEW.value: [PipelineStage.OFFER.value, PipelineStage.SCREENING.value],
    PipelineStage.OFFER.value: [PipelineStage.HIRED.value, PipelineStage.INTERVIEW.value],
    PipelineStage.HIRED.value: [],
}

# Single allow-list for candidate documents: PDF, DOC, DOCX
ALLOWED_DOCUMENT_MIME_TYPES = [
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
]

MAX_DOCUMENT_SIZE = 10 * 1024 * 1024  # 10MB


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Candidate(Base):
    """
    A person moving through the hiring pipeline.

    Soft delete only: ``is_active`` goes False and ``deleted_at``/``deleted_by``
    are stamped, everything else is retained for audit.
    """
    __tablename__ = "candidates"

    id = Column(String(36), primary_key=True, default=new_id)

    # Personal info (email is stored trimmed and lower-cased)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    email = Column(String(100), nullable=False, index=True)
    phone = Column(String(32), nullable=True)
    location = Column(String(100), nullable=True)

    # Professional info
    current_role = Column(String(100), nullable=True)
    experience = Column(String(50), nullable=True)
    applied_for_role = Column(String(100), nullable=True)
    source = Column(String(20), nullable=True, index=True)

    # Pipeline info
    current_stage = Column(String(20), nullable=False, default=PipelineStage.APPLIED.value, index=True)
    applied_date = Column(DateTime, nullable=False, default=utcnow, index=True)

    # Metadata
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow)
    created_by = Column(String(64), nullable=True)
    deleted_at = Column(DateTime, nullable=True)
    deleted_by = Column(String(64), nullable=True)

    # Relationships
    skill_entries = relationship(
        "CandidateSkill",
        back_populates="candidate",
        order_by="CandidateSkill.position",
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
    )
    stage_history = relationship(
        "CandidateStageHistory",
        back_populates="candidate",
        order_by="CandidateStageHistory.id",
        cascade="all, delete-orphan",
    )
    documents = relationship(
        "CandidateDocument",
        back_populates="candidate",
        order_by=lambda: (CandidateDocument.upload_date, CandidateDocument.id),
        cascade="all, delete-orphan",
    )
    job_applications = relationship(
        "CandidateJobApplication",
        back_populates="candidate",
        order_by=lambda: (CandidateJobApplication.created_at, CandidateJobApplication.id),
        cascade="all, delete-orphan",
    )
    notes = relationship(
        "CandidateNote",
        back_populates="candidate",
        order_by=lambda: (CandidateNote.created_at, CandidateNote.id),
        cascade="all, delete-orphan",
    )

    @property
    def skills(self):
        return [entry.name for entry in self.skill_entries]

    @skills.setter
    def skills(self, values):
        self.skill_entries = [CandidateSkill(name=value) for value in values]

    def personal_info(self) -> dict:
        return {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "phone": self.phone,
            "location": self.location,
        }

    def professional_info(self) -> dict:
        return {
            "current_role": self.current_role,
            "experience": self.experience,
            "skills": self.skills,
            "applied_for_role": self.applied_for_role,
            "source": self.source,
        }

    def pipeline_info(self) -> dict:
        return {
            "current_stage": self.current_stage,
            "stage_history": [entry.to_dict() for entry in self.stage_history],
            "applied_date": self.applied_date,
        }

    def to_dict(self) -> dict:
        """Nested aggregate view: every child, including inactive documents."""
        return {
            "id": self.id,
            "personal_info": self.personal_info(),
            "professional_info": self.professional_info(),
            "pipeline_info": self.pipeline_info(),
            "documents": [document.to_dict() for document in self.documents],
            "job_applications": [application.to_dict() for application in self.job_applications],
            "notes": [note.to_dict() for note in self.notes],
            "metadata": {
                "created_at": self.created_at,
                "updated_at": self.updated_at,
                "is_active": self.is_active,
                "created_by": self.created_by,
                "deleted_at": self.deleted_at,
                "deleted_by": self.deleted_by,
            },
        }

    def __repr__(self):
        return f"<Candidate(id={self.id}, email='{self.email}', stage={self.current_stage})>"


# One active candidate per normalized email; soft-deleted rows don't count
Index(
    "uq_candidates_active_email",
    Candidate.email,
    unique=True,
    postgresql_where=Candidate.is_active == true(),
    sqlite_where=Candidate.is_active == true(),
)


class CandidateSkill(Base):
    __tablename__ = "candidate_skills"

    id = Column(Integer, primary_key=True, autoincrement=True)
    candidate_id = Column(String(36), ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    name = Column(String(50), nullable=False, index=True)

    candidate = relationship("Candidate", back_populates="skill_entries")


class CandidateStageHistory(Base):
    """Append-only record of every stage a candidate has been set to."""
    __tablename__ = "candidate_stage_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    candidate_id = Column(String(36), ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False, index=True)
    stage = Column(String(20), nullable=False)
    from_stage = Column(String(20), nullable=True)
    changed_by = Column(String(64), nullable=True)
    notes = Column(Text, nullable=True)
    timestamp = Column(DateTime, nullable=False, default=utcnow)

    candidate = relationship("Candidate", back_populates="stage_history")

    def to_dict(self) -> dict:
        return {
            "stage": self.stage,
            "from_stage": self.from_stage,
            "timestamp": self.timestamp,
            "changed_by": self.changed_by,
            "notes": self.notes or "",
        }


class CandidateDocument(Base):
    """
    Uploaded file metadata. The bytes live in the storage backend at
    ``file_path``; rows are soft-deleted only.
    """
    __tablename__ = "candidate_documents"

    id = Column(String(36), primary_key=True, default=new_id)
    candidate_id = Column(String(36), ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False, index=True)

    filename = Column(String(400), nullable=False, unique=True)
    original_name = Column(String(255), nullable=False)
    mime_type = Column(String(100), nullable=False)
    size = Column(Integer, nullable=False)
    document_type = Column(String(20), nullable=False, default=DocumentType.OTHER.value)
    file_path = Column(String(1024), nullable=False)

    uploaded_by = Column(String(64), nullable=True)
    upload_date = Column(DateTime, nullable=False, default=utcnow)
    is_active = Column(Boolean, nullable=False, default=True)
    deleted_at = Column(DateTime, nullable=True)
    deleted_by = Column(String(64), nullable=True)

    candidate = relationship("Candidate", back_populates="documents")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "filename": self.filename,
            "original_name": self.original_name,
            "mime_type": self.mime_type,
            "size": self.size,
            "document_type": self.document_type,
            "file_path": self.file_path,
            "uploaded_by": self.uploaded_by,
            "upload_date": self.upload_date,
            "is_active": self.is_active,
            "deleted_at": self.deleted_at,
            "deleted_by": self.deleted_by,
        }


class CandidateJobApplication(Base):
    """Link from a candidate to an external job posting."""
    __tablename__ = "candidate_job_applications"
    __table_args__ = (
        UniqueConstraint("candidate_id", "job_id", name="uq_candidate_job_application"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    candidate_id = Column(String(36), ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False, index=True)
    job_id = Column(String(64), nullable=False, index=True)

    applied_date = Column(DateTime, nullable=False, default=utcnow)
    status = Column(String(20), nullable=False, default=ApplicationStatus.ACTIVE.value, index=True)
    source = Column(String(20), nullable=False, default=ApplicationSource.OTHER.value)
    notes = Column(Text, nullable=False, default="")

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    candidate = relationship("Candidate", back_populates="job_applications")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "job_id": self.job_id,
            "applied_date": self.applied_date,
            "status": self.status,
            "source": self.source,
            "notes": self.notes,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


class CandidateNote(Base):
    __tablename__ = "candidate_notes"

    id = Column(String(36), primary_key=True, default=new_id)
    candidate_id = Column(String(36), ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    type = Column(String(20), nullable=False, default=NoteType.GENERAL.value)
    created_by = Column(String(64), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    candidate = relationship("Candidate", back_populates="notes")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "content": self.content,
            "type": self.type,
            "created_by": self.created_by,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
