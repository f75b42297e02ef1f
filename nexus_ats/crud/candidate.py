"""
CRUD operations for the Candidate aggregate.

Thin persistence layer used by the candidate services: active-record
lookups, duplicate-email checks, insertion of a freshly built aggregate,
targeted column updates, and collection statistics/health.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import func, inspect, select, text
from sqlalchemy.orm import Session

from nexus_ats.models.candidate import (
    PIPELINE_STAGES,
    Candidate,
    CandidateJobApplication,
    CandidateStageHistory,
)

logger = logging.getLogger(__name__)

CANDIDATES_TABLE = Candidate.__tablename__


def get_active(db: Session, candidate_id: str) -> Optional[Candidate]:
    """
    Retrieve an active (not soft-deleted) candidate by id.

    Returns:
        Candidate instance if found and active, None otherwise
    """
    return db.query(Candidate).filter(
        Candidate.id == candidate_id,
        Candidate.is_active.is_(True)
    ).first()


def application_exists(db: Session, candidate_id: str, job_id: str) -> bool:
    """Check whether the candidate is already linked to the job."""
    return db.query(CandidateJobApplication.id).filter(
        CandidateJobApplication.candidate_id == candidate_id,
        CandidateJobApplication.job_id == job_id
    ).first() is not None


def get_active_by_email(db: Session, email: str) -> Optional[Candidate]:
    return db.query(Candidate).filter(
        Candidate.email == email.strip().lower(),
        Candidate.is_active.is_(True)
    ).first()


def email_exists(db: Session, email: str, exclude_id: Optional[str] = None) -> bool:
    """
    Check whether an active candidate already uses this email.

    Args:
        db: Database session
        email: Email to check (normalized before lookup)
        exclude_id: Candidate id to ignore (the record being updated)

    Returns:
        True if another active candidate has the email
    """
    query = db.query(Candidate.id).filter(
        Candidate.email == email.strip().lower(),
        Candidate.is_active.is_(True)
    )
    if exclude_id:
        query = query.filter(Candidate.id != exclude_id)

    return query.first() is not None


def insert(db: Session, document: Dict[str, Any]) -> Candidate:
    """
    Persist an aggregate built by ``create_candidate_document``.

    The caller owns the transaction: IntegrityError from the unique email
    index surfaces at commit.
    """
    personal = document["personal_info"]
    professional = document["professional_info"]
    pipeline = document["pipeline_info"]
    metadata = document["metadata"]

    candidate = Candidate(
        first_name=personal["first_name"],
        last_name=personal["last_name"],
        email=personal["email"],
        phone=personal.get("phone"),
        location=personal.get("location"),
        current_role=professional.get("current_role"),
        experience=professional.get("experience"),
        applied_for_role=professional.get("applied_for_role"),
        source=professional.get("source"),
        current_stage=pipeline["current_stage"],
        applied_date=pipeline["applied_date"],
        is_active=metadata["is_active"],
        created_at=metadata["created_at"],
        updated_at=metadata["updated_at"],
        created_by=metadata.get("created_by"),
    )
    candidate.skills = professional.get("skills", [])
    candidate.stage_history = [
        CandidateStageHistory(
            stage=entry["stage"],
            from_stage=entry.get("from_stage"),
            changed_by=entry.get("changed_by"),
            notes=entry.get("notes") or "",
            timestamp=entry["timestamp"],
        )
        for entry in pipeline["stage_history"]
    ]

    db.add(candidate)
    db.flush()
    return candidate


def update_fields(db: Session, candidate_id: str, values: Dict[str, Any]) -> int:
    """
    Apply a column-level partial update to an active candidate.

    Only the given columns are written, so concurrent updates to other
    fields of the same candidate are not lost.

    Returns:
        Number of rows updated (0 if the candidate is missing or inactive)
    """
    return db.query(Candidate).filter(
        Candidate.id == candidate_id,
        Candidate.is_active.is_(True)
    ).update(values, synchronize_session="fetch")


def touch(db: Session, candidate_id: str, when: datetime) -> int:
    """Bump updated_at after a child-table write."""
    return update_fields(db, candidate_id, {"updated_at": when})


def set_stage(db: Session, candidate_id: str, from_stage: str, to_stage: str, when: datetime) -> int:
    """
    Move an active candidate from ``from_stage`` to ``to_stage``.

    The update only matches while the stored stage is still ``from_stage``,
    so two concurrent transitions cannot both apply against the same
    starting stage.

    Returns:
        Number of rows updated
    """
    return db.query(Candidate).filter(
        Candidate.id == candidate_id,
        Candidate.is_active.is_(True),
        Candidate.current_stage == from_stage
    ).update({"current_stage": to_stage, "updated_at": when}, synchronize_session="fetch")


def get_stats(db: Session) -> Dict[str, Any]:
    """
    Collection statistics: total rows, active rows, active rows per stage.
    """
    total = db.query(func.count(Candidate.id)).scalar() or 0
    active = db.query(func.count(Candidate.id)).filter(Candidate.is_active.is_(True)).scalar() or 0

    by_stage_rows = db.query(Candidate.current_stage, func.count(Candidate.id)).filter(
        Candidate.is_active.is_(True)
    ).group_by(Candidate.current_stage).all()

    by_stage = {stage: 0 for stage in PIPELINE_STAGES}
    by_stage.update({stage: count for stage, count in by_stage_rows})

    return {"total": total, "active": active, "by_stage": by_stage}


def perform_health_check(db: Session) -> Dict[str, Any]:
    """
    Check the candidates table is reachable and report its index count.
    """
    try:
        db.execute(select(Candidate.id).limit(1)).first()
        index_count = len(inspect(db.get_bind()).get_indexes(CANDIDATES_TABLE))
        return {
            "status": "healthy",
            "table": CANDIDATES_TABLE,
            "index_count": index_count,
            "can_query": True,
            "timestamp": datetime.utcnow().isoformat() + "Z",
        }
    except Exception as e:
        logger.error(f"Candidates table health check failed: {e}")
        return {
            "status": "unhealthy",
            "table": CANDIDATES_TABLE,
            "error": "Candidates table is not reachable",
            "timestamp": datetime.utcnow().isoformat() + "Z",
        }


def ensure_indexes(db: Session) -> None:
    """
    Create the candidate tables and indexes when they are missing.

    Production schemas come from Alembic; this is for local SQLite setups.
    """
    from nexus_ats.core.database import Base

    Base.metadata.create_all(bind=db.get_bind())
    db.execute(text("SELECT 1"))
