"""
Pipeline stage state machine.

    Applied   -> Screening
    Screening -> Interview, Applied
    Interview -> Offer, Screening
    Offer     -> Hired, Interview
    Hired     (terminal)

Moving to the current stage is always allowed and still records a history
entry. Stage history is append-only.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Session, selectinload

from nexus_ats.core.exceptions import PipelineServiceError, ValidationError, service_errors
from nexus_ats.crud import candidate as crud_candidate
from nexus_ats.models.candidate import (
    PIPELINE_STAGES,
    VALID_STAGE_TRANSITIONS,
    Candidate,
    CandidateStageHistory,
    PipelineStage,
    utcnow,
)
from nexus_ats.services import candidate_validation
from nexus_ats.services.candidate_service import CandidateService
from nexus_ats.services.search_service import SearchService, parse_date

logger = logging.getLogger(__name__)


class PipelineService:
    """Service for moving candidates through pipeline stages."""

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def validate_stage_transition(from_stage: Any, to_stage: Any) -> bool:
        """Boolean form of the transition check."""
        try:
            candidate_validation.validate_stage_transition(from_stage, to_stage)
            return True
        except ValidationError:
            return False

    @staticmethod
    def get_valid_next_stages(current_stage: Any) -> List[str]:
        """Adjacent stages for a known stage, [] for anything else."""
        if not isinstance(current_stage, str) or current_stage not in PIPELINE_STAGES:
            return []
        return list(VALID_STAGE_TRANSITIONS[current_stage])

    def update_candidate_stage(
        self,
        candidate_id: Any,
        new_stage: Any,
        user_id: Optional[str] = None,
        notes: str = ""
    ) -> Dict[str, Any]:
        """
        Move a candidate to ``new_stage`` and append a history entry.

        Raises:
            PipelineServiceError: INVALID_ID (400), VALIDATION_ERROR (400) for an
                unknown stage or a move outside the stage graph,
                CANDIDATE_NOT_FOUND (404) or STAGE_UPDATE_ERROR (500)
        """
        with service_errors(PipelineServiceError, "STAGE_UPDATE_ERROR", "Failed to update candidate stage", self.db):
            candidate = CandidateService(self.db).get_active_candidate(candidate_id)

            current_stage = candidate.current_stage
            candidate_validation.validate_stage_transition(current_stage, new_stage)

            now = utcnow()
            if not crud_candidate.set_stage(self.db, candidate.id, current_stage, new_stage, now):
                raise PipelineServiceError(
                    "Candidate stage changed concurrently, please retry",
                    "STAGE_CONFLICT",
                    409
                )

            self.db.add(CandidateStageHistory(
                candidate_id=candidate.id,
                stage=new_stage,
                from_stage=current_stage,
                changed_by=user_id,
                notes=notes or "",
                timestamp=now,
            ))
            self.db.commit()
            self.db.refresh(candidate)

            logger.info(
                f"Moved candidate {candidate.id} from {current_stage} to {new_stage}",
                extra={
                    "event": "stage_changed",
                    "candidate_id": candidate.id,
                    "from_stage": current_stage,
                    "to_stage": new_stage,
                    "user_id": user_id,
                },
            )
            return candidate.to_dict()

    def get_stage_history(self, candidate_id: Any) -> List[Dict[str, Any]]:
        with service_errors(PipelineServiceError, "HISTORY_RETRIEVAL_ERROR", "Failed to retrieve stage history"):
            candidate = CandidateService(self.db).get_active_candidate(candidate_id)
            return [entry.to_dict() for entry in candidate.stage_history]

    def get_candidates_by_stage(self, filters: Optional[Dict[str, Any]] = None) -> Dict[str, Dict[str, Any]]:
        """
        Active candidates grouped by current stage. Every stage is present,
        with an empty list when nobody is in it.

        Args:
            filters: Search filters (a ``stage`` filter is ignored here) plus an
                optional ``search`` free-text query
        """
        with service_errors(PipelineServiceError, "STAGE_RETRIEVAL_ERROR", "Failed to retrieve candidates by stage"):
            filters = dict(filters or {})
            query = filters.pop("search", None)
            filters.pop("stage", None)

            base, _ = SearchService(self.db).filtered_query(query, filters)
            candidates = base.options(
                selectinload(Candidate.skill_entries),
                selectinload(Candidate.stage_history),
            ).order_by(Candidate.created_at.desc(), Candidate.id).all()

            grouped = {stage: {"candidates": [], "count": 0} for stage in PIPELINE_STAGES}
            for candidate in candidates:
                group = grouped.get(candidate.current_stage)
                if group is None:
                    continue
                group["candidates"].append({
                    "id": candidate.id,
                    "personal_info": candidate.personal_info(),
                    "professional_info": candidate.professional_info(),
                    "pipeline_info": candidate.pipeline_info(),
                    "metadata": {
                        "created_at": candidate.created_at,
                        "updated_at": candidate.updated_at,
                    },
                })
                group["count"] += 1

            return grouped

    def get_pipeline_stats(self, filters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Stage distribution plus conversion rate (share of candidates past
        Applied) and hire rate (share Hired), both as percentages.

        ``date_from`` / ``date_to`` bound the applied date.
        """
        with service_errors(PipelineServiceError, "STATS_ERROR", "Failed to retrieve pipeline statistics"):
            filters = filters or {}
            conditions = [Candidate.is_active.is_(True)]
            date_from = parse_date(filters.get("date_from"))
            date_to = parse_date(filters.get("date_to"))
            if date_from is not None:
                conditions.append(Candidate.applied_date >= date_from)
            if date_to is not None:
                conditions.append(Candidate.applied_date <= date_to)

            rows = self.db.query(Candidate.current_stage, func.count(Candidate.id)).filter(
                *conditions
            ).group_by(Candidate.current_stage).all()

            distribution = {stage: 0 for stage in PIPELINE_STAGES}
            for stage, count in rows:
                if stage in distribution:
                    distribution[stage] = count

            total, beyond_applied, hired = self.db.query(
                func.count(Candidate.id),
                func.coalesce(func.sum(case((Candidate.current_stage != PipelineStage.APPLIED.value, 1), else_=0)), 0),
                func.coalesce(func.sum(case((Candidate.current_stage == PipelineStage.HIRED.value, 1), else_=0)), 0),
            ).filter(*conditions).one()

            return {
                "stage_distribution": distribution,
                "total_candidates": total,
                "conversion_rate": (beyond_applied / total) * 100 if total else 0,
                "hire_rate": (hired / total) * 100 if total else 0,
            }

    def bulk_update_stages(self, updates: List[Dict[str, Any]], user_id: Optional[str] = None) -> Dict[str, List[Dict[str, Any]]]:
        """
        Apply each ``{candidate_id, new_stage, notes}`` independently; one
        failure does not stop the others.
        """
        with service_errors(PipelineServiceError, "BULK_UPDATE_ERROR", "Failed to bulk update candidate stages"):
            if not isinstance(updates, list):
                raise ValidationError("Updates must be a list", field="updates")

            results: Dict[str, List[Dict[str, Any]]] = {"successful": [], "failed": []}
            for update in updates:
                update = update if isinstance(update, dict) else {}
                candidate_id = update.get("candidate_id")
                new_stage = update.get("new_stage")
                try:
                    candidate = self.update_candidate_stage(candidate_id, new_stage, user_id, update.get("notes") or "")
                    results["successful"].append({
                        "candidate_id": candidate_id,
                        "new_stage": new_stage,
                        "result": candidate,
                    })
                except PipelineServiceError as e:
                    results["failed"].append({
                        "candidate_id": candidate_id,
                        "new_stage": new_stage,
                        "error": e.message,
                        "code": e.code,
                    })

            return results
