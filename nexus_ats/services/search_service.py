"""
Candidate search: structured filters, free-text relevance, typeahead
suggestions and aggregate statistics over active candidates.

Filters are permissive: a missing or malformed value for one key simply
produces no clause for that key and never affects the others.
"""

import functools
import logging
import operator
from datetime import date, datetime, time, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import and_, case, func, or_, select, union_all
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.sql.elements import ColumnElement

from nexus_ats.core.exceptions import SearchServiceError
from nexus_ats.models.candidate import (
    APPLICATION_SOURCES,
    PIPELINE_STAGES,
    Candidate,
    CandidateSkill,
    utcnow,
)
from nexus_ats.services.candidate_validation import validate_pagination_params

logger = logging.getLogger(__name__)

SUGGESTION_FIELDS = ("skills", "location", "role")
MAX_SEARCH_TERMS = 10

# Sortable fields and the columns behind them
SORT_FIELDS = {
    "name": ["first_name", "last_name"],
    "applied_date": ["applied_date"],
    "created_at": ["created_at"],
    "updated_at": ["updated_at"],
    "stage": ["current_stage"],
}

SORT_COLUMNS = {
    "first_name": Candidate.first_name,
    "last_name": Candidate.last_name,
    "applied_date": Candidate.applied_date,
    "created_at": Candidate.created_at,
    "updated_at": Candidate.updated_at,
    "current_stage": Candidate.current_stage,
}

# (column, weight) pairs scored by the free-text search
TEXT_SEARCH_FIELDS = [
    (Candidate.first_name, 3),
    (Candidate.last_name, 3),
    (Candidate.email, 2),
    (Candidate.current_role, 2),
    (Candidate.applied_for_role, 2),
    (Candidate.location, 1),
    (Candidate.experience, 1),
]
SKILL_WEIGHT = 3


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so user input matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def contains_pattern(value: str) -> str:
    return f"%{escape_like(value)}%"


def parse_date(value: Any) -> Optional[datetime]:
    """Accept datetime, date or ISO-8601 strings; anything else is None."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, str) and value.strip():
        try:
            return parse_date(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))
        except ValueError:
            return None
    return None


def build_filters(filters: Optional[Dict[str, Any]]) -> Dict[str, ColumnElement]:
    """
    Translate a structured filter mapping into SQL clauses, keyed by the
    filter name that produced them. ``build_filters({}) == {}``.
    """
    clauses: Dict[str, ColumnElement] = {}
    if not isinstance(filters, dict):
        return clauses

    stage = filters.get("stage")
    if isinstance(stage, str) and stage in PIPELINE_STAGES:
        clauses["stage"] = Candidate.current_stage == stage

    skills = filters.get("skills")
    if isinstance(skills, list):
        skill_terms = [s.strip() for s in skills if isinstance(s, str) and s.strip()]
        if skill_terms:
            # Any-of, case-insensitive substring match
            clauses["skills"] = Candidate.skill_entries.any(
                or_(*[CandidateSkill.name.ilike(contains_pattern(s), escape="\\") for s in skill_terms])
            )

    location = filters.get("location")
    if isinstance(location, str) and location.strip():
        clauses["location"] = Candidate.location.ilike(contains_pattern(location.strip()), escape="\\")

    experience = filters.get("experience")
    if isinstance(experience, str) and experience.strip():
        clauses["experience"] = Candidate.experience.ilike(contains_pattern(experience.strip()), escape="\\")

    source = filters.get("source")
    if isinstance(source, str) and source in APPLICATION_SOURCES:
        clauses["source"] = Candidate.source == source

    date_from = parse_date(filters.get("applied_date_from"))
    date_to = parse_date(filters.get("applied_date_to"))
    bounds = []
    if date_from is not None:
        bounds.append(Candidate.applied_date >= date_from)
    if date_to is not None:
        bounds.append(Candidate.applied_date <= date_to)
    if bounds:
        clauses["applied_date"] = and_(*bounds)

    return clauses


def build_search_score(query: Optional[str]) -> Optional[ColumnElement]:
    """
    Relevance expression for a free-text query, or None for an empty query.

    Each whitespace-separated term scores its field weight for every field it
    occurs in (case-insensitive); a candidate matches when the score is > 0.
    """
    if not isinstance(query, str) or not query.strip():
        return None

    parts = []
    for term in query.split()[:MAX_SEARCH_TERMS]:
        pattern = contains_pattern(term)
        for column, weight in TEXT_SEARCH_FIELDS:
            parts.append(case((column.ilike(pattern, escape="\\"), weight), else_=0))
        skill_hit = Candidate.skill_entries.any(CandidateSkill.name.ilike(pattern, escape="\\"))
        parts.append(case((skill_hit, SKILL_WEIGHT), else_=0))

    return functools.reduce(operator.add, parts)


def build_sort_spec(sort_options: Optional[Dict[str, Any]] = None, query: Optional[str] = None) -> List[Tuple[str, int]]:
    """
    Ordered (key, direction) pairs: relevance first when searching, then the
    requested field; newest-created-first when there is neither.
    """
    spec: List[Tuple[str, int]] = []
    has_query = isinstance(query, str) and bool(query.strip())
    if has_query:
        spec.append(("search_score", -1))

    sort_options = sort_options if isinstance(sort_options, dict) else {}
    field = sort_options.get("field")
    if field:
        direction = -1 if sort_options.get("direction") == "desc" else 1
        columns = SORT_FIELDS.get(field)
        if columns:
            spec.extend((column, direction) for column in columns)
        else:
            spec.append(("created_at", -1))
    elif not has_query:
        spec.append(("created_at", -1))

    return spec


def order_by_clauses(spec: List[Tuple[str, int]], score: Optional[ColumnElement] = None) -> list:
    clauses = []
    for key, direction in spec:
        expression = score if key == "search_score" else SORT_COLUMNS.get(key)
        if expression is None:
            continue
        clauses.append(expression.desc() if direction < 0 else expression.asc())
    # Stable pagination
    clauses.append(Candidate.id.asc())
    return clauses


def paginate(page: int, limit: int, total: int) -> Dict[str, Any]:
    pages = (total + limit - 1) // limit if limit else 0
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": pages,
        "has_next": page * limit < total,
        "has_prev": page > 1,
    }


def project_search_result(candidate: Candidate, score: Optional[int] = None) -> Dict[str, Any]:
    """Search view of a candidate: no documents, applications or notes."""
    return {
        "id": candidate.id,
        "personal_info": candidate.personal_info(),
        "professional_info": candidate.professional_info(),
        "pipeline_info": candidate.pipeline_info(),
        "metadata": {
            "created_at": candidate.created_at,
            "updated_at": candidate.updated_at,
        },
        "search_score": int(score) if score is not None else 0,
    }


class SearchService:
    """Service for searching and aggregating active candidates."""

    def __init__(self, db: Session, default_limit: int = 20, max_limit: int = 100):
        self.db = db
        self.default_limit = default_limit
        self.max_limit = max_limit

    build_filters = staticmethod(build_filters)
    build_sort_spec = staticmethod(build_sort_spec)

    def filtered_query(self, query: Optional[str], filters: Optional[Dict[str, Any]]):
        """Active candidates matching the text query and every valid filter."""
        score = build_search_score(query)
        base = self.db.query(Candidate).filter(Candidate.is_active.is_(True))
        if score is not None:
            base = base.filter(score > 0)
        for clause in build_filters(filters or {}).values():
            base = base.filter(clause)
        return base, score

    def search_candidates(self, query: Optional[str], options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Full-text search combined with structured filters.

        Args:
            query: Free-text query (may be empty)
            options: ``page``, ``limit``, ``filters`` and ``sort`` ({field, direction})

        Returns:
            Results page, pagination block (total from a separate count query)
            and the echoed query/filters
        """
        options = options or {}
        filters = options.get("filters") or {}

        try:
            pagination = validate_pagination_params({
                "page": options.get("page"),
                "limit": options.get("limit") or self.default_limit,
            })
            page, limit, skip = pagination["page"], min(pagination["limit"], self.max_limit), pagination["skip"]

            base, score = self.filtered_query(query, filters)
            total = base.order_by(None).count()

            page_query = base.options(
                selectinload(Candidate.skill_entries),
                selectinload(Candidate.stage_history),
            )
            if score is not None:
                page_query = page_query.add_columns(score.label("search_score"))
            page_query = page_query.order_by(*order_by_clauses(build_sort_spec(options.get("sort"), query), score))
            rows = page_query.offset(skip).limit(limit).all()

            if score is not None:
                results = [project_search_result(candidate, row_score) for candidate, row_score in rows]
            else:
                results = [project_search_result(candidate) for candidate in rows]

            return {
                "results": results,
                "pagination": paginate(page, limit, total),
                "query": query or "",
                "filters": filters,
            }

        except SearchServiceError:
            raise
        except Exception as e:
            logger.error(f"Search error: {e}")
            raise SearchServiceError("Failed to search candidates", "SEARCH_ERROR", 500)

    def get_total_count(self, query: Optional[str], filters: Optional[Dict[str, Any]] = None) -> int:
        try:
            base, _ = self.filtered_query(query, filters)
            return base.order_by(None).count()
        except Exception as e:
            logger.error(f"Count error: {e}")
            raise SearchServiceError("Failed to count candidates", "COUNT_ERROR", 500)

    def get_search_suggestions(self, input_text: Any, field: str = "skills", limit: int = 10) -> List[str]:
        """
        Typeahead values for skills, location or role, most frequent first
        then alphabetical. Short input or an unknown field yields [].
        """
        if not isinstance(input_text, str) or len(input_text.strip()) < 2:
            return []
        if field not in SUGGESTION_FIELDS:
            return []

        try:
            limit = int(limit or 10)
        except (TypeError, ValueError, OverflowError):
            limit = 10
        limit = max(1, min(limit, 50))
        pattern = contains_pattern(input_text.strip())

        try:
            if field == "skills":
                value = CandidateSkill.name
                stmt = (
                    select(value.label("value"), func.count().label("count"))
                    .join(Candidate, Candidate.id == CandidateSkill.candidate_id)
                    .where(Candidate.is_active.is_(True), value.ilike(pattern, escape="\\"))
                    .group_by(value)
                )
            elif field == "location":
                value = Candidate.location
                stmt = (
                    select(value.label("value"), func.count().label("count"))
                    .where(Candidate.is_active.is_(True), value.ilike(pattern, escape="\\"))
                    .group_by(value)
                )
            else:
                roles = union_all(
                    select(Candidate.current_role.label("value")).where(
                        Candidate.is_active.is_(True), Candidate.current_role.ilike(pattern, escape="\\")
                    ),
                    select(Candidate.applied_for_role.label("value")).where(
                        Candidate.is_active.is_(True), Candidate.applied_for_role.ilike(pattern, escape="\\")
                    ),
                ).subquery()
                value = roles.c.value
                stmt = select(value, func.count().label("count")).group_by(value)

            stmt = stmt.order_by(func.count().desc(), value.asc()).limit(limit)
            rows = self.db.execute(stmt).all()
            return [row[0] for row in rows if row[0]]

        except Exception as e:
            logger.error(f"Suggestions error: {e}")
            raise SearchServiceError("Failed to get search suggestions", "SUGGESTIONS_ERROR", 500)

    def get_search_stats(self, query: Optional[str] = None, filters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Totals and stage/source distributions for the candidates a search
        would return, plus the average days since they applied.
        """
        try:
            base, _ = self.filtered_query(query, filters)
            matching = base.with_entities(Candidate.id).order_by(None).subquery()

            def distribution(column) -> Dict[str, int]:
                rows = self.db.query(column, func.count(Candidate.id)).filter(
                    Candidate.id.in_(select(matching.c.id))
                ).group_by(column).all()
                return {key: count for key, count in rows if key}

            applied_dates = [
                row[0] for row in self.db.query(Candidate.applied_date).filter(
                    Candidate.id.in_(select(matching.c.id))
                ).all()
            ]

            if not applied_dates:
                return {
                    "total_candidates": 0,
                    "stage_distribution": {},
                    "source_distribution": {},
                    "avg_days_since_applied": 0,
                }

            now = utcnow()
            avg_days = sum((now - applied).total_seconds() for applied in applied_dates) / len(applied_dates) / 86400

            return {
                "total_candidates": len(applied_dates),
                "stage_distribution": distribution(Candidate.current_stage),
                "source_distribution": distribution(Candidate.source),
                "avg_days_since_applied": round(avg_days, 2),
            }

        except Exception as e:
            logger.error(f"Search stats error: {e}")
            raise SearchServiceError("Failed to get search statistics", "STATS_ERROR", 500)
