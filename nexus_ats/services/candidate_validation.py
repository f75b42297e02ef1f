"""
Candidate data validation and normalization.

Pure functions, no I/O. Each ``validate_*`` function gathers every field
problem it can find and raises a single ValidationError carrying the full
list, so callers can report all of them at once.

Candidate input may be nested (``personal_info`` / ``professional_info``) or
flat (``first_name``, ``email``, ...); both shapes are accepted everywhere.
"""

import re
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from nexus_ats.core.exceptions import FieldError, ValidationError
from nexus_ats.models.candidate import (
    ALLOWED_DOCUMENT_MIME_TYPES,
    APPLICATION_SOURCES,
    DOCUMENT_TYPES,
    MAX_DOCUMENT_SIZE,
    NOTE_TYPES,
    PIPELINE_STAGES,
    VALID_STAGE_TRANSITIONS,
    PipelineStage,
    utcnow,
)

EMAIL_REGEX = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_REGEX = re.compile(r"^\+?[1-9]\d{0,15}$")

PERSONAL_FIELDS = ("first_name", "last_name", "email", "phone", "location")
PROFESSIONAL_FIELDS = ("current_role", "experience", "skills", "applied_for_role", "source")

MAX_SKILLS = 20
MAX_NOTE_LENGTH = 1000
MAX_ORIGINAL_NAME_LENGTH = 255


def is_valid_id(value: Any) -> bool:
    """True for a canonical UUID string, the form every aggregate id takes."""
    if not isinstance(value, str):
        return False
    try:
        return str(uuid.UUID(value)) == value.lower()
    except ValueError:
        return False


def _code(field: str, suffix: str) -> str:
    return f"{field.split('[')[0].upper()}_{suffix}"


def _label(field: str) -> str:
    return field.replace("_", " ").capitalize()


def _check_optional_string(errors: List[FieldError], data: Dict[str, Any], field: str, max_length: int) -> None:
    value = data.get(field)
    if not value:
        return
    if not isinstance(value, str):
        errors.append(FieldError(field, f"{_label(field)} must be a string", _code(field, "INVALID_TYPE")))
    elif len(value.strip()) > max_length:
        errors.append(FieldError(field, f"{_label(field)} cannot exceed {max_length} characters", _code(field, "TOO_LONG")))


def _check_required_string(errors: List[FieldError], data: Dict[str, Any], field: str, max_length: int) -> None:
    value = data.get(field)
    if value is None or value == "":
        errors.append(FieldError(field, f"{_label(field)} is required", _code(field, "REQUIRED")))
    elif not isinstance(value, str):
        errors.append(FieldError(field, f"{_label(field)} must be a string", _code(field, "INVALID_TYPE")))
    elif len(value.strip()) < 1:
        errors.append(FieldError(field, f"{_label(field)} cannot be empty", _code(field, "TOO_SHORT")))
    elif len(value.strip()) > max_length:
        errors.append(FieldError(field, f"{_label(field)} cannot exceed {max_length} characters", _code(field, "TOO_LONG")))


def personal_info_errors(personal_info: Dict[str, Any]) -> List[FieldError]:
    errors: List[FieldError] = []

    _check_required_string(errors, personal_info, "first_name", 50)
    _check_required_string(errors, personal_info, "last_name", 50)

    email = personal_info.get("email")
    if email is None or email == "":
        errors.append(FieldError("email", "Email is required", "EMAIL_REQUIRED"))
    elif not isinstance(email, str):
        errors.append(FieldError("email", "Email must be a string", "EMAIL_INVALID_TYPE"))
    elif not EMAIL_REGEX.match(email.strip()):
        errors.append(FieldError("email", "Email must be a valid email address", "EMAIL_INVALID_VALUE"))
    elif len(email.strip()) > 100:
        errors.append(FieldError("email", "Email cannot exceed 100 characters", "EMAIL_TOO_LONG"))

    phone = personal_info.get("phone")
    if phone:
        if not isinstance(phone, str):
            errors.append(FieldError("phone", "Phone must be a string", "PHONE_INVALID_TYPE"))
        elif not PHONE_REGEX.match(normalize_phone_number(phone)):
            errors.append(FieldError("phone", "Phone must be a valid phone number", "PHONE_INVALID_VALUE"))

    _check_optional_string(errors, personal_info, "location", 100)
    return errors


def professional_info_errors(professional_info: Dict[str, Any]) -> List[FieldError]:
    errors: List[FieldError] = []

    _check_optional_string(errors, professional_info, "current_role", 100)
    _check_optional_string(errors, professional_info, "experience", 50)

    skills = professional_info.get("skills")
    if skills:
        if not isinstance(skills, list):
            errors.append(FieldError("skills", "Skills must be a list", "SKILLS_INVALID_TYPE"))
        else:
            for index, skill in enumerate(skills):
                field = f"skills[{index}]"
                if not isinstance(skill, str):
                    errors.append(FieldError(field, "Each skill must be a string", "SKILLS_INVALID_TYPE"))
                elif len(skill.strip()) > 50:
                    errors.append(FieldError(field, "Each skill cannot exceed 50 characters", "SKILLS_TOO_LONG"))
            if len(skills) > MAX_SKILLS:
                errors.append(FieldError("skills", f"Cannot have more than {MAX_SKILLS} skills", "SKILLS_TOO_LONG"))

    _check_optional_string(errors, professional_info, "applied_for_role", 100)

    source = professional_info.get("source")
    if source and source not in APPLICATION_SOURCES:
        errors.append(FieldError(
            "source",
            f"Source must be one of: {', '.join(APPLICATION_SOURCES)}",
            "SOURCE_INVALID_VALUE",
        ))
    return errors


def validate_personal_info(personal_info: Dict[str, Any]) -> None:
    errors = personal_info_errors(personal_info or {})
    if errors:
        raise ValidationError("Personal information validation failed", errors)


def validate_professional_info(professional_info: Dict[str, Any]) -> None:
    errors = professional_info_errors(professional_info or {})
    if errors:
        raise ValidationError("Professional information validation failed", errors)


def validate_pipeline_stage(stage: Any) -> None:
    if not stage or not isinstance(stage, str):
        raise ValidationError(
            "Pipeline stage is required and must be a string",
            [FieldError("stage", "Pipeline stage is required and must be a string", "STAGE_REQUIRED")],
        )
    if stage not in PIPELINE_STAGES:
        message = f"Pipeline stage must be one of: {', '.join(PIPELINE_STAGES)}"
        raise ValidationError(message, [FieldError("stage", message, "STAGE_INVALID_VALUE")])


def validate_stage_transition(from_stage: Any, to_stage: Any) -> None:
    """
    Allow ``from_stage -> to_stage`` when both are known stages and either
    they are equal or the move is in VALID_STAGE_TRANSITIONS.
    """
    validate_pipeline_stage(from_stage)
    validate_pipeline_stage(to_stage)

    if from_stage == to_stage:
        return

    valid_transitions = VALID_STAGE_TRANSITIONS.get(from_stage, [])
    if to_stage not in valid_transitions:
        message = (
            f"Invalid stage transition from {from_stage} to {to_stage}. "
            f"Valid transitions: {', '.join(valid_transitions) or 'none'}"
        )
        raise ValidationError(message, [FieldError("stage_transition", message, "STAGE_TRANSITION_INVALID_VALUE")])


def validate_document_metadata(
    document_data: Dict[str, Any],
    allowed_mime_types=ALLOWED_DOCUMENT_MIME_TYPES,
    max_size: int = MAX_DOCUMENT_SIZE,
) -> None:
    """
    Check a document record before it is attached to a candidate.

    The defaults are the PDF/DOC/DOCX allow-list and the 10MB bound; the
    document service passes its configured limits instead.
    """
    errors: List[FieldError] = []

    for field in ("filename", "original_name"):
        value = document_data.get(field)
        if not value or not isinstance(value, str):
            errors.append(FieldError(field, f"{_label(field)} is required and must be a string", _code(field, "REQUIRED")))

    mime_type = document_data.get("mime_type")
    if not mime_type or not isinstance(mime_type, str):
        errors.append(FieldError("mime_type", "MIME type is required and must be a string", "MIME_TYPE_REQUIRED"))
    elif mime_type not in allowed_mime_types:
        errors.append(FieldError("mime_type", "Only PDF, DOC, and DOCX files are allowed", "MIME_TYPE_INVALID_VALUE"))

    size = document_data.get("size")
    if isinstance(size, bool) or not isinstance(size, int) or size <= 0:
        errors.append(FieldError("size", "Size must be a positive number", "SIZE_INVALID_VALUE"))
    elif size > max_size:
        errors.append(FieldError("size", f"File size cannot exceed {max_size} bytes", "SIZE_TOO_LONG"))

    document_type = document_data.get("document_type")
    if document_type and document_type not in DOCUMENT_TYPES:
        errors.append(FieldError(
            "document_type",
            f"Document type must be one of: {', '.join(DOCUMENT_TYPES)}",
            "DOCUMENT_TYPE_INVALID_VALUE",
        ))

    if errors:
        raise ValidationError("Document metadata validation failed", errors)


def validate_document_upload(file_data: Any) -> None:
    """Check the shape of an upload payload: name, type, size and bytes."""
    if not isinstance(file_data, dict):
        raise ValidationError("File data is required and must be a mapping", field="file_data")

    errors: List[FieldError] = []

    original_name = file_data.get("original_name")
    if not original_name or not isinstance(original_name, str):
        errors.append(FieldError("original_name", "Original filename is required and must be a string", "ORIGINAL_NAME_REQUIRED"))
    elif len(original_name.strip()) < 1:
        errors.append(FieldError("original_name", "Original filename cannot be empty", "ORIGINAL_NAME_TOO_SHORT"))
    elif len(original_name) > MAX_ORIGINAL_NAME_LENGTH:
        errors.append(FieldError("original_name", "Original filename cannot exceed 255 characters", "ORIGINAL_NAME_TOO_LONG"))

    mime_type = file_data.get("mime_type")
    if not mime_type or not isinstance(mime_type, str):
        errors.append(FieldError("mime_type", "MIME type is required and must be a string", "MIME_TYPE_REQUIRED"))

    size = file_data.get("size")
    size_valid = not isinstance(size, bool) and isinstance(size, int) and size > 0
    if not size_valid:
        errors.append(FieldError("size", "File size must be a positive number", "SIZE_INVALID_VALUE"))

    buffer = file_data.get("buffer")
    if not isinstance(buffer, (bytes, bytearray)) or not buffer:
        errors.append(FieldError("buffer", "File buffer is required and must be bytes", "BUFFER_REQUIRED"))
    elif size_valid and len(buffer) != size:
        errors.append(FieldError("buffer", "Buffer size does not match declared file size", "BUFFER_INVALID_VALUE"))

    if errors:
        raise ValidationError("Document upload validation failed", errors)


def validate_document_type(document_type: Any) -> None:
    if not document_type or not isinstance(document_type, str):
        raise ValidationError(
            "Document type is required and must be a string",
            [FieldError("document_type", "Document type is required and must be a string", "DOCUMENT_TYPE_REQUIRED")],
        )
    if document_type not in DOCUMENT_TYPES:
        message = f"Document type must be one of: {', '.join(DOCUMENT_TYPES)}"
        raise ValidationError(message, [FieldError("document_type", message, "DOCUMENT_TYPE_INVALID_VALUE")])


def validate_note_data(note_data: Dict[str, Any]) -> None:
    errors: List[FieldError] = []

    content = note_data.get("content")
    if not content or not isinstance(content, str):
        errors.append(FieldError("content", "Note content is required and must be a string", "CONTENT_REQUIRED"))
    elif len(content.strip()) < 1:
        errors.append(FieldError("content", "Note content cannot be empty", "CONTENT_TOO_SHORT"))
    elif len(content.strip()) > MAX_NOTE_LENGTH:
        errors.append(FieldError("content", f"Note content cannot exceed {MAX_NOTE_LENGTH} characters", "CONTENT_TOO_LONG"))

    note_type = note_data.get("type")
    if note_type and note_type not in NOTE_TYPES:
        errors.append(FieldError(
            "type",
            f"Note type must be one of: {', '.join(NOTE_TYPES)}",
            "TYPE_INVALID_VALUE",
        ))

    if errors:
        raise ValidationError("Note data validation failed", errors)


def extract_section(data: Dict[str, Any], section: str, fields) -> Dict[str, Any]:
    """
    Merge a nested section (e.g. ``personal_info``) over its flat legacy keys.
    Only keys actually present in the input are returned.
    """
    values = {field: data[field] for field in fields if field in data}
    nested = data.get(section)
    if isinstance(nested, dict):
        values.update({field: nested[field] for field in fields if field in nested})
    return values


def _requested_stage(data: Dict[str, Any]) -> Optional[Any]:
    pipeline_info = data.get("pipeline_info")
    if isinstance(pipeline_info, dict) and pipeline_info.get("current_stage"):
        return pipeline_info["current_stage"]
    return data.get("current_stage")


def validate_candidate_data(candidate_data: Any) -> None:
    """Validate a full candidate payload for creation, reporting every error."""
    if not isinstance(candidate_data, dict):
        raise ValidationError("Candidate data is required and must be an object", field="candidate")

    errors = personal_info_errors(extract_section(candidate_data, "personal_info", PERSONAL_FIELDS))
    errors.extend(professional_info_errors(extract_section(candidate_data, "professional_info", PROFESSIONAL_FIELDS)))

    stage = _requested_stage(candidate_data)
    if stage:
        try:
            validate_pipeline_stage(stage)
        except ValidationError as exc:
            errors.extend(exc.errors)

    if errors:
        raise ValidationError("Candidate validation failed", errors)


def normalize_phone_number(phone: Any) -> str:
    """
    Reduce a phone number to ``+`` and digits, adding a North American
    country code to bare 10/11 digit numbers. Idempotent.
    """
    if not phone or not isinstance(phone, str):
        return ""

    normalized = re.sub(r"[^\d+]", "", phone)
    if not re.search(r"\d", normalized):
        return ""

    if normalized.startswith("+1"):
        return normalized
    if normalized.startswith("1") and len(normalized) == 11:
        return "+" + normalized
    if not normalized.startswith("+") and len(normalized) == 10:
        return "+1" + normalized

    return normalized


def sanitize_string(value: Any) -> str:
    """Trim and collapse internal whitespace runs to single spaces."""
    if not isinstance(value, str):
        return ""
    return re.sub(r"\s+", " ", value.strip())


def normalize_email(email: Any) -> str:
    if not isinstance(email, str):
        return ""
    return email.strip().lower()


def normalize_skills(skills: Any) -> List[str]:
    if not isinstance(skills, list):
        return []
    return [skill for skill in (sanitize_string(s) for s in skills) if skill]


def _to_int(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return 0


def validate_pagination_params(params: Optional[Dict[str, Any]] = None) -> Dict[str, int]:
    """Clamp page to >= 1 and limit to [1, 100] (default 20)."""
    params = params or {}
    page = max(1, _to_int(params.get("page")) or 1)
    limit = min(100, max(1, _to_int(params.get("limit")) or 20))
    return {"page": page, "limit": limit, "skip": (page - 1) * limit}


def normalize_candidate_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    """
    Normalize the flat candidate fields that are present, leaving absent
    fields absent. Used for both creation and partial updates.
    """
    normalized: Dict[str, Any] = {}
    for field, value in fields.items():
        if field == "email":
            normalized[field] = normalize_email(value)
        elif field == "phone":
            normalized[field] = normalize_phone_number(value) or None
        elif field == "skills":
            normalized[field] = normalize_skills(value)
        elif field == "source":
            normalized[field] = value or None
        elif field in ("first_name", "last_name"):
            normalized[field] = sanitize_string(value)
        else:
            normalized[field] = sanitize_string(value) or None
    return normalized


def create_candidate_document(data: Dict[str, Any], created_by: Optional[str] = None) -> Dict[str, Any]:
    """
    Build a fresh candidate aggregate from flat or nested input.

    The stage defaults to Applied and the history is seeded with one entry;
    every list section starts empty.
    """
    now = utcnow()
    personal = normalize_candidate_fields(extract_section(data, "personal_info", PERSONAL_FIELDS))
    professional = normalize_candidate_fields(extract_section(data, "professional_info", PROFESSIONAL_FIELDS))
    stage = _requested_stage(data) or PipelineStage.APPLIED.value

    pipeline_info = data.get("pipeline_info") if isinstance(data.get("pipeline_info"), dict) else {}
    applied_date = pipeline_info.get("applied_date") or data.get("applied_date")
    if not isinstance(applied_date, datetime):
        applied_date = now
    elif applied_date.tzinfo is not None:
        applied_date = applied_date.astimezone(timezone.utc).replace(tzinfo=None)

    return {
        "personal_info": {
            "first_name": personal.get("first_name", ""),
            "last_name": personal.get("last_name", ""),
            "email": personal.get("email", ""),
            "phone": personal.get("phone"),
            "location": personal.get("location"),
        },
        "professional_info": {
            "current_role": professional.get("current_role"),
            "experience": professional.get("experience"),
            "skills": professional.get("skills", []),
            "applied_for_role": professional.get("applied_for_role"),
            "source": professional.get("source"),
        },
        "pipeline_info": {
            "current_stage": stage,
            "stage_history": [
                {"stage": stage, "from_stage": None, "timestamp": now, "changed_by": created_by, "notes": ""}
            ],
            "applied_date": applied_date,
        },
        "documents": [],
        "job_applications": [],
        "notes": [],
        "metadata": {
            "created_at": now,
            "updated_at": now,
            "is_active": True,
            "created_by": created_by,
        },
    }
