"""
Typed errors raised by the candidate services and the handlers that turn them
into the API's JSON envelope.

Every service method either returns plain data or raises a ServiceError
subclass carrying a machine-readable ``code`` and an HTTP-equivalent
``status_code``. Validation failures collect every field problem before
raising, so a form can show all of them in one render.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, asdict
from typing import Any, Dict, Iterator, List, Optional, Type

from fastapi import Request, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


@dataclass
class FieldError:
    """A single field-level validation problem."""
    field: str
    message: str
    code: str = "VALIDATION_ERROR"

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


class ValidationError(Exception):
    """Raised by the validation layer with every field error it found."""

    def __init__(self, message: str, errors: Optional[List[FieldError]] = None, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.errors = list(errors or [])
        if field and not self.errors:
            self.errors.append(FieldError(field=field, message=message))

    @property
    def fields(self) -> List[str]:
        return [error.field for error in self.errors]


class ServiceError(Exception):
    """Base exception for service layer errors."""

    default_code = "SERVICE_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: int = 500,
        errors: Optional[List[FieldError]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.status_code = status_code
        self.errors = list(errors or [])

    @classmethod
    def from_validation(cls, exc: ValidationError) -> "ServiceError":
        return cls(exc.message, "VALIDATION_ERROR", 400, errors=exc.errors)

    def to_dict(self) -> Dict[str, Any]:
        error: Dict[str, Any] = {"message": self.message, "code": self.code}
        if self.errors:
            error["details"] = [e.to_dict() for e in self.errors]
        return error


class CandidateServiceError(ServiceError):
    default_code = "CANDIDATE_SERVICE_ERROR"


class PipelineServiceError(ServiceError):
    default_code = "PIPELINE_SERVICE_ERROR"


class DocumentServiceError(ServiceError):
    default_code = "DOCUMENT_SERVICE_ERROR"


class SearchServiceError(ServiceError):
    default_code = "SEARCH_SERVICE_ERROR"


class JobApplicationServiceError(ServiceError):
    default_code = "JOB_APPLICATION_SERVICE_ERROR"


@contextmanager
def service_errors(error_cls: Type[ServiceError], code: str, message: str, db=None) -> Iterator[None]:
    """
    Run a service operation under the propagation policy: the service's own
    errors pass through, errors from another service are re-raised in this
    service's family, ValidationError becomes VALIDATION_ERROR (400) and
    anything else is logged and surfaced as ``code`` (500).

    When ``db`` is given the session is rolled back on any failure.
    """
    try:
        yield
    except Exception as exc:
        if db is not None:
            db.rollback()
        if isinstance(exc, error_cls):
            raise
        if isinstance(exc, ServiceError):
            raise error_cls(exc.message, exc.code, exc.status_code, exc.errors) from exc
        if isinstance(exc, ValidationError):
            raise error_cls.from_validation(exc) from exc
        logger.error(f"{message}: {exc}", exc_info=True)
        raise error_cls(message, code, 500) from exc


async def service_exception_handler(
    request: Request,
    exc: ServiceError
) -> JSONResponse:
    """
    Handle service layer exceptions.

    Client errors are returned as raised; server errors keep their code but
    never expose internal detail.
    """
    if exc.status_code >= 500:
        logger.error(f"Service error in {request.url.path}: {exc.code} {exc.message}")
    else:
        logger.info(f"Rejected request to {request.url.path}: {exc.code} {exc.message}")

    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.to_dict()}
    )


async def http_exception_handler(
    request: Request,
    exc: HTTPException
) -> JSONResponse:
    """Handle FastAPI HTTP exceptions with consistent format."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": {"message": str(exc.detail), "code": "HTTP_ERROR"}
        }
    )


async def request_validation_exception_handler(
    request: Request,
    exc: RequestValidationError
) -> JSONResponse:
    """Report malformed request bodies/params in the same envelope."""
    details = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg", "Invalid value"),
            "code": "VALIDATION_ERROR",
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "error": {"message": "Request validation failed", "code": "VALIDATION_ERROR", "details": details}
        }
    )


async def general_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error in {request.url.path}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": {"message": "Internal server error", "code": "SERVER_ERROR"}
        }
    )
