"""
Structured logging configuration for the Nexus ATS API.

Production logs are JSON documents (one per line). Audit events (candidate
created/updated/deleted, stage moved, document uploaded/deleted, job linked
or unlinked) are logged with ``extra={"event": ..., "candidate_id": ...}`` so
they can be queried by field; development logs append those fields as
``key=value`` pairs.
"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

SERVICE_NAME = "nexus-ats"

# Context fields services attach to audit events
AUDIT_FIELDS = (
    "event",
    "candidate_id",
    "document_id",
    "application_id",
    "job_id",
    "from_stage",
    "to_stage",
    "user_id",
)

NOISY_LOGGERS = {
    "sqlalchemy.engine": logging.WARNING,
    "urllib3": logging.WARNING,
    "boto3": logging.WARNING,
    "botocore": logging.WARNING,
    "s3transfer": logging.WARNING,
    "uvicorn.access": logging.INFO,
}


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter that stamps every record with timestamp, level, origin and
    service name. Audit fields passed via ``extra`` are kept as top-level keys.
    """

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record['timestamp'] = datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['service'] = SERVICE_NAME

        if record.levelno >= logging.WARNING:
            log_record['module'] = record.module
            log_record['function'] = record.funcName
            log_record['line'] = record.lineno


class AuditTextFormatter(logging.Formatter):
    """Human-readable formatter that appends any audit fields on the record."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = [
            f"{name}={getattr(record, name)}"
            for name in AUDIT_FIELDS
            if getattr(record, name, None) is not None
        ]
        return f"{line} [{' '.join(fields)}]" if fields else line


def build_formatter(json_logs: bool) -> logging.Formatter:
    if json_logs:
        return CustomJsonFormatter('%(timestamp)s %(level)s %(logger)s %(message)s')
    return AuditTextFormatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def setup_logging(log_level: str = "INFO", json_logs: bool = True) -> None:
    """
    Replace the root handlers with a single stdout handler.

    Args:
        log_level: Logging level name; unknown names fall back to INFO
        json_logs: JSON lines (production) or plain text (development)
    """
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(build_formatter(json_logs))

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    root_logger.addHandler(console_handler)

    for name, level in NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(level)
