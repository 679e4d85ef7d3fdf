"""
Structured logging for the bridge.
Provides JSON-formatted logs with trace ids and PII redaction.
"""

import json
import logging
import re
import uuid
from datetime import UTC, datetime

from fastapi import Request

from shiftbridge.config import settings

MAX_LOG_BODY = 2048

_EMAIL = re.compile(r"([A-Za-z0-9._%+-])[A-Za-z0-9._%+-]*@([A-Za-z0-9.-]+\.[A-Za-z]{2,})")
_DIGIT_RUN = re.compile(r"\+?\d[\d\s().-]{6,}\d")
_SSN_FIELD = re.compile(r'("ssnLast4"\s*:\s*")(\d{0,4})(")', re.IGNORECASE)


def _mask_digits(match: re.Match) -> str:
    text = match.group(0)
    return re.sub(r"\d", "x", text[:-2]) + text[-2:]


def _mask_ssn(match: re.Match) -> str:
    digits = match.group(2)
    return match.group(1) + ("***" + digits[-1:] if digits else "***") + match.group(3)


def mask_pii(text: str | None) -> str:
    """Mask emails, phone-like digit runs and ssnLast4 values in free text."""
    if not text:
        return ""
    masked = _EMAIL.sub(r"\1***@\2", str(text))
    masked = _DIGIT_RUN.sub(_mask_digits, masked)
    return _SSN_FIELD.sub(_mask_ssn, masked)


def preview(payload: object) -> str:
    """Masked, truncated JSON preview of a payload for log lines."""
    try:
        text = json.dumps(payload, default=str)
    except (TypeError, ValueError):
        text = str(payload)
    return mask_pii(text)[:MAX_LOG_BODY]


class PIIRedactor:
    """Redacts PII from log messages when enabled."""

    def __init__(self, enabled: bool = True):
        self.enabled = enabled

    def redact(self, message: str) -> str:
        if not self.enabled:
            return message
        return mask_pii(message)


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging with PII redaction."""

    optional_fields = (
        "route",
        "method",
        "status",
        "latency_ms",
        "trace_id",
        "employee_number",
        "dedupe_key",
        "window",
        "upstream",
        "error_type",
    )

    def __init__(self, redact_pii: bool = True):
        super().__init__()
        self.redactor = PIIRedactor(redact_pii)

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "ts": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "service": getattr(record, "service", "api"),
            "message": self.redactor.redact(record.getMessage()),
            "logger": record.name,
        }

        for field in self.optional_fields:
            value = getattr(record, field, None)
            if value is not None:
                log_entry[field] = value

        if record.exc_info:
            log_entry["error_type"] = record.exc_info[0].__name__ if record.exc_info[0] else None
            log_entry["stack_trace"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, ensure_ascii=False)


def setup_logging() -> logging.Logger:
    """Configure structured logging for the application."""
    log_level = settings.LOG_LEVEL.upper()

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level, logging.INFO))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(StructuredFormatter(settings.OBS_REDACT_PII))
    root_logger.addHandler(console_handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_request(
    logger: logging.Logger,
    request: Request,
    status_code: int,
    latency_ms: float,
    trace_id: str,
) -> None:
    """Log a completed request with structured fields."""
    extra = {
        "route": request.url.path,
        "method": request.method,
        "status": status_code,
        "latency_ms": round(latency_ms, 2),
        "trace_id": trace_id,
    }
    if status_code >= 500:
        logger.error("Request completed with server error", extra=extra)
    elif status_code >= 400:
        logger.warning("Request completed with client error", extra=extra)
    else:
        logger.info("Request completed successfully", extra=extra)


def extract_trace_id(request: Request) -> str:
    """Trace id from X-Request-Id, then traceparent, else a new uuid4."""
    request_id = request.headers.get("X-Request-Id")
    if request_id:
        return request_id

    # traceparent format: 00-<trace_id>-<span_id>-<flags>
    traceparent = request.headers.get("traceparent")
    if traceparent:
        parts = traceparent.split("-")
        if len(parts) >= 2:
            return parts[1]

    return str(uuid.uuid4())
