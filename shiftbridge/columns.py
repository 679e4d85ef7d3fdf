"""Monday column ids and friendly-field encoding."""

import re
from datetime import UTC, datetime
from types import MappingProxyType
from typing import Any

from dateutil import parser as date_parser

from shiftbridge.models import BoardWriteRequest
from shiftbridge.routing import canonical_department, department_from_reason, resolve_division
from shiftbridge.text import parse_wall_clock

COLUMN_MAP = MappingProxyType(
    {
        "division": "color_mktd81zp",  # Division (status)
        "department": "color_mktsk31h",  # Department (status)
        "site": "text_mktj4gmt",  # Account/Site
        "email": "email_mktdyt3z",  # Email Address
        "phone": "phone_mktdphra",  # Phone Number
        "callerId": "phone_mkv0p9q3",  # Caller ID
        "reason": "text_mktdb8pg",  # Call Issue/Reason
        "timeInOut": "text_mktsvsns",  # Time In/Out
        "startTime": "text_mkv0t29z",  # Start Time (if applicable)
        "endTime": "text_mkv0nmq1",  # End Time (if applicable)
        "dateTime": "date4",  # Date/Time
        "deptEmail": "text_mkv07gad",  # Department Email
        "emailStatus": "color_mkv0cpxc",  # Email Status (status)
        "itemIdEcho": "pulse_id_mkv6rhgy",
        "zoomGuid": "text_mkv7j2fq",  # Zoom call GUID, used for upserts
        "shift": "text_mkwn6bzw",
    }
)

CORRELATION_COLUMN = COLUMN_MAP["zoomGuid"]


def status_label(label: str) -> dict[str, str] | None:
    label = label.strip()
    return {"label": label} if label else None


def email_value(raw: str) -> dict[str, str] | None:
    email = raw.strip()
    if "@" not in email:
        return None
    return {"email": email, "text": email}


def phone_value(raw: str) -> dict[str, str] | None:
    phone = re.sub(r"[^\d+]", "", raw).strip()
    return {"phone": phone, "countryShortName": "US"} if phone else None


def date_value(raw: Any) -> dict[str, str] | None:
    """``{"date": "YYYY-MM-DD", "time": "HH:MM:SS"}`` from an object or a timestamp."""
    if isinstance(raw, dict):
        if raw.get("date") or raw.get("time"):
            return {key: str(value) for key, value in raw.items() if key in ("date", "time") and value}
        return None
    text = str(raw or "").strip()
    if not text:
        return None
    parsed = parse_wall_clock(text)
    if parsed is None:
        try:
            parsed = date_parser.parse(text)
        except (ValueError, OverflowError):
            return None
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(UTC)
    return {"date": parsed.strftime("%Y-%m-%d"), "time": parsed.strftime("%H:%M:%S")}


def build_column_values(request: BoardWriteRequest) -> dict[str, Any]:
    """Column-id keyed values for ``change_multiple_column_values``.

    Raw ``columnValues`` from the caller are applied last and win.
    """
    values: dict[str, Any] = {}

    text_fields = {
        "site": request.site,
        "reason": request.reason,
        "timeInOut": request.time_in_out,
        "startTime": request.start_time,
        "endTime": request.end_time,
        "deptEmail": request.dept_email,
        "zoomGuid": request.engagement_id,
        "shift": request.shift,
        "itemIdEcho": request.item_id_echo,
    }
    for friendly, value in text_fields.items():
        if value:
            values[COLUMN_MAP[friendly]] = value

    encoded = {
        "email": email_value(request.email),
        "phone": phone_value(request.phone),
        "callerId": phone_value(request.caller_id),
        "dateTime": date_value(request.date_time),
        "division": status_label(
            resolve_division(request.division, request.supervisor_description, request.state)
        ),
        "department": status_label(
            canonical_department(request.department or department_from_reason(request.reason))
        ),
    }
    for friendly, value in encoded.items():
        if value is not None:
            values[COLUMN_MAP[friendly]] = value

    values.update(request.column_values)
    return values
