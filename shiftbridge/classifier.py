"""Free-text reason classification for intake calls."""

import re
from enum import StrEnum


class ReasonCategory(StrEnum):
    RESIGNATION = "resignation"
    EARLY_OUT = "early_out"
    ABSENCE = "absence"
    LATE_IN = "late_in"
    UNKNOWN = "unknown"


CATEGORY_LABELS = {
    ReasonCategory.RESIGNATION: "Resignation",
    ReasonCategory.EARLY_OUT: "Early Out",
    ReasonCategory.ABSENCE: "Absence",
    ReasonCategory.LATE_IN: "Late In",
    ReasonCategory.UNKNOWN: "Other",
}

# Checked in this order; the first group that matches wins.
_PATTERNS: tuple[tuple[ReasonCategory, re.Pattern], ...] = (
    (
        ReasonCategory.RESIGNATION,
        re.compile(
            r"\b(resign\w*|quit(?:s|ting)?|two\s+weeks?|2\s+weeks?|last\s+day|"
            r"(?:put\s+in|giv\w*|hand\w*\s+in)\s+(?:my\s+)?notice|"
            r"no\s+longer\s+(?:work|be\s+working)|leaving\s+the\s+company|new\s+job)\b"
        ),
    ),
    (
        ReasonCategory.EARLY_OUT,
        re.compile(
            r"\b(leav\w*\s+early|early\s+out|go(?:ing)?\s+home\s+early|head\w*\s+out\s+early|"
            r"\w+\s+hours?\s+early|leave\s+by|leave\s+at|cut\s+my\s+shift\s+short)\b"
        ),
    ),
    (
        ReasonCategory.ABSENCE,
        re.compile(
            r"\b(call\w*\s*off|call\w*\s*out|sick|ill|absent|absence|"
            r"can'?t\s+make\s+it|cannot\s+make\s+it|won'?t\s+make\s+it|not\s+(?:be\s+)?coming|"
            r"not\s+be\s+in|miss\w*\s+(?:my\s+)?shift|day\s+off|no\s+show|emergency|funeral|"
            r"hospital|doctor)\b"
        ),
    ),
    (
        ReasonCategory.LATE_IN,
        re.compile(
            r"\b(late|running\s+behind|behind\s+schedule|delayed|traffic|stuck|"
            r"be\s+there\s+(?:at|by)|on\s+my\s+way)\b"
        ),
    ),
)

_MINUTES_LATE = re.compile(r"\b(\d{1,3})\s*(?:minutes?|mins?)\s+late\b")
_LATE_BY = re.compile(r"\blate\s+by\s+(\d{1,3})\s*(?:minutes?|mins?)\b")
_HOURS_EARLY = re.compile(r"\b(\d{1,2})\s*(?:hours?|hrs?)\s+early\b")
_AN_HOUR_EARLY = re.compile(r"\ban\s+hour\s+early\b")
_LEAVE_BY = re.compile(r"\bleave\s+(?:by|at)\s+(\d{1,2})(?::(\d{2}))?\s*(am|pm|a\.m\.|p\.m\.)")


def classify(reason: str | None) -> ReasonCategory:
    text = (reason or "").lower()
    if not text.strip():
        return ReasonCategory.UNKNOWN
    for category, pattern in _PATTERNS:
        if pattern.search(text):
            return category
    return ReasonCategory.UNKNOWN


def extract_time_in_out_phrase(reason: str | None) -> str:
    """``"Late +15m"``, ``"Leave early -2h"``, ``"Leave by 15:30"`` or ``""``."""
    text = (reason or "").lower()

    match = _MINUTES_LATE.search(text) or _LATE_BY.search(text)
    if match:
        return f"Late +{int(match.group(1))}m"

    match = _HOURS_EARLY.search(text)
    if match:
        return f"Leave early -{int(match.group(1))}h"
    if _AN_HOUR_EARLY.search(text):
        return "Leave early -1h"

    match = _LEAVE_BY.search(text)
    if match:
        hour = int(match.group(1))
        minute = int(match.group(2) or 0)
        if hour > 12 or minute > 59:
            return ""
        hour %= 12
        if match.group(3).startswith("p"):
            hour += 12
        return f"Leave by {hour:02d}:{minute:02d}"

    return ""
