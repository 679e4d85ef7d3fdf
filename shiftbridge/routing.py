"""Division, department and department-email routing for board items."""

import re
from collections.abc import Iterable
from types import MappingProxyType

from shiftbridge.config import settings

STATE_FULL = MappingProxyType(
    {
        "AL": "Alabama", "AK": "Alaska", "AZ": "Arizona", "AR": "Arkansas",
        "CA": "California", "CO": "Colorado", "CT": "Connecticut", "DE": "Delaware",
        "FL": "Florida", "GA": "Georgia", "HI": "Hawaii", "ID": "Idaho",
        "IL": "Illinois", "IN": "Indiana", "IA": "Iowa", "KS": "Kansas",
        "KY": "Kentucky", "LA": "Louisiana", "ME": "Maine", "MD": "Maryland",
        "MA": "Massachusetts", "MI": "Michigan", "MN": "Minnesota", "MS": "Mississippi",
        "MO": "Missouri", "MT": "Montana", "NE": "Nebraska", "NV": "Nevada",
        "NH": "New Hampshire", "NJ": "New Jersey", "NM": "New Mexico", "NY": "New York",
        "NC": "North Carolina", "ND": "North Dakota", "OH": "Ohio", "OK": "Oklahoma",
        "OR": "Oregon", "PA": "Pennsylvania", "RI": "Rhode Island", "SC": "South Carolina",
        "SD": "South Dakota", "TN": "Tennessee", "TX": "Texas", "UT": "Utah",
        "VT": "Vermont", "VA": "Virginia", "WA": "Washington", "WV": "West Virginia",
        "WI": "Wisconsin", "WY": "Wyoming", "DC": "District of Columbia", "PR": "Puerto Rico",
    }
)

PAYROLL = "Payroll"
TRAINING = "Training"
OPERATIONS = "Operations"
HR = "HR"
CORPORATE = "Corporate"
OTHER = "Other"

# Free-form department text -> board status label. Anything else is dropped
# so the board never receives a label it does not have.
_DEPARTMENT_LABELS = MappingProxyType(
    {
        "payroll": PAYROLL,
        "pay": PAYROLL,
        "training": TRAINING,
        "operations": OPERATIONS,
        "operation": OPERATIONS,
        "ops": OPERATIONS,
        "hr": HR,
        "human resources": HR,
        "corporate": CORPORATE,
        "other": OTHER,
    }
)

_LEADING_STATE = re.compile(r"^([A-Z]{2})\b")
_STATE_OPS = re.compile(r"\b([A-Z]{2})\s+(?i:ops|operations)\b")

_PAYROLL_WORDS = re.compile(
    r"\b(payroll|pay\s*issue|pay\s*check|paycheck|pay\s*stub|paystub|direct\s+deposit|"
    r"w-?2|tax|taxes|withhold\w*)\b"
)
_TRAINING_WORDS = re.compile(r"\b(training|train|course|lms|cert\w*|guard\s*card)\b")
_OPERATIONS_WORDS = re.compile(
    r"\b(call\w*\s*off|call\w*\s*out|no\s*show|incident|report\w*|time\s*card|timecard|punch|"
    r"missed\s*punch|late|coverage|schedul\w*|shift|sick\w*|absent|absence|leave\s+early|"
    r"transportation|ride|car|bus|traffic|family|child|personal|emergency|"
    # Resignation language never reaches this list from the resignation flow:
    # classify() sends it to ReasonCategory.RESIGNATION first. Kept for the
    # generic board write, where it routes to Operations.
    r"resign\w*|quit(?:s|ting)?|two\s+weeks|last\s+day)\b"
)


def division_from_supervisor(supervisor_description: str | None) -> str:
    """"IL Ops Team" -> "Illinois". Unknown or missing codes give ""."""
    match = _LEADING_STATE.match((supervisor_description or "").strip())
    if not match:
        return ""
    return STATE_FULL.get(match.group(1), "")


def division_from_state(raw_state: str | None) -> str:
    """Full state name for a two-letter code; other non-empty text is passed through."""
    state = (raw_state or "").strip()
    if len(state) == 2 and state.upper() in STATE_FULL:
        return STATE_FULL[state.upper()]
    return state


def resolve_division(explicit: str = "", supervisor_description: str = "", raw_state: str = "") -> str:
    return (
        explicit.strip()
        or division_from_supervisor(supervisor_description)
        or division_from_state(raw_state)
    )


def department_from_reason(reason: str | None) -> str:
    text = (reason or "").lower()
    if _PAYROLL_WORDS.search(text):
        return PAYROLL
    if _TRAINING_WORDS.search(text):
        return TRAINING
    if _OPERATIONS_WORDS.search(text):
        return OPERATIONS
    return OTHER


def canonical_department(label: str | None) -> str:
    """Map free-form department text onto a board label, or "" if unrecognized."""
    key = re.sub(r"\s+", " ", (label or "").strip().lower())
    return _DEPARTMENT_LABELS.get(key, "")


def department_email(
    supervisor_description: str | None,
    department: str | None,
    *,
    corporate_names: Iterable[str] | None = None,
    domain: str | None = None,
) -> str:
    domain = domain or settings.DEPARTMENT_EMAIL_DOMAIN
    names = settings.CORPORATE_SUPERVISOR_NAMES if corporate_names is None else corporate_names

    dept = canonical_department(department)
    if dept in (TRAINING, PAYROLL, HR, CORPORATE):
        return f"{dept.lower()}@{domain}"

    supervisor = (supervisor_description or "").strip()
    lowered = supervisor.lower()
    if any(name.strip() and name.strip().lower() in lowered for name in names):
        return f"corporate@{domain}"

    match = _STATE_OPS.search(supervisor)
    if match and match.group(1).upper() in STATE_FULL:
        return f"{match.group(1).lower()}opsteam@{domain}"

    return ""
