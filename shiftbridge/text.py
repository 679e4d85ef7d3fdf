"""
Text, phone and date helpers.

Nothing in here raises on bad input: malformed values come back as ``""`` or
``None`` and the caller decides whether that is usable.
"""

import re
from datetime import UTC, date, datetime, timedelta

from dateutil import parser as date_parser

ONE_DAY = timedelta(days=1)

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
MONTHS = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)
_MONTH_PREFIX = {name[:3].lower(): index for index, name in enumerate(MONTHS, start=1)}

_E164 = re.compile(r"^\+\d{8,15}$")
_WALL_CLOCK = re.compile(r"^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2})(?::(\d{2}))?$")
_RELATIVE_WEEKDAY = re.compile(r"\b(next|this)\s+(" + "|".join(WEEKDAYS) + r")\b")
_SLASH_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})$")
_MONTH_DAY = re.compile(
    r"^(jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\.?\s+(\d{1,2})(?:st|nd|rd|th)?$"
)


def to_str(value: object) -> str:
    return "" if value is None else str(value).strip()


def normalize_phone(raw: object) -> str:
    """Best-effort E.164 for US numbers. Unknown shapes come back trimmed."""
    if not raw:
        return ""
    text = str(raw).strip()
    digits = re.sub(r"\D+", "", text)
    if len(digits) == 11 and digits.startswith("1"):
        return "+" + digits
    if len(digits) == 10:
        return "+1" + digits
    compact = re.sub(r"[^+\d]", "", text)
    if _E164.match(compact):
        return compact
    return text


def caller_phone(raw: object) -> str:
    """Like normalize_phone but returns "" for anything not dialable."""
    if not raw:
        return ""
    text = str(raw).strip()
    if text.startswith("+"):
        plus_digits = re.sub(r"[^+\d]", "", text)
        if _E164.match(plus_digits):
            return plus_digits
    digits = re.sub(r"\D+", "", text)
    if len(digits) == 11 and digits.startswith("1"):
        return "+" + digits
    if len(digits) == 10:
        return "+1" + digits
    return ""


def parse_wall_clock(value: object) -> datetime | None:
    """
    Parse ``YYYY-MM-DDTHH:mm[:ss]`` (no zone suffix) as wall-clock time.

    The result carries UTC only so that arithmetic and comparisons work; it is
    not a conversion from the site's local zone.
    """
    match = _WALL_CLOCK.match(to_str(value))
    if not match:
        return None
    year, month, day, hour, minute, second = match.groups()
    try:
        return datetime(
            int(year), int(month), int(day), int(hour), int(minute), int(second or 0), tzinfo=UTC
        )
    except ValueError:
        return None


def roll_overnight(start: datetime, end: datetime) -> datetime:
    """Push ``end`` forward one day when it is not after ``start``.

    Applied once per row, when the row is built from WinTeam data.
    """
    if end <= start:
        return end + ONE_DAY
    return end


def format_wall_clock(value: datetime) -> str:
    return value.strftime("%Y-%m-%dT%H:%M:%S")


def ymd(value: date | datetime) -> str:
    return value.strftime("%Y-%m-%d")


def parse_ymd(value: object) -> date | None:
    try:
        return datetime.strptime(to_str(value), "%Y-%m-%d").date()
    except ValueError:
        return None


def fmt_12h(value: datetime) -> str:
    hour = value.hour % 12 or 12
    suffix = "AM" if value.hour < 12 else "PM"
    return f"{hour}:{value.minute:02d} {suffix}"


def weekday_month_day(value: date | datetime) -> str:
    return f"{WEEKDAYS[value.weekday()].title()}, {MONTHS[value.month - 1]} {value.day}"


def today_utc() -> date:
    return datetime.now(UTC).date()


def friendly_to_date(phrase: object, base: date | None = None) -> str:
    """
    Turn a caller's date phrase into ``YYYY-MM-DD``, or ``""`` when nothing matches.

    Understands today/tomorrow/yesterday, "next|this <weekday>", ``M/D`` and
    ``Mon D`` (current year), then falls back to dateutil.
    """
    text = to_str(phrase).lower()
    if not text:
        return ""
    base = base or today_utc()

    if re.search(r"\btoday\b", text):
        return ymd(base)
    if re.search(r"\btomorrow\b", text):
        return ymd(base + ONE_DAY)
    if re.search(r"\byesterday\b", text):
        return ymd(base - ONE_DAY)

    match = _RELATIVE_WEEKDAY.search(text)
    if match:
        which, weekday = match.groups()
        delta = WEEKDAYS.index(weekday) - base.weekday()
        if which == "next":
            # "next" adds a week whatever the sign of delta, so a later day
            # this week lands in the following week.
            delta += 7
        elif delta < 0:
            delta += 7
        return ymd(base + timedelta(days=delta))

    match = _SLASH_DATE.match(text)
    if match:
        month, day = (int(part) for part in match.groups())
        try:
            return ymd(date(base.year, month, day))
        except ValueError:
            return ""

    match = _MONTH_DAY.match(text)
    if match:
        try:
            return ymd(date(base.year, _MONTH_PREFIX[match.group(1)], int(match.group(2))))
        except ValueError:
            return ""

    try:
        parsed = date_parser.parse(text, default=datetime(base.year, base.month, base.day))
    except (ValueError, OverflowError):
        return ""
    return ymd(parsed)


def slugify(value: object, limit: int = 40) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", to_str(value).lower()).strip("-")
    return slug[:limit]
