"""
Shift listing and shift resolution.

WinTeam returns every shift for the employee inside the requested window,
grouped by site and post. Rows are flattened and canonicalized here; nothing is
cached, so resolving a shift may query the same days more than once.
"""

from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any

from shiftbridge.errors import UpstreamError, ValidationError
from shiftbridge.gateways import WinTeamGateway
from shiftbridge.models import ShiftRow
from shiftbridge.obs import get_logger
from shiftbridge.text import friendly_to_date, parse_ymd, today_utc, ymd

logger = get_logger(__name__)

PAGE_SIZE = 3
LISTING_DAYS = 15

# Upstream rejects windows of 30 days or more.
NEAR_WINDOW_DAYS = 14
FALLBACK_WINDOW_DAYS = 10
SWEEP_WINDOW_DAYS = 29
SWEEP_PAST_DAYS = 60
SWEEP_FUTURE_DAYS = 90


def _days(n: int) -> timedelta:
    return timedelta(days=n)


async def fetch_shift_rows(
    winteam: WinTeamGateway, employee_number: str, start: date, end: date
) -> list[ShiftRow]:
    result = await winteam.fetch_shifts(employee_number, ymd(start), ymd(end))
    if not result.ok:
        raise UpstreamError(
            f"WinTeam shiftDetails failed ({result.status}).",
            detail=result.error,
            upstream_status=result.status,
        )

    rows = []
    for group in result.data:
        shifts = group.get("shifts")
        if not isinstance(shifts, list):
            continue
        for shift in shifts:
            if not isinstance(shift, dict):
                continue
            row = ShiftRow.from_winteam(group, shift, employee_number)
            if row is not None:
                rows.append(row)
    return rows


def find_cell(rows: Iterable[ShiftRow], cell_id: str) -> ShiftRow | None:
    return next((row for row in rows if row.matches_cell(cell_id)), None)


@dataclass
class ShiftListing:
    window_from: date
    window_to: date
    rows: list[ShiftRow] = field(default_factory=list)
    entries: list[ShiftRow] = field(default_factory=list)

    @property
    def window(self) -> str:
        return f"{ymd(self.window_from)} → {ymd(self.window_to)}"

    def page(self, page_start: int = 0) -> list[ShiftRow]:
        start = max(0, page_start)
        return self.entries[start : start + PAGE_SIZE]

    def to_response(self, page_start: int = 0) -> dict[str, Any]:
        start = max(0, page_start)
        page_rows = self.page(start)
        has_next = start + PAGE_SIZE < len(self.entries)
        return {
            "success": True,
            "message": "Shifts lookup completed.",
            "window": self.window,
            "counts": {"rows": len(self.rows), "filtered": len(self.entries)},
            "page": {
                "pageStart": start,
                "nextPageStart": start + PAGE_SIZE if has_next else start,
                "hasNext": has_next,
                "pageCount": len(page_rows),
            },
            "speakable_page": [row.speak_line for row in page_rows],
            "entries_page": [row.to_entry() for row in page_rows],
            "speakable": [row.speak_line for row in self.entries],
            "entries": [row.to_entry() for row in self.entries],
        }


def _window_bound(value: str, name: str) -> date | None:
    if not value:
        return None
    parsed = parse_ymd(value)
    if parsed is None:
        raise ValidationError(f"{name} must be YYYY-MM-DD.", missing=[name])
    return parsed


async def list_shifts(
    winteam: WinTeamGateway,
    employee_number: str,
    date_from: str = "",
    date_to: str = "",
    *,
    today: date | None = None,
) -> ShiftListing:
    """
    Shifts for one employee, sorted by start.

    The window defaults to today through today+15. When both bounds are given,
    a row is kept if it starts or ends on a day in ``[date_from, date_to)``.
    """
    today = today or today_utc()
    start = _window_bound(date_from, "dateFrom") or today
    end = _window_bound(date_to, "dateTo") or today + _days(LISTING_DAYS)

    rows = await fetch_shift_rows(winteam, employee_number, start, end)

    entries = rows
    if date_from and date_to:
        entries = [
            row
            for row in rows
            if start <= row.start.date() < end or start <= row.end.date() < end
        ]
    entries = sorted(entries, key=lambda row: row.start)

    return ShiftListing(window_from=start, window_to=end, rows=rows, entries=entries)


class ShiftResolver:
    """
    Find the one shift a caller means, from a cell id and/or a date phrase.

    With a cell id the search widens step by step: the hinted day, then
    two weeks either side, then the shift listing around the hint (or today).
    Without any hint it keeps sweeping outward in 29-day windows.
    Without a cell id, the earliest shift on the hinted day is returned.
    """

    def __init__(self, winteam: WinTeamGateway, today: Callable[[], date] = today_utc) -> None:
        self.winteam = winteam
        self.today = today

    def resolve_day(self, date_hint: str) -> date | None:
        if not date_hint:
            return None
        return parse_ymd(friendly_to_date(date_hint, base=self.today()))

    async def resolve(
        self, employee_number: str, *, cell_id: str = "", date_hint: str = ""
    ) -> ShiftRow | None:
        cell_id = cell_id.strip()
        day = self.resolve_day(date_hint)

        if cell_id:
            return await self._by_cell(employee_number, cell_id, day)
        if day is not None:
            return await self.earliest_on(employee_number, day)
        return None

    async def _by_cell(self, employee_number: str, cell_id: str, day: date | None) -> ShiftRow | None:
        if day is not None:
            windows = (
                (day, day + _days(1)),
                (day - _days(NEAR_WINDOW_DAYS), day + _days(NEAR_WINDOW_DAYS)),
            )
            for start, end in windows:
                rows = await fetch_shift_rows(self.winteam, employee_number, start, end)
                hit = find_cell(rows, cell_id)
                if hit is not None:
                    logger.info(
                        "Shift resolved by cell",
                        extra={"employee_number": employee_number, "window": f"{ymd(start)}..{ymd(end)}"},
                    )
                    return hit

        anchor = day or self.today()
        listing = await list_shifts(
            self.winteam,
            employee_number,
            ymd(anchor - _days(FALLBACK_WINDOW_DAYS)),
            ymd(anchor + _days(FALLBACK_WINDOW_DAYS)),
            today=self.today(),
        )
        # entries exclude the window's end day, rows do not
        hit = find_cell(listing.rows, cell_id)
        if hit is not None or day is not None:
            return hit

        for start, end in sweep_windows(anchor):
            rows = await fetch_shift_rows(self.winteam, employee_number, start, end)
            hit = find_cell(rows, cell_id)
            if hit is not None:
                logger.info(
                    "Shift resolved by sweep window",
                    extra={"employee_number": employee_number, "window": f"{ymd(start)}..{ymd(end)}"},
                )
                return hit

        logger.info("Shift not found by cell", extra={"employee_number": employee_number})
        return None

    async def earliest_on(self, employee_number: str, day: date) -> ShiftRow | None:
        rows = await fetch_shift_rows(self.winteam, employee_number, day, day + _days(1))
        candidates = [row for row in rows if row.day == day]
        if not candidates:
            return None
        return min(candidates, key=lambda row: row.start)


def sweep_windows(anchor: date) -> Iterator[tuple[date, date]]:
    """
    29-day windows beyond the ±10-day fallback (the first forward window
    repeats its last day), alternating forward and
    backward until the horizon (anchor-60 .. anchor+90) is covered.
    """
    span = _days(SWEEP_WINDOW_DAYS - 1)
    future_limit = anchor + _days(SWEEP_FUTURE_DAYS)
    past_limit = anchor - _days(SWEEP_PAST_DAYS)

    forward = anchor + _days(FALLBACK_WINDOW_DAYS)
    backward = anchor - _days(FALLBACK_WINDOW_DAYS + 1)
    while forward <= future_limit or backward >= past_limit:
        if forward <= future_limit:
            yield forward, min(forward + span, future_limit)
            forward += _days(SWEEP_WINDOW_DAYS)
        if backward >= past_limit:
            yield max(backward - span, past_limit), backward
            backward -= _days(SWEEP_WINDOW_DAYS)
