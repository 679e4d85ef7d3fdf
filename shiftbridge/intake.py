"""
Intake handlers: employee auth, shift listing, board writes and the three
voice-assistant intake flows (shift call-off, date-based absence, resignation).

Every handler validates identity first, then talks to WinTeam, then writes at
most one Monday item. Failures are raised as ``shiftbridge.errors`` exceptions.
"""

import re
from typing import Any

from shiftbridge.classifier import (
    CATEGORY_LABELS,
    ReasonCategory,
    classify,
    extract_time_in_out_phrase,
)
from shiftbridge.clients import Clients
from shiftbridge.columns import CORRELATION_COLUMN, build_column_values
from shiftbridge.config import settings
from shiftbridge.errors import NotFoundError, UpstreamError, ValidationError, VerificationError
from shiftbridge.gateways import GatewayResult, WinTeamGateway
from shiftbridge.models import (
    AuthRequest,
    BoardWriteRequest,
    Employee,
    IntakeRequest,
    ShiftRow,
    ShiftsRequest,
)
from shiftbridge.obs import get_logger, preview
from shiftbridge.routing import (
    canonical_department,
    department_email,
    department_from_reason,
    resolve_division,
)
from shiftbridge.shifts import ShiftResolver, list_shifts
from shiftbridge.text import caller_phone, friendly_to_date, parse_ymd, slugify, ymd

logger = get_logger(__name__)

DEFAULT_CALL_OFF_REASON = "calling off sick"
DEFAULT_RESIGNATION_REASON = "resignation"

_SSN_LAST4 = re.compile(r"^\d{4}$")


def build_dedupe_key(
    *,
    explicit: str = "",
    correlation_id: str = "",
    employee_number: str = "",
    kind: str = "",
    identity: str = "",
    day: str = "",
    slug: str = "",
) -> str:
    """
    First available of: caller key, ``corr:emp``, ``corr``, ``kind|identity|day|slug``.
    Returns ``""`` when there is nothing to key on.
    """
    if explicit:
        return explicit
    if correlation_id and employee_number:
        return f"{correlation_id}:{employee_number}"
    if correlation_id:
        return correlation_id
    if kind and identity:
        return "|".join((kind, identity, day or "date?", slugify(slug) or "none"))
    return ""


def _raise_for(result: GatewayResult, message: str, **extra: Any) -> None:
    if not result.ok:
        raise UpstreamError(
            f"{message} ({result.status}).",
            detail=result.error,
            upstream_status=result.status,
            extra=extra or None,
        )


def _with_notes(reason: str, notes: str) -> str:
    return f"{reason} | Notes: {notes}" if notes else reason


def _item_name(employee_number: str, full_name: str, label: str = "") -> str:
    name = f"{employee_number or 'unknown'} | {full_name or 'Unknown Caller'}"
    return f"{name} | {label}" if label else name


def _department_for(explicit: str, reason: str) -> str:
    return canonical_department(explicit) or canonical_department(department_from_reason(reason))


async def lookup_employee(winteam: WinTeamGateway, employee_number: str) -> Employee:
    result = await winteam.fetch_employee(employee_number)
    _raise_for(result, "WinTeam employees request failed")
    if not result.data:
        raise NotFoundError("No matching employee found.")
    return Employee.from_winteam(result.data)


async def authenticate_employee(clients: Clients, request: AuthRequest) -> dict[str, Any]:
    if not request.employee_number or not _SSN_LAST4.match(request.ssn_last4):
        missing = [
            name
            for name, ok in (
                ("employeeNumber", bool(request.employee_number)),
                ("ssnLast4", bool(_SSN_LAST4.match(request.ssn_last4))),
            )
            if not ok
        ]
        raise ValidationError("Expect { employeeNumber, ssnLast4(4 digits) }.", missing=missing)

    employee = await lookup_employee(clients.winteam, request.employee_number)
    if not employee.verify_ssn(request.ssn_last4):
        raise VerificationError("SSN verification failed.")

    return {"success": True, "message": "Successful employee lookup.", "employee": employee.public()}


async def shifts_listing(clients: Clients, request: ShiftsRequest) -> dict[str, Any]:
    if not request.employee_number:
        raise ValidationError("employeeNumber is required.", missing=["employeeNumber"])
    listing = await list_shifts(
        clients.winteam, request.employee_number, request.date_from, request.date_to
    )
    return listing.to_response(request.page_start)


async def write_board_item(clients: Clients, request: BoardWriteRequest) -> dict[str, Any]:
    """
    Create (or update, when an item already carries the correlation id) one
    Monday item. Repeats of a dedupe key inside the guard TTL are suppressed.
    """
    board_id = request.board_id or settings.board_id
    if not board_id:
        raise ValidationError("boardId is required (env or body).", missing=["boardId"])

    item_name = request.item_name
    if request.is_manual:
        missing = [name for name, value in (("fullName", request.full_name), ("reason", request.reason)) if not value]
        if not (request.phone or request.email or request.caller_id):
            missing.append("phone|email|callerId")
        if missing:
            raise ValidationError(
                "Manual entries need fullName, reason and a contact channel.",
                missing=missing,
                status_code=422,
            )
        item_name = item_name or request.full_name
    if not item_name:
        raise ValidationError("itemName is required.", missing=["itemName"])

    engagement_id = request.engagement_id
    dedupe_key = build_dedupe_key(
        explicit=request.dedupe_key,
        correlation_id=engagement_id,
        employee_number=request.employee_number,
    )
    column_values = build_column_values(request)

    if await clients.guard.seen(dedupe_key):
        logger.info("Duplicate suppressed by flow guard", extra={"dedupe_key": dedupe_key})
        return {
            "success": True,
            "message": "Duplicate suppressed by flow guard.",
            "duplicate": True,
            "upserted": False,
            "dedupeKey": dedupe_key,
            "item": None,
            "columnValues": column_values,
        }

    item = None
    action = "created"
    if engagement_id:
        found = await clients.monday.find_item_by_column(board_id, CORRELATION_COLUMN, engagement_id)
        _raise_for(found, "Monday item lookup failed")
        if found.data:
            item, action = found.data, "updated"

    if item is None:
        created = await clients.monday.create_item(board_id, item_name, request.group_id)
        _raise_for(created, "Monday create_item failed")
        if not created.data:
            raise UpstreamError("Monday create_item returned no item.")
        item = created.data

    if column_values:
        changed = await clients.monday.change_column_values(board_id, item["id"], column_values)
        _raise_for(changed, "Monday change_multiple_column_values failed", item=item)

    await clients.guard.mark(dedupe_key)
    logger.info(
        f"Monday item {action}: {preview(item_name)}",
        extra={"dedupe_key": dedupe_key or None},
    )

    return {
        "success": True,
        "message": f"Monday item {action}.",
        "action": action,
        "duplicate": False,
        "upserted": True,
        "boardId": board_id,
        "item": item,
        "dedupeKey": dedupe_key or None,
        "engagementId": engagement_id or None,
        "columnValuesSent": column_values,
    }


def _intake_response(
    monday: dict[str, Any], category: ReasonCategory, sent: dict[str, Any], **extra: Any
) -> dict[str, Any]:
    return {
        "success": monday["success"],
        "message": monday["message"],
        "category": category.value,
        "upserted": monday["upserted"],
        "duplicate": monday["duplicate"],
        "dedupeKey": monday.get("dedupeKey"),
        **extra,
        "sent": sent,
        "monday": monday,
    }


async def _file_shift_call_off(
    clients: Clients, request: IntakeRequest, employee: Employee, shift: ShiftRow
) -> dict[str, Any]:
    reason = request.reason or DEFAULT_CALL_OFF_REASON
    category = classify(reason)
    department = _department_for(request.department, reason)
    caller = caller_phone(request.caller_id)

    board_request = BoardWriteRequest(
        board_id=request.board_id,
        item_name=_item_name(request.employee_number, employee.full_name),
        dedupe_key=build_dedupe_key(
            explicit=request.dedupe_key,
            correlation_id=request.engagement_id,
            employee_number=request.employee_number,
            kind="shift",
            identity=request.employee_number,
            day=ymd(shift.day),
            slug=shift.cell_id,
        ),
        engagement_id=request.engagement_id,
        employee_number=request.employee_number,
        full_name=employee.full_name,
        site=shift.site,
        reason=_with_notes(reason, request.notes),
        time_in_out=extract_time_in_out_phrase(reason),
        start_time=shift.start_iso,
        end_time=shift.end_iso,
        shift=shift.concise,
        date_time=shift.start_iso,
        email=employee.email,
        phone=employee.phone,
        caller_id=caller,
        division=resolve_division("", employee.supervisor_description, employee.work_state),
        department=department,
        dept_email=department_email(employee.supervisor_description, department),
    )
    monday = await write_board_item(clients, board_request)

    sent = {
        "employeeNumber": request.employee_number,
        "cellId": shift.cell_id,
        "site": shift.site,
        "startISO": shift.start_iso,
        "endISO": shift.end_iso,
        "reason": reason,
        "callerId": caller,
        "engagementId": request.engagement_id,
        "itemName": board_request.item_name,
        "dedupeKey": board_request.dedupe_key,
    }
    return _intake_response(monday, category, sent, shift=shift.to_entry())


async def shift_write_by_cell(
    clients: Clients, request: IntakeRequest, resolver: ShiftResolver | None = None
) -> dict[str, Any]:
    """Call-off for one scheduled cell. A cell-less resignation is handed to the resignation flow."""
    if not request.employee_number:
        raise ValidationError("employeeNumber required", missing=["employeeNumber"])
    if not request.cell_id:
        if request.reason and classify(request.reason) is ReasonCategory.RESIGNATION:
            return await resignation_intake(clients, request)
        raise ValidationError("cellId required", missing=["cellId"])

    employee = await lookup_employee(clients.winteam, request.employee_number)
    resolver = resolver or ShiftResolver(clients.winteam)
    shift = await resolver.resolve(
        request.employee_number, cell_id=request.cell_id, date_hint=request.date_hint
    )
    if shift is None:
        raise NotFoundError("Shift not found by cellId.")

    return await _file_shift_call_off(clients, request, employee, shift)


async def shift_write_by_selection(clients: Clients, request: IntakeRequest) -> dict[str, Any]:
    """Call-off for the n-th shift on a listing page, as read out to the caller."""
    if not request.employee_number:
        raise ValidationError("employeeNumber required", missing=["employeeNumber"])

    employee = await lookup_employee(clients.winteam, request.employee_number)
    listing = await list_shifts(clients.winteam, request.employee_number)
    page = listing.page(request.page_start)
    if not page:
        raise NotFoundError("No shifts returned for employee.")

    shift = page[min(max(request.selection_index, 0), len(page) - 1)]
    return await _file_shift_call_off(clients, request, employee, shift)


def _require_identity(request: IntakeRequest) -> str:
    """Employee number, or the caller's phone when a full name accompanies it."""
    if request.employee_number:
        return request.employee_number
    phone = caller_phone(request.caller_id)
    if request.full_name and phone:
        return phone
    raise ValidationError(
        "Provide employeeNumber, or fullName and callerId.",
        missing=[
            name
            for name, value in (("fullName", request.full_name), ("callerId", phone))
            if not value
        ]
        or ["employeeNumber"],
    )


async def absence_intake(
    clients: Clients, request: IntakeRequest, resolver: ShiftResolver | None = None
) -> dict[str, Any]:
    """Absence, early-out or late-in for a day. The shift is attached when one can be found."""
    identity = _require_identity(request)
    reason = request.reason or DEFAULT_CALL_OFF_REASON
    category = classify(reason)
    if category is ReasonCategory.RESIGNATION:
        raise ValidationError(
            "Resignations must use the resignation flow.",
            status_code=422,
            extra={"category": category.value},
        )

    resolver = resolver or ShiftResolver(clients.winteam)
    employee = None
    if request.employee_number:
        employee = await lookup_employee(clients.winteam, request.employee_number)

    day = resolver.resolve_day(request.date_hint) or resolver.today()

    shift = None
    if request.employee_number:
        try:
            shift = await resolver.resolve(
                request.employee_number, cell_id=request.cell_id, date_hint=ymd(day)
            )
        except UpstreamError as exc:
            logger.warning(
                f"Shift lookup failed, filing without a shift: {exc.message}",
                extra={"employee_number": request.employee_number},
            )

    full_name = employee.full_name if employee else request.full_name
    supervisor = employee.supervisor_description if employee else ""
    department = _department_for(request.department, reason)
    caller = caller_phone(request.caller_id)

    board_request = BoardWriteRequest(
        board_id=request.board_id,
        item_name=_item_name(request.employee_number, full_name, CATEGORY_LABELS[category]),
        dedupe_key=build_dedupe_key(
            explicit=request.dedupe_key,
            correlation_id=request.engagement_id,
            employee_number=request.employee_number,
            kind="absence",
            identity=identity,
            day=ymd(day),
            slug=category.value,
        ),
        engagement_id=request.engagement_id,
        employee_number=request.employee_number,
        full_name=full_name,
        site=shift.site if shift else "",
        reason=_with_notes(reason, request.notes),
        time_in_out=extract_time_in_out_phrase(reason),
        start_time=shift.start_iso if shift else "",
        end_time=shift.end_iso if shift else "",
        shift=shift.concise if shift else "",
        date_time=shift.start_iso if shift else {"date": ymd(day)},
        email=employee.email if employee else "",
        phone=employee.phone if employee else "",
        caller_id=caller,
        division=resolve_division("", supervisor, employee.work_state if employee else ""),
        department=department,
        dept_email=department_email(supervisor, department),
    )
    monday = await write_board_item(clients, board_request)

    sent = {
        "employeeNumber": request.employee_number,
        "fullName": full_name,
        "date": ymd(day),
        "reason": reason,
        "timeInOut": board_request.time_in_out,
        "callerId": caller,
        "cellId": shift.cell_id if shift else "",
        "division": board_request.division,
        "department": department,
        "deptEmail": board_request.dept_email,
        "itemName": board_request.item_name,
        "dedupeKey": board_request.dedupe_key,
    }
    return _intake_response(
        monday, category, sent, shift=shift.to_entry() if shift else None
    )


async def resignation_intake(clients: Clients, request: IntakeRequest) -> dict[str, Any]:
    """
    Resignation, filed only after employee number and SSN last-4 match WinTeam.
    Nothing is written to the board when verification fails.
    """
    _require_identity(request)
    reason = request.reason or DEFAULT_RESIGNATION_REASON
    category = classify(reason)
    if category is not ReasonCategory.RESIGNATION:
        raise ValidationError(
            "Reason does not describe a resignation.",
            status_code=422,
            extra={"category": category.value},
        )

    if not request.employee_number:
        raise VerificationError("Resignations require employeeNumber and ssnLast4 verification.")
    if not _SSN_LAST4.match(request.ssn_last4):
        raise VerificationError("ssnLast4 (4 digits) is required to verify a resignation.")

    employee = await lookup_employee(clients.winteam, request.employee_number)
    if not employee.verify_ssn(request.ssn_last4):
        raise VerificationError("SSN verification failed.")

    last_day = ""
    if request.last_day:
        last_day = friendly_to_date(request.last_day)
        if parse_ymd(last_day) is None:
            last_day = ""
    last_day_text = last_day or request.last_day

    summary = f"Resignation: {reason}"
    if last_day_text:
        summary += f" | Last day: {last_day_text}"

    department = _department_for(request.department, reason)
    caller = caller_phone(request.caller_id)

    board_request = BoardWriteRequest(
        board_id=request.board_id,
        item_name=_item_name(
            request.employee_number, employee.full_name, CATEGORY_LABELS[category]
        ),
        dedupe_key=build_dedupe_key(
            explicit=request.dedupe_key,
            correlation_id=request.engagement_id,
            employee_number=request.employee_number,
            kind="resignation",
            identity=request.employee_number,
            day=last_day,
            slug=category.value,
        ),
        engagement_id=request.engagement_id,
        employee_number=request.employee_number,
        full_name=employee.full_name,
        reason=_with_notes(summary, request.notes),
        date_time={"date": last_day} if last_day else None,
        email=employee.email,
        phone=employee.phone,
        caller_id=caller,
        division=resolve_division("", employee.supervisor_description, employee.work_state),
        department=department,
        dept_email=department_email(employee.supervisor_description, department),
    )
    monday = await write_board_item(clients, board_request)

    sent = {
        "employeeNumber": request.employee_number,
        "fullName": employee.full_name,
        "lastDay": last_day_text,
        "reason": reason,
        "callerId": caller,
        "department": department,
        "deptEmail": board_request.dept_email,
        "itemName": board_request.item_name,
        "dedupeKey": board_request.dedupe_key,
    }
    return _intake_response(monday, category, sent, verified=True)
