"""
Domain models: WinTeam employees and shift rows, plus the request bodies the
voice assistant posts to the bridge.
"""

from datetime import date, datetime
from typing import Annotated, Any

from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field

from shiftbridge.text import (
    fmt_12h,
    format_wall_clock,
    normalize_phone,
    parse_wall_clock,
    roll_overnight,
    to_str,
    weekday_month_day,
    ymd,
)


def _to_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _to_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


Text = Annotated[str, BeforeValidator(to_str)]
Count = Annotated[int, BeforeValidator(_to_int)]


def _alias(*names: str) -> Any:
    return Field("", validation_alias=AliasChoices(*names))


class Employee(BaseModel):
    model_config = ConfigDict(frozen=True)

    employee_number: Text = ""
    employee_id: Text = ""
    first_name: Text = ""
    last_name: Text = ""
    email: Text = ""
    phone_raw: Text = ""
    supervisor_description: Text = ""
    status_description: Text = ""
    type_description: Text = ""
    work_state: Text = ""
    partial_ssn: Text = Field("", repr=False, exclude=True)

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    @property
    def phone(self) -> str:
        return normalize_phone(self.phone_raw)

    @classmethod
    def from_winteam(cls, record: dict) -> "Employee":
        return cls(
            employee_number=record.get("employeeNumber"),
            employee_id=record.get("employeeId"),
            first_name=record.get("firstName"),
            last_name=record.get("lastName"),
            email=record.get("emailAddress"),
            phone_raw=record.get("phone1"),
            supervisor_description=record.get("supervisorDescription"),
            status_description=record.get("statusDescription"),
            type_description=record.get("typeDescription"),
            work_state=record.get("state") or record.get("workState"),
            partial_ssn=record.get("partialSSN"),
        )

    def verify_ssn(self, ssn_last4: str) -> bool:
        return bool(self.partial_ssn) and self.partial_ssn == ssn_last4.strip()

    def public(self) -> dict[str, str]:
        return {
            "firstName": self.first_name,
            "lastName": self.last_name,
            "ofcFullname": self.full_name,
            "emailAddress": self.email,
            "phone1": self.phone,
            "supervisorDescription": self.supervisor_description,
            "employeeNumber": self.employee_number,
            "employeeId": self.employee_id,
            "statusDescription": self.status_description,
            "typeDescription": self.type_description,
        }


def _first(shift: dict, *keys: str) -> str:
    for key in keys:
        if shift.get(key) is not None:
            return to_str(shift[key])
    return ""


class ShiftRow(BaseModel):
    """One scheduled cell, with wall-clock start/end and overnight already rolled."""

    model_config = ConfigDict(frozen=True)

    employee_number: str
    site: str = ""
    role: str = ""
    utc_offset: float = 0
    start: datetime
    end: datetime
    hours: float | None = None
    hour_type: str = ""
    hour_description: str = ""
    cell_id: str = ""  # unique per scheduled cell
    schedule_detail_id: str = ""  # display only, not unique

    @classmethod
    def from_winteam(cls, group: dict, shift: dict, employee_number: str) -> "ShiftRow | None":
        start = parse_wall_clock(shift.get("startTime"))
        end = parse_wall_clock(shift.get("endTime"))
        if start is None or end is None:
            return None
        return cls(
            employee_number=to_str(group.get("employeeNumber")) or employee_number,
            site=to_str(group.get("jobDescription")),
            role=to_str(group.get("postDescription")),
            utc_offset=_to_float(group.get("utCoffset")) or 0,
            start=start,
            end=roll_overnight(start, end),
            hours=_to_float(shift.get("hours")),
            hour_type=to_str(shift.get("hourType")),
            hour_description=to_str(shift.get("hourDescription")),
            cell_id=_first(shift, "cellId", "cellID", "CellId", "CellID", "cell"),
            schedule_detail_id=_first(
                shift, "scheduleDetailID", "ScheduleDetailID", "scheduleDetailId"
            ),
        )

    @property
    def day(self) -> date:
        return self.start.date()

    @property
    def start_iso(self) -> str:
        return format_wall_clock(self.start)

    @property
    def end_iso(self) -> str:
        return format_wall_clock(self.end)

    @property
    def concise(self) -> str:
        line = f"{ymd(self.start)} {self.start:%H:%M} → {self.end:%H:%M}"
        if self.site:
            line += f" @ {self.site}"
        if self.role:
            line += f" ({self.role})"
        return line

    @property
    def speak_line(self) -> str:
        line = (
            f"{weekday_month_day(self.start)}, {fmt_12h(self.start)}"
            f" to {weekday_month_day(self.end)} {fmt_12h(self.end)}"
        )
        if self.site:
            line += f" at {self.site}"
        if self.role:
            line += f" ({self.role})"
        return line

    def matches_cell(self, cell_id: str) -> bool:
        wanted = cell_id.strip()
        return bool(wanted) and self.cell_id.strip() == wanted

    def to_entry(self) -> dict[str, Any]:
        return {
            "employeeNumber": self.employee_number,
            "site": self.site,
            "role": self.role,
            "utcOffset": self.utc_offset,
            "startLocalISO": self.start_iso,
            "endLocalISO": self.end_iso,
            "hours": self.hours,
            "concise": self.concise,
            "speakLine": self.speak_line,
            "hourType": self.hour_type,
            "hourDescription": self.hour_description,
            "cellId": self.cell_id,
            "scheduleDetailID": self.schedule_detail_id,
            "id": self.cell_id,
        }


class RequestModel(BaseModel):
    """Frozen, alias-resolved view of a caller's JSON body."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)


class AuthRequest(RequestModel):
    employee_number: Text = _alias("employeeNumber", "ofcEmployeeNumber", "employee_number")
    ssn_last4: Text = _alias("ssnLast4", "ssn_last4")


class ShiftsRequest(RequestModel):
    employee_number: Text = _alias("employeeNumber", "ofcEmployeeNumber", "employee_number")
    date_from: Text = _alias("dateFrom", "date_from")
    date_to: Text = _alias("dateTo", "date_to")
    page_start: Count = Field(0, validation_alias=AliasChoices("pageStart", "page_start"))


class BoardWriteRequest(RequestModel):
    board_id: Text = _alias("boardId", "board_id")
    group_id: Text = _alias("groupId", "group_id")
    item_name: Text = _alias("itemName", "name", "item_name")
    mode: Text = _alias("mode")
    dedupe_key: Text = _alias("dedupeKey", "dedupe_key")
    engagement_id: Text = _alias("engagementId", "zoomEngId", "zoomGuid", "engagement_id")
    employee_number: Text = _alias("employeeNumber", "ofcEmployeeNumber", "employee_number")
    full_name: Text = _alias("fullName", "ofcFullname", "full_name")

    site: Text = _alias("site", "accountSite")
    reason: Text = _alias("reason")
    time_in_out: Text = _alias("timeInOut", "time_in_out")
    start_time: Text = _alias("startTime", "shiftStart", "start_time")
    end_time: Text = _alias("endTime", "shiftEnd", "end_time")
    shift: Text = _alias("shift")
    dept_email: Text = _alias("deptEmail", "dept_email")
    item_id_echo: Text = _alias("itemIdEcho", "item_id_echo")
    email: Text = _alias("email", "emailAddress")
    phone: Text = _alias("phone", "phone1")
    caller_id: Text = _alias("callerId", "ani", "callerPhone", "caller_id")
    date_time: Any = Field(None, validation_alias=AliasChoices("dateTime", "date_time"))

    division: Text = _alias("division")
    supervisor_description: Text = _alias("supervisorDescription", "supervisor_description")
    state: Text = _alias("ofcWorkstate", "workState", "state")
    department: Text = _alias("department")

    column_values: dict[str, Any] = Field(
        default_factory=dict, validation_alias=AliasChoices("columnValues", "column_values")
    )

    @property
    def is_manual(self) -> bool:
        return self.mode.lower() == "manual"


class IntakeRequest(RequestModel):
    """Body shared by the shift, absence and resignation intake endpoints."""

    employee_number: Text = _alias("employeeNumber", "ofcEmployeeNumber", "employee_number")
    full_name: Text = _alias("fullName", "ofcFullname", "full_name")
    caller_id: Text = _alias("callerId", "ani", "callerPhone", "caller_id")
    ssn_last4: Text = _alias("ssnLast4", "ssn_last4")

    cell_id: Text = _alias("cellId", "selectedCellId", "cell_id")
    selection_index: Count = Field(
        0, validation_alias=AliasChoices("selectionIndex", "selection_index")
    )
    page_start: Count = Field(0, validation_alias=AliasChoices("pageStart", "page_start"))
    date_hint: Text = _alias("dateHint", "date", "date_hint")
    last_day: Text = _alias("lastDay", "last_day")

    reason: Text = _alias("reason")
    notes: Text = _alias("notes")
    department: Text = _alias("department")
    engagement_id: Text = _alias("engagementId", "zoomEngId", "zoomGuid", "engagement_id")
    dedupe_key: Text = _alias("dedupeKey", "dedupe_key")
    board_id: Text = _alias("boardId", "board_id")
