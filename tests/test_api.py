import json
from datetime import datetime, timedelta

import pytest
import pytest_asyncio
from conftest import FakeMonday, FakeWinTeam, shift_group
from httpx import ASGITransport, AsyncClient

from shiftbridge.api import create_app
from shiftbridge.clients import Clients, set_clients
from shiftbridge.columns import COLUMN_MAP
from shiftbridge.config import settings
from shiftbridge.guard import InMemoryFlowGuard
from shiftbridge.text import today_utc, ymd


@pytest_asyncio.fixture
async def client():
    """
    Test fixture that creates an async client for the API.
    """
    app = create_app()
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as async_client:
        yield async_client


@pytest.fixture
def guard() -> InMemoryFlowGuard:
    return InMemoryFlowGuard()


@pytest.fixture(autouse=True)
def fake_upstreams(winteam: FakeWinTeam, monday: FakeMonday, guard: InMemoryFlowGuard, monkeypatch):
    """Route every handler to the fake upstreams and a fresh flow guard."""
    monkeypatch.setattr(settings, "MONDAY_BOARD_ID", "board-1")
    monkeypatch.setattr(settings, "DEPARTMENT_EMAIL_DOMAIN", "secureone.com")
    monkeypatch.setattr(settings, "CORPORATE_SUPERVISOR_NAMES", [])
    set_clients(Clients(winteam=winteam.gateway(), monday=monday.gateway(), guard=guard))
    yield
    set_clients(None)


def at_day(offset: int, hour: int) -> datetime:
    day = today_utc() + timedelta(days=offset)
    return datetime(day.year, day.month, day.day, hour)


@pytest.mark.asyncio
async def test_health(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_unknown_path_returns_json_404(client: AsyncClient) -> None:
    response = await client.post("/nope")
    assert response.status_code == 404
    assert response.json()["success"] is False
    assert response.json()["message"].startswith("Not found.")


@pytest.mark.asyncio
async def test_request_id_is_echoed(client: AsyncClient) -> None:
    response = await client.get("/health", headers={"X-Request-Id": "trace-abc"})
    assert response.headers["X-Request-Id"] == "trace-abc"


@pytest.mark.asyncio
async def test_debug_env_reports_booleans_only(client: AsyncClient) -> None:
    response = await client.get("/debug/env")
    assert response.status_code == 200
    bindings = response.json()["bindings"]
    assert bindings["MONDAY_BOARD_ID"] is True
    assert all(isinstance(value, bool) for value in bindings.values())


@pytest.mark.asyncio
async def test_auth_success(client: AsyncClient) -> None:
    response = await client.post("/auth/employee", json={"employeeNumber": "12345", "ssnLast4": "6789"})
    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "Successful employee lookup."
    assert data["employee"]["ofcFullname"] == "Dana Reyes"
    assert data["employee"]["phone1"] == "+13125550142"
    assert "partialSSN" not in json.dumps(data)


@pytest.mark.asyncio
async def test_auth_accepts_wrapped_body(client: AsyncClient) -> None:
    payload = {"body": json.dumps({"params": {"ofcEmployeeNumber": 12345, "ssnLast4": "6789"}})}
    response = await client.post("/auth/employee", json=payload)
    assert response.status_code == 200
    assert response.json()["employee"]["employeeNumber"] == "12345"


@pytest.mark.asyncio
async def test_auth_rejects_invalid_json(client: AsyncClient) -> None:
    response = await client.post(
        "/auth/employee", content=b"{not json", headers={"content-type": "application/json"}
    )
    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Invalid JSON body."}


@pytest.mark.asyncio
async def test_auth_failures(client: AsyncClient, winteam: FakeWinTeam) -> None:
    bad_input = await client.post("/auth/employee", json={"employeeNumber": "12345", "ssnLast4": "67"})
    assert bad_input.status_code == 400
    assert bad_input.json()["missing"] == ["ssnLast4"]

    mismatch = await client.post("/auth/employee", json={"employeeNumber": "12345", "ssnLast4": "0000"})
    assert mismatch.status_code == 401
    assert mismatch.json()["message"] == "SSN verification failed."

    unknown = await client.post("/auth/employee", json={"employeeNumber": "99999", "ssnLast4": "6789"})
    assert unknown.status_code == 404

    winteam.status = 503
    upstream = await client.post("/auth/employee", json={"employeeNumber": "12345", "ssnLast4": "6789"})
    assert upstream.status_code == 502
    assert upstream.json()["detail"] == "upstream unavailable"


@pytest.mark.asyncio
async def test_winteam_shifts_listing(client: AsyncClient, winteam: FakeWinTeam) -> None:
    winteam.groups = [shift_group(at_day(offset, 8), at_day(offset, 16), f"C-{offset}") for offset in (1, 2, 3, 4)]

    response = await client.post("/winteam/shifts", json={"employeeNumber": "12345", "pageStart": 3})

    assert response.status_code == 200
    data = response.json()
    assert data["counts"] == {"rows": 4, "filtered": 4}
    assert [entry["cellId"] for entry in data["entries_page"]] == ["C-4"]
    assert data["page"]["hasNext"] is False


@pytest.mark.asyncio
async def test_monday_write_creates_item(client: AsyncClient, monday: FakeMonday) -> None:
    response = await client.post(
        "/monday/write",
        json={"itemName": "Test item", "reason": "running late", "site": "Harbor Point Tower"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["action"] == "created"
    assert data["boardId"] == "board-1"
    assert monday.creates[0]["itemName"] == "Test item"
    assert monday.column_writes[0][COLUMN_MAP["site"]] == "Harbor Point Tower"


@pytest.mark.asyncio
async def test_monday_write_updates_item_with_same_engagement(client: AsyncClient, monday: FakeMonday) -> None:
    monday.items_by_text["eng-7"] = {"id": "555", "name": "Existing"}

    response = await client.post("/monday/write", json={"itemName": "Retry", "zoomEngId": "eng-7"})

    assert response.status_code == 200
    data = response.json()
    assert data["action"] == "updated"
    assert data["item"]["id"] == "555"
    assert data["dedupeKey"] == "eng-7"
    assert monday.creates == []
    assert monday.operations("change_multiple_column_values")[0]["itemId"] == "555"


@pytest.mark.asyncio
async def test_monday_write_suppresses_duplicate_key(client: AsyncClient, monday: FakeMonday) -> None:
    body = {"itemName": "Once", "dedupeKey": "call-1"}

    first = await client.post("/monday/write", json=body)
    second = await client.post("/monday/write", json=body)

    assert first.json()["upserted"] is True
    assert second.status_code == 200
    assert second.json()["duplicate"] is True
    assert second.json()["upserted"] is False
    assert len(monday.creates) == 1


@pytest.mark.asyncio
async def test_monday_write_validation(client: AsyncClient, monkeypatch) -> None:
    manual = await client.post("/monday/write", json={"mode": "manual", "fullName": "Pat Doe"})
    assert manual.status_code == 422
    assert manual.json()["missing"] == ["reason", "phone|email|callerId"]

    no_name = await client.post("/monday/write", json={"reason": "x"})
    assert no_name.status_code == 400
    assert no_name.json()["message"] == "itemName is required."

    monkeypatch.setattr(settings, "MONDAY_BOARD_ID", "")
    monkeypatch.setattr(settings, "MONDAY_DEFAULT_BOARD_ID", "")
    no_board = await client.post("/monday/write", json={"itemName": "x"})
    assert no_board.status_code == 400
    assert no_board.json()["message"] == "boardId is required (env or body)."


@pytest.mark.asyncio
async def test_monday_errors_surface_as_502(client: AsyncClient, monday: FakeMonday) -> None:
    monday.fail = True
    response = await client.post("/monday/write", json={"itemName": "x"})
    assert response.status_code == 502
    assert "Column not found" in response.json()["detail"]


@pytest.mark.asyncio
async def test_shift_write_by_cell(client: AsyncClient, winteam: FakeWinTeam, monday: FakeMonday) -> None:
    winteam.groups = [shift_group(at_day(2, 22), at_day(2, 6), "CELL-9")]

    response = await client.post(
        "/zva/shift-write-by-cell",
        json={
            "employeeNumber": "12345",
            "cellId": "CELL-9",
            "callerId": "(312) 555-0199",
            "zoomEngId": "eng-42",
            "reason": "I'll be 20 minutes late",
        },
    )

    assert response.status_code == 200
    data = response.json()
    assert data["category"] == "late_in"
    assert data["sent"]["cellId"] == "CELL-9"
    assert data["dedupeKey"] == "eng-42:12345"
    assert monday.creates[0]["itemName"] == "12345 | Dana Reyes"

    columns = monday.column_writes[0]
    assert columns[COLUMN_MAP["startTime"]] == at_day(2, 22).strftime("%Y-%m-%dT%H:%M:%S")
    assert columns[COLUMN_MAP["endTime"]] == at_day(3, 6).strftime("%Y-%m-%dT%H:%M:%S")
    assert columns[COLUMN_MAP["timeInOut"]] == "Late +20m"
    assert columns[COLUMN_MAP["callerId"]] == {"phone": "+13125550199", "countryShortName": "US"}
    assert columns[COLUMN_MAP["division"]] == {"label": "Illinois"}


@pytest.mark.asyncio
async def test_shift_write_by_cell_defaults_reason(client: AsyncClient, winteam: FakeWinTeam, monday: FakeMonday) -> None:
    winteam.groups = [shift_group(at_day(1, 7), at_day(1, 15), "CELL-1")]

    response = await client.post("/zva/shift-write-by-cell", json={"employeeNumber": "12345", "cellId": "CELL-1"})

    assert response.status_code == 200
    assert response.json()["sent"]["reason"] == "calling off sick"
    assert response.json()["dedupeKey"] == f"shift|12345|{ymd(at_day(1, 7))}|cell-1"


@pytest.mark.asyncio
async def test_shift_write_by_cell_errors(client: AsyncClient, monday: FakeMonday) -> None:
    missing_cell = await client.post("/zva/shift-write-by-cell", json={"employeeNumber": "12345"})
    assert missing_cell.status_code == 400
    assert missing_cell.json()["missing"] == ["cellId"]

    not_found = await client.post(
        "/zva/shift-write-by-cell",
        json={"employeeNumber": "12345", "cellId": "GONE", "dateHint": "tomorrow"},
    )
    assert not_found.status_code == 404
    assert not_found.json()["message"] == "Shift not found by cellId."

    # No cell id but a resignation: handled by the resignation flow, which needs the SSN.
    resign = await client.post(
        "/zva/shift-write-by-cell", json={"employeeNumber": "12345", "reason": "I quit"}
    )
    assert resign.status_code == 401
    assert monday.calls == []


@pytest.mark.asyncio
async def test_shift_write_by_selection_clamps_index(client: AsyncClient, winteam: FakeWinTeam, monday: FakeMonday) -> None:
    winteam.groups = [
        shift_group(at_day(1, 7), at_day(1, 15), "FIRST"),
        shift_group(at_day(2, 7), at_day(2, 15), "SECOND"),
    ]

    response = await client.post("/zva/shift-write", json={"employeeNumber": "12345", "selectionIndex": 9})

    assert response.status_code == 200
    assert response.json()["sent"]["cellId"] == "SECOND"
    assert len(monday.creates) == 1


@pytest.mark.asyncio
async def test_shift_write_by_selection_without_shifts(client: AsyncClient) -> None:
    response = await client.post("/zva/shift-write", json={"employeeNumber": "12345"})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_absence_routes_il_ops_employee(client: AsyncClient, winteam: FakeWinTeam, monday: FakeMonday) -> None:
    winteam.groups = [shift_group(at_day(1, 6), at_day(1, 14), "CELL-T", site="Riverside Plaza")]

    response = await client.post(
        "/zva/absence",
        json={
            "employeeNumber": "12345",
            "reason": "calling off sick tomorrow",
            "dateHint": "tomorrow",
            "notes": "fever",
        },
    )

    assert response.status_code == 200
    data = response.json()
    assert data["category"] == "absence"
    assert data["sent"]["date"] == ymd(at_day(1, 0))
    assert data["sent"]["division"] == "Illinois"
    assert data["sent"]["department"] == "Operations"
    assert data["sent"]["deptEmail"] == "ilopsteam@secureone.com"
    assert data["shift"]["cellId"] == "CELL-T"
    assert monday.creates[0]["itemName"] == "12345 | Dana Reyes | Absence"

    columns = monday.column_writes[0]
    assert columns[COLUMN_MAP["reason"]] == "calling off sick tomorrow | Notes: fever"
    assert columns[COLUMN_MAP["department"]] == {"label": "Operations"}
    assert columns[COLUMN_MAP["deptEmail"]] == "ilopsteam@secureone.com"
    assert columns[COLUMN_MAP["site"]] == "Riverside Plaza"


@pytest.mark.asyncio
async def test_absence_by_name_and_phone(client: AsyncClient, winteam: FakeWinTeam, monday: FakeMonday) -> None:
    response = await client.post(
        "/zva/absence",
        json={"fullName": "Pat Doe", "callerId": "312-555-0100", "reason": "I need to leave 2 hours early"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["category"] == "early_out"
    assert data["dedupeKey"] == f"absence|+13125550100|{ymd(today_utc())}|early-out"
    assert monday.creates[0]["itemName"] == "unknown | Pat Doe | Early Out"
    assert monday.column_writes[0][COLUMN_MAP["timeInOut"]] == "Leave early -2h"
    assert winteam.calls == []


@pytest.mark.asyncio
async def test_absence_rejections(client: AsyncClient, monday: FakeMonday) -> None:
    no_identity = await client.post("/zva/absence", json={"fullName": "Pat Doe", "reason": "sick"})
    assert no_identity.status_code == 400
    assert no_identity.json()["missing"] == ["callerId"]

    resignation = await client.post(
        "/zva/absence", json={"employeeNumber": "12345", "reason": "this is my two weeks notice"}
    )
    assert resignation.status_code == 422
    assert resignation.json()["category"] == "resignation"
    assert monday.calls == []


@pytest.mark.asyncio
async def test_resignation_is_written_once(client: AsyncClient, monday: FakeMonday) -> None:
    body = {
        "employeeNumber": "12345",
        "ssnLast4": "6789",
        "reason": "I'm resigning, I found a new job",
        "lastDay": "2026-11-13",
    }

    first = await client.post("/zva/resignation", json=body)
    second = await client.post("/zva/resignation", json=body)

    assert first.status_code == 200
    assert first.json()["verified"] is True
    assert first.json()["upserted"] is True
    assert first.json()["dedupeKey"] == "resignation|12345|2026-11-13|resignation"
    assert second.status_code == 200
    assert second.json()["upserted"] is False
    assert second.json()["duplicate"] is True
    assert len(monday.creates) == 1
    assert monday.creates[0]["itemName"] == "12345 | Dana Reyes | Resignation"

    columns = monday.column_writes[0]
    assert columns[COLUMN_MAP["reason"]] == "Resignation: I'm resigning, I found a new job | Last day: 2026-11-13"
    assert columns[COLUMN_MAP["dateTime"]] == {"date": "2026-11-13"}
    assert columns[COLUMN_MAP["deptEmail"]] == "ilopsteam@secureone.com"


@pytest.mark.asyncio
async def test_resignation_requires_verification(client: AsyncClient, monday: FakeMonday) -> None:
    no_ssn = await client.post("/zva/resignation", json={"employeeNumber": "12345", "reason": "I quit"})
    assert no_ssn.status_code == 401

    wrong_ssn = await client.post(
        "/zva/resignation", json={"employeeNumber": "12345", "ssnLast4": "1111", "reason": "I quit"}
    )
    assert wrong_ssn.status_code == 401
    assert wrong_ssn.json()["message"] == "SSN verification failed."

    name_only = await client.post(
        "/zva/resignation",
        json={"fullName": "Pat Doe", "callerId": "3125550100", "ssnLast4": "6789", "reason": "I quit"},
    )
    assert name_only.status_code == 401

    assert monday.calls == []


@pytest.mark.asyncio
async def test_resignation_rejects_other_reasons(client: AsyncClient, monday: FakeMonday) -> None:
    response = await client.post(
        "/zva/resignation",
        json={"employeeNumber": "12345", "ssnLast4": "6789", "reason": "running late"},
    )
    assert response.status_code == 422
    assert monday.calls == []
