import json
from datetime import datetime

import httpx
import pytest

from shiftbridge.gateways import MondayGateway, WinTeamGateway

EMPLOYEE = {
    "employeeNumber": "12345",
    "employeeId": "E-12345",
    "firstName": "Dana",
    "lastName": "Reyes",
    "emailAddress": "dana.reyes@example.com",
    "phone1": "(312) 555-0142",
    "supervisorDescription": "IL Ops Team",
    "statusDescription": "Active",
    "typeDescription": "Full Time",
    "state": "IL",
    "partialSSN": "6789",
}


def shift_group(
    start: datetime,
    end: datetime,
    cell_id: str,
    *,
    site: str = "Harbor Point Tower",
    role: str = "Lobby Officer",
    employee_number: str = "12345",
) -> dict:
    """One WinTeam site/post group holding a single shift."""
    return {
        "employeeNumber": employee_number,
        "jobDescription": site,
        "postDescription": role,
        "utCoffset": -6,
        "shifts": [
            {
                "startTime": start.strftime("%Y-%m-%dT%H:%M:%S"),
                "endTime": end.strftime("%Y-%m-%dT%H:%M:%S"),
                "hours": round((end - start).total_seconds() / 3600, 2),
                "hourType": "REG",
                "hourDescription": "Regular",
                "cellId": cell_id,
                "scheduleDetailID": f"SD-{cell_id}",
            }
        ],
    }


class FakeWinTeam:
    """Serves employees and shift groups and records every query it receives."""

    def __init__(self, employees: list[dict] | None = None, groups: list[dict] | None = None) -> None:
        self.employees = {record["employeeNumber"]: record for record in employees or []}
        self.groups = list(groups or [])
        self.calls: list[tuple[str, dict[str, str]]] = []
        self.status = 200

    def handler(self, request: httpx.Request) -> httpx.Response:
        params = dict(request.url.params)
        self.calls.append((request.url.path, params))
        if self.status != 200:
            return httpx.Response(self.status, text="upstream unavailable")

        if request.url.path.endswith("/employees"):
            record = self.employees.get(params.get("searchText", ""))
            return httpx.Response(200, json={"data": [{"results": [record] if record else []}]})

        from_date, to_date = params["fromDate"], params["toDate"]
        results = []
        for group in self.groups:
            shifts = [
                shift
                for shift in group["shifts"]
                if from_date <= shift["startTime"][:10] <= to_date
                or from_date <= shift["endTime"][:10] <= to_date
            ]
            if shifts:
                results.append({**group, "shifts": shifts})
        return httpx.Response(200, json={"data": [{"results": results}]})

    def gateway(self) -> WinTeamGateway:
        return WinTeamGateway("tenant-1", "key-1", transport=httpx.MockTransport(self.handler))

    @property
    def shift_queries(self) -> list[dict[str, str]]:
        return [params for path, params in self.calls if path.endswith("/shiftDetails")]


class FakeMonday:
    """Minimal Monday GraphQL endpoint: create, update columns, search by column text."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict]] = []
        self.items_by_text: dict[str, dict] = {}
        self.fail = False
        self._next_id = 9000

    def handler(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        query, variables = payload["query"], payload["variables"]

        if "create_item" in query:
            operation = "create_item"
        elif "change_multiple_column_values" in query:
            operation = "change_multiple_column_values"
        else:
            operation = "items_page"
        self.calls.append((operation, variables))

        if self.fail:
            return httpx.Response(200, json={"errors": [{"message": "Column not found"}]})

        if operation == "create_item":
            self._next_id += 1
            item = {"id": str(self._next_id), "name": variables["itemName"]}
            return httpx.Response(200, json={"data": {"create_item": item}})
        if operation == "change_multiple_column_values":
            item = {"id": variables["itemId"], "name": "updated"}
            return httpx.Response(200, json={"data": {"change_multiple_column_values": item}})

        found = self.items_by_text.get(variables["value"])
        items = [found] if found else []
        return httpx.Response(200, json={"data": {"boards": [{"items_page": {"items": items}}]}})

    def gateway(self) -> MondayGateway:
        return MondayGateway("monday-token", transport=httpx.MockTransport(self.handler))

    def operations(self, name: str) -> list[dict]:
        return [variables for operation, variables in self.calls if operation == name]

    @property
    def creates(self) -> list[dict]:
        return self.operations("create_item")

    @property
    def column_writes(self) -> list[dict]:
        return [json.loads(v["cv"]) for v in self.operations("change_multiple_column_values")]


@pytest.fixture
def winteam() -> FakeWinTeam:
    return FakeWinTeam(employees=[EMPLOYEE])


@pytest.fixture
def monday() -> FakeMonday:
    return FakeMonday()
