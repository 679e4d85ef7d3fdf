"""
Upstream gateways for the WinTeam scheduling API and the Monday GraphQL API.

Neither gateway raises for an ordinary upstream failure. Every call returns a
``GatewayResult`` and the handler decides what the failure means.
"""

import json
from dataclasses import dataclass
from typing import Any

import httpx

from shiftbridge.config import settings
from shiftbridge.obs import get_logger

logger = get_logger(__name__)

MAX_ERROR_BODY = 1000

_CREATE_ITEM = """
mutation ($boardId: ID!, $itemName: String!, $groupId: String) {
  create_item (board_id: $boardId, item_name: $itemName, group_id: $groupId) {
    id
    name
    board { id }
    group { id }
  }
}
"""

_CHANGE_COLUMNS = """
mutation ($boardId: ID!, $itemId: ID!, $cv: JSON!) {
  change_multiple_column_values (board_id: $boardId, item_id: $itemId, column_values: $cv) {
    id
    name
  }
}
"""

_FIND_BY_COLUMN = """
query ($boardId: ID!, $columnId: ID!, $value: CompareValue!) {
  boards (ids: [$boardId]) {
    items_page (
      limit: 1,
      query_params: {rules: [{column_id: $columnId, compare_value: $value, operator: contains_text}]}
    ) {
      items { id name }
    }
  }
}
"""


@dataclass(frozen=True)
class GatewayResult:
    ok: bool
    status: int
    data: Any = None
    error: str = ""

    @classmethod
    def success(cls, data: Any, status: int = 200) -> "GatewayResult":
        return cls(ok=True, status=status, data=data)

    @classmethod
    def failure(cls, status: int, error: str) -> "GatewayResult":
        return cls(ok=False, status=status, error=(error or "")[:MAX_ERROR_BODY])


def first_page_results(payload: Any) -> list[dict]:
    """WinTeam pages look like ``{"data": [{"results": [...]}]}``."""
    if not isinstance(payload, dict):
        return []
    pages = payload.get("data")
    if not isinstance(pages, list) or not pages or not isinstance(pages[0], dict):
        return []
    results = pages[0].get("results")
    return [r for r in results if isinstance(r, dict)] if isinstance(results, list) else []


class WinTeamGateway:
    """Employee and shift-detail lookups against WinTeam."""

    def __init__(
        self,
        tenant_id: str | None = None,
        api_key: str | None = None,
        *,
        employees_url: str | None = None,
        shifts_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.tenant_id = settings.WINTEAM_TENANT_ID if tenant_id is None else tenant_id
        self.api_key = settings.WINTEAM_API_KEY if api_key is None else api_key
        self.employees_url = employees_url or settings.WINTEAM_EMPLOYEES_URL
        self.shifts_url = shifts_url or settings.WINTEAM_SHIFTS_URL
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        return {
            "tenantId": self.tenant_id,
            "Ocp-Apim-Subscription-Key": self.api_key,
            "accept": "application/json",
        }

    async def _get_json(self, url: str, params: dict[str, str]) -> GatewayResult:
        if not self.tenant_id or not self.api_key:
            return GatewayResult.failure(500, "Missing WINTEAM_TENANT_ID or WINTEAM_API_KEY.")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(url, params=params, headers=self._headers())
        except httpx.HTTPError as exc:
            logger.warning(f"WinTeam request failed: {exc}", extra={"upstream": "winteam"})
            return GatewayResult.failure(502, str(exc) or type(exc).__name__)

        if not response.is_success:
            logger.warning(
                f"WinTeam returned {response.status_code}",
                extra={"upstream": "winteam", "status": response.status_code},
            )
            return GatewayResult.failure(response.status_code, response.text)

        try:
            return GatewayResult.success(response.json(), status=response.status_code)
        except ValueError:
            return GatewayResult.failure(502, f"WinTeam returned non-JSON body: {response.text}")

    async def fetch_employee(self, employee_number: str) -> GatewayResult:
        """First matching employee record (or ``None``) as ``data``."""
        result = await self._get_json(
            self.employees_url,
            {
                "searchFieldName": "employeeNumber",
                "searchText": str(employee_number),
                "exactMatch": "true",
            },
        )
        if not result.ok:
            return result
        records = first_page_results(result.data)
        return GatewayResult.success(records[0] if records else None, status=result.status)

    async def fetch_shifts(self, employee_number: str, from_date: str, to_date: str) -> GatewayResult:
        """Site/role groups, each with a ``shifts`` list, as ``data``."""
        result = await self._get_json(
            self.shifts_url,
            {"employeeNumber": str(employee_number), "fromDate": from_date, "toDate": to_date},
        )
        if not result.ok:
            return result
        return GatewayResult.success(first_page_results(result.data), status=result.status)


class MondayGateway:
    """Item create/update/search against the Monday GraphQL endpoint."""

    def __init__(
        self,
        api_key: str | None = None,
        *,
        api_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = settings.MONDAY_API_KEY if api_key is None else api_key
        self.api_url = api_url or settings.MONDAY_API_URL
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS
        self._transport = transport

    async def execute(self, query: str, variables: dict[str, Any]) -> GatewayResult:
        if not self.api_key:
            return GatewayResult.failure(500, "MONDAY_API_KEY not configured.")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.api_url,
                    json={"query": query, "variables": variables},
                    headers={"Authorization": self.api_key, "Content-Type": "application/json"},
                )
        except httpx.HTTPError as exc:
            logger.warning(f"Monday request failed: {exc}", extra={"upstream": "monday"})
            return GatewayResult.failure(502, str(exc) or type(exc).__name__)

        try:
            body = response.json()
        except ValueError:
            status = response.status_code if not response.is_success else 502
            return GatewayResult.failure(status, f"Monday returned non-JSON body: {response.text}")

        if response.is_success and not isinstance(body, dict):
            return GatewayResult.failure(502, f"Monday returned unexpected body: {response.text}")

        errors = body.get("errors") if isinstance(body, dict) else None
        if not response.is_success or errors:
            logger.warning(
                f"Monday API error {response.status_code}",
                extra={"upstream": "monday", "status": response.status_code},
            )
            return GatewayResult.failure(
                response.status_code if not response.is_success else 502,
                f"Monday API error: {response.status_code} {json.dumps(errors or body)}",
            )

        data = body.get("data")
        return GatewayResult.success(data if isinstance(data, dict) else {}, status=response.status_code)

    async def create_item(self, board_id: str, item_name: str, group_id: str = "") -> GatewayResult:
        result = await self.execute(
            _CREATE_ITEM,
            {"boardId": board_id, "itemName": item_name, "groupId": group_id or None},
        )
        if not result.ok:
            return result
        return GatewayResult.success(result.data.get("create_item"), status=result.status)

    async def change_column_values(
        self, board_id: str, item_id: str, column_values: dict[str, Any]
    ) -> GatewayResult:
        result = await self.execute(
            _CHANGE_COLUMNS,
            {"boardId": board_id, "itemId": str(item_id), "cv": json.dumps(column_values)},
        )
        if not result.ok:
            return result
        return GatewayResult.success(
            result.data.get("change_multiple_column_values"), status=result.status
        )

    async def find_item_by_column(self, board_id: str, column_id: str, text: str) -> GatewayResult:
        """First item whose ``column_id`` text contains ``text`` (``None`` when absent)."""
        result = await self.execute(
            _FIND_BY_COLUMN, {"boardId": board_id, "columnId": column_id, "value": text}
        )
        if not result.ok:
            return result
        boards = result.data.get("boards") or []
        items = (boards[0].get("items_page") or {}).get("items") if boards else None
        return GatewayResult.success(items[0] if items else None, status=result.status)
