from __future__ import annotations

from shiftbridge.gateways import MondayGateway, WinTeamGateway
from shiftbridge.guard import FlowGuard, build_flow_guard


class Clients:
    """Container for the upstream gateways and the flow guard."""

    def __init__(
        self,
        winteam: WinTeamGateway | None = None,
        monday: MondayGateway | None = None,
        guard: FlowGuard | None = None,
    ) -> None:
        self.winteam = winteam or WinTeamGateway()
        self.monday = monday or MondayGateway()
        self.guard = guard if guard is not None else build_flow_guard()


_clients: Clients | None = None


def get_clients() -> Clients:
    """Get the global client container."""
    global _clients
    if _clients is None:
        _clients = Clients()
    return _clients


def set_clients(clients: Clients | None) -> None:
    global _clients
    _clients = clients
