"""
Centralized configuration for the shift intake bridge.
Loads and validates all environment variables.
"""

import os


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


def _csv(name: str, default: str = "") -> list[str]:
    return [part.strip() for part in os.getenv(name, default).split(",") if part.strip()]


class Settings:
    """Application settings loaded from environment variables."""

    def __init__(self) -> None:
        self.ENVIRONMENT = os.getenv("ENVIRONMENT", "development")

        # WinTeam scheduling API
        self.WINTEAM_TENANT_ID = os.getenv("WINTEAM_TENANT_ID", "")
        self.WINTEAM_API_KEY = os.getenv("WINTEAM_API_KEY", "")
        self.WINTEAM_EMPLOYEES_URL = os.getenv(
            "WINTEAM_EMPLOYEES_URL",
            "http://apim.myteamsoftware.com/wtnextgen/employees/v1/api/employees",
        )
        self.WINTEAM_SHIFTS_URL = os.getenv(
            "WINTEAM_SHIFTS_URL",
            "http://apim.myteamsoftware.com/wtnextgen/schedules/v1/api/shiftDetails",
        )

        # Monday board API
        self.MONDAY_API_KEY = os.getenv("MONDAY_API_KEY", "")
        self.MONDAY_API_URL = os.getenv("MONDAY_API_URL", "https://api.monday.com/v2")
        self.MONDAY_BOARD_ID = os.getenv("MONDAY_BOARD_ID", "")
        self.MONDAY_DEFAULT_BOARD_ID = os.getenv("MONDAY_DEFAULT_BOARD_ID", "")

        # Idempotency store
        self.REDIS_URL = os.getenv("REDIS_URL") or os.getenv("FLOW_GUARD_REDIS_URL")
        self.FLOW_GUARD_TTL_SECONDS = int(os.getenv("FLOW_GUARD_TTL_SECONDS", "86400"))

        self.HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "30"))

        # Routing
        self.DEPARTMENT_EMAIL_DOMAIN = os.getenv("DEPARTMENT_EMAIL_DOMAIN", "secureone.com")
        self.CORPORATE_SUPERVISOR_NAMES = _csv("CORPORATE_SUPERVISOR_NAMES")

        # CORS
        self.ALLOWED_ORIGINS = _csv("ALLOWED_ORIGINS", "*")

        # Observability
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
        self.OBS_REDACT_PII = _flag("OBS_REDACT_PII", "true")

        self.PORT = int(os.getenv("PORT", "8080"))

        self._validate_settings()

    def _validate_settings(self) -> None:
        """Production refuses to start without upstream credentials."""
        if not self.is_production:
            return
        required = [
            ("WINTEAM_TENANT_ID", self.WINTEAM_TENANT_ID),
            ("WINTEAM_API_KEY", self.WINTEAM_API_KEY),
            ("MONDAY_API_KEY", self.MONDAY_API_KEY),
        ]
        for name, value in required:
            if value in ("", "CHANGE_ME", f"your_{name.lower()}"):
                raise ValueError(f"{name} must be set to a real value, not a placeholder")

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def board_id(self) -> str:
        return (self.MONDAY_BOARD_ID or self.MONDAY_DEFAULT_BOARD_ID).strip()

    def binding_report(self) -> dict[str, bool]:
        """Which bindings are configured. Never includes values."""
        return {
            "WINTEAM_TENANT_ID": bool(self.WINTEAM_TENANT_ID),
            "WINTEAM_API_KEY": bool(self.WINTEAM_API_KEY),
            "MONDAY_API_KEY": bool(self.MONDAY_API_KEY),
            "MONDAY_BOARD_ID": bool(self.MONDAY_BOARD_ID),
            "MONDAY_DEFAULT_BOARD_ID": bool(self.MONDAY_DEFAULT_BOARD_ID),
            "FLOW_GUARD": bool(self.REDIS_URL),
            "FLOW_GUARD_TTL_SECONDS": bool(os.getenv("FLOW_GUARD_TTL_SECONDS")),
        }


settings = Settings()
