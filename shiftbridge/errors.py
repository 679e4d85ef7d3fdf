"""
Error taxonomy for intake handlers.

Handlers raise these; the API layer renders them as
``{"success": false, "message": ..., "detail"?: ..., "missing"?: [...]}``.
"""

from fastapi import status

MAX_DETAIL = 1000


class IntakeError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        *,
        detail: str | None = None,
        missing: list[str] | None = None,
        status_code: int | None = None,
        extra: dict | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail[:MAX_DETAIL] if detail else detail
        self.missing = missing
        self.extra = extra or {}
        if status_code is not None:
            self.status_code = status_code

    def to_body(self) -> dict:
        body: dict = {"success": False, "message": self.message}
        if self.detail:
            body["detail"] = self.detail
        if self.missing:
            body["missing"] = self.missing
        body.update(self.extra)
        return body


class ValidationError(IntakeError):
    """Missing or malformed input. 422 when the request is well-formed but wrong."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(IntakeError):
    status_code = status.HTTP_404_NOT_FOUND


class VerificationError(IntakeError):
    status_code = status.HTTP_401_UNAUTHORIZED


class UpstreamError(IntakeError):
    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, message: str, *, upstream_status: int | None = None, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.upstream_status = upstream_status
