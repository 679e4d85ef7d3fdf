import json
import time
from typing import Any, TypeVar

import pydantic
from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from shiftbridge import intake
from shiftbridge.clients import get_clients
from shiftbridge.config import settings
from shiftbridge.errors import IntakeError, ValidationError
from shiftbridge.models import (
    AuthRequest,
    BoardWriteRequest,
    IntakeRequest,
    RequestModel,
    ShiftsRequest,
)
from shiftbridge.obs import extract_trace_id, get_logger, log_request, setup_logging

logger = get_logger(__name__)

router = APIRouter()

RequestT = TypeVar("RequestT", bound=RequestModel)

ENVELOPE_KEYS = ("params", "json", "data")


def unwrap_payload(raw: Any) -> dict[str, Any]:
    """
    Peel off the envelopes some callers add: a JSON string under ``body``, or
    the payload nested under ``params``, ``json`` or ``data``.
    """
    payload = raw
    if isinstance(payload, dict) and isinstance(payload.get("body"), str):
        try:
            payload = json.loads(payload["body"])
        except ValueError:
            raise ValidationError("Invalid JSON body.") from None

    if isinstance(payload, dict):
        for key in ENVELOPE_KEYS:
            if isinstance(payload.get(key), dict):
                payload = payload[key]
                break

    if not isinstance(payload, dict):
        raise ValidationError("Expected a JSON object.")
    return payload


async def read_request(request: Request, model: type[RequestT]) -> RequestT:
    body = await request.body()
    raw: Any = {}
    if body.strip():
        try:
            raw = json.loads(body)
        except ValueError:
            raise ValidationError("Invalid JSON body.") from None

    try:
        return model.model_validate(unwrap_payload(raw))
    except pydantic.ValidationError as exc:
        fields = sorted({".".join(str(part) for part in err["loc"]) for err in exc.errors()})
        raise ValidationError("Invalid request body.", detail=", ".join(fields)) from None


@router.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/debug/env")
async def debug_env() -> dict[str, Any]:
    """Which bindings are configured. Values are never returned."""
    return {"success": True, "environment": settings.ENVIRONMENT, "bindings": settings.binding_report()}


@router.post("/auth/employee")
async def auth_employee(request: Request) -> dict[str, Any]:
    body = await read_request(request, AuthRequest)
    return await intake.authenticate_employee(get_clients(), body)


@router.post("/winteam/shifts")
async def winteam_shifts(request: Request) -> dict[str, Any]:
    body = await read_request(request, ShiftsRequest)
    return await intake.shifts_listing(get_clients(), body)


@router.post("/monday/write")
async def monday_write(request: Request) -> dict[str, Any]:
    body = await read_request(request, BoardWriteRequest)
    return await intake.write_board_item(get_clients(), body)


@router.post("/zva/shift-write")
async def zva_shift_write(request: Request) -> dict[str, Any]:
    """Call-off for a shift picked by its position on the page read to the caller."""
    body = await read_request(request, IntakeRequest)
    return await intake.shift_write_by_selection(get_clients(), body)


@router.post("/zva/shift-write-by-cell")
async def zva_shift_write_by_cell(request: Request) -> dict[str, Any]:
    body = await read_request(request, IntakeRequest)
    return await intake.shift_write_by_cell(get_clients(), body)


@router.post("/zva/absence")
async def zva_absence(request: Request) -> dict[str, Any]:
    body = await read_request(request, IntakeRequest)
    return await intake.absence_intake(get_clients(), body)


@router.post("/zva/resignation")
async def zva_resignation(request: Request) -> dict[str, Any]:
    body = await read_request(request, IntakeRequest)
    return await intake.resignation_intake(get_clients(), body)


async def intake_error_handler(request: Request, exc: IntakeError) -> JSONResponse:
    logger.warning(
        f"{type(exc).__name__}: {exc.message}",
        extra={"route": request.url.path, "status": exc.status_code},
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def not_found_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404:
        message = "Not found. Use /auth/employee, /winteam/shifts, /monday/write or /zva/*."
    else:
        message = str(exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"success": False, "message": message})


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled error",
        exc_info=(type(exc), exc, exc.__traceback__),
        extra={"route": request.url.path, "method": request.method},
    )
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Unhandled error.", "detail": type(exc).__name__},
    )


async def request_logging_middleware(request: Request, call_next):
    """Log each request once and echo the trace id in X-Request-Id."""
    start = time.perf_counter()
    trace_id = extract_trace_id(request)
    request.state.trace_id = trace_id

    try:
        response = await call_next(request)
    except Exception as exc:
        response = await unhandled_error_handler(request, exc)

    response.headers["X-Request-Id"] = trace_id
    log_request(logger, request, response.status_code, (time.perf_counter() - start) * 1000, trace_id)
    return response


def create_app() -> FastAPI:
    setup_logging()

    app = FastAPI(title="shiftbridge")
    app.include_router(router)

    app.add_exception_handler(IntakeError, intake_error_handler)
    app.add_exception_handler(StarletteHTTPException, not_found_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.middleware("http")(request_logging_middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        max_age=86400,
    )
    return app
