from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import JSONResponse

from grom.core.rate_limit import enforce_rate_limit
from grom.core.validation import check, validate
from grom.schemas.response import ApiResponse

router = APIRouter(tags=["Toolkit"], dependencies=[Depends(enforce_rate_limit)])

ECHO_SCHEMA = {"message": "string"}


@router.get("/ping", response_model=ApiResponse)
async def ping() -> ApiResponse:
    """Rate-limited liveness probe wrapped in the standard envelope."""

    return ApiResponse.build(data={"pong": True}, message="pong")


@router.post("/echo", response_model=ApiResponse, status_code=201)
async def echo(payload: Any = Body(None)) -> JSONResponse:
    """Validate a ``{"message": str}`` payload and echo it back.

    Raises:
        ApiError: 400 when the body is not a JSON object.
        ValidationAppError: 400 when ``message`` is missing or not a string.
    """

    check(isinstance(payload, dict), 400, "Request body must be a JSON object")
    validate(ECHO_SCHEMA, payload)
    return ApiResponse.build(
        status_code=201,
        data={"message": payload["message"]},
        message="Echoed",
    ).to_response()


@router.get("/rate-limit/stats", response_model=ApiResponse)
async def rate_limit_stats(request: Request) -> ApiResponse:
    """Expose the app-wide limiter configuration and store size."""

    limit = getattr(request.app.state, "rate_limit", None)
    check(limit is not None, 404, "Rate limiting is not configured")
    return ApiResponse.build(data=limit.stats())
