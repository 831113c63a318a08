"""Shared helpers for route handlers."""

from __future__ import annotations

import uuid

from fastapi import Request
from fastapi.responses import JSONResponse

from newswatch.services import Services


def get_services(request: Request) -> Services:
    return request.app.state.services


def new_correlation_id() -> str:
    return uuid.uuid4().hex


def error_response(status_code: int, error: str, code: str, correlation_id: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "code": code, "correlationId": correlation_id},
    )
