"""Batch analysis endpoint — POST or GET /api/analyze."""

from __future__ import annotations

import json
import logging
import time

from fastapi import APIRouter, Request

from newswatch.api.deps import error_response, get_services, new_correlation_id
from newswatch.api.validation import parse_subjects, validate_subjects
from newswatch.errors import RequestValidationError
from newswatch.utils import elapsed_ms

logger = logging.getLogger(__name__)

router = APIRouter(tags=["analyze"])


async def _requested_subjects(request: Request) -> list[str] | None:
    if request.method == "GET":
        return parse_subjects(request.query_params.get("subjects"))

    raw = await request.body()
    if not raw.strip():
        return parse_subjects(request.query_params.get("subjects"))
    try:
        body = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise RequestValidationError("Request body must be valid JSON") from exc
    if not isinstance(body, dict):
        raise RequestValidationError("Request body must be a JSON object")
    if body.get("subjects") is None:
        return parse_subjects(request.query_params.get("subjects"))
    return parse_subjects(body["subjects"])


@router.api_route("/analyze", methods=["GET", "POST"])
async def analyze(request: Request):
    correlation_id = new_correlation_id()
    t0 = time.monotonic()
    services = get_services(request)
    settings = services.settings

    try:
        if not settings.enable_news_monitor:
            return error_response(
                403,
                "News monitor feature is disabled. Set ENABLE_NEWS_MONITOR=true to enable.",
                "FEATURE_DISABLED",
                correlation_id,
            )

        try:
            requested = await _requested_subjects(request)
            subjects = validate_subjects(requested) if requested else []
        except RequestValidationError as exc:
            return error_response(400, exc.message, exc.code, correlation_id)

        if not subjects:
            subjects = settings.default_subjects
        if not subjects:
            return error_response(
                400,
                "No subjects to analyze. Provide subjects or set NEWS_DEFAULT_SUBJECTS.",
                "NO_SUBJECTS",
                correlation_id,
            )

        logger.info("[api] analyzing %s correlation=%s", ",".join(subjects), correlation_id)
        orchestrator = services.orchestrator
        results = await orchestrator.analyze_batch(subjects, correlation_id)
        summary = orchestrator.summarize(results)

        response = {
            "success": summary.analyzed + summary.cached > 0,
            "results": [r.to_dict() for r in results],
            "summary": summary.to_dict(),
            "totalDurationMs": elapsed_ms(t0),
            "correlationId": correlation_id,
        }
        if summary.timed_out or summary.errored:
            response["partial_success"] = True

        logger.info(
            "[api] batch complete correlation=%s total=%dms summary=%s",
            correlation_id, response["totalDurationMs"], response["summary"],
        )
        return response
    except Exception:
        logger.exception("[api] unexpected error correlation=%s", correlation_id)
        return error_response(
            500, "Internal server error. Please try again later.", "INTERNAL_ERROR", correlation_id,
        )
