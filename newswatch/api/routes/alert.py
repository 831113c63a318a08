"""Webhook alert endpoint — push free text straight to every enabled channel."""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Request

from newswatch.api.deps import error_response, get_services, new_correlation_id
from newswatch.api.validation import validate_alert_text
from newswatch.errors import GroundingError, RequestValidationError
from newswatch.pipeline.models import Alert

logger = logging.getLogger(__name__)

router = APIRouter(tags=["alert"])


async def _alert_text(request: Request):
    raw = await request.body()
    try:
        decoded = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise RequestValidationError("Alert body must be UTF-8 text") from exc
    try:
        body = json.loads(decoded)
    except json.JSONDecodeError:
        return decoded
    if isinstance(body, dict):
        return body.get("text")
    return body


@router.post("/alert")
async def post_alert(request: Request):
    correlation_id = new_correlation_id()
    services = get_services(request)
    try:
        try:
            text = validate_alert_text(await _alert_text(request))
        except RequestValidationError as exc:
            return error_response(400, exc.message, exc.code, correlation_id)

        message = text
        sources = ()
        enriched = False
        grounder = services.grounder
        if grounder.is_enabled():
            try:
                grounded = await grounder.ground(text)
                message = grounded.render()
                sources = grounded.sources
                enriched = True
            except GroundingError as exc:
                logger.warning("[api] grounding failed, sending original text: %s", exc)

        alert = Alert.manual(text, message, sources)
        outcomes = await services.dispatcher.dispatch(alert)
        return {"success": True, "results": [o.to_dict() for o in outcomes], "enriched": enriched}
    except Exception:
        logger.exception("[api] unexpected error in alert handler correlation=%s", correlation_id)
        return error_response(500, "Internal server error", "INTERNAL_ERROR", correlation_id)
