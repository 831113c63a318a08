"""Request validation for the analysis and alert endpoints."""

from __future__ import annotations

import re
from typing import Any

from newswatch.errors import RequestValidationError

MAX_SUBJECTS = 100
MAX_ALERT_CHARS = 4000
SUBJECT_RE = re.compile(r"^[A-Za-z0-9_]{1,20}$")


def parse_subjects(raw: Any) -> list[str] | None:
    """Normalize a body list or a comma-separated query value. None means "not provided"."""
    if raw is None:
        return None
    if isinstance(raw, str):
        if not raw.strip():
            return None
        return [s.strip() for s in raw.split(",")]
    if not isinstance(raw, list):
        raise RequestValidationError("Subjects must be an array")
    return raw


def validate_subjects(subjects: list[Any]) -> list[str]:
    if len(subjects) > MAX_SUBJECTS:
        raise RequestValidationError(f"Too many subjects requested (max: {MAX_SUBJECTS})")
    for subject in subjects:
        if not isinstance(subject, str):
            raise RequestValidationError("All subjects must be strings")
        if not 1 <= len(subject) <= 20:
            raise RequestValidationError(f"Subject must be 1-20 characters: {subject}")
        if not SUBJECT_RE.match(subject):
            raise RequestValidationError(f"Subject must be alphanumeric (with underscore): {subject}")
    return list(subjects)


def validate_alert_text(text: Any) -> str:
    if not text or not isinstance(text, str) or not text.strip():
        raise RequestValidationError("Alert text is required and must be a string")
    if len(text) > MAX_ALERT_CHARS:
        text = text[:MAX_ALERT_CHARS] + "..."
    return text
