"""Error taxonomy for the analysis & delivery pipeline.

Only request validation ever reaches the HTTP layer as an exception; every
other failure is converted into a structured outcome at the subject-task or
channel-task boundary.
"""

from __future__ import annotations


class NewswatchError(Exception):
    """Base class for all pipeline errors."""


class RequestValidationError(NewswatchError):
    """Malformed request. Surfaced as 4xx, never retried, never reported."""

    def __init__(self, message: str, code: str = "INVALID_REQUEST") -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class ExternalFailure(NewswatchError):
    """An external collaborator failed after its retries were exhausted."""


class ClassifierError(ExternalFailure):
    """The classifier could not produce a usable signal."""


class ReviewerError(ExternalFailure):
    """The secondary reviewer could not produce a usable verdict."""


class ConfigurationError(NewswatchError):
    """A component is missing credentials; it is excluded, never fatal."""


class GroundingError(ExternalFailure):
    """Grounding of a webhook alert failed; the caller falls back to the raw text."""
