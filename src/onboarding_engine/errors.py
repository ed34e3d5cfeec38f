"""Domain errors raised by the onboarding services.

Every error carries a stable machine-readable ``code`` and the HTTP status it
maps to at the API boundary. ``context`` holds the conflicting entity's
current state where one is available, so a client can reconcile without
re-fetching.
"""

from __future__ import annotations

from typing import Any


class OnboardingError(Exception):
    """Base class for onboarding domain errors."""

    code = "ONBOARDING_ERROR"
    status_code = 400

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)


class NotFoundError(OnboardingError):
    """Entity absent."""

    code = "NOT_FOUND"
    status_code = 404


class ForbiddenError(OnboardingError):
    """Role or hierarchy check failed."""

    code = "FORBIDDEN"
    status_code = 403


class ValidationError(OnboardingError):
    """Malformed input, out-of-range value or missing required field."""

    code = "VALIDATION_ERROR"
    status_code = 422


class InvalidStateError(OnboardingError):
    """Operation attempted out of the entity's current state-machine position."""

    code = "INVALID_STATE"
    status_code = 409
