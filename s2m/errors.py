"""Error taxonomy shared by the clients and the workflow controller."""
from __future__ import annotations

from google.genai import errors as genai_errors

VALIDATION_MESSAGE = "Please enter a story first."
AUTH_MESSAGE = "API key verification failed. Please select a valid key and try again."
GENERIC_MESSAGE = "An error occurred while generating prompts. Please try again."

# Lowercased fragments the Gemini API uses for bad keys, missing entities and quota
_AUTH_MARKERS = (
    "entity was not found",
    "api key not valid",
    "api_key_invalid",
    "permission_denied",
    "unauthenticated",
    "resource_exhausted",
    "quota",
)
_AUTH_STATUS_CODES = {401, 403, 404, 429}


class S2MError(Exception):
    """Base class for every failure the workflow knows how to report."""


class ValidationError(S2MError):
    pass


class EmptyResponse(S2MError):
    pass


class ParseError(S2MError):
    pass


class AuthOrQuotaError(S2MError):
    pass


class NoImageReturned(S2MError):
    pass


def classify_error(exc: BaseException) -> BaseException:
    """Map an arbitrary exception onto the taxonomy.

    S2M errors pass through untouched. Credential, missing-entity and quota
    failures become ``AuthOrQuotaError``; anything else is returned as-is.
    """
    if isinstance(exc, S2MError):
        return exc
    if isinstance(exc, genai_errors.ClientError) and exc.code in _AUTH_STATUS_CODES:
        return AuthOrQuotaError(str(exc))
    text = str(exc).lower()
    if any(marker in text for marker in _AUTH_MARKERS):
        return AuthOrQuotaError(str(exc))
    return exc


def user_message(exc: BaseException) -> str:
    """User-facing text for a failed plan request."""
    if isinstance(exc, ValidationError):
        return VALIDATION_MESSAGE
    if isinstance(exc, AuthOrQuotaError):
        return AUTH_MESSAGE
    return GENERIC_MESSAGE
