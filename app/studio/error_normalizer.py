"""
Maps raw generative-service failures onto the user-facing error taxonomy.

Structured status codes are consulted first. Message substrings are the
compatibility layer and are scanned in a fixed order, first match wins:

1. "api key not valid"                              -> ConfigurationError
2. "requested entity was not found"                 -> CredentialError
3. "quota"                                          -> QuotaError
4. "503" / "unavailable"                            -> ServiceUnavailableError
5. "invalid argument" / "request was blocked"       -> ValidationError
6. anything else                                    -> UnknownError
"""

import logging

import httpx

from app.studio.exceptions import (
    ConfigurationError,
    CredentialError,
    GenAIServiceError,
    QuotaError,
    ServiceUnavailableError,
    StudioError,
    UnknownError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# INVALID_ARGUMENT and NOT_FOUND are left out: the service also uses them for
# key problems, which only the message tells apart.
STATUS_RULES: dict[str, type[StudioError]] = {
    "RESOURCE_EXHAUSTED": QuotaError,
    "UNAVAILABLE": ServiceUnavailableError,
}

MESSAGE_RULES: list[tuple[tuple[str, ...], type[StudioError]]] = [
    (("api key not valid",), ConfigurationError),
    (("requested entity was not found",), CredentialError),
    (("quota",), QuotaError),
    (("503", "unavailable"), ServiceUnavailableError),
    (("invalid argument", "request was blocked"), ValidationError),
]


def _from_status(error: BaseException) -> type[StudioError] | None:
    if isinstance(error, httpx.TimeoutException | httpx.ConnectError):
        return ServiceUnavailableError

    if isinstance(error, GenAIServiceError) and error.status:
        return STATUS_RULES.get(error.status.upper())

    return None


def classify_message(message: str) -> type[StudioError]:
    lowered = message.lower()
    for needles, error_class in MESSAGE_RULES:
        if any(needle in lowered for needle in needles):
            return error_class
    return UnknownError


def normalize_error(error: BaseException | str) -> StudioError:
    if isinstance(error, StudioError):
        return error

    if isinstance(error, str):
        return classify_message(error)(detail=error)

    raw = str(error)
    error_class = _from_status(error) or classify_message(raw)
    logger.debug("Normalized %s -> %s", type(error).__name__, error_class.__name__)
    return error_class(detail=raw)
