from enum import Enum


class ErrorCategory(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"          # bad input, no service call made
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"    # fatal, not user-recoverable
    CREDENTIAL_ERROR = "CREDENTIAL_ERROR"          # reselect the key
    QUOTA_ERROR = "QUOTA_ERROR"                    # transient
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"    # transient
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


ERROR_MESSAGES = {
    ErrorCategory.CONFIGURATION_ERROR: (
        "The AI service is not configured correctly. Please contact support."
    ),
    ErrorCategory.CREDENTIAL_ERROR: (
        "API Key not found or invalid. Please select a valid API key and try again."
    ),
    ErrorCategory.QUOTA_ERROR: (
        "The AI service is currently experiencing high demand. "
        "Please try again in a few minutes."
    ),
    ErrorCategory.SERVICE_UNAVAILABLE: (
        "The AI styling service is temporarily unavailable. Please try again later."
    ),
    ErrorCategory.VALIDATION_ERROR: (
        "The request was blocked by the AI. This can happen if an image is unsuitable "
        "for processing. Please try a different photo."
    ),
    ErrorCategory.UNKNOWN_ERROR: (
        "An unexpected error occurred with the AI service. Please try again."
    ),
}


class StudioError(Exception):
    category = ErrorCategory.UNKNOWN_ERROR

    def __init__(self, message: str | None = None, detail: str | None = None) -> None:
        self.message = message or ERROR_MESSAGES[self.category]
        self.detail = detail
        super().__init__(self.message)


class ValidationError(StudioError):
    category = ErrorCategory.VALIDATION_ERROR


class ConfigurationError(StudioError):
    category = ErrorCategory.CONFIGURATION_ERROR


class CredentialError(StudioError):
    category = ErrorCategory.CREDENTIAL_ERROR


class QuotaError(StudioError):
    category = ErrorCategory.QUOTA_ERROR


class ServiceUnavailableError(StudioError):
    category = ErrorCategory.SERVICE_UNAVAILABLE


class UnknownError(StudioError):
    category = ErrorCategory.UNKNOWN_ERROR


class GenerationInProgressError(StudioError):
    category = ErrorCategory.VALIDATION_ERROR

    def __init__(self) -> None:
        super().__init__("A generation is already running. Please wait for it to finish.")


class GenAIServiceError(Exception):
    """Raw failure reported by the generative service."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        status: str | None = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.status = status
        super().__init__(message)
