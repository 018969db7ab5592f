"""Custom exceptions for the translation service."""

from fastapi import status


class TranslatorError(Exception):
    """Base exception for the translation service."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "An error occurred in the translation service"

    def __init__(self, message=None, details=None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class ValidationError(TranslatorError):
    """Malformed request, rejected before any job is created."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Validation failed"


class NotFoundError(TranslatorError):
    """Job id unknown to the job store."""

    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Job not found"


class InvalidTransition(TranslatorError):
    """Requested job status change is not allowed by the lifecycle."""

    status_code = status.HTTP_409_CONFLICT
    default_message = "Invalid job status transition"


class InvalidMessage(TranslatorError):
    """Queue message could not be decoded or belongs to another queue."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid queue message"


class ProviderError(TranslatorError):
    """Provider-level failure, recorded on the job as failed."""

    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Translation provider error"


class ProviderExhausted(ProviderError):
    """All provider attempts failed within the attempt budget."""

    default_message = "All translation providers failed"

    def __init__(self, last_error=None, attempts=None):
        self.last_error = last_error
        self.attempts = attempts
        message = self.default_message
        if attempts:
            message += f" after {attempts} attempts"
        if last_error:
            message += f". Last error: {last_error}"
        super().__init__(message)


class UnsupportedLanguage(ProviderError):
    """Source or target language is not supported by the providers."""

    default_message = "Unsupported language"


class TransientInfrastructureError(TranslatorError):
    """Broker or job store unreachable."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Service temporarily unavailable"
