"""Exception hierarchy for the mutation engine.

Every error raised on purpose derives from ``VeloError`` and carries a
category, a message fit for display and a ``details`` dict for the logs.
The dispatcher and the queue drain never branch on these classes directly;
they go through ``velo.utils.network_errors.classify_error``.
"""

from enum import Enum
from typing import Any, Dict, Optional

from velo.utils.logging import get_logger

_logger = None


def _get_logger():
    """Get logger with lazy initialisation."""
    global _logger
    if _logger is None:
        _logger = get_logger(__name__)
    return _logger


class ErrorCategory(Enum):
    DATABASE = "database"
    NETWORK = "network"
    PROVIDER = "provider"
    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    FILE_SYSTEM = "file_system"
    UNKNOWN = "unknown"


## Base


class VeloError(Exception):
    """Base exception for all engine errors."""

    category = ErrorCategory.UNKNOWN
    user_message = "Something went wrong"

    def __init__(
        self, message: str | None = None, details: Dict[str, Any] | None = None
    ):
        self.message = message or self.user_message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "category": self.category.value,
            "message": self.message,
            "details": self.details,
        }


## Storage


class DatabaseError(VeloError):
    """The queue or quick step store could not complete a read or write."""

    category = ErrorCategory.DATABASE
    user_message = "Local storage failed"


class DatabaseConnectionError(DatabaseError):
    user_message = "Could not open the local database"


class DatabaseTransactionError(DatabaseError):
    user_message = "A local storage transaction was rolled back"


class QuickStepNotFoundError(DatabaseError):
    user_message = "Quick step not found"


## Transport


class NetworkError(VeloError):
    """The provider could not be reached. Always retryable."""

    category = ErrorCategory.NETWORK
    user_message = "The mail server could not be reached"


class NetworkTimeoutError(NetworkError):
    user_message = "The mail server did not answer in time"


## Provider responses


class ProviderError(VeloError):
    """The provider answered but did not apply the change.

    ``status`` is the HTTP-like status code when the provider reports one;
    classification treats 408, 429 and 5xx as retryable.
    """

    category = ErrorCategory.PROVIDER
    user_message = "The mail provider returned an error"

    def __init__(
        self,
        message: str | None = None,
        details: Dict[str, Any] | None = None,
        status: Optional[int] = None,
    ):
        super().__init__(message, details)
        self.status = status


class ProviderRejectedError(ProviderError):
    user_message = "The mail provider refused the change"


## Validation


class ValidationError(VeloError):
    """Input that can never succeed, however often it is retried."""

    category = ErrorCategory.VALIDATION
    user_message = "Invalid input"


class UnknownActionError(ValidationError):
    user_message = "Unknown action type"


class InvalidQuickStepError(ValidationError):
    user_message = "Quick step definition is invalid"


## Configuration


class ConfigurationError(VeloError):
    category = ErrorCategory.CONFIGURATION
    user_message = "The configuration could not be used"


class MissingConfigError(ConfigurationError):
    user_message = "Configuration key not found"


class InvalidConfigError(ConfigurationError):
    user_message = "Configuration file is invalid"


class ProviderNotRegisteredError(ConfigurationError):
    user_message = "No mail provider configured for this account"


class FileSystemError(VeloError):
    category = ErrorCategory.FILE_SYSTEM
    user_message = "Could not read or write a local file"


## Reporting


class ErrorHandler:
    """Logs an exception once and returns its dict form for display."""

    @staticmethod
    def handle(
        error: Exception, context: str = "", log_traceback: bool = True
    ) -> Dict[str, Any]:
        logger = _get_logger()
        prefix = f"{context}: " if context else ""

        if isinstance(error, VeloError):
            logger.error(f"{prefix}{error.message}", extra={"context": error.details})
            report = error.to_dict()
        else:
            logger.error(f"{prefix}{error}")
            report = {
                "error_type": "UnknownError",
                "category": ErrorCategory.UNKNOWN.value,
                "message": str(error),
                "details": {"context": context},
            }

        if log_traceback:
            logger.debug(f"{prefix}traceback", exc_info=(type(error), error, error.__traceback__))
        return report


def error_message(error: BaseException) -> str:
    """Best human-readable message carried by an exception."""
    if isinstance(error, VeloError):
        return error.message
    return str(error) or error.__class__.__name__


def format_error_message(error: Exception) -> str:
    """Message for the console: our own errors verbatim, anything else generic."""
    if isinstance(error, VeloError):
        return error.message
    return "An unexpected error occurred - check logs for details."
