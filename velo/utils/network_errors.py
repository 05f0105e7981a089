"""Classification of provider failures into retryable and permanent."""

import asyncio
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .errors import NetworkError, ValidationError, error_message

RETRYABLE_STATUS = {408, 429, 500, 502, 503, 504}

# Transport-level failure text as surfaced by HTTP, IMAP and SMTP clients
_TRANSPORT_PATTERNS = re.compile(
    r"failed to fetch"
    r"|network"
    r"|timed? ?out"
    r"|timeout"
    r"|connection (refused|reset|aborted|closed|lost)"
    r"|could not connect"
    r"|unreachable"
    r"|temporarily unavailable"
    r"|name or service not known"
    r"|getaddrinfo"
    r"|dns"
    r"|econn(refused|reset|aborted)"
    r"|enotfound"
    r"|etimedout"
    r"|socket",
    re.IGNORECASE,
)


class ErrorType(Enum):
    """Coarse failure classes used by the dispatcher and the drain."""

    NETWORK = "network"
    SERVER = "server"
    PERMANENT = "permanent"


@dataclass(frozen=True)
class ClassifiedError:
    """Outcome of classifying a provider failure."""

    type: ErrorType
    is_retryable: bool
    message: str


def _status_of(error: BaseException) -> Optional[int]:
    for attr in ("status", "status_code"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
    return None


def classify_error(error: BaseException) -> ClassifiedError:
    """Classify an exception raised by a provider call.

    Transport failures (connection errors, timeouts, DNS, fetch errors) and
    throttling/server-side statuses are retryable. Validation errors,
    rejected requests and anything unrecognised are permanent.
    """
    message = error_message(error)

    if isinstance(error, ValidationError):
        return ClassifiedError(ErrorType.PERMANENT, False, message)

    if isinstance(error, (NetworkError, ConnectionError, TimeoutError, asyncio.TimeoutError)):
        return ClassifiedError(ErrorType.NETWORK, True, message)

    status = _status_of(error)
    if status is not None:
        if status in RETRYABLE_STATUS:
            return ClassifiedError(ErrorType.SERVER, True, message)
        return ClassifiedError(ErrorType.PERMANENT, False, message)

    if _TRANSPORT_PATTERNS.search(message):
        return ClassifiedError(ErrorType.NETWORK, True, message)

    return ClassifiedError(ErrorType.PERMANENT, False, message)


def is_retryable(error: BaseException) -> bool:
    """Shorthand for ``classify_error(error).is_retryable``."""
    return classify_error(error).is_retryable
