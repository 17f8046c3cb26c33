"""
Error classification for model fallback.

Maps whatever the provider SDK (or the transport underneath it) raised onto
one of three classes:

- OVERLOAD: capacity or rate limiting, worth retrying on another model
- TIMEOUT:  the attempt ran past its deadline, worth retrying on another model
- OTHER:    everything else (bad request, auth, content policy, ...)

Structured signals (error type tags, HTTP status, exception types, errno) are
checked first. Message substring matching is the last resort for errors that
carry no structured code.
"""

import asyncio
import errno
from typing import Any

from orchestrator.fallback_types import ErrorClass

OVERLOAD_TYPE_TAGS = frozenset({"overloaded_error", "rate_limit_error"})
OVERLOAD_STATUS_CODES = frozenset({429, 503})
OVERLOAD_MESSAGE_PATTERNS = ("overloaded", "rate limit", "too many requests")

TIMEOUT_CODES = frozenset({"ETIMEDOUT"})
TIMEOUT_MESSAGE_PATTERNS = ("timeout", "timed out", "aborted")


def _error_type_tag(error: BaseException) -> str:
    tag = getattr(error, "type", None)
    if isinstance(tag, str) and tag:
        return tag.lower()

    # Anthropic SDK: body = {"type": "error", "error": {"type": "overloaded_error", ...}}
    body: Any = getattr(error, "body", None)
    if isinstance(body, dict):
        inner = body.get("error")
        if isinstance(inner, dict) and isinstance(inner.get("type"), str):
            return inner["type"].lower()
        if isinstance(body.get("type"), str) and body["type"] != "error":
            return body["type"].lower()
    return ""


def _status_code(error: BaseException) -> int | None:
    for attr in ("status_code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    response = getattr(error, "response", None)
    value = getattr(response, "status_code", None)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def _message(error: BaseException) -> str:
    message = getattr(error, "message", None)
    if not isinstance(message, str) or not message:
        message = str(error)
    return message.lower()


def is_overload_error(error: BaseException | None) -> bool:
    if error is None:
        return False
    if _error_type_tag(error) in OVERLOAD_TYPE_TAGS:
        return True
    if _status_code(error) in OVERLOAD_STATUS_CODES:
        return True
    message = _message(error)
    return any(pattern in message for pattern in OVERLOAD_MESSAGE_PATTERNS)


def is_timeout_error(error: BaseException | None) -> bool:
    if error is None:
        return False
    if isinstance(error, (TimeoutError, asyncio.TimeoutError)):
        return True
    if type(error).__name__.endswith("TimeoutError"):
        return True
    if getattr(error, "errno", None) == errno.ETIMEDOUT:
        return True
    if getattr(error, "code", None) in TIMEOUT_CODES:
        return True
    message = _message(error)
    return any(pattern in message for pattern in TIMEOUT_MESSAGE_PATTERNS)


def classify_error(error: BaseException | None) -> ErrorClass:
    """Classify an exception; overload checks win over timeout checks."""
    if is_overload_error(error):
        return ErrorClass.OVERLOAD
    if is_timeout_error(error):
        return ErrorClass.TIMEOUT
    return ErrorClass.OTHER


def is_recoverable(error: BaseException | None) -> bool:
    return classify_error(error) != ErrorClass.OTHER
