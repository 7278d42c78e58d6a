"""
Errors
======
Exception hierarchy for tracker operations, plus helpers that turn arbitrary
error values and test failure output into short human-readable strings.
"""
import json
from typing import Any


class TrackerError(Exception):
    """Base class for every error raised by a tracker backend."""


class TrackerOperationError(TrackerError):
    """The tracker rejected a create/close/reopen call."""


class TrackerConsistencyError(TrackerError):
    """An operation needed a mapping or ticket that does not exist."""


class TrackerUnavailableError(TrackerError):
    """The backend cannot operate (gh missing, not authenticated, ...)."""


class ConfigurationError(TrackerError):
    pass


def format_error(error: Any) -> str:
    if error is None:
        return "Unknown error"
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__
    if isinstance(error, str):
        return error
    try:
        return json.dumps(error)
    except (TypeError, ValueError):
        return repr(error)


def detect_error_type(message: str) -> str:
    """Classify a raw failure message for ticket prose."""
    if not message:
        return "Unknown Error"
    if "expect(" in message:
        return "Assertion Error"
    if "TypeError:" in message:
        return "Type Error"
    if "ReferenceError:" in message:
        return "Reference Error"
    return message.strip().split("\n")[0]
