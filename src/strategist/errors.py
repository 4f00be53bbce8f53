"""Error taxonomy shared by the selection, loop detection and ledger modules."""

from __future__ import annotations


class StrategistError(Exception):
    """Base class for all errors raised by strategist."""

    code = "STRATEGIST_ERROR"


class NoCandidatesError(StrategistError):
    """Every available agent was excluded, or none were offered."""

    code = "SELECTOR_NO_CANDIDATES"


class StoreUnavailableError(StrategistError):
    """A belief fetch or save could not be served by the backing store."""

    code = "BELIEF_STORE_UNAVAILABLE"


class InvalidArgumentError(StrategistError, ValueError):
    """A required identifier or numeric argument is missing or out of range."""

    code = "INVALID_ARGUMENT"


def require_identifier(value: str | None, name: str) -> str:
    """Return ``value`` if it is a non-blank string, otherwise raise."""
    if value is None or not str(value).strip():
        raise InvalidArgumentError(f"{name} cannot be empty")
    return value
