"""
Errors raised by the bracket engine.

All of them are raised synchronously to the immediate caller; nothing in the
engine retries.
"""


class BracketError(Exception):
    """Base class for bracket engine errors."""


class ValidationError(BracketError):
    """Bad input: participant count, duplicate generation, match not ready to start."""


class InvalidResultError(BracketError):
    """A result that cannot be recorded against the referenced match."""


class InvalidStateError(BracketError):
    """An advancement target slot is already filled (a broken invariant)."""


class MatchNotFoundError(InvalidResultError):
    """The referenced match does not exist."""
