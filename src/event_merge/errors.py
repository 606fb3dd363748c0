"""Exceptions raised for contract violations.

Expected failures (a rejected merge, a malformed event, a bad import
document) are returned as data.  These exceptions are reserved for callers
that use the engine incorrectly.
"""

from __future__ import annotations


class DedupError(Exception):
    """Base class for every error raised by the merge engine."""


class NotInitializedError(DedupError):
    """An operation that requires ``initialize()`` was called before it."""


class ConfigurationError(DedupError):
    """A configuration update failed validation.

    ``errors`` holds one ``"section.key: message"`` string per invalid field.
    """

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        super().__init__("; ".join(errors) or "invalid configuration")
