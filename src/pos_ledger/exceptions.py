"""Domain-specific exceptions for POS Ledger.

This module defines custom exceptions that are part of the public API.
All exceptions inherit from PosLedgerError for easy catching.
"""

from __future__ import annotations


class PosLedgerError(Exception):
    """Base exception for all POS Ledger errors.

    Users can catch this exception to handle any POS Ledger error.
    """

    pass


class ConfigError(PosLedgerError):
    """Raised when there is a configuration error.

    This exception is raised when:
    - Required credentials are missing from the environment
    - A TTL or timeout value cannot be parsed
    """

    pass


class RemoteUnavailable(PosLedgerError):
    """Raised when the remote record store cannot serve a fetch or mutation.

    This exception is raised when:
    - The network connection to the store fails or times out
    - Authentication against the store fails
    - The store answers with a non-success HTTP status

    It is fatal to the current operation and is never retried by the core.
    """

    pass


class MalformedRow(PosLedgerError):
    """Raised when a JSON-encoded nested field of a row cannot be parsed.

    The core catches this where it parses rows and treats the field as
    empty, so callers normally only see it reported on a Report.
    """

    def __init__(self, field: str, raw: str, reason: str) -> None:
        super().__init__(f"Malformed '{field}' value ({reason}): {raw[:80]!r}")
        self.field = field
        self.raw = raw
        self.reason = reason


class ValidationError(PosLedgerError):
    """Raised when user input for a write operation is rejected.

    Attributes:
        errors: Mapping of field name to a list of human-readable messages.
    """

    def __init__(self, message: str, errors: dict[str, list[str]]) -> None:
        super().__init__(message)
        self.errors = errors
