"""Error types shared by the parser, builder and entry point."""

from __future__ import annotations


class HTError(Exception):
    """Base exception for all ht errors."""


class UsageError(HTError):
    """Malformed command-line input.

    The entry point prints the usage line along with the message.
    """


class OperationalError(HTError):
    """Failure while resolving input, e.g. an unreadable file.

    Attributes:
        field: Name of the request item being resolved, if any.
        path: File path involved, if any.
    """

    def __init__(
        self,
        message: str,
        field: str | None = None,
        path: str | None = None,
    ) -> None:
        super().__init__(message)
        self.field = field
        self.path = path
