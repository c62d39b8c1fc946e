"""Exceptions raised by the catalog, directory and circulation services.

Each subclass carries the HTTP status the API layer reports it with.
"""


class LibraryError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInputError(LibraryError):
    """Missing or malformed fields or identifiers."""

    status_code = 400


class NotFoundError(LibraryError):
    """A referenced book, student or transaction does not exist."""

    status_code = 404


class ConflictError(LibraryError):
    """A circulation rule was violated (no copies, duplicate issue, nothing to return)."""

    status_code = 400


class QRGenerationError(LibraryError):
    status_code = 500
