import re
from typing import Any, Optional

from .errors import InvalidInputError

_ID_PATTERN = re.compile(r"^[0-9a-f]{24}$")


class IdentifierValidator:
    """Validates the 24-character hex identifiers the stores hand out."""

    @staticmethod
    def is_valid(value: Any) -> bool:
        return isinstance(value, str) and bool(_ID_PATTERN.match(value))

    @staticmethod
    def require(value: Any, field: str) -> str:
        if value is None or (isinstance(value, str) and not value.strip()):
            raise InvalidInputError(f"{field} is required")
        if not IdentifierValidator.is_valid(value):
            raise InvalidInputError(f"Invalid {field}: {value}")
        return value


class TextValidator:
    """Basic text checks and cleanup for catalog and directory fields."""

    @staticmethod
    def clean(text: Optional[str]) -> Optional[str]:
        if text is None:
            return None
        t = text.strip()
        return t or None

    @staticmethod
    def require(text: Optional[str], field: str) -> str:
        cleaned = TextValidator.clean(text)
        if cleaned is None:
            raise InvalidInputError(f"{field} is required")
        return cleaned


def validate_copies(value: Any, field: str = "totalCopies") -> int:
    # bool is an int subclass; reject it explicitly
    if value is None:
        raise InvalidInputError(f"{field} is required")
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInputError(f"{field} must be an integer")
    if value < 0:
        raise InvalidInputError(f"{field} must not be negative")
    return value
