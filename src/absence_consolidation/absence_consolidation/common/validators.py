from __future__ import annotations

from typing import Optional

from ..core.constants import MAX_TEXT_LENGTH
from ..core.exceptions import ValidationError


def require_non_empty(value: str, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} is required")
    return value.strip()


def require_positive_id(value, field_name: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} is invalid")
    try:
        ident = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} is invalid")
    if ident <= 0:
        raise ValidationError(f"{field_name} is invalid")
    return ident


def optional_text(value: Optional[str], field_name: str = "Text", max_length: int = MAX_TEXT_LENGTH) -> Optional[str]:
    """Stripped text or None. Non-string input and over-long text are rejected."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be text")
    text = value.strip()
    if len(text) > max_length:
        raise ValidationError(f"{field_name} is longer than {max_length} characters")
    return text or None


def bounded_limit(value, default: int, maximum: int) -> int:
    if value is None or value == "":
        return default
    return min(require_positive_id(value, "Limit"), maximum)
