"""Input validation helpers shared by the services.

All helpers raise `ValidationError` so controllers can answer 400
without inspecting the message.
"""

import re
from datetime import date, datetime
from typing import Any, Iterable, Mapping, Optional

from ..errors import ValidationError

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


def validate_required_fields(data: Mapping[str, Any], fields: Iterable[str]) -> None:
    """Fail with one message naming every missing field."""
    missing = [f for f in fields if _is_missing(data.get(f))]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")


def is_valid_email(email: Optional[str]) -> bool:
    """Return True for a well-formed address or for no address at all."""
    if not email:
        return True
    return bool(EMAIL_RE.match(email))


def validate_email(email: Optional[str]) -> None:
    if not is_valid_email(email):
        raise ValidationError("Invalid email format")


def parse_date(value: Any, field: str) -> Optional[date]:
    """Coerce `value` to a `date`; `None` and empty strings pass through as `None`."""
    if _is_missing(value):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            pass
    raise ValidationError(f"Invalid {field} format. Use YYYY-MM-DD")


def validate_choice(value: Any, choices: Iterable[str], label: str) -> str:
    choices = tuple(choices)
    if value not in choices:
        raise ValidationError(f"Invalid {label}. Must be one of: {', '.join(choices)}")
    return value


def parse_number(value: Any, field: str) -> float:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number")


def validate_document(value: Any, field: str, allow_array: bool = False) -> None:
    """Check a structured field is object-shaped (or array-shaped when allowed)."""
    if value is None:
        return
    if isinstance(value, dict):
        return
    if allow_array and isinstance(value, list):
        return
    expected = "a valid array or JSON object" if allow_array else "a valid JSON object"
    raise ValidationError(f"{field} must be {expected}")
