"""Input validators for request bodies.

Each validator returns the cleaned value or raises ``ValidationError``.
"""

from typing import Any, Optional

from scoreboard.errors import ValidationError


# Points and ids are stored in 32-bit integer columns
INT_MIN = -(2 ** 31)
INT_MAX = 2 ** 31 - 1


def require_object(data: Any) -> dict:
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def _is_int(value: Any) -> bool:
    # bool is an int subclass but never a valid id or point value
    return isinstance(value, int) and not isinstance(value, bool)


def require_int(data: dict, key: str) -> int:
    if key not in data or data[key] is None:
        raise ValidationError(f'{key} is required')
    value = data[key]
    if not _is_int(value):
        raise ValidationError(f'{key} must be an integer')
    if not INT_MIN <= value <= INT_MAX:
        raise ValidationError(f'{key} is out of range')
    return value


def optional_int(data: dict, key: str) -> Optional[int]:
    if data.get(key) is None:
        return None
    return require_int(data, key)


def optional_text(data: dict, key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f'{key} must be a string')
    return value or None


def normalize_name(value: Any, max_length: int = 64) -> str:
    """Trim a player name and check it is non-empty and short enough."""
    if not isinstance(value, str):
        raise ValidationError('Name is required')
    name = value.strip()
    if not name:
        raise ValidationError('Name is required')
    if len(name) > max_length:
        raise ValidationError(f'Name must be at most {max_length} characters')
    return name
