"""Shared parsing helpers used by models, services and blueprints.

parse_date:        lenient, returns None on bad input (record loading)
parse_date_input:  strict, raises ValueError on bad input (user input)
parse_datetime:    ISO-8601 instant, returns None on empty/bad input
clean_str:         stripped string or None
require_flag:      strict boolean, raises ValueError on anything else
json_body:         request JSON as a dict, ValidationError for non-object bodies
"""
import logging
from datetime import date, datetime

from flask import request

from nightowl.core.exceptions import ValidationError

logger = logging.getLogger(__name__)


def parse_date(value):
    """Parse a date string (ISO or DD.MM.YYYY) to a date object.

    Returns None for empty/invalid input. Supports:
    - YYYY-MM-DD (ISO format)
    - YYYY-MM-DDTHH:MM:SS (datetime ISO → .date())
    - DD.MM.YYYY
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except (ValueError, TypeError):
        pass
    try:
        return datetime.fromisoformat(str(value)).date()
    except (ValueError, TypeError):
        pass
    try:
        return datetime.strptime(str(value), "%d.%m.%Y").date()
    except (ValueError, TypeError):
        return None


def parse_date_input(value):
    """Parse a date string, raising ValueError on bad input.

    Same as parse_date() but raises ValueError instead of returning None.
    Services catch the ValueError and turn it into a ValidationError.
    """
    if not value:
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        try:
            return datetime.strptime(str(value), "%d.%m.%Y").date()
        except ValueError as exc:
            raise ValueError(
                "Invalid date format. Use YYYY-MM-DD or DD.MM.YYYY."
            ) from exc


def parse_datetime(value):
    """Parse an ISO-8601 instant; datetimes pass through, junk becomes None."""
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except (ValueError, TypeError):
        logger.debug("Unparseable timestamp %r ignored", value)
        return None


def clean_str(value):
    """Return ``value`` stripped, or None when empty."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def require_flag(value, field: str) -> bool:
    """Return ``value`` if it is a real boolean.

    JSON clients sometimes send ``"false"`` or ``0``; truthiness would read
    the string as True, so anything but ``True``/``False`` is rejected.
    """
    if isinstance(value, bool):
        return value
    raise ValueError(f"{field} must be true or false")


def json_body() -> dict:
    """Request JSON object; an empty or unparseable body is ``{}``."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object", details={"body": type(data).__name__})
    return data
