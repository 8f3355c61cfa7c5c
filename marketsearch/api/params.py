"""
Query-string parsing for the search endpoints.

Malformed numbers and dates raise InvalidSearchRequest; unknown enum values in
comma-separated lists are dropped.
"""

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional, Tuple

from marketsearch.error_handling.errors import InvalidSearchRequest
from marketsearch.models import Condition, ListingType, TextField, parse_timestamp


logger = logging.getLogger(__name__)


def split_csv(value: Optional[str]) -> Tuple[str, ...]:
    """Split a comma-separated value, dropping blanks and duplicates."""
    if not value:
        return ()
    return tuple(dict.fromkeys(part.strip() for part in value.split(",") if part.strip()))


def parse_decimal(value: Optional[str], field: str) -> Optional[Decimal]:
    if value is None or value.strip() == "":
        return None
    try:
        number = Decimal(value.strip())
    except InvalidOperation:
        raise InvalidSearchRequest(f"{field} must be a number, got '{value}'", field=field) from None
    if not number.is_finite():
        raise InvalidSearchRequest(f"{field} must be a finite number", field=field)
    return number


def parse_float(value: Optional[str], field: str) -> Optional[float]:
    number = parse_decimal(value, field)
    return None if number is None else float(number)


def parse_int(value: Optional[str], field: str, default: Optional[int] = None) -> Optional[int]:
    if value is None or value.strip() == "":
        return default
    try:
        return int(value.strip())
    except ValueError:
        raise InvalidSearchRequest(f"{field} must be an integer, got '{value}'", field=field) from None


def parse_bool(value: Optional[str]) -> bool:
    return (value or "").strip().lower() == "true"


def parse_datetime(value: Optional[str], field: str) -> Optional[datetime]:
    if value is None or value.strip() == "":
        return None
    try:
        return parse_timestamp(value)
    except ValueError:
        raise InvalidSearchRequest(f"{field} must be an ISO-8601 date, got '{value}'", field=field) from None


def parse_conditions(values: Iterable[str]) -> Tuple[Condition, ...]:
    conditions = []
    for value in values:
        try:
            conditions.append(Condition(value.strip().upper()))
        except ValueError:
            logger.debug(f"Ignoring unknown condition: {value}")
    return tuple(dict.fromkeys(conditions))


def parse_listing_type(value: Optional[str]) -> Optional[ListingType]:
    if not value:
        return None
    try:
        return ListingType(value.strip().upper())
    except ValueError:
        logger.debug(f"Ignoring unknown listing type: {value}")
        return None


def parse_search_fields(values: Iterable[str]) -> Tuple[TextField, ...]:
    fields = []
    for value in values:
        try:
            fields.append(TextField(value.strip().lower()))
        except ValueError:
            logger.debug(f"Ignoring unknown search field: {value}")
    return tuple(dict.fromkeys(fields)) or tuple(TextField)


def parse_currencies(values: Iterable[str]) -> Tuple[str, ...]:
    return tuple(dict.fromkeys(v.strip().upper() for v in values if v.strip()))
