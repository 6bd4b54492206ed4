"""
Numeric and text normalization for values arriving from outside the engine.

Request bodies are parsed by pydantic models; this module covers the rest
(grading delegate payloads, loosely typed query strings) so services only
ever see ``Decimal``/``int``/``str`` values.
"""
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

TWO_PLACES = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """Parse a decimal-like value; raises ``ValueError`` when it is not a finite number."""
    if isinstance(value, bool) or value is None:
        raise ValueError(f"not a number: {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f"not a number: {value!r}")
    if not result.is_finite():
        raise ValueError(f"not a finite number: {value!r}")
    return result


def quantize(value: Decimal) -> Decimal:
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def clean_str(value: Any) -> Optional[str]:
    """Strip a value to text, mapping blanks to ``None``."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_optional_int(value: Any) -> Optional[int]:
    text = clean_str(value)
    if text is None:
        return None
    return int(text)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
