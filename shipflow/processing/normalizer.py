"""
Cell value normalization used by every comparison in the pipeline.
"""

import re
import math
from datetime import date, datetime
from typing import Any

import pytz

_NUMBER_PATTERN = re.compile(r'^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$')

# Integral floats at or above this magnitude keep exponent notation
_MAX_PLAIN_INTEGER = 1e21


def _format_instant(value: datetime, default_tz) -> str:
    if value.tzinfo is None:
        value = default_tz.localize(value)
    utc_value = value.astimezone(pytz.UTC)
    return utc_value.strftime('%Y-%m-%dT%H:%M:%S.') + f"{utc_value.microsecond // 1000:03d}Z"


def _format_number(number: float) -> str:
    if number == 0:
        return '0'
    if number.is_integer() and abs(number) < _MAX_PLAIN_INTEGER:
        return str(int(number))
    return repr(number)


def is_numeric_text(value: str) -> bool:
    """Return True for plain decimal or exponent notation, nothing else."""
    return bool(_NUMBER_PATTERN.match(value))


def normalize_value(value: Any, default_tz=pytz.UTC) -> str:
    """Canonicalize a cell value into a comparable string.

    Dates collapse to their UTC instant, numbers and numeric strings to a
    single float rendering, and everything else to trimmed text.
    """
    if value is None:
        return ''

    if isinstance(value, datetime):
        return _format_instant(value, default_tz)

    if isinstance(value, date):
        return _format_instant(datetime(value.year, value.month, value.day), pytz.UTC)

    if isinstance(value, bool):
        return 'true' if value else 'false'

    if isinstance(value, (int, float)):
        number = float(value)
        if math.isnan(number) or math.isinf(number):
            return str(value).strip()
        return _format_number(number)

    text = str(value).strip()
    if not text:
        return ''

    if is_numeric_text(text):
        number = float(text)
        if not math.isinf(number):
            return _format_number(number)

    return text
