"""Value coercion tables shared by the calculation, recall and prefill passes.

Answers are heterogeneous (see :mod:`formlogic.models.response`).  Every rule
for turning an answer of one field type into what another consumer needs is
an explicit function registered in one of three tables:

  - ``NUMERIC_COERCERS``: answer -> number, keyed by the *source* field type
    (seeds the calculation context)
  - ``TARGET_COERCERS``: answer -> value, keyed by the *target* field type
    (direct answer recall and prefill)
  - ``TEMPLATE_FORMATTERS``: answer -> display text, keyed by the *source*
    field type (template substitution)

None of these functions raise on bad input; they return ``None``, ``''`` or
the input unchanged so that a single malformed answer cannot break rendering.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime, timezone
from typing import Any, Callable, Optional
from urllib.parse import quote, unquote_plus, urlsplit

from formlogic.models.field import FormField
from formlogic.models.response import ResponseValue, is_empty

# Leading numeric prefix, the way a browser's parseFloat reads a string.
_NUMBER_PREFIX = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_NON_NUMERIC = re.compile(r"[^0-9.\-]")
_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_URL_SCHEME = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.\-]*$")

# Characters left unescaped by a browser's encodeURIComponent.
URI_COMPONENT_SAFE = "-_.!~*'()"


# ---------------------------------------------------------------------------
# Primitive parsers / formatters
# ---------------------------------------------------------------------------

def parse_number(value: Any) -> Optional[float]:
    """Parse a finite number from a number or the numeric prefix of a string.

    Booleans, lists and dates are not numbers.  ``"12abc"`` parses as 12.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else None
    if isinstance(value, str):
        match = _NUMBER_PREFIX.match(value.strip())
        if not match:
            return None
        try:
            number = float(match.group(0))
        except (OverflowError, ValueError):
            return None
        return number if math.isfinite(number) else None
    return None


def parse_loose_number(value: Any) -> Optional[float]:
    """Like :func:`parse_number` but strips currency signs, grouping, units first.

    ``"$1,200"`` parses as 1200.
    """
    if isinstance(value, str):
        return parse_number(_NON_NUMERIC.sub("", value))
    return parse_number(value)


def narrow_number(number: float) -> int | float:
    """Return an int for integral floats (``170.0`` -> ``170``)."""
    if isinstance(number, float) and number.is_integer():
        return int(number)
    return number


def plain_number_text(number: float) -> str:
    """Shortest text for a number: ``5.0`` -> ``"5"``, ``2.5`` -> ``"2.5"``."""
    return str(narrow_number(number))


def grouped_number_text(number: float) -> str:
    """Number with grouping separators and at most three decimals (``1,234.5``)."""
    number = narrow_number(round(number, 3))
    if isinstance(number, int):
        return f"{number:,}"
    return f"{number:,.3f}".rstrip("0").rstrip(".")


def stringify(value: ResponseValue) -> str:
    """Generic answer-to-text conversion used when no type rule applies."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ", ".join(stringify(v) for v in value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, float):
        return plain_number_text(value)
    return str(value)


def parse_date(value: Any) -> Optional[datetime]:
    """Parse a date/datetime or an ISO-8601 string; ``None`` if not a date."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            return None
    return None


def iso_date_text(value: Any) -> str:
    """ISO date portion (``YYYY-MM-DD``) of a date-like answer.

    Timezone-aware datetimes are converted to UTC first.  Anything that does
    not parse as a date is returned as text unchanged.
    """
    if isinstance(value, date) and not isinstance(value, datetime):
        return value.isoformat()
    parsed = parse_date(value)
    if parsed is None:
        return stringify(value)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.date().isoformat()


def locale_date_text(value: Any) -> str:
    """US locale date string (``1/5/2024``) for a date-like answer."""
    parsed = parse_date(value)
    if parsed is None:
        return stringify(value)
    return f"{parsed.month}/{parsed.day}/{parsed.year}"


def is_valid_email(text: str) -> bool:
    return bool(_EMAIL.match(text))


def is_valid_url(text: str) -> bool:
    """True for absolute URLs with a scheme and a host (``https://x.org/a``)."""
    if not text or any(ch.isspace() for ch in text):
        return False
    try:
        parts = urlsplit(text)
    except ValueError:
        return False
    return bool(parts.scheme and _URL_SCHEME.match(parts.scheme) and parts.netloc)


def format_phone(text: str) -> str:
    """Reformat 10-digit phone numbers as ``(NNN) NNN-NNNN``; else unchanged."""
    digits = re.sub(r"\D", "", text)
    if len(digits) == 10:
        return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"
    return text


def decode_url_value(text: str) -> str:
    """URL-decode a query value (``+`` -> space).  Malformed input is returned as-is."""
    try:
        return unquote_plus(text, errors="strict")
    except UnicodeDecodeError:
        return text


def url_value_text(value: Any, field_type: str) -> str:
    """Unencoded query text for a field value; checkbox lists join with ``,``."""
    if value is None:
        return ""
    if field_type == "checkbox" and isinstance(value, (list, tuple)):
        return ",".join(stringify(v) for v in value)
    return stringify(value)


def encode_url_value(value: Any, field_type: str) -> str:
    """Encode a field value the way a browser's encodeURIComponent does."""
    return quote(url_value_text(value, field_type), safe=URI_COMPONENT_SAFE)


# ---------------------------------------------------------------------------
# Source type -> number (calculation context)
# ---------------------------------------------------------------------------

def _count_selected(value: ResponseValue) -> float:
    if isinstance(value, (list, tuple)):
        return float(len(value))
    return 1.0 if value else 0.0


def _number_or_selected(value: ResponseValue) -> float:
    number = parse_loose_number(value)
    if number is not None:
        return number
    return 1.0 if value else 0.0


def _number_or_length(value: ResponseValue) -> float:
    number = parse_loose_number(value)
    if number is not None:
        return number
    return float(len(str(value))) if value else 0.0


NUMERIC_COERCERS: dict[str, Callable[[ResponseValue], Optional[float]]] = {
    "number": parse_loose_number,
    "rating": parse_loose_number,
    "scale": parse_loose_number,
    "checkbox": _count_selected,
    "dropdown": _number_or_selected,
    "radio": _number_or_selected,
    "text": _number_or_length,
    "textarea": _number_or_length,
}


def numeric_value(value: ResponseValue, field_type: str) -> Optional[float]:
    """Coerce an answer to a number for formulas; ``None`` if it has no numeric meaning."""
    if is_empty(value):
        return None
    coercer = NUMERIC_COERCERS.get(field_type, parse_loose_number)
    return coercer(value)


# ---------------------------------------------------------------------------
# Value -> target field type (direct recall, prefill)
# ---------------------------------------------------------------------------

def to_text(value: ResponseValue) -> str:
    return stringify(value)


def to_email(value: ResponseValue) -> str:
    email = stringify(value).lower().strip()
    return email if is_valid_email(email) else ""


def to_number(value: ResponseValue) -> int | float | str:
    number = parse_number(value)
    return narrow_number(number) if number is not None else ""


def to_phone(value: ResponseValue) -> str:
    return format_phone(stringify(value))


def to_url(value: ResponseValue) -> str:
    url = stringify(value).strip()
    return url if is_valid_url(url) else ""


def to_list(value: ResponseValue) -> list:
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


TARGET_COERCERS: dict[str, Callable[[ResponseValue], Any]] = {
    "text": to_text,
    "textarea": to_text,
    "email": to_email,
    "number": to_number,
    "phone": to_phone,
    "url": to_url,
    "date": iso_date_text,
    "dropdown": to_text,
    "radio": to_text,
    "checkbox": to_list,
}


def coerce_to_target(value: ResponseValue, target_type: str) -> Any:
    """Coerce an answer into the shape a field of *target_type* expects.

    Types without a rule receive the value unchanged.
    """
    coercer = TARGET_COERCERS.get(target_type)
    return coercer(value) if coercer else value


# ---------------------------------------------------------------------------
# Source type -> display text (templates)
# ---------------------------------------------------------------------------

def _format_choices(value: ResponseValue, field: Optional[FormField]) -> str:
    return stringify(value)


def _format_date(value: ResponseValue, field: Optional[FormField]) -> str:
    return locale_date_text(value)


def _format_number(value: ResponseValue, field: Optional[FormField]) -> str:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return grouped_number_text(float(value))
    return stringify(value)


def _format_range(value: ResponseValue, field: Optional[FormField]) -> str:
    scale = field.properties.range_for(field.type) if field is not None else None
    top = scale.max if scale is not None and scale.max is not None else 10
    return f"{stringify(value)}/{plain_number_text(float(top))}"


TEMPLATE_FORMATTERS: dict[str, Callable[[ResponseValue, Optional[FormField]], str]] = {
    "checkbox": _format_choices,
    "date": _format_date,
    "number": _format_number,
    "rating": _format_range,
    "scale": _format_range,
}


def template_text(value: ResponseValue, field: Optional[FormField]) -> str:
    """Display text for an answer inside a recall template."""
    if is_empty(value):
        return ""
    formatter = TEMPLATE_FORMATTERS.get(field.type) if field is not None else None
    if formatter is None:
        return stringify(value)
    return formatter(value, field)
