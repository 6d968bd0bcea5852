"""
Amount parsing helpers.

Every parser returns signed integer minor units (cents) or ``None`` when the
text is not an amount. Nothing in here ever falls back to zero.
"""
import decimal
import re

from . import constants

CURRENCY_PREFIX_RE = re.compile(r"^[A-Za-z]{3}\s*")
NUMBER_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)$")
# apostrophe thousands separators are removed before matching
SWISS_NUMBER_RE = re.compile(r"^[+-]?\d+([.,]\d+)?$")
# a decimal marker is followed by either 1-2 or 4-9 digits, 3 digits means thousands
DECIMAL_MARKER_RE = re.compile(r"[.,]([^.,]{4,9}|[^.,]{1,2})$")
NON_NUMERIC_RE = re.compile(r"[^0-9-]")


def to_minor_units(text: str) -> int | None:
    if not NUMBER_RE.match(text):
        return None
    try:
        value = decimal.Decimal(text)
    except decimal.InvalidOperation:
        return None
    return int(
        (value * constants.MINOR_UNITS).quantize(
            decimal.Decimal(1), rounding=decimal.ROUND_HALF_UP
        )
    )


def strip_parentheses(text: str) -> tuple[str, bool]:
    text = text.strip()
    if text.startswith("(") and text.endswith(")"):
        return text[1:-1].strip(), True
    return text, False


def parse_swiss_amount(value: str | None) -> int | None:
    """Parse amounts like ``CHF 1'234.56``, ``-1'234,56`` or ``(12.00)``"""
    if not value or not value.strip():
        return None
    text, negative = strip_parentheses(value)
    text = CURRENCY_PREFIX_RE.sub("", text)
    text = re.sub(r"['’\s]", "", text)
    if not SWISS_NUMBER_RE.match(text):
        return None
    minor = to_minor_units(text.replace(",", "."))
    if minor is None:
        return None
    return -minor if negative else minor


def parse_amount(value: str | None) -> int | None:
    """Loosely parse an amount from a generic export"""
    if value is None:
        return None
    text, negative = strip_parentheses(value)
    if not any(char.isdigit() for char in text):
        return None
    if text.endswith("-"):
        text = "-" + text[:-1]
    match = DECIMAL_MARKER_RE.search(text)
    if match is None:
        number = NON_NUMERIC_RE.sub("", text)
    else:
        left = NON_NUMERIC_RE.sub("", text[: match.start()])
        right = NON_NUMERIC_RE.sub("", text[match.start() + 1 :])
        number = f"{left}.{right}"
    minor = to_minor_units(number)
    if minor is None:
        return None
    return -minor if negative else minor


def parse_ofx_amount(value: str | None) -> int | None:
    if not value or not isinstance(value, str):
        return None
    text, negative = strip_parentheses(value)
    text = re.sub(r"[^\d.-]", "", text)
    # multiple decimal points, keep the first one
    head, sep, tail = text.partition(".")
    if sep:
        text = head + "." + tail.replace(".", "")
    if text in ("", "-", "."):
        return None
    minor = to_minor_units(text)
    if minor is None:
        return None
    return -minor if negative else minor
