"""Locale-aware conversion of displayed price strings to decimals."""
from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation

from services.errors import ParseError

CURRENCY_PATTERN = re.compile(
    r"[$€£₹¥₽₩₺₴¢]|\b(?:USD|EUR|GBP|INR|JPY|RUB|Rs\.?)",
    re.IGNORECASE,
)
WHITESPACE_PATTERN = re.compile(r"\s+")
DECIMAL_PATTERN = re.compile(r"-?(?:\d+\.?\d*|\.\d+)")


def _normalize_separators(value: str) -> str:
    has_comma = "," in value
    has_dot = "." in value

    if has_comma and (value.count(".") > 1 or (has_dot and value.rfind(",") > value.rfind("."))):
        # European grouping: 1.234.567,89
        return value.replace(".", "").replace(",", ".")

    if has_comma and not has_dot:
        last_comma = value.rfind(",")
        if last_comma == len(value) - 3:
            whole = value[:last_comma].replace(",", "")
            return f"{whole}.{value[last_comma + 1:]}"

    return value.replace(",", "")


def clean_price_text(raw: str) -> str:
    """Strip currency markers and whitespace, then unify the decimal separator."""
    stripped = CURRENCY_PATTERN.sub("", raw)
    stripped = WHITESPACE_PATTERN.sub("", stripped)
    return _normalize_separators(stripped)


def parse_price(raw: str) -> Decimal:
    """Parse ``raw`` into a non-negative :class:`~decimal.Decimal`.

    Handles US (``1,234.56``), European (``1.234,56``) and Indian
    (``60,100``) groupings. Raises :class:`ParseError` for anything that is
    not a plain non-negative number once cleaned, so callers can move on to
    another candidate string.
    """
    if raw is None or not str(raw).strip():
        raise ParseError("" if raw is None else str(raw), "empty input")

    cleaned = clean_price_text(str(raw))
    if not cleaned:
        raise ParseError(raw, "no digits left after cleaning")
    if not DECIMAL_PATTERN.fullmatch(cleaned):
        raise ParseError(raw, f"{cleaned!r} is not a decimal number")

    try:
        value = Decimal(cleaned.rstrip("."))
    except InvalidOperation as exc:
        raise ParseError(raw, f"{cleaned!r} is not a decimal number") from exc

    if value < 0:
        raise ParseError(raw, "negative price")
    return value


__all__ = ["clean_price_text", "parse_price"]
