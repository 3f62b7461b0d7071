"""templates/formatters.py - Text helpers shared by the email templates."""

import html
import re
from datetime import date, datetime
from typing import Iterable, Union

CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
}

DateLike = Union[date, datetime, str]


def escape_html(value) -> str:
    if value is None:
        return ""
    return html.escape(str(value), quote=True)


def format_currency(amount: float, currency: str = "USD", decimals: int = 2) -> str:
    """'$1,234.50' for known currencies, 'CAD 1,234.50' otherwise."""
    code = (currency or "USD").upper()
    number = f"{abs(amount):,.{decimals}f}"
    sign = "-" if amount < 0 else ""
    symbol = CURRENCY_SYMBOLS.get(code)
    if symbol:
        return f"{sign}{symbol}{number}"
    return f"{sign}{code} {number}"


def _as_datetime(value: DateLike) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def _clock_time(dt: datetime) -> str:
    hour = dt.hour % 12 or 12
    suffix = "AM" if dt.hour < 12 else "PM"
    return f"{hour}:{dt.minute:02d} {suffix}"


def format_date(value: DateLike) -> str:
    """January 1, 2025"""
    dt = _as_datetime(value)
    return f"{dt.strftime('%B')} {dt.day}, {dt.year}"


def format_datetime(value: DateLike) -> str:
    """January 1, 3:05 PM"""
    dt = _as_datetime(value)
    return f"{dt.strftime('%B')} {dt.day}, {_clock_time(dt)}"


def format_short_datetime(value: DateLike) -> str:
    """Jan 1, 3:05 PM"""
    dt = _as_datetime(value)
    return f"{dt.strftime('%b')} {dt.day}, {_clock_time(dt)}"


def join_with_and(items: Iterable[str]) -> str:
    items = [str(i) for i in items if i]
    if not items:
        return ""
    if len(items) == 1:
        return items[0]
    return ", ".join(items[:-1]) + " and " + items[-1]


_BLOCK_TAGS = re.compile(r"</?(?:p|div|h[1-6]|li|ul|tr|table|section|br)\b[^>]*>", re.IGNORECASE)
_HIDDEN_BLOCKS = re.compile(r"<(head|style|script)\b.*?</\1>", re.IGNORECASE | re.DOTALL)
_TAGS = re.compile(r"<[^>]+>")


def strip_html(markup: str) -> str:
    """Plain-text rendering of an email body: tags dropped, entities decoded, blank runs collapsed."""
    text = _HIDDEN_BLOCKS.sub("", markup or "")
    text = re.sub(r"<!DOCTYPE[^>]*>", "", text, flags=re.IGNORECASE)
    text = _BLOCK_TAGS.sub("\n", text)
    text = _TAGS.sub(" ", text)
    text = html.unescape(text)

    lines = [re.sub(r"[ \t\u00a0]+", " ", line).strip() for line in text.splitlines()]
    return "\n".join(line for line in lines if line)
