"""Helper library exposed to proposal templates.

Helpers are plain functions. The compiler binds configured defaults
(currency symbol, date format) and registers them under the names
templates use (``formatCurrency``, ``formatDate``, ``groupBy``, ``eq``...).
"""

import logging
import math
import re
from collections.abc import Callable, Mapping
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

logger = logging.getLogger(__name__)

_NON_NUMERIC = re.compile(r"[^0-9.\-]+")
_LEADING_NUMBER = re.compile(r"-?(?:\d+(?:\.\d*)?|\.\d+)")
_CENTS = Decimal("0.01")


def parse_number(value: Any) -> float | None:
    """Parse a number or numeric-looking string.

    Strings are stripped of every character other than digits, ``.`` and
    ``-`` and the longest leading number is taken, so ``"$1,234.50"``
    parses as ``1234.5``.

    Returns:
        The parsed value, or None when nothing numeric is found.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
        return None if math.isnan(number) else number
    if not isinstance(value, str):
        return None

    match = _LEADING_NUMBER.match(_NON_NUMERIC.sub("", value))
    if match is None:
        return None
    return float(match.group(0))


def format_currency(value: Any, symbol: str = "$") -> Any:
    """Format a value as a currency string (``$1,234.50``).

    Unparsable input is returned unchanged and ``None`` renders as an
    empty string.
    """
    if value is None:
        return ""

    number = parse_number(value)
    if number is None or math.isinf(number):
        return value

    amount = Decimal(repr(number)).quantize(_CENTS, rounding=ROUND_HALF_UP)
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,.2f}"


def format_date(value: Any, fmt: str | None = None, default_format: str = "%m/%d/%Y") -> Any:
    """Format an ISO-like date as ``MM/DD/YYYY``.

    Accepts ``date``/``datetime`` objects, ISO 8601 strings and epoch
    milliseconds. Unparsable input is returned unchanged. ``fmt`` is only
    honoured as a ``strftime`` pattern; anything else (such as
    ``"MM/DD/YYYY"``) falls back to ``default_format``.
    """
    if value is None or value == "":
        return ""

    pattern = fmt if isinstance(fmt, str) and "%" in fmt else default_format

    if isinstance(value, (datetime, date)):
        return value.strftime(pattern)

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc).strftime(pattern)
        except (OverflowError, OSError, ValueError):
            return value

    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip()).strftime(pattern)
        except ValueError:
            logger.debug(f"formatDate could not parse {value!r}")
            return value

    return value


def _lookup(item: Any, path: str) -> Any:
    current = item
    for part in path.split("."):
        if isinstance(current, Mapping):
            current = current.get(part)
        else:
            current = getattr(current, part, None)
        if current is None:
            return None
    return current


def _group_key(value: Any) -> str:
    if value is None:
        return "undefined"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def group_by(collection: Any, prop: Any) -> dict[str, list[Any]]:
    """Group a collection by a (dotted) property name.

    Returns:
        Mapping from each distinct property value to its items, in order
        of first appearance. Non-list input yields an empty mapping.
    """
    if not isinstance(collection, (list, tuple)) or not isinstance(prop, str):
        return {}

    groups: dict[str, list[Any]] = {}
    for item in collection:
        groups.setdefault(_group_key(_lookup(item, prop)), []).append(item)
    return groups


def eq(a: Any, b: Any) -> bool:
    """Strict equality: values of different kinds never match."""
    if isinstance(a, bool) != isinstance(b, bool):
        return False
    if isinstance(a, str) != isinstance(b, str):
        return False
    return a == b


def ne(a: Any, b: Any) -> bool:
    return not eq(a, b)


def _compare(a: Any, b: Any, op: Callable[[Any, Any], bool]) -> bool:
    try:
        return bool(op(a, b))
    except TypeError:
        left, right = parse_number(a), parse_number(b)
        if left is None or right is None:
            return False
        return bool(op(left, right))


def gt(a: Any, b: Any) -> bool:
    return _compare(a, b, lambda x, y: x > y)


def gte(a: Any, b: Any) -> bool:
    return _compare(a, b, lambda x, y: x >= y)


def lt(a: Any, b: Any) -> bool:
    return _compare(a, b, lambda x, y: x < y)


def lte(a: Any, b: Any) -> bool:
    return _compare(a, b, lambda x, y: x <= y)


def and_(*values: Any) -> bool:
    return all(values)


def or_(*values: Any) -> bool:
    return any(values)


def not_(value: Any) -> bool:
    return not value


DEFAULT_HELPERS: dict[str, Callable[..., Any]] = {
    "formatCurrency": format_currency,
    "formatDate": format_date,
    "groupBy": group_by,
    "eq": eq,
    "ne": ne,
    "gt": gt,
    "gte": gte,
    "lt": lt,
    "lte": lte,
    "and": and_,
    "or": or_,
    "not": not_,
}
