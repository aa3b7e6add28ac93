"""Coercion of spreadsheet cell values into decimals, dates and text.

Cells arrive as whatever the reader produced: ``str`` for delimited text,
``int``/``float``/``datetime`` for spreadsheet cells, ``NaN`` for empty cells
read through pandas.  Every parser here returns ``None`` for a blank cell and
raises :class:`ParseError` for a value it cannot interpret; nothing silently
becomes zero.
"""

from __future__ import annotations

import datetime as dt
import math
import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

# Days between the spreadsheet epoch (1899-12-30, with the 1900 leap-year bug)
# and the Unix epoch.
SPREADSHEET_EPOCH_OFFSET = 25569
SECONDS_PER_DAY = 86400

CENTS = Decimal("0.01")
SHARE_PRECISION = Decimal("0.0001")

_UNIX_EPOCH = dt.datetime(1970, 1, 1)
_DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y", "%d.%m.%Y", "%Y/%m/%d")
_NUMBER_NOISE = re.compile(r"[^0-9,.\-+]")
_CURRENCY_CODES = re.compile(r"\b(?:EUR|USD|GBP|BRL|CHF)\b|R\$", re.IGNORECASE)
_SIGNS_ONLY = re.compile(r"^[-+\s]+$")
_SERIAL_TEXT = re.compile(r"^\d{1,6}(\.\d+)?$")


class ParseError(ValueError):
    def __init__(self, kind: str, value: Any) -> None:
        super().__init__(f"unparseable {kind}: {value!r}")
        self.kind = kind
        self.value = value


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def parse_text(value: Any) -> Optional[str]:
    if is_blank(value):
        return None
    if isinstance(value, float) and value.is_integer():
        # Spreadsheet readers hand back numeric ids as floats.
        return str(int(value))
    return str(value).strip()


def parse_decimal(value: Any) -> Optional[Decimal]:
    """Parse a number written with either decimal point or decimal comma.

    ``"12,50"`` and ``"12.50"`` both give ``Decimal("12.50")``. When both
    separators appear the last one is the decimal separator, so
    ``"1.234,56"`` and ``"1,234.56"`` agree. Accounting negatives such as
    ``"(12,50)"`` are honoured.
    """
    if is_blank(value):
        return None
    if isinstance(value, bool):
        raise ParseError("number", value)
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ParseError("number", value)
        return Decimal(str(value))

    text = str(value).strip()
    if _SIGNS_ONLY.match(text):
        # A lone dash marks an empty cell.
        return None
    if any(ch.isalpha() for ch in _CURRENCY_CODES.sub("", text)):
        raise ParseError("number", value)
    negative = text.startswith("(") and text.endswith(")")
    text = _NUMBER_NOISE.sub("", text)
    if not text:
        raise ParseError("number", value)

    comma, dot = text.rfind(","), text.rfind(".")
    if comma != -1 and dot != -1:
        if comma > dot:
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif comma != -1:
        text = text.replace(",", ".") if text.count(",") == 1 else text.replace(",", "")
    elif text.count(".") > 1:
        text = text.replace(".", "")

    try:
        number = Decimal(text)
    except InvalidOperation as exc:
        raise ParseError("number", value) from exc
    if not number.is_finite():
        raise ParseError("number", value)
    return -number if negative else number


def serial_to_date(serial: float) -> dt.date:
    seconds = (float(serial) - SPREADSHEET_EPOCH_OFFSET) * SECONDS_PER_DAY
    return (_UNIX_EPOCH + dt.timedelta(seconds=seconds)).date()


def parse_date(value: Any) -> Optional[dt.date]:
    if is_blank(value):
        return None
    if isinstance(value, bool):
        raise ParseError("date", value)
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if isinstance(value, (int, float, Decimal)):
        try:
            return serial_to_date(float(value))
        except (OverflowError, ValueError) as exc:
            raise ParseError("date", value) from exc

    text = str(value).strip().split(" ")[0]
    if "T" in text:
        text = text.split("T")[0]
    if _SERIAL_TEXT.match(text):
        return serial_to_date(float(text))
    for fmt in _DATE_FORMATS:
        try:
            return dt.datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ParseError("date", value)


def to_cents(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def derive_shares(invested_value: Decimal, price_per_share: Decimal) -> Decimal:
    if price_per_share <= 0:
        return Decimal("0")
    return (invested_value / price_per_share).quantize(SHARE_PRECISION, rounding=ROUND_HALF_UP)
