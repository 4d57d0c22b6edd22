"""Currency, date and document-number formatting (pt-BR)."""

import calendar
import re
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENTS = Decimal("0.01")

_NON_DIGITS = re.compile(r"\D")


def to_decimal(value: Decimal | int | float | str | None) -> Decimal | None:
    """Coerce a numeric value to a cent-quantized Decimal."""
    if value is None or value == "":
        return None
    if isinstance(value, float):
        value = repr(value)
    try:
        return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        raise ValueError(f"Not a monetary value: {value!r}") from e


def cents_to_decimal(cents: int) -> Decimal:
    """Convert an integer amount of cents to a Decimal value."""
    return (Decimal(cents) / 100).quantize(CENTS)


def decimal_to_cents(value: Decimal) -> int:
    """Convert a Decimal value to an integer amount of cents."""
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_currency(value: Decimal | int | float | str | None) -> str:
    """Format a value as Brazilian reais, e.g. ``R$ 1.234,56``.

    ``None`` formats to an empty string so optional amounts drop out of
    key/value tables.
    """
    amount = to_decimal(value)
    if amount is None:
        return ""
    sign = "-" if amount < 0 else ""
    whole, _, fraction = f"{abs(amount):,.2f}".partition(".")
    return f"{sign}R$ {whole.replace(',', '.')},{fraction}"


def parse_currency_input(raw: str | None) -> Decimal:
    """Parse what a user typed into a currency field.

    Every non-digit is dropped and the digits are read as cents, so
    ``"R$ 1.234,56"`` and ``"123456"`` both give ``Decimal("1234.56")``.
    """
    digits = _NON_DIGITS.sub("", raw or "")
    if not digits:
        return Decimal("0.00")
    return cents_to_decimal(int(digits))


def parse_date(value: date | datetime | str | None) -> date | None:
    """Parse an ISO date (or timestamp) into a ``date``."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value[:10])


def format_date(value: date | datetime | str | None) -> str:
    """Format a date as ``dd/mm/yyyy``; empty string for missing dates."""
    parsed = parse_date(value)
    if parsed is None:
        return ""
    return parsed.strftime("%d/%m/%Y")


def add_months(start: date, months: int) -> date:
    """Shift a date by whole calendar months, clamping to the month end.

    ``add_months(date(2024, 1, 31), 1)`` is ``date(2024, 2, 29)``.
    """
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def only_digits(value: str | None) -> str:
    """Strip everything except digits."""
    return _NON_DIGITS.sub("", value or "")


def format_cpf(value: str | None) -> str:
    """Mask a CPF progressively as it is typed: ``123.456.789-01``."""
    nums = only_digits(value)
    if len(nums) <= 3:
        return nums
    if len(nums) <= 6:
        return f"{nums[:3]}.{nums[3:]}"
    if len(nums) <= 9:
        return f"{nums[:3]}.{nums[3:6]}.{nums[6:]}"
    return f"{nums[:3]}.{nums[3:6]}.{nums[6:9]}-{nums[9:11]}"


def format_rg(value: str | None) -> str:
    """Mask an RG progressively as it is typed: ``12.345.678-9``."""
    nums = only_digits(value)
    if len(nums) <= 2:
        return nums
    if len(nums) <= 5:
        return f"{nums[:2]}.{nums[2:]}"
    if len(nums) <= 8:
        return f"{nums[:2]}.{nums[2:5]}.{nums[5:]}"
    return f"{nums[:2]}.{nums[2:5]}.{nums[5:8]}-{nums[8:9]}"


def format_postal_code(value: str | None) -> str:
    """Mask a CEP: ``01310-100``."""
    nums = only_digits(value)[:8]
    if len(nums) <= 5:
        return nums
    return f"{nums[:5]}-{nums[5:]}"
