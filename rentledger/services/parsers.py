"""Spanish/Venezuelan data parsing utilities for report filters and payment forms.

Handles the formats the administration forms submit:
- Month names: ENERO ... DICIEMBRE (any case, accents optional)
- Decimal separator: comma (,)
- Thousand separator: dot (.)
- Currency prefixes: Bs., Bs, VES, $, USD

Example:
    >>> parse_month_name("Marzo")
    3

    >>> parse_venezuelan_decimal("1.234,56")
    Decimal('1234.56')

    >>> parse_currency_amount("Bs. 4.000,00")
    Decimal('4000.00')

    >>> parse_form_amount("40,00")
    Decimal('40.00')

    >>> month_label(3)
    'marzo'
"""

import unicodedata
from decimal import Decimal, InvalidOperation
from typing import Optional

MONTH_NAMES = (
    "enero",
    "febrero",
    "marzo",
    "abril",
    "mayo",
    "junio",
    "julio",
    "agosto",
    "septiembre",
    "octubre",
    "noviembre",
    "diciembre",
)

# "setiembre" is the accepted variant spelling
_MONTH_LOOKUP = {name: index for index, name in enumerate(MONTH_NAMES, start=1)}
_MONTH_LOOKUP["setiembre"] = 9


def _strip_accents(value: str) -> str:
    return "".join(
        ch for ch in unicodedata.normalize("NFD", value) if unicodedata.category(ch) != "Mn"
    )


def parse_month_name(value: Optional[str]) -> int:
    """
    Parse a Spanish month name (or a numeric month) to its number 1-12.

    Args:
        value: Month name such as "ENERO", "marzo" or "3"

    Returns:
        Month number (1-12)

    Raises:
        ValueError: If value is empty or not a known month

    Examples:
        >>> parse_month_name("ENERO")
        1
        >>> parse_month_name("Septiembre")
        9
        >>> parse_month_name("12")
        12
    """
    if not value or not isinstance(value, str):
        raise ValueError(f"Cannot parse month {value!r}")

    normalized = _strip_accents(value.strip()).lower()
    if normalized.isdigit():
        month = int(normalized)
        if 1 <= month <= 12:
            return month
        raise ValueError(f"Month number out of range: {value!r}")

    try:
        return _MONTH_LOOKUP[normalized]
    except KeyError:
        raise ValueError(f"Unknown month name: {value!r}") from None


def month_label(month: int) -> str:
    """Return the lowercase Spanish name for a month number.

    Raises:
        ValueError: If month is not within 1-12
    """
    if not 1 <= month <= 12:
        raise ValueError(f"Month number out of range: {month}")
    return MONTH_NAMES[month - 1]


def parse_venezuelan_decimal(value: Optional[str]) -> Optional[Decimal]:
    """
    Parse a Venezuelan-formatted decimal number to Python Decimal.

    Venezuelan format uses comma as decimal separator and dot as thousand separator.

    Args:
        value: Formatted number string (e.g., "1.234,56") or None/empty

    Returns:
        Decimal object or None if input is empty/None

    Raises:
        ValueError: If value cannot be parsed as a valid decimal

    Examples:
        >>> parse_venezuelan_decimal("1.234,56")
        Decimal('1234.56')
        >>> parse_venezuelan_decimal("40,5")
        Decimal('40.5')
        >>> parse_venezuelan_decimal("") is None
        True
    """
    if not value or not isinstance(value, str):
        return None

    value = value.strip()
    if not value:
        return None

    try:
        normalized = value.replace(" ", "").replace("\xa0", "").replace(".", "").replace(",", ".")
        return Decimal(normalized)
    except (ValueError, InvalidOperation) as e:
        raise ValueError(f"Cannot parse Venezuelan decimal '{value}': {e}") from e


def parse_currency_amount(value: Optional[str]) -> Optional[Decimal]:
    """
    Parse a currency-prefixed amount ("Bs. 4.000,00", "$ 150,00") to Decimal.

    Raises:
        ValueError: If value cannot be parsed as a valid number

    Examples:
        >>> parse_currency_amount("Bs. 4.000,00")
        Decimal('4000.00')
        >>> parse_currency_amount("$150,00")
        Decimal('150.00')
    """
    if not value or not isinstance(value, str):
        return None

    value = value.strip()
    if not value:
        return None

    for prefix in ("Bs.", "Bs", "VES", "USD", "$"):
        if value.upper().startswith(prefix.upper()):
            value = value[len(prefix):].strip()
            break

    try:
        return parse_venezuelan_decimal(value)
    except ValueError as e:
        raise ValueError(f"Cannot parse currency amount '{value}': {e}") from e


def parse_form_amount(value):
    """
    Accept an amount as typed in the payment form.

    Strings written with a currency prefix or a decimal comma ("Bs. 6.000,00",
    "40,00") are parsed the Venezuelan way. Anything else ("250.50", 250,
    Decimal) is returned unchanged for regular decimal validation.

    Raises:
        ValueError: If a Venezuelan-formatted string cannot be parsed
    """
    if not isinstance(value, str):
        return value

    text = value.strip()
    if not text:
        return value
    if "," in text or text[0].isalpha() or text[0] == "$":
        return parse_currency_amount(text)
    return value
