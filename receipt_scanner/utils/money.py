"""
Money parsing utilities for OCR amount candidates.

Receipts are read in US-style notation only:
- Comma as thousands separator: 1,234.56
- Dot as decimal separator
- Currency symbols ($, ₹, €, £) are stripped before parsing
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional
import re

# Upper bound (exclusive) for a plausible receipt total
MAX_AMOUNT = Decimal("10000000")

CURRENCY_SYMBOLS = "$₹€£"

_CURRENCY_PATTERN = re.compile(r'[$₹€£]\s*')
_CENTS = Decimal("0.01")


def parse_amount(amount_str: str) -> Optional[Decimal]:
    """
    Parse a raw amount string into a Decimal.

    Args:
        amount_str: String containing amount (e.g., "$1,234.56", "₹250")

    Returns:
        Decimal amount or None if parsing fails

    Examples:
        >>> parse_amount("$1,234.56")
        Decimal('1234.56')
        >>> parse_amount("12,50,000")
        Decimal('1250000')
    """
    if not amount_str or not isinstance(amount_str, str):
        return None

    cleaned = _CURRENCY_PATTERN.sub('', amount_str.strip())

    # Remove commas (thousands separator) and stray spaces
    cleaned = cleaned.replace(',', '').replace(' ', '')

    if not cleaned:
        return None

    try:
        result = Decimal(cleaned)
    except (InvalidOperation, ValueError):
        return None

    if not result.is_finite():
        return None

    return result


def is_plausible_amount(amount: Optional[Decimal]) -> bool:
    """True if the amount is finite, positive and below MAX_AMOUNT."""
    if amount is None or not amount.is_finite():
        return False
    return Decimal("0") < amount < MAX_AMOUNT


def format_amount(amount: Decimal) -> str:
    """
    Format a Decimal with exactly two decimal places.

    Examples:
        >>> format_amount(Decimal('45.6'))
        '45.60'
        >>> format_amount(Decimal('1250000'))
        '1250000.00'
    """
    return str(amount.quantize(_CENTS, rounding=ROUND_HALF_UP))
