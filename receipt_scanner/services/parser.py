"""
Receipt parser for extracting the total, date and merchant from OCR text.

Each field has an ordered list of PatternSpec entries. Amount patterns all
contribute to one candidate pool; date patterns are tried in priority order
and the first valid match wins; merchant lines are filtered by exclusion
patterns.
"""

import re
import logging
from dataclasses import dataclass, field
from datetime import date as Date
from decimal import Decimal
from typing import Callable, List, Optional, Tuple

from receipt_scanner.models.scan import ExtractedField
from receipt_scanner.utils.money import parse_amount, is_plausible_amount, format_amount

logger = logging.getLogger(__name__)

# Confidence constants. The amount confidence does not depend on which
# pattern matched; review thresholds downstream are tuned against 85.
AMOUNT_CONFIDENCE = 85
DATE_CONFIDENCE = 80
DATE_FALLBACK_CONFIDENCE = 30
MERCHANT_CONFIDENCE = 70
MERCHANT_FALLBACK_CONFIDENCE = 20

UNKNOWN_MERCHANT = "Unknown Merchant"

MONTHS = {
    'jan': '01', 'feb': '02', 'mar': '03', 'apr': '04',
    'may': '05', 'jun': '06', 'jul': '07', 'aug': '08',
    'sep': '09', 'oct': '10', 'nov': '11', 'dec': '12',
}

_MONTH_NAME = r'(jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*'
_NUMBER = r'\d(?:[\d,]*\d)?'


@dataclass(frozen=True)
class PatternSpec:
    """A named regex pattern with example and notes for documentation."""
    name: str
    pattern: str
    example: str
    notes: Optional[str] = None
    priority: Optional[int] = None
    flags: int = re.IGNORECASE
    build: Optional[Callable[[re.Match], Tuple[str, str, str]]] = field(default=None, compare=False, repr=False)
    compiled: re.Pattern = field(default=None, init=False, compare=False, repr=False)

    def __post_init__(self):
        object.__setattr__(self, 'compiled', re.compile(self.pattern, self.flags))


# Every amount pattern is applied to the whole text; group 1 is the number.
# A number followed by more digits is rejected rather than truncated.
AMOUNT_PATTERNS: List[PatternSpec] = [
    PatternSpec(
        name='keyword_total',
        pattern=r'\b(?:grand\s*total|net\s*total|subtotal|total|amount|sum)[:\s]*[$₹€£]?\s*(' + _NUMBER + r'(?:\.\d{1,2})?)(?![.,]?\d)',
        example='Total: $45.67',
        notes='Keyword-anchored amount, optional currency symbol',
        priority=1,
    ),
    PatternSpec(
        name='currency_symbol',
        pattern=r'[$₹€£]\s*(' + _NUMBER + r'(?:\.\d{1,2})?)(?![.,]?\d)',
        example='₹250.00',
        notes='Bare currency-prefixed number',
        priority=2,
    ),
    PatternSpec(
        name='two_decimals',
        pattern=r'(?<![\d.])(' + _NUMBER + r'\.\d{2})(?![\d])',
        example='1,234.56',
        notes='Any number with exactly two decimals (untagged totals)',
        priority=3,
    ),
]


def _day_month_year(match: re.Match) -> Tuple[str, str, str]:
    day, month, year = match.group(1), match.group(2), match.group(3)
    # 03/14/2024 cannot be day-first; read it month-first
    if int(month) > 12 and 1 <= int(day) <= 12:
        day, month = month, day
    return year, month, day


def _year_month_day(match: re.Match) -> Tuple[str, str, str]:
    return match.group(1), match.group(2), match.group(3)


def _day_monthname_year(match: re.Match) -> Tuple[str, str, str]:
    return match.group(3), MONTHS[match.group(2).lower()[:3]], match.group(1)


def _monthname_day_year(match: re.Match) -> Tuple[str, str, str]:
    return match.group(3), MONTHS[match.group(1).lower()[:3]], match.group(2)


# Tried in order; the first class with a valid match wins.
DATE_PATTERNS: List[PatternSpec] = [
    PatternSpec(
        name='day_month_year',
        pattern=r'(?<!\d)(\d{1,2})[/.\-](\d{1,2})[/.\-](\d{4})(?!\d)',
        example='14/03/2024',
        notes='Day-first numeric; month-first when the middle part exceeds 12',
        priority=1,
        build=_day_month_year,
    ),
    PatternSpec(
        name='year_month_day',
        pattern=r'(?<!\d)(\d{4})[/.\-](\d{1,2})[/.\-](\d{1,2})(?!\d)',
        example='2024-03-14',
        priority=2,
        build=_year_month_day,
    ),
    PatternSpec(
        name='day_monthname_year',
        pattern=r'(?<!\d)(\d{1,2})\s+' + _MONTH_NAME + r'\s+(\d{4})(?!\d)',
        example='15 Mar 2024',
        priority=3,
        build=_day_monthname_year,
    ),
    PatternSpec(
        name='monthname_day_year',
        pattern=r'\b' + _MONTH_NAME + r'\s+(\d{1,2}),?\s+(\d{4})(?!\d)',
        example='Mar 15, 2024',
        priority=4,
        build=_monthname_day_year,
    ),
]

# A merchant line is rejected if it matches any of these.
MERCHANT_EXCLUDE_PATTERNS: List[PatternSpec] = [
    PatternSpec(name='digits_only', pattern=r'^\d+$', example='1234'),
    PatternSpec(name='currency_prefix', pattern=r'^[$₹€£]', example='$5.00'),
    PatternSpec(
        name='metadata_keyword',
        pattern=r'^(?:date|time|total|amount|cash|card|tax|gst|receipt|invoice)',
        example='TOTAL: $5.00',
    ),
    PatternSpec(name='leading_time_or_date', pattern=r'^\d{1,2}[/\-:.]', example='12:45 PM'),
]

_MERCHANT_STRIP = re.compile(r"[^A-Za-z0-9 &'-]")
MERCHANT_SCAN_LINES = 5
MERCHANT_MIN_LENGTH = 3
MERCHANT_MAX_LENGTH = 50


def find_amount_candidates(text: str) -> List[Tuple[Decimal, str]]:
    """
    Collect every plausible amount in the text across all amount patterns.

    Returns:
        List of (value, pattern_name) in pattern order, then text order
    """
    candidates: List[Tuple[Decimal, str]] = []

    for spec in AMOUNT_PATTERNS:
        for match in spec.compiled.finditer(text):
            value = parse_amount(match.group(1))
            if is_plausible_amount(value):
                candidates.append((value, spec.name))

    return candidates


def extract_amount(text: str) -> ExtractedField:
    """
    Extract the receipt total.

    The numerically largest plausible candidate wins, since subtotal, tax
    and total lines usually ascend toward the grand total.

    Args:
        text: Raw OCR text

    Returns:
        ExtractedField with a two-decimal amount at 85, or ("", 0)
    """
    candidates = find_amount_candidates(text or "")
    if not candidates:
        return ExtractedField(value="", confidence=0)

    value, pattern_name = max(candidates, key=lambda c: c[0])
    logger.debug("Selected amount", extra={
        "amount": str(value),
        "pattern": pattern_name,
        "candidates": len(candidates),
    })
    return ExtractedField(value=format_amount(value), confidence=AMOUNT_CONFIDENCE)


def _compose_date(year: str, month: str, day: str) -> Optional[str]:
    try:
        return Date(int(year), int(month), int(day)).isoformat()
    except ValueError:
        return None


def extract_date(text: str, today: Optional[Date] = None) -> ExtractedField:
    """
    Extract the transaction date as YYYY-MM-DD.

    Pattern classes are tried in priority order and the first occurrence
    of the first matching class wins. Occurrences that are not real
    calendar dates (e.g. 31/02/2024) are skipped.

    Args:
        text: Raw OCR text
        today: Fallback date, defaults to the current date

    Returns:
        ExtractedField at 80 on a match, otherwise today at 30
    """
    text = text or ""

    for spec in DATE_PATTERNS:
        for match in spec.compiled.finditer(text):
            year, month, day = spec.build(match)
            value = _compose_date(year, month, day)
            if value is not None:
                logger.debug("Selected date", extra={"date": value, "pattern": spec.name})
                return ExtractedField(value=value, confidence=DATE_CONFIDENCE)

    fallback = today or Date.today()
    return ExtractedField(value=fallback.isoformat(), confidence=DATE_FALLBACK_CONFIDENCE)


def _is_excluded_merchant_line(line: str) -> bool:
    return any(spec.compiled.search(line) for spec in MERCHANT_EXCLUDE_PATTERNS)


def _clean_merchant_name(line: str) -> str:
    return _MERCHANT_STRIP.sub('', line).strip()


def extract_merchant(text: str) -> ExtractedField:
    """
    Guess the merchant name from the top of the receipt.

    Only the first five lines longer than two characters are examined.
    Lines that look like amounts, dates or receipt metadata are skipped.

    Args:
        text: Raw OCR text

    Returns:
        ExtractedField at 70, or "Unknown Merchant" at 20
    """
    lines = [line.strip() for line in (text or "").splitlines()]
    lines = [line for line in lines if len(line) > 2]

    for line in lines[:MERCHANT_SCAN_LINES]:
        if not MERCHANT_MIN_LENGTH <= len(line) <= MERCHANT_MAX_LENGTH:
            continue
        if _is_excluded_merchant_line(line):
            continue

        name = _clean_merchant_name(line)
        if name:
            return ExtractedField(value=name, confidence=MERCHANT_CONFIDENCE)

    return ExtractedField(value=UNKNOWN_MERCHANT, confidence=MERCHANT_FALLBACK_CONFIDENCE)
