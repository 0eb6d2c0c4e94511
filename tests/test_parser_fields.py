"""
Tests for amount, date and merchant extraction from raw OCR text.
"""

from datetime import date
from decimal import Decimal

import pytest

from receipt_scanner.services.parser import (
    AMOUNT_PATTERNS,
    DATE_PATTERNS,
    UNKNOWN_MERCHANT,
    extract_amount,
    extract_date,
    extract_merchant,
    find_amount_candidates,
)


class TestExtractAmount:
    """The largest plausible amount across all patterns wins, at 85."""

    def test_total_beats_subtotal(self):
        text = "Subtotal: $40.00\nTax: $5.67\nTotal: $45.67"
        result = extract_amount(text)
        assert result.value == "45.67"
        assert result.confidence == 85

    def test_no_amount_returns_empty(self):
        result = extract_amount("Thank you for shopping with us\nPlease come again")
        assert result.value == ""
        assert result.confidence == 0

    def test_empty_text(self):
        result = extract_amount("")
        assert (result.value, result.confidence) == ("", 0)

    def test_thousands_separators_are_stripped(self):
        result = extract_amount("GRAND TOTAL: ₹1,250.50")
        assert result.value == "1250.50"

    def test_keyword_amount_without_decimals_is_formatted(self):
        result = extract_amount("Amount 250")
        assert result.value == "250.00"
        assert result.confidence == 85

    def test_currency_symbol_without_keyword(self):
        result = extract_amount("Coffee €3.5\nMuffin €2")
        assert result.value == "3.50"

    def test_untagged_two_decimal_number(self):
        result = extract_amount("Latte 4.25\nBagel 3.10")
        assert result.value == "4.25"

    def test_absurd_magnitudes_are_discarded(self):
        text = "Ref $99999999.00\nTotal: $12.30"
        result = extract_amount(text)
        assert result.value == "12.30"

    def test_zero_amounts_are_discarded(self):
        result = extract_amount("Discount $0.00")
        assert (result.value, result.confidence) == ("", 0)

    def test_same_confidence_for_every_pattern_class(self):
        keyword = extract_amount("Total 10.00")
        symbol = extract_amount("$10.00")
        bare = extract_amount("10.00")
        assert keyword.confidence == symbol.confidence == bare.confidence == 85

    def test_amount_invariant(self):
        texts = [
            "Total: $45.67",
            "$0.01",
            "Sum 9,999,999.99",
            "Total 10,000,000.00\nCash $20.00",
        ]
        for text in texts:
            value = extract_amount(text).value
            assert value
            assert Decimal("0") < Decimal(value) < Decimal("10000000")

    def test_candidates_pool_all_patterns(self):
        candidates = find_amount_candidates("Total: $45.67")
        names = {name for _, name in candidates}
        assert names == {'keyword_total', 'currency_symbol', 'two_decimals'}
        assert all(value == Decimal("45.67") for value, _ in candidates)

    def test_extra_decimal_digits_are_not_truncated(self):
        assert find_amount_candidates("Total: 45.678") == []
        assert find_amount_candidates("Paid $1,234.567") == []

    def test_overlong_total_falls_through_to_next_amount(self):
        result = extract_amount("Total: $45.678\nCash 5.00")
        assert result.value == "5.00"

    def test_pattern_examples_match(self):
        for spec in AMOUNT_PATTERNS:
            assert spec.compiled.search(spec.example), spec.name


class TestExtractDate:
    """Pattern classes in fixed priority; first valid occurrence wins."""

    def test_month_first_when_middle_part_exceeds_twelve(self):
        result = extract_date("Paid on 03/14/2024")
        assert result.value == "2024-03-14"
        assert result.confidence == 80

    def test_day_first_numeric(self):
        assert extract_date("Date: 12/01/2024").value == "2024-01-12"

    def test_dotted_and_dashed_separators(self):
        assert extract_date("5.6.2023").value == "2023-06-05"
        assert extract_date("05-06-2023").value == "2023-06-05"

    def test_year_first(self):
        assert extract_date("2024-3-9 14:02").value == "2024-03-09"

    def test_day_month_name(self):
        result = extract_date("15 Mar 2024")
        assert result.value == "2024-03-15"
        assert result.confidence == 80

    def test_month_name_day(self):
        assert extract_date("Mar 15, 2024").value == "2024-03-15"
        assert extract_date("SEPTEMBER 3 2023").value == "2023-09-03"

    def test_numeric_class_has_priority_over_month_names(self):
        text = "Printed 1 Jan 2020\nSale 02/02/2022"
        assert extract_date(text).value == "2022-02-02"

    def test_first_occurrence_wins(self):
        text = "01/02/2024\n03/04/2024"
        assert extract_date(text).value == "2024-02-01"

    def test_invalid_calendar_date_is_skipped(self):
        text = "31/02/2024\n15/03/2024"
        assert extract_date(text).value == "2024-03-15"

    def test_no_date_defaults_to_today(self):
        result = extract_date("no dates here", today=date(2024, 7, 1))
        assert result.value == "2024-07-01"
        assert result.confidence == 30

    def test_no_date_uses_current_date(self):
        result = extract_date("nothing")
        assert result.value == date.today().isoformat()
        assert result.confidence == 30

    @pytest.mark.parametrize("spec", DATE_PATTERNS, ids=lambda s: s.name)
    def test_pattern_examples_match(self, spec):
        assert spec.compiled.search(spec.example)


class TestExtractMerchant:
    """Merchant name from the first five meaningful lines."""

    def test_skips_digits_and_metadata_lines(self):
        text = "1234\nTOTAL: $5.00\nJoe's Coffee Shop\nThanks"
        result = extract_merchant(text)
        assert result.value == "Joe's Coffee Shop"
        assert result.confidence == 70

    def test_strips_disallowed_characters(self):
        result = extract_merchant("** Tom & Jerry's Diner! **")
        assert result.value == "Tom & Jerry's Diner"

    def test_skips_short_and_long_lines(self):
        text = "ab\n" + "X" * 51 + "\nCorner Deli"
        assert extract_merchant(text).value == "Corner Deli"

    def test_skips_time_and_currency_lines(self):
        text = "12:45 PM\n$ 20.00\n03/04/2024\nCash Sale\nGreen Grocer"
        assert extract_merchant(text).value == "Green Grocer"

    def test_only_first_five_lines_are_considered(self):
        text = "\n".join(["Total 1", "Tax 2", "Cash 3", "Card 4", "Date 5", "Late Merchant"])
        result = extract_merchant(text)
        assert result.value == UNKNOWN_MERCHANT
        assert result.confidence == 20

    def test_empty_text(self):
        result = extract_merchant("")
        assert (result.value, result.confidence) == (UNKNOWN_MERCHANT, 20)

    def test_keyword_match_is_case_insensitive(self):
        text = "Invoice #42\nreceipt copy\nBlue Bottle"
        assert extract_merchant(text).value == "Blue Bottle"
