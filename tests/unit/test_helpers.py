"""Unit tests for the template helper library."""

from datetime import date, datetime

import pytest

from proposal_engine.strategies.template_engine.helpers import (
    eq,
    format_currency,
    format_date,
    group_by,
    gt,
    lt,
    ne,
    parse_number,
)


# =============================================================================
# Number Parsing Tests
# =============================================================================


class TestParseNumber:
    """Test suite for parse_number."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            (42, 42.0),
            (1234.5, 1234.5),
            ("1234.5", 1234.5),
            ("$1,234.50", 1234.5),
            ("-12", -12.0),
            ("12 units", 12.0),
        ],
    )
    def test_parses_numeric_values(self, value, expected):
        """Test that numbers and numeric-looking strings parse."""
        assert parse_number(value) == expected

    @pytest.mark.parametrize("value", ["abc", "", None, True, [], float("nan")])
    def test_rejects_non_numeric_values(self, value):
        """Test that non-numeric input yields None."""
        assert parse_number(value) is None


# =============================================================================
# Currency Formatting Tests
# =============================================================================


class TestFormatCurrency:
    """Test suite for format_currency."""

    def test_formats_numeric_string(self):
        """Test the canonical formatting example."""
        assert format_currency("1234.5") == "$1,234.50"

    def test_formats_numbers(self):
        """Test integers and floats."""
        assert format_currency(10000) == "$10,000.00"
        assert format_currency(0) == "$0.00"
        assert format_currency(0.005) == "$0.01"

    def test_negative_amount(self):
        """Test that the sign precedes the symbol."""
        assert format_currency(-1234.5) == "-$1,234.50"

    def test_strips_formatting_before_parsing(self):
        """Test that already formatted amounts are re-formatted."""
        assert format_currency("$2,500") == "$2,500.00"

    def test_none_is_empty(self):
        """Test that a missing value renders as an empty string."""
        assert format_currency(None) == ""

    def test_unparsable_is_returned_unchanged(self):
        """Test that garbage passes through."""
        assert format_currency("abc") == "abc"

    def test_custom_symbol(self):
        """Test a configured currency symbol."""
        assert format_currency(5, symbol="€") == "€5.00"


# =============================================================================
# Date Formatting Tests
# =============================================================================


class TestFormatDate:
    """Test suite for format_date."""

    def test_iso_date_string(self):
        """Test a plain ISO date."""
        assert format_date("2024-03-01") == "03/01/2024"

    def test_iso_datetime_string(self):
        """Test an ISO datetime keeps the given calendar date."""
        assert format_date("2024-03-01T23:30:00") == "03/01/2024"

    def test_date_objects(self):
        """Test date and datetime objects."""
        assert format_date(date(2023, 12, 25)) == "12/25/2023"
        assert format_date(datetime(2023, 12, 25, 8, 0)) == "12/25/2023"

    def test_epoch_milliseconds(self):
        """Test epoch milliseconds are read as UTC."""
        assert format_date(0) == "01/01/1970"

    def test_explicit_format(self):
        """Test a format argument overrides the default."""
        assert format_date("2024-03-01", "%Y") == "2024"

    def test_template_style_format_uses_default(self):
        """Test that a non-strftime format argument does not replace the date."""
        assert format_date("2024-03-01", "MM/DD/YYYY") == "03/01/2024"
        assert format_date(1709251200000, "YYYY") == "03/01/2024"

    def test_empty_values(self):
        """Test that empty input renders as an empty string."""
        assert format_date(None) == ""
        assert format_date("") == ""

    def test_unparsable_is_returned_unchanged(self):
        """Test that garbage passes through."""
        assert format_date("next tuesday") == "next tuesday"


# =============================================================================
# Grouping Tests
# =============================================================================


class TestGroupBy:
    """Test suite for group_by."""

    def test_groups_in_order_of_first_appearance(self):
        """Test grouping preserves order."""
        items = [
            {"classification": "B", "id": 1},
            {"classification": "A", "id": 2},
            {"classification": "B", "id": 3},
        ]

        groups = group_by(items, "classification")

        assert list(groups) == ["B", "A"]
        assert [i["id"] for i in groups["B"]] == [1, 3]

    def test_missing_property_groups_under_undefined(self):
        """Test items without the property."""
        groups = group_by([{"x": 1}], "classification")
        assert list(groups) == ["undefined"]

    def test_dotted_property(self):
        """Test nested property lookup."""
        groups = group_by([{"meta": {"kind": "a"}}], "meta.kind")
        assert list(groups) == ["a"]

    @pytest.mark.parametrize("collection", [None, "abc", {"a": 1}, 5])
    def test_non_list_yields_empty_mapping(self, collection):
        """Test non-list input."""
        assert group_by(collection, "classification") == {}


# =============================================================================
# Comparison Tests
# =============================================================================


class TestComparisons:
    """Test suite for the conditional helpers."""

    def test_eq_is_strict(self):
        """Test that values of different kinds never match."""
        assert eq("a", "a") is True
        assert eq(1, 1.0) is True
        assert eq("1", 1) is False
        assert eq(True, 1) is False
        assert ne("1", 1) is True

    def test_ordering_with_mixed_types(self):
        """Test ordering falls back to numeric parsing."""
        assert gt(5, 3) is True
        assert gt("10", 9) is True
        assert lt("abc", 3) is False
