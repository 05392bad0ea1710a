"""Tests for non-AI parsing and candidate validation."""

from decimal import Decimal

import pytest

from chamber.extraction import has_useful_expense_info, parse_plain_expense
from chamber.models.capture import ExpenseCategory, ExtractionSource
from chamber.validation import CandidateRejected, CandidateValidator, parse_amount


class TestParsePlainExpense:
    """Tests for the "Item Amount" fallback parser."""

    def test_item_amount(self):
        """Test the canonical "Lunch 450"."""
        candidate = parse_plain_expense("Lunch 450")
        assert candidate["amount"] == "450"
        assert candidate["description"] == "Lunch"
        assert candidate["category"] is None

    def test_amount_first(self):
        """Test the amount may come before the item."""
        candidate = parse_plain_expense("250 Uber to airport")
        assert candidate["amount"] == "250"
        assert candidate["description"] == "Uber to airport"

    def test_decimal_amount(self):
        """Test up to two decimals are kept."""
        assert parse_plain_expense("Chai 12.50")["amount"] == "12.50"

    def test_thousands_separators_stripped(self):
        """Test comma grouped amounts, Indian style included."""
        assert parse_plain_expense("Rent 12,000")["amount"] == "12000"
        assert parse_plain_expense("Laptop 1,25,000")["amount"] == "125000"

    def test_western_grouping(self):
        assert parse_plain_expense("Car 1,000,000.50")["amount"] == "1000000.50"

    @pytest.mark.parametrize("text", ["Lunch 450.555", "Snacks 1,2", "Tea 10,00"])
    def test_malformed_number_is_not_truncated(self, text):
        """Test extra decimals or stray commas are rejected, not cut short."""
        assert parse_plain_expense(text) is None

    def test_trailing_punctuation(self):
        """Test a full stop or comma after the amount."""
        assert parse_plain_expense("Lunch 450.")["amount"] == "450"
        assert parse_plain_expense("Lunch 450, with Ravi")["amount"] == "450"

    def test_first_number_wins(self):
        """Test ambiguous text resolves to the first number."""
        candidate = parse_plain_expense("Uber to JFK 2023 terminal, paid 450")
        assert candidate["amount"] == "2023"

    def test_amount_only(self):
        """Test a bare number gets the default description."""
        candidate = parse_plain_expense("450")
        assert candidate["description"] == "Expense"

    def test_no_number(self):
        """Test text without a number cannot be parsed."""
        assert parse_plain_expense("hello there") is None


class TestHasUsefulExpenseInfo:
    """Tests for the caption heuristic."""

    @pytest.mark.parametrize("caption", [
        "Paid 290 to Sweets Shop",
        "₹450 dinner",
        "Rs. 80 auto",
        "5 rupees tip",
        "Groceries 45000",
    ])
    def test_useful(self, caption):
        """Test captions that name an amount."""
        assert has_useful_expense_info(caption) is True

    @pytest.mark.parametrize("caption", ["nice place!", "dinner", "", None, "table 4"])
    def test_not_useful(self, caption):
        """Test captions without an amount."""
        assert has_useful_expense_info(caption) is False


class TestParseAmount:
    """Tests for amount normalization."""

    def test_plain_numbers(self):
        """Test ints, floats and strings."""
        assert parse_amount(450) == Decimal("450.00")
        assert parse_amount(99.5) == Decimal("99.50")
        assert parse_amount("12.345") == Decimal("12.35")

    def test_noise_is_stripped(self):
        """Test currency symbols and separators."""
        assert parse_amount("₹1,250.00") == Decimal("1250.00")
        assert parse_amount("Rs. 80") == Decimal("80.00")

    def test_not_a_number(self):
        """Test garbage is rejected rather than guessed."""
        assert parse_amount(None) is None
        assert parse_amount("about fifty") is None
        assert parse_amount("NaN") is None
        assert parse_amount(True) is None


class TestCandidateValidator:
    """Tests for the shared candidate gate."""

    def test_valid_candidate(self, validator):
        """Test a well formed AI candidate."""
        expense = validator.validate(
            {
                "amount": 450,
                "category": "food",
                "description": "Lunch",
                "merchant": "Saravana Bhavan",
                "confidence": 0.95,
            },
            source=ExtractionSource.AI,
        )
        assert expense.amount == Decimal("450.00")
        assert expense.category == ExpenseCategory.FOOD
        assert expense.merchant == "Saravana Bhavan"
        assert expense.source == ExtractionSource.AI

    def test_unknown_category_becomes_general(self, validator):
        """Test categories outside the vocabulary."""
        expense = validator.validate(
            {"amount": "99", "category": "Pets", "description": "Dog food"},
            source=ExtractionSource.AI,
        )
        assert expense.category == ExpenseCategory.GENERAL

    def test_missing_description_uses_fallback(self, validator):
        """Test the description falls back to the source text."""
        expense = validator.validate(
            {"amount": "99"},
            source=ExtractionSource.AI,
            fallback_description="Dog food 99",
        )
        assert expense.description == "Dog food 99"

    def test_rejects_missing_amount(self, validator):
        """Test an amount is never invented."""
        with pytest.raises(CandidateRejected):
            validator.validate({"description": "Lunch"}, source=ExtractionSource.AI)

    def test_rejects_non_positive_amount(self, validator):
        """Test zero and negative amounts."""
        with pytest.raises(CandidateRejected):
            validator.validate({"amount": 0, "description": "x"}, source=ExtractionSource.AI)
        with pytest.raises(CandidateRejected):
            validator.validate({"amount": -5, "description": "x"}, source=ExtractionSource.AI)

    def test_rejects_absurd_amount(self):
        """Test the configured ceiling."""
        validator = CandidateValidator(max_amount=1000)
        with pytest.raises(CandidateRejected):
            validator.validate({"amount": 1001, "description": "x"}, source=ExtractionSource.AI)
