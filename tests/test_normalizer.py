"""
Unit tests for the TransactionNormalizer and its cell parsers.
"""

from __future__ import annotations

from datetime import date, datetime

import pytest

from cashflow.normalizer import TransactionNormalizer, parse_amount, parse_date
from cashflow.persistence import InMemoryOverrideStore
from cashflow.schema import ColumnMapping
from cashflow.validator import MappingValidationError


@pytest.fixture
def normalizer() -> TransactionNormalizer:
    return TransactionNormalizer()


AMOUNT_MAPPING = ColumnMapping(date="Date", description="Description", amount="Amount")
DEBIT_CREDIT_MAPPING = ColumnMapping(
    date="Date", description="Description", debit="Debit", credit="Credit"
)


# ======================================================================
# Amount parsing
# ======================================================================

class TestParseAmount:
    def test_currency_and_thousands(self) -> None:
        assert parse_amount("$1,234.56") == 1234.56

    def test_parenthetical_negative(self) -> None:
        assert parse_amount("(45.00)") == -45.00

    def test_blank_is_zero(self) -> None:
        assert parse_amount("") == 0.0
        assert parse_amount("   ") == 0.0
        assert parse_amount(None) == 0.0

    def test_numeric_passthrough(self) -> None:
        assert parse_amount(12) == 12.0
        assert parse_amount(-4.5) == -4.5

    def test_leading_minus_with_symbol(self) -> None:
        assert parse_amount("-$12.50") == -12.50

    def test_other_currency_symbols(self) -> None:
        assert parse_amount("€99.90") == 99.90
        assert parse_amount("£1,000") == 1000.0

    def test_trailing_text_ignored(self) -> None:
        assert parse_amount("12.5USD") == 12.5

    def test_garbage_is_zero(self) -> None:
        assert parse_amount("n/a") == 0.0


# ======================================================================
# Date parsing
# ======================================================================

class TestParseDate:
    def test_iso(self) -> None:
        assert parse_date("2024-01-15") == date(2024, 1, 15)

    def test_us_slashes(self) -> None:
        assert parse_date("01/15/2024") == date(2024, 1, 15)

    def test_month_name(self) -> None:
        assert parse_date("Jan 5, 2024") == date(2024, 1, 5)

    def test_compact(self) -> None:
        assert parse_date("20240115") == date(2024, 1, 15)

    def test_native_datetime(self) -> None:
        assert parse_date(datetime(2024, 1, 15, 13, 5)) == date(2024, 1, 15)

    def test_native_date(self) -> None:
        assert parse_date(date(2024, 1, 15)) == date(2024, 1, 15)

    def test_missing_fields_do_not_depend_on_today(self) -> None:
        assert parse_date("Jan 2024") == date(2024, 1, 1)
        assert parse_date("Dec 15") == date(2000, 12, 15)

    @pytest.mark.parametrize("raw", ["", "   ", "hello world", "45123", 45123, None])
    def test_unparseable(self, raw: object) -> None:
        assert parse_date(raw) is None


# ======================================================================
# Normalisation
# ======================================================================

class TestNormalize:
    def test_basic_record(self, normalizer: TransactionNormalizer) -> None:
        records = [{"Date": "2024-01-02", "Description": "FOOD LION #12", "Amount": "-82.17"}]
        result = normalizer.normalize(records, AMOUNT_MAPPING)
        assert result.rejected == []
        t = result.transactions[0]
        assert t.id == 0
        assert t.date == date(2024, 1, 2)
        assert t.description == "FOOD LION #12"
        assert t.amount == -82.17
        assert t.category == "Groceries"

    def test_ids_are_input_positions(self, normalizer: TransactionNormalizer) -> None:
        records = [
            {"Date": "2024-01-02", "Description": "A", "Amount": "1"},
            {"Date": "garbage", "Description": "B", "Amount": "2"},
            {"Date": "2024-01-04", "Description": "C", "Amount": "3"},
        ]
        result = normalizer.normalize(records, AMOUNT_MAPPING)
        assert [t.id for t in result.transactions] == [0, 2]
        assert result.rejected_count == 1
        assert result.rejected[0].index == 1
        assert result.rejected[0].reason == "unparseable date"

    def test_blank_description_is_unknown(self, normalizer: TransactionNormalizer) -> None:
        records = [{"Date": "2024-01-02", "Description": "  ", "Amount": "5"}]
        result = normalizer.normalize(records, AMOUNT_MAPPING)
        assert result.transactions[0].description == "Unknown"

    def test_description_trimmed(self, normalizer: TransactionNormalizer) -> None:
        records = [{"Date": "2024-01-02", "Description": "  NETFLIX.COM ", "Amount": "-15.49"}]
        result = normalizer.normalize(records, AMOUNT_MAPPING)
        assert result.transactions[0].description == "NETFLIX.COM"

    def test_zero_amount_kept(self, normalizer: TransactionNormalizer) -> None:
        records = [{"Date": "2024-01-02", "Description": "Adjustment", "Amount": ""}]
        result = normalizer.normalize(records, AMOUNT_MAPPING)
        assert result.transactions[0].amount == 0.0

    def test_native_cells(self, normalizer: TransactionNormalizer) -> None:
        records = [{"Date": datetime(2024, 3, 9), "Description": "Coffee", "Amount": -4.5}]
        result = normalizer.normalize(records, AMOUNT_MAPPING)
        assert result.transactions[0].date == date(2024, 3, 9)
        assert result.transactions[0].amount == -4.5

    def test_incomplete_mapping_raises(self, normalizer: TransactionNormalizer) -> None:
        with pytest.raises(MappingValidationError):
            normalizer.normalize([], ColumnMapping(date="Date", description="Memo"))


# ======================================================================
# Debit / credit reconciliation
# ======================================================================

class TestDebitCredit:
    def _amounts(self, normalizer: TransactionNormalizer, debit: str, credit: str):  # noqa: ANN202
        records = [{"Date": "2024-01-02", "Description": "X", "Debit": debit, "Credit": credit}]
        return normalizer.normalize(records, DEBIT_CREDIT_MAPPING)

    def test_debit_is_negative(self, normalizer: TransactionNormalizer) -> None:
        result = self._amounts(normalizer, "50.00", "")
        assert result.transactions[0].amount == -50.00

    def test_negative_debit_stays_negative(self, normalizer: TransactionNormalizer) -> None:
        result = self._amounts(normalizer, "-50.00", "")
        assert result.transactions[0].amount == -50.00

    def test_credit_is_positive(self, normalizer: TransactionNormalizer) -> None:
        result = self._amounts(normalizer, "", "120.00")
        assert result.transactions[0].amount == 120.00

    def test_credit_wins_when_both(self, normalizer: TransactionNormalizer) -> None:
        result = self._amounts(normalizer, "20.00", "30.00")
        assert result.transactions[0].amount == 30.00

    def test_both_empty_dropped(self, normalizer: TransactionNormalizer) -> None:
        result = self._amounts(normalizer, "", "")
        assert result.transactions == []
        assert result.rejected[0].reason == "empty debit and credit"

    def test_credit_only_mapping(self, normalizer: TransactionNormalizer) -> None:
        mapping = ColumnMapping(date="Date", description="Description", credit="Credit")
        records = [{"Date": "2024-01-02", "Description": "Refund", "Credit": "9.99"}]
        result = normalizer.normalize(records, mapping)
        assert result.transactions[0].amount == 9.99


# ======================================================================
# Categorisation
# ======================================================================

class TestCategorize:
    def test_override_beats_keywords(self, normalizer: TransactionNormalizer) -> None:
        records = [{"Date": "2024-01-02", "Description": "Acme Corp", "Amount": "-10"}]
        assert normalizer.normalize(records, AMOUNT_MAPPING).transactions[0].category == "Other"

        result = normalizer.normalize(records, AMOUNT_MAPPING, {"acme corp": "Shopping"})
        assert result.transactions[0].category == "Shopping"

    def test_override_store(self, normalizer: TransactionNormalizer) -> None:
        store = InMemoryOverrideStore()
        store.set("FOOD LION #12", "Dining Out")
        assert normalizer.categorize("Food Lion #12", store) == "Dining Out"

    def test_override_is_exact_description(self, normalizer: TransactionNormalizer) -> None:
        overrides = {"food lion #12": "Dining Out"}
        assert normalizer.categorize("FOOD LION #13", overrides) == "Groceries"

    def test_keyword_fallback(self, normalizer: TransactionNormalizer) -> None:
        assert normalizer.categorize("CHEVRON 0042", {}) == "Transportation"
