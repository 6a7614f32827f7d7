"""
Unit tests for the ColumnMapper.
"""

from __future__ import annotations

import pytest

from cashflow.column_mapper import ColumnMapper
from cashflow.schema import ColumnMapping


@pytest.fixture
def mapper() -> ColumnMapper:
    return ColumnMapper()


class TestGuess:
    def test_single_amount_layout(self, mapper: ColumnMapper) -> None:
        mapping = mapper.guess(["Date", "Description", "Amount"])
        assert mapping == ColumnMapping(
            date="Date", description="Description", amount="Amount"
        )

    def test_debit_credit_layout(self, mapper: ColumnMapper) -> None:
        mapping = mapper.guess(["Transaction Date", "Payee", "Withdrawal", "Deposit"])
        assert mapping.date == "Transaction Date"
        assert mapping.description == "Payee"
        assert mapping.amount == ""
        assert mapping.debit == "Withdrawal"
        assert mapping.credit == "Deposit"

    def test_first_matching_header_wins(self, mapper: ColumnMapper) -> None:
        mapping = mapper.guess(["Date", "Posted Date", "Memo", "Amount"])
        assert mapping.date == "Date"

    def test_one_header_can_fill_several_roles(self, mapper: ColumnMapper) -> None:
        # "posting" contains "in", a credit keyword
        mapping = mapper.guess(["Posting Date", "Description", "Debit", "Credit"])
        assert mapping.date == "Posting Date"
        assert mapping.credit == "Posting Date"
        assert mapping.debit == "Debit"

    def test_unmatched_roles_left_empty(self, mapper: ColumnMapper) -> None:
        mapping = mapper.guess(["Foo", "Bar"])
        assert mapping == ColumnMapping()

    def test_guess_is_overridable(self, mapper: ColumnMapper) -> None:
        mapping = mapper.guess(["Posting Date", "Description", "Debit", "Credit"])
        fixed = mapping.with_overrides(credit="Credit")
        assert fixed.credit == "Credit"
        assert fixed.date == "Posting Date"

    def test_unknown_override_role_rejected(self, mapper: ColumnMapper) -> None:
        mapping = mapper.guess(["Date", "Description", "Amount"])
        with pytest.raises(ValueError, match="Unknown mapping role"):
            mapping.with_overrides(balance="Balance")
