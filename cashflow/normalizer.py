"""
Transaction Normalization Layer.

Turns header-keyed records into canonical ``Transaction`` objects:

1. Parse the mapped date cell; rows without a usable date are dropped
2. Resolve a signed amount, either from a single ``amount`` column or by
   reconciling ``debit`` / ``credit`` magnitudes
3. Default blank descriptions to ``"Unknown"``
4. Categorise: persisted override first, keyword index second

Ingestion is best-effort: a bad row never aborts the batch.  Every dropped
row is reported in ``NormalizationResult.rejected`` instead.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any, Mapping, Optional, Protocol, Sequence, Union

from dateutil import parser as date_parser

from cashflow.categories import DEFAULT_INDEX, KeywordIndex
from cashflow.logging_setup import get_logger
from cashflow.schema import (
    ColumnMapping,
    NormalizationResult,
    RejectedRow,
    Transaction,
)
from cashflow.validator import MappingValidator

logger = get_logger("normalizer")

UNKNOWN_DESCRIPTION = "Unknown"

# Currency symbols / grouping to strip from amounts
_STRIP_RE = re.compile(r"[$€£¥₹,\s]")

# Parenthetical negative: ``(1234)`` → ``-1234``
_PAREN_NEG_RE = re.compile(r"\((.+)\)")

# Leading numeric prefix, the way spreadsheet exports are usually read
_NUMBER_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")

_COMPACT_DATE_RE = re.compile(r"^\d{8}$")
# Fields a string leaves out (year, day) come from here, not from today.
_DATE_DEFAULT = datetime(2000, 1, 1)


class OverrideLookup(Protocol):
    """Anything that can answer ``get(lowercase_description)``."""

    def get(self, key: str) -> Optional[str]: ...


Overrides = Union[OverrideLookup, Mapping[str, str]]


def parse_amount(raw: Any) -> float:
    """Parse a monetary cell.

    Handles:
    * Already-numeric inputs (int / float)
    * Currency symbols and thousands separators: ``"$1,234.56"``
    * Parenthetical negatives: ``"(45.00)"``

    Blank or unparseable cells give ``0.0``.
    """
    if isinstance(raw, (int, float)):
        return float(raw)
    if raw is None:
        return 0.0

    text = _STRIP_RE.sub("", str(raw))
    if not text:
        return 0.0

    text = _PAREN_NEG_RE.sub(r"-\1", text, count=1)

    m = _NUMBER_RE.match(text)
    if not m:
        logger.debug("parse_amount: cannot parse %r; using 0", raw)
        return 0.0
    return float(m.group(0))


def parse_date(raw: Any) -> Optional[date]:
    """Interpret a date cell as a calendar date.

    Native ``date`` / ``datetime`` values (spreadsheet date cells) pass
    through.  Strings are parsed with ``dateutil``.  Bare numbers are not
    guessed at and give ``None``.
    """
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if not isinstance(raw, str):
        return None

    text = raw.strip()
    if not text:
        return None
    if text.isdigit() and not _COMPACT_DATE_RE.match(text):
        return None

    try:
        return date_parser.parse(text, default=_DATE_DEFAULT).date()
    except (ValueError, OverflowError):
        logger.debug("parse_date: cannot parse %r", raw)
        return None


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


class TransactionNormalizer:
    """Build ``Transaction`` records from header-keyed rows.

    Parameters
    ----------
    keyword_index:
        Fallback classifier; the built-in table by default.
    validator:
        Mapping validator run before any record is touched.
    """

    def __init__(
        self,
        keyword_index: Optional[KeywordIndex] = None,
        validator: Optional[MappingValidator] = None,
    ) -> None:
        self._index = keyword_index or DEFAULT_INDEX
        self._validator = validator or MappingValidator()

    def categorize(
        self,
        description: str,
        overrides: Optional[Overrides] = None,
    ) -> str:
        """Override for the lower-cased description, else the keyword index."""
        if overrides is not None:
            chosen = overrides.get(description.lower())
            if chosen:
                return chosen
        return self._index.classify(description)

    def normalize(
        self,
        records: Sequence[Mapping[str, Any]],
        mapping: ColumnMapping,
        overrides: Optional[Overrides] = None,
    ) -> NormalizationResult:
        """Normalise *records* in input order.

        Each transaction's ``id`` is its record's 0-based position, so ids
        stay stable even when earlier rows are dropped.

        Raises
        ------
        MappingValidationError
            If *mapping* lacks a date, a description or any amount path.
        """
        self._validator.require_valid(mapping)

        result = NormalizationResult()
        for i, record in enumerate(records):
            txn, reason = self._normalize_one(i, record, mapping, overrides)
            if txn is None:
                logger.debug("Dropped record %d: %s", i, reason)
                result.rejected.append(RejectedRow(index=i, reason=reason))
            else:
                result.transactions.append(txn)

        logger.info(
            "Normalised %d record(s): %d transaction(s), %d rejected",
            len(records),
            len(result.transactions),
            result.rejected_count,
        )
        return result

    def _normalize_one(
        self,
        index: int,
        record: Mapping[str, Any],
        mapping: ColumnMapping,
        overrides: Optional[Overrides],
    ) -> tuple[Optional[Transaction], str]:
        when = parse_date(record.get(mapping.date))
        if when is None:
            return None, "unparseable date"

        if mapping.amount:
            amount = parse_amount(record.get(mapping.amount))
        else:
            debit = parse_amount(record.get(mapping.debit)) if mapping.debit else 0.0
            credit = parse_amount(record.get(mapping.credit)) if mapping.credit else 0.0
            if credit > 0:
                amount = credit
            elif debit:
                amount = -abs(debit)
            else:
                return None, "empty debit and credit"

        description = _cell_text(record.get(mapping.description)) or UNKNOWN_DESCRIPTION
        category = self.categorize(description, overrides)

        return Transaction(
            id=index,
            date=when,
            description=description,
            amount=amount,
            category=category,
        ), ""
