"""
Column Mapper.

Guesses which header holds each semantic role.  Each header (lower-cased,
trimmed) is tested by substring against the role keyword sets below; the
first header in column order to match a role claims it and is never
displaced.  One header may claim several roles: "Posting Date" claims
``date`` and, through the "in" of "posting", ``credit`` too.

The guess is advisory: callers show it to the user and apply overrides with
``ColumnMapping.with_overrides`` before normalising.  Completeness is checked
by ``MappingValidator``, not here.
"""

from __future__ import annotations

from typing import Dict, Sequence, Tuple

from cashflow.logging_setup import get_logger
from cashflow.schema import ColumnMapping

logger = get_logger("column_mapper")

# Role → substrings, in the priority order roles are tested per header.
ROLE_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("date", ("date", "posted", "trans")),
    ("description", ("desc", "memo", "narr", "merchant", "payee", "name", "detail")),
    ("amount", ("amount",)),
    ("debit", ("debit", "withdrawal", "out")),
    ("credit", ("credit", "deposit", "in")),
)


class ColumnMapper:
    """Keyword-based column-role guesser."""

    def guess(self, headers: Sequence[str]) -> ColumnMapping:
        roles: Dict[str, str] = {role: "" for role, _ in ROLE_KEYWORDS}

        for header in headers:
            h = str(header).lower().strip()
            for role, keywords in ROLE_KEYWORDS:
                if not roles[role] and any(kw in h for kw in keywords):
                    roles[role] = header

        mapping = ColumnMapping(**roles)
        logger.info("Guessed column mapping: %s", mapping.to_dict())
        return mapping
