"""
Keyword Category Index.

A curated mapping from merchant keywords to spending categories, compiled
once into a flat lookup table.  This is the heuristic fallback classifier:
user overrides are consulted before it ever runs.

Design decisions
----------------
* Matching is plain substring containment on the lower-cased description.
  There is no tokenising and no word-boundary check, so short keywords
  ("gas", "bp", "in") can fire inside unrelated words.
* The compiled index is stable-sorted by descending keyword length, which is
  the only disambiguation mechanism: "gas bill" is tried before "gas",
  "food lion" before any shorter keyword it contains.
* The table is extensible per instance through ``extra_rules``,
  ``add_rules`` and ``load_custom_rules``; ``DEFAULT_INDEX`` is never mutated.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from cashflow.logging_setup import get_logger
from cashflow.schema import CATEGORY_NAMES, OTHER, category_lookup

logger = get_logger("categories")


# ---------------------------------------------------------------------------
# Built-in keyword table
# ---------------------------------------------------------------------------
# Convention: key = category name exactly as defined in ``Category.value``,
# value = lower-case substrings.  Order inside a list does not matter for
# matching; only keyword length does.

_BUILTIN_RULES: Dict[str, List[str]] = {
    "Groceries": [
        "grocery", "supermarket", "whole foods", "trader joe", "safeway",
        "kroger", "walmart", "costco", "aldi", "publix", "wegmans", "heb",
        "food lion", "save-a-lot",
    ],
    "Dining Out": [
        "restaurant", "mcdonald", "starbucks", "chipotle", "subway", "pizza",
        "doordash", "uber eats", "grubhub", "cafe", "coffee", "burger",
        "taco", "sushi", "diner", "bar & grill",
    ],
    "Transportation": [
        "gas", "fuel", "shell", "chevron", "bp", "exxon", "uber", "lyft",
        "parking", "transit", "metro", "toll", "auto",
    ],
    "Housing": [
        "rent", "mortgage", "hoa", "property tax", "home depot", "lowe",
        "ikea", "furniture",
    ],
    "Utilities": [
        "electric", "water", "gas bill", "internet", "comcast", "verizon",
        "at&t", "t-mobile", "phone", "utility", "power", "energy",
    ],
    "Entertainment": [
        "netflix", "spotify", "hulu", "disney", "amazon prime", "movie",
        "theater", "concert", "game", "steam", "playstation", "xbox",
        "apple music", "youtube",
    ],
    "Shopping": [
        "amazon", "target", "mall", "clothing", "shoes", "nike", "adidas",
        "zara", "h&m", "nordstrom", "macy", "best buy", "apple store",
    ],
    "Health": [
        "pharmacy", "cvs", "walgreens", "doctor", "hospital", "medical",
        "dental", "vision", "gym", "fitness", "health",
    ],
    "Insurance": [
        "insurance", "geico", "state farm", "allstate", "progressive",
    ],
    "Subscriptions": [
        "subscription", "membership", "annual fee", "monthly fee", "patreon",
    ],
    "Travel": [
        "airline", "hotel", "airbnb", "booking", "flight", "travel",
        "vacation", "resort",
    ],
    "Education": [
        "tuition", "school", "university", "course", "udemy", "textbook",
        "student",
    ],
    "Income": [
        "payroll", "salary", "direct deposit", "deposit", "payment received",
        "refund", "interest earned", "dividend", "transfer in", "income",
        "paycheck",
    ],
}


@dataclass(frozen=True)
class CategoryRule:
    """A category and the keywords that select it."""

    category: str
    keywords: tuple[str, ...]


@dataclass(frozen=True)
class KeywordIndexEntry:
    keyword: str
    category: str


def _canonical_category(name: str) -> str:
    if name in CATEGORY_NAMES:
        return name
    found = category_lookup(name)
    if found is None:
        raise ValueError(
            f"Unknown category {name!r}. "
            f"Must be one of the Category values."
        )
    return found.value


def _clean_keywords(keywords: Iterable[str]) -> tuple[str, ...]:
    seen: Dict[str, None] = {}
    for kw in keywords:
        k = str(kw).strip().lower()
        if k:
            seen.setdefault(k, None)
    return tuple(seen)


class KeywordIndex:
    """Longest-keyword-first substring classifier.

    Parameters
    ----------
    extra_rules:
        Optional ``{category: [keywords]}`` merged into the built-in table at
        construction time.
    """

    def __init__(
        self,
        extra_rules: Optional[Dict[str, Iterable[str]]] = None,
    ) -> None:
        self._rules: Dict[str, tuple[str, ...]] = {
            cat: _clean_keywords(kws) for cat, kws in _BUILTIN_RULES.items()
        }
        self._index: List[KeywordIndexEntry] = []

        if extra_rules:
            self.add_rules(extra_rules)
        else:
            self._compile()

    def _compile(self) -> None:
        flat = [
            KeywordIndexEntry(keyword=kw, category=cat)
            for cat, kws in self._rules.items()
            for kw in kws
        ]
        # ``sorted`` is stable: equal-length keywords keep table order.
        self._index = sorted(flat, key=lambda e: len(e.keyword), reverse=True)
        logger.debug("Compiled keyword index: %d entries", len(self._index))

    # ------------------------------------------------------------------ #
    # Lookup
    # ------------------------------------------------------------------ #

    def classify(self, description: Optional[str]) -> str:
        """Return the category of the longest keyword found in *description*,
        or ``"Other"`` when nothing matches."""
        lower = (description or "").lower()
        for entry in self._index:
            if entry.keyword in lower:
                return entry.category
        return OTHER

    def match(self, description: Optional[str]) -> Optional[KeywordIndexEntry]:
        """Like ``classify`` but returns the winning entry (or ``None``)."""
        lower = (description or "").lower()
        for entry in self._index:
            if entry.keyword in lower:
                return entry
        return None

    # ------------------------------------------------------------------ #
    # Extension API
    # ------------------------------------------------------------------ #

    def add_rule(self, category: str, keywords: Iterable[str]) -> None:
        """Append keywords to one category and recompile.

        Raises
        ------
        ValueError
            If ``category`` is not a known category or no usable keyword is
            given.
        """
        self._add(category, keywords)
        self._compile()

    def add_rules(self, mapping: Dict[str, Iterable[str]]) -> int:
        """Bulk-add from a ``{category: [keywords]}`` dict.

        Returns the number of keywords that were new to the index.
        """
        added = sum(self._add(category, keywords) for category, keywords in mapping.items())
        self._compile()
        return added

    def _add(self, category: str, keywords: Iterable[str]) -> int:
        if isinstance(keywords, str):
            keywords = [keywords]
        canonical = _canonical_category(category)
        cleaned = _clean_keywords(keywords)
        if not cleaned:
            raise ValueError(f"Keyword list for {canonical!r} is empty")
        existing = self._rules.get(canonical, ())
        self._rules[canonical] = _clean_keywords(existing + cleaned)
        added = len(self._rules[canonical]) - len(existing)
        logger.debug("Added %d keyword(s) to %r", added, canonical)
        return added

    def load_custom_rules(self, path: Path) -> int:
        """Load rules from a JSON file (``{category: [keywords]}``).

        Returns the number of keywords added.
        """
        with open(path, encoding="utf-8") as fh:
            data: Dict[str, List[str]] = json.load(fh)
        count = self.add_rules(data)
        logger.info("Loaded %d custom keywords from %s", count, path)
        return count

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    @property
    def size(self) -> int:
        return len(self._index)

    def entries(self) -> List[KeywordIndexEntry]:
        """Return a *copy* of the compiled, sorted index."""
        return list(self._index)

    def rules(self) -> List[CategoryRule]:
        return [CategoryRule(category=c, keywords=k) for c, k in self._rules.items()]


DEFAULT_INDEX = KeywordIndex()


def classify(description: Optional[str]) -> str:
    """Classify with the built-in keyword table."""
    return DEFAULT_INDEX.classify(description)
