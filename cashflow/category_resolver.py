"""
Category-name resolution.

Re-categorisation and budget edits arrive as free text ("dining",
"Subscription", "utilites").  This layer maps such input onto the fixed
category set using ``rapidfuzz``; results are confidence-gated:

* An exact (case-insensitive) name always wins with score 100.
* Fuzzy matches **below** ``fuzzy_threshold`` are rejected outright.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from rapidfuzz import fuzz, process

from cashflow.config import CategoryConfig
from cashflow.logging_setup import get_logger
from cashflow.schema import CATEGORY_NAMES, category_lookup

logger = get_logger("category_resolver")


@dataclass
class CategoryCandidate:
    """A single candidate returned by the resolver."""

    category: str
    score: float  # 0–100


class CategoryResolver:
    """Resolve free-text category names against the fixed category set.

    Parameters
    ----------
    config:
        Threshold settings.
    """

    def __init__(self, config: Optional[CategoryConfig] = None) -> None:
        self._config = config or CategoryConfig()
        self._targets: dict[str, str] = {name.lower(): name for name in CATEGORY_NAMES}
        self._target_keys: list[str] = sorted(self._targets)

    def match(self, text: str) -> Optional[CategoryCandidate]:
        """Best category for *text*, or ``None`` if nothing clears the threshold."""
        cleaned = (text or "").strip().lower()
        if not cleaned:
            return None

        exact = category_lookup(cleaned)
        if exact is not None:
            return CategoryCandidate(category=exact.value, score=100.0)

        # WRatio copes with partial input ("dining" → "dining out").
        best = process.extractOne(cleaned, self._target_keys, scorer=fuzz.WRatio)
        if best is None:
            return None

        best_key, best_score, _ = best
        if best_score < self._config.fuzzy_threshold:
            logger.info(
                "Category best for %r is %r (%.1f), below threshold %.1f; rejected",
                text,
                best_key,
                best_score,
                self._config.fuzzy_threshold,
            )
            return None

        category = self._targets[best_key]
        logger.info("Resolved category %r → %r (score=%.1f)", text, category, best_score)
        return CategoryCandidate(category=category, score=best_score)

    def resolve(self, text: str) -> str:
        """Like ``match`` but raises ``ValueError`` when unresolved."""
        candidate = self.match(text)
        if candidate is None:
            raise ValueError(
                f"Unknown category {text!r}. Must be one of: "
                + ", ".join(sorted(CATEGORY_NAMES))
            )
        return candidate.category
