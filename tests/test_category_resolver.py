"""
Unit tests for the CategoryResolver.
"""

from __future__ import annotations

import pytest

from cashflow.category_resolver import CategoryResolver
from cashflow.config import CategoryConfig


@pytest.fixture
def resolver() -> CategoryResolver:
    return CategoryResolver(config=CategoryConfig(fuzzy_threshold=80.0))


@pytest.fixture
def strict_resolver() -> CategoryResolver:
    return CategoryResolver(config=CategoryConfig(fuzzy_threshold=95.0))


# ======================================================================
# Matching
# ======================================================================

class TestMatch:
    def test_exact_name_any_case(self, resolver: CategoryResolver) -> None:
        result = resolver.match("  GROCERIES ")
        assert result is not None
        assert result.category == "Groceries"
        assert result.score == 100.0

    def test_typo_accepted(self, resolver: CategoryResolver) -> None:
        result = resolver.match("utilites")
        assert result is not None
        assert result.category == "Utilities"
        assert result.score >= 80.0

    def test_singular_accepted(self, resolver: CategoryResolver) -> None:
        result = resolver.match("subscription")
        assert result is not None
        assert result.category == "Subscriptions"

    def test_partial_name(self, resolver: CategoryResolver) -> None:
        result = resolver.match("dining")
        assert result is not None
        assert result.category == "Dining Out"

    def test_partial_name_below_strict_threshold(
        self, strict_resolver: CategoryResolver
    ) -> None:
        assert strict_resolver.match("dining") is None

    def test_garbage_rejected(self, resolver: CategoryResolver) -> None:
        assert resolver.match("zzzzqqq") is None

    def test_empty_input(self, resolver: CategoryResolver) -> None:
        assert resolver.match("") is None
        assert resolver.match("   ") is None


# ======================================================================
# Resolve
# ======================================================================

class TestResolve:
    def test_resolve_returns_name(self, resolver: CategoryResolver) -> None:
        assert resolver.resolve("other") == "Other"

    def test_resolve_raises(self, resolver: CategoryResolver) -> None:
        with pytest.raises(ValueError, match="Unknown category"):
            resolver.resolve("zzzzqqq")
