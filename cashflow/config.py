"""
Configuration module for CashFlow.

All tuneable thresholds and paths live here.
Nothing is hard-coded in business logic modules.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union


@dataclass(frozen=True)
class HeaderDetectionConfig:
    """Controls how the header row is located amid export preamble."""

    # Only the first N raw rows are ever considered as header candidates.
    scan_window: int = 15

    # A header row needs at least this many non-blank cells ...
    min_cells: int = 3

    # ... at least this many cells containing a header keyword ...
    min_hits: int = 2

    # ... and at most this many blank / placeholder cells.
    max_empties: int = 1


@dataclass(frozen=True)
class CategoryConfig:
    """Controls categorisation and category-name resolution."""

    # Minimum rapidfuzz score (0–100) for a user-typed category name to be
    # resolved to one of the fixed categories.
    fuzzy_threshold: float = 80.0

    # Optional JSON file of ``{category: [keywords]}`` merged into the
    # built-in keyword table.
    custom_rules_path: Optional[Path] = None


@dataclass(frozen=True)
class ForecastConfig:
    """Controls the trailing-average projection."""

    # Number of most recent months averaged.
    window: int = 3

    # Number of months projected forward.
    horizon: int = 3

    # Fewer aggregates than this produce no forecast at all.
    min_months: int = 2


@dataclass(frozen=True)
class PipelineConfig:
    """Top-level configuration aggregating all sub-configs."""

    header: HeaderDetectionConfig = field(default_factory=HeaderDetectionConfig)
    categories: CategoryConfig = field(default_factory=CategoryConfig)
    forecast: ForecastConfig = field(default_factory=ForecastConfig)

    # Logging level for the ingestion audit trail (int or level name)
    log_level: Union[int, str] = logging.INFO

    # When True an import raises if any row had to be dropped instead of
    # returning the partial ledger.
    strict_mode: bool = False

    # Directory for the JSON-file stores.  ``None`` keeps everything in memory.
    data_dir: Optional[Path] = None
