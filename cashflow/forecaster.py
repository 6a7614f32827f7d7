"""
Forecaster.

Projects the next few months from a trailing average of monthly
aggregates.  This is naive: no seasonality, no trend, just
the mean of the most recent window carried forward.
"""

from __future__ import annotations

import math
from datetime import date
from typing import List, Optional, Sequence

from dateutil.relativedelta import relativedelta

from cashflow.config import ForecastConfig
from cashflow.logging_setup import get_logger
from cashflow.schema import ForecastPoint, MonthlyAggregate

logger = get_logger("forecaster")


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves toward +inf (2.5 → 3, -2.5 → -2)."""
    return int(math.floor(value + 0.5))


def add_months(key: str, months: int) -> str:
    """Shift a ``YYYY-MM`` key by *months*, rolling over year boundaries."""
    year, month = (int(p) for p in key.split("-"))
    shifted = date(year, month, 1) + relativedelta(months=months)
    return f"{shifted.year:04d}-{shifted.month:02d}"


class Forecaster:
    """Trailing-average projection over ``MonthlyAggregate`` rows.

    Parameters
    ----------
    config:
        Window size, horizon and the minimum history required.
    """

    def __init__(self, config: Optional[ForecastConfig] = None) -> None:
        self._config = config or ForecastConfig()

    def forecast(self, aggregates: Sequence[MonthlyAggregate]) -> List[ForecastPoint]:
        """Project ``horizon`` months past the last aggregate.

        Returns an empty list when fewer than ``min_months`` aggregates
        exist; a single month is too noisy to extrapolate.  *aggregates*
        must be ascending by month key, as ``aggregate`` returns them.
        """
        if len(aggregates) < self._config.min_months:
            logger.info(
                "Forecast skipped: %d month(s) of history, need %d",
                len(aggregates),
                self._config.min_months,
            )
            return []

        recent = list(aggregates[-self._config.window:])
        avg_income = sum(a.income for a in recent) / len(recent)
        avg_expenses = sum(a.expenses for a in recent) / len(recent)

        last_key = aggregates[-1].month_key
        points = [
            ForecastPoint(
                month_key=add_months(last_key, i),
                income=round_half_up(avg_income),
                expenses=round_half_up(avg_expenses),
                net=round_half_up(avg_income - avg_expenses),
            )
            for i in range(1, self._config.horizon + 1)
        ]

        logger.info(
            "Forecast from %d month(s): avg income=%.2f, avg expenses=%.2f",
            len(recent),
            avg_income,
            avg_expenses,
        )
        return points
