"""
CashFlow: Statement Ingestion and Cash-Flow Forecasting Engine.

Reads bank and card exports with unknown, preamble-laden layouts, rebuilds
a canonical transaction ledger from them, categorises every transaction and
rolls the ledger up into monthly figures and a short trailing-average
forecast.

Every stage is a heuristic and says so: dropped rows are reported, guessed
column mappings are advisory, and user category overrides always beat the
keyword table.
"""

__version__ = "1.0.0"
__author__ = "CashFlow Team"

from cashflow.pipeline import CashFlowPipeline, Ledger  # noqa: F401
