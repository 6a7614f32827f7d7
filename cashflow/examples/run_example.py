#!/usr/bin/env python3
"""
Example: CashFlow ingestion demo.

Feeds a bank export with a preamble through the two-step import, corrects
the guessed mapping, re-categorises a transaction and prints the monthly
figures and forecast.

Run from the project root:
    python -m cashflow.examples.run_example
or:
    python cashflow/examples/run_example.py
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

# Ensure the project root is on sys.path when run as a script
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

from cashflow.config import PipelineConfig
from cashflow.exporter import Exporter
from cashflow.pipeline import CashFlowPipeline, Ledger
from cashflow.tabular_reader import SourceKind


SAMPLE_STATEMENT = b"""Acme Credit Union
Account Summary,,,
Statement period 01/01/2024 - 03/31/2024,,,
,,,
Posting Date,Description,Debit,Credit
01/02/2024,PAYROLL DEPOSIT ACME CORP,,2500.00
01/05/2024,FOOD LION #1234,82.17,
01/09/2024,SHELL OIL 5544,41.00,
01/15/2024,NETFLIX.COM,15.49,
02/01/2024,PAYROLL DEPOSIT ACME CORP,,2500.00
02/03/2024,RENT PAYMENT,1400.00,
02/11/2024,CHIPOTLE 0871,12.85,
02/20/2024,DUKE ENERGY,96.30,
03/01/2024,PAYROLL DEPOSIT ACME CORP,,2600.00
03/04/2024,WHOLE FOODS MKT,64.20,
03/12/2024,TRANSFER FROM SAVINGS,,
03/18/2024,CVS PHARMACY,23.99,
"""


# ======================================================================
# Helper
# ======================================================================

def print_section(title: str) -> None:
    width = 72
    print("\n" + "=" * width)
    print(f"  {title}")
    print("=" * width)


# ======================================================================
# Demo 1 - Preview
# ======================================================================

def demo_preview(pipeline: CashFlowPipeline):  # noqa: ANN201
    print_section("DEMO 1 - Preview (header detection + mapping guess)")

    prepared = pipeline.prepare(SAMPLE_STATEMENT, SourceKind.DELIMITED)
    print(json.dumps(prepared.to_dict(), indent=2, ensure_ascii=False))
    return prepared


# ======================================================================
# Demo 2 - Import
# ======================================================================

def demo_import(ledger: Ledger, prepared) -> None:  # noqa: ANN001
    print_section("DEMO 2 - Import with a confirmed mapping")

    # "Posting Date" also matches the credit keywords; point credit at the real column.
    mapping = prepared.guessed_mapping.with_overrides(credit="Credit")
    result = ledger.import_prepared(prepared, mapping, name="acme-q1")

    for t in result.transactions:
        print(f"  {t.id:>3}  {t.date}  {t.amount:>10.2f}  {t.category:<15} {t.description}")
    print(f"\n  ✓ Transactions : {len(result.transactions)}")
    print(f"  ✗ Rejected     : {len(result.rejected)}")
    for r in result.rejected:
        print(f"      row {r.index}: {r.reason}")


# ======================================================================
# Demo 3 - Re-categorise
# ======================================================================

def demo_recategorize(ledger: Ledger) -> None:
    print_section("DEMO 3 - Re-categorise and remember")

    payroll = next(t for t in ledger.transactions if "PAYROLL" in t.description)
    updated = ledger.recategorize(payroll.id, "income")
    print(f"  {updated.description!r} → {updated.category}")
    print(f"  Overrides: {ledger.overrides.load()}")


# ======================================================================
# Demo 4 - Monthly figures and forecast
# ======================================================================

def demo_monthly(ledger: Ledger) -> None:
    print_section("DEMO 4 - Monthly figures, breakdown and forecast")

    for m in ledger.monthly():
        print(f"  {m.month_key}  income={m.income:>9.2f}  expenses={m.expenses:>9.2f}  net={m.net:>9.2f}")
    for f in ledger.forecast():
        print(f"  {f.month_key}  income={f.income:>9}  expenses={f.expenses:>9}  net={f.net:>9}  (forecast)")

    summary = ledger.summary(month=ledger.default_month())
    print("\n  Latest month breakdown:")
    for row in summary["breakdown"]:
        print(f"    {row['name']:<15} {row['value']:>9.2f}")

    print("\n  CSV export:")
    print(Exporter.to_csv_string(ledger.transactions))


# ======================================================================
# Main
# ======================================================================

def main() -> None:
    config = PipelineConfig(
        log_level=logging.WARNING,  # Quieter for demo output
    )

    ledger = Ledger.from_config(config)

    prepared = demo_preview(ledger.pipeline)
    demo_import(ledger, prepared)
    demo_recategorize(ledger)
    demo_monthly(ledger)

    print("\n" + "=" * 72)
    print("  All demos complete.")
    print("=" * 72)


if __name__ == "__main__":
    main()
