"""
Exporter.

Serialises pipeline results for downstream consumers: a JSON document of
the whole import, or a flat CSV of the transactions.
"""

from __future__ import annotations

import csv
import json
from io import StringIO
from typing import Sequence

from cashflow.schema import ImportResult, Transaction


class Exporter:
    """Builds JSON / CSV representations of an import."""

    @staticmethod
    def to_json(result: ImportResult, indent: int = 2) -> str:
        """Serialise ``ImportResult`` to a JSON string."""
        return json.dumps(result.to_dict(), indent=indent, ensure_ascii=False)

    @staticmethod
    def to_csv_string(transactions: Sequence[Transaction]) -> str:
        """Transactions as CSV text, one row each, dates as ``YYYY-MM-DD``."""
        buf = StringIO()
        writer = csv.writer(buf)
        writer.writerow(["id", "date", "description", "amount", "category"])
        for t in transactions:
            writer.writerow([
                t.id,
                t.date.isoformat(),
                t.description,
                f"{t.amount:.2f}",
                t.category,
            ])
        return buf.getvalue()
