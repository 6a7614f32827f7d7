"""
Header Locator.

Bank exports frequently start with a preamble (bank name, account number,
statement period) before the real column header.  Parsing the first row as
the header would corrupt the whole import, so the locator scores the first
few rows and accepts the first one that *looks* like a header:

* at least ``min_cells`` non-blank cells,
* at least ``min_hits`` cells containing a header keyword,
* at most ``max_empties`` blank or placeholder cells.

Only ``scan_window`` rows are ever examined, so a malformed file cannot turn
header detection into a full scan.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from cashflow.config import HeaderDetectionConfig
from cashflow.logging_setup import get_logger
from cashflow.schema import LocatedTable

logger = get_logger("header_locator")

HEADER_KEYWORDS: tuple[str, ...] = (
    "date", "posted", "trans", "desc", "memo", "merchant", "payee",
    "amount", "debit", "credit", "withdrawal", "deposit", "detail", "narr",
)


def _cell_text(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def _is_blank_row(row: Sequence[Any]) -> bool:
    return all(_cell_text(c) == "" for c in row)


def _is_placeholder(text: str) -> bool:
    # Spreadsheet tools name unlabelled columns "__EMPTY", "_1", ...
    lower = text.lower()
    return lower == "" or lower.startswith("_") or "__empty" in lower


class HeaderLocator:
    """Find the true header row and slice the rows beneath it into records.

    Parameters
    ----------
    config:
        Scan window and acceptance thresholds.
    """

    def __init__(self, config: Optional[HeaderDetectionConfig] = None) -> None:
        self._config = config or HeaderDetectionConfig()

    # ------------------------------------------------------------------ #
    # Scoring
    # ------------------------------------------------------------------ #

    def looks_like_header(self, cells: Sequence[str]) -> bool:
        """Score already-trimmed, non-blank cell texts."""
        lower = [c.lower() for c in cells]
        hits = sum(1 for c in lower if any(kw in c for kw in HEADER_KEYWORDS))
        empties = sum(1 for c in lower if _is_placeholder(c))
        return hits >= self._config.min_hits and empties <= self._config.max_empties

    def is_header_row(self, row: Sequence[Any]) -> bool:
        cells = [t for t in (_cell_text(c) for c in row) if t != ""]
        return len(cells) >= self._config.min_cells and self.looks_like_header(cells)

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def locate(self, rows: Sequence[Sequence[Any]]) -> Optional[LocatedTable]:
        """Return headers + records, or ``None`` if no row in the scan window
        qualifies as a header."""
        window = min(len(rows), self._config.scan_window)
        for i in range(window):
            if self.is_header_row(rows[i]):
                logger.info("Header row found at index %d", i)
                return self._slice(rows, i)

        logger.info("No header row within the first %d row(s)", window)
        return None

    def locate_or_fallback(self, rows: Sequence[Sequence[Any]]) -> LocatedTable:
        """Like ``locate`` but falls back to treating row 0 as the header."""
        table = self.locate(rows)
        if table is not None:
            return table

        logger.warning(
            "Header not detected; falling back to first row as header"
        )
        if not rows:
            return LocatedTable(headers=[], records=[], header_row_index=None)
        table = self._slice(rows, 0)
        table.header_row_index = None
        return table

    # ------------------------------------------------------------------ #
    # Slicing
    # ------------------------------------------------------------------ #

    @staticmethod
    def _slice(rows: Sequence[Sequence[Any]], header_idx: int) -> LocatedTable:
        raw_headers = [_cell_text(c) for c in rows[header_idx]]

        records: List[Dict[str, Any]] = []
        for row in rows[header_idx + 1:]:
            if _is_blank_row(row):
                continue
            record: Dict[str, Any] = {}
            for j, name in enumerate(raw_headers):
                if not name:
                    continue
                record[name] = row[j] if j < len(row) else ""
            records.append(record)

        headers = [h for h in raw_headers if h]
        logger.debug(
            "Sliced %d record(s) under %d header(s)", len(records), len(headers)
        )
        return LocatedTable(
            headers=headers,
            records=records,
            header_row_index=header_idx,
        )
