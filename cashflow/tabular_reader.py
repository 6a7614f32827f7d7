"""
Tabular Reader.

Turns the raw bytes of a statement export into an ordered list of raw rows
(lists of cell values).  Supported sources:

- Delimited text (comma or tab separated, optional UTF-8 BOM)
- ``.xlsx`` / ``.xlsm`` workbooks (first sheet only, via ``openpyxl``)
- pandas DataFrames already loaded by the caller

No header is assumed and nothing is interpreted: finding the header and
giving columns meaning is the job of the downstream stages.  Spreadsheet date
cells come back as ``datetime`` objects; empty cells come back as ``""``.
"""

from __future__ import annotations

import csv
import zipfile
from enum import Enum
from io import BytesIO, StringIO
from pathlib import Path
from typing import Any, List, Union

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from cashflow.logging_setup import get_logger

logger = get_logger("tabular_reader")

RawRow = List[Any]

_SNIFF_BYTES = 4096


class TabularParseError(ValueError):
    """The source could not be tokenised into rows at all."""


class SourceKind(str, Enum):
    DELIMITED = "delimited"
    SPREADSHEET = "spreadsheet"

    @classmethod
    def from_filename(cls, filename: str) -> "SourceKind":
        """Pick the reader from the file extension."""
        ext = Path(filename).suffix.lower()
        if ext in (".csv", ".tsv", ".txt"):
            return cls.DELIMITED
        if ext in (".xlsx", ".xlsm"):
            return cls.SPREADSHEET
        if ext == ".xls":
            raise ValueError(
                "Legacy .xls workbooks are not supported; re-save the file as .xlsx"
            )
        raise ValueError(f"Unsupported file type: {ext or filename!r}")


def _decode(data: bytes) -> str:
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        logger.info("Source is not valid UTF-8; retrying as cp1252")
    return data.decode("cp1252")


def _detect_delimiter(sample: str) -> str:
    """Return ``","`` or ``"\\t"``, whichever the sample is built on."""
    try:
        return csv.Sniffer().sniff(sample, delimiters=",\t").delimiter
    except csv.Error:
        lines = [ln for ln in sample.splitlines() if ln.strip()][:10]
        tabs = sum(ln.count("\t") for ln in lines)
        commas = sum(ln.count(",") for ln in lines)
        return "\t" if tabs > commas else ","


class TabularReader:
    """Structural reader for delimited text and spreadsheets."""

    def read(self, source: bytes, kind: Union[SourceKind, str]) -> List[RawRow]:
        """Parse *source* into raw rows, in file order.

        Raises
        ------
        TabularParseError
            If the bytes cannot be structurally parsed.  No rows are
            returned in that case.
        """
        kind = SourceKind(kind)
        if kind is SourceKind.SPREADSHEET:
            return self.read_spreadsheet(source)
        return self.read_delimited(source)

    def read_path(self, path: Union[str, Path]) -> List[RawRow]:
        """Read a file from disk, choosing the reader from its extension."""
        path = Path(path)
        kind = SourceKind.from_filename(path.name)
        return self.read(path.read_bytes(), kind)

    # ------------------------------------------------------------------ #
    # Delimited text
    # ------------------------------------------------------------------ #

    def read_delimited(self, source: bytes) -> List[RawRow]:
        try:
            text = _decode(source)
        except UnicodeDecodeError as exc:
            raise TabularParseError(f"Cannot decode delimited text: {exc}") from exc

        delimiter = _detect_delimiter(text[:_SNIFF_BYTES])
        reader = csv.reader(StringIO(text, newline=""), delimiter=delimiter, strict=True)
        try:
            # Blank lines yield [] and are skipped; ",,," rows are kept.
            rows: List[RawRow] = [list(r) for r in reader if r]
        except csv.Error as exc:
            raise TabularParseError(
                f"Malformed delimited text near line {reader.line_num}: {exc}"
            ) from exc

        logger.info(
            "Read %d delimited row(s) (delimiter=%r)", len(rows), delimiter
        )
        return rows

    # ------------------------------------------------------------------ #
    # Spreadsheets
    # ------------------------------------------------------------------ #

    def read_spreadsheet(self, source: bytes) -> List[RawRow]:
        try:
            wb = openpyxl.load_workbook(BytesIO(source), data_only=True)
        except (zipfile.BadZipFile, InvalidFileException, KeyError, OSError, ValueError) as exc:
            raise TabularParseError(f"Cannot open workbook: {exc}") from exc

        try:
            if not wb.worksheets:
                raise TabularParseError("Workbook contains no sheets")
            ws = wb.worksheets[0]
            rows: List[RawRow] = [
                ["" if cell is None else cell for cell in row]
                for row in ws.iter_rows(values_only=True)
            ]
            logger.info("Read %d row(s) from sheet %r", len(rows), ws.title)
        finally:
            wb.close()

        return rows

    # ------------------------------------------------------------------ #
    # DataFrames
    # ------------------------------------------------------------------ #

    @staticmethod
    def read_dataframe(df: Any) -> List[RawRow]:
        """Convert a pandas DataFrame to raw rows.

        The column labels become the first row so the header stages see the
        same shape as a file read from disk.
        """
        try:
            import pandas as pd  # noqa: F811
        except ImportError as exc:
            raise ImportError(
                "pandas is required to use read_dataframe"
            ) from exc

        if not isinstance(df, pd.DataFrame):
            raise TypeError(f"Expected pandas DataFrame, got {type(df).__name__}")

        def cell(value: Any) -> Any:
            if value is None or (not isinstance(value, str) and pd.isna(value)):
                return ""
            if isinstance(value, pd.Timestamp):
                return value.to_pydatetime()
            return value

        rows: List[RawRow] = [[str(c) for c in df.columns]]
        for record in df.itertuples(index=False, name=None):
            rows.append([cell(v) for v in record])
        return rows
