"""
Mapping Validation Layer.

Checks a ``ColumnMapping`` *before* any record is normalised.  An incomplete
mapping is a caller error, so it must surface as an explicit validation
failure rather than as a silently empty ledger.

Checks performed
----------------
1. **Required roles**: ``date`` and ``description`` must be mapped.
2. **Amount path**: ``amount`` or at least one of ``debit`` / ``credit``.
3. **Known headers**: when the file's headers are supplied, every mapped
   column must be one of them.
4. **Shared columns**: one header serving two of amount / debit / credit
   is a warning.
"""

from __future__ import annotations

from typing import Optional, Sequence

from cashflow.logging_setup import get_logger
from cashflow.schema import MAPPING_ROLES, ColumnMapping

logger = get_logger("validator")


class MappingValidationError(ValueError):
    """Raised when a column mapping is not complete enough to normalise."""

    def __init__(self, errors: Sequence[str]) -> None:
        self.errors = list(errors)
        super().__init__("Invalid column mapping: " + "; ".join(self.errors))


class ValidationReport:
    """Accumulates errors and warnings during a validation pass."""

    def __init__(self) -> None:
        self.errors: list[str] = []
        self.warnings: list[str] = []

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)
        logger.error("Validation ERROR: %s", msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)
        logger.warning("Validation WARNING: %s", msg)


class MappingValidator:
    """Validates a ``ColumnMapping`` against the roles normalisation needs."""

    def validate(
        self,
        mapping: ColumnMapping,
        headers: Optional[Sequence[str]] = None,
    ) -> ValidationReport:
        """Run all checks and return a ``ValidationReport``."""
        report = ValidationReport()
        self._check_required_roles(mapping, report)
        self._check_amount_path(mapping, report)
        if headers is not None:
            self._check_known_headers(mapping, headers, report)
        self._check_shared_columns(mapping, report)
        return report

    def require_valid(
        self,
        mapping: ColumnMapping,
        headers: Optional[Sequence[str]] = None,
    ) -> ValidationReport:
        """Validate and raise ``MappingValidationError`` on any error."""
        report = self.validate(mapping, headers)
        if not report.is_valid:
            raise MappingValidationError(report.errors)
        return report

    # ------------------------------------------------------------------ #
    # Individual checks
    # ------------------------------------------------------------------ #

    @staticmethod
    def _check_required_roles(mapping: ColumnMapping, report: ValidationReport) -> None:
        if not mapping.date:
            report.add_error("No column mapped to 'date'")
        if not mapping.description:
            report.add_error("No column mapped to 'description'")

    @staticmethod
    def _check_amount_path(mapping: ColumnMapping, report: ValidationReport) -> None:
        if not (mapping.amount or mapping.debit or mapping.credit):
            report.add_error("Map either 'amount' or 'debit'/'credit'")

    @staticmethod
    def _check_known_headers(
        mapping: ColumnMapping,
        headers: Sequence[str],
        report: ValidationReport,
    ) -> None:
        known = set(headers)
        for role in MAPPING_ROLES:
            column = getattr(mapping, role)
            if column and column not in known:
                report.add_error(f"'{role}' is mapped to unknown column '{column}'")

    @staticmethod
    def _check_shared_columns(mapping: ColumnMapping, report: ValidationReport) -> None:
        """Amount-path roles sharing a column are almost always a bad guess."""
        seen: dict[str, str] = {}
        for role in ("amount", "debit", "credit"):
            column = getattr(mapping, role)
            if not column:
                continue
            if column in seen:
                report.add_warning(
                    f"Column '{column}' is mapped to both "
                    f"'{seen[column]}' and '{role}'"
                )
            else:
                seen[column] = role
