"""
Pipeline Orchestrator.

The central entry point that wires together every stage:

    Raw bytes  →  Tabular Reader  →  Header Locator  →  Column Mapper
               →  (user confirms mapping)  →  Validator  →  Normalizer
               →  Aggregator  →  Forecaster  →  Output

Importing is split in two so the guessed mapping can be corrected before
anything is committed:

>>> from cashflow.pipeline import CashFlowPipeline
>>> pipe = CashFlowPipeline()
>>> prepared = pipe.prepare(open("statement.csv", "rb").read(), "delimited")
>>> result = pipe.run(prepared, prepared.guessed_mapping.with_overrides(amount="Amt"))
>>> print(result.to_dict()["monthly"])

``Ledger`` layers session state on top: the current transaction set, the
override / budget / dataset stores, and re-categorisation.
"""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from cashflow.aggregator import (
    aggregate,
    category_breakdown,
    filter_by_month,
    filter_by_range,
    latest_month,
    totals,
)
from cashflow.categories import KeywordIndex
from cashflow.category_resolver import CategoryResolver
from cashflow.column_mapper import ColumnMapper
from cashflow.config import PipelineConfig
from cashflow.forecaster import Forecaster
from cashflow.header_locator import HeaderLocator
from cashflow.logging_setup import configure_logging, get_logger
from cashflow.normalizer import Overrides, TransactionNormalizer
from cashflow.persistence import (
    BudgetStore,
    DatasetStore,
    InMemoryBudgetStore,
    InMemoryDatasetStore,
    InMemoryOverrideStore,
    JsonBudgetStore,
    JsonDatasetStore,
    JsonOverrideStore,
    OverrideStore,
)
from cashflow.schema import (
    ColumnMapping,
    Dataset,
    ForecastPoint,
    ImportResult,
    MonthlyAggregate,
    NormalizationResult,
    PreparedImport,
    Transaction,
)
from cashflow.tabular_reader import SourceKind, TabularReader
from cashflow.validator import MappingValidator

logger = get_logger("pipeline")


class CashFlowPipeline:
    """Stateless orchestration of the ingestion stages.

    Parameters
    ----------
    config:
        All tuneable knobs.  Defaults match real bank-export noise.
    keyword_index:
        Fallback classifier.  Built from the built-in table (plus
        ``config.categories.custom_rules_path``) when omitted.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        keyword_index: Optional[KeywordIndex] = None,
    ) -> None:
        self._config = config or PipelineConfig()

        # Bootstrap logging before anything else
        configure_logging(level=self._config.log_level)

        if keyword_index is None:
            keyword_index = KeywordIndex()
            if self._config.categories.custom_rules_path:
                keyword_index.load_custom_rules(self._config.categories.custom_rules_path)

        # Construct stages
        self._reader = TabularReader()
        self._locator = HeaderLocator(config=self._config.header)
        self._mapper = ColumnMapper()
        self._validator = MappingValidator()
        self._index = keyword_index
        self._normalizer = TransactionNormalizer(
            keyword_index=keyword_index,
            validator=self._validator,
        )
        self._forecaster = Forecaster(config=self._config.forecast)
        self.resolver = CategoryResolver(config=self._config.categories)

        logger.info(
            "Pipeline initialised: keywords=%d, scan_window=%d, strict=%s",
            self._index.size,
            self._config.header.scan_window,
            self._config.strict_mode,
        )

    @property
    def config(self) -> PipelineConfig:
        return self._config

    # ------------------------------------------------------------------ #
    # Stage 1: read + locate + guess (one entry point per input form)
    # ------------------------------------------------------------------ #

    def prepare(self, source: bytes, kind: Union[SourceKind, str]) -> PreparedImport:
        """Parse raw bytes and guess the column mapping.

        Raises ``TabularParseError`` if the bytes are not a readable table.
        """
        rows = self._reader.read(source, kind)
        return self._prepare_rows(rows)

    def prepare_path(self, path: Union[str, Path]) -> PreparedImport:
        rows = self._reader.read_path(path)
        return self._prepare_rows(rows)

    def prepare_dataframe(self, df: Any) -> PreparedImport:
        rows = TabularReader.read_dataframe(df)
        return self._prepare_rows(rows)

    def _prepare_rows(self, rows: List[List[Any]]) -> PreparedImport:
        table = self._locator.locate_or_fallback(rows)
        mapping = self._mapper.guess(table.headers)
        logger.info(
            "Prepared %d record(s) under %d header(s) (header_detected=%s)",
            len(table.records),
            len(table.headers),
            table.header_detected,
        )
        return PreparedImport(
            headers=table.headers,
            records=table.records,
            guessed_mapping=mapping,
            header_detected=table.header_detected,
        )

    # ------------------------------------------------------------------ #
    # Stage 2: validate + normalise
    # ------------------------------------------------------------------ #

    def normalize(
        self,
        prepared: PreparedImport,
        mapping: Optional[ColumnMapping] = None,
        overrides: Optional[Overrides] = None,
    ) -> NormalizationResult:
        """Normalise prepared records with *mapping* (the guess by default).

        Raises ``MappingValidationError`` before touching any record if the
        mapping is incomplete or names a column the file does not have.
        """
        mapping = mapping or prepared.guessed_mapping
        self._validator.require_valid(mapping, prepared.headers)
        result = self._normalizer.normalize(prepared.records, mapping, overrides)

        if result.rejected:
            logger.warning(
                "%d of %d record(s) dropped during normalisation",
                result.rejected_count,
                len(prepared.records),
            )
        if self._config.strict_mode and result.rejected:
            raise RuntimeError(
                f"Strict mode: {result.rejected_count} record(s) could not be "
                f"normalised (first at index {result.rejected[0].index}: "
                f"{result.rejected[0].reason})"
            )
        return result

    # ------------------------------------------------------------------ #
    # Stage 3: aggregate + forecast
    # ------------------------------------------------------------------ #

    def monthly(self, transactions: List[Transaction]) -> List[MonthlyAggregate]:
        return aggregate(transactions)

    def forecast(self, aggregates: List[MonthlyAggregate]) -> List[ForecastPoint]:
        return self._forecaster.forecast(aggregates)

    def run(
        self,
        prepared: PreparedImport,
        mapping: Optional[ColumnMapping] = None,
        overrides: Optional[Overrides] = None,
    ) -> ImportResult:
        """Execute every stage after ``prepare`` and bundle the output."""
        mapping = mapping or prepared.guessed_mapping
        normalized = self.normalize(prepared, mapping, overrides)
        monthly = self.monthly(normalized.transactions)

        result = ImportResult(
            transactions=normalized.transactions,
            rejected=normalized.rejected,
            mapping=mapping,
            header_detected=prepared.header_detected,
            monthly=monthly,
            breakdown=category_breakdown(normalized.transactions),
            forecast=self.forecast(monthly),
        )
        logger.info(
            "Import complete: transactions=%d, rejected=%d, months=%d",
            len(result.transactions),
            len(result.rejected),
            len(result.monthly),
        )
        return result


class Ledger:
    """The working transaction set plus its persisted side-state.

    An import replaces the transaction set wholesale.  Calls that change
    the set are not synchronised; serialise them per ledger.

    Parameters
    ----------
    pipeline:
        Stage orchestration.
    overrides / budgets / datasets:
        Storage collaborators.  In-memory stand-ins by default.
    """

    def __init__(
        self,
        pipeline: Optional[CashFlowPipeline] = None,
        overrides: Optional[OverrideStore] = None,
        budgets: Optional[BudgetStore] = None,
        datasets: Optional[DatasetStore] = None,
    ) -> None:
        self.pipeline = pipeline or CashFlowPipeline()
        self.overrides: OverrideStore = overrides or InMemoryOverrideStore()
        self.budgets: BudgetStore = budgets or InMemoryBudgetStore()
        self.datasets: DatasetStore = datasets or InMemoryDatasetStore()
        self.transactions: List[Transaction] = []
        self.active_dataset: Optional[str] = None

    @classmethod
    def from_config(cls, config: Optional[PipelineConfig] = None) -> "Ledger":
        """JSON-file stores under ``config.data_dir``, or memory if unset."""
        config = config or PipelineConfig()
        pipeline = CashFlowPipeline(config)
        if config.data_dir is None:
            return cls(pipeline=pipeline)
        data_dir = Path(config.data_dir)
        return cls(
            pipeline=pipeline,
            overrides=JsonOverrideStore(data_dir),
            budgets=JsonBudgetStore(data_dir),
            datasets=JsonDatasetStore(data_dir),
        )

    # ------------------------------------------------------------------ #
    # Import
    # ------------------------------------------------------------------ #

    def import_prepared(
        self,
        prepared: PreparedImport,
        mapping: Optional[ColumnMapping] = None,
        name: Optional[str] = None,
    ) -> ImportResult:
        """Normalise with persisted overrides and make the result current.

        When *name* is given the batch is also saved as a dataset.
        """
        result = self.pipeline.run(prepared, mapping, overrides=self.overrides)
        self.transactions = list(result.transactions)
        self.active_dataset = name

        if name:
            try:
                self.datasets.save(name, self.transactions)
            except OSError as exc:
                logger.error("Could not save dataset %r: %s", name, exc)
        return result

    # ------------------------------------------------------------------ #
    # Re-categorisation
    # ------------------------------------------------------------------ #

    def recategorize(self, transaction_id: int, category: str) -> Transaction:
        """Change one transaction's category and remember the choice for
        every future import of the same description.

        Raises ``KeyError`` for an unknown id and ``ValueError`` for a
        category name that cannot be resolved.
        """
        resolved = self.pipeline.resolver.resolve(category)
        for i, t in enumerate(self.transactions):
            if t.id == transaction_id:
                updated = Transaction(
                    id=t.id,
                    date=t.date,
                    description=t.description,
                    amount=t.amount,
                    category=resolved,
                )
                self.transactions[i] = updated
                self.overrides.set(t.description.lower(), resolved)
                return updated
        raise KeyError(transaction_id)

    # ------------------------------------------------------------------ #
    # Views
    # ------------------------------------------------------------------ #

    def select(
        self,
        month: Optional[str] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[Transaction]:
        """A date range wins over a month; neither means everything."""
        if start or end:
            return filter_by_range(self.transactions, start, end)
        if month:
            return filter_by_month(self.transactions, month)
        return list(self.transactions)

    def summary(
        self,
        month: Optional[str] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> Dict[str, Any]:
        subset = self.select(month, start, end)
        income, expenses, net = totals(subset)
        return {
            "month": month,
            "income": income,
            "expenses": expenses,
            "net": net,
            "count": len(subset),
            "breakdown": [c.to_dict() for c in category_breakdown(subset)],
        }

    def monthly(self) -> List[MonthlyAggregate]:
        return self.pipeline.monthly(self.transactions)

    def forecast(self) -> List[ForecastPoint]:
        return self.pipeline.forecast(self.monthly())

    def default_month(self) -> Optional[str]:
        return latest_month(self.transactions)

    # ------------------------------------------------------------------ #
    # Budgets
    # ------------------------------------------------------------------ #

    def get_budgets(self) -> Dict[str, float]:
        return self.budgets.load()

    def set_budgets(self, updates: Dict[str, float]) -> Dict[str, float]:
        """Merge *updates* (category names resolved) into stored budgets."""
        current = self.budgets.load()
        for name, amount in updates.items():
            current[self.pipeline.resolver.resolve(name)] = float(amount)
        self.budgets.save(current)
        return current

    # ------------------------------------------------------------------ #
    # Datasets
    # ------------------------------------------------------------------ #

    def list_datasets(self) -> List[Dataset]:
        return self.datasets.load_all()

    def load_dataset(self, name: str) -> Dataset:
        """Make a saved dataset the current transaction set."""
        for ds in self.datasets.load_all():
            if ds.name == name:
                self.transactions = list(ds.transactions)
                self.active_dataset = name
                return ds
        raise KeyError(name)

    def delete_dataset(self, name: str) -> None:
        if not any(ds.name == name for ds in self.datasets.load_all()):
            raise KeyError(name)
        self.datasets.delete(name)
        if self.active_dataset == name:
            self.transactions = []
            self.active_dataset = None
