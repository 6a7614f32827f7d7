"""
Persistence collaborators.

The core never talks to storage directly; it is handed objects satisfying
the small protocols below.  Two families are provided:

* ``InMemory*Store``: dict-backed, for tests and throwaway sessions.
* ``Json*Store``: one JSON document per store under a data directory.

A store that cannot be read (missing or corrupt file)
starts out empty and logs why; it never blocks an import.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Sequence

from cashflow.logging_setup import get_logger
from cashflow.schema import Dataset, Transaction

logger = get_logger("persistence")

OVERRIDES_FILE = "overrides.json"
BUDGETS_FILE = "budgets.json"
DATASETS_FILE = "datasets.json"


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------

class OverrideStore(Protocol):
    def load(self) -> Dict[str, str]: ...

    def save(self, mapping: Mapping[str, str]) -> None: ...

    def get(self, description: str) -> Optional[str]: ...

    def set(self, description: str, category: str) -> None: ...


class BudgetStore(Protocol):
    def load(self) -> Dict[str, float]: ...

    def save(self, mapping: Mapping[str, float]) -> None: ...


class DatasetStore(Protocol):
    def save(self, name: str, transactions: Sequence[Transaction]) -> None: ...

    def delete(self, name: str) -> None: ...

    def load_all(self) -> List[Dataset]: ...


# ---------------------------------------------------------------------------
# JSON helpers
# ---------------------------------------------------------------------------

def _read_json(path: Path, default: Any) -> Any:
    """Read *path*, or return *default* if it is absent or unreadable."""
    if not path.exists():
        return default
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError) as exc:
        logger.warning("Could not load %s (%s); starting empty", path, exc)
        return default


def _write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)


# ---------------------------------------------------------------------------
# Category overrides
# ---------------------------------------------------------------------------

class InMemoryOverrideStore:
    """Lower-cased description → category.  Last write wins."""

    def __init__(self, initial: Optional[Mapping[str, str]] = None) -> None:
        self._overrides: Dict[str, str] = {
            str(k).lower(): str(v) for k, v in (initial or {}).items()
        }

    def load(self) -> Dict[str, str]:
        return dict(self._overrides)

    def save(self, mapping: Mapping[str, str]) -> None:
        self._overrides = {str(k).lower(): str(v) for k, v in mapping.items()}

    def get(self, description: str) -> Optional[str]:
        return self._overrides.get(description.lower())

    def set(self, description: str, category: str) -> None:
        self._overrides[description.lower()] = category
        logger.info("Override set: %r → %s", description.lower(), category)


class JsonOverrideStore(InMemoryOverrideStore):
    def __init__(self, data_dir: Path) -> None:
        self._path = Path(data_dir) / OVERRIDES_FILE
        raw = _read_json(self._path, {})
        super().__init__(raw if isinstance(raw, dict) else {})

    def save(self, mapping: Mapping[str, str]) -> None:
        super().save(mapping)
        _write_json(self._path, self._overrides)

    def set(self, description: str, category: str) -> None:
        super().set(description, category)
        _write_json(self._path, self._overrides)


# ---------------------------------------------------------------------------
# Budgets
# ---------------------------------------------------------------------------

class InMemoryBudgetStore:
    """Category → monthly budget."""

    def __init__(self, initial: Optional[Mapping[str, float]] = None) -> None:
        self._budgets: Dict[str, float] = {
            str(k): float(v) for k, v in (initial or {}).items()
        }

    def load(self) -> Dict[str, float]:
        return dict(self._budgets)

    def save(self, mapping: Mapping[str, float]) -> None:
        self._budgets = {str(k): float(v) for k, v in mapping.items()}


class JsonBudgetStore(InMemoryBudgetStore):
    def __init__(self, data_dir: Path) -> None:
        self._path = Path(data_dir) / BUDGETS_FILE
        raw = _read_json(self._path, {})
        try:
            super().__init__(raw if isinstance(raw, dict) else {})
        except (TypeError, ValueError) as exc:
            logger.warning("Ignoring malformed budgets in %s (%s)", self._path, exc)
            super().__init__({})

    def save(self, mapping: Mapping[str, float]) -> None:
        super().save(mapping)
        _write_json(self._path, self._budgets)


# ---------------------------------------------------------------------------
# Datasets
# ---------------------------------------------------------------------------

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryDatasetStore:
    """Named transaction batches; saving an existing name replaces it."""

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._datasets: List[Dataset] = []

    def save(self, name: str, transactions: Sequence[Transaction]) -> None:
        dataset = Dataset(name=name, uploaded_at=self._clock(), transactions=list(transactions))
        for i, existing in enumerate(self._datasets):
            if existing.name == name:
                self._datasets[i] = dataset
                break
        else:
            self._datasets.append(dataset)
        logger.info("Saved dataset %r (%d transactions)", name, len(dataset.transactions))

    def delete(self, name: str) -> None:
        self._datasets = [d for d in self._datasets if d.name != name]

    def load_all(self) -> List[Dataset]:
        return list(self._datasets)


class JsonDatasetStore(InMemoryDatasetStore):
    def __init__(self, data_dir: Path, clock: Callable[[], datetime] = _utcnow) -> None:
        super().__init__(clock=clock)
        self._path = Path(data_dir) / DATASETS_FILE
        raw = _read_json(self._path, [])
        for item in raw if isinstance(raw, list) else []:
            try:
                self._datasets.append(Dataset.from_dict(item))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping malformed dataset entry in %s (%s)", self._path, exc)

    def _flush(self) -> None:
        _write_json(self._path, [d.to_dict() for d in self._datasets])

    def save(self, name: str, transactions: Sequence[Transaction]) -> None:
        super().save(name, transactions)
        self._flush()

    def delete(self, name: str) -> None:
        super().delete(name)
        self._flush()
