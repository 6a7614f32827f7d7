"""
Ledger data model.

Defines the fixed category set and the typed records carried between the
ingestion stages: column mappings, transactions, monthly roll-ups and
forecast points.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Any, Optional


# ---------------------------------------------------------------------------
# Category set
# ---------------------------------------------------------------------------

class Category(str, Enum):
    """
    The fixed spending categories exposed to storage and presentation.

    ``OTHER`` is the sentinel returned when no keyword matches.
    """

    GROCERIES = "Groceries"
    DINING_OUT = "Dining Out"
    TRANSPORTATION = "Transportation"
    HOUSING = "Housing"
    UTILITIES = "Utilities"
    ENTERTAINMENT = "Entertainment"
    SHOPPING = "Shopping"
    HEALTH = "Health"
    INSURANCE = "Insurance"
    SUBSCRIPTIONS = "Subscriptions"
    TRAVEL = "Travel"
    EDUCATION = "Education"
    INCOME = "Income"
    OTHER = "Other"


OTHER = Category.OTHER.value

# Convenience set for quick membership tests
CATEGORY_NAMES: set[str] = {c.value for c in Category}


def category_lookup(name: str) -> Optional[Category]:
    """Case-insensitive lookup by value."""
    _lower = name.strip().lower()
    for c in Category:
        if c.value.lower() == _lower:
            return c
    return None


# ---------------------------------------------------------------------------
# Column mapping
# ---------------------------------------------------------------------------

MAPPING_ROLES: tuple[str, ...] = ("date", "description", "amount", "debit", "credit")


@dataclass(frozen=True)
class ColumnMapping:
    """Which header plays which semantic role.  ``""`` means unmapped."""

    date: str = ""
    description: str = ""
    amount: str = ""
    debit: str = ""
    credit: str = ""

    def with_overrides(self, **roles: str) -> "ColumnMapping":
        """Return a copy with user-chosen columns for the given roles."""
        unknown = set(roles) - set(MAPPING_ROLES)
        if unknown:
            raise ValueError(f"Unknown mapping role(s): {', '.join(sorted(unknown))}")
        return replace(self, **{k: (v or "").strip() for k, v in roles.items()})

    def to_dict(self) -> dict[str, str]:
        return {role: getattr(self, role) for role in MAPPING_ROLES}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ColumnMapping":
        return cls(**{role: str(data.get(role) or "") for role in MAPPING_ROLES})


# ---------------------------------------------------------------------------
# Ledger records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Transaction:
    """One normalised ledger line.  Positive amounts are inflows."""

    id: int
    date: date
    description: str
    amount: float
    category: str

    def to_dict(self) -> dict[str, Any]:
        # Dates cross storage boundaries as absolute UTC timestamps.
        stamp = datetime.combine(self.date, time.min, tzinfo=timezone.utc)
        return {
            "id": self.id,
            "date": stamp.isoformat(),
            "description": self.description,
            "amount": self.amount,
            "category": self.category,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "Transaction":
        raw_date = d["date"]
        if isinstance(raw_date, str):
            parsed = datetime.fromisoformat(raw_date.replace("Z", "+00:00"))
            if parsed.tzinfo is not None:
                parsed = parsed.astimezone(timezone.utc)
            raw_date = parsed.date()
        elif isinstance(raw_date, datetime):
            raw_date = raw_date.date()
        elif not isinstance(raw_date, date):
            raise TypeError(f"Transaction date must be a string or date, got {type(raw_date).__name__}")
        return cls(
            id=int(d["id"]),
            date=raw_date,
            description=str(d["description"]),
            amount=float(d["amount"]),
            category=str(d["category"]),
        )


@dataclass(frozen=True)
class RejectedRow:
    """A record the normaliser had to drop, with the reason why."""

    index: int
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {"index": self.index, "reason": self.reason}


@dataclass
class NormalizationResult:
    """Transactions produced from a batch of records, plus what was dropped."""

    transactions: list[Transaction] = field(default_factory=list)
    rejected: list[RejectedRow] = field(default_factory=list)

    @property
    def rejected_count(self) -> int:
        return len(self.rejected)


@dataclass(frozen=True)
class MonthlyAggregate:
    month_key: str
    income: float
    expenses: float
    net: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "month": self.month_key,
            "income": self.income,
            "expenses": self.expenses,
            "net": self.net,
        }


@dataclass(frozen=True)
class ForecastPoint:
    month_key: str
    income: int
    expenses: int
    net: int
    is_projection: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "month": self.month_key,
            "income": self.income,
            "expenses": self.expenses,
            "net": self.net,
            "forecast": self.is_projection,
        }


@dataclass(frozen=True)
class CategoryTotal:
    category: str
    total: float

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.category, "value": self.total}


# ---------------------------------------------------------------------------
# Pipeline hand-off models
# ---------------------------------------------------------------------------

@dataclass
class LocatedTable:
    """Header names plus header-keyed records sliced from raw rows.

    ``header_row_index`` is ``None`` when the first row was taken as the
    header without qualifying.
    """

    headers: list[str]
    records: list[dict[str, Any]]
    header_row_index: Optional[int] = None

    @property
    def header_detected(self) -> bool:
        return self.header_row_index is not None


@dataclass
class PreparedImport:
    """A parsed file awaiting the user's confirmation of the column mapping."""

    headers: list[str]
    records: list[dict[str, Any]]
    guessed_mapping: ColumnMapping
    header_detected: bool

    def preview(self, limit: int = 5) -> list[dict[str, Any]]:
        return [
            {k: _json_cell(v) for k, v in rec.items()}
            for rec in self.records[:limit]
        ]

    def to_dict(self) -> dict[str, Any]:
        return {
            "headers": list(self.headers),
            "mapping": self.guessed_mapping.to_dict(),
            "header_detected": self.header_detected,
            "row_count": len(self.records),
            "preview": self.preview(),
        }


@dataclass
class Dataset:
    """A named, saved batch of transactions."""

    name: str
    uploaded_at: datetime
    transactions: list[Transaction] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "uploadedAt": self.uploaded_at.isoformat(),
            "transactions": [t.to_dict() for t in self.transactions],
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "Dataset":
        uploaded = datetime.fromisoformat(str(d["uploadedAt"]).replace("Z", "+00:00"))
        return cls(
            name=str(d["name"]),
            uploaded_at=uploaded,
            transactions=[Transaction.from_dict(t) for t in d.get("transactions", [])],
        )


def _json_cell(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


@dataclass
class ImportResult:
    """Aggregate result of a full import run."""

    transactions: list[Transaction] = field(default_factory=list)
    rejected: list[RejectedRow] = field(default_factory=list)
    mapping: ColumnMapping = field(default_factory=ColumnMapping)
    header_detected: bool = False
    monthly: list[MonthlyAggregate] = field(default_factory=list)
    breakdown: list[CategoryTotal] = field(default_factory=list)
    forecast: list[ForecastPoint] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return len(self.transactions) > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "header_detected": self.header_detected,
            "mapping": self.mapping.to_dict(),
            "transactions": [t.to_dict() for t in self.transactions],
            "rejected": [r.to_dict() for r in self.rejected],
            "monthly": [m.to_dict() for m in self.monthly],
            "breakdown": [c.to_dict() for c in self.breakdown],
            "forecast": [f.to_dict() for f in self.forecast],
        }
