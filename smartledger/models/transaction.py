"""
Core Data Models for SmartLedger

These models define the schemas for every record that flows through the
ingestion engine:
1. Transaction - a committed ledger entry (persisted)
2. TransactionDraft - a candidate entry awaiting reconciliation (ephemeral)
3. BudgetSettings - process-wide preferences (persisted)

DESIGN DECISION: Money is ALWAYS an integer number of minor units (cents).
No model in this package accepts or emits a float amount; floats arriving from
an AI response are rounded half-up to an integer at the model boundary.

AI output is untrusted. Kind and category strings that don't match the
enumerations are kept as raw strings, never rejected.
"""

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any, Iterable, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


# =============================================================================
# ENUMS - Finite set of known values
# =============================================================================

class TransactionKind(str, Enum):
    """Direction of a transaction."""
    EXPENSE = "EXPENSE"
    INCOME = "INCOME"
    TRANSFER = "TRANSFER"


class Category(str, Enum):
    """
    Known transaction categories.

    The enumeration is advisory: AI parsers may return any string, and
    such values are carried through as-is.
    """
    FOOD = "Food"
    TRANSPORT = "Transport"
    SHOPPING = "Shopping"
    HOUSING = "Housing"
    SALARY = "Salary"
    INVESTMENT = "Investment"
    OTHER = "Other"


CATEGORY_LABELS: dict[str, str] = {
    Category.FOOD.value: "餐饮",
    Category.TRANSPORT.value: "交通",
    Category.SHOPPING.value: "购物",
    Category.HOUSING.value: "居住",
    Category.SALARY.value: "薪资",
    Category.INVESTMENT.value: "投资",
    Category.OTHER.value: "其他",
}

KIND_LABELS: dict[str, str] = {
    TransactionKind.EXPENSE.value: "支出",
    TransactionKind.INCOME.value: "收入",
    TransactionKind.TRANSFER.value: "转账",
}

# Categories offered by the entry form for each kind
EXPENSE_CATEGORIES = (
    Category.FOOD,
    Category.TRANSPORT,
    Category.SHOPPING,
    Category.HOUSING,
    Category.OTHER,
)
INCOME_CATEGORIES = (
    Category.SALARY,
    Category.INVESTMENT,
    Category.OTHER,
)


# =============================================================================
# DOMAIN TAGS
# =============================================================================

TAG_REIMBURSABLE = "reimbursable"
TAG_REFUND = "refund"

# Spellings produced by the AI prompt or by older backups
TAG_ALIASES: dict[str, str] = {
    "报销": TAG_REIMBURSABLE,
    "垫付": TAG_REIMBURSABLE,
    "reimbursement": TAG_REIMBURSABLE,
    "reimburse": TAG_REIMBURSABLE,
    "退款": TAG_REFUND,
    "退货": TAG_REFUND,
    "refunded": TAG_REFUND,
}


KindValue = Union[TransactionKind, str]
CategoryValue = Union[Category, str]


# =============================================================================
# COERCION HELPERS
# =============================================================================

def coerce_kind(value: Any) -> KindValue:
    """
    Map a raw kind string onto TransactionKind when it matches.

    Matching is case-insensitive against both the value and the Chinese
    label. Unknown strings are returned stripped but otherwise untouched.
    """
    if isinstance(value, TransactionKind):
        return value
    if value is None:
        return TransactionKind.EXPENSE

    text = str(value).strip()
    if not text:
        return TransactionKind.EXPENSE

    for kind in TransactionKind:
        if text.upper() == kind.value or text == KIND_LABELS[kind.value]:
            return kind
    return text


def coerce_category(value: Any) -> CategoryValue:
    """
    Map a raw category string onto Category when it matches.

    Blank values become Category.OTHER; unknown strings stay raw.
    """
    if isinstance(value, Category):
        return value
    if value is None:
        return Category.OTHER

    text = str(value).strip()
    if not text:
        return Category.OTHER

    for category in Category:
        if (
            text.lower() == category.value.lower()
            or text.upper() == category.name
            or text == CATEGORY_LABELS[category.value]
        ):
            return category
    return text


def canonical_tags(tags: Optional[Iterable[Any]]) -> list[str]:
    """Canonicalize tag spellings and drop blanks and duplicates, keeping order."""
    result: list[str] = []
    for tag in tags or []:
        if tag is None:
            continue
        text = str(tag).strip()
        if not text:
            continue
        text = TAG_ALIASES.get(text, TAG_ALIASES.get(text.lower(), text))
        if text not in result:
            result.append(text)
    return result


def coerce_minor_units(value: Any) -> int:
    """
    Convert an incoming amount to integer minor units.

    Integers pass through. Floats and numeric strings are rounded half-up
    (away from zero) through Decimal.
    """
    if isinstance(value, bool):
        raise ValueError("Amount must be a number, not a boolean")
    if isinstance(value, int):
        return value
    if isinstance(value, (float, str, Decimal)):
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f"Amount is not numeric: {value!r}")
        if not amount.is_finite():
            raise ValueError(f"Amount is not finite: {value!r}")
        try:
            return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        except InvalidOperation:
            raise ValueError(f"Amount is out of range: {value!r}")
    raise ValueError(f"Unsupported amount type: {type(value).__name__}")


def to_local_naive(value: datetime) -> datetime:
    """Convert an aware datetime to local wall-clock time without tzinfo."""
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


_DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%Y.%m.%d",
    "%Y年%m月%d日",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d %H:%M:%S",
    "%Y/%m/%d %H:%M",
)


def parse_occurred_at(value: Any) -> Optional[datetime]:
    """
    Leniently parse a transaction date.

    Accepts datetimes, dates, epoch timestamps (milliseconds when the value
    is too large to be seconds) and common date strings. Returns None for
    anything that does not parse.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_local_naive(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        seconds = value / 1000 if abs(value) > 2e10 else value
        try:
            return datetime.fromtimestamp(seconds)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return to_local_naive(datetime.fromisoformat(text.replace("Z", "+00:00")))
        except ValueError:
            pass
        for fmt in _DATE_FORMATS:
            try:
                return datetime.strptime(text, fmt)
            except ValueError:
                continue
    return None


def category_label(category: CategoryValue) -> str:
    """Display label for a category, falling back to the raw string."""
    key = category.value if isinstance(category, Category) else str(category)
    return CATEGORY_LABELS.get(key, key)


def kind_label(kind: KindValue) -> str:
    """Display label for a kind, falling back to the raw string."""
    key = kind.value if isinstance(kind, TransactionKind) else str(kind)
    return KIND_LABELS.get(key, key)


# =============================================================================
# TRANSACTION MODELS
# =============================================================================

class TransactionDraft(BaseModel):
    """
    A candidate transaction that has NOT been committed.

    Produced by the AI parsers (one per recognized entry) or by the manual
    entry form. Drafts never reach storage directly: they are normalized into
    Transactions on commit, or discarded.

    Field aliases accept the JSON keys returned by the parsing prompt
    (amount, type, date).
    """
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    amount_minor_units: int = Field(
        default=0,
        validation_alias=AliasChoices("amount_minor_units", "amountMinorUnits", "amount"),
        description="Signed amount in minor units, as proposed by the source",
    )
    kind: KindValue = Field(
        default=TransactionKind.EXPENSE,
        validation_alias=AliasChoices("kind", "type"),
    )
    category: CategoryValue = Field(default=Category.OTHER)
    note: str = Field(default="")
    tags: list[str] = Field(default_factory=list)
    occurred_at: Optional[datetime] = Field(
        default=None,
        validation_alias=AliasChoices("occurred_at", "occurredAt", "date"),
        description="Transaction date; None means 'use the commit time'",
    )
    confidence: float = Field(
        default=1.0,
        ge=0.0,
        le=1.0,
        description="Parser confidence (1.0 for manual entries)",
    )

    @field_validator("amount_minor_units", mode="before")
    @classmethod
    def _coerce_amount(cls, v: Any) -> int:
        if v is None:
            return 0
        return coerce_minor_units(v)

    @field_validator("kind", mode="before")
    @classmethod
    def _coerce_kind(cls, v: Any) -> KindValue:
        return coerce_kind(v)

    @field_validator("category", mode="before")
    @classmethod
    def _coerce_category(cls, v: Any) -> CategoryValue:
        return coerce_category(v)

    @field_validator("note", mode="before")
    @classmethod
    def _coerce_note(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("tags", mode="before")
    @classmethod
    def _coerce_tags(cls, v: Any) -> list[str]:
        if isinstance(v, str):
            v = [v]
        return canonical_tags(v)

    @field_validator("occurred_at", mode="before")
    @classmethod
    def _coerce_occurred_at(cls, v: Any) -> Optional[datetime]:
        # Unparsable dates are tolerated and resolved at commit time
        return parse_occurred_at(v)

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, v: Any) -> float:
        if v is None:
            return 1.0
        try:
            value = float(v)
        except (TypeError, ValueError):
            return 1.0
        if value != value:  # NaN
            return 0.0
        return min(1.0, max(0.0, value))

    @property
    def is_refund(self) -> bool:
        return TAG_REFUND in self.tags

    @property
    def is_reimbursable(self) -> bool:
        return TAG_REIMBURSABLE in self.tags


class Transaction(BaseModel):
    """
    A committed ledger entry.

    CRITICAL: Only Transaction objects are persisted. They are created by the
    normalizer and are immutable; edits produce a copy with the same id and
    created_at.

    Sign convention:
    - EXPENSE, positive: money spent
    - EXPENSE, negative: a reconciled refund (tagged "refund")
    - INCOME: never negative
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Opaque unique identifier, never reused",
    )
    amount_minor_units: int = Field(
        ...,
        validation_alias=AliasChoices("amount_minor_units", "amountMinorUnits", "amount"),
        description="Signed amount in minor units",
    )
    kind: KindValue = Field(
        ...,
        validation_alias=AliasChoices("kind", "type"),
    )
    category: CategoryValue = Field(default=Category.OTHER)
    note: str = Field(default="")
    occurred_at: datetime = Field(
        ...,
        validation_alias=AliasChoices("occurred_at", "occurredAt", "date"),
        description="User-selected transaction date",
    )
    created_at: datetime = Field(
        ...,
        validation_alias=AliasChoices("created_at", "createdAt"),
        description="Creation time, for audit and sort stability only",
    )
    tags: list[str] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, v: Any) -> Any:
        # Older backups used numeric millisecond ids
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("amount_minor_units", mode="before")
    @classmethod
    def _coerce_amount(cls, v: Any) -> int:
        return coerce_minor_units(v)

    @field_validator("kind", mode="before")
    @classmethod
    def _coerce_kind(cls, v: Any) -> KindValue:
        return coerce_kind(v)

    @field_validator("category", mode="before")
    @classmethod
    def _coerce_category(cls, v: Any) -> CategoryValue:
        return coerce_category(v)

    @field_validator("note", mode="before")
    @classmethod
    def _coerce_note(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("tags", mode="before")
    @classmethod
    def _coerce_tags(cls, v: Any) -> list[str]:
        return canonical_tags(v)

    @field_validator("occurred_at", "created_at", mode="after")
    @classmethod
    def _localize(cls, v: datetime) -> datetime:
        return to_local_naive(v)

    @model_validator(mode="after")
    def validate_sign(self) -> "Transaction":
        """Income can never carry a negative amount."""
        if self.kind == TransactionKind.INCOME and self.amount_minor_units < 0:
            raise ValueError("Income amounts cannot be negative")
        return self

    @property
    def is_expense(self) -> bool:
        return self.kind == TransactionKind.EXPENSE

    @property
    def is_refund(self) -> bool:
        return TAG_REFUND in self.tags

    @property
    def is_reimbursable(self) -> bool:
        return TAG_REIMBURSABLE in self.tags

    @property
    def category_label(self) -> str:
        return category_label(self.category)

    def to_draft(self) -> TransactionDraft:
        """Re-open this transaction as a draft (used by the edit form)."""
        return TransactionDraft(
            amount_minor_units=self.amount_minor_units,
            kind=self.kind,
            category=self.category,
            note=self.note,
            tags=list(self.tags),
            occurred_at=self.occurred_at,
            confidence=1.0,
        )


# =============================================================================
# SETTINGS MODEL
# =============================================================================

DEFAULT_MONTHLY_BUDGET_MINOR_UNITS = 500000


class BudgetSettings(BaseModel):
    """
    Process-wide user preferences.

    Loaded once at startup and persisted on every change.
    """
    model_config = ConfigDict(populate_by_name=True)

    monthly_budget_minor_units: int = Field(
        default=DEFAULT_MONTHLY_BUDGET_MINOR_UNITS,
        ge=0,
        validation_alias=AliasChoices(
            "monthly_budget_minor_units", "monthlyBudgetMinorUnits", "monthlyBudget"
        ),
    )
    sound_enabled: bool = Field(
        default=True,
        validation_alias=AliasChoices("sound_enabled", "soundEnabled"),
    )
    haptics_enabled: bool = Field(
        default=True,
        validation_alias=AliasChoices("haptics_enabled", "hapticsEnabled"),
    )

    @field_validator("monthly_budget_minor_units", mode="before")
    @classmethod
    def _coerce_budget(cls, v: Any) -> int:
        return coerce_minor_units(v)
