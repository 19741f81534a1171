"""
Data Models Package

This package contains all Pydantic models used in SmartLedger.
All data flowing through the ingestion engine must conform to these schemas.
"""

from smartledger.models.transaction import (
    CATEGORY_LABELS,
    DEFAULT_MONTHLY_BUDGET_MINOR_UNITS,
    EXPENSE_CATEGORIES,
    INCOME_CATEGORIES,
    KIND_LABELS,
    TAG_REFUND,
    TAG_REIMBURSABLE,
    BudgetSettings,
    Category,
    Transaction,
    TransactionDraft,
    TransactionKind,
    canonical_tags,
    category_label,
    coerce_category,
    coerce_kind,
    coerce_minor_units,
    kind_label,
    parse_occurred_at,
)
from smartledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from smartledger.models.review import (
    CandidateReview,
    ValidationIssue,
    ValidationResult,
)

__all__ = [
    # Transaction models
    "CATEGORY_LABELS",
    "DEFAULT_MONTHLY_BUDGET_MINOR_UNITS",
    "EXPENSE_CATEGORIES",
    "INCOME_CATEGORIES",
    "KIND_LABELS",
    "TAG_REFUND",
    "TAG_REIMBURSABLE",
    "BudgetSettings",
    "Category",
    "Transaction",
    "TransactionDraft",
    "TransactionKind",
    "canonical_tags",
    "category_label",
    "coerce_category",
    "coerce_kind",
    "coerce_minor_units",
    "kind_label",
    "parse_occurred_at",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Review models
    "CandidateReview",
    "ValidationIssue",
    "ValidationResult",
]
