"""
Review Models

Results of checking a batch candidate before the user commits it.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from smartledger.models.transaction import TransactionDraft


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'zero_amount', 'future_date', 'possible_duplicate')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Review findings for one draft.

    Findings are advisory: a draft with warnings can still be committed.
    """

    validated_at: datetime = Field(default_factory=datetime.now)
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def has_warnings(self) -> bool:
        return any(issue.severity == "warning" for issue in self.issues)

    @property
    def is_clean(self) -> bool:
        return not self.issues

    @property
    def warnings(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "warning"]


class CandidateReview(BaseModel):
    """One row of the batch review screen."""

    index: int
    draft: TransactionDraft
    selected: bool
    validation: ValidationResult
