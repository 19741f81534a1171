"""Tests for candidate review checks."""

from datetime import date, datetime

from smartledger.config import AppSettings
from smartledger.models import TransactionKind
from smartledger.validation import DraftValidator


TODAY = date(2024, 5, 15)


def issue_types(result):
    return [issue.issue_type for issue in result.issues]


class TestDraftValidator:

    def test_clean_draft(self, make_draft):
        result = DraftValidator().validate(make_draft(1200, note="午饭"), TODAY)
        assert result.is_clean
        assert not result.has_warnings

    def test_zero_amount(self, make_draft):
        result = DraftValidator().validate(make_draft(0), TODAY)
        assert "zero_amount" in issue_types(result)
        assert result.has_warnings

    def test_low_confidence(self, make_draft):
        settings = AppSettings(low_confidence_threshold=0.6)
        result = DraftValidator(settings).validate(make_draft(confidence=0.3), TODAY)
        assert issue_types(result) == ["low_confidence"]

    def test_future_date(self, make_draft):
        settings = AppSettings(future_date_tolerance_days=1)
        validator = DraftValidator(settings)
        tomorrow = validator.validate(make_draft(occurred_at=datetime(2024, 5, 16)), TODAY)
        later = validator.validate(make_draft(occurred_at=datetime(2024, 6, 1)), TODAY)
        assert tomorrow.is_clean
        assert issue_types(later) == ["future_date"]

    def test_unknown_kind_and_category(self, make_draft):
        result = DraftValidator().validate(make_draft(kind="LOAN", category="Pets"), TODAY)
        assert issue_types(result) == ["unknown_kind", "unknown_category"]
        assert result.warnings == ["Unrecognized type 'LOAN'"]

    def test_negative_income_is_informational(self, make_draft):
        result = DraftValidator().validate(make_draft(-100, kind=TransactionKind.INCOME), TODAY)
        assert issue_types(result) == ["negative_income"]
        assert not result.has_warnings

    def test_possible_duplicate(self, make_draft, make_transaction, now):
        existing = [make_transaction(-1500, note="退货")]
        validator = DraftValidator(existing=existing)
        same = validator.validate(make_draft(1500, note="退货", occurred_at=now), TODAY)
        other_day = validator.validate(
            make_draft(1500, note="退货", occurred_at=datetime(2024, 5, 14)), TODAY,
        )
        assert issue_types(same) == ["possible_duplicate"]
        assert other_day.is_clean

    def test_undated_draft_skips_duplicate_check(self, make_draft, make_transaction):
        validator = DraftValidator(existing=[make_transaction(1500)])
        assert validator.validate(make_draft(1500), TODAY).is_clean

    def test_validate_many_keeps_order(self, make_draft):
        results = DraftValidator().validate_many([make_draft(0), make_draft(100)], TODAY)
        assert [r.is_clean for r in results] == [False, True]
