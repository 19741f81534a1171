"""
Audit Models for SmartLedger

Every ledger mutation and every reconciliation decision is recorded as an
audit event. This gives:
1. A traceable history of what entered the ledger and from which source
2. Debugging information when an AI parse goes wrong
3. The ability to reconstruct a batch review after the fact

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Ledger mutations
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"

    # AI parsing
    TEXT_PARSED = "text_parsed"
    IMAGE_PARSED = "image_parsed"
    PARSE_NOTHING_RECOGNIZED = "parse_nothing_recognized"
    PARSE_CREDENTIAL_MISSING = "parse_credential_missing"
    PARSE_FAILED = "parse_failed"

    # Batch reconciliation
    BATCH_RECEIVED = "batch_received"
    CANDIDATE_EDITED = "candidate_edited"
    CANDIDATE_APPENDED = "candidate_appended"
    BATCH_COMMITTED = "batch_committed"
    BATCH_DISCARDED = "batch_discarded"

    # Backup
    BACKUP_EXPORTED = "backup_exported"
    BACKUP_IMPORTED = "backup_imported"
    BACKUP_REJECTED = "backup_rejected"

    # Settings
    SETTINGS_CHANGED = "settings_changed"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.now,
        description="When the event occurred (local time)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'batch', 'backup')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one batch review)"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_storage_json(self) -> str:
        """Serialize for the key-value audit store."""
        return json.dumps(self.model_dump(mode="json"), ensure_ascii=False)


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_created(tx, source="manual")
        event = AuditEventBuilder.batch_committed(ids, remaining=1)
    """

    @staticmethod
    def transaction_created(
        transaction_id: str,
        kind: str,
        amount_minor_units: int,
        source: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction created from {source}",
            details={
                "kind": kind,
                "amount_minor_units": amount_minor_units,
                "source": source,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_updated(
        transaction_id: str,
        amount_minor_units: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            entity_type="transaction",
            entity_id=transaction_id,
            description="Transaction edited",
            details={"amount_minor_units": amount_minor_units},
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(transaction_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            description="Transaction deleted",
            is_user_action=True,
        )

    @staticmethod
    def parse_completed(
        source: str,
        candidate_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        event_type = (
            AuditEventType.IMAGE_PARSED if source == "image" else AuditEventType.TEXT_PARSED
        )
        return AuditEvent(
            event_type=event_type,
            entity_type="parse",
            correlation_id=correlation_id,
            description=f"AI {source} parse returned {candidate_count} candidate(s)",
            details={"source": source, "candidate_count": candidate_count},
        )

    @staticmethod
    def parse_nothing_recognized(source: str, correlation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PARSE_NOTHING_RECOGNIZED,
            severity=AuditSeverity.WARNING,
            entity_type="parse",
            correlation_id=correlation_id,
            description=f"AI {source} parse recognized nothing",
            details={"source": source},
        )

    @staticmethod
    def parse_credential_missing(source: str, correlation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PARSE_CREDENTIAL_MISSING,
            severity=AuditSeverity.WARNING,
            entity_type="parse",
            correlation_id=correlation_id,
            description="AI parse skipped: API credential missing or rejected",
            details={"source": source},
        )

    @staticmethod
    def parse_failed(
        source: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PARSE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="parse",
            correlation_id=correlation_id,
            description=f"AI {source} parse failed",
            error_message=error_message,
            details={"source": source},
        )

    @staticmethod
    def batch_received(candidate_count: int, correlation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BATCH_RECEIVED,
            entity_type="batch",
            correlation_id=correlation_id,
            description=f"Batch of {candidate_count} candidate(s) awaiting review",
            details={"candidate_count": candidate_count},
        )

    @staticmethod
    def candidate_edited(index: int, correlation_id: Optional[UUID]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CANDIDATE_EDITED,
            entity_type="batch",
            correlation_id=correlation_id,
            description=f"Candidate #{index} edited",
            details={"index": index},
            is_user_action=True,
        )

    @staticmethod
    def candidate_appended(index: int, correlation_id: Optional[UUID]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CANDIDATE_APPENDED,
            entity_type="batch",
            correlation_id=correlation_id,
            description=f"Manual candidate appended at #{index}",
            details={"index": index},
            is_user_action=True,
        )

    @staticmethod
    def batch_committed(
        transaction_ids: list[str],
        remaining: int,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BATCH_COMMITTED,
            entity_type="batch",
            correlation_id=correlation_id,
            description=f"Committed {len(transaction_ids)} candidate(s) to the ledger",
            details={"transaction_ids": transaction_ids, "remaining": remaining},
            is_user_action=True,
        )

    @staticmethod
    def batch_discarded(
        discarded: int,
        remaining: int,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BATCH_DISCARDED,
            entity_type="batch",
            correlation_id=correlation_id,
            description=f"Discarded {discarded} candidate(s)",
            details={"discarded": discarded, "remaining": remaining},
            is_user_action=True,
        )

    @staticmethod
    def backup_exported(transaction_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_EXPORTED,
            entity_type="backup",
            description=f"Exported {transaction_count} transaction(s)",
            details={"transaction_count": transaction_count},
            is_user_action=True,
        )

    @staticmethod
    def backup_imported(transaction_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_IMPORTED,
            entity_type="backup",
            description=f"Ledger replaced with {transaction_count} imported transaction(s)",
            details={"transaction_count": transaction_count},
            is_user_action=True,
        )

    @staticmethod
    def backup_rejected(reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="backup",
            description="Backup import rejected",
            error_message=reason,
            is_user_action=True,
        )

    @staticmethod
    def settings_changed(changes: dict[str, Any]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTINGS_CHANGED,
            entity_type="settings",
            description="Settings updated",
            details=changes,
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
