"""Ingestion: draft normalization, batch reconciliation and entry modes."""

from smartledger.ingestion.batch import BatchState, CandidateBatch, EmptyParseResultError
from smartledger.ingestion.modes import (
    AppendToCandidate,
    EditCandidate,
    EditExisting,
    EntryForm,
    EntryMode,
    Idle,
    ModeConflictError,
    ModeController,
    NewManual,
)
from smartledger.ingestion.normalizer import CandidateNormalizer, signed_amount

__all__ = [
    "AppendToCandidate",
    "BatchState",
    "CandidateBatch",
    "CandidateNormalizer",
    "EditCandidate",
    "EditExisting",
    "EmptyParseResultError",
    "EntryForm",
    "EntryMode",
    "Idle",
    "ModeConflictError",
    "ModeController",
    "NewManual",
    "signed_amount",
]
