"""Candidate review checks."""

from smartledger.validation.validator import DraftValidator

__all__ = ["DraftValidator"]
