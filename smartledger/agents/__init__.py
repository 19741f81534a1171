"""AI Agents package."""

from smartledger.agents.parsing_agent import (
    CredentialMissingError,
    ParsingError,
    ParsingServiceError,
    TransactionParsingAgent,
)

__all__ = [
    "CredentialMissingError",
    "ParsingError",
    "ParsingServiceError",
    "TransactionParsingAgent",
]
