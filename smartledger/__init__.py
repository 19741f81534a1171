"""
SmartLedger - Source Package

Transaction ingestion and reconciliation engine for a personal finance
ledger: keypad amounts, AI-parsed text and receipt images all end up as
normalized ledger entries.

DESIGN PRINCIPLES:
1. AI proposes -> Human reviews -> Normalizer commits
2. Money is integer minor units, everywhere
3. Malformed input degrades to a safe default, never a crash
4. Every ledger change is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "SmartLedger Team"
