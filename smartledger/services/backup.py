"""
Backup Export / Import

A backup is the ledger as a JSON array of transactions, the same shape that
is persisted. Import is all-or-nothing: if any element is invalid the whole
payload is rejected and the ledger is left alone.
"""

import json
from datetime import date
from typing import Iterable, Optional, Union

from pydantic import ValidationError

from smartledger.models.transaction import Transaction


BACKUP_FILENAME_PREFIX = "smartledger_backup_"


class ImportRejectedError(Exception):
    """The backup payload is not a valid transaction list."""
    pass


def export_transactions(transactions: Iterable[Transaction]) -> str:
    """Serialize the ledger, in order, as a JSON array."""
    payload = [tx.model_dump(mode="json") for tx in transactions]
    return json.dumps(payload, ensure_ascii=False, indent=2)


def backup_filename(today: Optional[date] = None) -> str:
    """smartledger_backup_YYYY-MM-DD.json"""
    today = today or date.today()
    return f"{BACKUP_FILENAME_PREFIX}{today.isoformat()}.json"


def parse_backup(payload: Union[str, bytes]) -> list[Transaction]:
    """
    Validate a backup payload into transactions.

    Raises:
        ImportRejectedError: Invalid JSON, a non-array document, an invalid
            element, or repeated ids
    """
    try:
        data = json.loads(payload)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ImportRejectedError(f"Backup is not valid JSON: {e}") from e

    if not isinstance(data, list):
        raise ImportRejectedError("Backup must be a JSON array of transactions")

    transactions = []
    seen_ids = set()
    for position, item in enumerate(data):
        try:
            tx = Transaction.model_validate(item)
        except ValidationError as e:
            raise ImportRejectedError(f"Invalid transaction at position {position}: {e}") from e
        if tx.id in seen_ids:
            raise ImportRejectedError(f"Duplicate transaction id at position {position}: {tx.id}")
        seen_ids.add(tx.id)
        transactions.append(tx)

    return transactions
