"""
Batch Reconciliation

Holds the candidates returned by an image parse while the user reviews them:
toggling selection, editing in place, appending manual candidates, and
committing or discarding the selected ones.

INVARIANTS:
- Indices are always 0..len-1; removals renumber the survivors in order
- Selected indices always refer to existing items
- A commit writes to the ledger once; if that write fails nothing changes
"""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Iterable, Optional

from smartledger.agents.parsing_agent import ParsingError
from smartledger.ingestion.normalizer import CandidateNormalizer
from smartledger.models.transaction import Transaction, TransactionDraft

if TYPE_CHECKING:
    from smartledger.ledger import Ledger


class EmptyParseResultError(ParsingError):
    """A parse completed but recognized no transactions."""
    pass


class BatchState(str, Enum):
    EMPTY = "empty"
    POPULATED = "populated"


class CandidateBatch:
    """
    Ordered list of drafts plus the set of selected indices.

    Index arguments out of range raise IndexError: callers only ever pass
    indices they read from this batch.
    """

    def __init__(self):
        self._drafts: list[TransactionDraft] = []
        self._selected: set[int] = set()

    # =========================================================================
    # INSPECTION
    # =========================================================================

    @property
    def state(self) -> BatchState:
        return BatchState.POPULATED if self._drafts else BatchState.EMPTY

    @property
    def drafts(self) -> tuple[TransactionDraft, ...]:
        return tuple(self._drafts)

    @property
    def selected_indices(self) -> tuple[int, ...]:
        return tuple(sorted(self._selected))

    @property
    def selected_count(self) -> int:
        return len(self._selected)

    def __len__(self) -> int:
        return len(self._drafts)

    def __getitem__(self, index: int) -> TransactionDraft:
        self._check_index(index)
        return self._drafts[index]

    def is_selected(self, index: int) -> bool:
        self._check_index(index)
        return index in self._selected

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self._drafts):
            raise IndexError(f"Candidate index {index} out of range (size {len(self._drafts)})")

    # =========================================================================
    # MUTATION
    # =========================================================================

    def receive(self, drafts: Iterable[TransactionDraft]) -> None:
        """
        Replace the batch with a fresh parse result, all selected.

        Raises:
            EmptyParseResultError: If the result holds no drafts (the current
                batch is left as it was)
        """
        drafts = list(drafts)
        if not drafts:
            raise EmptyParseResultError("No transactions recognized")
        self._drafts = drafts
        self._selected = set(range(len(drafts)))

    def toggle(self, index: int) -> bool:
        """Flip selection of one item. Returns the new selection state."""
        self._check_index(index)
        if index in self._selected:
            self._selected.discard(index)
            return False
        self._selected.add(index)
        return True

    def select_all(self) -> None:
        self._selected = set(range(len(self._drafts)))

    def clear_selection(self) -> None:
        self._selected = set()

    def replace(self, index: int, draft: TransactionDraft) -> None:
        """Edit an item in place. Selection is untouched."""
        self._check_index(index)
        self._drafts[index] = draft

    def append(self, draft: TransactionDraft) -> int:
        """Add a manual candidate at the end, selected. Returns its index."""
        self._drafts.append(draft)
        index = len(self._drafts) - 1
        self._selected.add(index)
        return index

    def _remove_selected(self) -> int:
        removed = len(self._selected)
        self._drafts = [
            draft for index, draft in enumerate(self._drafts) if index not in self._selected
        ]
        self._selected = set()
        return removed

    def commit(
        self,
        normalizer: CandidateNormalizer,
        ledger: "Ledger",
        now: Optional[datetime] = None,
    ) -> list[Transaction]:
        """
        Move the selected candidates into the ledger.

        All selected drafts (in batch order) are normalized first, then
        appended to the ledger in a single write. Only after that write
        succeeds are they removed from the batch.

        Returns:
            The committed transactions ([] when nothing is selected)

        Raises:
            StorageError: If the ledger write fails (batch unchanged)
        """
        if not self._selected:
            return []

        chosen = [self._drafts[index] for index in self.selected_indices]
        transactions = normalizer.normalize_many(chosen, now=now)
        ledger.add_many(transactions)

        self._remove_selected()
        return transactions

    def discard_selected(self) -> int:
        """Drop the selected candidates without committing. Returns how many."""
        return self._remove_selected()

    def clear(self) -> None:
        self._drafts = []
        self._selected = set()
