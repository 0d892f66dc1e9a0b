"""
Call Journal
============

Append-only, hash-chained record of every committed mutating call.

INVARIANTS:
- No updates or deletes - append only
- Every entry has a monotonic sequence number
- Hash chain for integrity verification
- Replaying the entries in order against a fresh engine reproduces the
  engine state exactly
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ..contracts.base import Error, ErrorCode, IntegrityError
from ..contracts.temporal import JournalEntry, JournalSequence


@dataclass(frozen=True)
class JournalState:
    """Immutable snapshot of journal position."""
    head_sequence: JournalSequence
    head_hash: str
    entry_count: int

    @staticmethod
    def empty() -> 'JournalState':
        return JournalState(
            head_sequence=JournalSequence(0),
            head_hash="",
            entry_count=0
        )


class CallJournal:
    """
    Append-only call journal.

    GUARANTEES:
    ===========
    1. NO updates - entries are immutable once written
    2. NO deletes - journal only grows
    3. Verifiable - each entry hashes its predecessor
    """

    def __init__(self):
        self._entries: List[JournalEntry] = []
        self._sequence_counter = JournalSequence(0)
        self._head_hash = ""

    @property
    def state(self) -> JournalState:
        return JournalState(
            head_sequence=self._sequence_counter,
            head_hash=self._head_hash,
            entry_count=len(self._entries)
        )

    @property
    def head_hash(self) -> str:
        return self._head_hash

    def __len__(self) -> int:
        return len(self._entries)

    def append(
        self,
        operation: str,
        caller: str,
        timestamp: int,
        payload: Dict[str, Any],
        result: Dict[str, Any]
    ) -> JournalEntry:
        """
        Append one committed call. This is the ONLY write operation.
        """
        new_sequence = self._sequence_counter.next()
        entry = JournalEntry.create(
            sequence=new_sequence,
            operation=operation,
            caller=caller,
            timestamp=timestamp,
            payload=payload,
            result=result,
            previous_hash=self._head_hash
        )
        self._entries.append(entry)
        self._sequence_counter = new_sequence
        self._head_hash = entry.entry_hash
        return entry

    def load_verified_entry(self, entry: JournalEntry) -> None:
        """
        Load an existing entry from storage.

        VERIFIES:
        1. Sequence is the next in line
        2. Previous hash matches current head
        3. Entry hash is valid for its content

        Raises IntegrityError(JOURNAL_CORRUPTION) on any mismatch.
        """
        expected_seq = self._sequence_counter.next()
        if entry.sequence.value != expected_seq.value:
            raise IntegrityError.of(
                ErrorCode.JOURNAL_CORRUPTION,
                f"Invalid sequence load: expected {expected_seq.value}, got {entry.sequence.value}",
                expected=expected_seq.value,
                actual=entry.sequence.value
            )

        if entry.previous_hash != self._head_hash:
            raise IntegrityError.of(
                ErrorCode.JOURNAL_CORRUPTION,
                f"Broken hash chain at {entry.sequence.value}",
                expected_hash=self._head_hash,
                actual_hash=entry.previous_hash
            )

        computed_hash = JournalEntry.compute_hash(
            entry.sequence.value, entry.operation, entry.caller, entry.timestamp,
            entry.payload_json, entry.result_json, entry.previous_hash
        )
        if computed_hash != entry.entry_hash:
            raise IntegrityError.of(
                ErrorCode.JOURNAL_CORRUPTION,
                f"Corrupt entry at {entry.sequence.value}: hash mismatch",
                sequence=entry.sequence.value
            )

        self._entries.append(entry)
        self._sequence_counter = entry.sequence
        self._head_hash = entry.entry_hash

    @classmethod
    def from_entries(cls, entries: List[JournalEntry]) -> 'CallJournal':
        journal = cls()
        for entry in entries:
            journal.load_verified_entry(entry)
        return journal

    def replay(
        self,
        from_seq: Optional[JournalSequence] = None,
        until_seq: Optional[JournalSequence] = None
    ) -> Iterator[JournalEntry]:
        """Entries in sequence order, both bounds inclusive."""
        start = from_seq.value if from_seq else 1
        end = until_seq.value if until_seq else len(self._entries)

        for entry in self._entries:
            if entry.sequence.value < start:
                continue
            if entry.sequence.value > end:
                break
            yield entry

    def entries(self) -> List[JournalEntry]:
        return list(self._entries)

    def get_entry(self, sequence: JournalSequence) -> Optional[JournalEntry]:
        if sequence.value < 1 or sequence.value > len(self._entries):
            return None
        return self._entries[sequence.value - 1]

    def verify_integrity(self) -> Tuple[bool, Optional[Error]]:
        """
        Walk the hash chain.

        Returns (is_valid, error); error carries the failing sequence.
        """
        expected_previous = ""
        for entry in self._entries:
            if entry.previous_hash != expected_previous:
                return (False, Error.create(
                    ErrorCode.JOURNAL_CORRUPTION,
                    f"Hash chain broken at sequence {entry.sequence.value}",
                    expected_hash=expected_previous,
                    actual_hash=entry.previous_hash
                ))
            recomputed = JournalEntry.compute_hash(
                entry.sequence.value, entry.operation, entry.caller, entry.timestamp,
                entry.payload_json, entry.result_json, entry.previous_hash
            )
            if recomputed != entry.entry_hash:
                return (False, Error.create(
                    ErrorCode.JOURNAL_CORRUPTION,
                    f"Entry hash mismatch at sequence {entry.sequence.value}",
                    sequence=entry.sequence.value
                ))
            expected_previous = entry.entry_hash
        return (True, None)
