from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict
import hashlib
import json


def canonical_json(payload: Dict[str, Any]) -> str:
    """Byte-stable JSON used for hashing and persistence."""
    return json.dumps(payload, sort_keys=True, separators=(",", ":"))


@dataclass(frozen=True)
class JournalSequence:
    """
    Immutable sequence position in the call journal.
    """
    value: int

    def next(self) -> 'JournalSequence':
        return JournalSequence(self.value + 1)

    def __lt__(self, other: 'JournalSequence') -> bool:
        return self.value < other.value

    def __le__(self, other: 'JournalSequence') -> bool:
        return self.value <= other.value


@dataclass(frozen=True)
class JournalEntry:
    """
    Immutable record of one committed mutating call.
    INVARIANTS:
    - Once written, never modified.
    - Entries form a hash chain for integrity verification.
    """
    sequence: JournalSequence
    operation: str
    caller: str
    timestamp: int
    payload_json: str
    result_json: str
    previous_hash: str
    entry_hash: str

    @staticmethod
    def compute_hash(
        sequence: int,
        operation: str,
        caller: str,
        timestamp: int,
        payload_json: str,
        result_json: str,
        previous_hash: str
    ) -> str:
        hash_content = (
            f"{sequence}|{operation}|{caller}|{timestamp}|"
            f"{payload_json}|{result_json}|{previous_hash}"
        )
        return hashlib.sha256(hash_content.encode()).hexdigest()

    @staticmethod
    def create(
        sequence: JournalSequence,
        operation: str,
        caller: str,
        timestamp: int,
        payload: Dict[str, Any],
        result: Dict[str, Any],
        previous_hash: str
    ) -> 'JournalEntry':
        """Factory for deterministic entry creation."""
        payload_json = canonical_json(payload)
        result_json = canonical_json(result)
        return JournalEntry(
            sequence=sequence,
            operation=operation,
            caller=caller,
            timestamp=timestamp,
            payload_json=payload_json,
            result_json=result_json,
            previous_hash=previous_hash,
            entry_hash=JournalEntry.compute_hash(
                sequence.value, operation, caller, timestamp,
                payload_json, result_json, previous_hash
            )
        )

    @property
    def payload(self) -> Dict[str, Any]:
        return json.loads(self.payload_json)

    @property
    def result(self) -> Dict[str, Any]:
        return json.loads(self.result_json)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'sequence': self.sequence.value,
            'operation': self.operation,
            'caller': self.caller,
            'timestamp': self.timestamp,
            'payload': self.payload,
            'result': self.result,
            'previous_hash': self.previous_hash,
            'entry_hash': self.entry_hash,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> 'JournalEntry':
        return JournalEntry(
            sequence=JournalSequence(int(data['sequence'])),
            operation=data['operation'],
            caller=data['caller'],
            timestamp=int(data['timestamp']),
            payload_json=canonical_json(data['payload']),
            result_json=canonical_json(data['result']),
            previous_hash=data['previous_hash'],
            entry_hash=data['entry_hash']
        )
