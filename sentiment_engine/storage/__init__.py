"""
Storage Layer

RESPONSIBILITY: Durable save/load of the engine data model and call journal
ALLOWED INPUTS: EngineState, CallJournal
OUTPUTS: Verified EngineState, verified CallJournal

WHAT THIS LAYER MUST NOT DO:
============================
- Interpret or transform state (saved verbatim)
- Return unverified data

BOUNDARY ENFORCEMENT:
=====================
- Every snapshot carries the state hash it was saved with
- Loading recomputes the hash; a mismatch is STATE_CORRUPTION
- Journal entries are reloaded through CallJournal.load_verified_entry
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Tuple
import json
import os

from ..contracts.base import ErrorCode, IntegrityError
from ..contracts.temporal import JournalEntry
from ..state import STATE_FORMAT_VERSION, EngineState
from ..temporal.journal import CallJournal


@dataclass
class StorageConfig:
    """Configuration for the durable-state collaborator."""
    backend_type: str = "memory"  # "memory" or "file"
    storage_dir: Optional[str] = None


class StateStore:
    """Abstract state store."""

    def save(self, state: EngineState, journal: CallJournal) -> str:
        """Persist state and journal. Returns the saved state hash."""
        raise NotImplementedError

    def load(self) -> Optional[Tuple[EngineState, CallJournal]]:
        """Verified state and journal, or None when nothing was saved."""
        raise NotImplementedError


def _verify_snapshot(document: dict) -> EngineState:
    version = document.get('format_version')
    if version != STATE_FORMAT_VERSION:
        raise IntegrityError.of(
            ErrorCode.STATE_CORRUPTION,
            f"unsupported state format {version}",
            expected=STATE_FORMAT_VERSION,
            actual=version
        )
    try:
        state = EngineState.from_dict(document['state'])
    except (KeyError, TypeError, ValueError) as exc:
        raise IntegrityError.of(
            ErrorCode.STATE_CORRUPTION,
            f"malformed state document: {exc}"
        ) from exc
    computed = state.compute_hash()
    if computed != document.get('state_hash'):
        raise IntegrityError.of(
            ErrorCode.STATE_CORRUPTION,
            "state hash mismatch",
            expected_hash=document.get('state_hash'),
            actual_hash=computed
        )
    return state


def _snapshot_document(state: EngineState, journal: CallJournal) -> dict:
    return {
        'format_version': STATE_FORMAT_VERSION,
        'state_hash': state.compute_hash(),
        'journal_head': journal.head_hash,
        'journal_length': len(journal),
        'state': state.to_dict(),
    }


class InMemoryStateStore(StateStore):
    """
    Keeps the last saved snapshot as a JSON string, so loading goes
    through the same decode-and-verify path as the file store.
    """

    def __init__(self):
        self._document: Optional[str] = None
        self._journal_lines: List[str] = []

    def save(self, state: EngineState, journal: CallJournal) -> str:
        document = _snapshot_document(state, journal)
        self._document = json.dumps(document)
        self._journal_lines = [json.dumps(e.to_dict()) for e in journal.entries()]
        return document['state_hash']

    def load(self) -> Optional[Tuple[EngineState, CallJournal]]:
        if self._document is None:
            return None
        state = _verify_snapshot(json.loads(self._document))
        journal = CallJournal.from_entries(
            [JournalEntry.from_dict(json.loads(line)) for line in self._journal_lines]
        )
        return state, journal


class FileStateStore(StateStore):
    """
    File-based store: state.json (full snapshot) plus journal.jsonl
    (one entry per line, rewritten from the in-memory journal on save).

    save() replaces the journal before the snapshot. The journal only
    grows, so a crash between the two renames leaves a journal that runs
    past the snapshot's journal_head; load() cuts it back to that head.
    A journal that does not contain the head is JOURNAL_CORRUPTION.
    """

    def __init__(self, storage_dir: str):
        self._storage_dir = storage_dir
        self._state_file = os.path.join(storage_dir, "state.json")
        self._journal_file = os.path.join(storage_dir, "journal.jsonl")

        os.makedirs(storage_dir, exist_ok=True)

    @property
    def storage_dir(self) -> str:
        return self._storage_dir

    def save(self, state: EngineState, journal: CallJournal) -> str:
        document = _snapshot_document(state, journal)

        # Write-then-rename so a crash never leaves a torn snapshot
        tmp_state = self._state_file + ".tmp"
        with open(tmp_state, 'w') as f:
            json.dump(document, f)
        tmp_journal = self._journal_file + ".tmp"
        with open(tmp_journal, 'w') as f:
            for entry in journal.entries():
                f.write(json.dumps(entry.to_dict()) + "\n")
        os.replace(tmp_journal, self._journal_file)
        os.replace(tmp_state, self._state_file)
        return document['state_hash']

    def load(self) -> Optional[Tuple[EngineState, CallJournal]]:
        if not os.path.exists(self._state_file):
            return None
        with open(self._state_file, 'r') as f:
            try:
                document = json.load(f)
            except json.JSONDecodeError as exc:
                raise IntegrityError.of(
                    ErrorCode.STATE_CORRUPTION,
                    f"state.json is not valid JSON: {exc}"
                ) from exc
        state = _verify_snapshot(document)

        entries = []
        if os.path.exists(self._journal_file):
            with open(self._journal_file, 'r') as f:
                for line_no, line in enumerate(f, start=1):
                    if not line.strip():
                        continue
                    try:
                        entries.append(JournalEntry.from_dict(json.loads(line)))
                    except (json.JSONDecodeError, KeyError, ValueError) as exc:
                        raise IntegrityError.of(
                            ErrorCode.JOURNAL_CORRUPTION,
                            f"unreadable journal line {line_no}: {exc}",
                            line=line_no
                        ) from exc
        journal = CallJournal.from_entries(entries)
        expected_head = document.get('journal_head', "")
        if journal.head_hash != expected_head:
            journal = CallJournal.from_entries(_entries_through(entries, expected_head))
        return state, journal


def _entries_through(entries: List[JournalEntry], head_hash: str) -> List[JournalEntry]:
    """Prefix of a verified journal ending at head_hash."""
    if not head_hash:
        return []
    for index, entry in enumerate(entries):
        if entry.entry_hash == head_hash:
            return entries[:index + 1]
    raise IntegrityError.of(
        ErrorCode.JOURNAL_CORRUPTION,
        "journal head does not match snapshot",
        expected_hash=head_hash,
        actual_hash=entries[-1].entry_hash if entries else ""
    )


def create_state_store(config: StorageConfig) -> StateStore:
    if config.backend_type == "file":
        if not config.storage_dir:
            raise ValueError("file storage requires storage_dir")
        return FileStateStore(config.storage_dir)
    if config.backend_type == "memory":
        return InMemoryStateStore()
    raise ValueError(f"unknown storage backend: {config.backend_type}")
