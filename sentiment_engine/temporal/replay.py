"""
Replay Engine
=============

Re-executes a call journal against a fresh engine.

INVARIANT: Replay is deterministic.
Same journal from the same starting state = same results and the same
state hash at every step.

A replayed engine gets a replay clock built from the journal's own
timestamps, so every recency decision sees the time the original call
saw. Any difference in a call's result (including the recorded state
hash, when present) is a REPLAY_DIVERGENCE.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Sequence

from ..contracts.base import CallerId, EngineError, ErrorCode, IntegrityError, Role
from ..contracts.temporal import JournalEntry
from ..engine import EngineConfig, SentimentEngine
from .clock import LogicalClock
from .journal import CallJournal


@dataclass(frozen=True)
class ReplayResult:
    """Outcome of a successful replay."""
    entries_replayed: int
    state_hash: str
    journal_head: str


def _classify(engine: SentimentEngine, caller: CallerId, payload: Dict[str, Any]) -> None:
    engine.classify_sentiment(caller, payload['tokens'])


def _set_vocabulary(engine: SentimentEngine, caller: CallerId, payload: Dict[str, Any]) -> None:
    engine.set_vocabulary(
        caller,
        payload['token_ids'], payload['words'], payload['sentiments'],
        payload['flags'], payload['categories'], payload['weights'],
        payload['domain_relevance'], payload['secondary_categories'],
        payload['context_influence'], payload.get('domain_strengths')
    )


def _set_embeddings(engine: SentimentEngine, caller: CallerId, payload: Dict[str, Any]) -> None:
    engine.set_embeddings(caller, payload['token_ids'], payload['semantic'], payload['context'])


def _set_class_weights(engine: SentimentEngine, caller: CallerId, payload: Dict[str, Any]) -> None:
    engine.set_class_weights(caller, payload['class_id'], payload['semantic'], payload['context'])


def _set_domain_modifier(engine: SentimentEngine, caller: CallerId, payload: Dict[str, Any]) -> None:
    engine.set_domain_modifier(caller, payload['domain'], payload['biases'], payload['intensity'])


def _pause(engine: SentimentEngine, caller: CallerId, payload: Dict[str, Any]) -> None:
    engine.pause(caller)


def _unpause(engine: SentimentEngine, caller: CallerId, payload: Dict[str, Any]) -> None:
    engine.unpause(caller)


def _grant_role(engine: SentimentEngine, caller: CallerId, payload: Dict[str, Any]) -> None:
    engine.grant_role(caller, CallerId(payload['caller']), Role(payload['role']))


def _revoke_role(engine: SentimentEngine, caller: CallerId, payload: Dict[str, Any]) -> None:
    engine.revoke_role(caller, CallerId(payload['caller']), Role(payload['role']))


Handler = Callable[[SentimentEngine, CallerId, Dict[str, Any]], None]

HANDLERS: Dict[str, Handler] = {
    'classify_sentiment': _classify,
    'set_vocabulary': _set_vocabulary,
    'set_embeddings': _set_embeddings,
    'set_class_weights': _set_class_weights,
    'set_domain_modifier': _set_domain_modifier,
    'pause': _pause,
    'unpause': _unpause,
    'grant_role': _grant_role,
    'revoke_role': _revoke_role,
}


class ReplayEngine:
    """
    Rebuilds engine state from a journal.

    GUARANTEES:
    ===========
    1. The journal is integrity-checked before the first call is replayed
    2. Every entry is re-executed through the public facade, with the
       same entry-point checks as the original call
    3. The rebuilt engine's journal has the same head hash as the source
    """

    def __init__(
        self,
        owner: CallerId,
        trainers: Optional[Sequence[CallerId]] = None,
        config: Optional[EngineConfig] = None
    ):
        self._owner = owner
        self._trainers = list(trainers or ())
        self._config = config

    def rebuild(self, journal: CallJournal) -> SentimentEngine:
        """Replay the whole journal and return the rebuilt engine."""
        engine, _ = self._run(journal)
        return engine

    def replay(self, journal: CallJournal, expected_state_hash: Optional[str] = None) -> ReplayResult:
        """
        Replay and verify.

        Raises IntegrityError(JOURNAL_CORRUPTION) for a broken journal and
        IntegrityError(REPLAY_DIVERGENCE) when any result, the journal head
        or the final state hash differs.
        """
        engine, count = self._run(journal)
        state_hash = engine.state_hash()

        if engine.journal.head_hash != journal.head_hash:
            raise IntegrityError.of(
                ErrorCode.REPLAY_DIVERGENCE,
                "replayed journal head differs from source",
                expected_hash=journal.head_hash,
                actual_hash=engine.journal.head_hash
            )
        if expected_state_hash is not None and state_hash != expected_state_hash:
            raise IntegrityError.of(
                ErrorCode.REPLAY_DIVERGENCE,
                "final state hash differs",
                expected_hash=expected_state_hash,
                actual_hash=state_hash
            )
        return ReplayResult(
            entries_replayed=count,
            state_hash=state_hash,
            journal_head=engine.journal.head_hash
        )

    def _run(self, journal: CallJournal):
        is_valid, error = journal.verify_integrity()
        if not is_valid:
            raise IntegrityError(error)

        entries = journal.entries()
        clock = LogicalClock.replay([entry.timestamp for entry in entries])
        engine = SentimentEngine(self._owner, self._trainers, config=self._config, clock=clock)

        for entry in entries:
            self._apply(engine, entry)
        return engine, len(entries)

    @staticmethod
    def _apply(engine: SentimentEngine, entry: JournalEntry) -> None:
        handler = HANDLERS.get(entry.operation)
        if handler is None:
            raise IntegrityError.of(
                ErrorCode.REPLAY_DIVERGENCE,
                f"unknown journaled operation {entry.operation}",
                sequence=entry.sequence.value
            )
        try:
            handler(engine, CallerId(entry.caller), entry.payload)
        except EngineError as exc:
            raise IntegrityError.of(
                ErrorCode.REPLAY_DIVERGENCE,
                f"replayed call failed at sequence {entry.sequence.value}: {exc}",
                sequence=entry.sequence.value,
                operation=entry.operation
            ) from exc

        replayed = engine.journal.get_entry(entry.sequence)
        if replayed is None or replayed.result_json != entry.result_json:
            raise IntegrityError.of(
                ErrorCode.REPLAY_DIVERGENCE,
                f"result differs at sequence {entry.sequence.value}",
                sequence=entry.sequence.value,
                operation=entry.operation,
                expected=entry.result_json,
                actual=replayed.result_json if replayed else ""
            )
