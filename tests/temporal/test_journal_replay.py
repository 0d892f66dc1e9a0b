"""
Call journal and replay tests.

INVARIANT UNDER TEST:
=====================
Replaying a journal against a fresh engine reproduces every recorded
result and the final state hash. Any tampering or difference is detected.
"""

from dataclasses import replace

import pytest

from sentiment_engine.contracts.base import ErrorCode, IntegrityError, Role
from sentiment_engine.contracts.temporal import JournalEntry, JournalSequence
from sentiment_engine.temporal import CallJournal, ClockExhausted, LogicalClock
from sentiment_engine import ReplayEngine

from tests.fixtures import (
    ALICE, BAD, BOB, GOOD, MOVIE, OWNER, STANDARD_VOCABULARY, T0, TRAINER,
    columns, make_engine, make_standard_engine,
)


def busy_engine():
    """Standard engine with adaptive history across recency windows."""
    engine = make_standard_engine()
    engine.set_domain_modifier(TRAINER, 6, [0, 0, 0, 0, 0, 0, 10], 2)
    engine.classify_sentiment(ALICE, [GOOD])
    engine.classify_sentiment(ALICE, [GOOD, MOVIE])
    engine.clock.advance(3600)
    engine.classify_sentiment(ALICE, [GOOD])
    engine.classify_sentiment(BOB, [BAD, GOOD, BAD])
    return engine


def rechained(journal, alter):
    """Copy of journal with alter(entry) -> result dict, re-hashed so the chain stays valid."""
    copy = CallJournal()
    for entry in journal.entries():
        copy.append(entry.operation, entry.caller, entry.timestamp, entry.payload, alter(entry))
    return copy


# =============================================================================
# JOURNAL INTEGRITY
# =============================================================================

class TestCallJournal:

    def test_entries_form_a_chain(self):
        journal = busy_engine().journal
        entries = journal.entries()

        assert [e.sequence.value for e in entries] == list(range(1, 10))
        assert entries[0].previous_hash == ""
        for previous, entry in zip(entries, entries[1:]):
            assert entry.previous_hash == previous.entry_hash
        assert journal.head_hash == entries[-1].entry_hash
        assert journal.verify_integrity() == (True, None)

    def test_state(self):
        journal = make_standard_engine().journal
        assert journal.state.entry_count == 4
        assert journal.state.head_sequence == JournalSequence(4)

    def test_replay_bounds_inclusive(self):
        journal = busy_engine().journal
        window = list(journal.replay(JournalSequence(2), JournalSequence(4)))
        assert [e.sequence.value for e in window] == [2, 3, 4]
        assert journal.get_entry(JournalSequence(0)) is None
        assert journal.get_entry(JournalSequence(5)).operation == 'set_domain_modifier'

    def test_dict_round_trip_keeps_hash(self):
        entry = busy_engine().journal.entries()[-1]
        restored = JournalEntry.from_dict(entry.to_dict())
        assert restored == entry

    def test_tampered_result_detected(self):
        journal = busy_engine().journal
        entries = journal.entries()
        entries[6] = replace(entries[6], result_json='{"confidence":1}')

        with pytest.raises(IntegrityError) as exc_info:
            CallJournal.from_entries(entries)
        assert exc_info.value.code == ErrorCode.JOURNAL_CORRUPTION

    def test_verify_integrity_reports_sequence(self):
        journal = busy_engine().journal
        journal._entries[2] = replace(journal._entries[2], caller="mallory")

        is_valid, error = journal.verify_integrity()
        assert not is_valid
        assert error.code == ErrorCode.JOURNAL_CORRUPTION
        assert error.context_dict()['sequence'] == '3'

    def test_sequence_gap_detected(self):
        entries = busy_engine().journal.entries()
        with pytest.raises(IntegrityError) as exc_info:
            CallJournal.from_entries([entries[0], entries[2]])
        assert exc_info.value.code == ErrorCode.JOURNAL_CORRUPTION

    def test_reordered_entries_detected(self):
        entries = busy_engine().journal.entries()
        with pytest.raises(IntegrityError):
            CallJournal.from_entries([entries[1], entries[0]])


# =============================================================================
# REPLAY
# =============================================================================

class TestReplay:

    def test_replay_reproduces_state(self):
        engine = busy_engine()
        result = ReplayEngine(OWNER, [TRAINER]).replay(engine.journal, expected_state_hash=engine.state_hash())

        assert result.entries_replayed == 9
        assert result.state_hash == engine.state_hash()
        assert result.journal_head == engine.journal.head_hash

    def test_rebuild(self):
        engine = busy_engine()
        rebuilt = ReplayEngine(OWNER, [TRAINER]).rebuild(engine.journal)

        assert rebuilt.state_hash() == engine.state_hash()
        assert rebuilt.get_user_context(ALICE) == engine.get_user_context(ALICE)
        assert rebuilt.class_distributions() == engine.class_distributions()

    def test_replay_uses_recorded_timestamps(self):
        engine = busy_engine()
        rebuilt = ReplayEngine(OWNER, [TRAINER]).rebuild(engine.journal)
        assert rebuilt.get_user_context(ALICE).last_interaction == T0 + 3600
        assert rebuilt.clock.mode == "replay"

    def test_granted_roles_replay_without_constructor_trainers(self):
        engine = make_engine()
        engine.grant_role(OWNER, ALICE, Role.TRAINER)
        engine.set_vocabulary(ALICE, **columns(STANDARD_VOCABULARY))
        engine.pause(OWNER)
        engine.unpause(OWNER)
        engine.classify_sentiment(BOB, [GOOD])

        result = ReplayEngine(OWNER).replay(engine.journal, expected_state_hash=engine.state_hash())
        assert result.entries_replayed == 5

    def test_missing_trainer_diverges(self):
        engine = busy_engine()
        with pytest.raises(IntegrityError) as exc_info:
            ReplayEngine(OWNER).replay(engine.journal)
        assert exc_info.value.code == ErrorCode.REPLAY_DIVERGENCE
        assert exc_info.value.error.context_dict()['sequence'] == '1'

    def test_altered_result_diverges(self):
        engine = busy_engine()

        def alter(entry):
            result = entry.result
            if entry.sequence.value == 8:
                result['confidence'] += 1
            return result

        journal = rechained(engine.journal, alter)
        assert journal.verify_integrity() == (True, None)

        with pytest.raises(IntegrityError) as exc_info:
            ReplayEngine(OWNER, [TRAINER]).replay(journal)
        assert exc_info.value.code == ErrorCode.REPLAY_DIVERGENCE
        assert exc_info.value.error.context_dict()['sequence'] == '8'

    def test_unexpected_state_hash_diverges(self):
        engine = busy_engine()
        with pytest.raises(IntegrityError) as exc_info:
            ReplayEngine(OWNER, [TRAINER]).replay(engine.journal, expected_state_hash="0" * 64)
        assert exc_info.value.code == ErrorCode.REPLAY_DIVERGENCE

    def test_unknown_operation_diverges(self):
        journal = CallJournal()
        journal.append('drop_vocabulary', 'owner', T0, {}, {})
        with pytest.raises(IntegrityError) as exc_info:
            ReplayEngine(OWNER).replay(journal)
        assert exc_info.value.code == ErrorCode.REPLAY_DIVERGENCE

    def test_corrupt_journal_rejected_before_replay(self):
        journal = busy_engine().journal
        journal._entries[0] = replace(journal._entries[0], timestamp=T0 + 1)
        with pytest.raises(IntegrityError) as exc_info:
            ReplayEngine(OWNER, [TRAINER]).replay(journal)
        assert exc_info.value.code == ErrorCode.JOURNAL_CORRUPTION

    def test_empty_journal(self):
        result = ReplayEngine(OWNER).replay(CallJournal())
        assert result.entries_replayed == 0
        assert result.journal_head == ""


# =============================================================================
# LOGICAL CLOCK
# =============================================================================

class TestLogicalClock:

    def test_manual_clock_logs_ticks(self):
        clock = LogicalClock.manual(T0)
        assert clock.now() == T0
        clock.advance(5)
        assert clock.now() == T0 + 5
        assert clock.ticks == [T0, T0 + 5]
        assert clock.tick_count() == 2

    def test_peek_does_not_consume(self):
        clock = LogicalClock.replay([T0, T0 + 1])
        assert clock.peek() == T0
        assert clock.peek() == T0
        assert clock.now() == T0
        assert clock.peek() == T0 + 1

    def test_replay_exhaustion(self):
        clock = LogicalClock.replay([T0])
        clock.now()
        with pytest.raises(ClockExhausted):
            clock.now()

    def test_advance_requires_manual(self):
        with pytest.raises(ValueError):
            LogicalClock.replay([T0]).advance(1)

    def test_live_clock(self):
        clock = LogicalClock.live()
        assert clock.is_live()
        assert clock.now() > T0 - 10 ** 9
        assert clock.tick_count() == 1

    def test_log_round_trip(self, tmp_path):
        clock = LogicalClock.manual(T0)
        clock.now()
        clock.advance(60)
        clock.now()

        path = tmp_path / "ticks" / "clock.json"
        clock.save_log(path)
        replayed = LogicalClock.from_log(path)

        assert replayed.mode == "replay"
        assert [replayed.now(), replayed.now()] == [T0, T0 + 60]
