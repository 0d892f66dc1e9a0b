"""
Storage Layer tests: verified save/load of state and journal.
"""

import json

import pytest

from sentiment_engine.contracts.base import ErrorCode, IntegrityError, Role
from sentiment_engine.engine import EngineConfig, SentimentEngine
from sentiment_engine.storage import (
    FileStateStore, InMemoryStateStore, StorageConfig, create_state_store,
)
from sentiment_engine.temporal.clock import LogicalClock

from tests.fixtures import (
    ALICE, BOB, GOOD, MOVIE, OWNER, T0, TRAINER, columns, make_standard_engine,
    token,
)


def file_config(path) -> EngineConfig:
    return EngineConfig(storage=StorageConfig(backend_type="file", storage_dir=str(path)))


def populated_engine(**kwargs) -> SentimentEngine:
    engine = make_standard_engine(**kwargs)
    engine.classify_sentiment(ALICE, [GOOD, MOVIE])
    engine.grant_role(OWNER, BOB, Role.TRAINER)
    return engine


class TestCreateStateStore:

    def test_memory_default(self):
        assert isinstance(create_state_store(StorageConfig()), InMemoryStateStore)

    def test_file(self, tmp_path):
        store = create_state_store(StorageConfig(backend_type="file", storage_dir=str(tmp_path / "data")))
        assert isinstance(store, FileStateStore)
        assert (tmp_path / "data").is_dir()

    def test_file_requires_dir(self):
        with pytest.raises(ValueError):
            create_state_store(StorageConfig(backend_type="file"))

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            create_state_store(StorageConfig(backend_type="sqlite"))


class TestInMemoryStateStore:

    def test_nothing_saved(self):
        assert InMemoryStateStore().load() is None

    def test_round_trip(self):
        engine = populated_engine()
        store = InMemoryStateStore()
        saved_hash = store.save(engine.snapshot(), engine.journal)

        state, journal = store.load()
        assert saved_hash == engine.state_hash()
        assert state.compute_hash() == saved_hash
        assert journal.head_hash == engine.journal.head_hash


class TestFileStateStore:

    def test_round_trip(self, tmp_path):
        engine = populated_engine(config=file_config(tmp_path))
        saved_hash = engine.save()

        assert (tmp_path / "state.json").exists()
        assert len((tmp_path / "journal.jsonl").read_text().splitlines()) == 6

        state, journal = FileStateStore(str(tmp_path)).load()
        assert state.compute_hash() == saved_hash
        assert len(journal) == 6

    def test_open_restores_engine(self, tmp_path):
        engine = populated_engine(config=file_config(tmp_path))
        engine.pause(OWNER)
        engine.save()

        reopened = SentimentEngine.open(OWNER, [TRAINER], config=file_config(tmp_path),
                                        clock=LogicalClock.manual(T0 + 60))

        assert reopened.state_hash() == engine.state_hash()
        assert reopened.get_user_context(ALICE) == engine.get_user_context(ALICE)
        assert reopened.is_paused
        # Grants are re-derived from the journal
        assert reopened.access.has_role(BOB, Role.TRAINER)

        reopened.unpause(OWNER)
        assert reopened.set_vocabulary(BOB, **columns([token(9, "new")])) == 1
        assert len(reopened.journal) == 9

    def test_open_without_snapshot_is_fresh(self, tmp_path):
        engine = SentimentEngine.open(OWNER, config=file_config(tmp_path), clock=LogicalClock.manual(T0))
        assert engine.vocab_size == 0
        assert len(engine.journal) == 0

    def test_tampered_state_detected(self, tmp_path):
        engine = populated_engine(config=file_config(tmp_path))
        engine.save()

        state_file = tmp_path / "state.json"
        document = json.loads(state_file.read_text())
        document['state']['statistics']['total_classifications'] = 99
        state_file.write_text(json.dumps(document))

        with pytest.raises(IntegrityError) as exc_info:
            SentimentEngine.open(OWNER, config=file_config(tmp_path))
        assert exc_info.value.code == ErrorCode.STATE_CORRUPTION

    def test_unreadable_state_detected(self, tmp_path):
        (tmp_path / "state.json").write_text("{not json")
        with pytest.raises(IntegrityError) as exc_info:
            FileStateStore(str(tmp_path)).load()
        assert exc_info.value.code == ErrorCode.STATE_CORRUPTION

    def test_unsupported_format_version(self, tmp_path):
        engine = populated_engine(config=file_config(tmp_path))
        engine.save()

        state_file = tmp_path / "state.json"
        document = json.loads(state_file.read_text())
        document['format_version'] = 2
        state_file.write_text(json.dumps(document))

        with pytest.raises(IntegrityError) as exc_info:
            FileStateStore(str(tmp_path)).load()
        assert exc_info.value.code == ErrorCode.STATE_CORRUPTION

    def test_tampered_journal_detected(self, tmp_path):
        engine = populated_engine(config=file_config(tmp_path))
        engine.save()

        journal_file = tmp_path / "journal.jsonl"
        lines = journal_file.read_text().splitlines()
        entry = json.loads(lines[4])
        entry['payload']['tokens'] = [GOOD]
        lines[4] = json.dumps(entry)
        journal_file.write_text("\n".join(lines) + "\n")

        with pytest.raises(IntegrityError) as exc_info:
            FileStateStore(str(tmp_path)).load()
        assert exc_info.value.code == ErrorCode.JOURNAL_CORRUPTION

    def test_truncated_journal_detected(self, tmp_path):
        engine = populated_engine(config=file_config(tmp_path))
        engine.save()

        journal_file = tmp_path / "journal.jsonl"
        lines = journal_file.read_text().splitlines()
        journal_file.write_text("\n".join(lines[:-1]) + "\n")

        with pytest.raises(IntegrityError) as exc_info:
            FileStateStore(str(tmp_path)).load()
        assert exc_info.value.code == ErrorCode.JOURNAL_CORRUPTION

    def test_journal_ahead_of_snapshot_cut_back_to_head(self, tmp_path):
        engine = populated_engine(config=file_config(tmp_path))
        saved_hash = engine.save()
        saved_head = engine.journal.head_hash

        # A later save that wrote the journal but not the snapshot
        engine.classify_sentiment(BOB, [GOOD])
        with open(tmp_path / "journal.jsonl", "w") as f:
            for entry in engine.journal.entries():
                f.write(json.dumps(entry.to_dict()) + "\n")

        state, journal = FileStateStore(str(tmp_path)).load()
        assert state.compute_hash() == saved_hash
        assert len(journal) == 6
        assert journal.head_hash == saved_head

        reopened = SentimentEngine.open(OWNER, [TRAINER], config=file_config(tmp_path),
                                        clock=LogicalClock.manual(T0 + 60))
        assert reopened.state_hash() == saved_hash
        assert reopened.get_user_context(BOB) is None

    def test_garbled_journal_line(self, tmp_path):
        engine = populated_engine(config=file_config(tmp_path))
        engine.save()

        with open(tmp_path / "journal.jsonl", "a") as f:
            f.write("garbage\n")

        with pytest.raises(IntegrityError) as exc_info:
            FileStateStore(str(tmp_path)).load()
        assert exc_info.value.code == ErrorCode.JOURNAL_CORRUPTION

    def test_save_is_audited(self, tmp_path):
        engine = populated_engine(config=file_config(tmp_path))
        engine.save()
        [entry] = engine.observability.get_layer_log('storage')
        assert entry.action == 'save'
        assert entry.metadata_dict()['journal_length'] == '6'
