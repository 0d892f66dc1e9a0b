"""
Engine Facade
=============

The unified interface over every layer of the sentiment engine.

DESIGN PRINCIPLES:
==================
1. One serialization point: every call, read or write, runs under a
   single re-entrant lock, so calls appear atomic and totally ordered
2. Entry-point checks (capability, suspension) run before any state is
   read or written
3. Every successful mutating call is appended to the call journal; every
   rejected call is audited and counted, then re-raised unchanged
4. Observability records what happened and never feeds back into state
"""

from __future__ import annotations
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator, Optional, Sequence
import os
import threading
import time

from .access import AccessPolicy, SuspensionSwitch
from .contracts.base import (
    NUM_CLASSES, CallerId, ErrorCode, EngineError, Role, SentimentClass,
    require,
)
from .contracts.events import (
    AuditEventType, ClassificationNotification, ClassificationResult,
    VocabularyUpdateNotification,
)
from .contracts.temporal import JournalEntry
from .core.orchestrator import ClassificationOrchestrator, ClassifierConfig
from .core.user_context import UserContext
from .observability import ObservabilityConfig, ObservabilityEngine, Subscriber
from .state import EngineState
from .storage import StateStore, StorageConfig, create_state_store
from .temporal.clock import LogicalClock
from .temporal.journal import CallJournal
from .vocabulary import TokenMetadata

STORAGE_DIR_ENV = "SENTIMENT_ENGINE_STORAGE_DIR"
STORAGE_BACKEND_ENV = "SENTIMENT_ENGINE_STORAGE_BACKEND"

# Layer each operation is audited under
OPERATION_LAYERS = {
    'classify_sentiment': 'classifier',
    'set_vocabulary': 'vocabulary',
    'set_embeddings': 'vocabulary',
    'set_class_weights': 'vocabulary',
    'set_domain_modifier': 'classifier',
    'pause': 'engine',
    'unpause': 'engine',
    'grant_role': 'engine',
    'revoke_role': 'engine',
    'class_distribution': 'engine',
    'save': 'storage',
    'load': 'storage',
}

ACCESS_OPERATIONS = ('pause', 'unpause', 'grant_role', 'revoke_role')


@dataclass
class JournalConfig:
    """Configuration for the call journal."""
    enabled: bool = True
    # Store the post-call state hash in each entry's result so replay can
    # pinpoint the first divergent call.
    record_state_hash: bool = True


@dataclass
class EngineConfig:
    """Unified configuration for the entire engine."""
    classifier: ClassifierConfig = None
    observability: ObservabilityConfig = None
    storage: StorageConfig = None
    journal: JournalConfig = None

    def __post_init__(self):
        self.classifier = self.classifier or ClassifierConfig()
        self.observability = self.observability or ObservabilityConfig()
        self.storage = self.storage or StorageConfig()
        self.journal = self.journal or JournalConfig()

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> 'EngineConfig':
        """
        Build a config from environment variables.

        SENTIMENT_ENGINE_STORAGE_DIR selects file storage in that directory
        unless SENTIMENT_ENGINE_STORAGE_BACKEND says otherwise.
        """
        env = os.environ if environ is None else environ
        storage_dir = env.get(STORAGE_DIR_ENV) or None
        backend_type = env.get(STORAGE_BACKEND_ENV) or ("file" if storage_dir else "memory")
        return cls(storage=StorageConfig(backend_type=backend_type, storage_dir=storage_dir))


class SentimentEngine:
    """
    Sentiment classification engine.

    LAYER FLOW:
    ===========
    1. Access: capability and suspension checks
    2. Orchestrator: validate -> pre-update -> score -> decide -> commit
    3. Journal: append the committed call
    4. Observability: audit, metrics, notifications

    NO CALL BYPASSES THIS FLOW.
    """

    def __init__(
        self,
        owner: CallerId,
        trainers: Optional[Sequence[CallerId]] = None,
        config: Optional[EngineConfig] = None,
        clock: Optional[LogicalClock] = None,
        state: Optional[EngineState] = None,
        journal: Optional[CallJournal] = None,
        store: Optional[StateStore] = None
    ):
        self._config = config or EngineConfig()
        self._clock = clock or LogicalClock.live()
        self._lock = threading.RLock()

        self._access = AccessPolicy(owner, trainers)
        self._suspension = SuspensionSwitch()
        self._state = state if state is not None else EngineState()
        self._orchestrator = ClassificationOrchestrator(self._state, self._config.classifier)
        self._journal = journal if journal is not None else CallJournal()
        self._store = store
        self._observability = ObservabilityEngine(self._clock.peek, self._config.observability)

        if journal is not None:
            self._restore_access(journal)

    # =========================================================================
    # COLLABORATORS
    # =========================================================================

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def clock(self) -> LogicalClock:
        return self._clock

    @property
    def journal(self) -> CallJournal:
        return self._journal

    @property
    def observability(self) -> ObservabilityEngine:
        return self._observability

    @property
    def access(self) -> AccessPolicy:
        return self._access

    def subscribe(self, subscriber: Subscriber) -> None:
        """Register a synchronous notification subscriber."""
        self._observability.notifications.subscribe(subscriber)

    @contextmanager
    def _guarded(self, operation: str, caller: Optional[CallerId] = None) -> Iterator[None]:
        """Serialize the call; audit and count any EngineError, then re-raise."""
        with self._lock:
            try:
                yield
            except EngineError as exc:
                self._observability.log_error(
                    OPERATION_LAYERS.get(operation, 'engine'),
                    operation,
                    exc.error,
                    entity_id=caller.value if caller else ""
                )
                raise

    def _record(self, operation: str, caller: CallerId, now: int, payload: dict, result: dict) -> Optional[JournalEntry]:
        if not self._config.journal.enabled:
            return None
        if self._config.journal.record_state_hash:
            result = dict(result, state_hash=self._state.compute_hash())
        return self._journal.append(operation, caller.value, now, payload, result)

    # =========================================================================
    # CLASSIFICATION
    # =========================================================================

    def classify_sentiment(self, caller: CallerId, token_ids: Sequence[int]) -> ClassificationResult:
        """
        Classify a sequence of token ids for a caller.

        Open to every caller; rejected while paused. On any error nothing
        has changed.
        """
        with self._guarded('classify_sentiment', caller):
            self._suspension.require_active('classify_sentiment')
            started = time.perf_counter()
            now = self._clock.now()

            outcome = self._orchestrator.classify(caller, token_ids, now)
            result = outcome.result
            tokens = [int(t) for t in token_ids]

            self._record(
                'classify_sentiment', caller, now,
                {'tokens': tokens},
                {
                    'sentiment_class': int(result.sentiment_class),
                    'confidence': result.confidence,
                    'domain': int(result.domain),
                }
            )
            self._observability.log_audit(
                'classifier', 'classify',
                event_type=AuditEventType.CLASSIFICATION,
                entity_id=caller.value,
                sentiment_class=result.sentiment_class.label,
                confidence=result.confidence,
                domain=result.domain.label,
                token_count=len(tokens)
            )
            self._observability.collect_metric(
                "classifications_total", 1.0,
                {"class": result.sentiment_class.label, "domain": result.domain.label}
            )
            self._observability.collect_metric("classification_confidence", float(result.confidence))
            self._observability.collect_metric(
                "classification_duration_ms", (time.perf_counter() - started) * 1000.0
            )
            self._observability.notifications.publish(ClassificationNotification(
                caller=caller,
                sentiment_class=result.sentiment_class,
                confidence=result.confidence,
                input_text=outcome.input_text,
                domain=result.domain,
                timestamp=now
            ))
            return result

    # =========================================================================
    # TRAINER OPERATIONS
    # =========================================================================

    def set_vocabulary(
        self,
        trainer: CallerId,
        token_ids: Sequence[int],
        words: Sequence[str],
        sentiments: Sequence[int],
        flags: Sequence[int],
        categories: Sequence[int],
        weights: Sequence[int],
        domain_relevance: Sequence[int],
        secondary_categories: Sequence[int],
        context_influence: Sequence[int],
        domain_strengths: Optional[Sequence[int]] = None
    ) -> int:
        """
        Bulk upsert of token metadata. All-or-nothing.

        Returns the number of entries written.
        """
        with self._guarded('set_vocabulary', trainer):
            self._access.require_role(trainer, Role.TRAINER)
            self._suspension.require_active('set_vocabulary')
            now = self._clock.now()

            count = self._state.vocabulary.set_vocabulary(
                token_ids, words, sentiments, flags, categories, weights,
                domain_relevance, secondary_categories, context_influence,
                domain_strengths
            )

            self._record('set_vocabulary', trainer, now, {
                'token_ids': [int(v) for v in token_ids],
                'words': [str(w) for w in words],
                'sentiments': [int(v) for v in sentiments],
                'flags': [int(v) for v in flags],
                'categories': [int(v) for v in categories],
                'weights': [int(v) for v in weights],
                'domain_relevance': [int(v) for v in domain_relevance],
                'secondary_categories': [int(v) for v in secondary_categories],
                'context_influence': [int(v) for v in context_influence],
                'domain_strengths': (
                    [int(v) for v in domain_strengths] if domain_strengths is not None else None
                ),
            }, {'count': count, 'vocab_size': self._state.vocabulary.vocab_size})
            self._observability.log_audit(
                'vocabulary', 'set_vocabulary',
                event_type=AuditEventType.VOCABULARY,
                entity_id=trainer.value,
                count=count,
                vocab_size=self._state.vocabulary.vocab_size
            )
            self._observability.collect_metric("vocabulary_updates_total", float(count))
            self._observability.notifications.publish(VocabularyUpdateNotification(
                trainer=trainer,
                count=count,
                timestamp=now
            ))
            return count

    def set_embeddings(
        self,
        trainer: CallerId,
        token_ids: Sequence[int],
        semantic: Sequence[Sequence[int]],
        context: Sequence[Sequence[int]]
    ) -> int:
        """Overwrite semantic and context embeddings. All-or-nothing."""
        with self._guarded('set_embeddings', trainer):
            self._access.require_role(trainer, Role.TRAINER)
            self._suspension.require_active('set_embeddings')
            now = self._clock.now()

            count = self._state.vocabulary.set_embeddings(token_ids, semantic, context)

            self._record('set_embeddings', trainer, now, {
                'token_ids': [int(v) for v in token_ids],
                'semantic': [[int(v) for v in row] for row in semantic],
                'context': [[int(v) for v in row] for row in context],
            }, {'count': count})
            self._observability.log_audit(
                'vocabulary', 'set_embeddings',
                event_type=AuditEventType.STATE_OVERWRITE,
                entity_id=trainer.value,
                count=count
            )
            return count

    def set_class_weights(
        self,
        trainer: CallerId,
        class_id: int,
        semantic: Sequence[int],
        context: Sequence[int]
    ) -> None:
        """Overwrite one class's scoring template."""
        with self._guarded('set_class_weights', trainer):
            self._access.require_role(trainer, Role.TRAINER)
            self._suspension.require_active('set_class_weights')
            now = self._clock.now()

            self._state.vocabulary.set_class_weights(class_id, semantic, context)

            self._record('set_class_weights', trainer, now, {
                'class_id': int(class_id),
                'semantic': [int(v) for v in semantic],
                'context': [int(v) for v in context],
            }, {})
            self._observability.log_audit(
                'vocabulary', 'set_class_weights',
                event_type=AuditEventType.STATE_OVERWRITE,
                entity_id=trainer.value,
                class_id=int(class_id)
            )

    def set_domain_modifier(
        self,
        trainer: CallerId,
        domain: int,
        biases: Sequence[int],
        intensity: int
    ) -> None:
        """Overwrite one domain's class biases and intensity."""
        with self._guarded('set_domain_modifier', trainer):
            self._access.require_role(trainer, Role.TRAINER)
            self._suspension.require_active('set_domain_modifier')
            now = self._clock.now()

            modifier = self._state.domains.set_modifier(domain, biases, intensity)

            self._record('set_domain_modifier', trainer, now, {
                'domain': int(domain),
                'biases': list(modifier.biases),
                'intensity': modifier.intensity,
            }, {})
            self._observability.log_audit(
                'classifier', 'set_domain_modifier',
                event_type=AuditEventType.STATE_OVERWRITE,
                entity_id=trainer.value,
                domain=int(domain),
                intensity=modifier.intensity
            )

    # =========================================================================
    # ADMIN OPERATIONS
    # =========================================================================

    def pause(self, admin: CallerId) -> None:
        with self._guarded('pause', admin):
            self._access.require_role(admin, Role.ADMIN)
            now = self._clock.now()
            self._suspension.pause()
            self._record('pause', admin, now, {}, {})
            self._observability.log_audit(
                'engine', 'pause', event_type=AuditEventType.ACCESS, entity_id=admin.value
            )

    def unpause(self, admin: CallerId) -> None:
        with self._guarded('unpause', admin):
            self._access.require_role(admin, Role.ADMIN)
            now = self._clock.now()
            self._suspension.unpause()
            self._record('unpause', admin, now, {}, {})
            self._observability.log_audit(
                'engine', 'unpause', event_type=AuditEventType.ACCESS, entity_id=admin.value
            )

    def grant_role(self, admin: CallerId, caller: CallerId, role: Role) -> None:
        with self._guarded('grant_role', admin):
            self._access.require_role(admin, Role.ADMIN)
            now = self._clock.now()
            self._access.grant(admin, caller, role)
            self._record('grant_role', admin, now, {'caller': caller.value, 'role': role.value}, {})
            self._observability.log_audit(
                'engine', 'grant_role', event_type=AuditEventType.ACCESS,
                entity_id=admin.value, caller=caller.value, role=role.value
            )

    def revoke_role(self, admin: CallerId, caller: CallerId, role: Role) -> None:
        with self._guarded('revoke_role', admin):
            self._access.require_role(admin, Role.ADMIN)
            now = self._clock.now()
            self._access.revoke(admin, caller, role)
            self._record('revoke_role', admin, now, {'caller': caller.value, 'role': role.value}, {})
            self._observability.log_audit(
                'engine', 'revoke_role', event_type=AuditEventType.ACCESS,
                entity_id=admin.value, caller=caller.value, role=role.value
            )

    def _restore_access(self, journal: CallJournal) -> None:
        """Re-derive grants and the pause flag from journaled access calls."""
        for entry in journal.replay():
            if entry.operation not in ACCESS_OPERATIONS:
                continue
            admin = CallerId(entry.caller)
            if entry.operation == 'pause':
                self._suspension.pause()
            elif entry.operation == 'unpause':
                self._suspension.unpause()
            elif entry.operation == 'grant_role':
                payload = entry.payload
                self._access.grant(admin, CallerId(payload['caller']), Role(payload['role']))
            else:
                payload = entry.payload
                self._access.revoke(admin, CallerId(payload['caller']), Role(payload['role']))

    # =========================================================================
    # READ-ONLY ACCESSORS
    # =========================================================================

    @property
    def is_paused(self) -> bool:
        with self._lock:
            return self._suspension.paused

    @property
    def vocab_size(self) -> int:
        with self._lock:
            return self._state.vocabulary.vocab_size

    @property
    def total_classifications(self) -> int:
        with self._lock:
            return self._state.statistics.total_classifications

    @property
    def correct_predictions(self) -> int:
        """Reserved counter; no operation increments it."""
        with self._lock:
            return self._state.statistics.correct_predictions

    @property
    def phrase_count(self) -> int:
        with self._lock:
            return self._state.vocabulary.phrase_count

    def class_distribution(self, class_id: int) -> int:
        with self._guarded('class_distribution'):
            require(
                0 <= class_id < NUM_CLASSES,
                ErrorCode.CLASS_OUT_OF_RANGE,
                f"class id {class_id} outside [0, {NUM_CLASSES})",
                class_id=class_id
            )
            return self._state.statistics.class_distribution[class_id]

    def class_distributions(self) -> Dict[str, int]:
        with self._lock:
            return {
                SentimentClass(c).label: count
                for c, count in enumerate(self._state.statistics.class_distribution)
            }

    def get_word(self, token_id: int) -> str:
        with self._lock:
            return self._state.vocabulary.word(token_id)

    def get_token_id(self, word: str) -> Optional[int]:
        """Exact-match lookup only."""
        with self._lock:
            return self._state.vocabulary.token_id(word)

    def get_token_metadata(self, token_id: int) -> TokenMetadata:
        with self._lock:
            return self._state.vocabulary.metadata(token_id)

    def get_user_context(self, caller: CallerId) -> Optional[UserContext]:
        with self._lock:
            return self._state.users.find(caller)

    def cooccurrence(self, token_a: int, token_b: int) -> int:
        with self._lock:
            return self._state.cooccurrence.count(token_a, token_b)

    def similarity(self, token_a: int, token_b: int, include_context: bool = True) -> int:
        with self._lock:
            return self._orchestrator.similarity.similarity(token_a, token_b, include_context)

    def state_hash(self) -> str:
        with self._lock:
            return self._state.compute_hash()

    def snapshot(self) -> EngineState:
        """Independent copy of the full data model."""
        with self._lock:
            return self._state.clone()

    def stats(self) -> Dict:
        with self._lock:
            return {
                'vocab_size': self._state.vocabulary.vocab_size,
                'phrase_count': self._state.vocabulary.phrase_count,
                'total_classifications': self._state.statistics.total_classifications,
                'correct_predictions': self._state.statistics.correct_predictions,
                'class_distribution': self.class_distributions(),
                'users': len(self._state.users),
                'journal_length': len(self._journal),
                'paused': self._suspension.paused,
            }

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    def _state_store(self) -> StateStore:
        if self._store is None:
            self._store = create_state_store(self._config.storage)
        return self._store

    def save(self) -> str:
        """Persist state and journal. Returns the saved state hash."""
        with self._guarded('save'):
            state_hash = self._state_store().save(self._state, self._journal)
            self._observability.log_audit(
                'storage', 'save',
                event_type=AuditEventType.PERSISTENCE,
                state_hash=state_hash,
                journal_length=len(self._journal)
            )
            return state_hash

    @classmethod
    def open(
        cls,
        owner: CallerId,
        trainers: Optional[Sequence[CallerId]] = None,
        config: Optional[EngineConfig] = None,
        clock: Optional[LogicalClock] = None,
        store: Optional[StateStore] = None
    ) -> 'SentimentEngine':
        """
        Engine restored from the configured store, or a fresh engine when
        nothing has been saved yet. Raises IntegrityError on corruption.
        """
        config = config or EngineConfig()
        store = store or create_state_store(config.storage)
        loaded = store.load()
        if loaded is None:
            return cls(owner, trainers, config=config, clock=clock, store=store)
        state, journal = loaded
        engine = cls(owner, trainers, config=config, clock=clock, state=state, journal=journal, store=store)
        engine._observability.log_audit(
            'storage', 'load',
            event_type=AuditEventType.PERSISTENCE,
            state_hash=state.compute_hash(),
            journal_length=len(journal)
        )
        return engine
