"""
Engine State
============

The single owned store for all shared mutable state: vocabulary,
co-occurrence matrix, domain model, user contexts and global statistics.

It is passed by reference to the orchestrator; there are no module-level
globals. Whoever holds an EngineState is responsible for serializing
access to it (see engine.SentimentEngine).
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Tuple
import copy
import hashlib

from .contracts.base import NUM_CLASSES, SentimentClass
from .core.cooccurrence import CooccurrenceTracker
from .core.domains import DomainModel
from .core.user_context import UserContextStore
from .vocabulary import VocabularyStore

STATE_FORMAT_VERSION = 1


@dataclass(frozen=True)
class GlobalStatistics:
    """Monotonic, never-reset counters."""
    total_classifications: int = 0
    class_distribution: Tuple[int, ...] = (0,) * NUM_CLASSES
    correct_predictions: int = 0  # reserved: no operation increments it

    def record(self, winner: SentimentClass) -> 'GlobalStatistics':
        distribution = list(self.class_distribution)
        distribution[winner] += 1
        return GlobalStatistics(
            total_classifications=self.total_classifications + 1,
            class_distribution=tuple(distribution),
            correct_predictions=self.correct_predictions,
        )

    def to_dict(self) -> dict:
        return {
            'total_classifications': self.total_classifications,
            'class_distribution': list(self.class_distribution),
            'correct_predictions': self.correct_predictions,
        }

    @staticmethod
    def from_dict(data: dict) -> 'GlobalStatistics':
        return GlobalStatistics(
            total_classifications=int(data['total_classifications']),
            class_distribution=tuple(int(c) for c in data['class_distribution']),
            correct_predictions=int(data['correct_predictions']),
        )


class EngineState:
    """
    Complete engine data model.

    GUARANTEES:
    ===========
    1. compute_hash() is a pure function of the data model
    2. to_dict() / from_dict() round-trip preserves the hash
    3. clone() produces a fully independent copy
    """

    def __init__(
        self,
        vocabulary: VocabularyStore = None,
        cooccurrence: CooccurrenceTracker = None,
        domains: DomainModel = None,
        users: UserContextStore = None,
        statistics: GlobalStatistics = None
    ):
        self.vocabulary = vocabulary if vocabulary is not None else VocabularyStore()
        self.cooccurrence = cooccurrence if cooccurrence is not None else CooccurrenceTracker()
        self.domains = domains if domains is not None else DomainModel()
        self.users = users if users is not None else UserContextStore()
        self.statistics = statistics if statistics is not None else GlobalStatistics()

    def compute_hash(self) -> str:
        """Deterministic hash over the full data model."""
        hasher = hashlib.sha256()
        hasher.update(f"v{STATE_FORMAT_VERSION}".encode())
        self.vocabulary.update_digest(hasher)
        self.cooccurrence.update_digest(hasher)
        self.domains.update_digest(hasher)
        self.users.update_digest(hasher)
        hasher.update(f"|stats:{sorted(self.statistics.to_dict().items())}".encode())
        return hasher.hexdigest()

    def clone(self) -> 'EngineState':
        return copy.deepcopy(self)

    def to_dict(self) -> dict:
        return {
            'format_version': STATE_FORMAT_VERSION,
            'vocabulary': self.vocabulary.to_dict(),
            'cooccurrence': self.cooccurrence.to_dict(),
            'domains': self.domains.to_dict(),
            'users': self.users.to_dict(),
            'statistics': self.statistics.to_dict(),
        }

    @staticmethod
    def from_dict(data: dict) -> 'EngineState':
        return EngineState(
            vocabulary=VocabularyStore.from_dict(data['vocabulary']),
            cooccurrence=CooccurrenceTracker.from_dict(data['cooccurrence']),
            domains=DomainModel.from_dict(data['domains']),
            users=UserContextStore.from_dict(data['users']),
            statistics=GlobalStatistics.from_dict(data['statistics']),
        )
