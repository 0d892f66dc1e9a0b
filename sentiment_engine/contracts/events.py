"""
Event and Result Contracts

Immutable records that cross layer boundaries:
- classification results returned to callers
- notifications handed to external monitoring
- audit entries and metric points collected by observability

None of these types carry behavior that mutates engine state.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Tuple

from .base import CallerId, Domain, SentimentClass


# =============================================================================
# CLASSIFICATION CONTRACTS
# =============================================================================

@dataclass(frozen=True)
class ClassificationResult:
    """
    Outcome of one classification call.

    confidence is the literal output of the shift-and-normalize formula
    and is NOT bounded to [0, 1000].
    """
    sentiment_class: SentimentClass
    confidence: int
    domain: Domain

    def as_tuple(self) -> Tuple[int, int, int]:
        return (int(self.sentiment_class), self.confidence, int(self.domain))


# =============================================================================
# NOTIFICATIONS (consumed by external monitoring, never by the core)
# =============================================================================

@dataclass(frozen=True)
class ClassificationNotification:
    """Emitted on every successful classification."""
    caller: CallerId
    sentiment_class: SentimentClass
    confidence: int
    input_text: str
    domain: Domain
    timestamp: int


@dataclass(frozen=True)
class VocabularyUpdateNotification:
    """Emitted on every successful vocabulary upsert."""
    trainer: CallerId
    count: int
    timestamp: int


# =============================================================================
# OBSERVABILITY LAYER CONTRACTS
# =============================================================================

class AuditEventType(Enum):
    """Explicit audit event types."""
    CLASSIFICATION = "classification"
    VOCABULARY = "vocabulary"
    STATE_OVERWRITE = "state_overwrite"
    ACCESS = "access"
    PERSISTENCE = "persistence"
    ERROR = "error"
    SYSTEM = "system"


@dataclass(frozen=True)
class AuditLogEntry:
    """Immutable audit log entry."""
    entry_id: str
    event_type: AuditEventType
    timestamp: int
    layer: str
    action: str
    entity_id: str = ""
    metadata: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    def metadata_dict(self) -> dict:
        return dict(self.metadata)


@dataclass(frozen=True)
class MetricPoint:
    """Immutable metric data point."""
    metric_name: str
    value: float
    timestamp: int
    labels: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)
