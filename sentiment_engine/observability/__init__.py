"""
Observability & Audit Layer

RESPONSIBILITY: Notifications, audit logging, metrics
ALLOWED INPUTS: Immutable records produced by the engine facade
OUTPUTS: Notification stream, AuditLog, Metrics

WHAT THIS LAYER MUST NOT DO:
============================
- Modify engine state
- Feed anything back into classification
- Filter or reinterpret events (only record them)

BOUNDARY ENFORCEMENT:
=====================
- Receives immutable records only
- Subscribers are called synchronously after the engine state has been
  committed; a failing subscriber is recorded as a SUBSCRIBER_FAILED error
  and never fails the call that published
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple, Union
import hashlib

from ..contracts.base import Error, ErrorCode
from ..contracts.events import (
    AuditEventType, AuditLogEntry, ClassificationNotification, MetricPoint,
    VocabularyUpdateNotification,
)

Notification = Union[ClassificationNotification, VocabularyUpdateNotification]
Subscriber = Callable[[Notification], None]
FailureHandler = Callable[[Subscriber, Notification, Exception], None]
TimeSource = Callable[[], int]

LAYERS = ('engine', 'vocabulary', 'classifier', 'journal', 'storage')


# =============================================================================
# NOTIFICATION BUS
# =============================================================================

class NotificationBus:
    """
    Append-only notification stream with synchronous subscribers.

    Retains at most max_retained notifications in memory (oldest dropped);
    subscribers see every notification regardless. With an on_failure
    handler, a raising subscriber is reported to it and the remaining
    subscribers still run; without one the exception propagates.
    """

    def __init__(self, max_retained: int = 10000, on_failure: Optional[FailureHandler] = None):
        self._max_retained = max_retained
        self._on_failure = on_failure
        self._failures = 0
        self._notifications: List[Notification] = []
        self._subscribers: List[Subscriber] = []
        self._published = 0

    def subscribe(self, subscriber: Subscriber) -> None:
        self._subscribers.append(subscriber)

    def unsubscribe(self, subscriber: Subscriber) -> None:
        self._subscribers.remove(subscriber)

    def publish(self, notification: Notification) -> None:
        self._notifications.append(notification)
        if len(self._notifications) > self._max_retained:
            del self._notifications[0]
        self._published += 1
        for subscriber in list(self._subscribers):
            try:
                subscriber(notification)
            except Exception as exc:
                if self._on_failure is None:
                    raise
                self._failures += 1
                self._on_failure(subscriber, notification, exc)

    def history(self, kind: Optional[type] = None) -> List[Notification]:
        if kind is None:
            return list(self._notifications)
        return [n for n in self._notifications if isinstance(n, kind)]

    @property
    def published_count(self) -> int:
        return self._published

    @property
    def failure_count(self) -> int:
        return self._failures


# =============================================================================
# LOG COLLECTORS (One per layer)
# =============================================================================

class LogCollector:
    """
    Append-only audit entry collector for one layer.
    """

    def __init__(self, layer_name: str):
        self._layer_name = layer_name
        self._entries: List[AuditLogEntry] = []

    def collect(self, entry: AuditLogEntry):
        self._entries.append(entry)

    def get_entries(self, event_type: Optional[AuditEventType] = None) -> List[AuditLogEntry]:
        if event_type:
            return [e for e in self._entries if e.event_type == event_type]
        return list(self._entries)

    @property
    def layer_name(self) -> str:
        return self._layer_name

    @property
    def entry_count(self) -> int:
        return len(self._entries)


# =============================================================================
# METRICS COLLECTOR
# =============================================================================

class MetricType(Enum):
    """Types of metrics collected."""
    COUNTER = "counter"
    GAUGE = "gauge"
    HISTOGRAM = "histogram"
    TIMING = "timing"


@dataclass
class MetricDefinition:
    """Definition of a metric to collect."""
    name: str
    metric_type: MetricType
    description: str
    labels: Tuple[str, ...] = field(default_factory=tuple)


class MetricsCollector:
    """
    Append-only metric time series.
    """

    def __init__(self, time_source: TimeSource):
        self._time_source = time_source
        self._metrics: Dict[str, List[MetricPoint]] = {}
        self._definitions: Dict[str, MetricDefinition] = {}
        self._register_default_metrics()

    def _register_default_metrics(self):
        defaults = [
            MetricDefinition(
                name="classifications_total",
                metric_type=MetricType.COUNTER,
                description="Committed classification calls",
                labels=("class", "domain")
            ),
            MetricDefinition(
                name="classification_confidence",
                metric_type=MetricType.HISTOGRAM,
                description="Raw (unclamped) confidence of committed classifications"
            ),
            MetricDefinition(
                name="classification_duration_ms",
                metric_type=MetricType.TIMING,
                description="Wall time spent inside one classification call"
            ),
            MetricDefinition(
                name="vocabulary_updates_total",
                metric_type=MetricType.COUNTER,
                description="Tokens written by vocabulary upserts"
            ),
            MetricDefinition(
                name="engine_errors_total",
                metric_type=MetricType.COUNTER,
                description="Rejected calls by error code",
                labels=("error_code", "operation")
            ),
        ]
        for definition in defaults:
            self.register_metric(definition)

    def register_metric(self, definition: MetricDefinition):
        self._definitions[definition.name] = definition
        if definition.name not in self._metrics:
            self._metrics[definition.name] = []

    def definition(self, metric_name: str) -> Optional[MetricDefinition]:
        return self._definitions.get(metric_name)

    def record(self, metric_name: str, value: float, labels: Optional[Dict[str, str]] = None):
        if metric_name not in self._metrics:
            self._metrics[metric_name] = []
        self._metrics[metric_name].append(MetricPoint(
            metric_name=metric_name,
            value=value,
            timestamp=self._time_source(),
            labels=tuple(sorted(labels.items())) if labels else ()
        ))

    def get_metric(self, metric_name: str) -> List[MetricPoint]:
        return list(self._metrics.get(metric_name, []))

    def get_latest(self, metric_name: str) -> Optional[MetricPoint]:
        points = self._metrics.get(metric_name, [])
        return points[-1] if points else None

    def compute_aggregates(self, metric_name: str) -> Dict[str, float]:
        """Compute aggregate statistics for a metric."""
        values = [p.value for p in self._metrics.get(metric_name, [])]
        if not values:
            return {}
        return {
            'count': len(values),
            'sum': sum(values),
            'min': min(values),
            'max': max(values),
            'avg': sum(values) / len(values),
        }


# =============================================================================
# OBSERVABILITY ENGINE (Orchestrates all observability)
# =============================================================================

@dataclass
class ObservabilityConfig:
    """Configuration for observability engine."""
    enable_metrics: bool = True
    enable_audit: bool = True
    max_notifications: int = 10000


class ObservabilityEngine:
    """
    Central Observability Engine.

    BOUNDARY ENFORCEMENT:
    - ONLY observes, never modifies
    - Provides read-only access to collected data
    """

    def __init__(self, time_source: TimeSource, config: Optional[ObservabilityConfig] = None):
        self._config = config or ObservabilityConfig()
        self._time_source = time_source
        self._sequence = 0
        self._entries: List[AuditLogEntry] = []
        self._collectors: Dict[str, LogCollector] = {name: LogCollector(name) for name in LAYERS}
        self._metrics = MetricsCollector(time_source) if self._config.enable_metrics else None
        self._notifications = NotificationBus(self._config.max_notifications, self._subscriber_failed)

    @property
    def notifications(self) -> NotificationBus:
        return self._notifications

    def log_audit(
        self,
        layer: str,
        action: str,
        event_type: AuditEventType = AuditEventType.SYSTEM,
        entity_id: str = "",
        **metadata
    ) -> Optional[AuditLogEntry]:
        """Record an audit entry for a layer."""
        if not self._config.enable_audit:
            return None
        self._sequence += 1
        entry_id = hashlib.sha256(
            f"{layer}|{action}|{self._sequence}".encode()
        ).hexdigest()[:16]
        entry = AuditLogEntry(
            entry_id=f"audit_{entry_id}",
            event_type=event_type,
            timestamp=self._time_source(),
            layer=layer,
            action=action,
            entity_id=entity_id,
            metadata=tuple((k, str(v)) for k, v in sorted(metadata.items()))
        )
        self._collectors[layer].collect(entry)
        self._entries.append(entry)
        return entry

    def log_error(self, layer: str, operation: str, error: Error, entity_id: str = "") -> None:
        """Record a rejected call in the audit log and the error counter."""
        self.log_audit(
            layer,
            operation,
            event_type=AuditEventType.ERROR,
            entity_id=entity_id,
            error_code=error.code.name,
            message=error.message,
            **dict(error.context)
        )
        self.collect_metric(
            "engine_errors_total", 1.0,
            {"error_code": error.code.name, "operation": operation}
        )

    def _subscriber_failed(self, subscriber: Subscriber, notification: Notification, exc: Exception) -> None:
        who = getattr(notification, 'caller', None) or getattr(notification, 'trainer', None)
        error = Error.create(
            ErrorCode.SUBSCRIBER_FAILED,
            f"subscriber raised {type(exc).__name__}: {exc}",
            subscriber=getattr(subscriber, '__qualname__', repr(subscriber)),
            notification=type(notification).__name__
        )
        self.log_error('engine', 'notify', error, entity_id=who.value if who else "")

    def collect_metric(self, metric_name: str, value: float, labels: Optional[Dict[str, str]] = None):
        if self._metrics:
            self._metrics.record(metric_name, value, labels)

    def get_metrics(self) -> Optional[MetricsCollector]:
        return self._metrics

    def get_layer_log(self, layer_name: str) -> List[AuditLogEntry]:
        collector = self._collectors.get(layer_name)
        if not collector:
            return []
        return collector.get_entries()

    def get_unified_log(self, layers: Optional[List[str]] = None) -> List[AuditLogEntry]:
        """Entries from all (or the given) layers in recording order."""
        selected = set(layers or LAYERS)
        return [e for e in self._entries if e.layer in selected]

    def generate_audit_report(self) -> Dict:
        entries = self.get_unified_log()
        by_layer: Dict[str, int] = {}
        by_type: Dict[str, int] = {}
        for entry in entries:
            by_layer[entry.layer] = by_layer.get(entry.layer, 0) + 1
            by_type[entry.event_type.value] = by_type.get(entry.event_type.value, 0) + 1
        return {
            'total_entries': len(entries),
            'by_layer': by_layer,
            'by_event_type': by_type,
            'notifications_published': self._notifications.published_count,
            'generated_at': self._time_source(),
        }
