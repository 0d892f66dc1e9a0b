"""
Contracts shared by every layer of the sentiment engine.
"""

from .base import (
    SCALE, SEMANTIC_DIM, CONTEXT_DIM, NUM_CLASSES, NUM_CATEGORIES, NUM_DOMAINS,
    MAX_VOCAB_SIZE, MAX_INPUT_TOKENS, TOPIC_BUFFER_SIZE,
    SentimentClass, Category, Domain, TokenFlag, Role, CallerId,
    ErrorCode, Error, EngineError, ValidationError, PermissionDeniedError,
    SuspendedError, IntegrityError,
)
from .events import (
    ClassificationResult, ClassificationNotification,
    VocabularyUpdateNotification, AuditEventType, AuditLogEntry, MetricPoint,
)
from .temporal import JournalSequence, JournalEntry, canonical_json

__all__ = [
    'SCALE', 'SEMANTIC_DIM', 'CONTEXT_DIM', 'NUM_CLASSES', 'NUM_CATEGORIES',
    'NUM_DOMAINS', 'MAX_VOCAB_SIZE', 'MAX_INPUT_TOKENS', 'TOPIC_BUFFER_SIZE',
    'SentimentClass', 'Category', 'Domain', 'TokenFlag', 'Role', 'CallerId',
    'ErrorCode', 'Error', 'EngineError', 'ValidationError',
    'PermissionDeniedError', 'SuspendedError', 'IntegrityError',
    'ClassificationResult', 'ClassificationNotification',
    'VocabularyUpdateNotification', 'AuditEventType', 'AuditLogEntry',
    'MetricPoint', 'JournalSequence', 'JournalEntry', 'canonical_json',
]
