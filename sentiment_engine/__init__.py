"""
Sentiment Engine

Deterministic, fixed-point sentiment classification over integer token
ids. Every computation is integer arithmetic at scale 1000, so replicas
that apply the same calls in the same order hold byte-identical state.

LAYER STRUCTURE:
================

1. CONTRACTS (contracts/)
   - Constants, enums, error codes, immutable result and event records

2. VOCABULARY & EMBEDDING STORE (vocabulary/)
   - Token metadata, semantic/context embeddings, class templates
   - MUST NOT: apply part of a batch

3. CLASSIFICATION CORE (core/)
   - Co-occurrence, similarity, domain detection and modifiers, user
     context adaptation, and the orchestrator that runs one call
   - MUST NOT: read the clock, check permissions, persist data

4. TEMPORAL (temporal/)
   - Injectable clock, hash-chained call journal, deterministic replay

5. STORAGE (storage/)
   - Verbatim save/load of the data model, verified by state hash

6. OBSERVABILITY (observability/)
   - Notifications, audit log, metrics; never read by the core

7. FACADE (engine.py) and HTTP API (api/)
   - Capability and suspension checks, serialization, wiring
"""

from .contracts.base import (
    CallerId, Category, Domain, EngineError, ErrorCode, IntegrityError,
    PermissionDeniedError, Role, SentimentClass, SuspendedError, TokenFlag,
    ValidationError,
)
from .contracts.events import ClassificationResult
from .engine import EngineConfig, JournalConfig, SentimentEngine
from .temporal.clock import LogicalClock
from .temporal.replay import ReplayEngine, ReplayResult

__version__ = "0.1.0"

__all__ = [
    'SentimentEngine',
    'EngineConfig',
    'JournalConfig',
    'LogicalClock',
    'ReplayEngine',
    'ReplayResult',
    'ClassificationResult',
    'CallerId',
    'Category',
    'Domain',
    'Role',
    'SentimentClass',
    'TokenFlag',
    'ErrorCode',
    'EngineError',
    'ValidationError',
    'PermissionDeniedError',
    'SuspendedError',
    'IntegrityError',
]
