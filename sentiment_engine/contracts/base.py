"""
Base Contracts and Shared Types

These are the foundational types used across all layers.
All types here are IMMUTABLE and represent pure data.

BOUNDARY ENFORCEMENT:
=====================
- This module is READ-ONLY from all layers
- Numeric constants are part of the replication contract: every replica
  must use the same values or results diverge
- Exceptions carry an immutable Error record so failures can be stored,
  audited and compared like any other data
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, IntEnum, IntFlag, auto
from typing import Tuple


# =============================================================================
# FIXED-POINT AND CAPACITY CONSTANTS
# =============================================================================

SCALE = 1000                    # fixed-point scale factor
SEMANTIC_DIM = 24
CONTEXT_DIM = 8
NUM_CLASSES = 7
NUM_CATEGORIES = 9
NUM_DOMAINS = 10
NEUTRAL_CLASS = 3

MAX_VOCAB_SIZE = 1024
MAX_INPUT_TOKENS = 16
TOPIC_BUFFER_SIZE = 3

MIN_TOKEN_WEIGHT = 1
MAX_TOKEN_WEIGHT = 10
MAX_FLAGS = 0xFF

COOCCURRENCE_MAX = 65535
HISTORY_MAX = 255
INTERACTIONS_MAX = 65535
COUNTER_MAX = 2 ** 32 - 1

EMBEDDING_VALUE_LIMIT = 1000 * SCALE
DOMAIN_BIAS_LIMIT = 100
DOMAIN_INTENSITY_MAX = 100
DOMAIN_STRENGTH_MAX = 1000
NEUTRAL_INTENSITY = 1

RECENCY_WINDOW_SECONDS = 3600


# =============================================================================
# CATEGORICAL TYPES
# =============================================================================

class SentimentClass(IntEnum):
    """Seven ordered sentiment classes, very negative to very positive."""
    VERY_NEGATIVE = 0
    NEGATIVE = 1
    SLIGHTLY_NEGATIVE = 2
    NEUTRAL = 3
    SLIGHTLY_POSITIVE = 4
    POSITIVE = 5
    VERY_POSITIVE = 6

    @property
    def label(self) -> str:
        return self.name.lower()


class Category(IntEnum):
    """Primary/secondary lexical category of a token."""
    GENERAL = 0
    EMOTION = 1
    EVALUATION = 2
    JUDGMENT = 3
    INTENSIFIER = 4
    NEGATION = 5
    DESCRIPTOR = 6
    ACTION = 7
    ENTITY = 8


class Domain(IntEnum):
    """Topic domains. GENERAL is the identity domain."""
    GENERAL = 0
    TECHNOLOGY = 1
    FINANCE = 2
    HEALTH = 3
    POLITICS = 4
    SPORTS = 5
    ENTERTAINMENT = 6
    SCIENCE = 7
    TRAVEL = 8
    FOOD = 9

    @property
    def label(self) -> str:
        return self.name.lower()


class TokenFlag(IntFlag):
    """Non-exclusive token properties."""
    NONE = 0
    POSITIVE = 1
    NEGATIVE = 2
    EMOTIONAL = 4
    DOMAIN_SPECIFIC = 8
    INTENSE = 16
    AMBIGUOUS = 32
    SARCASTIC = 64
    CONTEXT_DEPENDENT = 128


class Role(Enum):
    """Capabilities checked by the access collaborator."""
    ADMIN = "admin"
    TRAINER = "trainer"


# =============================================================================
# IDENTITY TYPES
# =============================================================================

@dataclass(frozen=True)
class CallerId:
    """Opaque caller identity. The core never inspects it beyond equality."""
    value: str

    def __post_init__(self):
        if not self.value or not isinstance(self.value, str):
            raise ValueError("CallerId value must be a non-empty string")

    def __str__(self) -> str:
        return self.value


# =============================================================================
# ERROR STATES (Explicit, never silent)
# =============================================================================

class ErrorCode(Enum):
    """
    Explicit error codes for deterministic error handling.
    Every abort path maps to exactly one code.
    """
    # Classification input
    EMPTY_INPUT = auto()
    INPUT_TOO_LONG = auto()
    VOCABULARY_EMPTY = auto()
    TOKEN_OUT_OF_RANGE = auto()

    # Vocabulary / state overwrite
    BATCH_LENGTH_MISMATCH = auto()
    BATCH_TOO_LARGE = auto()
    WEIGHT_OUT_OF_RANGE = auto()
    CONTEXT_INFLUENCE_OUT_OF_RANGE = auto()
    DOMAIN_OUT_OF_RANGE = auto()
    CATEGORY_OUT_OF_RANGE = auto()
    FLAGS_OUT_OF_RANGE = auto()
    DOMAIN_STRENGTH_OUT_OF_RANGE = auto()
    EMBEDDING_SHAPE_MISMATCH = auto()
    EMBEDDING_VALUE_OUT_OF_RANGE = auto()
    CLASS_OUT_OF_RANGE = auto()
    BIAS_OUT_OF_RANGE = auto()
    INTENSITY_OUT_OF_RANGE = auto()

    # Entry-point collaborators
    PERMISSION_DENIED = auto()
    SYSTEM_SUSPENDED = auto()

    # Notification delivery
    SUBSCRIBER_FAILED = auto()

    # Integrity
    JOURNAL_CORRUPTION = auto()
    STATE_CORRUPTION = auto()
    REPLAY_DIVERGENCE = auto()


@dataclass(frozen=True)
class Error:
    """
    Immutable error representation with full context.
    Errors are data: they can be stored, audited and compared.
    """
    code: ErrorCode
    message: str
    timestamp: datetime
    context: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    @staticmethod
    def create(code: ErrorCode, message: str, **context) -> Error:
        return Error(
            code=code,
            message=message,
            timestamp=datetime.now(timezone.utc),
            context=tuple((k, str(v)) for k, v in sorted(context.items()))
        )

    def context_dict(self) -> dict:
        return dict(self.context)


class EngineError(Exception):
    """Base exception. Always carries the Error record that caused it."""

    def __init__(self, error: Error):
        super().__init__(f"{error.code.name}: {error.message}")
        self.error = error

    @property
    def code(self) -> ErrorCode:
        return self.error.code

    @classmethod
    def of(cls, code: ErrorCode, message: str, **context) -> EngineError:
        return cls(Error.create(code, message, **context))


class ValidationError(EngineError):
    """Input violated a numeric-range or shape constraint. Nothing was changed."""


class PermissionDeniedError(EngineError):
    """Caller lacks the capability required by a mutating entry point."""


class SuspendedError(EngineError):
    """The engine is paused."""


class IntegrityError(EngineError):
    """Journal, snapshot or replay verification failed."""


def require(condition: bool, code: ErrorCode, message: str, **context) -> None:
    """Raise ValidationError unless condition holds."""
    if not condition:
        raise ValidationError.of(code, message, **context)
