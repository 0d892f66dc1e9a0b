"""
Test Fixtures

Explicit, hand-computed fixtures for deterministic testing.
No random generation: every number here is referenced by an assertion.
"""

from typing import Dict, List, Optional, Sequence

from sentiment_engine.contracts.base import (
    CONTEXT_DIM, SEMANTIC_DIM, CallerId, Category, Domain,
)
from sentiment_engine.engine import EngineConfig, SentimentEngine
from sentiment_engine.temporal.clock import LogicalClock
from sentiment_engine.vocabulary import VocabularyStore


# =============================================================================
# FIXED TIMESTAMPS (epoch seconds, deterministic)
# =============================================================================

T0 = 1767261600           # 2026-01-01 10:00:00 UTC
T1 = T0 + 300             # +5 minutes
T_STALE = T0 + 3600       # exactly one recency window later


# =============================================================================
# IDENTITIES
# =============================================================================

OWNER = CallerId("owner")
TRAINER = CallerId("trainer")
ALICE = CallerId("alice")
BOB = CallerId("bob")


# =============================================================================
# VECTORS
# =============================================================================

def unit_semantic(dim: int, value: int = 1000) -> List[int]:
    """24-dim vector with a single nonzero component."""
    row = [0] * SEMANTIC_DIM
    row[dim] = value
    return row


def zero_context() -> List[int]:
    return [0] * CONTEXT_DIM


# =============================================================================
# VOCABULARY BUILDERS
# =============================================================================

def token(
    token_id: int,
    word: str,
    sentiment: int = 0,
    flags: int = 0,
    category: int = Category.GENERAL,
    weight: int = 1,
    domain: int = Domain.GENERAL,
    secondary: int = Category.GENERAL,
    influence: int = 1,
    strength: int = 0,
) -> Dict:
    return {
        'token_id': token_id, 'word': word, 'sentiment': sentiment,
        'flags': flags, 'category': int(category), 'weight': weight,
        'domain': int(domain), 'secondary': int(secondary),
        'influence': influence, 'strength': strength,
    }


def columns(entries: Sequence[Dict], with_strengths: bool = True) -> Dict[str, List]:
    """Parallel arrays in set_vocabulary keyword form."""
    result = {
        'token_ids': [e['token_id'] for e in entries],
        'words': [e['word'] for e in entries],
        'sentiments': [e['sentiment'] for e in entries],
        'flags': [e['flags'] for e in entries],
        'categories': [e['category'] for e in entries],
        'weights': [e['weight'] for e in entries],
        'domain_relevance': [e['domain'] for e in entries],
        'secondary_categories': [e['secondary'] for e in entries],
        'context_influence': [e['influence'] for e in entries],
    }
    if with_strengths:
        result['domain_strengths'] = [e['strength'] for e in entries]
    return result


# The single-token scenario: id 0, sentiment +4, weight 8, influence 1
SCENARIO_TOKEN = token(0, "great", sentiment=4, weight=8)

# A small general-purpose vocabulary. Id 0 is a padding token so every
# meaningful id is nonzero (zero is the "no token" marker in user context).
STANDARD_VOCABULARY = [
    token(0, "<pad>"),
    token(1, "good", sentiment=4, weight=8, category=Category.EVALUATION),
    token(2, "bad", sentiment=-4, weight=8, category=Category.EVALUATION),
    token(3, "movie", weight=2, category=Category.ENTITY,
          domain=Domain.ENTERTAINMENT, strength=500),
    token(4, "film", weight=2, category=Category.ENTITY,
          domain=Domain.ENTERTAINMENT, strength=200),
    token(5, "stock", weight=2, category=Category.ENTITY,
          domain=Domain.FINANCE, strength=300),
    token(6, "very", weight=3, category=Category.INTENSIFIER),
    token(7, "not bad", sentiment=2, weight=5, category=Category.JUDGMENT,
          secondary=Category.EVALUATION),
]

GOOD, BAD, MOVIE, FILM, STOCK, VERY, NOT_BAD = 1, 2, 3, 4, 5, 6, 7


def build_store(entries: Sequence[Dict] = STANDARD_VOCABULARY) -> VocabularyStore:
    store = VocabularyStore()
    store.set_vocabulary(**columns(entries))
    return store


# =============================================================================
# ENGINE BUILDERS
# =============================================================================

def make_engine(
    start: int = T0,
    config: Optional[EngineConfig] = None,
    clock: Optional[LogicalClock] = None
) -> SentimentEngine:
    """Engine with OWNER as admin and TRAINER as trainer on a manual clock."""
    return SentimentEngine(
        OWNER,
        [TRAINER],
        config=config,
        clock=clock or LogicalClock.manual(start),
    )


def make_scenario_engine(**kwargs) -> SentimentEngine:
    """One token (id 0) whose semantic dim 0 matches class 5's template."""
    engine = make_engine(**kwargs)
    engine.set_vocabulary(TRAINER, **columns([SCENARIO_TOKEN]))
    engine.set_embeddings(TRAINER, [0], [unit_semantic(0)], [zero_context()])
    engine.set_class_weights(TRAINER, 5, unit_semantic(0), zero_context())
    return engine


def make_standard_engine(**kwargs) -> SentimentEngine:
    """
    STANDARD_VOCABULARY with:
    - "good" on semantic dim 0, matching class 5 (POSITIVE)
    - "bad" on semantic dim 1, matching class 1 (NEGATIVE)
    """
    engine = make_engine(**kwargs)
    engine.set_vocabulary(TRAINER, **columns(STANDARD_VOCABULARY))
    engine.set_embeddings(
        TRAINER,
        [GOOD, BAD],
        [unit_semantic(0), unit_semantic(1)],
        [zero_context(), zero_context()],
    )
    engine.set_class_weights(TRAINER, 5, unit_semantic(0), zero_context())
    engine.set_class_weights(TRAINER, 1, unit_semantic(1), zero_context())
    return engine
