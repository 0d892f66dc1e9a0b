"""
Classification Orchestrator
===========================

Runs one classification call through explicit phases:

    VALIDATING -> AGGREGATING -> SCORING -> DECIDING -> COMMITTING

INVARIANTS:
- Every failure happens in VALIDATING, before the first mutation
- Phases after VALIDATING cannot fail on valid input, so pre-update,
  scoring and commit form one indivisible unit under the caller's lock
- evaluate() (domain, aggregation, scoring, decision) reads state only:
  two copies of the same state give identical decisions
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np

from ..contracts.base import (
    CONTEXT_DIM, MAX_INPUT_TOKENS, NUM_CLASSES, RECENCY_WINDOW_SECONDS,
    SEMANTIC_DIM, CallerId, Domain, ErrorCode, SentimentClass, require,
)
from ..contracts.events import ClassificationResult
from ..state import EngineState
from .domains import DomainModel
from .fixed_point import scaled_dot, trunc_div, trunc_div_array
from .similarity import SimilarityEngine
from .user_context import UserContext, adapt_scores

SENTIMENT_MULTIPLIER = 15
RECENCY_DIVISOR = 10
TOPIC_DIVISOR = 20
CONFIDENCE_ANCHOR = 1000


@dataclass
class ClassifierConfig:
    """Configuration for the classification orchestrator."""
    recency_window_seconds: int = RECENCY_WINDOW_SECONDS
    max_input_tokens: int = MAX_INPUT_TOKENS


@dataclass(frozen=True)
class Aggregate:
    """Weight-averaged input representation (fixed point)."""
    semantic: Tuple[int, ...]
    context: Tuple[int, ...]
    sentiment: int
    total_weight: int


@dataclass(frozen=True)
class Decision:
    """Everything evaluate() derives for one input."""
    domain: Domain
    aggregate: Aggregate
    scores: Tuple[int, ...]
    winner: SentimentClass
    confidence: int

    @property
    def result(self) -> ClassificationResult:
        return ClassificationResult(
            sentiment_class=self.winner,
            confidence=self.confidence,
            domain=self.domain
        )


@dataclass(frozen=True)
class ClassificationOutcome:
    """Committed decision plus the rendered input, for notifications."""
    decision: Decision
    input_text: str

    @property
    def result(self) -> ClassificationResult:
        return self.decision.result


def decide(scores: Sequence[int]) -> Tuple[SentimentClass, int]:
    """
    Strict-max winner (lowest index on ties) and confidence.

    Scores are shifted by (1000 - max) so the winner sits at exactly 1000;
    confidence = 1000 * 1000 / sum(shifted) when the sum is positive,
    else 0. Shifted losers can be negative, so confidence may exceed
    1000; it is deliberately not clamped.
    """
    winner = 0
    best = scores[0]
    for c in range(1, len(scores)):
        if scores[c] > best:
            winner = c
            best = scores[c]

    shifted = [score - best + CONFIDENCE_ANCHOR for score in scores]
    total = sum(shifted)
    if total > 0:
        confidence = trunc_div(shifted[winner] * CONFIDENCE_ANCHOR, total)
    else:
        confidence = 0
    return SentimentClass(winner), confidence


class ClassificationOrchestrator:
    """
    Validates, scores and commits classification calls against one
    EngineState. Holds no state of its own besides configuration.
    """

    def __init__(self, state: EngineState, config: ClassifierConfig = None):
        self._state = state
        self._config = config or ClassifierConfig()
        self._similarity = SimilarityEngine(state.vocabulary, state.cooccurrence)

    @property
    def similarity(self) -> SimilarityEngine:
        return self._similarity

    # =========================================================================
    # VALIDATING
    # =========================================================================

    def validate(self, token_ids: Sequence[int]) -> Tuple[int, ...]:
        """Check every precondition. Raises ValidationError; never mutates."""
        tokens = tuple(int(t) for t in token_ids)
        require(len(tokens) > 0, ErrorCode.EMPTY_INPUT, "input has no tokens")
        require(
            len(tokens) <= self._config.max_input_tokens,
            ErrorCode.INPUT_TOO_LONG,
            f"input has {len(tokens)} tokens, limit {self._config.max_input_tokens}",
            length=len(tokens)
        )
        vocab_size = self._state.vocabulary.vocab_size
        require(vocab_size > 0, ErrorCode.VOCABULARY_EMPTY, "vocabulary is not initialized")
        for position, token_id in enumerate(tokens):
            require(
                0 <= token_id < vocab_size,
                ErrorCode.TOKEN_OUT_OF_RANGE,
                f"token id {token_id} outside [0, {vocab_size})",
                position=position,
                token_id=token_id
            )
        return tokens

    # =========================================================================
    # PRE-UPDATE (first mutation; only reached after validation)
    # =========================================================================

    def pre_update(self, tokens: Sequence[int]) -> None:
        vocabulary = self._state.vocabulary
        cooccurrence = self._state.cooccurrence
        for token_id in tokens:
            vocabulary.record_usage(token_id)
        for a, b in cooccurrence.pairs(tokens):
            cooccurrence.record(a, b)
            vocabulary.record_cooccurrence(a)
            vocabulary.record_cooccurrence(b)

    # =========================================================================
    # AGGREGATING
    # =========================================================================

    def aggregate(self, tokens: Sequence[int]) -> Aggregate:
        vocabulary = self._state.vocabulary
        semantic = np.zeros(SEMANTIC_DIM, dtype=np.int64)
        context = np.zeros(CONTEXT_DIM, dtype=np.int64)
        sentiment = 0
        total_weight = 0

        for token_id in tokens:
            meta = vocabulary.metadata(token_id)
            weight = meta.effective_weight
            semantic += vocabulary.semantic(token_id) * weight
            context += vocabulary.context(token_id) * weight
            sentiment += meta.sentiment * weight
            total_weight += weight

        if total_weight > 0:
            semantic = trunc_div_array(semantic, total_weight)
            context = trunc_div_array(context, total_weight)
            sentiment = trunc_div(sentiment, total_weight)

        return Aggregate(
            semantic=tuple(int(v) for v in semantic),
            context=tuple(int(v) for v in context),
            sentiment=sentiment,
            total_weight=total_weight
        )

    # =========================================================================
    # SCORING
    # =========================================================================

    def score(
        self,
        tokens: Sequence[int],
        aggregate: Aggregate,
        user: UserContext,
        now: int
    ) -> List[int]:
        vocabulary = self._state.vocabulary
        semantic = np.asarray(aggregate.semantic, dtype=np.int64)
        context = np.asarray(aggregate.context, dtype=np.int64)

        # Contextual terms are identical for every class.
        shared = aggregate.sentiment * SENTIMENT_MULTIPLIER
        if user.is_recent(now, self._config.recency_window_seconds):
            shared += trunc_div(
                self._similarity.similarity(tokens[0], user.last_input_token, True),
                RECENCY_DIVISOR
            )
        for token_id in tokens:
            for topic in user.active_topics():
                shared += trunc_div(
                    self._similarity.similarity(token_id, topic, False),
                    TOPIC_DIVISOR
                )

        scores = []
        for c in range(NUM_CLASSES):
            raw = scaled_dot(semantic, vocabulary.class_semantic(c))
            raw += scaled_dot(context, vocabulary.class_context(c))
            scores.append(raw + shared)
        return scores

    # =========================================================================
    # EVALUATION (domain -> aggregate -> score -> modulate -> decide)
    # =========================================================================

    def evaluate(self, caller: CallerId, tokens: Sequence[int], now: int) -> Decision:
        """Pure with respect to state: reads, never writes."""
        state = self._state
        domain = DomainModel.detect(tokens, state.vocabulary)
        aggregate = self.aggregate(tokens)
        user = state.users.get(caller)

        scores = self.score(tokens, aggregate, user, now)
        scores = state.domains.apply(domain, scores)
        scores = adapt_scores(user, scores)

        winner, confidence = decide(scores)
        return Decision(
            domain=domain,
            aggregate=aggregate,
            scores=tuple(scores),
            winner=winner,
            confidence=confidence
        )

    # =========================================================================
    # COMMITTING
    # =========================================================================

    def commit(self, caller: CallerId, tokens: Sequence[int], decision: Decision, now: int) -> None:
        state = self._state
        user = state.users.get(caller)
        state.users.commit(
            caller,
            user.advance(now=now, first_token=tokens[0], winner=decision.winner, domain=decision.domain)
        )
        state.statistics = state.statistics.record(decision.winner)

    # =========================================================================
    # FULL CALL
    # =========================================================================

    def classify(self, caller: CallerId, token_ids: Sequence[int], now: int) -> ClassificationOutcome:
        """
        Validate, pre-update, evaluate and commit.

        Raises ValidationError with the state untouched; otherwise the
        whole call is applied.
        """
        tokens = self.validate(token_ids)
        self.pre_update(tokens)
        input_text = self._state.vocabulary.render(tokens)
        decision = self.evaluate(caller, tokens, now)
        self.commit(caller, tokens, decision, now)
        return ClassificationOutcome(decision=decision, input_text=input_text)
