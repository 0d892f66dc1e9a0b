"""
User Context Store
==================

Per-caller adaptive state. Each classification produces a NEW
UserContext snapshot for its caller; snapshots are never edited in place
and one caller's commit never touches another caller's context.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from ..contracts.base import (
    HISTORY_MAX, INTERACTIONS_MAX, NEUTRAL_CLASS, NUM_CLASSES,
    TOPIC_BUFFER_SIZE, CallerId, Domain, SentimentClass,
)
from .fixed_point import saturating_increment

SENTIMENT_BIAS_MULTIPLIER = 20
HISTORY_REINFORCEMENT = 5


@dataclass(frozen=True)
class UserContext:
    """
    Immutable per-caller context.

    topic_buffer[0] is the most recent topic token; zero slots are empty.
    """
    last_interaction: int = 0
    last_input_token: int = 0
    topic_buffer: Tuple[int, ...] = (0,) * TOPIC_BUFFER_SIZE
    class_history: Tuple[int, ...] = (0,) * NUM_CLASSES
    total_interactions: int = 0
    sentiment_bias: int = 0
    primary_domain: Domain = Domain.GENERAL

    def advance(
        self,
        now: int,
        first_token: int,
        winner: SentimentClass,
        domain: Domain
    ) -> 'UserContext':
        """Context after one committed classification."""
        history = list(self.class_history)
        history[winner] = saturating_increment(history[winner], HISTORY_MAX)
        return UserContext(
            last_interaction=now,
            last_input_token=first_token,
            topic_buffer=(first_token,) + self.topic_buffer[:TOPIC_BUFFER_SIZE - 1],
            class_history=tuple(history),
            total_interactions=saturating_increment(self.total_interactions, INTERACTIONS_MAX),
            sentiment_bias=self.sentiment_bias,
            primary_domain=domain if domain != Domain.GENERAL else self.primary_domain,
        )

    def is_recent(self, now: int, window_seconds: int) -> bool:
        """A prior token exists and the last interaction is inside the window."""
        return (
            self.last_interaction != 0
            and self.last_input_token != 0
            and now - self.last_interaction < window_seconds
        )

    def active_topics(self) -> List[int]:
        return [t for t in self.topic_buffer if t != 0]

    def to_dict(self) -> dict:
        return {
            'last_interaction': self.last_interaction,
            'last_input_token': self.last_input_token,
            'topic_buffer': list(self.topic_buffer),
            'class_history': list(self.class_history),
            'total_interactions': self.total_interactions,
            'sentiment_bias': self.sentiment_bias,
            'primary_domain': int(self.primary_domain),
        }

    @staticmethod
    def from_dict(data: dict) -> 'UserContext':
        return UserContext(
            last_interaction=int(data['last_interaction']),
            last_input_token=int(data['last_input_token']),
            topic_buffer=tuple(int(t) for t in data['topic_buffer']),
            class_history=tuple(int(h) for h in data['class_history']),
            total_interactions=int(data['total_interactions']),
            sentiment_bias=int(data['sentiment_bias']),
            primary_domain=Domain(int(data['primary_domain'])),
        )


EMPTY_CONTEXT = UserContext()


def adapt_scores(context: UserContext, scores: List[int]) -> List[int]:
    """
    Apply the caller's sentiment bias and class-history reinforcement.

    Classes above neutral gain bias * 20, classes below lose it; the
    neutral class is untouched. History adds 5 per prior win.
    """
    adapted = list(scores)
    if context.sentiment_bias != 0:
        shift = context.sentiment_bias * SENTIMENT_BIAS_MULTIPLIER
        for c in range(NUM_CLASSES):
            if c > NEUTRAL_CLASS:
                adapted[c] += shift
            elif c < NEUTRAL_CLASS:
                adapted[c] -= shift
    if context.total_interactions > 0:
        for c in range(NUM_CLASSES):
            adapted[c] += HISTORY_REINFORCEMENT * context.class_history[c]
    return adapted


class UserContextStore:
    """Caller -> latest UserContext. Contexts are created on first commit."""

    def __init__(self):
        self._contexts: Dict[str, UserContext] = {}

    def get(self, caller: CallerId) -> UserContext:
        return self._contexts.get(caller.value, EMPTY_CONTEXT)

    def find(self, caller: CallerId) -> Optional[UserContext]:
        return self._contexts.get(caller.value)

    def commit(self, caller: CallerId, context: UserContext) -> None:
        self._contexts[caller.value] = context

    def __len__(self) -> int:
        return len(self._contexts)

    # -------------------------------------------------------------------------
    # Snapshot support
    # -------------------------------------------------------------------------

    def update_digest(self, hasher) -> None:
        for caller in sorted(self._contexts):
            hasher.update(f"|u{caller}:{sorted(self._contexts[caller].to_dict().items())}".encode())

    def to_dict(self) -> dict:
        return {caller: ctx.to_dict() for caller, ctx in sorted(self._contexts.items())}

    @staticmethod
    def from_dict(data: dict) -> 'UserContextStore':
        store = UserContextStore()
        store._contexts = {caller: UserContext.from_dict(ctx) for caller, ctx in data.items()}
        return store
