"""
User Context Store tests.

Contexts are immutable snapshots: advance() returns a new one and a
commit for one caller never touches another.
"""

from sentiment_engine.contracts.base import (
    HISTORY_MAX, INTERACTIONS_MAX, Domain, SentimentClass,
)
from sentiment_engine.core.user_context import (
    EMPTY_CONTEXT, UserContext, UserContextStore, adapt_scores,
)

from tests.fixtures import ALICE, BOB, T0


def advanced(context, *first_tokens, winner=SentimentClass.POSITIVE, domain=Domain.GENERAL, now=T0):
    for first_token in first_tokens:
        context = context.advance(now=now, first_token=first_token, winner=winner, domain=domain)
    return context


class TestAdvance:

    def test_first_interaction(self):
        context = advanced(EMPTY_CONTEXT, 4)
        assert context.last_interaction == T0
        assert context.last_input_token == 4
        assert context.topic_buffer == (4, 0, 0)
        assert context.class_history == (0, 0, 0, 0, 0, 1, 0)
        assert context.total_interactions == 1

    def test_topic_buffer_shifts_most_recent_first(self):
        context = advanced(EMPTY_CONTEXT, 2, 3, 4)
        assert context.topic_buffer == (4, 3, 2)

        context = advanced(context, 5)
        assert context.topic_buffer == (5, 4, 3)

    def test_original_snapshot_untouched(self):
        first = advanced(EMPTY_CONTEXT, 2)
        second = advanced(first, 3)
        assert first.topic_buffer == (2, 0, 0)
        assert second.topic_buffer == (3, 2, 0)
        assert EMPTY_CONTEXT == UserContext()

    def test_class_history_saturates(self):
        context = UserContext(class_history=(0, 0, 0, 0, 0, HISTORY_MAX, 0), total_interactions=HISTORY_MAX)
        context = advanced(context, 1)
        assert context.class_history[SentimentClass.POSITIVE] == HISTORY_MAX

    def test_total_interactions_saturates(self):
        context = UserContext(total_interactions=INTERACTIONS_MAX)
        assert advanced(context, 1).total_interactions == INTERACTIONS_MAX

    def test_general_domain_keeps_primary_domain(self):
        context = advanced(EMPTY_CONTEXT, 1, domain=Domain.SPORTS)
        assert context.primary_domain == Domain.SPORTS

        context = advanced(context, 1, domain=Domain.GENERAL)
        assert context.primary_domain == Domain.SPORTS

    def test_sentiment_bias_carried_unchanged(self):
        context = advanced(UserContext(sentiment_bias=-3), 1)
        assert context.sentiment_bias == -3


class TestRecency:

    def test_inside_window(self):
        context = UserContext(last_interaction=T0, last_input_token=7)
        assert context.is_recent(T0, 3600)
        assert context.is_recent(T0 + 3599, 3600)

    def test_window_is_exclusive(self):
        context = UserContext(last_interaction=T0, last_input_token=7)
        assert not context.is_recent(T0 + 3600, 3600)

    def test_zero_token_is_never_recent(self):
        context = UserContext(last_interaction=T0, last_input_token=0)
        assert not context.is_recent(T0, 3600)

    def test_never_interacted(self):
        assert not EMPTY_CONTEXT.is_recent(0, 3600)

    def test_active_topics_skip_empty_slots(self):
        assert UserContext(topic_buffer=(5, 0, 2)).active_topics() == [5, 2]


class TestAdaptScores:

    def test_no_history_no_bias_is_identity(self):
        assert adapt_scores(EMPTY_CONTEXT, [1, 2, 3, 4, 5, 6, 7]) == [1, 2, 3, 4, 5, 6, 7]

    def test_sentiment_bias_pushes_away_from_neutral(self):
        context = UserContext(sentiment_bias=2)
        assert adapt_scores(context, [0] * 7) == [-40, -40, -40, 0, 40, 40, 40]

    def test_history_reinforcement(self):
        context = UserContext(class_history=(1, 0, 0, 0, 0, 3, 0), total_interactions=4)
        assert adapt_scores(context, [0] * 7) == [5, 0, 0, 0, 0, 15, 0]


class TestStore:

    def test_unknown_caller(self):
        store = UserContextStore()
        assert store.get(ALICE) is EMPTY_CONTEXT
        assert store.find(ALICE) is None
        assert len(store) == 0

    def test_commit_isolated_per_caller(self):
        store = UserContextStore()
        store.commit(ALICE, advanced(EMPTY_CONTEXT, 3))

        assert store.get(ALICE).last_input_token == 3
        assert store.find(BOB) is None
        assert len(store) == 1

    def test_round_trip(self):
        store = UserContextStore()
        store.commit(ALICE, advanced(EMPTY_CONTEXT, 3, 4, domain=Domain.FOOD))
        store.commit(BOB, UserContext(sentiment_bias=-1))

        restored = UserContextStore.from_dict(store.to_dict())

        assert restored.get(ALICE) == store.get(ALICE)
        assert restored.get(BOB) == store.get(BOB)
        assert restored.get(ALICE).primary_domain == Domain.FOOD
