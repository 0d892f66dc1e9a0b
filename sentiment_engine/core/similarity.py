"""
Similarity Engine
=================

Pure, read-only pairwise token similarity.

score = semantic_dot
      + context_dot / 2                   (only when include_context)
      + category bonus                    (150 exact / 75 cross secondary)
      + domain bonus                      (100 for a shared nonzero domain)
      + 5 * cooccurrence(a, b)
      + polarity bonus                    (+50 same sign / -30 opposite)

Returns 0 when either id is outside the current vocabulary.
"""

from __future__ import annotations

from ..contracts.base import Domain
from ..vocabulary import VocabularyStore
from .cooccurrence import CooccurrenceTracker
from .fixed_point import scaled_dot, trunc_div

CATEGORY_MATCH_BONUS = 150
SECONDARY_CATEGORY_BONUS = 75
DOMAIN_MATCH_BONUS = 100
COOCCURRENCE_BONUS = 5
SAME_POLARITY_BONUS = 50
OPPOSITE_POLARITY_PENALTY = -30


class SimilarityEngine:
    """
    Stateless scorer over a vocabulary and co-occurrence tracker.

    GUARANTEES:
    ===========
    1. similarity(a, b, c) never mutates either collaborator
    2. Same state -> same score
    """

    def __init__(self, vocabulary: VocabularyStore, cooccurrence: CooccurrenceTracker):
        self._vocabulary = vocabulary
        self._cooccurrence = cooccurrence

    def similarity(self, token_a: int, token_b: int, include_context: bool) -> int:
        vocabulary = self._vocabulary
        if not (vocabulary.contains(token_a) and vocabulary.contains(token_b)):
            return 0

        score = scaled_dot(vocabulary.semantic(token_a), vocabulary.semantic(token_b))

        if include_context:
            context_dot = scaled_dot(vocabulary.context(token_a), vocabulary.context(token_b))
            score += trunc_div(context_dot, 2)

        meta_a = vocabulary.metadata(token_a)
        meta_b = vocabulary.metadata(token_b)

        if meta_a.category == meta_b.category:
            score += CATEGORY_MATCH_BONUS
        elif (meta_a.secondary_category == meta_b.category
              or meta_b.secondary_category == meta_a.category):
            score += SECONDARY_CATEGORY_BONUS

        if (meta_a.domain_relevance == meta_b.domain_relevance
                and meta_a.domain_relevance != Domain.GENERAL):
            score += DOMAIN_MATCH_BONUS

        score += COOCCURRENCE_BONUS * self._cooccurrence.count(token_a, token_b)

        if meta_a.sentiment != 0 and meta_b.sentiment != 0:
            if (meta_a.sentiment > 0) == (meta_b.sentiment > 0):
                score += SAME_POLARITY_BONUS
            else:
                score += OPPOSITE_POLARITY_PENALTY

        return score
