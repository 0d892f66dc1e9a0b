"""
Domain Model
============

Per-domain class biases, domain detection over an input, and
application of the detected domain's modifier to a score vector.

GENERAL is the identity domain: detected as the default and never
applied, whatever modifier is stored for it.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from ..contracts.base import (
    DOMAIN_BIAS_LIMIT, DOMAIN_INTENSITY_MAX, NEUTRAL_INTENSITY,
    NUM_CLASSES, NUM_DOMAINS, Domain, ErrorCode, require,
)
from ..vocabulary import VocabularyStore

MODIFIER_MULTIPLIER = 10


@dataclass(frozen=True)
class DomainModifier:
    """Signed per-class biases plus an unsigned intensity."""
    biases: Tuple[int, ...] = (0,) * NUM_CLASSES
    intensity: int = NEUTRAL_INTENSITY

    def to_dict(self) -> dict:
        return {'biases': list(self.biases), 'intensity': self.intensity}

    @staticmethod
    def from_dict(data: dict) -> 'DomainModifier':
        return DomainModifier(
            biases=tuple(int(b) for b in data['biases']),
            intensity=int(data['intensity'])
        )


class DomainModel:
    """Owns the ten domain modifiers."""

    def __init__(self):
        self._modifiers: List[DomainModifier] = [DomainModifier() for _ in range(NUM_DOMAINS)]

    def set_modifier(self, domain: int, biases: Sequence[int], intensity: int) -> DomainModifier:
        """Validated overwrite of one domain's modifier."""
        domain = int(domain)
        require(0 <= domain < NUM_DOMAINS,
                ErrorCode.DOMAIN_OUT_OF_RANGE,
                f"domain {domain} outside [0, {NUM_DOMAINS})",
                domain=domain)
        require(len(biases) == NUM_CLASSES,
                ErrorCode.BATCH_LENGTH_MISMATCH,
                f"expected {NUM_CLASSES} biases, got {len(biases)}",
                domain=domain)
        values = tuple(int(b) for b in biases)
        require(all(abs(b) <= DOMAIN_BIAS_LIMIT for b in values),
                ErrorCode.BIAS_OUT_OF_RANGE,
                f"bias magnitude exceeds {DOMAIN_BIAS_LIMIT}",
                domain=domain)
        intensity = int(intensity)
        require(0 <= intensity <= DOMAIN_INTENSITY_MAX,
                ErrorCode.INTENSITY_OUT_OF_RANGE,
                f"intensity {intensity} outside [0, {DOMAIN_INTENSITY_MAX}]",
                domain=domain)

        modifier = DomainModifier(biases=values, intensity=intensity)
        self._modifiers[domain] = modifier
        return modifier

    def modifier(self, domain: int) -> DomainModifier:
        return self._modifiers[domain]

    @staticmethod
    def detect(token_ids: Sequence[int], vocabulary: VocabularyStore) -> Domain:
        """
        Domain with the strictly highest summed domain strength.

        Ties keep the earlier leader; GENERAL starts as the leader with
        its own accumulated score.
        """
        scores = [0] * NUM_DOMAINS
        for token_id in token_ids:
            meta = vocabulary.metadata(token_id)
            if meta.domain_strength != 0:
                scores[meta.domain_relevance] += meta.domain_strength

        best = Domain.GENERAL
        best_score = scores[Domain.GENERAL]
        for domain in range(1, NUM_DOMAINS):
            if scores[domain] > best_score:
                best = Domain(domain)
                best_score = scores[domain]
        return best

    def apply(self, domain: Domain, scores: List[int]) -> List[int]:
        """Return scores with the domain's bias * intensity * 10 added per class."""
        modifier = self._modifiers[domain]
        if domain == Domain.GENERAL or modifier.intensity == 0:
            return list(scores)
        return [
            score + modifier.biases[c] * modifier.intensity * MODIFIER_MULTIPLIER
            for c, score in enumerate(scores)
        ]

    # -------------------------------------------------------------------------
    # Snapshot support
    # -------------------------------------------------------------------------

    def update_digest(self, hasher) -> None:
        for domain, modifier in enumerate(self._modifiers):
            hasher.update(f"|d{domain}:{modifier.biases}:{modifier.intensity}".encode())

    def to_dict(self) -> dict:
        return {'modifiers': [m.to_dict() for m in self._modifiers]}

    @staticmethod
    def from_dict(data: dict) -> 'DomainModel':
        model = DomainModel()
        model._modifiers = [DomainModifier.from_dict(m) for m in data['modifiers']]
        return model
