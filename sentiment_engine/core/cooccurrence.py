"""
Co-occurrence Tracker
=====================

Symmetric saturating counters over token-id pairs.

INVARIANTS:
- count(a, b) == count(b, a)
- Counters never decrease and never exceed COOCCURRENCE_MAX
- Never reset
"""

from __future__ import annotations
from typing import List, Sequence, Tuple

import numpy as np

from ..contracts.base import COOCCURRENCE_MAX, MAX_VOCAB_SIZE


class CooccurrenceTracker:
    """Dense MAX_VOCAB_SIZE x MAX_VOCAB_SIZE counter matrix."""

    def __init__(self):
        self._counts = np.zeros((MAX_VOCAB_SIZE, MAX_VOCAB_SIZE), dtype=np.uint16)

    @staticmethod
    def pairs(token_ids: Sequence[int]) -> List[Tuple[int, int]]:
        """
        Position pairs (i < j) of one input whose ids differ.

        A repeated id contributes once per position pair, so [a, b, a]
        yields (a, b) twice.
        """
        result = []
        for i in range(len(token_ids)):
            for j in range(i + 1, len(token_ids)):
                if token_ids[i] != token_ids[j]:
                    result.append((token_ids[i], token_ids[j]))
        return result

    def record(self, a: int, b: int) -> None:
        """Increment both directions, saturating."""
        if self._counts[a, b] < COOCCURRENCE_MAX:
            self._counts[a, b] += 1
        if self._counts[b, a] < COOCCURRENCE_MAX:
            self._counts[b, a] += 1

    def count(self, a: int, b: int) -> int:
        if not (0 <= a < MAX_VOCAB_SIZE and 0 <= b < MAX_VOCAB_SIZE):
            return 0
        return int(self._counts[a, b])

    # -------------------------------------------------------------------------
    # Snapshot support
    # -------------------------------------------------------------------------

    def update_digest(self, hasher) -> None:
        hasher.update(np.ascontiguousarray(self._counts, dtype='<u2').tobytes())

    def to_dict(self) -> dict:
        rows, cols = np.nonzero(self._counts)
        return {
            'pairs': [
                [int(a), int(b), int(self._counts[a, b])]
                for a, b in zip(rows.tolist(), cols.tolist())
            ]
        }

    @staticmethod
    def from_dict(data: dict) -> 'CooccurrenceTracker':
        tracker = CooccurrenceTracker()
        for a, b, value in data['pairs']:
            tracker._counts[int(a), int(b)] = min(int(value), COOCCURRENCE_MAX)
        return tracker
