"""
Vocabulary & Embedding Store

RESPONSIBILITY: Per-token metadata, semantic/context embeddings and the
per-class scoring templates, all addressed by integer id.
ALLOWED INPUTS: Validated bulk overwrites from the engine facade
OUTPUTS: Read-only TokenMetadata records and embedding rows

WHAT THIS LAYER MUST NOT DO:
============================
- Resolve strings to tokens beyond an exact word index
- Learn or derive embedding values (overwrite only)
- Apply part of a batch: every batch is validated in full before the
  first write

Embeddings are numpy int64 tables of fixed-point values (x SCALE).
Ids that were never written read as zero-valued records.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..contracts.base import (
    CONTEXT_DIM, COUNTER_MAX, DOMAIN_STRENGTH_MAX, EMBEDDING_VALUE_LIMIT,
    MAX_FLAGS, MAX_TOKEN_WEIGHT, MAX_VOCAB_SIZE, MIN_TOKEN_WEIGHT,
    NUM_CATEGORIES, NUM_CLASSES, NUM_DOMAINS, SEMANTIC_DIM,
    ErrorCode, ValidationError, require,
)
from ..core.fixed_point import saturating_increment


# =============================================================================
# TOKEN METADATA
# =============================================================================

@dataclass(frozen=True)
class TokenMetadata:
    """
    Immutable per-token metadata record.

    Replaced wholesale by set_vocabulary; counters are advanced by
    producing a new record, never by mutating this one.
    """
    word: str = ""
    sentiment: int = 0
    flags: int = 0
    category: int = 0
    secondary_category: int = 0
    weight: int = 0
    domain_relevance: int = 0
    domain_strength: int = 0
    context_influence: int = 0
    usage_count: int = 0
    cooccurrence_count: int = 0

    @property
    def effective_weight(self) -> int:
        if self.context_influence != 0:
            return self.weight * self.context_influence
        return self.weight

    def to_dict(self) -> dict:
        return {
            'word': self.word,
            'sentiment': self.sentiment,
            'flags': self.flags,
            'category': self.category,
            'secondary_category': self.secondary_category,
            'weight': self.weight,
            'domain_relevance': self.domain_relevance,
            'domain_strength': self.domain_strength,
            'context_influence': self.context_influence,
            'usage_count': self.usage_count,
            'cooccurrence_count': self.cooccurrence_count,
        }

    @staticmethod
    def from_dict(data: dict) -> 'TokenMetadata':
        return TokenMetadata(**{k: (v if k == 'word' else int(v)) for k, v in data.items()})


EMPTY_TOKEN = TokenMetadata()


# =============================================================================
# VALIDATION HELPERS
# =============================================================================

def _validate_id(token_id: int) -> None:
    require(
        0 <= token_id < MAX_VOCAB_SIZE,
        ErrorCode.TOKEN_OUT_OF_RANGE,
        f"token id {token_id} outside [0, {MAX_VOCAB_SIZE})",
        token_id=token_id
    )


def _validate_rows(rows, count: int, dim: int, label: str) -> np.ndarray:
    """Coerce to an int64 (count, dim) array and check every value's magnitude."""
    try:
        array = np.asarray(rows, dtype=np.int64)
    except (TypeError, ValueError, OverflowError) as exc:
        raise ValidationError.of(
            ErrorCode.EMBEDDING_SHAPE_MISMATCH,
            f"{label} rows are not integer vectors: {exc}",
            field=label
        ) from exc
    if array.size == 0 and count == 0:
        array = array.reshape(0, dim)
    require(
        array.shape == (count, dim),
        ErrorCode.EMBEDDING_SHAPE_MISMATCH,
        f"{label} expected shape ({count}, {dim}), got {array.shape}",
        field=label
    )
    if array.size:
        peak = int(np.abs(array).max())
        require(
            peak <= EMBEDDING_VALUE_LIMIT,
            ErrorCode.EMBEDDING_VALUE_OUT_OF_RANGE,
            f"{label} value magnitude {peak} exceeds {EMBEDDING_VALUE_LIMIT}",
            field=label
        )
    return array


# =============================================================================
# STORE
# =============================================================================

class VocabularyStore:
    """
    Owns token metadata, embeddings and class templates.

    GUARANTEES:
    ===========
    1. Bulk writes are all-or-nothing
    2. vocab_size only grows (covers the highest id ever written)
    3. Reads never mutate
    """

    def __init__(self):
        self._metadata: Dict[int, TokenMetadata] = {}
        self._semantic = np.zeros((MAX_VOCAB_SIZE, SEMANTIC_DIM), dtype=np.int64)
        self._context = np.zeros((MAX_VOCAB_SIZE, CONTEXT_DIM), dtype=np.int64)
        self._class_semantic = np.zeros((NUM_CLASSES, SEMANTIC_DIM), dtype=np.int64)
        self._class_context = np.zeros((NUM_CLASSES, CONTEXT_DIM), dtype=np.int64)
        self._word_index: Dict[str, int] = {}
        self._vocab_size = 0

    # -------------------------------------------------------------------------
    # Bulk vocabulary upsert
    # -------------------------------------------------------------------------

    def set_vocabulary(
        self,
        token_ids: Sequence[int],
        words: Sequence[str],
        sentiments: Sequence[int],
        flags: Sequence[int],
        categories: Sequence[int],
        weights: Sequence[int],
        domain_relevance: Sequence[int],
        secondary_categories: Sequence[int],
        context_influence: Sequence[int],
        domain_strengths: Optional[Sequence[int]] = None
    ) -> int:
        """
        Replace metadata for every token in the batch.

        Raises ValidationError (and changes nothing) if array lengths
        differ, the batch exceeds MAX_VOCAB_SIZE, or any field is out of
        range. Returns the number of entries written.
        """
        columns = {
            'token_ids': token_ids,
            'words': words,
            'sentiments': sentiments,
            'flags': flags,
            'categories': categories,
            'weights': weights,
            'domain_relevance': domain_relevance,
            'secondary_categories': secondary_categories,
            'context_influence': context_influence,
        }
        if domain_strengths is not None:
            columns['domain_strengths'] = domain_strengths

        lengths = {name: len(values) for name, values in columns.items()}
        count = len(token_ids)
        require(
            all(length == count for length in lengths.values()),
            ErrorCode.BATCH_LENGTH_MISMATCH,
            "vocabulary arrays must have equal length",
            **lengths
        )
        require(
            count <= MAX_VOCAB_SIZE,
            ErrorCode.BATCH_TOO_LARGE,
            f"batch of {count} exceeds vocabulary cap {MAX_VOCAB_SIZE}",
            count=count
        )

        strengths = domain_strengths if domain_strengths is not None else [0] * count
        staged: List[Tuple[int, TokenMetadata]] = []
        for i in range(count):
            staged.append(self._build_entry(
                index=i,
                token_id=int(token_ids[i]),
                word=str(words[i]),
                sentiment=int(sentiments[i]),
                flags=int(flags[i]),
                category=int(categories[i]),
                secondary_category=int(secondary_categories[i]),
                weight=int(weights[i]),
                domain_relevance=int(domain_relevance[i]),
                domain_strength=int(strengths[i]),
                context_influence=int(context_influence[i]),
            ))

        # Validation complete: apply the whole batch
        for token_id, entry in staged:
            previous = self._metadata.get(token_id)
            self._metadata[token_id] = entry
            if previous is not None and self._word_index.get(previous.word) == token_id:
                self._reindex_word(previous.word)
            self._word_index[entry.word] = token_id
            self._vocab_size = max(self._vocab_size, token_id + 1)

        return count

    def _reindex_word(self, word: str) -> None:
        """Point word at its lowest remaining holder, or drop it."""
        holders = [t for t, entry in sorted(self._metadata.items()) if entry.word == word]
        if holders:
            self._word_index[word] = holders[0]
        else:
            del self._word_index[word]

    @staticmethod
    def _build_entry(index: int, token_id: int, word: str, sentiment: int,
                     flags: int, category: int, secondary_category: int,
                     weight: int, domain_relevance: int, domain_strength: int,
                     context_influence: int) -> Tuple[int, TokenMetadata]:
        _validate_id(token_id)
        require(MIN_TOKEN_WEIGHT <= weight <= MAX_TOKEN_WEIGHT,
                ErrorCode.WEIGHT_OUT_OF_RANGE,
                f"weight {weight} outside [{MIN_TOKEN_WEIGHT}, {MAX_TOKEN_WEIGHT}]",
                index=index, token_id=token_id)
        require(MIN_TOKEN_WEIGHT <= context_influence <= MAX_TOKEN_WEIGHT,
                ErrorCode.CONTEXT_INFLUENCE_OUT_OF_RANGE,
                f"context influence {context_influence} outside "
                f"[{MIN_TOKEN_WEIGHT}, {MAX_TOKEN_WEIGHT}]",
                index=index, token_id=token_id)
        require(0 <= domain_relevance < NUM_DOMAINS,
                ErrorCode.DOMAIN_OUT_OF_RANGE,
                f"domain relevance {domain_relevance} outside [0, {NUM_DOMAINS})",
                index=index, token_id=token_id)
        require(0 <= category < NUM_CATEGORIES and 0 <= secondary_category < NUM_CATEGORIES,
                ErrorCode.CATEGORY_OUT_OF_RANGE,
                f"categories ({category}, {secondary_category}) outside [0, {NUM_CATEGORIES})",
                index=index, token_id=token_id)
        require(0 <= flags <= MAX_FLAGS,
                ErrorCode.FLAGS_OUT_OF_RANGE,
                f"flags {flags} outside [0, {MAX_FLAGS}]",
                index=index, token_id=token_id)
        require(0 <= domain_strength <= DOMAIN_STRENGTH_MAX,
                ErrorCode.DOMAIN_STRENGTH_OUT_OF_RANGE,
                f"domain strength {domain_strength} outside [0, {DOMAIN_STRENGTH_MAX}]",
                index=index, token_id=token_id)
        return token_id, TokenMetadata(
            word=word,
            sentiment=sentiment,
            flags=flags,
            category=category,
            secondary_category=secondary_category,
            weight=weight,
            domain_relevance=domain_relevance,
            domain_strength=domain_strength,
            context_influence=context_influence,
        )

    # -------------------------------------------------------------------------
    # Embedding / template overwrite
    # -------------------------------------------------------------------------

    def set_embeddings(
        self,
        token_ids: Sequence[int],
        semantic: Sequence[Sequence[int]],
        context: Sequence[Sequence[int]]
    ) -> int:
        """Overwrite semantic and context embeddings for the given ids."""
        ids = [int(t) for t in token_ids]
        for token_id in ids:
            _validate_id(token_id)
        semantic_rows = _validate_rows(semantic, len(ids), SEMANTIC_DIM, "semantic")
        context_rows = _validate_rows(context, len(ids), CONTEXT_DIM, "context")

        for row, token_id in enumerate(ids):
            self._semantic[token_id] = semantic_rows[row]
            self._context[token_id] = context_rows[row]
        return len(ids)

    def set_class_weights(
        self,
        class_id: int,
        semantic: Sequence[int],
        context: Sequence[int]
    ) -> None:
        """Overwrite one class's scoring template."""
        class_id = int(class_id)
        require(0 <= class_id < NUM_CLASSES,
                ErrorCode.CLASS_OUT_OF_RANGE,
                f"class id {class_id} outside [0, {NUM_CLASSES})",
                class_id=class_id)
        semantic_row = _validate_rows([semantic], 1, SEMANTIC_DIM, "semantic")[0]
        context_row = _validate_rows([context], 1, CONTEXT_DIM, "context")[0]
        self._class_semantic[class_id] = semantic_row
        self._class_context[class_id] = context_row

    # -------------------------------------------------------------------------
    # Counters advanced by classification
    # -------------------------------------------------------------------------

    def record_usage(self, token_id: int) -> None:
        entry = self._metadata.get(token_id, EMPTY_TOKEN)
        self._metadata[token_id] = replace(
            entry, usage_count=saturating_increment(entry.usage_count, COUNTER_MAX)
        )

    def record_cooccurrence(self, token_id: int) -> None:
        entry = self._metadata.get(token_id, EMPTY_TOKEN)
        self._metadata[token_id] = replace(
            entry,
            cooccurrence_count=saturating_increment(entry.cooccurrence_count, COUNTER_MAX)
        )

    # -------------------------------------------------------------------------
    # Read access
    # -------------------------------------------------------------------------

    @property
    def vocab_size(self) -> int:
        return self._vocab_size

    def contains(self, token_id: int) -> bool:
        return 0 <= token_id < self._vocab_size

    def metadata(self, token_id: int) -> TokenMetadata:
        return self._metadata.get(token_id, EMPTY_TOKEN)

    def semantic(self, token_id: int) -> np.ndarray:
        return self._semantic[token_id]

    def context(self, token_id: int) -> np.ndarray:
        return self._context[token_id]

    def class_semantic(self, class_id: int) -> np.ndarray:
        return self._class_semantic[class_id]

    def class_context(self, class_id: int) -> np.ndarray:
        return self._class_context[class_id]

    def word(self, token_id: int) -> str:
        return self.metadata(token_id).word

    def token_id(self, word: str) -> Optional[int]:
        return self._word_index.get(word)

    @property
    def phrase_count(self) -> int:
        """Vocabulary entries whose word spans more than one whitespace-separated part."""
        return sum(1 for entry in self._metadata.values() if len(entry.word.split()) > 1)

    def render(self, token_ids: Sequence[int]) -> str:
        """Human-readable input text, for notifications only."""
        return " ".join(self.word(t) for t in token_ids)

    # -------------------------------------------------------------------------
    # Snapshot support
    # -------------------------------------------------------------------------

    def update_digest(self, hasher) -> None:
        hasher.update(f"vocab_size={self._vocab_size}".encode())
        for token_id in sorted(self._metadata):
            entry = self._metadata[token_id]
            hasher.update(f"|{token_id}:{sorted(entry.to_dict().items())}".encode())
        for table in (self._semantic, self._context, self._class_semantic, self._class_context):
            hasher.update(np.ascontiguousarray(table, dtype='<i8').tobytes())

    def to_dict(self) -> dict:
        written = sorted(
            set(self._metadata)
            | set(np.flatnonzero(np.any(self._semantic, axis=1)).tolist())
            | set(np.flatnonzero(np.any(self._context, axis=1)).tolist())
        )
        return {
            'vocab_size': self._vocab_size,
            'tokens': {str(t): e.to_dict() for t, e in sorted(self._metadata.items())},
            'embeddings': {
                str(t): {
                    'semantic': self._semantic[t].tolist(),
                    'context': self._context[t].tolist(),
                }
                for t in written
            },
            'class_semantic': self._class_semantic.tolist(),
            'class_context': self._class_context.tolist(),
            'word_index': dict(sorted(self._word_index.items())),
        }

    @staticmethod
    def from_dict(data: dict) -> 'VocabularyStore':
        store = VocabularyStore()
        store._vocab_size = int(data['vocab_size'])
        store._metadata = {
            int(t): TokenMetadata.from_dict(e) for t, e in data['tokens'].items()
        }
        for t, rows in data['embeddings'].items():
            store._semantic[int(t)] = np.asarray(rows['semantic'], dtype=np.int64)
            store._context[int(t)] = np.asarray(rows['context'], dtype=np.int64)
        store._class_semantic = np.asarray(data['class_semantic'], dtype=np.int64)
        store._class_context = np.asarray(data['class_context'], dtype=np.int64)
        store._word_index = {w: int(t) for w, t in data['word_index'].items()}
        return store
