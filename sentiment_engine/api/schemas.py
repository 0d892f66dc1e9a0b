"""
Request / response models for the HTTP surface.

Range checks are left to the engine so every rejection carries an
engine ErrorCode; these models only fix the wire shape.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from ..contracts.events import ClassificationResult
from ..core.user_context import UserContext
from ..vocabulary import TokenMetadata


# =============================================================================
# REQUEST MODELS
# =============================================================================

class ClassifyRequest(BaseModel):
    """Classify a token-id sequence on behalf of a caller."""
    caller: str = Field(..., min_length=1, description="Opaque caller identity")
    tokens: List[int] = Field(..., description="Token ids, at most 16")


class VocabularyRequest(BaseModel):
    """Bulk vocabulary upsert; all arrays must have equal length."""
    token_ids: List[int]
    words: List[str]
    sentiments: List[int]
    flags: List[int]
    categories: List[int]
    weights: List[int]
    domain_relevance: List[int]
    secondary_categories: List[int]
    context_influence: List[int]
    domain_strengths: Optional[List[int]] = Field(
        None, description="Per-token domain strength; omitted means 0"
    )


class EmbeddingsRequest(BaseModel):
    token_ids: List[int]
    semantic: List[List[int]] = Field(..., description="24 fixed-point values per token")
    context: List[List[int]] = Field(..., description="8 fixed-point values per token")


class ClassWeightsRequest(BaseModel):
    semantic: List[int]
    context: List[int]


class DomainModifierRequest(BaseModel):
    biases: List[int] = Field(..., description="One signed bias per class")
    intensity: int


# =============================================================================
# RESPONSE MODELS
# =============================================================================

class ClassifyResponse(BaseModel):
    sentiment_class: int
    label: str
    confidence: int
    domain: int
    domain_label: str

    @classmethod
    def from_result(cls, result: ClassificationResult) -> 'ClassifyResponse':
        return cls(
            sentiment_class=int(result.sentiment_class),
            label=result.sentiment_class.label,
            confidence=result.confidence,
            domain=int(result.domain),
            domain_label=result.domain.label,
        )


class TokenResponse(BaseModel):
    token_id: int
    word: str
    sentiment: int
    flags: int
    category: int
    secondary_category: int
    weight: int
    domain_relevance: int
    domain_strength: int
    context_influence: int
    usage_count: int
    cooccurrence_count: int

    @classmethod
    def from_metadata(cls, token_id: int, meta: TokenMetadata) -> 'TokenResponse':
        return cls(token_id=token_id, **meta.to_dict())


class UserContextResponse(BaseModel):
    caller: str
    last_interaction: int
    last_input_token: int
    topic_buffer: List[int]
    class_history: List[int]
    total_interactions: int
    sentiment_bias: int
    primary_domain: int

    @classmethod
    def from_context(cls, caller: str, context: UserContext) -> 'UserContextResponse':
        return cls(caller=caller, **context.to_dict())


class StatsResponse(BaseModel):
    vocab_size: int
    phrase_count: int
    total_classifications: int
    correct_predictions: int
    class_distribution: Dict[str, int]
    users: int
    journal_length: int
    paused: bool
    state_hash: str


class CountResponse(BaseModel):
    count: int


class ErrorResponse(BaseModel):
    code: str
    message: str
    context: Dict[str, str] = Field(default_factory=dict)
