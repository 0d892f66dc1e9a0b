"""
Sentiment Engine: HTTP API Server
=================================

FastAPI surface over SentimentEngine.

Endpoints:
- GET  /health
- POST /api/v1/classify
- PUT  /api/v1/vocabulary                    (trainer, X-Caller header)
- PUT  /api/v1/embeddings                    (trainer)
- PUT  /api/v1/class-weights/{class_id}      (trainer)
- PUT  /api/v1/domains/{domain}              (trainer)
- GET  /api/v1/vocabulary/{token_id}
- GET  /api/v1/vocabulary/by-word/{word}
- GET  /api/v1/stats
- GET  /api/v1/users/{caller}
- POST /api/v1/pause, /api/v1/unpause        (admin)

Usage:
    uvicorn sentiment_engine.api.server:app --reload
"""
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..contracts.base import (
    MAX_VOCAB_SIZE, CallerId, EngineError, IntegrityError,
    PermissionDeniedError, SuspendedError, ValidationError,
)
from ..engine import EngineConfig, SentimentEngine
from .schemas import (
    ClassifyRequest, ClassifyResponse, ClassWeightsRequest, CountResponse,
    DomainModifierRequest, EmbeddingsRequest, ErrorResponse, StatsResponse,
    TokenResponse, UserContextResponse, VocabularyRequest,
)

OWNER_ENV = "SENTIMENT_ENGINE_OWNER"
TRAINERS_ENV = "SENTIMENT_ENGINE_TRAINERS"

# =============================================================================
# INFRASTRUCTURE SETUP
# =============================================================================

# Global Engine Instance
engine_instance: Optional[SentimentEngine] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open (or restore) the engine on startup, save it on shutdown."""
    global engine_instance

    config = EngineConfig.from_env()
    owner = CallerId(os.environ.get(OWNER_ENV, "admin"))
    trainers = [
        CallerId(name.strip())
        for name in os.environ.get(TRAINERS_ENV, "").split(",")
        if name.strip()
    ]

    print(f"[*] Initializing Sentiment Engine (storage: {config.storage.backend_type})")
    try:
        engine_instance = SentimentEngine.open(owner, trainers, config=config)
        print(f"[*] Engine ready. vocab_size={engine_instance.vocab_size}")
    except Exception as e:
        print(f"[!] FAILED to initialize engine: {e}")
        raise e

    yield

    if config.storage.backend_type == "file":
        print("[*] Saving engine state.")
        engine_instance.save()
    print("[*] Shutting down engine.")
    engine_instance = None


app = FastAPI(
    title="Sentiment Engine API",
    version="0.1.0",
    description="Deterministic fixed-point sentiment classification",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT"],
    allow_headers=["*"],
)


def get_engine() -> SentimentEngine:
    if not engine_instance:
        raise HTTPException(status_code=503, detail="Engine not initialized")
    return engine_instance


def _status_for(exc: EngineError) -> int:
    if isinstance(exc, ValidationError):
        return 422
    if isinstance(exc, PermissionDeniedError):
        return 403
    if isinstance(exc, SuspendedError):
        return 503
    if isinstance(exc, IntegrityError):
        return 500
    return 400


@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError):
    body = ErrorResponse(
        code=exc.code.name,
        message=exc.error.message,
        context=exc.error.context_dict()
    )
    return JSONResponse(status_code=_status_for(exc), content=body.model_dump())


# =============================================================================
# ENDPOINTS
# =============================================================================

@app.get("/health")
async def health_check():
    """System status."""
    engine = get_engine()
    return {
        "status": "paused" if engine.is_paused else "online",
        "vocab_size": engine.vocab_size,
    }


@app.post("/api/v1/classify", response_model=ClassifyResponse)
def classify(request: ClassifyRequest):
    result = get_engine().classify_sentiment(CallerId(request.caller), request.tokens)
    return ClassifyResponse.from_result(result)


@app.put("/api/v1/vocabulary", response_model=CountResponse)
def set_vocabulary(request: VocabularyRequest, x_caller: str = Header(..., min_length=1)):
    count = get_engine().set_vocabulary(
        CallerId(x_caller),
        request.token_ids, request.words, request.sentiments, request.flags,
        request.categories, request.weights, request.domain_relevance,
        request.secondary_categories, request.context_influence,
        request.domain_strengths
    )
    return CountResponse(count=count)


@app.put("/api/v1/embeddings", response_model=CountResponse)
def set_embeddings(request: EmbeddingsRequest, x_caller: str = Header(..., min_length=1)):
    count = get_engine().set_embeddings(
        CallerId(x_caller), request.token_ids, request.semantic, request.context
    )
    return CountResponse(count=count)


@app.put("/api/v1/class-weights/{class_id}")
def set_class_weights(class_id: int, request: ClassWeightsRequest, x_caller: str = Header(..., min_length=1)):
    get_engine().set_class_weights(CallerId(x_caller), class_id, request.semantic, request.context)
    return {"class_id": class_id, "status": "updated"}


@app.put("/api/v1/domains/{domain}")
def set_domain_modifier(domain: int, request: DomainModifierRequest, x_caller: str = Header(..., min_length=1)):
    get_engine().set_domain_modifier(CallerId(x_caller), domain, request.biases, request.intensity)
    return {"domain": domain, "status": "updated"}


@app.get("/api/v1/vocabulary/by-word/{word}", response_model=TokenResponse)
def get_token_by_word(word: str):
    engine = get_engine()
    token_id = engine.get_token_id(word)
    if token_id is None:
        raise HTTPException(status_code=404, detail=f"Unknown word: {word}")
    return TokenResponse.from_metadata(token_id, engine.get_token_metadata(token_id))


@app.get("/api/v1/vocabulary/{token_id}", response_model=TokenResponse)
def get_token(token_id: int):
    engine = get_engine()
    if not 0 <= token_id < MAX_VOCAB_SIZE:
        raise HTTPException(status_code=404, detail=f"Token id out of range: {token_id}")
    return TokenResponse.from_metadata(token_id, engine.get_token_metadata(token_id))


@app.get("/api/v1/stats", response_model=StatsResponse)
def get_stats():
    engine = get_engine()
    return StatsResponse(state_hash=engine.state_hash(), **engine.stats())


@app.get("/api/v1/users/{caller}", response_model=UserContextResponse)
def get_user(caller: str):
    context = get_engine().get_user_context(CallerId(caller))
    if context is None:
        raise HTTPException(status_code=404, detail=f"No context for caller: {caller}")
    return UserContextResponse.from_context(caller, context)


@app.post("/api/v1/pause")
def pause(x_caller: str = Header(..., min_length=1)):
    get_engine().pause(CallerId(x_caller))
    return {"paused": True}


@app.post("/api/v1/unpause")
def unpause(x_caller: str = Header(..., min_length=1)):
    get_engine().unpause(CallerId(x_caller))
    return {"paused": False}
