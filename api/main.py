"""
Verified Inference API — Main Application

GET   /health                   — Health check
GET   /me                       — Caller id and verification stats
POST  /analyze                  — Local coherence + recursion analysis (no LLM)
POST  /queries                  — Create a query and generate three inferences
GET   /queries                  — The caller's queries, paginated
GET   /queries/{id}             — A query with its inferences
GET   /queries/{id}/recursion   — Recursion analysis across a query's inferences
PATCH /inferences/{id}/verify   — Verify an inference
GET   /inferences/unverified    — Inferences awaiting verification
GET   /inferences/recommended   — Unverified inferences ranked for the caller
GET   /inferences/stats         — Verification statistics
POST  /predictions              — Predictions from verified inferences
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from dataclasses import asdict

from fastapi import FastAPI, HTTPException, Query, Depends
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.requests import Request

from verinfer.config import settings
from verinfer.coherence import analyze_text, analyze_text_chain, detect_circular_reasoning
from verinfer.recursion import analyze_recursion
from verinfer.generator import GenerationError, generate_inference_angles, generate_predictions
from verinfer.llm.breaker import CircuitOpenError
from verinfer.llm.factory import get_provider
from verinfer.store import store
from verinfer.verification import (
    VerificationError,
    VerificationRequest,
    analyze_query_chain,
    recommend_inferences,
    verify_inference,
)
from verinfer.auth import require_user, AUTH_ENABLED
from verinfer.logging import setup_logging, get_logger
from verinfer.schemas.api import (
    AnalyzeRequest,
    AnalyzeResponse,
    ChainRecursionResponse,
    HealthResponse,
    InferenceListResponse,
    PredictionRequest,
    PredictionResponse,
    QueryCreateRequest,
    QueryCreateResponse,
    QueryDetailResponse,
    QueryListResponse,
    StatsResponse,
    UserResponse,
    VerifyRequest,
    VerifyResponse,
)

logger = get_logger("api")

RECURSION_HISTORY = 20


# ============================================================
# STARTUP / SHUTDOWN
# ============================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Wire up logging on startup."""
    setup_logging()
    if not AUTH_ENABLED:
        logger.warning(
            "No VERINFER_API_KEYS configured — every caller is the default user."
        )
    logger.info("Verified Inference API starting",
                extra={"provider": settings.LLM_PROVIDER})
    yield
    logger.info("Verified Inference API shutting down")


app = FastAPI(
    title="Verified Inference API",
    description="LLM inferences verified by people and scored for logical coherence",
    version=f"{settings.VERSION} (engine {settings.ENGINE_VERSION})",
    lifespan=lifespan,
)

# CORS: set VERINFER_CORS_ORIGINS in production
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",")],
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=["X-API-Key", "Content-Type", "Authorization"],
    allow_credentials=False,
)


# ============================================================
# ERROR HANDLERS
# ============================================================

@app.exception_handler(VerificationError)
async def verification_error_handler(request: Request, exc: VerificationError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(GenerationError)
async def generation_error_handler(request: Request, exc: GenerationError):
    logger.error(
        "LLM provider error",
        extra={"error": str(exc.__cause__ or exc), "path": request.url.path},
    )
    return JSONResponse(
        status_code=502,
        content={"detail": f"{exc}. LLM provider temporarily unavailable."},
    )


@app.exception_handler(CircuitOpenError)
async def circuit_open_handler(request: Request, exc: CircuitOpenError):
    logger.warning("LLM circuit breaker open", extra={"path": request.url.path})
    return JSONResponse(
        status_code=502,
        content={"detail": "LLM provider temporarily unavailable. Please try again."},
    )


@app.exception_handler(Exception)
async def global_error_handler(request: Request, exc: Exception):
    """Catch unhandled exceptions — return structured error, don't leak internals."""
    logger.error(
        f"Unhandled exception: {type(exc).__name__}",
        extra={"error": str(exc), "path": request.url.path, "method": request.method},
        exc_info=True,
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error. The request could not be completed."},
    )


# Lazy LLM provider
_llm = None


def _get_llm():
    global _llm
    if _llm is None:
        _llm = get_provider(settings.LLM_PROVIDER)
    return _llm


def _owned_query_or_error(query_id: str, user_id: str) -> dict:
    query = store.get_query(query_id)
    if query is None:
        raise HTTPException(404, "Query not found")
    if query["user_id"] != user_id:
        raise HTTPException(403, "Unauthorized access to this query")
    return query


# ============================================================
# ROUTES
# ============================================================

@app.get("/health", response_model=HealthResponse)
async def health():
    """Health check — no auth required."""
    stats = store.verification_stats()
    return {
        "status": "operational",
        "version": settings.VERSION,
        "engine_version": settings.ENGINE_VERSION,
        "llm_provider": settings.LLM_PROVIDER,
        "inferences_total": stats["total"],
        "inferences_verified": stats["verified"],
    }


@app.get("/me", response_model=UserResponse)
async def me(user_id: str = Depends(require_user)):
    """The calling user and their verification statistics."""
    user = store.get_user(user_id)
    return {**user, "auth_enabled": AUTH_ENABLED}


@app.post("/analyze", response_model=AnalyzeResponse)
async def analyze(
    request: AnalyzeRequest,
    user_id: str = Depends(require_user),
):
    """Score text for coherence and circular reasoning. Deterministic, no LLM."""
    start = time.time()
    analysis = analyze_text(request.text)
    recursion = analyze_recursion(request.text)

    chain = None
    if request.chain:
        chain = asdict(analyze_text_chain([*request.chain, request.text]))

    logger.info(
        f"Analysis complete: combined={analysis.metrics.combined} risk={analysis.risk_level}",
        extra={
            "user_id": user_id,
            "combined": analysis.metrics.combined,
            "risk_level": analysis.risk_level,
            "recursion_score": recursion.recursion_score,
            "duration_ms": int((time.time() - start) * 1000),
        },
    )

    return {
        **asdict(analysis),
        "circular_reasoning": detect_circular_reasoning(request.text),
        "recursion": asdict(recursion),
        "chain": chain,
        "engine_version": settings.ENGINE_VERSION,
    }


@app.post("/queries", response_model=QueryCreateResponse, status_code=201)
async def create_query(
    request: QueryCreateRequest,
    user_id: str = Depends(require_user),
):
    """Generate three inferences for a new query and store them."""
    start = time.time()
    existing = store.recent_inference_texts(user_id, limit=RECURSION_HISTORY)

    angles = await generate_inference_angles(
        _get_llm(),
        topic=request.topic,
        context=request.context,
        data_type=request.data_type,
        existing=existing,
    )

    query = store.create_query(
        user_id,
        topic=request.topic,
        context=request.context,
        metadata={"data_type": request.data_type, "source_link": request.source_link},
    )
    inference_a, inference_b, inference_c = angles.texts()
    inference = store.create_inference(
        query["id"],
        inference_a,
        inference_b,
        inference_c,
        data_type=request.data_type,
        source_link=request.source_link,
    )
    store.increment_stat(user_id, "total_queries")

    logger.info(
        f"Query created: {query['id']}",
        extra={
            "query_id": query["id"],
            "inference_id": inference["id"],
            "user_id": user_id,
            "duration_ms": int((time.time() - start) * 1000),
        },
    )

    angle_checks = [
        {
            "angle": angle.angle,
            "confidence": angle.confidence,
            "has_recursion": angle.recursion.has_recursion,
            "cycle_depth": angle.recursion.cycle_depth,
            "similarity_score": angle.recursion.similarity_score,
        }
        for angle in (angles.conservative, angles.progressive, angles.synthetic)
    ]

    return {"query": query, "inference": inference, "angles": angle_checks}


@app.get("/queries", response_model=QueryListResponse)
async def list_queries(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user_id: str = Depends(require_user),
):
    """The caller's queries, newest first."""
    return {
        "queries": store.list_queries(user_id, limit=limit, offset=offset),
        "pagination": {
            "total": store.count_queries(user_id),
            "limit": limit,
            "offset": offset,
        },
    }


@app.get("/queries/{query_id}", response_model=QueryDetailResponse)
async def get_query(
    query_id: str,
    user_id: str = Depends(require_user),
):
    query = _owned_query_or_error(query_id, user_id)
    return {"query": query, "inferences": store.inferences_for_query(query_id)}


@app.get("/queries/{query_id}/recursion", response_model=ChainRecursionResponse)
async def query_recursion(
    query_id: str,
    user_id: str = Depends(require_user),
):
    """Recursion analysis across every inference of a query."""
    _owned_query_or_error(query_id, user_id)
    return analyze_query_chain(store, query_id)


@app.get("/inferences/unverified", response_model=InferenceListResponse)
async def unverified_inferences(
    limit: int = Query(10, ge=1, le=50),
    user_id: str = Depends(require_user),
):
    """Oldest inferences still awaiting verification."""
    return {"inferences": store.unverified(limit)}


@app.get("/inferences/recommended", response_model=InferenceListResponse)
async def recommended_inferences(
    limit: int = Query(5, ge=1, le=20),
    user_id: str = Depends(require_user),
):
    """Unverified inferences, the caller's usual data type first."""
    return {"inferences": recommend_inferences(store, user_id, limit=limit)}


@app.get("/inferences/stats", response_model=StatsResponse)
async def inference_stats(user_id: str = Depends(require_user)):
    return store.verification_stats()


@app.patch("/inferences/{inference_id}/verify", response_model=VerifyResponse)
async def verify(
    inference_id: str,
    request: VerifyRequest,
    user_id: str = Depends(require_user),
):
    """Record a human verification and score its logical coherence."""
    result = verify_inference(
        store,
        VerificationRequest(
            inference_id=inference_id,
            user_id=user_id,
            selected=request.selected_inference,
            correct=request.correct,
            rationale=request.rationale,
            custom_inference=request.custom_inference,
            confidence=request.confidence_score,
        ),
    )
    return {
        "inference": result.inference,
        "coherence_score": round(result.coherence_score, 3),
        "adjusted_coherence": round(result.adjusted_coherence, 3),
        "confidence": round(result.confidence, 3),
        "logical_metrics": asdict(result.logical_metrics),
        "recursion": asdict(result.recursion),
    }


@app.post("/predictions", response_model=PredictionResponse)
async def predictions(
    request: PredictionRequest,
    user_id: str = Depends(require_user),
):
    """Synthesize predictions from the caller's inferences verified as correct."""
    verified = store.verified_correct_texts(user_id, limit=request.limit)
    if not verified:
        raise HTTPException(400, "No verified inferences to build predictions from.")

    text = await generate_predictions(_get_llm(), verified, request.domain)
    logger.info(
        f"Predictions generated from {len(verified)} inferences",
        extra={"user_id": user_id},
    )
    return {
        "domain": request.domain,
        "supporting_inferences": len(verified),
        "predictions": text,
    }


# --- Security + Version Headers Middleware ---
@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    """Add security and version headers to all responses."""
    response = await call_next(request)
    response.headers["X-Verinfer-Version"] = settings.VERSION
    response.headers["X-Engine-Version"] = settings.ENGINE_VERSION
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    return response


# --- Body Size Limit Middleware ---
_MAX_BODY_BYTES = 1_048_576  # 1 MB


@app.middleware("http")
async def enforce_body_size_limit(request: Request, call_next):
    """Reject requests exceeding 1MB, by Content-Length or by actual body."""
    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit() and int(content_length) > _MAX_BODY_BYTES:
        return JSONResponse(status_code=413, content={"detail": "Request body too large."})

    if request.method in ("POST", "PUT", "PATCH"):
        body = await request.body()
        if len(body) > _MAX_BODY_BYTES:
            return JSONResponse(status_code=413, content={"detail": "Request body too large."})

    return await call_next(request)


# --- Request Logging Middleware ---
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every API request with method, path, status, duration."""
    path = request.url.path
    if path == "/health":
        return await call_next(request)

    start = time.time()
    response = await call_next(request)
    duration_ms = round((time.time() - start) * 1000, 1)

    logger.info(
        f"{request.method} {path} → {response.status_code} ({duration_ms}ms)",
        extra={
            "method": request.method,
            "path": path,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        },
    )
    return response


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("api.main:app", host=settings.HOST, port=settings.PORT)
