"""
API Schemas — Request and Response Models

Pydantic models for the Verified Inference API.
"""

from __future__ import annotations

from typing import Optional
from pydantic import BaseModel, Field, model_validator


# ============================================================
# ANALYZE
# ============================================================

class AnalyzeRequest(BaseModel):
    """POST /analyze request body."""
    text: str = Field(..., min_length=1, max_length=50_000,
                      description="Text to score for coherence and recursion.")
    chain: Optional[list[str]] = Field(
        None, max_length=100,
        description="Optional ordered chain of earlier texts; text is appended last.",
    )

    model_config = {"json_schema_extra": {"examples": [
        {"text": "This is obviously correct because it is self-evident."},
    ]}}


class CoherenceMetricsResponse(BaseModel):
    coherence: float
    recursion_density: float
    complexity: float
    fragmentation: float
    combined: float
    collapse_risk: float


class RecursionPatternResponse(BaseModel):
    type: str
    location: str
    severity: str
    description: str
    example: Optional[str] = None


class RecursionResponse(BaseModel):
    has_recursion: bool
    patterns: list[RecursionPatternResponse]
    recursion_score: float
    recommendations: list[str]


class ChainCoherenceResponse(BaseModel):
    overall_coherence: float
    trend: str
    critical_points: list[int]


class AnalyzeResponse(BaseModel):
    """POST /analyze response body."""
    metrics: CoherenceMetricsResponse
    patterns: dict[str, list[str]]
    risk_level: str
    recommendations: list[str]
    circular_reasoning: bool
    recursion: RecursionResponse
    chain: Optional[ChainCoherenceResponse] = None
    engine_version: str


# ============================================================
# QUERIES
# ============================================================

class QueryCreateRequest(BaseModel):
    """POST /queries request body."""
    topic: str = Field(..., min_length=5, max_length=500)
    context: str = Field(..., min_length=10, max_length=5000)
    data_type: str = Field(..., pattern="^(1st-party|3rd-party)$")
    source_link: Optional[str] = Field(None, max_length=2048, pattern=r"^https?://\S+$")

    model_config = {"json_schema_extra": {"examples": [
        {
            "topic": "Remote work and productivity",
            "context": "Quarterly output per team before and after the hybrid policy.",
            "data_type": "1st-party",
        },
    ]}}


class AngleCheckResponse(BaseModel):
    angle: str
    confidence: float
    has_recursion: bool
    cycle_depth: Optional[int] = None
    similarity_score: Optional[float] = None


class InferenceResponse(BaseModel):
    id: str
    query_id: str
    inference_a: str
    inference_b: str
    inference_c: str
    selected_inference: Optional[str] = None
    custom_inference: Optional[str] = None
    verification_correct: Optional[bool] = None
    verification_rationale: Optional[str] = None
    data_type: str
    source_link: Optional[str] = None
    confidence_score: Optional[float] = None
    logical_consistency: Optional[float] = None
    evidence_strength: Optional[float] = None
    reasoning_clarity: Optional[float] = None
    created_at: str
    verified_at: Optional[str] = None
    topic: Optional[str] = None
    context: Optional[str] = None


class QueryResponse(BaseModel):
    id: str
    user_id: str
    topic: str
    context: str
    metadata: dict
    created_at: str


class QueryCreateResponse(BaseModel):
    """POST /queries response body."""
    query: QueryResponse
    inference: InferenceResponse
    angles: list[AngleCheckResponse]


class Pagination(BaseModel):
    total: int
    limit: int
    offset: int


class QueryListResponse(BaseModel):
    queries: list[QueryResponse]
    pagination: Pagination


class QueryDetailResponse(BaseModel):
    query: QueryResponse
    inferences: list[InferenceResponse]


class DependencyLoopResponse(BaseModel):
    source: int
    target: int
    concept: str


class ChainRecursionResponse(BaseModel):
    """GET /queries/{id}/recursion response body."""
    has_recursion: bool
    overall_recursion_score: float
    critical_inferences: list[str]
    recommendations: list[str]
    dependency_loops: list[DependencyLoopResponse]


# ============================================================
# VERIFICATION
# ============================================================

class VerifyRequest(BaseModel):
    """PATCH /inferences/{id}/verify request body."""
    selected_inference: str = Field(..., pattern="^(A|B|C|custom)$")
    custom_inference: Optional[str] = Field(None, max_length=1000)
    correct: bool
    rationale: str = Field(..., min_length=10, max_length=2000)
    confidence_score: Optional[float] = Field(None, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _custom_text_required(self):
        if self.selected_inference == "custom" and not (self.custom_inference or "").strip():
            raise ValueError("custom_inference is required when selected_inference is 'custom'")
        return self


class LogicalMetricsResponse(BaseModel):
    consistency: float
    evidence_strength: float
    reasoning_clarity: float


class VerifyResponse(BaseModel):
    inference: InferenceResponse
    coherence_score: float
    adjusted_coherence: float
    confidence: float
    logical_metrics: LogicalMetricsResponse
    recursion: RecursionResponse


class InferenceListResponse(BaseModel):
    inferences: list[InferenceResponse]


class StatsResponse(BaseModel):
    total: int
    verified: int
    correct: int
    accuracy: float


# ============================================================
# PREDICTIONS
# ============================================================

class PredictionRequest(BaseModel):
    """POST /predictions request body."""
    domain: str = Field(..., min_length=2, max_length=255)
    limit: int = Field(10, ge=1, le=50,
                       description="How many recent verified inferences to build on.")


class PredictionResponse(BaseModel):
    domain: str
    supporting_inferences: int
    predictions: str


# ============================================================
# USER / HEALTH
# ============================================================

class UserResponse(BaseModel):
    id: str
    total_queries: int
    total_verifications: int
    correct_verifications: int
    high_coherence_verifications: int
    created_at: str
    auth_enabled: bool


class HealthResponse(BaseModel):
    status: str
    version: str
    engine_version: str
    llm_provider: str
    inferences_total: int
    inferences_verified: int
