"""
Verification — Human Verification Pipeline

A verifier selects one of the three inferences (or writes a custom
one), marks it correct or incorrect, and gives a rationale. The
pipeline:

  1. Check the inference exists and belongs to the caller's query
  2. Resolve the verified text (A / B / C / custom)
  3. Score logical coherence of text + rationale against the query context
  4. Discount coherence when the reasoning is recursive
  5. Adjust the verifier's confidence with correctness + coherence
  6. Persist the verification and its logical metrics
  7. Update the user's verification statistics
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Optional

from verinfer.coherence import LogicalMetrics, analyze_verification, coherence_score
from verinfer.config import settings
from verinfer.logging import bind, get_logger
from verinfer.recursion import RecursionAnalysis, analyze_recursion, recursion_detector
from verinfer.scorer import HIGH_COHERENCE_THRESHOLD, adjust_confidence, penalize_recursion
from verinfer.store import InferenceStore, chosen_text

logger = get_logger("verification")

CRITICAL_RECURSION = 0.7


# ============================================================
# ERRORS
# ============================================================

class VerificationError(Exception):
    """Verification failure with an HTTP-style status code."""

    status_code = 400

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class NotFoundError(VerificationError):
    status_code = 404


class ForbiddenError(VerificationError):
    status_code = 403


# ============================================================
# DATA STRUCTURES
# ============================================================

@dataclass
class VerificationRequest:
    inference_id: str
    user_id: str
    selected: str                      # "A" | "B" | "C" | "custom"
    correct: bool
    rationale: str
    custom_inference: Optional[str] = None
    confidence: Optional[float] = None


@dataclass
class VerificationResult:
    inference: dict
    coherence_score: float       # before the recursion discount
    adjusted_coherence: float    # after the recursion discount
    confidence: float            # stored confidence
    logical_metrics: LogicalMetrics
    recursion: RecursionAnalysis


# ============================================================
# PIPELINE
# ============================================================

def _owned_query(store: InferenceStore, inference: dict, user_id: str) -> dict:
    query = store.get_query(inference["query_id"])
    if query is None or query["user_id"] != user_id:
        raise ForbiddenError("Unauthorized access to this inference")
    return query


def _selected_text(inference: dict, request: VerificationRequest) -> str:
    if request.selected == "custom":
        if not request.custom_inference:
            raise VerificationError("Custom inference required when selected")
        return request.custom_inference
    return inference.get(f"inference_{request.selected.lower()}") or ""


def verify_inference(store: InferenceStore, request: VerificationRequest) -> VerificationResult:
    """Run the verification pipeline and persist the outcome."""
    inference = store.get_inference(request.inference_id)
    if inference is None:
        raise NotFoundError("Inference not found")

    query = _owned_query(store, inference, request.user_id)
    text = _selected_text(inference, request)
    log = bind(logger, inference_id=request.inference_id, user_id=request.user_id)

    metrics = analyze_verification(text, request.rationale, query["context"])
    raw_coherence = coherence_score(metrics)

    recursion = analyze_recursion(f"{text} {request.rationale}")
    final_coherence = penalize_recursion(raw_coherence, recursion)
    if recursion.has_recursion:
        log.warning(
            "Recursion detected in verification",
            extra={
                "recursion_score": recursion.recursion_score,
                "pattern_count": len(recursion.patterns),
            },
        )

    # An unset or zero confidence falls back to the default
    original_confidence = request.confidence or settings.DEFAULT_CONFIDENCE
    confidence = adjust_confidence(original_confidence, final_coherence, request.correct)

    updated = store.verify_inference(
        request.inference_id,
        selected=request.selected,
        custom_inference=request.custom_inference if request.selected == "custom" else None,
        correct=request.correct,
        rationale=request.rationale,
        confidence=confidence,
        logical_metrics=asdict(metrics),
    )

    store.increment_stat(request.user_id, "total_verifications")
    if request.correct:
        store.increment_stat(request.user_id, "correct_verifications")
    if raw_coherence >= HIGH_COHERENCE_THRESHOLD:
        store.increment_stat(request.user_id, "high_coherence_verifications")

    log.info(
        f"Inference verified: correct={request.correct} coherence={raw_coherence:.2f}",
        extra={
            "correct": request.correct,
            "coherence": round(raw_coherence, 3),
            "confidence": round(confidence, 3),
        },
    )

    return VerificationResult(
        inference=updated,
        coherence_score=raw_coherence,
        adjusted_coherence=final_coherence,
        confidence=confidence,
        logical_metrics=metrics,
        recursion=recursion,
    )


def recommend_inferences(store: InferenceStore, user_id: str, limit: int = 5) -> list[dict]:
    """
    Unverified inferences to verify next, those matching the data type
    the user verifies most often first.
    """
    preferred = store.preferred_data_type(user_id)
    candidates = store.unverified(limit * 2)
    # sorted() is stable, so creation order is kept within each group
    ranked = sorted(candidates, key=lambda inf: inf["data_type"] != preferred)
    return ranked[:limit]


def analyze_query_chain(store: InferenceStore, query_id: str) -> dict:
    """Recursion analysis across every inference of a query."""
    inferences = store.inferences_for_query(query_id)
    if not inferences:
        return {
            "has_recursion": False,
            "overall_recursion_score": 0.0,
            "critical_inferences": [],
            "recommendations": [],
            "dependency_loops": [],
        }

    texts = [chosen_text(inf) for inf in inferences]
    chain = recursion_detector.analyze_chain(texts)

    scores = {
        inf["id"]: analyze_recursion(text).recursion_score
        for inf, text in zip(inferences, texts)
    }
    critical = [iid for iid, score in scores.items() if score > CRITICAL_RECURSION]
    overall = sum(scores.values()) / len(scores)

    recommendations = []
    if chain.has_chain_recursion:
        recommendations.append(chain.recommendation)
    if overall > 0.5:
        recommendations.append("Consider introducing external evidence to ground the reasoning")
    if critical:
        recommendations.append(f"Review and revise {len(critical)} inferences with high recursion")

    return {
        "has_recursion": chain.has_chain_recursion or overall > 0.3,
        "overall_recursion_score": round(overall, 3),
        "critical_inferences": critical,
        "recommendations": recommendations,
        "dependency_loops": [asdict(loop) for loop in chain.dependency_loops],
    }
