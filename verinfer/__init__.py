"""
Verified Inference — Human-Verified LLM Inference Engine

LLM inferences are generated from three angles, verified by people,
and scored for logical coherence and circular reasoning.

Public API:
  - analyze_text:             Coherence metrics, patterns, risk level
  - analyze_text_chain:       Coherence trend across a chain of texts
  - analyze_verification:     Logical metrics of an inference + rationale
  - analyze_recursion:        Circular / self-referential reasoning detection
  - generate_inference_angles: Conservative / progressive / synthetic inferences
  - generate_predictions:     Predictions from verified inferences
  - verify_inference:         Full human verification pipeline
  - InferenceStore:           SQLite persistence for queries and inferences
  - LLMProvider:              Abstract LLM interface for provider swapping

Usage:
    from verinfer import analyze_text, analyze_recursion
    from verinfer import store, verify_inference, VerificationRequest
"""

__version__ = "1.0.0"

from verinfer.coherence import (
    analyze_coherence,
    analyze_text,
    analyze_text_chain,
    analyze_verification,
    coherence_score,
    detect_circular_reasoning,
    CoherenceMetrics,
    LogicalMetrics,
)
from verinfer.recursion import (
    analyze_recursion,
    recursion_detector,
    RecursionAnalysis,
    RecursionDetector,
)
from verinfer.scorer import adjust_confidence, angle_confidence, penalize_recursion
from verinfer.generator import generate_inference_angles, generate_predictions, GenerationError
from verinfer.store import InferenceStore, store
from verinfer.verification import (
    verify_inference,
    recommend_inferences,
    analyze_query_chain,
    VerificationRequest,
    VerificationError,
)
from verinfer.llm import LLMProvider
from verinfer.llm.factory import get_provider

__all__ = [
    "analyze_coherence",
    "analyze_text",
    "analyze_text_chain",
    "analyze_verification",
    "coherence_score",
    "detect_circular_reasoning",
    "CoherenceMetrics",
    "LogicalMetrics",
    "analyze_recursion",
    "recursion_detector",
    "RecursionAnalysis",
    "RecursionDetector",
    "adjust_confidence",
    "angle_confidence",
    "penalize_recursion",
    "generate_inference_angles",
    "generate_predictions",
    "GenerationError",
    "InferenceStore",
    "store",
    "verify_inference",
    "recommend_inferences",
    "analyze_query_chain",
    "VerificationRequest",
    "VerificationError",
    "LLMProvider",
    "get_provider",
]
