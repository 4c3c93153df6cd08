"""
Confidence Scorer

Turns coherence scores into the confidence number stored with a
verified inference. Separated from verification.py for
single-responsibility.

  - angle_confidence:   initial confidence of a generated inference
  - penalize_recursion: coherence discounted by recursion score
  - adjust_confidence:  verifier confidence adjusted by correctness + coherence
"""

from __future__ import annotations

from typing import Optional

from verinfer.recursion import RecursionAnalysis

HIGH_COHERENCE_THRESHOLD = 0.8

CONFIDENCE_FLOOR = 0.1
CONFIDENCE_CEILING = 0.95


def angle_confidence(text: str) -> float:
    """
    Heuristic confidence for a freshly generated inference.

    Longer responses with more "Evidence:" sections score higher:
      base 0.7, +0.05 per evidence section (max +0.15),
      +0.001 per word (max +0.15), capped at 0.95.
    """
    evidence_count = text.lower().count("evidence:")
    word_count = len(text.split(" "))
    evidence_bonus = min(evidence_count * 0.05, 0.15)
    length_bonus = min(word_count / 1000, 0.15)
    return min(0.7 + evidence_bonus + length_bonus, CONFIDENCE_CEILING)


def penalize_recursion(
    coherence: float, recursion: Optional[RecursionAnalysis],
) -> float:
    """Reduce coherence by up to half when recursion was detected."""
    if recursion is None or not recursion.has_recursion:
        return coherence
    return coherence * (1 - recursion.recursion_score * 0.5)


def _coherence_multiplier(coherence: float) -> float:
    # Non-linear: low coherence penalizes harder, high coherence boosts gently
    if coherence < 0.4:
        return 0.5 + coherence * 1.25        # 0.5 .. 1.0
    if coherence < 0.8:
        return 0.9 + coherence * 0.25        # 1.0 .. 1.1
    return 1.0 + (coherence - 0.8) * 0.5     # 1.0 .. 1.1


def adjust_confidence(original: float, coherence: float, correct: bool) -> float:
    """
    Adjust a verifier's confidence using correctness and coherence.

    Scoring:
      Correctness:  x1.1 if correct, x0.5 if not
      Coherence:    x(0.5..1.1), see _coherence_multiplier
      Extremes:     x0.9 if original > 0.9, x1.1 if original < 0.3
      Clamped to [0.1, 0.95] — never fully certain or fully uncertain.
    """
    factor = 1.1 if correct else 0.5
    factor *= _coherence_multiplier(coherence)

    if original > 0.9:
        factor *= 0.9
    elif original < 0.3:
        factor *= 1.1

    return max(CONFIDENCE_FLOOR, min(CONFIDENCE_CEILING, original * factor))
