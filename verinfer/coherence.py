"""
Coherence Analyzer — Heuristic Logic Scoring

Scores free text for logical coherence from keyword and regex counts.
Deterministic, zero API cost. Two analyses live here:

  1. Text metrics (analyze_coherence / analyze_text):
     coherence, recursion density, complexity, fragmentation, and the
     combined score + collapse risk derived from them. Used for standalone
     analysis and for coherence trends across inference chains.

  2. Verification metrics (analyze_verification):
     consistency, evidence strength, reasoning clarity of an inference
     judged together with the verifier's rationale and the query context.
     Feeds coherence_score(), which adjusts the stored confidence.

All scores are clamped to 0.0-1.0.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional

from verinfer.logging import get_logger

logger = get_logger("coherence")


# ============================================================
# DATA STRUCTURES
# ============================================================

@dataclass
class CoherenceMetrics:
    """Text-level coherence metrics. All values 0.0-1.0, 2 decimals."""
    coherence: float          # psi, penalized by recursive/toxic density
    recursion_density: float  # rho
    complexity: float         # q, words per sentence normalized
    fragmentation: float      # f, absolutist marker density
    combined: float           # weighted blend of the above
    collapse_risk: float      # risk of logical breakdown


@dataclass
class TextAnalysis:
    """Full analysis of a single text."""
    metrics: CoherenceMetrics
    patterns: dict[str, list[str]]  # recursive | toxic | structural
    risk_level: str                 # LOW | MEDIUM | HIGH | CRITICAL
    recommendations: list[str] = field(default_factory=list)


@dataclass
class ChainCoherence:
    """Coherence across an ordered chain of texts."""
    overall_coherence: float
    trend: str                # improving | stable | degrading
    critical_points: list[int]


@dataclass
class LogicalMetrics:
    """Verification-time metrics for an inference + rationale."""
    consistency: float
    evidence_strength: float
    reasoning_clarity: float


# ============================================================
# ORDERED PHRASES
# ============================================================

class OrderedPhrases:
    """
    Phrases that occur in order on one line, case-insensitive.

    Matches what the regex "a.*b.*c" would match, span included, in a
    single left-to-right pass: start at the first "a", step through the
    earliest "b" after it, end at the last "c" on the line.
    """

    def __init__(self, *phrases: str):
        if len(phrases) < 2:
            raise ValueError("OrderedPhrases needs at least two phrases")
        self.phrases = phrases
        self._patterns = [re.compile(re.escape(p), re.IGNORECASE) for p in phrases]

    def search(self, text: str) -> Optional[str]:
        """The matched span, or None."""
        first, *middle, last = self._patterns
        for line in text.split("\n"):
            head = first.search(line)
            if head is None:
                continue
            pos = head.end()
            for pattern in middle:
                found = pattern.search(line, pos)
                if found is None:
                    break
                pos = found.end()
            else:
                tail = None
                for tail in last.finditer(line, pos):
                    pass
                if tail is not None:
                    return line[head.start():tail.end()]
        return None

    def __repr__(self) -> str:
        return f"OrderedPhrases{self.phrases!r}"


# ============================================================
# INDICATORS
# ============================================================

RECURSIVE_INDICATORS: list[str] = [
    "proves", "because", "therefore", "thus", "clearly",
    "obviously", "definitely", "certainly", "undoubtedly",
]

TOXIC_PATTERNS: list[str] = [
    "must", "always", "never", "everyone", "no one",
    "impossible", "guaranteed", "absolutely", "completely",
]

# Case-sensitive: shouting only
ABSOLUTIST_WORDS: list[str] = ["MUST", "ALWAYS", "NEVER", "CANNOT"]

CIRCULAR_STRUCTURE = OrderedPhrases("because", "therefore", "because")
CIRCULAR_ISSUE = "Circular reasoning detected"

_SENTENCE_SPLIT = re.compile(r"[.!?]+")

# --- Verification metric vocabularies ---

CONNECTIVES = ["therefore", "because", "since", "thus", "hence", "consequently"]

CONTRADICTION_PATTERNS = [
    OrderedPhrases("but", "however"),
    OrderedPhrases("although", "nevertheless"),
    OrderedPhrases("despite", "still"),
]

OVERCONFIDENT_MARKERS = ["proves", "clearly", "obviously", "definitely"]

ABSOLUTIST_PHRASES = ["must always", "never", "impossible", "guaranteed"]

EVIDENCE_MARKERS = [
    "evidence:", "based on", "according to", "data shows",
    "research indicates", "studies suggest", "analysis reveals",
]

CITATION_PATTERNS = [
    re.compile(r"\[\d+\]"),        # [1], [2]
    re.compile(r"\(\d{4}\)"),      # (2023)
    re.compile(r"https?://"),      # URLs
]

QUANTITATIVE_PATTERNS = [
    re.compile(r"\d+%"),
    re.compile(r"\$\d+"),
    re.compile(r"\d+\s*(?:times|x)"),
]

STRUCTURE_MARKERS = [
    "first", "second", "third",
    "additionally", "furthermore", "moreover",
    "in conclusion", "to summarize", "overall",
]

CAUSAL_MARKERS = [
    "causes", "leads to", "results in", "due to",
    "because of", "as a result", "consequently",
]


# ============================================================
# HELPERS
# ============================================================

def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def _word_regex(word: str) -> re.Pattern:
    return re.compile(rf"\b{re.escape(word.lower())}\b")


def _count_patterns(text: str, words: list[str]) -> int:
    """Count every whole-word occurrence of each indicator (case-insensitive)."""
    lower = text.lower()
    return sum(len(_word_regex(w).findall(lower)) for w in words)


def _detect_patterns(text: str, words: list[str]) -> list[str]:
    """Return the indicators that occur at least once."""
    lower = text.lower()
    return [w for w in words if _word_regex(w).search(lower)]


def _count_absolutist(text: str) -> int:
    shouted = sum(
        len(re.findall(rf"\b{w}\b", text)) for w in ABSOLUTIST_WORDS
    )
    return text.count("!") + shouted


def _sentences(text: str) -> list[str]:
    return [s for s in _SENTENCE_SPLIT.split(text) if s.strip()]


# ============================================================
# TEXT METRICS
# ============================================================

def analyze_coherence(text: str) -> CoherenceMetrics:
    """Compute coherence metrics for a single text."""
    words = text.lower().split()
    sentences = _sentences(text)
    word_count = max(len(words), 1)

    recursive_count = _count_patterns(text, RECURSIVE_INDICATORS)
    toxic_count = _count_patterns(text, TOXIC_PATTERNS)
    absolutist_count = _count_absolutist(text)

    word_density = len(words) / max(len(sentences), 1)
    recursive_density = recursive_count / word_count
    toxic_density = toxic_count / word_count

    psi = max(0.0, 1 - (recursive_density * 2 + toxic_density * 3))
    rho = min(1.0, recursive_density * 10)
    q = min(1.0, word_density / 30)
    f = min(1.0, (absolutist_count / word_count) * 20)

    combined = psi * 0.4 + (1 - rho) * 0.3 + (1 - f) * 0.3
    collapse_risk = min(1.0, rho * 0.5 + f * 0.3 + toxic_density * 10)

    return CoherenceMetrics(
        coherence=round(psi, 2),
        recursion_density=round(rho, 2),
        complexity=round(q, 2),
        fragmentation=round(f, 2),
        combined=round(combined, 2),
        collapse_risk=round(collapse_risk, 2),
    )


def _structural_issues(text: str) -> list[str]:
    issues = []

    if CIRCULAR_STRUCTURE.search(text):
        issues.append(CIRCULAR_ISSUE)

    if text:
        caps_ratio = sum(1 for c in text if c.isupper()) / len(text)
        if caps_ratio > 0.3:
            issues.append("Excessive capitalization")

    words = text.lower().split()
    if words and len(set(words)) < len(words) * 0.5:
        issues.append("High word repetition")

    return issues


def risk_level(metrics: CoherenceMetrics) -> str:
    """Map metrics to a risk bucket."""
    if metrics.collapse_risk > 0.8 or metrics.combined < 0.2:
        return "CRITICAL"
    if metrics.collapse_risk > 0.6 or metrics.combined < 0.4:
        return "HIGH"
    if metrics.collapse_risk > 0.4 or metrics.combined < 0.6:
        return "MEDIUM"
    return "LOW"


def _recommendations(
    metrics: CoherenceMetrics, patterns: dict[str, list[str]],
) -> list[str]:
    recs = []
    if metrics.recursion_density > 0.5:
        recs.append("Reduce recursive language patterns")
    if metrics.fragmentation > 0.5:
        recs.append("Avoid absolutist statements")
    if patterns["toxic"]:
        recs.append("Replace toxic patterns with balanced language")
    if CIRCULAR_ISSUE in patterns["structural"]:
        recs.append("Break circular reasoning with evidence-based statements")
    if metrics.combined < 0.4:
        recs.append("Restructure inference for better logical flow")
    return recs


def analyze_text(text: str) -> TextAnalysis:
    """
    Full analysis of a text: metrics, detected patterns,
    risk level, and recommendations.
    """
    metrics = analyze_coherence(text)
    patterns = {
        "recursive": _detect_patterns(text, RECURSIVE_INDICATORS),
        "toxic": _detect_patterns(text, TOXIC_PATTERNS),
        "structural": _structural_issues(text),
    }
    level = risk_level(metrics)

    logger.info(
        "Logical analysis completed",
        extra={"combined": metrics.combined, "risk_level": level},
    )

    return TextAnalysis(
        metrics=metrics,
        patterns=patterns,
        risk_level=level,
        recommendations=_recommendations(metrics, patterns),
    )


def _mean(values: list[float]) -> float:
    return sum(values) / len(values)


def analyze_text_chain(texts: list[str]) -> ChainCoherence:
    """Coherence trend across an ordered chain of texts."""
    if not texts:
        return ChainCoherence(overall_coherence=0.0, trend="stable", critical_points=[])

    scores = [analyze_coherence(t).combined for t in texts]
    overall = _mean(scores)

    half = len(scores) // 2
    first, second = scores[:half], scores[half:]
    trend = "stable"
    if first and second:
        first_avg, second_avg = _mean(first), _mean(second)
        if second_avg > first_avg + 0.1:
            trend = "improving"
        elif second_avg < first_avg - 0.1:
            trend = "degrading"

    return ChainCoherence(
        overall_coherence=round(overall, 2),
        trend=trend,
        critical_points=[i for i, s in enumerate(scores) if s < 0.3],
    )


# ============================================================
# VERIFICATION METRICS
# ============================================================

def _calculate_consistency(inference: str, rationale: str, context: str) -> float:
    score = 0.5
    inference_lower = inference.lower()
    rationale_lower = rationale.lower()

    if any(c in rationale_lower or c in inference_lower for c in CONNECTIVES):
        score += 0.2

    if any(p.search(rationale) or p.search(inference) for p in CONTRADICTION_PATTERNS):
        score -= 0.2

    overconfident = sum(1 for m in OVERCONFIDENT_MARKERS if m in inference_lower)
    if overconfident > 2:
        score -= 0.15

    if any(p in inference_lower for p in ABSOLUTIST_PHRASES):
        score -= 0.1

    # Alignment with the query context
    context_words = set(context.lower().split())
    overlap = sum(
        1 for w in inference_lower.split()
        if len(w) > 3 and w in context_words
    )
    score += min(overlap / 10, 0.3)

    return _clamp(score)


def _calculate_evidence_strength(inference: str, rationale: str) -> float:
    score = 0.3
    inference_lower = inference.lower()
    rationale_lower = rationale.lower()

    evidence_count = sum(
        1 for m in EVIDENCE_MARKERS
        if m in rationale_lower or m in inference_lower
    )
    score += min(evidence_count * 0.15, 0.4)

    if any(p.search(rationale) or p.search(inference) for p in CITATION_PATTERNS):
        score += 0.2

    if any(p.search(rationale) or p.search(inference) for p in QUANTITATIVE_PATTERNS):
        score += 0.1

    return _clamp(score)


def _calculate_reasoning_clarity(rationale: str) -> float:
    score = 0.4
    lower = rationale.lower()

    structure_count = sum(1 for m in STRUCTURE_MARKERS if m in lower)
    score += min(structure_count * 0.1, 0.3)

    if any(m in lower for m in CAUSAL_MARKERS):
        score += 0.2

    # Verbose reasoning tends to be unclear; terse reasoning is incomplete
    word_count = len(rationale.split())
    if word_count > 200:
        score -= 0.1
    if word_count < 20:
        score -= 0.2

    return _clamp(score)


def analyze_verification(inference: str, rationale: str, context: str) -> LogicalMetrics:
    """Score an inference together with the verifier's rationale."""
    return LogicalMetrics(
        consistency=_calculate_consistency(inference, rationale, context),
        evidence_strength=_calculate_evidence_strength(inference, rationale),
        reasoning_clarity=_calculate_reasoning_clarity(rationale),
    )


def coherence_score(metrics: LogicalMetrics) -> float:
    """Weighted average with emphasis on consistency."""
    return (
        metrics.consistency * 0.4
        + metrics.evidence_strength * 0.35
        + metrics.reasoning_clarity * 0.25
    )


# ============================================================
# CIRCULAR REASONING
# ============================================================

def _similar_concepts(a: str, b: str) -> bool:
    words_a = [w for w in a.split() if len(w) > 3]
    words_b = [w for w in b.split() if len(w) > 3]
    shortest = min(len(words_a), len(words_b))
    if shortest == 0:
        return False
    common = [w for w in words_a if w in words_b]
    return len(common) / shortest > 0.5


def detect_circular_reasoning(text: str) -> bool:
    """
    Detect "X because Y ... Y because X" across two sentences.
    """
    sentences = [s.strip().lower() for s in _SENTENCE_SPLIT.split(text) if s.strip()]

    for i, first in enumerate(sentences):
        for second in sentences[i + 1:]:
            parts1 = first.split("because")
            parts2 = second.split("because")
            if len(parts1) != 2 or len(parts2) != 2:
                continue
            effect1, cause1 = parts1[0].strip(), parts1[1].strip()
            effect2, cause2 = parts2[0].strip(), parts2[1].strip()
            if _similar_concepts(cause1, effect2) and _similar_concepts(cause2, effect1):
                return True

    return False
