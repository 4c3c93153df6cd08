"""
Recursion Detector — Circular Reasoning in Inferences

Finds reasoning that supports itself instead of resting on evidence:
  - self-referential:  "it works because it works"
  - circular:          A causes B ... B causes A
  - tautological:      "true by definition"
  - infinite-loop:     X is Y ... Y is X

Also checks inference chains for concept loops, compares a new
inference with existing ones, and finds cycles in an inference
dependency graph.

Stateless. Instantiated once as a singleton.
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, Optional

from verinfer.coherence import OrderedPhrases
from verinfer.logging import get_logger

logger = get_logger("recursion")


# ============================================================
# DATA STRUCTURES
# ============================================================

@dataclass
class RecursionPattern:
    """One detected recursion pattern."""
    type: str         # circular | self-referential | infinite-loop | tautological
    location: str
    severity: str     # low | medium | high | critical
    description: str
    example: Optional[str] = None


@dataclass
class RecursionAnalysis:
    has_recursion: bool
    patterns: list[RecursionPattern]
    recursion_score: float    # 0-1, higher = more recursive
    recommendations: list[str] = field(default_factory=list)


@dataclass
class DependencyLoop:
    source: int
    target: int
    concept: str


@dataclass
class ChainRecursion:
    has_chain_recursion: bool
    dependency_loops: list[DependencyLoop]
    recommendation: str


@dataclass
class RecursionCheck:
    """Result of checking a new inference against existing ones."""
    has_recursion: bool
    cycle_depth: Optional[int] = None
    similarity_score: Optional[float] = None


# ============================================================
# PATTERNS
# ============================================================

SELF_REFERENTIAL_PATTERNS = [
    re.compile(r"this is true because it is true", re.IGNORECASE),
    re.compile(r"it works because it works", re.IGNORECASE),
    re.compile(r"proves itself", re.IGNORECASE),
    re.compile(r"self-evident", re.IGNORECASE),
    re.compile(r"obviously correct", re.IGNORECASE),
]

CIRCULAR_PATTERNS = [
    OrderedPhrases("A causes B", "B causes A"),
    OrderedPhrases("because", "therefore", "because"),
    OrderedPhrases("leads to", "which leads back to"),
    OrderedPhrases("results in", "resulting from"),
]

TAUTOLOGICAL_PATTERNS = [
    re.compile(r"is what it is", re.IGNORECASE),
    re.compile(r"by definition", re.IGNORECASE),
    re.compile(r"necessarily true", re.IGNORECASE),
    re.compile(r"cannot be false", re.IGNORECASE),
]

# Phrases that only restate themselves (new-inference check)
REPEATED_CONCLUSION_PATTERNS = [
    re.compile(r"this inference shows that this inference", re.IGNORECASE),
    re.compile(r"we can conclude that we can conclude", re.IGNORECASE),
    re.compile(r"it follows that it follows", re.IGNORECASE),
    OrderedPhrases("therefore", "therefore", "therefore"),
]

IMPLICATION = re.compile(
    r"(.*?)(?<!\s)\s+(implies|suggests|indicates|shows that|means that)\s+(.*)",
    re.IGNORECASE,
)

DEFINITION = re.compile(r"\b(\w+)\s+(?:is|are|means|equals)\s+(\w+)", re.IGNORECASE)

CAUSAL_WORDS = ["because", "causes", "leads to", "results in", "therefore"]

SEVERITY_WEIGHTS = {"low": 0.25, "medium": 0.5, "high": 0.75, "critical": 1.0}

SIMILARITY_THRESHOLD = 0.8
IMPLICATION_SIMILARITY = 0.7
IMPLICIT_REFERENCE_SIMILARITY = 0.9

_SENTENCE_SPLIT = re.compile(r"[.!?]+")
_NON_WORD = re.compile(r"[^\w\s]")


# ============================================================
# TEXT HELPERS
# ============================================================

def _sentences(text: str) -> list[str]:
    return [s.strip() for s in _SENTENCE_SPLIT.split(text) if s.strip()]


def _tokenize(text: str) -> list[str]:
    cleaned = _NON_WORD.sub("", text.lower())
    return [w for w in cleaned.split() if len(w) > 2]


def _normalize(statement: str) -> str:
    cleaned = _NON_WORD.sub("", statement.lower().strip())
    return " ".join(cleaned.split())


def jaccard_similarity(a: str, b: str) -> float:
    """Jaccard similarity over content tokens (> 2 chars)."""
    set_a, set_b = set(_tokenize(a)), set(_tokenize(b))
    union = set_a | set_b
    if not union:
        return 0.0
    return len(set_a & set_b) / len(union)


def extract_key_concepts(text: str) -> list[str]:
    """Words longer than 3 characters that appear more than once."""
    counts: Counter[str] = Counter()
    for word in text.lower().split():
        clean = re.sub(r"[^a-z0-9]", "", word)
        if len(clean) > 3:
            counts[clean] += 1
    return [w for w, c in counts.items() if c > 1]


# ============================================================
# THE DETECTOR
# ============================================================

class RecursionDetector:
    """Detects circular and self-supporting reasoning."""

    def analyze(self, text: str) -> RecursionAnalysis:
        """Analyze a text for every recursion pattern type."""
        patterns: list[RecursionPattern] = []
        patterns.extend(self._detect_self_referential(text))
        patterns.extend(self._detect_circular(text))
        patterns.extend(self._detect_tautological(text))
        patterns.extend(self._detect_concept_loops(text))

        score = self._score(patterns)
        has_recursion = len(patterns) > 0

        if has_recursion:
            logger.warning(
                "Recursion patterns detected",
                extra={"pattern_count": len(patterns), "recursion_score": score},
            )

        return RecursionAnalysis(
            has_recursion=has_recursion,
            patterns=patterns,
            recursion_score=score,
            recommendations=self._recommendations(patterns),
        )

    def analyze_chain(self, texts: list[str]) -> ChainRecursion:
        """
        Look for concept loops across an ordered chain of inferences.

        A loop (i -> k) exists when inference i shares a concept with a
        non-adjacent later inference j, and an inference k after j refers
        back to a concept of i.
        """
        concepts = [extract_key_concepts(t) for t in texts]
        loops: list[DependencyLoop] = []
        seen: set[tuple[int, int]] = set()

        for i in range(len(concepts)):
            for j in range(i + 2, len(concepts)):
                if not any(c in concepts[j] for c in concepts[i]):
                    continue
                for k in range(j + 1, len(concepts)):
                    back = [c for c in concepts[k] if c in concepts[i]]
                    if back and (i, k) not in seen:
                        seen.add((i, k))
                        loops.append(DependencyLoop(source=i, target=k, concept=back[0]))

        has_loops = len(loops) > 0
        return ChainRecursion(
            has_chain_recursion=has_loops,
            dependency_loops=loops,
            recommendation=(
                "Break circular dependencies by introducing external evidence or axioms"
                if has_loops else
                "Chain shows good linear progression without circular dependencies"
            ),
        )

    def detect_recursion(
        self,
        new_inference: str,
        existing: Iterable[str],
    ) -> RecursionCheck:
        """Check whether a new inference repeats itself or an existing one."""
        if any(p.search(new_inference) for p in REPEATED_CONCLUSION_PATTERNS):
            return RecursionCheck(has_recursion=True, cycle_depth=1)

        if self._has_implication_cycle(new_inference):
            return RecursionCheck(has_recursion=True, cycle_depth=2)

        for content in existing:
            similarity = jaccard_similarity(new_inference, content)
            if similarity > SIMILARITY_THRESHOLD:
                return RecursionCheck(
                    has_recursion=True,
                    cycle_depth=1,
                    similarity_score=round(similarity, 3),
                )

        return RecursionCheck(has_recursion=False)

    def build_dependency_graph(self, inferences: list[dict]) -> dict[str, set[str]]:
        """
        Build id -> referenced ids. Explicit references come from the
        "references" key; implicit ones from another id appearing in the
        content or near-identical content.
        """
        graph: dict[str, set[str]] = {}
        for inference in inferences:
            edges = graph.setdefault(inference["id"], set())
            edges.update(inference.get("references") or [])

            for other in inferences:
                if other["id"] == inference["id"]:
                    continue
                mentioned = (
                    other["id"] in inference["content"]
                    or jaccard_similarity(inference["content"], other["content"])
                    > IMPLICIT_REFERENCE_SIMILARITY
                )
                if mentioned:
                    edges.add(other["id"])
        return graph

    def find_cycles(self, graph: dict[str, set[str]]) -> list[list[str]]:
        """DFS cycle search. Reports the first cycle reachable from each root."""
        cycles: list[list[str]] = []
        visited: set[str] = set()
        on_stack: set[str] = set()
        path: list[str] = []

        def dfs(node: str) -> bool:
            visited.add(node)
            on_stack.add(node)
            path.append(node)

            for neighbor in sorted(graph.get(node, ())):
                if neighbor not in visited:
                    if dfs(neighbor):
                        return True
                elif neighbor in on_stack:
                    cycles.append(path[path.index(neighbor):])
                    return True

            path.pop()
            on_stack.discard(node)
            return False

        for node in list(graph):
            if node not in visited:
                dfs(node)
                path.clear()
                on_stack.clear()

        return cycles

    # --- Pattern detectors ---

    def _detect_self_referential(self, text: str) -> list[RecursionPattern]:
        found = []
        for index, pattern in enumerate(SELF_REFERENTIAL_PATTERNS, start=1):
            match = pattern.search(text)
            if match:
                found.append(RecursionPattern(
                    type="self-referential",
                    location=f"Pattern {index}",
                    severity="high",
                    description="Statement refers to itself as proof",
                    example=match.group(0),
                ))
        return found

    def _detect_circular(self, text: str) -> list[RecursionPattern]:
        found = []
        for index, phrases in enumerate(CIRCULAR_PATTERNS, start=1):
            example = phrases.search(text)
            if example:
                found.append(RecursionPattern(
                    type="circular",
                    location=f"Circular pattern {index}",
                    severity="critical",
                    description="Circular causation detected",
                    example=example,
                ))

        pairs = self._causal_pairs(_sentences(text))
        for i, (cause1, effect1) in enumerate(pairs):
            for j in range(i + 1, len(pairs)):
                cause2, effect2 = pairs[j]
                if cause1 == effect2 and effect1 == cause2:
                    found.append(RecursionPattern(
                        type="circular",
                        location=f"Causal pairs {i + 1} and {j + 1}",
                        severity="critical",
                        description="Circular causation between concepts",
                        example=f'"{cause1}" <-> "{effect1}"',
                    ))
        return found

    def _detect_tautological(self, text: str) -> list[RecursionPattern]:
        found = []
        for index, pattern in enumerate(TAUTOLOGICAL_PATTERNS, start=1):
            match = pattern.search(text)
            if match:
                found.append(RecursionPattern(
                    type="tautological",
                    location=f"Tautology {index}",
                    severity="medium",
                    description="Statement is true by definition, not by evidence",
                    example=match.group(0),
                ))
        return found

    def _detect_concept_loops(self, text: str) -> list[RecursionPattern]:
        definitions: list[tuple[int, str, str]] = []
        for index, sentence in enumerate(_sentences(text), start=1):
            match = DEFINITION.search(sentence)
            if match:
                definitions.append((index, match.group(1).lower(), match.group(2).lower()))

        found = []
        for a, (sent1, term1, def1) in enumerate(definitions):
            for sent2, term2, def2 in definitions[a + 1:]:
                if term1 == def2 and def1 == term2:
                    found.append(RecursionPattern(
                        type="infinite-loop",
                        location=f"Definitions in sentences {sent1} and {sent2}",
                        severity="high",
                        description="Mutual definition creates infinite loop",
                        example=f"{term1} <-> {def1}",
                    ))
        return found

    @staticmethod
    def _causal_pairs(sentences: list[str]) -> list[tuple[str, str]]:
        """(cause, effect) for each sentence split cleanly on a causal word."""
        pairs = []
        for sentence in sentences:
            lower = sentence.lower()
            for word in CAUSAL_WORDS:
                parts = lower.split(word)
                if len(parts) == 2:
                    pairs.append((parts[1].strip(), parts[0].strip()))
        return pairs

    def _has_implication_cycle(self, text: str) -> bool:
        statements = [s for s in re.split(r"[.!?]", text) if len(s.strip()) > 10]
        implications: list[tuple[str, str]] = []

        for statement in statements:
            match = IMPLICATION.match(statement.strip())
            if not match:
                continue
            premise = _normalize(match.group(1))
            conclusion = _normalize(match.group(3))

            for prev_premise, prev_conclusion in implications:
                if (
                    jaccard_similarity(premise, prev_conclusion) > IMPLICATION_SIMILARITY
                    and jaccard_similarity(conclusion, prev_premise) > IMPLICATION_SIMILARITY
                ):
                    return True
            implications.append((premise, conclusion))

        return False

    # --- Scoring ---

    @staticmethod
    def _score(patterns: list[RecursionPattern]) -> float:
        if not patterns:
            return 0.0
        total = sum(SEVERITY_WEIGHTS[p.severity] for p in patterns)
        return min(1.0, total / 3)

    @staticmethod
    def _recommendations(patterns: list[RecursionPattern]) -> list[str]:
        types = {p.type for p in patterns}
        recs = []
        if "circular" in types:
            recs.append("Break circular reasoning by introducing external evidence")
        if "self-referential" in types:
            recs.append("Replace self-referential statements with objective evidence")
        if "tautological" in types:
            recs.append("Support tautological claims with empirical data")
        if "infinite-loop" in types:
            recs.append("Define terms using independent concepts to avoid loops")
        if len(patterns) > 3:
            recs.append("Consider restructuring the argument with clearer logical flow")
        return recs


# ============================================================
# SINGLETON
# ============================================================

recursion_detector = RecursionDetector()


def analyze_recursion(text: str) -> RecursionAnalysis:
    """Module-level shortcut for recursion_detector.analyze()."""
    return recursion_detector.analyze(text)
