"""
Recursion Detector Tests

Covers pattern detection and scoring, chain concept loops, the
new-inference check against existing inferences, and cycle search
over an inference dependency graph.
"""

from __future__ import annotations

import time

import pytest

from verinfer.recursion import (
    analyze_recursion,
    extract_key_concepts,
    jaccard_similarity,
    recursion_detector,
)


# ============================================================
# SINGLE TEXT ANALYSIS
# ============================================================

class TestAnalyze:

    def test_clean_text(self):
        result = analyze_recursion("Sales increased in March according to the quarterly report.")
        assert result.has_recursion is False
        assert result.patterns == []
        assert result.recursion_score == 0.0
        assert result.recommendations == []

    def test_self_referential(self):
        result = analyze_recursion("It works because it works.")
        assert result.has_recursion is True
        assert [p.type for p in result.patterns] == ["self-referential"]
        assert result.patterns[0].severity == "high"
        assert result.recursion_score == pytest.approx(0.25)
        assert result.recommendations == [
            "Replace self-referential statements with objective evidence",
        ]

    def test_tautology(self):
        result = analyze_recursion("The rule is what it is.")
        assert [p.type for p in result.patterns] == ["tautological"]
        assert result.patterns[0].severity == "medium"
        assert result.recursion_score == pytest.approx(0.5 / 3)

    def test_circular_causal_pairs(self):
        result = analyze_recursion("Stress causes insomnia. Insomnia causes stress.")
        circular = [p for p in result.patterns if p.type == "circular"]
        assert len(circular) == 1
        assert circular[0].severity == "critical"
        assert "Break circular reasoning by introducing external evidence" in result.recommendations

    def test_mutual_definition_loop(self):
        result = analyze_recursion("Freedom is liberty. Liberty is freedom.")
        loops = [p for p in result.patterns if p.type == "infinite-loop"]
        assert len(loops) == 1
        assert loops[0].example == "freedom <-> liberty"

    def test_circular_example_is_matched_span(self):
        result = analyze_recursion(
            "Costs fall because volume grows, therefore volume grows because costs fall."
        )
        circular = [p for p in result.patterns if p.location == "Circular pattern 2"]
        assert len(circular) == 1
        assert circular[0].example == "because volume grows, therefore volume grows because"

    def test_long_input_scans_quickly(self):
        text = "because " * 2500 + "therefore " * 2500
        start = time.perf_counter()
        result = analyze_recursion(text)
        check = recursion_detector.detect_recursion(text, [])
        spaced = recursion_detector.detect_recursion("x" + " " * 20000 + "y.", [])
        assert time.perf_counter() - start < 5.0
        assert result.has_recursion is False
        assert check.has_recursion is True
        assert spaced.has_recursion is False

    def test_score_capped_at_one(self):
        text = (
            "This proves itself. It is self-evident and obviously correct. "
            "It is true by definition and necessarily true."
        )
        result = analyze_recursion(text)
        assert len(result.patterns) == 5
        assert result.recursion_score == 1.0
        assert "Consider restructuring the argument with clearer logical flow" in result.recommendations


# ============================================================
# HELPERS
# ============================================================

class TestHelpers:

    def test_jaccard_empty(self):
        assert jaccard_similarity("", "") == 0.0

    def test_jaccard_identical(self):
        assert jaccard_similarity("market share grows", "Market share grows!") == 1.0

    def test_jaccard_ignores_short_words(self):
        assert jaccard_similarity("a b of", "to it an") == 0.0

    def test_key_concepts_repeated_long_words(self):
        concepts = extract_key_concepts("Market growth drives market share and growth.")
        assert concepts == ["market", "growth"]


# ============================================================
# CHAIN ANALYSIS
# ============================================================

class TestChain:

    def test_concept_loop(self):
        texts = [
            "Pricing power matters. Pricing power drives margins.",
            "Customer churn is low this year.",
            "Pricing changes pricing outcomes.",
            "Pricing signals pricing strength.",
        ]
        chain = recursion_detector.analyze_chain(texts)
        assert chain.has_chain_recursion is True
        assert len(chain.dependency_loops) == 1
        loop = chain.dependency_loops[0]
        assert (loop.source, loop.target, loop.concept) == (0, 3, "pricing")

    def test_linear_chain(self):
        texts = [
            "Revenue rose. Revenue matters.",
            "Costs fell sharply.",
            "Margins widened. Margins improved.",
        ]
        chain = recursion_detector.analyze_chain(texts)
        assert chain.has_chain_recursion is False
        assert chain.dependency_loops == []
        assert chain.recommendation.startswith("Chain shows good linear progression")

    def test_empty_chain(self):
        assert recursion_detector.analyze_chain([]).has_chain_recursion is False


# ============================================================
# NEW INFERENCE CHECK
# ============================================================

class TestDetectRecursion:

    def test_repeated_conclusion(self):
        check = recursion_detector.detect_recursion(
            "We can conclude that we can conclude growth.", [],
        )
        assert check.has_recursion is True
        assert check.cycle_depth == 1
        assert check.similarity_score is None

    def test_implication_cycle(self):
        text = (
            "Higher wages implies better retention. "
            "Better retention implies higher wages."
        )
        check = recursion_detector.detect_recursion(text, [])
        assert check.has_recursion is True
        assert check.cycle_depth == 2

    def test_near_duplicate_of_existing(self):
        text = "Remote teams ship features faster than office teams."
        check = recursion_detector.detect_recursion(text, ["Unrelated sentence here.", text])
        assert check.has_recursion is True
        assert check.similarity_score == 1.0

    def test_novel_inference(self):
        check = recursion_detector.detect_recursion(
            "Hybrid schedules reduce commuting costs.",
            ["Remote teams ship features faster than office teams."],
        )
        assert check.has_recursion is False
        assert check.cycle_depth is None


# ============================================================
# DEPENDENCY GRAPH
# ============================================================

class TestDependencyGraph:

    def test_implicit_references_form_cycle(self):
        inferences = [
            {"id": "inf-1", "content": "Extends inf-2 with new data"},
            {"id": "inf-2", "content": "Refines inf-1 further"},
        ]
        graph = recursion_detector.build_dependency_graph(inferences)
        assert graph == {"inf-1": {"inf-2"}, "inf-2": {"inf-1"}}
        assert recursion_detector.find_cycles(graph) == [["inf-1", "inf-2"]]

    def test_explicit_references_without_cycle(self):
        inferences = [
            {"id": "x", "content": "alpha", "references": ["y"]},
            {"id": "y", "content": "beta"},
        ]
        graph = recursion_detector.build_dependency_graph(inferences)
        assert graph == {"x": {"y"}, "y": set()}
        assert recursion_detector.find_cycles(graph) == []

    def test_self_loop(self):
        assert recursion_detector.find_cycles({"a": {"a"}}) == [["a"]]
