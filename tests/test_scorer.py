"""
Tests for confidence scoring.
"""

import pytest

from verinfer.recursion import RecursionAnalysis
from verinfer.scorer import (
    CONFIDENCE_CEILING,
    CONFIDENCE_FLOOR,
    adjust_confidence,
    angle_confidence,
    penalize_recursion,
)


class TestAngleConfidence:

    def test_short_text_near_base(self):
        assert angle_confidence("short") == pytest.approx(0.701)

    def test_evidence_sections_add_confidence(self):
        plain = angle_confidence("Demand is rising in the region.")
        cited = angle_confidence("Demand is rising in the region. Evidence: orders doubled.")
        assert cited == pytest.approx(plain + 0.05 + 0.003)

    def test_capped(self):
        text = "Evidence: a. " * 3 + "word " * 2000
        assert angle_confidence(text) == CONFIDENCE_CEILING


class TestPenalizeRecursion:

    def test_no_analysis(self):
        assert penalize_recursion(0.8, None) == 0.8

    def test_no_recursion(self):
        clean = RecursionAnalysis(has_recursion=False, patterns=[], recursion_score=0.0)
        assert penalize_recursion(0.8, clean) == 0.8

    def test_full_recursion_halves(self):
        recursive = RecursionAnalysis(has_recursion=True, patterns=[], recursion_score=1.0)
        assert penalize_recursion(0.8, recursive) == pytest.approx(0.4)


class TestAdjustConfidence:

    def test_correct_and_coherent_increases(self):
        assert adjust_confidence(0.7, 0.9, True) == pytest.approx(0.7 * 1.1 * 1.05)

    def test_incorrect_and_incoherent_decreases(self):
        assert adjust_confidence(0.7, 0.2, False) == pytest.approx(0.7 * 0.5 * 0.75)

    def test_floor(self):
        assert adjust_confidence(0.1, 0.0, False) == CONFIDENCE_FLOOR

    def test_ceiling(self):
        assert adjust_confidence(0.95, 1.0, True) == CONFIDENCE_CEILING

    def test_high_original_is_damped(self):
        # 0.5 + 0.2 * 1.25 = 0.75
        assert adjust_confidence(0.92, 0.2, True) == pytest.approx(0.92 * 1.1 * 0.75 * 0.9)

    def test_low_original_is_lifted(self):
        assert adjust_confidence(0.2, 0.6, True) == pytest.approx(0.2 * 1.1 * 1.05 * 1.1)

    def test_mid_coherence_multiplier(self):
        # 0.9 + 0.6 * 0.25 = 1.05
        assert adjust_confidence(0.5, 0.6, True) == pytest.approx(0.5 * 1.1 * 1.05)
