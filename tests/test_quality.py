"""
Unit tests for the signal quality gate.
Run with:  pytest tests/
"""

from __future__ import annotations

import numpy as np
import pytest

from pulse_monitor.quality import QualityScore, SignalQualityAssessor, calculate_skewness


def _sine(amplitude: float, n: int = 180, period: float = 30.0, offset: float = 0.0) -> np.ndarray:
    return offset + amplitude * np.sin(2 * np.pi * np.arange(n) / period)


def _pulse_train(n: int = 180, period: int = 25) -> np.ndarray:
    """Sharp systolic peaks with slow decay: strongly right-skewed."""
    phase = (np.arange(n) % period) / period
    return 3.0 * np.exp(-6.0 * phase)


class TestSkewness:

    def test_constant_is_zero(self):
        assert calculate_skewness(np.full(50, 7.0)) == 0.0

    def test_too_short_is_zero(self):
        assert calculate_skewness([1.0, 2.0]) == 0.0

    def test_symmetric_is_near_zero(self):
        assert abs(calculate_skewness(_sine(1.0))) < 1e-6

    def test_pulse_train_is_skewed(self):
        assert calculate_skewness(_pulse_train()) > 0.5


class TestSignalQualityAssessor:

    def test_short_window_insufficient(self):
        assessor = SignalQualityAssessor()
        result = assessor.assess(np.ones(9))
        assert result == QualityScore.insufficient()
        assert not result.sufficient
        assert result.score == 0.0
        assert not assessor.passes(np.ones(9))

    def test_window_failing_every_check(self):
        """Small, symmetric, zero-mean: AC/DC out of range, no skew, tiny span."""
        result = SignalQualityAssessor().assess(_sine(0.1))
        assert result.sufficient
        assert result.checks_passed == 0
        assert result.score == 0.0

    def test_constant_window_fails(self):
        result = SignalQualityAssessor().assess(np.full(50, 120.0))
        assert result.skewness == 0.0
        assert result.peak_to_peak == 0.0
        assert result.score == 0.0

    def test_one_check_is_enough_by_default(self):
        result = SignalQualityAssessor().assess(_sine(5.0))
        assert result.checks_passed == 1   # peak-to-peak only
        assert result.score == 1.0

    def test_stricter_min_checks(self):
        assessor = SignalQualityAssessor(min_checks=3)
        assert assessor.assess(_sine(5.0)).score == 0.0
        assert not assessor.passes(_sine(5.0))

    def test_ac_dc_ratio_on_raw_level(self):
        result = SignalQualityAssessor().assess(_sine(5.0, offset=100.0))
        assert result.ac_dc_ratio == pytest.approx(5.0 / np.sqrt(2.0) / 100.0, rel=1e-3)
        assert result.checks_passed >= 2

    def test_pulse_train_passes(self):
        assessor = SignalQualityAssessor()
        result = assessor.assess(_pulse_train())
        assert result.checks_passed >= 2
        assert assessor.passes(_pulse_train())
