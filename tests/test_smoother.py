"""
Unit tests for result smoothing.
Run with:  pytest tests/
"""

from __future__ import annotations

import numpy as np
import pytest

from pulse_monitor.smoother import KalmanSmoother, ResultSmoother, median, weighted_median


class TestMedians:

    def test_median_empty(self):
        assert median([]) == 0.0

    def test_median_even_count(self):
        assert median([60.0, 70.0, 80.0, 90.0]) == 75.0

    def test_weighted_median_matches_expansion(self):
        values = [64.0, 90.0, 71.0, 73.0]
        expanded = [64.0] + [90.0] * 2 + [71.0] * 3 + [73.0] * 4
        assert weighted_median(values) == float(np.median(expanded))

    def test_newer_value_wins_a_tie(self):
        assert weighted_median([60.0, 80.0]) == 80.0


class TestResultSmoother:

    def test_empty_history(self):
        assert ResultSmoother().combine([]) == 0.0

    def test_single_outlier_suppressed(self):
        history = [70.0, 70.0, 70.0, 70.0, 150.0]
        smoothed = ResultSmoother().combine(history)
        assert smoothed == 70.0
        assert abs(smoothed - 70.0) < abs(float(np.mean(history)) - 70.0)

    def test_only_span_considered(self):
        smoother = ResultSmoother(span=3)
        assert smoother.combine([100.0, 100.0, 100.0, 60.0, 60.0, 60.0]) == 60.0

    def test_accepts_deque(self):
        from collections import deque

        assert ResultSmoother().combine(deque([72.0, 74.0, 73.0])) == 73.0

    def test_kalman_method_converges(self):
        smoother = ResultSmoother(span=20, method="kalman")
        assert smoother.combine([90.0] * 20) == pytest.approx(90.0, abs=1.0)

    def test_kalman_damps_outlier(self):
        smoother = ResultSmoother(method="kalman")
        assert smoother.combine([70.0] * 6 + [150.0]) < 100.0

    def test_invalid_arguments(self):
        with pytest.raises(ValueError):
            ResultSmoother(span=0)
        with pytest.raises(ValueError):
            ResultSmoother(method="mean")


class TestKalmanSmoother:

    def test_first_update_moves_towards_measurement(self):
        kf = KalmanSmoother(initial=70.0)
        value = kf.update(80.0)
        assert 70.0 < value < 80.0
        assert kf.value == value

    def test_reset_restores_prior(self):
        kf = KalmanSmoother(initial=65.0)
        for _ in range(5):
            kf.update(100.0)
        kf.reset()
        assert kf.value == 65.0
        assert kf.update(80.0) == KalmanSmoother(initial=65.0).update(80.0)
