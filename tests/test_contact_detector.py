"""
Unit tests for ContactDetector.
Run with:  pytest tests/
"""

from __future__ import annotations

import pytest

from pulse_monitor.contact_detector import ContactDetector


class TestContactDetector:

    def test_dark_lens_not_covered(self):
        det = ContactDetector()
        for _ in range(10):
            assert det.observe(20.0) is False
        assert not det.is_covered

    def test_covered_after_full_run(self):
        det = ContactDetector(run_length=5)
        results = [det.observe(150.0) for _ in range(5)]
        assert results == [False, False, False, False, True]
        assert det.is_covered

    def test_threshold_is_inclusive(self):
        det = ContactDetector(covered_threshold=100.0, run_length=3)
        for _ in range(3):
            det.observe(100.0)
        assert det.is_covered

    def test_interrupted_run_starts_over(self):
        det = ContactDetector(run_length=5)
        for _ in range(4):
            det.observe(150.0)
        det.observe(90.0)
        for _ in range(4):
            assert det.observe(150.0) is False
        assert det.observe(150.0) is True

    def test_lost_below_threshold(self):
        det = ContactDetector(lost_threshold=40.0)
        assert det.is_lost(39.9)
        assert not det.is_lost(40.0)
        assert not det.is_lost(150.0)

    def test_reset(self):
        det = ContactDetector(run_length=2)
        det.observe(200.0)
        det.observe(200.0)
        det.reset()
        assert not det.is_covered
        assert det.observe(200.0) is False

    def test_invalid_run_length(self):
        with pytest.raises(ValueError):
            ContactDetector(run_length=0)
