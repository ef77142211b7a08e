"""
Unit tests for MonitorConfig validation.
Run with:  pytest tests/
"""

from __future__ import annotations

import dataclasses

import pytest

from pulse_monitor.config import ConfigurationError, MonitorConfig, TerminationPolicy


class TestMonitorConfig:

    def test_defaults(self):
        cfg = MonitorConfig()
        assert cfg.sampling_rate == 30.0
        assert cfg.capacity == 180
        assert cfg.nyquist == 15.0
        assert cfg.termination is TerminationPolicy.COUNT
        assert cfg.min_estimates == 12

    def test_window_size_overrides_seconds(self):
        assert MonitorConfig(window_size=90, window_seconds=10.0).capacity == 90

    def test_capacity_follows_sampling_rate(self):
        assert MonitorConfig(sampling_rate=60.0).capacity == 360

    def test_policy_from_string(self):
        assert MonitorConfig(termination="duration").termination is TerminationPolicy.DURATION

    def test_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            MonitorConfig().sampling_rate = 60.0

    def test_error_is_value_error(self):
        assert issubclass(ConfigurationError, ValueError)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"window_seconds": 0.5},
            {"window_seconds": 1.0},
            {"window_size": 46},
            {"sampling_rate": 60.0, "window_seconds": 1.5},
            {"bpm_search_low": 30.0, "window_size": 60},
        ],
    )
    def test_window_must_span_lag_range(self, kwargs):
        with pytest.raises(ConfigurationError, match="window"):
            MonitorConfig(**kwargs)

    def test_shortest_window_accepted(self):
        assert MonitorConfig(window_size=47).capacity == 47

    def test_harmonic_check_may_be_disabled(self):
        assert MonitorConfig(harmonic_ratio=None).harmonic_ratio is None

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"sampling_rate": 0.0},
            {"sampling_rate": -1.0},
            {"window_size": 0},
            {"window_seconds": 0.0},
            {"window_seconds": 0.01},
            {"filter_low_hz": 0.0},
            {"filter_low_hz": 6.0},
            {"filter_high_hz": 15.0},
            {"filter_order": 0},
            {"contact_samples": 0},
            {"lost_contact_threshold": 120.0},
            {"motion_threshold": 0.0},
            {"min_quality": 1.5},
            {"quality_min_samples": 2},
            {"quality_min_checks": 4},
            {"bpm_search_low": 250.0},
            {"valid_bpm_low": 0.0},
            {"min_correlation": 1.0},
            {"harmonic_ratio": 0.0},
            {"evaluation_interval": -0.1},
            {"history_size": 0},
            {"smoothing_span": 0},
            {"smoothing_method": "mean"},
            {"termination": "forever"},
            {"min_estimates": 0},
            {"measurement_seconds": 0.0},
        ],
    )
    def test_invalid_values_raise(self, kwargs):
        with pytest.raises(ConfigurationError):
            MonitorConfig(**kwargs)
