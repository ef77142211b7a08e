"""
Unit tests for BandpassFilter.
Run with:  pytest tests/
"""

from __future__ import annotations

import math

import numpy as np
import pytest
from scipy.signal import freqz

from pulse_monitor.temporal_filter import BandpassFilter


def _gain(bpf: BandpassFilter, freq_hz: float) -> float:
    b, a = bpf.coefficients
    _, h = freqz(b, a, worN=[freq_hz], fs=bpf.fs)
    return float(abs(h[0]))


# ---------------------------------------------------------------------------
# Coefficients and frequency response
# ---------------------------------------------------------------------------

class TestBandpassDesign:

    def test_default_is_second_order(self):
        bpf = BandpassFilter()
        b, a = bpf.coefficients
        assert bpf.order == 2
        assert len(b) == 3 and len(a) == 3
        assert a[0] == pytest.approx(1.0)

    def test_numerator_is_antisymmetric(self):
        b, _ = BandpassFilter(fs=30.0).coefficients
        assert b[1] == pytest.approx(0.0, abs=1e-12)
        assert b[0] == pytest.approx(-b[2])

    def test_reference_coefficients_at_30hz(self):
        b, a = BandpassFilter(fs=30.0, low_hz=0.5, high_hz=5.0).coefficients
        assert b[0] == pytest.approx(0.3376, abs=1e-3)
        assert a[1] == pytest.approx(-1.2471, abs=1e-3)
        assert a[2] == pytest.approx(0.3249, abs=1e-3)

    def test_poles_inside_unit_circle(self):
        for fs in (15.0, 30.0, 60.0):
            _, a = BandpassFilter(fs=fs).coefficients
            assert np.all(np.abs(np.roots(a)) < 1.0)

    def test_rejects_dc_and_nyquist(self):
        bpf = BandpassFilter(fs=30.0)
        assert _gain(bpf, 0.0) == pytest.approx(0.0, abs=1e-9)
        assert _gain(bpf, 15.0) == pytest.approx(0.0, abs=1e-9)

    def test_unity_gain_at_centre(self):
        bpf = BandpassFilter(fs=30.0, low_hz=0.5, high_hz=5.0)
        warped = math.sqrt(math.tan(math.pi * 0.5 / 30.0) * math.tan(math.pi * 5.0 / 30.0))
        centre = 30.0 / math.pi * math.atan(warped)
        assert _gain(bpf, centre) == pytest.approx(1.0, abs=1e-6)

    def test_half_power_at_band_edges(self):
        bpf = BandpassFilter(fs=30.0, low_hz=0.5, high_hz=5.0)
        assert _gain(bpf, 0.5) == pytest.approx(1.0 / math.sqrt(2.0), abs=1e-3)
        assert _gain(bpf, 5.0) == pytest.approx(1.0 / math.sqrt(2.0), abs=1e-3)

    def test_higher_order_has_more_history(self):
        bpf = BandpassFilter(order=2)
        assert bpf.order == 4
        x, y = bpf.state
        assert x.shape == (4,) and y.shape == (4,)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"fs": 0.0},
            {"fs": -30.0},
            {"low_hz": 0.0},
            {"low_hz": 5.0, "high_hz": 0.5},
            {"high_hz": 15.0},
            {"order": 0},
        ],
    )
    def test_invalid_arguments_raise(self, kwargs):
        with pytest.raises(ValueError):
            BandpassFilter(**kwargs)


# ---------------------------------------------------------------------------
# Streaming behaviour
# ---------------------------------------------------------------------------

class TestBandpassStreaming:

    def test_removes_dc_level(self):
        bpf = BandpassFilter(fs=30.0)
        out = [bpf.process(150.0) for _ in range(300)]
        assert out[0] > 10.0           # step transient
        assert abs(out[-1]) < 1e-6     # settled to zero

    def test_passes_pulse_band(self):
        """A 1.2 Hz (72 BPM) ripple on a 100 DC level comes through nearly intact."""
        fs = 30.0
        bpf = BandpassFilter(fs=fs)
        t = np.arange(int(fs * 10)) / fs
        out = np.array([bpf.process(v) for v in 100.0 + 5.0 * np.sin(2 * np.pi * 1.2 * t)])
        tail = out[-90:]
        assert 4.0 < np.max(tail) < 5.5
        assert abs(np.mean(tail)) < 0.5

    def test_bounded_on_random_input(self):
        rng = np.random.default_rng(1234)
        bpf = BandpassFilter(fs=30.0)
        out = np.array([bpf.process(v) for v in rng.uniform(0.0, 255.0, 5000)])
        assert np.all(np.isfinite(out))
        assert np.max(np.abs(out)) < 2 * 255.0

    def test_matches_scipy_lfilter(self):
        from scipy.signal import lfilter

        rng = np.random.default_rng(7)
        data = rng.uniform(0.0, 255.0, 400)
        bpf = BandpassFilter(fs=30.0)
        b, a = bpf.coefficients
        ours = np.array([bpf.process(v) for v in data])
        np.testing.assert_allclose(ours, lfilter(b, a, data), rtol=1e-9, atol=1e-9)

    def test_reset_matches_fresh_filter(self):
        data = 120.0 + 5.0 * np.sin(np.arange(200) / 3.0)
        used = BandpassFilter(fs=30.0)
        for v in data:
            used.process(v)
        used.reset()
        used.reset()

        fresh = BandpassFilter(fs=30.0)
        for ours, theirs in zip(used.state, fresh.state):
            assert np.array_equal(ours, theirs)
        assert [used.process(v) for v in data[:20]] == [fresh.process(v) for v in data[:20]]

    def test_state_is_a_copy(self):
        bpf = BandpassFilter()
        bpf.process(100.0)
        x, _ = bpf.state
        x[0] = -1.0
        assert bpf.state[0][0] == 100.0
