"""
Synthetic fingertip brightness traces.

Used by the tests and by ``pulse-monitor --synthetic-bpm`` to exercise the
pipeline without a camera.  The trace is a DC level (a covered, torch-lit
lens) with a pulsatile ripple, an optional second harmonic (dicrotic
shape), optional respiratory amplitude modulation and optional Gaussian
noise.
"""

from __future__ import annotations

from typing import Optional

import numpy as np


def synthesize_ppg(
    bpm: float,
    seconds: float,
    fs: float = 30.0,
    baseline: float = 150.0,
    amplitude: float = 5.0,
    harmonic: float = 0.0,
    respiration_rate: Optional[float] = None,
    respiration_depth: float = 0.3,
    noise: float = 0.0,
    seed: Optional[int] = None,
) -> np.ndarray:
    """
    Return ``round(seconds × fs)`` brightness samples.

    Parameters
    ----------
    bpm:
        Pulse rate of the fundamental.
    seconds:
        Trace length.
    fs:
        Sampling rate (Hz).
    baseline:
        DC brightness (0 – 255 scale).
    amplitude:
        Peak amplitude of the fundamental.
    harmonic:
        Relative amplitude of the second harmonic.
    respiration_rate:
        Breaths per minute modulating the pulse amplitude; None disables.
    respiration_depth:
        Fractional depth of the respiratory amplitude modulation.
    noise:
        Standard deviation of additive Gaussian noise.
    seed:
        Seed for the noise generator.
    """
    n = int(round(seconds * fs))
    t = np.arange(n) / fs
    phase = 2.0 * np.pi * (bpm / 60.0) * t

    pulse = np.sin(phase) + harmonic * np.sin(2.0 * phase)
    if respiration_rate is not None:
        pulse *= 1.0 + respiration_depth * np.sin(2.0 * np.pi * (respiration_rate / 60.0) * t)

    trace = baseline + amplitude * pulse
    if noise > 0:
        rng = np.random.default_rng(seed)
        trace = trace + rng.normal(0.0, noise, n)
    return np.clip(trace, 0.0, 255.0)
