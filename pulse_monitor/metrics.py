"""
Secondary physiological metrics from a PPG window.

All functions are pure and total: empty or degenerate input yields a
neutral value (0.0, an empty list, or zeroed metrics) instead of raising.

Notes
-----
- ``HRVMetrics.lf_hf_ratio`` is a time-domain proxy (SDNN / RMSSD), not a
  spectral LF/HF ratio.  A true LF/HF needs minutes of evenly resampled
  intervals; a 6-second window has neither.  Treat it as indicative only.
- Respiration rate is read from respiratory-induced amplitude variation:
  the sequence of pulse peak heights is treated as a slow oscillation and
  its zero crossings are counted.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Union

import numpy as np
from scipy.signal import find_peaks

ArrayLike = Union[Sequence[float], np.ndarray]

IBI_MIN_MS = 300.0
IBI_MAX_MS = 2000.0
RESPIRATION_MIN = 6.0
RESPIRATION_MAX = 40.0


@dataclass(frozen=True)
class HRVMetrics:
    sdnn: float = 0.0          # standard deviation of NN intervals (ms)
    rmssd: float = 0.0         # root mean square of successive differences (ms)
    pnn50: float = 0.0         # % of successive differences > 50 ms
    lf_hf_ratio: float = 0.0   # SDNN / RMSSD, time-domain proxy


@dataclass(frozen=True)
class AdvancedMetrics:
    ibi: float = 0.0                    # mean inter-beat interval (ms)
    hrv: HRVMetrics = field(default_factory=HRVMetrics)
    respiration_rate: float = 0.0       # breaths / min, 0 when unavailable
    perfusion_index: float = 0.0        # %
    snr: float = 0.0                    # dB
    sqi: float = 0.0                    # 0 – 100


# ---------------------------------------------------------------------------
# Peaks and intervals
# ---------------------------------------------------------------------------

def smooth3(signal: ArrayLike) -> np.ndarray:
    """3-point moving average; the edges average with themselves."""
    x = np.asarray(signal, dtype=np.float64)
    if x.size < 2:
        return x.copy()
    padded = np.concatenate(([x[0]], x, [x[-1]]))
    return (padded[:-2] + padded[1:-1] + padded[2:]) / 3.0


def find_peak_indices(
    signal: ArrayLike,
    fs: float,
    threshold_fraction: float = 0.5,
    refractory_seconds: float = 0.25,
) -> List[int]:
    """
    Indices of pulse peaks in *signal*.

    A peak is a local maximum (``scipy.signal.find_peaks``) of the 3-point
    smoothed signal lying strictly above
    ``min + threshold_fraction × (max - min)``.  Within the refractory period
    (250 ms ≈ 240 BPM) only the higher of two candidates is kept.
    """
    smooth = smooth3(signal)
    n = smooth.size
    if n < 3 or fs <= 0:
        return []

    low, high = float(np.min(smooth)), float(np.max(smooth))
    threshold = low + (high - low) * threshold_fraction
    min_distance = int(math.floor(refractory_seconds * fs))

    peaks, _ = find_peaks(smooth, height=threshold, distance=min_distance + 1)
    # find_peaks keeps heights equal to the threshold; only strictly higher count
    return [int(i) for i in peaks if smooth[i] > threshold]


def calculate_ibi(signal: ArrayLike, fs: float) -> List[float]:
    """Inter-beat intervals (ms) inside the 300 – 2000 ms physiological band."""
    peaks = find_peak_indices(signal, fs)
    if len(peaks) < 2:
        return []
    intervals = np.diff(np.asarray(peaks, dtype=np.float64)) / fs * 1000.0
    return [float(ms) for ms in intervals if IBI_MIN_MS < ms < IBI_MAX_MS]


def calculate_hrv(ibis: Sequence[float], min_intervals: int = 5) -> HRVMetrics:
    """
    Time-domain HRV statistics.

    Intervals more than 20 % away from the median are discarded first
    (missed or doubled beats); fewer than *min_intervals* survivors give
    zeroed metrics.
    """
    values = np.asarray(ibis, dtype=np.float64)
    if values.size == 0:
        return HRVMetrics()
    center = float(np.median(values))
    valid = values[np.abs(values - center) < 0.2 * center]
    if valid.size < max(2, min_intervals):
        return HRVMetrics()

    sdnn = float(np.std(valid, ddof=1))
    diffs = np.diff(valid)
    rmssd = float(np.sqrt(np.sum(diffs ** 2) / diffs.size))
    pnn50 = float(np.count_nonzero(np.abs(diffs) > 50.0) / diffs.size * 100.0)
    lf_hf = sdnn / rmssd if rmssd > 0 else 0.0
    return HRVMetrics(sdnn=sdnn, rmssd=rmssd, pnn50=pnn50, lf_hf_ratio=lf_hf)


# ---------------------------------------------------------------------------
# Respiration
# ---------------------------------------------------------------------------

def estimate_respiration_rate(signal: ArrayLike, fs: float) -> float:
    """Breaths per minute from the peak-amplitude envelope, 0.0 if unavailable."""
    x = np.asarray(signal, dtype=np.float64)
    if x.size == 0 or fs <= 0:
        return 0.0
    peaks = find_peak_indices(x, fs)
    if len(peaks) < 4:
        return 0.0

    envelope = x[peaks]
    # No amplitude modulation at all: crossings would only count rounding noise
    if np.ptp(envelope) <= 1e-9 * max(1.0, float(np.max(np.abs(envelope)))):
        return 0.0
    envelope = envelope - np.mean(envelope)
    previous, current = envelope[:-1], envelope[1:]
    crossings = int(np.count_nonzero(
        ((previous > 0) & (current <= 0)) | ((previous < 0) & (current >= 0))
    ))

    duration_min = x.size / fs / 60.0
    rate = (crossings / 2.0) / duration_min
    return float(rate) if RESPIRATION_MIN <= rate <= RESPIRATION_MAX else 0.0


# ---------------------------------------------------------------------------
# Amplitude and quality
# ---------------------------------------------------------------------------

def calculate_perfusion_index(signal: ArrayLike) -> float:
    """
    Half the peak-to-peak amplitude over the mean level, in percent.

    0.0 when the mean does not exceed the amplitude: such a window (e.g. a
    band-passed one) carries no usable DC level.
    """
    x = np.asarray(signal, dtype=np.float64)
    if x.size == 0:
        return 0.0
    dc = float(np.mean(x))
    ac = float(np.ptp(x)) / 2.0
    if dc <= 0 or dc <= ac:
        return 0.0
    return ac / dc * 100.0


def calculate_snr(signal: ArrayLike) -> float:
    """
    Signal-to-noise ratio in dB: variance of the window over the mean
    squared sample-to-sample difference (a high-frequency noise estimate).
    """
    x = np.asarray(signal, dtype=np.float64)
    if x.size < 2:
        return 0.0
    signal_power = float(np.var(x))
    noise_power = float(np.mean(np.diff(x) ** 2))
    if noise_power <= 0 or signal_power <= 0:
        return 0.0
    return 10.0 * math.log10(signal_power / noise_power)


def calculate_sqi(signal: ArrayLike, raw: Optional[ArrayLike] = None) -> float:
    """
    Composite signal quality index (0 – 100).

    Equal-weight blend of
      * SNR of *signal*, scaled linearly over 5 – 30 dB,
      * perfusion index, scaled over 0 – 20 %,
      * stability: coefficient of variation inside (0.01, 0.3).

    Perfusion and stability are taken from *raw* when given, since a
    band-passed signal has no DC level to relate the amplitude to.
    """
    x = np.asarray(signal, dtype=np.float64)
    if x.size < 10:
        return 0.0
    reference = np.asarray(raw, dtype=np.float64) if raw is not None else x

    snr_score = min(max((calculate_snr(x) - 5.0) / 25.0, 0.0), 1.0)
    pi_score = min(max(calculate_perfusion_index(reference) / 20.0, 0.0), 1.0)

    mean = float(np.mean(reference)) if reference.size else 0.0
    cv = float(np.std(reference)) / mean if mean > 0 else 0.0
    stability_score = 1.0 if 0.01 < cv < 0.3 else 0.0

    return (snr_score + pi_score + stability_score) / 3.0 * 100.0


def compute_advanced_metrics(
    window: ArrayLike,
    fs: float,
    raw: Optional[ArrayLike] = None,
) -> AdvancedMetrics:
    """
    Bundle every secondary metric for one window evaluation.

    *raw* is the unfiltered brightness matching *window*; it is only used
    when it has the same length and contains no NaN.
    """
    x = np.asarray(window, dtype=np.float64)
    reference = None
    if raw is not None:
        candidate = np.asarray(raw, dtype=np.float64)
        if candidate.shape == x.shape and np.all(np.isfinite(candidate)):
            reference = candidate

    ibis = calculate_ibi(x, fs)
    return AdvancedMetrics(
        ibi=float(np.mean(ibis)) if ibis else 0.0,
        hrv=calculate_hrv(ibis),
        respiration_rate=estimate_respiration_rate(x, fs),
        perfusion_index=calculate_perfusion_index(reference if reference is not None else x),
        snr=calculate_snr(x),
        sqi=calculate_sqi(x, reference),
    )
