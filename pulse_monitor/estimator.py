"""
Autocorrelation heart-rate estimator.

Algorithm
---------
1. De-mean the window and compute the normalised autocorrelation

       r(L) = Σ c[i]·c[i+L] / Σ c[i]²

   for every lag in ``[fs·60/bpm_high, fs·60/bpm_low]`` samples.  A window
   too short to hold the longest lag gives no estimate.
2. Take the lag with the largest correlation; reject the window when that
   correlation is below ``min_correlation``.
3. Harmonic check: a slow pulse with a pronounced dicrotic wave, or beats of
   alternating height, can make the correlation at twice the true period
   the largest one.  If the correlation at half the best lag is at least
   ``harmonic_ratio`` (60 %) of the best, the half lag (higher heart rate)
   is taken as the fundamental.
4. Parabolic interpolation through the three correlations around the chosen
   lag gives a fractional-sample period, beating the 1/fs quantisation.
5. ``BPM = 60 / (lag / fs)``, rejected outside the sanity band.
"""

from __future__ import annotations

import logging
import math
from typing import Optional, Sequence, Union

import numpy as np

logger = logging.getLogger(__name__)

ArrayLike = Union[Sequence[float], np.ndarray]


def autocorrelation(centered: np.ndarray, lag: int, energy: Optional[float] = None) -> float:
    """
    Correlation of *centered* with itself shifted by *lag* samples,
    normalised by the total energy (not by the overlap length).
    """
    n = len(centered)
    if lag <= 0 or lag >= n:
        return 0.0
    if energy is None:
        energy = float(np.dot(centered, centered))
    if energy <= 0:
        return 0.0
    return float(np.dot(centered[: n - lag], centered[lag:])) / energy


def refine_peak(values: Sequence[float], index: int) -> float:
    """
    Parabolic interpolation of a peak at *index*.

    Returns the fractional position of the vertex, or *index* itself when
    it sits on an edge, is not a local maximum, or the three points are
    collinear.  The offset is clamped to ±1 sample.
    """
    if index <= 0 or index >= len(values) - 1:
        return float(index)
    y1, y2, y3 = values[index - 1], values[index], values[index + 1]
    if y2 < y1 or y2 < y3:
        return float(index)
    denominator = y1 - 2.0 * y2 + y3
    if abs(denominator) < 1e-10:
        return float(index)
    offset = 0.5 * (y1 - y3) / denominator
    return float(index + max(-1.0, min(1.0, offset)))


class HeartRateEstimator:
    """
    Periodicity detector for a filtered PPG window.

    Parameters
    ----------
    fs:
        Default sampling rate (Hz) when :meth:`estimate` is not given one.
    bpm_low, bpm_high:
        BPM band scanned by the autocorrelation (default 40 – 220).
    min_correlation:
        Minimum normalised correlation at the chosen lag.
    harmonic_ratio:
        Fraction of the best correlation the half lag must exceed to be
        preferred.  ``None`` disables the harmonic check.
    valid_low, valid_high:
        Final sanity band (default 30 – 220 BPM).
    """

    def __init__(
        self,
        fs: float = 30.0,
        bpm_low: float = 40.0,
        bpm_high: float = 220.0,
        min_correlation: float = 0.2,
        harmonic_ratio: Optional[float] = 0.6,
        valid_low: float = 30.0,
        valid_high: float = 220.0,
    ) -> None:
        self.fs = fs
        self.bpm_low = bpm_low
        self.bpm_high = bpm_high
        self.min_correlation = min_correlation
        self.harmonic_ratio = harmonic_ratio
        self.valid_low = valid_low
        self.valid_high = valid_high

        self._last_correlation: float = 0.0
        self._last_lag: float = 0.0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def estimate(self, window: ArrayLike, sampling_rate: Optional[float] = None) -> Optional[float]:
        """
        Return the heart rate of *window* in BPM, or ``None`` when the window
        is too short, flat, insufficiently periodic or implausible.
        """
        fs = float(sampling_rate) if sampling_rate is not None else self.fs
        self._last_correlation = 0.0
        self._last_lag = 0.0

        signal = np.asarray(window, dtype=np.float64)
        n = signal.size
        if fs <= 0 or n < 3 or not np.all(np.isfinite(signal)):
            return None

        centered = signal - np.mean(signal)
        energy = float(np.dot(centered, centered))
        if energy < 1e-10:
            return None

        min_lag = max(1, int(math.floor(fs * 60.0 / self.bpm_high)))
        longest_lag = int(math.floor(fs * 60.0 / self.bpm_low))
        if longest_lag > n - 2:
            logger.debug(
                "Window of %d samples cannot span the %d-sample search range", n, longest_lag + 2
            )
            return None
        max_lag = longest_lag
        if max_lag < min_lag:
            return None

        # Correlations for lags 0 .. max_lag + 1 (neighbours used for refinement)
        top = min(n - 1, max_lag + 1)
        correlations = np.array(
            [autocorrelation(centered, lag, energy) for lag in range(top + 1)]
        )

        band = correlations[min_lag : max_lag + 1]
        best_lag = min_lag + int(np.argmax(band))
        best_corr = float(correlations[best_lag])
        if best_corr < self.min_correlation:
            logger.debug("Correlation %.3f below %.3f – no estimate", best_corr, self.min_correlation)
            return None

        lag = best_lag
        if self.harmonic_ratio is not None:
            half_lag = int(math.floor(best_lag / 2.0 + 0.5))
            if half_lag >= min_lag and correlations[half_lag] > best_corr * self.harmonic_ratio:
                lag = self._climb(correlations, half_lag, min_lag, max_lag)
                logger.debug(
                    "Half lag %d (r=%.3f) preferred over lag %d (r=%.3f)",
                    lag, correlations[lag], best_lag, best_corr,
                )

        refined = refine_peak(correlations, lag)
        bpm = 60.0 / (refined / fs)

        self._last_correlation = float(correlations[lag])
        self._last_lag = refined

        if not self.valid_low <= bpm <= self.valid_high:
            logger.debug("Estimate %.1f BPM outside %.0f–%.0f", bpm, self.valid_low, self.valid_high)
            return None
        return float(bpm)

    @property
    def last_correlation(self) -> float:
        """Correlation at the lag used by the last accepted or rejected estimate."""
        return self._last_correlation

    @property
    def last_lag(self) -> float:
        """Refined lag (samples) of the last estimate."""
        return self._last_lag

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _climb(correlations: np.ndarray, lag: int, min_lag: int, max_lag: int) -> int:
        """Step from *lag* to the adjacent local correlation maximum."""
        while True:
            if lag + 1 <= max_lag and correlations[lag + 1] > correlations[lag]:
                lag += 1
            elif lag - 1 >= min_lag and correlations[lag - 1] > correlations[lag]:
                lag -= 1
            else:
                return lag
