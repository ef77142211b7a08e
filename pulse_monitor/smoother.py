"""
Combining accepted estimates into the reported BPM.

The default combiner is a position-weighted median: the i-th of n
estimates (oldest first) is counted ``i + 1`` times before an ordinary
median is taken.  Newer estimates carry more weight and
a single wild estimate is outvoted.

A scalar Kalman filter is available as an alternative combiner.
"""

from __future__ import annotations

from typing import List, Sequence

import numpy as np


def median(values: Sequence[float]) -> float:
    """Ordinary median; 0.0 for empty input."""
    if len(values) == 0:
        return 0.0
    return float(np.median(np.asarray(values, dtype=np.float64)))


def weighted_median(values: Sequence[float]) -> float:
    """Median of *values* with the i-th entry replicated ``i + 1`` times."""
    if len(values) == 0:
        return 0.0
    weights = np.arange(1, len(values) + 1)
    return median(np.repeat(np.asarray(values, dtype=np.float64), weights))


class KalmanSmoother:
    """
    One-dimensional Kalman filter with a random-walk BPM model.

    Parameters
    ----------
    initial:
        Prior BPM.
    variance:
        Prior variance.
    process_noise:
        Variance added per update (how fast the true rate may wander).
    measurement_noise:
        Variance of a single estimate.
    """

    def __init__(
        self,
        initial: float = 70.0,
        variance: float = 10.0,
        process_noise: float = 0.5,
        measurement_noise: float = 5.0,
    ) -> None:
        self.initial = initial
        self.variance = variance
        self.process_noise = process_noise
        self.measurement_noise = measurement_noise
        self.reset()

    def update(self, measurement: float) -> float:
        self._p += self.process_noise
        gain = self._p / (self._p + self.measurement_noise)
        self._x += gain * (measurement - self._x)
        self._p *= 1.0 - gain
        return self._x

    def reset(self) -> None:
        self._x = self.initial
        self._p = self.variance

    @property
    def value(self) -> float:
        return self._x


class ResultSmoother:
    """
    Stateless combiner over the most recent ``span`` estimates.

    Parameters
    ----------
    span:
        Number of most recent history entries considered.
    method:
        ``"weighted_median"`` (default) or ``"kalman"``.  The Kalman variant
        replays the considered entries through a fresh :class:`KalmanSmoother`.
    """

    def __init__(self, span: int = 7, method: str = "weighted_median") -> None:
        if span < 1:
            raise ValueError(f"span must be >= 1, got {span}")
        if method not in ("weighted_median", "kalman"):
            raise ValueError(f"unknown smoothing method {method!r}")
        self.span = span
        self.method = method

    def combine(self, history: Sequence[float]) -> float:
        """Smoothed BPM of *history* (oldest first); 0.0 when empty."""
        recent: List[float] = list(history)[-self.span:]
        if not recent:
            return 0.0
        if self.method == "kalman":
            kalman = KalmanSmoother()
            for value in recent:
                kalman.update(value)
            return kalman.value
        return weighted_median(recent)
