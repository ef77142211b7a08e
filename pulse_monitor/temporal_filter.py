"""
Streaming band-pass filter.

The brightness of a flash-lit fingertip is a large, slowly drifting DC level
with a small pulsatile (AC) ripple on top.  :class:`BandpassFilter` isolates
the ripple one sample at a time.

Algorithm
---------
1. Design a Butterworth band-pass (default 0.5 – 5 Hz = 30 – 300 BPM) with
   :func:`scipy.signal.butter`.  For ``order=1`` this is the classic biquad

       H(s) = bw·s / (s² + bw·s + w0²)

   mapped to the z-plane with the bilinear transform and pre-warped edges.
2. Evaluate the direct form I difference equation

       y[n] = Σ b[k]·x[n-k] - Σ a[k]·y[n-k]

   over the last N raw inputs and the last N filtered outputs.
"""

from __future__ import annotations

import logging
from typing import Tuple

import numpy as np
from scipy.signal import butter

logger = logging.getLogger(__name__)


class BandpassFilter:
    """
    Fixed-coefficient recursive band-pass filter.

    Parameters
    ----------
    fs:
        Sampling rate of the incoming samples (Hz).
    low_hz:
        Lower cutoff (default 0.5 Hz = 30 BPM).
    high_hz:
        Upper cutoff (default 5.0 Hz = 300 BPM).
    order:
        Butterworth prototype order.  The difference equation has ``2 × order``
        history slots for inputs and for outputs.
    """

    def __init__(
        self,
        fs: float = 30.0,
        low_hz: float = 0.5,
        high_hz: float = 5.0,
        order: int = 1,
    ) -> None:
        if fs <= 0:
            raise ValueError(f"fs must be > 0, got {fs}")
        if not 0 < low_hz < high_hz < fs / 2.0:
            raise ValueError(
                f"cutoffs must satisfy 0 < low < high < fs/2 (got {low_hz}, {high_hz}, fs={fs})"
            )
        if order < 1:
            raise ValueError(f"order must be >= 1, got {order}")

        self.fs = fs
        self.low_hz = low_hz
        self.high_hz = high_hz

        self._b, self._a = self._build_filter(order)
        self._n = len(self._a) - 1

        # History, most recent first: _x[0] = x[n-1], _y[0] = y[n-1]
        self._x = np.zeros(self._n, dtype=np.float64)
        self._y = np.zeros(self._n, dtype=np.float64)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def process(self, sample: float) -> float:
        """Filter one raw sample and return the band-passed value."""
        x = float(sample)
        y = (
            self._b[0] * x
            + float(np.dot(self._b[1:], self._x))
            - float(np.dot(self._a[1:], self._y))
        )

        # Shift history by one slot
        self._x[1:] = self._x[:-1]
        self._x[0] = x
        self._y[1:] = self._y[:-1]
        self._y[0] = y
        return y

    def reset(self) -> None:
        """Zero the input and output history."""
        self._x.fill(0.0)
        self._y.fill(0.0)

    @property
    def order(self) -> int:
        """Order of the difference equation (number of history slots)."""
        return self._n

    @property
    def coefficients(self) -> Tuple[np.ndarray, np.ndarray]:
        """``(b, a)`` with ``a[0] == 1``."""
        return self._b.copy(), self._a.copy()

    @property
    def state(self) -> Tuple[np.ndarray, np.ndarray]:
        """Copies of the ``(inputs, outputs)`` history, most recent first."""
        return self._x.copy(), self._y.copy()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _build_filter(self, order: int) -> Tuple[np.ndarray, np.ndarray]:
        """Construct the Butterworth band-pass in transfer-function form."""
        b, a = butter(order, [self.low_hz, self.high_hz], btype="bandpass", fs=self.fs)
        b = np.asarray(b, dtype=np.float64) / a[0]
        a = np.asarray(a, dtype=np.float64) / a[0]
        logger.debug(
            "Band-pass %.2f–%.2f Hz @ %.1f Hz: b=%s a=%s",
            self.low_hz, self.high_hz, self.fs, b, a,
        )
        return b, a
