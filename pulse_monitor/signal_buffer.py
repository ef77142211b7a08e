"""
Sliding analysis window with motion-artifact rejection.

A finger shifting on the lens makes the filtered signal jump far more than
any pulse does.  When that happens the newest few samples are probably
contaminated as well, so they are dropped together with the incoming one
instead of being averaged into the window.
"""

from __future__ import annotations

import logging
from collections import deque
from enum import Enum
from typing import Deque, Optional

import numpy as np

logger = logging.getLogger(__name__)


class WindowState(Enum):
    ACCEPTED        = "accepted"
    MOTION_REJECTED = "motion_rejected"


class SignalBuffer:
    """
    Fixed-capacity FIFO of filtered samples (oldest evicted first).

    A parallel deque keeps the raw sample that produced each filtered value,
    so the DC level is still available to metrics that need it.

    Parameters
    ----------
    capacity:
        Maximum number of samples held (default 180 ≈ 6 s at 30 Hz).
    motion_threshold:
        Largest accepted change between the incoming filtered value and the
        most recent retained one.
    motion_discard:
        Number of most recent samples dropped when an artifact is detected.
    motion_min_history:
        The motion check only runs once more than this many samples are held.
    """

    def __init__(
        self,
        capacity: int = 180,
        motion_threshold: float = 10.0,
        motion_discard: int = 5,
        motion_min_history: int = 5,
    ) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be > 0, got {capacity}")
        self.capacity = capacity
        self.motion_threshold = motion_threshold
        self.motion_discard = motion_discard
        self.motion_min_history = motion_min_history

        self._buffer: Deque[float] = deque(maxlen=capacity)
        self._raw: Deque[float] = deque(maxlen=capacity)
        self._rejections: int = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def push(self, filtered: float, raw: Optional[float] = None) -> WindowState:
        """
        Append *filtered* (and its *raw* source sample) to the window.

        Returns :attr:`WindowState.MOTION_REJECTED` when the jump from the
        last retained value exceeds ``motion_threshold``; in that case the
        newest ``motion_discard`` samples are removed and *filtered* is not
        appended.
        """
        if len(self._buffer) > self.motion_min_history:
            change = abs(filtered - self._buffer[-1])
            if change > self.motion_threshold:
                self._discard_recent(self.motion_discard)
                self._rejections += 1
                logger.debug(
                    "Motion artifact (Δ=%.2f > %.2f): dropped last %d samples",
                    change, self.motion_threshold, self.motion_discard,
                )
                return WindowState.MOTION_REJECTED

        self._buffer.append(float(filtered))
        self._raw.append(float(raw) if raw is not None else float("nan"))
        return WindowState.ACCEPTED

    def values(self) -> np.ndarray:
        """Filtered window contents, oldest first."""
        return np.array(self._buffer, dtype=np.float64)

    def raw_values(self) -> np.ndarray:
        """Raw samples matching :meth:`values` (NaN where none was given)."""
        return np.array(self._raw, dtype=np.float64)

    def reset(self) -> None:
        """Empty the window and clear the rejection counter."""
        self._buffer.clear()
        self._raw.clear()
        self._rejections = 0

    @property
    def fill_ratio(self) -> float:
        """How full the window is (0 – 1)."""
        return len(self._buffer) / self.capacity

    @property
    def is_full(self) -> bool:
        return len(self._buffer) == self.capacity

    @property
    def rejections(self) -> int:
        """Motion artifacts seen since the last reset."""
        return self._rejections

    def __len__(self) -> int:
        return len(self._buffer)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _discard_recent(self, count: int) -> None:
        for _ in range(min(count, len(self._buffer))):
            self._buffer.pop()
            self._raw.pop()
