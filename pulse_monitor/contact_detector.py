"""
Finger-on-lens contact detector.

With the torch on, a fingertip pressed over the lens turns the frame a
bright, nearly uniform red; an uncovered lens facing a room or a table is
much darker in the red channel.  Working on the scalar red brightness that
the sensor delivers, contact is declared once a short run of consecutive
samples is bright enough, and declared lost as soon as a single sample
falls well below that level.

The lost threshold sits well below the covered threshold (hysteresis).
"""

from __future__ import annotations

from collections import deque
from typing import Deque


class ContactDetector:
    """
    Heuristic detector: is the lens covered by a finger?

    Parameters
    ----------
    covered_threshold:
        Minimum raw brightness (0 – 255) of every sample in the contact run.
        Default: 100.
    lost_threshold:
        Raw brightness below which contact counts as lost.  Default: 40.
    run_length:
        Number of consecutive covered samples required.  Default: 5.
    """

    def __init__(
        self,
        covered_threshold: float = 100.0,
        lost_threshold: float = 40.0,
        run_length: int = 5,
    ) -> None:
        if run_length < 1:
            raise ValueError(f"run_length must be >= 1, got {run_length}")
        self.covered_threshold = covered_threshold
        self.lost_threshold = lost_threshold
        self.run_length = run_length
        self._recent: Deque[float] = deque(maxlen=run_length)

    def observe(self, brightness: float) -> bool:
        """Record *brightness* and return *True* once the contact run is complete."""
        self._recent.append(float(brightness))
        return self.is_covered

    def is_lost(self, brightness: float) -> bool:
        """Return *True* if *brightness* means the finger was removed."""
        return brightness < self.lost_threshold

    @property
    def is_covered(self) -> bool:
        return (
            len(self._recent) == self.run_length
            and all(v >= self.covered_threshold for v in self._recent)
        )

    def reset(self) -> None:
        self._recent.clear()
