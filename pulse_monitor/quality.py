"""
Signal quality gate.

Three cheap heuristics decide whether a window is worth handing to the
heart-rate estimator:

* AC/DC ratio – RMS of the de-meaned window over its absolute mean,
  accepted inside ``(0.001, 1.0)``.
* Skewness – a pulse wave is asymmetric (fast systolic rise, slow decay),
  accepted when ``|skew| > 0.2``.
* Peak-to-peak span – accepted above ``1.0`` brightness unit.

The window passes when *at least one* heuristic passes (configurable up to
all three).  The estimator's correlation floor and BPM band are the second
line of rejection.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Union

import numpy as np
from scipy.stats import skew

ArrayLike = Union[Sequence[float], np.ndarray]


@dataclass(frozen=True)
class QualityScore:
    ac_dc_ratio: float
    skewness: float
    peak_to_peak: float
    checks_passed: int
    checks_total: int
    score: float        # 1.0 when enough checks passed, else 0.0
    sufficient: bool    # False when the window was too short to assess

    @classmethod
    def insufficient(cls) -> "QualityScore":
        return cls(0.0, 0.0, 0.0, 0, 3, 0.0, False)


def calculate_skewness(data: ArrayLike) -> float:
    """Population skewness (third standardised moment); 0.0 when undefined."""
    x = np.asarray(data, dtype=np.float64)
    if x.size < 3 or np.std(x) == 0:
        return 0.0
    return float(skew(x, bias=True))


class SignalQualityAssessor:
    """
    Stateless quality scorer for a filtered window.

    Parameters
    ----------
    min_samples:
        Windows shorter than this are rated insufficient.
    min_checks:
        How many of the three heuristics must pass for a score of 1.0.
    min_quality:
        Score required by :meth:`passes`.
    ac_dc_range:
        Open interval accepted for the AC/DC ratio.
    skewness_min:
        Minimum absolute skewness.
    peak_to_peak_min:
        Minimum peak-to-peak span.
    """

    def __init__(
        self,
        min_samples: int = 10,
        min_checks: int = 1,
        min_quality: float = 0.5,
        ac_dc_range: tuple = (0.001, 1.0),
        skewness_min: float = 0.2,
        peak_to_peak_min: float = 1.0,
    ) -> None:
        self.min_samples = min_samples
        self.min_checks = min_checks
        self.min_quality = min_quality
        self.ac_dc_range = ac_dc_range
        self.skewness_min = skewness_min
        self.peak_to_peak_min = peak_to_peak_min

    def assess(self, window: ArrayLike) -> QualityScore:
        data = np.asarray(window, dtype=np.float64)
        if data.size < self.min_samples:
            return QualityScore.insufficient()

        mean = float(np.mean(data))
        ac = float(np.sqrt(np.mean((data - mean) ** 2)))
        dc = abs(mean)
        ratio = ac / dc if dc > 0 else 0.0
        skewness = calculate_skewness(data)
        peak_to_peak = float(np.ptp(data))

        low, high = self.ac_dc_range
        checks = (
            low < ratio < high,
            abs(skewness) > self.skewness_min,
            peak_to_peak > self.peak_to_peak_min,
        )
        passed = sum(checks)
        return QualityScore(
            ac_dc_ratio=ratio,
            skewness=skewness,
            peak_to_peak=peak_to_peak,
            checks_passed=passed,
            checks_total=len(checks),
            score=1.0 if passed >= self.min_checks else 0.0,
            sufficient=True,
        )

    def passes(self, window: ArrayLike) -> bool:
        """True when the window is long enough and clears ``min_quality``."""
        result = self.assess(window)
        return result.sufficient and result.score >= self.min_quality
