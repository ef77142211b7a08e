"""
Measurement configuration.

Every tunable of the pipeline lives on :class:`MonitorConfig`.  The defaults
reproduce the fingertip/flash reference setup: 30 samples per second, a
6-second window, a 0.5 – 5 Hz band-pass and a count-based finish after
12 accepted estimates.

None of the thresholds are clinically validated; they are empirical values
that work for a phone camera with the torch on and are meant to be tuned
per deployment.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ConfigurationError(ValueError):
    """Raised when a :class:`MonitorConfig` holds an unusable value."""


class TerminationPolicy(Enum):
    COUNT    = "count"      # finish after ``min_estimates`` accepted estimates
    DURATION = "duration"   # finish ``measurement_seconds`` after contact


SMOOTHING_METHODS = ("weighted_median", "kalman")


@dataclass(frozen=True)
class MonitorConfig:
    """
    Tunables for one measurement session.

    Parameters
    ----------
    sampling_rate:
        Nominal rate of the incoming brightness samples (Hz).
    window_seconds:
        Length of the analysis window.  Ignored when ``window_size`` is set.
    window_size:
        Explicit window capacity in samples.
    filter_low_hz, filter_high_hz:
        Band-pass edges.  The default band covers 30 – 300 BPM.
    filter_order:
        Butterworth prototype order.  ``1`` yields the second-order
        difference equation (two input and two output history slots).
    contact_threshold:
        Raw brightness every sample of the contact run must reach.
    contact_samples:
        Length of the contact run.
    lost_contact_threshold:
        Raw brightness below which the finger counts as removed.
    motion_threshold:
        Largest accepted jump between consecutive filtered samples.
    motion_discard:
        Number of most recent samples dropped on a motion artifact.
    motion_min_history:
        The motion check only applies once more samples than this are held.
    min_quality:
        Minimum quality score (0 – 1) before the estimator is consulted.
    quality_min_samples:
        Windows shorter than this are rated "insufficient".
    quality_min_checks:
        Number of quality heuristics that must pass.
    bpm_search_low, bpm_search_high:
        BPM band scanned by the autocorrelation.
    min_correlation:
        Autocorrelation peak below this is rejected as no estimate.
    harmonic_ratio:
        Half-lag correlation must exceed this fraction of the best lag to be
        preferred.  ``None`` disables the correction.
    valid_bpm_low, valid_bpm_high:
        Final sanity band for an estimate.
    evaluation_interval:
        Minimum time between two window evaluations (s).
    history_size:
        Number of accepted estimates retained.
    smoothing_span:
        Number of most recent estimates combined into the displayed BPM.
    smoothing_method:
        ``"weighted_median"`` or ``"kalman"``.
    termination:
        :class:`TerminationPolicy` deciding when a reading is done.
    min_estimates:
        Accepted estimates required by the count policy.
    measurement_seconds:
        Measurement length for the duration policy.
    """

    sampling_rate: float = 30.0
    window_seconds: float = 6.0
    window_size: Optional[int] = None

    filter_low_hz: float = 0.5
    filter_high_hz: float = 5.0
    filter_order: int = 1

    contact_threshold: float = 100.0
    contact_samples: int = 5
    lost_contact_threshold: float = 40.0

    motion_threshold: float = 10.0
    motion_discard: int = 5
    motion_min_history: int = 5

    min_quality: float = 0.5
    quality_min_samples: int = 10
    quality_min_checks: int = 1

    bpm_search_low: float = 40.0
    bpm_search_high: float = 220.0
    min_correlation: float = 0.2
    harmonic_ratio: Optional[float] = 0.6
    valid_bpm_low: float = 30.0
    valid_bpm_high: float = 220.0

    evaluation_interval: float = 0.5
    history_size: int = 12
    smoothing_span: int = 7
    smoothing_method: str = "weighted_median"

    termination: TerminationPolicy = TerminationPolicy.COUNT
    min_estimates: int = 12
    measurement_seconds: float = 30.0

    def __post_init__(self) -> None:
        # Accept plain strings for the policy ("count" / "duration").
        if not isinstance(self.termination, TerminationPolicy):
            try:
                object.__setattr__(self, "termination", TerminationPolicy(self.termination))
            except ValueError:
                raise ConfigurationError(
                    f"unknown termination policy {self.termination!r}"
                ) from None
        self._validate()

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def capacity(self) -> int:
        """Window capacity in samples."""
        if self.window_size is not None:
            return int(self.window_size)
        return int(round(self.sampling_rate * self.window_seconds))

    @property
    def nyquist(self) -> float:
        return self.sampling_rate / 2.0

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _validate(self) -> None:
        if self.sampling_rate <= 0:
            raise ConfigurationError(f"sampling_rate must be > 0, got {self.sampling_rate}")
        if self.window_size is not None and self.window_size <= 0:
            raise ConfigurationError(f"window_size must be > 0, got {self.window_size}")
        if self.window_size is None and self.window_seconds <= 0:
            raise ConfigurationError(f"window_seconds must be > 0, got {self.window_seconds}")
        if self.capacity <= 0:
            raise ConfigurationError("window capacity rounds to zero samples")

        if not 0 < self.filter_low_hz < self.filter_high_hz < self.nyquist:
            raise ConfigurationError(
                "filter band must satisfy 0 < low < high < Nyquist "
                f"(got {self.filter_low_hz}, {self.filter_high_hz}, Nyquist {self.nyquist})"
            )
        if self.filter_order < 1:
            raise ConfigurationError(f"filter_order must be >= 1, got {self.filter_order}")

        if self.contact_samples < 1:
            raise ConfigurationError("contact_samples must be >= 1")
        if self.lost_contact_threshold < 0 or self.contact_threshold < 0:
            raise ConfigurationError("brightness thresholds must be non-negative")
        if self.lost_contact_threshold >= self.contact_threshold:
            raise ConfigurationError(
                "lost_contact_threshold must be below contact_threshold"
            )

        if self.motion_threshold <= 0:
            raise ConfigurationError("motion_threshold must be > 0")
        if self.motion_discard < 0 or self.motion_min_history < 0:
            raise ConfigurationError("motion_discard and motion_min_history must be >= 0")

        if not 0 <= self.min_quality <= 1:
            raise ConfigurationError("min_quality must lie in [0, 1]")
        if self.quality_min_samples < 3:
            raise ConfigurationError("quality_min_samples must be >= 3")
        if not 1 <= self.quality_min_checks <= 3:
            raise ConfigurationError("quality_min_checks must lie in [1, 3]")

        if not 0 < self.bpm_search_low < self.bpm_search_high:
            raise ConfigurationError("BPM search band must satisfy 0 < low < high")
        if not 0 < self.valid_bpm_low < self.valid_bpm_high:
            raise ConfigurationError("valid BPM band must satisfy 0 < low < high")
        longest_lag = int(math.floor(self.sampling_rate * 60.0 / self.bpm_search_low))
        if self.capacity < longest_lag + 2:
            raise ConfigurationError(
                f"window of {self.capacity} samples is shorter than the {longest_lag + 2} "
                f"needed to search down to {self.bpm_search_low} BPM"
            )
        if not 0 <= self.min_correlation < 1:
            raise ConfigurationError("min_correlation must lie in [0, 1)")
        if self.harmonic_ratio is not None and not 0 < self.harmonic_ratio <= 1:
            raise ConfigurationError("harmonic_ratio must lie in (0, 1] or be None")

        if self.evaluation_interval < 0:
            raise ConfigurationError("evaluation_interval must be >= 0")
        if self.history_size < 1 or self.smoothing_span < 1:
            raise ConfigurationError("history_size and smoothing_span must be >= 1")
        if self.smoothing_method not in SMOOTHING_METHODS:
            raise ConfigurationError(
                f"smoothing_method must be one of {SMOOTHING_METHODS}, got {self.smoothing_method!r}"
            )

        if self.min_estimates < 1:
            raise ConfigurationError("min_estimates must be >= 1")
        if self.measurement_seconds <= 0:
            raise ConfigurationError("measurement_seconds must be > 0")
