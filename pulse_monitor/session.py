"""
Measurement session controller.

State machine
-------------

.. code-block:: text

    IDLE ──start()──▶ WAITING ──contact run──▶ MEASURING ──┬─▶ FINALIZED
      ▲                                                     └─▶ ABORTED
      └────────────── stop() / reset() from any phase ◀────────────┘

Per-sample flow while MEASURING:

.. code-block:: text

    raw sample
       │
       ├─ below lost-contact threshold ──▶ ABORTED (CONTACT_LOST)
       ▼
    BandpassFilter.process ──▶ SignalBuffer.push (motion rejection)
       │
       ▼ (window full, at most once per evaluation_interval)
    quality gate ──▶ HeartRateEstimator ──▶ history ──▶ smoother
       │                                        └──▶ AdvancedMetrics
       ▼
    termination policy (COUNT or DURATION) ──▶ FINALIZED

Thread safety
-------------
One producer feeds :meth:`MeasurementSession.push_sample`.  :meth:`stop`
may be called from any other thread at any time: it swaps in fresh
sub-state and bumps a generation counter, and an in-flight
``push_sample`` that notices the new generation discards its work instead
of committing it.  No lock is shared with the producer.
"""

from __future__ import annotations

import logging
import math
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Deque, Optional, Tuple

import numpy as np

from pulse_monitor.config import MonitorConfig, TerminationPolicy
from pulse_monitor.contact_detector import ContactDetector
from pulse_monitor.estimator import HeartRateEstimator
from pulse_monitor.metrics import AdvancedMetrics, compute_advanced_metrics
from pulse_monitor.quality import SignalQualityAssessor
from pulse_monitor.signal_buffer import SignalBuffer, WindowState
from pulse_monitor.smoother import ResultSmoother
from pulse_monitor.temporal_filter import BandpassFilter

logger = logging.getLogger(__name__)


class SessionPhase(Enum):
    IDLE      = "idle"
    WAITING   = "waiting"
    MEASURING = "measuring"
    FINALIZED = "finalized"
    ABORTED   = "aborted"


class SessionOutcome(Enum):
    COMPLETED           = "completed"
    CONTACT_LOST        = "contact_lost"         # finger removed, please retry
    INSUFFICIENT_SIGNAL = "insufficient_signal"  # duration elapsed without an estimate


@dataclass(frozen=True)
class MeasurementResult:
    outcome: SessionOutcome
    bpm: Optional[float]
    metrics: Optional[AdvancedMetrics]
    estimates: Tuple[float, ...]
    duration: float     # seconds since contact was detected

    @property
    def ok(self) -> bool:
        return self.outcome is SessionOutcome.COMPLETED


@dataclass(frozen=True)
class SessionStatus:
    phase: SessionPhase
    finger_detected: bool
    progress: float
    current_bpm: Optional[float]
    accepted_estimates: int
    metrics: Optional[AdvancedMetrics]


class _SessionState:
    """Everything one measurement attempt owns; replaced wholesale on reset."""

    def __init__(self, config: MonitorConfig) -> None:
        self.filter = BandpassFilter(
            fs=config.sampling_rate,
            low_hz=config.filter_low_hz,
            high_hz=config.filter_high_hz,
            order=config.filter_order,
        )
        self.buffer = SignalBuffer(
            capacity=config.capacity,
            motion_threshold=config.motion_threshold,
            motion_discard=config.motion_discard,
            motion_min_history=config.motion_min_history,
        )
        self.contact = ContactDetector(
            covered_threshold=config.contact_threshold,
            lost_threshold=config.lost_contact_threshold,
            run_length=config.contact_samples,
        )
        self.estimator = HeartRateEstimator(
            fs=config.sampling_rate,
            bpm_low=config.bpm_search_low,
            bpm_high=config.bpm_search_high,
            min_correlation=config.min_correlation,
            harmonic_ratio=config.harmonic_ratio,
            valid_low=config.valid_bpm_low,
            valid_high=config.valid_bpm_high,
        )
        self.history: Deque[float] = deque(maxlen=config.history_size)
        self.accepted: int = 0
        self.samples: int = 0
        self.started_at: Optional[float] = None
        self.last_evaluation: Optional[float] = None
        self.current_bpm: Optional[float] = None
        self.metrics: Optional[AdvancedMetrics] = None


class MeasurementSession:
    """
    Drives one heart-rate reading from finger placement to result.

    Parameters
    ----------
    config:
        Pipeline tunables; defaults to :class:`MonitorConfig`.
    on_result:
        Result sink called with a :class:`MeasurementResult` when the session
        finalizes or aborts.  Exceptions raised by the sink are logged.
    clock:
        Time source in seconds.  Defaults to the sample clock
        (samples seen / sampling rate).
    """

    def __init__(
        self,
        config: Optional[MonitorConfig] = None,
        on_result: Optional[Callable[[MeasurementResult], None]] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.config = config if config is not None else MonitorConfig()
        self.on_result = on_result
        self._clock = clock

        self._assessor = SignalQualityAssessor(
            min_samples=self.config.quality_min_samples,
            min_checks=self.config.quality_min_checks,
            min_quality=self.config.min_quality,
        )
        self._smoother = ResultSmoother(
            span=self.config.smoothing_span,
            method=self.config.smoothing_method,
        )

        self._generation: int = 0
        self._phase = SessionPhase.IDLE
        self._state = _SessionState(self.config)
        self._last_result: Optional[MeasurementResult] = None
        self._dropped: int = 0

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Begin a fresh attempt in WAITING, discarding all previous state."""
        self._generation += 1
        self._state = _SessionState(self.config)
        self._last_result = None
        self._dropped = 0
        self._phase = SessionPhase.WAITING
        logger.info("Session started – waiting for finger contact.")

    def stop(self) -> None:
        """Cancel the current attempt and return to IDLE."""
        if self._phase is not SessionPhase.IDLE:
            logger.info("Session stopped in phase %s.", self._phase.value)
        self.reset()

    def reset(self) -> None:
        """Return to IDLE with freshly constructed sub-state."""
        self._generation += 1
        self._state = _SessionState(self.config)
        self._last_result = None
        self._dropped = 0
        self._phase = SessionPhase.IDLE

    # ------------------------------------------------------------------
    # Sample path
    # ------------------------------------------------------------------

    def push_sample(self, raw: float) -> SessionPhase:
        """
        Feed one raw brightness sample and return the resulting phase.

        Never raises for sample content: non-numeric and non-finite samples
        are dropped and counted in :attr:`dropped_samples`.
        """
        generation = self._generation
        state = self._state
        phase = self._phase
        if phase not in (SessionPhase.WAITING, SessionPhase.MEASURING):
            return phase

        try:
            value = float(raw)
        except (TypeError, ValueError):
            value = math.nan
        if not math.isfinite(value):
            self._dropped += 1
            logger.debug("Dropped non-finite sample %r", raw)
            return phase

        state.samples += 1
        now = self._now(state)
        filtered = state.filter.process(value)

        if phase is SessionPhase.WAITING:
            if state.contact.observe(value) and self._current(generation):
                state.started_at = now
                self._phase = SessionPhase.MEASURING
                logger.info("Finger detected at t=%.2fs – measuring.", now)
            return self._phase

        if state.contact.is_lost(value):
            if self._current(generation):
                logger.warning("Contact lost (brightness %.1f) – measurement aborted.", value)
                state.buffer.reset()
                state.history.clear()
                state.filter.reset()
                self._finish(state, SessionPhase.ABORTED, SessionOutcome.CONTACT_LOST, now)
            return self._phase

        if state.buffer.push(filtered, value) is WindowState.ACCEPTED:
            interval_due = (
                state.last_evaluation is None
                or now - state.last_evaluation >= self.config.evaluation_interval
            )
            if state.buffer.is_full and interval_due:
                state.last_evaluation = now
                self._evaluate(state)

        if self._current(generation):
            self._check_termination(state, now)
        return self._phase

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def progress(self) -> float:
        """Window fill ratio (0 – 1); 0 outside MEASURING."""
        if self._phase is not SessionPhase.MEASURING:
            return 0.0
        return min(self._state.buffer.fill_ratio, 1.0)

    @property
    def current_bpm(self) -> Optional[float]:
        """Smoothed BPM of the accepted estimates so far."""
        return self._state.current_bpm

    @property
    def metrics(self) -> Optional[AdvancedMetrics]:
        return self._state.metrics

    @property
    def estimates(self) -> Tuple[float, ...]:
        """Accepted estimates held in the history, oldest first."""
        return tuple(self._state.history)

    @property
    def accepted_estimates(self) -> int:
        return self._state.accepted

    @property
    def window(self) -> np.ndarray:
        """Copy of the filtered analysis window."""
        return self._state.buffer.values()

    @property
    def filter_state(self) -> Tuple[np.ndarray, np.ndarray]:
        return self._state.filter.state

    @property
    def measurement_started_at(self) -> Optional[float]:
        """Clock time at which contact was detected."""
        return self._state.started_at

    @property
    def motion_rejections(self) -> int:
        return self._state.buffer.rejections

    @property
    def dropped_samples(self) -> int:
        return self._dropped

    @property
    def last_result(self) -> Optional[MeasurementResult]:
        return self._last_result

    def status(self) -> SessionStatus:
        return SessionStatus(
            phase=self._phase,
            finger_detected=self._phase is SessionPhase.MEASURING,
            progress=self.progress,
            current_bpm=self._state.current_bpm,
            accepted_estimates=self._state.accepted,
            metrics=self._state.metrics,
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _now(self, state: _SessionState) -> float:
        if self._clock is not None:
            return float(self._clock())
        return state.samples / self.config.sampling_rate

    def _current(self, generation: int) -> bool:
        """False once stop()/start() has superseded the caller's attempt."""
        return generation == self._generation

    def _evaluate(self, state: _SessionState) -> None:
        cfg = self.config
        window = state.buffer.values()
        try:
            quality = self._assessor.assess(window)
            if not quality.sufficient or quality.score < cfg.min_quality:
                logger.debug(
                    "Low signal quality (%d/%d checks) – skipping cycle.",
                    quality.checks_passed, quality.checks_total,
                )
                return

            bpm = state.estimator.estimate(window, cfg.sampling_rate)
            if bpm is None:
                logger.debug("No plausible estimate – skipping cycle.")
                return

            state.history.append(bpm)
            state.accepted += 1
            state.current_bpm = self._smoother.combine(state.history)
            state.metrics = compute_advanced_metrics(
                window, cfg.sampling_rate, state.buffer.raw_values()
            )
            logger.debug(
                "Estimate #%d: %.1f BPM (r=%.2f) → smoothed %.1f BPM",
                state.accepted, bpm, state.estimator.last_correlation, state.current_bpm,
            )
        except (FloatingPointError, ValueError) as e:
            logger.warning("Window evaluation failed: %s", e)

    def _check_termination(self, state: _SessionState, now: float) -> None:
        cfg = self.config
        if cfg.termination is TerminationPolicy.COUNT:
            if state.accepted >= cfg.min_estimates:
                self._finish(state, SessionPhase.FINALIZED, SessionOutcome.COMPLETED, now)
            return

        started = state.started_at if state.started_at is not None else now
        if now - started < cfg.measurement_seconds:
            return
        if state.history:
            self._finish(state, SessionPhase.FINALIZED, SessionOutcome.COMPLETED, now)
        else:
            logger.warning(
                "No usable estimate after %.1fs – measurement aborted.", cfg.measurement_seconds
            )
            self._finish(state, SessionPhase.ABORTED, SessionOutcome.INSUFFICIENT_SIGNAL, now)

    def _finish(
        self,
        state: _SessionState,
        phase: SessionPhase,
        outcome: SessionOutcome,
        now: float,
    ) -> None:
        started = state.started_at if state.started_at is not None else now
        completed = outcome is SessionOutcome.COMPLETED
        result = MeasurementResult(
            outcome=outcome,
            bpm=state.current_bpm if completed else None,
            metrics=state.metrics if completed else None,
            estimates=tuple(state.history),
            duration=now - started,
        )
        self._phase = phase
        self._last_result = result
        if completed:
            logger.info(
                "Measurement complete: %.1f BPM from %d estimates in %.1fs.",
                result.bpm, state.accepted, result.duration,
            )

        if self.on_result is not None:
            try:
                self.on_result(result)
            except Exception:
                logger.exception("Result sink raised; result kept on the session.")
