"""
Pulse Monitor: fingertip photoplethysmography (PPG) heart-rate pipeline.
Cover the phone camera and torch with a fingertip; the sensor layer reduces
each frame to one red-brightness sample, and this package turns the sample
stream into BPM plus HRV, respiration, perfusion and signal-quality metrics.
"""

from pulse_monitor.config import ConfigurationError, MonitorConfig, TerminationPolicy
from pulse_monitor.session import (
    MeasurementResult,
    MeasurementSession,
    SessionOutcome,
    SessionPhase,
    SessionStatus,
)

__version__ = "0.2.0"
__author__ = "pulse_monitor"

__all__ = [
    "ConfigurationError",
    "MeasurementResult",
    "MeasurementSession",
    "MonitorConfig",
    "SessionOutcome",
    "SessionPhase",
    "SessionStatus",
    "TerminationPolicy",
]
