"""
pulse-monitor – replay a brightness trace through a measurement session.

Usage
-----
    pulse-monitor --input trace.csv [OPTIONS]
    pulse-monitor --synthetic-bpm 72 [OPTIONS]

The input file holds one brightness sample per line (or per row, with
``--column`` selecting a CSV column); ``-`` reads standard input.  With
``--synthetic-bpm`` a generated fingertip trace is used instead.

Exit status: 0 when the reading completed, 2 when it was aborted or the
trace ended first, 1 on invalid arguments or configuration.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from dataclasses import asdict
from enum import Enum
from pathlib import Path
from typing import List, Optional

import numpy as np

from pulse_monitor.config import ConfigurationError, MonitorConfig
from pulse_monitor.session import (
    MeasurementResult,
    MeasurementSession,
    SessionOutcome,
    SessionPhase,
)
from pulse_monitor.stream import SessionWorker
from pulse_monitor.synthetic import synthesize_ppg

logger = logging.getLogger("pulse_monitor")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Fingertip PPG heart-rate measurement from a brightness trace",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--input", type=str, default=None,
                        help="Trace file (one sample per line, or CSV); '-' for stdin")
    source.add_argument("--synthetic-bpm", type=float, default=None,
                        help="Generate a synthetic trace at this pulse rate")

    parser.add_argument("--column", type=int, default=0,
                        help="CSV column holding the brightness samples")
    parser.add_argument("--duration", type=float, default=40.0,
                        help="Synthetic trace length in seconds")
    parser.add_argument("--noise", type=float, default=0.0,
                        help="Synthetic noise standard deviation")
    parser.add_argument("--seed", type=int, default=None,
                        help="Synthetic noise seed")

    parser.add_argument("--fps", type=float, default=30.0,
                        help="Sampling rate of the trace")
    parser.add_argument("--window", type=float, default=6.0,
                        help="Analysis window in seconds")
    parser.add_argument("--policy", choices=("count", "duration"), default="count",
                        help="Termination policy")
    parser.add_argument("--min-estimates", type=int, default=12,
                        help="Accepted estimates required by the count policy")
    parser.add_argument("--measurement-seconds", type=float, default=30.0,
                        help="Measurement length for the duration policy")
    parser.add_argument("--realtime", action="store_true",
                        help="Pace samples at --fps through the worker thread")
    parser.add_argument("--json", action="store_true",
                        help="Print the final result as JSON")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Debug logging")
    return parser.parse_args(argv)


def load_trace(args: argparse.Namespace) -> np.ndarray:
    if args.synthetic_bpm is not None:
        return synthesize_ppg(
            bpm=args.synthetic_bpm,
            seconds=args.duration,
            fs=args.fps,
            noise=args.noise,
            seed=args.seed,
        )
    source = sys.stdin if args.input == "-" else Path(args.input)
    data = np.loadtxt(source, delimiter=",", ndmin=2, dtype=np.float64)
    return data[:, args.column]


def _jsonable(value):
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def format_result(result: MeasurementResult) -> str:
    if result.ok and result.bpm is not None:
        line = f"Heart rate: {round(result.bpm)} BPM ({len(result.estimates)} estimates, {result.duration:.1f}s)"
        if result.metrics is not None:
            m = result.metrics
            line += (
                f"\n  IBI={m.ibi:.0f}ms  SDNN={m.hrv.sdnn:.1f}ms  RMSSD={m.hrv.rmssd:.1f}ms"
                f"  pNN50={m.hrv.pnn50:.0f}%  RR={m.respiration_rate:.0f}/min"
                f"  PI={m.perfusion_index:.2f}%  SNR={m.snr:.1f}dB  SQI={m.sqi:.0f}%"
            )
        return line
    if result.outcome is SessionOutcome.CONTACT_LOST:
        return "Finger removed – please cover the camera and retry."
    return "No reliable signal – please hold still and retry."


# ---------------------------------------------------------------------------
# Main loop
# ---------------------------------------------------------------------------

def run(args: argparse.Namespace) -> int:
    try:
        config = MonitorConfig(
            sampling_rate=args.fps,
            window_seconds=args.window,
            termination=args.policy,
            min_estimates=args.min_estimates,
            measurement_seconds=args.measurement_seconds,
        )
    except ConfigurationError as e:
        logger.error("Invalid configuration: %s", e)
        return 1

    try:
        trace = load_trace(args)
    except (OSError, ValueError, IndexError) as e:
        logger.error("Could not read trace: %s", e)
        return 1

    session = MeasurementSession(config)
    session.start()
    log_interval = max(1, int(round(args.fps)))

    if args.realtime:
        with SessionWorker(session, poll_interval=0.5 / args.fps) as worker:
            for value in trace:
                worker.submit(float(value))
                if session.phase not in (SessionPhase.WAITING, SessionPhase.MEASURING):
                    break
                time.sleep(1.0 / args.fps)
            worker.channel.join()
        if worker.channel.dropped:
            logger.warning("%d samples dropped under backpressure.", worker.channel.dropped)
    else:
        for idx, value in enumerate(trace):
            phase = session.push_sample(float(value))
            if idx % log_interval == 0:
                _log_status(session, idx / args.fps)
            if phase not in (SessionPhase.WAITING, SessionPhase.MEASURING):
                break

    result = session.last_result
    if result is None:
        logger.warning("Trace ended in phase %s before a result.", session.phase.value)
        return 2

    if args.json:
        print(json.dumps(_jsonable(asdict(result)), indent=2))
    else:
        print(format_result(result))
    return 0 if result.ok else 2


def _log_status(session: MeasurementSession, t: float) -> None:
    status = session.status()
    if status.current_bpm:
        print(f"[t={t:5.1f}s] BPM={status.current_bpm:.0f}  progress={status.progress:.0%}"
              f"  estimates={status.accepted_estimates}")
    elif status.phase is SessionPhase.WAITING:
        print(f"[t={t:5.1f}s] Waiting for finger…")
    else:
        print(f"[t={t:5.1f}s] Measuring…  progress={status.progress:.0%}")


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s – %(message)s",
        datefmt="%H:%M:%S",
    )
    return run(args)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    sys.exit(main())
