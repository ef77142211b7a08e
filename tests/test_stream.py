"""
Unit tests for SampleChannel and SessionWorker.
Run with:  pytest tests/
"""

from __future__ import annotations

import numpy as np
import pytest

from pulse_monitor.session import MeasurementSession, SessionPhase
from pulse_monitor.stream import SampleChannel, SessionWorker
from pulse_monitor.synthetic import synthesize_ppg


class TestSampleChannel:

    def test_fifo_order(self):
        channel = SampleChannel(maxsize=5)
        for v in (1.0, 2.0, 3.0):
            channel.offer(v)
        assert [channel.get(timeout=0.1) for _ in range(3)] == [1.0, 2.0, 3.0]

    def test_drops_when_full(self):
        channel = SampleChannel(maxsize=3)
        accepted = [channel.offer(float(i)) for i in range(5)]
        assert accepted == [True, True, True, False, False]
        assert channel.dropped == 2
        assert channel.offered == 5
        assert len(channel) == 3
        # the oldest samples survive; the overflow never entered
        assert channel.get(timeout=0.1) == 0.0

    def test_get_times_out(self):
        assert SampleChannel().get(timeout=0.01) is None

    def test_clear(self):
        channel = SampleChannel(maxsize=10)
        for i in range(4):
            channel.offer(float(i))
        assert channel.clear() == 4
        assert len(channel) == 0
        channel.join()   # nothing outstanding

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            SampleChannel(maxsize=0)


class TestSessionWorker:

    def test_threaded_matches_direct(self):
        trace = synthesize_ppg(72.0, seconds=8.0)

        direct = MeasurementSession()
        direct.start()
        for v in trace:
            direct.push_sample(float(v))

        threaded = MeasurementSession()
        threaded.start()
        worker = SessionWorker(threaded, SampleChannel(maxsize=len(trace)), poll_interval=0.01)
        with worker:
            for v in trace:
                assert worker.submit(float(v))
            worker.channel.join()

        assert worker.processed == len(trace)
        assert threaded.phase is direct.phase
        np.testing.assert_array_equal(threaded.window, direct.window)
        assert threaded.estimates == direct.estimates

    def test_start_stop_idempotent(self):
        worker = SessionWorker(MeasurementSession())
        worker.start()
        worker.start()
        assert worker.is_running
        worker.stop()
        worker.stop()
        assert not worker.is_running

    def test_session_stop_from_producer_thread(self):
        session = MeasurementSession()
        session.start()
        with SessionWorker(session, poll_interval=0.01) as worker:
            for v in synthesize_ppg(72.0, seconds=1.0):
                worker.submit(float(v))
            session.stop()
            worker.channel.join()
        assert session.phase is SessionPhase.IDLE
