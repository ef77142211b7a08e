"""
Cross-thread sample hand-off.

The sensor callback usually runs on a capture thread that must never
block, while the session lives on a consumer thread.  :class:`SampleChannel`
is the bounded single-producer / single-consumer queue between them and
:class:`SessionWorker` is the consumer loop.

Backpressure: when the channel is full, :meth:`SampleChannel.offer` drops
the new sample *before* it reaches the pipeline and counts it.  A dropped
sample is therefore indistinguishable from one that was never captured –
no filter, window or contact state ever sees half of it.
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Optional

from pulse_monitor.session import MeasurementSession

logger = logging.getLogger(__name__)


class SampleChannel:
    """
    Bounded FIFO of brightness samples.

    Parameters
    ----------
    maxsize:
        Capacity in samples.  The default holds two seconds at 30 Hz.
    """

    def __init__(self, maxsize: int = 60) -> None:
        if maxsize <= 0:
            raise ValueError(f"maxsize must be > 0, got {maxsize}")
        self.maxsize = maxsize
        self._queue: "queue.Queue[float]" = queue.Queue(maxsize=maxsize)
        self._lock = threading.Lock()
        self._dropped: int = 0
        self._offered: int = 0

    def offer(self, sample: float) -> bool:
        """Enqueue *sample* without blocking; False when it was dropped."""
        with self._lock:
            self._offered += 1
        try:
            self._queue.put_nowait(sample)
            return True
        except queue.Full:
            with self._lock:
                self._dropped += 1
            logger.debug("Channel full – sample dropped (%d so far).", self._dropped)
            return False

    def get(self, timeout: Optional[float] = None) -> Optional[float]:
        """Next sample, or None if none arrives within *timeout* seconds."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def task_done(self) -> None:
        self._queue.task_done()

    def join(self) -> None:
        """Block until every enqueued sample has been processed."""
        self._queue.join()

    def clear(self) -> int:
        """Discard pending samples; returns how many were discarded."""
        discarded = 0
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                return discarded
            self._queue.task_done()
            discarded += 1

    @property
    def dropped(self) -> int:
        return self._dropped

    @property
    def offered(self) -> int:
        return self._offered

    def __len__(self) -> int:
        return self._queue.qsize()


class SessionWorker:
    """
    Consumer thread feeding a :class:`MeasurementSession` from a channel,
    strictly in arrival order.

    Parameters
    ----------
    session:
        The session that owns all pipeline state.
    channel:
        Source of samples; a new :class:`SampleChannel` when omitted.
    poll_interval:
        How long the loop waits for a sample before re-checking for stop.
    """

    def __init__(
        self,
        session: MeasurementSession,
        channel: Optional[SampleChannel] = None,
        poll_interval: float = 0.05,
    ) -> None:
        self.session = session
        self.channel = channel if channel is not None else SampleChannel()
        self.poll_interval = poll_interval

        self.is_running = False
        self._thread: Optional[threading.Thread] = None
        self._processed: int = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self.is_running:
            logger.warning("Session worker is already running.")
            return
        self.is_running = True
        self._thread = threading.Thread(
            target=self._run, name="pulse-session-worker", daemon=True
        )
        self._thread.start()
        logger.info("Session worker started.")

    def stop(self, timeout: float = 2.0) -> None:
        """Stop the consumer loop; pending samples stay in the channel."""
        if not self.is_running:
            return
        self.is_running = False
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        self._thread = None
        logger.info("Session worker stopped after %d samples.", self._processed)

    def __enter__(self) -> "SessionWorker":
        self.start()
        return self

    def __exit__(self, *_) -> None:
        self.stop()

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------

    def submit(self, sample: float) -> bool:
        """Sensor-callback entry point; never blocks."""
        return self.channel.offer(sample)

    @property
    def processed(self) -> int:
        return self._processed

    # ------------------------------------------------------------------
    # Consumer loop
    # ------------------------------------------------------------------

    def _run(self) -> None:
        while self.is_running:
            sample = self.channel.get(timeout=self.poll_interval)
            if sample is None:
                continue
            try:
                self.session.push_sample(sample)
            finally:
                self._processed += 1
                self.channel.task_done()
