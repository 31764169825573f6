"""
Timer-driven frame + audio sampling.

Each tick pulls one frame and one audio window from the capture lease and
turns them into a Sample:

    frame -> DetectorSelector -> FaceObservation
          -> posture / presence / movement scores
    audio -> audio quality scores
    => Sample -> on_sample(sample)

Scheduling rules:
- Ticks fall on period boundaries of the start anchor (anchor + k*T, k >= 1)
- At most one tick runs at a time; a boundary reached while a tick is still
  running is skipped, never queued
- Boundaries missed while paused, or while polling was late, are not replayed
- Pausing or stopping discards the result of a tick still in flight

Two run modes:
- background=True: a daemon timer thread polls the clock and hands ticks to a
  single worker thread
- background=False: the caller drives ``poll()``; ticks run inline. Used with
  a ManualClock for tests and offline replay.
"""

import logging
import math
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Callable, Dict, Optional

from audio_pipeline.audio_quality import analyze_audio
from utils.config_loader import get_nested_config
from utils.errors import InvalidBufferError
from video_pipeline.movement import MovementAnalyzer, MovementMetrics
from video_pipeline.posture import score_posture, score_presence
from .sample import Sample

logger = logging.getLogger(__name__)

PERIOD_SEC = 5.0
# Upper bound on how long the timer thread sleeps between clock checks
MAX_WAIT_SEC = 0.25
# How long stop() waits for a running tick before releasing the capture lease
STOP_TIMEOUT_SEC = 5.0


class SamplerState(Enum):
    IDLE = "idle"
    SAMPLING = "sampling"
    PAUSED = "paused"
    STOPPED = "stopped"


class FrameSampler:
    """
    Periodic sampler over one capture lease.

    Usage:
        sampler = FrameSampler(lease, selector, on_sample=window.append)
        sampler.start()
        ...
        sampler.pause()     # e.g. while the question is read aloud
        sampler.resume()
        ...
        sampler.stop()      # releases the lease
    """

    def __init__(
        self,
        lease,
        selector,
        on_sample: Optional[Callable[[Sample], None]] = None,
        config: Optional[Dict] = None,
        clock: Callable[[], float] = time.monotonic,
        background: bool = True,
        period: Optional[float] = None
    ):
        """
        Args:
            lease: CaptureLease (pull_frame, pull_audio, active, release)
            selector: DetectorSelector
            on_sample: Called once per successful tick
            config: Optional configuration dict
            clock: Monotonic clock in seconds
            background: Run the timer and ticks on background threads
            period: Sampling period in seconds (overrides ``sampling.period_sec``)
        """
        self.period = float(period if period is not None else get_nested_config(
            config, 'sampling.period_sec', PERIOD_SEC
        ))
        if self.period <= 0:
            raise ValueError(f"Sampling period must be positive, got {self.period}")

        self._lease = lease
        self._selector = selector
        self._on_sample = on_sample
        self._config = config
        self._clock = clock
        self._background = background

        self.movement = MovementAnalyzer(config)

        self._lock = threading.Lock()
        self._state = SamplerState.IDLE
        self._anchor = 0.0
        self._next_tick = math.inf
        self._in_flight = False
        self._idle = threading.Event()
        self._idle.set()
        self._tick_thread: Optional[threading.Thread] = None
        self._generation = 0

        self._wake = threading.Event()
        self._timer_thread: Optional[threading.Thread] = None
        self._executor: Optional[ThreadPoolExecutor] = None

        self.sample_count = 0
        self.skipped_ticks = 0
        self.dropped_ticks = 0
        self.failed_ticks = 0

    @property
    def state(self) -> SamplerState:
        return self._state

    @property
    def analysis_enabled(self) -> bool:
        return self._state is SamplerState.SAMPLING

    @property
    def next_tick(self) -> float:
        return self._next_tick

    def start(self):
        """
        Begin sampling; the first tick falls one period after now.

        Calling start() while sampling is a no-op; while paused it resumes.

        Raises:
            RuntimeError: If the sampler was stopped
        """
        with self._lock:
            if self._state is SamplerState.STOPPED:
                raise RuntimeError("Sampler has been stopped; create a new one")
            if self._state is SamplerState.SAMPLING:
                return
            if self._state is SamplerState.PAUSED:
                resume = True
            else:
                resume = False
                self._anchor = self._clock()
                self._next_tick = self._anchor + self.period
                self._state = SamplerState.SAMPLING

        if resume:
            self.resume()
            return

        logger.info(f"Sampling started (period={self.period:.1f}s)")

        if self._background:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="sample-worker")
            self._timer_thread = threading.Thread(target=self._run_timer, name="sample-timer", daemon=True)
            self._timer_thread.start()

    def pause(self):
        """Stop ticking immediately; a tick in flight is discarded."""
        with self._lock:
            if self._state is not SamplerState.SAMPLING:
                return
            self._state = SamplerState.PAUSED
            self._next_tick = math.inf
            self._generation += 1

        self._wake.set()
        logger.info("Sampling paused")

    def resume(self):
        """Resume on the next period boundary; missed ticks are not replayed."""
        with self._lock:
            if self._state is not SamplerState.PAUSED:
                return
            self._state = SamplerState.SAMPLING
            self._next_tick = self._next_boundary_after(self._clock())

        self._wake.set()
        logger.info(f"Sampling resumed, next tick at {self._next_tick:.2f}s")

    def set_analysis_enabled(self, enabled: bool):
        if enabled:
            self.resume()
        else:
            self.pause()

    def discard_in_flight(self):
        """Drop the result of any tick currently running (e.g. on question change)."""
        with self._lock:
            self._generation += 1

    def stop(self):
        """Cancel the timer, let a running tick finish, then release the capture lease. Idempotent."""
        with self._lock:
            if self._state is SamplerState.STOPPED:
                return
            self._state = SamplerState.STOPPED
            self._next_tick = math.inf
            self._generation += 1

        self._wake.set()

        if self._timer_thread is not None and self._timer_thread is not threading.current_thread():
            self._timer_thread.join(timeout=2.0)
        self._timer_thread = None

        on_tick_thread = self._tick_thread is threading.current_thread()
        if not on_tick_thread and not self._idle.wait(STOP_TIMEOUT_SEC):
            logger.warning(f"Tick still running after {STOP_TIMEOUT_SEC:.1f}s, releasing capture anyway")

        if self._executor is not None:
            self._executor.shutdown(wait=not on_tick_thread and self._idle.is_set())
            self._executor = None

        self._lease.release()

        logger.info(
            f"Sampling stopped: {self.sample_count} samples, {self.skipped_ticks} skipped, "
            f"{self.dropped_ticks} dropped, {self.failed_ticks} failed"
        )

    def _next_boundary_after(self, now: float) -> float:
        k = math.floor((now - self._anchor) / self.period) + 1
        return self._anchor + max(k, 1) * self.period

    def poll(self, now: Optional[float] = None) -> bool:
        """
        Fire a tick if a period boundary has been reached.

        Args:
            now: Current clock reading (default: read the clock)

        Returns:
            True if a tick was dispatched
        """
        if now is None:
            now = self._clock()

        with self._lock:
            if self._state is not SamplerState.SAMPLING or now < self._next_tick:
                return False

            self._next_tick = self._next_boundary_after(now)

            if self._in_flight:
                self.skipped_ticks += 1
                logger.debug(f"Tick at {now:.2f}s skipped: previous analysis still running")
                return False

            self._in_flight = True
            self._idle.clear()
            generation = self._generation
            executor = self._executor

        if executor is not None:
            executor.submit(self._run_tick, now, generation)
        else:
            self._run_tick(now, generation)

        return True

    def _run_timer(self):
        while True:
            with self._lock:
                if self._state is SamplerState.STOPPED:
                    return
                next_tick = self._next_tick

            self.poll()

            wait = MAX_WAIT_SEC
            if math.isfinite(next_tick):
                wait = min(MAX_WAIT_SEC, max(0.0, next_tick - self._clock()))
            self._wake.wait(wait)
            self._wake.clear()

    def _run_tick(self, timestamp: float, generation: int):
        # Set for the whole tick, callback included, so stop() from inside it never waits on itself
        self._tick_thread = threading.current_thread()
        try:
            self._process_tick(timestamp, generation)
        finally:
            self._tick_thread = None

    def _process_tick(self, timestamp: float, generation: int):
        try:
            sample = self._analyze(timestamp, generation)
        except InvalidBufferError as e:
            self.dropped_ticks += 1
            logger.debug(f"Tick at {timestamp:.2f}s dropped: {e}")
            sample = None
        except Exception as e:
            self.failed_ticks += 1
            logger.warning(f"Sample processing failed at {timestamp:.2f}s: {e}")
            sample = None
        finally:
            with self._lock:
                self._in_flight = False
                self._idle.set()
                current = generation == self._generation

        if sample is None:
            return

        if not current:
            logger.debug(f"Sample at {timestamp:.2f}s discarded (paused, stopped or question changed)")
            return

        self.sample_count += 1

        if self._on_sample is not None:
            try:
                self._on_sample(sample)
            except Exception as e:
                logger.error(f"on_sample callback failed: {e}")

    def _update_movement(self, observation, generation: int) -> Optional[MovementMetrics]:
        # Under the sampler lock: discard_in_flight() followed by movement.reset()
        # can never interleave with a stale tick's update
        with self._lock:
            if generation != self._generation:
                return None
            return self.movement.update(observation)

    def _analyze(self, timestamp: float, generation: int) -> Optional[Sample]:
        if not self._lease.active:
            raise InvalidBufferError("Capture lease is not active")

        frame = self._lease.pull_frame()
        audio_buffer = self._lease.pull_audio()

        observation, kind = self._selector.detect(frame)

        movement = self._update_movement(observation, generation)
        if movement is None:
            logger.debug(f"Tick at {timestamp:.2f}s discarded before scoring (paused, stopped or question changed)")
            return None

        sample = Sample.create(
            timestamp=timestamp,
            posture_score=score_posture(observation, kind, self._config),
            presence_score=score_presence(observation),
            observation=observation,
            detector_kind=kind,
            movement=movement,
            audio=analyze_audio(audio_buffer, self._config)
        )

        logger.debug(
            f"Sample at {timestamp:.2f}s ({kind.value}): overall={sample.overall_score:.2f}, "
            f"posture={sample.posture_score:.1f}, movement={sample.movement_score:.1f}, "
            f"audio={sample.audio_score:.1f}, presence={sample.presence_score:.1f}"
        )

        return sample
