"""
Interview session facade.

Wires the pieces of one interview together:

    MediaSessionManager -> CaptureLease -> FrameSampler -> SessionWindow
                                                  |
                                  DetectorSelector (heuristic / landmark)

and exposes the operations a UI or the CLI drives:
request_capture, begin_question / end_question, start / pause / resume /
stop sampling, aggregates, feedback and close.
"""

import logging
import time
from typing import Callable, Dict, List, Optional

from capture.media_session import CaptureLease, MediaSessionManager
from scoring.aggregator import OverallReport, SampleAggregator, SessionAggregate
from scoring.feedback import FeedbackGenerator
from utils.config_loader import get_nested_config
from video_pipeline.detector_selector import DetectorSelector
from video_pipeline.heuristic_detector import HeuristicDetector
from video_pipeline.landmark_detector import LandmarkDetector
from .sample import Sample
from .sampler import FrameSampler
from .window import SessionWindow

logger = logging.getLogger(__name__)


class InterviewSession:
    """
    One interview: one capture lease, one sampler, one window per question.

    Usage:
        session = InterviewSession(CameraCapturePort(config), config)
        session.request_capture()          # may raise AcquisitionError
        session.begin_question('q1')
        session.start_sampling()
        ...
        aggregate = session.end_question()
        report = session.get_overall_report()
        session.close()
    """

    def __init__(
        self,
        port,
        config: Optional[Dict] = None,
        on_sample: Optional[Callable[[Sample], None]] = None,
        clock: Callable[[], float] = time.monotonic,
        background: bool = True,
        use_landmarks: Optional[bool] = None,
        selector: Optional[DetectorSelector] = None
    ):
        """
        Args:
            port: Capture port (camera or replay)
            config: Optional configuration dict
            on_sample: Called with every sample after it is stored
            clock: Sampler clock
            background: Run the sampler on background threads
            use_landmarks: Override ``detection.landmark.enabled``
            selector: Pre-built detector selector (tests, custom detectors)
        """
        self.config = config
        self.clock = clock
        self.background = background
        self._user_on_sample = on_sample

        self.manager = MediaSessionManager(port)

        if selector is None:
            if use_landmarks is None:
                use_landmarks = bool(get_nested_config(config, 'detection.landmark.enabled', True))
            landmark = LandmarkDetector(config) if use_landmarks else None
            selector = DetectorSelector(HeuristicDetector(config), landmark)
        self.selector = selector

        self.aggregator = SampleAggregator(config)
        self.feedback_generator = FeedbackGenerator()

        self.lease: Optional[CaptureLease] = None
        self.sampler: Optional[FrameSampler] = None
        self.windows: List[SessionWindow] = []
        self.current_window: Optional[SessionWindow] = None
        self._closed = False

    def request_capture(self) -> CaptureLease:
        """
        Acquire the capture device and prepare the sampler.

        Also starts landmark detector initialization in the background; the
        heuristic detector serves ticks until it is ready.

        Raises:
            AcquisitionError: Permission denied, device unavailable or busy
        """
        if self._closed:
            raise RuntimeError("Interview session is closed")

        if self.lease is not None and not self.lease.released:
            return self.lease

        self.lease = self.manager.request_access()
        self.sampler = FrameSampler(
            self.lease,
            self.selector,
            on_sample=self._on_sample,
            config=self.config,
            clock=self.clock,
            background=self.background
        )
        self.selector.start_background_init()

        return self.lease

    def _require_sampler(self) -> FrameSampler:
        if self.sampler is None:
            raise RuntimeError("Capture has not been acquired; call request_capture() first")
        return self.sampler

    def begin_question(self, question_id: Optional[str] = None) -> SessionWindow:
        """
        Open a new window; later samples land in it.

        Movement history is reset and any tick still running for the
        previous question is discarded.
        """
        if self.current_window is not None:
            self.end_question()

        if self.sampler is not None:
            self.sampler.discard_in_flight()
            self.sampler.movement.reset()

        window = SessionWindow(question_id or f"q{len(self.windows) + 1}")
        self.windows.append(window)
        self.current_window = window

        logger.info(f"Question {window.question_id!r} started")

        return window

    def end_question(self) -> SessionAggregate:
        """Close the current window and return its aggregate."""
        window = self.current_window
        if window is None:
            raise RuntimeError("No question in progress")

        if self.sampler is not None:
            self.sampler.discard_in_flight()
        self.current_window = None

        aggregate = self.aggregator.aggregate(window)
        logger.info(f"Question {window.question_id!r} ended with {aggregate.sample_count} samples")

        return aggregate

    def start_sampling(self):
        self._require_sampler().start()

    def pause_sampling(self):
        self._require_sampler().pause()

    def resume_sampling(self):
        self._require_sampler().resume()

    def stop_sampling(self):
        """Stop the sampler and release its lease. Idempotent."""
        if self.sampler is not None:
            self.sampler.stop()

    def poll(self, now: Optional[float] = None) -> bool:
        """Drive a foreground sampler (``background=False``)."""
        return self._require_sampler().poll(now)

    def _on_sample(self, sample: Sample):
        window = self.current_window
        if window is None:
            logger.debug(f"Sample at {sample.timestamp:.2f}s arrived between questions, ignored")
            return

        window.append(sample)

        if self._user_on_sample is not None:
            self._user_on_sample(sample)

    def get_session_aggregate(self, window: Optional[SessionWindow] = None) -> SessionAggregate:
        """Aggregate a window (default: the current or most recent one)."""
        if window is None:
            window = self.current_window or (self.windows[-1] if self.windows else None)
        if window is None:
            return SessionAggregate.neutral()
        return self.aggregator.aggregate(window)

    def get_overall_report(self, windows: Optional[List[SessionWindow]] = None) -> OverallReport:
        """Aggregate all windows of the interview (or the given ones)."""
        return self.aggregator.aggregate_report(self.windows if windows is None else windows)

    def feedback(self, aggregate: SessionAggregate) -> Dict:
        """Feedback payload: per-dimension items, summary and setup tips."""
        return {
            'items': [item.to_dict() for item in self.feedback_generator.generate(aggregate)],
            'summary': self.feedback_generator.summary(aggregate),
            'tips': self.feedback_generator.tips(),
        }

    def close(self):
        """Stop sampling, release capture and detectors. Idempotent."""
        if self._closed:
            return
        self._closed = True

        self.stop_sampling()
        if self.lease is not None:
            self.lease.release()
        self.manager.shutdown()
        self.selector.close()

        logger.info(f"Interview session closed ({len(self.windows)} question window(s))")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
