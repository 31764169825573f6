"""
Integration tests for the interview session facade and replay capture.

Tests cover:
- Question windows and sample routing
- Pause between questions
- Aggregates, report and feedback
- Teardown and acquisition failures
- Replaying a recorded video
"""

import pytest # pyright: ignore[reportMissingImports]
import numpy as np
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

from capture.media_session import CaptureState
from sampling.clock import ManualClock
from sampling.session import InterviewSession
from scoring.consistency import Trend
from utils.errors import DeviceUnavailableError, InvalidBufferError, PermissionDeniedError
from video_pipeline.detector_selector import DetectorSelector
from video_pipeline.heuristic_detector import HeuristicDetector
from fakes import FakeCapturePort, make_face_frame


def make_session(port=None, **kwargs):
    port = port or FakeCapturePort()
    clock = ManualClock()
    session = InterviewSession(
        port,
        clock=clock,
        background=False,
        selector=DetectorSelector(HeuristicDetector()),
        **kwargs
    )
    return session, clock, port


def step(session, clock, seconds, period=5.0):
    for _ in range(int(seconds / period)):
        clock.advance(period)
        session.poll()


class TestQuestionWindows:
    """Test routing samples into per-question windows."""

    def test_samples_land_in_current_question(self):
        session, clock, _ = make_session()
        session.request_capture()

        session.begin_question('q1')
        session.start_sampling()
        step(session, clock, 60.0)
        first = session.end_question()

        session.begin_question('q2')
        step(session, clock, 30.0)
        second = session.end_question()

        assert first.sample_count == 12
        assert second.sample_count == 6
        assert [len(w) for w in session.windows] == [12, 6]

    def test_samples_between_questions_ignored(self):
        """Test ticks with no open question are not stored."""
        session, clock, _ = make_session()
        session.request_capture()
        session.start_sampling()

        step(session, clock, 20.0)

        assert session.windows == []
        assert session.sampler.sample_count == 4

    def test_pause_between_questions(self):
        """Test zero samples while paused for the next question."""
        session, clock, _ = make_session()
        session.request_capture()
        session.begin_question('q1')
        session.start_sampling()
        step(session, clock, 10.0)

        session.pause_sampling()
        session.end_question()
        step(session, clock, 30.0)

        session.begin_question('q2')
        session.resume_sampling()
        step(session, clock, 10.0)

        assert [len(w) for w in session.windows] == [2, 2]

    def test_begin_question_resets_movement(self):
        session, clock, _ = make_session()
        session.request_capture()
        session.begin_question('q1')
        session.start_sampling()
        step(session, clock, 15.0)

        session.begin_question('q2')

        assert len(session.sampler.movement) == 0
        assert session.windows[0].question_id == 'q1'
        assert session.current_window.question_id == 'q2'

    def test_on_sample_callback(self):
        received = []
        session, clock, _ = make_session(on_sample=received.append)
        session.request_capture()
        session.begin_question()
        session.start_sampling()

        step(session, clock, 10.0)

        assert len(received) == 2
        assert session.current_window.question_id == 'q1'

    def test_end_without_question(self):
        session, _, _ = make_session()
        with pytest.raises(RuntimeError):
            session.end_question()

    def test_sampling_requires_capture(self):
        session, _, _ = make_session()
        with pytest.raises(RuntimeError):
            session.start_sampling()


class TestReporting:
    """Test aggregates and feedback through the facade."""

    def test_overall_report(self):
        session, clock, _ = make_session()
        session.request_capture()
        session.start_sampling()
        for question in ('q1', 'q2'):
            session.begin_question(question)
            step(session, clock, 30.0)
            session.end_question()

        report = session.get_overall_report()

        assert report.total_samples == 12
        assert len(report.questions) == 2
        assert 0.0 <= report.aggregate.overall_score <= 10.0
        # Static synthetic face: no movement, no change over time
        assert report.aggregate.trend is Trend.STABLE
        assert report.aggregate.movement_score == 10.0

    def test_aggregate_default_window(self):
        session, clock, _ = make_session()
        session.request_capture()

        assert session.get_session_aggregate().sample_count == 0

        session.begin_question('q1')
        session.start_sampling()
        step(session, clock, 15.0)

        assert session.get_session_aggregate().sample_count == 3

    def test_feedback_payload(self):
        session, clock, _ = make_session()
        session.request_capture()
        session.begin_question('q1')
        session.start_sampling()
        step(session, clock, 15.0)

        feedback = session.feedback(session.end_question())

        assert len(feedback['items']) == 6
        assert feedback['summary']
        assert len(feedback['tips']) == 3


class TestTeardown:
    """Test close and acquisition failures."""

    def test_close_releases_device_once(self):
        session, clock, port = make_session()
        session.request_capture()
        session.begin_question('q1')
        session.start_sampling()
        step(session, clock, 10.0)

        session.close()
        session.close()

        assert port.close_calls == 1
        assert session.manager.state is CaptureState.IDLE

    def test_stop_then_close(self):
        session, _, port = make_session()
        session.request_capture()
        session.start_sampling()

        session.stop_sampling()
        session.stop_sampling()
        session.close()

        assert port.close_calls == 1

    def test_acquisition_error_reaches_caller(self):
        port = FakeCapturePort()
        port.open_error = PermissionDeniedError("camera blocked")
        session, _, _ = make_session(port=port)

        with pytest.raises(PermissionDeniedError):
            session.request_capture()

        assert session.manager.state is CaptureState.FAILED
        assert session.sampler is None

    def test_request_after_close(self):
        session, _, _ = make_session()
        session.close()

        with pytest.raises(RuntimeError):
            session.request_capture()


class TestVideoFileCapture:
    """Test replaying a recorded video."""

    @pytest.fixture
    def video_path(self, tmp_path):
        cv2 = pytest.importorskip('cv2')
        path = tmp_path / 'interview.avi'
        writer = cv2.VideoWriter(str(path), cv2.VideoWriter_fourcc(*'MJPG'), 10.0, (160, 120))
        if not writer.isOpened():
            pytest.skip("MJPG video writer unavailable")
        frame = cv2.cvtColor(make_face_frame(), cv2.COLOR_RGB2BGR)
        for _ in range(30):
            writer.write(frame)
        writer.release()
        return path

    def test_missing_file(self, tmp_path):
        from capture.file_port import VideoFileCapturePort

        port = VideoFileCapturePort(tmp_path / 'missing.mp4', ManualClock())

        with pytest.raises(DeviceUnavailableError):
            port.open()

    def test_replay_follows_clock(self, video_path):
        """Test frames follow the clock and run out at the end of the video."""
        from capture.file_port import VideoFileCapturePort

        clock = ManualClock()
        port = VideoFileCapturePort(video_path, clock)
        handle = port.open()

        try:
            assert port.duration == pytest.approx(3.0, abs=0.2)

            clock.advance(1.0)
            frame = port.pull_frame(handle)
            assert frame.shape == (120, 160, 3)

            # Silent video: audio is empty, never an error
            assert port.pull_audio(handle).samples.size == 0

            clock.advance(10.0)
            with pytest.raises(InvalidBufferError):
                port.pull_frame(handle)
        finally:
            port.close(handle)

    def test_replay_session(self, video_path):
        """Test a full replay session over the recording."""
        from capture.file_port import VideoFileCapturePort

        clock = ManualClock()
        session = InterviewSession(
            VideoFileCapturePort(video_path, clock),
            clock=clock,
            background=False,
            use_landmarks=False,
            config={'sampling': {'period_sec': 1.0}}
        )
        session.request_capture()
        session.begin_question('q1')
        session.start_sampling()

        for _ in range(5):
            clock.advance(1.0)
            session.poll()

        aggregate = session.end_question()
        session.close()

        assert aggregate.sample_count >= 2
        assert session.sampler.dropped_ticks >= 1
        assert aggregate.metrics['face_visible_rate'] == 1.0
