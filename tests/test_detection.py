"""
Unit tests for face detection.

Tests cover:
- Skin-tone heuristic detector
- Bounding-box observations and primary face selection
- Landmark detector initialization failures
- Detector selection, background init and fallback
"""

import pytest # pyright: ignore[reportMissingImports]
import threading
import numpy as np
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

from utils.errors import DetectorInitError, InvalidBufferError, SampleProcessingError
from video_pipeline.detector_selector import DetectorSelector, DetectorStatus
from video_pipeline.heuristic_detector import HeuristicDetector, skin_mask
from video_pipeline.landmark_detector import LandmarkDetector
from video_pipeline.observation import (
    DetectorKind,
    FaceObservation,
    observation_from_bbox,
    primary_observation,
    validate_frame,
)
from fakes import FailingDetector, FakeLandmarkDetector, good_observation, make_face_frame


class TestSkinMask:
    """Test the RGB skin rule."""

    def test_skin_pixel(self):
        """Test a typical skin tone passes."""
        rgb = np.array([[[200, 140, 110]]], dtype=np.uint8)
        assert skin_mask(rgb)[0, 0]

    def test_rejected_pixels(self):
        """Test pixels failing each part of the rule."""
        rgb = np.array([[
            [90, 50, 30],     # R too low
            [200, 30, 30],    # G too low
            [200, 140, 10],   # B too low
            [120, 110, 100],  # |R-G| too small
            [150, 100, 160],  # B > R
            [128, 128, 128],  # grey
        ]], dtype=np.uint8)
        assert not skin_mask(rgb).any()


class TestHeuristicDetector:
    """Test heuristic face estimation."""

    def test_centered_face(self):
        """Test a skin patch in the middle of the frame."""
        observations = HeuristicDetector().detect(make_face_frame())

        assert len(observations) == 1
        obs = observations[0]
        assert obs.present
        assert obs.centered
        assert obs.distance_ok
        assert 0 < obs.confidence <= 0.5
        assert 0 < obs.size_ratio < 1

    def test_no_face(self):
        """Test a frame without skin pixels."""
        frame = np.full((120, 160, 3), 70, dtype=np.uint8)

        obs = HeuristicDetector().detect(frame)[0]

        assert obs == FaceObservation.absent()

    def test_dark_frame_fails_distance(self):
        """Test region brightness outside (50, 200) fails the distance check."""
        frame = make_face_frame(background=(0, 0, 0))

        obs = HeuristicDetector().detect(frame)[0]

        assert obs.present
        assert not obs.distance_ok

    def test_confidence_capped(self):
        """Test confidence never exceeds the cap even for a full-skin region."""
        frame = np.empty((120, 160, 3), dtype=np.uint8)
        frame[:, :] = (200, 140, 110)

        obs = HeuristicDetector().detect(frame)[0]

        assert obs.confidence == pytest.approx(0.5)

    def test_configurable_cap(self):
        """Test the confidence cap is read from config."""
        frame = np.empty((120, 160, 3), dtype=np.uint8)
        frame[:, :] = (200, 140, 110)
        config = {'detection': {'heuristic': {'confidence_cap': 0.3}}}

        obs = HeuristicDetector(config).detect(frame)[0]

        assert obs.confidence == pytest.approx(0.3)

    @pytest.mark.parametrize("frame", [
        None,
        np.zeros((0, 0, 3), dtype=np.uint8),
        np.zeros((10, 10), dtype=np.uint8),
    ])
    def test_invalid_frame(self, frame):
        """Test empty or malformed frames raise InvalidBufferError."""
        with pytest.raises(InvalidBufferError):
            HeuristicDetector().detect(frame)


class TestObservation:
    """Test observation helpers."""

    def test_from_bbox_centered(self):
        """Test a centered box of suitable size."""
        obs = observation_from_bbox(0.4, 0.35, 0.2, 0.3, 0.95)

        assert obs.present
        assert obs.centered
        assert obs.distance_ok
        assert obs.horizontal_offset == pytest.approx(0.0)
        assert obs.vertical_offset == pytest.approx(0.0)
        assert obs.center == pytest.approx((0.5, 0.5))

    def test_from_bbox_off_center_and_too_close(self):
        """Test offsets beyond tolerance and an oversized face."""
        obs = observation_from_bbox(0.0, 0.0, 0.65, 0.65, 0.9)

        assert not obs.centered
        assert not obs.distance_ok

    def test_confidence_clipped(self):
        obs = observation_from_bbox(0.4, 0.4, 0.2, 0.2, 1.7)
        assert obs.confidence == 1.0

    def test_primary_observation_most_confident(self):
        """Test multiple faces reduce to the most confident one."""
        low = good_observation(confidence=0.6)
        high = good_observation(confidence=0.95)

        assert primary_observation([low, high]) is high

    def test_primary_observation_none(self):
        """Test no faces reduce to the absent observation."""
        assert primary_observation([]) == FaceObservation.absent()
        assert primary_observation([FaceObservation.absent()]) == FaceObservation.absent()

    def test_validate_frame_drops_alpha(self):
        frame = np.zeros((4, 4, 4), dtype=np.uint8)
        assert validate_frame(frame).shape == (4, 4, 3)


class TestLandmarkDetector:
    """Test MediaPipe detector lifecycle without loading a model."""

    def test_missing_library_raises_init_error(self, monkeypatch):
        """Test an unavailable MediaPipe surfaces as DetectorInitError."""
        monkeypatch.setitem(sys.modules, 'mediapipe', None)

        detector = LandmarkDetector()

        with pytest.raises(DetectorInitError):
            detector.initialize()
        assert not detector.ready

    def test_detect_before_initialize(self):
        """Test detect() requires initialize()."""
        with pytest.raises(RuntimeError):
            LandmarkDetector().detect(make_face_frame())

    def test_close_without_initialize(self):
        LandmarkDetector().close()


class TestDetectorSelector:
    """Test detector selection and fallback."""

    def test_heuristic_only(self):
        """Test a selector without a landmark detector."""
        selector = DetectorSelector(HeuristicDetector())

        obs, kind = selector.detect(make_face_frame())

        assert selector.status is DetectorStatus.UNAVAILABLE
        assert kind is DetectorKind.HEURISTIC
        assert obs.present
        assert selector.start_background_init() is False

    def test_heuristic_until_ready(self):
        """Test the heuristic serves detections until landmark init finishes."""
        gate = threading.Event()
        landmark = FakeLandmarkDetector(gate=gate)
        selector = DetectorSelector(HeuristicDetector(), landmark)

        assert selector.start_background_init() is True
        _, kind_before = selector.detect(make_face_frame())

        gate.set()
        assert selector.wait_until_settled(5.0)
        obs_after, kind_after = selector.detect(make_face_frame())

        assert kind_before is DetectorKind.HEURISTIC
        assert kind_after is DetectorKind.LANDMARK
        assert obs_after == landmark.observation
        assert selector.status is DetectorStatus.READY

    def test_failed_init_keeps_heuristic(self):
        """Test a failed init is permanent and attempted once."""
        landmark = FakeLandmarkDetector(fail=True)
        selector = DetectorSelector(HeuristicDetector(), landmark)

        selector.start_background_init()
        assert selector.wait_until_settled(5.0)

        assert selector.status is DetectorStatus.FAILED
        assert selector.active_kind is DetectorKind.HEURISTIC
        assert selector.start_background_init() is False
        assert landmark.init_calls == 1

        _, kind = selector.detect(make_face_frame())
        assert kind is DetectorKind.HEURISTIC
        assert landmark.detect_calls == 0

    def test_restart_retries_init(self):
        """Test restart() re-attempts landmark initialization."""
        landmark = FakeLandmarkDetector(fail=True)
        selector = DetectorSelector(HeuristicDetector(), landmark)
        selector.start_background_init()
        selector.wait_until_settled(5.0)

        landmark.fail = False
        assert selector.restart() is True
        assert selector.wait_until_settled(5.0)

        assert landmark.init_calls == 2
        assert selector.active_kind is DetectorKind.LANDMARK

    def test_detector_error_becomes_processing_error(self):
        """Test a crashing detector raises SampleProcessingError."""
        selector = DetectorSelector(FailingDetector())

        with pytest.raises(SampleProcessingError):
            selector.detect(make_face_frame())

    def test_invalid_buffer_passes_through(self):
        """Test invalid frames are not wrapped."""
        selector = DetectorSelector(HeuristicDetector())

        with pytest.raises(InvalidBufferError):
            selector.detect(np.zeros((0, 0, 3), dtype=np.uint8))

    def test_close_releases_landmark(self):
        landmark = FakeLandmarkDetector()
        selector = DetectorSelector(HeuristicDetector(), landmark)

        selector.close()

        assert landmark.closed
