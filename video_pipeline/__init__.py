"""
Video analysis pipeline for interview presence.

This package turns one RGB frame into posture, presence and movement signals:
1. Face detection (heuristic skin-tone rule, or MediaPipe landmarks)
2. Detector selection (background landmark init, heuristic fallback)
3. Posture and presence scoring from the face observation
4. Movement analysis over recent face positions

Rationale:
- Framing, stillness and visibility are what an interviewer sees first
- The heuristic keeps every tick scoreable while the landmark model loads
"""

from .observation import DetectorKind, FaceDetector, FaceObservation, primary_observation
from .heuristic_detector import HeuristicDetector
from .landmark_detector import LandmarkDetector
from .detector_selector import DetectorSelector, DetectorStatus
from .posture import score_posture, score_presence
from .movement import MovementAnalyzer, MovementMetrics

__all__ = [
    'DetectorKind',
    'FaceDetector',
    'FaceObservation',
    'primary_observation',
    'HeuristicDetector',
    'LandmarkDetector',
    'DetectorSelector',
    'DetectorStatus',
    'score_posture',
    'score_presence',
    'MovementAnalyzer',
    'MovementMetrics',
]
