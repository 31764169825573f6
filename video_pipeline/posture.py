"""
Posture and presence scoring from a single face observation.

Posture (0-10), additive:
- +3 face present
- +3 face centered
- +2 suitable distance
- +2 landmark detector confident above the bonus threshold

Presence (0-10), bounded sum:
- 3 * face visible + 2 * centered + 2 * suitable distance + 3 * confidence
"""

from typing import Dict, Optional

from scoring.weights import clamp_score
from utils.config_loader import get_nested_config
from .observation import DetectorKind, FaceObservation

PRESENT_POINTS = 3.0
CENTERED_POINTS = 3.0
DISTANCE_POINTS = 2.0
LANDMARK_BONUS_POINTS = 2.0
LANDMARK_CONFIDENCE_BONUS = 0.8

PRESENCE_VISIBLE_POINTS = 3.0
PRESENCE_CENTERED_POINTS = 2.0
PRESENCE_DISTANCE_POINTS = 2.0
PRESENCE_CONFIDENCE_POINTS = 3.0


def score_posture(
    observation: FaceObservation,
    kind: DetectorKind,
    config: Optional[Dict] = None
) -> float:
    """
    Compute the posture score of one observation.

    Args:
        observation: Primary face observation
        kind: Detector that produced it (only landmark detections earn the bonus)
        config: Optional config (``posture.landmark_confidence_bonus``)

    Returns:
        Posture score (0-10)
    """
    bonus_threshold = get_nested_config(
        config, 'posture.landmark_confidence_bonus', LANDMARK_CONFIDENCE_BONUS
    )

    score = 0.0
    if observation.present:
        score += PRESENT_POINTS
    if observation.centered:
        score += CENTERED_POINTS
    if observation.distance_ok:
        score += DISTANCE_POINTS
    if kind is DetectorKind.LANDMARK and observation.confidence > bonus_threshold:
        score += LANDMARK_BONUS_POINTS

    return clamp_score(score)


def score_presence(observation: FaceObservation) -> float:
    """Presence score (0-10) of one observation."""
    score = (
        (PRESENCE_VISIBLE_POINTS if observation.present else 0.0) +
        (PRESENCE_CENTERED_POINTS if observation.centered else 0.0) +
        (PRESENCE_DISTANCE_POINTS if observation.distance_ok else 0.0) +
        PRESENCE_CONFIDENCE_POINTS * observation.confidence
    )
    return clamp_score(score)
