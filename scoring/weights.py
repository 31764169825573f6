"""
Score range and the fixed weighting of the overall score.

All behavioral scores share a 0-10 scale. The overall score is a weighted
mean of five dimensions; the weights are constants, not configuration, so
that scores from different runs stay comparable.

    overall = 0.25*posture + 0.20*movement + 0.20*audio
            + 0.20*presence + 0.15*professionalism

professionalism = mean(posture, movement, presence)
"""

import math
from typing import Dict

SCORE_MIN = 0.0
SCORE_MAX = 10.0

# Neutral value used when there is nothing to score
NEUTRAL_SCORE = 5.0

OVERALL_WEIGHTS: Dict[str, float] = {
    'posture': 0.25,
    'movement': 0.20,
    'audio': 0.20,
    'presence': 0.20,
    'professionalism': 0.15,
}


def validate_weights(weights: Dict[str, float]) -> Dict[str, float]:
    """
    Check a weighting scheme sums to 1.0.

    Raises:
        ValueError: If it does not
    """
    total = sum(weights.values())
    if not math.isclose(total, 1.0):
        raise ValueError(f"Overall weights must sum to 1.0, got {total:.4f}")
    return weights


validate_weights(OVERALL_WEIGHTS)


def clamp_score(value: float) -> float:
    """Clamp to [0, 10]. NaN maps to 0."""
    if value is None or math.isnan(value):
        return SCORE_MIN
    return float(min(SCORE_MAX, max(SCORE_MIN, value)))


def professionalism_score(posture: float, movement: float, presence: float) -> float:
    return clamp_score((posture + movement + presence) / 3.0)


def overall_score(
    posture: float,
    movement: float,
    audio: float,
    presence: float,
    professionalism: float
) -> float:
    """Weighted mean of the five dimensions (see OVERALL_WEIGHTS)."""
    total = (
        OVERALL_WEIGHTS['posture'] * posture +
        OVERALL_WEIGHTS['movement'] * movement +
        OVERALL_WEIGHTS['audio'] * audio +
        OVERALL_WEIGHTS['presence'] * presence +
        OVERALL_WEIGHTS['professionalism'] * professionalism
    )
    return clamp_score(total)
