"""
Consistency score and trend over a sequence of per-sample overall scores.

Score interpretation (0-10):
- 8-10: Steady delivery, little sample-to-sample variation
- 5-7: Some fluctuation
- 0-4: Erratic, large swings between samples

Engineering approach:
- consistency = 10 - sqrt(population variance) * scale, clamped
  (only the spread matters: shifting every score by a constant changes nothing)
- trend compares the mean of the second half against the first half,
  split at n // 2, with a fixed threshold on the difference
- Fewer than 3 samples carry no trend information: STABLE
"""

import logging
from enum import Enum
from typing import Sequence

import numpy as np

from .weights import NEUTRAL_SCORE, SCORE_MAX, clamp_score

logger = logging.getLogger(__name__)

CONSISTENCY_SCALE = 1.0
TREND_THRESHOLD = 0.5
MIN_TREND_SAMPLES = 3


class Trend(Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


def compute_consistency_score(
    overall_scores: Sequence[float],
    scale: float = CONSISTENCY_SCALE
) -> float:
    """
    Consistency of a score series.

    Args:
        overall_scores: Per-sample overall scores in time order
        scale: Penalty per unit of standard deviation

    Returns:
        Score in [0, 10]; neutral (5.0) for an empty series
    """
    if len(overall_scores) == 0:
        return NEUTRAL_SCORE

    variance = float(np.var(np.asarray(overall_scores, dtype=np.float64)))
    return clamp_score(SCORE_MAX - np.sqrt(variance) * scale)


def compute_trend(
    overall_scores: Sequence[float],
    threshold: float = TREND_THRESHOLD
) -> Trend:
    """
    Direction of change across the series.

    Method:
    - Split at n // 2 (the second half gets the extra sample for odd n)
    - Compare means; a difference beyond +/- threshold is a trend

    Returns:
        Trend.IMPROVING, Trend.DECLINING or Trend.STABLE
    """
    if len(overall_scores) < MIN_TREND_SAMPLES:
        return Trend.STABLE

    scores = np.asarray(overall_scores, dtype=np.float64)
    mid = len(scores) // 2
    delta = float(np.mean(scores[mid:]) - np.mean(scores[:mid]))

    if delta > threshold:
        return Trend.IMPROVING
    if delta < -threshold:
        return Trend.DECLINING
    return Trend.STABLE


def explain_consistency(consistency: float, trend: Trend) -> str:
    """Human-readable sentence for the consistency score and trend."""
    if consistency >= 8:
        level = "very consistent"
    elif consistency >= 5:
        level = "somewhat variable"
    else:
        level = "inconsistent"

    explanation = f"Delivery was {level} across samples (consistency {consistency:.1f}/10). "

    if trend is Trend.IMPROVING:
        explanation += "Performance improved as the answer went on."
    elif trend is Trend.DECLINING:
        explanation += "Performance dropped off toward the end."
    else:
        explanation += "Performance held steady over time."

    return explanation
