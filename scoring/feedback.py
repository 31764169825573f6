"""
Human-readable feedback for a session aggregate.

Level interpretation (0-10 scale):
- 8-10: Excellent
- 6-7.9: Good
- 4-5.9: Adequate
- 0-3.9: Needs improvement

Messages are fixed per dimension and level; the detail line is built from
the aggregate's metrics (rates and averages) when they are available.
Everything here is pure: no I/O, no state.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from .consistency import explain_consistency

logger = logging.getLogger(__name__)

FEEDBACK_DIMENSIONS = ('posture', 'movement', 'audio', 'presence', 'professionalism', 'overall')

SETUP_TIPS = [
    "Place the camera at eye level for natural eye contact",
    "Use soft, even lighting facing you",
    "Test your microphone before the interview to avoid technical problems",
]


class FeedbackLevel(Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    ADEQUATE = "adequate"
    NEEDS_IMPROVEMENT = "needs_improvement"


def classify_score(score: float) -> FeedbackLevel:
    if score >= 8:
        return FeedbackLevel.EXCELLENT
    if score >= 6:
        return FeedbackLevel.GOOD
    if score >= 4:
        return FeedbackLevel.ADEQUATE
    return FeedbackLevel.NEEDS_IMPROVEMENT


MESSAGES = {
    'posture': {
        FeedbackLevel.EXCELLENT: "Well positioned: centered and at a good distance from the camera.",
        FeedbackLevel.GOOD: "Good positioning overall with minor drift from the center.",
        FeedbackLevel.ADEQUATE: "Positioning was inconsistent; stay centered in the frame.",
        FeedbackLevel.NEEDS_IMPROVEMENT: "Often off-center or out of frame; adjust your seat and camera.",
    },
    'movement': {
        FeedbackLevel.EXCELLENT: "Calm and composed with very little head movement.",
        FeedbackLevel.GOOD: "Mostly steady with occasional movement.",
        FeedbackLevel.ADEQUATE: "Noticeable fidgeting at times.",
        FeedbackLevel.NEEDS_IMPROVEMENT: "Frequent movement was distracting; try to keep still while answering.",
    },
    'audio': {
        FeedbackLevel.EXCELLENT: "Clear voice at a comfortable volume.",
        FeedbackLevel.GOOD: "Voice was generally clear and audible.",
        FeedbackLevel.ADEQUATE: "Voice was sometimes quiet or muffled.",
        FeedbackLevel.NEEDS_IMPROVEMENT: "Hard to hear; speak up or move closer to the microphone.",
    },
    'presence': {
        FeedbackLevel.EXCELLENT: "Strong, confident on-camera presence.",
        FeedbackLevel.GOOD: "Good presence with a few lapses.",
        FeedbackLevel.ADEQUATE: "Presence was uneven; keep your face visible and well lit.",
        FeedbackLevel.NEEDS_IMPROVEMENT: "Face was often not detected; check lighting and framing.",
    },
    'professionalism': {
        FeedbackLevel.EXCELLENT: "Very professional appearance throughout.",
        FeedbackLevel.GOOD: "Professional appearance with small issues.",
        FeedbackLevel.ADEQUATE: "Appearance could be more polished.",
        FeedbackLevel.NEEDS_IMPROVEMENT: "Work on framing, stillness and visibility to look more professional.",
    },
    'overall': {
        FeedbackLevel.EXCELLENT: "Excellent non-verbal delivery.",
        FeedbackLevel.GOOD: "Good non-verbal delivery.",
        FeedbackLevel.ADEQUATE: "Acceptable delivery with room to improve.",
        FeedbackLevel.NEEDS_IMPROVEMENT: "Non-verbal delivery needs work.",
    },
}


@dataclass(frozen=True)
class DimensionFeedback:
    dimension: str
    score: float
    level: FeedbackLevel
    message: str
    detail: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            'dimension': self.dimension,
            'score': round(self.score, 2),
            'level': self.level.value,
            'message': self.message,
            'detail': self.detail,
        }


def _pct(rate: float) -> str:
    return f"{rate * 100:.0f}%"


class FeedbackGenerator:
    """
    Turns aggregates into feedback.

    Usage:
        generator = FeedbackGenerator()
        for item in generator.generate(aggregate):
            print(item.dimension, item.message)
    """

    def dimension_feedback(
        self,
        dimension: str,
        score: float,
        metrics: Optional[Dict[str, float]] = None
    ) -> DimensionFeedback:
        """
        Feedback for one dimension.

        Raises:
            KeyError: For an unknown dimension
        """
        level = classify_score(score)
        return DimensionFeedback(
            dimension=dimension,
            score=float(score),
            level=level,
            message=MESSAGES[dimension][level],
            detail=self._detail(dimension, metrics or {})
        )

    def _detail(self, dimension: str, metrics: Dict[str, float]) -> Optional[str]:
        if not metrics:
            return None

        if dimension == 'posture':
            return (
                f"Face centered in {_pct(metrics['face_centered_rate'])} of samples, "
                f"good distance in {_pct(metrics['distance_ok_rate'])}."
            )
        if dimension == 'movement':
            return (
                f"Average fidgeting {metrics['avg_fidgeting']:.1f}/10, "
                f"position consistency {metrics['position_consistency']:.1f}/10."
            )
        if dimension == 'audio':
            return (
                f"Volume {metrics['avg_volume']:.1f}/10, clarity {metrics['avg_clarity']:.1f}/10."
            )
        if dimension == 'presence':
            return (
                f"Face visible in {_pct(metrics['face_visible_rate'])} of samples, "
                f"average detection confidence {metrics['avg_confidence']:.2f}, "
                f"engagement {metrics['engagement_level']:.1f}/10."
            )
        if dimension == 'professionalism':
            return (
                f"Estimated eye contact {metrics['eye_contact_estimate']:.1f}/10, "
                f"professional appearance {metrics['professional_appearance']:.1f}/10."
            )
        return None

    def generate(self, aggregate) -> List[DimensionFeedback]:
        """Feedback for posture, movement, audio, presence, professionalism and overall."""
        scores = aggregate.dimension_scores()
        return [
            self.dimension_feedback(dimension, scores[dimension], aggregate.metrics)
            for dimension in FEEDBACK_DIMENSIONS
        ]

    def summary(self, aggregate) -> str:
        """One paragraph covering the overall score, consistency and trend."""
        if aggregate.sample_count == 0:
            return (
                "No behavioral samples were collected, so scores are neutral. "
                "Check that the camera and microphone were active during the answer."
            )

        level = classify_score(aggregate.overall_score)
        text = (
            f"Overall score {aggregate.overall_score:.1f}/10 from {aggregate.sample_count} samples. "
            f"{MESSAGES['overall'][level]} "
            f"{explain_consistency(aggregate.consistency_score, aggregate.trend)}"
        )

        if aggregate.strengths:
            text += " Strengths: " + ", ".join(aggregate.strengths).lower() + "."
        if aggregate.improvement_areas:
            text += " To work on: " + ", ".join(aggregate.improvement_areas).lower() + "."

        return text

    def tips(self) -> List[str]:
        return list(SETUP_TIPS)
