"""
Reduce a window of samples to a session aggregate.

Aggregation is a pure fold over an immutable snapshot:
- Dimension scores are per-field means across samples
- professionalism and overall are recomputed from the mean dimensions with
  the fixed weights; because the weighting is linear this equals the mean of
  the per-sample overall scores
- consistency and trend come from the per-sample overall series
- strengths / improvement areas are fixed labels keyed on the mean
  dimension scores

An empty window yields a neutral aggregate (every score 5.0, trend STABLE),
never an error.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

import numpy as np

from utils.config_loader import get_nested_config
from .consistency import (
    CONSISTENCY_SCALE,
    TREND_THRESHOLD,
    Trend,
    compute_consistency_score,
    compute_trend,
)
from .weights import NEUTRAL_SCORE, SCORE_MAX, clamp_score, overall_score, professionalism_score

logger = logging.getLogger(__name__)

STRENGTH_THRESHOLD = 8.0
IMPROVEMENT_THRESHOLD = 5.0
EYE_CONTACT_CONFIDENCE = 0.7
POSITION_CONSISTENCY_SCALE = 20.0
# Face stability = 10 - mean head movement (frame units) x scale
FACE_STABILITY_SCALE = 50.0
# Points a mean detection confidence of 1.0 contributes to the face scores
FACE_CONFIDENCE_POINTS = 5.0
ENGAGEMENT_VISIBLE_POINTS = 3.0
ENGAGEMENT_CENTERED_POINTS = 3.0
ENGAGEMENT_CONFIDENT_POINTS = 4.0
ATTENTIVE_VISIBLE_POINTS = 5.0

STRENGTH_LABELS = {
    'posture': "Excellent posture and camera positioning",
    'movement': "Very good stability and composure",
    'audio': "Excellent voice quality",
    'presence': "Strong on-camera presence",
}

IMPROVEMENT_LABELS = {
    'posture': "Improve positioning in front of the camera",
    'movement': "Reduce distracting movements",
    'audio': "Improve voice projection",
    'presence': "Stay visible and centered in the frame",
}

DIMENSIONS = ('posture', 'movement', 'audio', 'presence')


@dataclass
class SessionAggregate:
    """Summary of one window of samples (one question)."""
    posture_score: float
    movement_score: float
    audio_score: float
    presence_score: float
    professionalism_score: float
    overall_score: float
    consistency_score: float
    trend: Trend
    strengths: List[str] = field(default_factory=list)
    improvement_areas: List[str] = field(default_factory=list)
    sample_count: int = 0
    metrics: Dict[str, float] = field(default_factory=dict)
    question_id: Optional[str] = None

    @classmethod
    def neutral(cls, question_id: Optional[str] = None) -> 'SessionAggregate':
        return cls(
            posture_score=NEUTRAL_SCORE,
            movement_score=NEUTRAL_SCORE,
            audio_score=NEUTRAL_SCORE,
            presence_score=NEUTRAL_SCORE,
            professionalism_score=NEUTRAL_SCORE,
            overall_score=NEUTRAL_SCORE,
            consistency_score=NEUTRAL_SCORE,
            trend=Trend.STABLE,
            question_id=question_id
        )

    def dimension_scores(self) -> Dict[str, float]:
        return {
            'posture': self.posture_score,
            'movement': self.movement_score,
            'audio': self.audio_score,
            'presence': self.presence_score,
            'professionalism': self.professionalism_score,
            'overall': self.overall_score,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            'questionId': self.question_id,
            'postureScore': round(self.posture_score, 2),
            'movementScore': round(self.movement_score, 2),
            'audioScore': round(self.audio_score, 2),
            'presenceScore': round(self.presence_score, 2),
            'professionalismScore': round(self.professionalism_score, 2),
            'overallScore': round(self.overall_score, 2),
            'consistencyScore': round(self.consistency_score, 2),
            'trend': self.trend.value,
            'strengths': list(self.strengths),
            'improvementAreas': list(self.improvement_areas),
            'sampleCount': self.sample_count,
            'metrics': {k: round(v, 3) for k, v in self.metrics.items()},
        }


@dataclass
class OverallReport:
    """Aggregate over every question of the interview."""
    aggregate: SessionAggregate
    total_samples: int
    elapsed_minutes: float
    questions: List[SessionAggregate] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        payload = self.aggregate.to_dict()
        payload.pop('questionId', None)
        payload['totalSamples'] = self.total_samples
        payload['elapsedMinutes'] = round(self.elapsed_minutes, 2)
        payload['questions'] = [q.to_dict() for q in self.questions]
        return payload


def _samples_of(window) -> Sequence:
    """Immutable view of a SessionWindow or any sequence of samples."""
    if window is None:
        return ()
    if hasattr(window, 'snapshot'):
        return window.snapshot()
    return tuple(window)


class SampleAggregator:
    """
    Folds samples into SessionAggregate / OverallReport.

    Usage:
        aggregator = SampleAggregator(config)
        aggregate = aggregator.aggregate(window)
        report = aggregator.aggregate_report(windows)
    """

    def __init__(self, config: Optional[Dict] = None):
        self.consistency_scale = float(get_nested_config(config, 'scoring.consistency_scale', CONSISTENCY_SCALE))
        self.trend_threshold = float(get_nested_config(config, 'scoring.trend_threshold', TREND_THRESHOLD))
        self.strength_threshold = float(get_nested_config(config, 'scoring.strength_threshold', STRENGTH_THRESHOLD))
        self.improvement_threshold = float(get_nested_config(
            config, 'scoring.improvement_threshold', IMPROVEMENT_THRESHOLD
        ))

    def aggregate(self, window) -> SessionAggregate:
        """
        Aggregate one window.

        Args:
            window: SessionWindow or sequence of Sample

        Returns:
            SessionAggregate (neutral if the window is empty)
        """
        question_id = getattr(window, 'question_id', None)
        samples = _samples_of(window)
        return self._fold(samples, question_id)

    def aggregate_report(self, windows: Iterable) -> OverallReport:
        """
        Aggregate every window together and each window separately.

        The combined aggregate is the same reduction applied to the
        concatenation of all windows, not a mean of per-question means.
        """
        snapshots = [(getattr(w, 'question_id', None), _samples_of(w)) for w in windows]
        all_samples = sorted(
            (s for _, samples in snapshots for s in samples),
            key=lambda s: s.timestamp
        )

        questions = [self._fold(samples, question_id) for question_id, samples in snapshots]
        combined = self._fold(all_samples, None)

        elapsed_minutes = 0.0
        if len(all_samples) >= 2:
            elapsed_minutes = (all_samples[-1].timestamp - all_samples[0].timestamp) / 60.0

        logger.info(
            f"Overall report: {len(all_samples)} samples over {len(questions)} question(s), "
            f"overall={combined.overall_score:.2f}"
        )

        return OverallReport(
            aggregate=combined,
            total_samples=len(all_samples),
            elapsed_minutes=elapsed_minutes,
            questions=questions
        )

    def _fold(self, samples: Sequence, question_id: Optional[str]) -> SessionAggregate:
        if not samples:
            logger.debug(f"Window {question_id!r} has no samples, returning neutral aggregate")
            return SessionAggregate.neutral(question_id)

        means = {
            'posture': clamp_score(float(np.mean([s.posture_score for s in samples]))),
            'movement': clamp_score(float(np.mean([s.movement_score for s in samples]))),
            'audio': clamp_score(float(np.mean([s.audio_score for s in samples]))),
            'presence': clamp_score(float(np.mean([s.presence_score for s in samples]))),
        }
        professionalism = professionalism_score(means['posture'], means['movement'], means['presence'])
        overall = overall_score(
            means['posture'], means['movement'], means['audio'], means['presence'], professionalism
        )

        overall_series = [s.overall_score for s in samples]
        consistency = compute_consistency_score(overall_series, self.consistency_scale)
        trend = compute_trend(overall_series, self.trend_threshold)

        strengths = [STRENGTH_LABELS[d] for d in DIMENSIONS if means[d] >= self.strength_threshold]
        improvement_areas = [IMPROVEMENT_LABELS[d] for d in DIMENSIONS if means[d] <= self.improvement_threshold]

        aggregate = SessionAggregate(
            posture_score=means['posture'],
            movement_score=means['movement'],
            audio_score=means['audio'],
            presence_score=means['presence'],
            professionalism_score=professionalism,
            overall_score=overall,
            consistency_score=consistency,
            trend=trend,
            strengths=strengths,
            improvement_areas=improvement_areas,
            sample_count=len(samples),
            metrics=compute_metrics(samples),
            question_id=question_id
        )

        logger.info(
            f"Aggregate {question_id!r}: {len(samples)} samples, overall={overall:.2f}, "
            f"consistency={consistency:.2f}, trend={trend.value}"
        )

        return aggregate


def compute_metrics(samples: Sequence) -> Dict[str, float]:
    """
    Rates and averages behind the feedback detail strings.

    Rates are fractions in [0, 1]; every other entry is on the 0-10 scale
    except the raw averages of head movement and confidence.
    """
    if not samples:
        return {}

    observations = [s.observation for s in samples]
    n = float(len(samples))

    offsets = np.array([o.horizontal_offset for o in observations if o.present], dtype=np.float64)
    if len(offsets) >= 2:
        position_consistency = clamp_score(SCORE_MAX - float(np.std(offsets)) * POSITION_CONSISTENCY_SCALE)
    else:
        position_consistency = SCORE_MAX

    eye_contact = sum(1 for o in observations if o.centered and o.confidence > EYE_CONTACT_CONFIDENCE)

    metrics = {
        'face_visible_rate': sum(o.present for o in observations) / n,
        'face_centered_rate': sum(o.centered for o in observations) / n,
        'distance_ok_rate': sum(o.distance_ok for o in observations) / n,
        'detection_rate': sum(1 for o in observations if o.present and o.confidence > 0) / n,
        'avg_confidence': float(np.mean([o.confidence for o in observations])),
        'avg_fidgeting': float(np.mean([s.movement.fidgeting_level for s in samples])),
        'avg_head_movement': float(np.mean([s.movement.head_movement for s in samples])),
        'avg_volume': float(np.mean([s.audio.volume_level for s in samples])),
        'avg_clarity': float(np.mean([s.audio.clarity for s in samples])),
        'avg_audio_consistency': float(np.mean([s.audio.consistency for s in samples])),
        'landmark_share': sum(1 for s in samples if s.detector_kind.value == 'landmark') / n,
        'position_consistency': position_consistency,
        'eye_contact_estimate': SCORE_MAX * eye_contact / n,
    }
    metrics.update(compute_face_analysis(samples, position_consistency, metrics['detection_rate']))
    metrics.update(compute_presence_analysis(samples))

    return metrics


def compute_face_stability(samples: Sequence) -> float:
    """
    Steadiness of the face across samples (0-10).

    Uses the head movement recorded after the first sample; a single
    sample is perfectly stable.
    """
    if len(samples) < 2:
        return SCORE_MAX
    avg_movement = float(np.mean([s.movement.head_movement for s in samples[1:]]))
    return clamp_score(SCORE_MAX - avg_movement * FACE_STABILITY_SCALE)


def compute_face_analysis(samples: Sequence, position_consistency: float,
                          detection_rate: float) -> Dict[str, float]:
    """
    Face detection quality and professional appearance.

    Returns:
        face_detection_score: detection rate, mean confidence and stability
                              combined, 0-10
        face_stability: see compute_face_stability, over samples with a face
        professional_appearance: confidence, position consistency and
                                 stability of the visible face, 0-10

    Without any visible face the stability and appearance are 0.
    """
    avg_confidence = float(np.mean([s.observation.confidence for s in samples]))
    detection_score = clamp_score(
        detection_rate * SCORE_MAX
        + avg_confidence * FACE_CONFIDENCE_POINTS
        + compute_face_stability(samples) / 2
    )

    with_face = [s for s in samples if s.observation.present]
    if not with_face:
        return {
            'face_detection_score': detection_score,
            'face_stability': 0.0,
            'professional_appearance': 0.0,
        }

    face_stability = compute_face_stability(with_face)
    face_confidence = float(np.mean([s.observation.confidence for s in with_face]))

    return {
        'face_detection_score': detection_score,
        'face_stability': face_stability,
        'professional_appearance': clamp_score(
            face_confidence * FACE_CONFIDENCE_POINTS + position_consistency / 2 + face_stability / 2
        ),
    }


def compute_presence_analysis(samples: Sequence) -> Dict[str, float]:
    """
    Engagement, attentiveness and confidence, each a per-sample 0-10 value
    averaged over the window.

    - engagement: points for a visible face, a centered face and a
      confident detection
    - attentiveness: half of movement stability plus visibility points
    - confidence_level: mean of posture, stability and detection confidence
    """
    engagement = []
    attentiveness = []
    confidence = []

    for s in samples:
        o = s.observation
        engagement.append(
            ENGAGEMENT_VISIBLE_POINTS * o.present
            + ENGAGEMENT_CENTERED_POINTS * o.centered
            + ENGAGEMENT_CONFIDENT_POINTS * (o.confidence > EYE_CONTACT_CONFIDENCE)
        )
        attentiveness.append(min(SCORE_MAX, (s.movement.stability + ATTENTIVE_VISIBLE_POINTS * o.present) / 2))
        confidence.append(min(SCORE_MAX, (s.posture_score + s.movement.stability + o.confidence * SCORE_MAX) / 3))

    return {
        'engagement_level': clamp_score(float(np.mean(engagement))),
        'attentiveness': clamp_score(float(np.mean(attentiveness))),
        'confidence_level': clamp_score(float(np.mean(confidence))),
    }


def get_session_aggregate(window, config: Optional[Dict] = None) -> SessionAggregate:
    """Aggregate one window with the given (or default) configuration."""
    return SampleAggregator(config).aggregate(window)


def get_overall_report(windows: Iterable, config: Optional[Dict] = None) -> OverallReport:
    """Aggregate an interview's windows with the given (or default) configuration."""
    return SampleAggregator(config).aggregate_report(windows)
