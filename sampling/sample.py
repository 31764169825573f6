"""
One timestamped behavioral observation.

A Sample is created once per successful tick and never modified; the
aggregator only reads it.
"""

from dataclasses import dataclass
from typing import Any, Dict

from audio_pipeline.audio_quality import AudioMetrics
from scoring.weights import clamp_score, overall_score, professionalism_score
from video_pipeline.movement import MovementMetrics
from video_pipeline.observation import DetectorKind, FaceObservation


@dataclass(frozen=True)
class Sample:
    """
    Attributes:
        timestamp: Seconds on the sampler clock
        posture_score, movement_score, audio_score, presence_score: 0-10
        professionalism_score: mean(posture, movement, presence)
        overall_score: Weighted mean (see scoring.weights)
        detector_confidence: Confidence of the face observation (0-1)
        detector_kind: Detector that produced the observation
        observation, movement, audio: Raw inputs the scores were built from
    """
    timestamp: float
    posture_score: float
    movement_score: float
    audio_score: float
    presence_score: float
    professionalism_score: float
    overall_score: float
    detector_confidence: float
    detector_kind: DetectorKind
    observation: FaceObservation
    movement: MovementMetrics
    audio: AudioMetrics

    @classmethod
    def create(
        cls,
        timestamp: float,
        posture_score: float,
        presence_score: float,
        observation: FaceObservation,
        detector_kind: DetectorKind,
        movement: MovementMetrics,
        audio: AudioMetrics
    ) -> 'Sample':
        """Clamp the sub-scores and derive professionalism and overall."""
        posture = clamp_score(posture_score)
        movement_score = clamp_score(movement.movement_score)
        audio_score = clamp_score(audio.audio_score)
        presence = clamp_score(presence_score)
        professionalism = professionalism_score(posture, movement_score, presence)

        return cls(
            timestamp=float(timestamp),
            posture_score=posture,
            movement_score=movement_score,
            audio_score=audio_score,
            presence_score=presence,
            professionalism_score=professionalism,
            overall_score=overall_score(posture, movement_score, audio_score, presence, professionalism),
            detector_confidence=float(observation.confidence),
            detector_kind=detector_kind,
            observation=observation,
            movement=movement,
            audio=audio
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp,
            'postureScore': self.posture_score,
            'movementScore': self.movement_score,
            'audioScore': self.audio_score,
            'presenceScore': self.presence_score,
            'professionalismScore': self.professionalism_score,
            'overallScore': self.overall_score,
            'detectorConfidence': self.detector_confidence,
            'detectorKind': self.detector_kind.value,
        }
