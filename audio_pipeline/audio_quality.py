"""
Voice quality from a short microphone buffer.

Features (each 0-10):
1. Volume level - RMS energy in dBFS, mapped linearly between a floor
   (silence) and a reference speaking level
2. Clarity - share of spectral energy inside the speech band (300-3400 Hz)
3. Consistency - coarse floor check: audible buffers score high, near-silent
   buffers score low

Engineering decisions:
- Welch periodogram (scipy.signal) for the band share: stable on a ~1 s buffer
- A missing or corrupt buffer yields neutral metrics instead of an error, so
  a microphone hiccup never costs a whole sample
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

import numpy as np
from scipy import signal

from scoring.weights import NEUTRAL_SCORE, clamp_score
from utils.config_loader import get_nested_config

logger = logging.getLogger(__name__)

FLOOR_DB = -60.0
REFERENCE_DB = -20.0
CLARITY_BAND_HZ = (300.0, 3400.0)
VOLUME_FLOOR = 2.0
CONSISTENT_SCORE = 8.0
INCONSISTENT_SCORE = 4.0
MIN_SAMPLES = 64
WELCH_SEGMENT = 1024


@dataclass(frozen=True)
class AudioBuffer:
    """
    Mono or multi-channel PCM window.

    Attributes:
        samples: Float samples in [-1, 1], shape (n,) or (n, channels)
        sample_rate: Sample rate in Hz
    """
    samples: np.ndarray
    sample_rate: int

    @property
    def duration(self) -> float:
        if self.sample_rate <= 0:
            return 0.0
        return len(self.samples) / self.sample_rate

    @classmethod
    def empty(cls, sample_rate: int = 16000) -> 'AudioBuffer':
        return cls(samples=np.zeros(0, dtype=np.float32), sample_rate=sample_rate)


@dataclass(frozen=True)
class AudioMetrics:
    """Audio sub-scores of one buffer (all 0-10)."""
    volume_level: float
    clarity: float
    consistency: float
    audio_score: float

    @classmethod
    def neutral(cls) -> 'AudioMetrics':
        return cls(
            volume_level=NEUTRAL_SCORE,
            clarity=NEUTRAL_SCORE,
            consistency=NEUTRAL_SCORE,
            audio_score=NEUTRAL_SCORE
        )


def _mono_samples(buffer: Optional[AudioBuffer]) -> Optional[np.ndarray]:
    """Return usable mono float samples, or None for an invalid buffer."""
    if buffer is None or buffer.samples is None or buffer.sample_rate is None:
        return None
    if buffer.sample_rate <= 0:
        return None

    try:
        samples = np.asarray(buffer.samples, dtype=np.float64)
    except (TypeError, ValueError):
        return None

    if samples.ndim == 2:
        samples = samples.mean(axis=1)
    elif samples.ndim != 1:
        return None

    if samples.size < MIN_SAMPLES or not np.all(np.isfinite(samples)):
        return None

    return samples


def analyze_audio(buffer: Optional[AudioBuffer], config: Optional[Dict] = None) -> AudioMetrics:
    """
    Score one audio buffer.

    Args:
        buffer: Audio window (may be None or empty)
        config: Optional config (``audio.*``)

    Returns:
        AudioMetrics; neutral (5, 5, 5, 5) for an empty or corrupt buffer
    """
    samples = _mono_samples(buffer)
    if samples is None:
        logger.debug("Audio buffer empty or corrupt, using neutral audio metrics")
        return AudioMetrics.neutral()

    floor_db = float(get_nested_config(config, 'audio.floor_db', FLOOR_DB))
    reference_db = float(get_nested_config(config, 'audio.reference_db', REFERENCE_DB))
    band_low, band_high = get_nested_config(config, 'audio.clarity_band_hz', CLARITY_BAND_HZ)
    volume_floor = float(get_nested_config(config, 'audio.volume_floor', VOLUME_FLOOR))

    # Volume: RMS in dBFS -> 0-10 between floor and reference
    rms = float(np.sqrt(np.mean(samples ** 2)))
    level_db = 20.0 * np.log10(max(rms, 1e-10))
    volume_level = clamp_score((level_db - floor_db) / (reference_db - floor_db) * 10.0)

    # Clarity: share of energy in the speech band
    freqs, psd = signal.welch(
        samples,
        fs=buffer.sample_rate,
        nperseg=min(WELCH_SEGMENT, samples.size)
    )
    total_energy = float(np.sum(psd))
    if total_energy > 0:
        band = (freqs >= band_low) & (freqs <= band_high)
        clarity = clamp_score(float(np.sum(psd[band])) / total_energy * 10.0)
    else:
        clarity = 0.0

    consistency = CONSISTENT_SCORE if volume_level > volume_floor else INCONSISTENT_SCORE

    audio_score = clamp_score((volume_level + clarity + consistency) / 3.0)

    logger.debug(
        f"Audio: {level_db:.1f} dBFS, volume={volume_level:.2f}, "
        f"clarity={clarity:.2f}, consistency={consistency:.1f}"
    )

    return AudioMetrics(
        volume_level=volume_level,
        clarity=clarity,
        consistency=consistency,
        audio_score=audio_score
    )
