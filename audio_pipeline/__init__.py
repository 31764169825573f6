"""
Audio processing pipeline for interview presence.

Scores the most recent microphone window on:
1. Volume level (RMS in dBFS)
2. Clarity (share of energy in the speech band)
3. Consistency (coarse audibility check)
"""

from .audio_quality import AudioBuffer, AudioMetrics, analyze_audio

__all__ = [
    'AudioBuffer',
    'AudioMetrics',
    'analyze_audio',
]
