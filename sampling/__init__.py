"""
Periodic sampling and per-question sample windows.

1. FrameSampler: timer-driven ticks turning frame + audio into a Sample
2. SessionWindow: ordered samples of one question
3. InterviewSession: capture, sampling, windows and aggregation wired together
"""

from .clock import ManualClock
from .sample import Sample
from .window import SessionWindow
from .sampler import FrameSampler, SamplerState
from .session import InterviewSession

__all__ = [
    'ManualClock',
    'Sample',
    'SessionWindow',
    'FrameSampler',
    'SamplerState',
    'InterviewSession',
]
