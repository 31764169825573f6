"""
Behavioral scoring module.

This package turns samples into interpretable interview scores:
1. Fixed weighting of the overall score (0-10)
2. Consistency score and trend over a window
3. Session aggregates and the overall interview report
4. Feedback messages per dimension

All scores are:
- Interpretable (0-10 scale, higher = better)
- Explainable (per-field means and a fixed weighted sum)
- Deterministic (pure functions of the samples)
"""

from .weights import OVERALL_WEIGHTS, NEUTRAL_SCORE, clamp_score, overall_score, professionalism_score
from .consistency import Trend, compute_consistency_score, compute_trend
from .aggregator import (
    OverallReport,
    SampleAggregator,
    SessionAggregate,
    get_overall_report,
    get_session_aggregate,
)
from .feedback import DimensionFeedback, FeedbackGenerator, FeedbackLevel, classify_score

__all__ = [
    'OVERALL_WEIGHTS',
    'NEUTRAL_SCORE',
    'clamp_score',
    'overall_score',
    'professionalism_score',
    'Trend',
    'compute_consistency_score',
    'compute_trend',
    'OverallReport',
    'SampleAggregator',
    'SessionAggregate',
    'get_overall_report',
    'get_session_aggregate',
    'DimensionFeedback',
    'FeedbackGenerator',
    'FeedbackLevel',
    'classify_score',
]
