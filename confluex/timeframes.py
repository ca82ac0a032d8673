"""
Timeframe Definitions

Canonical timeframe ordering, bar durations and the default
multi-timeframe weights (higher timeframes carry more weight,
tapering off above the daily chart).
"""

from datetime import timedelta
from typing import Dict, List

TIMEFRAME_ORDER: List[str] = ['1m', '5m', '15m', '30m', '1h', '4h', '1d', '3d', '1w', '1M']

BAR_DURATIONS: Dict[str, timedelta] = {
    '1m': timedelta(minutes=1),
    '5m': timedelta(minutes=5),
    '15m': timedelta(minutes=15),
    '30m': timedelta(minutes=30),
    '1h': timedelta(hours=1),
    '4h': timedelta(hours=4),
    '1d': timedelta(days=1),
    '3d': timedelta(days=3),
    '1w': timedelta(weeks=1),
    '1M': timedelta(days=30),
}

DEFAULT_TIMEFRAME_WEIGHTS: Dict[str, float] = {
    '1m': 0.5,
    '5m': 0.7,
    '15m': 0.8,
    '30m': 1.0,
    '1h': 1.3,
    '4h': 1.6,
    '1d': 2.0,
    '3d': 1.8,
    '1w': 1.5,
    '1M': 1.2,
}


def validate_timeframe(timeframe: str) -> str:
    if timeframe not in BAR_DURATIONS:
        raise ValueError(
            f"Unknown timeframe '{timeframe}', expected one of {TIMEFRAME_ORDER}"
        )
    return timeframe


def bar_duration(timeframe: str) -> timedelta:
    return BAR_DURATIONS[validate_timeframe(timeframe)]


def timeframe_rank(timeframe: str) -> int:
    """Position in TIMEFRAME_ORDER (0 = shortest)"""
    return TIMEFRAME_ORDER.index(validate_timeframe(timeframe))


def adjacent_timeframes(timeframe: str, span: int = 2) -> List[str]:
    """
    Timeframes within `span` steps of the given one, excluding itself.

    Example:
        adjacent_timeframes('1h', span=1) -> ['30m', '4h']
    """
    rank = timeframe_rank(timeframe)
    lo = max(0, rank - span)
    hi = min(len(TIMEFRAME_ORDER), rank + span + 1)
    return [tf for tf in TIMEFRAME_ORDER[lo:hi] if tf != timeframe]
