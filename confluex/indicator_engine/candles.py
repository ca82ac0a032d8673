"""
Candle Series Module

Ordered, validated OHLCV input for one (symbol, timeframe).

Philosophy:
    - Timestamps must be strictly increasing, reject otherwise
    - Gaps are allowed but always flagged, never filled
    - The series is read-only once built
"""

from collections import abc
from datetime import timedelta
from typing import Iterable, List, Optional, Union
import logging

import pandas as pd

from confluex.exceptions import InvalidCandleSeriesException
from confluex.indicator_engine.schemas import Candle
from confluex.timeframes import BAR_DURATIONS

LOG = logging.getLogger(__name__)

OHLCV_COLUMNS = ['open', 'high', 'low', 'close', 'volume']


class CandleSeries(abc.Sequence):
    """
    Immutable, time-ordered candle sequence.

    Gap detection compares consecutive timestamps against the
    timeframe's bar duration; each gap is recorded by the index of
    the bar that follows it.
    """

    def __init__(
        self,
        candles: Iterable[Union[Candle, dict]],
        symbol: str = "",
        timeframe: str = "",
        bar_duration: Optional[timedelta] = None
    ):
        self.symbol = symbol
        self.timeframe = timeframe
        self._candles = tuple(
            c if isinstance(c, Candle) else Candle.from_dict(c) for c in candles
        )
        self.bar_duration = bar_duration or BAR_DURATIONS.get(timeframe)

        self._validate_ordering()
        self.gap_indices = self._detect_gaps()

        if self.gap_indices:
            LOG.debug(
                f"{symbol} {timeframe}: {len(self.gap_indices)} gaps in {len(self._candles)} candles"
            )

    # ------------------------------------------------------------------
    # Sequence protocol
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._candles)

    def __getitem__(self, index):
        return self._candles[index]

    def __repr__(self) -> str:
        return f"CandleSeries({self.symbol!r}, {self.timeframe!r}, n={len(self)}, gaps={self.gap_count})"

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def candles(self) -> tuple:
        return self._candles

    @property
    def gap_count(self) -> int:
        return len(self.gap_indices)

    @property
    def has_gaps(self) -> bool:
        return bool(self.gap_indices)

    @property
    def latest(self) -> Optional[Candle]:
        return self._candles[-1] if self._candles else None

    def closes(self) -> List:
        return [c.close for c in self._candles]

    def highs(self) -> List:
        return [c.high for c in self._candles]

    def lows(self) -> List:
        return [c.low for c in self._candles]

    def opens(self) -> List:
        return [c.open for c in self._candles]

    def volumes(self) -> List:
        return [c.volume for c in self._candles]

    def tail(self, n: int) -> 'CandleSeries':
        """Last n candles as a new series"""
        return CandleSeries(
            self._candles[-n:] if n > 0 else (),
            symbol=self.symbol,
            timeframe=self.timeframe,
            bar_duration=self.bar_duration,
        )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _validate_ordering(self) -> None:
        for i in range(1, len(self._candles)):
            prev_ts = self._candles[i - 1].timestamp
            ts = self._candles[i].timestamp
            if ts <= prev_ts:
                raise InvalidCandleSeriesException(
                    f"{self.symbol} {self.timeframe}: timestamps not strictly increasing "
                    f"at index {i} ({prev_ts.isoformat()} -> {ts.isoformat()})"
                )

    def _detect_gaps(self) -> List[int]:
        if self.bar_duration is None or len(self._candles) < 2:
            return []

        timestamps = pd.Series([c.timestamp for c in self._candles])
        deltas = timestamps.diff()
        gaps = deltas > pd.Timedelta(self.bar_duration)
        return [int(i) for i in gaps[gaps].index]

    # ------------------------------------------------------------------
    # pandas interop
    # ------------------------------------------------------------------

    @classmethod
    def from_dataframe(
        cls,
        df: pd.DataFrame,
        symbol: str = "",
        timeframe: str = ""
    ) -> 'CandleSeries':
        """
        Build a series from a DataFrame.

        Timestamps are taken from a 'timestamp' column when present,
        otherwise from a DatetimeIndex.
        """
        missing = [c for c in OHLCV_COLUMNS if c not in df.columns and c != 'volume']
        if missing:
            raise InvalidCandleSeriesException(f"DataFrame missing columns: {missing}")

        if 'timestamp' in df.columns:
            timestamps = pd.to_datetime(df['timestamp'], utc=True)
        elif isinstance(df.index, pd.DatetimeIndex):
            timestamps = pd.Series(df.index, index=df.index)
            timestamps = pd.to_datetime(timestamps, utc=True)
        else:
            raise InvalidCandleSeriesException("DataFrame has no timestamp column or DatetimeIndex")

        volumes = df['volume'] if 'volume' in df.columns else pd.Series(0, index=df.index)

        candles = [
            Candle(
                timestamp=ts.to_pydatetime(),
                open=o, high=h, low=l, close=c, volume=v,
            )
            for ts, o, h, l, c, v in zip(
                timestamps, df['open'], df['high'], df['low'], df['close'], volumes
            )
        ]
        return cls(candles, symbol=symbol, timeframe=timeframe)

    def to_dataframe(self) -> pd.DataFrame:
        """Export as a float DataFrame indexed by timestamp, with an is_gap flag"""
        df = pd.DataFrame(
            [
                {
                    'timestamp': c.timestamp,
                    'open': float(c.open),
                    'high': float(c.high),
                    'low': float(c.low),
                    'close': float(c.close),
                    'volume': float(c.volume),
                }
                for c in self._candles
            ],
            columns=['timestamp'] + OHLCV_COLUMNS,
        )
        df['is_gap'] = False
        if self.gap_indices:
            df.loc[self.gap_indices, 'is_gap'] = True
        return df.set_index('timestamp')


def as_candle_series(
    candles,
    symbol: str = "",
    timeframe: str = ""
) -> CandleSeries:
    """Coerce a CandleSeries, DataFrame or list of candles/dicts to a CandleSeries"""
    if isinstance(candles, CandleSeries):
        return candles
    if isinstance(candles, pd.DataFrame):
        return CandleSeries.from_dataframe(candles, symbol=symbol, timeframe=timeframe)
    return CandleSeries(candles, symbol=symbol, timeframe=timeframe)
