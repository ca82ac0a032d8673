"""
Precision Arithmetic Module

Arbitrary-precision decimal operations used by every indicator.

All operations:
    - Accept int, float, str, numpy scalars or Decimal
    - Return Decimal rounded in a dedicated context
    - Reject NaN / Infinity at the boundary
    - Never fall back to binary floating point

Floats are converted through their shortest repr, so 0.1 becomes
Decimal('0.1') rather than the exact binary expansion.
"""

from decimal import Decimal, InvalidOperation
from typing import Iterable, List, Optional, Sequence, Tuple, Union
import numbers
import logging

from confluex.exceptions import (
    InsufficientDataException,
    PrecisionArithmeticException,
    RangeViolationException,
)
from confluex.precision.config import PrecisionConfig, DEFAULT_PRECISION_CONFIG

LOG = logging.getLogger(__name__)

Numeric = Union[int, float, str, Decimal]

ZERO = Decimal(0)
ONE = Decimal(1)
TWO = Decimal(2)
HUNDRED = Decimal(100)


class PrecisionMath:
    """
    Decimal arithmetic with a fixed, explicit context.

    The context is a class attribute so every indicator shares one
    configuration. Call configure() once at startup to change it.
    """

    config: PrecisionConfig = DEFAULT_PRECISION_CONFIG
    context = DEFAULT_PRECISION_CONFIG.build_context()

    @classmethod
    def configure(cls, config: PrecisionConfig) -> None:
        """Replace the active precision configuration"""
        cls.config = config
        cls.context = config.build_context()
        LOG.info(
            f"Precision layer configured: {config.precision} digits, {config.rounding}"
        )

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    @classmethod
    def to_decimal(cls, value: Numeric) -> Decimal:
        """Convert any supported numeric input to a finite Decimal"""
        if isinstance(value, Decimal):
            result = value
        elif isinstance(value, bool):
            raise RangeViolationException(f"Boolean is not a numeric input: {value!r}", value)
        elif isinstance(value, numbers.Integral):
            result = Decimal(int(value))
        elif isinstance(value, numbers.Real):
            result = Decimal(repr(float(value)))
        elif isinstance(value, str):
            try:
                result = Decimal(value.strip())
            except InvalidOperation:
                raise RangeViolationException(f"Not a decimal string: {value!r}", value)
        else:
            raise RangeViolationException(
                f"Unsupported numeric type: {type(value).__name__}", value
            )

        if not result.is_finite():
            raise RangeViolationException(f"Non-finite value: {value!r}", value)

        return cls.context.plus(result)

    @classmethod
    def to_financial(cls, value: Numeric, places: Optional[int] = None) -> float:
        """Quantize to a fixed number of places and return a float"""
        places = cls.config.financial_places if places is None else places
        quantum = ONE.scaleb(-places)
        d = cls.to_decimal(value)
        return float(d.quantize(quantum, rounding=cls.context.rounding, context=cls.context))

    # ------------------------------------------------------------------
    # Basic arithmetic
    # ------------------------------------------------------------------

    @classmethod
    def add(cls, a: Numeric, b: Numeric) -> Decimal:
        return cls.context.add(cls.to_decimal(a), cls.to_decimal(b))

    @classmethod
    def subtract(cls, a: Numeric, b: Numeric) -> Decimal:
        return cls.context.subtract(cls.to_decimal(a), cls.to_decimal(b))

    @classmethod
    def multiply(cls, a: Numeric, b: Numeric) -> Decimal:
        return cls.context.multiply(cls.to_decimal(a), cls.to_decimal(b))

    @classmethod
    def divide(cls, a: Numeric, b: Numeric) -> Decimal:
        """
        Divide a by b.

        Raises:
            PrecisionArithmeticException: if b is zero
        """
        divisor = cls.to_decimal(b)
        if divisor.is_zero():
            raise PrecisionArithmeticException(f"Division by zero: {a} / {b}")
        return cls.context.divide(cls.to_decimal(a), divisor)

    @classmethod
    def absolute(cls, value: Numeric) -> Decimal:
        return cls.context.abs(cls.to_decimal(value))

    @classmethod
    def sqrt(cls, value: Numeric) -> Decimal:
        d = cls.to_decimal(value)
        if d < ZERO:
            raise RangeViolationException(f"Square root of negative value: {d}", d)
        return cls.context.sqrt(d)

    @classmethod
    def total(cls, values: Iterable[Numeric]) -> Decimal:
        result = ZERO
        for v in values:
            result = cls.context.add(result, cls.to_decimal(v))
        return result

    @classmethod
    def maximum(cls, values: Iterable[Numeric]) -> Decimal:
        decimals = [cls.to_decimal(v) for v in values]
        if not decimals:
            raise InsufficientDataException("max", 1, 0)
        return max(decimals)

    @classmethod
    def minimum(cls, values: Iterable[Numeric]) -> Decimal:
        decimals = [cls.to_decimal(v) for v in values]
        if not decimals:
            raise InsufficientDataException("min", 1, 0)
        return min(decimals)

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    @classmethod
    def mean(cls, values: Sequence[Numeric]) -> Decimal:
        if len(values) == 0:
            raise InsufficientDataException("mean", 1, 0)
        return cls.divide(cls.total(values), len(values))

    @classmethod
    def moving_average(cls, values: Sequence[Numeric], period: int) -> Decimal:
        """
        Simple moving average of the last `period` values.

        Raises:
            InsufficientDataException: if fewer than `period` values
        """
        _check_period(period)
        if len(values) < period:
            raise InsufficientDataException("SMA", period, len(values))
        return cls.mean(values[-period:])

    @classmethod
    def ema_series(cls, values: Sequence[Numeric], period: int) -> List[Decimal]:
        """
        Exponential moving average at every point from index period-1.

        Seeded with the SMA of the first `period` values,
        multiplier k = 2 / (period + 1).
        """
        _check_period(period)
        if len(values) < period:
            raise InsufficientDataException("EMA", period, len(values))

        k = cls.divide(TWO, period + 1)
        current = cls.mean(values[:period])
        series = [current]
        for v in values[period:]:
            # ema = (value - prev) * k + prev
            current = cls.add(cls.multiply(cls.subtract(v, current), k), current)
            series.append(current)
        return series

    @classmethod
    def ema(cls, values: Sequence[Numeric], period: int) -> Decimal:
        return cls.ema_series(values, period)[-1]

    @classmethod
    def std_dev(cls, values: Sequence[Numeric], sample: bool = False) -> Decimal:
        """
        Standard deviation (population by default).

        Args:
            values: Input values
            sample: Use n-1 denominator
        """
        required = 2 if sample else 1
        if len(values) < required:
            raise InsufficientDataException("std_dev", required, len(values))

        avg = cls.mean(values)
        squared = ZERO
        for v in values:
            diff = cls.subtract(v, avg)
            squared = cls.add(squared, cls.multiply(diff, diff))

        denominator = len(values) - 1 if sample else len(values)
        return cls.sqrt(cls.divide(squared, denominator))

    @classmethod
    def quantile(cls, values: Sequence[Numeric], q: Numeric) -> Decimal:
        """
        q-th quantile with linear interpolation between closest ranks.

        Raises:
            RangeViolationException: if q is outside [0, 1]
        """
        if len(values) == 0:
            raise InsufficientDataException("quantile", 1, 0)
        q = cls.validate(q, (0, 1), name="quantile")

        ordered = sorted(cls.to_decimal(v) for v in values)
        position = cls.multiply(q, len(ordered) - 1)
        lower = int(position)
        if lower >= len(ordered) - 1:
            return ordered[-1]
        fraction = cls.subtract(position, lower)
        step = cls.subtract(ordered[lower + 1], ordered[lower])
        return cls.add(ordered[lower], cls.multiply(step, fraction))

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @classmethod
    def validate(
        cls,
        value: Numeric,
        bounds: Optional[Tuple[Numeric, Numeric]] = None,
        name: str = "value"
    ) -> Decimal:
        """
        Assert a value is finite and optionally within [lo, hi].

        Raises:
            RangeViolationException: on non-finite or out-of-range value
        """
        d = cls.to_decimal(value)
        if bounds is not None:
            lo, hi = cls.to_decimal(bounds[0]), cls.to_decimal(bounds[1])
            if d < lo or d > hi:
                raise RangeViolationException(
                    f"{name}={d} outside [{lo}, {hi}]", d, (lo, hi)
                )
        return d


def _check_period(period: int) -> None:
    if not isinstance(period, int) or period <= 0:
        raise ValueError(f"period must be a positive integer, got {period!r}")
