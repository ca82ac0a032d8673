"""
Confluex Exception Taxonomy

Recoverable:
    InsufficientDataException    - not enough history, indicator unavailable

Computation defects (logged and surfaced, evaluation abandoned):
    ComputationException          - base, an ArithmeticError
    PrecisionArithmeticException  - division by zero in the decimal layer
    RangeViolationException       - non-finite or out-of-range result
    InvariantViolationException   - a structural invariant was broken

Caller errors:
    InvalidParametersException    - bad simulator arguments
    InvalidCandleSeriesException  - unordered or malformed candle input
"""


class InsufficientDataException(Exception):
    """Raised when a series is shorter than a computation's minimum history."""

    def __init__(self, indicator: str, required: int, available: int):
        self.indicator = indicator
        self.required = required
        self.available = available
        super().__init__(
            f"{indicator} requires {required} data points, got {available}"
        )


class ComputationException(ArithmeticError):
    """Base class for computation defects."""
    pass


class PrecisionArithmeticException(ComputationException, ZeroDivisionError):
    """Division by zero (or undefined result) inside the precision layer."""
    pass


class RangeViolationException(ComputationException):
    """Value is not finite or falls outside its allowed range."""

    def __init__(self, message: str, value=None, bounds=None):
        self.value = value
        self.bounds = bounds
        super().__init__(message)


class InvariantViolationException(ComputationException):
    """Structural invariant broken (band ordering, level bracketing)."""
    pass


class InvalidParametersException(ValueError):
    """Caller supplied invalid simulation parameters."""
    pass


class InvalidCandleSeriesException(ValueError):
    """Candle series is unordered or contains malformed bars."""
    pass
