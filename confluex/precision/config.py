"""
Precision Layer Configuration

Controls the decimal context used for every indicator computation.
"""

from dataclasses import dataclass
import decimal
import hashlib
import json


ROUNDING_MODES = (
    decimal.ROUND_HALF_UP,
    decimal.ROUND_HALF_EVEN,
    decimal.ROUND_HALF_DOWN,
    decimal.ROUND_DOWN,
    decimal.ROUND_UP,
    decimal.ROUND_FLOOR,
    decimal.ROUND_CEILING,
)


@dataclass
class PrecisionConfig:
    """Decimal context parameters"""

    # Significant digits carried through every step
    precision: int = 50

    # Rounding applied on every operation
    rounding: str = decimal.ROUND_HALF_UP

    # Decimal places kept when converting to float at the output boundary
    financial_places: int = 8

    def __post_init__(self):
        if self.precision < 10:
            raise ValueError(f"precision must be >= 10, got {self.precision}")
        if self.rounding not in ROUNDING_MODES:
            raise ValueError(f"Unknown rounding mode: {self.rounding}")
        if not 0 <= self.financial_places <= self.precision:
            raise ValueError("financial_places must be within [0, precision]")

    def build_context(self) -> decimal.Context:
        """Create an isolated decimal context (never the thread-global one)"""
        return decimal.Context(prec=self.precision, rounding=self.rounding)

    def to_dict(self) -> dict:
        return {
            'precision': self.precision,
            'rounding': self.rounding,
            'financial_places': self.financial_places,
        }

    def compute_hash(self) -> str:
        config_json = json.dumps(self.to_dict(), sort_keys=True)
        return hashlib.sha256(config_json.encode()).hexdigest()[:12]


DEFAULT_PRECISION_CONFIG = PrecisionConfig()
