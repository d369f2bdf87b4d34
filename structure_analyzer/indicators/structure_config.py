"""
Structure Engine Configuration

Centralizes the thresholds used by the level builders, the intraday state
analyzer and the scenario probability engine. Defaults reproduce the
hand-tuned values of the PD and weekly-VWAP analyzers.
"""

from dataclasses import dataclass

import pytz

EPSILON = 1e-9


def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    """
    Safely divide two numbers, returning default if denominator is near zero.

    Args:
        numerator: The numerator
        denominator: The denominator
        default: Value to return if division is unsafe (default: 0.0)

    Returns:
        numerator / denominator if safe, otherwise default
    """
    return numerator / denominator if abs(denominator) > EPSILON else default


@dataclass(frozen=True)
class ScoringConfig:
    """Weights for the scenario probability engine."""

    # Base accumulators
    base_reversal: float = 5.0
    base_continuation: float = 5.0
    base_range: float = 10.0

    # Event increments
    sweep_reversal: float = 40.0
    mss_reversal: float = 25.0
    acceptance_continuation: float = 45.0
    inside_range: float = 25.0

    # Volume surge (last volume vs average over volume_window)
    volume_window: int = 50
    volume_surge_ratio: float = 1.5
    volume_bonus: float = 10.0

    # Compression (recent high-low vs structural range)
    compression_window: int = 20
    compression_ratio: float = 0.5
    compression_range_bonus: float = 10.0
    compression_continuation_bonus: float = 0.0

    # Slope alignment with acceptance direction
    slope_alignment_threshold: float = 0.2
    slope_alignment_bonus: float = 0.0

    # Residual correction so the rounded distribution sums to 100
    enforce_exact_total: bool = True

    def __post_init__(self):
        """Validate weights and windows."""
        weights = (
            self.base_reversal,
            self.base_continuation,
            self.base_range,
            self.sweep_reversal,
            self.mss_reversal,
            self.acceptance_continuation,
            self.inside_range,
            self.volume_bonus,
            self.compression_range_bonus,
            self.compression_continuation_bonus,
            self.slope_alignment_bonus,
        )
        if any(w < 0 for w in weights):
            raise ValueError("Scoring weights must be non-negative")
        if self.base_reversal + self.base_continuation + self.base_range <= 0:
            raise ValueError("At least one base weight must be positive")
        if self.volume_window <= 0 or self.compression_window <= 0:
            raise ValueError("Scoring windows must be positive")
        if not 0 < self.compression_ratio <= 1:
            raise ValueError(f"compression_ratio must be in (0, 1], got {self.compression_ratio}")


# Previous-day variant: stronger volume bonus, compression also favours continuation.
PD_SCORING = ScoringConfig(
    volume_bonus=15.0,
    compression_ratio=0.6,
    compression_continuation_bonus=10.0,
)

# Weekly VWAP variant: slope alignment rewards accepted breakouts.
VWAP_SCORING = ScoringConfig(
    volume_bonus=10.0,
    compression_ratio=0.5,
    slope_alignment_bonus=15.0,
)


@dataclass(frozen=True)
class StructureConfig:
    """Configuration for level building and intraday state analysis."""

    # Volatility
    atr_period: int = 14

    # Liquidity zones
    zone_price_pct: float = 0.002  # 0.2% of price floor
    zone_atr_factor: float = 0.15  # 0.15 x ATR14
    rebalance_range_factor: float = 0.1  # +/- 0.1 x range around mid

    # Intraday detection windows
    sweep_lookback: int = 8
    acceptance_bars: int = 2
    mss_swing_lookback: int = 10
    rebalance_band: float = 0.05  # +/- 5% of range around mid

    # Trend classification
    compression_body_ratio: float = 0.2  # PD body < 0.2 x range
    slope_trend_threshold: float = 0.15  # |normalized slope| for VWAP trend

    # VWAP slope
    slope_lookback: int = 10

    # Sessions
    timezone: str = "UTC"
    weekly_anchor_day: str = "MON"

    def __post_init__(self):
        """Validate windows, ratios and the session timezone."""
        for name in ("atr_period", "sweep_lookback", "mss_swing_lookback", "slope_lookback"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.acceptance_bars < 2:
            raise ValueError("acceptance_bars must be at least 2")
        if self.weekly_anchor_day not in WEEKDAYS:
            raise ValueError(f"weekly_anchor_day must be one of {WEEKDAYS}")
        try:
            pytz.timezone(self.timezone)
        except pytz.UnknownTimeZoneError:
            raise ValueError(f"Unknown timezone {self.timezone!r}") from None
        if self.zone_price_pct < 0 or self.zone_atr_factor < 0 or self.rebalance_band < 0:
            raise ValueError("Zone and band factors must be non-negative")


WEEKDAYS = ("MON", "TUE", "WED", "THU", "FRI", "SAT", "SUN")

DEFAULT_STRUCTURE_CONFIG = StructureConfig()
