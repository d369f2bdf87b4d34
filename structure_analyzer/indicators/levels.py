"""
Structural Levels - Reference Levels From a Frozen Anchor Period

Two level sources share one interface:
- PreviousDayLevelSource: PDH / PDL / mid of yesterday's candle
- WeeklyVwapLevelSource: max / min of this week's daily VWAPs, live VWAP as mid

Each source also classifies its own anchor period and carries the scoring
profile the probability engine applies to it.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from structure_analyzer.indicators.structure_config import (
    DEFAULT_STRUCTURE_CONFIG,
    PD_SCORING,
    VWAP_SCORING,
    ScoringConfig,
    StructureConfig,
    safe_divide,
)
from structure_analyzer.indicators.structure_types import (
    Candle,
    DayMetrics,
    StructuralLevels,
    TrendLabel,
)


class PriceSource(Enum):
    """Price source for VWAP calculation"""

    TYPICAL = "typical"  # (H+L+C)/3 x volume
    CLOSE = "close"  # close x volume
    QUOTE = "quote"  # exchange quote volume (falls back to close x volume)


# Weekly VWAP fib ratios, extensions above, inner range, extensions below
FIB_RATIOS = (2.0, 1.618, 1.272, 0.786, 0.618, 0.5, 0.382, 0.236, -0.272, -0.618, -1.0)


# =============================================================================
# VOLATILITY / VWAP MATH
# =============================================================================


def true_ranges(candles: Sequence[Candle]) -> List[float]:
    """True range per candle; the first candle uses its own high-low."""
    trs = []
    for i, c in enumerate(candles):
        if i == 0:
            trs.append(c.high - c.low)
            continue
        prev_close = candles[i - 1].close
        trs.append(max(c.high - c.low, abs(c.high - prev_close), abs(c.low - prev_close)))
    return trs


def compute_atr(candles: Sequence[Candle], period: int = 14) -> float:
    """
    Simple average of the last `period` true ranges.

    Returns 0.0 when fewer than `period` candles are available.
    """
    if period <= 0 or len(candles) < period:
        return 0.0
    trs = true_ranges(candles)
    return sum(trs[-period:]) / period


def _weighted_value(candle: Candle, source: PriceSource) -> float:
    if source == PriceSource.QUOTE:
        return candle.quote_value
    if source == PriceSource.CLOSE:
        return candle.close * candle.volume
    return candle.typical_price * candle.volume


def compute_vwap(candles: Sequence[Candle], source: PriceSource = PriceSource.TYPICAL) -> float:
    """
    VWAP over the whole sequence.

    Falls back to the last close when the sequence carries no volume.
    """
    if not candles:
        return 0.0
    pv_sum = sum(_weighted_value(c, source) for c in candles)
    v_sum = sum(c.volume for c in candles)
    return pv_sum / v_sum if v_sum > 0 else candles[-1].close


def running_vwap(candles: Sequence[Candle], source: PriceSource = PriceSource.TYPICAL) -> List[float]:
    """Cumulative VWAP after each candle."""
    values = []
    pv_sum = 0.0
    v_sum = 0.0
    for c in candles:
        pv_sum += _weighted_value(c, source)
        v_sum += c.volume
        values.append(pv_sum / v_sum if v_sum > 0 else c.close)
    return values


def vwap_slope(vwap_series: Sequence[float], atr: float, lookback: int = 10) -> Tuple[float, float]:
    """
    Raw and ATR-normalized VWAP slope over `lookback` bars.

    Returns:
        (slope, normalized_slope); both 0.0 when history is too short,
        normalized is 0.0 when ATR is 0.
    """
    if len(vwap_series) <= lookback:
        return 0.0, 0.0
    slope = vwap_series[-1] - vwap_series[-1 - lookback]
    return slope, safe_divide(slope, atr)


# =============================================================================
# LEVEL BUILDERS
# =============================================================================


def build_previous_day_levels(reference: Candle) -> Tuple[StructuralLevels, DayMetrics]:
    """
    Levels and candle anatomy from the previous day's candle.

    upper = PDH, lower = PDL, mid = (PDH + PDL) / 2.
    """
    pdh, pdl = reference.high, reference.low
    pdo, pdc = reference.open, reference.close
    levels = StructuralLevels(upper=pdh, lower=pdl, mid=(pdh + pdl) / 2, range=pdh - pdl)
    metrics = DayMetrics(
        open=pdo,
        close=pdc,
        body_size=abs(pdc - pdo),
        upper_wick=pdh - max(pdo, pdc),
        lower_wick=min(pdo, pdc) - pdl,
    )
    return levels, metrics


def build_weekly_vwap_levels(
    daily_vwaps: Sequence[float],
    live_vwap: Optional[float] = None,
    slope: float = 0.0,
    normalized_slope: float = 0.0,
) -> StructuralLevels:
    """
    Levels from this week's daily VWAP values.

    Args:
        daily_vwaps: Daily VWAP per day since the week anchor, oldest first.
            The last value is the current (live) day.
        live_vwap: Current-day VWAP; defaults to the last daily value.
        slope: Raw VWAP slope.
        normalized_slope: ATR-normalized VWAP slope.
    """
    if not daily_vwaps:
        raise ValueError("Weekly VWAP levels need at least one daily VWAP value")
    mid = daily_vwaps[-1] if live_vwap is None else live_vwap
    values = list(daily_vwaps) + [mid]
    upper, lower = max(values), min(values)
    return StructuralLevels(
        upper=upper,
        lower=lower,
        mid=mid,
        range=upper - lower,
        slope=slope,
        normalized_slope=normalized_slope,
    )


def fib_levels(levels: StructuralLevels) -> List[Tuple[float, float]]:
    """(ratio, price) pairs across and beyond the structural range."""
    return [(ratio, levels.lower + levels.range * ratio) for ratio in FIB_RATIOS]


# =============================================================================
# TREND CLASSIFIERS
# =============================================================================


def classify_day(metrics: DayMetrics, levels: StructuralLevels, body_ratio: float = 0.2) -> TrendLabel:
    """Compression if the body is small relative to range, else candle direction."""
    if metrics.body_size < body_ratio * levels.range:
        return TrendLabel.COMPRESSION
    return TrendLabel.BULLISH if metrics.close > metrics.open else TrendLabel.BEARISH


def classify_vwap_trend(levels: StructuralLevels, threshold: float = 0.15) -> TrendLabel:
    """Trend from the normalized VWAP slope."""
    if levels.normalized_slope > threshold:
        return TrendLabel.BULLISH
    if levels.normalized_slope < -threshold:
        return TrendLabel.BEARISH
    return TrendLabel.NEUTRAL


# =============================================================================
# LEVEL SOURCES
# =============================================================================


class LevelSource(ABC):
    """Anchor-period level provider consumed by the structure pipeline."""

    name: str = ""

    def __init__(self, scoring: ScoringConfig, config: Optional[StructureConfig] = None):
        self.scoring = scoring
        self.config = config or DEFAULT_STRUCTURE_CONFIG

    @property
    @abstractmethod
    def levels(self) -> StructuralLevels:
        """Frozen levels for the current anchor period."""

    @abstractmethod
    def classify_trend(self) -> TrendLabel:
        """Label the anchor period itself."""


class PreviousDayLevelSource(LevelSource):
    """Levels anchored on the previous trading day's candle."""

    name = "PD"

    def __init__(
        self,
        reference: Optional[Candle],
        scoring: ScoringConfig = PD_SCORING,
        config: Optional[StructureConfig] = None,
    ):
        if reference is None:
            raise ValueError("Previous-day level source needs a reference candle")
        super().__init__(scoring, config)
        self.reference = reference
        self._levels, self.metrics = build_previous_day_levels(reference)

    @property
    def levels(self) -> StructuralLevels:
        return self._levels

    def classify_trend(self) -> TrendLabel:
        return classify_day(self.metrics, self._levels, self.config.compression_body_ratio)


class WeeklyVwapLevelSource(LevelSource):
    """Levels anchored on the current week's daily VWAP extremes."""

    name = "W-VWAP"

    def __init__(
        self,
        daily_vwaps: Sequence[float],
        live_vwap: Optional[float] = None,
        slope: float = 0.0,
        normalized_slope: float = 0.0,
        scoring: ScoringConfig = VWAP_SCORING,
        config: Optional[StructureConfig] = None,
    ):
        super().__init__(scoring, config)
        self.daily_vwaps = tuple(daily_vwaps)
        self._levels = build_weekly_vwap_levels(daily_vwaps, live_vwap, slope, normalized_slope)

    @property
    def levels(self) -> StructuralLevels:
        return self._levels

    def classify_trend(self) -> TrendLabel:
        return classify_vwap_trend(self._levels, self.config.slope_trend_threshold)
