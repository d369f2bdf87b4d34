"""
Intraday State Analyzer

Classifies the current (still open) anchor period against frozen levels:
- Liquidity taken: any wick through upper / lower in the whole window
- Sweep: wick beyond a level, close back inside (last 8 candles, latest wins)
- Acceptance: consecutive closes beyond a level (whole window, latest wins)
- MSS: after a sweep, last close through the swing preceding the first
  sweep of that side in the window

All detectors always run; only the final state uses a fixed priority:
ACCEPTED > SWEEPING > REBALANCING > INSIDE_RANGE.
"""

from typing import List, Optional, Sequence, Tuple

from structure_analyzer.indicators.structure_config import DEFAULT_STRUCTURE_CONFIG, StructureConfig
from structure_analyzer.indicators.structure_types import (
    AcceptanceEvent,
    AcceptanceSide,
    Candle,
    Distances,
    IntradayAnalysis,
    IntradayState,
    LiquidityTaken,
    MssDirection,
    MssEvent,
    StructuralLevels,
    SweepEvent,
    SweepSide,
    ensure_ascending,
)


def is_upper_sweep(candle: Candle, upper: float) -> bool:
    """Wick above upper, body closed back below."""
    return candle.high > upper and candle.close < upper


def is_lower_sweep(candle: Candle, lower: float) -> bool:
    """Wick below lower, body closed back above."""
    return candle.low < lower and candle.close > lower


def sweep_indices(levels: StructuralLevels, candles: Sequence[Candle]) -> List[Tuple[int, SweepSide]]:
    """Every sweep candle in the window, for chart markers."""
    marks = []
    for i, c in enumerate(candles):
        if is_upper_sweep(c, levels.upper):
            marks.append((i, SweepSide.UPPER))
        if is_lower_sweep(c, levels.lower):
            marks.append((i, SweepSide.LOWER))
    return marks


def compute_distances(levels: StructuralLevels, price: float) -> Distances:
    """
    Percentage distance from price to each level.

    upper > 0 means price is below upper; lower > 0 means price is above lower.

    Raises:
        ValueError: if price is not positive.
    """
    if price <= 0:
        raise ValueError(f"Price must be positive to compute distances, got {price}")
    return Distances(
        upper=(levels.upper - price) / price * 100,
        lower=(price - levels.lower) / price * 100,
        mid=abs(price - levels.mid) / price * 100,
    )


class IntradayStateAnalyzer:
    """Stateless classifier of a candle window against structural levels."""

    def __init__(self, config: Optional[StructureConfig] = None):
        self.config = config or DEFAULT_STRUCTURE_CONFIG

    def analyze(self, levels: StructuralLevels, candles: Sequence[Candle]) -> IntradayAnalysis:
        """
        Evaluate the window.

        Args:
            levels: Frozen levels of the anchor period
            candles: Current-period candles, strictly ascending by time

        Returns:
            IntradayAnalysis; neutral defaults for an empty window.
        """
        if not candles:
            return IntradayAnalysis(state=IntradayState.INSIDE_RANGE)
        ensure_ascending(candles)

        taken = self._liquidity_taken(levels, candles)
        sweep = self._detect_sweep(levels, candles)
        acceptance = self._detect_acceptance(levels, candles)
        mss = self._detect_mss(levels, candles, sweep)

        last_close = candles[-1].close
        return IntradayAnalysis(
            state=self._final_state(levels, last_close, sweep, acceptance),
            sweep=sweep,
            acceptance=acceptance,
            mss=mss,
            liquidity_taken=taken,
            distances=compute_distances(levels, last_close),
            last_close=last_close,
            candle_count=len(candles),
        )

    def _liquidity_taken(self, levels: StructuralLevels, candles: Sequence[Candle]) -> LiquidityTaken:
        return LiquidityTaken(
            upper_taken=any(c.high > levels.upper for c in candles),
            lower_taken=any(c.low < levels.lower for c in candles),
        )

    def _detect_sweep(
        self, levels: StructuralLevels, candles: Sequence[Candle]
    ) -> Optional[SweepEvent]:
        sweep = None
        start = max(0, len(candles) - self.config.sweep_lookback)
        for i in range(start, len(candles)):
            c = candles[i]
            if is_upper_sweep(c, levels.upper):
                sweep = SweepEvent(SweepSide.UPPER, i)
            if is_lower_sweep(c, levels.lower):
                sweep = SweepEvent(SweepSide.LOWER, i)
        return sweep

    def _detect_acceptance(
        self, levels: StructuralLevels, candles: Sequence[Candle]
    ) -> Optional[AcceptanceEvent]:
        n = self.config.acceptance_bars
        acceptance = None
        for i in range(n - 1, len(candles)):
            closes = [c.close for c in candles[i - n + 1 : i + 1]]
            if all(close > levels.upper for close in closes):
                acceptance = AcceptanceEvent(AcceptanceSide.ABOVE, i)
            if all(close < levels.lower for close in closes):
                acceptance = AcceptanceEvent(AcceptanceSide.BELOW, i)
        return acceptance

    def _detect_mss(
        self, levels: StructuralLevels, candles: Sequence[Candle], sweep: Optional[SweepEvent]
    ) -> Optional[MssEvent]:
        if sweep is None:
            return None
        # Swing is anchored on the first sweep of the active side in the whole window
        if sweep.side == SweepSide.LOWER:
            anchor = next(i for i, c in enumerate(candles) if is_lower_sweep(c, levels.lower))
        else:
            anchor = next(i for i, c in enumerate(candles) if is_upper_sweep(c, levels.upper))
        before = candles[max(0, anchor - self.config.mss_swing_lookback) : anchor]
        if not before:
            return None

        last_close = candles[-1].close
        if sweep.side == SweepSide.LOWER:
            swing_high = max(c.high for c in before)
            if last_close > swing_high:
                return MssEvent(MssDirection.LONG, swing_high)
        else:
            swing_low = min(c.low for c in before)
            if last_close < swing_low:
                return MssEvent(MssDirection.SHORT, swing_low)
        return None

    def _final_state(
        self,
        levels: StructuralLevels,
        close: float,
        sweep: Optional[SweepEvent],
        acceptance: Optional[AcceptanceEvent],
    ) -> IntradayState:
        if acceptance is not None:
            if acceptance.side == AcceptanceSide.ABOVE:
                return IntradayState.ACCEPTED_ABOVE
            return IntradayState.ACCEPTED_BELOW

        if sweep is not None:
            if sweep.side == SweepSide.UPPER:
                return IntradayState.SWEEPING_UPPER
            return IntradayState.SWEEPING_LOWER

        band = levels.range * self.config.rebalance_band
        if levels.mid - band < close < levels.mid + band:
            return IntradayState.REBALANCING

        # Inside or outside without a confirmed event both read as INSIDE_RANGE
        return IntradayState.INSIDE_RANGE
