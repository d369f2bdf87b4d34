"""
Structure Pipeline

One pipeline for every level source:

    LevelSource (levels, trend)
        ↓
    IntradayStateAnalyzer (state, sweep, acceptance, MSS, flags, distances)
        ↓
    ScenarioProbabilityEngine (reversal / continuation / range)
        ↓
    StructureSnapshot (+ liquidity zones, bias, confidence)

Evaluation is a pure function of the level source and the candle window.
"""

import logging
from typing import Optional, Sequence

from structure_analyzer.indicators.intraday_state import IntradayStateAnalyzer
from structure_analyzer.indicators.levels import LevelSource, compute_atr
from structure_analyzer.indicators.liquidity_zones import calculate_liquidity_zones
from structure_analyzer.indicators.scenario_engine import (
    ScenarioProbabilityEngine,
    derive_bias,
    derive_confidence,
)
from structure_analyzer.indicators.structure_types import Candle, StructureSnapshot

logger = logging.getLogger(__name__)


class StructurePipeline:
    """Evaluate a candle window against one level source."""

    def __init__(self, level_source: LevelSource):
        self.level_source = level_source
        self.config = level_source.config
        self.analyzer = IntradayStateAnalyzer(self.config)
        self.engine = ScenarioProbabilityEngine(level_source.scoring)

    def evaluate(
        self,
        candles: Sequence[Candle],
        atr_candles: Optional[Sequence[Candle]] = None,
    ) -> StructureSnapshot:
        """
        Run the full pipeline.

        Args:
            candles: Current-period candles, strictly ascending by time
            atr_candles: Candles used for ATR zone sizing (defaults to `candles`)

        Returns:
            StructureSnapshot for the latest candle.
        """
        levels = self.level_source.levels
        trend = self.level_source.classify_trend()
        analysis = self.analyzer.analyze(levels, candles)

        zones = None
        if candles:
            atr = compute_atr(atr_candles if atr_candles is not None else candles, self.config.atr_period)
            zones = calculate_liquidity_zones(levels, candles[-1].close, atr, self.config)

        probabilities = self.engine.score(levels, analysis, candles)
        snapshot = StructureSnapshot(
            source=self.level_source.name,
            levels=levels,
            trend=trend,
            zones=zones,
            analysis=analysis,
            probabilities=probabilities,
            bias=derive_bias(probabilities, analysis),
            confidence=derive_confidence(probabilities, analysis),
        )
        logger.debug(
            "%s evaluated %d candles: state=%s probs=%d/%d/%d",
            snapshot.source,
            analysis.candle_count,
            analysis.state.value,
            probabilities.reversal,
            probabilities.continuation,
            probabilities.range,
        )
        return snapshot


def format_structure_output(snapshot: StructureSnapshot, compact: bool = True) -> str:
    """
    Format a structure snapshot for display.

    Args:
        snapshot: StructureSnapshot to format
        compact: If True, use compact format

    Returns:
        Formatted string.
    """
    a = snapshot.analysis
    p = snapshot.probabilities
    sweep = a.sweep.side.value if a.sweep else "-"
    acceptance = a.acceptance.side.value if a.acceptance else "-"
    mss = a.mss.direction.value if a.mss else "-"

    if compact:
        return (
            f"{snapshot.source}: {a.state.value} trend={snapshot.trend.value} "
            f"sweep={sweep} accept={acceptance} mss={mss} "
            f"R/C/N={p.reversal}/{p.continuation}/{p.range} "
            f"bias={snapshot.bias.value} conf={snapshot.confidence}"
        )

    lv = snapshot.levels
    lines = [f"STRUCTURE ({snapshot.source})"]
    lines.append(f"  Levels: upper={lv.upper:.4f} mid={lv.mid:.4f} lower={lv.lower:.4f}")
    lines.append(f"  Range: {lv.range:.4f} (slope={lv.normalized_slope:+.3f})")
    lines.append(f"  Trend: {snapshot.trend.value}")
    lines.append(f"  State: {a.state.value}")
    lines.append(f"  Sweep: {sweep}  Acceptance: {acceptance}  MSS: {mss}")
    lines.append(
        f"  Liquidity Taken: upper={a.liquidity_taken.upper_taken} "
        f"lower={a.liquidity_taken.lower_taken}"
    )
    lines.append(
        f"  Distance: upper={a.distances.upper:+.2f}% lower={a.distances.lower:+.2f}% "
        f"mid={a.distances.mid:.2f}%"
    )
    if snapshot.zones:
        z = snapshot.zones
        lines.append(f"  Buy-side: {z.buy_side[0]:.4f} - {z.buy_side[1]:.4f}")
        lines.append(f"  Sell-side: {z.sell_side[0]:.4f} - {z.sell_side[1]:.4f}")
    lines.append(
        f"  Probabilities: reversal={p.reversal}% continuation={p.continuation}% range={p.range}%"
    )
    lines.append(f"  Bias: {snapshot.bias.value} (confidence {snapshot.confidence})")
    return "\n".join(lines)
