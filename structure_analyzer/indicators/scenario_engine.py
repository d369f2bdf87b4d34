"""
Scenario Probability Engine

Converts intraday findings into a reversal / continuation / range split.

Scoring (additive, independent):
- base: reversal 5, continuation 5, range 10
- sweep +40 reversal, MSS +25 reversal, acceptance +45 continuation
- close inside [lower, upper] +25 range
- volume surge (last > 1.5 x avg of last 50): bonus to the active signal
- compression (last 20 candles span < ratio x range): +10 range
- slope agreeing with acceptance direction: bonus continuation
"""

import math
from typing import Optional, Sequence

from structure_analyzer.indicators.structure_config import ScoringConfig
from structure_analyzer.indicators.structure_types import (
    AcceptanceSide,
    Bias,
    Candle,
    IntradayAnalysis,
    MssDirection,
    ProbabilityDistribution,
    StructuralLevels,
)

EMPTY_DISTRIBUTION = ProbabilityDistribution(reversal=33, continuation=33, range=34)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def normalize_scores(
    reversal: float, continuation: float, range_score: float, exact_total: bool = True
) -> ProbabilityDistribution:
    """
    Convert raw accumulators to integer percentages.

    With exact_total the rounding residue goes to the largest component
    so the three always sum to 100.
    """
    total = reversal + continuation + range_score
    if total <= 0:
        return EMPTY_DISTRIBUTION

    pct = [_round_half_up(100 * s / total) for s in (reversal, continuation, range_score)]
    if exact_total:
        residue = 100 - sum(pct)
        if residue:
            largest = pct.index(max(pct))
            pct[largest] += residue
    return ProbabilityDistribution(reversal=pct[0], continuation=pct[1], range=pct[2])


def is_volume_surge(candles: Sequence[Candle], window: int = 50, ratio: float = 1.5) -> bool:
    """Last volume above `ratio` x average volume of the trailing window."""
    if not candles:
        return False
    recent = candles[-window:]
    avg = sum(c.volume for c in recent) / len(recent)
    return candles[-1].volume > avg * ratio


def is_compressed(
    candles: Sequence[Candle], levels: StructuralLevels, window: int = 20, ratio: float = 0.5
) -> bool:
    """Recent high-low span tight compared with the structural range."""
    if not candles:
        return False
    recent = candles[-window:]
    span = max(c.high for c in recent) - min(c.low for c in recent)
    return span < ratio * levels.range


class ScenarioProbabilityEngine:
    """Weighted heuristic scoring of reversal, continuation and range."""

    def __init__(self, scoring: Optional[ScoringConfig] = None):
        self.scoring = scoring or ScoringConfig()

    def score(
        self,
        levels: StructuralLevels,
        analysis: IntradayAnalysis,
        candles: Sequence[Candle],
    ) -> ProbabilityDistribution:
        """
        Score the scenarios.

        Args:
            levels: Frozen structural levels
            analysis: Output of the intraday state analyzer for `candles`
            candles: Current-period candles (volume / compression context)

        Returns:
            ProbabilityDistribution; 33/33/34 when there are no candles.
        """
        if not candles:
            return EMPTY_DISTRIBUTION

        cfg = self.scoring
        last = candles[-1]
        reversal = cfg.base_reversal
        continuation = cfg.base_continuation
        range_score = cfg.base_range

        if analysis.sweep is not None:
            reversal += cfg.sweep_reversal
        if analysis.mss is not None:
            reversal += cfg.mss_reversal
        if analysis.acceptance is not None:
            continuation += cfg.acceptance_continuation
        if levels.lower < last.close < levels.upper:
            range_score += cfg.inside_range

        if analysis.acceptance is not None and cfg.slope_alignment_bonus:
            slope = levels.normalized_slope
            side = analysis.acceptance.side
            if (slope > cfg.slope_alignment_threshold and side == AcceptanceSide.ABOVE) or (
                slope < -cfg.slope_alignment_threshold and side == AcceptanceSide.BELOW
            ):
                continuation += cfg.slope_alignment_bonus

        if is_volume_surge(candles, cfg.volume_window, cfg.volume_surge_ratio):
            if analysis.acceptance is not None:
                continuation += cfg.volume_bonus
            if analysis.sweep is not None:
                reversal += cfg.volume_bonus

        if is_compressed(candles, levels, cfg.compression_window, cfg.compression_ratio):
            range_score += cfg.compression_range_bonus
            continuation += cfg.compression_continuation_bonus

        return normalize_scores(reversal, continuation, range_score, cfg.enforce_exact_total)


def derive_bias(probabilities: ProbabilityDistribution, analysis: IntradayAnalysis) -> Bias:
    """
    Directional read of the distribution.

    Reversal-dominant follows the MSS direction, continuation-dominant
    follows the acceptance side, anything else is neutral.
    """
    if probabilities.reversal > 50:
        if analysis.mss is not None and analysis.mss.direction == MssDirection.LONG:
            return Bias.REVERSAL_LONG
        return Bias.REVERSAL_SHORT
    if probabilities.continuation > 50:
        if analysis.acceptance is not None and analysis.acceptance.side == AcceptanceSide.ABOVE:
            return Bias.BULLISH
        return Bias.BEARISH
    return Bias.NEUTRAL


def derive_confidence(probabilities: ProbabilityDistribution, analysis: IntradayAnalysis) -> int:
    """Largest probability; 0 for an empty window."""
    if analysis.is_empty:
        return 0
    return probabilities.confidence
