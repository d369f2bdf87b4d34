"""
Tests for Structure Pipeline

Tests the end-to-end evaluation for both level sources, snapshot
serialization, formatting and the multi-symbol fan-out.
"""

import asyncio
import json
import time

import pytest

from structure_analyzer.indicators.levels import PreviousDayLevelSource, WeeklyVwapLevelSource
from structure_analyzer.indicators.structure_pipeline import (
    StructurePipeline,
    format_structure_output,
)
from structure_analyzer.indicators.structure_types import (
    Bias,
    Candle,
    IntradayState,
    MssDirection,
    ProbabilityDistribution,
    StructureSnapshot,
    SweepSide,
    TrendLabel,
)
from structure_analyzer.integrations import structure_integration
from structure_analyzer.integrations.structure_integration import (
    analyze_symbols,
    evaluate_symbol,
    generate_test_candles,
)

# 2024-01-08 00:00 UTC (Monday)
MONDAY = 1704672000


def create_candle(i: int, o: float, h: float, l: float, c: float, v: float = 1000.0) -> Candle:
    """Helper to create a 15m candle at index i"""
    return Candle(time=MONDAY + i * 900, open=o, high=h, low=l, close=c, volume=v)


def pd_pipeline() -> StructurePipeline:
    """PD pipeline with levels 90 / 100 / 110"""
    return StructurePipeline(PreviousDayLevelSource(Candle(0, 95, 110, 90, 105, 1000.0)))


class TestPreviousDayPipeline:
    """Tests for the PD variant"""

    def test_sweep_scenario(self):
        """Test literal sweep scenario end to end"""
        candles = [
            create_candle(0, 109, 112, 108, 109),
            create_candle(1, 109, 109, 104, 107),
        ]
        snapshot = pd_pipeline().evaluate(candles)

        assert snapshot.source == "PD"
        assert snapshot.trend == TrendLabel.BULLISH
        assert snapshot.state == IntradayState.SWEEPING_UPPER
        assert snapshot.analysis.sweep.side == SweepSide.UPPER
        assert snapshot.analysis.liquidity_taken.upper_taken
        assert not snapshot.analysis.liquidity_taken.lower_taken
        assert snapshot.zones is not None
        assert snapshot.probabilities.total == 100
        assert snapshot.probabilities.reversal > snapshot.probabilities.continuation

    def test_acceptance_scenario(self):
        """Test two closes above upper read as bullish continuation"""
        candles = [
            create_candle(0, 108, 111.5, 107, 111),
            create_candle(1, 111, 116, 110.5, 112),
        ]
        snapshot = pd_pipeline().evaluate(candles)

        assert snapshot.state == IntradayState.ACCEPTED_ABOVE
        assert snapshot.bias == Bias.BULLISH
        assert snapshot.confidence == snapshot.probabilities.continuation

    def test_reversal_long(self):
        """Test lower sweep with MSS gives reversal long bias"""
        candles = [
            create_candle(0, 100, 101, 98, 99),
            create_candle(1, 99, 100, 97, 98),
            create_candle(2, 97, 97.5, 89, 91),
            create_candle(3, 91, 103, 90.5, 102),
        ]
        snapshot = pd_pipeline().evaluate(candles)

        assert snapshot.analysis.mss.direction == MssDirection.LONG
        assert snapshot.probabilities.reversal > 50
        assert snapshot.bias == Bias.REVERSAL_LONG

    def test_empty_window(self):
        """Test empty window defaults"""
        snapshot = pd_pipeline().evaluate([])

        assert snapshot.state == IntradayState.INSIDE_RANGE
        assert snapshot.confidence == 0
        assert snapshot.probabilities == ProbabilityDistribution(33, 33, 34)
        assert snapshot.analysis.distances.upper == 0.0
        assert snapshot.analysis.distances.lower == 0.0
        assert snapshot.analysis.distances.mid == 0.0
        assert snapshot.zones is None
        assert snapshot.bias == Bias.NEUTRAL

    def test_atr_candles_size_zones(self):
        """Test separate ATR history drives zone width"""
        history = [create_candle(i, 100, 110, 90, 100) for i in range(14)]
        today = [create_candle(20, 100, 101, 99, 100)]
        snapshot = pd_pipeline().evaluate(today, atr_candles=history)

        # 0.15 x ATR(20) = 3.0
        assert snapshot.zones.buy_side[1] == pytest.approx(113.0)

    def test_deterministic(self):
        """Test repeated evaluation is identical"""
        candles = generate_test_candles(MONDAY, 100.0, 40)
        pipeline = pd_pipeline()
        assert pipeline.evaluate(candles) == pipeline.evaluate(candles)


class TestWeeklyVwapPipeline:
    """Tests for the W-VWAP variant through the same pipeline"""

    def test_same_pipeline_different_source(self):
        """Test weekly source plugs into the generic pipeline"""
        source = WeeklyVwapLevelSource([100.0, 104.0, 98.0], slope=0.5, normalized_slope=0.3)
        candles = [
            create_candle(0, 103, 104.5, 102.5, 104.2),
            create_candle(1, 104.2, 106, 104, 105),
        ]
        snapshot = StructurePipeline(source).evaluate(candles)

        assert snapshot.source == "W-VWAP"
        assert snapshot.trend == TrendLabel.BULLISH
        assert snapshot.state == IntradayState.ACCEPTED_ABOVE
        assert snapshot.levels.mid == 98.0
        assert snapshot.probabilities.total == 100


class TestSerialization:
    """Tests for snapshot dict / JSON round trip"""

    def test_round_trip_preserves_fields(self):
        """Test signs and enum tags survive JSON"""
        candles = [
            create_candle(0, 100, 101, 98, 99),
            create_candle(1, 111, 116, 110.5, 115),
            create_candle(2, 115, 121, 114, 120),
        ]
        snapshot = pd_pipeline().evaluate(candles)
        assert snapshot.analysis.distances.upper < 0

        restored = StructureSnapshot.from_dict(json.loads(json.dumps(snapshot.to_dict())))

        assert restored == snapshot
        assert restored.state is IntradayState.ACCEPTED_ABOVE
        assert restored.analysis.distances.upper == snapshot.analysis.distances.upper

    def test_round_trip_with_optional_events(self):
        """Test sweep and MSS events round trip"""
        candles = [
            create_candle(0, 100, 101, 98, 99),
            create_candle(1, 97, 97.5, 89, 91),
            create_candle(2, 91, 103, 90.5, 102),
        ]
        snapshot = pd_pipeline().evaluate(candles)
        data = snapshot.to_dict()

        assert data["sweep"] == {"side": "LOWER", "index": 1}
        assert data["mss"]["direction"] == "LONG"
        assert data["acceptance"] is None
        assert StructureSnapshot.from_dict(data) == snapshot

    def test_round_trip_empty(self):
        """Test empty snapshot round trip"""
        snapshot = pd_pipeline().evaluate([])
        assert StructureSnapshot.from_dict(snapshot.to_dict()) == snapshot

    def test_candle_from_dict(self):
        """Test camelCase quote volume is accepted"""
        candle = Candle.from_dict(
            {"time": 1, "open": 1, "high": 2, "low": 0.5, "close": 1.5, "volume": 10, "quoteVolume": 15}
        )
        assert candle.quote_volume == 15.0
        assert candle.quote_value == 15.0


class TestFormatting:
    """Tests for display output"""

    def test_compact(self):
        """Test compact line carries state and probabilities"""
        candles = [
            create_candle(0, 109, 112, 108, 109),
            create_candle(1, 109, 109, 104, 107),
        ]
        snapshot = pd_pipeline().evaluate(candles)
        line = format_structure_output(snapshot)

        assert line.startswith("PD: SWEEPING_UPPER")
        assert "sweep=UPPER" in line
        p = snapshot.probabilities
        assert f"R/C/N={p.reversal}/{p.continuation}/{p.range}" in line

    def test_verbose(self):
        """Test verbose output lists levels and zones"""
        snapshot = pd_pipeline().evaluate([create_candle(0, 100, 101, 99, 100.5)])
        text = format_structure_output(snapshot, compact=False)

        assert "STRUCTURE (PD)" in text
        assert "State: REBALANCING" in text
        assert "Buy-side:" in text


class TestIntegration:
    """Tests for symbol evaluation and fan-out"""

    def test_evaluate_symbol_both_variants(self):
        """Test PD and W-VWAP from the same history"""
        history = generate_test_candles(MONDAY, 100.0, 96 * 2 + 20)

        pd = evaluate_symbol(history, "PD")
        weekly = evaluate_symbol(history, "W-VWAP")

        assert pd.source == "PD"
        assert weekly.source == "W-VWAP"
        assert pd.analysis.candle_count == 20
        assert weekly.analysis.candle_count == 20

    def test_unknown_variant(self):
        """Test unknown variant raises"""
        with pytest.raises(ValueError):
            evaluate_symbol(generate_test_candles(MONDAY, 100.0, 10), "MONTHLY")

    def test_analyze_symbols_skips_short_history(self):
        """Test symbols without a previous day are left out"""
        universe = {
            "AAA": generate_test_candles(MONDAY, 100.0, 96 + 10),
            "BBB": generate_test_candles(MONDAY, 50.0, 96 + 30, amplitude=0.02),
            "NEW": generate_test_candles(MONDAY, 1.0, 10),
        }
        results = asyncio.run(analyze_symbols(universe, "PD", timeout=30.0))

        assert sorted(results) == ["AAA", "BBB"]
        assert results["AAA"] == evaluate_symbol(universe["AAA"], "PD")

    def test_analyze_symbols_weekly_accepts_single_day(self):
        """Test weekly variant works from the first day of the week"""
        universe = {"NEW": generate_test_candles(MONDAY, 1.0, 10)}
        results = asyncio.run(analyze_symbols(universe, "W-VWAP"))

        assert list(results) == ["NEW"]

    def test_analyze_symbols_timeout(self, monkeypatch):
        """Test a batch slower than the timeout raises TimeoutError"""

        def slow_evaluate(candles, variant="PD", config=None):
            time.sleep(0.5)

        monkeypatch.setattr(structure_integration, "evaluate_symbol", slow_evaluate)
        universe = {"AAA": generate_test_candles(MONDAY, 100.0, 96 + 10)}

        with pytest.raises(asyncio.TimeoutError):
            asyncio.run(analyze_symbols(universe, "PD", timeout=0.05))
