"""
Structure Pipeline Integration Example

Shows how a host application feeds intraday candles into both level
sources (previous day and weekly VWAP) and fans evaluation out across
symbols with asyncio.
"""

import asyncio
import math
from typing import Dict, List, Optional, Sequence

from structure_analyzer.indicators.sessions import (
    current_session,
    previous_day_source,
    weekly_vwap_source,
)
from structure_analyzer.indicators.structure_config import DEFAULT_STRUCTURE_CONFIG, StructureConfig
from structure_analyzer.indicators.structure_pipeline import (
    StructurePipeline,
    format_structure_output,
)
from structure_analyzer.indicators.structure_types import Candle, StructureSnapshot
from structure_analyzer.logging_config import get_logger

logger = get_logger(__name__)

VARIANTS = ("PD", "W-VWAP")


def evaluate_symbol(
    candles: Sequence[Candle],
    variant: str = "PD",
    config: Optional[StructureConfig] = None,
) -> StructureSnapshot:
    """
    Evaluate one symbol from its intraday history.

    Levels come from the history (previous day or this week), the state is
    read from the latest day only, ATR uses the whole history.

    Raises:
        ValueError: unknown variant or not enough history for the level source.
    """
    config = config or DEFAULT_STRUCTURE_CONFIG
    if variant == "PD":
        source = previous_day_source(candles, config)
    elif variant == "W-VWAP":
        source = weekly_vwap_source(candles, config)
    else:
        raise ValueError(f"Unknown variant {variant!r}, expected one of {VARIANTS}")

    today = current_session(candles, config.timezone)
    return StructurePipeline(source).evaluate(today, atr_candles=candles)


async def analyze_symbols(
    candles_by_symbol: Dict[str, Sequence[Candle]],
    variant: str = "PD",
    config: Optional[StructureConfig] = None,
    timeout: Optional[float] = None,
) -> Dict[str, StructureSnapshot]:
    """
    Evaluate many symbols concurrently.

    Symbols whose data cannot produce levels are logged and left out.
    A timeout, if given, bounds the whole batch and raises
    asyncio.TimeoutError; evaluations already handed to worker threads
    cannot be interrupted and run to completion in the background.
    """

    async def run(symbol: str, candles: Sequence[Candle]):
        try:
            return symbol, await asyncio.to_thread(evaluate_symbol, candles, variant, config)
        except ValueError as e:
            logger.warning(f"Skipping {symbol}: {e}")
            return symbol, None

    batch = asyncio.gather(*(run(s, c) for s, c in candles_by_symbol.items()))
    results = await asyncio.wait_for(batch, timeout) if timeout is not None else await batch
    return {symbol: snapshot for symbol, snapshot in results if snapshot is not None}


def generate_test_candles(
    start_time: int, base_price: float, count: int, interval: int = 900, amplitude: float = 0.01
) -> List[Candle]:
    """Deterministic oscillating 15m candles for demos."""
    candles = []
    for i in range(count):
        mid = base_price * (1 + amplitude * math.sin(i / 6.0))
        swing = base_price * amplitude * 0.3
        candles.append(
            Candle(
                time=start_time + i * interval,
                open=mid - swing * 0.2,
                high=mid + swing,
                low=mid - swing,
                close=mid + swing * 0.2,
                volume=1000.0 + 50.0 * (i % 7),
            )
        )
    return candles


def example_streaming_integration():
    """
    Example: re-evaluate both variants as new 15m candles close.

    Workflow:
    1. Build history covering the previous day and this week
    2. Evaluate PD and W-VWAP snapshots
    3. Append a candle and re-evaluate (levels stay frozen within the day)
    4. Fan out across several symbols
    """
    # 2024-01-08 00:00 UTC is a Monday
    monday = 1704672000
    history = generate_test_candles(monday, 100.0, 96 * 2 + 20)

    print("=" * 80)
    print("SINGLE SYMBOL")
    print("=" * 80)
    for variant in VARIANTS:
        snapshot = evaluate_symbol(history, variant)
        print(format_structure_output(snapshot, compact=False))

    last = history[-1]
    spike = Candle(
        time=last.time + 900,
        open=last.close,
        high=last.close * 1.03,
        low=last.close * 0.995,
        close=last.close * 0.999,
        volume=5000.0,
    )
    history.append(spike)
    print("\n[15m CANDLE CLOSED]")
    print(format_structure_output(evaluate_symbol(history, "PD")))

    print("\n" + "=" * 80)
    print("MULTI-SYMBOL FAN-OUT")
    print("=" * 80)
    universe = {
        "BTCUSDT": history,
        "ETHUSDT": generate_test_candles(monday, 2500.0, 96 * 2 + 10, amplitude=0.02),
        "NEWCOIN": generate_test_candles(monday + 96 * 900, 1.0, 10),  # one day only
    }
    snapshots = asyncio.run(analyze_symbols(universe, "W-VWAP", timeout=10.0))
    for symbol, snapshot in snapshots.items():
        print(f"{symbol:8s} {format_structure_output(snapshot)}")
    pd_snapshots = asyncio.run(analyze_symbols(universe, "PD"))
    print(f"PD evaluated: {sorted(pd_snapshots)}")


if __name__ == "__main__":
    print("STRUCTURE PIPELINE - INTEGRATION EXAMPLE")
    example_streaming_integration()
