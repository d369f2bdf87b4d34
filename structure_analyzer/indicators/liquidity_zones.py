"""
Liquidity Zones

Buy-side, sell-side and rebalance bands around the structural levels.
Zone size is max(0.2% of price, 0.15 x ATR14); with no ATR the range
stands in for it.
"""

from typing import Optional

from structure_analyzer.indicators.structure_config import DEFAULT_STRUCTURE_CONFIG, StructureConfig
from structure_analyzer.indicators.structure_types import LiquidityZones, StructuralLevels


def zone_size(
    price: float, atr: float, levels: StructuralLevels, config: Optional[StructureConfig] = None
) -> float:
    """Width of the buy-side / sell-side bands."""
    config = config or DEFAULT_STRUCTURE_CONFIG
    volatility = atr if atr > 0 else levels.range
    return max(abs(price) * config.zone_price_pct, config.zone_atr_factor * volatility)


def calculate_liquidity_zones(
    levels: StructuralLevels,
    price: float,
    atr: float = 0.0,
    config: Optional[StructureConfig] = None,
) -> LiquidityZones:
    """
    Derive the three liquidity bands.

    Args:
        levels: Frozen structural levels
        price: Current price
        atr: ATR14 of the reference resolution (0 if unavailable)
        config: Zone sizing factors

    Returns:
        LiquidityZones with closed (low, high) intervals.
    """
    config = config or DEFAULT_STRUCTURE_CONFIG
    size = zone_size(price, atr, levels, config)
    delta = config.rebalance_range_factor * levels.range
    return LiquidityZones(
        buy_side=(levels.upper, levels.upper + size),
        sell_side=(levels.lower - size, levels.lower),
        rebalance=(levels.mid - delta, levels.mid + delta),
    )
