"""
Market Structure Types

Data records shared by the level builders, the intraday state analyzer and
the scenario probability engine:
- Candle input (read-only, ascending by time)
- Frozen structural levels and derived liquidity zones
- Intraday state tag, sweep / acceptance / MSS events
- Liquidity-taken flags, distances, probability distribution
- StructureSnapshot, the full output record with dict round-trip.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple


class IntradayState(Enum):
    """Intraday state relative to the structural levels (exactly one per evaluation)."""

    INSIDE_RANGE = "INSIDE_RANGE"
    SWEEPING_UPPER = "SWEEPING_UPPER"
    SWEEPING_LOWER = "SWEEPING_LOWER"
    ACCEPTED_ABOVE = "ACCEPTED_ABOVE"
    ACCEPTED_BELOW = "ACCEPTED_BELOW"
    REBALANCING = "REBALANCING"


class SweepSide(Enum):
    """Level that was swept."""

    UPPER = "UPPER"
    LOWER = "LOWER"


class AcceptanceSide(Enum):
    """Side on which price was accepted."""

    ABOVE = "ABOVE"
    BELOW = "BELOW"


class MssDirection(Enum):
    """Market structure shift direction."""

    LONG = "LONG"
    SHORT = "SHORT"


class TrendLabel(Enum):
    """Anchor period classification."""

    BULLISH = "BULLISH"
    BEARISH = "BEARISH"
    COMPRESSION = "COMPRESSION"  # PD variant only
    NEUTRAL = "NEUTRAL"  # VWAP variant only


class Bias(Enum):
    """Directional bias derived from the probability distribution."""

    BULLISH = "BULLISH"
    BEARISH = "BEARISH"
    NEUTRAL = "NEUTRAL"
    REVERSAL_LONG = "REVERSAL_LONG"
    REVERSAL_SHORT = "REVERSAL_SHORT"


@dataclass(frozen=True)
class Candle:
    """OHLCV candle structure."""

    time: int  # Unix seconds
    open: float
    high: float
    low: float
    close: float
    volume: float
    quote_volume: Optional[float] = None

    @property
    def typical_price(self) -> float:
        return (self.high + self.low + self.close) / 3.0

    @property
    def quote_value(self) -> float:
        """Quote volume if supplied, otherwise close x volume."""
        if self.quote_volume is not None:
            return self.quote_volume
        return self.close * self.volume

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Candle":
        quote = data.get("quote_volume", data.get("quoteVolume"))
        return cls(
            time=int(data["time"]),
            open=float(data["open"]),
            high=float(data["high"]),
            low=float(data["low"]),
            close=float(data["close"]),
            volume=float(data["volume"]),
            quote_volume=float(quote) if quote is not None else None,
        )


def ensure_ascending(candles: Sequence[Candle]) -> None:
    """Raise ValueError unless candle times are strictly ascending."""
    for prev, curr in zip(candles, candles[1:]):
        if curr.time <= prev.time:
            raise ValueError(
                f"Candles must be strictly ascending by time: {prev.time} then {curr.time}"
            )


@dataclass(frozen=True)
class StructuralLevels:
    """Frozen reference levels for one anchor period."""

    upper: float
    lower: float
    mid: float
    range: float
    slope: float = 0.0
    normalized_slope: float = 0.0

    def __post_init__(self):
        if self.upper < self.lower:
            raise ValueError(f"upper ({self.upper}) must be >= lower ({self.lower})")

    def to_dict(self) -> Dict[str, float]:
        return {
            "upper": self.upper,
            "lower": self.lower,
            "mid": self.mid,
            "range": self.range,
            "slope": self.slope,
            "normalized_slope": self.normalized_slope,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StructuralLevels":
        return cls(
            upper=data["upper"],
            lower=data["lower"],
            mid=data["mid"],
            range=data["range"],
            slope=data.get("slope", 0.0),
            normalized_slope=data.get("normalized_slope", 0.0),
        )


@dataclass(frozen=True)
class DayMetrics:
    """Previous-day candle anatomy kept for the compression check."""

    open: float
    close: float
    body_size: float
    upper_wick: float
    lower_wick: float


@dataclass(frozen=True)
class LiquidityZones:
    """Buy-side, sell-side and rebalance bands as closed intervals (low, high)."""

    buy_side: Tuple[float, float]
    sell_side: Tuple[float, float]
    rebalance: Tuple[float, float]

    def to_dict(self) -> Dict[str, List[float]]:
        return {
            "buy_side": list(self.buy_side),
            "sell_side": list(self.sell_side),
            "rebalance": list(self.rebalance),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LiquidityZones":
        return cls(
            buy_side=tuple(data["buy_side"]),
            sell_side=tuple(data["sell_side"]),
            rebalance=tuple(data["rebalance"]),
        )


@dataclass(frozen=True)
class SweepEvent:
    """Wick beyond a level with the body closing back inside."""

    side: SweepSide
    index: int  # Position of the sweep candle in the window


@dataclass(frozen=True)
class AcceptanceEvent:
    """Consecutive closes beyond a level."""

    side: AcceptanceSide
    index: int  # Position of the candle completing the acceptance


@dataclass(frozen=True)
class MssEvent:
    """Close through the swing that preceded a sweep."""

    direction: MssDirection
    swing_level: float


@dataclass(frozen=True)
class LiquidityTaken:
    """Cumulative wick crossings of the levels within the window."""

    upper_taken: bool = False
    lower_taken: bool = False


@dataclass(frozen=True)
class Distances:
    """Percentage distances from the latest close to each level."""

    upper: float = 0.0  # Positive: price below upper
    lower: float = 0.0  # Positive: price above lower
    mid: float = 0.0  # Always >= 0


@dataclass(frozen=True)
class ProbabilityDistribution:
    """Reversal / continuation / range percentages."""

    reversal: int
    continuation: int
    range: int

    @property
    def total(self) -> int:
        return self.reversal + self.continuation + self.range

    @property
    def confidence(self) -> int:
        return max(self.reversal, self.continuation, self.range)


@dataclass(frozen=True)
class IntradayAnalysis:
    """Output of the intraday state analyzer."""

    state: IntradayState
    sweep: Optional[SweepEvent] = None
    acceptance: Optional[AcceptanceEvent] = None
    mss: Optional[MssEvent] = None
    liquidity_taken: LiquidityTaken = field(default_factory=LiquidityTaken)
    distances: Distances = field(default_factory=Distances)
    last_close: Optional[float] = None
    candle_count: int = 0

    @property
    def is_empty(self) -> bool:
        return self.candle_count == 0


@dataclass(frozen=True)
class StructureSnapshot:
    """Complete structure read for one symbol at the latest candle."""

    source: str  # "PD" or "W-VWAP"
    levels: StructuralLevels
    trend: TrendLabel
    zones: Optional[LiquidityZones]
    analysis: IntradayAnalysis
    probabilities: ProbabilityDistribution
    bias: Bias
    confidence: int

    @property
    def state(self) -> IntradayState:
        return self.analysis.state

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        a = self.analysis
        return {
            "source": self.source,
            "levels": self.levels.to_dict(),
            "trend": self.trend.value,
            "zones": self.zones.to_dict() if self.zones else None,
            "state": a.state.value,
            "sweep": {"side": a.sweep.side.value, "index": a.sweep.index} if a.sweep else None,
            "acceptance": (
                {"side": a.acceptance.side.value, "index": a.acceptance.index}
                if a.acceptance
                else None
            ),
            "mss": (
                {"direction": a.mss.direction.value, "swing_level": a.mss.swing_level}
                if a.mss
                else None
            ),
            "liquidity_taken": {
                "upper_taken": a.liquidity_taken.upper_taken,
                "lower_taken": a.liquidity_taken.lower_taken,
            },
            "distances": {
                "upper": a.distances.upper,
                "lower": a.distances.lower,
                "mid": a.distances.mid,
            },
            "last_close": a.last_close,
            "candle_count": a.candle_count,
            "probabilities": {
                "reversal": self.probabilities.reversal,
                "continuation": self.probabilities.continuation,
                "range": self.probabilities.range,
            },
            "bias": self.bias.value,
            "confidence": self.confidence,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StructureSnapshot":
        """Restore a snapshot written by to_dict."""
        sweep = data.get("sweep")
        acceptance = data.get("acceptance")
        mss = data.get("mss")
        analysis = IntradayAnalysis(
            state=IntradayState(data["state"]),
            sweep=SweepEvent(SweepSide(sweep["side"]), sweep["index"]) if sweep else None,
            acceptance=(
                AcceptanceEvent(AcceptanceSide(acceptance["side"]), acceptance["index"])
                if acceptance
                else None
            ),
            mss=MssEvent(MssDirection(mss["direction"]), mss["swing_level"]) if mss else None,
            liquidity_taken=LiquidityTaken(**data["liquidity_taken"]),
            distances=Distances(**data["distances"]),
            last_close=data.get("last_close"),
            candle_count=data.get("candle_count", 0),
        )
        zones = data.get("zones")
        return cls(
            source=data["source"],
            levels=StructuralLevels.from_dict(data["levels"]),
            trend=TrendLabel(data["trend"]),
            zones=LiquidityZones.from_dict(zones) if zones else None,
            analysis=analysis,
            probabilities=ProbabilityDistribution(**data["probabilities"]),
            bias=Bias(data["bias"]),
            confidence=data["confidence"],
        )
