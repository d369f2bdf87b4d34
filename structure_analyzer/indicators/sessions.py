"""
Session Helpers - Day and Week Anchors From Intraday Candles

Splits an ascending candle series into trading days (UTC or a configured
timezone), aggregates the previous day into one reference candle, and
collects this week's daily VWAPs for the weekly VWAP level source.
"""

import logging
from datetime import date, datetime, timedelta
from itertools import groupby
from typing import List, Optional, Sequence

import pytz

from structure_analyzer.indicators.levels import (
    PreviousDayLevelSource,
    PriceSource,
    WeeklyVwapLevelSource,
    compute_atr,
    compute_vwap,
    running_vwap,
    vwap_slope,
)
from structure_analyzer.indicators.structure_config import (
    DEFAULT_STRUCTURE_CONFIG,
    WEEKDAYS,
    ScoringConfig,
    StructureConfig,
)
from structure_analyzer.indicators.structure_types import Candle, ensure_ascending

logger = logging.getLogger(__name__)


def session_date(timestamp: int, tz_name: str = "UTC") -> date:
    """Calendar date of a unix timestamp in the given timezone."""
    return datetime.fromtimestamp(timestamp, tz=pytz.timezone(tz_name)).date()


def split_sessions(candles: Sequence[Candle], tz_name: str = "UTC") -> List[List[Candle]]:
    """Group candles into consecutive trading days."""
    tz = pytz.timezone(tz_name)
    return [
        list(group)
        for _, group in groupby(candles, key=lambda c: datetime.fromtimestamp(c.time, tz=tz).date())
    ]


def current_session(candles: Sequence[Candle], tz_name: str = "UTC") -> List[Candle]:
    """Candles of the latest (still open) day."""
    sessions = split_sessions(candles, tz_name)
    return sessions[-1] if sessions else []


def aggregate_session(candles: Sequence[Candle]) -> Candle:
    """Collapse one day of intraday candles into a single daily candle."""
    if not candles:
        raise ValueError("Cannot aggregate an empty session")
    quotes = [c.quote_volume for c in candles]
    return Candle(
        time=candles[0].time,
        open=candles[0].open,
        high=max(c.high for c in candles),
        low=min(c.low for c in candles),
        close=candles[-1].close,
        volume=sum(c.volume for c in candles),
        quote_volume=sum(quotes) if all(q is not None for q in quotes) else None,
    )


def previous_session_candle(candles: Sequence[Candle], tz_name: str = "UTC") -> Optional[Candle]:
    """Aggregated candle of the day before the latest day, if present."""
    sessions = split_sessions(candles, tz_name)
    if len(sessions) < 2:
        return None
    return aggregate_session(sessions[-2])


def week_start(day: date, anchor_day: str = "MON") -> date:
    """Most recent anchor weekday on or before `day`."""
    offset = (day.weekday() - WEEKDAYS.index(anchor_day)) % 7
    return day - timedelta(days=offset)


def weekly_sessions(
    candles: Sequence[Candle], tz_name: str = "UTC", anchor_day: str = "MON"
) -> List[List[Candle]]:
    """Sessions belonging to the week of the latest candle."""
    if not candles:
        return []
    start = week_start(session_date(candles[-1].time, tz_name), anchor_day)
    return [s for s in split_sessions(candles, tz_name) if session_date(s[0].time, tz_name) >= start]


def weekly_vwap_history(
    candles: Sequence[Candle],
    tz_name: str = "UTC",
    anchor_day: str = "MON",
    price_source: PriceSource = PriceSource.TYPICAL,
) -> List[float]:
    """Daily VWAP per session since the week anchor; the last value is live."""
    return [compute_vwap(s, price_source) for s in weekly_sessions(candles, tz_name, anchor_day)]


def session_vwap_series(
    candles: Sequence[Candle],
    tz_name: str = "UTC",
    price_source: PriceSource = PriceSource.TYPICAL,
) -> List[float]:
    """Day-anchored running VWAP, reset at each session boundary."""
    series: List[float] = []
    for session in split_sessions(candles, tz_name):
        series.extend(running_vwap(session, price_source))
    return series


# =============================================================================
# LEVEL SOURCE FACTORIES
# =============================================================================


def previous_day_source(
    candles: Sequence[Candle],
    config: Optional[StructureConfig] = None,
    scoring: Optional[ScoringConfig] = None,
) -> PreviousDayLevelSource:
    """
    Build a PD level source from intraday candles spanning at least two days.

    Raises:
        ValueError: if there is no completed previous day.
    """
    config = config or DEFAULT_STRUCTURE_CONFIG
    ensure_ascending(candles)
    reference = previous_session_candle(candles, config.timezone)
    if reference is None:
        raise ValueError("No previous session in candle history")
    kwargs = {"config": config}
    if scoring is not None:
        kwargs["scoring"] = scoring
    return PreviousDayLevelSource(reference, **kwargs)


def weekly_vwap_source(
    candles: Sequence[Candle],
    config: Optional[StructureConfig] = None,
    scoring: Optional[ScoringConfig] = None,
    price_source: PriceSource = PriceSource.TYPICAL,
) -> WeeklyVwapLevelSource:
    """
    Build a W-VWAP level source from intraday candles of the current week.

    The slope compares the day-anchored VWAP with its value `slope_lookback`
    bars earlier and is normalized by ATR of the same resolution.

    Raises:
        ValueError: if no candles are supplied.
    """
    config = config or DEFAULT_STRUCTURE_CONFIG
    ensure_ascending(candles)
    daily = weekly_vwap_history(candles, config.timezone, config.weekly_anchor_day, price_source)
    if not daily:
        raise ValueError("No candles to derive weekly VWAP levels from")

    series = session_vwap_series(candles, config.timezone, price_source)
    atr = compute_atr(candles, config.atr_period)
    slope, normalized = vwap_slope(series, atr, config.slope_lookback)
    if atr == 0:
        logger.debug("ATR unavailable (%d candles), normalized slope set to 0", len(candles))

    kwargs = {"config": config}
    if scoring is not None:
        kwargs["scoring"] = scoring
    return WeeklyVwapLevelSource(
        daily, live_vwap=daily[-1], slope=slope, normalized_slope=normalized, **kwargs
    )
