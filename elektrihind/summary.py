from __future__ import annotations
import math
import pandas as pd
from datetime import datetime
from typing import Optional, cast

from . import canon, utils, transform
from .pricing import PricingEngine
from .selection import select_best
from .types import (
    BestWindowResult,
    CostEstimate,
    DayStats,
    SummaryPayload,
    TariffConfig,
    WindowSummary,
)


def current_slot(
    df: pd.DataFrame, now: datetime | pd.Timestamp, resolution_min: int
) -> Optional[pd.Series]:
    """The row whose slot contains 'now', or None."""
    key = utils.floor_to_resolution(now, resolution_min)
    idx = pd.DatetimeIndex(df.index)
    hits = idx == key
    if not hits.any():
        return None
    return df.loc[hits].iloc[0]


def day_stats(df: pd.DataFrame, now: datetime | pd.Timestamp) -> DayStats:
    """Average / min / max spot price over the local day containing 'now'."""
    today = transform.for_day(df, now)
    if today.empty:
        return {"average": None, "minimum": None, "maximum": None, "count": 0}
    prices = today[canon.PRICE_COL].astype(float)
    return {
        "average": float(prices.mean()),
        "minimum": float(prices.min()),
        "maximum": float(prices.max()),
        "count": int(len(prices)),
    }


def cost_estimate(
    current_total: Optional[float], best_average: Optional[float], kwh: float
) -> CostEstimate:
    """
    Euro cost of 'kwh' at the current price vs the best window (cents/kWh in).
    savings > 0 means waiting is cheaper; < 0 means now is the better time.
    """
    kwh = float(kwh) if kwh and math.isfinite(kwh) else 0.0
    cost_now = current_total * kwh / 100 if current_total is not None else None
    cost_optimal = best_average * kwh / 100 if best_average is not None else None
    savings = (
        (current_total - best_average) * kwh / 100
        if current_total is not None and best_average is not None
        else None
    )
    return {"cost_now": cost_now, "cost_optimal": cost_optimal, "savings": savings}


def minutes_until(result: BestWindowResult, now: datetime | pd.Timestamp) -> int:
    """Whole minutes until the window starts; 0 once it is active."""
    diff = result.start - utils.to_local(now)
    secs = diff.total_seconds()
    return 0 if secs <= 0 else int(secs // 60)


def countdown_text(result: Optional[BestWindowResult], now: datetime | pd.Timestamp) -> str:
    if result is None:
        return ""
    mins = minutes_until(result, now)
    if mins <= 0:
        return "Window is active now!"
    hours, minutes = divmod(mins, 60)
    if hours > 0:
        return f"Starts in {hours}h {minutes}min"
    return f"Starts in {minutes} minutes"


def describe_window(
    result: Optional[BestWindowResult], now: datetime | pd.Timestamp
) -> Optional[WindowSummary]:
    if result is None:
        return None
    mins = minutes_until(result, now)
    return {
        "start": result.start.isoformat(),
        "end": result.end.isoformat(),
        "average_price": result.average_price,
        "timestamps": [t.isoformat() for t in result.timestamps],
        "minutes_until_start": mins,
        "active": mins == 0,
    }


def build_summary(
    df: pd.DataFrame,
    *,
    engine: PricingEngine,
    config: TariffConfig,
    now: datetime | pd.Timestamp,
    resolution_min: int = canon.HOURLY_RESOLUTION_MIN,
    duration_hours: float = 2.0,
    mode: str = "consecutive",
    kwh: float = 10.0,
) -> SummaryPayload:
    """
    One pass over a raw price frame: current price, today's stats, best window
    and the cost comparison. Missing data shows up as None, never as an error.
    """
    series = transform.aggregate(df, resolution_min, engine, config)
    current = current_slot(series, now, resolution_min)

    current_price = current_total = current_full = None
    if current is not None:
        ts = pd.Timestamp(current.name)
        current_price = float(current[canon.PRICE_COL])
        current_total = float(current[canon.TOTAL_COL])
        # margins are display-only
        current_full = engine.full_price(current_price, ts, config)

    future = transform.filter_future(series, now, resolution_min)
    best = select_best(future, duration_hours, mode, resolution_min)  # type: ignore[arg-type]

    payload: SummaryPayload = cast(
        SummaryPayload,
        {
            "current_price": current_price,
            "current_total": current_total,
            "current_full_price": current_full,
            "today": day_stats(df, now),
            "best_window": describe_window(best, now),
            "cost": cost_estimate(
                current_total, best.average_price if best else None, kwh
            ),
        },
    )
    return payload
