from __future__ import annotations
import pandas as pd
from datetime import datetime
from typing import Iterable, Optional, cast

from . import canon, utils
from .pricing import PricingEngine
from .types import PriceFrame, PriceRecord, PriceSlot, TariffConfig


def to_frame(slots: Iterable[PriceSlot], tz: str = canon.DEFAULT_TZ) -> PriceFrame:
    """PriceSlot sequence -> PriceFrame (tz-aware, ascending)."""
    slots = list(slots)
    if not slots:
        return utils.empty_price_frame(tz)
    idx = pd.DatetimeIndex([pd.Timestamp(s.timestamp) for s in slots])
    return utils.build_price_frame(idx, [s.price for s in slots], tz=tz)


def from_records(records: Iterable[dict], tz: str = canon.DEFAULT_TZ) -> PriceFrame:
    """API-shaped records ({'timestamp': iso, 'price': float}) -> PriceFrame."""
    rows = list(records)
    if not rows:
        return utils.empty_price_frame(tz)
    idx = pd.DatetimeIndex(pd.to_datetime([r["timestamp"] for r in rows], utc=True))
    return utils.build_price_frame(idx, [float(r["price"]) for r in rows], tz=tz)


def to_slots(df: pd.DataFrame) -> list[PriceSlot]:
    return [
        PriceSlot(timestamp=ts.to_pydatetime(), price=float(p))
        for ts, p in zip(pd.DatetimeIndex(df.index), df[canon.PRICE_COL])
    ]


def to_records(slots: Iterable[PriceSlot]) -> list[PriceRecord]:
    out: list[PriceRecord] = []
    for s in slots:
        ts = pd.Timestamp(s.timestamp)
        if ts.tz is None:
            ts = ts.tz_localize("UTC")
        out.append(
            {
                "timestamp": ts.tz_convert("UTC").isoformat().replace("+00:00", "Z"),
                "price": float(s.price),
            }
        )
    return out


def aggregate(
    df: pd.DataFrame,
    resolution_min: int,
    engine: Optional[PricingEngine] = None,
    config: Optional[TariffConfig] = None,
) -> PriceFrame:
    """
    Resample a price frame to the display resolution.

    - 15: passthrough with a 'total' column per slot.
    - 60: one row per hour; 'price' is the mean raw spot price and 'total' is
      the mean of the per-slot totals (each sub-slot is priced first).

    'total' is the delivered price when a package is selected, else spot.
    Output is sorted ascending regardless of input order.
    """
    resolution_min = utils.ensure_resolution(resolution_min)
    d = df.sort_index()

    if engine is not None and config is not None:
        priced = engine.price_frame(d, config)
    else:
        priced = d.copy()
        priced[canon.TOTAL_COL] = priced[canon.PRICE_COL].astype(float)

    if resolution_min == canon.NATIVE_RESOLUTION_MIN:
        out = priced[[canon.PRICE_COL, canon.TOTAL_COL]].copy()
    else:
        idx = pd.DatetimeIndex(priced.index)
        out = (
            priced[[canon.PRICE_COL, canon.TOTAL_COL]]
            .groupby(utils.floor_index(idx, resolution_min))
            .mean()
        )
    out.index.name = canon.INDEX_NAME
    out = out.sort_index()
    out.__class__ = PriceFrame
    return cast(PriceFrame, out)


def filter_future(
    df: pd.DataFrame, now: datetime | pd.Timestamp, resolution_min: int
) -> PriceFrame:
    """Rows at or after 'now' truncated to its slot boundary (keeps the active slot)."""
    cutoff = utils.floor_to_resolution(now, resolution_min)
    out = df.loc[pd.DatetimeIndex(df.index) >= cutoff].copy()
    out.__class__ = PriceFrame
    return cast(PriceFrame, out)


def for_day(df: pd.DataFrame, day: datetime | pd.Timestamp) -> PriceFrame:
    """Rows whose local date matches the local date of 'day'."""
    target = utils.to_local(day).date()
    idx = pd.DatetimeIndex(df.index).tz_convert(canon.DEFAULT_TZ)
    mask = pd.Series(idx.date, index=df.index) == target
    out = df.loc[mask.to_numpy()].copy()
    out.__class__ = PriceFrame
    return cast(PriceFrame, out)
