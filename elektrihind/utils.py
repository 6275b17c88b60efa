# elektrihind/utils.py
from __future__ import annotations
import numpy as np
import pandas as pd
from zoneinfo import ZoneInfo
from datetime import datetime, time as _time
from typing import cast

from . import canon
from .exceptions import ResolutionError
from .types import PriceFrame, TimeWindowRule


def parse_time_str(tstr: str) -> _time:
    """Allow '24:00' → '00:00' rollover safely."""
    s = tstr.strip()
    if s == "24:00":
        return _time(0, 0)
    return pd.to_datetime(s, format="%H:%M").time()


def minute_of_day_str(tstr: str) -> int:
    """'HH:MM' to minute of day; '24:00' is end of day (1440)."""
    s = tstr.strip()
    if s == "24:00":
        return 1440
    t = parse_time_str(s)
    return t.hour * 60 + t.minute


def minute_of_day(ts: datetime | pd.Timestamp | _time) -> int:
    return ts.hour * 60 + ts.minute


def time_in_range(value: datetime | pd.Timestamp | _time | int, window: TimeWindowRule) -> bool:
    """Minute-of-day within [start, end). Handles wrap-around past midnight."""
    m = value if isinstance(value, (int, np.integer)) else minute_of_day(value)
    start = minute_of_day_str(window.start)
    end = minute_of_day_str(window.end)
    if start < end:
        return start <= m < end
    if start > end:
        # e.g. 22:00 → 07:00 next day
        return m >= start or m < end
    return False


def to_local(ts: datetime | pd.Timestamp | str, tz: str = canon.DEFAULT_TZ) -> pd.Timestamp:
    """Return a tz-aware Timestamp in local wall time; naive input is taken as UTC."""
    t = pd.Timestamp(ts)
    if t.tz is None:
        t = t.tz_localize("UTC")
    return t.tz_convert(ZoneInfo(tz))


def floor_index(idx: pd.DatetimeIndex, resolution_min: int) -> pd.DatetimeIndex:
    """
    Slot start for every timestamp, in the index's own zone.

    Flooring runs in UTC: local wall-clock flooring is ambiguous for the hour
    repeated when DST ends. Tallinn offsets are whole hours, so slot
    boundaries are the same either way.
    """
    ensure_resolution(resolution_min)
    idx = pd.DatetimeIndex(idx)
    if idx.tz is None:
        idx = idx.tz_localize("UTC")
    return idx.tz_convert("UTC").floor(f"{int(resolution_min)}min").tz_convert(idx.tz)


def floor_to_resolution(ts: datetime | pd.Timestamp, resolution_min: int) -> pd.Timestamp:
    """Truncate an instant down to the start of its 15- or 60-minute slot (local zone)."""
    t = to_local(ts)
    return floor_index(pd.DatetimeIndex([t]), resolution_min)[0]


def ensure_resolution(resolution_min: int) -> int:
    if int(resolution_min) not in canon.SUPPORTED_RESOLUTIONS:
        raise ResolutionError(
            f"Unsupported resolution {resolution_min!r}; expected one of {canon.SUPPORTED_RESOLUTIONS}."
        )
    return int(resolution_min)


def slots_per_hour(resolution_min: int) -> int:
    return 60 // ensure_resolution(resolution_min)


def ensure_tz_aware_index(df: pd.DataFrame, tz: str = canon.DEFAULT_TZ) -> pd.DataFrame:
    idx = pd.DatetimeIndex(df.index)
    if idx.tz is None:
        df = df.tz_localize("UTC")
    return df.tz_convert(ZoneInfo(tz))


def empty_price_frame(tz: str = canon.DEFAULT_TZ) -> PriceFrame:
    """
    Return an empty PriceFrame with the correct tz-aware index and required columns.
    """
    idx = pd.DatetimeIndex([], tz=ZoneInfo(tz), name=canon.INDEX_NAME)
    out = pd.DataFrame({canon.PRICE_COL: pd.Series(dtype=float)}, index=idx)
    out.__class__ = PriceFrame
    return cast(PriceFrame, out)


def build_price_frame(
    idx: pd.DatetimeIndex,
    price: np.ndarray | pd.Series | list[float],
    *,
    tz: str = canon.DEFAULT_TZ,
) -> PriceFrame:
    df = pd.DataFrame(
        {
            canon.INDEX_NAME: idx,
            canon.PRICE_COL: np.asarray(price, dtype=float),
        }
    ).set_index(canon.INDEX_NAME)
    df = ensure_tz_aware_index(df, tz).sort_index()
    df.__class__ = PriceFrame
    return cast(PriceFrame, df)


def infer_resolution_minutes(
    idx: pd.DatetimeIndex, default: int = canon.NATIVE_RESOLUTION_MIN
) -> int:
    """Most common step between distinct timestamps, in whole minutes."""
    ts = pd.DatetimeIndex(idx).unique().sort_values()
    if len(ts) < 2:
        return int(default)
    steps = pd.Series(ts[1:] - ts[:-1]) // pd.Timedelta(minutes=1)
    steps = steps[steps > 0]
    if steps.empty:
        return int(default)
    # mode() is sorted, so ties resolve to the finer step
    return int(steps.mode().iloc[0])
