from __future__ import annotations

import math
from typing import Optional

import numpy as np
import pandas as pd

from . import canon, utils
from .types import BestWindowResult, SelectionMode

MODES: tuple[str, ...] = ("consecutive", "cheapest")


def required_slots(duration_hours: float, resolution_min: int) -> Optional[int]:
    """
    Number of slots covering duration_hours, or None if the duration is below
    the resolution granularity or not a multiple of it.
    """
    if duration_hours is None or not math.isfinite(duration_hours):
        return None
    raw = float(duration_hours) * utils.slots_per_hour(resolution_min)
    n = int(round(raw))
    if n < 1 or abs(raw - n) > 1e-9:
        return None
    return n


def _totals(df: pd.DataFrame) -> np.ndarray:
    col = canon.TOTAL_COL if canon.TOTAL_COL in df.columns else canon.PRICE_COL
    return df[col].to_numpy(dtype=float)


def _consecutive(
    df: pd.DataFrame, totals: np.ndarray, n: int, resolution_min: int
) -> Optional[BestWindowResult]:
    if len(totals) < n:
        return None
    means = np.lib.stride_tricks.sliding_window_view(totals, n).mean(axis=1)
    # argmin keeps the first of equal means
    start = int(np.argmin(means))
    idx = pd.DatetimeIndex(df.index)
    return BestWindowResult(
        selected_indices=frozenset(range(start, start + n)),
        timestamps=tuple(idx[start : start + n]),
        average_price=float(means[start]),
        mode="consecutive",
        resolution=resolution_min,
    )


def _cheapest_slots(
    df: pd.DataFrame, totals: np.ndarray, n: int, resolution_min: int
) -> Optional[BestWindowResult]:
    if len(totals) < n:
        return None
    order = np.argsort(totals, kind="stable")[:n]
    chosen = np.sort(order)
    idx = pd.DatetimeIndex(df.index)
    return BestWindowResult(
        selected_indices=frozenset(int(i) for i in chosen),
        timestamps=tuple(idx[chosen]),
        average_price=float(totals[chosen].mean()),
        mode="cheapest",
        resolution=resolution_min,
    )


def _hour_groups(
    df: pd.DataFrame, totals: np.ndarray
) -> tuple[np.ndarray, pd.DatetimeIndex, np.ndarray]:
    idx = pd.DatetimeIndex(df.index)
    # codes are chronological hour numbers (sort=True)
    codes, hour_starts = pd.factorize(
        utils.floor_index(idx, canon.HOURLY_RESOLUTION_MIN), sort=True
    )
    per_hour = pd.Series(totals).groupby(codes).mean().to_numpy()
    return codes, pd.DatetimeIndex(hour_starts), per_hour


def _hours_result(
    totals: np.ndarray,
    codes: np.ndarray,
    hour_starts: pd.DatetimeIndex,
    chosen: np.ndarray,
    mode: SelectionMode,
) -> BestWindowResult:
    positions = np.flatnonzero(np.isin(codes, chosen))
    return BestWindowResult(
        selected_indices=frozenset(int(i) for i in positions),
        timestamps=tuple(hour_starts[chosen]),
        average_price=float(totals[positions].mean()),
        mode=mode,
        resolution=canon.HOURLY_RESOLUTION_MIN,
    )


def _consecutive_hours(
    df: pd.DataFrame, totals: np.ndarray, hours: int
) -> Optional[BestWindowResult]:
    codes, hour_starts, per_hour = _hour_groups(df, totals)
    if len(per_hour) < hours:
        return None
    means = np.lib.stride_tricks.sliding_window_view(per_hour, hours).mean(axis=1)
    start = int(np.argmin(means))
    chosen = np.arange(start, start + hours)
    return _hours_result(totals, codes, hour_starts, chosen, "consecutive")


def _cheapest_hours(
    df: pd.DataFrame, totals: np.ndarray, hours: int
) -> Optional[BestWindowResult]:
    codes, hour_starts, per_hour = _hour_groups(df, totals)
    if len(per_hour) < hours:
        return None
    ranked = np.argsort(per_hour, kind="stable")[:hours]
    return _hours_result(totals, codes, hour_starts, np.sort(ranked), "cheapest")


def select_best(
    future: pd.DataFrame,
    duration_hours: float,
    mode: SelectionMode = "consecutive",
    resolution_min: int = canon.HOURLY_RESOLUTION_MIN,
) -> Optional[BestWindowResult]:
    """
    Cheapest consumption window over an already future-filtered price frame.

    consecutive: contiguous run of slots with the lowest mean 'total'.
    cheapest:    cheapest individual slots, reported chronologically.

    At 60-min resolution both modes work on whole hours (the mean of the
    slots inside each hour), so 15-min frames are accepted there. Frames
    coarser than the resolution select nothing.

    Returns None for an invalid duration or when there are too few slots.
    """
    if mode not in MODES:
        raise ValueError(f"mode must be one of: {', '.join(MODES)}")
    resolution_min = utils.ensure_resolution(resolution_min)
    n = required_slots(duration_hours, resolution_min)
    if n is None or future is None or future.empty:
        return None

    df = future.sort_index()
    if utils.infer_resolution_minutes(df.index, default=resolution_min) > resolution_min:
        return None
    totals = _totals(df)

    if resolution_min == canon.HOURLY_RESOLUTION_MIN:
        if mode == "consecutive":
            return _consecutive_hours(df, totals, n)
        return _cheapest_hours(df, totals, n)
    if mode == "consecutive":
        return _consecutive(df, totals, n, resolution_min)
    return _cheapest_slots(df, totals, n, resolution_min)
