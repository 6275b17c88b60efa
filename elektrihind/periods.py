from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

import pandas as pd

from . import canon, utils
from .holidays import HolidayResolver
from .types import NetworkPackage, PeakRules, TariffCatalog, TimeWindowRule

LEGACY_DAY_HOURS = TimeWindowRule(canon.LEGACY_DAY_START, canon.LEGACY_DAY_END)


def _in_any(ts: pd.Timestamp, windows: Iterable[TimeWindowRule]) -> bool:
    return any(utils.time_in_range(ts, w) for w in windows)


class PeriodClassifier:
    """Assigns DAY / NIGHT / DAY_PEAK / REST_PEAK / FLAT to local timestamps."""

    def __init__(self, catalog: TariffCatalog, resolver: HolidayResolver) -> None:
        self.catalog = catalog
        self.resolver = resolver

    @property
    def rules(self) -> PeakRules:
        return self.catalog.peak_rules

    def is_day_time(
        self, timestamp: datetime | pd.Timestamp, day_hours: Optional[TimeWindowRule] = None
    ) -> bool:
        """Base rule: weekday, not a holiday, inside the day-hours window."""
        ts = utils.to_local(timestamp)
        window = day_hours or self.rules.day_hours
        d = ts.date()
        if d.weekday() >= 5 or self.resolver.is_public_holiday(d):
            return False
        return utils.time_in_range(ts, window)

    def classify(self, package: Optional[NetworkPackage], timestamp: datetime | pd.Timestamp) -> str:
        ts = utils.to_local(timestamp)
        if package is None:
            return canon.DAY if self.is_day_time(ts, LEGACY_DAY_HOURS) else canon.NIGHT

        periods = package.periods
        if periods == frozenset({canon.FLAT}):
            return canon.FLAT

        rules = self.rules
        if ts.month in rules.winter_months:
            rest_day = self.resolver.is_rest_day(ts.date())
            if (
                canon.REST_PEAK in periods
                and rest_day
                and _in_any(ts, rules.rest_day_peak_windows)
            ):
                return canon.REST_PEAK
            if (
                canon.DAY_PEAK in periods
                and not rest_day
                and _in_any(ts, rules.weekday_peak_windows)
            ):
                return canon.DAY_PEAK

        return canon.DAY if self.is_day_time(ts) else canon.NIGHT

    def classify_period(self, package_id: Optional[str], timestamp: datetime | pd.Timestamp) -> str:
        return self.classify(self.catalog.package(package_id), timestamp)
