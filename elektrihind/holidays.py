from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Iterable, MutableMapping, Optional

from .types import HolidayRule

logger = logging.getLogger(__name__)


def easter_sunday(year: int) -> date:
    """Gregorian Easter Sunday (anonymous algorithm, Meeus/Jones/Butcher)."""
    a = year % 19
    b, c = divmod(year, 100)
    d, e = divmod(b, 4)
    f = (b + 8) // 25
    g = (b - f + 1) // 3
    h = (19 * a + b - d - g + 15) % 30
    i, k = divmod(c, 4)
    l = (32 + 2 * e + 2 * i - h - k) % 7
    m = (a + 11 * h + 22 * l) // 451
    month, day = divmod(h + l - 7 * m + 114, 31)
    return date(year, month, day + 1)


def _as_int(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return None


def _parse_rule(raw: dict) -> Optional[HolidayRule]:
    kind = raw.get("type")
    name = str(raw.get("name", ""))
    if kind == "fixed":
        month = _as_int(raw.get("month"))
        day = _as_int(raw.get("day"))
        if month is None or day is None or not 1 <= month <= 12:
            return None
        try:
            # leap year so Feb 29 is accepted
            date(2000, month, day)
        except ValueError:
            return None
        return HolidayRule(type="fixed", month=month, day=day, name=name)
    if kind == "easter_offset":
        offset = _as_int(raw.get("offsetDays", raw.get("offset_days")))
        if offset is None:
            return None
        return HolidayRule(type="easter_offset", offset_days=offset, name=name)
    return None


def parse_holiday_rules(raw: Iterable[dict] | None) -> list[HolidayRule]:
    """Parse rule dicts from the defaults document, skipping malformed entries."""
    rules: list[HolidayRule] = []
    for entry in raw or []:
        rule = _parse_rule(entry) if isinstance(entry, dict) else None
        if rule is None:
            logger.warning("Skipping malformed holiday rule: %r", entry)
            continue
        rules.append(rule)
    return rules


def _resolve(rule: HolidayRule, year: int, easter: date) -> Optional[date]:
    if rule.type == "fixed" and rule.month is not None and rule.day is not None:
        try:
            return date(year, rule.month, rule.day)
        except ValueError:
            # Feb 29 outside leap years
            return None
    if rule.type == "easter_offset" and rule.offset_days is not None:
        return easter + timedelta(days=rule.offset_days)
    return None


class HolidayResolver:
    """
    Public holiday and rest day lookups for a static rule set.

    Holidays are resolved once per calendar year and kept in ``cache`` (keyed by
    year). Rules never change within a process, so the cache is never
    invalidated; pass an explicit mapping to share or inspect it.
    """

    def __init__(
        self,
        rules: Iterable[HolidayRule] = (),
        cache: Optional[MutableMapping[int, dict[date, str]]] = None,
    ) -> None:
        self.rules = tuple(rules)
        self.cache: MutableMapping[int, dict[date, str]] = (
            cache if cache is not None else {}
        )

    def _year(self, year: int) -> dict[date, str]:
        found = self.cache.get(year)
        if found is None:
            easter = easter_sunday(year)
            found = {}
            for rule in self.rules:
                d = _resolve(rule, year, easter)
                # easter offsets may land in a neighbouring year
                if d is not None and d.year == year:
                    found.setdefault(d, rule.name)
            self.cache[year] = found
        return found

    def holidays_for_year(self, year: int) -> frozenset[date]:
        return frozenset(self._year(year))

    def is_public_holiday(self, d: date) -> bool:
        d = _as_date(d)
        return d in self._year(d.year)

    def holiday_name(self, d: date) -> Optional[str]:
        d = _as_date(d)
        return self._year(d.year).get(d)

    def is_rest_day(self, d: date) -> bool:
        """Weekend (Sat/Sun) or public holiday."""
        d = _as_date(d)
        return d.weekday() >= 5 or self.is_public_holiday(d)


def _as_date(d: date) -> date:
    # datetime is a date subclass but never equal to one
    return d.date() if isinstance(d, datetime) else d
