"""
Ordered fee resolution.

Each fee is resolved by walking a short list of strategies; the first one that
yields a value wins. A strategy returns None when it has nothing to say.

  network fee:   package rate for period -> package fallback period
                 -> legacy transfer_day / transfer_night
  national fee:  latest dated schedule entry <= slot date -> user config value
  VAT:           user config value -> catalog VAT rate
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Callable, Iterable, Optional, Sequence

import pandas as pd

from . import canon
from .types import FeeScheduleEntry, NetworkPackage, TariffCatalog, TariffConfig

# national fee key -> TariffConfig attribute
CONFIG_FIELDS: dict[str, str] = {
    canon.RENEWABLE_SURCHARGE: "renewable_surcharge",
    canon.EXCISE_TAX: "excise_tax",
    canon.SECURITY_OF_SUPPLY_FEE: "security_of_supply_fee",
    canon.BALANCING_CAPACITY_FEE: "balancing_capacity_fee",
}


@dataclass(frozen=True)
class FeeContext:
    timestamp: pd.Timestamp  # local
    config: TariffConfig
    catalog: TariffCatalog
    package: Optional[NetworkPackage] = None
    period: Optional[str] = None
    is_day: bool = True

    @property
    def day(self) -> date:
        return self.timestamp.date()


Strategy = Callable[[FeeContext], Optional[float]]


def first_resolved(strategies: Iterable[Strategy], ctx: FeeContext) -> Optional[float]:
    for strategy in strategies:
        value = strategy(ctx)
        if value is not None:
            return float(value)
    return None


def scheduled_value(entries: Sequence[FeeScheduleEntry] | None, on: date) -> Optional[float]:
    """Value of the latest entry with effective_from <= on, if any."""
    best: Optional[FeeScheduleEntry] = None
    for entry in entries or ():
        if entry.effective_from <= on and (
            best is None or entry.effective_from >= best.effective_from
        ):
            best = entry
    return None if best is None else best.excl_vat


## network fee strategies
def package_rate(ctx: FeeContext) -> Optional[float]:
    if ctx.package is None or ctx.period is None:
        return None
    return ctx.package.rate(ctx.period)


def package_fallback_rate(ctx: FeeContext) -> Optional[float]:
    if ctx.package is None or ctx.period is None:
        return None
    fallback = canon.PERIOD_FALLBACK.get(ctx.period)
    return ctx.package.rate(fallback) if fallback else None


def legacy_transfer(ctx: FeeContext) -> Optional[float]:
    return ctx.config.transfer_day if ctx.is_day else ctx.config.transfer_night


NETWORK_FEE_CHAIN: tuple[Strategy, ...] = (
    package_rate,
    package_fallback_rate,
    legacy_transfer,
)


## national fee strategies
def dated_entry(key: str) -> Strategy:
    def _strategy(ctx: FeeContext) -> Optional[float]:
        return scheduled_value(ctx.catalog.national_fees.get(key), ctx.day)

    _strategy.__name__ = f"dated_entry[{key}]"
    return _strategy


def user_value(key: str) -> Strategy:
    attr = CONFIG_FIELDS[key]

    def _strategy(ctx: FeeContext) -> Optional[float]:
        return getattr(ctx.config, attr)

    _strategy.__name__ = f"user_value[{key}]"
    return _strategy


NATIONAL_FEE_CHAINS: dict[str, tuple[Strategy, ...]] = {
    key: (dated_entry(key), user_value(key)) for key in canon.NATIONAL_FEE_KEYS
}


## VAT
def user_vat(ctx: FeeContext) -> Optional[float]:
    return ctx.config.vat_percent


def catalog_vat(ctx: FeeContext) -> Optional[float]:
    return ctx.catalog.vat_percent


VAT_CHAIN: tuple[Strategy, ...] = (user_vat, catalog_vat)


def resolve_network_fee(ctx: FeeContext) -> float:
    value = first_resolved(NETWORK_FEE_CHAIN, ctx)
    return 0.0 if value is None else value


def resolve_national_fee(key: str, ctx: FeeContext) -> float:
    value = first_resolved(NATIONAL_FEE_CHAINS[key], ctx)
    return 0.0 if value is None else value


def resolve_vat_percent(ctx: FeeContext) -> float:
    value = first_resolved(VAT_CHAIN, ctx)
    return canon.DEFAULT_VAT_PERCENT if value is None else value
