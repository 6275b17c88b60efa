from __future__ import annotations

import math
from datetime import datetime
from typing import Optional

import pandas as pd

from . import canon, fees, utils
from .exceptions import PricingError, require
from .holidays import HolidayResolver
from .periods import LEGACY_DAY_HOURS, PeriodClassifier
from .types import PriceBreakdown, PriceFrame, TariffCatalog, TariffConfig


class PricingEngine:
    """
    Spot price -> total delivered price (cents/kWh) for one slot.

    Values are floats throughout; rounding belongs to display code.
    """

    def __init__(
        self,
        catalog: TariffCatalog,
        resolver: Optional[HolidayResolver] = None,
        classifier: Optional[PeriodClassifier] = None,
    ) -> None:
        self.catalog = catalog
        self.resolver = resolver or HolidayResolver(catalog.holidays)
        self.classifier = classifier or PeriodClassifier(catalog, self.resolver)

    def _context(
        self, timestamp: datetime | pd.Timestamp, config: TariffConfig
    ) -> fees.FeeContext:
        ts = utils.to_local(timestamp)
        package = self.catalog.package(config.network_package_id)
        period = self.classifier.classify(package, ts)
        day_hours = self.catalog.peak_rules.day_hours if package else LEGACY_DAY_HOURS
        return fees.FeeContext(
            timestamp=ts,
            config=config,
            catalog=self.catalog,
            package=package,
            period=period,
            is_day=self.classifier.is_day_time(ts, day_hours),
        )

    def breakdown(
        self,
        spot: float,
        timestamp: datetime | pd.Timestamp,
        config: TariffConfig,
        *,
        with_margins: bool = False,
    ) -> PriceBreakdown:
        """Every component of the delivered price for one slot."""
        spot = float(spot)
        require(math.isfinite(spot), f"Spot price must be finite, got {spot!r}", PricingError)
        if config.network_package_id is None:
            return PriceBreakdown(
                spot=spot,
                period=None,
                network_fee=0.0,
                renewable_surcharge=0.0,
                excise_tax=0.0,
                security_of_supply_fee=0.0,
                balancing_capacity_fee=0.0,
                margins=0.0,
                subtotal=spot,
                vat_percent=0.0,
                vat=0.0,
                total=spot,
            )

        ctx = self._context(timestamp, config)
        network = fees.resolve_network_fee(ctx)
        national = {
            key: fees.resolve_national_fee(key, ctx) for key in canon.NATIONAL_FEE_KEYS
        }
        margins = 0.0
        if with_margins:
            margins = (config.purchase_margin or 0.0) + (config.sales_margin or 0.0)

        subtotal = spot + network + sum(national.values()) + margins
        vat_percent = fees.resolve_vat_percent(ctx)
        total = subtotal * (1 + vat_percent / 100)
        return PriceBreakdown(
            spot=spot,
            period=ctx.period,
            network_fee=network,
            renewable_surcharge=national[canon.RENEWABLE_SURCHARGE],
            excise_tax=national[canon.EXCISE_TAX],
            security_of_supply_fee=national[canon.SECURITY_OF_SUPPLY_FEE],
            balancing_capacity_fee=national[canon.BALANCING_CAPACITY_FEE],
            margins=margins,
            subtotal=subtotal,
            vat_percent=vat_percent,
            vat=total - subtotal,
            total=total,
        )

    def total_price(
        self, spot: float, timestamp: datetime | pd.Timestamp, config: TariffConfig
    ) -> float:
        """Delivered price without margins; the raw spot price when no package is selected."""
        if config.network_package_id is None:
            return spot
        return self.breakdown(spot, timestamp, config).total

    def full_price(
        self, spot: float, timestamp: datetime | pd.Timestamp, config: TariffConfig
    ) -> float:
        """Delivered price including purchase and sales margins (comparison displays)."""
        if config.network_package_id is None:
            return spot
        return self.breakdown(spot, timestamp, config, with_margins=True).total

    def price_frame(
        self, df: pd.DataFrame, config: TariffConfig, *, with_margins: bool = False
    ) -> PriceFrame:
        """Attach 'total' (and 'period' when a package is selected) to a price frame."""
        out = df.copy()
        idx = pd.DatetimeIndex(out.index)
        if config.network_package_id is None:
            out[canon.TOTAL_COL] = out[canon.PRICE_COL].astype(float)
        else:
            parts = [
                self.breakdown(p, ts, config, with_margins=with_margins)
                for ts, p in zip(idx, out[canon.PRICE_COL])
            ]
            out[canon.TOTAL_COL] = [b.total for b in parts]
            out[canon.PERIOD_COL] = [b.period for b in parts]
        out.__class__ = PriceFrame
        return out
