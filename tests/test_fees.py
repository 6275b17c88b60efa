"""Fee resolution chains: package rates, dated schedules, user values and VAT."""

from dataclasses import replace
from datetime import date

import pandas as pd
import pytest

from elektrihind import canon, fees, pricing
from elektrihind.types import FeeScheduleEntry, TariffConfig

TZ = "Europe/Tallinn"


def _ctx(catalog, config, *, period=None, is_day=True, when="2025-06-04 12:00"):
    return fees.FeeContext(
        timestamp=pd.Timestamp(when, tz=TZ),
        config=config,
        catalog=catalog,
        package=catalog.package(config.network_package_id),
        period=period,
        is_day=is_day,
    )


def test_scheduled_value_picks_latest_effective_entry():
    entries = [
        FeeScheduleEntry(date(2025, 1, 1), 0.30),
        FeeScheduleEntry(date(2024, 1, 1), 0.10),
        FeeScheduleEntry(date(2026, 1, 1), 0.50),
    ]
    assert fees.scheduled_value(entries, date(2023, 12, 31)) is None
    assert fees.scheduled_value(entries, date(2024, 6, 1)) == 0.10
    assert fees.scheduled_value(entries, date(2025, 1, 1)) == 0.30
    assert fees.scheduled_value(entries, date(2030, 1, 1)) == 0.50
    assert fees.scheduled_value(None, date(2025, 1, 1)) is None


def test_package_rate_wins_over_legacy(catalog, spot_only):
    cfg = replace(spot_only, network_package_id="DN")
    assert fees.resolve_network_fee(_ctx(catalog, cfg, period=canon.DAY)) == 6.0
    assert fees.resolve_network_fee(_ctx(catalog, cfg, period=canon.NIGHT, is_day=False)) == 3.5


@pytest.mark.parametrize(
    "period, expected",
    [(canon.DAY_PEAK, 5.0), (canon.REST_PEAK, 3.0), (canon.DAY, 5.0)],
)
def test_missing_peak_rate_falls_back_to_base_period(catalog, spot_only, period, expected):
    """DAY_PEAK borrows the DAY rate, REST_PEAK borrows NIGHT."""
    cfg = replace(spot_only, network_package_id="PARTIAL")
    assert fees.resolve_network_fee(_ctx(catalog, cfg, period=period)) == expected


def test_package_without_rates_uses_legacy_transfer(catalog, spot_only):
    cfg = replace(spot_only, network_package_id="NORATES")
    assert fees.resolve_network_fee(_ctx(catalog, cfg, period=canon.DAY, is_day=True)) == 4.0
    assert fees.resolve_network_fee(_ctx(catalog, cfg, period=canon.NIGHT, is_day=False)) == 2.0


def test_network_fee_zero_when_nothing_resolves(catalog):
    cfg = TariffConfig(network_package_id="NORATES")
    assert fees.resolve_network_fee(_ctx(catalog, cfg, period=canon.DAY)) == 0.0


def test_national_fee_schedule_then_user_value(catalog, spot_only):
    """Dated entry applies from its effective date; before that the user value."""
    cat = replace(
        catalog,
        national_fees={canon.EXCISE_TAX: [FeeScheduleEntry(date(2025, 1, 1), 0.30)]},
    )
    before = _ctx(cat, spot_only, when="2024-12-31 23:00")
    after = _ctx(cat, spot_only, when="2025-06-01 12:00")
    assert fees.resolve_national_fee(canon.EXCISE_TAX, before) == 0.21
    assert fees.resolve_national_fee(canon.EXCISE_TAX, after) == 0.30
    # no schedule and no user value
    assert fees.resolve_national_fee(canon.SECURITY_OF_SUPPLY_FEE, after) == 0.0


def test_vat_chain(catalog, spot_only):
    """User VAT, then catalog VAT, then the built-in default."""
    assert fees.resolve_vat_percent(_ctx(catalog, spot_only)) == 24.0
    no_user = replace(spot_only, vat_percent=None)
    assert fees.resolve_vat_percent(_ctx(catalog, no_user)) == 22.0
    bare = replace(catalog, vat_percent=None)
    assert fees.resolve_vat_percent(_ctx(bare, no_user)) == canon.DEFAULT_VAT_PERCENT


def test_first_resolved_skips_none():
    ctx = object()
    chain = [lambda c: None, lambda c: 0, lambda c: 9]
    # zero is a real value, not "missing"
    assert fees.first_resolved(chain, ctx) == 0.0
    assert fees.first_resolved([lambda c: None], ctx) is None


@pytest.mark.parametrize(
    "key, attr, effective, scheduled, user",
    [
        (canon.SECURITY_OF_SUPPLY_FEE, "security_of_supply_fee", date(2025, 7, 1), 0.758, 0.5),
        (canon.BALANCING_CAPACITY_FEE, "balancing_capacity_fee", date(2025, 2, 1), 0.373, 0.2),
    ],
)
def test_dated_supply_fees_switch_on_effective_date(
    catalog, spot_only, key, attr, effective, scheduled, user
):
    """The user value holds until the local day the scheduled rate takes effect."""
    cat = replace(catalog, national_fees={key: [FeeScheduleEntry(effective, scheduled)]})
    cfg = replace(spot_only, **{attr: user})
    eve = str(pd.Timestamp(effective) - pd.Timedelta(minutes=15))
    first = str(effective)
    assert fees.resolve_national_fee(key, _ctx(cat, cfg, when=eve)) == user
    assert fees.resolve_national_fee(key, _ctx(cat, cfg, when=first)) == scheduled
    # without a user value the fee is zero until the schedule starts
    bare = replace(spot_only, **{attr: None})
    assert fees.resolve_national_fee(key, _ctx(cat, bare, when=eve)) == 0.0


def test_security_fee_in_breakdown_follows_local_date(catalog, with_package):
    """00:30 local on July 1st is still June 30th in UTC; the local date decides."""
    cat = replace(
        catalog,
        national_fees={canon.SECURITY_OF_SUPPLY_FEE: [FeeScheduleEntry(date(2025, 7, 1), 0.758)]},
    )
    eng = pricing.PricingEngine(cat)
    cfg = replace(with_package, security_of_supply_fee=0.5)
    before = eng.breakdown(10.0, pd.Timestamp("2025-06-30 20:30Z"), cfg)
    after = eng.breakdown(10.0, pd.Timestamp("2025-06-30 21:30Z"), cfg)
    assert before.security_of_supply_fee == 0.5
    assert after.security_of_supply_fee == 0.758
    assert after.subtotal - before.subtotal == pytest.approx(0.258)
