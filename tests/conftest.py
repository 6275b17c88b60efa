import copy
from dataclasses import replace

import pandas as pd
import pytest

from elektrihind import config, holidays, pricing, utils
from elektrihind.types import TariffConfig

TZ = "Europe/Tallinn"

# Small, fully controlled tariff document (no dated fees unless a test adds them).
TARIFF_DOC = {
    "fees": {
        "transferDay": 4.0,
        "transferNight": 2.0,
        "renewableSurcharge": 0.84,
        "exciseTax": 0.21,
        "vatPercent": 24,
    },
    "vatPercent": 22,
    "dayHours": {"start": "07:00", "end": "22:00"},
    "peakHours": {
        "winterMonths": [11, 12, 1, 2, 3],
        "weekday": [
            {"start": "09:00", "end": "12:00"},
            {"start": "16:00", "end": "20:00"},
        ],
        "restDay": [{"start": "16:00", "end": "20:00"}],
    },
    "networkPackages": [
        {"id": "FLAT1", "label": "Flat", "periods": ["FLAT"], "energyRatesExclVat": {"FLAT": 7.0}},
        {"id": "DN", "label": "Day/Night", "periods": ["DAY", "NIGHT"], "energyRatesExclVat": {"DAY": 6.0, "NIGHT": 3.5}},
        {
            "id": "PEAK",
            "label": "Peaks",
            "periods": ["DAY", "NIGHT", "DAY_PEAK", "REST_PEAK"],
            "energyRatesExclVat": {"DAY": 5.0, "NIGHT": 3.0, "DAY_PEAK": 8.0, "REST_PEAK": 4.5},
        },
        {
            "id": "PARTIAL",
            "label": "Peaks without peak rates",
            "periods": ["DAY", "NIGHT", "DAY_PEAK", "REST_PEAK"],
            "energyRatesExclVat": {"DAY": 5.0, "NIGHT": 3.0},
        },
        {"id": "NORATES", "label": "No rates", "periods": ["DAY", "NIGHT"], "energyRatesExclVat": {}},
    ],
    "nationalFees": {},
    "holidays": [
        {"type": "fixed", "month": 1, "day": 1},
        {"type": "fixed", "month": 2, "day": 24},
        {"type": "easter_offset", "offsetDays": -2},
        {"type": "fixed", "month": 6, "day": 24},
    ],
}


@pytest.fixture
def tariff_doc():
    return copy.deepcopy(TARIFF_DOC)


@pytest.fixture
def catalog(tariff_doc):
    return config.catalog_from_document(config.DefaultsDocument.model_validate(tariff_doc))


@pytest.fixture
def resolver(catalog):
    return holidays.HolidayResolver(catalog.holidays)


@pytest.fixture
def engine(catalog, resolver):
    return pricing.PricingEngine(catalog, resolver)


@pytest.fixture
def spot_only():
    return TariffConfig(
        transfer_day=4.0,
        transfer_night=2.0,
        renewable_surcharge=0.84,
        excise_tax=0.21,
        vat_percent=24,
        network_package_id=None,
    )


@pytest.fixture
def with_package(spot_only):
    return replace(spot_only, network_package_id="DN")


@pytest.fixture
def hourly_rng():
    """Four hours starting Wednesday 2025-06-04 00:00 local."""
    return pd.date_range("2025-06-04 00:00", periods=4, freq="60min", tz=TZ)


@pytest.fixture
def quarter_rng():
    """One local day (Wednesday 2025-06-04) at 15-min cadence."""
    return pd.date_range("2025-06-04 00:00", periods=96, freq="15min", tz=TZ)


@pytest.fixture
def hourly_frame(hourly_rng):
    return utils.build_price_frame(hourly_rng, [10.0, 5.0, 20.0, 5.0])


@pytest.fixture
def autumn_frame():
    """
    25 local hours of quarter-hours covering the 2025-10-26 DST change.

    03:00-03:59 occurs twice (00:00Z and 01:00Z); both are the cheapest hours.
    """
    idx = pd.date_range("2025-10-25 21:00Z", periods=100, freq="15min")
    prices = [10.0] * 100
    prices[12:20] = [1.0] * 8
    return utils.build_price_frame(idx, prices)
