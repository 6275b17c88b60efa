from __future__ import annotations
from typing import Final, Dict

INDEX_NAME: Final[str] = "timestamp"
PRICE_COL: Final[str] = "price"
TOTAL_COL: Final[str] = "total"
PERIOD_COL: Final[str] = "period"

DEFAULT_TZ: Final[str] = "Europe/Tallinn"
NATIVE_RESOLUTION_MIN: Final[int] = 15
HOURLY_RESOLUTION_MIN: Final[int] = 60
SUPPORTED_RESOLUTIONS: Final[tuple[int, ...]] = (
    NATIVE_RESOLUTION_MIN,
    HOURLY_RESOLUTION_MIN,
)

# Period tags
DAY: Final[str] = "DAY"
NIGHT: Final[str] = "NIGHT"
DAY_PEAK: Final[str] = "DAY_PEAK"
REST_PEAK: Final[str] = "REST_PEAK"
FLAT: Final[str] = "FLAT"

# Missing package rate -> rate of this period (if the package has it)
PERIOD_FALLBACK: Dict[str, str] = {
    DAY_PEAK: DAY,
    REST_PEAK: NIGHT,
}

DEFAULT_WINTER_MONTHS: Final[frozenset[int]] = frozenset({11, 12, 1, 2, 3})
LEGACY_DAY_START: Final[str] = "07:00"
LEGACY_DAY_END: Final[str] = "23:00"

DEFAULT_VAT_PERCENT: Final[float] = 24.0

# National fee keys, as used in the defaults document and persisted settings
RENEWABLE_SURCHARGE: Final[str] = "renewableSurcharge"
EXCISE_TAX: Final[str] = "exciseTax"
SECURITY_OF_SUPPLY_FEE: Final[str] = "securityOfSupplyFee"
BALANCING_CAPACITY_FEE: Final[str] = "balancingCapacityFee"
NATIONAL_FEE_KEYS: Final[tuple[str, ...]] = (
    RENEWABLE_SURCHARGE,
    EXCISE_TAX,
    SECURITY_OF_SUPPLY_FEE,
    BALANCING_CAPACITY_FEE,
)

# Upstream provider
ELERING_API: Final[str] = "https://dashboard.elering.ee/api/nps/price"
ELERING_AREA: Final[str] = "ee"
PRICE_CACHE_TTL_SECONDS: Final[int] = 5 * 60
EUR_MWH_TO_CENTS_KWH: Final[float] = 0.1

# Settings document keys
SETTINGS_KEY: Final[str] = "electricitySettings"
PREFERENCES_KEY: Final[str] = "preferences"
