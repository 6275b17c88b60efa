from __future__ import annotations
from typing import TypedDict, Literal, List, Dict, Optional
from dataclasses import dataclass, field
from datetime import date, datetime

import pandas as pd

from . import canon

PeriodTag = Literal["DAY", "NIGHT", "DAY_PEAK", "REST_PEAK", "FLAT"]
SelectionMode = Literal["consecutive", "cheapest"]
Resolution = Literal[15, 60]


# Price frame
class PriceFrame(pd.DataFrame):
    """
    Price series dataframe.

    Expected:
      - DatetimeIndex named 'timestamp', tz-aware, ascending
      - Columns: ['price'] (spot, cents/kWh), optionally ['total', 'period']
    """

    @property
    def _constructor(self):
        return PriceFrame

    @property
    def price(self) -> pd.Series:
        return self[canon.PRICE_COL]

    @property
    def total(self) -> pd.Series:
        return self[canon.TOTAL_COL]


@dataclass(frozen=True)
class PriceSlot:
    timestamp: datetime  # tz-aware
    price: float  # cents/kWh


## Tariff reference data
@dataclass(frozen=True)
class TimeWindowRule:
    start: str  # "HH:MM"
    end: str  # "HH:MM"; start > end wraps midnight


@dataclass(frozen=True)
class NetworkPackage:
    id: str
    label: str
    periods: frozenset[str]
    energy_rates_excl_vat: Dict[str, float] = field(default_factory=dict)

    def rate(self, period: str) -> Optional[float]:
        return self.energy_rates_excl_vat.get(period)


@dataclass(frozen=True)
class FeeScheduleEntry:
    effective_from: date
    excl_vat: float


# fee key -> dated entries
NationalFeeSchedule = Dict[str, List[FeeScheduleEntry]]


@dataclass(frozen=True)
class HolidayRule:
    type: Literal["fixed", "easter_offset"]
    month: Optional[int] = None
    day: Optional[int] = None
    offset_days: Optional[int] = None
    name: str = ""


@dataclass(frozen=True)
class PeakRules:
    winter_months: frozenset[int] = canon.DEFAULT_WINTER_MONTHS
    weekday_peak_windows: tuple[TimeWindowRule, ...] = ()
    rest_day_peak_windows: tuple[TimeWindowRule, ...] = ()
    day_hours: TimeWindowRule = TimeWindowRule(
        canon.LEGACY_DAY_START, canon.LEGACY_DAY_END
    )


## User configuration
@dataclass
class TariffConfig:
    """Active fee settings. Any field may be None: unset, do not apply."""

    transfer_day: Optional[float] = None
    transfer_night: Optional[float] = None
    renewable_surcharge: Optional[float] = None
    excise_tax: Optional[float] = None
    security_of_supply_fee: Optional[float] = None
    balancing_capacity_fee: Optional[float] = None
    vat_percent: Optional[float] = None
    purchase_margin: Optional[float] = None
    sales_margin: Optional[float] = None
    network_package_id: Optional[str] = None


@dataclass
class Preferences:
    resolution: Resolution = canon.HOURLY_RESOLUTION_MIN
    duration_hours: float = 2.0
    mode: SelectionMode = "consecutive"
    kwh: float = 10.0
    show_full_price: bool = False


@dataclass(frozen=True)
class TariffCatalog:
    """Static reference data loaded from the defaults document."""

    fees: TariffConfig
    vat_percent: float = canon.DEFAULT_VAT_PERCENT
    peak_rules: PeakRules = field(default_factory=PeakRules)
    packages: Dict[str, NetworkPackage] = field(default_factory=dict)
    national_fees: NationalFeeSchedule = field(default_factory=dict)
    holidays: tuple[HolidayRule, ...] = ()
    labels: Dict[str, str] = field(default_factory=dict)
    units: Dict[str, str] = field(default_factory=dict)

    def package(self, package_id: Optional[str]) -> Optional[NetworkPackage]:
        if package_id is None:
            return None
        return self.packages.get(package_id)


## Engine outputs
@dataclass(frozen=True)
class PriceBreakdown:
    spot: float
    period: Optional[str]
    network_fee: float
    renewable_surcharge: float
    excise_tax: float
    security_of_supply_fee: float
    balancing_capacity_fee: float
    margins: float
    subtotal: float
    vat_percent: float
    vat: float
    total: float


@dataclass(frozen=True)
class BestWindowResult:
    selected_indices: frozenset[int]
    timestamps: tuple[pd.Timestamp, ...]  # chronological
    average_price: float
    mode: SelectionMode = "consecutive"
    resolution: Resolution = canon.HOURLY_RESOLUTION_MIN

    @property
    def start(self) -> pd.Timestamp:
        return self.timestamps[0]

    @property
    def end(self) -> pd.Timestamp:
        return self.timestamps[-1] + pd.Timedelta(minutes=self.resolution)

    @property
    def is_contiguous(self) -> bool:
        idx = sorted(self.selected_indices)
        return idx == list(range(idx[0], idx[0] + len(idx))) if idx else False


@dataclass(frozen=True)
class PriceSnapshot:
    prices: tuple[PriceSlot, ...]
    updated: datetime
    stale: bool = False


## Payloads
class PriceRecord(TypedDict):
    timestamp: str
    price: float


class PricesPayload(TypedDict):
    prices: List[PriceRecord]
    updated: str


class DayStats(TypedDict):
    average: Optional[float]
    minimum: Optional[float]
    maximum: Optional[float]
    count: int


class CostEstimate(TypedDict):
    cost_now: Optional[float]  # euros
    cost_optimal: Optional[float]
    savings: Optional[float]  # > 0: cheaper by waiting


class WindowSummary(TypedDict, total=False):
    start: str
    end: str
    average_price: float
    timestamps: List[str]
    minutes_until_start: int
    active: bool


class SummaryPayload(TypedDict):
    current_price: Optional[float]
    current_total: Optional[float]
    current_full_price: Optional[float]
    today: DayStats
    best_window: Optional[WindowSummary]
    cost: CostEstimate
