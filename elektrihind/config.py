from __future__ import annotations

import json
import logging
from dataclasses import asdict, fields, replace
from datetime import date
from pathlib import Path
from typing import Any, Mapping, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from . import canon
from .exceptions import ConfigError
from .holidays import parse_holiday_rules
from .types import (
    FeeScheduleEntry,
    NetworkPackage,
    PeakRules,
    PeriodTag,
    Preferences,
    SelectionMode,
    TariffCatalog,
    TariffConfig,
    TimeWindowRule,
)

logger = logging.getLogger(__name__)

DEFAULTS_PATH = Path(__file__).parent / "data" / "defaults.json"

# Used when the defaults document cannot be read.
FALLBACK_DEFAULTS: dict[str, Any] = {
    "fees": {
        "transferDay": 3.95,
        "transferNight": 2.30,
        "renewableSurcharge": 0.84,
        "exciseTax": 0.21,
        "vatPercent": 24,
    },
    "dayHours": {"start": 7, "end": 23},
    "labels": {},
    "units": {},
}


class _Doc(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class FeesModel(_Doc):
    transfer_day: Optional[float] = Field(None, alias="transferDay")
    transfer_night: Optional[float] = Field(None, alias="transferNight")
    renewable_surcharge: Optional[float] = Field(None, alias="renewableSurcharge")
    excise_tax: Optional[float] = Field(None, alias="exciseTax")
    security_of_supply_fee: Optional[float] = Field(None, alias="securityOfSupplyFee")
    balancing_capacity_fee: Optional[float] = Field(None, alias="balancingCapacityFee")
    vat_percent: Optional[float] = Field(None, alias="vatPercent")
    purchase_margin: Optional[float] = Field(None, alias="purchaseMargin")
    sales_margin: Optional[float] = Field(None, alias="salesMargin")
    network_package_id: Optional[str] = Field(None, alias="networkPackageId")


class WindowModel(_Doc):
    start: str
    end: str

    @field_validator("start", "end", mode="before")
    @classmethod
    def _hour_or_hhmm(cls, v: Any) -> str:
        # the original document used bare hours, e.g. {"start": 7, "end": 23}
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return f"{int(v):02d}:00"
        s = str(v).strip()
        hh, _, mm = s.partition(":")
        if not (hh.isdigit() and mm.isdigit() and int(hh) <= 24 and int(mm) < 60):
            raise ValueError(f"Expected 'HH:MM', got {v!r}")
        return f"{int(hh):02d}:{int(mm):02d}"

    def to_rule(self) -> TimeWindowRule:
        return TimeWindowRule(self.start, self.end)


class PeakHoursModel(_Doc):
    winter_months: list[int] = Field(
        default_factory=lambda: sorted(canon.DEFAULT_WINTER_MONTHS), alias="winterMonths"
    )
    weekday: list[WindowModel] = Field(default_factory=list)
    rest_day: list[WindowModel] = Field(default_factory=list, alias="restDay")


class PackageModel(_Doc):
    id: str
    label: str = ""
    periods: list[PeriodTag]
    energy_rates_excl_vat: dict[PeriodTag, float] = Field(
        default_factory=dict, alias="energyRatesExclVat"
    )


class FeeEntryModel(_Doc):
    effective_from: date = Field(alias="effectiveFrom")
    excl_vat: float = Field(alias="exclVat")


class DefaultsDocument(_Doc):
    fees: FeesModel = Field(default_factory=FeesModel)
    vat_percent: Optional[float] = Field(None, alias="vatPercent")
    day_hours: WindowModel = Field(
        default_factory=lambda: WindowModel(
            start=canon.LEGACY_DAY_START, end=canon.LEGACY_DAY_END
        ),
        alias="dayHours",
    )
    peak_hours: PeakHoursModel = Field(default_factory=PeakHoursModel, alias="peakHours")
    network_packages: list[PackageModel] = Field(
        default_factory=list, alias="networkPackages"
    )
    national_fees: dict[str, list[FeeEntryModel]] = Field(
        default_factory=dict, alias="nationalFees"
    )
    # kept raw: malformed rules are skipped, not fatal
    holidays: list[Any] = Field(default_factory=list)
    labels: dict[str, str] = Field(default_factory=dict)
    units: dict[str, str] = Field(default_factory=dict)


class PreferencesModel(_Doc):
    resolution: int = canon.HOURLY_RESOLUTION_MIN
    duration_hours: float = Field(2.0, alias="durationHours")
    mode: SelectionMode = "consecutive"
    kwh: float = 10.0
    show_full_price: bool = Field(False, alias="showFullPrice")

    @field_validator("resolution")
    @classmethod
    def _supported(cls, v: int) -> int:
        if v not in canon.SUPPORTED_RESOLUTIONS:
            raise ValueError(f"resolution must be one of {canon.SUPPORTED_RESOLUTIONS}")
        return v


## defaults document
def read_defaults(path: str | Path | None = None) -> DefaultsDocument:
    """
    Load the defaults document. Falls back to a minimal built-in document when
    the file is missing or invalid.
    """
    p = Path(path) if path is not None else DEFAULTS_PATH
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
        return DefaultsDocument.model_validate(raw)
    except (OSError, ValueError, ValidationError) as e:
        logger.error("Failed to load defaults from %s: %s", p, e)
        return DefaultsDocument.model_validate(FALLBACK_DEFAULTS)


def catalog_from_document(doc: DefaultsDocument) -> TariffCatalog:
    fees = TariffConfig(**doc.fees.model_dump())
    vat = doc.vat_percent
    if vat is None:
        vat = fees.vat_percent if fees.vat_percent is not None else canon.DEFAULT_VAT_PERCENT

    packages = {
        p.id: NetworkPackage(
            id=p.id,
            label=p.label or p.id,
            periods=frozenset(p.periods),
            energy_rates_excl_vat=dict(p.energy_rates_excl_vat),
        )
        for p in doc.network_packages
    }
    national = {
        key: sorted(
            (FeeScheduleEntry(e.effective_from, e.excl_vat) for e in entries),
            key=lambda e: e.effective_from,
        )
        for key, entries in doc.national_fees.items()
    }
    peak = PeakRules(
        winter_months=frozenset(doc.peak_hours.winter_months),
        weekday_peak_windows=tuple(w.to_rule() for w in doc.peak_hours.weekday),
        rest_day_peak_windows=tuple(w.to_rule() for w in doc.peak_hours.rest_day),
        day_hours=doc.day_hours.to_rule(),
    )
    return TariffCatalog(
        fees=fees,
        vat_percent=float(vat),
        peak_rules=peak,
        packages=packages,
        national_fees=national,
        holidays=tuple(parse_holiday_rules(doc.holidays)),
        labels=dict(doc.labels),
        units=dict(doc.units),
    )


def load_catalog(path: str | Path | None = None) -> TariffCatalog:
    return catalog_from_document(read_defaults(path))


## tariff config
def config_from_dict(data: Mapping[str, Any]) -> TariffConfig:
    """camelCase (persisted) or snake_case mapping -> TariffConfig; unknown keys ignored."""
    try:
        return TariffConfig(**FeesModel.model_validate(dict(data)).model_dump())
    except ValidationError as e:
        raise ConfigError(f"Invalid tariff settings: {e}") from e


def config_to_dict(config: TariffConfig) -> dict[str, Any]:
    """TariffConfig -> camelCase mapping, as persisted."""
    return FeesModel.model_validate(asdict(config)).model_dump(by_alias=True)


def _present_fields(data: Mapping[str, Any]) -> dict[str, Any]:
    """Keys present in a camelCase/snake_case mapping, as TariffConfig field names."""
    model = FeesModel.model_validate(dict(data))
    names = {f.name for f in fields(TariffConfig)}
    aliases = {
        info.alias: name for name, info in FeesModel.model_fields.items() if info.alias
    }
    out: dict[str, Any] = {}
    for key in data:
        name = aliases.get(key, key)
        if name in names:
            out[name] = getattr(model, name)
    return out


def package_overrides(catalog: TariffCatalog, package_id: Optional[str]) -> dict[str, Any]:
    """Legacy transfer fields derived from the selected package's day/night rates."""
    package = catalog.package(package_id)
    if package is None:
        return {}
    flat = package.rate(canon.FLAT)
    day = package.rate(canon.DAY)
    night = package.rate(canon.NIGHT)
    out: dict[str, Any] = {}
    if day is not None or flat is not None:
        out["transfer_day"] = day if day is not None else flat
    if night is not None or flat is not None:
        out["transfer_night"] = night if night is not None else flat
    return out


def build_config(
    catalog: TariffCatalog,
    persisted: Optional[Mapping[str, Any]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> TariffConfig:
    """
    Session configuration. Precedence, lowest first:
      1. catalog defaults
      2. persisted settings (keys present in the mapping, including explicit nulls)
      3. package-derived overrides (or the explicit ``overrides`` mapping)
    """
    config = replace(catalog.fees)
    if persisted:
        try:
            config = replace(config, **_present_fields(persisted))
        except ValidationError as e:
            logger.warning("Ignoring invalid persisted settings: %s", e)
    if overrides is None:
        return replace(config, **package_overrides(catalog, config.network_package_id))
    try:
        return replace(config, **_present_fields(overrides))
    except ValidationError as e:
        raise ConfigError(f"Invalid tariff settings: {e}") from e


def update_config(config: TariffConfig, changes: Mapping[str, Any]) -> TariffConfig:
    """Copy-on-update edit of individual fields."""
    try:
        return replace(config, **_present_fields(changes))
    except ValidationError as e:
        raise ConfigError(f"Invalid tariff settings: {e}") from e


def reset_config(catalog: TariffCatalog) -> TariffConfig:
    return build_config(catalog)


## persisted settings
class SettingsStore(Protocol):
    def load(self) -> Optional[TariffConfig]: ...

    def save(self, config: TariffConfig) -> None: ...


class JsonSettingsStore:
    """
    Key-value settings in one JSON file:
      {"electricitySettings": {...}, "preferences": {...}}
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Unreadable settings file %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")

    def load_raw(self) -> Optional[dict[str, Any]]:
        section = self._read().get(canon.SETTINGS_KEY)
        return dict(section) if isinstance(section, dict) else None

    def load(self) -> Optional[TariffConfig]:
        raw = self.load_raw()
        if raw is None:
            return None
        try:
            return config_from_dict(raw)
        except ConfigError as e:
            logger.warning("Ignoring invalid persisted settings: %s", e)
            return None

    def save(self, config: TariffConfig) -> None:
        data = self._read()
        data[canon.SETTINGS_KEY] = config_to_dict(config)
        self._write(data)

    def load_preferences(self) -> Preferences:
        raw = self._read().get(canon.PREFERENCES_KEY) or {}
        try:
            return Preferences(**PreferencesModel.model_validate(raw).model_dump())
        except ValidationError as e:
            logger.warning("Ignoring invalid preferences: %s", e)
            return Preferences()

    def save_preferences(self, prefs: Preferences) -> None:
        data = self._read()
        data[canon.PREFERENCES_KEY] = PreferencesModel.model_validate(
            asdict(prefs)
        ).model_dump(by_alias=True)
        self._write(data)

    def reset(self, catalog: TariffCatalog) -> TariffConfig:
        config = reset_config(catalog)
        self.save(config)
        return config


def session_config(catalog: TariffCatalog, store: Optional[JsonSettingsStore] = None) -> TariffConfig:
    """Defaults merged with whatever the store has persisted."""
    return build_config(catalog, store.load_raw() if store is not None else None)
