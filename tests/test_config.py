"""Tests for the defaults document, session config precedence and the settings store."""

import json
import logging

import pytest
from pydantic import ValidationError

from elektrihind import canon, config
from elektrihind.exceptions import ConfigError
from elektrihind.types import Preferences, TariffConfig, TimeWindowRule


def test_bundled_defaults_load():
    """The packaged document parses into a full catalog."""
    cat = config.load_catalog()
    assert set(cat.packages) == {"V1", "V2", "V4", "V5"}
    assert cat.vat_percent == 24
    assert cat.peak_rules.day_hours == TimeWindowRule("07:00", "22:00")
    assert len(cat.holidays) == 12
    assert cat.package("V5").rate(canon.DAY_PEAK) == 8.18
    assert cat.national_fees[canon.EXCISE_TAX][0].excl_vat == 0.21


def test_missing_document_falls_back(tmp_path, caplog):
    """A missing file logs an error and yields the built-in fallback."""
    with caplog.at_level(logging.ERROR, logger="elektrihind.config"):
        cat = config.load_catalog(tmp_path / "missing.json")
    assert any("Failed to load defaults" in r.getMessage() for r in caplog.records)
    assert cat.fees.transfer_day == 3.95
    assert cat.fees.transfer_night == 2.30
    # bare hours in the fallback become HH:MM
    assert cat.peak_rules.day_hours == TimeWindowRule("07:00", "23:00")
    assert cat.packages == {}


def test_invalid_document_falls_back(tmp_path):
    p = tmp_path / "defaults.json"
    p.write_text(json.dumps({"dayHours": {"start": "7am", "end": "23:00"}}))
    assert config.read_defaults(p).fees.transfer_day == 3.95


def test_malformed_holiday_rule_is_not_fatal(tariff_doc):
    tariff_doc["holidays"].append({"type": "fixed", "month": 13, "day": 1})
    cat = config.catalog_from_document(config.DefaultsDocument.model_validate(tariff_doc))
    assert len(cat.holidays) == 4


def test_catalog_vat_falls_back_to_fee_section(tariff_doc):
    del tariff_doc["vatPercent"]
    cat = config.catalog_from_document(config.DefaultsDocument.model_validate(tariff_doc))
    assert cat.vat_percent == 24


def test_window_model_accepts_bare_hours():
    assert config.WindowModel(start=7, end=23).to_rule() == TimeWindowRule("07:00", "23:00")
    assert config.WindowModel(start="24:00", end="6:30").to_rule() == TimeWindowRule("24:00", "06:30")
    with pytest.raises(ValidationError):
        config.WindowModel(start="noon", end="23:00")


def test_build_config_defaults_are_a_copy(catalog):
    cfg = config.build_config(catalog)
    assert cfg == catalog.fees
    assert cfg is not catalog.fees


def test_persisted_values_override_defaults(catalog):
    """Present keys win, including explicit nulls; absent keys keep defaults."""
    cfg = config.build_config(catalog, {"transferDay": 5.5, "exciseTax": None})
    assert cfg.transfer_day == 5.5
    assert cfg.excise_tax is None
    assert cfg.transfer_night == 2.0
    assert cfg.renewable_surcharge == 0.84


@pytest.mark.parametrize(
    "package_id, day, night",
    [("DN", 6.0, 3.5), ("FLAT1", 7.0, 7.0), ("NORATES", 4.0, 2.0), ("GONE", 4.0, 2.0)],
)
def test_package_rates_override_transfer_fields(catalog, package_id, day, night):
    """Selecting a package derives the legacy transfer fields from its rates."""
    cfg = config.build_config(catalog, {"networkPackageId": package_id, "transferDay": 1.0, "transferNight": 1.0})
    if package_id in ("NORATES", "GONE"):
        day, night = 1.0, 1.0
    assert (cfg.transfer_day, cfg.transfer_night) == (day, night)
    assert cfg.network_package_id == package_id


def test_explicit_overrides_replace_package_overrides(catalog):
    cfg = config.build_config(catalog, {"networkPackageId": "DN"}, overrides={"transferDay": 1.0})
    assert cfg.transfer_day == 1.0
    assert cfg.transfer_night == 2.0


def test_invalid_persisted_settings_are_ignored(catalog, caplog):
    with caplog.at_level(logging.WARNING, logger="elektrihind.config"):
        cfg = config.build_config(catalog, {"transferDay": "abc"})
    assert cfg == catalog.fees
    assert caplog.records


def test_invalid_overrides_raise_config_error(catalog):
    """Bad persisted values are dropped, but bad explicit overrides are the caller's error."""
    with pytest.raises(ConfigError, match="Invalid tariff settings"):
        config.build_config(catalog, {"networkPackageId": "DN"}, overrides={"vatPercent": "x"})


def test_config_dict_round_trip():
    cfg = TariffConfig(transfer_day=3.0, vat_percent=22, network_package_id="V2")
    d = config.config_to_dict(cfg)
    assert d["transferDay"] == 3.0
    assert d["networkPackageId"] == "V2"
    assert "transfer_day" not in d
    assert config.config_from_dict(d) == cfg
    # snake_case input is accepted too
    assert config.config_from_dict({"transfer_day": 3.0}).transfer_day == 3.0


def test_config_from_dict_rejects_bad_values():
    with pytest.raises(ConfigError):
        config.config_from_dict({"vatPercent": "lots"})


def test_update_config(spot_only):
    cfg = config.update_config(spot_only, {"vatPercent": 20, "networkPackageId": "DN"})
    assert cfg.vat_percent == 20
    assert cfg.network_package_id == "DN"
    assert spot_only.vat_percent == 24
    with pytest.raises(ConfigError):
        config.update_config(spot_only, {"exciseTax": "x"})


def test_store_round_trip(tmp_path, catalog):
    store = config.JsonSettingsStore(tmp_path / "state" / "settings.json")
    assert store.load() is None
    cfg = config.build_config(catalog, {"networkPackageId": "DN"})
    store.save(cfg)
    assert store.load() == cfg

    prefs = Preferences(resolution=15, duration_hours=1.5, mode="cheapest", kwh=5.0, show_full_price=True)
    store.save_preferences(prefs)
    assert store.load_preferences() == prefs
    # both sections live in the same document
    data = json.loads((tmp_path / "state" / "settings.json").read_text())
    assert set(data) == {canon.SETTINGS_KEY, canon.PREFERENCES_KEY}
    assert data[canon.PREFERENCES_KEY]["durationHours"] == 1.5


def test_session_config_and_reset(tmp_path, catalog):
    store = config.JsonSettingsStore(tmp_path / "settings.json")
    store.save(TariffConfig(network_package_id="DN", vat_percent=20))
    cfg = config.session_config(catalog, store)
    assert cfg.network_package_id == "DN"
    assert cfg.transfer_day == 6.0
    assert cfg.vat_percent == 20

    restored = store.reset(catalog)
    assert restored == catalog.fees
    assert store.load() == catalog.fees
    assert config.session_config(catalog) == catalog.fees


def test_corrupt_store_is_ignored(tmp_path, caplog):
    p = tmp_path / "settings.json"
    p.write_text("{not json")
    store = config.JsonSettingsStore(p)
    with caplog.at_level(logging.WARNING, logger="elektrihind.config"):
        assert store.load() is None
        assert store.load_preferences() == Preferences()
    assert caplog.records


def test_invalid_preferences_fall_back(tmp_path):
    p = tmp_path / "settings.json"
    p.write_text(json.dumps({canon.PREFERENCES_KEY: {"resolution": 30}}))
    assert config.JsonSettingsStore(p).load_preferences() == Preferences()
