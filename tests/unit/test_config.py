"""Tests for configuration: settings, country files and consistency checks.

Uses isolated directories via tmp_path and PAY_STAT_CONFIG_PATH
to avoid touching real configuration.
"""

import json
import pytest
import yaml
from datetime import date
from pathlib import Path

from pydantic import ValidationError

from paystat.sdk.config import (
    ConfigNotFoundError,
    Settings,
    find_config_errors,
    get_config_dir,
    get_country_config_path,
    get_data_path,
    get_history_path,
    load_country_config,
    load_settings,
    resolve_country,
    save_country_config,
    set_setting,
)
from paystat.sdk.errors import ConfigurationError
from paystat.sdk.schemas import CountryConfig


# === FIXTURES ===


@pytest.fixture
def isolated_env(tmp_path, monkeypatch):
    """Set up isolated environment with config and data directories."""
    config_dir = tmp_path / "config"
    data_dir = tmp_path / "data"

    config_dir.mkdir()
    data_dir.mkdir()

    monkeypatch.setenv("PAY_STAT_CONFIG_PATH", str(config_dir))

    settings = {"data_dir": str(data_dir)}
    (config_dir / "settings.json").write_text(json.dumps(settings))

    return {
        "config_dir": config_dir,
        "data_dir": data_dir,
    }


@pytest.fixture
def jm_config():
    """Country config dict in the countries/<CC>.yaml format."""
    return {
        "country": "JM",
        "tax_settings": {
            "tax_calculation_method": "cumulative",
            "allow_mid_year_refunds": True,
        },
        "statutory_types": [
            {
                "code": "NIS",
                "name": "National Insurance Scheme",
                "bands": [{
                    "employee_rate": 3,
                    "employer_rate": 3,
                    "employee_annual_cap": 150000,
                    "employer_annual_cap": 150000,
                }],
            },
            {
                "code": "PAYE",
                "name": "Income Tax",
                "statutory_type": "income_tax",
                "bands": [
                    {"min_amount": 0, "max_amount": 125008, "employee_rate": 0},
                    {"min_amount": 125008, "max_amount": 500000, "employee_rate": 25},
                    {"min_amount": 500000, "employee_rate": 30},
                ],
            },
        ],
        "relief_rules": [{"statutory_type_code": "NIS"}],
        "relief_schemes": [
            {"scheme_code": "PA", "scheme_name": "Personal Allowance", "relief_value": 12000},
        ],
    }


def write_country(config_dir: Path, data: dict, code: str = "JM") -> Path:
    path = config_dir / "countries" / f"{code}.yaml"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(data))
    return path


class TestPaths:

    def test_env_overrides_config_dir(self, isolated_env):
        assert get_config_dir() == isolated_env["config_dir"]

    def test_xdg_fallback(self, tmp_path, monkeypatch):
        monkeypatch.delenv("PAY_STAT_CONFIG_PATH", raising=False)
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
        assert get_config_dir() == tmp_path / "pay-stat"

    def test_data_dir_from_settings(self, isolated_env):
        assert get_data_path() == isolated_env["data_dir"]
        assert get_history_path("E1") == isolated_env["data_dir"] / "history" / "E1.json"

    def test_country_path_normalized(self, isolated_env):
        assert get_country_config_path(" jm ") == isolated_env["config_dir"] / "countries" / "JM.yaml"


class TestResolveCountry:

    def test_explicit_country(self, isolated_env):
        assert resolve_country("tt") == "TT"

    def test_default_country_setting(self, isolated_env):
        set_setting("default_country", "JM")
        assert resolve_country() == "JM"

    def test_no_country_raises(self, isolated_env):
        with pytest.raises(ConfigNotFoundError, match="set-country"):
            resolve_country()


class TestLoadCountryConfig:

    def test_loads_yaml(self, isolated_env, jm_config):
        write_country(isolated_env["config_dir"], jm_config)
        config = load_country_config("jm")
        assert config.country == "JM"
        assert [t.code for t in config.statutory_types] == ["NIS", "PAYE"]
        assert config.tax_settings.refunds_enabled

    def test_missing_file(self, isolated_env):
        with pytest.raises(ConfigNotFoundError, match="not found"):
            load_country_config("ZZ")

    def test_unknown_field_rejected(self, isolated_env, jm_config):
        jm_config["statutory_types"][0]["bands"][0]["employee_rte"] = 3
        write_country(isolated_env["config_dir"], jm_config)
        with pytest.raises(ValidationError, match="employee_rte"):
            load_country_config("JM")

    def test_save_then_load(self, isolated_env, jm_config):
        original = CountryConfig.model_validate(jm_config)
        path = save_country_config(original)
        assert path == isolated_env["config_dir"] / "countries" / "JM.yaml"
        assert load_country_config("JM") == original

    def test_effective_on_filters(self, jm_config):
        jm_config["statutory_types"][0]["bands"].append({
            "employee_rate": 4, "effective_from": "2026-01-01",
        })
        jm_config["statutory_types"][0]["bands"][0]["effective_to"] = "2025-12-31"
        config = CountryConfig.model_validate(jm_config)

        current = config.effective_on(date(2025, 6, 30))
        assert len(current.statutory_types[0].bands) == 1
        assert len(config.statutory_types[0].bands) == 2


class TestFindConfigErrors:
    """Consistency checks behind `pay-stat config validate`."""

    def test_consistent_config(self, jm_config):
        assert find_config_errors(CountryConfig.model_validate(jm_config)) == []

    def test_overlapping_bands(self, jm_config):
        jm_config["statutory_types"][1]["bands"][1]["min_amount"] = 100000
        errors = find_config_errors(CountryConfig.model_validate(jm_config))
        assert len(errors) == 1
        assert "PAYE" in errors[0]

    def test_age_windows_checked_separately(self, jm_config):
        jm_config["statutory_types"][0]["bands"] = [
            {"max_age": 59, "employee_rate": 3},
            {"min_age": 60, "employee_rate": 1},
        ]
        assert find_config_errors(CountryConfig.model_validate(jm_config)) == []

    def test_income_tax_without_bands(self, jm_config):
        jm_config["statutory_types"][1]["bands"] = []
        errors = find_config_errors(CountryConfig.model_validate(jm_config))
        assert errors == ["PAYE: income tax type has no bands"]

    def test_multiple_income_tax_types(self, jm_config):
        second = dict(jm_config["statutory_types"][1], code="PAYE_ALT")
        jm_config["statutory_types"].append(second)
        errors = find_config_errors(CountryConfig.model_validate(jm_config))
        assert any("Multiple active income tax types" in e for e in errors)

    def test_duplicate_codes(self, jm_config):
        jm_config["statutory_types"].append(dict(jm_config["statutory_types"][0]))
        errors = find_config_errors(CountryConfig.model_validate(jm_config))
        assert errors == ["Duplicate statutory codes: NIS"]

    def test_scheme_code_shared_with_relief_rule(self, jm_config):
        jm_config["relief_schemes"].append({"scheme_code": "NIS", "scheme_name": "Voluntary NIS"})
        errors = find_config_errors(CountryConfig.model_validate(jm_config))
        assert errors == ["Relief scheme codes shared with relief rules: NIS"]


class TestSettings:
    """settings.json is validated like the country files."""

    def test_missing_file_gives_empty_settings(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PAY_STAT_CONFIG_PATH", str(tmp_path))
        assert load_settings() == Settings()

    def test_set_country_normalized(self, isolated_env):
        set_setting("default_country", " tt ")
        data = json.loads((isolated_env["config_dir"] / "settings.json").read_text())
        assert data == {"data_dir": str(isolated_env["data_dir"]), "default_country": "TT"}

    def test_unknown_key_rejected(self, isolated_env):
        with pytest.raises(ConfigurationError, match="default_contry"):
            set_setting("default_contry", "JM")

    def test_invalid_file_rejected(self, isolated_env):
        (isolated_env["config_dir"] / "settings.json").write_text(json.dumps({"profile": "x"}))
        with pytest.raises(ConfigurationError, match="settings.json"):
            load_settings()

    def test_xdg_data_fallback(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PAY_STAT_CONFIG_PATH", str(tmp_path / "config"))
        monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "share"))
        assert get_data_path() == tmp_path / "share" / "pay-stat"
