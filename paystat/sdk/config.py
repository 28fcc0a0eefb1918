"""Configuration management for Pay Stat.

Configuration is split into:

1. settings.json - Machine-specific settings (see Settings)
   - default_country: country code used when a request names none
   - data_dir: custom data directory (payroll history)

2. countries/<CC>.yaml - Country rate configuration
   - tax_settings: cumulative vs non-cumulative, refund behavior
   - statutory_types: deduction types with their rate bands
   - relief_rules / relief_schemes / auto_apply_codes

Directories:
- Config: PAY_STAT_CONFIG_PATH, else XDG_CONFIG_HOME/pay-stat/ (~/.config/pay-stat/)
- Data: settings "data_dir", else XDG_DATA_HOME/pay-stat/ (~/.local/share/pay-stat/)
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError

from .codes import Code, normalize_code
from .errors import ConfigurationError
from .schemas import CountryConfig
from .statutory.bands import check_non_overlapping

logger = logging.getLogger(__name__)

APP_NAME = "pay-stat"
CONFIG_PATH_ENV = "PAY_STAT_CONFIG_PATH"
SETTINGS_FILENAME = "settings.json"
COUNTRIES_DIRNAME = "countries"
HISTORY_DIRNAME = "history"


class ConfigNotFoundError(Exception):
    """Raised when a required configuration file is missing."""
    pass


class Settings(BaseModel):
    """Contents of settings.json."""

    model_config = ConfigDict(extra="forbid")

    default_country: Optional[Code] = None
    data_dir: Optional[str] = None


def _xdg_home(variable: str, *fallback: str) -> Path:
    return Path(os.environ.get(variable) or Path.home().joinpath(*fallback)) / APP_NAME


def get_config_dir() -> Path:
    """PAY_STAT_CONFIG_PATH if set, else the XDG config directory."""
    override = os.environ.get(CONFIG_PATH_ENV)
    return Path(override) if override else _xdg_home("XDG_CONFIG_HOME", ".config")


def get_settings_path() -> Path:
    """Get the path to settings.json (may not exist yet)."""
    return get_config_dir() / SETTINGS_FILENAME


def load_settings() -> Settings:
    """Load settings.json (all fields unset if it doesn't exist).

    Raises:
        ConfigurationError: If the file has unknown keys or invalid values
    """
    path = get_settings_path()
    if not path.exists():
        return Settings()

    with open(path, "r") as f:
        data = json.load(f)
    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings in {path}:\n{e}") from e


def save_settings(settings: Settings) -> Path:
    """Write settings.json, omitting unset fields.

    Returns:
        Path to the saved settings file
    """
    path = get_settings_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(settings.model_dump(exclude_none=True), f, indent=2)
    return path


def get_setting(key: str, default: Any = None) -> Any:
    value = getattr(load_settings(), key, None)
    return default if value is None else value


def set_setting(key: str, value: Any) -> Path:
    """Update one setting, validating it like the rest of the file.

    Raises:
        ConfigurationError: On an unknown key or invalid value
    """
    data = load_settings().model_dump()
    data[key] = value
    try:
        settings = Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid setting {key}={value!r}:\n{e}") from e
    return save_settings(settings)


def get_data_path() -> Path:
    """Settings "data_dir" if set, else the XDG data directory."""
    custom = load_settings().data_dir
    if custom:
        return Path(custom).expanduser()
    return _xdg_home("XDG_DATA_HOME", ".local", "share")


def get_history_path(employee_id: str) -> Path:
    """Path to an employee's payroll history file (may not exist yet)."""
    return get_data_path() / HISTORY_DIRNAME / f"{employee_id}.json"


def get_country_config_path(country: str) -> Path:
    """Path to countries/<CC>.yaml in the config directory."""
    return get_config_dir() / COUNTRIES_DIRNAME / f"{normalize_code(country)}.yaml"


def resolve_country(country: Optional[str] = None) -> str:
    """Explicit country, else settings "default_country".

    Raises:
        ConfigNotFoundError: If neither is set
    """
    resolved = country or get_setting("default_country")
    if not resolved:
        raise ConfigNotFoundError(
            "No country given and no default set.\n\n"
            "Set one with: pay-stat config set-country <CC>"
        )
    return normalize_code(resolved)


def load_country_config_file(path: Path) -> CountryConfig:
    """Load and validate a country configuration YAML file.

    Raises:
        ConfigNotFoundError: If the file doesn't exist
        pydantic.ValidationError: If the file doesn't match the schema
    """
    if not path.exists():
        raise ConfigNotFoundError(f"Country configuration not found: {path}")

    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}

    config = CountryConfig.model_validate(data)
    logger.debug(
        f"Loaded {config.country} from {path}: {len(config.statutory_types)} type(s), "
        f"{len(config.relief_rules)} rule(s), {len(config.relief_schemes)} scheme(s)"
    )
    return config


def load_country_config(country: Optional[str] = None) -> CountryConfig:
    """Load countries/<CC>.yaml for a country (or the default country)."""
    return load_country_config_file(get_country_config_path(resolve_country(country)))


def save_country_config(config: CountryConfig, path: Optional[Path] = None) -> Path:
    """Write a country configuration as YAML.

    Returns:
        Path to the saved file
    """
    path = path or get_country_config_path(config.country)
    path.parent.mkdir(parents=True, exist_ok=True)

    data = config.model_dump(mode="json", exclude_defaults=True)
    with open(path, "w") as f:
        yaml.safe_dump(data, f, sort_keys=False)

    return path


def find_config_errors(config: CountryConfig) -> List[str]:
    """Check a country configuration for inconsistencies the schema can't see.

    Bands of a type are compared within each (age window, effective range)
    group, since bands for different ages or dates may legitimately share
    gross-pay ranges.

    Returns:
        List of error messages (empty if consistent)
    """
    errors = []
    for stat_type in config.statutory_types:
        groups: Dict[tuple, list] = {}
        for band in stat_type.bands:
            if band.is_active:
                key = (band.min_age, band.max_age, band.effective_from, band.effective_to)
                groups.setdefault(key, []).append(band)
        for bands in groups.values():
            try:
                check_non_overlapping(sorted(bands, key=lambda b: b.lower), stat_type.code)
            except ConfigurationError as e:
                errors.append(str(e))

        if stat_type.is_income_tax and not stat_type.bands:
            errors.append(f"{stat_type.code}: income tax type has no bands")

    income_tax_types = [t.code for t in config.statutory_types if t.is_income_tax and t.is_active]
    if len(income_tax_types) > 1:
        errors.append(f"Multiple active income tax types: {', '.join(income_tax_types)}")

    codes = [t.code for t in config.statutory_types]
    duplicates = sorted({c for c in codes if codes.count(c) > 1})
    if duplicates:
        errors.append(f"Duplicate statutory codes: {', '.join(duplicates)}")

    rule_codes = {r.statutory_type_code for r in config.relief_rules}
    shared = sorted(rule_codes & {s.scheme_code for s in config.relief_schemes})
    if shared:
        errors.append(f"Relief scheme codes shared with relief rules: {', '.join(shared)}")

    return errors
