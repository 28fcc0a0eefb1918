"""Pay Stat SDK - Statutory deductions, tax relief and income tax per pay period."""

from .config import (
    Settings,
    get_config_dir,
    get_settings_path,
    load_settings,
    save_settings,
    get_setting,
    set_setting,
    get_data_path,
    get_history_path,
    get_country_config_path,
    resolve_country,
    load_country_config,
    load_country_config_file,
    save_country_config,
    find_config_errors,
    ConfigNotFoundError,
)

from .errors import (
    StatutoryCalculationError,
    ConfigurationError,
    InvalidInputError,
)

from .schemas import (
    RateBand,
    StatutoryDeductionType,
    OpeningBalances,
    StatutoryAmount,
    YtdStatutoryAmounts,
    PeriodStatutoryAmounts,
    TaxReliefRule,
    TaxReliefScheme,
    EmployeeReliefEnrollment,
    TaxReliefContext,
    CountryTaxSettings,
    CountryConfig,
    CalculationInput,
    CalculatedStatutory,
    CalculatedRelief,
    IncomeTaxSummary,
    StatutoryCalculationResult,
    PeriodRequest,
)

from .history import (
    PayrollHistoryEntry,
    aggregate_ytd,
    aggregate_period,
    aggregate_relief_claims,
    build_calculation_input,
    load_request,
    entry_from_result,
    load_history,
    save_history,
    append_history,
)

from .statutory import calculate_statutory_deductions, check_non_overlapping

__all__ = [
    # Config
    "Settings",
    "get_config_dir",
    "get_settings_path",
    "load_settings",
    "save_settings",
    "get_setting",
    "set_setting",
    "get_data_path",
    "get_history_path",
    "get_country_config_path",
    "resolve_country",
    "load_country_config",
    "load_country_config_file",
    "save_country_config",
    "find_config_errors",
    "ConfigNotFoundError",
    # Errors
    "StatutoryCalculationError",
    "ConfigurationError",
    "InvalidInputError",
    # Schemas
    "RateBand",
    "StatutoryDeductionType",
    "OpeningBalances",
    "StatutoryAmount",
    "YtdStatutoryAmounts",
    "PeriodStatutoryAmounts",
    "TaxReliefRule",
    "TaxReliefScheme",
    "EmployeeReliefEnrollment",
    "TaxReliefContext",
    "CountryTaxSettings",
    "CountryConfig",
    "CalculationInput",
    "CalculatedStatutory",
    "CalculatedRelief",
    "IncomeTaxSummary",
    "StatutoryCalculationResult",
    "PeriodRequest",
    # History
    "PayrollHistoryEntry",
    "aggregate_ytd",
    "aggregate_period",
    "aggregate_relief_claims",
    "build_calculation_input",
    "load_request",
    "entry_from_result",
    "load_history",
    "save_history",
    "append_history",
    # Calculation
    "calculate_statutory_deductions",
    "check_non_overlapping",
]
