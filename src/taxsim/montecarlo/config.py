# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Configuration for tax regime Monte Carlo simulations.

This module holds the immutable parameter objects supplied by the caller:
one ScenarioConfig per compared account, the InputParameters describing the
shared market conditions, and the MonteCarloConfig execution knobs.
"""

import math
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .errors import ConfigurationError
from .market_assumptions import Portfolio, PortfolioAsset

# Lower bound for the notional tax basis rate random walk
NOTIONAL_TAX_RATE_MIN = 0.0125

TAX_MODEL_NOTIONAL = "notional"
TAX_MODEL_DEFERRED = "deferred"


def _check_rate(name: str, value: float, upper: float = 1.0):
    if value < 0 or value > upper:
        raise ConfigurationError(f"{name} must be within [0, {upper}], got {value}")


def _check_non_negative(name: str, value: float):
    if value < 0:
        raise ConfigurationError(f"{name} cannot be negative: {value}")


@dataclass(frozen=True)
class ScenarioConfig:
    """One named account configuration evaluated in every trajectory.

    Attributes:
        name: Scenario identifier (e.g. "ISK", "VP")
        balance_withdrawal_rate: Share of the balance withdrawn each year
        profit_withdrawal_rate: Share of the average annual profit over the
            lookback window withdrawn each year
        profit_lookback_years: Number of years the profit average looks back
        capital_gains_tax: Capital gains tax rate, used by both tax models
        notional_tax_rate: Starting notional tax basis rate (notional model)
        notional_tax_rate_std_dev: Annual volatility of the basis rate
        is_notional: True for the notional-tax model, False for deferred gains
    """
    name: str
    balance_withdrawal_rate: float = 0.03
    profit_withdrawal_rate: float = 0.0
    profit_lookback_years: int = 1
    capital_gains_tax: float = 0.30
    notional_tax_rate: Optional[float] = None
    notional_tax_rate_std_dev: Optional[float] = None
    is_notional: bool = False

    def __post_init__(self):
        if not self.name:
            raise ConfigurationError("Scenario name cannot be empty")
        _check_rate("balance_withdrawal_rate", self.balance_withdrawal_rate)
        _check_rate("profit_withdrawal_rate", self.profit_withdrawal_rate)
        _check_rate("capital_gains_tax", self.capital_gains_tax)
        if self.profit_lookback_years < 1:
            raise ConfigurationError(
                f"profit_lookback_years must be at least 1, got {self.profit_lookback_years}"
            )
        if self.is_notional:
            if self.notional_tax_rate is None:
                raise ConfigurationError(
                    f"Scenario '{self.name}' uses the notional tax model but has no notional_tax_rate"
                )
            _check_rate("notional_tax_rate", self.notional_tax_rate)
        if self.notional_tax_rate_std_dev is not None:
            _check_non_negative("notional_tax_rate_std_dev", self.notional_tax_rate_std_dev)

    @property
    def tax_model(self) -> str:
        return TAX_MODEL_NOTIONAL if self.is_notional else TAX_MODEL_DEFERRED

    @property
    def initial_tax_rate(self) -> float:
        """Tax rate in effect before the first simulated year."""
        if self.is_notional:
            return min(1.0, max(NOTIONAL_TAX_RATE_MIN, self.notional_tax_rate))
        return self.capital_gains_tax


@dataclass(frozen=True)
class InputParameters:
    """Shared parameters of one Monte Carlo run.

    Attributes:
        initial_capital: Starting balance of every scenario
        start_year: Label of the first simulated year
        years_later: Horizon length in years
        simulation_count: Number of trajectories to run
        scenarios: Account configurations compared within each trajectory
        development_mean: Expected annual return (ignored if portfolio is set)
        development_std_dev: Annual return volatility
        inflation_mean: Expected annual inflation
        inflation_std_dev: Annual inflation volatility
        portfolio: Optional multi-asset portfolio replacing the scalar return
        seed: Optional seed for reproducible runs
    """
    initial_capital: float = 5_000_000.0
    start_year: int = 45
    years_later: int = 36
    simulation_count: int = 1000
    scenarios: Sequence[ScenarioConfig] = field(default_factory=tuple)
    development_mean: float = 0.08
    development_std_dev: float = 0.15
    inflation_mean: float = 0.02
    inflation_std_dev: float = 0.01
    portfolio: Optional[Portfolio] = None
    seed: Optional[int] = None

    def __post_init__(self):
        if self.years_later < 1:
            raise ConfigurationError(f"years_later must be at least 1, got {self.years_later}")
        if self.simulation_count < 1:
            raise ConfigurationError(
                f"simulation_count must be at least 1, got {self.simulation_count}"
            )
        if not self.scenarios:
            raise ConfigurationError("At least one scenario must be configured")
        names = [s.name for s in self.scenarios]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ConfigurationError(f"Scenario names must be unique: {duplicates}")
        _check_non_negative("initial_capital", self.initial_capital)
        _check_non_negative("development_std_dev", self.development_std_dev)
        _check_non_negative("inflation_std_dev", self.inflation_std_dev)
        if self.seed is not None and self.seed < 0:
            raise ConfigurationError(f"seed must be a non-negative integer, got {self.seed}")
        # frozen dataclass: store an immutable copy of the scenario list
        object.__setattr__(self, "scenarios", tuple(self.scenarios))

    @property
    def scenario_names(self) -> List[str]:
        return [s.name for s in self.scenarios]

    @classmethod
    def create_default(cls, **overrides) -> 'InputParameters':
        """Create parameters for the standard notional-tax vs deferred-gains comparison.

        Returns:
            InputParameters with an "ISK" (notional-tax) and a "VP"
            (deferred-gains) scenario using typical Swedish assumptions.
        """
        scenarios = [
            ScenarioConfig(
                name="ISK",
                balance_withdrawal_rate=0.03,
                capital_gains_tax=0.30,
                notional_tax_rate=0.0296,
                notional_tax_rate_std_dev=0.005,
                is_notional=True,
            ),
            ScenarioConfig(
                name="VP",
                balance_withdrawal_rate=0.03,
                capital_gains_tax=0.30,
                is_notional=False,
            ),
        ]
        overrides.setdefault("scenarios", scenarios)
        return cls(**overrides)


@dataclass
class MonteCarloConfig:
    """Execution settings for the Monte Carlo driver.

    Attributes:
        num_workers: Size of the worker thread pool. None uses the CPU count.
        chunk_size: Trajectories per work item. Each chunk owns its own
            random stream seeded from the base seed and the chunk index, so
            results do not depend on num_workers.
        progress_interval: Completed trajectories between progress reports
    """
    num_workers: Optional[int] = None
    chunk_size: int = 100
    progress_interval: int = 100

    def __post_init__(self):
        if self.num_workers is not None and self.num_workers < 1:
            raise ConfigurationError("num_workers must be at least 1")
        if self.chunk_size < 1:
            raise ConfigurationError("chunk_size must be at least 1")
        if self.progress_interval < 1:
            raise ConfigurationError("progress_interval must be at least 1")

    @property
    def resolved_workers(self) -> int:
        return self.num_workers or os.cpu_count() or 1

    @classmethod
    def from_env(cls) -> 'MonteCarloConfig':
        """Build a config from TAXSIM_NUM_WORKERS / TAXSIM_CHUNK_SIZE."""
        workers = os.getenv("TAXSIM_NUM_WORKERS")
        chunk_size = os.getenv("TAXSIM_CHUNK_SIZE")
        return cls(
            num_workers=int(workers) if workers else None,
            chunk_size=int(chunk_size) if chunk_size else 100,
        )


def _to_float(value: Any, default: float = 0.0) -> float:
    if value is None:
        return default
    if isinstance(value, (bool, int, float)):
        result = float(value)
    elif isinstance(value, str):
        try:
            result = float(value.strip())
        except ValueError:
            raise ConfigurationError(f"Expected a number, got '{value}'")
    else:
        raise ConfigurationError(f"Expected a number, got {type(value).__name__}")
    if not math.isfinite(result):
        raise ConfigurationError(f"Expected a finite number, got {value!r}")
    return result


def _to_int(value: Any, default: int) -> int:
    if value is None:
        return default
    return int(_to_float(value, default))


def _to_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ("1", "true", "yes", "on"):
            return True
        if text in ("0", "false", "no", "off", ""):
            return False
        raise ConfigurationError(f"Expected a boolean, got '{value}'")
    if isinstance(value, (int, float)):
        return value != 0
    raise ConfigurationError(f"Expected a boolean, got {type(value).__name__}")


def _pick(payload: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in payload and payload[key] is not None:
            return payload[key]
    return default


def _scenario_from_dict(raw: Mapping[str, Any]) -> ScenarioConfig:
    if not isinstance(raw, Mapping):
        raise ConfigurationError("Each scenario must be an object")
    notional_rate = _pick(raw, "notional_tax_rate", "notionalTaxRate", "iskTaxRate")
    notional_std = _pick(raw, "notional_tax_rate_std_dev", "notionalTaxRateStdDev", "iskTaxRateStdDev")
    return ScenarioConfig(
        name=str(_pick(raw, "name", default="")),
        balance_withdrawal_rate=_to_float(
            _pick(raw, "balance_withdrawal_rate", "balanceWithdrawalRate", "withdrawalRate"), 0.0),
        profit_withdrawal_rate=_to_float(
            _pick(raw, "profit_withdrawal_rate", "profitWithdrawalRate"), 0.0),
        profit_lookback_years=_to_int(
            _pick(raw, "profit_lookback_years", "profitLookbackYears"), 1),
        capital_gains_tax=_to_float(_pick(raw, "capital_gains_tax", "capitalGainsTax"), 0.30),
        notional_tax_rate=None if notional_rate is None else _to_float(notional_rate),
        notional_tax_rate_std_dev=None if notional_std is None else _to_float(notional_std),
        is_notional=_to_bool(_pick(raw, "is_notional", "isNotional", "isISK"), False),
    )


def _portfolio_from_dict(raw: Mapping[str, Any]) -> Portfolio:
    if not isinstance(raw, Mapping):
        raise ConfigurationError("portfolio must be an object")
    assets = []
    for item in raw.get("assets", []):
        assets.append(PortfolioAsset(
            name=str(_pick(item, "name", default="")),
            expected_return=_to_float(_pick(item, "expected_return", "expectedReturn")),
            volatility=_to_float(_pick(item, "volatility")),
            weight=_to_float(_pick(item, "weight")),
        ))
    matrix = _pick(raw, "correlation_matrix", "correlationMatrix")
    return Portfolio(assets, matrix)


def parameters_from_dict(payload: Mapping[str, Any]) -> InputParameters:
    """Convert a JSON-like mapping into validated InputParameters.

    Accepts snake_case or camelCase keys. Missing scenario lists fall back to
    the default notional-tax / deferred-gains pair.

    Raises:
        ConfigurationError: If any value is malformed
    """
    if not isinstance(payload, Mapping):
        raise ConfigurationError("Parameters must be an object")
    defaults = InputParameters.create_default()

    raw_scenarios = _pick(payload, "scenarios")
    if raw_scenarios is None:
        scenarios = defaults.scenarios
    elif isinstance(raw_scenarios, list):
        scenarios = [_scenario_from_dict(s) for s in raw_scenarios]
    else:
        raise ConfigurationError("scenarios must be a list")

    raw_portfolio = _pick(payload, "portfolio")
    seed = _pick(payload, "seed")

    return InputParameters(
        initial_capital=_to_float(
            _pick(payload, "initial_capital", "initialCapital"), defaults.initial_capital),
        start_year=_to_int(_pick(payload, "start_year", "startYear"), defaults.start_year),
        years_later=_to_int(_pick(payload, "years_later", "yearsLater"), defaults.years_later),
        simulation_count=_to_int(
            _pick(payload, "simulation_count", "simulationCount"), defaults.simulation_count),
        scenarios=scenarios,
        development_mean=_to_float(
            _pick(payload, "development_mean", "development"), defaults.development_mean),
        development_std_dev=_to_float(
            _pick(payload, "development_std_dev", "developmentStdDev"), defaults.development_std_dev),
        inflation_mean=_to_float(
            _pick(payload, "inflation_mean", "inflationRate"), defaults.inflation_mean),
        inflation_std_dev=_to_float(
            _pick(payload, "inflation_std_dev", "inflationStdDev"), defaults.inflation_std_dev),
        portfolio=None if raw_portfolio is None else _portfolio_from_dict(raw_portfolio),
        seed=None if seed is None else _to_int(seed, 0),
    )


def parameters_to_dict(params: InputParameters) -> Dict[str, Any]:
    """Plain-dict view of parameters, the inverse of parameters_from_dict."""
    result: Dict[str, Any] = {
        "initial_capital": params.initial_capital,
        "start_year": params.start_year,
        "years_later": params.years_later,
        "simulation_count": params.simulation_count,
        "development_mean": params.development_mean,
        "development_std_dev": params.development_std_dev,
        "inflation_mean": params.inflation_mean,
        "inflation_std_dev": params.inflation_std_dev,
        "seed": params.seed,
        "scenarios": [
            {
                "name": s.name,
                "balance_withdrawal_rate": s.balance_withdrawal_rate,
                "profit_withdrawal_rate": s.profit_withdrawal_rate,
                "profit_lookback_years": s.profit_lookback_years,
                "capital_gains_tax": s.capital_gains_tax,
                "notional_tax_rate": s.notional_tax_rate,
                "notional_tax_rate_std_dev": s.notional_tax_rate_std_dev,
                "is_notional": s.is_notional,
            }
            for s in params.scenarios
        ],
    }
    if params.portfolio is not None:
        result["portfolio"] = params.portfolio.to_dict()
    return result
