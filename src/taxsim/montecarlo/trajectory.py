# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Single-trajectory runner.

One trajectory is a complete simulated path over the horizon for every
configured scenario. All scenarios in a trajectory see the same yearly
development and inflation draws, which is what makes them comparable.
"""

from dataclasses import dataclass, field, fields
from typing import Dict, List, Optional

from .config import InputParameters
from .errors import ConfigurationError
from .return_generator import NormalSampler, PortfolioReturnGenerator
from .scenario import ScenarioState, ScenarioYearlyData, evolve_scenario

# Keeps the cumulative inflation factor strictly positive under extreme draws
MIN_INFLATION_GROWTH = 1e-6


@dataclass
class YearlyRecord:
    """Shared draws and per-scenario values for one simulated year."""
    year_index: int
    year: int
    development: float
    inflation_rate: float
    inflation: float
    scenarios: Dict[str, ScenarioYearlyData] = field(default_factory=dict)


@dataclass
class ScenarioSummary:
    """End-of-horizon outcome of one scenario in one trajectory.

    Attributes:
        liquidation_value: Liquidation value after the last year
        first_year_liquidation_value: Liquidation value after the first year
        paid_tax: Cumulative tax paid over the horizon
        taxation_degree: paid_tax / liquidation_value
        real_withdrawal: Inflation-adjusted withdrawal in the last year
        first_year_withdrawal: Inflation-adjusted withdrawal in the first year
        accumulated_real_withdrawal: Sum of real withdrawals
        accumulated_nominal_withdrawal: Sum of nominal withdrawals
        average_tax_rate: Arithmetic mean of the yearly effective tax rate
        max_drawdown: Largest peak-to-trough fall of the balance
        max_drawdown_period: Longest run of consecutive years below the peak
    """
    liquidation_value: float
    first_year_liquidation_value: float
    paid_tax: float
    taxation_degree: float
    real_withdrawal: float
    first_year_withdrawal: float
    accumulated_real_withdrawal: float
    accumulated_nominal_withdrawal: float
    average_tax_rate: float
    max_drawdown: float
    max_drawdown_period: float


# Fields reduced by the statistics aggregator, in declaration order
SCENARIO_SUMMARY_FIELDS = tuple(f.name for f in fields(ScenarioSummary))
SHARED_SUMMARY_FIELDS = ("average_development", "average_inflation_rate")


@dataclass
class Summary:
    """Per-scenario summaries plus horizon averages of the shared draws."""
    scenarios: Dict[str, ScenarioSummary]
    average_development: float
    average_inflation_rate: float


@dataclass
class Trajectory:
    """One complete simulated path.

    Attributes:
        index: Position of this trajectory in the full run
        yearly_data: One record per simulated year, chronological
        summary: Outcome of the trajectory
    """
    index: int
    yearly_data: List[YearlyRecord]
    summary: Summary

    @property
    def scenario_names(self) -> List[str]:
        return list(self.summary.scenarios.keys())


def run_single_simulation(params: InputParameters,
                          sampler: NormalSampler,
                          return_generator: Optional[PortfolioReturnGenerator] = None,
                          index: int = 0) -> Trajectory:
    """Run one trajectory.

    Args:
        params: Shared simulation parameters
        sampler: Random source for this trajectory
        return_generator: Correlated portfolio generator. Built from
            params.portfolio when omitted and a portfolio is configured.
        index: Position of the trajectory in the run

    Returns:
        Trajectory with one YearlyRecord per year and its Summary

    Raises:
        ConfigurationError: If the horizon is not positive
    """
    if params.years_later < 1:
        raise ConfigurationError(f"years_later must be at least 1, got {params.years_later}")
    if return_generator is None and params.portfolio is not None:
        return_generator = PortfolioReturnGenerator(params.portfolio)

    # Tax rate random walks get their own streams so one scenario's
    # configuration never shifts the shared macro draws
    tax_samplers = sampler.spawn(len(params.scenarios))
    states = {
        s.name: ScenarioState.initial(s, params.initial_capital) for s in params.scenarios
    }

    yearly_data: List[YearlyRecord] = []
    cumulative_inflation = 1.0

    for i in range(params.years_later):
        if return_generator is not None:
            development = return_generator.generate_development(sampler)
        else:
            development = sampler.sample(params.development_mean, params.development_std_dev)
        inflation_rate = sampler.sample(params.inflation_mean, params.inflation_std_dev)
        cumulative_inflation *= max(1 + inflation_rate, MIN_INFLATION_GROWTH)

        record = YearlyRecord(
            year_index=i,
            year=params.start_year + i,
            development=development,
            inflation_rate=inflation_rate,
            inflation=cumulative_inflation,
        )
        for scenario, tax_sampler in zip(params.scenarios, tax_samplers):
            record.scenarios[scenario.name] = evolve_scenario(
                states[scenario.name], scenario, development, cumulative_inflation, i, tax_sampler
            )
        yearly_data.append(record)

    return Trajectory(index=index, yearly_data=yearly_data,
                      summary=_summarize(params, yearly_data, states))


def _summarize(params: InputParameters,
               yearly_data: List[YearlyRecord],
               states: Dict[str, ScenarioState]) -> Summary:
    n = len(yearly_data)
    first, last = yearly_data[0], yearly_data[-1]

    scenarios = {}
    for scenario in params.scenarios:
        name = scenario.name
        final = last.scenarios[name]
        state = states[name]
        scenarios[name] = ScenarioSummary(
            liquidation_value=final.liquidation_value,
            first_year_liquidation_value=first.scenarios[name].liquidation_value,
            paid_tax=final.cumulative_tax,
            taxation_degree=final.taxation_degree,
            real_withdrawal=final.withdrawn_real,
            first_year_withdrawal=first.scenarios[name].withdrawn_real,
            accumulated_real_withdrawal=final.cumulative_real_withdrawal,
            accumulated_nominal_withdrawal=final.cumulative_nominal_withdrawal,
            average_tax_rate=sum(y.scenarios[name].tax_rate for y in yearly_data) / n,
            max_drawdown=state.max_drawdown,
            max_drawdown_period=float(state.max_drawdown_period),
        )

    return Summary(
        scenarios=scenarios,
        average_development=sum(y.development for y in yearly_data) / n,
        average_inflation_rate=sum(y.inflation_rate for y in yearly_data) / n,
    )
