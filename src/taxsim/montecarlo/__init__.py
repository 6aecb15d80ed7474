# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Monte Carlo simulation module for tax regime comparison.

This module provides the random sampler, the per-scenario yearly evolution,
the single-trajectory runner, the parallel driver and the statistics over the
resulting trajectories.
"""

from .errors import ConfigurationError
from .config import (
    InputParameters,
    MonteCarloConfig,
    ScenarioConfig,
    parameters_from_dict,
    parameters_to_dict,
)
from .market_assumptions import Portfolio, PortfolioAsset
from .return_generator import NormalSampler, PortfolioReturnGenerator
from .scenario import ScenarioState, ScenarioYearlyData, evolve_scenario
from .trajectory import ScenarioSummary, Summary, Trajectory, YearlyRecord, run_single_simulation
from .simulator import MonteCarloSimulator, run_monte_carlo_simulation
from .results import (
    MonteCarloResults,
    ScenarioComparison,
    SimulationStatistics,
    TimeSeriesPoint,
    advantage_probability,
    calculate_comparison_statistics,
    calculate_statistics,
    compare_scenarios,
    extract_time_series,
    select_representative,
    yearly_percentiles,
)

__all__ = [
    'ConfigurationError',
    'InputParameters',
    'MonteCarloConfig',
    'ScenarioConfig',
    'parameters_from_dict',
    'parameters_to_dict',
    'Portfolio',
    'PortfolioAsset',
    'NormalSampler',
    'PortfolioReturnGenerator',
    'ScenarioState',
    'ScenarioYearlyData',
    'evolve_scenario',
    'ScenarioSummary',
    'Summary',
    'Trajectory',
    'YearlyRecord',
    'run_single_simulation',
    'MonteCarloSimulator',
    'run_monte_carlo_simulation',
    'MonteCarloResults',
    'ScenarioComparison',
    'SimulationStatistics',
    'TimeSeriesPoint',
    'advantage_probability',
    'calculate_comparison_statistics',
    'calculate_statistics',
    'compare_scenarios',
    'extract_time_series',
    'select_representative',
    'yearly_percentiles',
]
