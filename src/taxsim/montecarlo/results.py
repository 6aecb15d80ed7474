# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Monte Carlo simulation results aggregation and analysis.

This module reduces the trajectories of a run to mean, standard deviation and
nearest-rank percentile tables, selects the trajectory closest to the median
outcome, and flattens yearly values into a point cloud for charts. The
MonteCarloResults class wraps these functions around one run.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence
import numpy as np
import pandas as pd

from .trajectory import (
    SCENARIO_SUMMARY_FIELDS,
    SHARED_SUMMARY_FIELDS,
    ScenarioSummary,
    Summary,
    Trajectory,
)

if TYPE_CHECKING:
    from .config import InputParameters

# Nearest-rank percentile levels, keyed by the statistic name
PERCENTILES = {
    "percentile5": 0.05,
    "percentile25": 0.25,
    "median": 0.50,
    "percentile75": 0.75,
    "percentile95": 0.95,
}

STATISTIC_NAMES = ("mean", "std_dev") + tuple(PERCENTILES)

# Metrics compared when looking for the most typical trajectory
REPRESENTATIVE_METRICS = (
    "liquidation_value",
    "real_withdrawal",
    "accumulated_real_withdrawal",
    "max_drawdown",
)

# Floor for the z-score denominator when a metric does not vary
MIN_STD_DEV = 1e-9

SHARED_LABEL = "shared"


def nearest_rank(sorted_values: Sequence[float], p: float) -> float:
    """Value at index floor(n * p) of an ascending sequence, clamped to [0, n-1]."""
    n = len(sorted_values)
    idx = min(max(int(n * p), 0), n - 1)
    return float(sorted_values[idx])


def field_statistics(values: Sequence[float]) -> Dict[str, float]:
    """Mean, population standard deviation and nearest-rank percentiles."""
    arr = np.sort(np.asarray(values, dtype=float))
    result = {
        "mean": float(np.mean(arr)),
        "std_dev": float(np.std(arr)),
    }
    for name, p in PERCENTILES.items():
        result[name] = nearest_rank(arr, p)
    return result


@dataclass
class SimulationStatistics:
    """Summary-shaped tables, one per statistic, aggregated over trajectories."""
    mean: Summary
    std_dev: Summary
    percentile5: Summary
    percentile25: Summary
    median: Summary
    percentile75: Summary
    percentile95: Summary
    count: int = 0

    def get(self, statistic: str) -> Summary:
        if statistic not in STATISTIC_NAMES:
            raise ValueError(f"Unknown statistic '{statistic}'. Available: {list(STATISTIC_NAMES)}")
        return getattr(self, statistic)

    @property
    def scenario_names(self) -> List[str]:
        return list(self.mean.scenarios.keys())

    def to_frame(self) -> pd.DataFrame:
        """Statistics as a DataFrame indexed by (scenario, field), one column per statistic.

        Shared horizon averages are listed under the "shared" scenario label.
        """
        rows = []
        for name in self.scenario_names:
            for field_name in SCENARIO_SUMMARY_FIELDS:
                row = {"scenario": name, "field": field_name}
                for stat in STATISTIC_NAMES:
                    row[stat] = getattr(self.get(stat).scenarios[name], field_name)
                rows.append(row)
        for field_name in SHARED_SUMMARY_FIELDS:
            row = {"scenario": SHARED_LABEL, "field": field_name}
            for stat in STATISTIC_NAMES:
                row[stat] = getattr(self.get(stat), field_name)
            rows.append(row)
        return pd.DataFrame(rows).set_index(["scenario", "field"])


def _scenario_names(trajectories: Sequence[Trajectory]) -> List[str]:
    names = trajectories[0].scenario_names
    for trajectory in trajectories[1:]:
        if set(trajectory.scenario_names) != set(names):
            raise ValueError(
                f"Trajectory {trajectory.index} has scenarios {trajectory.scenario_names}, "
                f"expected {names}"
            )
    return names


def calculate_statistics(trajectories: Sequence[Trajectory]) -> Optional[SimulationStatistics]:
    """Reduce the trajectory summaries to per-field statistics.

    Args:
        trajectories: Trajectories sharing the same scenario names

    Returns:
        SimulationStatistics, or None if there are no trajectories

    Raises:
        ValueError: If trajectories have different scenario sets
    """
    if not trajectories:
        return None
    names = _scenario_names(trajectories)
    summaries = [t.summary for t in trajectories]

    per_scenario = {
        name: {
            field_name: field_statistics([getattr(s.scenarios[name], field_name) for s in summaries])
            for field_name in SCENARIO_SUMMARY_FIELDS
        }
        for name in names
    }
    shared = {
        field_name: field_statistics([getattr(s, field_name) for s in summaries])
        for field_name in SHARED_SUMMARY_FIELDS
    }

    tables = {}
    for stat in STATISTIC_NAMES:
        tables[stat] = Summary(
            scenarios={
                name: ScenarioSummary(**{f: per_scenario[name][f][stat] for f in SCENARIO_SUMMARY_FIELDS})
                for name in names
            },
            average_development=shared["average_development"][stat],
            average_inflation_rate=shared["average_inflation_rate"][stat],
        )
    return SimulationStatistics(count=len(trajectories), **tables)


def select_representative(trajectories: Sequence[Trajectory],
                          stats: Optional[SimulationStatistics]) -> Optional[int]:
    """Position of the trajectory nearest the median outcome.

    Each metric in REPRESENTATIVE_METRICS is summed across scenarios and
    turned into a z-score against the summed median and standard deviation.
    The trajectory with the smallest sum of squared z-scores wins; ties go to
    the earliest position.

    Returns:
        Position in ``trajectories`` (see Trajectory.index for the run-wide
        index), or None if there are no trajectories or scenarios
    """
    if not trajectories or stats is None:
        return None
    names = stats.scenario_names
    if not names:
        return None

    distances = np.zeros(len(trajectories))
    for metric in REPRESENTATIVE_METRICS:
        values = np.array([
            sum(getattr(t.summary.scenarios[name], metric) for name in names)
            for t in trajectories
        ])
        center = sum(getattr(stats.median.scenarios[name], metric) for name in names)
        spread = sum(getattr(stats.std_dev.scenarios[name], metric) for name in names)
        z = (values - center) / max(spread, MIN_STD_DEV)
        distances += z ** 2
    return int(np.argmin(distances))


@dataclass
class TimeSeriesPoint:
    """One trajectory's value of every scenario in one year."""
    trajectory_id: int
    year: int
    scenarios: Dict[str, float] = field(default_factory=dict)


def extract_time_series(trajectories: Sequence[Trajectory],
                        value_field: str = "liquidation_value") -> List[TimeSeriesPoint]:
    """Flatten yearly per-scenario values of all trajectories into points."""
    points = []
    for trajectory in trajectories:
        for record in trajectory.yearly_data:
            points.append(TimeSeriesPoint(
                trajectory_id=trajectory.index,
                year=record.year,
                scenarios={name: getattr(data, value_field) for name, data in record.scenarios.items()},
            ))
    return points


def yearly_percentiles(trajectories: Sequence[Trajectory],
                       scenario: str,
                       value_field: str = "liquidation_value") -> Dict[str, List[float]]:
    """Nearest-rank percentile bands of a yearly value, one entry per year."""
    if not trajectories:
        return {name: [] for name in PERCENTILES}
    num_years = len(trajectories[0].yearly_data)
    bands: Dict[str, List[float]] = {name: [] for name in PERCENTILES}
    for year_idx in range(num_years):
        values = sorted(getattr(t.yearly_data[year_idx].scenarios[scenario], value_field)
                        for t in trajectories)
        for name, p in PERCENTILES.items():
            bands[name].append(nearest_rank(values, p))
    return bands


@dataclass
class ScenarioComparison:
    """Differences between two scenarios of one trajectory (first minus second).

    Percentages are relative to the first scenario and are 0 when its value is 0.
    """
    liquidation_value_diff: float
    liquidation_value_diff_percent: float
    paid_tax_diff: float
    paid_tax_diff_percent: float
    taxation_degree_diff: float
    taxation_degree_diff_percent: float
    real_withdrawal_diff: float
    real_withdrawal_diff_percent: float


COMPARISON_FIELDS = ("liquidation_value", "paid_tax", "taxation_degree", "real_withdrawal")


def compare_scenarios(summary: Summary, first: str, second: str) -> ScenarioComparison:
    a = summary.scenarios[first]
    b = summary.scenarios[second]
    values = {}
    for name in COMPARISON_FIELDS:
        base = getattr(a, name)
        diff = base - getattr(b, name)
        values[f"{name}_diff"] = diff
        values[f"{name}_diff_percent"] = diff / base if base != 0 else 0.0
    return ScenarioComparison(**values)


def calculate_comparison_statistics(trajectories: Sequence[Trajectory],
                                    first: str,
                                    second: str) -> Dict[str, Dict[str, float]]:
    """Statistics of every ScenarioComparison field across trajectories.

    Returns:
        Dict mapping comparison field to its mean, std_dev and percentiles
    """
    if not trajectories:
        return {}
    comparisons = [compare_scenarios(t.summary, first, second) for t in trajectories]
    field_names = list(ScenarioComparison.__dataclass_fields__)
    return {
        name: field_statistics([getattr(c, name) for c in comparisons])
        for name in field_names
    }


def advantage_probability(trajectories: Sequence[Trajectory], first: str, second: str) -> float:
    """Share of trajectories where ``first`` ends with the higher liquidation value."""
    if not trajectories:
        return 0.0
    wins = sum(
        1 for t in trajectories
        if t.summary.scenarios[first].liquidation_value > t.summary.scenarios[second].liquidation_value
    )
    return wins / len(trajectories)


class MonteCarloResults:
    """Aggregates and analyzes the trajectories of one Monte Carlo run.

    Example:
        >>> results = simulator.run(params)
        >>> stats = results.statistics()
        >>> typical = results.representative_trajectory()
        >>> bands = results.get_percentile_data("ISK")
    """

    def __init__(self,
                 trajectories: List[Trajectory],
                 params: Optional['InputParameters'] = None,
                 cancelled: bool = False):
        """Initialize with simulation results.

        Args:
            trajectories: Completed trajectories in index order
            params: Parameters the run used
            cancelled: True if the run stopped before simulation_count
        """
        self.trajectories = trajectories
        self.params = params
        self.cancelled = cancelled
        self.num_simulations = len(trajectories)
        self._statistics: Optional[SimulationStatistics] = None

    def statistics(self) -> Optional[SimulationStatistics]:
        if self._statistics is None:
            self._statistics = calculate_statistics(self.trajectories)
        return self._statistics

    def representative_index(self) -> Optional[int]:
        return select_representative(self.trajectories, self.statistics())

    def representative_trajectory(self) -> Optional[Trajectory]:
        idx = self.representative_index()
        return None if idx is None else self.trajectories[idx]

    def time_series(self, value_field: str = "liquidation_value") -> List[TimeSeriesPoint]:
        return extract_time_series(self.trajectories, value_field)

    def comparison_statistics(self, first: str, second: str) -> Dict[str, Dict[str, float]]:
        return calculate_comparison_statistics(self.trajectories, first, second)

    def advantage_probability(self, first: str, second: str) -> float:
        return advantage_probability(self.trajectories, first, second)

    def get_percentile_data(self, scenario: str,
                            value_field: str = "liquidation_value") -> Dict[str, List[float]]:
        """Get percentile bands for a yearly value of one scenario.

        Raises:
            ValueError: If scenario or field is unknown
        """
        if self.num_simulations == 0:
            return {name: [] for name in PERCENTILES}
        first_year = self.trajectories[0].yearly_data[0]
        if scenario not in first_year.scenarios:
            raise ValueError(
                f"Scenario '{scenario}' not found. Available: {list(first_year.scenarios)}"
            )
        if not hasattr(first_year.scenarios[scenario], value_field):
            raise ValueError(f"Unknown yearly field '{value_field}'")
        return yearly_percentiles(self.trajectories, scenario, value_field)

    def get_percentile_df(self, scenario: str,
                          value_field: str = "liquidation_value") -> pd.DataFrame:
        """Get percentile data as a DataFrame with years as index."""
        df = pd.DataFrame(self.get_percentile_data(scenario, value_field))
        df['Year'] = self.get_years()
        return df.set_index('Year')

    def get_years(self) -> List[int]:
        if self.num_simulations == 0:
            return []
        return [record.year for record in self.trajectories[0].yearly_data]

    def get_final_values(self, scenario: str, summary_field: str = "liquidation_value") -> np.ndarray:
        """Summary value of one scenario from every trajectory."""
        return np.array([getattr(t.summary.scenarios[scenario], summary_field)
                         for t in self.trajectories])

    def statistics_frame(self) -> pd.DataFrame:
        stats = self.statistics()
        if stats is None:
            return pd.DataFrame()
        return stats.to_frame()

    def time_series_frame(self, value_field: str = "liquidation_value") -> pd.DataFrame:
        """Point cloud as a long DataFrame: trajectory_id, year, scenario, value."""
        rows = [
            {"trajectory_id": p.trajectory_id, "year": p.year, "scenario": name, "value": value}
            for p in self.time_series(value_field)
            for name, value in p.scenarios.items()
        ]
        return pd.DataFrame(rows, columns=["trajectory_id", "year", "scenario", "value"])

    def yearly_frame(self, position: int) -> pd.DataFrame:
        """Yearly records of one trajectory, one row per (year, scenario)."""
        rows = []
        for record in self.trajectories[position].yearly_data:
            for name, data in record.scenarios.items():
                row = {
                    "year": record.year,
                    "development": record.development,
                    "inflation_rate": record.inflation_rate,
                    "inflation": record.inflation,
                    "scenario": name,
                }
                row.update(vars(data))
                rows.append(row)
        return pd.DataFrame(rows)

    def __repr__(self) -> str:
        return (f"MonteCarloResults(num_simulations={self.num_simulations}, "
                f"cancelled={self.cancelled})")
