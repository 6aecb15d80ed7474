# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Per-scenario yearly evolution.

This module advances one account scenario by one simulated year: it draws the
notional tax rate random walk, computes balance- and profit-based withdrawals,
applies the scenario's tax model, and updates the running balance, tax and
drawdown bookkeeping held in ScenarioState.
"""

from dataclasses import dataclass, field
from typing import List

from .config import NOTIONAL_TAX_RATE_MIN, ScenarioConfig
from .return_generator import NormalSampler


@dataclass
class ScenarioYearlyData:
    """Values of one scenario for one simulated year.

    Attributes:
        start_balance: Balance at the start of the year
        balance: Balance at the end of the year, after growth, withdrawal and tax
        withdrawn: Nominal amount withdrawn during the year
        tax: Tax charged during the year
        cumulative_tax: Tax charged so far including this year
        liquidation_value: Net amount if the account were liquidated at year end
        taxation_degree: cumulative_tax / liquidation_value
        withdrawn_real: Withdrawal deflated by cumulative inflation
        withdrawal_rate: withdrawn / start_balance
        tax_rate: Tax rate in effect (drifts for the notional model)
        cumulative_real_withdrawal: Real withdrawals so far
        cumulative_nominal_withdrawal: Nominal withdrawals so far
        drawdown: 1 - balance / peak balance seen so far
    """
    start_balance: float
    balance: float
    withdrawn: float
    tax: float
    cumulative_tax: float
    liquidation_value: float
    taxation_degree: float
    withdrawn_real: float
    withdrawal_rate: float
    tax_rate: float
    cumulative_real_withdrawal: float
    cumulative_nominal_withdrawal: float
    drawdown: float


@dataclass
class ScenarioState:
    """Mutable state of one scenario within one trajectory.

    Owned by the trajectory runner and discarded once the trajectory summary
    has been extracted.
    """
    balance: float
    initial_capital: float
    current_tax_rate: float
    cumulative_tax: float = 0.0
    cumulative_real_withdrawal: float = 0.0
    cumulative_nominal_withdrawal: float = 0.0
    balance_history: List[float] = field(default_factory=list)
    peak_balance: float = 0.0
    max_drawdown: float = 0.0
    drawdown_period: int = 0
    max_drawdown_period: int = 0

    @classmethod
    def initial(cls, config: ScenarioConfig, initial_capital: float) -> 'ScenarioState':
        return cls(
            balance=initial_capital,
            initial_capital=initial_capital,
            current_tax_rate=config.initial_tax_rate,
            balance_history=[initial_capital],
            peak_balance=initial_capital,
        )

    @property
    def years_of_history(self) -> int:
        return len(self.balance_history) - 1


def clamp_tax_rate(rate: float) -> float:
    return min(1.0, max(NOTIONAL_TAX_RATE_MIN, rate))


def profit_withdrawal(state: ScenarioState, config: ScenarioConfig, year_index: int) -> float:
    """Withdrawal based on average annual profit over the lookback window.

    Zero in the first year. The window shrinks to the available history, and a
    negative average profit never produces a negative withdrawal.
    """
    if year_index == 0 or state.years_of_history < 1:
        return 0.0
    lookback = min(config.profit_lookback_years, state.years_of_history)
    start_of_window = state.balance_history[-1 - lookback]
    average_annual_profit = (state.balance - start_of_window) / lookback
    return max(0.0, average_annual_profit * config.profit_withdrawal_rate)


def evolve_scenario(state: ScenarioState,
                    config: ScenarioConfig,
                    development: float,
                    inflation_factor: float,
                    year_index: int,
                    sampler: NormalSampler) -> ScenarioYearlyData:
    """Advance a scenario by one year.

    Args:
        state: Scenario state, updated in place
        config: Scenario configuration
        development: The year's shared return draw
        inflation_factor: Cumulative inflation factor including this year
        year_index: Zero-based year within the trajectory
        sampler: This scenario's own stream for the tax rate random walk

    Returns:
        The scenario's values for this year
    """
    if config.is_notional and config.notional_tax_rate_std_dev:
        delta = sampler.sample(0.0, config.notional_tax_rate_std_dev)
        state.current_tax_rate = clamp_tax_rate(state.current_tax_rate + delta)

    start_balance = state.balance
    withdrawn = start_balance * config.balance_withdrawal_rate
    withdrawn += profit_withdrawal(state, config, year_index)
    withdrawal_rate = withdrawn / start_balance if start_balance > 0 else 0.0

    grown = start_balance * (1 + development)
    if config.is_notional:
        # Taxed on the opening balance, nothing deferred
        tax = start_balance * state.current_tax_rate * config.capital_gains_tax
        balance = max(0.0, grown - withdrawn - tax)
        liquidation_value = balance
        tax_rate = state.current_tax_rate
    else:
        # Only the withdrawn part is realized; the rest stays deferred
        tax = withdrawn * config.capital_gains_tax
        balance = max(0.0, grown - withdrawn)
        unrealized_gain = balance - state.initial_capital
        liquidation_value = balance - max(0.0, unrealized_gain) * config.capital_gains_tax
        tax_rate = config.capital_gains_tax

    state.cumulative_tax += tax
    taxation_degree = state.cumulative_tax / liquidation_value if liquidation_value > 0 else 0.0

    withdrawn_real = withdrawn / inflation_factor if inflation_factor > 0 else 0.0
    state.cumulative_real_withdrawal += withdrawn_real
    state.cumulative_nominal_withdrawal += withdrawn

    state.peak_balance = max(state.peak_balance, balance)
    drawdown = 1.0 - balance / state.peak_balance if state.peak_balance > 0 else 0.0
    state.max_drawdown = max(state.max_drawdown, drawdown)
    state.drawdown_period = state.drawdown_period + 1 if drawdown > 0 else 0
    state.max_drawdown_period = max(state.max_drawdown_period, state.drawdown_period)

    state.balance = balance
    state.balance_history.append(balance)

    return ScenarioYearlyData(
        start_balance=start_balance,
        balance=balance,
        withdrawn=withdrawn,
        tax=tax,
        cumulative_tax=state.cumulative_tax,
        liquidation_value=liquidation_value,
        taxation_degree=taxation_degree,
        withdrawn_real=withdrawn_real,
        withdrawal_rate=withdrawal_rate,
        tax_rate=tax_rate,
        cumulative_real_withdrawal=state.cumulative_real_withdrawal,
        cumulative_nominal_withdrawal=state.cumulative_nominal_withdrawal,
        drawdown=drawdown,
    )
