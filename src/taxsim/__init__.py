# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Tax Regime Monte Carlo Engine

Simulates many random market paths and compares how an investment account
taxed on a notional yield (ISK) and one taxed on realized gains (VP) evolve
along each path under the same returns and inflation.

Example usage:
    from taxsim.montecarlo import InputParameters, MonteCarloSimulator

    params = InputParameters.create_default(simulation_count=500, seed=42)
    results = MonteCarloSimulator().run(params)
    print(results.statistics_frame())
"""

from .__meta__ import __version__

__all__ = ['__version__']
