# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Random draws for the simulation engine.

NormalSampler produces Gaussian deviates with the Box-Muller transform over a
seedable uniform source. PortfolioReturnGenerator turns independent deviates
into correlated asset returns using Cholesky decomposition and combines them
by portfolio weight into one yearly development figure.
"""

import math
from typing import List, Optional
import numpy as np

from .market_assumptions import Portfolio


class NormalSampler:
    """Draws normal deviates from a seedable uniform source.

    Example:
        >>> sampler = NormalSampler.from_seed(42)
        >>> x = sampler.sample(0.08, 0.15)
    """

    def __init__(self, rng: Optional[np.random.Generator] = None):
        """Initialize the sampler.

        Args:
            rng: Uniform source. If None, a freshly OS-seeded generator is used.
        """
        self.rng = rng if rng is not None else np.random.default_rng()

    @classmethod
    def from_seed(cls, seed: Optional[int]) -> 'NormalSampler':
        return cls(np.random.default_rng(seed))

    def spawn(self, n: int) -> List['NormalSampler']:
        """Independent child samplers; spawning does not advance this stream."""
        return [NormalSampler(child) for child in self.rng.spawn(n)]

    def _uniform(self) -> float:
        return float(self.rng.random())

    def standard_normal(self) -> float:
        """Standard normal deviate, z = sqrt(-2 ln u1) * cos(2 pi u2)."""
        u1 = self._uniform()
        # random() is on [0, 1); redraw to keep ln(u1) finite
        while u1 <= 0.0:
            u1 = self._uniform()
        u2 = self._uniform()
        return math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)

    def sample(self, mean: float, std_dev: float) -> float:
        """Draw from N(mean, std_dev^2)."""
        return mean + self.standard_normal() * std_dev

    def standard_normals(self, n: int) -> np.ndarray:
        return np.array([self.standard_normal() for _ in range(n)])


class PortfolioReturnGenerator:
    """Generates correlated asset returns and the weighted portfolio return.

    Example:
        >>> portfolio = Portfolio.create_default()
        >>> gen = PortfolioReturnGenerator(portfolio)
        >>> development = gen.generate_development(NormalSampler.from_seed(1))
    """

    def __init__(self, portfolio: Portfolio):
        """Initialize the return generator.

        Args:
            portfolio: Assets, weights and correlation matrix

        Raises:
            ConfigurationError: If the correlation matrix is not positive definite
        """
        self.portfolio = portfolio
        # L such that L @ L^T = correlation_matrix
        self._cholesky = portfolio.cholesky_factor()
        self._means = portfolio.expected_returns
        self._vols = portfolio.volatilities
        self._weights = portfolio.weights

    def generate_development(self, sampler: NormalSampler) -> float:
        """Portfolio return for one year, R = sum_i w_i * R_i."""
        return float(self._weights @ self._asset_return_vector(sampler))

    def _asset_return_vector(self, sampler: NormalSampler) -> np.ndarray:
        uncorrelated_z = sampler.standard_normals(len(self._means))
        # z_corr = L @ z_uncorr
        correlated_z = self._cholesky @ uncorrelated_z
        # R_i = mu_i + sigma_i * z_i
        return self._means + self._vols * correlated_z
