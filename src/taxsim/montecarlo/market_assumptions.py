# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Multi-asset portfolio assumptions.

This module contains the Portfolio class which holds weight, return,
volatility and correlation assumptions for the assets backing both accounts.
When a portfolio is configured, the shared yearly development is the
weight-combined return of correlated asset draws instead of a single scalar
draw.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence
import numpy as np

from .errors import ConfigurationError


@dataclass
class PortfolioAsset:
    """Return, volatility and weight assumptions for a single asset.

    Attributes:
        name: Asset identifier (e.g., "Global Equity")
        expected_return: Annual expected return as decimal (e.g., 0.08 for 8%)
        volatility: Annual standard deviation as decimal (e.g., 0.15 for 15%)
        weight: Share of the portfolio held in this asset
    """
    name: str
    expected_return: float
    volatility: float
    weight: float

    def __post_init__(self):
        if self.volatility < 0:
            raise ConfigurationError(f"Volatility cannot be negative: {self.volatility}")
        if self.weight < 0:
            raise ConfigurationError(f"Weight cannot be negative: {self.weight}")


class Portfolio:
    """Weighted set of assets with a correlation matrix.

    Example:
        >>> portfolio = Portfolio.create_default()
        >>> print(portfolio.asset_names)
        ['Global Equity', 'Bonds']
        >>> print(f"{portfolio.expected_return:.4f}")
        0.0640
    """

    def __init__(self,
                 assets: Sequence[PortfolioAsset],
                 correlation_matrix: Optional[Any] = None):
        """Initialize the portfolio.

        Args:
            assets: Assets in correlation matrix order
            correlation_matrix: NxN correlation matrix. If None, assets are
                treated as uncorrelated.

        Raises:
            ConfigurationError: If weights or matrix are inconsistent
        """
        self.assets: List[PortfolioAsset] = list(assets)
        n = len(self.assets)
        if correlation_matrix is None:
            correlation_matrix = np.eye(n)
        self.correlation_matrix = np.asarray(correlation_matrix, dtype=float)
        self._validate()
        self._covariance_matrix = self._compute_covariance_matrix()

    def _validate(self):
        """Validate that all inputs are consistent."""
        n = len(self.assets)
        if n == 0:
            raise ConfigurationError("Portfolio must contain at least one asset")

        if self.correlation_matrix.shape != (n, n):
            raise ConfigurationError(
                f"Correlation matrix shape {self.correlation_matrix.shape} "
                f"doesn't match {n} assets"
            )

        total = float(sum(a.weight for a in self.assets))
        if abs(total - 1.0) > 0.001:
            raise ConfigurationError(f"Portfolio weights must sum to 1.0, got {total}")

        if not np.allclose(self.correlation_matrix, self.correlation_matrix.T):
            raise ConfigurationError("Correlation matrix must be symmetric")

        if not np.allclose(np.diag(self.correlation_matrix), 1.0):
            raise ConfigurationError("Correlation matrix diagonal must be 1.0")

        if np.any(np.abs(self.correlation_matrix) > 1.0 + 1e-12):
            raise ConfigurationError("Correlations must be within [-1, 1]")

    def _compute_covariance_matrix(self) -> np.ndarray:
        """Compute covariance matrix from correlation and volatilities.

        Cov = diag(sigma) @ Corr @ diag(sigma)
        """
        vol_diag = np.diag(self.volatilities)
        return vol_diag @ self.correlation_matrix @ vol_diag

    @property
    def asset_names(self) -> List[str]:
        return [a.name for a in self.assets]

    @property
    def weights(self) -> np.ndarray:
        return np.array([a.weight for a in self.assets])

    @property
    def expected_returns(self) -> np.ndarray:
        return np.array([a.expected_return for a in self.assets])

    @property
    def volatilities(self) -> np.ndarray:
        return np.array([a.volatility for a in self.assets])

    @property
    def expected_return(self) -> float:
        """Portfolio expected return, E[R] = w^T * mu."""
        return float(self.weights @ self.expected_returns)

    @property
    def volatility(self) -> float:
        """Portfolio volatility, sigma = sqrt(w^T * Sigma * w)."""
        variance = float(self.weights @ self._covariance_matrix @ self.weights)
        return float(np.sqrt(max(variance, 0.0)))  # Guard against numerical issues

    def cholesky_factor(self) -> np.ndarray:
        """Lower-triangular L such that L @ L^T equals the correlation matrix.

        Raises:
            ConfigurationError: If the matrix cannot be made positive definite
        """
        matrix = ensure_positive_definite(self.correlation_matrix)
        try:
            return np.linalg.cholesky(matrix)
        except np.linalg.LinAlgError as e:
            raise ConfigurationError(
                "Correlation matrix is not positive definite."
            ) from e

    def to_dict(self) -> Dict[str, Any]:
        return {
            "assets": [
                {
                    "name": a.name,
                    "expected_return": a.expected_return,
                    "volatility": a.volatility,
                    "weight": a.weight,
                }
                for a in self.assets
            ],
            "correlation_matrix": self.correlation_matrix.tolist(),
        }

    @classmethod
    def create_default(cls) -> 'Portfolio':
        """Create a 60/40 equity/bond portfolio with typical assumptions."""
        assets = [
            PortfolioAsset("Global Equity", 0.08, 0.15, 0.6),
            PortfolioAsset("Bonds", 0.04, 0.06, 0.4),
        ]
        corr = np.array([
            [1.00, 0.20],
            [0.20, 1.00],
        ])
        return cls(assets, corr)

    def __repr__(self) -> str:
        return f"Portfolio(assets={self.asset_names})"


def ensure_positive_definite(matrix: np.ndarray, epsilon: float = 1e-8) -> np.ndarray:
    """Return ``matrix`` unchanged if Cholesky succeeds, else a repaired copy.

    Hand-entered correlations can be individually valid yet jointly
    inconsistent. Negative eigenvalues are raised to ``epsilon`` and the
    result is rescaled back to a unit diagonal.
    """
    try:
        np.linalg.cholesky(matrix)
        return matrix
    except np.linalg.LinAlgError:
        pass

    values, vectors = np.linalg.eigh(matrix)
    repaired = (vectors * np.maximum(values, epsilon)) @ vectors.T
    scale = np.sqrt(np.diag(repaired))
    return repaired / np.outer(scale, scale)
