"""
Factor correlation with Cholesky decomposition.

Transforms independent standard normal draws into draws with the
correlation structure of the cross-asset model's Brownian drivers.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field

import numpy as np

from xva_cube._types import FloatArray


@dataclass(frozen=True)
class FactorCorrelation:
    """
    Correlation matrix of named model factors and its factorisation.

    For a positive definite matrix the factor is the lower triangular
    Cholesky factor L with L Lᵀ = Σ. Singular (semi-definite) matrices, e.g.
    perfectly correlated factors, fall back to the eigen-decomposition
    square root.

    Attributes
    ----------
    factors : tuple[str, ...]
        Factor names such as ``IR:USD`` or ``FX:EUR``
    matrix : FloatArray
        Symmetric correlation matrix with unit diagonal

    Example
    -------
    >>> corr = FactorCorrelation(("IR:USD", "IR:EUR"), np.array([[1.0, 0.7], [0.7, 1.0]]))
    >>> z = corr.correlate(np.random.default_rng(1).standard_normal((10000, 2)))
    >>> round(np.corrcoef(z.T)[0, 1], 1)
    0.7
    """

    factors: tuple[str, ...]
    matrix: FloatArray
    _factor: FloatArray = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        """Validate the matrix and compute its factor."""
        matrix = np.array(self.matrix, dtype=float)
        n = len(self.factors)
        if matrix.shape != (n, n):
            raise ValueError(f"Correlation matrix shape {matrix.shape} does not match {n} factors")
        if not np.allclose(matrix, matrix.T):
            raise ValueError("Correlation matrix must be symmetric")
        if not np.allclose(np.diag(matrix), 1.0):
            raise ValueError("Correlation matrix must have a unit diagonal")
        if np.any(np.abs(matrix) > 1.0 + 1e-12):
            raise ValueError("Correlations must be in [-1, 1]")

        eigenvalues, eigenvectors = np.linalg.eigh(matrix)
        if np.any(eigenvalues < -1e-10):
            raise ValueError(
                f"Correlation matrix is not positive semi-definite. "
                f"Eigenvalues: {eigenvalues}. "
                f"Check that correlations are consistent."
            )
        try:
            factor = np.linalg.cholesky(matrix)
        except np.linalg.LinAlgError:
            factor = eigenvectors * np.sqrt(np.clip(eigenvalues, 0.0, None))

        matrix.flags.writeable = False
        factor.flags.writeable = False
        object.__setattr__(self, "factors", tuple(self.factors))
        object.__setattr__(self, "matrix", matrix)
        object.__setattr__(self, "_factor", factor)

    @classmethod
    def identity(cls, factors: Sequence[str]) -> "FactorCorrelation":
        return cls(tuple(factors), np.eye(len(factors)))

    @property
    def n_factors(self) -> int:
        return len(self.factors)

    @property
    def cholesky_factor(self) -> FloatArray:
        """Lower triangular factor (or eigen square root) of the matrix."""
        return self._factor

    def index(self, factor: str) -> int:
        return self.factors.index(factor)

    def correlate(self, z_independent: FloatArray) -> FloatArray:
        """
        Transform independent normals to correlated normals.

        Parameters
        ----------
        z_independent : FloatArray
            Array whose last axis has one entry per factor

        Returns
        -------
        FloatArray
            Correlated normal variables of the same shape
        """
        if z_independent.shape[-1] != self.n_factors:
            raise ValueError(
                f"Expected last axis of size {self.n_factors}, got {z_independent.shape[-1]}"
            )
        return z_independent @ self._factor.T

    def generate_correlated_samples(
        self,
        n_samples: int,
        n_steps: int,
        rng: np.random.Generator,
        antithetic: bool = False,
    ) -> FloatArray:
        """
        Draw correlated increments for a whole simulation.

        Parameters
        ----------
        n_samples : int
            Number of Monte Carlo samples
        n_steps : int
            Number of time steps
        rng : np.random.Generator
            Random number generator
        antithetic : bool
            Mirror the first half of the samples into the second half

        Returns
        -------
        FloatArray
            Array of shape (n_factors, n_samples, n_steps)
        """
        if antithetic:
            half = rng.standard_normal((n_samples // 2, n_steps, self.n_factors))
            z_ind = np.concatenate([half, -half], axis=0)
        else:
            z_ind = rng.standard_normal((n_samples, n_steps, self.n_factors))
        return np.moveaxis(self.correlate(z_ind), -1, 0)
