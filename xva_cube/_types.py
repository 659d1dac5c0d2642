"""
Common type aliases used throughout the exposure simulation pipeline.

The cube stores single-precision values; everything derived from it is
promoted to 64-bit floats before any aggregation.
"""

from typing import TypeAlias, Union

import numpy as np
import numpy.typing as npt

# Array type aliases
FloatArray: TypeAlias = npt.NDArray[np.float64]
"""1D or 2D array of 64-bit floats."""

CubeArray: TypeAlias = npt.NDArray[np.float32]
"""Single-precision storage block of a valuation cube."""

PathArray: TypeAlias = npt.NDArray[np.float64]
"""
2D array of shape (n_dates, n_samples) holding one quantity per simulation
date and Monte Carlo sample.

Each column is a single sample path, each row is a simulation date.
"""

TimeGrid: TypeAlias = npt.NDArray[np.float64]
"""1D array of time points in years from the as-of date."""

# Scalar type aliases
Rate: TypeAlias = float
"""Interest rate or spread as a decimal (e.g., 0.02 for 2%)."""

Year: TypeAlias = float
"""Time measured in years (ACT/365F) from the as-of date."""

CubeId: TypeAlias = Union[str, int]
"""Cube id coordinate: a trade or netting-set id, or its integer position."""
