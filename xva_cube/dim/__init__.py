"""
Dynamic initial margin.
"""

from xva_cube.dim.regression import (
    DIM_EVOLUTION_COLUMNS,
    DimResult,
    RegressionDynamicInitialMarginCalculator,
    conditional_std,
    dim_evolution_table,
    kernel_std,
    polynomial_basis,
)

__all__ = [
    "DIM_EVOLUTION_COLUMNS",
    "DimResult",
    "RegressionDynamicInitialMarginCalculator",
    "conditional_std",
    "dim_evolution_table",
    "kernel_std",
    "polynomial_basis",
]
