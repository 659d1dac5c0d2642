"""
Valuation engine: calculators, the revaluation loop and netting aggregation.
"""

from xva_cube.engine.calculators import (
    CashflowCalculator,
    CellValues,
    MPORCalculator,
    NPVCalculator,
    ValuationCalculator,
)
from xva_cube.engine.netting import NettingAggregator
from xva_cube.engine.valuation_engine import ValuationEngine, ValuationReport

__all__ = [
    "CashflowCalculator",
    "CellValues",
    "MPORCalculator",
    "NPVCalculator",
    "NettingAggregator",
    "ValuationCalculator",
    "ValuationEngine",
    "ValuationReport",
]
