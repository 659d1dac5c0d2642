"""
Cross-asset stochastic model: Vasicek short rates, GBM FX rates and their
correlation, plus the builder that calibrates them to today's market.
"""

from xva_cube.model.builder import CrossAssetModelBuilder
from xva_cube.model.correlation import FactorCorrelation
from xva_cube.model.cross_asset import CrossAssetModel, FxFactor, IrFactor

__all__ = [
    "CrossAssetModel",
    "CrossAssetModelBuilder",
    "FactorCorrelation",
    "FxFactor",
    "IrFactor",
]
