"""
Portfolio, trades and netting set definitions.
"""

from xva_cube.portfolio.netting import NettingSetDefinition, NettingSetManager
from xva_cube.portfolio.portfolio import Portfolio
from xva_cube.portfolio.trade import Envelope, Trade

__all__ = [
    "Envelope",
    "Trade",
    "Portfolio",
    "NettingSetDefinition",
    "NettingSetManager",
]
