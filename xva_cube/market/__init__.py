"""
Market data for pricing and calibration.

This module provides:
- Discount curves (flat and interpolated zero rates)
- Hazard rate curves for credit modelling
- Today's market at the as-of date
- The scenario-driven simulated market
"""

from xva_cube.market.curves import DiscountCurve, HazardCurve
from xva_cube.market.sim_market import ScenarioSimMarket
from xva_cube.market.todays_market import PricingMarket, TodaysMarket

__all__ = [
    "DiscountCurve",
    "HazardCurve",
    "PricingMarket",
    "TodaysMarket",
    "ScenarioSimMarket",
]
