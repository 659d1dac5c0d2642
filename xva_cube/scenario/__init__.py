"""
Simulation date grid and Monte Carlo scenario generation.
"""

from xva_cube.scenario.generator import Scenario, ScenarioGenerator, ScenarioGeneratorBuilder
from xva_cube.scenario.grid import DateGrid, advance, parse_tenor, year_fraction

__all__ = [
    "DateGrid",
    "Scenario",
    "ScenarioGenerator",
    "ScenarioGeneratorBuilder",
    "advance",
    "parse_tenor",
    "year_fraction",
]
