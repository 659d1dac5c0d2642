"""
Valuation cube storage, its interpretation, and aggregation scenario data.
"""

from xva_cube.cube.interpretation import (
    CubeInterpretation,
    MporGridCubeInterpretation,
    RegularCubeInterpretation,
)
from xva_cube.cube.npv_cube import (
    NPVCube,
    SinglePrecisionInMemoryCube,
    SinglePrecisionInMemoryCubeN,
)
from xva_cube.cube.scenario_data import (
    AggregationScenarioDataType,
    InMemoryAggregationScenarioData,
    parse_scenario_data_key,
)

__all__ = [
    "NPVCube",
    "SinglePrecisionInMemoryCube",
    "SinglePrecisionInMemoryCubeN",
    "CubeInterpretation",
    "RegularCubeInterpretation",
    "MporGridCubeInterpretation",
    "AggregationScenarioDataType",
    "InMemoryAggregationScenarioData",
    "parse_scenario_data_key",
]
