"""
Post-processing: exposure profiles, collateral, valuation adjustments and
report tables.
"""

from xva_cube.postprocess.collateral import CollateralResult, VariationMargin
from xva_cube.postprocess.exposure import (
    ExposureProfile,
    calculate_eepe,
    calculate_effective_epe,
    calculate_ene,
    calculate_epe,
    calculate_pfe,
)
from xva_cube.postprocess.post_process import PostProcess
from xva_cube.postprocess.tables import XvaReports
from xva_cube.postprocess.xva import (
    CVACalculator,
    DVACalculator,
    FVACalculator,
    KVACalculator,
    MVACalculator,
    XVAResult,
)

__all__ = [
    "CVACalculator",
    "CollateralResult",
    "DVACalculator",
    "ExposureProfile",
    "FVACalculator",
    "KVACalculator",
    "MVACalculator",
    "PostProcess",
    "VariationMargin",
    "XVAResult",
    "XvaReports",
    "calculate_eepe",
    "calculate_effective_epe",
    "calculate_ene",
    "calculate_epe",
    "calculate_pfe",
]
