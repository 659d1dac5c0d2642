"""
xVA Exposure Simulation - Core Package.

Monte Carlo exposure simulation for valuation adjustments: a cross-asset
model drives scenario markets on which a portfolio is repriced into an NPV
cube; the cube feeds netting, dynamic initial margin and the
CVA/DVA/FVA/MVA/KVA post-processing.

Example
-------
>>> from xva_cube import XvaRunner, TodaysMarket, load_config
>>> cfg = load_config("runner.yaml", "market.yaml", "portfolio.yaml")
>>> market = TodaysMarket.from_config(cfg["runner"].asof, "USD", cfg["market"])
>>> runner = XvaRunner(cfg["runner"], cfg["portfolio"], cfg["netting"])
>>> post_process = runner.run(market)
>>> post_process.reports.xva
"""

__version__ = "1.0.0"

# Core types
from xva_cube._types import FloatArray, PathArray

# Errors
from xva_cube.errors import (
    ConfigurationError,
    ModelCalibrationError,
    PreconditionError,
    TradeBuildError,
    UnknownTradeError,
    UnsupportedOperationError,
    ValuationError,
    XvaError,
)

# Configuration
from xva_cube.config import (
    MarketConfig,
    PortfolioConfig,
    ScenarioGeneratorConfig,
    XvaRunnerConfig,
    load_config,
)

# Cube
from xva_cube.cube import (
    InMemoryAggregationScenarioData,
    MporGridCubeInterpretation,
    NPVCube,
    RegularCubeInterpretation,
    SinglePrecisionInMemoryCube,
    SinglePrecisionInMemoryCubeN,
)

# Market and model
from xva_cube.market import ScenarioSimMarket, TodaysMarket
from xva_cube.model import CrossAssetModel, CrossAssetModelBuilder
from xva_cube.scenario import DateGrid, ScenarioGenerator

# Portfolio
from xva_cube.instruments import FXForward, IRSwap
from xva_cube.portfolio import NettingSetManager, Portfolio, Trade

# Valuation
from xva_cube.engine import (
    CashflowCalculator,
    MPORCalculator,
    NettingAggregator,
    NPVCalculator,
    ValuationEngine,
)

# Initial margin and post-processing
from xva_cube.dim import RegressionDynamicInitialMarginCalculator
from xva_cube.postprocess import PostProcess, XVAResult, XvaReports

# Orchestration
from xva_cube.extensions import MarketProjection, RunnerExtensions, UnavailableProjection
from xva_cube.runner import RunnerStage, XvaRunner

__all__ = [
    # Version
    "__version__",
    # Types
    "FloatArray",
    "PathArray",
    # Errors
    "XvaError",
    "ConfigurationError",
    "UnknownTradeError",
    "UnsupportedOperationError",
    "ModelCalibrationError",
    "PreconditionError",
    "TradeBuildError",
    "ValuationError",
    # Config
    "MarketConfig",
    "PortfolioConfig",
    "ScenarioGeneratorConfig",
    "XvaRunnerConfig",
    "load_config",
    # Cube
    "NPVCube",
    "SinglePrecisionInMemoryCube",
    "SinglePrecisionInMemoryCubeN",
    "RegularCubeInterpretation",
    "MporGridCubeInterpretation",
    "InMemoryAggregationScenarioData",
    # Market and model
    "TodaysMarket",
    "ScenarioSimMarket",
    "CrossAssetModel",
    "CrossAssetModelBuilder",
    "DateGrid",
    "ScenarioGenerator",
    # Portfolio
    "IRSwap",
    "FXForward",
    "Trade",
    "Portfolio",
    "NettingSetManager",
    # Valuation
    "NPVCalculator",
    "CashflowCalculator",
    "MPORCalculator",
    "ValuationEngine",
    "NettingAggregator",
    # Post-processing
    "RegressionDynamicInitialMarginCalculator",
    "PostProcess",
    "XVAResult",
    "XvaReports",
    # Orchestration
    "MarketProjection",
    "UnavailableProjection",
    "RunnerExtensions",
    "RunnerStage",
    "XvaRunner",
]
