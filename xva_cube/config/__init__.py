"""
Configuration module for the exposure simulation pipeline.

Provides Pydantic-validated configuration models and YAML loading utilities
for run settings, today's market, the cross-asset model and the portfolio.
"""

from xva_cube.config.loader import (
    create_default_market_config,
    create_default_runner_config,
    load_config,
    load_market_config,
    load_netting_sets,
    load_portfolio,
    load_portfolio_config,
    load_runner_config,
)
from xva_cube.config.models import (
    DEFAULT_ANALYTICS,
    CapitalConfig,
    CorrelationEntry,
    CreditCurveConfig,
    CrossAssetModelConfig,
    CurveConfig,
    FXForwardConfig,
    FXModelConfig,
    IRSwapConfig,
    MarketConfig,
    NettingSetConfig,
    OUModelConfig,
    PortfolioConfig,
    ScenarioGeneratorConfig,
    XvaRunnerConfig,
)

__all__ = [
    # Models
    "DEFAULT_ANALYTICS",
    "OUModelConfig",
    "FXModelConfig",
    "CorrelationEntry",
    "CrossAssetModelConfig",
    "ScenarioGeneratorConfig",
    "CurveConfig",
    "CreditCurveConfig",
    "MarketConfig",
    "NettingSetConfig",
    "IRSwapConfig",
    "FXForwardConfig",
    "PortfolioConfig",
    "CapitalConfig",
    "XvaRunnerConfig",
    # Loaders
    "load_config",
    "load_runner_config",
    "load_market_config",
    "load_portfolio_config",
    "load_portfolio",
    "load_netting_sets",
    "create_default_market_config",
    "create_default_runner_config",
]
