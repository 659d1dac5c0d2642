"""
YAML configuration loading utilities.

Provides functions to load and validate configuration from YAML files,
returning validated Pydantic models or the runtime objects built from them
(portfolio, netting set manager).
"""

from datetime import date
from pathlib import Path
from typing import Any

import yaml

from xva_cube.config.models import (
    CreditCurveConfig,
    CrossAssetModelConfig,
    CurveConfig,
    FXModelConfig,
    MarketConfig,
    OUModelConfig,
    PortfolioConfig,
    ScenarioGeneratorConfig,
    XvaRunnerConfig,
)


def _load_yaml(path: Path) -> dict[str, Any]:
    """
    Load a YAML file and return its contents as a dictionary.

    Raises
    ------
    FileNotFoundError
        If the file does not exist
    yaml.YAMLError
        If the file contains invalid YAML
    """
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _section(data: dict[str, Any], key: str) -> dict[str, Any]:
    # Files may wrap their content in a top-level key
    if key in data and isinstance(data[key], dict):
        return data[key]
    return data


def load_runner_config(path: Path | str) -> XvaRunnerConfig:
    """
    Load run settings from a YAML file.

    Example
    -------
    >>> config = load_runner_config("data/runner.yaml")
    >>> config.simulation.samples
    1000
    """
    data = _section(_load_yaml(Path(path)), "runner")
    return XvaRunnerConfig(**data)


def load_market_config(path: Path | str) -> MarketConfig:
    """Load today's market from a YAML file."""
    data = _section(_load_yaml(Path(path)), "market")
    return MarketConfig(**data)


def load_portfolio_config(path: Path | str) -> PortfolioConfig:
    """Load trade and netting set definitions from a YAML file."""
    data = _section(_load_yaml(Path(path)), "portfolio")
    return PortfolioConfig(**data)


def load_portfolio(path: Path | str):
    """
    Load a portfolio of trades from a YAML file.

    Returns
    -------
    Portfolio
        Trades in file order, swaps first

    Example
    -------
    >>> portfolio = load_portfolio("data/portfolio.yaml")
    >>> print(f"Loaded {len(portfolio)} trades")
    """
    from xva_cube.portfolio import Portfolio

    return Portfolio.from_config(load_portfolio_config(path))


def load_netting_sets(path: Path | str):
    """
    Load netting agreements from a YAML file.

    The file holds either a ``netting_sets`` list or a portfolio file whose
    ``netting_sets`` section is used.
    """
    from xva_cube.portfolio import NettingSetManager

    data = _section(_load_yaml(Path(path)), "portfolio")
    return NettingSetManager.from_configs(data.get("netting_sets", []))


def load_config(
    runner_path: Path | str | None = None,
    market_path: Path | str | None = None,
    portfolio_path: Path | str | None = None,
) -> dict[str, Any]:
    """
    Load complete configuration from multiple YAML files.

    Returns
    -------
    dict[str, Any]
        Dictionary containing, for each path given:
        - 'runner': XvaRunnerConfig
        - 'market': MarketConfig
        - 'portfolio': Portfolio
        - 'netting': NettingSetManager
    """
    result: dict[str, Any] = {}

    if runner_path is not None:
        result["runner"] = load_runner_config(runner_path)

    if market_path is not None:
        result["market"] = load_market_config(market_path)

    if portfolio_path is not None:
        result["portfolio"] = load_portfolio(portfolio_path)
        result["netting"] = load_netting_sets(portfolio_path)

    return result


def create_default_market_config() -> MarketConfig:
    """
    Create a two-currency (USD/EUR) market with typical values.

    Returns
    -------
    MarketConfig
        Default market configuration suitable for testing
    """
    return MarketConfig(
        curves={
            "USD": CurveConfig(tenors=[1.0, 5.0, 10.0], rates=[0.020, 0.023, 0.025]),
            "EUR": CurveConfig(rate=0.015),
        },
        fx_spots={"EUR": 1.10},
        fx_volatilities={"EUR": 0.12},
        default_curves={
            "CPTY_A": CreditCurveConfig(hazard_rate_bps=120, recovery_rate=0.4),
            "BANK": CreditCurveConfig(hazard_rate_bps=100, recovery_rate=0.4),
        },
        funding_spreads_bps={"BANK_FUNDING": 100, "BANK_LENDING": 50},
    )


def create_default_runner_config(
    asof: date,
    samples: int = 1000,
    grid: list[str] | None = None,
    **overrides: Any,
) -> XvaRunnerConfig:
    """
    Create run settings for the default USD/EUR market.

    Parameters
    ----------
    asof : date
        Valuation date
    samples : int
        Number of Monte Carlo samples
    grid : list[str] | None
        Valuation tenors; quarterly to two years by default
    **overrides
        Further ``XvaRunnerConfig`` fields

    Returns
    -------
    XvaRunnerConfig
        Validated run settings
    """
    simulation = overrides.pop("simulation", None) or ScenarioGeneratorConfig(
        grid=grid or ["3M", "6M", "9M", "1Y", "18M", "2Y"],
        samples=samples,
        seed=42,
    )
    model = overrides.pop("model", None) or CrossAssetModelConfig(
        domestic_currency="USD",
        ir={
            "USD": OUModelConfig(kappa=0.10, theta=0.02, sigma=0.01, initial_rate=0.02),
            "EUR": OUModelConfig(kappa=0.08, theta=0.015, sigma=0.012, initial_rate=0.015),
        },
        fx={"EUR": FXModelConfig(volatility=0.12, initial_spot=1.10)},
        correlations=[
            {"factor1": "IR:USD", "factor2": "IR:EUR", "value": 0.7},
            {"factor1": "IR:USD", "factor2": "FX:EUR", "value": -0.3},
            {"factor1": "IR:EUR", "factor2": "FX:EUR", "value": 0.4},
        ],
    )
    overrides.setdefault("base_currency", model.domestic_currency)
    return XvaRunnerConfig(
        asof=asof,
        simulation=simulation,
        model=model,
        **overrides,
    )
