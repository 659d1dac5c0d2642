"""
Tests for configuration models and YAML loading.
"""

import pytest
import yaml
from pydantic import ValidationError

from conftest import ASOF
from xva_cube.config import (
    DEFAULT_ANALYTICS,
    CrossAssetModelConfig,
    NettingSetConfig,
    OUModelConfig,
    ScenarioGeneratorConfig,
    create_default_runner_config,
    load_config,
    load_market_config,
    load_netting_sets,
    load_portfolio,
    load_portfolio_config,
    load_runner_config,
)

RUNNER_YAML = {
    "runner": {
        "asof": "2024-01-15",
        "base_currency": "USD",
        "analytics": {"kva": True},
        "simulation": {"grid": ["3M", "6M"], "samples": 64, "close_out_lag_days": 10},
        "model": {
            "domestic_currency": "USD",
            "ir": {"USD": {"kappa": 0.1, "theta": 0.02, "sigma": 0.01}},
        },
    }
}

MARKET_YAML = {
    "market": {
        "curves": {"USD": {"rate": 0.03}},
        "default_curves": {"CPTY_A": {"hazard_rate_bps": 150}},
        "funding_spreads_bps": {"BANK_FUNDING": 80},
    }
}

PORTFOLIO_YAML = {
    "portfolio": {
        "irs_trades": [
            {
                "id": "IRS_1",
                "netting_set_id": "NS_A",
                "counterparty": "CPTY_A",
                "notional": 1e7,
                "fixed_rate": 0.02,
                "maturity_years": 5,
            }
        ],
        "netting_sets": [{"id": "NS_A", "counterparty": "CPTY_A", "active_csa": True}],
    }
}


@pytest.fixture
def config_files(tmp_path):
    paths = {}
    for name, content in [
        ("runner", RUNNER_YAML),
        ("market", MARKET_YAML),
        ("portfolio", PORTFOLIO_YAML),
    ]:
        path = tmp_path / f"{name}.yaml"
        path.write_text(yaml.safe_dump(content), encoding="utf-8")
        paths[name] = path
    return paths


class TestRunnerConfig:
    """Tests for run settings."""

    def test_defaults(self, runner_config) -> None:
        assert runner_config.calculation_type == "Regular"
        assert runner_config.dim_quantile == 0.99
        assert runner_config.dim_horizon_calendar_days == 14
        assert runner_config.exposure_quantile == 0.95
        assert runner_config.analytics == DEFAULT_ANALYTICS
        assert not runner_config.simulation.with_close_out_lag

    def test_analytics_merged_with_defaults(self) -> None:
        config = create_default_runner_config(ASOF, analytics={"kva": True, "dim": False})
        assert config.analytics == {"dim": False, "mva": True, "kva": True, "cvaSensi": True}

    def test_base_currency_is_model_currency(self) -> None:
        with pytest.raises(ValidationError):
            create_default_runner_config(ASOF, base_currency="EUR")

    def test_base_currency_passed_explicitly(self) -> None:
        config = create_default_runner_config(ASOF, base_currency="USD")
        assert config.base_currency == "USD"

    def test_base_currency_follows_model(self) -> None:
        model = CrossAssetModelConfig(
            domestic_currency="EUR", ir={"EUR": OUModelConfig(kappa=0.1, sigma=0.01)}
        )
        config = create_default_runner_config(ASOF, model=model)
        assert config.base_currency == "EUR"

    def test_horizon_beyond_a_year(self) -> None:
        config = create_default_runner_config(ASOF, dim_horizon_calendar_days=730)
        assert config.dim_horizon_calendar_days == 730
        with pytest.raises(ValidationError):
            create_default_runner_config(ASOF, dim_horizon_calendar_days=-1)

    def test_unknown_calculation_type(self) -> None:
        with pytest.raises(ValidationError):
            create_default_runner_config(ASOF, calculation_type="Symmetric")

    def test_invalid_quantile(self) -> None:
        with pytest.raises(ValidationError):
            create_default_runner_config(ASOF, dim_quantile=1.0)


class TestScenarioGeneratorConfig:
    """Tests for simulation settings."""

    def test_invalid_tenor(self) -> None:
        with pytest.raises(ValidationError):
            ScenarioGeneratorConfig(grid=["3X"])

    def test_antithetic_needs_even_samples(self) -> None:
        with pytest.raises(ValidationError):
            ScenarioGeneratorConfig(grid=["3M"], samples=11, antithetic=True)

    def test_close_out_lag(self) -> None:
        config = ScenarioGeneratorConfig(grid=["3M"], close_out_lag_days=14)
        assert config.with_close_out_lag
        with pytest.raises(ValidationError):
            ScenarioGeneratorConfig(grid=["3M"], close_out_lag_days=0)


class TestNettingSetConfig:
    def test_mta_above_threshold(self) -> None:
        with pytest.raises(ValidationError):
            NettingSetConfig(id="NS_A", counterparty="CPTY_A", threshold=1e5, mta=1e6)


class TestLoaders:
    """Tests for YAML loading."""

    def test_load_runner_config(self, config_files) -> None:
        config = load_runner_config(config_files["runner"])
        assert config.asof == ASOF
        assert config.simulation.samples == 64
        assert config.simulation.close_out_lag_days == 10
        assert config.analytics["kva"]
        assert config.analytics["dim"]

    def test_load_market_config(self, config_files) -> None:
        market = load_market_config(config_files["market"])
        assert market.curves["USD"].rate == 0.03
        assert market.default_curves["CPTY_A"].hazard_rate == pytest.approx(0.015)

    def test_load_portfolio(self, config_files) -> None:
        portfolio = load_portfolio(config_files["portfolio"])
        assert portfolio.ids == ["IRS_1"]
        assert load_portfolio_config(config_files["portfolio"]).n_trades == 1
        netting = load_netting_sets(config_files["portfolio"])
        assert netting.get("NS_A").active_csa

    def test_load_config(self, config_files) -> None:
        loaded = load_config(
            config_files["runner"], config_files["market"], config_files["portfolio"]
        )
        assert set(loaded) == {"runner", "market", "portfolio", "netting"}

    def test_unwrapped_file(self, tmp_path) -> None:
        path = tmp_path / "market.yaml"
        path.write_text(yaml.safe_dump(MARKET_YAML["market"]), encoding="utf-8")
        assert "USD" in load_market_config(path).curves

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(FileNotFoundError):
            load_runner_config(tmp_path / "missing.yaml")
