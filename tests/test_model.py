"""
Tests for the cross-asset model, its correlation and its calibration.
"""

import dataclasses

import numpy as np
import pytest
from pydantic import ValidationError

from xva_cube.config.models import CrossAssetModelConfig, FXModelConfig, OUModelConfig
from xva_cube.errors import ModelCalibrationError
from xva_cube.model import CrossAssetModelBuilder, FactorCorrelation, FxFactor, IrFactor


class TestIrFactor:
    """Tests for the Vasicek rate factor."""

    def test_bond_price_at_zero_maturity(self) -> None:
        factor = IrFactor("USD", kappa=0.1, theta=0.02, sigma=0.01, r0=0.02)
        assert np.isclose(factor.bond_price(0.02, 0.0), 1.0)

    def test_bond_price_decreases_with_rate(self) -> None:
        factor = IrFactor("USD")
        assert factor.bond_price(0.05, 2.0) < factor.bond_price(0.01, 2.0)

    def test_expected_rate_reverts(self) -> None:
        factor = IrFactor("USD", kappa=0.5, theta=0.04, sigma=0.01, r0=0.01)
        assert np.isclose(factor.expected_rate(0.0), 0.01)
        assert abs(factor.expected_rate(50.0) - 0.04) < 1e-6

    def test_transition_mean(self) -> None:
        """Zero shocks move the rate to its conditional mean."""
        factor = IrFactor("USD", kappa=0.2, theta=0.03, sigma=0.01, r0=0.01)
        r = factor.transition(np.array([0.01]), 1.0, np.array([0.0]))
        assert np.isclose(r[0], factor.expected_rate(1.0))

    def test_fitted_theta_reproduces_zero_rate(self) -> None:
        seed = IrFactor("USD", kappa=0.1, theta=0.0, sigma=0.01, r0=0.02)
        theta = seed.fitted_theta(10.0, 0.025)
        fitted = IrFactor("USD", kappa=0.1, theta=theta, sigma=0.01, r0=0.02)
        assert np.isclose(fitted.zero_rate(10.0), 0.025)

    def test_invalid_parameters(self) -> None:
        with pytest.raises(ValueError):
            IrFactor("USD", kappa=0.0)
        with pytest.raises(ValueError):
            IrFactor("USD", sigma=-0.01)


class TestFxFactor:
    """Tests for the GBM FX factor."""

    def test_zero_volatility_drift(self) -> None:
        """Without volatility the spot grows at the rate differential."""
        factor = FxFactor("EUR", spot=1.1, sigma=0.0)
        spot = factor.transition(np.array([1.1]), np.array([0.03]), np.array([0.01]), 1.0,
                                 np.array([0.7]))
        assert np.isclose(spot[0], 1.1 * np.exp(0.02))

    def test_invalid_spot(self) -> None:
        with pytest.raises(ValueError):
            FxFactor("EUR", spot=0.0, sigma=0.1)


class TestFactorCorrelation:
    """Tests for correlation factorisation."""

    def test_cholesky_reproduces_matrix(self) -> None:
        matrix = np.array([[1.0, 0.7, -0.3], [0.7, 1.0, 0.4], [-0.3, 0.4, 1.0]])
        corr = FactorCorrelation(("IR:USD", "IR:EUR", "FX:EUR"), matrix)
        factor = corr.cholesky_factor
        assert np.allclose(factor @ factor.T, matrix)

    def test_singular_matrix_falls_back(self) -> None:
        """Perfect correlation is accepted through the eigen square root."""
        matrix = np.array([[1.0, 1.0], [1.0, 1.0]])
        corr = FactorCorrelation(("A", "B"), matrix)
        factor = corr.cholesky_factor
        assert np.allclose(factor @ factor.T, matrix)

    def test_not_psd_rejected(self) -> None:
        matrix = np.array([[1.0, 0.9, 0.9], [0.9, 1.0, -0.9], [0.9, -0.9, 1.0]])
        with pytest.raises(ValueError, match="positive semi-definite"):
            FactorCorrelation(("A", "B", "C"), matrix)

    def test_identity(self) -> None:
        corr = FactorCorrelation.identity(["IR:USD", "FX:EUR"])
        assert corr.n_factors == 2
        assert corr.index("FX:EUR") == 1
        assert np.allclose(corr.cholesky_factor, np.eye(2))

    def test_asymmetric_rejected(self) -> None:
        with pytest.raises(ValueError):
            FactorCorrelation(("A", "B"), np.array([[1.0, 0.5], [0.2, 1.0]]))

    def test_sample_correlation(self) -> None:
        """Generated draws have the target correlation."""
        matrix = np.array([[1.0, 0.6], [0.6, 1.0]])
        corr = FactorCorrelation(("A", "B"), matrix)
        z = corr.generate_correlated_samples(20_000, 1, np.random.default_rng(0))
        assert z.shape == (2, 20_000, 1)
        sample = np.corrcoef(z[0, :, 0], z[1, :, 0])[0, 1]
        assert abs(sample - 0.6) < 0.03


class TestCrossAssetModelBuilder:
    """Tests for building and calibrating the model."""

    def test_calibrated_model(self, todays_market, runner_config) -> None:
        """Calibration starts at the market short rate and fits the tenor zero rate."""
        model = CrossAssetModelBuilder(todays_market, runner_config.model).build()
        assert model.calibrated
        usd = model.ir["USD"]
        curve = todays_market.curve("USD")
        assert np.isclose(usd.r0, curve.short_rate())
        assert np.isclose(usd.zero_rate(10.0), curve.zero_rate(10.0))
        assert model.fx["EUR"].spot == 1.10
        assert model.fx["EUR"].sigma == 0.12

    def test_uncalibrated_model(self, todays_market, runner_config) -> None:
        model = CrossAssetModelBuilder(
            todays_market, runner_config.model, calibrate=False
        ).build()
        assert not model.calibrated
        assert model.ir["EUR"].theta == 0.015
        assert model.ir["EUR"].r0 == 0.015

    def test_factor_order(self, model) -> None:
        assert model.factor_names == ("IR:USD", "IR:EUR", "FX:EUR")
        assert model.currencies == ("USD", "EUR")

    def test_model_is_immutable(self, model) -> None:
        with pytest.raises(TypeError):
            model.ir["USD"] = IrFactor("USD")
        with pytest.raises(dataclasses.FrozenInstanceError):
            model.calibrated = False

    @pytest.fixture
    def gbp_config(self) -> CrossAssetModelConfig:
        return CrossAssetModelConfig(
            domestic_currency="USD",
            ir={
                "USD": OUModelConfig(kappa=0.1, sigma=0.01),
                "GBP": OUModelConfig(kappa=0.1, sigma=0.01),
            },
            fx={"GBP": FXModelConfig(volatility=0.1, initial_spot=1.25)},
        )

    def test_calibration_failure_raises(self, todays_market, gbp_config) -> None:
        """A currency without market data cannot be calibrated."""
        with pytest.raises(ModelCalibrationError):
            CrossAssetModelBuilder(todays_market, gbp_config).build()

    def test_calibration_failure_tolerated(self, todays_market, gbp_config) -> None:
        model = CrossAssetModelBuilder(todays_market, gbp_config, continue_on_error=True).build()
        assert not model.calibrated
        assert any(e.startswith("IR:GBP") for e in model.calibration_errors)
        assert model.fx["GBP"].spot == 1.25


class TestCrossAssetModelConfig:
    """Tests for model configuration validation."""

    def test_foreign_currency_needs_fx_factor(self) -> None:
        with pytest.raises(ValidationError):
            CrossAssetModelConfig(
                ir={
                    "USD": OUModelConfig(kappa=0.1, sigma=0.01),
                    "EUR": OUModelConfig(kappa=0.1, sigma=0.01),
                }
            )

    def test_unknown_correlation_factor(self) -> None:
        with pytest.raises(ValidationError):
            CrossAssetModelConfig(
                ir={"USD": OUModelConfig(kappa=0.1, sigma=0.01)},
                correlations=[{"factor1": "IR:USD", "factor2": "FX:JPY", "value": 0.3}],
            )

    def test_correlation_matrix(self, runner_config) -> None:
        matrix = runner_config.model.correlation_matrix()
        assert matrix.shape == (3, 3)
        assert matrix[0, 1] == matrix[1, 0] == 0.7
