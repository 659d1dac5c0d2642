"""
Building the cross-asset model from configuration and today's market.

With calibration, each rate factor's initial rate is taken from the short
end of today's curve and its long-term mean is fitted so that the model
reproduces the market zero rate at the calibration tenor; FX factors start
at today's spot and use the market FX volatility where quoted. Without
calibration, configured parameters are used as they are.
"""

import logging
import math
from collections.abc import Callable
from typing import Any

from xva_cube.config.models import CrossAssetModelConfig, FXModelConfig, OUModelConfig
from xva_cube.errors import ModelCalibrationError
from xva_cube.market.todays_market import TodaysMarket
from xva_cube.model.correlation import FactorCorrelation
from xva_cube.model.cross_asset import CrossAssetModel, FxFactor, IrFactor

logger = logging.getLogger(__name__)


class CrossAssetModelBuilder:
    """
    Builds an immutable ``CrossAssetModel``.

    Parameters
    ----------
    market : TodaysMarket
        Market the factors are calibrated to
    config : CrossAssetModelConfig
        Factor parameters and correlations
    calibrate : bool
        Fit the factors to ``market``
    continue_on_error : bool
        Record calibration failures and fall back to configured parameters
        instead of raising
    """

    def __init__(
        self,
        market: TodaysMarket,
        config: CrossAssetModelConfig,
        calibrate: bool = True,
        continue_on_error: bool = False,
    ) -> None:
        self.market = market
        self.config = config
        self.calibrate = calibrate
        self.continue_on_error = continue_on_error

    def build(self) -> CrossAssetModel:
        """
        Build the model.

        Raises
        ------
        ModelCalibrationError
            If a factor cannot be calibrated and ``continue_on_error`` is off
        """
        errors: list[str] = []

        ir: dict[str, IrFactor] = {}
        for ccy, cfg in self.config.ir.items():
            ir[ccy] = self._build_factor(
                f"IR:{ccy}", errors, self._calibrate_ir, self._configured_ir, ccy, cfg
            )

        fx: dict[str, FxFactor] = {}
        for ccy, cfg in self.config.fx.items():
            fx[ccy] = self._build_factor(
                f"FX:{ccy}", errors, self._calibrate_fx, self._configured_fx, ccy, cfg
            )

        correlation = FactorCorrelation(
            tuple(self.config.factor_names), self.config.correlation_matrix()
        )
        model = CrossAssetModel(
            domestic_currency=self.config.domestic_currency,
            ir=ir,
            fx=fx,
            correlation=correlation,
            calibrated=self.calibrate and not errors,
            calibration_errors=tuple(errors),
        )
        logger.debug(
            "built cross asset model: %d rate factors, %d fx factors, calibrated=%s",
            len(ir),
            len(fx),
            model.calibrated,
        )
        return model

    def _build_factor(
        self,
        name: str,
        errors: list[str],
        calibrated: Callable[[str, Any], Any],
        configured: Callable[[str, Any], Any],
        ccy: str,
        cfg: Any,
    ) -> Any:
        if not self.calibrate:
            return configured(ccy, cfg)
        try:
            return calibrated(ccy, cfg)
        except ModelCalibrationError as exc:
            if not self.continue_on_error:
                raise
            logger.error("calibration of %s failed, using configured parameters: %s", name, exc)
            errors.append(f"{name}: {exc}")
            return configured(ccy, cfg)

    def _calibrate_ir(self, ccy: str, cfg: OUModelConfig) -> IrFactor:
        try:
            curve = self.market.curve(ccy)
        except KeyError as exc:
            raise ModelCalibrationError(str(exc.args[0])) from exc

        tenor = self.config.calibration_tenor
        seed = IrFactor(ccy, kappa=cfg.kappa, theta=cfg.theta, sigma=cfg.sigma, r0=curve.short_rate())
        try:
            theta = seed.fitted_theta(tenor, float(curve.zero_rate(tenor)))
        except ValueError as exc:
            raise ModelCalibrationError(str(exc)) from exc
        if not math.isfinite(theta):
            raise ModelCalibrationError(f"non-finite long-term mean for {ccy}")
        factor = IrFactor(ccy, kappa=cfg.kappa, theta=theta, sigma=cfg.sigma, r0=seed.r0)
        logger.debug("calibrated IR:%s theta=%.6f r0=%.6f", ccy, factor.theta, factor.r0)
        return factor

    def _configured_ir(self, ccy: str, cfg: OUModelConfig) -> IrFactor:
        return IrFactor.from_config(ccy, cfg)

    def _calibrate_fx(self, ccy: str, cfg: FXModelConfig) -> FxFactor:
        try:
            spot = self.market.fx_spot(ccy)
        except KeyError as exc:
            raise ModelCalibrationError(str(exc.args[0])) from exc
        sigma = self.market.fx_volatilities.get(ccy, cfg.volatility)
        return FxFactor(ccy, spot=spot, sigma=sigma)

    def _configured_fx(self, ccy: str, cfg: FXModelConfig) -> FxFactor:
        spot = cfg.initial_spot
        if spot is None:
            spot = self.market.fx_spots.get(ccy)
        if spot is None:
            raise ModelCalibrationError(f"no spot configured or quoted for FX:{ccy}")
        return FxFactor(ccy, spot=spot, sigma=cfg.volatility)
