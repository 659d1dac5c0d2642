"""
Post-processing of a valuation run.

``PostProcess`` turns the trade cube, the netting cube, the aggregation
scenario data and the initial margin estimates into exposure profiles,
collateral balances, valuation adjustments and the report tables. All
inputs are read through the cube interpretation, so the same code serves
both cube layouts.
"""

import logging
from collections.abc import Mapping

import numpy as np

from xva_cube.config.models import DEFAULT_ANALYTICS, CapitalConfig
from xva_cube.cube.interpretation import CubeInterpretation
from xva_cube.cube.npv_cube import NPVCube
from xva_cube.cube.scenario_data import (
    AggregationScenarioDataType,
    InMemoryAggregationScenarioData,
)
from xva_cube.dim.regression import DimResult, dim_evolution_table
from xva_cube.errors import ConfigurationError
from xva_cube.market.curves import HazardCurve
from xva_cube.market.todays_market import TodaysMarket
from xva_cube.model.cross_asset import CrossAssetModel
from xva_cube.portfolio.netting import NettingSetManager
from xva_cube.portfolio.portfolio import Portfolio
from xva_cube.postprocess.collateral import CollateralResult, VariationMargin, uncollateralised
from xva_cube.postprocess.exposure import ExposureProfile
from xva_cube.postprocess.tables import (
    XvaReports,
    create_cva_sensitivity_table,
    create_exposure_nettingset_table,
    create_exposure_trade_table,
    create_xva_table,
)
from xva_cube.postprocess.xva import (
    CVACalculator,
    DVACalculator,
    FVACalculator,
    KVACalculator,
    MVACalculator,
    XVAResult,
)
from xva_cube.scenario.grid import year_fraction

logger = logging.getLogger(__name__)


class PostProcess:
    """
    Exposure and valuation adjustments of a completed simulation.

    Parameters
    ----------
    portfolio : Portfolio
        Trades of ``cube``
    netting : NettingSetManager
        Netting set definitions; undefined netting sets are uncollateralised
    market : TodaysMarket
        Supplies default curves and funding spreads
    cube : NPVCube
        Trade cube
    netting_cube : NPVCube
        Netting-set cube
    scenario_data : InMemoryAggregationScenarioData
        Numeraire per (date, sample)
    analytics : Mapping[str, bool]
        Enabled analytics; missing keys take the defaults
    base_currency : str
        Reporting currency
    interpretation : CubeInterpretation
        Layout of both cubes
    dim_results : Mapping[str, DimResult] | None
        Initial margin per netting set
    quantile : float
        PFE quantile
    calculation_type : str
        ``"NoLag"`` applies the default-date collateral to the close-out
        value, ``"Regular"`` the previous date's collateral to the current
        value
    dva_name : str
        Entity whose default curve drives DVA; empty disables DVA
    fva_borrowing_curve, fva_lending_curve : str
        Funding spread curve names; empty means a zero spread
    full_initial_collateralisation : bool
        Start collateralised netting sets fully collateralised at T0
    capital : CapitalConfig | None
        KVA parameters
    model : CrossAssetModel | None
        Model of the run, kept for consumers of the report set
    counterparties : Mapping[str, str] | None
        Counterparty per netting set id, taken before trades were dropped
        from the run; missing entries are looked up in ``portfolio``

    Example
    -------
    >>> pp = runner.post_process
    >>> pp.xva().total
    >>> pp.reports.exposure_nettingset.head()
    """

    def __init__(
        self,
        portfolio: Portfolio,
        netting: NettingSetManager,
        market: TodaysMarket,
        cube: NPVCube,
        netting_cube: NPVCube,
        scenario_data: InMemoryAggregationScenarioData,
        analytics: Mapping[str, bool],
        base_currency: str,
        interpretation: CubeInterpretation,
        dim_results: Mapping[str, DimResult] | None = None,
        quantile: float = 0.95,
        calculation_type: str = "Regular",
        dva_name: str = "",
        fva_borrowing_curve: str = "",
        fva_lending_curve: str = "",
        full_initial_collateralisation: bool = False,
        capital: CapitalConfig | None = None,
        model: CrossAssetModel | None = None,
        counterparties: Mapping[str, str] | None = None,
    ) -> None:
        if calculation_type not in ("Regular", "NoLag"):
            raise ConfigurationError(f"Unknown calculation type '{calculation_type}'")
        self.portfolio = portfolio
        self.netting = netting
        self.market = market
        self.cube = cube
        self.netting_cube = netting_cube
        self.scenario_data = scenario_data
        self.analytics = {**DEFAULT_ANALYTICS, **dict(analytics or {})}
        self.base_currency = base_currency
        self.interpretation = interpretation
        self.dim_results = dict(dim_results or {})
        self.quantile = quantile
        self.calculation_type = calculation_type
        self.dva_name = dva_name
        self.fva_borrowing_curve = fva_borrowing_curve
        self.fva_lending_curve = fva_lending_curve
        self.full_initial_collateralisation = full_initial_collateralisation
        self.capital = capital or CapitalConfig()
        self.model = model
        self._known_counterparties = dict(counterparties or {})

        self.dates = tuple(netting_cube.dates)
        self.times = np.array([year_fraction(netting_cube.asof, d) for d in self.dates])
        self.numeraire = scenario_data.values(AggregationScenarioDataType.NUMERAIRE).astype(
            np.float64
        )

        self._trade_profiles: dict[str, ExposureProfile] = {}
        self._profiles: dict[str, ExposureProfile] = {}
        self._collateralised: dict[str, ExposureProfile] = {}
        self._collateral: dict[str, CollateralResult] = {}
        self._counterparties: dict[str, str] = {}
        self._xva: dict[str, XVAResult] = {}
        self._cva_sensitivity: dict[str, tuple[float, float, float]] = {}
        self._reports: XvaReports | None = None

        logger.info(
            "post processing %d trades in %d netting sets, analytics %s",
            cube.num_ids,
            netting_cube.num_ids,
            self.analytics,
        )
        self._calculate_exposures()
        self._calculate_xva()

    # ------------------------------------------------------------------
    # Exposure
    # ------------------------------------------------------------------

    @property
    def lagged(self) -> bool:
        return self.calculation_type != "NoLag"

    def _counterparty(self, netting_set_id: str) -> str:
        if self._known_counterparties.get(netting_set_id):
            return self._known_counterparties[netting_set_id]
        for trade in self.portfolio:
            if trade.netting_set_id == netting_set_id and trade.counterparty:
                return trade.counterparty
        return ""

    def _deflated_dim(self, netting_set_id: str) -> np.ndarray | None:
        if not self.analytics["dim"] or netting_set_id not in self.dim_results:
            return None
        return self.dim_results[netting_set_id].dim / self.numeraire

    def _calculate_exposures(self) -> None:
        interp = self.interpretation
        for trade_id in self.cube.ids:
            self._trade_profiles[trade_id] = ExposureProfile.from_paths(
                trade_id,
                self.dates,
                self.times,
                interp.default_date_npv_paths(self.cube, trade_id),
                self.numeraire,
                self.quantile,
            )

        for ns_id in self.netting_cube.ids:
            definition = self.netting.get_or_default(ns_id, self._counterparty(ns_id))
            self._counterparties[ns_id] = definition.counterparty
            npv = interp.default_date_npv_paths(self.netting_cube, ns_id)
            close_out = interp.close_out_npv_paths(self.netting_cube, ns_id)

            self._profiles[ns_id] = ExposureProfile.from_paths(
                ns_id, self.dates, self.times, npv, self.numeraire, self.quantile
            )

            if definition.active_csa:
                initial = (
                    self.netting_cube.get_t0(ns_id)
                    if self.full_initial_collateralisation
                    else 0.0
                )
                collateral = VariationMargin.from_netting_set(definition).apply(
                    npv, close_out, self.numeraire, self.lagged, initial
                )
            else:
                collateral = uncollateralised(npv, close_out, self.lagged)
            self._collateral[ns_id] = collateral

            values = collateral.collateralised
            dim = self._deflated_dim(ns_id)
            if dim is not None:
                # Initial margin received only reduces positive exposure
                values = np.where(values > 0, np.maximum(values - dim, 0.0), values)
            self._collateralised[ns_id] = ExposureProfile.from_paths(
                ns_id, self.dates, self.times, values, self.numeraire, self.quantile
            )
        logger.debug("calculated exposure profiles")

    # ------------------------------------------------------------------
    # Valuation adjustments
    # ------------------------------------------------------------------

    def _default_curve(self, name: str, purpose: str) -> HazardCurve:
        try:
            return self.market.default_curve(name)
        except KeyError:
            raise ConfigurationError(f"No default curve '{name}' for {purpose}") from None

    def _funding_spread(self, name: str) -> float:
        if not name:
            return 0.0
        try:
            return self.market.funding_spread(name)
        except KeyError:
            raise ConfigurationError(f"No funding spread curve '{name}'") from None

    def _calculate_xva(self) -> None:
        fva_calc = FVACalculator(
            borrowing_spread=self._funding_spread(self.fva_borrowing_curve),
            lending_spread=self._funding_spread(self.fva_lending_curve),
        )
        mva_calc = MVACalculator(funding_spread=fva_calc.borrowing_spread)
        kva_calc = KVACalculator(
            cost_of_capital=self.capital.cost_of_capital,
            capital_ratio=self.capital.capital_ratio,
            alpha=self.capital.alpha,
        )
        dva_calc = None
        if self.dva_name:
            dva_calc = DVACalculator.from_curve(self._default_curve(self.dva_name, "DVA"))

        repriced = {t.netting_set_id for t in self.portfolio if t.id in self._trade_profiles}
        for ns_id, profile in self._collateralised.items():
            counterparty = self._counterparties[ns_id]
            if ns_id not in repriced:
                logger.warning(
                    "netting set %s has no repriced trades, adjustments are zero", ns_id
                )
                self._xva[ns_id] = XVAResult()
                continue
            cva_calc = CVACalculator.from_curve(
                self._default_curve(counterparty, f"netting set {ns_id}")
            )
            result = XVAResult(
                cva=cva_calc.calculate(profile.epe, self.times),
                dva=dva_calc.calculate(profile.ene, self.times) if dva_calc else 0.0,
                fva=fva_calc.calculate(profile.epe, profile.ene, self.times),
            )
            dim = self._deflated_dim(ns_id)
            if self.analytics["mva"] and dim is not None:
                result.mva = mva_calc.calculate(dim.mean(axis=1), self.times)
            if self.analytics["kva"]:
                result.kva = kva_calc.calculate(profile.epe, self.times)
            self._xva[ns_id] = result

            if self.analytics["cvaSensi"]:
                bumped, delta = cva_calc.sensitivity_to_hazard_rate(profile.epe, self.times)
                self._cva_sensitivity[ns_id] = (result.cva, bumped, delta)

        logger.debug("calculated valuation adjustments for %d netting sets", len(self._xva))

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def exposure_profile(self, netting_set_id: str, collateralised: bool = True) -> ExposureProfile:
        profiles = self._collateralised if collateralised else self._profiles
        return profiles[netting_set_id]

    def trade_exposure_profile(self, trade_id: str) -> ExposureProfile:
        return self._trade_profiles[trade_id]

    def collateral(self, netting_set_id: str) -> CollateralResult:
        return self._collateral[netting_set_id]

    def xva(self, netting_set_id: str | None = None) -> XVAResult:
        """Adjustments of one netting set, or their sum over all netting sets."""
        if netting_set_id is not None:
            return self._xva[netting_set_id]
        total = XVAResult()
        for result in self._xva.values():
            total = total + result
        return total

    @property
    def cva_sensitivity(self) -> dict[str, tuple[float, float, float]]:
        """(CVA, bumped CVA, change per 1bp) per netting set."""
        return dict(self._cva_sensitivity)

    @property
    def reports(self) -> XvaReports:
        if self._reports is None:
            self._reports = self._build_reports()
        return self._reports

    def _build_reports(self) -> XvaReports:
        expected_dim = {
            ns_id: result.expected_dim
            for ns_id, result in self.dim_results.items()
            if self.analytics["dim"]
        }
        netting_sets = {
            t.id: t.netting_set_id for t in self.portfolio if t.id in self._trade_profiles
        }
        reports = XvaReports(
            xva=create_xva_table(
                self._xva,
                self._counterparties,
                {ns: p.eepe for ns, p in self._collateralised.items()},
            ),
            exposure_nettingset=create_exposure_nettingset_table(
                self._profiles, self._collateral, self._collateralised, expected_dim
            ),
            exposure_trade=create_exposure_trade_table(self._trade_profiles, netting_sets),
        )
        if self.analytics["dim"] and self.dim_results:
            reports.dim_evolution = dim_evolution_table(self.dim_results)
        if self.analytics["cvaSensi"]:
            reports.cva_sensitivity = create_cva_sensitivity_table(
                self._cva_sensitivity, self._counterparties
            )
        return reports
