"""
Tests for exposure metrics, collateral, valuation adjustments and
post-processing of a cube.
"""

from datetime import date

import numpy as np
import pytest

from conftest import ASOF
from xva_cube.config.models import CapitalConfig
from xva_cube.cube import (
    AggregationScenarioDataType,
    InMemoryAggregationScenarioData,
    RegularCubeInterpretation,
    SinglePrecisionInMemoryCube,
)
from xva_cube.dim import DimResult
from xva_cube.engine import NettingAggregator
from xva_cube.errors import ConfigurationError
from xva_cube.portfolio import NettingSetDefinition, NettingSetManager, Portfolio
from xva_cube.postprocess import (
    CVACalculator,
    DVACalculator,
    ExposureProfile,
    FVACalculator,
    KVACalculator,
    MVACalculator,
    PostProcess,
    VariationMargin,
    XVAResult,
    calculate_eepe,
    calculate_effective_epe,
    calculate_ene,
    calculate_epe,
    calculate_pfe,
)
from xva_cube.postprocess.exposure import net_exposure_reduction

DATES = (date(2024, 2, 14), date(2024, 3, 15), date(2024, 4, 14))
TIMES = np.array([30, 60, 90]) / 365.0


class TestExposureMetrics:
    """Tests for exposure metric functions."""

    def test_epe_and_ene(self) -> None:
        values = np.array([[1.0, -1.0], [2.0, -2.0]])
        assert np.allclose(calculate_epe(values), [0.5, 1.0])
        assert np.allclose(calculate_ene(values), [0.5, 1.0])

    def test_pfe(self) -> None:
        values = np.array([np.arange(101.0)])
        assert np.allclose(calculate_pfe(values, 0.95), [95.0])

    def test_pfe_quantile_range(self) -> None:
        with pytest.raises(ValueError):
            calculate_pfe(np.ones((2, 2)), 1.0)

    def test_effective_epe_non_decreasing(self) -> None:
        assert np.allclose(calculate_effective_epe(np.array([1.0, 3.0, 2.0])), [1.0, 3.0, 3.0])

    def test_eepe(self) -> None:
        epe = np.array([1.0, 3.0, 2.0])
        assert np.isclose(calculate_eepe(epe, np.array([0.25, 0.5, 1.0])), 2.5)

    def test_eepe_truncated_at_horizon(self) -> None:
        assert np.isclose(calculate_eepe(np.array([2.0, 4.0]), np.array([0.5, 1.5])), 3.0)

    def test_eepe_empty(self) -> None:
        assert calculate_eepe(np.array([]), np.array([])) == 0.0

    def test_net_exposure_reduction(self) -> None:
        assert np.isclose(net_exposure_reduction(np.array([10.0]), np.array([4.0])), 60.0)
        assert net_exposure_reduction(np.zeros(3), np.zeros(3)) == 0.0

    def test_profile_from_paths(self) -> None:
        """EE and PFE are taken after multiplying back by the numeraire."""
        deflated = np.array([[1.0, -1.0, 3.0, 0.0]] * 3)
        numeraire = np.full((3, 4), 2.0)
        profile = ExposureProfile.from_paths("NS_A", DATES, TIMES, deflated, numeraire)
        assert np.allclose(profile.epe, 1.0)
        assert np.allclose(profile.ee, 2.0)
        assert np.allclose(profile.ene, 0.25)
        assert profile.peak_pfe > profile.peak_epe
        assert profile.dates == DATES


class TestVariationMargin:
    """Tests for collateral balances."""

    def test_zero_threshold_tracks_value(self) -> None:
        vm = VariationMargin()
        balances = vm.balances(np.array([[10.0], [4.0], [-3.0]]))
        assert np.allclose(balances[:, 0], [10.0, 4.0, -3.0])

    def test_threshold(self) -> None:
        vm = VariationMargin(threshold=5.0)
        assert np.allclose(vm.balances(np.array([[10.0]])), 5.0)

    def test_minimum_transfer_amount(self) -> None:
        vm = VariationMargin(mta=2.0)
        assert np.allclose(vm.balances(np.array([[1.5]])), 0.0)

    def test_invalid_terms(self) -> None:
        with pytest.raises(ValueError):
            VariationMargin(threshold=-1.0)
        with pytest.raises(ValueError):
            VariationMargin(mta=-1.0)

    def test_lagged(self) -> None:
        """Regular mode holds the previous date's balance."""
        npv = np.array([[10.0], [4.0], [-3.0]])
        result = VariationMargin().apply(npv, npv, np.ones((3, 1)), lagged=True)
        assert np.allclose(result.balance[:, 0], [0.0, 10.0, 4.0])
        assert np.allclose(result.collateralised[:, 0], [10.0, -6.0, -7.0])

    def test_no_lag(self) -> None:
        """NoLag applies the current balance to the close-out value."""
        npv = np.array([[10.0], [4.0], [-3.0]])
        close_out = np.array([[12.0], [4.0], [-1.0]])
        result = VariationMargin().apply(npv, close_out, np.ones((3, 1)), lagged=False)
        assert np.allclose(result.collateralised[:, 0], [2.0, 0.0, 2.0])

    def test_independent_amount(self) -> None:
        npv = np.array([[10.0], [4.0]])
        result = VariationMargin(independent_amount=1.0).apply(
            npv, npv, np.ones((2, 1)), lagged=False
        )
        assert np.allclose(result.balance[:, 0], [11.0, 5.0])

    def test_from_netting_set(self) -> None:
        definition = NettingSetDefinition("NS_A", "CPTY_A", True, threshold=1e6, mta=1e5)
        vm = VariationMargin.from_netting_set(definition)
        assert vm.threshold == 1e6
        assert vm.mta == 1e5


class TestXVACalculators:
    """Tests for the adjustment calculators."""

    def test_cva(self) -> None:
        calc = CVACalculator(lgd=0.6, hazard_rate=0.012)
        cva = calc.calculate(np.full(2, 100.0), np.array([1.0, 2.0]))
        assert np.isclose(cva, 100.0 * 0.6 * (1.0 - np.exp(-0.024)))

    def test_cva_with_discounting(self) -> None:
        calc = CVACalculator()
        times = np.array([1.0, 2.0])
        epe = np.full(2, 100.0)
        df = np.array([0.5, 0.5])
        assert np.isclose(calc.calculate(epe, times, df), 0.5 * calc.calculate(epe, times))

    def test_cva_sensitivity(self) -> None:
        calc = CVACalculator()
        bumped, delta = calc.sensitivity_to_hazard_rate(np.full(4, 1e6), np.linspace(0.5, 2.0, 4))
        assert bumped > calc.calculate(np.full(4, 1e6), np.linspace(0.5, 2.0, 4))
        assert delta > 0

    def test_invalid_lgd(self) -> None:
        with pytest.raises(ValueError):
            CVACalculator(lgd=1.5)
        with pytest.raises(ValueError):
            DVACalculator(hazard_rate=-0.01)

    def test_dva(self) -> None:
        calc = DVACalculator(lgd=0.6, hazard_rate=0.01)
        dva = calc.calculate(np.full(2, 50.0), np.array([1.0, 2.0]))
        assert np.isclose(dva, 50.0 * 0.6 * (1.0 - np.exp(-0.02)))

    def test_fva(self) -> None:
        calc = FVACalculator(borrowing_spread=0.01, lending_spread=0.005)
        fva = calc.calculate(np.full(2, 100.0), np.full(2, 50.0), np.array([0.5, 1.0]))
        assert np.isclose(fva, 0.75)

    def test_mva(self) -> None:
        calc = MVACalculator(funding_spread=0.01)
        assert np.isclose(calc.calculate(np.full(2, 200.0), np.array([0.5, 1.0])), 2.0)

    def test_kva(self) -> None:
        """Capital follows the non-decreasing EPE."""
        calc = KVACalculator(cost_of_capital=0.1, capital_ratio=0.08, alpha=1.4)
        kva = calc.calculate(np.array([1.0, 3.0, 2.0]), np.array([1.0, 2.0, 3.0]))
        assert np.isclose(kva, 0.1 * 0.08 * 1.4 * 7.0)

    def test_result_total(self) -> None:
        result = XVAResult(cva=10.0, dva=3.0, fva=2.0, mva=1.0, kva=0.5)
        assert np.isclose(result.total, 10.5)
        assert np.isclose(result.bilateral_cva, 7.0)
        assert result.to_dict()["total"] == result.total
        assert "Total xVA" in result.summary()

    def test_result_sum(self) -> None:
        total = XVAResult(cva=1.0, mva=2.0) + XVAResult(cva=3.0, kva=1.0)
        assert total.cva == 4.0
        assert total.mva == 2.0
        assert total.kva == 1.0


def make_inputs(values: dict[str, float], t0: dict[str, float] | None = None):
    """Trade cube, netting cube and unit numeraire for constant trade values."""
    cube = SinglePrecisionInMemoryCube(ASOF, list(values), DATES, 4)
    for trade_id, value in values.items():
        cube.set_values(trade_id, np.full((3, 4), value))
        cube.set_t0(trade_id, (t0 or values)[trade_id])
    data = InMemoryAggregationScenarioData(3, 4)
    for d in range(3):
        for s in range(4):
            data.set(d, s, 1.0, AggregationScenarioDataType.NUMERAIRE)
    return cube, data


@pytest.fixture
def post_process_factory(todays_market, constant_trade):
    """Build a PostProcess over constant trades in NS_A."""

    def make(values, netting=None, **kwargs):
        portfolio = Portfolio([constant_trade(t, v) for t, v in values.items()])
        cube, data = make_inputs(values)
        netting_cube = NettingAggregator(portfolio).aggregate(cube)
        kwargs.setdefault("analytics", {})
        return PostProcess(
            portfolio=portfolio,
            netting=netting or NettingSetManager([NettingSetDefinition("NS_A", "CPTY_A")]),
            market=todays_market,
            cube=cube,
            netting_cube=netting_cube,
            scenario_data=data,
            base_currency="USD",
            interpretation=RegularCubeInterpretation(),
            **kwargs,
        )

    return make


class TestPostProcess:
    """Tests for post-processing a cube."""

    def test_times_from_dates(self, post_process_factory) -> None:
        pp = post_process_factory({"C1": 5.0, "C2": -2.0})
        assert np.allclose(pp.times, TIMES)

    def test_exposure_profiles(self, post_process_factory) -> None:
        pp = post_process_factory({"C1": 5.0, "C2": -2.0})
        assert np.allclose(pp.exposure_profile("NS_A").epe, 3.0)
        assert np.allclose(pp.exposure_profile("NS_A", collateralised=False).epe, 3.0)
        assert np.allclose(pp.trade_exposure_profile("C2").ene, 2.0)

    def test_cva(self, post_process_factory, todays_market) -> None:
        pp = post_process_factory({"C1": 5.0, "C2": -2.0})
        curve = todays_market.default_curve("CPTY_A")
        expected = 3.0 * curve.lgd * (1.0 - curve.survival_probability(TIMES[-1]))
        assert np.isclose(pp.xva("NS_A").cva, expected)
        assert pp.xva("NS_A").dva == 0.0
        assert pp.xva("NS_A").fva == 0.0

    def test_dva(self, post_process_factory, todays_market) -> None:
        pp = post_process_factory({"C1": -4.0}, dva_name="BANK")
        curve = todays_market.default_curve("BANK")
        expected = 4.0 * curve.lgd * (1.0 - curve.survival_probability(TIMES[-1]))
        assert np.isclose(pp.xva("NS_A").dva, expected)
        assert pp.xva("NS_A").cva == 0.0

    def test_fva(self, post_process_factory) -> None:
        pp = post_process_factory({"C1": 3.0}, fva_borrowing_curve="BANK_FUNDING")
        assert np.isclose(pp.xva("NS_A").fva, 3.0 * 0.01 * TIMES[-1])

    def test_kva_enabled(self, post_process_factory) -> None:
        pp = post_process_factory({"C1": 3.0}, analytics={"kva": True}, capital=CapitalConfig())
        assert pp.xva("NS_A").kva > 0.0
        assert post_process_factory({"C1": 3.0}).xva("NS_A").kva == 0.0

    def test_lagged_collateral(self, post_process_factory) -> None:
        """Collateral called at one date protects from the next date on."""
        netting = NettingSetManager([NettingSetDefinition("NS_A", "CPTY_A", active_csa=True)])
        pp = post_process_factory({"C1": 3.0}, netting=netting)
        assert np.allclose(pp.exposure_profile("NS_A").epe, [3.0, 0.0, 0.0])
        assert np.allclose(pp.collateral("NS_A").expected_collateral, [0.0, 3.0, 3.0])

    def test_full_initial_collateralisation(self, post_process_factory) -> None:
        netting = NettingSetManager([NettingSetDefinition("NS_A", "CPTY_A", active_csa=True)])
        pp = post_process_factory(
            {"C1": 3.0}, netting=netting, full_initial_collateralisation=True
        )
        assert np.allclose(pp.exposure_profile("NS_A").epe, 0.0)
        assert pp.xva("NS_A").cva == 0.0

    def test_no_lag_collateral(self, post_process_factory) -> None:
        netting = NettingSetManager([NettingSetDefinition("NS_A", "CPTY_A", active_csa=True)])
        pp = post_process_factory({"C1": 3.0}, netting=netting, calculation_type="NoLag")
        assert not pp.lagged
        assert np.allclose(pp.exposure_profile("NS_A").epe, 0.0)

    def test_initial_margin_reduces_exposure(self, post_process_factory) -> None:
        dim = DimResult("NS_A", DATES, np.ones((3, 4)), np.ones(3), (30, 30, 0))
        pp = post_process_factory(
            {"C1": 3.0}, dim_results={"NS_A": dim}, fva_borrowing_curve="BANK_FUNDING"
        )
        assert np.allclose(pp.exposure_profile("NS_A").epe, 2.0)
        assert np.isclose(pp.xva("NS_A").mva, 0.01 * TIMES[-1])

    def test_initial_margin_disabled(self, post_process_factory) -> None:
        dim = DimResult("NS_A", DATES, np.ones((3, 4)), np.ones(3), (30, 30, 0))
        pp = post_process_factory(
            {"C1": 3.0}, dim_results={"NS_A": dim}, analytics={"dim": False}
        )
        assert np.allclose(pp.exposure_profile("NS_A").epe, 3.0)
        assert pp.xva("NS_A").mva == 0.0

    def test_cva_sensitivity(self, post_process_factory) -> None:
        pp = post_process_factory({"C1": 3.0})
        cva, bumped, delta = pp.cva_sensitivity["NS_A"]
        assert cva == pp.xva("NS_A").cva
        assert bumped > cva
        assert delta > 0
        assert post_process_factory({"C1": 3.0}, analytics={"cvaSensi": False}).cva_sensitivity == {}

    def test_total_over_netting_sets(self, post_process_factory) -> None:
        pp = post_process_factory({"C1": 3.0})
        assert pp.xva().cva == pp.xva("NS_A").cva

    def test_missing_counterparty_curve(self, post_process_factory) -> None:
        netting = NettingSetManager([NettingSetDefinition("NS_A", "NOBODY")])
        with pytest.raises(ConfigurationError, match="NOBODY"):
            post_process_factory({"C1": 3.0}, netting=netting)

    def test_missing_dva_curve(self, post_process_factory) -> None:
        with pytest.raises(ConfigurationError):
            post_process_factory({"C1": 3.0}, dva_name="NOBODY")

    def test_missing_funding_curve(self, post_process_factory) -> None:
        with pytest.raises(ConfigurationError):
            post_process_factory({"C1": 3.0}, fva_lending_curve="NOBODY")

    def test_unknown_calculation_type(self, post_process_factory) -> None:
        with pytest.raises(ConfigurationError):
            post_process_factory({"C1": 3.0}, calculation_type="Symmetric")


class TestReports:
    """Tests for the report tables."""

    def test_xva_table(self, post_process_factory) -> None:
        reports = post_process_factory({"C1": 5.0, "C2": -2.0}).reports
        assert list(reports.xva["NettingSet"]) == ["NS_A", "ALL"]
        assert reports.xva.loc[0, "Counterparty"] == "CPTY_A"
        assert np.isclose(reports.xva.loc[1, "CVA"], reports.xva.loc[0, "CVA"])

    def test_exposure_tables(self, post_process_factory) -> None:
        reports = post_process_factory({"C1": 5.0, "C2": -2.0}).reports
        assert len(reports.exposure_nettingset) == 3
        assert "CollateralisedEPE" in reports.exposure_nettingset.columns
        assert "ExpectedCollateral" in reports.exposure_nettingset.columns
        assert len(reports.exposure_trade) == 6
        assert set(reports.exposure_trade["TradeId"]) == {"C1", "C2"}
        assert (reports.exposure_trade["NettingSet"] == "NS_A").all()

    def test_dim_tables(self, post_process_factory) -> None:
        dim = DimResult("NS_A", DATES, np.ones((3, 4)), np.ones(3), (30, 30, 0))
        reports = post_process_factory({"C1": 3.0}, dim_results={"NS_A": dim}).reports
        assert len(reports.dim_evolution) == 3
        assert np.allclose(reports.exposure_nettingset["ExpectedDIM"], 1.0)

    def test_optional_tables_empty(self, post_process_factory) -> None:
        reports = post_process_factory({"C1": 3.0}, analytics={"cvaSensi": False}).reports
        assert reports.dim_evolution.empty
        assert reports.cva_sensitivity.empty
        assert set(reports.to_dict()) == {
            "xva",
            "exposure_nettingset",
            "exposure_trade",
            "dim_evolution",
            "cva_sensitivity",
        }

    def test_reports_cached(self, post_process_factory) -> None:
        pp = post_process_factory({"C1": 3.0})
        assert pp.reports is pp.reports
