"""
Tests for today's market, curves and the simulated market.
"""

import numpy as np
import pytest

from xva_cube.cube import AggregationScenarioDataType, InMemoryAggregationScenarioData
from xva_cube.errors import PreconditionError
from xva_cube.market import DiscountCurve, HazardCurve, ScenarioSimMarket


class TestDiscountCurve:
    """Tests for zero curves."""

    def test_flat_discount_factor(self, flat_discount_curve: DiscountCurve) -> None:
        assert np.isclose(flat_discount_curve.discount_factor(1.0), np.exp(-0.02))

    def test_pillar_interpolation(self) -> None:
        curve = DiscountCurve(tenors=[1.0, 5.0], rates=[0.02, 0.03])
        assert np.isclose(curve.zero_rate(3.0), 0.025)
        assert np.isclose(curve.zero_rate(10.0), 0.03)

    def test_forward_discount_factor(self, flat_discount_curve: DiscountCurve) -> None:
        assert np.isclose(flat_discount_curve.discount_factor(3.0, t_start=1.0), np.exp(-0.04))

    def test_forward_rate(self, flat_discount_curve: DiscountCurve) -> None:
        assert np.isclose(flat_discount_curve.forward_rate(1.0, 2.0), 0.02)

    def test_mismatched_pillars(self) -> None:
        with pytest.raises(ValueError):
            DiscountCurve(tenors=[1.0, 2.0], rates=[0.02])


class TestHazardCurve:
    """Tests for credit curves."""

    def test_survival(self, hazard_curve: HazardCurve) -> None:
        assert np.isclose(hazard_curve.survival_probability(5.0), np.exp(-0.06))
        assert np.isclose(hazard_curve.lgd, 0.6)

    def test_incremental_default_probabilities_sum(self, hazard_curve: HazardCurve) -> None:
        times = np.array([0.25, 0.5, 1.0])
        pds = hazard_curve.incremental_default_probabilities(times)
        assert len(pds) == 3
        assert np.isclose(pds.sum(), 1 - hazard_curve.survival_probability(1.0))

    def test_bumped(self, hazard_curve: HazardCurve) -> None:
        assert np.isclose(hazard_curve.bumped(1.0).hazard_rate, 0.0121)

    def test_credit_triangle(self) -> None:
        curve = HazardCurve.from_cds_spread(0.006, recovery_rate=0.4)
        assert np.isclose(curve.hazard_rate, 0.01)


class TestTodaysMarket:
    """Tests for market data at the as-of date."""

    def test_from_config(self, todays_market) -> None:
        assert todays_market.currencies == ("USD", "EUR")
        assert todays_market.fx_spot("USD") == 1.0
        assert todays_market.fx_spot("EUR") == 1.10
        assert todays_market.numeraire() == 1.0
        assert todays_market.evaluation_time == 0.0
        assert np.isclose(todays_market.default_curve("CPTY_A").hazard_rate, 0.012)
        assert np.isclose(todays_market.funding_spread("BANK_FUNDING"), 0.01)

    def test_has_currency(self, todays_market) -> None:
        assert todays_market.has_currency("EUR")
        assert not todays_market.has_currency("JPY")

    def test_missing_data(self, todays_market) -> None:
        with pytest.raises(KeyError):
            todays_market.default_curve("NOBODY")
        with pytest.raises(KeyError):
            todays_market.fx_spot("JPY")


class TestScenarioSimMarket:
    """Tests for the scenario-driven market."""

    def test_requires_scenario(self, sim_market: ScenarioSimMarket) -> None:
        with pytest.raises(PreconditionError):
            sim_market.numeraire()

    def test_advance(self, sim_market: ScenarioSimMarket, generator) -> None:
        """The market prices off the scenario's factors at the scenario time."""
        scenario = generator.scenario(1, 4)
        sim_market.advance(scenario)
        assert sim_market.evaluation_time == scenario.time
        assert sim_market.numeraire() == scenario.numeraire
        assert sim_market.fx_spot("EUR") == scenario.fx_spots["EUR"]
        assert sim_market.fx_spot("USD") == 1.0
        expected = sim_market.model.discount_bond("USD", scenario.short_rates["USD"], 1.0)
        assert np.isclose(sim_market.discount("USD", scenario.time + 1.0), expected)

    def test_past_discount_is_one(self, sim_market, generator) -> None:
        scenario = generator.scenario(2, 0)
        sim_market.advance(scenario)
        assert sim_market.discount("USD", 0.1) == 1.0

    def test_sticky_evaluation_time(self, sim_market, generator) -> None:
        """An earlier evaluation time lengthens the discounting horizon."""
        scenario = generator.scenario(2, 0)
        earlier = generator.scenario(1, 0).time
        sim_market.advance(scenario, evaluation_time=earlier)
        assert sim_market.evaluation_time == earlier
        expected = sim_market.model.discount_bond(
            "USD", scenario.short_rates["USD"], scenario.time + 1.0 - earlier
        )
        assert np.isclose(sim_market.discount("USD", scenario.time + 1.0), expected)

    def test_evaluation_time_after_scenario(self, sim_market, generator) -> None:
        scenario = generator.scenario(0, 0)
        with pytest.raises(ValueError):
            sim_market.advance(scenario, evaluation_time=scenario.time + 0.5)

    def test_records_scenario_data(self, sim_market, generator) -> None:
        """Advancing with a date index writes numeraire, FX spots and short rates."""
        data = InMemoryAggregationScenarioData(3, 50)
        sim_market.aggregation_scenario_data = data
        scenario = generator.scenario(2, 9)
        sim_market.advance(scenario, date_index=2)
        assert data.get(2, 9, AggregationScenarioDataType.NUMERAIRE) == scenario.numeraire
        assert data.get(2, 9, AggregationScenarioDataType.FX_SPOT, "EUR") == scenario.fx_spots["EUR"]
        assert data.get(2, 9, AggregationScenarioDataType.SHORT_RATE, "USD") == (
            scenario.short_rates["USD"]
        )

    def test_advance_without_index_records_nothing(self, sim_market, generator) -> None:
        data = InMemoryAggregationScenarioData(3, 50)
        sim_market.aggregation_scenario_data = data
        sim_market.advance(generator.scenario(0, 0))
        assert data.keys() == []

    def test_clone_is_independent(self, sim_market, generator) -> None:
        clone = sim_market.clone()
        clone.advance(generator.scenario(0, 0))
        assert sim_market.scenario is None
        assert clone.model is sim_market.model
        assert clone.scenario_generator is sim_market.scenario_generator

    def test_reset(self, sim_market, generator) -> None:
        sim_market.advance(generator.scenario(1, 1))
        sim_market.reset()
        assert sim_market.scenario is None
        assert sim_market.evaluation_time == 0.0

    def test_has_currency(self, sim_market) -> None:
        assert sim_market.has_currency("USD")
        assert sim_market.has_currency("EUR")
        assert not sim_market.has_currency("JPY")
