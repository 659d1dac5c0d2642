"""
Pytest fixtures for exposure simulation testing.

Provides reusable fixtures for today's market, the cross-asset model,
scenario generation, trades, portfolios and run settings.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any

import numpy as np
import pytest

from xva_cube.config import create_default_market_config, create_default_runner_config
from xva_cube.config.models import XvaRunnerConfig
from xva_cube.instruments import FXForward, IRSwap
from xva_cube.instruments.base import Instrument, InstrumentType
from xva_cube.market import DiscountCurve, HazardCurve, ScenarioSimMarket, TodaysMarket
from xva_cube.model import CrossAssetModel, CrossAssetModelBuilder
from xva_cube.portfolio import Envelope, NettingSetDefinition, NettingSetManager, Portfolio, Trade
from xva_cube.scenario import DateGrid, ScenarioGenerator

ASOF = date(2024, 1, 15)


@dataclass
class ConstantInstrument(Instrument):
    """Instrument worth a fixed amount of USD until maturity."""

    value: float
    maturity: float = 10.0
    notional: float = 1.0
    instrument_type: InstrumentType = field(default=InstrumentType.IRS, init=False, repr=False)

    @property
    def pricing_currency(self) -> str:
        return "USD"

    def currencies(self) -> tuple[str, ...]:
        return ("USD",)

    def npv(self, market) -> float:
        return self.value

    def cash_flows(self, market, t_start: float, t_end: float) -> float:
        return 0.0

    def get_cash_flow_dates(self) -> np.ndarray:
        return np.array([self.maturity])

    def to_dict(self) -> dict[str, Any]:
        return {"value": self.value}


@dataclass
class FailingInstrument(ConstantInstrument):
    """Instrument that cannot be priced after ``fail_after`` years."""

    fail_after: float = 0.0

    def npv(self, market) -> float:
        if market.evaluation_time > self.fail_after:
            raise RuntimeError("pricing engine failure")
        return self.value


@dataclass
class YenInstrument(ConstantInstrument):
    """Instrument needing a currency the default market does not quote."""

    def currencies(self) -> tuple[str, ...]:
        return ("USD", "JPY")


@pytest.fixture
def asof() -> date:
    """As-of date of all test runs."""
    return ASOF


@pytest.fixture
def time_grid() -> np.ndarray:
    """Quarterly time grid to two years."""
    return np.linspace(0.25, 2.0, 8)


@pytest.fixture
def flat_discount_curve() -> DiscountCurve:
    """Flat 2% discount curve."""
    return DiscountCurve(rate=0.02)


@pytest.fixture
def hazard_curve() -> HazardCurve:
    """Standard hazard curve with 120bps hazard rate."""
    return HazardCurve(hazard_rate=0.012, recovery_rate=0.4)


@pytest.fixture
def market_config():
    """Default USD/EUR market configuration."""
    return create_default_market_config()


@pytest.fixture
def todays_market(market_config) -> TodaysMarket:
    """Today's USD/EUR market with CPTY_A and BANK credit curves."""
    return TodaysMarket.from_config(ASOF, "USD", market_config)


@pytest.fixture
def runner_config() -> XvaRunnerConfig:
    """Small run: three quarterly dates, 100 samples."""
    return create_default_runner_config(ASOF, samples=100, grid=["3M", "6M", "9M"])


@pytest.fixture
def model(todays_market: TodaysMarket, runner_config: XvaRunnerConfig) -> CrossAssetModel:
    """Cross-asset model calibrated to today's market."""
    return CrossAssetModelBuilder(todays_market, runner_config.model).build()


@pytest.fixture
def grid() -> DateGrid:
    """Quarterly grid without close-out dates."""
    return DateGrid.from_tenors(ASOF, ["3M", "6M", "9M"])


@pytest.fixture
def mpor_grid() -> DateGrid:
    """Quarterly grid with 14-day close-out dates."""
    return DateGrid.from_tenors(ASOF, ["3M", "6M", "9M"], close_out_lag_days=14)


@pytest.fixture
def generator(model: CrossAssetModel, grid: DateGrid) -> ScenarioGenerator:
    """50 samples on the quarterly grid."""
    return ScenarioGenerator(model, grid, samples=50, seed=7)


@pytest.fixture
def sim_market(todays_market, model, generator) -> ScenarioSimMarket:
    """Simulated market bound to the quarterly generator."""
    return ScenarioSimMarket(todays_market, model, generator)


@pytest.fixture
def mpor_sim_market(todays_market, model, mpor_grid) -> ScenarioSimMarket:
    """Simulated market bound to a generator on the close-out grid."""
    generator = ScenarioGenerator(model, mpor_grid, samples=40, seed=7)
    return ScenarioSimMarket(todays_market, model, generator)


@pytest.fixture
def swap_trade() -> Trade:
    """5Y USD payer swap in netting set NS_A."""
    return Trade(
        "SWAP_1",
        Envelope("NS_A", "CPTY_A"),
        IRSwap(notional=10_000_000, fixed_rate=0.02, maturity=5.0, payment_freq=0.5),
    )


@pytest.fixture
def fx_forward_trade() -> Trade:
    """1Y EUR/USD forward in netting set NS_A."""
    return Trade(
        "FXF_1",
        Envelope("NS_A", "CPTY_A"),
        FXForward(notional_foreign=5_000_000, strike=1.10, maturity=1.0, buy_foreign=True),
    )


@pytest.fixture
def receiver_swap_trade() -> Trade:
    """3Y USD receiver swap in netting set NS_B."""
    return Trade(
        "SWAP_2",
        Envelope("NS_B", "CPTY_A"),
        IRSwap(notional=15_000_000, fixed_rate=0.025, maturity=3.0, pay_fixed=False),
    )


@pytest.fixture
def portfolio(swap_trade: Trade, fx_forward_trade: Trade) -> Portfolio:
    """Two trades in one netting set."""
    return Portfolio([swap_trade, fx_forward_trade])


@pytest.fixture
def two_netting_set_portfolio(swap_trade, fx_forward_trade, receiver_swap_trade) -> Portfolio:
    """Three trades across NS_A and NS_B."""
    return Portfolio([swap_trade, fx_forward_trade, receiver_swap_trade])


@pytest.fixture
def netting() -> NettingSetManager:
    """Uncollateralised NS_A with counterparty CPTY_A."""
    return NettingSetManager([NettingSetDefinition("NS_A", "CPTY_A")])


@pytest.fixture
def constant_trade():
    """Factory for trades worth a fixed USD amount."""

    def make(trade_id: str, value: float, netting_set_id: str = "NS_A") -> Trade:
        return Trade(trade_id, Envelope(netting_set_id, "CPTY_A"), ConstantInstrument(value))

    return make


@pytest.fixture
def failing_trade():
    """Factory for trades that fail to price on simulated dates."""

    def make(trade_id: str, netting_set_id: str = "NS_A", fail_after: float = 0.0) -> Trade:
        return Trade(
            trade_id,
            Envelope(netting_set_id, "CPTY_A"),
            FailingInstrument(1.0, fail_after=fail_after),
        )

    return make


@pytest.fixture
def unbuildable_trade() -> Trade:
    """Trade whose currencies are missing from the market."""
    return Trade("JPY_1", Envelope("NS_A", "CPTY_A"), YenInstrument(1.0))
