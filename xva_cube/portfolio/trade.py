"""
Trades: an instrument wrapped with its id and envelope.
"""

from dataclasses import dataclass, field

from xva_cube.errors import TradeBuildError
from xva_cube.instruments.base import Instrument
from xva_cube.market.todays_market import PricingMarket


@dataclass(frozen=True)
class Envelope:
    """Netting set and counterparty a trade belongs to."""

    netting_set_id: str
    counterparty: str = ""


@dataclass
class Trade:
    """
    A priced position in the portfolio.

    A trade must be built against a market before it is valued. Building
    checks that the market provides every currency the instrument needs
    and attaches the trade to it.

    Attributes
    ----------
    id : str
        Trade id, unique within a portfolio
    envelope : Envelope
        Netting set and counterparty
    instrument : Instrument
        Economic terms and pricer

    Example
    -------
    >>> trade = Trade("SWAP_1", Envelope("NS_A", "CPTY_A"), IRSwap(1e7, 0.02, 5.0))
    >>> trade.build(sim_market)
    >>> trade.npv(sim_market)
    """

    id: str
    envelope: Envelope
    instrument: Instrument
    _market: PricingMarket | None = field(default=None, init=False, repr=False, compare=False)

    @property
    def netting_set_id(self) -> str:
        return self.envelope.netting_set_id

    @property
    def counterparty(self) -> str:
        return self.envelope.counterparty

    @property
    def is_built(self) -> bool:
        return self._market is not None

    @property
    def pricing_currency(self) -> str:
        return self.instrument.pricing_currency

    @property
    def maturity(self) -> float:
        return self.instrument.maturity

    def build(self, market: PricingMarket) -> None:
        """
        Attach the trade to ``market``.

        Raises
        ------
        TradeBuildError
            If the market lacks a currency the instrument needs
        """
        missing = [c for c in self.instrument.currencies() if not market.has_currency(c)]
        if missing:
            raise TradeBuildError(self.id, f"no market data for currencies {missing}")
        self._market = market

    def reset_cached_pricing_state(self) -> None:
        """Detach from any market. Never raises."""
        self._market = None

    def _require_built(self) -> None:
        if self._market is None:
            raise TradeBuildError(self.id, "trade has not been built against a market")

    def npv(self, market: PricingMarket) -> float:
        """Value in the pricing currency on ``market``."""
        self._require_built()
        return self.instrument.npv(market)

    def cash_flows(self, market: PricingMarket, t_start: float, t_end: float) -> float:
        """Net amount paid in ``(t_start, t_end]``, in the pricing currency."""
        self._require_built()
        return self.instrument.cash_flows(market, t_start, t_end)
