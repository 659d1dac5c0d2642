"""
Portfolio: insertion-ordered collection of trades keyed by trade id.
"""

import logging
from collections.abc import Iterable, Iterator

from xva_cube.errors import BuildFailure, TradeBuildError, UnknownTradeError
from xva_cube.instruments import FXForward, IRSwap
from xva_cube.market.todays_market import PricingMarket
from xva_cube.portfolio.trade import Envelope, Trade

logger = logging.getLogger(__name__)


class Portfolio:
    """
    Trades of a run, in insertion order.

    Parameters
    ----------
    trades : Iterable[Trade]
        Initial trades

    Example
    -------
    >>> portfolio = Portfolio([swap_trade, fx_trade])
    >>> portfolio.netting_set_ids()
    ['NS_A']
    """

    def __init__(self, trades: Iterable[Trade] = ()) -> None:
        self._trades: dict[str, Trade] = {}
        for trade in trades:
            self.add(trade)

    def add(self, trade: Trade) -> None:
        if trade.id in self._trades:
            raise ValueError(f"Duplicate trade id '{trade.id}'")
        self._trades[trade.id] = trade

    def remove(self, trade_id: str) -> Trade:
        return self._trades.pop(trade_id)

    def has(self, trade_id: str) -> bool:
        return trade_id in self._trades

    def get(self, trade_id: str) -> Trade:
        return self._trades[trade_id]

    @property
    def ids(self) -> list[str]:
        return list(self._trades)

    @property
    def trades(self) -> list[Trade]:
        return list(self._trades.values())

    def __len__(self) -> int:
        return len(self._trades)

    def __iter__(self) -> Iterator[Trade]:
        return iter(self._trades.values())

    def __contains__(self, trade_id: object) -> bool:
        return trade_id in self._trades

    def netting_set_ids(self) -> list[str]:
        """Sorted distinct netting set ids of the trades."""
        return sorted({t.netting_set_id for t in self._trades.values()})

    def trade_ids_by_netting_set(self) -> dict[str, list[str]]:
        members: dict[str, list[str]] = {}
        for trade in self._trades.values():
            members.setdefault(trade.netting_set_id, []).append(trade.id)
        return members

    def filtered(self, trade_ids: Iterable[str]) -> "Portfolio":
        """
        New portfolio with the requested trades, sharing the trade objects.

        Trades keep the order of this portfolio.

        Raises
        ------
        UnknownTradeError
            If a requested id is not in this portfolio
        """
        wanted = set()
        for trade_id in trade_ids:
            if trade_id not in self._trades:
                raise UnknownTradeError(trade_id)
            wanted.add(trade_id)
        return Portfolio(t for t in self._trades.values() if t.id in wanted)

    def copy(self) -> "Portfolio":
        return Portfolio(self._trades.values())

    def reset(self) -> None:
        """Clear cached pricing state of all trades."""
        for trade in self._trades.values():
            trade.reset_cached_pricing_state()

    def build(self, market: PricingMarket, continue_on_error: bool = False) -> list[BuildFailure]:
        """
        Build every trade against ``market``.

        Trades that fail are removed from this portfolio when
        ``continue_on_error`` is set; otherwise the first failure is raised.

        Returns
        -------
        list[BuildFailure]
            The trades removed, in portfolio order
        """
        failures: list[BuildFailure] = []
        for trade in list(self._trades.values()):
            try:
                trade.build(market)
            except TradeBuildError as exc:
                if not continue_on_error:
                    raise
                logger.warning("trade %s excluded from the run: %s", trade.id, exc.cause)
                failures.append(BuildFailure(trade.id, exc.cause))
                del self._trades[trade.id]
        return failures

    @classmethod
    def from_config(cls, config: "PortfolioConfig") -> "Portfolio":  # noqa: F821
        """Create trades from a validated portfolio configuration."""
        trades = [
            Trade(c.id, Envelope(c.netting_set_id, c.counterparty), IRSwap.from_config(c))
            for c in config.irs_trades
        ]
        trades += [
            Trade(c.id, Envelope(c.netting_set_id, c.counterparty), FXForward.from_config(c))
            for c in config.fxf_trades
        ]
        return cls(trades)
