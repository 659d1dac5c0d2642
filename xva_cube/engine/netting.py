"""
Netting aggregation of a trade cube.

Used when netting-set values are not produced inline by the valuation
engine. Every depth slot of the trade cube is summed over the trades of a
netting set, which matches the combination rule of the NPV and cash flow
calculators.
"""

import logging
from collections.abc import Iterable

import numpy as np

from xva_cube._types import FloatArray
from xva_cube.cube.npv_cube import NPVCube, empty_like
from xva_cube.errors import ConfigurationError
from xva_cube.portfolio.portfolio import Portfolio

logger = logging.getLogger(__name__)


class NettingAggregator:
    """
    Builds a netting cube from a trade cube.

    Parameters
    ----------
    portfolio : Portfolio
        Trades of the cube; supplies the netting set of each trade
    netting_set_ids : Iterable[str] | None
        Ids of the netting cube; defaults to the portfolio's netting sets.
        Netting sets without trades in the cube keep the fill value.

    Example
    -------
    >>> netting_cube = NettingAggregator(portfolio).aggregate(cube)
    >>> netting_cube.get("NS_A", 0, 0) == cube.get("T1", 0, 0) + cube.get("T2", 0, 0)
    True
    """

    def __init__(self, portfolio: Portfolio, netting_set_ids: Iterable[str] | None = None) -> None:
        self.portfolio = portfolio
        if netting_set_ids is None:
            netting_set_ids = portfolio.netting_set_ids()
        self.netting_set_ids = list(netting_set_ids)

    def members(self, cube: NPVCube) -> dict[str, list[str]]:
        """Cube trade ids per netting set id."""
        members: dict[str, list[str]] = {ns: [] for ns in self.netting_set_ids}
        for trade_id in cube.ids:
            if trade_id not in self.portfolio:
                raise ConfigurationError(f"Cube id '{trade_id}' is not a portfolio trade")
            ns_id = self.portfolio.get(trade_id).netting_set_id
            if ns_id not in members:
                raise ConfigurationError(
                    f"Trade '{trade_id}' belongs to netting set '{ns_id}' "
                    "which is not in the netting cube"
                )
            members[ns_id].append(trade_id)
        return members

    def aggregate(self, cube: NPVCube) -> NPVCube:
        """
        Sum trade values per netting set.

        Returns
        -------
        NPVCube
            Frozen cube with the same dates, samples and depth as ``cube``
        """
        netting_cube = empty_like(cube, self.netting_set_ids)
        for ns_id, trade_ids in self.members(cube).items():
            if not trade_ids:
                logger.debug("netting set %s has no trades in the cube", ns_id)
                continue
            for depth in range(cube.depth):
                total = np.zeros((cube.num_dates, cube.samples))
                for trade_id in trade_ids:
                    total += cube.values(trade_id, depth)
                netting_cube.set_values(ns_id, total, depth)
                netting_cube.set_t0(ns_id, sum(cube.get_t0(t, depth) for t in trade_ids), depth)
        netting_cube.freeze()
        logger.debug(
            "aggregated %d trades into %d netting sets", cube.num_ids, netting_cube.num_ids
        )
        return netting_cube

    def net_to_gross_ratio(self, cube: NPVCube, netting_set_id: str, depth: int = 0) -> FloatArray:
        """
        Average net-to-gross ratio per date.

        NGR = Net exposure / Gross positive exposure

        This measures the benefit of netting. NGR = 1 means no benefit
        (single trade), NGR < 1 means exposure reduced by netting.

        Parameters
        ----------
        cube : NPVCube
            Trade cube
        netting_set_id : str
            Netting set to measure
        depth : int
            Slot holding the NPV

        Returns
        -------
        FloatArray
            NGR per cube date
        """
        trade_ids = self.members(cube)[netting_set_id]
        net = np.zeros((cube.num_dates, cube.samples))
        gross_pos = np.zeros((cube.num_dates, cube.samples))
        for trade_id in trade_ids:
            mtm = cube.values(trade_id, depth).astype(np.float64)
            net += mtm
            gross_pos += np.maximum(mtm, 0)

        net_exposure = np.maximum(net, 0).mean(axis=1)
        gross_exposure = gross_pos.mean(axis=1)
        ratio = np.ones(cube.num_dates)
        mask = gross_exposure >= 1e-10
        ratio[mask] = net_exposure[mask] / gross_exposure[mask]
        return ratio
