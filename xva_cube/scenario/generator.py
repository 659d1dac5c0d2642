"""
Monte Carlo scenario generation for the cross-asset model.

All sample paths are simulated up front on every date of the grid
(valuation and close-out dates): exact OU transitions for the short rates,
log-Euler GBM steps for the FX rates, and the bank account numeraire from
trapezoidal integration of the domestic short rate. Scenarios are then
looked up by (date index, sample), so the paths do not depend on how the
valuation loop is split across workers.
"""

import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from datetime import date
from types import MappingProxyType

import numpy as np

from xva_cube._types import FloatArray, PathArray, Year
from xva_cube.errors import ConfigurationError
from xva_cube.model.cross_asset import CrossAssetModel
from xva_cube.scenario.grid import DateGrid

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Scenario:
    """
    Simulated risk factors at one (date, sample).

    Attributes
    ----------
    date : date
        Simulation date
    time : Year
        Year fraction from the as-of date
    sample : int
        Monte Carlo sample index
    numeraire : float
        Bank account value in the domestic currency
    short_rates : Mapping[str, float]
        Short rate per currency
    fx_spots : Mapping[str, float]
        Domestic units per unit of each foreign currency
    """

    date: date
    time: Year
    sample: int
    numeraire: float
    short_rates: Mapping[str, float]
    fx_spots: Mapping[str, float]


class ScenarioGenerator:
    """
    Pre-simulated paths of a ``CrossAssetModel`` on a ``DateGrid``.

    Parameters
    ----------
    model : CrossAssetModel
        Model whose factors are simulated
    grid : DateGrid
        Simulation dates
    samples : int
        Number of Monte Carlo samples
    seed : int | None
        Random seed for reproducibility
    antithetic : bool
        Use antithetic variates (samples must be even)

    Example
    -------
    >>> generator = ScenarioGenerator(model, grid, samples=1000, seed=42)
    >>> generator.scenario(0, 17).short_rates["USD"]
    """

    def __init__(
        self,
        model: CrossAssetModel,
        grid: DateGrid,
        samples: int,
        seed: int | None = 42,
        antithetic: bool = False,
    ) -> None:
        if samples < 1:
            raise ConfigurationError(f"samples must be positive, got {samples}")
        if antithetic and samples % 2 != 0:
            raise ConfigurationError(
                f"samples must be even for antithetic variates, got {samples}"
            )
        self.model = model
        self.grid = grid
        self.samples = int(samples)
        self.seed = seed
        self.antithetic = antithetic

        self._dates = grid.dates
        self._times = np.concatenate([[0.0], grid.times])
        self._short_rates: dict[str, PathArray] = {}
        self._fx_spots: dict[str, PathArray] = {}
        self._numeraire: PathArray
        self._simulate()

    def _simulate(self) -> None:
        rng = np.random.default_rng(self.seed)
        n_steps = len(self._dates)
        dts = np.diff(self._times)
        z = self.model.correlation.generate_correlated_samples(
            self.samples, n_steps, rng, antithetic=self.antithetic
        )
        factor_index = {name: i for i, name in enumerate(self.model.factor_names)}

        for ccy, factor in self.model.ir.items():
            paths = np.empty((self.samples, n_steps + 1))
            paths[:, 0] = factor.r0
            shocks = z[factor_index[f"IR:{ccy}"]]
            for i in range(n_steps):
                paths[:, i + 1] = factor.transition(paths[:, i], dts[i], shocks[:, i])
            self._short_rates[ccy] = paths

        r_dom = self._short_rates[self.model.domestic_currency]
        for ccy, factor in self.model.fx.items():
            paths = np.empty((self.samples, n_steps + 1))
            paths[:, 0] = factor.spot
            shocks = z[factor_index[f"FX:{ccy}"]]
            r_for = self._short_rates[ccy]
            for i in range(n_steps):
                paths[:, i + 1] = factor.transition(
                    paths[:, i], r_dom[:, i], r_for[:, i], dts[i], shocks[:, i]
                )
            self._fx_spots[ccy] = paths

        # Bank account: exp of the trapezoidal integral of the domestic rate
        accrual = 0.5 * (r_dom[:, :-1] + r_dom[:, 1:]) * dts
        numeraire = np.ones((self.samples, n_steps + 1))
        numeraire[:, 1:] = np.exp(np.cumsum(accrual, axis=1))
        self._numeraire = numeraire

        for array in [numeraire, *self._short_rates.values(), *self._fx_spots.values()]:
            array.flags.writeable = False
        logger.debug(
            "simulated %d samples on %d dates for %d factors",
            self.samples,
            n_steps,
            len(factor_index),
        )

    @property
    def dates(self) -> tuple[date, ...]:
        return self._dates

    def scenario(self, date_index: int, sample: int) -> Scenario:
        """
        Scenario at ``grid.dates[date_index]`` for one sample.

        Raises
        ------
        IndexError
            If either index is out of range
        """
        if not 0 <= date_index < len(self._dates):
            raise IndexError(f"Date index {date_index} out of range [0, {len(self._dates)})")
        if not 0 <= sample < self.samples:
            raise IndexError(f"Sample {sample} out of range [0, {self.samples})")
        col = date_index + 1
        return Scenario(
            date=self._dates[date_index],
            time=float(self._times[col]),
            sample=sample,
            numeraire=float(self._numeraire[sample, col]),
            short_rates=MappingProxyType(
                {ccy: float(p[sample, col]) for ccy, p in self._short_rates.items()}
            ),
            fx_spots=MappingProxyType(
                {ccy: float(p[sample, col]) for ccy, p in self._fx_spots.items()}
            ),
        )

    def path(self, sample: int) -> Iterator[Scenario]:
        """Scenarios of one sample on all grid dates, in date order."""
        for date_index in range(len(self._dates)):
            yield self.scenario(date_index, sample)

    def short_rate_paths(self, currency: str) -> FloatArray:
        """(samples, dates) short rates, excluding t=0."""
        return self._short_rates[currency][:, 1:]

    def fx_spot_paths(self, currency: str) -> FloatArray:
        """(samples, dates) FX spots, excluding t=0."""
        return self._fx_spots[currency][:, 1:]

    def numeraire_paths(self) -> FloatArray:
        """(samples, dates) numeraire values, excluding t=0."""
        return self._numeraire[:, 1:]


class ScenarioGeneratorBuilder:
    """Builds a ``ScenarioGenerator`` from ``ScenarioGeneratorConfig`` settings."""

    def __init__(self, config: "ScenarioGeneratorConfig") -> None:  # noqa: F821
        self.config = config

    def build(self, model: CrossAssetModel, grid: DateGrid) -> ScenarioGenerator:
        return ScenarioGenerator(
            model,
            grid,
            samples=self.config.samples,
            seed=self.config.seed,
            antithetic=self.config.antithetic,
        )
