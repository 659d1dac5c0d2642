"""
Exposure metrics from simulated values.

Provides functions to compute:
- EPE (Expected Positive Exposure)
- ENE (Expected Negative Exposure)
- PFE (Potential Future Exposure)
- EE (Expected Exposure)
- EEPE (Effective Expected Positive Exposure)

Value arrays are laid out like cube blocks, (dates, samples), so every
metric reduces over ``axis=1``. Numeraire-deflated values give discounted
metrics; values multiplied back by the numeraire give metrics in base
currency at each date.
"""

from dataclasses import dataclass
from datetime import date

import numpy as np

from xva_cube._types import FloatArray, PathArray


@dataclass
class ExposureProfile:
    """
    Exposure profile of one trade or netting set.

    Attributes
    ----------
    id : str
        Trade or netting set id
    dates : tuple[date, ...]
        Cube dates
    times : FloatArray
        Year fractions of ``dates``
    epe : FloatArray
        Discounted expected positive exposure
    ene : FloatArray
        Discounted expected negative exposure
    ee : FloatArray
        Undiscounted expected positive exposure
    pfe : FloatArray
        Undiscounted PFE at ``quantile``
    quantile : float
        PFE quantile
    eepe : float
        Effective EPE over the first year
    """

    id: str
    dates: tuple[date, ...]
    times: FloatArray
    epe: FloatArray
    ene: FloatArray
    ee: FloatArray
    pfe: FloatArray
    quantile: float
    eepe: float

    @property
    def peak_epe(self) -> float:
        return float(np.max(self.epe))

    @property
    def peak_pfe(self) -> float:
        return float(np.max(self.pfe))

    @classmethod
    def from_paths(
        cls,
        id_: str,
        dates: tuple[date, ...],
        times: FloatArray,
        deflated: PathArray,
        numeraire: PathArray,
        quantile: float = 0.95,
    ) -> "ExposureProfile":
        """
        Calculate all exposure metrics from deflated values.

        Parameters
        ----------
        id_ : str
            Trade or netting set id
        dates : tuple[date, ...]
            Cube dates
        times : FloatArray
            Year fractions of ``dates``
        deflated : PathArray
            Numeraire-deflated values, shape (n_dates, n_samples)
        numeraire : PathArray
            Numeraire, shape (n_dates, n_samples)
        quantile : float
            PFE quantile

        Returns
        -------
        ExposureProfile
            Complete exposure profile
        """
        undeflated = deflated * numeraire
        ee = calculate_epe(undeflated)
        return cls(
            id=id_,
            dates=tuple(dates),
            times=np.asarray(times, dtype=float),
            epe=calculate_epe(deflated),
            ene=calculate_ene(deflated),
            ee=ee,
            pfe=calculate_pfe(undeflated, quantile),
            quantile=quantile,
            eepe=calculate_eepe(ee, times),
        )


def calculate_epe(values: PathArray) -> FloatArray:
    """
    Calculate Expected Positive Exposure at each date.

    EPE(t) = E[max(V(t), 0)]

    Parameters
    ----------
    values : PathArray
        Values, shape (n_dates, n_samples)

    Returns
    -------
    FloatArray
        EPE at each date, shape (n_dates,)

    Example
    -------
    >>> values = np.random.randn(20, 1000) * 1e6
    >>> epe = calculate_epe(values)
    """
    return np.maximum(values, 0).mean(axis=1)


def calculate_ene(values: PathArray) -> FloatArray:
    """
    Calculate Expected Negative Exposure at each date.

    ENE(t) = E[max(-V(t), 0)]

    This represents the counterparty's exposure to us.
    """
    return np.maximum(-values, 0).mean(axis=1)


def calculate_pfe(values: PathArray, quantile: float = 0.95) -> FloatArray:
    """
    Calculate Potential Future Exposure at each date.

    PFE(t, α) = Quantile_α(max(V(t), 0))

    Raises
    ------
    ValueError
        If ``quantile`` is not in (0, 1)
    """
    if not 0 < quantile < 1:
        raise ValueError(f"Quantile must be in (0, 1), got {quantile}")
    return np.quantile(np.maximum(values, 0), quantile, axis=1)


def calculate_effective_epe(epe: FloatArray) -> FloatArray:
    """
    Calculate Effective EPE (non-decreasing EPE).

    Effective EPE at time t is the maximum of EPE from 0 to t.
    This is used in regulatory capital calculations.
    """
    return np.maximum.accumulate(epe)


def calculate_eepe(epe: FloatArray, times: FloatArray, horizon: float = 1.0) -> float:
    """
    Time-weighted average of the Effective EPE up to ``horizon``.

    Parameters
    ----------
    epe : FloatArray
        EPE profile
    times : FloatArray
        Year fractions of the profile dates
    horizon : float
        Averaging horizon in years (1 year for regulatory EEPE)

    Returns
    -------
    float
        EEPE; 0 for an empty profile
    """
    times = np.asarray(times, dtype=float)
    epe = np.asarray(epe, dtype=float)
    if len(times) == 0:
        return 0.0
    effective = calculate_effective_epe(epe)
    dt = np.diff(np.minimum(times, horizon), prepend=0.0)
    covered = min(times[-1], horizon)
    if covered <= 0:
        return float(effective[0])
    return float(np.sum(effective * dt) / covered)


def net_exposure_reduction(epe_uncoll: FloatArray, epe_coll: FloatArray) -> float:
    """
    Reduction in peak exposure from collateral, in percent.

    Returns
    -------
    float
        (1 - peak_coll / peak_uncoll) × 100
    """
    peak_uncoll = np.max(epe_uncoll)
    peak_coll = np.max(epe_coll)

    if peak_uncoll < 1e-10:
        return 0.0

    return float((1 - peak_coll / peak_uncoll) * 100)
