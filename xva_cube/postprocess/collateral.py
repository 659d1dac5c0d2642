"""
Variation margin on simulated netting-set values.

Collateral is called at each default date with threshold and minimum
transfer amount, and is held against the value at close-out:

- ``NoLag`` (close-out grid): the balance called at the default date is
  applied to the close-out value of the same date.
- ``Regular``: the balance called at the previous date is applied to the
  value at the current date, so one grid step plays the margin period.

Balances are computed in base currency at each date and deflated with the
numeraire of the date they are called on.
"""

from dataclasses import dataclass

import numpy as np

from xva_cube._types import FloatArray, PathArray
from xva_cube.portfolio.netting import NettingSetDefinition


@dataclass
class CollateralResult:
    """
    Collateral of one netting set.

    Attributes
    ----------
    balance : PathArray
        Deflated collateral held against the value at each date
    collateralised : PathArray
        Deflated value net of collateral
    """

    balance: PathArray
    collateralised: PathArray

    @property
    def expected_collateral(self) -> FloatArray:
        return self.balance.mean(axis=1)


@dataclass
class VariationMargin:
    """
    Variation Margin engine with threshold and MTA.

    Attributes
    ----------
    threshold : float
        Collateral threshold below which no VM is posted
    mta : float
        Minimum transfer amount
    independent_amount : float
        Collateral held regardless of exposure (negative if posted)

    Example
    -------
    >>> vm = VariationMargin(threshold=1e6, mta=1e5)
    >>> result = vm.apply(npv, close_out, numeraire, lagged=True)
    >>> print(f"Peak collateralised EPE: {result.collateralised.clip(0).mean(1).max():,.0f}")
    """

    threshold: float = 0.0
    mta: float = 0.0
    independent_amount: float = 0.0

    def __post_init__(self) -> None:
        if self.threshold < 0:
            raise ValueError(f"Threshold must be non-negative, got {self.threshold}")
        if self.mta < 0:
            raise ValueError(f"MTA must be non-negative, got {self.mta}")

    @classmethod
    def from_netting_set(cls, definition: NettingSetDefinition) -> "VariationMargin":
        return cls(
            threshold=definition.threshold,
            mta=definition.mta,
            independent_amount=definition.independent_amount,
        )

    def balances(self, values: PathArray, initial_balance: float | FloatArray = 0.0) -> PathArray:
        """
        VM balance after the call at each date.

        Parameters
        ----------
        values : PathArray
            Undeflated netting-set values, shape (n_dates, n_samples)
        initial_balance : float | FloatArray
            Balance held before the first date

        Returns
        -------
        PathArray
            Balance per date, same shape as ``values``
        """
        n_dates, n_samples = values.shape
        balance = np.broadcast_to(np.asarray(initial_balance, dtype=float), (n_samples,)).copy()
        out = np.empty((n_dates, n_samples))
        for j in range(n_dates):
            balance = balance + self._calculate_margin_call(values[j], balance)
            out[j] = balance
        return out

    def apply(
        self,
        npv: PathArray,
        close_out: PathArray,
        numeraire: PathArray,
        lagged: bool,
        initial_balance: float = 0.0,
    ) -> CollateralResult:
        """
        Collateralise deflated netting-set values.

        Parameters
        ----------
        npv : PathArray
            Deflated default-date values, shape (n_dates, n_samples)
        close_out : PathArray
            Deflated close-out values, same shape
        numeraire : PathArray
            Numeraire at the default dates, same shape
        lagged : bool
            Apply the previous date's balance to the current value
            (``Regular``) instead of the current balance to the close-out
            value (``NoLag``)
        initial_balance : float
            Balance held at the as-of date

        Returns
        -------
        CollateralResult
            Deflated balances and collateralised values
        """
        called = self.balances(npv * numeraire, initial_balance) / numeraire
        if lagged:
            called = np.vstack([np.full((1, npv.shape[1]), float(initial_balance)), called[:-1]])
        held = called + self.independent_amount / numeraire
        values = npv if lagged else close_out
        return CollateralResult(balance=held, collateralised=values - held)

    def _calculate_margin_call(
        self,
        exposure: FloatArray,
        current_collateral: FloatArray,
    ) -> FloatArray:
        """
        Calculate margin call amount.

        Returns
        -------
        FloatArray
            Margin call amount (positive = receive, negative = return or post)
        """
        call = np.zeros(len(exposure))

        # Uncollateralized portion
        uncoll = exposure - current_collateral

        # Positive exposure - we receive collateral
        pos_mask = uncoll > self.threshold + self.mta
        call[pos_mask] = uncoll[pos_mask] - self.threshold

        # Negative exposure - we post collateral
        neg_mask = uncoll < -(self.threshold + self.mta)
        call[neg_mask] = uncoll[neg_mask] + self.threshold

        return_threshold = max(self.threshold - self.mta, 0)

        # If we were receiving collateral but exposure dropped
        return_pos = (current_collateral > 0) & (uncoll < return_threshold)
        call[return_pos] = np.minimum(uncoll[return_pos] - self.threshold, 0)

        # If we were posting collateral but exposure improved
        return_neg = (current_collateral < 0) & (uncoll > -return_threshold)
        call[return_neg] = np.maximum(uncoll[return_neg] + self.threshold, 0)

        return call


def uncollateralised(npv: PathArray, close_out: PathArray, lagged: bool) -> CollateralResult:
    """Result for a netting set without an active CSA."""
    values = npv if lagged else close_out
    return CollateralResult(balance=np.zeros_like(values), collateralised=values.copy())
