"""
Valuation adjustments from exposure profiles.

Exposure profiles produced from numeraire-deflated values are already
discounted, so the calculators take discount factors only for profiles
that are not. All calculators work on one netting set at a time.
"""

from dataclasses import dataclass

import numpy as np

from xva_cube._types import FloatArray
from xva_cube.market.curves import HazardCurve


def _discounted(profile: FloatArray, discount_factors: FloatArray | None) -> FloatArray:
    profile = np.asarray(profile, dtype=float)
    if discount_factors is None:
        return profile
    return profile * np.asarray(discount_factors, dtype=float)


@dataclass
class CVACalculator:
    """
    Calculator for Credit Valuation Adjustment.

    CVA = Σᵢ DF(tᵢ) × EPE(tᵢ) × LGD × ΔPD(tᵢ)

    where:
        DF = discount factor (1 for discounted EPE)
        EPE = expected positive exposure
        LGD = loss given default
        ΔPD = incremental default probability

    Attributes
    ----------
    lgd : float
        Loss given default (1 - recovery rate)
    hazard_rate : float
        Constant hazard rate (per annum)

    Example
    -------
    >>> calc = CVACalculator.from_curve(market.default_curve("CPTY_A"))
    >>> cva = calc.calculate(profile.epe, profile.times)
    """

    lgd: float = 0.60
    hazard_rate: float = 0.012

    def __post_init__(self) -> None:
        if not 0 <= self.lgd <= 1:
            raise ValueError(f"LGD must be in [0, 1], got {self.lgd}")
        if self.hazard_rate < 0:
            raise ValueError(f"Hazard rate must be non-negative, got {self.hazard_rate}")

    @classmethod
    def from_curve(cls, curve: HazardCurve) -> "CVACalculator":
        return cls(lgd=curve.lgd, hazard_rate=curve.hazard_rate)

    @property
    def hazard_curve(self) -> HazardCurve:
        return HazardCurve(hazard_rate=self.hazard_rate, recovery_rate=1 - self.lgd)

    def calculate(
        self,
        epe: FloatArray,
        time_grid: FloatArray,
        discount_factors: FloatArray | None = None,
    ) -> float:
        """
        Calculate CVA from an EPE profile.

        Parameters
        ----------
        epe : FloatArray
            Expected positive exposure at each time, shape (n_steps,)
        time_grid : FloatArray
            Time points in years, shape (n_steps,)
        discount_factors : FloatArray | None
            Discount factors if ``epe`` is not discounted

        Returns
        -------
        float
            CVA value in base currency
        """
        inc_pd = self.hazard_curve.incremental_default_probabilities(time_grid)
        return float(np.sum(_discounted(epe, discount_factors) * self.lgd * inc_pd))

    def sensitivity_to_hazard_rate(
        self,
        epe: FloatArray,
        time_grid: FloatArray,
        discount_factors: FloatArray | None = None,
        bump: float = 0.0001,
    ) -> tuple[float, float]:
        """
        CVA after a hazard rate bump, and its change per 1bp.

        Returns
        -------
        tuple[float, float]
            (bumped CVA, CVA change per 1bp hazard rate move)
        """
        base_cva = self.calculate(epe, time_grid, discount_factors)
        bumped_calc = CVACalculator(lgd=self.lgd, hazard_rate=self.hazard_rate + bump)
        bumped_cva = bumped_calc.calculate(epe, time_grid, discount_factors)
        return bumped_cva, (bumped_cva - base_cva) / (bump * 10000)


@dataclass
class DVACalculator:
    """
    Calculator for Debt Valuation Adjustment.

    DVA = Σᵢ DF(tᵢ) × ENE(tᵢ) × LGD_own × ΔPD_own(tᵢ)

    DVA is reported as a benefit (reduces xVA cost).
    """

    lgd: float = 0.60
    hazard_rate: float = 0.010

    def __post_init__(self) -> None:
        if not 0 <= self.lgd <= 1:
            raise ValueError(f"LGD must be in [0, 1], got {self.lgd}")
        if self.hazard_rate < 0:
            raise ValueError(f"Hazard rate must be non-negative, got {self.hazard_rate}")

    @classmethod
    def from_curve(cls, curve: HazardCurve) -> "DVACalculator":
        return cls(lgd=curve.lgd, hazard_rate=curve.hazard_rate)

    def calculate(
        self,
        ene: FloatArray,
        time_grid: FloatArray,
        discount_factors: FloatArray | None = None,
    ) -> float:
        inc_pd = HazardCurve(self.hazard_rate, 1 - self.lgd).incremental_default_probabilities(
            time_grid
        )
        return float(np.sum(_discounted(ene, discount_factors) * self.lgd * inc_pd))


@dataclass
class FVACalculator:
    """
    Calculator for Funding Valuation Adjustment.

    FVA = FCA - FBA
    FCA = Σᵢ DF(tᵢ) × EPE(tᵢ) × s_b × Δt
    FBA = Σᵢ DF(tᵢ) × ENE(tᵢ) × s_l × Δt

    Attributes
    ----------
    borrowing_spread : float
        Spread paid to fund positive exposure
    lending_spread : float
        Spread earned on negative exposure
    """

    borrowing_spread: float = 0.01
    lending_spread: float = 0.0

    def __post_init__(self) -> None:
        if self.borrowing_spread < 0:
            raise ValueError(
                f"Borrowing spread must be non-negative, got {self.borrowing_spread}"
            )
        if self.lending_spread < 0:
            raise ValueError(f"Lending spread must be non-negative, got {self.lending_spread}")

    def funding_cost(
        self, epe: FloatArray, time_grid: FloatArray, discount_factors: FloatArray | None = None
    ) -> float:
        dt = np.diff(np.asarray(time_grid, dtype=float), prepend=0)
        return float(np.sum(_discounted(epe, discount_factors) * self.borrowing_spread * dt))

    def funding_benefit(
        self, ene: FloatArray, time_grid: FloatArray, discount_factors: FloatArray | None = None
    ) -> float:
        dt = np.diff(np.asarray(time_grid, dtype=float), prepend=0)
        return float(np.sum(_discounted(ene, discount_factors) * self.lending_spread * dt))

    def calculate(
        self,
        epe: FloatArray,
        ene: FloatArray,
        time_grid: FloatArray,
        discount_factors: FloatArray | None = None,
    ) -> float:
        """Net FVA (FCA - FBA)."""
        return self.funding_cost(epe, time_grid, discount_factors) - self.funding_benefit(
            ene, time_grid, discount_factors
        )


@dataclass
class MVACalculator:
    """
    Calculator for Margin Valuation Adjustment.

    MVA = Σᵢ DF(tᵢ) × IM(tᵢ) × s_f × Δt

    IM must be funded at inception and adjusted over time.
    Unlike VM, we don't receive interest on posted IM.
    """

    funding_spread: float = 0.01

    def __post_init__(self) -> None:
        if self.funding_spread < 0:
            raise ValueError(
                f"Funding spread must be non-negative, got {self.funding_spread}"
            )

    def calculate(
        self,
        im_profile: FloatArray,
        time_grid: FloatArray,
        discount_factors: FloatArray | None = None,
    ) -> float:
        dt = np.diff(np.asarray(time_grid, dtype=float), prepend=0)
        return float(np.sum(_discounted(im_profile, discount_factors) * self.funding_spread * dt))


@dataclass
class KVACalculator:
    """
    Calculator for Capital Valuation Adjustment.

    KVA = Σᵢ DF(tᵢ) × K(tᵢ) × CoC × Δt,  K = capital_ratio × alpha × EEPE(tᵢ)

    Attributes
    ----------
    cost_of_capital : float
        Hurdle rate for capital (e.g., 0.10 for 10%)
    capital_ratio : float
        Capital ratio applied to EAD (e.g., 0.08 for 8%)
    alpha : float
        Regulatory multiplier turning Effective EPE into EAD
    """

    cost_of_capital: float = 0.10
    capital_ratio: float = 0.08
    alpha: float = 1.4

    def __post_init__(self) -> None:
        if self.cost_of_capital < 0:
            raise ValueError(
                f"Cost of capital must be non-negative, got {self.cost_of_capital}"
            )
        if not 0 <= self.capital_ratio <= 1:
            raise ValueError(f"Capital ratio must be in [0, 1], got {self.capital_ratio}")

    def calculate(
        self,
        epe: FloatArray,
        time_grid: FloatArray,
        discount_factors: FloatArray | None = None,
    ) -> float:
        dt = np.diff(np.asarray(time_grid, dtype=float), prepend=0)
        ead = self.alpha * np.maximum.accumulate(np.asarray(epe, dtype=float))
        capital = self.capital_ratio * ead
        return float(np.sum(_discounted(capital, discount_factors) * self.cost_of_capital * dt))


@dataclass
class XVAResult:
    """
    Valuation adjustments of one netting set, or of the whole portfolio.

    Attributes
    ----------
    cva : float
        Credit Valuation Adjustment (cost)
    dva : float
        Debt Valuation Adjustment (benefit)
    fva : float
        Funding Valuation Adjustment (cost)
    mva : float
        Margin Valuation Adjustment (cost)
    kva : float
        Capital Valuation Adjustment (cost)
    """

    cva: float = 0.0
    dva: float = 0.0
    fva: float = 0.0
    mva: float = 0.0
    kva: float = 0.0

    @property
    def total(self) -> float:
        """
        Total xVA cost.

        Total = CVA - DVA + FVA + MVA + KVA
        """
        return self.cva - self.dva + self.fva + self.mva + self.kva

    @property
    def bilateral_cva(self) -> float:
        return self.cva - self.dva

    def __add__(self, other: "XVAResult") -> "XVAResult":
        return XVAResult(
            cva=self.cva + other.cva,
            dva=self.dva + other.dva,
            fva=self.fva + other.fva,
            mva=self.mva + other.mva,
            kva=self.kva + other.kva,
        )

    def to_dict(self) -> dict[str, float]:
        return {
            "cva": self.cva,
            "dva": self.dva,
            "fva": self.fva,
            "mva": self.mva,
            "kva": self.kva,
            "total": self.total,
            "bilateral_cva": self.bilateral_cva,
        }

    def summary(self) -> str:
        """Formatted summary string."""
        lines = [
            "xVA Summary",
            "=" * 40,
            f"CVA:            {self.cva:>15,.0f}",
            f"DVA (benefit):  {-self.dva:>15,.0f}",
            f"FVA:            {self.fva:>15,.0f}",
            f"MVA:            {self.mva:>15,.0f}",
            f"KVA:            {self.kva:>15,.0f}",
            "-" * 40,
            f"Total xVA:      {self.total:>15,.0f}",
        ]
        return "\n".join(lines)
