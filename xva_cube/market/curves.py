"""
Term structures of today's market.

``DiscountCurve`` is a continuously compounded zero curve, flat or
interpolated linearly in zero rate between tenor pillars with flat
extrapolation. ``HazardCurve`` is a flat default intensity with a recovery
rate, used by the credit and funding adjustments.
"""

from dataclasses import dataclass, field, replace

import numpy as np

from xva_cube._types import FloatArray, Year


@dataclass
class DiscountCurve:
    """
    Zero curve used for discounting and for model calibration.

    Attributes
    ----------
    rate : float
        Flat zero rate, used when no pillars are given
    tenors : FloatArray | None
        Pillar times in years, strictly increasing
    rates : FloatArray | None
        Zero rates at the pillars

    Example
    -------
    >>> curve = DiscountCurve(rate=0.02)
    >>> round(curve.discount_factor(1.0), 4)
    0.9802
    >>> curve = DiscountCurve(tenors=np.array([1.0, 5.0]), rates=np.array([0.02, 0.03]))
    """

    rate: float = 0.02
    tenors: FloatArray | None = field(default=None)
    rates: FloatArray | None = field(default=None)

    def __post_init__(self) -> None:
        """Validate curve inputs."""
        if (self.tenors is None) != (self.rates is None):
            raise ValueError("Tenors and rates must be given together")
        if self.tenors is not None and self.rates is not None:
            self.tenors = np.asarray(self.tenors, dtype=float)
            self.rates = np.asarray(self.rates, dtype=float)
            if len(self.tenors) != len(self.rates) or len(self.tenors) == 0:
                raise ValueError(
                    f"Tenors and rates must be non-empty and of the same length, "
                    f"got {len(self.tenors)} and {len(self.rates)}"
                )
            if not np.all(np.diff(self.tenors) > 0):
                raise ValueError("Tenors must be strictly increasing")

    def zero_rate(self, t: Year | FloatArray) -> float | FloatArray:
        """Continuously compounded zero rate z(t)."""
        if self.tenors is None or self.rates is None:
            if np.ndim(t) == 0:
                return float(self.rate)
            return np.full(np.shape(t), self.rate)
        z = np.interp(t, self.tenors, self.rates)
        return float(z) if np.ndim(t) == 0 else z

    def discount_factor(
        self, t: Year | FloatArray, t_start: Year = 0.0
    ) -> float | FloatArray:
        """
        Forward discount factor P(t_start, t) = P(0, t) / P(0, t_start).

        Returns 1.0 for t <= t_start.
        """
        t_arr = np.maximum(np.asarray(t, dtype=float), t_start)
        log_df = -np.asarray(self.zero_rate(t_arr)) * t_arr
        if t_start > 0:
            log_df = log_df + self.zero_rate(t_start) * t_start
        df = np.exp(log_df)
        return float(df) if np.ndim(t) == 0 else df

    def forward_rate(self, t1: Year, t2: Year) -> float:
        """Continuously compounded forward rate f(t1, t2)."""
        if t2 <= t1:
            raise ValueError(f"t2 ({t2}) must be greater than t1 ({t1})")
        return float(-np.log(self.discount_factor(t2, t1)) / (t2 - t1))

    def short_rate(self) -> float:
        """Overnight zero rate, the starting point of the short-rate model."""
        return float(self.zero_rate(1.0 / 365.0))


@dataclass
class HazardCurve:
    """
    Flat hazard rate curve with a recovery rate.

    Survival probability is S(t) = exp(-λ t).

    Attributes
    ----------
    hazard_rate : float
        Constant default intensity (per annum)
    recovery_rate : float
        Recovery rate in case of default (0-1)

    Example
    -------
    >>> curve = HazardCurve(hazard_rate=0.012, recovery_rate=0.4)
    >>> f"{curve.survival_probability(5.0):.2%}"
    '94.18%'
    """

    hazard_rate: float = 0.01
    recovery_rate: float = 0.4

    def __post_init__(self) -> None:
        if self.hazard_rate < 0:
            raise ValueError(f"Hazard rate must be non-negative, got {self.hazard_rate}")
        if not 0 <= self.recovery_rate <= 1:
            raise ValueError(f"Recovery rate must be in [0, 1], got {self.recovery_rate}")

    @property
    def lgd(self) -> float:
        """Loss given default (1 - recovery rate)."""
        return 1.0 - self.recovery_rate

    def survival_probability(self, t: Year | FloatArray) -> float | FloatArray:
        s = np.exp(-self.hazard_rate * np.asarray(t, dtype=float))
        return float(s) if np.ndim(t) == 0 else s

    def incremental_default_probabilities(self, time_grid: FloatArray) -> FloatArray:
        """
        Default probability in each period of a time grid.

        Returns
        -------
        FloatArray
            PD(0, t_0) followed by PD(t_{i-1}, t_i), one per grid point
        """
        survival = np.concatenate([[1.0], self.survival_probability(np.asarray(time_grid))])
        return survival[:-1] - survival[1:]

    def bumped(self, bps: float) -> "HazardCurve":
        """Copy of the curve with the hazard rate shifted by ``bps`` basis points."""
        return replace(self, hazard_rate=max(self.hazard_rate + bps / 10_000, 0.0))

    @classmethod
    def from_cds_spread(cls, spread: float, recovery_rate: float = 0.4) -> "HazardCurve":
        """Hazard curve implied by a CDS spread via the credit triangle λ = s / LGD."""
        lgd = 1.0 - recovery_rate
        if lgd <= 0:
            raise ValueError("LGD must be positive")
        return cls(hazard_rate=spread / lgd, recovery_rate=recovery_rate)
