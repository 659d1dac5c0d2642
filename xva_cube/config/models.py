"""
Pydantic configuration models for the exposure simulation pipeline.

These models provide validation and type-safe configuration for:
- The cross-asset stochastic model (rate factors, FX factors, correlations)
- Scenario generation (date grid, samples, close-out lag)
- Today's market (zero curves, FX spots, credit and funding curves)
- Portfolio, netting set and runner settings
"""

import logging
from datetime import date
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

logger = logging.getLogger(__name__)

DEFAULT_ANALYTICS: dict[str, bool] = {
    "dim": True,
    "mva": True,
    "kva": False,
    "cvaSensi": True,
}
"""Post-processing analytics switched on when none are configured."""


class OUModelConfig(BaseModel):
    """
    Ornstein-Uhlenbeck (Vasicek) short-rate factor parameters.

    The factor follows: dr = kappa * (theta - r) * dt + sigma * dW

    With calibration on, ``theta`` and ``initial_rate`` are replaced by
    values fitted to today's zero curve; ``kappa`` and ``sigma`` are kept.

    Attributes
    ----------
    kappa : float
        Mean reversion speed (typically 0.01 to 1.0)
    theta : float
        Long-term mean rate (e.g., 0.02 for 2%)
    sigma : float
        Volatility (e.g., 0.01 for 100bps)
    initial_rate : float
        Starting short rate

    Example
    -------
    >>> config = OUModelConfig(kappa=0.1, theta=0.02, sigma=0.01, initial_rate=0.02)
    """

    kappa: float = Field(gt=0, le=2.0, description="Mean reversion speed")
    theta: float = Field(ge=-0.02, le=0.20, default=0.02, description="Long-term mean rate")
    sigma: float = Field(ge=0, le=0.10, description="Volatility")
    initial_rate: float = Field(ge=-0.02, le=0.20, default=0.02, description="Starting short rate")

    @field_validator("kappa")
    @classmethod
    def kappa_realistic(cls, v: float) -> float:
        """Warn about aggressive mean reversion."""
        if v > 1.0:
            logger.warning(
                "Mean reversion speed %s > 1.0 is aggressive; typical values are 0.01-0.5", v
            )
        return v


class FXModelConfig(BaseModel):
    """
    GBM FX factor parameters for one foreign currency.

    The FX rate (base currency per unit of foreign) follows:
    dS/S = (r_d - r_f) * dt + sigma * dW

    Attributes
    ----------
    volatility : float
        FX volatility (e.g., 0.12 for 12%)
    initial_spot : float | None
        Spot used by an uncalibrated model; today's market spot otherwise
    """

    volatility: float = Field(ge=0, le=1.0, description="FX volatility")
    initial_spot: float | None = Field(default=None, gt=0, description="Initial FX spot rate")


class CorrelationEntry(BaseModel):
    """One off-diagonal entry of the factor correlation matrix."""

    factor1: str
    factor2: str
    value: float = Field(ge=-1, le=1)

    @model_validator(mode="after")
    def distinct_factors(self) -> "CorrelationEntry":
        if self.factor1 == self.factor2:
            raise ValueError(f"Correlation of factor {self.factor1} with itself is fixed at 1")
        return self


class CrossAssetModelConfig(BaseModel):
    """
    Cross-asset model: one rate factor per currency, one FX factor per
    foreign currency, correlated Brownian drivers.

    Factor names are ``IR:<CCY>`` and ``FX:<CCY>``; rate factors come first
    in configuration order, followed by the FX factors.

    Attributes
    ----------
    domestic_currency : str
        Currency of the numeraire, which has no FX factor
    ir : dict[str, OUModelConfig]
        Rate factor per currency
    fx : dict[str, FXModelConfig]
        FX factor per foreign currency
    correlations : list[CorrelationEntry]
        Non-zero off-diagonal correlations
    calibration_tenor : float
        Tenor in years whose zero rate the rate factors are fitted to
    """

    domestic_currency: str = "USD"
    ir: dict[str, OUModelConfig]
    fx: dict[str, FXModelConfig] = Field(default_factory=dict)
    correlations: list[CorrelationEntry] = Field(default_factory=list)
    calibration_tenor: float = Field(gt=0, le=50, default=10.0)

    @property
    def factor_names(self) -> list[str]:
        return [f"IR:{ccy}" for ccy in self.ir] + [f"FX:{ccy}" for ccy in self.fx]

    @property
    def currencies(self) -> list[str]:
        return list(self.ir)

    def correlation_matrix(self):
        """Assemble the full correlation matrix in ``factor_names`` order."""
        import numpy as np

        names = self.factor_names
        position = {name: i for i, name in enumerate(names)}
        matrix = np.eye(len(names))
        for entry in self.correlations:
            i, j = position[entry.factor1], position[entry.factor2]
            matrix[i, j] = matrix[j, i] = entry.value
        return matrix

    @model_validator(mode="after")
    def validate_factors(self) -> "CrossAssetModelConfig":
        """Check currency coverage and that the correlation matrix is PSD."""
        import numpy as np

        if self.domestic_currency not in self.ir:
            raise ValueError(
                f"Domestic currency {self.domestic_currency} needs a rate factor"
            )
        if self.domestic_currency in self.fx:
            raise ValueError("The domestic currency cannot have an FX factor")
        missing = [ccy for ccy in self.fx if ccy not in self.ir]
        if missing:
            raise ValueError(f"FX factors without a rate factor: {missing}")
        if set(self.ir) - set(self.fx) != {self.domestic_currency}:
            orphans = sorted(set(self.ir) - set(self.fx) - {self.domestic_currency})
            raise ValueError(f"Foreign currencies without an FX factor: {orphans}")

        names = set(self.factor_names)
        for entry in self.correlations:
            unknown = {entry.factor1, entry.factor2} - names
            if unknown:
                raise ValueError(f"Unknown correlation factors: {sorted(unknown)}")

        eigenvalues = np.linalg.eigvalsh(self.correlation_matrix())
        if np.any(eigenvalues < -1e-10):
            raise ValueError(
                f"Correlation matrix is not positive semi-definite. "
                f"Eigenvalues: {eigenvalues}"
            )
        return self


class ScenarioGeneratorConfig(BaseModel):
    """
    Monte Carlo scenario generation parameters.

    Attributes
    ----------
    grid : list[str]
        Valuation date tenors from the as-of date (e.g. "3M", "1Y")
    samples : int
        Number of Monte Carlo samples
    seed : int | None
        Random seed for reproducibility
    close_out_lag_days : int | None
        Calendar days between a valuation date and its close-out date;
        ``None`` simulates without a close-out grid
    mpor_sticky_date : bool
        Keep the evaluation date at the valuation date for close-out pricing
    antithetic : bool
        Use antithetic variates (requires an even sample count)
    """

    grid: list[str] = Field(min_length=1)
    samples: int = Field(ge=1, le=1_000_000, default=1000)
    seed: int | None = Field(default=42)
    close_out_lag_days: int | None = Field(default=None, ge=1, le=365)
    mpor_sticky_date: bool = False
    antithetic: bool = False

    @field_validator("grid")
    @classmethod
    def tenors_parse(cls, v: list[str]) -> list[str]:
        """Validate tenor strings."""
        from xva_cube.scenario.grid import parse_tenor

        for tenor in v:
            parse_tenor(tenor)
        return v

    @model_validator(mode="after")
    def antithetic_pairs(self) -> "ScenarioGeneratorConfig":
        if self.antithetic and self.samples % 2:
            raise ValueError(f"Antithetic sampling needs an even sample count, got {self.samples}")
        return self

    @property
    def with_close_out_lag(self) -> bool:
        return self.close_out_lag_days is not None


class CurveConfig(BaseModel):
    """
    Zero curve of one currency: a flat rate or pillars.

    Attributes
    ----------
    rate : float
        Flat continuously compounded zero rate
    tenors : list[float] | None
        Pillar times in years
    rates : list[float] | None
        Zero rates at the pillars
    """

    rate: float = Field(ge=-0.05, le=0.30, default=0.02)
    tenors: list[float] | None = None
    rates: list[float] | None = None

    @model_validator(mode="after")
    def pillars_match(self) -> "CurveConfig":
        if (self.tenors is None) != (self.rates is None):
            raise ValueError("Curve tenors and rates must be given together")
        if self.tenors is not None and len(self.tenors) != len(self.rates or []):
            raise ValueError("Curve tenors and rates must have the same length")
        return self


class CreditCurveConfig(BaseModel):
    """
    Default curve of one entity.

    Attributes
    ----------
    hazard_rate_bps : float
        Hazard rate in basis points (per annum)
    recovery_rate : float
        Recovery rate (0-1)
    """

    hazard_rate_bps: float = Field(ge=0, le=5000)
    recovery_rate: float = Field(ge=0, lt=1, default=0.4)

    @property
    def hazard_rate(self) -> float:
        """Hazard rate as decimal."""
        return self.hazard_rate_bps / 10000


class MarketConfig(BaseModel):
    """
    Today's market.

    Attributes
    ----------
    curves : dict[str, CurveConfig]
        Discount curve per currency
    fx_spots : dict[str, float]
        Base currency units per unit of each foreign currency
    fx_volatilities : dict[str, float]
        Implied FX volatilities used by calibration
    default_curves : dict[str, CreditCurveConfig]
        Credit curve per entity name (counterparties and own name)
    funding_spreads_bps : dict[str, float]
        Funding spread per curve name, in basis points
    """

    curves: dict[str, CurveConfig] = Field(min_length=1)
    fx_spots: dict[str, float] = Field(default_factory=dict)
    fx_volatilities: dict[str, float] = Field(default_factory=dict)
    default_curves: dict[str, CreditCurveConfig] = Field(default_factory=dict)
    funding_spreads_bps: dict[str, float] = Field(default_factory=dict)

    @field_validator("fx_spots")
    @classmethod
    def spots_positive(cls, v: dict[str, float]) -> dict[str, float]:
        bad = {ccy: s for ccy, s in v.items() if s <= 0}
        if bad:
            raise ValueError(f"FX spots must be positive: {bad}")
        return v


class NettingSetConfig(BaseModel):
    """
    Netting agreement with one counterparty.

    Attributes
    ----------
    id : str
        Netting set id referenced by trade envelopes
    counterparty : str
        Counterparty name, used to look up its default curve
    active_csa : bool
        Whether variation margin is exchanged
    threshold : float
        Collateral threshold in base currency
    mta : float
        Minimum transfer amount
    independent_amount : float
        Independent amount held (positive) or posted (negative)
    mpor_days : int
        Margin period of risk in calendar days
    """

    id: str = Field(min_length=1)
    counterparty: str = Field(min_length=1)
    active_csa: bool = False
    threshold: float = Field(ge=0, default=0.0)
    mta: float = Field(ge=0, default=0.0)
    independent_amount: float = 0.0
    mpor_days: int = Field(ge=0, le=90, default=14)

    @model_validator(mode="after")
    def mta_less_than_threshold(self) -> "NettingSetConfig":
        """Validate MTA is less than threshold."""
        if self.mta > self.threshold > 0:
            raise ValueError(
                f"MTA ({self.mta:,.0f}) cannot exceed threshold ({self.threshold:,.0f})"
            )
        return self


class IRSwapConfig(BaseModel):
    """
    Interest rate swap trade.

    Attributes
    ----------
    id : str
        Trade id
    netting_set_id : str
        Netting set of the trade
    counterparty : str
        Counterparty name
    currency : str
        Currency of both legs
    notional : float
        Notional amount
    fixed_rate : float
        Fixed rate (decimal, e.g., 0.02 for 2%)
    maturity_years : float
        Time to maturity in years
    pay_fixed : bool
        True for payer swap (pay fixed, receive float)
    payment_frequency : float
        Payment frequency in years (e.g., 0.5 for semi-annual)
    """

    id: str = Field(min_length=1)
    netting_set_id: str = Field(min_length=1)
    counterparty: str = ""
    currency: str = "USD"
    notional: float = Field(gt=0)
    fixed_rate: float = Field(ge=-0.02, le=0.20)
    maturity_years: float = Field(gt=0, le=50)
    pay_fixed: bool = True
    payment_frequency: float = Field(gt=0, le=1, default=0.5)


class FXForwardConfig(BaseModel):
    """
    FX forward trade.

    Attributes
    ----------
    id : str
        Trade id
    netting_set_id : str
        Netting set of the trade
    counterparty : str
        Counterparty name
    foreign_currency : str
        Currency bought or sold
    domestic_currency : str
        Currency the strike is quoted in
    notional_foreign : float
        Notional in foreign currency
    strike : float
        Forward strike rate (domestic per foreign)
    maturity_years : float
        Time to maturity in years
    buy_foreign : bool
        True if buying foreign currency
    """

    id: str = Field(min_length=1)
    netting_set_id: str = Field(min_length=1)
    counterparty: str = ""
    foreign_currency: str = "EUR"
    domestic_currency: str = "USD"
    notional_foreign: float = Field(gt=0)
    strike: float = Field(gt=0)
    maturity_years: float = Field(gt=0, le=30)
    buy_foreign: bool = True


class PortfolioConfig(BaseModel):
    """
    Portfolio configuration with multiple trades.

    Attributes
    ----------
    irs_trades : list[IRSwapConfig]
        List of interest rate swap configurations
    fxf_trades : list[FXForwardConfig]
        List of FX forward configurations
    netting_sets : list[NettingSetConfig]
        Netting agreements referenced by the trades
    """

    irs_trades: list[IRSwapConfig] = Field(default_factory=list)
    fxf_trades: list[FXForwardConfig] = Field(default_factory=list)
    netting_sets: list[NettingSetConfig] = Field(default_factory=list)

    @property
    def n_trades(self) -> int:
        """Total number of trades."""
        return len(self.irs_trades) + len(self.fxf_trades)

    @model_validator(mode="after")
    def unique_trade_ids(self) -> "PortfolioConfig":
        ids = [t.id for t in self.irs_trades] + [t.id for t in self.fxf_trades]
        if len(ids) != len(set(ids)):
            raise ValueError("Trade ids must be unique within a portfolio")
        return self


class CapitalConfig(BaseModel):
    """
    Capital parameters for KVA.

    Attributes
    ----------
    alpha : float
        Regulatory alpha multiplier applied to EEPE
    capital_ratio : float
        Capital held per unit of exposure at default
    cost_of_capital : float
        Hurdle rate (e.g., 0.10 for 10%)
    """

    alpha: float = Field(ge=1.0, le=2.0, default=1.4)
    capital_ratio: float = Field(ge=0, le=1, default=0.08)
    cost_of_capital: float = Field(ge=0, le=0.30, default=0.10)


class XvaRunnerConfig(BaseModel):
    """
    Settings of one simulation run.

    Attributes
    ----------
    asof : date
        Valuation date
    base_currency : str
        Reporting and numeraire currency
    dim_quantile : float
        Quantile of the dynamic initial margin
    dim_horizon_calendar_days : int
        Margin period the DIM is scaled to
    analytics : dict[str, bool] | None
        Post-processing switches (``dim``, ``mva``, ``kva``, ``cvaSensi``)
    calculation_type : {"Regular", "NoLag"}
        Exposure calculation type requested for post-processing
    dva_name : str
        Own name for DVA; empty disables DVA
    fva_borrowing_curve : str
        Funding curve for the funding cost leg; empty disables it
    fva_lending_curve : str
        Funding curve for the funding benefit leg; empty disables it
    full_initial_collateralisation : bool
        Start the VM balance at the T0 netting-set value
    store_flows : bool
        Record trade cash flows in a second cube depth (regular grid only)
    exposure_quantile : float
        Quantile of the potential future exposure
    simulation : ScenarioGeneratorConfig
        Scenario generation settings
    model : CrossAssetModelConfig
        Stochastic model settings
    capital : CapitalConfig
        KVA parameters
    """

    asof: date
    base_currency: str = "USD"
    dim_quantile: float = Field(gt=0, lt=1, default=0.99)
    dim_horizon_calendar_days: int = Field(ge=0, default=14)
    analytics: dict[str, bool] | None = Field(default=None, validate_default=True)
    calculation_type: Literal["Regular", "NoLag"] = "Regular"
    dva_name: str = ""
    fva_borrowing_curve: str = ""
    fva_lending_curve: str = ""
    full_initial_collateralisation: bool = False
    store_flows: bool = False
    exposure_quantile: float = Field(gt=0, lt=1, default=0.95)
    simulation: ScenarioGeneratorConfig
    model: CrossAssetModelConfig
    capital: CapitalConfig = Field(default_factory=CapitalConfig)

    @field_validator("analytics")
    @classmethod
    def default_analytics(cls, v: dict[str, bool] | None) -> dict[str, bool]:
        """Fill missing analytics switches; warn when none are configured."""
        if not v:
            logger.warning("post processor analytics not set, using defaults")
            return dict(DEFAULT_ANALYTICS)
        return {**DEFAULT_ANALYTICS, **v}

    @model_validator(mode="after")
    def numeraire_currency(self) -> "XvaRunnerConfig":
        if self.model.domestic_currency != self.base_currency:
            raise ValueError(
                f"Model domestic currency {self.model.domestic_currency} must equal "
                f"the base currency {self.base_currency}"
            )
        return self
