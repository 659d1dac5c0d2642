"""
Simulation date grid.

A grid holds the valuation dates of a run and, when a close-out lag is
configured, one close-out date per valuation date. Dates are converted to
year fractions from the as-of date using ACT/365F.
"""

import calendar
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, timedelta

import numpy as np

from xva_cube._types import TimeGrid
from xva_cube.errors import ConfigurationError

_TENOR_RE = re.compile(r"^\s*(\d+)\s*([DWMY])\s*$", re.IGNORECASE)


def parse_tenor(tenor: str) -> tuple[int, str]:
    """
    Split a tenor string such as ``"3M"`` into ``(3, "M")``.

    Raises
    ------
    ConfigurationError
        If the tenor is malformed or not positive
    """
    match = _TENOR_RE.match(tenor)
    if match is None:
        raise ConfigurationError(f"Invalid tenor '{tenor}', expected e.g. '2W', '3M', '1Y'")
    n, unit = int(match.group(1)), match.group(2).upper()
    if n <= 0:
        raise ConfigurationError(f"Tenor must be positive, got '{tenor}'")
    return n, unit


def _add_months(d: date, months: int) -> date:
    month_index = d.month - 1 + months
    year, month = d.year + month_index // 12, month_index % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def advance(start: date, tenor: str) -> date:
    """Date one tenor after ``start`` (month ends are clamped)."""
    n, unit = parse_tenor(tenor)
    if unit == "D":
        return start + timedelta(days=n)
    if unit == "W":
        return start + timedelta(weeks=n)
    if unit == "M":
        return _add_months(start, n)
    return _add_months(start, 12 * n)


def year_fraction(start: date, end: date) -> float:
    """ACT/365F year fraction."""
    return (end - start).days / 365.0


@dataclass(frozen=True)
class DateGrid:
    """
    Valuation dates, optional close-out dates, and their union.

    Attributes
    ----------
    asof : date
        Valuation date of the run
    valuation_dates : tuple[date, ...]
        Strictly increasing dates after ``asof``
    close_out_lag_days : int | None
        Calendar days from each valuation date to its close-out date

    Example
    -------
    >>> grid = DateGrid.from_tenors(date(2024, 1, 15), ["3M", "6M", "1Y"])
    >>> grid.valuation_dates[0]
    datetime.date(2024, 4, 15)
    """

    asof: date
    valuation_dates: tuple[date, ...]
    close_out_lag_days: int | None = None
    _index: dict[date, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        dates = tuple(self.valuation_dates)
        if not dates:
            raise ConfigurationError("Date grid needs at least one valuation date")
        if dates[0] <= self.asof:
            raise ConfigurationError(
                f"Valuation dates must be after the as-of date {self.asof}, got {dates[0]}"
            )
        if any(b <= a for a, b in zip(dates, dates[1:])):
            raise ConfigurationError("Valuation dates must be strictly increasing")
        if self.close_out_lag_days is not None and self.close_out_lag_days < 1:
            raise ConfigurationError(
                f"Close-out lag must be at least one day, got {self.close_out_lag_days}"
            )
        object.__setattr__(self, "valuation_dates", dates)
        object.__setattr__(self, "_index", {d: i for i, d in enumerate(self.dates)})

    @classmethod
    def from_tenors(
        cls,
        asof: date,
        tenors: Iterable[str],
        close_out_lag_days: int | None = None,
    ) -> "DateGrid":
        """Build a grid from tenor strings; duplicate dates are merged."""
        dates = sorted({advance(asof, t) for t in tenors})
        return cls(asof, tuple(dates), close_out_lag_days)

    @property
    def with_close_out_lag(self) -> bool:
        return self.close_out_lag_days is not None

    @property
    def close_out_dates(self) -> tuple[date, ...]:
        """Close-out date of each valuation date; empty without a lag."""
        if self.close_out_lag_days is None:
            return ()
        lag = timedelta(days=self.close_out_lag_days)
        return tuple(d + lag for d in self.valuation_dates)

    @property
    def dates(self) -> tuple[date, ...]:
        """All simulation dates: valuation and close-out dates, sorted."""
        return tuple(sorted(set(self.valuation_dates) | set(self.close_out_dates)))

    @property
    def times(self) -> TimeGrid:
        return np.array([year_fraction(self.asof, d) for d in self.dates])

    @property
    def valuation_times(self) -> TimeGrid:
        return np.array([year_fraction(self.asof, d) for d in self.valuation_dates])

    def index_of(self, d: date) -> int:
        """Position of a date in ``dates``."""
        try:
            return self._index[d]
        except KeyError:
            raise ConfigurationError(f"Date {d} is not on the simulation grid") from None

    def close_out_index(self, valuation_index: int) -> int:
        """Position in ``dates`` of the close-out date of a valuation date."""
        if self.close_out_lag_days is None:
            raise ConfigurationError("Grid has no close-out dates")
        return self.index_of(self.close_out_dates[valuation_index])

    def __len__(self) -> int:
        return len(self.dates)
