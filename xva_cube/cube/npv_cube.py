"""
Dense in-memory valuation cube.

A cube stores one value per (id, date, sample, depth) coordinate, where ids
are trade or netting-set ids, dates are the simulation dates of the run,
samples are Monte Carlo paths and depth is an opaque slot index whose
meaning is assigned by a ``CubeInterpretation``. A separate T0 slot per
(id, depth) holds the valuation on today's market.

Values are stored in single precision. All cells are allocated and filled
with ``fill_value`` on construction, so an unwritten cell reads back the
fill value rather than failing.
"""

from abc import ABC, abstractmethod
from collections import Counter
from collections.abc import Iterable, Sequence
from datetime import date

import numpy as np

from xva_cube._types import CubeArray, CubeId, FloatArray
from xva_cube.errors import ConfigurationError, PreconditionError


class NPVCube(ABC):
    """
    Abstract base of the single-precision cube variants.

    Parameters
    ----------
    asof : date
        Valuation date of the run
    ids : Iterable[str]
        Trade or netting-set ids, in cube order
    dates : Sequence[date]
        Simulation dates, strictly after ``asof``
    samples : int
        Number of Monte Carlo samples
    depth : int
        Number of value slots per cell
    fill_value : float
        Initial value of every cell

    Raises
    ------
    ConfigurationError
        If ids are duplicated or a dimension is empty
    """

    def __init__(
        self,
        asof: date,
        ids: Iterable[str],
        dates: Sequence[date],
        samples: int,
        depth: int,
        fill_value: float = 0.0,
    ) -> None:
        ids = list(ids)
        if len(set(ids)) != len(ids):
            dupes = sorted(i for i, n in Counter(ids).items() if n > 1)
            raise ConfigurationError(f"Duplicate cube ids: {dupes}")
        if samples < 1:
            raise ConfigurationError(f"Cube needs at least one sample, got {samples}")
        if depth < 1:
            raise ConfigurationError(f"Cube depth must be >= 1, got {depth}")

        self._asof = asof
        self._ids = tuple(ids)
        self._id_index = {id_: i for i, id_ in enumerate(ids)}
        self._dates = tuple(dates)
        self._samples = int(samples)
        self._depth = int(depth)
        self._fill_value = float(fill_value)
        self._frozen = False

        self._t0 = np.full((len(self._ids), self._depth), self._fill_value)
        self._data = self._allocate()

    @abstractmethod
    def _allocate(self) -> CubeArray:
        """Allocate the pre-filled storage block."""

    @abstractmethod
    def _view(self, index: int, depth: int) -> CubeArray:
        """Return the (dates, samples) block of one id and depth."""

    # ------------------------------------------------------------------
    # Dimensions
    # ------------------------------------------------------------------

    @property
    def asof(self) -> date:
        return self._asof

    @property
    def ids(self) -> tuple[str, ...]:
        return self._ids

    @property
    def dates(self) -> tuple[date, ...]:
        return self._dates

    @property
    def num_ids(self) -> int:
        return len(self._ids)

    @property
    def num_dates(self) -> int:
        return len(self._dates)

    @property
    def samples(self) -> int:
        return self._samples

    @property
    def depth(self) -> int:
        return self._depth

    @property
    def fill_value(self) -> float:
        return self._fill_value

    @property
    def shape(self) -> tuple[int, int, int, int]:
        """Cube dimensions as (ids, dates, samples, depth)."""
        return (self.num_ids, self.num_dates, self._samples, self._depth)

    @property
    def frozen(self) -> bool:
        return self._frozen

    # ------------------------------------------------------------------
    # Addressing
    # ------------------------------------------------------------------

    def id_index(self, id_: CubeId) -> int:
        """
        Resolve an id coordinate to its position.

        Parameters
        ----------
        id_ : str or int
            String id, or an integer position in ``ids``

        Returns
        -------
        int
            Position of the id in the cube

        Raises
        ------
        IndexError
            If the id is unknown or the position is out of range
        """
        if isinstance(id_, (int, np.integer)) and not isinstance(id_, bool):
            index = int(id_)
            if not 0 <= index < self.num_ids:
                raise IndexError(f"Id index {index} out of range [0, {self.num_ids})")
            return index
        try:
            return self._id_index[id_]
        except KeyError:
            raise IndexError(f"Unknown cube id '{id_}'") from None

    @staticmethod
    def _check_range(name: str, value: int, size: int) -> int:
        if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
            raise IndexError(f"{name} must be an integer, got {value!r}")
        if not 0 <= value < size:
            raise IndexError(f"{name} {value} out of range [0, {size})")
        return int(value)

    def _coordinates(
        self, id_: CubeId, date_index: int, sample: int, depth: int
    ) -> tuple[int, int, int, int]:
        return (
            self.id_index(id_),
            self._check_range("Date index", date_index, self.num_dates),
            self._check_range("Sample", sample, self._samples),
            self._check_range("Depth", depth, self._depth),
        )

    def _check_writable(self) -> None:
        if self._frozen:
            raise PreconditionError("Cube is frozen and can no longer be written")

    # ------------------------------------------------------------------
    # Cell access
    # ------------------------------------------------------------------

    def get(self, id_: CubeId, date_index: int, sample: int, depth: int = 0) -> float:
        """Read one cell; unwritten cells return the fill value."""
        i, d, s, k = self._coordinates(id_, date_index, sample, depth)
        return float(self._view(i, k)[d, s])

    def set(
        self,
        id_: CubeId,
        date_index: int,
        sample: int,
        value: float,
        depth: int = 0,
    ) -> None:
        """Write one cell. Raises ``IndexError`` for any invalid coordinate."""
        i, d, s, k = self._coordinates(id_, date_index, sample, depth)
        self._check_writable()
        self._view(i, k)[d, s] = value

    def get_t0(self, id_: CubeId, depth: int = 0) -> float:
        """Read the T0 valuation of an id."""
        i = self.id_index(id_)
        k = self._check_range("Depth", depth, self._depth)
        return float(self._t0[i, k])

    def set_t0(self, id_: CubeId, value: float, depth: int = 0) -> None:
        """Write the T0 valuation of an id."""
        i = self.id_index(id_)
        k = self._check_range("Depth", depth, self._depth)
        self._check_writable()
        self._t0[i, k] = value

    # ------------------------------------------------------------------
    # Block access
    # ------------------------------------------------------------------

    def values(self, id_: CubeId, depth: int = 0) -> CubeArray:
        """
        Read-only (dates, samples) view of one id and depth.

        The view is single precision; promote with ``astype(np.float64)``
        before aggregating.
        """
        i = self.id_index(id_)
        k = self._check_range("Depth", depth, self._depth)
        view = self._view(i, k)[...]
        view.flags.writeable = False
        return view

    def set_values(self, id_: CubeId, values: FloatArray, depth: int = 0) -> None:
        """Write a whole (dates, samples) block of one id and depth."""
        i = self.id_index(id_)
        k = self._check_range("Depth", depth, self._depth)
        values = np.asarray(values)
        if values.shape != (self.num_dates, self._samples):
            raise ConfigurationError(
                f"Block shape {values.shape} does not match cube "
                f"({self.num_dates}, {self._samples})"
            )
        self._check_writable()
        self._view(i, k)[...] = values

    def freeze(self) -> None:
        """Make the cube read-only."""
        self._data.flags.writeable = False
        self._t0.flags.writeable = False
        self._frozen = True

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(asof={self._asof}, shape={self.shape}, "
            f"fill_value={self._fill_value})"
        )


class SinglePrecisionInMemoryCube(NPVCube):
    """
    Depth-1 cube stored as a (ids, dates, samples) float32 array.

    Example
    -------
    >>> cube = SinglePrecisionInMemoryCube(asof, ["T1", "T2"], dates, 100)
    >>> cube.set("T1", 0, 5, 123.0)
    >>> cube.get(0, 0, 5)
    123.0
    """

    def __init__(
        self,
        asof: date,
        ids: Iterable[str],
        dates: Sequence[date],
        samples: int,
        fill_value: float = 0.0,
    ) -> None:
        super().__init__(asof, ids, dates, samples, 1, fill_value)

    def _allocate(self) -> CubeArray:
        return np.full(
            (self.num_ids, self.num_dates, self._samples),
            self._fill_value,
            dtype=np.float32,
        )

    def _view(self, index: int, depth: int) -> CubeArray:
        return self._data[index]


class SinglePrecisionInMemoryCubeN(NPVCube):
    """
    Cube with ``depth`` slots per cell, stored as a 4D float32 array.

    Used when a second value per cell is needed: close-out NPVs on a
    margin-period-of-risk grid, or cash flows in regular mode.
    """

    def _allocate(self) -> CubeArray:
        return np.full(
            (self.num_ids, self.num_dates, self._samples, self._depth),
            self._fill_value,
            dtype=np.float32,
        )

    def _view(self, index: int, depth: int) -> CubeArray:
        return self._data[index, :, :, depth]


def empty_like(cube: NPVCube, ids: Iterable[str]) -> NPVCube:
    """Allocate a cube with the same dates, samples, depth and fill as ``cube``."""
    if cube.depth == 1:
        return SinglePrecisionInMemoryCube(
            cube.asof, ids, cube.dates, cube.samples, cube.fill_value
        )
    return SinglePrecisionInMemoryCubeN(
        cube.asof, ids, cube.dates, cube.samples, cube.depth, cube.fill_value
    )
