"""
Cube interpretation: what each depth slot of a cube means.

The physical cube is generic over an opaque depth index. The two layouts
produced by the runner are read through these strategies, and the runner
asks them which slots its calculators should fill, so no other component
depends on slot numbers.

Regular layout (``RegularCubeInterpretation``)
    depth 0: NPV at each valuation date
    depth 1: cash flows paid until the next date (only when flows are stored)
    The close-out NPV of date d is the NPV at date d+1.

Close-out grid layout (``MporGridCubeInterpretation``)
    depth 0: NPV at the default (valuation) date
    depth 1: NPV at the close-out date
"""

from abc import ABC, abstractmethod

import numpy as np

from xva_cube._types import CubeId, PathArray
from xva_cube.cube.npv_cube import NPVCube
from xva_cube.scenario.grid import DateGrid


class CubeInterpretation(ABC):
    """Read default-date NPVs, close-out NPVs and flows from a cube."""

    #: Slot holding the default-date NPV
    default_date_index: int = 0

    @property
    @abstractmethod
    def with_close_out_lag(self) -> bool:
        """True if close-out values come from a separate close-out grid."""

    @abstractmethod
    def store_flows(self, cube: NPVCube) -> bool:
        """True if ``cube`` carries cash flows."""

    @abstractmethod
    def close_out_npv(self, cube: NPVCube, id_: CubeId, date_index: int, sample: int) -> float:
        """NPV at the close-out of a default at ``date_index``."""

    @abstractmethod
    def cash_flow(self, cube: NPVCube, id_: CubeId, date_index: int, sample: int) -> float:
        """Flows paid during the margin period following ``date_index``."""

    @abstractmethod
    def close_out_npv_paths(self, cube: NPVCube, id_: CubeId) -> PathArray:
        """(dates, samples) close-out NPVs of one id."""

    @abstractmethod
    def cash_flow_paths(self, cube: NPVCube, id_: CubeId) -> PathArray:
        """(dates, samples) flows of one id."""

    def default_date_npv(self, cube: NPVCube, id_: CubeId, date_index: int, sample: int) -> float:
        """NPV at the default date ``date_index``."""
        return cube.get(id_, date_index, sample, self.default_date_index)

    def default_date_npv_paths(self, cube: NPVCube, id_: CubeId) -> PathArray:
        """(dates, samples) default-date NPVs of one id."""
        return cube.values(id_, self.default_date_index).astype(np.float64)

    def required_depth(self, store_flows: bool = False) -> int:
        """Cube depth needed for this layout."""
        return 1


class RegularCubeInterpretation(CubeInterpretation):
    """
    Layout of a simulation without a close-out grid.

    Example
    -------
    >>> interp = RegularCubeInterpretation()
    >>> interp.close_out_npv(cube, "T1", 0, 5) == cube.get("T1", 1, 5)
    True
    """

    #: Slot holding cash flows when they are stored
    flow_index: int = 1

    @property
    def with_close_out_lag(self) -> bool:
        return False

    def store_flows(self, cube: NPVCube) -> bool:
        return cube.depth > self.flow_index

    def required_depth(self, store_flows: bool = False) -> int:
        return self.flow_index + 1 if store_flows else 1

    def close_out_npv(self, cube: NPVCube, id_: CubeId, date_index: int, sample: int) -> float:
        if not 0 <= date_index < cube.num_dates:
            raise IndexError(f"Date index {date_index} out of range [0, {cube.num_dates})")
        # The last date has no successor and closes out at itself
        next_index = min(date_index + 1, cube.num_dates - 1)
        return cube.get(id_, next_index, sample, self.default_date_index)

    def cash_flow(self, cube: NPVCube, id_: CubeId, date_index: int, sample: int) -> float:
        if not self.store_flows(cube):
            cube.get(id_, date_index, sample)  # coordinate check
            return 0.0
        return cube.get(id_, date_index, sample, self.flow_index)

    def close_out_npv_paths(self, cube: NPVCube, id_: CubeId) -> PathArray:
        npv = self.default_date_npv_paths(cube, id_)
        return np.concatenate([npv[1:], npv[-1:]], axis=0)

    def cash_flow_paths(self, cube: NPVCube, id_: CubeId) -> PathArray:
        if not self.store_flows(cube):
            return np.zeros((cube.num_dates, cube.samples))
        return cube.values(id_, self.flow_index).astype(np.float64)


class MporGridCubeInterpretation(CubeInterpretation):
    """
    Layout of a simulation on a close-out (margin period of risk) grid.

    Parameters
    ----------
    grid : DateGrid
        Grid with close-out dates; supplies the margin period length
    """

    #: Slot holding the close-out NPV
    close_out_index: int = 1

    def __init__(self, grid: DateGrid) -> None:
        if not grid.with_close_out_lag:
            raise ValueError("MporGridCubeInterpretation needs a grid with close-out dates")
        self.grid = grid

    @property
    def with_close_out_lag(self) -> bool:
        return True

    @property
    def close_out_lag_days(self) -> int:
        return int(self.grid.close_out_lag_days)

    def store_flows(self, cube: NPVCube) -> bool:
        return False

    def required_depth(self, store_flows: bool = False) -> int:
        return self.close_out_index + 1

    def close_out_npv(self, cube: NPVCube, id_: CubeId, date_index: int, sample: int) -> float:
        return cube.get(id_, date_index, sample, self.close_out_index)

    def cash_flow(self, cube: NPVCube, id_: CubeId, date_index: int, sample: int) -> float:
        cube.get(id_, date_index, sample)  # coordinate check
        return 0.0

    def close_out_npv_paths(self, cube: NPVCube, id_: CubeId) -> PathArray:
        return cube.values(id_, self.close_out_index).astype(np.float64)

    def cash_flow_paths(self, cube: NPVCube, id_: CubeId) -> PathArray:
        return np.zeros((cube.num_dates, cube.samples))
