"""
Aggregation scenario data.

Market quantities recorded alongside the cube at every valuation date and
sample (numeraire, FX spots, short rates). Post-processing needs them to
undo the numeraire deflation of cube values, and the DIM regression uses
them as regressors.
"""

import threading
from enum import Enum

import numpy as np

from xva_cube._types import FloatArray
from xva_cube.errors import ConfigurationError


class AggregationScenarioDataType(str, Enum):
    """Kinds of market quantity stored as scenario data."""

    NUMERAIRE = "Numeraire"
    FX_SPOT = "FXSpot"
    SHORT_RATE = "ShortRate"


ScenarioDataKey = tuple[AggregationScenarioDataType, str]


def parse_scenario_data_key(key: str) -> ScenarioDataKey:
    """
    Parse a regressor name such as ``"FX_SPOT:EUR"`` or ``"NUMERAIRE"``.

    The type part matches either the enum name or its value, case
    insensitively.

    Raises
    ------
    ConfigurationError
        If the type is unknown
    """
    type_name, _, qualifier = key.partition(":")
    wanted = type_name.strip().upper().replace("_", "")
    for data_type in AggregationScenarioDataType:
        if wanted in (data_type.name.replace("_", ""), data_type.value.upper()):
            return data_type, qualifier.strip()
    raise ConfigurationError(f"Unknown aggregation scenario data type in '{key}'")


class InMemoryAggregationScenarioData:
    """
    Scenario data held as one (dates, samples) float64 array per key.

    Arrays are allocated on first write and pre-filled with NaN. Workers of
    the valuation engine write disjoint samples of the same arrays; only the
    allocation itself is serialised.

    Parameters
    ----------
    dim_dates : int
        Number of valuation dates
    dim_samples : int
        Number of Monte Carlo samples
    """

    def __init__(self, dim_dates: int, dim_samples: int) -> None:
        if dim_dates < 1 or dim_samples < 1:
            raise ConfigurationError(
                f"Scenario data needs positive dimensions, got ({dim_dates}, {dim_samples})"
            )
        self.dim_dates = int(dim_dates)
        self.dim_samples = int(dim_samples)
        self._data: dict[ScenarioDataKey, FloatArray] = {}
        self._lock = threading.Lock()

    def _array(self, data_type: AggregationScenarioDataType, qualifier: str) -> FloatArray:
        key = (AggregationScenarioDataType(data_type), qualifier)
        array = self._data.get(key)
        if array is None:
            with self._lock:
                array = self._data.get(key)
                if array is None:
                    array = np.full((self.dim_dates, self.dim_samples), np.nan)
                    self._data[key] = array
        return array

    def _check(self, date_index: int, sample: int) -> None:
        if not 0 <= date_index < self.dim_dates:
            raise IndexError(f"Date index {date_index} out of range [0, {self.dim_dates})")
        if not 0 <= sample < self.dim_samples:
            raise IndexError(f"Sample {sample} out of range [0, {self.dim_samples})")

    def set(
        self,
        date_index: int,
        sample: int,
        value: float,
        data_type: AggregationScenarioDataType,
        qualifier: str = "",
    ) -> None:
        self._check(date_index, sample)
        self._array(data_type, qualifier)[date_index, sample] = value

    def get(
        self,
        date_index: int,
        sample: int,
        data_type: AggregationScenarioDataType,
        qualifier: str = "",
    ) -> float:
        self._check(date_index, sample)
        return float(self.values(data_type, qualifier)[date_index, sample])

    def has(self, data_type: AggregationScenarioDataType, qualifier: str = "") -> bool:
        return (AggregationScenarioDataType(data_type), qualifier) in self._data

    def keys(self) -> list[ScenarioDataKey]:
        return sorted(self._data, key=lambda k: (k[0].name, k[1]))

    def values(self, data_type: AggregationScenarioDataType, qualifier: str = "") -> FloatArray:
        """Read-only (dates, samples) view of one key; ``KeyError`` if never written."""
        key = (AggregationScenarioDataType(data_type), qualifier)
        if key not in self._data:
            raise KeyError(f"No scenario data for {key[0].name}:{qualifier}")
        view = self._data[key][...]
        view.flags.writeable = False
        return view

    def values_for(self, key: str) -> FloatArray:
        """Look up values by a regressor name such as ``"SHORT_RATE:USD"``."""
        return self.values(*parse_scenario_data_key(key))
