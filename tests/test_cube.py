"""
Tests for the valuation cube and the aggregation scenario data.
"""

from datetime import date

import numpy as np
import pytest

from xva_cube.cube import (
    AggregationScenarioDataType,
    InMemoryAggregationScenarioData,
    SinglePrecisionInMemoryCube,
    SinglePrecisionInMemoryCubeN,
    parse_scenario_data_key,
)
from xva_cube.cube.npv_cube import empty_like
from xva_cube.errors import ConfigurationError, PreconditionError

ASOF = date(2024, 1, 15)
DATES = [date(2024, 4, 15), date(2024, 7, 15), date(2024, 10, 15)]


class TestSinglePrecisionInMemoryCube:
    """Tests for the depth-1 cube."""

    def test_set_then_get(self) -> None:
        """A written cell reads back by string id and by position."""
        cube = SinglePrecisionInMemoryCube(ASOF, ["T1", "T2"], DATES, 100)
        cube.set("T1", 0, 5, 123.5)
        assert cube.get("T1", 0, 5) == 123.5
        assert cube.get(0, 0, 5) == 123.5

    def test_unwritten_cells_hold_fill_value(self) -> None:
        """Cells are pre-filled, including the T0 slot."""
        cube = SinglePrecisionInMemoryCube(ASOF, ["T1"], DATES, 10, fill_value=-1.0)
        assert cube.get("T1", 2, 9) == -1.0
        assert cube.get_t0("T1") == -1.0

    def test_t0_keeps_double_precision(self) -> None:
        """The T0 slot is not rounded to single precision."""
        cube = SinglePrecisionInMemoryCube(ASOF, ["T1"], DATES, 10)
        cube.set_t0("T1", 0.1)
        assert cube.get_t0("T1") == 0.1

    def test_cells_are_single_precision(self) -> None:
        """Simulated cells are stored as float32."""
        cube = SinglePrecisionInMemoryCube(ASOF, ["T1"], DATES, 10)
        cube.set("T1", 0, 0, 0.1)
        assert cube.get("T1", 0, 0) == float(np.float32(0.1))
        assert cube.values("T1").dtype == np.float32

    def test_shape(self) -> None:
        cube = SinglePrecisionInMemoryCube(ASOF, ["T1", "T2"], DATES, 7)
        assert cube.shape == (2, 3, 7, 1)
        assert cube.depth == 1

    @pytest.mark.parametrize(
        "coordinates",
        [("T3", 0, 0), (2, 0, 0), ("T1", 3, 0), ("T1", 0, 100), ("T1", -1, 0)],
    )
    def test_out_of_range_raises(self, coordinates) -> None:
        """Invalid ids, dates or samples raise IndexError on read and write."""
        cube = SinglePrecisionInMemoryCube(ASOF, ["T1", "T2"], DATES, 100)
        with pytest.raises(IndexError):
            cube.get(*coordinates)
        with pytest.raises(IndexError):
            cube.set(*coordinates, 1.0)

    def test_depth_one_rejects_second_slot(self) -> None:
        cube = SinglePrecisionInMemoryCube(ASOF, ["T1"], DATES, 10)
        with pytest.raises(IndexError):
            cube.set("T1", 0, 0, 1.0, depth=1)

    def test_duplicate_ids_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="Duplicate"):
            SinglePrecisionInMemoryCube(ASOF, ["T1", "T1"], DATES, 10)

    def test_values_view_is_read_only(self) -> None:
        """Block views cannot be used to write the cube."""
        cube = SinglePrecisionInMemoryCube(ASOF, ["T1"], DATES, 10)
        view = cube.values("T1")
        assert view.shape == (3, 10)
        with pytest.raises(ValueError):
            view[0, 0] = 1.0

    def test_set_values_block(self) -> None:
        cube = SinglePrecisionInMemoryCube(ASOF, ["T1"], DATES, 4)
        block = np.arange(12, dtype=float).reshape(3, 4)
        cube.set_values("T1", block)
        assert cube.get("T1", 2, 3) == 11.0

    def test_set_values_wrong_shape(self) -> None:
        cube = SinglePrecisionInMemoryCube(ASOF, ["T1"], DATES, 4)
        with pytest.raises(ConfigurationError):
            cube.set_values("T1", np.zeros((4, 3)))

    def test_frozen_cube_rejects_writes(self) -> None:
        """After freezing, reads work and writes raise."""
        cube = SinglePrecisionInMemoryCube(ASOF, ["T1"], DATES, 4)
        cube.set("T1", 0, 0, 2.5)
        cube.freeze()
        assert cube.frozen
        assert cube.get("T1", 0, 0) == 2.5
        with pytest.raises(PreconditionError):
            cube.set("T1", 0, 0, 1.0)
        with pytest.raises(PreconditionError):
            cube.set_t0("T1", 1.0)


class TestSinglePrecisionInMemoryCubeN:
    """Tests for the multi-depth cube."""

    def test_depth_slots_are_independent(self) -> None:
        cube = SinglePrecisionInMemoryCubeN(ASOF, ["T1"], DATES, 10, 2)
        cube.set("T1", 1, 3, 7.25, depth=1)
        assert cube.get("T1", 1, 3, depth=1) == 7.25
        assert cube.get("T1", 1, 3, depth=0) == 0.0

    def test_t0_per_depth(self) -> None:
        cube = SinglePrecisionInMemoryCubeN(ASOF, ["T1"], DATES, 10, 2)
        cube.set_t0("T1", 1.5, depth=0)
        cube.set_t0("T1", -2.5, depth=1)
        assert cube.get_t0("T1", 0) == 1.5
        assert cube.get_t0("T1", 1) == -2.5

    def test_empty_like_copies_layout(self) -> None:
        """empty_like keeps dates, samples, depth and fill with new ids."""
        cube = SinglePrecisionInMemoryCubeN(ASOF, ["T1", "T2"], DATES, 10, 2, fill_value=3.0)
        other = empty_like(cube, ["NS_A"])
        assert other.ids == ("NS_A",)
        assert other.shape == (1, 3, 10, 2)
        assert other.get("NS_A", 0, 0, 1) == 3.0

    def test_invalid_depth(self) -> None:
        with pytest.raises(ConfigurationError):
            SinglePrecisionInMemoryCubeN(ASOF, ["T1"], DATES, 10, 0)


class TestAggregationScenarioData:
    """Tests for scenario data storage."""

    def test_set_then_get(self) -> None:
        data = InMemoryAggregationScenarioData(3, 5)
        data.set(1, 2, 1.05, AggregationScenarioDataType.NUMERAIRE)
        assert data.get(1, 2, AggregationScenarioDataType.NUMERAIRE) == 1.05

    def test_qualifiers_are_separate_keys(self) -> None:
        data = InMemoryAggregationScenarioData(3, 5)
        data.set(0, 0, 1.1, AggregationScenarioDataType.FX_SPOT, "EUR")
        assert data.has(AggregationScenarioDataType.FX_SPOT, "EUR")
        assert not data.has(AggregationScenarioDataType.FX_SPOT, "GBP")

    def test_unwritten_cells_are_nan(self) -> None:
        data = InMemoryAggregationScenarioData(3, 5)
        data.set(0, 0, 0.02, AggregationScenarioDataType.SHORT_RATE, "USD")
        assert np.isnan(data.get(2, 4, AggregationScenarioDataType.SHORT_RATE, "USD"))

    def test_missing_key_raises(self) -> None:
        data = InMemoryAggregationScenarioData(3, 5)
        with pytest.raises(KeyError):
            data.values(AggregationScenarioDataType.NUMERAIRE)

    def test_out_of_range(self) -> None:
        data = InMemoryAggregationScenarioData(3, 5)
        with pytest.raises(IndexError):
            data.set(3, 0, 1.0, AggregationScenarioDataType.NUMERAIRE)

    def test_invalid_dimensions(self) -> None:
        with pytest.raises(ConfigurationError):
            InMemoryAggregationScenarioData(0, 5)

    def test_values_for_regressor_name(self) -> None:
        data = InMemoryAggregationScenarioData(2, 2)
        data.set(1, 1, 1.2, AggregationScenarioDataType.FX_SPOT, "EUR")
        assert data.values_for("FX_SPOT:EUR")[1, 1] == 1.2

    @pytest.mark.parametrize(
        "key, expected",
        [
            ("FX_SPOT:EUR", (AggregationScenarioDataType.FX_SPOT, "EUR")),
            ("FXSpot:EUR", (AggregationScenarioDataType.FX_SPOT, "EUR")),
            ("numeraire", (AggregationScenarioDataType.NUMERAIRE, "")),
            ("SHORT_RATE:USD", (AggregationScenarioDataType.SHORT_RATE, "USD")),
        ],
    )
    def test_parse_key(self, key, expected) -> None:
        assert parse_scenario_data_key(key) == expected

    def test_parse_unknown_key(self) -> None:
        with pytest.raises(ConfigurationError):
            parse_scenario_data_key("VOLATILITY:EUR")
