"""
Tests for grid storage.
"""

import pytest
import numpy as np
from py_terrain.core.errors import ConfigurationError, InvalidDimension, OutOfBounds
from py_terrain.core.grid import (
    Grid,
    GridKind,
    NeighborMetric,
    grid_statistics,
    neighbor_offsets,
)


class TestGridCreation:
    """Test grid construction and validation."""

    def test_create_fills_every_cell(self):
        grid = Grid.create(5, 3, 2.5)

        assert grid.width == 5
        assert grid.height == 3
        assert grid.shape == (5, 3)
        assert len(grid) == 15
        assert grid.kind is GridKind.SCALAR
        assert np.all(grid.cells == 2.5)
        assert grid.cells.dtype == np.float64

    @pytest.mark.parametrize("width,height", [(0, 4), (4, 0), (-1, 3), (3, -2)])
    def test_non_positive_dimensions_rejected(self, width, height):
        with pytest.raises(InvalidDimension):
            Grid.create(width, height)

    def test_non_integer_dimension_rejected(self):
        with pytest.raises(InvalidDimension):
            Grid(2.5, 3)

    def test_invalid_dimension_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            Grid(0, 1)

    def test_buffer_size_must_match(self):
        with pytest.raises(InvalidDimension):
            Grid(3, 3, np.zeros(8))

    def test_from_array_uses_row_major_layout(self):
        array = np.arange(6, dtype=float).reshape(2, 3)
        grid = Grid.from_array(array)

        assert grid.width == 3
        assert grid.height == 2
        assert grid.get(2, 0) == 2.0
        assert grid.get(0, 1) == 3.0
        assert grid.cells[grid.index(1, 1)] == 4.0

    def test_from_array_requires_2d(self):
        with pytest.raises(InvalidDimension):
            Grid.from_array(np.zeros(4))

    def test_labeled_grid(self):
        grid = Grid(2, 2, [0, 1, 1, 0], labels=["water", "land"])

        assert grid.kind is GridKind.LABELED
        assert grid.is_labeled
        assert grid.cells.dtype == np.int32
        assert grid.get(1, 0) == "land"
        assert grid.labels == ("water", "land")

    def test_label_index_out_of_range(self):
        with pytest.raises(ConfigurationError):
            Grid(2, 1, [0, 2], labels=["water", "land"])

    def test_fractional_label_index_rejected(self):
        with pytest.raises(ConfigurationError):
            Grid(2, 1, [0.0, 1.7], labels=["water", "land"])

    def test_whole_float_label_index_accepted(self):
        grid = Grid(2, 1, np.array([0.0, 1.0]), labels=["water", "land"])
        assert grid.get(1, 0) == "land"

    def test_empty_label_table(self):
        with pytest.raises(ConfigurationError):
            Grid(1, 1, [0], labels=[])


class TestGridAccess:
    """Test cell access, iteration and bounds checking."""

    @pytest.fixture
    def grid(self):
        return Grid.from_array(np.arange(12, dtype=float).reshape(3, 4))

    def test_index_is_row_major(self, grid):
        assert grid.index(0, 0) == 0
        assert grid.index(3, 0) == 3
        assert grid.index(0, 1) == 4
        assert grid.index(3, 2) == 11

    @pytest.mark.parametrize("x,y", [(-1, 0), (0, -1), (4, 0), (0, 3)])
    def test_out_of_bounds(self, grid, x, y):
        with pytest.raises(OutOfBounds):
            grid.get(x, y)
        with pytest.raises(IndexError):
            grid.set(x, y, 1.0)

    def test_set_and_get(self, grid):
        grid.set(2, 1, 42.0)
        assert grid.get(2, 1) == 42.0

    def test_set_label_in_scalar_grid(self, grid):
        with pytest.raises(TypeError):
            grid.set(0, 0, "water")

    def test_set_label_by_name(self):
        grid = Grid(2, 1, [0, 0], labels=["water", "land"])
        grid.set(1, 0, "land")
        assert grid.get(1, 0) == "land"

        with pytest.raises(ConfigurationError):
            grid.set(0, 0, "lava")

    def test_iter_cells_row_major(self, grid):
        cells = list(grid.iter_cells())

        assert len(cells) == 12
        assert cells[0] == (0, 0, 0.0)
        assert cells[1] == (1, 0, 1.0)
        assert cells[4] == (0, 1, 4.0)
        assert cells[-1] == (3, 2, 11.0)

    def test_for_each_cell(self, grid):
        seen = []
        grid.for_each_cell(lambda x, y, v: seen.append((x, y)))
        assert seen == [(x, y) for y in range(3) for x in range(4)]

    def test_as_array_is_a_copy(self, grid):
        array = grid.as_array()
        array[0, 0] = 99.0
        assert grid.get(0, 0) == 0.0

    def test_copy_and_equality(self, grid):
        copy = grid.copy()
        assert copy == grid
        assert copy is not grid

        copy.set(0, 0, -1.0)
        assert copy != grid


class TestNeighbors:
    """Test neighborhood enumeration."""

    def test_chebyshev_offsets(self):
        offsets = neighbor_offsets(1)
        assert len(offsets) == 9
        assert (0, 0) in offsets
        assert offsets[0] == (-1, -1)

    def test_euclidean_offsets(self):
        offsets = neighbor_offsets(1, NeighborMetric.EUCLIDEAN)
        assert set(offsets) == {(0, -1), (-1, 0), (0, 0), (1, 0), (0, 1)}

    def test_negative_radius(self):
        with pytest.raises(ConfigurationError):
            neighbor_offsets(-1)

    def test_interior_cell(self):
        grid = Grid.create(5, 5)
        assert len(grid.neighbors(2, 2, 1)) == 9

    def test_corner_is_clamped(self):
        grid = Grid.create(5, 5)
        neighbors = list(grid.neighbors(0, 0, 1))

        assert neighbors == [(0, 0), (1, 0), (0, 1), (1, 1)]

    def test_neighborhood_is_restartable(self):
        grid = Grid.create(3, 3)
        neighborhood = grid.neighbors(1, 1, 1)
        assert list(neighborhood) == list(neighborhood)

    def test_neighbors_of_outside_cell(self):
        grid = Grid.create(3, 3)
        with pytest.raises(OutOfBounds):
            grid.neighbors(3, 0, 1)


class TestGridStatistics:
    """Test summary statistics."""

    def test_scalar_statistics(self):
        grid = Grid.from_array(np.array([[0.0, 1.0], [2.0, 5.0]]))
        stats = grid_statistics(grid)

        assert stats["min"] == 0.0
        assert stats["max"] == 5.0
        assert stats["mean"] == pytest.approx(2.0)

    def test_label_counts(self):
        grid = Grid(3, 1, [0, 1, 1], labels=["water", "land"])
        assert grid_statistics(grid) == {"water": 1, "land": 2}
