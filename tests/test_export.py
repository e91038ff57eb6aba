"""
Tests for grid export.
"""

import json

import pytest
import numpy as np
from PIL import Image
from py_terrain.core.errors import DimensionMismatch, GridKindMismatch
from py_terrain.core.grid import Grid
from py_terrain.export.exporters import (
    DEFAULT_LABEL_COLORS,
    FALLBACK_COLORS,
    export_grid,
    grid_to_dict,
    hex_to_rgb,
    iter_cells,
    shade_labels,
    to_image,
)


@pytest.fixture
def scalar_grid():
    return Grid.from_array(np.array([[0.0, 0.5, 1.0], [2.0, 1.5, 1.0]]))


@pytest.fixture
def labeled_grid():
    return Grid(3, 2, [0, 1, 2, 2, 1, 0], labels=["water", "plains", "crater"])


class TestImages:
    """Test rendering grids to images."""

    def test_scalar_grid_is_grayscale(self, scalar_grid):
        image = to_image(scalar_grid)

        assert image.mode == "L"
        assert image.size == (3, 2)
        pixels = np.asarray(image)
        assert pixels[0, 0] == 0
        assert pixels[1, 0] == 255
        assert pixels[0, 1] < pixels[0, 2] < pixels[1, 1]

    def test_flat_grid_is_black(self):
        image = to_image(Grid.create(4, 4, 3.0))
        assert np.all(np.asarray(image) == 0)

    def test_labeled_grid_is_rgb(self, labeled_grid):
        image = to_image(labeled_grid)

        assert image.mode == "RGB"
        assert image.size == (3, 2)
        pixels = np.asarray(image)
        # Without elevation every label gets the low end of its gradient
        assert tuple(pixels[0, 0]) == hex_to_rgb(DEFAULT_LABEL_COLORS["water"][0])
        assert tuple(pixels[0, 1]) == hex_to_rgb(DEFAULT_LABEL_COLORS["plains"][0])
        # Labels missing from the palette use the fallback colors
        assert tuple(pixels[0, 2]) == hex_to_rgb(FALLBACK_COLORS[0])

    def test_palette_override(self, labeled_grid):
        image = to_image(labeled_grid, palette={"water": "#000000"})
        assert tuple(np.asarray(image)[0, 0]) == (0, 0, 0)

    def test_hex_to_rgb(self):
        assert hex_to_rgb("#ff8000") == (255, 128, 0)
        with pytest.raises(ValueError):
            hex_to_rgb("#fff")


class TestElevationShading:
    """Test shading labels along their gradients by elevation."""

    @pytest.fixture
    def elevation(self):
        # water at 0.0 and 0.2, plains at 0.5 and 0.9, crater at 0.3 and 0.4
        return Grid.from_array(np.array([[0.0, 0.5, 0.3], [0.4, 0.9, 0.2]]))

    def test_same_label_different_elevation(self, labeled_grid, elevation):
        pixels = np.asarray(to_image(labeled_grid, elevation=elevation))

        # (0, 0) and (2, 1) are both water, at different heights
        assert tuple(pixels[0, 0]) != tuple(pixels[1, 2])
        assert tuple(pixels[0, 1]) != tuple(pixels[1, 1])

    def test_band_ends_use_gradient_ends(self, labeled_grid, elevation):
        pixels = shade_labels(labeled_grid, elevation=elevation)
        low, high = DEFAULT_LABEL_COLORS["water"]

        assert tuple(pixels[0, 0]) == hex_to_rgb(low)
        assert tuple(pixels[1, 2]) == hex_to_rgb(high)

    def test_midpoint_is_interpolated(self):
        grid = Grid(3, 1, [0, 0, 0], labels=["water"])
        elevation = Grid.from_array(np.array([[0.0, 0.5, 1.0]]))
        pixels = shade_labels(grid, {"water": ("#000000", "#c8641e")}, elevation)

        assert tuple(pixels[0, 0]) == (0, 0, 0)
        assert tuple(pixels[0, 1]) == (100, 50, 15)
        assert tuple(pixels[0, 2]) == (200, 100, 30)

    def test_flat_palette_entry_ignores_elevation(self, labeled_grid, elevation):
        pixels = shade_labels(labeled_grid, {"water": "#102030"}, elevation)
        assert tuple(pixels[0, 0]) == tuple(pixels[1, 2]) == (16, 32, 48)

    def test_fallback_label_stays_flat(self, labeled_grid, elevation):
        pixels = shade_labels(labeled_grid, elevation=elevation)
        assert tuple(pixels[0, 2]) == tuple(pixels[1, 0]) == hex_to_rgb(FALLBACK_COLORS[0])

    def test_single_height_band_uses_low_end(self, labeled_grid):
        pixels = shade_labels(labeled_grid, elevation=Grid.create(3, 2, 0.7))
        assert tuple(pixels[0, 0]) == hex_to_rgb(DEFAULT_LABEL_COLORS["water"][0])

    def test_elevation_shape_must_match(self, labeled_grid):
        with pytest.raises(DimensionMismatch):
            to_image(labeled_grid, elevation=Grid.create(2, 2))

    def test_elevation_must_be_scalar(self, labeled_grid):
        with pytest.raises(GridKindMismatch):
            to_image(labeled_grid, elevation=labeled_grid)

    def test_bad_gradient(self, labeled_grid):
        with pytest.raises(ValueError):
            shade_labels(labeled_grid, {"water": ["#000000"]})

    def test_png_with_elevation(self, tmp_path, labeled_grid, elevation):
        path = export_grid(labeled_grid, tmp_path / "map.png", elevation=elevation)

        with Image.open(path) as image:
            pixels = np.asarray(image.convert("RGB"))
        assert tuple(pixels[0, 0]) != tuple(pixels[1, 2])


class TestFiles:
    """Test writing files."""

    def test_png(self, tmp_path, labeled_grid):
        path = export_grid(labeled_grid, tmp_path / "map.png")

        with Image.open(path) as image:
            assert image.size == (3, 2)
            assert image.mode == "RGB"

    def test_npy_scalar(self, tmp_path, scalar_grid):
        path = export_grid(scalar_grid, tmp_path / "map.npy")
        array = np.load(path)

        assert array.shape == (2, 3)
        assert array.dtype == np.float64
        np.testing.assert_array_equal(array, scalar_grid.as_array())

    def test_npy_labeled(self, tmp_path, labeled_grid):
        array = np.load(export_grid(labeled_grid, tmp_path / "labels.npy"))
        assert array.dtype == np.int32
        np.testing.assert_array_equal(array, [[0, 1, 2], [2, 1, 0]])

    def test_json(self, tmp_path, labeled_grid):
        path = export_grid(labeled_grid, tmp_path / "out" / "map.json")
        data = json.loads(path.read_text())

        assert data["width"] == 3
        assert data["height"] == 2
        assert data["kind"] == "labeled"
        assert data["labels"] == ["water", "plains", "crater"]
        assert data["rows"][1] == ["crater", "plains", "water"]

    def test_unknown_suffix(self, tmp_path, scalar_grid):
        with pytest.raises(ValueError):
            export_grid(scalar_grid, tmp_path / "map.tiff")


class TestIterCells:
    """Test the cell iterator used by exporters."""

    def test_row_major_order(self, scalar_grid):
        cells = list(iter_cells(scalar_grid))
        assert [(x, y) for x, y, _ in cells] == [(0, 0), (1, 0), (2, 0), (0, 1), (1, 1), (2, 1)]
        assert cells[3][2] == 2.0

    def test_scalar_dict(self, scalar_grid):
        data = grid_to_dict(scalar_grid)
        assert data["kind"] == "scalar"
        assert data["labels"] == []
        assert data["rows"] == [[0.0, 0.5, 1.0], [2.0, 1.5, 1.0]]
