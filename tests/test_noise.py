"""
Tests for the fractal noise source.
"""

import pytest
import numpy as np
from py_terrain.core.errors import ConfigurationError
from py_terrain.core.noise import NoiseParams, NoiseSource, simplex_seed
from py_terrain.core.operations import NoiseFill


class TestNoiseParams:
    """Test parameter validation."""

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"seed": -1},
            {"seed": 2**64},
            {"frequency": 0.0},
            {"frequency": -0.5},
            {"octaves": 0},
            {"octaves": 2.0},
            {"octaves": True},
            {"persistence": 0.0},
            {"persistence": 1.5},
            {"lacunarity": 0.5},
            {"wrap_width": 0.0},
        ],
    )
    def test_invalid_parameters(self, kwargs):
        with pytest.raises(ConfigurationError):
            NoiseParams(**kwargs)

    def test_float_octaves_rejected_before_running(self):
        with pytest.raises(ConfigurationError):
            NoiseFill(seed=1, octaves=2.0)

    def test_boundary_values_accepted(self):
        params = NoiseParams(seed=2**64 - 1, persistence=1.0, lacunarity=1.0, octaves=1)
        assert params.octaves == 1


class TestNoiseSource:
    """Test sampling behaviour."""

    def test_deterministic(self):
        a = NoiseSource(seed=42, frequency=0.1)
        b = NoiseSource(seed=42, frequency=0.1)

        for x, y in [(0.5, 0.5), (3.25, 7.75), (100.1, -20.3)]:
            assert a.sample(x, y) == b.sample(x, y)
            assert a.sample(x, y) == a.sample(x, y)

    def test_seed_changes_output(self):
        a = NoiseSource(seed=1).sample_grid(16, 16)
        b = NoiseSource(seed=2).sample_grid(16, 16)
        assert not np.array_equal(a, b)

    def test_range(self):
        source = NoiseSource(seed=9, frequency=0.07, octaves=5, persistence=0.8)
        values = source.sample_grid(64, 64)

        assert values.shape == (64, 64)
        assert np.all(values >= -1.0)
        assert np.all(values <= 1.0)
        assert values.std() > 0

    def test_continuity(self):
        source = NoiseSource(seed=3, frequency=0.05, octaves=1)
        a = source.sample(10.0, 10.0)
        b = source.sample(10.001, 10.0)
        assert abs(a - b) < 0.01

    def test_grid_matches_point_sampling(self):
        source = NoiseSource(seed=13, frequency=0.15, octaves=3)
        grid = source.sample_grid(6, 4)

        assert grid.shape == (4, 6)
        for x, y in [(0, 0), (5, 0), (2, 3), (4, 1)]:
            assert grid[y, x] == pytest.approx(source.sample(float(x), float(y)), abs=1e-9)

    def test_large_seed(self):
        a = NoiseSource(seed=2**64 - 1).sample_grid(8, 8)
        b = NoiseSource(seed=2**63 - 1).sample_grid(8, 8)
        assert np.all(np.abs(a) <= 1.0)
        assert not np.array_equal(a, b)

    def test_sample_many_matches_sample(self):
        source = NoiseSource(seed=11, frequency=0.2, octaves=3)
        xs = np.array([0.3, 1.7, 5.5])
        ys = np.array([2.1, 0.4, 9.9])
        many = source.sample_many(xs, ys)

        for i in range(3):
            assert many[i] == pytest.approx(source.sample(xs[i], ys[i]))

    def test_params_and_kwargs_are_exclusive(self):
        with pytest.raises(TypeError):
            NoiseSource(NoiseParams(seed=1), seed=2)

    def test_seamless_wraps_east_west(self):
        width = 32
        source = NoiseSource(seed=21, frequency=0.1, octaves=3, wrap_width=float(width))

        for y in [0.0, 4.0, 13.5]:
            assert source.sample(0.0, y) == pytest.approx(source.sample(float(width), y), abs=1e-9)

    def test_seamless_grid_edges_meet(self):
        source = NoiseSource(seed=4, frequency=0.08, octaves=2, wrap_width=16.0)
        grid = source.sample_grid(16, 5)
        wrapped = source.sample_many(np.full(5, 16.0), np.arange(5, dtype=float))
        np.testing.assert_allclose(grid[:, 0], wrapped, atol=1e-9)


class TestSimplexSeed:
    """Test folding unsigned seeds into the signed range."""

    def test_small_seeds_unchanged(self):
        assert simplex_seed(0) == 0
        assert simplex_seed(42) == 42
        assert simplex_seed(2**63 - 1) == 2**63 - 1

    def test_high_seeds_become_negative(self):
        assert simplex_seed(2**63) == -(2**63)
        assert simplex_seed(2**64 - 1) == -1
