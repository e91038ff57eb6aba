"""
Coherent noise for terrain synthesis.

NoiseSource sums octaves of OpenSimplex noise. Sampling is a pure function
of the seed, the parameters and the coordinate: the OpenSimplex generator
is built from the seed once, in the constructor, and holds no other state.
"""

import math
from dataclasses import dataclass
from typing import Optional, Union

import numpy as np
from opensimplex import OpenSimplex

from .errors import ConfigurationError

ArrayLike = Union[float, np.ndarray]

_MAX_SEED = 2**64
_INT64_LIMIT = 2**63


def simplex_seed(seed: int) -> int:
    """Fold an unsigned 64-bit seed into the signed range OpenSimplex uses."""
    seed = int(seed)
    return seed - _MAX_SEED if seed >= _INT64_LIMIT else seed


@dataclass(frozen=True)
class NoiseParams:
    """Parameters of a fractal noise source."""

    seed: int = 0
    frequency: float = 0.05
    octaves: int = 4
    persistence: float = 0.5
    lacunarity: float = 2.0
    wrap_width: Optional[float] = None

    def __post_init__(self):
        if isinstance(self.seed, bool) or not isinstance(self.seed, (int, np.integer)):
            raise ConfigurationError(f"seed must be an integer, got {self.seed!r}")
        if not 0 <= self.seed < _MAX_SEED:
            raise ConfigurationError(f"seed must be in [0, 2**64), got {self.seed}")
        if not (math.isfinite(self.frequency) and self.frequency > 0):
            raise ConfigurationError(f"frequency must be > 0, got {self.frequency}")
        if isinstance(self.octaves, bool) or not isinstance(self.octaves, (int, np.integer)):
            raise ConfigurationError(f"octaves must be an integer, got {self.octaves!r}")
        if self.octaves < 1:
            raise ConfigurationError(f"octaves must be >= 1, got {self.octaves}")
        if not 0 < self.persistence <= 1:
            raise ConfigurationError(
                f"persistence must be in (0, 1], got {self.persistence}"
            )
        if not (math.isfinite(self.lacunarity) and self.lacunarity >= 1):
            raise ConfigurationError(f"lacunarity must be >= 1, got {self.lacunarity}")
        if self.wrap_width is not None and not self.wrap_width > 0:
            raise ConfigurationError(f"wrap_width must be > 0, got {self.wrap_width}")


class NoiseSource:
    """
    Deterministic fractal noise sampler.

    ``sample(x, y)`` sums ``persistence**i * noise(x * f_i, y * f_i)`` with
    ``f_i = frequency * lacunarity**i`` over all octaves, and divides by the
    total amplitude so results stay in [-1, 1].

    With ``wrap_width`` set, x is mapped onto a circle and sampled from 3D
    noise, so the output repeats every ``wrap_width`` units east-west.
    """

    def __init__(self, params: Optional[NoiseParams] = None, **kwargs):
        """
        Initialize the noise source.

        Args:
            params: Noise parameters. Keyword arguments build a NoiseParams
                when ``params`` is omitted.
        """
        if params is None:
            params = NoiseParams(**kwargs)
        elif kwargs:
            raise TypeError("pass either params or keyword arguments, not both")
        self.params = params

        self._simplex = OpenSimplex(seed=simplex_seed(params.seed))
        self._noise2 = np.vectorize(self._simplex.noise2, otypes=[np.float64])
        self._noise3 = np.vectorize(self._simplex.noise3, otypes=[np.float64])

        octaves = int(params.octaves)
        self._amplitudes = tuple(params.persistence**i for i in range(octaves))
        self._frequencies = tuple(
            params.frequency * params.lacunarity**i for i in range(octaves)
        )
        self._total_amplitude = float(sum(self._amplitudes))

    @property
    def seed(self) -> int:
        return self.params.seed

    def _cylinder(self, x: np.ndarray, frequency: float):
        # Map x onto a circle so the noise repeats every wrap_width units
        wrap_width = self.params.wrap_width
        radius = wrap_width * frequency / (2 * math.pi)
        angle = x * (2 * math.pi / wrap_width)
        return np.cos(angle) * radius, np.sin(angle) * radius

    def _base(self, x: np.ndarray, y: np.ndarray, frequency: float) -> np.ndarray:
        if self.params.wrap_width is None:
            return self._noise2(x * frequency, y * frequency)
        cx, cz = self._cylinder(x, frequency)
        return self._noise3(cx, y * frequency, cz)

    def _fractal(self, octave_values) -> np.ndarray:
        total = None
        for amplitude, values in zip(self._amplitudes, octave_values):
            total = amplitude * values if total is None else total + amplitude * values
        return np.clip(total / self._total_amplitude, -1.0, 1.0)

    def sample_many(self, xs: ArrayLike, ys: ArrayLike) -> np.ndarray:
        """Sample arrays of coordinates; results are in [-1, 1]."""
        x, y = np.broadcast_arrays(
            np.asarray(xs, dtype=np.float64), np.asarray(ys, dtype=np.float64)
        )
        return self._fractal(self._base(x, y, f) for f in self._frequencies)

    def sample(self, x: float, y: float) -> float:
        """Fractal noise value at (x, y) in [-1, 1]."""
        return float(self.sample_many(np.array([x]), np.array([y]))[0])

    def sample_grid(self, width: int, height: int) -> np.ndarray:
        """Sample every integer cell coordinate; returns a (height, width) array."""
        if self.params.wrap_width is not None:
            ys, xs = np.mgrid[0:height, 0:width]
            return self.sample_many(xs.astype(np.float64), ys.astype(np.float64))

        xs = np.arange(width, dtype=np.float64)
        ys = np.arange(height, dtype=np.float64)
        # noise2array samples the full lattice and returns shape (len(ys), len(xs))
        return self._fractal(
            self._simplex.noise2array(xs * f, ys * f) for f in self._frequencies
        )

    def __repr__(self) -> str:
        p = self.params
        return (
            f"NoiseSource(seed={p.seed}, frequency={p.frequency}, "
            f"octaves={p.octaves}, persistence={p.persistence}, "
            f"lacunarity={p.lacunarity})"
        )
