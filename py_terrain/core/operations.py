"""
Grid operations.

The operations form a closed set of frozen dataclasses. Each one validates
its parameters on construction, and ``apply_operation`` dispatches over the
set to run the matching algorithm. Every algorithm reads the input grid
without modifying it and returns a new Grid of identical dimensions.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Tuple, Union

import numpy as np
import structlog

from .errors import ConfigurationError, DimensionMismatch, GridKindMismatch
from .grid import Grid, GridKind, NeighborMetric, neighbor_offsets
from .noise import NoiseParams, NoiseSource

logger = structlog.get_logger()


class CombineMode(str, Enum):
    """How Combine merges two grids cell by cell."""

    ADD = "add"
    MAX = "max"
    MIN = "min"
    WEIGHTED_AVERAGE = "weighted_average"


class TieBreak(str, Enum):
    """Which band a value exactly on a threshold belongs to."""

    LOWER = "lower"  # bands are (previous, upper]
    UPPER = "upper"  # bands are [previous, upper)


# Neighbor scan order for erosion: N, NE, E, SE, S, SW, W, NW as (dx, dy)
ERODE_SCAN_ORDER: Tuple[Tuple[int, int], ...] = (
    (0, -1),
    (1, -1),
    (1, 0),
    (1, 1),
    (0, 1),
    (-1, 1),
    (-1, 0),
    (-1, -1),
)


def _require_finite(name: str, value: float) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from None
    if not math.isfinite(value):
        raise ConfigurationError(f"{name} must be finite, got {value}")
    return value


def _require_count(name: str, value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    if value < 0:
        raise ConfigurationError(f"{name} must be >= 0, got {value}")
    return int(value)


@dataclass(frozen=True)
class NoiseFill:
    """Replace every cell with fractal noise mapped into [output_min, output_max]."""

    seed: int = 0
    frequency: float = 0.05
    octaves: int = 4
    persistence: float = 0.5
    lacunarity: float = 2.0
    output_min: float = 0.0
    output_max: float = 1.0
    seamless: bool = False

    name = "NoiseFill"

    def __post_init__(self):
        # Fail fast on bad noise parameters
        self.noise_params()
        low = _require_finite("output_min", self.output_min)
        high = _require_finite("output_max", self.output_max)
        if low > high:
            raise ConfigurationError(
                f"output_min ({low}) must not exceed output_max ({high})"
            )

    def noise_params(self, wrap_width=None) -> NoiseParams:
        return NoiseParams(
            seed=self.seed,
            frequency=self.frequency,
            octaves=self.octaves,
            persistence=self.persistence,
            lacunarity=self.lacunarity,
            wrap_width=wrap_width,
        )


@dataclass(frozen=True)
class Smooth:
    """Box-kernel average over the neighborhood of every cell."""

    radius: int = 1
    metric: NeighborMetric = NeighborMetric.CHEBYSHEV

    name = "Smooth"

    def __post_init__(self):
        _require_count("radius", self.radius)
        try:
            object.__setattr__(self, "metric", NeighborMetric(self.metric))
        except ValueError:
            raise ConfigurationError(f"unknown neighbor metric {self.metric!r}") from None


@dataclass(frozen=True)
class Normalize:
    """Rescale cells linearly so min -> target_min and max -> target_max."""

    target_min: float = 0.0
    target_max: float = 1.0

    name = "Normalize"

    def __post_init__(self):
        low = _require_finite("target_min", self.target_min)
        high = _require_finite("target_max", self.target_max)
        if low > high:
            raise ConfigurationError(
                f"target_min ({low}) must not exceed target_max ({high})"
            )


@dataclass(frozen=True)
class Threshold:
    """Upper bound of a classification band and the label it assigns."""

    upper_bound: float
    label: str


@dataclass(frozen=True)
class Classify:
    """
    Convert scalar cells into labels using ascending threshold bands.

    With the default tie-break a value equal to an upper bound belongs to
    that band. Values above the last bound fall into the last band.
    """

    thresholds: Tuple[Threshold, ...]
    tie_break: TieBreak = TieBreak.LOWER

    name = "Classify"

    def __post_init__(self):
        entries = []
        for entry in self.thresholds:
            if isinstance(entry, Threshold):
                entries.append(entry)
                continue
            try:
                bound, label = entry
            except (TypeError, ValueError):
                raise ConfigurationError(
                    f"threshold entries must be (upper_bound, label) pairs, got {entry!r}"
                ) from None
            entries.append(Threshold(bound, label))

        if not entries:
            raise ConfigurationError("Classify needs at least one threshold")

        previous = -math.inf
        normalized = []
        for entry in entries:
            try:
                bound = float(entry.upper_bound)
            except (TypeError, ValueError):
                raise ConfigurationError(
                    f"threshold bound must be a number, got {entry.upper_bound!r}"
                ) from None
            if math.isnan(bound):
                raise ConfigurationError("threshold bound must not be NaN")
            if not bound > previous:
                raise ConfigurationError(
                    "thresholds must be strictly ascending by upper bound "
                    f"({bound} follows {previous})"
                )
            if not isinstance(entry.label, str) or not entry.label:
                raise ConfigurationError(
                    f"threshold label must be a non-empty string, got {entry.label!r}"
                )
            normalized.append(Threshold(bound, entry.label))
            previous = bound

        object.__setattr__(self, "thresholds", tuple(normalized))
        try:
            object.__setattr__(self, "tie_break", TieBreak(self.tie_break))
        except ValueError:
            raise ConfigurationError(f"unknown tie-break {self.tie_break!r}") from None

    @property
    def bounds(self) -> np.ndarray:
        return np.array([t.upper_bound for t in self.thresholds], dtype=np.float64)

    @property
    def labels(self) -> Tuple[str, ...]:
        """Distinct labels in threshold order."""
        seen = []
        for t in self.thresholds:
            if t.label not in seen:
                seen.append(t.label)
        return tuple(seen)

    def band_of(self, value: float) -> int:
        """Index of the threshold band a value falls into."""
        return int(_band_indices(self.bounds, np.array([value]), self.tie_break)[0])


@dataclass(frozen=True)
class Combine:
    """Merge the working grid with ``other`` cell by cell."""

    other: Grid
    mode: CombineMode = CombineMode.ADD
    weight: float = 0.5

    name = "Combine"

    def __post_init__(self):
        if not isinstance(self.other, Grid):
            raise ConfigurationError(
                f"Combine needs a Grid to merge with, got {type(self.other).__name__}"
            )
        try:
            object.__setattr__(self, "mode", CombineMode(self.mode))
        except ValueError:
            raise ConfigurationError(f"unknown combine mode {self.mode!r}") from None
        weight = _require_finite("weight", self.weight)
        if not 0 <= weight <= 1:
            raise ConfigurationError(f"weight must be in [0, 1], got {weight}")


@dataclass(frozen=True)
class Erode:
    """Move elevation from each cell to its steepest lower neighbor."""

    iterations: int = 1
    strength: float = 0.5

    name = "Erode"

    def __post_init__(self):
        _require_count("iterations", self.iterations)
        strength = _require_finite("strength", self.strength)
        if not 0 <= strength <= 1:
            raise ConfigurationError(f"strength must be in [0, 1], got {strength}")


Operation = Union[NoiseFill, Smooth, Normalize, Classify, Combine, Erode]
OPERATION_TYPES = (NoiseFill, Smooth, Normalize, Classify, Combine, Erode)


def is_operation(obj) -> bool:
    return isinstance(obj, OPERATION_TYPES)


def output_kind(op: Operation, kind: GridKind) -> GridKind:
    """
    Grid kind produced by ``op`` from a grid of ``kind``.

    Raises:
        GridKindMismatch: If ``op`` is not defined for ``kind``
    """
    if isinstance(op, Classify):
        return GridKind.LABELED

    if isinstance(op, Combine):
        if kind is not op.other.kind:
            raise GridKindMismatch(
                f"cannot combine a {kind.value} grid with a {op.other.kind.value} grid"
            )
        if kind is GridKind.LABELED and op.mode not in (CombineMode.MAX, CombineMode.MIN):
            raise GridKindMismatch(
                f"combine mode '{op.mode.value}' is not defined for labeled grids"
            )
        return kind

    if kind is GridKind.LABELED:
        raise GridKindMismatch(f"{op.name} requires a scalar grid, got a labeled grid")
    return kind


def apply_operation(op: Operation, grid: Grid) -> Grid:
    """
    Apply one operation and return the resulting grid.

    ``grid`` and any grid referenced by ``op`` are left untouched.
    """
    output_kind(op, grid.kind)

    if isinstance(op, NoiseFill):
        return noise_fill(grid, op)
    if isinstance(op, Smooth):
        return smooth(grid, op.radius, op.metric)
    if isinstance(op, Normalize):
        return normalize(grid, op.target_min, op.target_max)
    if isinstance(op, Classify):
        return classify(grid, op)
    if isinstance(op, Combine):
        return combine(grid, op.other, op.mode, op.weight)
    if isinstance(op, Erode):
        return erode(grid, op.iterations, op.strength)
    raise TypeError(f"unsupported operation: {type(op).__name__}")


def noise_fill(grid: Grid, op: NoiseFill) -> Grid:
    """Fill the grid with noise mapped from [-1, 1] into the output range."""
    wrap_width = float(grid.width) if op.seamless else None
    source = NoiseSource(op.noise_params(wrap_width=wrap_width))
    values = source.sample_grid(grid.width, grid.height).reshape(-1)

    unit = (values + 1.0) / 2.0
    cells = op.output_min + unit * (op.output_max - op.output_min)
    return grid.with_cells(np.clip(cells, op.output_min, op.output_max))


def smooth(
    grid: Grid, radius: int, metric: NeighborMetric = NeighborMetric.CHEBYSHEV
) -> Grid:
    """
    Average each cell with its in-bounds neighbors.

    Sums are gathered from a snapshot of the input, so no cell sees an
    already smoothed neighbor. Border cells average over fewer cells.
    """
    width, height = grid.width, grid.height
    metric = NeighborMetric(metric)

    # Offsets beyond the grid extent never land on a cell
    if metric is NeighborMetric.CHEBYSHEV:
        limit = max(width, height) - 1
    else:
        limit = math.ceil(math.hypot(width - 1, height - 1))
    radius = min(radius, limit)

    if radius == 0:
        return grid.copy()

    source = grid.as_array()
    total = np.zeros((height, width), dtype=np.float64)
    count = np.zeros((height, width), dtype=np.int64)

    for dx, dy in neighbor_offsets(radius, metric):
        # Target rows/cols whose neighbor at (dx, dy) is inside the grid
        ty0, ty1 = max(0, -dy), min(height, height - dy)
        tx0, tx1 = max(0, -dx), min(width, width - dx)
        if ty0 >= ty1 or tx0 >= tx1:
            continue
        total[ty0:ty1, tx0:tx1] += source[ty0 + dy:ty1 + dy, tx0 + dx:tx1 + dx]
        count[ty0:ty1, tx0:tx1] += 1

    return grid.with_cells((total / count).reshape(-1))


def normalize(grid: Grid, target_min: float, target_max: float) -> Grid:
    """Rescale into [target_min, target_max]; a flat grid becomes target_min."""
    cells = grid.cells
    low = float(cells.min())
    high = float(cells.max())

    if low == high:
        logger.debug("Normalizing flat grid", value=low)
        return grid.with_cells(np.full(cells.shape, float(target_min)))

    scaled = (cells - low) / (high - low) * (target_max - target_min) + target_min
    return grid.with_cells(np.clip(scaled, target_min, target_max))


def _band_indices(
    bounds: np.ndarray, values: np.ndarray, tie_break: TieBreak
) -> np.ndarray:
    side = "left" if tie_break is TieBreak.LOWER else "right"
    bands = np.searchsorted(bounds, values, side=side)
    return np.minimum(bands, len(bounds) - 1)


def classify(grid: Grid, op: Classify) -> Grid:
    """Assign every cell the label of the band its value falls into."""
    if grid.is_labeled:
        logger.warning("Classify applied to a labeled grid, leaving it unchanged")
        return grid.copy()

    labels = op.labels
    band_to_label = np.array(
        [labels.index(t.label) for t in op.thresholds], dtype=np.int32
    )
    bands = _band_indices(op.bounds, grid.cells, op.tie_break)
    return grid.with_cells(band_to_label[bands], labels=labels)


def combine(grid: Grid, other: Grid, mode: CombineMode, weight: float = 0.5) -> Grid:
    """
    Merge two grids of identical dimensions.

    Raises:
        DimensionMismatch: If the grids differ in width or height
        GridKindMismatch: If the grids differ in kind, or a labeled merge
            uses a mode other than MAX/MIN
    """
    if not grid.same_shape(other):
        raise DimensionMismatch(
            f"cannot combine a {grid.width}x{grid.height} grid with a "
            f"{other.width}x{other.height} grid"
        )

    mode = CombineMode(mode)
    a = grid.cells
    b = other.cells

    if grid.is_labeled or other.is_labeled:
        if grid.kind is not other.kind:
            raise GridKindMismatch("cannot combine a scalar grid with a labeled grid")
        if grid.labels != other.labels:
            raise GridKindMismatch("labeled grids use different label tables")
        if mode is CombineMode.MAX:
            return grid.with_cells(np.maximum(a, b), labels=grid.labels)
        if mode is CombineMode.MIN:
            return grid.with_cells(np.minimum(a, b), labels=grid.labels)
        raise GridKindMismatch(
            f"combine mode '{mode.value}' is not defined for labeled grids"
        )

    if mode is CombineMode.ADD:
        cells = a + b
    elif mode is CombineMode.MAX:
        cells = np.maximum(a, b)
    elif mode is CombineMode.MIN:
        cells = np.minimum(a, b)
    else:
        cells = weight * a + (1 - weight) * b
    return grid.with_cells(cells)


def _erode_once(heights: np.ndarray, strength: float) -> np.ndarray:
    height, width = heights.shape
    drops = np.full((len(ERODE_SCAN_ORDER), height, width), -np.inf)

    for d, (dx, dy) in enumerate(ERODE_SCAN_ORDER):
        ty0, ty1 = max(0, -dy), min(height, height - dy)
        tx0, tx1 = max(0, -dx), min(width, width - dx)
        if ty0 >= ty1 or tx0 >= tx1:
            continue
        drops[d, ty0:ty1, tx0:tx1] = (
            heights[ty0:ty1, tx0:tx1] - heights[ty0 + dy:ty1 + dy, tx0 + dx:tx1 + dx]
        )

    # argmax returns the first maximum, which follows the scan order
    best = np.argmax(drops, axis=0)
    best_drop = np.take_along_axis(drops, best[np.newaxis], axis=0)[0]
    moving = best_drop > 0

    result = heights.copy()
    if not moving.any():
        return result

    src_y, src_x = np.nonzero(moving)
    directions = np.array(ERODE_SCAN_ORDER)[best[moving]]
    dst_x = src_x + directions[:, 0]
    dst_y = src_y + directions[:, 1]
    amount = strength * best_drop[moving]

    np.add.at(result, (src_y, src_x), -amount)
    np.add.at(result, (dst_y, dst_x), amount)
    return result


def erode(grid: Grid, iterations: int, strength: float) -> Grid:
    """
    Simple hydraulic erosion.

    Each pass works from a snapshot taken at the start of the pass: every
    cell moves ``strength`` times the drop to its steepest strictly lower
    8-neighbor. Transfers into the same cell are accumulated, so total
    elevation is conserved. Local minima give nothing away in that pass.
    """
    if strength == 0:
        return grid.copy()

    heights = grid.as_array()

    for _ in range(iterations):
        heights = _erode_once(heights, strength)
    return grid.with_cells(heights.reshape(-1))
