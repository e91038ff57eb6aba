"""
Grid storage for terrain maps.

A Grid is a fixed-size rectangle of cells kept in a single flat NumPy
buffer indexed by ``y * width + x``. It holds either scalar elevations
(float64) or, after classification, labels stored as int32 indices into
the grid's label table.
"""

import math
from enum import Enum
from functools import lru_cache
from typing import Any, Callable, Iterator, Optional, Sequence, Tuple, Union

import numpy as np

from .errors import ConfigurationError, InvalidDimension, OutOfBounds

Cell = Union[float, str]


class GridKind(str, Enum):
    """What the cells of a grid currently hold."""

    SCALAR = "scalar"
    LABELED = "labeled"


class NeighborMetric(str, Enum):
    """Distance used to decide whether a cell lies within a radius."""

    CHEBYSHEV = "chebyshev"
    EUCLIDEAN = "euclidean"


@lru_cache(maxsize=64)
def neighbor_offsets(
    radius: int, metric: NeighborMetric = NeighborMetric.CHEBYSHEV
) -> Tuple[Tuple[int, int], ...]:
    """
    Return the (dx, dy) offsets within a radius, in row-major order.

    The offset (0, 0) is always included.
    """
    if radius < 0:
        raise ConfigurationError(f"radius must be >= 0, got {radius}")

    metric = NeighborMetric(metric)
    offsets = []
    for dy in range(-radius, radius + 1):
        for dx in range(-radius, radius + 1):
            if metric is NeighborMetric.EUCLIDEAN and dx * dx + dy * dy > radius * radius:
                continue
            offsets.append((dx, dy))
    return tuple(offsets)


class Neighborhood:
    """
    The in-bounds coordinates around a cell.

    Iterating yields ``(x, y)`` tuples in row-major order and can be
    repeated; cells near the border simply have fewer neighbors.
    """

    def __init__(
        self,
        width: int,
        height: int,
        x: int,
        y: int,
        radius: int,
        metric: NeighborMetric = NeighborMetric.CHEBYSHEV,
    ):
        self._offsets = neighbor_offsets(radius, NeighborMetric(metric))
        self.width = width
        self.height = height
        self.x = x
        self.y = y
        self.radius = radius

    def __iter__(self) -> Iterator[Tuple[int, int]]:
        for dx, dy in self._offsets:
            nx = self.x + dx
            ny = self.y + dy
            if 0 <= nx < self.width and 0 <= ny < self.height:
                yield nx, ny

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def __repr__(self) -> str:
        return f"Neighborhood(x={self.x}, y={self.y}, radius={self.radius})"


def _check_dimension(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise InvalidDimension(f"{name} must be an integer, got {value!r}")
    if value <= 0:
        raise InvalidDimension(f"{name} must be > 0, got {value}")
    return int(value)


def _check_label_indices(cells: Any) -> None:
    raw = np.asarray(cells)
    if raw.dtype.kind in "iu":
        return
    if raw.dtype.kind != "f" or not np.all(np.isfinite(raw)) or np.any(raw != np.round(raw)):
        raise ConfigurationError("label indices must be integers")


class Grid:
    """
    Fixed-size 2D container of terrain cells.

    Width and height never change once the grid exists. Operations that
    need a different buffer build a new Grid through ``with_cells``.
    """

    def __init__(
        self,
        width: int,
        height: int,
        cells: Optional[np.ndarray] = None,
        labels: Optional[Sequence[str]] = None,
    ):
        """
        Initialize a grid.

        Args:
            width: Number of columns (> 0)
            height: Number of rows (> 0)
            cells: Optional flat row-major buffer of length width*height.
                Zero-filled when omitted.
            labels: Label table. When given the grid is labeled and
                ``cells`` holds indices into this table.
        """
        self._width = _check_dimension("width", width)
        self._height = _check_dimension("height", height)
        size = self._width * self._height

        if labels is None:
            self._kind = GridKind.SCALAR
            self._labels: Tuple[str, ...] = ()
            dtype = np.float64
        else:
            self._kind = GridKind.LABELED
            self._labels = tuple(str(label) for label in labels)
            if not self._labels:
                raise ConfigurationError("a labeled grid needs at least one label")
            dtype = np.int32

        if cells is None:
            self.cells = np.zeros(size, dtype=dtype)
        else:
            if self._kind is GridKind.LABELED:
                _check_label_indices(cells)
            buffer = np.asarray(cells, dtype=dtype).reshape(-1)
            if buffer.size != size:
                raise InvalidDimension(
                    f"expected {size} cells for a {self._width}x{self._height} grid, "
                    f"got {buffer.size}"
                )
            self.cells = buffer.copy()

        if self._kind is GridKind.LABELED and size:
            if self.cells.min() < 0 or self.cells.max() >= len(self._labels):
                raise ConfigurationError("label index out of range for label table")

    @classmethod
    def create(cls, width: int, height: int, fill_value: float = 0.0) -> "Grid":
        """Create a scalar grid with every cell set to ``fill_value``."""
        grid = cls(width, height)
        grid.cells.fill(float(fill_value))
        return grid

    @classmethod
    def from_array(
        cls, array: np.ndarray, labels: Optional[Sequence[str]] = None
    ) -> "Grid":
        """Build a grid from a 2D array shaped (height, width)."""
        array = np.asarray(array)
        if array.ndim != 2:
            raise InvalidDimension(f"expected a 2D array, got {array.ndim} dimensions")
        height, width = array.shape
        return cls(width, height, array.reshape(-1), labels=labels)

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def shape(self) -> Tuple[int, int]:
        """(width, height) of the grid."""
        return self._width, self._height

    @property
    def kind(self) -> GridKind:
        return self._kind

    @property
    def labels(self) -> Tuple[str, ...]:
        return self._labels

    @property
    def is_labeled(self) -> bool:
        return self._kind is GridKind.LABELED

    def __len__(self) -> int:
        return self._width * self._height

    def index(self, x: int, y: int) -> int:
        """Flat buffer index of (x, y)."""
        if not (0 <= x < self._width and 0 <= y < self._height):
            raise OutOfBounds(
                f"({x}, {y}) is outside a {self._width}x{self._height} grid"
            )
        return y * self._width + x

    def label_of(self, index: int) -> str:
        """Label string for a label index."""
        return self._labels[index]

    def _decode(self, raw: Any) -> Cell:
        if self._kind is GridKind.LABELED:
            return self._labels[int(raw)]
        return float(raw)

    def get(self, x: int, y: int) -> Cell:
        """Value at (x, y): a float for scalar grids, a label for labeled ones."""
        return self._decode(self.cells[self.index(x, y)])

    def set(self, x: int, y: int, value: Union[float, int, str]) -> None:
        """Set the cell at (x, y)."""
        i = self.index(x, y)
        if self._kind is GridKind.SCALAR:
            if isinstance(value, str):
                raise TypeError("cannot store a label in a scalar grid")
            self.cells[i] = float(value)
            return

        if isinstance(value, str):
            try:
                self.cells[i] = self._labels.index(value)
            except ValueError:
                raise ConfigurationError(f"unknown label {value!r}") from None
        else:
            if not 0 <= int(value) < len(self._labels):
                raise ConfigurationError(f"label index {value} out of range")
            self.cells[i] = int(value)

    def iter_cells(self) -> Iterator[Tuple[int, int, Cell]]:
        """Yield (x, y, value) for every cell in row-major order."""
        width = self._width
        for i, raw in enumerate(self.cells.tolist()):
            yield i % width, i // width, self._decode(raw)

    def for_each_cell(self, f: Callable[[int, int, Cell], Any]) -> None:
        """Call ``f(x, y, value)`` once per cell in row-major order."""
        for x, y, value in self.iter_cells():
            f(x, y, value)

    def neighbors(
        self,
        x: int,
        y: int,
        radius: int,
        metric: NeighborMetric = NeighborMetric.CHEBYSHEV,
    ) -> Neighborhood:
        """In-bounds coordinates within ``radius`` of (x, y), including (x, y)."""
        self.index(x, y)
        return Neighborhood(self._width, self._height, x, y, radius, metric)

    def as_array(self) -> np.ndarray:
        """Copy of the cells as a (height, width) array."""
        return self.cells.reshape(self._height, self._width).copy()

    def copy(self) -> "Grid":
        return Grid(
            self._width,
            self._height,
            self.cells,
            labels=self._labels if self.is_labeled else None,
        )

    def with_cells(
        self, cells: np.ndarray, labels: Optional[Sequence[str]] = None
    ) -> "Grid":
        """New grid of the same size holding ``cells``."""
        return Grid(self._width, self._height, cells, labels=labels)

    def same_shape(self, other: "Grid") -> bool:
        return self._width == other.width and self._height == other.height

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Grid):
            return NotImplemented
        return (
            self.shape == other.shape
            and self._kind is other.kind
            and self._labels == other.labels
            and np.array_equal(self.cells, other.cells)
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return (
            f"Grid(width={self._width}, height={self._height}, "
            f"kind={self._kind.value})"
        )


def grid_statistics(grid: Grid) -> dict:
    """Summary numbers used in log events."""
    if grid.is_labeled:
        counts = np.bincount(grid.cells, minlength=len(grid.labels))
        return {label: int(count) for label, count in zip(grid.labels, counts)}

    finite = grid.cells[np.isfinite(grid.cells)]
    if finite.size == 0:
        return {"min": math.nan, "max": math.nan, "mean": math.nan}
    return {
        "min": float(finite.min()),
        "max": float(finite.max()),
        "mean": float(finite.mean()),
    }
