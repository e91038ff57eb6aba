"""
Operation pipeline.

A Pipeline owns the working grid and runs its operations strictly in
insertion order. Each operation produces a new grid that replaces the
working grid only once it has completed, so a failing operation never
leaves a half-modified map behind.
"""

import time
from typing import Iterable, Iterator, Optional, Tuple

import structlog

from .errors import (
    ConfigurationError,
    DimensionMismatch,
    GridKindMismatch,
    PipelineError,
)
from .grid import Grid, GridKind, grid_statistics
from .operations import Combine, Operation, apply_operation, is_operation, output_kind

logger = structlog.get_logger()


class Pipeline:
    """
    Ordered sequence of grid operations.

    Operations are added with ``add_operation`` which returns the pipeline
    itself, so a pipeline reads left to right:

        grid = (
            Pipeline(Grid.create(64, 64))
            .add_operation(NoiseFill(seed=42))
            .add_operation(Normalize(0.0, 1.0))
            .apply()
        )
    """

    def __init__(self, initial_grid: Grid, name: Optional[str] = None):
        """
        Initialize the pipeline.

        Args:
            initial_grid: Starting grid; the pipeline keeps its own copy
            name: Optional name used in log events
        """
        if not isinstance(initial_grid, Grid):
            raise ConfigurationError(
                f"initial grid must be a Grid, got {type(initial_grid).__name__}"
            )
        self.name = name or "pipeline"
        self._initial = initial_grid.copy()
        self._grid = initial_grid.copy()
        self._elevation = None if initial_grid.is_labeled else self._grid
        self._operations = []
        self._sealed = False

    @property
    def operations(self) -> Tuple[Operation, ...]:
        return tuple(self._operations)

    @property
    def initial_grid(self) -> Grid:
        return self._initial.copy()

    @property
    def grid(self) -> Grid:
        """The working grid; after ``apply()`` this is the final grid."""
        return self._grid

    @property
    def elevation(self) -> Optional[Grid]:
        """
        The last scalar grid of the most recent run, or None.

        After a classification this is the height field the labels were
        derived from, which exporters use to shade each label.
        """
        return self._elevation

    @property
    def sealed(self) -> bool:
        """True once ``apply()`` has started; no more operations can be added."""
        return self._sealed

    def __len__(self) -> int:
        return len(self._operations)

    def __iter__(self) -> Iterator[Operation]:
        return iter(self.operations)

    def add_operation(self, op: Operation) -> "Pipeline":
        """Append an operation and return the pipeline for chaining."""
        if self._sealed:
            raise ConfigurationError(
                "operations cannot be added once the pipeline has started running"
            )
        if not is_operation(op):
            raise ConfigurationError(
                f"not a grid operation: {type(op).__name__}", index=len(self._operations)
            )
        self._operations.append(op)
        return self

    def extend(self, ops: Iterable[Operation]) -> "Pipeline":
        for op in ops:
            self.add_operation(op)
        return self

    def check(self) -> GridKind:
        """
        Check grid-kind compatibility of the whole sequence without running it.

        Returns:
            The kind of the grid the pipeline will produce

        Raises:
            PipelineError: For the first operation whose input kind is wrong
        """
        kind = self._initial.kind
        for index, op in enumerate(self._operations):
            try:
                kind = output_kind(op, kind)
            except GridKindMismatch as exc:
                raise PipelineError(index, op.name, exc) from exc
        return kind

    def _precheck(self, op: Operation, grid: Grid) -> None:
        if isinstance(op, Combine) and not grid.same_shape(op.other):
            raise DimensionMismatch(
                f"combine layer is {op.other.width}x{op.other.height}, "
                f"working grid is {grid.width}x{grid.height}"
            )
        output_kind(op, grid.kind)

    def apply(self) -> Grid:
        """
        Run every operation in order and return the final grid.

        Each run starts from a fresh copy of the initial grid, so calling
        ``apply()`` again reproduces the same result.

        Raises:
            PipelineError: Naming the index and type of the first failing
                operation; the working grid is left as it was before it
        """
        self._sealed = True
        self._grid = self._initial.copy()
        self._elevation = None if self._grid.is_labeled else self._grid
        log = logger.bind(pipeline=self.name)
        log.info(
            "Starting pipeline",
            width=self._grid.width,
            height=self._grid.height,
            operations=len(self._operations),
        )

        for index, op in enumerate(self._operations):
            started = time.perf_counter()
            try:
                self._precheck(op, self._grid)
                result = apply_operation(op, self._grid)
                if not result.same_shape(self._grid):
                    raise DimensionMismatch(
                        f"{op.name} returned a {result.width}x{result.height} grid "
                        f"for a {self._grid.width}x{self._grid.height} input"
                    )
            except (DimensionMismatch, GridKindMismatch, ConfigurationError) as exc:
                log.error(
                    "Operation failed",
                    index=index,
                    operation=op.name,
                    error=str(exc),
                )
                raise PipelineError(index, op.name, exc) from exc

            self._grid = result
            if not result.is_labeled:
                self._elevation = result
            log.debug(
                "Operation applied",
                index=index,
                operation=op.name,
                kind=result.kind.value,
                elapsed_ms=round((time.perf_counter() - started) * 1000, 3),
            )

        log.info("Pipeline complete", kind=self._grid.kind.value, **_summary(self._grid))
        return self._grid


def _summary(grid: Grid) -> dict:
    stats = grid_statistics(grid)
    if grid.is_labeled:
        return {"label_counts": stats}
    return stats


def run_operations(initial_grid: Grid, ops: Iterable[Operation]) -> Grid:
    """Build a pipeline for ``ops`` and apply it."""
    return Pipeline(initial_grid).extend(ops).apply()

