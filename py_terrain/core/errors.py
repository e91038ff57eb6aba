"""
Error types raised by the terrain engine.

Configuration problems are reported before any grid is touched, execution
problems are wrapped in a PipelineError that names the failing operation.
"""

from typing import Optional


class TerrainError(Exception):
    """Base class for all terrain engine errors."""


class ConfigurationError(TerrainError):
    """Invalid dimensions, operation parameters or pipeline configuration."""

    def __init__(
        self,
        message: str,
        index: Optional[int] = None,
        operation: Optional[str] = None,
    ):
        self.message = message
        self.index = index
        self.operation = operation
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.index is None:
            return self.message
        if self.operation:
            return f"operation #{self.index} ({self.operation}): {self.message}"
        return f"operation #{self.index}: {self.message}"


class InvalidDimension(ConfigurationError):
    """Grid width or height is not a positive integer."""


class DimensionMismatch(TerrainError):
    """Two grids that must share a shape do not."""


class GridKindMismatch(TerrainError):
    """An operation was given a grid of the wrong kind (scalar vs labeled)."""


class OutOfBounds(TerrainError, IndexError):
    """Grid access outside of its width/height."""


class PipelineError(TerrainError):
    """An operation failed while the pipeline was running."""

    def __init__(self, index: int, operation: str, cause: Exception):
        self.index = index
        self.operation = operation
        self.cause = cause
        super().__init__(str(self))

    def __str__(self) -> str:
        return (
            f"operation #{self.index} ({self.operation}) failed: "
            f"{type(self.cause).__name__}: {self.cause}"
        )
