"""
Core terrain generation functionality.
"""

from .errors import (
    ConfigurationError,
    DimensionMismatch,
    GridKindMismatch,
    InvalidDimension,
    OutOfBounds,
    PipelineError,
    TerrainError,
)
from .grid import Grid, GridKind, NeighborMetric, Neighborhood
from .noise import NoiseParams, NoiseSource
from .operations import (
    Classify,
    Combine,
    CombineMode,
    Erode,
    NoiseFill,
    Normalize,
    Operation,
    Smooth,
    Threshold,
    TieBreak,
    apply_operation,
)
from .pipeline import Pipeline, run_operations

__all__ = ['Grid', 'GridKind', 'NeighborMetric', 'Neighborhood',
           'NoiseParams', 'NoiseSource',
           'NoiseFill', 'Smooth', 'Normalize', 'Classify', 'Combine', 'Erode',
           'Operation', 'Threshold', 'CombineMode', 'TieBreak', 'apply_operation',
           'Pipeline', 'run_operations',
           'TerrainError', 'ConfigurationError', 'InvalidDimension', 'DimensionMismatch',
           'GridKindMismatch', 'OutOfBounds', 'PipelineError']
