"""
Configuration modules for terrain generation.
"""

from .settings import Settings, settings
from .pipeline_config import (
    OperationConfig,
    OperationType,
    PipelineConfig,
    build_operation,
    build_pipeline,
    load_config,
    parse_config,
)
from .presets import PRESETS, get_preset, list_presets

__all__ = ['Settings', 'settings', 'OperationConfig', 'OperationType', 'PipelineConfig',
           'build_operation', 'build_pipeline', 'load_config', 'parse_config',
           'PRESETS', 'get_preset', 'list_presets']
