"""
Named pipeline presets.

Each preset is an operation list in configuration form; ``get_preset`` wraps
it with a grid size and seed to give a PipelineConfig.
"""

from typing import Any, Dict, List

from ..core.errors import ConfigurationError
from .pipeline_config import PipelineConfig

TERRAIN_BANDS = [
    [0.25, "deep_water"],
    [0.40, "water"],
    [0.45, "beach"],
    [0.65, "plains"],
    [0.80, "hills"],
    [1.00, "mountain"],
]

PRESETS: Dict[str, List[Dict[str, Any]]] = {
    # Every cell keeps the fill value
    "flat": [],
    # Raw elevation in [0, 1], no classification
    "heightmap": [
        {"type": "NoiseFill", "params": {"frequency": 0.01, "octaves": 6}},
        {"type": "Smooth", "params": {"radius": 1}},
        {"type": "Normalize", "params": {"target_min": 0.0, "target_max": 1.0}},
    ],
    "continent": [
        {"type": "NoiseFill", "params": {"frequency": 0.008, "octaves": 6, "persistence": 0.5}},
        {"type": "Smooth", "params": {"radius": 1}},
        {"type": "Normalize", "params": {"target_min": 0.0, "target_max": 1.0}},
        {"type": "Classify", "params": {"thresholds": TERRAIN_BANDS}},
    ],
    "archipelago": [
        {"type": "NoiseFill", "params": {"frequency": 0.03, "octaves": 5}},
        {
            "type": "Combine",
            "params": {
                "mode": "min",
                "layer": [
                    {"type": "NoiseFill", "params": {"frequency": 0.006, "octaves": 2}},
                ],
            },
        },
        {"type": "Normalize", "params": {"target_min": 0.0, "target_max": 1.0}},
        {"type": "Erode", "params": {"iterations": 3, "strength": 0.2}},
        {
            "type": "Classify",
            "params": {
                "thresholds": [
                    [0.55, "water"],
                    [0.60, "beach"],
                    [0.80, "plains"],
                    [1.00, "mountain"],
                ]
            },
        },
    ],
    "highlands": [
        {"type": "NoiseFill", "params": {"frequency": 0.02, "octaves": 6, "persistence": 0.6}},
        {"type": "Erode", "params": {"iterations": 10, "strength": 0.25}},
        {"type": "Smooth", "params": {"radius": 1, "metric": "euclidean"}},
        {"type": "Normalize", "params": {"target_min": 0.0, "target_max": 1.0}},
        {
            "type": "Classify",
            "params": {
                "thresholds": [
                    [0.30, "plains"],
                    [0.60, "hills"],
                    [0.85, "mountain"],
                    [1.00, "peak"],
                ]
            },
        },
    ],
    # Seamless east-west, for maps that wrap around a globe
    "world": [
        {"type": "NoiseFill", "params": {"frequency": 0.01, "octaves": 6, "seamless": True}},
        {
            "type": "Combine",
            "params": {
                "mode": "weighted_average",
                "weight": 0.7,
                "layer": [
                    {"type": "NoiseFill", "params": {"frequency": 0.04, "octaves": 3, "seamless": True}},
                ],
            },
        },
        {"type": "Normalize", "params": {"target_min": 0.0, "target_max": 1.0}},
        {"type": "Classify", "params": {"thresholds": TERRAIN_BANDS}},
    ],
}


def list_presets() -> List[str]:
    """Names of all presets."""
    return sorted(PRESETS)


def get_preset(name: str, width: int, height: int, seed: int = 0) -> PipelineConfig:
    """
    Build the configuration for a named preset.

    Raises:
        ConfigurationError: If no preset has that name
    """
    if name not in PRESETS:
        raise ConfigurationError(
            f"unknown preset {name!r}, available: {', '.join(list_presets())}"
        )
    return PipelineConfig.model_validate(
        {
            "name": name,
            "width": width,
            "height": height,
            "seed": seed,
            "operations": PRESETS[name],
        }
    )
