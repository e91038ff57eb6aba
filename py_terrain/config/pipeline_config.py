"""
Declarative pipeline configuration.

Turns a configuration structure (a dict, a JSON or YAML file, or a preset) into a
ready-to-run Pipeline. The pydantic models only check the shape of the
configuration; semantic rules (positive dimensions, ascending thresholds,
noise parameter ranges) are enforced by the core constructors. Either way a
problem surfaces as a ConfigurationError that names the offending
operation.
"""

from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import structlog
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..core.errors import ConfigurationError, PipelineError
from ..core.grid import Grid, NeighborMetric
from ..core.operations import (
    Classify,
    Combine,
    CombineMode,
    Erode,
    NoiseFill,
    Normalize,
    Operation,
    Smooth,
    TieBreak,
)
from ..core.pipeline import Pipeline
from .settings import Settings
from .settings import settings as default_settings

logger = structlog.get_logger()

_SEED_MODULUS = 2**64


class OperationType(str, Enum):
    """Operation names accepted in configuration files."""

    NOISE_FILL = "NoiseFill"
    SMOOTH = "Smooth"
    NORMALIZE = "Normalize"
    CLASSIFY = "Classify"
    COMBINE = "Combine"
    ERODE = "Erode"


def _match_enum(enum_cls, value):
    """Case and underscore insensitive lookup of an enum member by value or name."""
    if isinstance(value, enum_cls) or not isinstance(value, str):
        return value
    key = value.replace("_", "").replace("-", "").lower()
    for member in enum_cls:
        if key in (member.value.replace("_", "").lower(), member.name.replace("_", "").lower()):
            return member
    return value


class OperationConfig(BaseModel):
    """A single ``{type, params}`` entry of the operation list."""

    model_config = ConfigDict(extra="forbid")

    type: OperationType = Field(description="Operation type")
    params: Dict[str, Any] = Field(default_factory=dict, description="Type-specific parameters")

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value):
        return _match_enum(OperationType, value)


class NoiseFillParams(BaseModel):
    model_config = ConfigDict(extra="forbid")

    seed: Optional[int] = Field(default=None, description="Noise seed, defaults to the pipeline seed")
    frequency: float = Field(default=0.05, description="Base frequency in cycles per cell")
    octaves: int = Field(default=4, description="Number of fractal octaves")
    persistence: float = Field(default=0.5, description="Amplitude multiplier per octave")
    lacunarity: float = Field(default=2.0, description="Frequency multiplier per octave")
    output_min: float = Field(default=0.0, description="Value noise -1 maps to")
    output_max: float = Field(default=1.0, description="Value noise +1 maps to")
    seamless: bool = Field(default=False, description="Wrap noise east-west")


class SmoothParams(BaseModel):
    model_config = ConfigDict(extra="forbid")

    radius: int = Field(default=1, description="Kernel radius in cells")
    metric: NeighborMetric = Field(default=NeighborMetric.CHEBYSHEV, description="Neighborhood shape")

    @field_validator("metric", mode="before")
    @classmethod
    def _coerce_metric(cls, value):
        return _match_enum(NeighborMetric, value)


class NormalizeParams(BaseModel):
    model_config = ConfigDict(extra="forbid")

    target_min: float = Field(default=0.0, description="Value the grid minimum maps to")
    target_max: float = Field(default=1.0, description="Value the grid maximum maps to")


class ClassifyParams(BaseModel):
    model_config = ConfigDict(extra="forbid")

    thresholds: List[Tuple[float, str]] = Field(description="Ascending (upper_bound, label) pairs")
    tie_break: TieBreak = Field(default=TieBreak.LOWER, description="Band for values on a bound")

    @field_validator("thresholds", mode="before")
    @classmethod
    def _coerce_thresholds(cls, value):
        if not isinstance(value, list):
            return value
        return [
            (entry.get("upper_bound"), entry.get("label")) if isinstance(entry, dict) else entry
            for entry in value
        ]

    @field_validator("tie_break", mode="before")
    @classmethod
    def _coerce_tie_break(cls, value):
        return _match_enum(TieBreak, value)


class CombineParams(BaseModel):
    model_config = ConfigDict(extra="forbid")

    mode: CombineMode = Field(default=CombineMode.ADD, description="Merge mode")
    weight: float = Field(default=0.5, description="Weight of the working grid for weighted_average")
    layer: List[OperationConfig] = Field(
        default_factory=list, description="Operations producing the second grid"
    )
    layer_fill: float = Field(default=0.0, description="Initial value of the second grid")

    @field_validator("mode", mode="before")
    @classmethod
    def _coerce_mode(cls, value):
        return _match_enum(CombineMode, value)


class ErodeParams(BaseModel):
    model_config = ConfigDict(extra="forbid")

    iterations: int = Field(default=1, description="Number of erosion passes")
    strength: float = Field(default=0.5, description="Fraction of the drop moved per pass")


_PARAM_MODELS = {
    OperationType.NOISE_FILL: NoiseFillParams,
    OperationType.SMOOTH: SmoothParams,
    OperationType.NORMALIZE: NormalizeParams,
    OperationType.CLASSIFY: ClassifyParams,
    OperationType.COMBINE: CombineParams,
    OperationType.ERODE: ErodeParams,
}


class PipelineConfig(BaseModel):
    """Top-level configuration: grid size plus the ordered operation list."""

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, description="Name used in log events")
    width: int = Field(description="Grid width in cells")
    height: int = Field(description="Grid height in cells")
    fill_value: float = Field(default=0.0, description="Initial value of every cell")
    seed: int = Field(default=0, description="Default seed for noise operations")
    operations: List[OperationConfig] = Field(default_factory=list, description="Operations in order")


def describe_validation_error(exc: ValidationError) -> str:
    """Flatten pydantic errors into a single line."""
    parts = []
    for error in exc.errors():
        location = ".".join(str(p) for p in error["loc"])
        parts.append(f"{location}: {error['msg']}" if location else error["msg"])
    return "; ".join(parts)


def _operation_index(exc: ValidationError) -> Optional[int]:
    for error in exc.errors():
        loc = error["loc"]
        if len(loc) >= 2 and loc[0] == "operations" and isinstance(loc[1], int):
            return loc[1]
    return None


def parse_config(data: Union[PipelineConfig, Mapping[str, Any]]) -> PipelineConfig:
    """Validate the shape of a configuration mapping."""
    if isinstance(data, PipelineConfig):
        return data
    try:
        return PipelineConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(
            describe_validation_error(exc), index=_operation_index(exc)
        ) from exc


_YAML_SUFFIXES = (".yaml", ".yml")


def load_config(path: Union[str, Path]) -> PipelineConfig:
    """
    Read and validate a configuration file.

    Files ending in ``.yaml`` or ``.yml`` are parsed as YAML, anything else
    as JSON.
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"invalid file (couldn't open the file at {path})")

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"couldn't read {path}: {exc}") from exc

    try:
        if path.suffix.lower() in _YAML_SUFFIXES:
            config = PipelineConfig.model_validate(_parse_yaml(text, path))
        else:
            config = PipelineConfig.model_validate_json(text)
    except ValidationError as exc:
        raise ConfigurationError(
            f"failed to parse config file {path}: {describe_validation_error(exc)}",
            index=_operation_index(exc),
        ) from exc

    logger.info("Loaded pipeline config", path=str(path), operations=len(config.operations))
    return config


def _parse_yaml(text: str, path: Path) -> Any:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"failed to parse config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"failed to parse config file {path}: expected a mapping at the top level"
        )
    return data


def _build_layer(
    params: CombineParams, width: int, height: int, seed: int
) -> Grid:
    layer = Pipeline(Grid.create(width, height, params.layer_fill), name="layer")
    for i, op_config in enumerate(params.layer):
        layer.add_operation(build_operation(op_config, width, height, seed, i))
    return layer.apply()


def build_operation(
    config: OperationConfig, width: int, height: int, seed: int, index: int
) -> Operation:
    """
    Build one operation from its configuration entry.

    Args:
        config: The ``{type, params}`` entry
        width, height: Size of the pipeline grid, used to build Combine layers
        seed: Pipeline seed, the default for NoiseFill
        index: Position of the entry, reported in errors

    Raises:
        ConfigurationError: If the parameters are malformed or invalid
    """
    name = config.type.value
    try:
        params = _PARAM_MODELS[config.type].model_validate(config.params)
    except ValidationError as exc:
        raise ConfigurationError(
            describe_validation_error(exc), index=index, operation=name
        ) from exc

    try:
        if config.type is OperationType.NOISE_FILL:
            return NoiseFill(
                seed=seed if params.seed is None else params.seed,
                frequency=params.frequency,
                octaves=params.octaves,
                persistence=params.persistence,
                lacunarity=params.lacunarity,
                output_min=params.output_min,
                output_max=params.output_max,
                seamless=params.seamless,
            )
        if config.type is OperationType.SMOOTH:
            return Smooth(radius=params.radius, metric=params.metric)
        if config.type is OperationType.NORMALIZE:
            return Normalize(target_min=params.target_min, target_max=params.target_max)
        if config.type is OperationType.CLASSIFY:
            return Classify(tuple(params.thresholds), tie_break=params.tie_break)
        if config.type is OperationType.ERODE:
            return Erode(iterations=params.iterations, strength=params.strength)

        # Layers get their own default seed so they don't repeat the base noise
        layer_seed = (seed + index + 1) % _SEED_MODULUS
        try:
            other = _build_layer(params, width, height, layer_seed)
        except ConfigurationError as exc:
            raise ConfigurationError(f"layer {exc}") from exc
        except PipelineError as exc:
            raise ConfigurationError(f"layer {exc}") from exc
        return Combine(other, mode=params.mode, weight=params.weight)
    except ConfigurationError as exc:
        if exc.index is not None:
            raise
        raise ConfigurationError(exc.message, index=index, operation=name) from exc


def build_pipeline(
    config: Union[PipelineConfig, Mapping[str, Any]],
    settings: Optional[Settings] = None,
) -> Pipeline:
    """
    Build a Pipeline from a configuration.

    Args:
        config: PipelineConfig or an equivalent mapping
        settings: Settings providing the maximum map size

    Returns:
        Pipeline holding the initial grid and every operation, not yet run
    """
    config = parse_config(config)
    settings = settings or default_settings

    if config.width > settings.max_map_width or config.height > settings.max_map_height:
        raise ConfigurationError(
            f"map size {config.width}x{config.height} exceeds the maximum of "
            f"{settings.max_map_width}x{settings.max_map_height}"
        )
    if not 0 <= config.seed < _SEED_MODULUS:
        raise ConfigurationError(f"seed must be in [0, 2**64), got {config.seed}")

    grid = Grid.create(config.width, config.height, config.fill_value)
    pipeline = Pipeline(grid, name=config.name)
    for index, op_config in enumerate(config.operations):
        pipeline.add_operation(
            build_operation(op_config, config.width, config.height, config.seed, index)
        )

    logger.debug(
        "Built pipeline",
        name=pipeline.name,
        width=config.width,
        height=config.height,
        operations=[op.name for op in pipeline.operations],
    )
    return pipeline
