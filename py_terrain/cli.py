"""
Command line entry point.

Builds a pipeline from a JSON or YAML config file or a named preset, runs it and
writes the result to an image or data file.
"""

import argparse
import sys
from typing import List, Optional

import structlog

from .config import build_pipeline, get_preset, list_presets, load_config, settings
from .core.errors import ConfigurationError, PipelineError
from .export import export_grid
from .utils.log import configure_logging

logger = structlog.get_logger()

EXIT_OK = 0
EXIT_PIPELINE_ERROR = 1
EXIT_CONFIG_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="py-terrain",
        description="Generate a terrain map by running a pipeline of grid operations",
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--config", metavar="FILE", help="JSON or YAML pipeline configuration")
    source.add_argument(
        "--preset",
        metavar="NAME",
        help=f"Named preset (default: {settings.default_preset})",
    )
    parser.add_argument("--width", type=int, help="Map width, overrides the config")
    parser.add_argument("--height", type=int, help="Map height, overrides the config")
    parser.add_argument("--seed", type=int, help="Pipeline seed, overrides the config")
    parser.add_argument(
        "--output",
        "-o",
        default=settings.default_output,
        help="Output file (.png, .npy or .json)",
    )
    parser.add_argument("--log-level", default=settings.log_level, help="Logging level")
    parser.add_argument(
        "--log-format",
        choices=["plain", "json"],
        default=settings.log_format,
        help="Log output format",
    )
    parser.add_argument(
        "--list-presets", action="store_true", help="Print preset names and exit"
    )
    return parser


def _load(args: argparse.Namespace):
    if args.config:
        config = load_config(args.config)
        overrides = {
            key: value
            for key, value in (("width", args.width), ("height", args.height), ("seed", args.seed))
            if value is not None
        }
        return config.model_copy(update=overrides) if overrides else config

    return get_preset(
        args.preset or settings.default_preset,
        width=args.width if args.width is not None else settings.default_width,
        height=args.height if args.height is not None else settings.default_height,
        seed=args.seed if args.seed is not None else 0,
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Run the command line interface and return the exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.list_presets:
        for name in list_presets():
            print(name)
        return EXIT_OK

    try:
        configure_logging(args.log_level, args.log_format)
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    try:
        pipeline = build_pipeline(_load(args))
    except ConfigurationError as exc:
        logger.error("Invalid configuration", error=str(exc))
        print(f"configuration error: {exc}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    try:
        grid = pipeline.apply()
    except PipelineError as exc:
        logger.error("Pipeline failed", error=str(exc), index=exc.index)
        print(f"pipeline error: {exc}", file=sys.stderr)
        return EXIT_PIPELINE_ERROR

    try:
        path = export_grid(grid, args.output, elevation=pipeline.elevation)
    except ValueError as exc:
        print(f"configuration error: {exc}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except OSError as exc:
        logger.error("Export failed", path=str(args.output), error=str(exc))
        print(f"output error: {exc}", file=sys.stderr)
        return EXIT_PIPELINE_ERROR

    print(f"Wrote {grid.width}x{grid.height} {grid.kind.value} map to {path}")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
