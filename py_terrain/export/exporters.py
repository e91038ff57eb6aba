"""
Export of finished grids.

Scalar grids are written as 8-bit grayscale images (lowest cell black,
highest white). Labeled grids are written as RGB images: each label has a
color gradient, and when the elevation grid the labels came from is given,
every cell is shaded along its label's gradient by its height within that
band. Raw values can also be saved as ``.npy`` arrays or JSON.
"""

import json
from pathlib import Path
from typing import Dict, Iterator, Optional, Sequence, Tuple, Union

import numpy as np
import structlog
from PIL import Image

from ..core.errors import DimensionMismatch, GridKindMismatch
from ..core.grid import Cell, Grid

logger = structlog.get_logger()

PathLike = Union[str, Path]

# A single '#rrggbb' color, or a (low, high) gradient
PaletteEntry = Union[str, Sequence[str]]
Palette = Dict[str, PaletteEntry]

DEFAULT_LABEL_COLORS: Palette = {
    "deep_water": ("#0a2a6b", "#1f4f9e"),
    "ocean": ("#0a46ad", "#35d6f2"),
    "water": ("#0a46ad", "#35d6f2"),
    "lake": ("#2f6fc0", "#5b9bd8"),
    "beach": ("#d8c88a", "#f0e2b0"),
    "sand": ("#d8c88a", "#f0e2b0"),
    "plains": ("#81a150", "#99bf5e"),
    "grassland": ("#81a150", "#99bf5e"),
    "forest": ("#5e8751", "#73a663"),
    "hills": ("#8a996b", "#a1b37d"),
    "mountain": ("#7a7a7a", "#a8a8a8"),
    "peak": ("#ceced6", "#e6e6f0"),
    "snow": ("#ceced6", "#ffffff"),
}

# Used in order for labels without an entry in the palette
FALLBACK_COLORS = [
    "#9e2a2b",
    "#e55934",
    "#d4a259",
    "#c9850d",
    "#5b8e7d",
    "#2a9d8f",
    "#264653",
    "#6d597a",
    "#b56576",
    "#355070",
]


def hex_to_rgb(color: str) -> Tuple[int, int, int]:
    """Parse '#rrggbb' into an RGB tuple."""
    value = color.lstrip("#")
    if len(value) != 6:
        raise ValueError(f"invalid color {color!r}, expected #rrggbb")
    return int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16)


def gradient_endpoints(entry: PaletteEntry) -> np.ndarray:
    """(low, high) RGB endpoints of a palette entry, shape (2, 3)."""
    if isinstance(entry, str):
        low = high = entry
    else:
        colors = list(entry)
        if len(colors) != 2:
            raise ValueError(f"gradient needs exactly two colors, got {entry!r}")
        low, high = colors
    return np.array([hex_to_rgb(low), hex_to_rgb(high)], dtype=np.float64)


def iter_cells(grid: Grid) -> Iterator[Tuple[int, int, Cell]]:
    """Row-major (x, y, value_or_label) triples."""
    return grid.iter_cells()


def label_gradients(grid: Grid, palette: Optional[Palette] = None) -> np.ndarray:
    """Gradient for each entry of the grid's label table, shape (n_labels, 2, 3)."""
    palette = {**DEFAULT_LABEL_COLORS, **(palette or {})}
    gradients = []
    fallback = 0
    for label in grid.labels:
        if label in palette:
            gradients.append(gradient_endpoints(palette[label]))
        else:
            gradients.append(gradient_endpoints(FALLBACK_COLORS[fallback % len(FALLBACK_COLORS)]))
            fallback += 1
    return np.stack(gradients)


def _band_positions(grid: Grid, elevation: Grid) -> np.ndarray:
    """Position in [0, 1] of every cell's height within the cells of its label."""
    if elevation.is_labeled:
        raise GridKindMismatch("elevation must be a scalar grid")
    if not elevation.same_shape(grid):
        raise DimensionMismatch(
            f"elevation is {elevation.width}x{elevation.height}, "
            f"grid is {grid.width}x{grid.height}"
        )

    indices = grid.as_array()
    heights = elevation.as_array()
    positions = np.zeros(indices.shape, dtype=np.float64)
    for i in range(len(grid.labels)):
        mask = indices == i
        if not mask.any():
            continue
        band = heights[mask]
        low = float(band.min())
        high = float(band.max())
        if high > low:
            positions[mask] = (band - low) / (high - low)
    return positions


def shade_labels(
    grid: Grid, palette: Optional[Palette] = None, elevation: Optional[Grid] = None
) -> np.ndarray:
    """
    RGB pixels for a labeled grid, shape (height, width, 3).

    Without ``elevation`` every cell gets the low end of its label's gradient.
    """
    gradients = label_gradients(grid, palette)
    indices = grid.as_array()
    low = gradients[indices, 0]
    high = gradients[indices, 1]

    if elevation is None:
        rgb = low
    else:
        t = _band_positions(grid, elevation)[..., np.newaxis]
        rgb = low + t * (high - low)
    return np.clip(np.round(rgb), 0, 255).astype(np.uint8)


def to_grayscale(grid: Grid) -> np.ndarray:
    """Scale a scalar grid into uint8, shape (height, width)."""
    values = grid.as_array()
    low = float(values.min())
    high = float(values.max())
    if high == low:
        return np.zeros(values.shape, dtype=np.uint8)
    scaled = (values - low) / (high - low) * 255.0
    return np.clip(np.round(scaled), 0, 255).astype(np.uint8)


def to_image(
    grid: Grid, palette: Optional[Palette] = None, elevation: Optional[Grid] = None
) -> Image.Image:
    """
    Render a grid as a Pillow image.

    Args:
        grid: Final grid
        palette: Optional label -> color or (low, high) gradient overrides
            for labeled grids
        elevation: Optional scalar grid the labels were classified from,
            used to shade each label along its gradient

    Returns:
        Mode "L" image for scalar grids, mode "RGB" for labeled grids
    """
    if grid.is_labeled:
        return Image.fromarray(shade_labels(grid, palette, elevation))
    return Image.fromarray(to_grayscale(grid))


def save_png(
    grid: Grid,
    path: PathLike,
    palette: Optional[Palette] = None,
    elevation: Optional[Grid] = None,
) -> Path:
    path = Path(path)
    to_image(grid, palette, elevation).save(str(path), format="PNG")
    return path


def save_npy(grid: Grid, path: PathLike) -> Path:
    """Save raw cells as a (height, width) array: floats, or label indices."""
    path = Path(path)
    np.save(str(path), grid.as_array())
    return path


def grid_to_dict(grid: Grid) -> dict:
    """JSON-friendly representation of a grid."""
    rows = grid.as_array()
    if grid.is_labeled:
        cells = [[grid.label_of(i) for i in row] for row in rows.tolist()]
    else:
        cells = rows.tolist()
    return {
        "width": grid.width,
        "height": grid.height,
        "kind": grid.kind.value,
        "labels": list(grid.labels),
        "rows": cells,
    }


def save_json(grid: Grid, path: PathLike) -> Path:
    path = Path(path)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(grid_to_dict(grid), f)
    return path


_EXPORTERS = {
    ".png": save_png,
    ".npy": save_npy,
    ".json": save_json,
}


def export_grid(
    grid: Grid,
    path: PathLike,
    palette: Optional[Palette] = None,
    elevation: Optional[Grid] = None,
) -> Path:
    """
    Write a grid to ``path``, choosing the format from the file suffix.

    ``palette`` and ``elevation`` only affect PNG output of labeled grids.

    Raises:
        ValueError: For suffixes other than .png, .npy and .json
        OSError: If the file cannot be written
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix not in _EXPORTERS:
        raise ValueError(
            f"unsupported output format {suffix or path.name!r}, "
            f"expected one of {', '.join(sorted(_EXPORTERS))}"
        )

    if not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)

    if suffix == ".png":
        save_png(grid, path, palette, elevation)
    else:
        _EXPORTERS[suffix](grid, path)

    logger.info("Exported grid", path=str(path), kind=grid.kind.value)
    return path
