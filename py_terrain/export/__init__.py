"""Writing finished grids to images and data files."""

from .exporters import (
    DEFAULT_LABEL_COLORS,
    export_grid,
    grid_to_dict,
    iter_cells,
    save_json,
    save_npy,
    save_png,
    shade_labels,
    to_image,
)

__all__ = [
    "DEFAULT_LABEL_COLORS",
    "export_grid",
    "grid_to_dict",
    "iter_cells",
    "save_json",
    "save_npy",
    "save_png",
    "shade_labels",
    "to_image",
]
