#!/usr/bin/env python3
"""
Simple demo script showing terrain pipeline capabilities.
"""

import numpy as np
from py_terrain.core import Grid, Pipeline, NoiseFill, Smooth, Normalize, Classify, Erode
from py_terrain.config import build_pipeline, get_preset, list_presets
from py_terrain.export import export_grid


def main():
    """Demonstrate terrain generation."""
    print("Py-Terrain Pipeline Demo")
    print("=" * 40)

    width, height = 96, 64

    # Build a pipeline by hand
    print("\nHand-built pipeline:")
    print("-" * 30)
    pipeline = (
        Pipeline(Grid.create(width, height), name="demo")
        .add_operation(NoiseFill(seed=42, frequency=0.03, octaves=5))
        .add_operation(Erode(iterations=4, strength=0.3))
        .add_operation(Smooth(radius=1))
        .add_operation(Normalize(0.0, 1.0))
    )
    heights = pipeline.apply().as_array()

    print(f"  Height range: {heights.min():.2f}-{heights.max():.2f}")
    print(f"  Average height: {heights.mean():.2f}")

    bins = [0.0, 0.2, 0.4, 0.6, 0.8, 1.0]
    hist, _ = np.histogram(heights, bins=bins)
    print("  Height distribution:")
    for i in range(len(bins) - 1):
        bar = '#' * int(hist[i] / max(hist) * 20)
        print(f"    {bins[i]:.1f}-{bins[i+1]:.1f}: {bar} ({hist[i]})")

    classified = Pipeline(pipeline.grid).add_operation(
        Classify([(0.4, "water"), (0.7, "plains"), (1.0, "mountain")])
    ).apply()
    export_grid(classified, "demo_classified.png", elevation=pipeline.grid)
    print("  Saved demo_classified.png")

    # Run every preset
    for name in list_presets():
        print(f"\n{name.upper()} preset:")
        print("-" * 30)
        preset = build_pipeline(get_preset(name, width, height, seed=7))
        grid = preset.apply()

        if grid.is_labeled:
            values = grid.as_array().reshape(-1)
            counts = np.bincount(values, minlength=len(grid.labels))
            for label, count in zip(grid.labels, counts):
                print(f"  {label:12s} {count / values.size * 100:5.1f}%")
        else:
            print(f"  Scalar grid, mean {grid.as_array().mean():.2f}")

        export_grid(grid, f"demo_{name}.png", elevation=preset.elevation)


if __name__ == "__main__":
    main()
