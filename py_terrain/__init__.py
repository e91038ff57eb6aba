"""
py-terrain: procedural height map generation.

Grids are populated and transformed by an ordered pipeline of operations
(noise, smoothing, normalization, classification, blending, erosion).
"""

__version__ = "0.1.0"
