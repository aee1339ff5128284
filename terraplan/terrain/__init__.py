"""Terrain — ground-truth surface, walkability and site suitability.

Submodules:
  surface       SurfaceSolver: G(x, z) with mask-aware scans and a column cache.
  walkable      WalkableGraph: obstacle field and neighbour generation for A*.
  classifier    TerrainClassifier and SiteValidator for foundation checks.
"""

from .surface import SurfaceSolver, pack_column
from .walkable import WalkableGraph, DIRECTIONS
from .classifier import Classification, TerrainClassifier, SiteValidator, SiteReport, classify_material

__all__ = [
    # Surface
    "SurfaceSolver", "pack_column",
    # Walkable graph
    "WalkableGraph", "DIRECTIONS",
    # Classification
    "Classification", "TerrainClassifier", "SiteValidator", "SiteReport", "classify_material",
]
