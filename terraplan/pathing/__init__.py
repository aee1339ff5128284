"""Pathing — walkable paths between structures.

Submodules:
  models        PathDescriptor, CosmeticBlock, PathNetwork, PathConfig and constants.
  costs         TerrainCost: step costs and the octile heuristic.
  pathfinder    Deterministic, capped A* over the walkable graph.
  smoothing     Stairs/slab decoration and paving block emission.
  network       PathPlanner: snapping, limits, multi-target networks.
"""

from .models import PathDescriptor, CosmeticBlock, PathSegment, PathNetwork, PathConfig
from .costs import TerrainCost
from .pathfinder import find_path, direction_order
from .smoothing import smooth_path, path_surface_entries
from .network import PathPlanner

__all__ = [
    # Models
    "PathDescriptor", "CosmeticBlock", "PathSegment", "PathNetwork", "PathConfig",
    # Search
    "TerrainCost", "find_path", "direction_order",
    # Emission
    "smooth_path", "path_surface_entries",
    # Planner
    "PathPlanner",
]
