"""Shared world constants for siting, pathing and placement.

The mask index, the walkable graph, the placement helper and the commit
pipeline all derive their spacing and budget parameters from this single
source of truth.  Change a value here and every stage stays in sync.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class WorldRules:
    """World-scale rules shared across the engine.

    Distances are in blocks.
    """

    chunk_size: int = 16
    """Edge length of one mask-index bucket (a world chunk)."""

    obstacle_buffer: int = 2
    """Minimum clearance kept between paths and structure volumes."""

    spacing_buffer: int = 8
    """Minimum gap between two sited structures."""

    batch_size: int = 50
    """Block writes committed per active queue per tick."""

    max_nodes_explored: int = 5000
    """Hard ceiling on A* expansions for one path search."""

    max_search_distance: int = 200
    """Endpoints farther apart than this are not searched at all."""

    max_concurrent_preparations: int = 4
    """Queues that may be prepared off-thread at the same time."""

    max_slope_delta: int = 4
    """Largest height range tolerated in a 3×3 neighbourhood."""

    min_foundation_solidity: float = 0.85
    """Fraction of foundation columns that must be solid ground."""

    max_foundation_slope: float = 0.25
    """Height range divided by footprint span, per site."""


# Module-level singleton, importable everywhere.
WORLD_RULES = WorldRules()
