"""Terrain-aware step costs for the path planner."""

from __future__ import annotations

import math

from terraplan.materials import is_fluid, is_rough
from terraplan.world import World

from .models import Node, PathConfig


class TerrainCost:
    """Deterministic, non-negative cost of one step between adjacent nodes.

    Nodes are foot positions, so the ground a walker stands on is the
    block directly beneath the node.
    """

    def __init__(self, world: World, config: PathConfig | None = None) -> None:
        self.world = world
        self.config = config or PathConfig()

    def step_cost(self, a: Node, b: Node) -> float:
        """Cost of moving from *a* to *b*; ``math.inf`` when impassable."""
        cfg = self.config
        ax, ay, az = a
        bx, by, bz = b

        dy = abs(by - ay)
        if dy > 1:
            return math.inf

        cost = cfg.flat_cost
        if ax != bx and az != bz:
            cost *= cfg.diagonal_multiplier
        if dy == 1:
            cost += cfg.slope_penalty

        ground = self.world.block_at(bx, by - 1, bz)
        if is_fluid(self.world.block_at(bx, by, bz)) or is_fluid(ground):
            cost += cfg.water_penalty
        elif is_rough(ground):
            cost += cfg.rough_penalty
        return cost

    def heuristic(self, a: Node, b: Node) -> float:
        """Octile distance on the X/Z plane; never overestimates ``step_cost``."""
        dx = abs(a[0] - b[0])
        dz = abs(a[2] - b[2])
        lo, hi = (dx, dz) if dx < dz else (dz, dx)
        cfg = self.config
        return cfg.flat_cost * (hi - lo) + cfg.flat_cost * cfg.diagonal_multiplier * lo
