"""Path planner — endpoint snapping, search limits and path networks.

Algorithm overview:
  1. Reject endpoint pairs farther apart than ``max_search_distance``.
  2. Snap both endpoints to walkable foot positions via the surface solver.
  3. Build a walkable graph over the current masks (clearance buffer applied).
  4. Run A* with the caller's seed.

A network joins one anchor to each target, segment *i* searched with
seed ``seed + i``.
"""

from __future__ import annotations

import logging
import math
from typing import Sequence

from terraplan.masks.index import MaskIndex
from terraplan.terrain.surface import SurfaceSolver
from terraplan.terrain.walkable import WalkableGraph
from terraplan.world import World

from .costs import TerrainCost
from .models import Node, PathConfig, PathDescriptor, PathNetwork, PathSegment
from .pathfinder import find_path


log = logging.getLogger(__name__)


class PathPlanner:
    """Plans walkable paths between structures over the live mask index."""

    def __init__(
        self,
        world: World,
        index: MaskIndex,
        config: PathConfig | None = None,
        *,
        surface: SurfaceSolver | None = None,
    ) -> None:
        self.world = world
        self.index = index
        self.config = config or PathConfig()
        self.surface = surface or SurfaceSolver(world, index)
        self.cost = TerrainCost(world, self.config)

    def build_graph(self) -> WalkableGraph:
        """Snapshot the current masks into a walkable graph."""
        return WalkableGraph(self.surface, self.index, buffer=self.config.obstacle_buffer)

    def snap(self, point: Sequence[int]) -> Node | None:
        """Foot position above the ground of *point*'s column, or None if masked."""
        x, y, z = point
        foot_y = self.surface.nearest_walkable(x, z, y)
        if foot_y is None:
            return None
        return (x, foot_y, z)

    def plan(
        self,
        start: Sequence[int],
        end: Sequence[int],
        seed: int,
        *,
        graph: WalkableGraph | None = None,
    ) -> PathDescriptor | None:
        """Plan a path from *start* to *end*; None when no path is found."""
        distance = math.dist((start[0], start[2]), (end[0], end[2]))
        if distance > self.config.max_search_distance:
            log.debug("Endpoints too far apart: %.1f > %d", distance, self.config.max_search_distance)
            return None

        s = self.snap(start)
        e = self.snap(end)
        if s is None or e is None:
            log.debug("Endpoint inside a structure: start=%s end=%s", tuple(start), tuple(end))
            return None

        graph = graph or self.build_graph()
        if graph.is_obstacle(*s):
            log.debug("Start %s lies within an obstacle buffer", s)
            return None
        if graph.is_obstacle(*e):
            log.debug("Target %s lies within an obstacle buffer", e)
            return None

        return find_path(graph, s, e, seed=seed, cost=self.cost, config=self.config)

    def plan_network(
        self,
        anchor: Sequence[int],
        targets: Sequence[Sequence[int]],
        seed: int,
    ) -> PathNetwork:
        """Connect *anchor* to every target; failed segments are kept with ``path=None``."""
        anchor = tuple(anchor)
        network = PathNetwork(anchor=anchor)
        graph = self.build_graph()
        for i, target in enumerate(targets):
            target = tuple(target)
            path = self.plan(anchor, target, seed + i, graph=graph)
            network.segments.append(PathSegment(anchor, target, path))

        log.info("Path network: anchor=%s paths=%d/%d blocks=%d connectivity=%.0f%%",
                 anchor, len(network.successful), len(network.segments),
                 network.total_blocks, network.connectivity() * 100)
        return network
