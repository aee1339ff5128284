"""A* pathfinder over the walkable graph.

Supports:
  - Octile heuristic with terrain-aware step costs
  - Deterministic output: heap ties break on an insertion counter and
    the neighbour direction order is fixed per seed
  - A hard node-exploration cap that bounds the cost of one search
  - Goal tolerance (accept any node within N blocks of the target)
"""

from __future__ import annotations

import heapq
import logging
import math
import random

from terraplan.terrain.walkable import DIRECTIONS, WalkableGraph

from .costs import TerrainCost
from .models import Node, PathConfig, PathDescriptor


log = logging.getLogger(__name__)


def direction_order(seed: int) -> tuple[tuple[int, int], ...]:
    """The 8 planar directions in the order used for *seed*."""
    dirs = list(DIRECTIONS)
    random.Random(seed).shuffle(dirs)
    return tuple(dirs)


def _arrived(node: Node, goal: Node, tolerance: int) -> bool:
    if tolerance <= 0:
        return node == goal
    return max(abs(node[0] - goal[0]), abs(node[1] - goal[1]), abs(node[2] - goal[2])) <= tolerance


def find_path(
    graph: WalkableGraph,
    start: Node,
    end: Node,
    *,
    seed: int,
    cost: TerrainCost,
    config: PathConfig | None = None,
) -> PathDescriptor | None:
    """A* from *start* to *end* over *graph*.

    Parameters
    ----------
    graph : WalkableGraph
        Neighbour generator and obstacle field.
    start, end : (x, y, z)
        Foot positions, already snapped to walkable nodes.
    seed : int
        Fixes the neighbour direction order; same inputs + same seed
        always yield the same path.
    cost : TerrainCost
        Step costs and heuristic.
    config : PathConfig, optional
        Exploration cap and goal tolerance.

    Returns
    -------
    PathDescriptor | None
        None when the target is unreachable or the exploration cap was
        reached first.  Never raises for "no path".
    """
    cfg = config or cost.config
    start = tuple(start)
    end = tuple(end)
    max_nodes = cfg.max_nodes_explored
    tolerance = cfg.goal_tolerance

    if _arrived(start, end, tolerance):
        return PathDescriptor(blocks=(start,), seed=seed, nodes_explored=0, total_cost=0.0)

    directions = direction_order(seed)
    h0 = cost.heuristic(start, end)
    counter = 0
    heap: list[tuple[float, float, int, Node]] = [(h0, h0, counter, start)]
    g_scores: dict[Node, float] = {start: 0.0}
    parents: dict[Node, Node] = {}
    closed: set[Node] = set()

    explored = 0
    accumulated_cost = 0.0
    max_step_cost = 0.0

    while heap:
        _f, _h, _cnt, node = heapq.heappop(heap)
        if node in closed:
            continue
        closed.add(node)
        explored += 1

        if _arrived(node, end, tolerance):
            blocks = [node]
            while node in parents:
                node = parents[node]
                blocks.append(node)
            blocks.reverse()
            path = PathDescriptor(
                blocks=tuple(blocks), seed=seed,
                nodes_explored=explored, total_cost=g_scores[blocks[-1]],
            )
            log.info("Path found: %s -> %s, %d blocks, cost=%.2f, explored=%d, seed=%d, hash=%08x",
                     start, end, len(path), path.total_cost, explored, seed, path.path_hash())
            return path

        if explored >= max_nodes:
            log.warning("A* exploration cap hit: %s -> %s explored=%d/%d "
                        "accumulated_cost=%.2f max_step_cost=%.2f",
                        start, end, explored, max_nodes, accumulated_cost, max_step_cost)
            return None

        cur_g = g_scores[node]
        x, y, z = node
        for nb in graph.get_neighbors(x, y, z, directions):
            if nb in closed:
                continue
            step = cost.step_cost(node, nb)
            if math.isinf(step):
                continue
            accumulated_cost += step
            if step > max_step_cost:
                max_step_cost = step

            tentative_g = cur_g + step
            if nb not in g_scores or tentative_g < g_scores[nb]:
                g_scores[nb] = tentative_g
                parents[nb] = node
                h = cost.heuristic(nb, end)
                counter += 1
                heapq.heappush(heap, (tentative_g + h, h, counter, nb))

    log.debug("No path: %s -> %s after exploring %d nodes", start, end, explored)
    return None
