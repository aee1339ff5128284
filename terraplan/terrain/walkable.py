"""Walkable graph — obstacle field and neighbour generator for the path planner.

Nodes are foot positions within one block of the ground surface G(x, z).
Structures become obstacles after their masks are grown by a clearance
buffer; the expanded masks are computed once, at construction, and held
in a private chunk index so obstacle checks stay bucket-local.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from terraplan.config import WORLD_RULES
from terraplan.masks.index import MaskIndex
from terraplan.masks.models import VolumeMask

from .surface import SurfaceSolver


# Planar directions (dx, dz): cardinals first, then diagonals.
DIRECTIONS: tuple[tuple[int, int], ...] = (
    (1, 0), (-1, 0), (0, 1), (0, -1),
    (1, 1), (1, -1), (-1, 1), (-1, -1),
)

# Largest vertical step between two adjacent nodes
MAX_STEP = 1


class WalkableGraph:
    """Variable-elevation grid graph over the surface function."""

    def __init__(
        self,
        surface: SurfaceSolver,
        masks: MaskIndex | Iterable[VolumeMask],
        buffer: int = WORLD_RULES.obstacle_buffer,
    ) -> None:
        self.surface = surface
        self.buffer = buffer
        source = masks.masks() if isinstance(masks, MaskIndex) else tuple(masks)
        chunk_size = masks.chunk_size if isinstance(masks, MaskIndex) else WORLD_RULES.chunk_size
        self._obstacles = MaskIndex(
            (m.expand(buffer) for m in source), chunk_size=chunk_size,
        )

    @property
    def obstacle_count(self) -> int:
        return len(self._obstacles)

    def is_obstacle(self, x: int, y: int, z: int) -> bool:
        """Inside any structure mask grown by the clearance buffer."""
        return self._obstacles.contains(x, y, z)

    def is_walkable(self, x: int, y: int, z: int) -> bool:
        if self.is_obstacle(x, y, z):
            return False
        return abs(y - self.surface.get_surface_height(x, z)) <= MAX_STEP

    def get_neighbors(
        self,
        x: int, y: int, z: int,
        directions: Sequence[tuple[int, int]] = DIRECTIONS,
    ) -> list[tuple[int, int, int]]:
        """Adjacent walkable nodes, in the order of *directions*.

        A neighbour column contributes a node only when the surface solver
        returns a walkable Y for it, that Y is within one step of *y*, and
        the node is clear of obstacles.
        """
        neighbors: list[tuple[int, int, int]] = []
        for dx, dz in directions:
            nx, nz = x + dx, z + dz
            ny = self.surface.nearest_walkable(nx, nz, y)
            if ny is None:
                continue
            if abs(ny - y) > MAX_STEP:
                continue
            if self.is_obstacle(nx, ny, nz):
                continue
            neighbors.append((nx, ny, nz))
        return neighbors
