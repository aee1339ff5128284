"""Path planner dataclasses and configuration constants."""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, field
from typing import Any, Mapping

from terraplan.config import WORLD_RULES
from terraplan.errors import InvalidArgument


Node = tuple[int, int, int]


# ── Output dataclasses ─────────────────────────────────────────────


@dataclass(frozen=True)
class PathDescriptor:
    """One planned path, start → end inclusive, in world block coordinates."""

    blocks: tuple[Node, ...]
    seed: int
    nodes_explored: int
    total_cost: float
    elevation_changes: tuple[int, ...] = ()    # indices where the path steps up/down
    created_at: float = field(default_factory=time.time, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "blocks", tuple(tuple(b) for b in self.blocks))
        if not self.blocks:
            raise InvalidArgument("A path needs at least one block")
        if not self.elevation_changes:
            object.__setattr__(self, "elevation_changes", _elevation_changes(self.blocks))

    @property
    def start(self) -> Node:
        return self.blocks[0]

    @property
    def end(self) -> Node:
        return self.blocks[-1]

    def __len__(self) -> int:
        return len(self.blocks)

    def path_hash(self) -> int:
        """Order-sensitive 32-bit hash of the block list, for determinism logs."""
        h = 0
        for x, y, z in self.blocks:
            h = (31 * h + x) & 0xFFFFFFFF
            h = (31 * h + y) & 0xFFFFFFFF
            h = (31 * h + z) & 0xFFFFFFFF
        return h


def _elevation_changes(blocks: tuple[Node, ...]) -> tuple[int, ...]:
    return tuple(
        i for i in range(1, len(blocks))
        if blocks[i][1] != blocks[i - 1][1]
    )


@dataclass(frozen=True)
class CosmeticBlock:
    """A decorative block laid over a path (stairs on slopes, slabs on flats)."""

    position: Node
    material: str
    state: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PathSegment:
    """One anchor → target connection of a path network."""

    start: Node                          # requested endpoints, before snapping
    end: Node
    path: PathDescriptor | None          # None when planning failed

    @property
    def ok(self) -> bool:
        return self.path is not None


@dataclass
class PathNetwork:
    """Star of paths joining one anchor to several targets."""

    anchor: Node
    segments: list[PathSegment] = field(default_factory=list)
    generated_at: float = field(default_factory=time.time)

    @property
    def successful(self) -> list[PathSegment]:
        return [s for s in self.segments if s.ok]

    @property
    def failed_targets(self) -> list[Node]:
        return [s.end for s in self.segments if not s.ok]

    @property
    def total_blocks(self) -> int:
        return sum(len(s.path) for s in self.successful)

    def are_connected(self, a: Node, b: Node) -> bool:
        """True iff some planned segment runs between points near *a* and *b*."""
        for seg in self.successful:
            if (_dist(seg.start, a) < 2 and _dist(seg.end, b) < 2) or \
               (_dist(seg.start, b) < 2 and _dist(seg.end, a) < 2):
                return True
        return False

    def connectivity(self) -> float:
        """Fraction of targets reachable from the anchor (1.0 with no targets)."""
        if not self.segments:
            return 1.0
        connected = sum(
            1 for s in self.segments
            if s.end == self.anchor or self.are_connected(self.anchor, s.end)
        )
        return connected / len(self.segments)


def _dist(a: Node, b: Node) -> float:
    return math.dist(a, b)


# ── Planner configuration ──────────────────────────────────────────
#
# Distances and budgets come from the shared world rules
# (terraplan.config.WORLD_RULES).  Cost weights live here.


@dataclass
class PathConfig:
    """All tuneable path-planner parameters in one place."""

    # ── Budgets (from shared config) ────────────────────────────
    max_nodes_explored: int = WORLD_RULES.max_nodes_explored
    max_search_distance: int = WORLD_RULES.max_search_distance
    obstacle_buffer: int = WORLD_RULES.obstacle_buffer

    # ── Cost weights ───────────────────────────────────────────
    flat_cost: float = 1.0                        # one cardinal step on level ground
    slope_penalty: float = 0.5                    # added for a one-block climb or descent
    diagonal_multiplier: float = math.sqrt(2)
    water_penalty: float = math.inf               # inf = fluids are impassable
    rough_penalty: float = 0.5                    # sand, gravel, snow, vegetation ...
    goal_tolerance: int = 0                       # Chebyshev distance accepted as arrival

    def __post_init__(self) -> None:
        if self.flat_cost <= 0:
            raise InvalidArgument(f"flat_cost must be positive, got {self.flat_cost}")
        if self.diagonal_multiplier < 1:
            raise InvalidArgument("diagonal_multiplier must be >= 1")
        for name in ("slope_penalty", "water_penalty", "rough_penalty"):
            if getattr(self, name) < 0:
                raise InvalidArgument(f"{name} must be non-negative")
        if self.max_nodes_explored <= 0:
            raise InvalidArgument("max_nodes_explored must be positive")
        if self.goal_tolerance < 0 or self.obstacle_buffer < 0:
            raise InvalidArgument("goal_tolerance and obstacle_buffer must be non-negative")


# Module-level defaults (used when no PathConfig is passed)
_DEFAULT_CFG = PathConfig()

MAX_NODES_EXPLORED = _DEFAULT_CFG.max_nodes_explored
MAX_SEARCH_DISTANCE = _DEFAULT_CFG.max_search_distance
OBSTACLE_BUFFER = _DEFAULT_CFG.obstacle_buffer
FLAT_COST = _DEFAULT_CFG.flat_cost
SLOPE_PENALTY = _DEFAULT_CFG.slope_penalty
DIAGONAL_MULTIPLIER = _DEFAULT_CFG.diagonal_multiplier
