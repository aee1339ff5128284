"""Ground-truth surface solver.

G(x, z) is the Y of the highest solid, non-vegetation block that is not
inside any registered volume mask.  Masked cells are invisible to the
scan, so a new structure is sited on the terrain that existed before
any structure occupied the column rather than on top of it.

Results are cached per column.  The solver subscribes to its mask index
and drops cached columns under every mask that is added or removed, so
re-placing a structure never leaves a stale height behind.
"""

from __future__ import annotations

import logging
import threading

from terraplan.masks.index import MaskIndex
from terraplan.masks.models import VolumeMask
from terraplan.materials import is_vegetation
from terraplan.world import World


log = logging.getLogger(__name__)

# Extra columns dropped around a changed footprint
INVALIDATION_MARGIN = 1


def pack_column(x: int, z: int) -> int:
    """Pack (x, z) into one 64-bit key (two's-complement halves)."""
    return (x & 0xFFFFFFFF) | ((z & 0xFFFFFFFF) << 32)


class SurfaceSolver:
    """Deterministic ground-height function over a host world."""

    def __init__(self, world: World, index: MaskIndex) -> None:
        self.world = world
        self.index = index
        self._cache: dict[int, int] = {}
        self._cache_lock = threading.Lock()
        self._generation = 0                 # bumped by every invalidation
        index.subscribe(self._on_mask_changed)

    # ── Surface function ───────────────────────────────────────────

    def get_surface_height(self, x: int, z: int) -> int:
        """G(x, z).  Falls back to ``world.min_height`` when no ground is found.

        A scan that overlaps an invalidation is repeated, so a height read
        before a mask was published is never cached.
        """
        key = pack_column(x, z)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        while True:
            generation = self._generation
            y = self._scan(x, z)
            with self._cache_lock:
                if generation != self._generation:
                    continue
                if y is not None:
                    self._cache[key] = y
                    return y
            return self.world.min_height

    def _scan(self, x: int, z: int) -> int | None:
        world = self.world
        floor = world.min_height
        start_y = min(world.highest_block_y(x, z) + 1, world.max_height)

        # Only masks overlapping this column's scan range can hide a block
        masks = self.index.column_hits(x, z, floor, start_y)

        for y in range(start_y, floor - 1, -1):
            if masks and any(m.contains(x, y, z) for m in masks):
                continue
            if world.is_solid(x, y, z) and not is_vegetation(world.block_at(x, y, z)):
                return y
        return None

    def nearest_walkable(self, x: int, z: int, y_hint: int | None = None) -> int | None:
        """Foot-level Y above the ground at (x, z), or None if that cell is masked.

        *y_hint* is unused: the answer depends only on the column.
        """
        candidate = self.get_surface_height(x, z) + 1
        if self.index.contains(x, candidate, z):
            return None
        return candidate

    # ── Cache maintenance ──────────────────────────────────────────

    def invalidate_region(self, min_x: int, max_x: int, min_z: int, max_z: int) -> int:
        """Drop cached heights for every column in the inclusive rectangle."""
        dropped = 0
        with self._cache_lock:
            self._generation += 1
            for x in range(min_x, max_x + 1):
                for z in range(min_z, max_z + 1):
                    if self._cache.pop(pack_column(x, z), None) is not None:
                        dropped += 1
        return dropped

    def clear_cache(self) -> None:
        with self._cache_lock:
            self._generation += 1
            self._cache.clear()

    @property
    def cached_columns(self) -> int:
        return len(self._cache)

    def _on_mask_changed(self, event: str, mask: VolumeMask) -> None:
        m = INVALIDATION_MARGIN
        dropped = self.invalidate_region(
            mask.min_x - m, mask.max_x + m, mask.min_z - m, mask.max_z + m,
        )
        if dropped:
            log.debug("Surface cache: %s %s dropped %d columns",
                      event, mask.structure_id, dropped)
