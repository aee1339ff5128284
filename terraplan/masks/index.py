"""Chunk-bucketed lookup over registered volume masks.

The ordered ``_masks`` list (registration order) is the authoritative
store.  ``_buckets`` maps ``(chunk_x, chunk_z)`` to the tuple of masks
whose X/Z footprint touches that chunk and only accelerates lookups.

Writers hold ``_lock`` and publish new tuples; readers never lock and
always see either the old or the new tuple, never a partial one.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Iterable

from terraplan.config import WORLD_RULES
from terraplan.errors import InvalidArgument

from .models import VolumeMask


log = logging.getLogger(__name__)

MaskListener = Callable[[str, VolumeMask], None]

ADDED = "added"
REMOVED = "removed"


def chunk_of(coord: int, chunk_size: int = WORLD_RULES.chunk_size) -> int:
    """Chunk coordinate containing world coordinate *coord* (floors negatives)."""
    return coord // chunk_size


class MaskIndex:
    """Registry of volume masks with chunk-bucketed spatial lookup."""

    def __init__(
        self,
        masks: Iterable[VolumeMask] = (),
        *,
        chunk_size: int = WORLD_RULES.chunk_size,
    ) -> None:
        if chunk_size <= 0:
            raise InvalidArgument(f"chunk_size must be positive, got {chunk_size}")
        self.chunk_size = chunk_size
        self._lock = threading.Lock()
        self._masks: tuple[VolumeMask, ...] = ()
        self._by_id: dict[str, VolumeMask] = {}
        self._buckets: dict[tuple[int, int], tuple[VolumeMask, ...]] = {}
        self._listeners: list[MaskListener] = []
        self.version = 0
        for mask in masks:
            self.add(mask)

    # ── Chunk helpers ──────────────────────────────────────────────

    def chunk_keys(self, mask: VolumeMask) -> list[tuple[int, int]]:
        """Every chunk key the mask's X/Z footprint intersects."""
        cs = self.chunk_size
        return [
            (cx, cz)
            for cx in range(mask.min_x // cs, mask.max_x // cs + 1)
            for cz in range(mask.min_z // cs, mask.max_z // cs + 1)
        ]

    # ── Mutation ───────────────────────────────────────────────────

    def add(self, mask: VolumeMask) -> None:
        """Register *mask*.  A structure id may be registered only once."""
        with self._lock:
            if mask.structure_id in self._by_id:
                raise InvalidArgument(
                    f"Structure '{mask.structure_id}' already has a registered mask; "
                    f"use replace()"
                )
            self._insert(mask)
            self.version += 1
        log.debug("Mask registered: %s", mask.summary())
        self._notify(ADDED, mask)

    def remove(self, structure_id: str) -> VolumeMask | None:
        """Unregister the mask of *structure_id*.  Returns it, or None if absent."""
        with self._lock:
            mask = self._by_id.get(structure_id)
            if mask is None:
                return None
            self._delete(mask)
            self.version += 1
        log.debug("Mask removed: %s", mask.summary())
        self._notify(REMOVED, mask)
        return mask

    def replace(self, structure_id: str, new_mask: VolumeMask) -> VolumeMask | None:
        """Supersede the mask of *structure_id* with *new_mask*.

        Returns the old mask (None when the structure had none).
        """
        with self._lock:
            if new_mask.structure_id != structure_id and new_mask.structure_id in self._by_id:
                raise InvalidArgument(
                    f"Structure '{new_mask.structure_id}' already has a registered mask"
                )
            old = self._by_id.get(structure_id)
            if old is not None:
                self._delete(old)
            self._insert(new_mask)
            self.version += 1
        if old is not None:
            self._notify(REMOVED, old)
        self._notify(ADDED, new_mask)
        return old

    def _insert(self, mask: VolumeMask) -> None:
        self._masks = self._masks + (mask,)
        self._by_id[mask.structure_id] = mask
        for key in self.chunk_keys(mask):
            self._buckets[key] = self._buckets.get(key, ()) + (mask,)

    def _delete(self, mask: VolumeMask) -> None:
        self._masks = tuple(m for m in self._masks if m is not mask)
        del self._by_id[mask.structure_id]
        for key in self.chunk_keys(mask):
            remaining = tuple(m for m in self._buckets.get(key, ()) if m is not mask)
            if remaining:
                self._buckets[key] = remaining
            else:
                self._buckets.pop(key, None)

    # ── Listeners ──────────────────────────────────────────────────

    def subscribe(self, listener: MaskListener) -> None:
        """Call ``listener(event, mask)`` after every add/remove."""
        self._listeners.append(listener)

    def _notify(self, event: str, mask: VolumeMask) -> None:
        for listener in list(self._listeners):
            listener(event, mask)

    # ── Queries ────────────────────────────────────────────────────

    def masks(self) -> tuple[VolumeMask, ...]:
        """All registered masks in registration order."""
        return self._masks

    def get(self, structure_id: str) -> VolumeMask | None:
        return self._by_id.get(structure_id)

    def for_village(self, village_id: str) -> tuple[VolumeMask, ...]:
        return tuple(m for m in self._masks if m.village_id == village_id)

    def masks_in_chunk(self, chunk_x: int, chunk_z: int) -> tuple[VolumeMask, ...]:
        """Masks touching a chunk; empty tuple when none are registered there."""
        return self._buckets.get((chunk_x, chunk_z), ())

    def candidates(self, x: int, z: int) -> tuple[VolumeMask, ...]:
        """Masks that may cover column (x, z) — the column's chunk bucket."""
        cs = self.chunk_size
        return self._buckets.get((x // cs, z // cs), ())

    def contains(self, x: int, y: int, z: int) -> bool:
        """True iff (x, y, z) is inside any registered mask."""
        for mask in self.candidates(x, z):
            if mask.contains(x, y, z):
                return True
        return False

    def column_hits(self, x: int, z: int, y_min: int, y_max: int) -> tuple[VolumeMask, ...]:
        """Masks whose box overlaps column (x, z) within ``[y_min, y_max]``."""
        return tuple(
            m for m in self.candidates(x, z) if m.contains_2d(x, z, y_min, y_max)
        )

    def __len__(self) -> int:
        return len(self._masks)

    def __contains__(self, structure_id: object) -> bool:
        return structure_id in self._by_id

    def __iter__(self):
        return iter(self._masks)
