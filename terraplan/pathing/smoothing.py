"""Cosmetic smoothing and block emission for planned paths.

Path nodes are foot positions; the road surface is the ground block one
below each node.  Neither function touches the world — both return block
lists for the placement pipeline to commit.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from .models import CosmeticBlock, Node, PathDescriptor


log = logging.getLogger(__name__)

STAIR_MATERIAL = "cobblestone_stairs"
SLAB_MATERIAL = "cobblestone_slab"
SLAB_EVERY = 5


def stair_facing(current: Node, nxt: Node) -> str | None:
    """Cardinal facing toward the next node, X checked before Z."""
    dx = nxt[0] - current[0]
    dz = nxt[2] - current[2]
    if dx > 0:
        return "east"
    if dx < 0:
        return "west"
    if dz > 0:
        return "south"
    if dz < 0:
        return "north"
    return None


def smooth_path(
    descriptor: PathDescriptor,
    *,
    stair_material: str = STAIR_MATERIAL,
    slab_material: str = SLAB_MATERIAL,
    slab_every: int = SLAB_EVERY,
) -> list[CosmeticBlock]:
    """Stairs on one-block climbs and descents, bottom slabs on flat runs.

    Only interior nodes are decorated.  A node gets stairs when the path
    steps by one block into or out of it; a flat node gets a slab when
    its index is a multiple of *slab_every* (0 disables slabs).
    ``descriptor.blocks`` is never modified.
    """
    blocks = descriptor.blocks
    cosmetics: list[CosmeticBlock] = []

    for i in range(1, len(blocks) - 1):
        prev, cur, nxt = blocks[i - 1], blocks[i], blocks[i + 1]
        dy_prev = cur[1] - prev[1]
        dy_next = nxt[1] - cur[1]
        surface = (cur[0], cur[1] - 1, cur[2])

        if abs(dy_prev) == 1 or abs(dy_next) == 1:
            facing = stair_facing(cur, nxt)
            if facing is None:
                continue
            cosmetics.append(CosmeticBlock(surface, stair_material, {"facing": facing}))
        elif dy_prev == 0 and dy_next == 0 and slab_every > 0 and i % slab_every == 0:
            cosmetics.append(CosmeticBlock(surface, slab_material, {"type": "bottom"}))

    log.debug("Path smoothed: %d blocks, %d cosmetic", len(blocks), len(cosmetics))
    return cosmetics


def path_surface_entries(
    descriptor: PathDescriptor,
    material: str,
    cosmetics: Iterable[CosmeticBlock] = (),
) -> list[tuple[int, int, int, str, Mapping[str, Any] | None]]:
    """Block writes that pave the ground under every node of *descriptor*.

    Cosmetic blocks replace the paving at their positions.  Duplicate
    positions are written once, in path order.
    """
    overrides = {c.position: c for c in cosmetics}
    entries: list[tuple[int, int, int, str, Mapping[str, Any] | None]] = []
    seen: set[Node] = set()
    for x, y, z in descriptor.blocks:
        pos = (x, y - 1, z)
        if pos in seen:
            continue
        seen.add(pos)
        cosmetic = overrides.get(pos)
        if cosmetic is not None:
            entries.append((x, y - 1, z, cosmetic.material, dict(cosmetic.state)))
        else:
            entries.append((x, y - 1, z, material, None))
    return entries
