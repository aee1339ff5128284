"""Rotated footprints and spacing checks for structure placement.

Structures rotate about their origin corner by a right angle.  A cell
``(dx, dz)`` is the unit square ``[dx, dx+1) × [dz, dz+1)``; rotating
the half-open footprint box with shapely and rounding the result gives
the same cells as :func:`rotate_offset`, so the bounds of a structure
and the cells its queue writes always agree.
"""

from __future__ import annotations

import logging
from typing import Iterable

from shapely import affinity
from shapely.geometry import Polygon, box as shapely_box

from terraplan.config import WORLD_RULES
from terraplan.errors import InvalidArgument
from terraplan.masks.models import VALID_ROTATIONS, Bounds, VolumeMask


log = logging.getLogger(__name__)


def _check_rotation(rotation: int) -> None:
    if rotation not in VALID_ROTATIONS:
        raise InvalidArgument(f"Rotation must be 0, 90, 180 or 270, got {rotation}")


def compute_rotated_aabb(
    origin: tuple[int, int, int],
    width: int,
    depth: int,
    height: int,
    rotation: int,
) -> Bounds:
    """Inclusive world bounds of a ``width × depth × height`` structure.

    *width* runs along local X and *depth* along local Z before rotation.
    Y is unaffected: ``origin_y .. origin_y + height - 1``.
    """
    _check_rotation(rotation)
    if width <= 0 or depth <= 0 or height <= 0:
        raise InvalidArgument(f"Dimensions must be positive, got {width}x{depth}x{height}")

    ox, oy, oz = origin
    footprint = shapely_box(ox, oz, ox + width, oz + depth)
    rotated = affinity.rotate(footprint, rotation, origin=(ox, oz))
    min_x, min_z, max_x, max_z = (round(v) for v in rotated.bounds)
    return Bounds(min_x, max_x - 1, oy, oy + height - 1, min_z, max_z - 1)


def rotate_offset(dx: int, dz: int, rotation: int) -> tuple[int, int]:
    """Rotated position of local cell (dx, dz) relative to the origin."""
    _check_rotation(rotation)
    if rotation == 90:
        return (-dz - 1, dx)
    if rotation == 180:
        return (-dx - 1, -dz - 1)
    if rotation == 270:
        return (dz, -dx - 1)
    return (dx, dz)


def rotated_dimensions(width: int, depth: int, rotation: int) -> tuple[int, int]:
    """(X extent, Z extent) after rotation — width and depth swap at 90° and 270°."""
    _check_rotation(rotation)
    if rotation in (90, 270):
        return (depth, width)
    return (width, depth)


def footprint_polygon(bounds: Bounds) -> Polygon:
    """X/Z footprint of inclusive *bounds* as a shapely box (cells fully covered)."""
    return shapely_box(bounds.min_x, bounds.min_z, bounds.max_x + 1, bounds.max_z + 1)


def _gap_overlaps(cand_min: int, cand_max: int, mask_min: int, mask_max: int, buf: int) -> bool:
    return cand_min <= mask_max + buf and cand_max >= mask_min - buf


def colliding_masks(
    candidate: Bounds,
    masks: Iterable[VolumeMask],
    spacing_buffer: int = WORLD_RULES.spacing_buffer,
) -> list[VolumeMask]:
    """Masks closer to *candidate* than *spacing_buffer* on all three axes."""
    if spacing_buffer < 0:
        raise InvalidArgument(f"spacing_buffer must be non-negative, got {spacing_buffer}")
    c = candidate
    return [
        m for m in masks
        if _gap_overlaps(c.min_x, c.max_x, m.min_x, m.max_x, spacing_buffer)
        and _gap_overlaps(c.min_y, c.max_y, m.min_y, m.max_y, spacing_buffer)
        and _gap_overlaps(c.min_z, c.max_z, m.min_z, m.max_z, spacing_buffer)
    ]


def check_rotated_aabb_collision(
    candidate: Bounds,
    masks: Iterable[VolumeMask],
    spacing_buffer: int = WORLD_RULES.spacing_buffer,
) -> bool:
    """True iff the buffered *candidate* overlaps any mask."""
    hits = colliding_masks(candidate, masks, spacing_buffer)
    if hits:
        log.debug("Candidate %s collides with %s (buffer %d)",
                  tuple(candidate), hits[0].structure_id, spacing_buffer)
        return True
    return False
