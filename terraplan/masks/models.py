"""Volume masks and placement receipts.

A :class:`VolumeMask` marks the space a structure occupies.  Terrain
queries use it to "see through" placed or pending structures; the
walkable graph expands it into a clearance obstacle.  Masks are
immutable — replacing a structure swaps the mask in the index.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Iterable, NamedTuple

from terraplan.errors import InvalidArgument
from terraplan.materials import is_air, is_solid_material


class Bounds(NamedTuple):
    """Inclusive integer AABB, ordered as min/max per axis."""

    min_x: int
    max_x: int
    min_y: int
    max_y: int
    min_z: int
    max_z: int


def _check_bounds(b: Bounds) -> None:
    if b.max_x < b.min_x or b.max_y < b.min_y or b.max_z < b.min_z:
        raise InvalidArgument(f"Invalid bounds {tuple(b)}: max must be >= min on every axis")


# ── Volume mask ────────────────────────────────────────────────────


@dataclass(frozen=True)
class VolumeMask:
    """Occupied volume of one structure.

    ``occupancy`` is an optional bitmap over the box; ``None`` means the
    whole box is solid.  Bit layout: ``rel_x + width * (rel_z + depth * rel_y)``,
    little-endian within each byte.
    """

    structure_id: str
    village_id: str
    min_x: int
    max_x: int
    min_y: int
    max_y: int
    min_z: int
    max_z: int
    occupancy: bytes | None = field(default=None, repr=False, compare=False)
    timestamp: float = field(default_factory=time.time, compare=False)

    def __post_init__(self) -> None:
        _check_bounds(self.bounds)
        if self.occupancy is not None:
            max_bytes = (self.volume + 7) // 8
            if len(self.occupancy) > max_bytes:
                raise InvalidArgument(
                    f"Occupancy bitmap larger than expected: "
                    f"{len(self.occupancy)} > {max_bytes} bytes"
                )

    # ── Construction helpers ───────────────────────────────────────

    @classmethod
    def from_bounds(
        cls,
        structure_id: str,
        village_id: str,
        bounds: Bounds | tuple[int, int, int, int, int, int],
        *,
        timestamp: float | None = None,
    ) -> "VolumeMask":
        b = Bounds(*bounds)
        return cls(
            structure_id, village_id,
            b.min_x, b.max_x, b.min_y, b.max_y, b.min_z, b.max_z,
            timestamp=time.time() if timestamp is None else timestamp,
        )

    @classmethod
    def from_cells(
        cls,
        structure_id: str,
        village_id: str,
        bounds: Bounds | tuple[int, int, int, int, int, int],
        cells: Iterable[tuple[int, int, int]],
        *,
        timestamp: float | None = None,
    ) -> "VolumeMask":
        """Build a mask whose occupancy bitmap has exactly *cells* set.

        Cells outside *bounds* are ignored.
        """
        b = Bounds(*bounds)
        _check_bounds(b)
        width = b.max_x - b.min_x + 1
        height = b.max_y - b.min_y + 1
        depth = b.max_z - b.min_z + 1
        bits = bytearray((width * height * depth + 7) // 8)
        for x, y, z in cells:
            if b.min_x <= x <= b.max_x and b.min_y <= y <= b.max_y and b.min_z <= z <= b.max_z:
                idx = _flat_index(x - b.min_x, y - b.min_y, z - b.min_z, width, depth)
                bits[idx >> 3] |= 1 << (idx & 7)
        return cls(
            structure_id, village_id,
            b.min_x, b.max_x, b.min_y, b.max_y, b.min_z, b.max_z,
            occupancy=bytes(bits),
            timestamp=time.time() if timestamp is None else timestamp,
        )

    @classmethod
    def from_receipt(cls, receipt: "PlacementReceipt") -> "VolumeMask":
        """Rebuild a full-box mask from a recorded placement receipt."""
        return cls.from_bounds(
            receipt.structure_id, receipt.village_id, receipt.bounds,
            timestamp=receipt.timestamp,
        )

    # ── Dimensions ─────────────────────────────────────────────────

    @property
    def bounds(self) -> Bounds:
        return Bounds(self.min_x, self.max_x, self.min_y, self.max_y, self.min_z, self.max_z)

    @property
    def width(self) -> int:
        return self.max_x - self.min_x + 1

    @property
    def height(self) -> int:
        return self.max_y - self.min_y + 1

    @property
    def depth(self) -> int:
        return self.max_z - self.min_z + 1

    @property
    def volume(self) -> int:
        return self.width * self.height * self.depth

    @property
    def is_full(self) -> bool:
        return self.occupancy is None

    # ── Spatial queries ────────────────────────────────────────────

    def contains(self, x: int, y: int, z: int) -> bool:
        if not (self.min_x <= x <= self.max_x
                and self.min_y <= y <= self.max_y
                and self.min_z <= z <= self.max_z):
            return False
        if self.occupancy is None:
            return True
        idx = self.occupancy_index(x, y, z)
        byte = idx >> 3
        if byte >= len(self.occupancy):
            return False
        return bool(self.occupancy[byte] >> (idx & 7) & 1)

    def contains_2d(self, x: int, z: int, y_min: int, y_max: int) -> bool:
        """Coarse column test: X/Z inside and the Y interval overlaps.

        Ignores the occupancy bitmap — a fast reject before ``contains``.
        """
        if x < self.min_x or x > self.max_x or z < self.min_z or z > self.max_z:
            return False
        return max(y_min, self.min_y) <= min(y_max, self.max_y)

    def occupancy_index(self, x: int, y: int, z: int) -> int:
        """Flattened bitmap index of world cell (x, y, z)."""
        return _flat_index(
            x - self.min_x, y - self.min_y, z - self.min_z, self.width, self.depth,
        )

    def expand(self, buffer: int) -> "VolumeMask":
        """Return a full-box mask grown by *buffer* on every face."""
        if buffer < 0:
            raise InvalidArgument(f"Buffer must be non-negative, got {buffer}")
        if buffer == 0:
            return self
        return VolumeMask(
            self.structure_id, self.village_id,
            self.min_x - buffer, self.max_x + buffer,
            self.min_y - buffer, self.max_y + buffer,
            self.min_z - buffer, self.max_z + buffer,
            timestamp=self.timestamp,
        )

    def summary(self) -> str:
        if self.occupancy is None:
            occ = "full"
        else:
            occ = f"bitmap({sum(bin(b).count('1') for b in self.occupancy)} bits)"
        return (
            f"VolumeMask[{self.structure_id} bounds=({self.min_x}..{self.max_x}, "
            f"{self.min_y}..{self.max_y}, {self.min_z}..{self.max_z}) "
            f"dims={self.width}x{self.height}x{self.depth} occupancy={occ}]"
        )


def _flat_index(rel_x: int, rel_y: int, rel_z: int, width: int, depth: int) -> int:
    return rel_x + width * (rel_z + depth * rel_y)


# ── Placement receipt ──────────────────────────────────────────────


VALID_ROTATIONS = (0, 90, 180, 270)


@dataclass(frozen=True)
class CornerSample:
    """Material found under one foundation corner after placement."""

    x: int
    y: int
    z: int
    material: str

    def is_non_air_solid(self) -> bool:
        return not is_air(self.material) and is_solid_material(self.material)


@dataclass(frozen=True)
class PlacementReceipt:
    """Ground-truth record of one committed structure.

    Persisted by the host; :meth:`VolumeMask.from_receipt` rebuilds the
    structure's mask from it after a reload.
    """

    structure_id: str
    village_id: str
    world_name: str
    bounds: Bounds
    origin: tuple[int, int, int]
    rotation: int                                   # 0, 90, 180, 270
    effective_width: int                            # X extent after rotation
    effective_depth: int                            # Z extent after rotation
    height: int
    foundation_corners: tuple[CornerSample, ...]    # NW, NE, SE, SW
    timestamp: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        object.__setattr__(self, "bounds", Bounds(*self.bounds))
        object.__setattr__(self, "origin", tuple(self.origin))
        object.__setattr__(self, "foundation_corners", tuple(self.foundation_corners))
        _check_bounds(self.bounds)
        if self.rotation not in VALID_ROTATIONS:
            raise InvalidArgument(f"Rotation must be 0, 90, 180 or 270, got {self.rotation}")
        if self.effective_width <= 0 or self.effective_depth <= 0 or self.height <= 0:
            raise InvalidArgument("Dimensions must be positive")
        if len(self.foundation_corners) != 4:
            raise InvalidArgument("Must provide exactly 4 foundation corner samples")

    def verify_foundation_corners(self) -> bool:
        """True iff every foundation corner rests on a non-air solid block."""
        return all(c.is_non_air_solid() for c in self.foundation_corners)

    def summary(self) -> str:
        b = self.bounds
        ox, oy, oz = self.origin
        return (
            f"{self.structure_id} @ ({ox},{oy},{oz}) rot={self.rotation}° "
            f"bounds=({b.min_x}..{b.max_x}, {b.min_y}..{b.max_y}, {b.min_z}..{b.max_z}) "
            f"dims={self.effective_width}x{self.height}x{self.effective_depth}"
        )
