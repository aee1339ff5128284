"""Host world capability — the only seam between the engine and a voxel world.

The engine reads through :class:`World` (material / solidity / highest
block queries) and writes through ``World.set_block`` — the latter only
from ``PlacementPipeline.commit_step`` on the world thread.

:class:`MemoryWorld` is a dictionary-backed implementation used for
offline planning and by the test-suite.  Columns default to a flat
ground at ``base_height`` (or to air when it is ``None``) and can be
reshaped per column with :meth:`MemoryWorld.set_ground`.
"""

from __future__ import annotations

from typing import Any, Mapping, Protocol, runtime_checkable

from terraplan.materials import AIR, is_air, is_solid_material


class WorldWriteError(Exception):
    """Raised by a host when it rejects a single block write."""

    def __init__(self, x: int, y: int, z: int, material: str, reason: str) -> None:
        self.position = (x, y, z)
        self.material = material
        self.reason = reason
        super().__init__(f"Cannot write {material} at ({x},{y},{z}): {reason}")


@runtime_checkable
class World(Protocol):
    """Query/mutate capability the engine needs from its host."""

    name: str
    min_height: int
    max_height: int

    def block_at(self, x: int, y: int, z: int) -> str: ...

    def is_solid(self, x: int, y: int, z: int) -> bool: ...

    def highest_block_y(self, x: int, z: int) -> int: ...

    def set_block(
        self, x: int, y: int, z: int, material: str,
        state: Mapping[str, Any] | None = None,
    ) -> None: ...


class MemoryWorld:
    """In-memory voxel world.

    Parameters
    ----------
    base_height : int | None
        Y of the default ground surface.  ``None`` = empty world.
    surface_material, fill_material : str
        Top block and the blocks beneath it for default ground.
    """

    def __init__(
        self,
        *,
        name: str = "world",
        min_height: int = -64,
        max_height: int = 320,
        base_height: int | None = None,
        surface_material: str = "grass_block",
        fill_material: str = "dirt",
    ) -> None:
        self.name = name
        self.min_height = min_height
        self.max_height = max_height
        self.base_height = base_height
        self.surface_material = surface_material
        self.fill_material = fill_material

        self._blocks: dict[tuple[int, int, int], str] = {}
        self._states: dict[tuple[int, int, int], dict[str, Any]] = {}
        self._ground: dict[tuple[int, int], tuple[int, str]] = {}
        self._column_top: dict[tuple[int, int], int] = {}

        # Positions whose writes the host refuses (tests / protected areas)
        self.protected: set[tuple[int, int, int]] = set()
        self.write_count = 0

    # ── Terrain shaping ────────────────────────────────────────────

    def set_ground(self, x: int, z: int, height: int, material: str | None = None) -> None:
        """Give column (x, z) its own natural ground height."""
        self._ground[(x, z)] = (height, material or self.surface_material)

    def fill(
        self,
        x1: int, y1: int, z1: int,
        x2: int, y2: int, z2: int,
        material: str,
    ) -> None:
        """Set every block of an inclusive box (terrain editing, not a commit)."""
        for x in range(min(x1, x2), max(x1, x2) + 1):
            for z in range(min(z1, z2), max(z1, z2) + 1):
                for y in range(min(y1, y2), max(y1, y2) + 1):
                    self._put(x, y, z, material)

    def put(self, x: int, y: int, z: int, material: str) -> None:
        """Set a single block without counting it as a host write."""
        self._put(x, y, z, material)

    def _put(self, x: int, y: int, z: int, material: str) -> None:
        self._blocks[(x, y, z)] = material
        top = self._column_top.get((x, z))
        if top is None or y > top:
            self._column_top[(x, z)] = y

    # ── World protocol ─────────────────────────────────────────────

    def block_at(self, x: int, y: int, z: int) -> str:
        explicit = self._blocks.get((x, y, z))
        if explicit is not None:
            return explicit
        ground = self._ground.get((x, z))
        if ground is not None:
            height, top_material = ground
        elif self.base_height is not None:
            height, top_material = self.base_height, self.surface_material
        else:
            return AIR
        if y == height:
            return top_material
        if self.min_height <= y < height:
            return self.fill_material
        return AIR

    def state_at(self, x: int, y: int, z: int) -> dict[str, Any] | None:
        return self._states.get((x, y, z))

    def is_solid(self, x: int, y: int, z: int) -> bool:
        return is_solid_material(self.block_at(x, y, z))

    def highest_block_y(self, x: int, z: int) -> int:
        """Y of the highest non-air block in the column (``min_height`` if none)."""
        candidates = [self.min_height]
        ground = self._ground.get((x, z))
        if ground is not None:
            candidates.append(ground[0])
        elif self.base_height is not None:
            candidates.append(self.base_height)
        top = self._column_top.get((x, z))
        if top is not None:
            candidates.append(top)
        y = min(max(candidates), self.max_height)
        while y > self.min_height and is_air(self.block_at(x, y, z)):
            y -= 1
        return y

    def set_block(
        self, x: int, y: int, z: int, material: str,
        state: Mapping[str, Any] | None = None,
    ) -> None:
        if not self.min_height <= y <= self.max_height:
            raise WorldWriteError(x, y, z, material, "outside world height")
        if (x, y, z) in self.protected:
            raise WorldWriteError(x, y, z, material, "protected position")
        self._put(x, y, z, material)
        if state:
            self._states[(x, y, z)] = dict(state)
        else:
            self._states.pop((x, y, z), None)
        self.write_count += 1
