"""Structure templates — local block layouts and their rotation into the world.

Template coordinates are local: ``0 <= dx < width``, ``0 <= dy < height``,
``0 <= dz < depth``, with the origin at the structure's minimum corner
before rotation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping

from terraplan.errors import InvalidArgument
from terraplan.masks.models import Bounds

from .helper import compute_rotated_aabb, rotate_offset, rotated_dimensions


# Clockwise order; each 90° of rotation advances a facing by one step
_FACINGS = ("north", "east", "south", "west")


def rotate_facing(facing: str, rotation: int) -> str:
    """Facing of a directional block after rotating its structure."""
    if facing not in _FACINGS:
        return facing
    return _FACINGS[(_FACINGS.index(facing) + rotation // 90) % 4]


@dataclass(frozen=True)
class TemplateBlock:
    dx: int
    dy: int
    dz: int
    material: str
    state: Mapping[str, Any] | None = None


@dataclass(frozen=True)
class StructureTemplate:
    """A named block layout with a fixed local bounding box."""

    name: str
    width: int                  # local X extent
    depth: int                  # local Z extent
    height: int                 # Y extent
    blocks: tuple[TemplateBlock, ...] = field(repr=False)
    foundation_material: str = "cobblestone"

    def __post_init__(self) -> None:
        object.__setattr__(self, "blocks", tuple(self.blocks))
        if self.width <= 0 or self.depth <= 0 or self.height <= 0:
            raise InvalidArgument(f"Template '{self.name}' needs positive dimensions")
        for b in self.blocks:
            if not (0 <= b.dx < self.width and 0 <= b.dy < self.height and 0 <= b.dz < self.depth):
                raise InvalidArgument(
                    f"Template '{self.name}' block ({b.dx},{b.dy},{b.dz}) outside "
                    f"{self.width}x{self.height}x{self.depth}"
                )

    def bounds_at(self, origin: tuple[int, int, int], rotation: int) -> Bounds:
        return compute_rotated_aabb(origin, self.width, self.depth, self.height, rotation)

    def dimensions(self, rotation: int) -> tuple[int, int]:
        """(X extent, Z extent) in the world at *rotation*."""
        return rotated_dimensions(self.width, self.depth, rotation)

    def world_blocks(
        self, origin: tuple[int, int, int], rotation: int,
    ) -> Iterator[tuple[int, int, int, str, Mapping[str, Any] | None]]:
        """Template blocks placed at *origin* and rotated; facings follow the rotation."""
        ox, oy, oz = origin
        for b in self.blocks:
            rx, rz = rotate_offset(b.dx, b.dz, rotation)
            state = b.state
            if state and "facing" in state:
                state = {**state, "facing": rotate_facing(state["facing"], rotation)}
            yield (ox + rx, oy + b.dy, oz + rz, b.material, state)

    def world_cells(self, origin: tuple[int, int, int], rotation: int) -> list[tuple[int, int, int]]:
        return [(x, y, z) for x, y, z, _m, _s in self.world_blocks(origin, rotation)]


def box_template(
    name: str,
    width: int,
    depth: int,
    height: int,
    *,
    wall: str = "oak_planks",
    floor: str = "cobblestone",
    roof: str = "oak_slab",
    door_facing: str = "south",
) -> StructureTemplate:
    """A hollow rectangular hut: floor, four walls, roof and a two-high doorway."""
    if width < 3 or depth < 3 or height < 3:
        raise InvalidArgument("box templates need at least 3 blocks on every axis")

    door_x = width // 2
    door_z = depth - 1 if door_facing == "south" else 0
    blocks: list[TemplateBlock] = []
    for dy in range(height):
        for dz in range(depth):
            for dx in range(width):
                edge = dx in (0, width - 1) or dz in (0, depth - 1)
                if dy == 0:
                    blocks.append(TemplateBlock(dx, dy, dz, floor))
                elif dy == height - 1:
                    blocks.append(TemplateBlock(dx, dy, dz, roof))
                elif edge:
                    if dx == door_x and dz == door_z and dy in (1, 2):
                        continue
                    blocks.append(TemplateBlock(dx, dy, dz, wall))
    return StructureTemplate(name, width, depth, height, tuple(blocks), foundation_material=floor)


# ── Serialization ──────────────────────────────────────────────────


def template_to_dict(template: StructureTemplate) -> dict:
    return {
        "name": template.name,
        "width": template.width,
        "depth": template.depth,
        "height": template.height,
        "foundation_material": template.foundation_material,
        "blocks": [
            {"dx": b.dx, "dy": b.dy, "dz": b.dz, "material": b.material,
             **({"state": dict(b.state)} if b.state else {})}
            for b in template.blocks
        ],
    }


def parse_template(data: dict) -> StructureTemplate:
    return StructureTemplate(
        name=data["name"],
        width=int(data["width"]),
        depth=int(data["depth"]),
        height=int(data["height"]),
        foundation_material=data.get("foundation_material", "cobblestone"),
        blocks=tuple(
            TemplateBlock(
                int(b["dx"]), int(b["dy"]), int(b["dz"]), b["material"], b.get("state"),
            )
            for b in data.get("blocks", [])
        ),
    )
