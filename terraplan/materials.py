"""Block material classification.

Materials are plain strings as reported by the host world, e.g.
``"minecraft:oak_leaves"`` or ``"OAK_LEAVES"``.  Every helper here
normalises to the bare lower-case id first, so hosts may use either form.
"""

from __future__ import annotations


AIR = "air"

AIR_MATERIALS = frozenset({"air", "cave_air", "void_air"})

FLUIDS = frozenset({"water", "lava", "bubble_column"})

# Flowering plants that the surface scan must see through
_TALL_FLOWERS = frozenset({"sunflower", "lilac", "rose_bush", "peony"})

# Ground that is passable but undesirable for roads
ROUGH_GROUND = frozenset({
    "sand", "red_sand", "gravel", "mud", "soul_sand", "soul_soil",
    "snow", "snow_block", "powder_snow", "clay",
})

# Present in the world but never collide with a walker
_NON_SOLID = frozenset({
    "short_grass", "grass", "tall_grass", "fern", "large_fern", "vine",
    "dead_bush", "dandelion", "poppy", "torch", "wall_torch", "snow",
    "sugar_cane", "seagrass", "tall_seagrass", "kelp", "kelp_plant",
}) | _TALL_FLOWERS


def normalize(material: str) -> str:
    """Return the bare lower-case id of *material* (namespace stripped)."""
    name = material.strip().lower()
    if ":" in name:
        name = name.split(":", 1)[1]
    return name


def is_air(material: str) -> bool:
    return normalize(material) in AIR_MATERIALS


def is_fluid(material: str) -> bool:
    return normalize(material) in FLUIDS


def is_vegetation(material: str) -> bool:
    """True for canopy and ground cover that never counts as ground.

    Leaves, every grass variant except ``grass_block``, ferns, vines and
    the tall flowering plants.
    """
    name = normalize(material)
    if "leaves" in name:
        return True
    if "grass" in name and name != "grass_block":
        return True
    if "fern" in name:
        return True
    return name == "vine" or name in _TALL_FLOWERS


def is_log(material: str) -> bool:
    name = normalize(material)
    return name.endswith("_log") or name.endswith("_stem") or name.endswith("_wood")


def is_rough(material: str) -> bool:
    """Low-desirability ground: passable, but roads should avoid it."""
    name = normalize(material)
    return name in ROUGH_GROUND or is_vegetation(name)


def is_solid_material(material: str) -> bool:
    """Default solidity rule for hosts that do not report their own.

    Leaves are solid (you can stand on them); the surface scan filters them
    out separately through :func:`is_vegetation`.
    """
    name = normalize(material)
    if name in AIR_MATERIALS or name in FLUIDS:
        return False
    return name not in _NON_SOLID and not name.endswith("_flower")
