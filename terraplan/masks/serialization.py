"""Mask / receipt serialization — JSON-safe dict conversion.

Persistence itself belongs to the host; these helpers only define the
record shape it stores and reloads.
"""

from __future__ import annotations

from .models import Bounds, CornerSample, PlacementReceipt, VolumeMask


def _bounds_to_list(b: Bounds) -> list[int]:
    return [b.min_x, b.max_x, b.min_y, b.max_y, b.min_z, b.max_z]


def mask_to_dict(mask: VolumeMask) -> dict:
    """Serialize a VolumeMask to a JSON-safe dict."""
    data = {
        "structure_id": mask.structure_id,
        "village_id": mask.village_id,
        "bounds": _bounds_to_list(mask.bounds),
        "timestamp": mask.timestamp,
    }
    if mask.occupancy is not None:
        data["occupancy"] = mask.occupancy.hex()
    return data


def parse_mask(data: dict) -> VolumeMask:
    """Parse a mask dict back into a VolumeMask."""
    b = Bounds(*data["bounds"])
    occupancy = data.get("occupancy")
    return VolumeMask(
        structure_id=data["structure_id"],
        village_id=data["village_id"],
        min_x=b.min_x, max_x=b.max_x,
        min_y=b.min_y, max_y=b.max_y,
        min_z=b.min_z, max_z=b.max_z,
        occupancy=bytes.fromhex(occupancy) if occupancy is not None else None,
        timestamp=data.get("timestamp", 0.0),
    )


def receipt_to_dict(receipt: PlacementReceipt) -> dict:
    """Serialize a PlacementReceipt to a JSON-safe dict."""
    return {
        "structure_id": receipt.structure_id,
        "village_id": receipt.village_id,
        "world_name": receipt.world_name,
        "bounds": _bounds_to_list(receipt.bounds),
        "origin": list(receipt.origin),
        "rotation": receipt.rotation,
        "dimensions": [receipt.effective_width, receipt.height, receipt.effective_depth],
        "foundation_corners": [
            {"x": c.x, "y": c.y, "z": c.z, "material": c.material}
            for c in receipt.foundation_corners
        ],
        "timestamp": receipt.timestamp,
    }


def parse_receipt(data: dict) -> PlacementReceipt:
    """Parse a receipt dict back into a PlacementReceipt."""
    width, height, depth = data["dimensions"]
    return PlacementReceipt(
        structure_id=data["structure_id"],
        village_id=data["village_id"],
        world_name=data["world_name"],
        bounds=Bounds(*data["bounds"]),
        origin=tuple(data["origin"]),
        rotation=data["rotation"],
        effective_width=width,
        effective_depth=depth,
        height=height,
        foundation_corners=tuple(
            CornerSample(c["x"], c["y"], c["z"], c["material"])
            for c in data["foundation_corners"]
        ),
        timestamp=data.get("timestamp", 0.0),
    )
