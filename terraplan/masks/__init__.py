"""Masks — occupied structure volumes and their spatial index.

Submodules:
  models        VolumeMask, PlacementReceipt, CornerSample, Bounds.
  index         Chunk-bucketed MaskIndex with copy-on-write publication.
  serialization JSON conversion (mask_to_dict, parse_mask, receipt_to_dict, parse_receipt).
"""

from .models import Bounds, VolumeMask, PlacementReceipt, CornerSample, VALID_ROTATIONS
from .index import MaskIndex, chunk_of
from .serialization import mask_to_dict, parse_mask, receipt_to_dict, parse_receipt

__all__ = [
    # Models
    "Bounds", "VolumeMask", "PlacementReceipt", "CornerSample", "VALID_ROTATIONS",
    # Index
    "MaskIndex", "chunk_of",
    # Serialization
    "mask_to_dict", "parse_mask", "receipt_to_dict", "parse_receipt",
]
