"""Placement — rotated footprints, placement queues and the commit pipeline.

Submodules:
  models        BlockEntry, PlacementQueue, QueueStatus, PipelineConfig and constants.
  helper        Rotated AABBs, cell rotation and spacing collision checks.
  templates     StructureTemplate, rotation into world space, JSON conversion.
  pipeline      PlacementPipeline: async prepare, batched single-thread commit.
"""

from .models import (
    BlockEntry, ConstructionProgress, PlacementQueue, QueueStatus, PipelineConfig,
)
from .helper import (
    compute_rotated_aabb, check_rotated_aabb_collision, colliding_masks,
    rotate_offset, rotated_dimensions, footprint_polygon,
)
from .templates import (
    StructureTemplate, TemplateBlock, box_template, rotate_facing,
    template_to_dict, parse_template,
)
from .pipeline import PlacementPipeline, order_entries

__all__ = [
    # Models
    "BlockEntry", "ConstructionProgress", "PlacementQueue", "QueueStatus", "PipelineConfig",
    # Helper
    "compute_rotated_aabb", "check_rotated_aabb_collision", "colliding_masks",
    "rotate_offset", "rotated_dimensions", "footprint_polygon",
    # Templates
    "StructureTemplate", "TemplateBlock", "box_template", "rotate_facing",
    "template_to_dict", "parse_template",
    # Pipeline
    "PlacementPipeline", "order_entries",
]
