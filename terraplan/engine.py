"""Siting engine — end-to-end structure siting, construction and road building.

Data flow:
  1. ``find_site``: for each candidate column and seeded rotation, compute
     the rotated bounds at G + 1, then reject on boundary containment,
     spacing collision (registered masks and pending reservations) and
     foundation validation.
  2. ``build_structure``: rotate the template into world space, add
     foundation fill and site clearing, prepare + submit a placement
     queue and reserve the bounds.
  3. ``tick`` (world thread): commit one batch per active queue.  When a
     structure queue completes, record a placement receipt and register
     the structure's volume mask; the surface cache under it is dropped
     by the index subscription.
  4. ``connect``: plan a path between two registered structures, smooth
     it and submit the paving blocks through the same pipeline.  Paving
     and cancelled builds change ground without a mask event, so their
     columns are dropped from the surface cache directly.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from shapely.geometry.base import BaseGeometry

from terraplan.config import WORLD_RULES
from terraplan.errors import InvalidArgument
from terraplan.masks.index import MaskIndex
from terraplan.masks.models import (
    VALID_ROTATIONS, Bounds, CornerSample, PlacementReceipt, VolumeMask,
)
from terraplan.materials import AIR, is_air
from terraplan.pathing.models import PathConfig, PathDescriptor
from terraplan.pathing.network import PathPlanner
from terraplan.pathing.smoothing import (
    SLAB_EVERY, SLAB_MATERIAL, STAIR_MATERIAL, path_surface_entries, smooth_path,
)
from terraplan.placement.helper import colliding_masks, footprint_polygon
from terraplan.placement.models import PipelineConfig, PlacementQueue
from terraplan.placement.pipeline import PlacementPipeline
from terraplan.placement.templates import StructureTemplate
from terraplan.terrain.classifier import SiteReport, SiteValidator, TerrainClassifier
from terraplan.terrain.surface import INVALIDATION_MARGIN, SurfaceSolver
from terraplan.world import World


log = logging.getLogger(__name__)


@dataclass
class EngineConfig:
    """Siting engine parameters; sub-configs default from the shared world rules."""

    chunk_size: int = WORLD_RULES.chunk_size
    spacing_buffer: int = WORLD_RULES.spacing_buffer
    clear_site: bool = True                  # replace terrain inside the bounds with air
    path_material: str = "dirt_path"
    stair_material: str = STAIR_MATERIAL
    slab_material: str = SLAB_MATERIAL
    slab_every: int = SLAB_EVERY
    path: PathConfig = field(default_factory=PathConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)


@dataclass(frozen=True)
class SitePlan:
    """An accepted site: where and how a template will be built."""

    template_name: str
    origin: tuple[int, int, int]
    rotation: int
    bounds: Bounds
    report: SiteReport = field(compare=False)


@dataclass
class _Reservation:
    structure_id: str
    village_id: str
    template: StructureTemplate
    plan: SitePlan
    cells: list[tuple[int, int, int]]
    mask: VolumeMask


class SitingEngine:
    """Owns the mask index, surface solver, placement pipeline and path planner.

    Construct it on the world thread; that thread becomes the only one
    allowed to call :meth:`tick`.
    """

    def __init__(self, world: World, config: EngineConfig | None = None) -> None:
        self.world = world
        self.config = config or EngineConfig()
        cfg = self.config

        self.index = MaskIndex(chunk_size=cfg.chunk_size)
        self.surface = SurfaceSolver(world, self.index)
        self.classifier = TerrainClassifier(self.surface)
        self.validator = SiteValidator(self.classifier)
        self.pipeline = PlacementPipeline(world, cfg.pipeline)
        self.planner = PathPlanner(world, self.index, cfg.path, surface=self.surface)

        self._receipts: dict[str, PlacementReceipt] = {}
        self._reservations: dict[str, _Reservation] = {}     # queue_id → reservation
        self._paving: dict[str, tuple[int, int, int, int]] = {}   # queue_id → X/Z extent

        self.pipeline.on_complete(self._on_queue_complete)
        self.pipeline.on_cancel(self._on_queue_cancelled)

    # ── Siting ─────────────────────────────────────────────────────

    def find_site(
        self,
        template: StructureTemplate,
        candidates: Iterable[Sequence[int]],
        *,
        village_id: str,
        seed: int,
        boundary: BaseGeometry | None = None,
    ) -> SitePlan | None:
        """First acceptable site among *candidates* (``(x, z)`` or ``(x, y, z)``).

        Rotations are tried in an order fixed by *seed*.  Returns None when
        every candidate is rejected.
        """
        rotations = list(VALID_ROTATIONS)
        random.Random(seed).shuffle(rotations)
        buffer = self.config.spacing_buffer
        tried = 0

        for candidate in candidates:
            x, z = candidate[0], candidate[-1]
            origin = (x, self.surface.get_surface_height(x, z) + 1, z)
            for rotation in rotations:
                tried += 1
                bounds = template.bounds_at(origin, rotation)

                if boundary is not None and not boundary.covers(footprint_polygon(bounds)):
                    log.debug("Site %s rot=%d rejected: outside boundary", origin, rotation)
                    continue
                hits = colliding_masks(bounds, self._nearby_masks(bounds, buffer), buffer)
                if hits:
                    log.debug("Site %s rot=%d rejected: too close to %s",
                              origin, rotation, hits[0].structure_id)
                    continue
                report = self.validator.validate(bounds)
                if not report.passed:
                    continue

                plan = SitePlan(template.name, origin, rotation, bounds, report)
                log.info("Structure sited: %s for village %s at %s rot=%d "
                         "(solidity=%.2f slope=%.3f, %d placements tried)",
                         template.name, village_id, origin, rotation,
                         report.solidity, report.slope, tried)
                return plan

        log.info("No site found for %s in village %s after %d placements",
                 template.name, village_id, tried)
        return None

    def _nearby_masks(self, bounds: Bounds, buffer: int) -> list[VolumeMask]:
        """Registered and reserved masks whose chunks touch the buffered bounds."""
        cs = self.index.chunk_size
        seen: dict[str, VolumeMask] = {}
        for cx in range((bounds.min_x - buffer) // cs, (bounds.max_x + buffer) // cs + 1):
            for cz in range((bounds.min_z - buffer) // cs, (bounds.max_z + buffer) // cs + 1):
                for mask in self.index.masks_in_chunk(cx, cz):
                    seen.setdefault(mask.structure_id, mask)
        nearby = list(seen.values())
        nearby.extend(r.mask for r in list(self._reservations.values()))
        return nearby

    # ── Construction ───────────────────────────────────────────────

    def build_structure(
        self,
        template: StructureTemplate,
        plan: SitePlan,
        structure_id: str,
        village_id: str,
        seed: int,
    ) -> PlacementQueue:
        """Queue the template's blocks at *plan* and reserve its bounds.

        Raises
        ------
        InvalidArgument
            If *structure_id* is already registered or under construction.
        """
        if structure_id in self.index or any(
            r.structure_id == structure_id for r in self._reservations.values()
        ):
            raise InvalidArgument(f"Structure '{structure_id}' already exists")

        blocks = list(template.world_blocks(plan.origin, plan.rotation))
        cells = [(x, y, z) for x, y, z, _m, _s in blocks]
        blocks.extend(self._foundation_blocks(template, plan))
        if self.config.clear_site:
            blocks.extend(self._clearing_blocks(plan.bounds, set(cells)))

        queue = self.pipeline.prepare_queue(structure_id, blocks, seed)
        mask = VolumeMask.from_bounds(structure_id, village_id, plan.bounds)
        self._reservations[queue.queue_id] = _Reservation(
            structure_id, village_id, template, plan, cells, mask,
        )
        return self.pipeline.submit(queue)

    def _foundation_blocks(
        self, template: StructureTemplate, plan: SitePlan,
    ) -> list[tuple[int, int, int, str, None]]:
        """Fill from the ground up to the floor under every footprint column."""
        b = plan.bounds
        floor_y = plan.origin[1]
        fill = []
        for x in range(b.min_x, b.max_x + 1):
            for z in range(b.min_z, b.max_z + 1):
                ground = self.surface.get_surface_height(x, z)
                for y in range(ground + 1, floor_y):
                    fill.append((x, y, z, template.foundation_material, None))
        return fill

    def _clearing_blocks(
        self, bounds: Bounds, cells: set[tuple[int, int, int]],
    ) -> list[tuple[int, int, int, str, None]]:
        """Air writes for terrain poking into the structure's volume."""
        clearing = []
        for y in range(bounds.min_y, bounds.max_y + 1):
            for x in range(bounds.min_x, bounds.max_x + 1):
                for z in range(bounds.min_z, bounds.max_z + 1):
                    if (x, y, z) not in cells and not is_air(self.world.block_at(x, y, z)):
                        clearing.append((x, y, z, AIR, None))
        return clearing

    def _on_queue_complete(self, queue: PlacementQueue) -> None:
        reservation = self._reservations.pop(queue.queue_id, None)
        if reservation is None:
            self._release_paving(queue.queue_id)
            return

        plan = reservation.plan
        b = plan.bounds
        width, depth = reservation.template.dimensions(plan.rotation)
        fy = b.min_y - 1
        corners = tuple(
            CornerSample(x, fy, z, self.world.block_at(x, fy, z))
            for x, z in ((b.min_x, b.min_z), (b.max_x, b.min_z),
                         (b.max_x, b.max_z), (b.min_x, b.max_z))
        )
        receipt = PlacementReceipt(
            structure_id=reservation.structure_id,
            village_id=reservation.village_id,
            world_name=self.world.name,
            bounds=b,
            origin=plan.origin,
            rotation=plan.rotation,
            effective_width=width,
            effective_depth=depth,
            height=reservation.template.height,
            foundation_corners=corners,
            timestamp=time.time(),
        )
        mask = VolumeMask.from_cells(
            reservation.structure_id, reservation.village_id, b, reservation.cells,
            timestamp=receipt.timestamp,
        )
        self.index.replace(reservation.structure_id, mask)
        self._receipts[reservation.structure_id] = receipt

        log.info("Structure placed: %s", receipt.summary())
        if not receipt.verify_foundation_corners():
            log.warning("Foundation corners not fully supported for %s: %s",
                        receipt.structure_id, [c.material for c in corners])

    def _on_queue_cancelled(self, queue: PlacementQueue) -> None:
        reservation = self._reservations.pop(queue.queue_id, None)
        if reservation is None:
            self._release_paving(queue.queue_id)
            return
        # Blocks committed before the cancel stay in the world
        b = reservation.plan.bounds
        self._invalidate_columns(b.min_x, b.max_x, b.min_z, b.max_z)
        log.warning("Construction of %s abandoned: %s",
                    reservation.structure_id, queue.cancel_reason)

    def _release_paving(self, queue_id: str) -> None:
        extent = self._paving.pop(queue_id, None)
        if extent is not None:
            self._invalidate_columns(*extent)

    def _invalidate_columns(self, min_x: int, max_x: int, min_z: int, max_z: int) -> None:
        """Drop cached ground heights for columns written without a mask change."""
        m = INVALIDATION_MARGIN
        dropped = self.surface.invalidate_region(min_x - m, max_x + m, min_z - m, max_z + m)
        log.debug("Surface cache: dropped %d columns in x=%d..%d z=%d..%d",
                  dropped, min_x, max_x, min_z, max_z)

    # ── Roads ──────────────────────────────────────────────────────

    def connect(self, structure_a: str, structure_b: str, seed: int) -> PathDescriptor | None:
        """Plan and queue a road between two registered structures."""
        mask_a = self.index.get(structure_a)
        mask_b = self.index.get(structure_b)
        if mask_a is None or mask_b is None:
            missing = structure_a if mask_a is None else structure_b
            raise InvalidArgument(f"Structure '{missing}' is not registered")

        start = self._approach_point(mask_a, mask_b)
        end = self._approach_point(mask_b, mask_a)
        path = self.planner.plan(start, end, seed)
        if path is None:
            log.info("No road between %s and %s (seed=%d)", structure_a, structure_b, seed)
            return None

        cfg = self.config
        cosmetics = smooth_path(
            path,
            stair_material=cfg.stair_material,
            slab_material=cfg.slab_material,
            slab_every=cfg.slab_every,
        )
        entries = path_surface_entries(path, cfg.path_material, cosmetics)
        queue = self.pipeline.prepare_queue(f"path:{structure_a}->{structure_b}", entries, seed)
        xs = [x for x, _y, _z in path.blocks]
        zs = [z for _x, _y, z in path.blocks]
        self._paving[queue.queue_id] = (min(xs), max(xs), min(zs), max(zs))
        self.pipeline.submit(queue)
        return path

    def _approach_point(self, mask: VolumeMask, other: VolumeMask) -> tuple[int, int, int]:
        """Column just outside *mask*'s clearance buffer, on the side facing *other*."""
        gap = self.config.path.obstacle_buffer + 1
        cx = (mask.min_x + mask.max_x) // 2
        cz = (mask.min_z + mask.max_z) // 2
        dx = (other.min_x + other.max_x) // 2 - cx
        dz = (other.min_z + other.max_z) // 2 - cz
        if abs(dx) >= abs(dz):
            x = mask.max_x + gap if dx >= 0 else mask.min_x - gap
            return (x, mask.min_y, cz)
        z = mask.max_z + gap if dz >= 0 else mask.min_z - gap
        return (cx, mask.min_y, z)

    # ── Registry ───────────────────────────────────────────────────

    def receipt(self, structure_id: str) -> PlacementReceipt | None:
        return self._receipts.get(structure_id)

    def restore(self, receipts: Iterable[PlacementReceipt]) -> int:
        """Register masks for receipts loaded from persistence.  Returns the count."""
        restored = 0
        for receipt in receipts:
            self.index.replace(receipt.structure_id, VolumeMask.from_receipt(receipt))
            self._receipts[receipt.structure_id] = receipt
            restored += 1
        return restored

    def replace_structure(self, structure_id: str, new_mask: VolumeMask) -> VolumeMask | None:
        """Supersede a structure's mask; returns the old one."""
        old = self.index.replace(structure_id, new_mask)
        log.info("Structure mask replaced: %s", new_mask.summary())
        return old

    def remove_structure(self, structure_id: str) -> VolumeMask | None:
        self._receipts.pop(structure_id, None)
        return self.index.remove(structure_id)

    # ── World thread ───────────────────────────────────────────────

    def tick(self) -> int:
        """Commit one batch of every active queue; world thread only."""
        return self.pipeline.commit_step()

    def run_until_idle(self, max_ticks: int = 10_000) -> int:
        """Tick until no queue is active.  Returns the number of ticks run."""
        ticks = 0
        while self.pipeline.active_queue_count() and ticks < max_ticks:
            self.tick()
            ticks += 1
        return ticks

    def shutdown(self) -> None:
        self.pipeline.shutdown()
