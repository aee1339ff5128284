"""Terrain classification and foundation checks for structure siting.

Ground is read through the surface solver, so columns already covered by
a registered structure are judged by the natural ground beneath it.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum

from terraplan.config import WORLD_RULES
from terraplan.masks.models import Bounds
from terraplan.materials import is_air, is_fluid, is_log, normalize

from .surface import SurfaceSolver


log = logging.getLogger(__name__)


class Classification(Enum):
    ACCEPTABLE = "acceptable"
    FLUID = "fluid"          # water, lava: never built on
    STEEP = "steep"          # height range in the 3×3 neighbourhood too large
    BLOCKED = "blocked"      # air, leaves, logs: no foundation support


def classify_material(material: str) -> Classification:
    """Classify a single foundation block by material alone."""
    if is_fluid(material):
        return Classification.FLUID
    name = normalize(material)
    if is_air(name) or "leaves" in name or is_log(name):
        return Classification.BLOCKED
    return Classification.ACCEPTABLE


class TerrainClassifier:
    """Column classification with slope detection."""

    def __init__(
        self,
        surface: SurfaceSolver,
        *,
        max_slope_delta: int = WORLD_RULES.max_slope_delta,
    ) -> None:
        self.surface = surface
        self.max_slope_delta = max_slope_delta

    def classify(self, x: int, z: int) -> Classification:
        world = self.surface.world
        ground_y = self.surface.get_surface_height(x, z)

        # Fluid sitting on top of the ground disqualifies the column
        above = world.block_at(x, ground_y + 1, z)
        if is_fluid(above):
            return Classification.FLUID

        material_class = classify_material(world.block_at(x, ground_y, z))
        if material_class is not Classification.ACCEPTABLE:
            return material_class

        heights = [
            self.surface.get_surface_height(x + dx, z + dz)
            for dx in (-1, 0, 1)
            for dz in (-1, 0, 1)
        ]
        if max(heights) - min(heights) > self.max_slope_delta:
            return Classification.STEEP
        return Classification.ACCEPTABLE


@dataclass
class SiteReport:
    """Outcome of a foundation check under one candidate footprint."""

    passed: bool
    solidity: float
    slope: float
    counts: Counter = field(default_factory=Counter)

    @property
    def rejected(self) -> int:
        return sum(n for c, n in self.counts.items() if c is not Classification.ACCEPTABLE)


class SiteValidator:
    """Checks foundation solidity, slope and terrain class under a footprint."""

    def __init__(
        self,
        classifier: TerrainClassifier,
        *,
        min_solidity: float = WORLD_RULES.min_foundation_solidity,
        max_slope: float = WORLD_RULES.max_foundation_slope,
    ) -> None:
        self.classifier = classifier
        self.min_solidity = min_solidity
        self.max_slope = max_slope

    def validate(self, bounds: Bounds) -> SiteReport:
        surface = self.classifier.surface
        world = surface.world
        foundation_y = bounds.min_y - 1

        counts: Counter = Counter()
        solid = 0
        total = 0
        heights: list[int] = []

        for x in range(bounds.min_x, bounds.max_x + 1):
            for z in range(bounds.min_z, bounds.max_z + 1):
                total += 1
                cls = self.classifier.classify(x, z)
                counts[cls] += 1
                if cls is not Classification.ACCEPTABLE:
                    continue
                ground_y = surface.get_surface_height(x, z)
                heights.append(ground_y)
                # Foundation fill covers shallow dips, so count the column
                # as supported when its ground lies at or below the floor.
                if ground_y <= foundation_y and world.is_solid(x, ground_y, z):
                    solid += 1

        span = max(bounds.max_x - bounds.min_x + 1, bounds.max_z - bounds.min_z + 1)
        slope = (max(heights) - min(heights)) / span if heights else 0.0
        solidity = solid / total if total else 0.0
        no_rejects = all(
            n == 0 for c, n in counts.items() if c is not Classification.ACCEPTABLE
        )
        passed = solidity >= self.min_solidity and slope <= self.max_slope and no_rejects

        report = SiteReport(passed=passed, solidity=solidity, slope=slope, counts=counts)
        if not passed:
            log.debug("Site rejected %s: solidity=%.2f (min %.2f), slope=%.3f (max %.3f), "
                      "rejected_columns=%d",
                      tuple(bounds), solidity, self.min_solidity,
                      slope, self.max_slope, report.rejected)
        return report
