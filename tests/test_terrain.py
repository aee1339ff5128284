"""Tests for the surface solver, walkable graph and terrain classification.

Validates:
  - G(x, z) on flat ground, under canopy, through masks and on empty columns
  - nearest_walkable returns None when the foot cell is masked
  - The column cache is dropped when masks are added or removed, including
    while a scan of that column is in flight
  - Walkability uses |y - G| <= 1 and the expanded obstacle buffer
  - Neighbour generation: order, step limit, masked and obstacle columns
  - Material / column classification and foundation validation
"""

from __future__ import annotations

import threading
import unittest

from terraplan.masks import Bounds, MaskIndex
from terraplan.materials import is_vegetation
from terraplan.terrain import (
    DIRECTIONS, Classification, SiteValidator, SurfaceSolver, TerrainClassifier,
    WalkableGraph, classify_material, pack_column,
)
from terraplan.world import MemoryWorld
from tests.terrain_fixture import flat_world, make_mask, pond_world, ridge_world


class _PausingWorld(MemoryWorld):
    """Blocks the first solidity check of one cell until released."""

    def __init__(self, pause_at, **kwargs):
        super().__init__(**kwargs)
        self.pause_at = pause_at
        self.reached = threading.Event()
        self.release = threading.Event()

    def is_solid(self, x, y, z):
        if (x, y, z) == self.pause_at and not self.reached.is_set():
            self.reached.set()
            self.release.wait(5)
        return super().is_solid(x, y, z)


class TestSurfaceSolver(unittest.TestCase):
    """Ground-truth surface function."""

    def test_flat_ground(self):
        """Ground at 50 → G = 50, walkable foot level 51."""
        solver = SurfaceSolver(flat_world(50), MaskIndex())
        self.assertEqual(solver.get_surface_height(3, -7), 50)
        self.assertEqual(solver.nearest_walkable(3, -7), 51)

    def test_canopy_is_not_ground(self):
        """Leaves and tall grass above the ground are seen through."""
        world = flat_world()
        world.fill(0, 70, 0, 0, 72, 0, "minecraft:oak_leaves")
        world.put(1, 65, 0, "tall_grass")
        solver = SurfaceSolver(world, MaskIndex())
        self.assertEqual(solver.get_surface_height(0, 0), 64)
        self.assertEqual(solver.get_surface_height(1, 0), 64)

    def test_grass_block_is_ground(self):
        self.assertFalse(is_vegetation("grass_block"))
        self.assertTrue(is_vegetation("short_grass"))
        self.assertTrue(is_vegetation("large_fern"))

    def test_masked_block_skipped(self):
        """A block at 65 inside a 60..70 mask is skipped; the scan finds 40 below."""
        world = flat_world(40)
        world.put(0, 65, 0, "stone")
        index = MaskIndex([make_mask("tower", (-2, 2, 60, 70, -2, 2))])
        solver = SurfaceSolver(world, index)
        self.assertEqual(solver.get_surface_height(0, 0), 40)
        self.assertEqual(solver.nearest_walkable(0, 0), 41)

    def test_foot_cell_inside_mask(self):
        """Ground at 59 under a mask starting at 60 → no walkable cell."""
        index = MaskIndex([make_mask("hall", (-2, 2, 60, 70, -2, 2))])
        solver = SurfaceSolver(flat_world(59), index)
        self.assertEqual(solver.get_surface_height(0, 0), 59)
        self.assertIsNone(solver.nearest_walkable(0, 0))

    def test_y_hint_does_not_change_answer(self):
        solver = SurfaceSolver(flat_world(), MaskIndex())
        self.assertEqual(solver.nearest_walkable(0, 0, 200), 65)
        self.assertEqual(solver.nearest_walkable(0, 0, -50), solver.nearest_walkable(0, 0))

    def test_empty_column_falls_back_uncached(self):
        """No ground at all → min_height, and the fallback is not cached."""
        world = MemoryWorld(min_height=-64)
        solver = SurfaceSolver(world, MaskIndex())
        self.assertEqual(solver.get_surface_height(5, 5), -64)
        self.assertEqual(solver.cached_columns, 0)

    def test_cache_dropped_when_mask_changes(self):
        """Adding a mask over a cached column forces a fresh scan."""
        world = flat_world()
        index = MaskIndex()
        solver = SurfaceSolver(world, index)
        self.assertEqual(solver.get_surface_height(0, 0), 64)
        self.assertEqual(solver.cached_columns, 1)

        world.put(0, 65, 0, "stone")                      # edited behind the cache
        self.assertEqual(solver.get_surface_height(0, 0), 64)

        index.add(make_mask("shed", (0, 3, 80, 85, 0, 3)))
        self.assertEqual(solver.cached_columns, 0)
        self.assertEqual(solver.get_surface_height(0, 0), 65)

    def test_mask_added_during_scan(self):
        """A scan that races a mask registration never caches the hidden block."""
        world = _PausingWorld((0, 50, 0))
        world.put(0, 40, 0, "stone")
        world.put(0, 50, 0, "stone")
        index = MaskIndex()
        solver = SurfaceSolver(world, index)

        results = []
        worker = threading.Thread(target=lambda: results.append(solver.get_surface_height(0, 0)))
        worker.start()
        self.assertTrue(world.reached.wait(5))
        index.add(make_mask("tower", (-1, 1, 45, 55, -1, 1)))
        world.release.set()
        worker.join(5)

        self.assertEqual(results, [40])
        self.assertEqual(solver.get_surface_height(0, 0), 40)

    def test_invalidation_margin(self):
        """Columns one block outside the footprint are dropped too."""
        index = MaskIndex()
        solver = SurfaceSolver(flat_world(), index)
        for x in (-2, -1, 4, 5):
            solver.get_surface_height(x, 0)
        index.add(make_mask("shed", (0, 3, 80, 85, 0, 3)))
        self.assertEqual(solver.cached_columns, 2)        # x = -2 and x = 5 survive

    def test_pack_column_distinguishes_signs(self):
        self.assertNotEqual(pack_column(-1, 0), pack_column(0, -1))
        self.assertNotEqual(pack_column(1, -1), pack_column(-1, 1))


class TestWalkableGraph(unittest.TestCase):

    def setUp(self):
        self.world = flat_world()
        self.index = MaskIndex([make_mask("hall", (10, 14, 65, 70, 10, 14))])
        self.surface = SurfaceSolver(self.world, self.index)
        self.graph = WalkableGraph(self.surface, self.index, buffer=2)

    def test_obstacle_includes_buffer(self):
        self.assertTrue(self.graph.is_obstacle(8, 65, 12))
        self.assertTrue(self.graph.is_obstacle(16, 65, 12))
        self.assertFalse(self.graph.is_obstacle(7, 65, 12))
        self.assertFalse(self.graph.is_obstacle(17, 65, 12))

    def test_walkable_within_one_of_ground(self):
        self.assertTrue(self.graph.is_walkable(0, 65, 0))
        self.assertTrue(self.graph.is_walkable(0, 64, 0))
        self.assertFalse(self.graph.is_walkable(0, 66, 0))
        self.assertFalse(self.graph.is_walkable(0, 62, 0))
        self.assertFalse(self.graph.is_walkable(9, 65, 12))

    def test_flat_neighbours_in_direction_order(self):
        neighbours = self.graph.get_neighbors(0, 65, 0)
        self.assertEqual(neighbours, [(dx, 65, dz) for dx, dz in DIRECTIONS])

    def test_cliff_neighbour_excluded(self):
        """A column five blocks higher is not a neighbour."""
        self.world.set_ground(1, 0, 69)
        neighbours = self.graph.get_neighbors(0, 65, 0)
        self.assertEqual(len(neighbours), 7)
        self.assertNotIn((1, 70, 0), neighbours)

    def test_one_block_step_allowed(self):
        world = ridge_world()
        graph = WalkableGraph(SurfaceSolver(world, MaskIndex()), [])
        self.assertIn((10, 66, 0), graph.get_neighbors(9, 65, 0))

    def test_obstacle_neighbours_excluded(self):
        neighbours = self.graph.get_neighbors(7, 65, 12)
        self.assertNotIn((8, 65, 12), neighbours)
        self.assertIn((6, 65, 12), neighbours)

    def test_expanded_masks_computed_once(self):
        """Masks added after construction do not affect an existing graph."""
        self.index.add(make_mask("late", (30, 31, 65, 66, 30, 31)))
        self.assertEqual(self.graph.obstacle_count, 1)
        self.assertFalse(self.graph.is_obstacle(30, 65, 30))


class TestClassifier(unittest.TestCase):

    def test_material_classes(self):
        self.assertIs(classify_material("water"), Classification.FLUID)
        self.assertIs(classify_material("minecraft:lava"), Classification.FLUID)
        self.assertIs(classify_material("air"), Classification.BLOCKED)
        self.assertIs(classify_material("OAK_LEAVES"), Classification.BLOCKED)
        self.assertIs(classify_material("spruce_log"), Classification.BLOCKED)
        self.assertIs(classify_material("grass_block"), Classification.ACCEPTABLE)
        self.assertIs(classify_material("stone"), Classification.ACCEPTABLE)

    def test_pond_column_is_fluid(self):
        classifier = TerrainClassifier(SurfaceSolver(pond_world(), MaskIndex()))
        self.assertIs(classifier.classify(12, 12), Classification.FLUID)
        self.assertIs(classifier.classify(0, 0), Classification.ACCEPTABLE)

    def test_steep_neighbourhood(self):
        world = flat_world()
        world.set_ground(1, 1, 70)
        classifier = TerrainClassifier(SurfaceSolver(world, MaskIndex()))
        self.assertIs(classifier.classify(0, 0), Classification.STEEP)
        self.assertIs(classifier.classify(5, 5), Classification.ACCEPTABLE)


class TestSiteValidator(unittest.TestCase):

    def _validator(self, world: MemoryWorld) -> SiteValidator:
        return SiteValidator(TerrainClassifier(SurfaceSolver(world, MaskIndex())))

    def test_flat_site_passes(self):
        report = self._validator(flat_world()).validate(Bounds(0, 4, 65, 68, 0, 4))
        self.assertTrue(report.passed)
        self.assertEqual(report.solidity, 1.0)
        self.assertEqual(report.slope, 0.0)
        self.assertEqual(report.rejected, 0)

    def test_pond_site_fails(self):
        report = self._validator(pond_world()).validate(Bounds(8, 12, 65, 68, 8, 12))
        self.assertFalse(report.passed)
        self.assertGreater(report.counts[Classification.FLUID], 0)

    def test_sloped_site_fails(self):
        """A footprint across the ridge climb rises 2 blocks over 5."""
        report = self._validator(ridge_world()).validate(Bounds(7, 11, 65, 68, 0, 4))
        self.assertFalse(report.passed)
        self.assertAlmostEqual(report.slope, 0.4)

    def test_floor_below_raised_ground_lacks_support(self):
        """Columns whose ground rises above the floor do not count as solid."""
        report = self._validator(ridge_world()).validate(Bounds(12, 16, 68, 71, 0, 4))
        self.assertFalse(report.passed)
        self.assertAlmostEqual(report.solidity, 0.2)


if __name__ == "__main__":
    unittest.main()
