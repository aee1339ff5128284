"""Tests for volume masks, placement receipts and the chunk-bucketed mask index.

Validates:
  - Inclusive containment at every corner, and misses one unit outside
  - expand() identity / growth / negative-buffer rejection
  - contains_2d interval semantics and bitmap independence
  - Occupancy bitmaps built by from_cells agree with contains()
  - Receipt validation rules
  - Index chunk reachability, replacement, listeners and column queries
  - JSON conversion keeps bounds and occupancy intact
"""

from __future__ import annotations

import json
import unittest

from terraplan.errors import InvalidArgument
from terraplan.masks import (
    Bounds, CornerSample, MaskIndex, PlacementReceipt, VolumeMask, chunk_of,
    mask_to_dict, parse_mask, receipt_to_dict, parse_receipt,
)
from tests.terrain_fixture import make_mask, make_receipt


class TestVolumeMask(unittest.TestCase):
    """Containment and derived dimensions."""

    def setUp(self):
        self.mask = make_mask("hall", (10, 19, 60, 70, -5, 4))

    def test_dimensions(self):
        """Width/height/depth are inclusive extents."""
        self.assertEqual(self.mask.width, 10)
        self.assertEqual(self.mask.height, 11)
        self.assertEqual(self.mask.depth, 10)
        self.assertEqual(self.mask.volume, 1100)

    def test_contains_every_corner(self):
        """All eight corners are inside."""
        for x in (10, 19):
            for y in (60, 70):
                for z in (-5, 4):
                    self.assertTrue(self.mask.contains(x, y, z), (x, y, z))

    def test_misses_one_unit_outside(self):
        """Stepping one block past any face leaves the mask."""
        self.assertFalse(self.mask.contains(9, 65, 0))
        self.assertFalse(self.mask.contains(20, 65, 0))
        self.assertFalse(self.mask.contains(15, 59, 0))
        self.assertFalse(self.mask.contains(15, 71, 0))
        self.assertFalse(self.mask.contains(15, 65, -6))
        self.assertFalse(self.mask.contains(15, 65, 5))

    def test_inverted_bounds_rejected(self):
        """max < min on any axis raises InvalidArgument."""
        with self.assertRaises(InvalidArgument):
            make_mask("bad", (5, 4, 0, 1, 0, 1))
        with self.assertRaises(InvalidArgument):
            make_mask("bad", (0, 1, 3, 2, 0, 1))
        with self.assertRaises(InvalidArgument):
            make_mask("bad", (0, 1, 0, 1, 9, 8))

    def test_single_block_mask(self):
        """min == max on every axis is a valid one-block mask."""
        mask = make_mask("post", (0, 0, 0, 0, 0, 0))
        self.assertEqual(mask.volume, 1)
        self.assertTrue(mask.contains(0, 0, 0))


class TestExpand(unittest.TestCase):

    def setUp(self):
        self.mask = make_mask("hall", (0, 9, 64, 71, 0, 14))

    def test_zero_is_identity(self):
        """expand(0) returns the same instance."""
        self.assertIs(self.mask.expand(0), self.mask)

    def test_negative_rejected(self):
        with self.assertRaises(InvalidArgument):
            self.mask.expand(-1)

    def test_grows_every_face(self):
        """expand(n) grows each dimension by 2n and keeps identifiers."""
        grown = self.mask.expand(2)
        self.assertEqual(grown.width, self.mask.width + 4)
        self.assertEqual(grown.height, self.mask.height + 4)
        self.assertEqual(grown.depth, self.mask.depth + 4)
        self.assertEqual(grown.structure_id, "hall")
        self.assertEqual(grown.timestamp, self.mask.timestamp)
        self.assertTrue(grown.contains(-2, 62, -2))


class TestContains2d(unittest.TestCase):
    """Column test: X/Z inside and inclusive Y-interval overlap."""

    def setUp(self):
        self.mask = make_mask("tower", (0, 4, 60, 70, 0, 4))

    def test_touching_intervals_overlap(self):
        self.assertTrue(self.mask.contains_2d(2, 2, 55, 60))
        self.assertTrue(self.mask.contains_2d(2, 2, 70, 80))

    def test_disjoint_intervals(self):
        self.assertFalse(self.mask.contains_2d(2, 2, 50, 59))
        self.assertFalse(self.mask.contains_2d(2, 2, 71, 80))

    def test_interval_enclosing_mask(self):
        self.assertTrue(self.mask.contains_2d(0, 4, -64, 320))

    def test_column_outside_footprint(self):
        self.assertFalse(self.mask.contains_2d(5, 2, 60, 70))
        self.assertFalse(self.mask.contains_2d(2, -1, 60, 70))

    def test_ignores_bitmap(self):
        """An empty bitmap hides nothing from the coarse column test."""
        sparse = VolumeMask.from_cells("tower", "v", (0, 4, 60, 70, 0, 4), [])
        self.assertFalse(sparse.contains(2, 65, 2))
        self.assertTrue(sparse.contains_2d(2, 2, 60, 70))


class TestOccupancy(unittest.TestCase):

    def test_from_cells_matches_contains(self):
        """Only the given cells are occupied; the rest of the box is not."""
        cells = [(0, 0, 0), (2, 1, 3), (1, 2, 1)]
        mask = VolumeMask.from_cells("hut", "v", (0, 2, 0, 2, 0, 3), cells)
        for x in range(3):
            for y in range(3):
                for z in range(4):
                    self.assertEqual(mask.contains(x, y, z), (x, y, z) in cells, (x, y, z))

    def test_flattening_order(self):
        """Bit index is rel_x + width * (rel_z + depth * rel_y)."""
        mask = VolumeMask.from_cells("hut", "v", (10, 12, 5, 6, 20, 23), [(11, 6, 22)])
        idx = mask.occupancy_index(11, 6, 22)
        self.assertEqual(idx, 1 + 3 * (2 + 4 * 1))
        self.assertTrue(mask.occupancy[idx >> 3] >> (idx & 7) & 1)

    def test_oversized_bitmap_rejected(self):
        with self.assertRaises(InvalidArgument):
            VolumeMask("x", "v", 0, 1, 0, 1, 0, 1, occupancy=bytes(2))


class TestPlacementReceipt(unittest.TestCase):

    def test_valid_receipt(self):
        receipt = make_receipt()
        self.assertTrue(receipt.verify_foundation_corners())
        self.assertIn("house-1", receipt.summary())

    def test_air_corner_fails_verification(self):
        self.assertFalse(make_receipt(corner_material="air").verify_foundation_corners())
        self.assertFalse(make_receipt(corner_material="water").verify_foundation_corners())

    def test_corner_count_enforced(self):
        good = make_receipt()
        with self.assertRaises(InvalidArgument):
            PlacementReceipt(
                good.structure_id, good.village_id, good.world_name, good.bounds,
                good.origin, 0, 5, 6, 4, good.foundation_corners[:3],
            )

    def test_rotation_enforced(self):
        good = make_receipt()
        with self.assertRaises(InvalidArgument):
            PlacementReceipt(
                good.structure_id, good.village_id, good.world_name, good.bounds,
                good.origin, 45, 5, 6, 4, good.foundation_corners,
            )

    def test_non_positive_dimensions(self):
        good = make_receipt()
        with self.assertRaises(InvalidArgument):
            PlacementReceipt(
                good.structure_id, good.village_id, good.world_name, good.bounds,
                good.origin, 0, 0, 6, 4, good.foundation_corners,
            )

    def test_mask_from_receipt(self):
        mask = VolumeMask.from_receipt(make_receipt())
        self.assertEqual(mask.bounds, Bounds(100, 104, 65, 68, 200, 205))
        self.assertEqual(mask.timestamp, 1234.5)
        self.assertTrue(mask.is_full)


class TestMaskIndex(unittest.TestCase):

    def setUp(self):
        self.index = MaskIndex()

    def test_chunk_of_floors_negatives(self):
        self.assertEqual(chunk_of(-1), -1)
        self.assertEqual(chunk_of(-16), -1)
        self.assertEqual(chunk_of(-17), -2)
        self.assertEqual(chunk_of(15), 0)

    def test_mask_reachable_from_every_chunk(self):
        """A mask spanning chunk borders is listed in each chunk it touches."""
        mask = make_mask("wall", (-5, 20, 64, 70, 0, 5))
        self.index.add(mask)
        for cx in (-1, 0, 1):
            self.assertIn(mask, self.index.masks_in_chunk(cx, 0))
        self.assertEqual(self.index.masks_in_chunk(2, 0), ())
        self.assertEqual(self.index.masks_in_chunk(0, 1), ())

    def test_empty_chunk_is_empty_tuple(self):
        self.assertEqual(self.index.masks_in_chunk(100, -100), ())

    def test_duplicate_id_rejected(self):
        self.index.add(make_mask("a", (0, 1, 0, 1, 0, 1)))
        with self.assertRaises(InvalidArgument):
            self.index.add(make_mask("a", (5, 6, 0, 1, 5, 6)))

    def test_registration_order_kept(self):
        for name in ("c", "a", "b"):
            self.index.add(make_mask(name, (0, 1, 0, 1, 0, 1)))
        self.assertEqual([m.structure_id for m in self.index.masks()], ["c", "a", "b"])

    def test_remove(self):
        mask = make_mask("a", (0, 1, 0, 1, 0, 1))
        self.index.add(mask)
        self.assertIs(self.index.remove("a"), mask)
        self.assertIsNone(self.index.remove("a"))
        self.assertEqual(self.index.masks_in_chunk(0, 0), ())
        self.assertFalse(self.index.contains(0, 0, 0))

    def test_replace_moves_buckets(self):
        """Replacement drops the old footprint and indexes the new one."""
        self.index.add(make_mask("a", (0, 1, 0, 1, 0, 1)))
        old = self.index.replace("a", make_mask("a", (40, 41, 0, 1, 40, 41)))
        self.assertEqual(old.bounds.min_x, 0)
        self.assertFalse(self.index.contains(0, 0, 0))
        self.assertTrue(self.index.contains(40, 0, 40))
        self.assertEqual(len(self.index), 1)

    def test_listeners_see_add_and_remove(self):
        events = []
        self.index.subscribe(lambda event, mask: events.append((event, mask.structure_id)))
        self.index.add(make_mask("a", (0, 1, 0, 1, 0, 1)))
        self.index.remove("a")
        self.assertEqual(events, [("added", "a"), ("removed", "a")])

    def test_version_increments(self):
        before = self.index.version
        self.index.add(make_mask("a", (0, 1, 0, 1, 0, 1)))
        self.index.remove("a")
        self.assertEqual(self.index.version, before + 2)

    def test_column_hits_and_village_filter(self):
        self.index.add(make_mask("low", (0, 4, 50, 55, 0, 4), village_id="v1"))
        self.index.add(make_mask("high", (0, 4, 80, 90, 0, 4), village_id="v2"))
        hits = self.index.column_hits(2, 2, 60, 100)
        self.assertEqual([m.structure_id for m in hits], ["high"])
        self.assertEqual([m.structure_id for m in self.index.for_village("v1")], ["low"])


class TestSerialization(unittest.TestCase):

    def test_mask_json_keeps_occupancy(self):
        mask = VolumeMask.from_cells("hut", "v", (0, 2, 0, 2, 0, 2), [(1, 1, 1), (0, 2, 2)])
        data = json.loads(json.dumps(mask_to_dict(mask)))
        parsed = parse_mask(data)
        self.assertEqual(parsed, mask)
        self.assertEqual(parsed.occupancy, mask.occupancy)
        self.assertTrue(parsed.contains(1, 1, 1))
        self.assertFalse(parsed.contains(0, 0, 0))

    def test_full_mask_has_no_occupancy_key(self):
        self.assertNotIn("occupancy", mask_to_dict(make_mask("a", (0, 1, 0, 1, 0, 1))))

    def test_receipt_json(self):
        receipt = make_receipt()
        data = json.loads(json.dumps(receipt_to_dict(receipt)))
        self.assertEqual(data["dimensions"], [5, 4, 6])
        parsed = parse_receipt(data)
        self.assertEqual(parsed, receipt)
        self.assertIsInstance(parsed.foundation_corners[0], CornerSample)


if __name__ == "__main__":
    unittest.main()
