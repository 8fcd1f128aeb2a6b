"""Unit tests for OriginRebaser.

Test cases include:
- Below-threshold checks have no side effects at all
- Cartographic rebase: new origin at the viewer, floating origin reset
- Bounding-volume rebase: transforms kept, floating origin advanced
- Rebasing disabled globally or inside sub-levels
"""

import unittest

import numpy as np

from georef.reference_frame.config import GeoreferenceConfig
from georef.reference_frame.georeference import Georeference
from georef.reference_frame.types import (
    GeodeticPosition,
    GeoreferenceListener,
    OriginPlacement,
    SubLevel,
    WorldOriginShifter,
)


class CountingListener(GeoreferenceListener):
    def __init__(self) -> None:
        self.count = 0

    def on_georeference_updated(self, georeference) -> None:
        self.count += 1


class RecordingShifter(WorldOriginShifter):
    def __init__(self) -> None:
        self.deltas = []

    def shift_world_origin(self, delta) -> None:
        self.deltas.append(np.array(delta))


def _make_georeference(**changes):
    config = GeoreferenceConfig(engine_units_per_meter=1.0).with_changes(**changes)
    shifter = RecordingShifter()
    georeference = Georeference(config, world_origin_shifter=shifter)
    georeference.initialize()
    listener = CountingListener()
    georeference.add_listener(listener)
    return georeference, listener, shifter


class TestBelowThreshold(unittest.TestCase):
    """Test cases for viewers close to the floating origin."""

    def test_no_side_effects(self) -> None:
        """Test a 50 m viewer against a 10 km threshold."""
        georeference, listener, shifter = _make_georeference()
        before = georeference.transforms

        rebased = georeference.rebaser.check_and_rebase([50.0, 0.0, 0.0])

        self.assertFalse(rebased)
        self.assertIs(georeference.transforms, before)
        self.assertEqual(listener.count, 0)
        self.assertEqual(shifter.deltas, [])
        self.assertEqual(georeference.rebaser.rebase_count, 0)

    def test_exactly_at_threshold(self) -> None:
        """Test that the threshold distance itself does not trigger a rebase."""
        georeference, listener, _ = _make_georeference(max_world_origin_distance_from_viewer=300.0)

        self.assertFalse(georeference.rebaser.check_and_rebase([0.0, 300.0, 0.0]))
        self.assertEqual(listener.count, 0)


class TestCartographicRebase(unittest.TestCase):
    """Test cases for rebasing in cartographic placement."""

    def setUp(self) -> None:
        self.georeference, self.listener, self.shifter = _make_georeference()
        self.viewer = np.array([20000.0, -5000.0, 120.0])

    def test_origin_moves_to_viewer(self) -> None:
        """Test new origin, floating origin reset, one notification and one shift."""
        expected_origin = self.georeference.transform_engine_to_geodetic(self.viewer)

        self.assertTrue(self.georeference.rebaser.check_and_rebase(self.viewer))

        np.testing.assert_allclose(
            self.georeference.origin.to_array(), expected_origin, atol=1e-12
        )
        np.testing.assert_array_equal(self.georeference.floating_origin, [0.0, 0.0, 0.0])
        self.assertEqual(self.listener.count, 1)
        self.assertEqual(len(self.shifter.deltas), 1)
        np.testing.assert_array_equal(self.shifter.deltas[0], self.viewer)
        self.assertEqual(self.georeference.rebaser.rebase_count, 1)

    def test_viewer_returns_to_engine_origin(self) -> None:
        """Test that the viewer's world point is near zero after the rebase."""
        viewer_ecef = self.georeference.transform_engine_to_ecef(self.viewer)

        self.georeference.rebaser.check_and_rebase(self.viewer)

        np.testing.assert_allclose(
            self.georeference.transform_ecef_to_engine(viewer_ecef), [0.0, 0.0, 0.0], atol=1e-3
        )


class TestBoundingVolumeRebase(unittest.TestCase):
    """Test cases for rebasing in bounding-volume placement."""

    def setUp(self) -> None:
        self.georeference, self.listener, self.shifter = _make_georeference(
            origin_placement=OriginPlacement.BOUNDING_VOLUME_ORIGIN
        )

    def test_floating_origin_advances(self) -> None:
        """Test that the origin is kept and only the floating origin moves."""
        before = self.georeference.transforms
        origin = self.georeference.origin
        viewer = np.array([15000.0, 0.0, 0.0])
        viewer_ecef = self.georeference.transform_engine_to_ecef(viewer)

        self.assertTrue(self.georeference.rebaser.check_and_rebase(viewer))

        self.assertIs(self.georeference.transforms, before)
        self.assertEqual(self.georeference.origin, origin)
        np.testing.assert_array_equal(self.georeference.floating_origin, viewer)
        self.assertEqual(self.listener.count, 1)
        self.assertEqual(len(self.shifter.deltas), 1)
        np.testing.assert_allclose(
            self.georeference.transform_engine_to_ecef([0.0, 0.0, 0.0]), viewer_ecef, atol=1e-9
        )

    def test_repeated_rebases_accumulate(self) -> None:
        """Test that successive rebases add up in the floating origin."""
        self.georeference.rebaser.check_and_rebase([15000.0, 0.0, 0.0])
        self.georeference.rebaser.check_and_rebase([0.0, 12000.0, 0.0])

        np.testing.assert_array_equal(
            self.georeference.floating_origin, [15000.0, 12000.0, 0.0]
        )
        np.testing.assert_array_equal(
            self.georeference.transform_engine_to_engine_absolute([1.0, 1.0, 1.0]),
            [15001.0, 12001.0, 1.0],
        )
        self.assertEqual(self.georeference.rebaser.rebase_count, 2)


class TestRebaseDisabled(unittest.TestCase):
    """Test cases for configurations that disable rebasing."""

    def test_keep_near_viewer_off(self) -> None:
        """Test that rebasing can be switched off."""
        georeference, listener, shifter = _make_georeference(keep_world_origin_near_viewer=False)

        self.assertFalse(georeference.rebaser.enabled)
        self.assertFalse(georeference.rebaser.check_and_rebase([1.0e6, 0.0, 0.0]))
        self.assertEqual((listener.count, shifter.deltas), (0, []))

    def test_inside_sub_level(self) -> None:
        """Test that rebasing stops inside a sub-level when configured."""
        level = SubLevel("site", GeodeticPosition(-105.25737, 39.736401, 2250.0))
        georeference, listener, shifter = _make_georeference(
            sub_levels=(level,), origin_rebase_inside_sub_levels=False
        )
        self.assertTrue(georeference.rebaser.enabled)

        georeference.sub_levels.select_by_index(0)
        count_after_switch = listener.count

        self.assertFalse(georeference.rebaser.enabled)
        self.assertFalse(georeference.rebaser.check_and_rebase([1.0e6, 0.0, 0.0]))
        self.assertEqual(listener.count, count_after_switch)
        self.assertEqual(shifter.deltas, [])

    def test_inside_sub_level_allowed(self) -> None:
        """Test that rebasing continues inside a sub-level by default."""
        level = SubLevel("site", GeodeticPosition(-105.25737, 39.736401, 2250.0))
        georeference, _, shifter = _make_georeference(sub_levels=(level,))
        georeference.sub_levels.select_by_index(0)

        self.assertTrue(georeference.rebaser.check_and_rebase([1.0e6, 0.0, 0.0]))
        self.assertEqual(len(shifter.deltas), 1)


if __name__ == "__main__":
    unittest.main()
