"""Unit tests for the Georeference origin authority.

Test cases include:
- The Boulder origin example (origin -> ECEF -> geodetic)
- Validate-before-commit and notification-exactly-once
- Engine / engine-absolute / georeferenced / ECEF / geodetic conversions
- Single-precision convenience twins
- Bounding-volume origin placement
- Local frames, rotators and object matrices
- Lifecycle (initialize, tick, on_config_changed)
"""

import gc
import unittest

import numpy as np

from georef.coords.ellipsoid import Ellipsoid
from georef.coords.frames import FrameType
from georef.reference_frame.config import GeoreferenceConfig
from georef.reference_frame.georeference import Georeference, TickResult
from georef.reference_frame.types import (
    BoundingVolumeProvider,
    EcefBoundingBox,
    GeodeticPosition,
    GeoreferenceListener,
    OriginPlacement,
    WorldOriginShifter,
)

BOULDER = (-105.25737, 39.736401, 2250.0)


class RecordingListener(GeoreferenceListener):
    """Listener that records the origin seen at each notification."""

    def __init__(self) -> None:
        self.origins = []

    def on_georeference_updated(self, georeference) -> None:
        self.origins.append(georeference.origin)


class RecordingShifter(WorldOriginShifter):
    def __init__(self) -> None:
        self.deltas = []

    def shift_world_origin(self, delta) -> None:
        self.deltas.append(np.array(delta))


class BoxProvider(BoundingVolumeProvider):
    def __init__(self, box) -> None:
        self.box = box

    def get_bounding_volume(self):
        return self.box


def _box_around(llh, half_size: float) -> EcefBoundingBox:
    center = Ellipsoid.wgs84().geodetic_to_ecef(*llh)
    return EcefBoundingBox(center - half_size, center + half_size)


class TestSetOrigin(unittest.TestCase):
    """Test cases for setting the origin."""

    def setUp(self) -> None:
        self.georeference = Georeference(GeoreferenceConfig(engine_units_per_meter=1.0))
        self.listener = RecordingListener()
        self.georeference.add_listener(self.listener)

    def test_boulder_example(self) -> None:
        """Test that the georeferenced origin converts back to the set origin."""
        self.georeference.set_origin(*BOULDER)

        ecef = self.georeference.transform_georeferenced_to_ecef([0.0, 0.0, 0.0])
        llh = self.georeference.transform_ecef_to_geodetic(ecef)

        self.assertAlmostEqual(llh[0], BOULDER[0], delta=1e-7)
        self.assertAlmostEqual(llh[1], BOULDER[1], delta=1e-7)
        self.assertAlmostEqual(llh[2], BOULDER[2], delta=1e-3)

    def test_notifies_each_listener_once(self) -> None:
        """Test that one set_origin call notifies every listener exactly once."""
        other = RecordingListener()
        self.georeference.add_listener(other)

        self.georeference.set_origin(8.54, 47.37, 400.0)

        self.assertEqual(len(self.listener.origins), 1)
        self.assertEqual(len(other.origins), 1)

    def test_listener_sees_new_transforms(self) -> None:
        """Test that listeners run after the new transforms are installed."""
        self.georeference.set_origin(8.54, 47.37, 400.0)

        self.assertEqual(self.listener.origins[0], GeodeticPosition(8.54, 47.37, 400.0))

    def test_invalid_origin_changes_nothing(self) -> None:
        """Test that out-of-range coordinates are rejected without side effects."""
        before = self.georeference.transforms

        for lon, lat in [(180.5, 0.0), (0.0, 91.0), (-181.0, -91.0)]:
            with self.subTest(lon=lon, lat=lat):
                with self.assertRaises(ValueError):
                    self.georeference.set_origin(lon, lat, 0.0)

        self.assertIs(self.georeference.transforms, before)
        self.assertEqual(self.listener.origins, [])

    def test_old_transform_set_is_a_snapshot(self) -> None:
        """Test that a TransformSet obtained earlier is not mutated."""
        before = self.georeference.transforms
        matrix = before.georeferenced_to_ecef.copy()

        self.georeference.set_origin(8.54, 47.37, 400.0)

        self.assertIsNot(self.georeference.transforms, before)
        np.testing.assert_array_equal(before.georeferenced_to_ecef, matrix)

    def test_removed_and_collected_listeners(self) -> None:
        """Test that removed or garbage-collected listeners are not notified."""
        removed = RecordingListener()
        self.georeference.add_listener(removed)
        self.georeference.remove_listener(removed)
        self.georeference.add_listener(RecordingListener())
        gc.collect()

        self.georeference.set_origin(1.0, 2.0, 3.0)

        self.assertEqual(removed.origins, [])
        self.assertEqual(len(self.listener.origins), 1)

    def test_inaccurate_set_origin(self) -> None:
        """Test the single-precision origin setter."""
        self.georeference.inaccurate_set_origin(np.array(BOULDER, dtype=np.float32))

        np.testing.assert_allclose(self.georeference.origin.to_array(), BOULDER, atol=1e-4)
        with self.assertRaises(ValueError):
            self.georeference.inaccurate_set_origin([1.0, 2.0])

    def test_update_georeference(self) -> None:
        """Test that recomputation notifies once and keeps the origin."""
        before = self.georeference.transforms

        self.georeference.update_georeference()

        self.assertIsNot(self.georeference.transforms, before)
        np.testing.assert_array_equal(
            self.georeference.transforms.georeferenced_to_ecef, before.georeferenced_to_ecef
        )
        self.assertEqual(len(self.listener.origins), 1)


class TestPointConversions(unittest.TestCase):
    """Test cases for point conversions between frames."""

    def setUp(self) -> None:
        self.georeference = Georeference(GeoreferenceConfig())
        self.georeference.initialize()

    def test_engine_axes_and_units(self) -> None:
        """Test engine x=East, y=South, z=Up in centimeters."""
        georeferenced = self.georeference.transform_ecef_to_georeferenced(
            self.georeference.transform_engine_absolute_to_ecef([100.0, 200.0, 300.0])
        )

        np.testing.assert_allclose(georeferenced, [1.0, -2.0, 3.0], atol=1e-6)

    def test_origin_is_engine_zero(self) -> None:
        """Test that the configured origin sits at the engine origin."""
        engine = self.georeference.transform_geodetic_to_engine(BOULDER)

        np.testing.assert_allclose(engine, [0.0, 0.0, 0.0], atol=1e-4)

    def test_engine_geodetic_round_trip(self) -> None:
        """Test engine -> geodetic -> engine a few kilometers out."""
        engine = np.array([250000.0, -130000.0, 4500.0])

        llh = self.georeference.transform_engine_to_geodetic(engine)
        back = self.georeference.transform_geodetic_to_engine(llh)

        np.testing.assert_allclose(back, engine, atol=1e-3)

    def test_transform_position(self) -> None:
        """Test the generic frame-to-frame conversion."""
        llh = np.array([-105.2, 39.7, 1800.0])

        np.testing.assert_allclose(
            self.georeference.transform_position(llh, FrameType.LLH, FrameType.ENGINE),
            self.georeference.transform_geodetic_to_engine(llh),
            atol=1e-9,
        )
        np.testing.assert_array_equal(
            self.georeference.transform_position(llh, FrameType.LLH, FrameType.LLH), llh
        )

    def test_transform_position_rejects_enu(self) -> None:
        """Test that the anchor-less ENU frame is rejected."""
        with self.assertRaises(ValueError):
            self.georeference.transform_position([0.0, 0.0, 0.0], FrameType.ENU, FrameType.ECEF)

    def test_directions(self) -> None:
        """Test that engine up (one meter) maps to the local vertical."""
        up_ecef = self.georeference.transform_direction_engine_to_ecef([0.0, 0.0, 100.0])
        origin_ecef = self.georeference.transform_geodetic_to_ecef(BOULDER)

        np.testing.assert_allclose(
            up_ecef, self.georeference.ellipsoid.geodetic_surface_normal(origin_ecef), atol=1e-9
        )
        np.testing.assert_allclose(
            self.georeference.transform_direction_ecef_to_engine(up_ecef),
            [0.0, 0.0, 100.0],
            atol=1e-9,
        )

    def test_invalid_input_shape(self) -> None:
        """Test that malformed points are rejected."""
        with self.assertRaises(ValueError):
            self.georeference.transform_ecef_to_engine([1.0, 2.0])


class TestInaccurateTwins(unittest.TestCase):
    """Test cases for the single-precision convenience conversions."""

    def setUp(self) -> None:
        self.georeference = Georeference(GeoreferenceConfig())
        self.georeference.initialize()

    def test_float32_output_close_to_precise(self) -> None:
        """Test dtype and agreement within the documented precision loss."""
        llh = np.array([-105.2, 39.7, 1800.0])

        ecef = self.georeference.inaccurate_transform_geodetic_to_ecef(llh)
        self.assertEqual(ecef.dtype, np.float32)
        np.testing.assert_allclose(
            ecef, self.georeference.transform_geodetic_to_ecef(llh), atol=5.0
        )

        engine = self.georeference.inaccurate_transform_geodetic_to_engine(llh)
        self.assertEqual(engine.dtype, np.float32)
        np.testing.assert_allclose(
            engine, self.georeference.transform_geodetic_to_engine(llh), atol=500.0
        )

    def test_engine_relative_twins(self) -> None:
        """Test the floating-origin twins on small values."""
        engine = [10.0, 20.0, 30.0]

        np.testing.assert_allclose(
            self.georeference.inaccurate_transform_engine_to_engine_absolute(engine), engine
        )
        np.testing.assert_allclose(
            self.georeference.inaccurate_transform_engine_absolute_to_engine(engine), engine
        )


class TestBoundingVolumeOrigin(unittest.TestCase):
    """Test cases for bounding-volume origin placement."""

    def setUp(self) -> None:
        config = GeoreferenceConfig(origin_placement=OriginPlacement.BOUNDING_VOLUME_ORIGIN)
        self.georeference = Georeference(config)
        self.listener = RecordingListener()
        self.georeference.add_listener(self.listener)

    def test_no_providers_is_noop(self) -> None:
        """Test that an empty provider list leaves the origin untouched."""
        before = self.georeference.transforms

        self.assertFalse(self.georeference.set_origin_from_bounding_volumes())

        self.assertIs(self.georeference.transforms, before)
        self.assertEqual(self.listener.origins, [])

    def test_origin_at_box_center(self) -> None:
        """Test that the origin moves to the center of the combined boxes."""
        provider = BoxProvider(_box_around((10.0, 20.0, 100.0), 50.0))
        empty = BoxProvider(None)
        self.georeference.add_bounding_volume_provider(provider)
        self.georeference.add_bounding_volume_provider(empty)

        self.assertTrue(self.georeference.set_origin_from_bounding_volumes())

        np.testing.assert_allclose(self.georeference.origin.to_array()[:2], [10.0, 20.0], atol=1e-7)
        self.assertAlmostEqual(self.georeference.origin.height, 100.0, delta=1e-3)
        self.assertEqual(len(self.listener.origins), 1)

    def test_union_of_boxes(self) -> None:
        """Test that several providers contribute one combined box."""
        a = BoxProvider(EcefBoundingBox([6.0e6, 0.0, 0.0], [6.1e6, 10.0, 10.0]))
        b = BoxProvider(EcefBoundingBox([6.2e6, -10.0, -10.0], [6.3e6, 0.0, 0.0]))
        self.georeference.add_bounding_volume_provider(a)
        self.georeference.add_bounding_volume_provider(b)

        combined = self.georeference.combined_bounding_volume()

        np.testing.assert_array_equal(combined.minimum, [6.0e6, -10.0, -10.0])
        np.testing.assert_array_equal(combined.maximum, [6.3e6, 10.0, 10.0])

    def test_providers_are_weak(self) -> None:
        """Test that a collected provider no longer contributes."""
        self.georeference.add_bounding_volume_provider(
            BoxProvider(_box_around((10.0, 20.0, 100.0), 50.0))
        )
        gc.collect()

        self.assertIsNone(self.georeference.combined_bounding_volume())

    def test_initialize_uses_providers(self) -> None:
        """Test that initialize places the origin from the providers."""
        provider = BoxProvider(_box_around((-3.7, 40.4, 650.0), 200.0))
        self.georeference.add_bounding_volume_provider(provider)

        self.georeference.initialize()

        self.assertTrue(self.georeference.initialized)
        self.assertAlmostEqual(self.georeference.origin.longitude, -3.7, delta=1e-7)
        self.assertEqual(len(self.listener.origins), 1)

    def test_request_in_cartographic_mode_warns(self) -> None:
        """Test that the request is ignored outside bounding-volume placement."""
        georeference = Georeference(GeoreferenceConfig())
        georeference.add_bounding_volume_provider(
            BoxProvider(_box_around((10.0, 20.0, 100.0), 50.0))
        )

        with self.assertWarns(RuntimeWarning):
            self.assertFalse(georeference.set_origin_from_bounding_volumes())
        self.assertEqual(georeference.origin, GeodeticPosition(*BOULDER))


class TestLocalFrames(unittest.TestCase):
    """Test cases for ENU matrices, rotators and object transforms."""

    def setUp(self) -> None:
        self.georeference = Georeference(GeoreferenceConfig())
        self.georeference.initialize()

    def test_east_north_up_to_engine_at_origin(self) -> None:
        """Test that ENU maps to (East, South, Up) at the engine origin."""
        M = self.georeference.compute_east_north_up_to_engine([0.0, 0.0, 0.0])

        np.testing.assert_allclose(M, np.diag([1.0, -1.0, 1.0]), atol=1e-9)

    def test_east_north_up_to_engine_far_away(self) -> None:
        """Test orthonormality and handedness 50 km from the origin."""
        M = self.georeference.compute_east_north_up_to_engine([5.0e6, 0.0, 0.0])

        np.testing.assert_allclose(M.T @ M, np.eye(3), atol=1e-9)
        self.assertAlmostEqual(np.linalg.det(M), -1.0, places=9)
        # East of the origin the local vertical leans further east
        self.assertGreater(M[0, 2], 0.0)
        self.assertFalse(np.allclose(M, np.diag([1.0, -1.0, 1.0]), atol=1e-4))

    def test_east_north_up_to_ecef(self) -> None:
        """Test the ECEF-anchored ENU matrix."""
        ecef = self.georeference.transform_geodetic_to_ecef(BOULDER)

        np.testing.assert_allclose(
            self.georeference.compute_east_north_up_to_ecef(ecef),
            self.georeference.transforms.georeferenced_to_ecef[:3, :3],
            atol=1e-12,
        )

    def test_rotator_unchanged_at_origin(self) -> None:
        """Test that local and engine rotators coincide at the origin."""
        rotator = np.array([10.0, 20.0, 30.0])

        np.testing.assert_allclose(
            self.georeference.transform_rotator_engine_to_enu(rotator, [0.0, 0.0, 0.0]),
            rotator,
            atol=1e-9,
        )

    def test_rotator_round_trip_far_away(self) -> None:
        """Test engine -> ENU -> engine rotator conversion away from the origin."""
        rotator = np.array([-5.0, 12.0, 140.0])
        position = [3.0e6, -2.0e6, 1.0e4]

        local = self.georeference.transform_rotator_engine_to_enu(rotator, position)
        back = self.georeference.transform_rotator_enu_to_engine(local, position)

        self.assertFalse(np.allclose(local, rotator, atol=1e-3))
        np.testing.assert_allclose(back, rotator, atol=1e-8)

    def test_inaccurate_rotator(self) -> None:
        """Test the single-precision rotator twin."""
        rotator = self.georeference.inaccurate_transform_rotator_enu_to_engine(
            [0.0, 0.0, 45.0], [0.0, 0.0, 0.0]
        )

        self.assertEqual(rotator.dtype, np.float32)
        np.testing.assert_allclose(rotator, [0.0, 0.0, 45.0], atol=1e-4)

    def test_object_matrix_round_trip(self) -> None:
        """Test engine object transform -> ECEF -> engine."""
        M = np.eye(4)
        M[:3, 3] = [1500.0, -300.0, 20.0]

        ecef_matrix = self.georeference.compute_engine_to_ecef(M)

        np.testing.assert_allclose(
            ecef_matrix[:3, 3],
            self.georeference.transform_engine_to_ecef([1500.0, -300.0, 20.0]),
            atol=1e-6,
        )
        np.testing.assert_allclose(self.georeference.compute_ecef_to_engine(ecef_matrix), M, atol=1e-6)

    def test_object_matrix_shape(self) -> None:
        """Test that non-4x4 object matrices are rejected."""
        with self.assertRaises(ValueError):
            self.georeference.compute_engine_to_ecef(np.eye(3))


class TestLifecycle(unittest.TestCase):
    """Test cases for initialize, tick and configuration changes."""

    def test_tick_requires_initialize(self) -> None:
        """Test that ticking an uninitialized georeference fails."""
        georeference = Georeference()

        with self.assertRaises(RuntimeError):
            georeference.tick([0.0, 0.0, 0.0])

    def test_initialize_notifies_once(self) -> None:
        """Test that initialize applies the configured origin once."""
        georeference = Georeference(GeoreferenceConfig(origin_longitude=8.54, origin_latitude=47.37))
        listener = RecordingListener()
        georeference.add_listener(listener)

        georeference.initialize()

        self.assertTrue(georeference.initialized)
        self.assertEqual(listener.origins, [GeodeticPosition(8.54, 47.37, 2250.0)])

    def test_tick_rebases_far_viewer(self) -> None:
        """Test that tick hands far viewers to the rebaser."""
        georeference = Georeference(
            GeoreferenceConfig(engine_units_per_meter=1.0, max_world_origin_distance_from_viewer=100.0)
        )
        georeference.initialize()

        self.assertEqual(georeference.tick([10.0, 0.0, 0.0]), TickResult(False, False))
        self.assertEqual(georeference.tick([500.0, 0.0, 0.0]), TickResult(False, True))

    def test_on_config_changed(self) -> None:
        """Test that a new configuration is applied with one notification."""
        georeference = Georeference(GeoreferenceConfig())
        georeference.initialize()
        listener = RecordingListener()
        georeference.add_listener(listener)

        new_config = georeference.config.with_changes(
            origin_longitude=8.54, origin_latitude=47.37, engine_units_per_meter=1.0
        )
        georeference.on_config_changed(new_config)

        self.assertIs(georeference.config, new_config)
        self.assertEqual(len(listener.origins), 1)
        self.assertEqual(georeference.origin, GeodeticPosition(8.54, 47.37, 2250.0))
        np.testing.assert_allclose(
            georeference.transform_ecef_to_georeferenced(
                georeference.transform_engine_absolute_to_ecef([1.0, 0.0, 0.0])
            ),
            [1.0, 0.0, 0.0],
            atol=1e-6,
        )

    def test_place_origin_here(self) -> None:
        """Test moving the origin to the viewer on request."""
        shifter = RecordingShifter()
        georeference = Georeference(GeoreferenceConfig(engine_units_per_meter=1.0), shifter)
        georeference.initialize()
        viewer = np.array([120.0, 40.0, 5.0])
        expected = georeference.transform_engine_to_geodetic(viewer)

        self.assertTrue(georeference.place_origin_here(viewer))

        np.testing.assert_allclose(georeference.origin.to_array(), expected, atol=1e-9)
        np.testing.assert_array_equal(georeference.floating_origin, [0.0, 0.0, 0.0])
        self.assertEqual(len(shifter.deltas), 1)
        np.testing.assert_array_equal(shifter.deltas[0], viewer)

    def test_place_origin_here_bounding_volume_mode(self) -> None:
        """Test that place_origin_here is ignored in bounding-volume placement."""
        georeference = Georeference(
            GeoreferenceConfig(origin_placement=OriginPlacement.BOUNDING_VOLUME_ORIGIN)
        )

        with self.assertWarns(RuntimeWarning):
            self.assertFalse(georeference.place_origin_here([1.0, 2.0, 3.0]))


if __name__ == "__main__":
    unittest.main()
