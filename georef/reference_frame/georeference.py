"""Georeference: the origin authority of the reference-frame engine.

The Georeference owns the live origin, the reference ellipsoid, the current
TransformSet and the engine's floating origin. Every origin change goes
through one commit step that recomputes the four frame matrices, installs
them together with the new floating origin and then notifies listeners
exactly once, before the triggering call returns.

Frames handled here (see georef.coords.frames):
- LLH: [longitude, latitude, height] in degrees / meters
- ECEF: meters
- GEOREFERENCED: East-North-Up at the origin, meters
- ENGINE_ABSOLUTE: engine axes (x=East, y=South, z=Up) from the absolute
  origin, engine units
- ENGINE: ENGINE_ABSOLUTE shifted by the floating origin
"""

import warnings
from typing import NamedTuple, Optional

import numpy as np
from numpy.typing import ArrayLike, NDArray

from georef.coords.ellipsoid import Ellipsoid, as_vector3
from georef.coords.frames import FrameType, get_frame
from georef.coords.rotations import rotation_matrix_to_rotator, rotator_to_rotation_matrix
from georef.reference_frame.config import GeoreferenceConfig
from georef.reference_frame.listeners import WeakRegistry
from georef.reference_frame.rebase import OriginRebaser
from georef.reference_frame.sub_levels import SubLevelSwitcher
from georef.reference_frame.transform_set import TransformSet
from georef.reference_frame.types import (
    BoundingVolumeProvider,
    EcefBoundingBox,
    GeodeticPosition,
    GeoreferenceListener,
    OriginPlacement,
    SubLevelStreamer,
    WorldOriginShifter,
    validate_geodetic,
)

# Flips between right-handed ENU axes and the engine's (East, South, Up) axes
_HANDEDNESS_FLIP = np.diag([1.0, -1.0, 1.0])


class TickResult(NamedTuple):
    """What happened during one Georeference.tick call."""

    switched_sub_level: bool
    rebased: bool


def _as_matrix4(matrix: ArrayLike) -> NDArray[np.float64]:
    m = np.asarray(matrix, dtype=np.float64)
    if m.shape != (4, 4):
        raise ValueError(f"Expected 4x4 matrix, got shape {m.shape}")
    return m


def _translation(offset: NDArray[np.float64]) -> NDArray[np.float64]:
    t = np.eye(4)
    t[:3, 3] = offset
    return t


def _single_precision(value: ArrayLike) -> NDArray[np.float32]:
    return np.asarray(value, dtype=np.float32)


class Georeference:
    """Maps geodetic / ECEF coordinates to the engine's floating frame.

    Attributes:
        rebaser: Origin rebasing monitor driven by tick().
        sub_levels: Sub-level switching state machine driven by tick().

    Example:
        >>> georeference = Georeference(GeoreferenceConfig(engine_units_per_meter=1.0))
        >>> georeference.initialize()
        >>> georeference.set_origin(-105.25737, 39.736401, 2250.0)
        >>> ecef = georeference.transform_georeferenced_to_ecef([0.0, 0.0, 0.0])
        >>> llh = georeference.transform_ecef_to_geodetic(ecef)
        >>> # llh ≈ [-105.25737, 39.736401, 2250.0]
    """

    def __init__(
        self,
        config: Optional[GeoreferenceConfig] = None,
        world_origin_shifter: Optional[WorldOriginShifter] = None,
        sub_level_streamer: Optional[SubLevelStreamer] = None,
    ) -> None:
        """
        Create a georeference; transforms are valid immediately.

        Args:
            config: Settings; defaults to GeoreferenceConfig().
            world_origin_shifter: Engine primitive called once per rebase.
            sub_level_streamer: Loads / unloads sub-level content.
        """
        self._config = config if config is not None else GeoreferenceConfig()
        self._ellipsoid = self._config.create_ellipsoid()
        self._listeners: WeakRegistry[GeoreferenceListener] = WeakRegistry()
        self._bounding_volume_providers: WeakRegistry[BoundingVolumeProvider] = WeakRegistry()
        self._floating_origin = np.zeros(3)
        self._transforms = TransformSet.compute(
            self._config.origin, self._ellipsoid, self._config.engine_units_per_meter
        )
        self._initialized = False

        self.rebaser = OriginRebaser(self, world_origin_shifter)
        self.sub_levels = SubLevelSwitcher(self, sub_level_streamer)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def config(self) -> GeoreferenceConfig:
        return self._config

    @property
    def ellipsoid(self) -> Ellipsoid:
        return self._ellipsoid

    @property
    def transforms(self) -> TransformSet:
        """Current TransformSet (immutable snapshot)."""
        return self._transforms

    @property
    def origin(self) -> GeodeticPosition:
        return self._transforms.origin

    @property
    def floating_origin(self) -> NDArray[np.float64]:
        """Floating origin in the engine absolute frame (copy)."""
        return self._floating_origin.copy()

    @property
    def origin_placement(self) -> OriginPlacement:
        return self._config.origin_placement

    @property
    def inside_sub_level(self) -> bool:
        return self.sub_levels.active_index is not None

    @property
    def initialized(self) -> bool:
        return self._initialized

    # ------------------------------------------------------------------
    # Registries
    # ------------------------------------------------------------------

    def add_listener(self, listener: GeoreferenceListener) -> None:
        """Register a listener (weakly) for transform updates."""
        self._listeners.add(listener)

    def remove_listener(self, listener: GeoreferenceListener) -> bool:
        return self._listeners.remove(listener)

    def add_bounding_volume_provider(self, provider: BoundingVolumeProvider) -> None:
        """Register a provider (weakly) for bounding-volume origin placement.

        Providers only influence the origin when origin_placement is
        BOUNDING_VOLUME_ORIGIN.
        """
        self._bounding_volume_providers.add(provider)

    def remove_bounding_volume_provider(self, provider: BoundingVolumeProvider) -> bool:
        return self._bounding_volume_providers.remove(provider)

    # ------------------------------------------------------------------
    # Origin mutation
    # ------------------------------------------------------------------

    def _commit(
        self,
        origin: GeodeticPosition,
        floating_origin: NDArray[np.float64],
        transforms: Optional[TransformSet] = None,
    ) -> None:
        """Install a new origin / floating origin and notify listeners once."""
        if transforms is None:
            transforms = TransformSet.compute(
                origin, self._ellipsoid, self._config.engine_units_per_meter
            )
        self._transforms = transforms
        self._floating_origin = np.array(floating_origin, dtype=np.float64)
        self._listeners.notify(lambda listener: listener.on_georeference_updated(self))

    def set_origin(self, longitude: float, latitude: float, height: float) -> None:
        """Align the given geodetic position with the engine absolute origin.

        Args:
            longitude: Longitude in degrees, [-180, 180].
            latitude: Latitude in degrees, [-90, 90].
            height: Height in meters above the ellipsoid.

        Raises:
            ValueError: If the coordinates are out of range; nothing changes.
        """
        validate_geodetic(longitude, latitude, height)
        self._commit(GeodeticPosition(longitude, latitude, height), self._floating_origin)

    def inaccurate_set_origin(self, longitude_latitude_height: ArrayLike) -> None:
        """Single-precision convenience form of set_origin.

        The input is rounded to float32 first, which quantizes the origin to
        roughly 1e-5 degrees (about a meter on the ground).
        """
        llh = _single_precision(longitude_latitude_height).astype(np.float64)
        if llh.shape != (3,):
            raise ValueError(f"longitude_latitude_height must have shape (3,), got {llh.shape}")
        self.set_origin(*llh)

    def combined_bounding_volume(self) -> Optional[EcefBoundingBox]:
        """Union of the bounding volumes of all live providers, if any."""
        combined: Optional[EcefBoundingBox] = None
        for provider in self._bounding_volume_providers.live():
            box = provider.get_bounding_volume()
            if box is None:
                continue
            combined = box if combined is None else combined.union(box)
        return combined

    def set_origin_from_bounding_volumes(self) -> bool:
        """Place the origin at the center of the registered bounding volumes.

        Does nothing when no provider currently reports a volume, since
        providers may register or finish loading later.

        Returns:
            True if the origin was changed.
        """
        if self._config.origin_placement is not OriginPlacement.BOUNDING_VOLUME_ORIGIN:
            warnings.warn(
                "set_origin_from_bounding_volumes ignored: origin placement is "
                f"{self._config.origin_placement.value}",
                RuntimeWarning,
                stacklevel=2,
            )
            return False

        combined = self.combined_bounding_volume()
        if combined is None:
            return False

        lon, lat, height = self._ellipsoid.ecef_to_geodetic(combined.center)
        self.set_origin(lon, lat, height)
        return True

    def update_georeference(self) -> None:
        """Recompute all transforms from the current origin and notify."""
        self._commit(self.origin, self._floating_origin)

    def move_origin_to_viewer(self, viewer_position: ArrayLike) -> None:
        """Re-center the frames on the viewer in one atomic update.

        In cartographic placement the origin moves to the viewer's geodetic
        position and the floating origin resets to zero. In bounding-volume
        placement the origin is owned by the providers, so only the floating
        origin advances by the viewer position.

        Args:
            viewer_position: Viewer position in the engine frame.
        """
        viewer = as_vector3(viewer_position, "viewer_position")
        if self._config.origin_placement is OriginPlacement.BOUNDING_VOLUME_ORIGIN:
            self._commit(self.origin, self._floating_origin + viewer, self._transforms)
            return

        llh = self.transform_engine_to_geodetic(viewer)
        self._commit(GeodeticPosition.from_array(llh), np.zeros(3))

    def place_origin_here(self, viewer_position: ArrayLike) -> bool:
        """Move the origin to the viewer and shift the viewer to the engine origin.

        Only available in cartographic placement.

        Returns:
            True if the origin was moved.
        """
        if self._config.origin_placement is not OriginPlacement.CARTOGRAPHIC_ORIGIN:
            warnings.warn(
                "place_origin_here ignored: origin placement is "
                f"{self._config.origin_placement.value}",
                RuntimeWarning,
                stacklevel=2,
            )
            return False
        self.rebaser.rebase(viewer_position)
        return True

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """Apply the configured origin and notify listeners."""
        if (
            self._config.origin_placement is OriginPlacement.BOUNDING_VOLUME_ORIGIN
            and self.set_origin_from_bounding_volumes()
        ):
            self._initialized = True
            return
        origin = self._config.origin
        self._initialized = True
        self._commit(origin, self._floating_origin)

    def tick(self, viewer_position: ArrayLike) -> TickResult:
        """Per-frame update: sub-level selection, then origin rebasing.

        When the active sub-level changes, the rebase check is skipped for
        this frame because the viewer position was measured in the old frame.

        Args:
            viewer_position: Viewer position in the engine frame.

        Raises:
            RuntimeError: If called before initialize().
        """
        if not self._initialized:
            raise RuntimeError("Georeference not initialized. Call initialize() first.")
        viewer = as_vector3(viewer_position, "viewer_position")

        switched = False
        if self.sub_levels.levels:
            absolute = self.transform_engine_to_engine_absolute(viewer)
            switched = self.sub_levels.select_by_proximity(absolute)
        if switched:
            return TickResult(switched_sub_level=True, rebased=False)

        return TickResult(switched_sub_level=False, rebased=self.rebaser.check_and_rebase(viewer))

    def on_config_changed(self, config: GeoreferenceConfig) -> None:
        """Adopt a new configuration with a single transform update.

        The active sub-level survives if its identifier is still declared
        (its origin then stays in effect); otherwise it is unloaded and the
        configured origin is applied.
        """
        old_levels = self._config.sub_levels
        self._config = config
        self._ellipsoid = config.create_ellipsoid()
        self.sub_levels.reconcile(old_levels)

        active = self.sub_levels.active_level
        if active is not None:
            origin = active.origin
        elif config.origin_placement is OriginPlacement.BOUNDING_VOLUME_ORIGIN:
            combined = self.combined_bounding_volume()
            if combined is None:
                origin = self.origin
            else:
                origin = GeodeticPosition.from_array(
                    self._ellipsoid.ecef_to_geodetic(combined.center)
                )
        else:
            origin = config.origin
        self._commit(origin, self._floating_origin)

    def jump_to_current_level(self) -> bool:
        """Activate the sub-level named by config.current_level_index.

        Returns:
            True if a transition happened.
        """
        index = self._config.current_level_index
        if index is None:
            warnings.warn(
                "jump_to_current_level ignored: current_level_index is not set",
                RuntimeWarning,
                stacklevel=2,
            )
            return False
        return self.sub_levels.select_by_index(index)

    # ------------------------------------------------------------------
    # Point conversions
    # ------------------------------------------------------------------

    def transform_geodetic_to_ecef(self, longitude_latitude_height: ArrayLike) -> NDArray[np.float64]:
        lon, lat, height = as_vector3(longitude_latitude_height, "longitude_latitude_height")
        return self._ellipsoid.geodetic_to_ecef(lon, lat, height)

    def transform_ecef_to_geodetic(self, ecef: ArrayLike) -> NDArray[np.float64]:
        return self._ellipsoid.ecef_to_geodetic(as_vector3(ecef, "ecef"))

    def transform_georeferenced_to_ecef(self, georeferenced: ArrayLike) -> NDArray[np.float64]:
        return TransformSet.apply_point(
            self._transforms.georeferenced_to_ecef, as_vector3(georeferenced, "georeferenced")
        )

    def transform_ecef_to_georeferenced(self, ecef: ArrayLike) -> NDArray[np.float64]:
        return TransformSet.apply_point(
            self._transforms.ecef_to_georeferenced, as_vector3(ecef, "ecef")
        )

    def transform_engine_absolute_to_ecef(self, engine_absolute: ArrayLike) -> NDArray[np.float64]:
        return TransformSet.apply_point(
            self._transforms.engine_absolute_to_ecef,
            as_vector3(engine_absolute, "engine_absolute"),
        )

    def transform_ecef_to_engine_absolute(self, ecef: ArrayLike) -> NDArray[np.float64]:
        return TransformSet.apply_point(
            self._transforms.ecef_to_engine_absolute, as_vector3(ecef, "ecef")
        )

    def transform_engine_to_engine_absolute(self, engine: ArrayLike) -> NDArray[np.float64]:
        return as_vector3(engine, "engine") + self._floating_origin

    def transform_engine_absolute_to_engine(self, engine_absolute: ArrayLike) -> NDArray[np.float64]:
        return as_vector3(engine_absolute, "engine_absolute") - self._floating_origin

    def transform_engine_to_ecef(self, engine: ArrayLike) -> NDArray[np.float64]:
        """Engine position (relative to the floating origin) to ECEF."""
        return self.transform_engine_absolute_to_ecef(self.transform_engine_to_engine_absolute(engine))

    def transform_ecef_to_engine(self, ecef: ArrayLike) -> NDArray[np.float64]:
        """ECEF to engine position relative to the floating origin."""
        return self.transform_engine_absolute_to_engine(self.transform_ecef_to_engine_absolute(ecef))

    def transform_geodetic_to_engine(self, longitude_latitude_height: ArrayLike) -> NDArray[np.float64]:
        return self.transform_ecef_to_engine(self.transform_geodetic_to_ecef(longitude_latitude_height))

    def transform_engine_to_geodetic(self, engine: ArrayLike) -> NDArray[np.float64]:
        return self.transform_ecef_to_geodetic(self.transform_engine_to_ecef(engine))

    def transform_position(
        self, position: ArrayLike, source: FrameType, target: FrameType
    ) -> NDArray[np.float64]:
        """Convert a position between any two named frames through ECEF.

        The ENU frame is not supported here because it needs its own anchor
        point; use compute_east_north_up_to_ecef instead.

        Raises:
            ValueError: If either frame is ENU or unknown.
        """
        to_ecef = {
            FrameType.LLH: self.transform_geodetic_to_ecef,
            FrameType.ECEF: lambda p: as_vector3(p, "ecef"),
            FrameType.GEOREFERENCED: self.transform_georeferenced_to_ecef,
            FrameType.ENGINE_ABSOLUTE: self.transform_engine_absolute_to_ecef,
            FrameType.ENGINE: self.transform_engine_to_ecef,
        }
        from_ecef = {
            FrameType.LLH: self.transform_ecef_to_geodetic,
            FrameType.ECEF: lambda p: p,
            FrameType.GEOREFERENCED: self.transform_ecef_to_georeferenced,
            FrameType.ENGINE_ABSOLUTE: self.transform_ecef_to_engine_absolute,
            FrameType.ENGINE: self.transform_ecef_to_engine,
        }
        for frame_type in (source, target):
            if frame_type not in to_ecef:
                raise ValueError(f"Unsupported frame for position conversion: {get_frame(frame_type)}")
        if source is target:
            return as_vector3(position, "position")
        return from_ecef[target](to_ecef[source](position))

    # Single-precision convenience twins. Inputs and outputs are float32,
    # so ECEF-scale values keep only about half a meter of resolution.

    def inaccurate_transform_geodetic_to_ecef(self, longitude_latitude_height: ArrayLike) -> NDArray[np.float32]:
        return _single_precision(self.transform_geodetic_to_ecef(_single_precision(longitude_latitude_height)))

    def inaccurate_transform_ecef_to_geodetic(self, ecef: ArrayLike) -> NDArray[np.float32]:
        return _single_precision(self.transform_ecef_to_geodetic(_single_precision(ecef)))

    def inaccurate_transform_georeferenced_to_ecef(self, georeferenced: ArrayLike) -> NDArray[np.float32]:
        return _single_precision(self.transform_georeferenced_to_ecef(_single_precision(georeferenced)))

    def inaccurate_transform_ecef_to_georeferenced(self, ecef: ArrayLike) -> NDArray[np.float32]:
        return _single_precision(self.transform_ecef_to_georeferenced(_single_precision(ecef)))

    def inaccurate_transform_engine_absolute_to_ecef(self, engine_absolute: ArrayLike) -> NDArray[np.float32]:
        return _single_precision(self.transform_engine_absolute_to_ecef(_single_precision(engine_absolute)))

    def inaccurate_transform_ecef_to_engine_absolute(self, ecef: ArrayLike) -> NDArray[np.float32]:
        return _single_precision(self.transform_ecef_to_engine_absolute(_single_precision(ecef)))

    def inaccurate_transform_engine_to_engine_absolute(self, engine: ArrayLike) -> NDArray[np.float32]:
        return _single_precision(self.transform_engine_to_engine_absolute(_single_precision(engine)))

    def inaccurate_transform_engine_absolute_to_engine(self, engine_absolute: ArrayLike) -> NDArray[np.float32]:
        return _single_precision(self.transform_engine_absolute_to_engine(_single_precision(engine_absolute)))

    def inaccurate_transform_engine_to_ecef(self, engine: ArrayLike) -> NDArray[np.float32]:
        return _single_precision(self.transform_engine_to_ecef(_single_precision(engine)))

    def inaccurate_transform_ecef_to_engine(self, ecef: ArrayLike) -> NDArray[np.float32]:
        return _single_precision(self.transform_ecef_to_engine(_single_precision(ecef)))

    def inaccurate_transform_geodetic_to_engine(self, longitude_latitude_height: ArrayLike) -> NDArray[np.float32]:
        return _single_precision(self.transform_geodetic_to_engine(_single_precision(longitude_latitude_height)))

    def inaccurate_transform_engine_to_geodetic(self, engine: ArrayLike) -> NDArray[np.float32]:
        return _single_precision(self.transform_engine_to_geodetic(_single_precision(engine)))

    # ------------------------------------------------------------------
    # Directions, local frames and rotators
    # ------------------------------------------------------------------

    def transform_direction_engine_to_ecef(self, direction: ArrayLike) -> NDArray[np.float64]:
        """Rotate and scale an engine-frame direction into ECEF meters."""
        return TransformSet.apply_direction(
            self._transforms.engine_absolute_to_ecef, as_vector3(direction, "direction")
        )

    def transform_direction_ecef_to_engine(self, direction: ArrayLike) -> NDArray[np.float64]:
        """Rotate and scale an ECEF direction into engine units."""
        return TransformSet.apply_direction(
            self._transforms.ecef_to_engine_absolute, as_vector3(direction, "direction")
        )

    def compute_east_north_up_to_ecef(self, ecef: ArrayLike) -> NDArray[np.float64]:
        """Rotation from East-North-Up at an ECEF point to ECEF axes."""
        return self._ellipsoid.east_north_up_to_ecef(as_vector3(ecef, "ecef"))

    def compute_east_north_up_to_engine(self, engine_position: ArrayLike) -> NDArray[np.float64]:
        """Orthonormal map from East-North-Up at an engine position to engine axes.

        The result carries no unit scale. Because the engine frame is
        left-handed its determinant is -1; at the origin it equals
        diag(1, -1, 1).

        Args:
            engine_position: Position relative to the floating origin.

        Returns:
            3x3 matrix M such that v_engine_axes = M @ v_enu.
        """
        ecef = self.transform_engine_to_ecef(engine_position)
        enu_to_ecef = self._ellipsoid.east_north_up_to_ecef(ecef)
        ecef_to_engine_axes = (
            self._transforms.ecef_to_engine_absolute[:3, :3] / self._config.engine_units_per_meter
        )
        return ecef_to_engine_axes @ enu_to_ecef

    def _local_to_engine_rotation(self, engine_position: ArrayLike) -> NDArray[np.float64]:
        # Proper rotation from the engine-handed local frame at a position
        # to the engine axes; identity at the origin
        return self.compute_east_north_up_to_engine(engine_position) @ _HANDEDNESS_FLIP

    def transform_rotator_engine_to_enu(
        self, rotator: ArrayLike, engine_position: ArrayLike
    ) -> NDArray[np.float64]:
        """Re-express an engine rotator relative to the local frame at a position.

        Args:
            rotator: [roll, pitch, yaw] in degrees, relative to engine axes.
            engine_position: Position relative to the floating origin.

        Returns:
            Rotator [roll, pitch, yaw] in degrees relative to the local
            East-North-Up frame (in engine axis convention) at the position.
        """
        local_to_engine = self._local_to_engine_rotation(engine_position)
        return rotation_matrix_to_rotator(local_to_engine.T @ rotator_to_rotation_matrix(rotator))

    def transform_rotator_enu_to_engine(
        self, rotator: ArrayLike, engine_position: ArrayLike
    ) -> NDArray[np.float64]:
        """Inverse of transform_rotator_engine_to_enu."""
        local_to_engine = self._local_to_engine_rotation(engine_position)
        return rotation_matrix_to_rotator(local_to_engine @ rotator_to_rotation_matrix(rotator))

    def inaccurate_transform_rotator_engine_to_enu(
        self, rotator: ArrayLike, engine_position: ArrayLike
    ) -> NDArray[np.float32]:
        return _single_precision(
            self.transform_rotator_engine_to_enu(_single_precision(rotator), _single_precision(engine_position))
        )

    def inaccurate_transform_rotator_enu_to_engine(
        self, rotator: ArrayLike, engine_position: ArrayLike
    ) -> NDArray[np.float32]:
        return _single_precision(
            self.transform_rotator_enu_to_engine(_single_precision(rotator), _single_precision(engine_position))
        )

    # ------------------------------------------------------------------
    # Object transforms
    # ------------------------------------------------------------------

    def compute_engine_to_ecef(self, matrix: ArrayLike) -> NDArray[np.float64]:
        """Convert an object's engine-relative 4x4 transform to an ECEF transform."""
        return (
            self._transforms.engine_absolute_to_ecef
            @ _translation(self._floating_origin)
            @ _as_matrix4(matrix)
        )

    def compute_ecef_to_engine(self, matrix: ArrayLike) -> NDArray[np.float64]:
        """Convert an object's ECEF 4x4 transform to an engine-relative transform."""
        return (
            _translation(-self._floating_origin)
            @ self._transforms.ecef_to_engine_absolute
            @ _as_matrix4(matrix)
        )
