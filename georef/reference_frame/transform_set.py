"""The four 4x4 matrices that relate the georeferenced, ECEF and engine frames.

A TransformSet is computed in one step from an origin, an ellipsoid and the
engine's unit scale, and is immutable afterwards. A georeference replaces
its TransformSet wholesale on every origin change, so a reference obtained
before the change is a consistent snapshot of the old state.

Frames:
- georeferenced: right-handed East-North-Up at the origin, meters
- engine absolute: left-handed (x=East, y=South, z=Up) at the origin,
  engine units
"""

from dataclasses import dataclass

import numpy as np
from numpy.typing import ArrayLike, NDArray

from georef.coords.ellipsoid import Ellipsoid
from georef.reference_frame.types import GeodeticPosition


def engine_to_georeferenced_matrix(engine_units_per_meter: float) -> NDArray[np.float64]:
    """Scale / handedness correction from the engine frame to the georeferenced frame.

    Converts engine units to meters and flips the y-axis, turning the
    engine's left-handed (East, South, Up) axes into right-handed
    (East, North, Up) axes.

    Args:
        engine_units_per_meter: Engine length units per meter.

    Returns:
        4x4 homogeneous scale matrix.
    """
    s = 1.0 / engine_units_per_meter
    return np.diag([s, -s, s, 1.0])


def affine_inverse(matrix: NDArray[np.float64]) -> NDArray[np.float64]:
    """Invert a 4x4 affine transform [M | t; 0 0 0 1].

    Inverts the 3x3 block and maps the translation back through it, which
    stays accurate when the translation is planet-sized.

    Raises:
        ValueError: If the matrix is not 4x4 affine.
    """
    matrix = np.asarray(matrix, dtype=np.float64)
    if matrix.shape != (4, 4) or not np.array_equal(matrix[3], [0.0, 0.0, 0.0, 1.0]):
        raise ValueError(f"Expected a 4x4 affine matrix, got\n{matrix}")
    linear_inv = np.linalg.inv(matrix[:3, :3])
    inverse = np.eye(4)
    inverse[:3, :3] = linear_inv
    inverse[:3, 3] = -linear_inv @ matrix[:3, 3]
    return inverse


def _read_only(matrix: NDArray[np.float64]) -> NDArray[np.float64]:
    matrix = np.array(matrix, dtype=np.float64)
    matrix.setflags(write=False)
    return matrix


@dataclass(frozen=True)
class TransformSet:
    """Georeferenced, ECEF and engine-absolute transforms for one origin.

    Attributes:
        origin: Origin the matrices were computed from.
        georeferenced_to_ecef: Georeferenced frame -> ECEF.
        ecef_to_georeferenced: Inverse of georeferenced_to_ecef.
        engine_absolute_to_ecef: Engine absolute frame -> ECEF.
        ecef_to_engine_absolute: Inverse of engine_absolute_to_ecef.

    Example:
        >>> ts = TransformSet.compute(GeodeticPosition(0.0, 0.0, 0.0), Ellipsoid.wgs84(), 1.0)
        >>> ts.apply_point(ts.georeferenced_to_ecef, [0.0, 0.0, 0.0])
        array([6378137.,       0.,       0.])
    """

    origin: GeodeticPosition
    georeferenced_to_ecef: np.ndarray
    ecef_to_georeferenced: np.ndarray
    engine_absolute_to_ecef: np.ndarray
    ecef_to_engine_absolute: np.ndarray

    @classmethod
    def compute(
        cls,
        origin: GeodeticPosition,
        ellipsoid: Ellipsoid,
        engine_units_per_meter: float,
    ) -> "TransformSet":
        """Compute all four matrices from a single origin.

        The forward matrices are built from the East-North-Up frame at the
        origin; the reverse matrices are their affine inverses.

        Args:
            origin: Georeference origin.
            ellipsoid: Reference ellipsoid.
            engine_units_per_meter: Engine length units per meter.

        Returns:
            The new TransformSet.
        """
        origin_ecef = ellipsoid.geodetic_to_ecef(origin.longitude, origin.latitude, origin.height)
        enu_to_ecef = ellipsoid.east_north_up_to_ecef(origin_ecef)

        georeferenced_to_ecef = np.eye(4)
        georeferenced_to_ecef[:3, :3] = enu_to_ecef
        georeferenced_to_ecef[:3, 3] = origin_ecef

        engine_absolute_to_ecef = georeferenced_to_ecef @ engine_to_georeferenced_matrix(
            engine_units_per_meter
        )

        return cls(
            origin=origin,
            georeferenced_to_ecef=_read_only(georeferenced_to_ecef),
            ecef_to_georeferenced=_read_only(affine_inverse(georeferenced_to_ecef)),
            engine_absolute_to_ecef=_read_only(engine_absolute_to_ecef),
            ecef_to_engine_absolute=_read_only(affine_inverse(engine_absolute_to_ecef)),
        )

    @staticmethod
    def apply_point(matrix: NDArray[np.float64], point: ArrayLike) -> NDArray[np.float64]:
        """Apply a homogeneous transform to a point (translation included)."""
        p = np.asarray(point, dtype=np.float64)
        return matrix[:3, :3] @ p + matrix[:3, 3]

    @staticmethod
    def apply_direction(matrix: NDArray[np.float64], direction: ArrayLike) -> NDArray[np.float64]:
        """Apply the linear part of a homogeneous transform to a direction."""
        d = np.asarray(direction, dtype=np.float64)
        return matrix[:3, :3] @ d

    def to_flat(self) -> NDArray[np.float64]:
        """Serialize the four matrices as a (4, 16) column-major array.

        Row order: georeferenced_to_ecef, ecef_to_georeferenced,
        engine_absolute_to_ecef, ecef_to_engine_absolute.
        """
        return np.stack(
            [
                m.flatten(order="F")
                for m in (
                    self.georeferenced_to_ecef,
                    self.ecef_to_georeferenced,
                    self.engine_absolute_to_ecef,
                    self.ecef_to_engine_absolute,
                )
            ]
        )

    @classmethod
    def from_flat(cls, origin: GeodeticPosition, flat: ArrayLike) -> "TransformSet":
        """Rebuild a TransformSet stored with to_flat.

        Raises:
            ValueError: If the array does not have shape (4, 16).
        """
        flat = np.asarray(flat, dtype=np.float64)
        if flat.shape != (4, 16):
            raise ValueError(f"Flat transform set must have shape (4, 16), got {flat.shape}")
        matrices = [_read_only(row.reshape((4, 4), order="F")) for row in flat]
        return cls(origin, *matrices)
