"""Reference ellipsoid and geodetic <-> ECEF conversions.

This module implements transformations between geodetic coordinates
(longitude, latitude, height) and Earth-Centered Earth-Fixed (ECEF)
Cartesian coordinates for an arbitrary reference ellipsoid, together with
the local East-North-Up rotation at any ECEF point.

Conventions:
- Geodetic coordinates are ordered [longitude, latitude, height] with
  angles in degrees and height in meters above the ellipsoid surface.
- ECEF coordinates are [x, y, z] in meters.

WGS84 ellipsoid parameters:
- Semi-major axis (a): 6378137.0 m
- Flattening (f): 1/298.257223563
- Semi-minor axis (b): 6356752.314245 m
"""

import warnings
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
from numpy.typing import ArrayLike, NDArray

# WGS84 ellipsoid parameters
WGS84_A = 6378137.0  # Semi-major axis (m)
WGS84_F = 1.0 / 298.257223563  # Flattening
WGS84_B = WGS84_A * (1.0 - WGS84_F)  # Semi-minor axis (m)

# Squared-norm threshold below which a point counts as the ellipsoid center
_CENTER_TOLERANCE_SQUARED = 0.1
_SURFACE_TOLERANCE = 1e-12
_MAX_SURFACE_ITERATIONS = 50


def as_vector3(value: ArrayLike, name: str = "point") -> NDArray[np.float64]:
    """Convert a 3-element sequence to a float64 vector.

    Args:
        value: Any sequence of three numbers.
        name: Name used in error messages.

    Returns:
        Numpy array of shape (3,) with dtype float64.

    Raises:
        ValueError: If the input does not hold exactly three finite values.
    """
    vec = np.asarray(value, dtype=np.float64)
    if vec.shape != (3,):
        raise ValueError(f"{name} must have shape (3,), got {vec.shape}")
    if not np.all(np.isfinite(vec)):
        raise ValueError(f"{name} must be finite, got {vec}")
    return vec


@dataclass(frozen=True)
class Ellipsoid:
    """Triaxial reference ellipsoid centered at the ECEF origin.

    For the usual oblate spheroid the first two radii are equal. One
    instance is shared read-only by everything that converts coordinates
    through a georeference.

    Attributes:
        radii: Semi-axis lengths (x, y, z) in meters, all positive.

    Example:
        >>> ellipsoid = Ellipsoid.wgs84()
        >>> ellipsoid.geodetic_to_ecef(0.0, 0.0, 0.0)
        array([6378137.,       0.,       0.])
    """

    radii: Tuple[float, float, float] = (WGS84_A, WGS84_A, WGS84_B)

    def __post_init__(self) -> None:
        """Validate the radii."""
        radii = np.asarray(self.radii, dtype=np.float64)
        if radii.shape != (3,):
            raise ValueError(f"Ellipsoid needs three radii, got {self.radii}")
        if not np.all(np.isfinite(radii)) or np.any(radii <= 0.0):
            raise ValueError(f"Ellipsoid radii must be positive, got {self.radii}")
        object.__setattr__(self, "radii", tuple(float(r) for r in radii))

    @classmethod
    def wgs84(cls) -> "Ellipsoid":
        """Return the World Geodetic System 1984 ellipsoid."""
        return cls((WGS84_A, WGS84_A, WGS84_B))

    @property
    def radii_array(self) -> NDArray[np.float64]:
        return np.array(self.radii, dtype=np.float64)

    @property
    def one_over_radii_squared(self) -> NDArray[np.float64]:
        return 1.0 / self.radii_array**2

    def geodetic_surface_normal(self, ecef: ArrayLike) -> NDArray[np.float64]:
        """Compute the unit normal to the ellipsoid surface through a point.

        Args:
            ecef: ECEF position [x, y, z] in meters. Must not be the center.

        Returns:
            Unit normal vector in ECEF.
        """
        p = np.asarray(ecef, dtype=np.float64)
        normal = p * self.one_over_radii_squared
        return normal / np.linalg.norm(normal)

    def geodetic_surface_normal_from_angles(
        self, longitude: float, latitude: float
    ) -> NDArray[np.float64]:
        """Compute the surface normal for a longitude / latitude in degrees."""
        lon = np.deg2rad(longitude)
        lat = np.deg2rad(latitude)
        cos_lat = np.cos(lat)
        return np.array(
            [cos_lat * np.cos(lon), cos_lat * np.sin(lon), np.sin(lat)],
            dtype=np.float64,
        )

    def geodetic_to_ecef(
        self,
        longitude: float,
        latitude: float,
        height: float,
    ) -> NDArray[np.float64]:
        """Convert geodetic coordinates to ECEF Cartesian coordinates.

        Args:
            longitude: Longitude in degrees (positive east).
            latitude: Latitude in degrees (positive north).
            height: Height above the ellipsoid in meters.

        Returns:
            ECEF coordinates as numpy array [x, y, z] in meters.

        Example:
            >>> xyz = Ellipsoid.wgs84().geodetic_to_ecef(0.0, 51.4769, 0.0)
            >>> print(f"ECEF: {xyz}")
        """
        normal = self.geodetic_surface_normal_from_angles(longitude, latitude)
        k = self.radii_array**2 * normal
        gamma = np.sqrt(np.dot(normal, k))
        surface = k / gamma
        return surface + normal * height

    def scale_to_geodetic_surface(
        self, ecef: ArrayLike
    ) -> Optional[NDArray[np.float64]]:
        """Project a point onto the ellipsoid surface along the geodetic normal.

        Solves for the surface point whose normal passes through the given
        point with Newton's method on the surface equation.

        Args:
            ecef: ECEF position [x, y, z] in meters.

        Returns:
            Surface point in ECEF, or None for the ellipsoid center where the
            projection is undefined.
        """
        p = np.asarray(ecef, dtype=np.float64)
        one_over_radii = 1.0 / self.radii_array
        one_over_radii_sq = self.one_over_radii_squared

        p2 = (p * one_over_radii) ** 2
        squared_norm = float(np.sum(p2))
        if squared_norm == 0.0:
            return None
        ratio = np.sqrt(1.0 / squared_norm)

        # Intersection of the ray from the center with the surface
        intersection = p * ratio
        if squared_norm < _CENTER_TOLERANCE_SQUARED:
            return intersection

        gradient = intersection * one_over_radii_sq * 2.0
        lam = (1.0 - ratio) * np.linalg.norm(p) / (0.5 * np.linalg.norm(gradient))
        correction = 0.0

        for _ in range(_MAX_SURFACE_ITERATIONS):
            lam -= correction
            multiplier = 1.0 / (1.0 + lam * one_over_radii_sq)
            func = float(np.sum(p2 * multiplier**2)) - 1.0
            if abs(func) <= _SURFACE_TOLERANCE:
                return p * multiplier
            denominator = float(np.sum(p2 * multiplier**3 * one_over_radii_sq))
            correction = func / (-2.0 * denominator)
        else:
            warnings.warn(
                f"Surface projection of {p} did not converge after "
                f"{_MAX_SURFACE_ITERATIONS} iterations (residual {func:.3e})",
                RuntimeWarning,
                stacklevel=2,
            )
        return p * multiplier

    def ecef_to_geodetic(self, ecef: ArrayLike) -> NDArray[np.float64]:
        """Convert ECEF Cartesian coordinates to geodetic coordinates.

        The point is first projected onto the surface along the geodetic
        normal; latitude and longitude follow from that normal and the height
        is the signed distance to the projected point.

        Args:
            ecef: ECEF position [x, y, z] in meters.

        Returns:
            Geodetic coordinates [longitude, latitude, height] with angles in
            degrees and height in meters. The ellipsoid center, which has no
            unique surface point, maps to [0, 0, -radii[0]].

        Example:
            >>> llh = Ellipsoid.wgs84().ecef_to_geodetic([3980574.247, 0.0, 4966824.522])
            >>> print(f"lon={llh[0]:.4f}°, lat={llh[1]:.4f}°, h={llh[2]:.2f}m")
        """
        p = np.asarray(ecef, dtype=np.float64)
        surface = self.scale_to_geodetic_surface(p)
        if surface is None:
            return np.array([0.0, 0.0, -self.radii[0]], dtype=np.float64)

        normal = self.geodetic_surface_normal(surface)
        offset = p - surface

        longitude = np.rad2deg(np.arctan2(normal[1], normal[0]))
        latitude = np.rad2deg(np.arctan2(normal[2], np.hypot(normal[0], normal[1])))
        height = np.sign(np.dot(offset, p)) * np.linalg.norm(offset)

        return np.array([longitude, latitude, height], dtype=np.float64)

    def east_north_up_to_ecef(self, ecef: ArrayLike) -> NDArray[np.float64]:
        """Rotation from the local East-North-Up frame at a point to ECEF.

        The columns of the returned matrix are the East, North and Up unit
        vectors expressed in ECEF. At the poles, where East is undefined,
        East is taken as +Y.

        Args:
            ecef: ECEF position [x, y, z] in meters.

        Returns:
            3x3 rotation matrix R such that v_ecef = R @ v_enu.
        """
        p = np.asarray(ecef, dtype=np.float64)
        if np.allclose(p[:2], 0.0, atol=1e-9 * max(self.radii)):
            up = np.array([0.0, 0.0, np.copysign(1.0, p[2])])
            east = np.array([0.0, 1.0, 0.0])
        else:
            up = self.geodetic_surface_normal(p)
            east = np.cross(np.array([0.0, 0.0, 1.0]), up)
            east /= np.linalg.norm(east)
        north = np.cross(up, east)

        return np.column_stack([east, north, up])
