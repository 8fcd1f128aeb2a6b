"""Data types and collaborator interfaces for the reference-frame engine.

This module defines the value types shared by the georeference, the origin
rebaser and the sub-level switcher, plus the abstract interfaces of the
external collaborators they call into (listeners, bounding-volume
providers, the engine's world-origin shift and the sub-level streamer).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

import numpy as np
from numpy.typing import ArrayLike, NDArray

from georef.coords.ellipsoid import as_vector3


class OriginPlacement(Enum):
    """How the georeference origin is chosen.

    Attributes:
        CARTOGRAPHIC_ORIGIN: Origin given explicitly as longitude, latitude
            and height (and moved by origin rebasing).
        BOUNDING_VOLUME_ORIGIN: Origin derived from the union of the
            bounding volumes of registered providers.
    """

    CARTOGRAPHIC_ORIGIN = "cartographic_origin"
    BOUNDING_VOLUME_ORIGIN = "bounding_volume_origin"


def validate_geodetic(longitude: float, latitude: float, height: float) -> None:
    """Check that geodetic coordinates are finite and inside their domains.

    Args:
        longitude: Longitude in degrees, must lie in [-180, 180].
        latitude: Latitude in degrees, must lie in [-90, 90].
        height: Height in meters, must be finite.

    Raises:
        ValueError: If any coordinate is out of range or not finite.
    """
    if not np.all(np.isfinite([longitude, latitude, height])):
        raise ValueError(
            f"Geodetic coordinates must be finite, got "
            f"({longitude}, {latitude}, {height})"
        )
    if not -180.0 <= longitude <= 180.0:
        raise ValueError(f"Longitude must be in [-180, 180], got {longitude}")
    if not -90.0 <= latitude <= 90.0:
        raise ValueError(f"Latitude must be in [-90, 90], got {latitude}")


@dataclass(frozen=True)
class GeodeticPosition:
    """A validated longitude / latitude / height triple.

    Attributes:
        longitude: Longitude in degrees, [-180, 180].
        latitude: Latitude in degrees, [-90, 90].
        height: Height above the ellipsoid in meters.
    """

    longitude: float
    latitude: float
    height: float = 0.0

    def __post_init__(self) -> None:
        validate_geodetic(self.longitude, self.latitude, self.height)
        object.__setattr__(self, "longitude", float(self.longitude))
        object.__setattr__(self, "latitude", float(self.latitude))
        object.__setattr__(self, "height", float(self.height))

    @classmethod
    def from_array(cls, llh: ArrayLike) -> "GeodeticPosition":
        """Build from an array [longitude, latitude, height]."""
        lon, lat, h = as_vector3(llh, "llh")
        return cls(lon, lat, h)

    def to_array(self) -> NDArray[np.float64]:
        return np.array([self.longitude, self.latitude, self.height], dtype=np.float64)


@dataclass(frozen=True)
class SubLevel:
    """Static descriptor of an independently georeferenced sub-level.

    Attributes:
        identifier: Unique name of the sub-level.
        origin: Georeference origin used while this sub-level is active.
        load_radius: Distance in meters from the origin within which the
            viewer activates the sub-level.

    Example:
        >>> level = SubLevel("campus", GeodeticPosition(-105.25737, 39.736401, 2250.0))
        >>> level.load_radius
        1000.0
    """

    identifier: str
    origin: GeodeticPosition
    load_radius: float = 1000.0

    def __post_init__(self) -> None:
        if not isinstance(self.identifier, str) or not self.identifier:
            raise ValueError(
                f"Sub-level identifier must be a non-empty string, got {self.identifier!r}"
            )
        if not isinstance(self.origin, GeodeticPosition):
            raise TypeError(
                f"Sub-level origin must be a GeodeticPosition, got {type(self.origin)}"
            )
        if not np.isfinite(self.load_radius) or self.load_radius < 0.0:
            raise ValueError(
                f"Sub-level load radius must be finite and >= 0, got {self.load_radius}"
            )
        object.__setattr__(self, "load_radius", float(self.load_radius))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identifier": self.identifier,
            "origin_longitude": self.origin.longitude,
            "origin_latitude": self.origin.latitude,
            "origin_height": self.origin.height,
            "load_radius": self.load_radius,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SubLevel":
        origin = GeodeticPosition(
            data["origin_longitude"],
            data["origin_latitude"],
            data.get("origin_height", 0.0),
        )
        return cls(data["identifier"], origin, data.get("load_radius", 1000.0))


@dataclass(frozen=True)
class EcefBoundingBox:
    """Axis-aligned bounding box in ECEF meters.

    Attributes:
        minimum: Minimum corner [x, y, z].
        maximum: Maximum corner [x, y, z].
    """

    minimum: np.ndarray
    maximum: np.ndarray

    def __post_init__(self) -> None:
        minimum = as_vector3(self.minimum, "minimum")
        maximum = as_vector3(self.maximum, "maximum")
        if np.any(minimum > maximum):
            raise ValueError(
                f"Bounding box minimum {minimum} exceeds maximum {maximum}"
            )
        minimum.setflags(write=False)
        maximum.setflags(write=False)
        object.__setattr__(self, "minimum", minimum)
        object.__setattr__(self, "maximum", maximum)

    @property
    def center(self) -> NDArray[np.float64]:
        return 0.5 * (self.minimum + self.maximum)

    def union(self, other: "EcefBoundingBox") -> "EcefBoundingBox":
        """Smallest box containing both boxes."""
        return EcefBoundingBox(
            np.minimum(self.minimum, other.minimum),
            np.maximum(self.maximum, other.maximum),
        )


class GeoreferenceListener(ABC):
    """Object that re-derives its placement whenever the transforms change."""

    @abstractmethod
    def on_georeference_updated(self, georeference: Any) -> None:
        """
        Called after every transform recomputation.

        Args:
            georeference: The Georeference whose transforms changed.
        """
        pass


class BoundingVolumeProvider(ABC):
    """Contributes a region to the bounding-volume origin placement."""

    @abstractmethod
    def get_bounding_volume(self) -> Optional[EcefBoundingBox]:
        """
        Return the provider's current bounds, or None if not yet known.
        """
        pass


class WorldOriginShifter(ABC):
    """The engine's floating-origin shift primitive."""

    @abstractmethod
    def shift_world_origin(self, delta: NDArray[np.float64]) -> None:
        """
        Move the engine's floating origin by delta (engine units).

        After the shift every engine-relative position p becomes p - delta.
        """
        pass


class SubLevelStreamer(ABC):
    """Loads and unloads sub-level content (fire-and-forget)."""

    @abstractmethod
    def load_sub_level(self, level: SubLevel) -> None:
        pass

    @abstractmethod
    def unload_sub_level(self, level: SubLevel) -> None:
        pass
