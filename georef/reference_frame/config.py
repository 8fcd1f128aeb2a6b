"""Configuration of a georeference instance.

The configuration is a plain dataclass validated on construction. The host
application owns persistence; `to_dict` / `from_dict` are the only
serialization boundary this package offers.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Tuple

import numpy as np

from georef.coords.ellipsoid import WGS84_A, WGS84_B, Ellipsoid
from georef.reference_frame.types import (
    GeodeticPosition,
    OriginPlacement,
    SubLevel,
    validate_geodetic,
)


@dataclass(frozen=True)
class GeoreferenceConfig:
    """Settings consumed by a Georeference.

    Attributes:
        ellipsoid_radii: Reference ellipsoid radii in meters (default WGS84).
        origin_placement: How the origin is chosen.
        origin_longitude: Explicit origin longitude in degrees [-180, 180].
        origin_latitude: Explicit origin latitude in degrees [-90, 90].
        origin_height: Explicit origin height in meters above the ellipsoid.
        keep_world_origin_near_viewer: Enables origin rebasing.
        max_world_origin_distance_from_viewer: Distance in engine units the
            viewer may travel from the floating origin before a rebase.
        origin_rebase_inside_sub_levels: Whether rebasing continues while a
            sub-level is active.
        engine_units_per_meter: Engine length units per meter (100 for
            centimeter-based engines).
        sub_levels: Declared sub-levels, in priority order.
        current_level_index: Sub-level to jump to on explicit request.

    Example:
        >>> config = GeoreferenceConfig(origin_longitude=8.5, origin_latitude=47.4)
        >>> config.origin.height
        2250.0
    """

    ellipsoid_radii: Tuple[float, float, float] = (WGS84_A, WGS84_A, WGS84_B)
    origin_placement: OriginPlacement = OriginPlacement.CARTOGRAPHIC_ORIGIN
    origin_longitude: float = -105.25737
    origin_latitude: float = 39.736401
    origin_height: float = 2250.0
    keep_world_origin_near_viewer: bool = True
    max_world_origin_distance_from_viewer: float = 10000.0
    origin_rebase_inside_sub_levels: bool = True
    engine_units_per_meter: float = 100.0
    sub_levels: Tuple[SubLevel, ...] = field(default_factory=tuple)
    current_level_index: Optional[int] = None

    def __post_init__(self) -> None:
        """Validate all settings before they can reach a georeference."""
        # Raises on invalid radii
        Ellipsoid(tuple(self.ellipsoid_radii))
        object.__setattr__(self, "ellipsoid_radii", tuple(float(r) for r in self.ellipsoid_radii))

        if not isinstance(self.origin_placement, OriginPlacement):
            object.__setattr__(self, "origin_placement", OriginPlacement(self.origin_placement))

        validate_geodetic(self.origin_longitude, self.origin_latitude, self.origin_height)

        distance = self.max_world_origin_distance_from_viewer
        if not np.isfinite(distance) or distance < 0.0:
            raise ValueError(
                f"max_world_origin_distance_from_viewer must be finite and >= 0, got {distance}"
            )

        scale = self.engine_units_per_meter
        if not np.isfinite(scale) or scale <= 0.0:
            raise ValueError(f"engine_units_per_meter must be positive, got {scale}")

        levels = list(self.sub_levels)
        seen = set()
        for level in levels:
            if not isinstance(level, SubLevel):
                raise TypeError(f"sub_levels must contain SubLevel, got {type(level)}")
            if level.identifier in seen:
                raise ValueError(f"Duplicate sub-level identifier: {level.identifier!r}")
            seen.add(level.identifier)
        object.__setattr__(self, "sub_levels", tuple(levels))

        index = self.current_level_index
        if index is not None and not 0 <= index < len(levels):
            raise ValueError(
                f"current_level_index {index} out of range for {len(levels)} sub-levels"
            )

    @property
    def origin(self) -> GeodeticPosition:
        return GeodeticPosition(self.origin_longitude, self.origin_latitude, self.origin_height)

    def create_ellipsoid(self) -> Ellipsoid:
        return Ellipsoid(self.ellipsoid_radii)

    def with_changes(self, **changes: Any) -> "GeoreferenceConfig":
        """Return a validated copy with some fields replaced."""
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to plain Python types (JSON compatible)."""
        return {
            "ellipsoid_radii": list(self.ellipsoid_radii),
            "origin_placement": self.origin_placement.value,
            "origin_longitude": self.origin_longitude,
            "origin_latitude": self.origin_latitude,
            "origin_height": self.origin_height,
            "keep_world_origin_near_viewer": self.keep_world_origin_near_viewer,
            "max_world_origin_distance_from_viewer": self.max_world_origin_distance_from_viewer,
            "origin_rebase_inside_sub_levels": self.origin_rebase_inside_sub_levels,
            "engine_units_per_meter": self.engine_units_per_meter,
            "sub_levels": [level.to_dict() for level in self.sub_levels],
            "current_level_index": self.current_level_index,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GeoreferenceConfig":
        """Build a config from a dict; missing keys keep their defaults.

        Raises:
            ValueError: If an unknown key is present or a value is invalid.
        """
        known = set(cls.__dataclass_fields__)
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")

        kwargs = dict(data)
        if "ellipsoid_radii" in kwargs:
            kwargs["ellipsoid_radii"] = tuple(kwargs["ellipsoid_radii"])
        if "origin_placement" in kwargs:
            kwargs["origin_placement"] = OriginPlacement(kwargs["origin_placement"])
        if "sub_levels" in kwargs:
            kwargs["sub_levels"] = [
                level if isinstance(level, SubLevel) else SubLevel.from_dict(level)
                for level in kwargs["sub_levels"]
            ]
        return cls(**kwargs)
