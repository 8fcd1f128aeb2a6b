"""Reference-frame engine: transforms, origin authority, rebasing, sub-levels.

Main components:
    - TransformSet: The four matrices relating georeferenced, ECEF and
      engine-absolute frames for one origin
    - Georeference: Owns the origin, applies changes atomically and answers
      conversion queries
    - OriginRebaser: Keeps the floating origin near the viewer
    - SubLevelSwitcher: Keeps at most one georeferenced sub-level active
    - WeakRegistry: Non-owning listener / provider registry

Example usage:
    >>> from georef.reference_frame import Georeference, GeoreferenceConfig
    >>> georeference = Georeference(GeoreferenceConfig())
    >>> georeference.initialize()
    >>> georeference.tick([0.0, 0.0, 0.0])
    TickResult(switched_sub_level=False, rebased=False)
"""

from georef.reference_frame.config import GeoreferenceConfig
from georef.reference_frame.georeference import Georeference, TickResult
from georef.reference_frame.listeners import WeakRegistry
from georef.reference_frame.rebase import OriginRebaser
from georef.reference_frame.sub_levels import SubLevelSwitcher
from georef.reference_frame.transform_set import TransformSet, engine_to_georeferenced_matrix
from georef.reference_frame.types import (
    BoundingVolumeProvider,
    EcefBoundingBox,
    GeodeticPosition,
    GeoreferenceListener,
    OriginPlacement,
    SubLevel,
    SubLevelStreamer,
    WorldOriginShifter,
    validate_geodetic,
)

__all__ = [
    "Georeference",
    "GeoreferenceConfig",
    "TickResult",
    "TransformSet",
    "engine_to_georeferenced_matrix",
    "OriginRebaser",
    "SubLevelSwitcher",
    "WeakRegistry",
    # Types
    "GeodeticPosition",
    "SubLevel",
    "EcefBoundingBox",
    "OriginPlacement",
    "validate_geodetic",
    # Collaborators
    "GeoreferenceListener",
    "BoundingVolumeProvider",
    "WorldOriginShifter",
    "SubLevelStreamer",
]
