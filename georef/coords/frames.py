"""Coordinate frame definitions for the reference-frame engine.

This module names the coordinate frames that the engine converts between:
- LLH (Longitude-Latitude-Height): Geodetic coordinates in degrees / meters
- ECEF (Earth-Centered Earth-Fixed): Global right-handed Cartesian frame
- ENU (East-North-Up): Local tangent plane at an arbitrary point
- GEOREFERENCED: ENU tangent plane anchored at the live georeference origin
- ENGINE_ABSOLUTE: Engine world frame measured from the absolute origin
- ENGINE: Engine world frame measured from the floating origin
"""

from enum import Enum
from typing import NamedTuple


class FrameType(Enum):
    """Enumeration of coordinate frame types.

    Attributes:
        LLH: Longitude-latitude-height geodetic coordinates.
        ECEF: Earth-Centered Earth-Fixed Cartesian frame.
        ENU: East-North-Up local tangent plane frame.
        GEOREFERENCED: ENU frame anchored at the georeference origin.
        ENGINE_ABSOLUTE: Engine frame relative to the absolute world origin.
        ENGINE: Engine frame relative to the floating world origin.
    """

    LLH = "llh"
    ECEF = "ecef"
    ENU = "enu"
    GEOREFERENCED = "georeferenced"
    ENGINE_ABSOLUTE = "engine_absolute"
    ENGINE = "engine"


class Frame(NamedTuple):
    """Representation of a coordinate frame.

    Attributes:
        frame_type: Type of coordinate frame.
        description: Human-readable description of the frame.
        right_handed: Whether the frame's axes form a right-handed system.
    """

    frame_type: FrameType
    description: str
    right_handed: bool = True

    def __repr__(self) -> str:
        """Return string representation of frame."""
        return f"Frame({self.frame_type.value}: {self.description})"


FRAME_LLH = Frame(
    FrameType.LLH,
    "Longitude-Latitude-Height geodetic coordinates (degrees, degrees, meters)",
)

FRAME_ECEF = Frame(
    FrameType.ECEF,
    "Earth-Centered Earth-Fixed (x=0°E 0°N, y=90°E 0°N, z=North Pole)",
)

FRAME_ENU = Frame(
    FrameType.ENU,
    "East-North-Up local tangent plane (x=East, y=North, z=Up)",
)

FRAME_GEOREFERENCED = Frame(
    FrameType.GEOREFERENCED,
    "East-North-Up tangent plane at the georeference origin, meters",
)

FRAME_ENGINE_ABSOLUTE = Frame(
    FrameType.ENGINE_ABSOLUTE,
    "Engine world frame from the absolute origin (x=East, y=South, z=Up)",
    right_handed=False,
)

FRAME_ENGINE = Frame(
    FrameType.ENGINE,
    "Engine world frame from the floating origin (x=East, y=South, z=Up)",
    right_handed=False,
)

ALL_FRAMES = (
    FRAME_LLH,
    FRAME_ECEF,
    FRAME_ENU,
    FRAME_GEOREFERENCED,
    FRAME_ENGINE_ABSOLUTE,
    FRAME_ENGINE,
)


def get_frame(frame_type: FrameType) -> Frame:
    """Look up the frame description for a frame type.

    Args:
        frame_type: Frame type to look up.

    Returns:
        The matching Frame definition.

    Raises:
        ValueError: If no frame is registered for the type.
    """
    for frame in ALL_FRAMES:
        if frame.frame_type is frame_type:
            return frame
    raise ValueError(f"Unknown frame type: {frame_type}")
