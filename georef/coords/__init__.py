"""Coordinate systems and ellipsoid math for the reference-frame engine.

This module provides functions and classes for working with the
coordinate frames that the georeference converts between:
- LLH (Longitude, Latitude, Height) geodetic coordinates
- ECEF (Earth-Centered Earth-Fixed) Cartesian coordinates
- ENU (East-North-Up) local tangent plane coordinates
- Rotation representations (matrices, Euler angles, rotators)
"""

from georef.coords.ellipsoid import WGS84_A, WGS84_B, WGS84_F, Ellipsoid, as_vector3
from georef.coords.frames import Frame, FrameType, get_frame
from georef.coords.rotations import (
    euler_to_rotation_matrix,
    is_rotation_matrix,
    rotation_matrix_to_euler,
    rotation_matrix_to_rotator,
    rotator_to_rotation_matrix,
)

__all__ = [
    # Ellipsoid
    "Ellipsoid",
    "WGS84_A",
    "WGS84_B",
    "WGS84_F",
    "as_vector3",
    # Frames
    "Frame",
    "FrameType",
    "get_frame",
    # Rotations
    "euler_to_rotation_matrix",
    "rotation_matrix_to_euler",
    "rotator_to_rotation_matrix",
    "rotation_matrix_to_rotator",
    "is_rotation_matrix",
]
