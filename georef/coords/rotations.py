"""Rotators and the rotation matrices behind them.

An engine orientation ("rotator") is a [roll, pitch, yaw] triple in
degrees. Rotators are turned into matrices so they can be re-expressed
between the engine axes and a local East-North-Up frame, then turned back.

Conventions:
- Intrinsic Z-Y-X order: yaw about z, then pitch about the new y, then
  roll about the new x, i.e. R = Rz(yaw) @ Ry(pitch) @ Rx(roll)
- Matrices map object axes to parent axes: v_parent = R @ v_object
- Angles are radians for the euler_* functions and degrees for rotators
"""

import numpy as np
from numpy.typing import ArrayLike, NDArray

# |sin(pitch)| above this is treated as pitch = ±90°
_GIMBAL_LOCK_SIN = 1.0 - 1e-12


def _axis_rotation(axis: int, angle: float) -> NDArray[np.float64]:
    c, s = np.cos(angle), np.sin(angle)
    i, j = [k for k in range(3) if k != axis]
    # Keep the cyclic (right-handed) orientation for the y-axis
    if axis == 1:
        i, j = j, i
    m = np.eye(3)
    m[i, i] = c
    m[j, j] = c
    m[i, j] = -s
    m[j, i] = s
    return m


def euler_to_rotation_matrix(roll: float, pitch: float, yaw: float) -> NDArray[np.float64]:
    """Build Rz(yaw) @ Ry(pitch) @ Rx(roll).

    Args:
        roll: Rotation about x in radians.
        pitch: Rotation about y in radians.
        yaw: Rotation about z in radians.

    Returns:
        3x3 proper rotation matrix.
    """
    return _axis_rotation(2, yaw) @ _axis_rotation(1, pitch) @ _axis_rotation(0, roll)


def rotation_matrix_to_euler(R: ArrayLike) -> NDArray[np.float64]:
    """Recover [roll, pitch, yaw] in radians from a rotation matrix.

    Pitch is returned in [-pi/2, pi/2]. At pitch = ±90° only the sum or
    difference of roll and yaw is defined; roll is then reported as zero and
    the whole heading goes into yaw.

    Raises:
        ValueError: If R is not 3x3.
    """
    R = np.asarray(R, dtype=np.float64)
    if R.shape != (3, 3):
        raise ValueError(f"Rotation matrix must be 3x3, got shape {R.shape}")

    sin_pitch = float(np.clip(-R[2, 0], -1.0, 1.0))
    if abs(sin_pitch) < _GIMBAL_LOCK_SIN:
        return np.array(
            [
                np.arctan2(R[2, 1], R[2, 2]),
                np.arcsin(sin_pitch),
                np.arctan2(R[1, 0], R[0, 0]),
            ]
        )

    # Gimbal lock
    heading = np.arctan2(-R[0, 1], R[1, 1])
    return np.array([0.0, np.copysign(np.pi / 2.0, sin_pitch), heading])


def rotator_to_rotation_matrix(rotator: ArrayLike) -> NDArray[np.float64]:
    """Rotation matrix of a [roll, pitch, yaw] rotator given in degrees."""
    roll, pitch, yaw = np.radians(np.asarray(rotator, dtype=np.float64))
    return euler_to_rotation_matrix(roll, pitch, yaw)


def rotation_matrix_to_rotator(R: ArrayLike) -> NDArray[np.float64]:
    """[roll, pitch, yaw] in degrees for a rotation matrix."""
    return np.degrees(rotation_matrix_to_euler(R))


def is_rotation_matrix(R: ArrayLike, atol: float = 1e-9) -> bool:
    """True if R is 3x3, orthonormal and has determinant +1 (within atol)."""
    R = np.asarray(R, dtype=np.float64)
    if R.shape != (3, 3):
        return False
    orthonormal = np.allclose(R.T @ R, np.eye(3), atol=atol)
    return bool(orthonormal and abs(np.linalg.det(R) - 1.0) <= atol)
