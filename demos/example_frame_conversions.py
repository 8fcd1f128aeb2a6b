"""Example: Converting positions and orientations between georeference frames.

This example walks through the frames a georeference relates:
1. Geodetic (LLH) to ECEF and back
2. The georeferenced East-North-Up frame at the origin
3. The engine frame (x=East, y=South, z=Up, centimeters)
4. Local East-North-Up frames away from the origin
5. Rotators relative to the local frame
6. Single-precision convenience conversions

Usage:
    python -m demos.example_frame_conversions
"""

import numpy as np

from georef.coords import FrameType
from georef.reference_frame import Georeference, GeoreferenceConfig


def main() -> None:
    """Run frame conversion examples."""
    print("=" * 70)
    print("Georeference Frame Conversion Examples")
    print("=" * 70)

    config = GeoreferenceConfig()
    georeference = Georeference(config)
    georeference.initialize()

    # Example 1: LLH to ECEF transformation
    print("\n1. LLH to ECEF Transformation")
    print("-" * 70)

    origin = config.origin
    print("Origin: Boulder, Colorado")
    print(f"  Longitude: {origin.longitude:.6f}°")
    print(f"  Latitude:  {origin.latitude:.6f}°")
    print(f"  Height:    {origin.height:.1f} m")

    xyz = georeference.transform_geodetic_to_ecef(origin.to_array())
    print("\nECEF Coordinates:")
    print(f"  X: {xyz[0]:,.3f} m")
    print(f"  Y: {xyz[1]:,.3f} m")
    print(f"  Z: {xyz[2]:,.3f} m")

    llh = georeference.transform_ecef_to_geodetic(xyz)
    print("\nRecovered LLH:")
    print(f"  [{llh[0]:.9f}°, {llh[1]:.9f}°, {llh[2]:.4f} m]")

    # Example 2: Georeferenced ENU frame
    print("\n2. Georeferenced Frame (ENU at the origin, meters)")
    print("-" * 70)

    targets = [
        ("100m East", np.array([100.0, 0.0, 0.0])),
        ("100m North", np.array([0.0, 100.0, 0.0])),
        ("50m Up", np.array([0.0, 0.0, 50.0])),
    ]
    for name, enu in targets:
        llh = georeference.transform_ecef_to_geodetic(georeference.transform_georeferenced_to_ecef(enu))
        print(f"\nTarget: {name}")
        print(f"  LLH: [{llh[0]:.7f}°, {llh[1]:.7f}°, {llh[2]:.2f} m]")

    # Example 3: Engine frame
    print("\n3. Engine Frame (x=East, y=South, z=Up, centimeters)")
    print("-" * 70)

    for name, enu in targets:
        engine = georeference.transform_position(
            georeference.transform_georeferenced_to_ecef(enu), FrameType.ECEF, FrameType.ENGINE
        )
        print(f"{name:>11}: engine = [{engine[0]:10.2f}, {engine[1]:10.2f}, {engine[2]:10.2f}]")

    # Example 4: Local ENU away from the origin
    print("\n4. Local East-North-Up Frame 200 km East")
    print("-" * 70)

    far_engine = np.array([2.0e7, 0.0, 0.0])
    M = georeference.compute_east_north_up_to_engine(far_engine)
    tilt = np.rad2deg(np.arccos(np.clip(M[2, 2], -1.0, 1.0)))
    print("ENU -> engine axes:")
    print(f"{M}")
    print(f"  Determinant: {np.linalg.det(M):.6f} (engine frame is left-handed)")
    print(f"  Local vertical tilt: {tilt:.3f}°")

    # Example 5: Rotators
    print("\n5. Rotators Relative to the Local Frame")
    print("-" * 70)

    rotator = np.array([0.0, 0.0, 90.0])
    local = georeference.transform_rotator_engine_to_enu(rotator, far_engine)
    back = georeference.transform_rotator_enu_to_engine(local, far_engine)
    print(f"Engine rotator [roll, pitch, yaw]: {rotator}")
    print(f"Local rotator:                     {np.round(local, 4)}")
    print(f"Back in engine axes:               {np.round(back, 4)}")

    # Example 6: Precision of the convenience conversions
    print("\n6. Double vs Single Precision")
    print("-" * 70)

    probe = np.array([-105.2, 39.7, 1800.0])
    precise = georeference.transform_geodetic_to_engine(probe)
    inaccurate = georeference.inaccurate_transform_geodetic_to_engine(probe)
    print(f"Precise engine position:    {precise}")
    print(f"Single-precision position:  {inaccurate}")
    print(f"  Difference: {np.linalg.norm(precise - inaccurate) / config.engine_units_per_meter:.3f} m")

    print("\n" + "=" * 70)
    print("Examples completed successfully!")
    print("=" * 70)


if __name__ == "__main__":
    main()
