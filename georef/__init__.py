"""Reference-frame engine for planet-scale georeferenced worlds.

This package maps geodetic / Earth-Centered Earth-Fixed coordinates onto a
3D engine's floating local frame and keeps that mapping numerically stable
while the viewer roams far from the engine origin:
- coords: Ellipsoid math, frame catalogue and rotation helpers
- reference_frame: Transform set, origin authority, origin rebasing and
  sub-level switching
"""

__version__ = "0.1.0"
