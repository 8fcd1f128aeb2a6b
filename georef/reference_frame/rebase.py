"""Origin rebasing: keep the floating origin near the viewer.

Single-precision vertex data loses accuracy far from the engine origin.
The rebaser watches the viewer's distance from the floating origin and,
once it exceeds the configured threshold, re-centers the frames on the
viewer and asks the engine to shift its world by the same delta.
"""

from typing import TYPE_CHECKING, Optional

import numpy as np
from numpy.typing import ArrayLike

from georef.coords.ellipsoid import as_vector3
from georef.reference_frame.types import WorldOriginShifter

if TYPE_CHECKING:
    from georef.reference_frame.georeference import Georeference


class OriginRebaser:
    """Per-frame origin rebasing monitor.

    Attributes:
        rebase_count: Number of rebases performed so far.

    Example:
        >>> georeference = Georeference(GeoreferenceConfig(max_world_origin_distance_from_viewer=500.0))
        >>> georeference.rebaser.check_and_rebase([100.0, 0.0, 0.0])
        False
        >>> georeference.rebaser.check_and_rebase([1000.0, 0.0, 0.0])
        True
    """

    def __init__(
        self,
        georeference: "Georeference",
        world_origin_shifter: Optional[WorldOriginShifter] = None,
    ) -> None:
        self._georeference = georeference
        self.world_origin_shifter = world_origin_shifter
        self.rebase_count = 0

    @property
    def enabled(self) -> bool:
        """Whether rebasing is currently allowed by the configuration."""
        config = self._georeference.config
        if not config.keep_world_origin_near_viewer:
            return False
        if self._georeference.inside_sub_level and not config.origin_rebase_inside_sub_levels:
            return False
        return True

    def needs_rebase(self, viewer_position: ArrayLike) -> bool:
        viewer = as_vector3(viewer_position, "viewer_position")
        threshold = self._georeference.config.max_world_origin_distance_from_viewer
        return self.enabled and float(np.linalg.norm(viewer)) > threshold

    def check_and_rebase(self, viewer_position: ArrayLike) -> bool:
        """Rebase if the viewer is farther than the threshold from the floating origin.

        Args:
            viewer_position: Viewer position in the engine frame (relative to
                the floating origin), engine units.

        Returns:
            True if a rebase happened. A False return had no side effects.
        """
        if not self.needs_rebase(viewer_position):
            return False
        self.rebase(viewer_position)
        return True

    def rebase(self, viewer_position: ArrayLike) -> None:
        """Unconditionally re-center on the viewer.

        Updates the georeference atomically (one listener notification),
        then calls the engine's world-origin shift exactly once with the
        viewer position as delta, after which the viewer sits at the
        engine origin.
        """
        delta = as_vector3(viewer_position, "viewer_position").copy()
        self._georeference.move_origin_to_viewer(delta)
        self.rebase_count += 1
        if self.world_origin_shifter is not None:
            self.world_origin_shifter.shift_world_origin(delta)
