"""Sub-level switching: at most one georeferenced sub-level active at a time.

States are "no sub-level active" (persistent-level mode, active_index is
None) and "sub-level K active". Entering a sub-level moves the georeference
origin to the sub-level's origin once, requests the new content, and only
then releases the previous sub-level so there is no visible gap.
"""

import warnings
from typing import TYPE_CHECKING, Dict, Optional, Sequence, Tuple

import numpy as np
from numpy.typing import ArrayLike

from georef.coords.ellipsoid import as_vector3
from georef.reference_frame.types import SubLevel, SubLevelStreamer

if TYPE_CHECKING:
    from georef.reference_frame.georeference import Georeference


class SubLevelSwitcher:
    """State machine over the configured sub-levels.

    The sub-level list itself lives in the georeference configuration;
    the switcher only tracks which one is active.

    Attributes:
        transition_count: Number of state transitions performed.
    """

    def __init__(
        self,
        georeference: "Georeference",
        streamer: Optional[SubLevelStreamer] = None,
    ) -> None:
        self._georeference = georeference
        self.streamer = streamer
        self._active_index: Optional[int] = None
        self.transition_count = 0

    @property
    def levels(self) -> Tuple[SubLevel, ...]:
        return self._georeference.config.sub_levels

    @property
    def active_index(self) -> Optional[int]:
        return self._active_index

    @property
    def active_level(self) -> Optional[SubLevel]:
        if self._active_index is None:
            return None
        return self.levels[self._active_index]

    def distance_to_level(self, index: int, viewer_absolute_position: ArrayLike) -> float:
        """Distance in meters between the viewer and a sub-level's origin.

        Both points are compared in ECEF so the result does not depend on
        the engine's unit scale or the current origin.
        """
        level = self.levels[index]
        viewer_ecef = self._georeference.transform_engine_absolute_to_ecef(viewer_absolute_position)
        level_ecef = self._georeference.ellipsoid.geodetic_to_ecef(
            level.origin.longitude, level.origin.latitude, level.origin.height
        )
        return float(np.linalg.norm(viewer_ecef - level_ecef))

    def is_in_range(self, index: int, viewer_absolute_position: ArrayLike) -> bool:
        distance = self.distance_to_level(index, viewer_absolute_position)
        return distance <= self.levels[index].load_radius

    def select_by_proximity(self, viewer_absolute_position: ArrayLike) -> bool:
        """Pick the sub-level that contains the viewer.

        The active sub-level is kept as long as the viewer stays within its
        radius, even if another sub-level also contains the viewer.
        Otherwise the first sub-level in declaration order whose radius
        contains the viewer is activated; if there is none, no sub-level is
        active.

        Args:
            viewer_absolute_position: Viewer in the engine absolute frame.

        Returns:
            True if the active sub-level changed.
        """
        viewer = as_vector3(viewer_absolute_position, "viewer_absolute_position")

        if self._active_index is not None and self.is_in_range(self._active_index, viewer):
            return False

        target = None
        for index in range(len(self.levels)):
            if self.is_in_range(index, viewer):
                target = index
                break

        if target == self._active_index:
            return False
        self._transition(target)
        return True

    def select_by_index(self, index: int) -> bool:
        """Activate a sub-level explicitly.

        Args:
            index: Position of the sub-level in the configuration.

        Returns:
            True if the active sub-level changed (False if already active).

        Raises:
            ValueError: If index is out of bounds; the state is unchanged.
        """
        if isinstance(index, bool) or not isinstance(index, (int, np.integer)):
            raise ValueError(f"Sub-level index must be an integer, got {index!r}")
        if not 0 <= index < len(self.levels):
            raise ValueError(
                f"Sub-level index {index} out of range for {len(self.levels)} sub-levels"
            )
        if index == self._active_index:
            return False
        self._transition(int(index))
        return True

    def select_by_identifier(self, identifier: str) -> bool:
        """Activate the sub-level with the given identifier.

        Raises:
            ValueError: If no sub-level has that identifier.
        """
        for index, level in enumerate(self.levels):
            if level.identifier == identifier:
                return self.select_by_index(index)
        raise ValueError(f"Unknown sub-level identifier: {identifier!r}")

    def deactivate(self) -> bool:
        """Return to persistent-level mode.

        Returns:
            True if a sub-level was active.
        """
        if self._active_index is None:
            return False
        self._transition(None)
        return True

    def _transition(self, index: Optional[int]) -> None:
        previous = self.active_level
        self._active_index = index
        self.transition_count += 1

        if index is None:
            # Persistent-level origin stays as it is
            if previous is not None and self.streamer is not None:
                self.streamer.unload_sub_level(previous)
            return

        level = self.levels[index]
        origin = level.origin
        self._georeference.set_origin(origin.longitude, origin.latitude, origin.height)
        if self.streamer is not None:
            self.streamer.load_sub_level(level)
            if previous is not None:
                self.streamer.unload_sub_level(previous)

    def reconcile(self, previous_levels: Sequence[SubLevel]) -> None:
        """Re-map the active sub-level after the configured list changed.

        Called by the georeference when its configuration is replaced. The
        active sub-level stays active if a sub-level with the same identifier
        is still declared; otherwise it is unloaded.
        """
        if self._active_index is None:
            return
        previous = previous_levels[self._active_index]
        for index, level in enumerate(self.levels):
            if level.identifier == previous.identifier:
                self._active_index = index
                return

        warnings.warn(
            f"Active sub-level {previous.identifier!r} was removed from the configuration",
            RuntimeWarning,
            stacklevel=2,
        )
        self._active_index = None
        self.transition_count += 1
        if self.streamer is not None:
            self.streamer.unload_sub_level(previous)

    def sub_level_states(self) -> Dict[str, bool]:
        """Map each sub-level identifier to whether it is the active one."""
        return {
            level.identifier: index == self._active_index
            for index, level in enumerate(self.levels)
        }
