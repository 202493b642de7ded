"""Coordinate frame names used by the localizer.

The frame tree the localizer works with:

    map ──(correction, published here)──> odom ──(odometry)──> base ──> sensor

- map: Fixed frame of the occupancy map.
- odom: Odometry frame; drifts relative to map.
- base: Vehicle base (footprint) frame, the frame particles represent.
- base_link: Vehicle body frame, parent of most sensor frames.
"""

from typing import NamedTuple


class FrameIds(NamedTuple):
    """Names of the frames in the localization frame tree.

    Attributes:
        map: Global map frame.
        odom: Odometry frame published by the external odometry source.
        base: Vehicle frame estimated by the particles.
        base_link: Vehicle body frame.
    """

    map: str = "map"
    odom: str = "world"
    base: str = "base_footprint"
    base_link: str = "base_link"

    def __repr__(self) -> str:
        """Return string representation of the frame tree."""
        return f"FrameIds({self.map} -> {self.odom} -> {self.base} -> {self.base_link})"
