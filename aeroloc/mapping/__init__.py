"""Occupancy map provider: 3-D voxel grid and tagged map loader."""

from aeroloc.mapping.io import load_map, save_map
from aeroloc.mapping.occupancy import OccupancyMap

__all__ = [
    "OccupancyMap",
    "load_map",
    "save_map",
]
