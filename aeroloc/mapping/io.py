"""Loading and saving occupancy maps.

Map files are NumPy ``.npz`` archives tagged with a ``format`` field that
names the representation they hold. The loader decodes the known
representations into an OccupancyMap and rejects everything else with a
MapDecodeError, so callers get either a typed map or a decode error.

Supported formats:
    - ``occupancy_grid``: ``occupied`` (nx, ny, nz), ``resolution``, ``origin`` (3,)
    - ``point_cloud``: ``points`` (M, 3), ``resolution``, optional ``padding``
"""

import zipfile
from pathlib import Path
from typing import Union

import numpy as np

from aeroloc.errors import MapDecodeError
from aeroloc.mapping.occupancy import OccupancyMap

FORMAT_OCCUPANCY_GRID = "occupancy_grid"
FORMAT_POINT_CLOUD = "point_cloud"


def _require(data, key: str, fmt: str) -> np.ndarray:
    if key not in data.files:
        raise MapDecodeError(f"'{fmt}' map is missing field '{key}'")
    return data[key]


def _decode_occupancy_grid(data) -> OccupancyMap:
    occupied = _require(data, "occupied", FORMAT_OCCUPANCY_GRID)
    resolution = float(_require(data, "resolution", FORMAT_OCCUPANCY_GRID))
    origin = _require(data, "origin", FORMAT_OCCUPANCY_GRID)
    if occupied.ndim != 3:
        raise MapDecodeError(f"'occupied' must be 3-D, got shape {occupied.shape}")
    if origin.shape != (3,):
        raise MapDecodeError(f"'origin' must have shape (3,), got {origin.shape}")
    try:
        return OccupancyMap(occupied, resolution, origin)
    except ValueError as e:
        raise MapDecodeError(f"Invalid occupancy grid: {e}") from e


def _decode_point_cloud(data) -> OccupancyMap:
    points = _require(data, "points", FORMAT_POINT_CLOUD)
    resolution = float(_require(data, "resolution", FORMAT_POINT_CLOUD))
    padding = float(data["padding"]) if "padding" in data.files else 0.0
    try:
        return OccupancyMap.from_points(points, resolution, padding=padding)
    except ValueError as e:
        raise MapDecodeError(f"Invalid point cloud map: {e}") from e


_DECODERS = {
    FORMAT_OCCUPANCY_GRID: _decode_occupancy_grid,
    FORMAT_POINT_CLOUD: _decode_point_cloud,
}


def load_map(path: Union[str, Path]) -> OccupancyMap:
    """
    Load an occupancy map from a tagged ``.npz`` file.

    Args:
        path: Path to the map file.

    Returns:
        Decoded OccupancyMap.

    Raises:
        FileNotFoundError: If the file does not exist.
        MapDecodeError: If the file is not an archive, has no known
            ``format`` tag, or its fields are malformed.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Map file not found: {path}")

    try:
        with np.load(path, allow_pickle=False) as data:
            if "format" not in data.files:
                raise MapDecodeError(f"{path} has no 'format' field")
            fmt = str(data["format"])
            decoder = _DECODERS.get(fmt)
            if decoder is None:
                raise MapDecodeError(
                    f"Unknown map format '{fmt}', expected one of {sorted(_DECODERS)}"
                )
            return decoder(data)
    except (zipfile.BadZipFile, OSError, ValueError) as e:
        if isinstance(e, MapDecodeError):
            raise
        raise MapDecodeError(f"Could not read map file {path}: {e}") from e


def save_map(path: Union[str, Path], occupancy_map: OccupancyMap) -> Path:
    """
    Save an occupancy map in the ``occupancy_grid`` format.

    Returns:
        The path written.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "wb") as f:
        np.savez_compressed(
            f,
            format=np.array(FORMAT_OCCUPANCY_GRID),
            occupied=occupancy_map.occupied,
            resolution=np.array(occupancy_map.resolution),
            origin=occupancy_map.origin,
        )
    return path
