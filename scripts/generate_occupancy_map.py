"""
Generate a synthetic occupancy map for localization demos.

This script writes a walled indoor room with a few box obstacles as a
tagged .npz map file, readable by aeroloc.mapping.load_map. Optionally
it also writes a matching localization configuration as JSON.

Map file layout:
    format: "occupancy_grid"
    occupied: bool array (nx, ny, nz)
    resolution: voxel edge length (m)
    origin: world position of voxel (0, 0, 0) corner (m)
"""

import argparse
import json
from pathlib import Path

from aeroloc.localization.config import LocalizationConfig
from aeroloc.mapping.io import save_map
from aeroloc.sim.environment import DEFAULT_BOXES, make_box_room


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Generate a synthetic occupancy map",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Default 10 x 8 x 3 m room at 0.1 m resolution
  python scripts/generate_occupancy_map.py --output data/room.npz

  # Larger, coarser room without obstacles, plus a config file
  python scripts/generate_occupancy_map.py \\
      --output data/hall.npz \\
      --size 20 12 4 \\
      --resolution 0.2 \\
      --no-boxes \\
      --config-out data/hall_config.json
        """,
    )
    parser.add_argument(
        "--output",
        type=str,
        default="data/room.npz",
        help="Output map file (default: data/room.npz)",
    )
    parser.add_argument(
        "--size",
        type=float,
        nargs=3,
        default=[10.0, 8.0, 3.0],
        metavar=("X", "Y", "Z"),
        help="Room size in meters (default: 10 8 3)",
    )
    parser.add_argument(
        "--resolution", type=float, default=0.1, help="Voxel size in meters (default: 0.1)"
    )
    parser.add_argument(
        "--no-boxes", action="store_true", help="Do not place obstacles inside the room"
    )
    parser.add_argument(
        "--config-out",
        type=str,
        default=None,
        help="Also write a default localization config (JSON) to this path",
    )
    args = parser.parse_args()

    room = make_box_room(
        size=tuple(args.size),
        resolution=args.resolution,
        boxes=None if args.no_boxes else DEFAULT_BOXES,
    )
    path = save_map(Path(args.output), room)

    print(f"Map saved to: {path}")
    print(f"  Grid shape:     {room.shape}")
    print(f"  Resolution:     {room.resolution} m")
    print(f"  Occupied cells: {int(room.occupied.sum())} / {room.occupied.size}")

    if args.config_out:
        config = LocalizationConfig(
            initial_pose=(args.size[0] / 2, args.size[1] / 2, args.size[2] / 2, 0.0, 0.0, 0.0),
            global_z_range=(0.5, args.size[2] - 0.5),
        )
        config_path = Path(args.config_out)
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w") as f:
            json.dump(config.to_dict(), f, indent=2)
        print(f"Config saved to: {config_path}")


if __name__ == "__main__":
    main()
