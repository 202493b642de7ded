"""Tests for loading and saving tagged map files."""

import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from aeroloc.errors import MapDecodeError
from aeroloc.mapping import OccupancyMap, load_map, save_map
from aeroloc.sim import make_box_room


class TestMapIO:
    """Test suite for load_map / save_map."""

    def test_save_load_round_trip(self, tmp_path):
        room = make_box_room((3.0, 2.0, 2.0), resolution=0.2)
        path = save_map(tmp_path / "maps" / "room.npz", room)
        assert path.exists()

        loaded = load_map(path)
        assert isinstance(loaded, OccupancyMap)
        assert loaded.resolution == pytest.approx(0.2)
        assert_allclose(loaded.origin, room.origin)
        assert_array_equal(loaded.occupied, room.occupied)

    def test_point_cloud_format(self, tmp_path):
        path = tmp_path / "cloud.npz"
        points = np.array([[0.0, 0.0, 0.0], [2.0, 1.0, 1.0]])
        np.savez(path, format=np.array("point_cloud"), points=points, resolution=np.array(0.5))

        loaded = load_map(path)
        assert loaded.shape == (5, 3, 3)
        assert loaded.is_occupied(points).all()

    def test_unknown_format_rejected(self, tmp_path):
        path = tmp_path / "mesh.npz"
        np.savez(path, format=np.array("triangle_mesh"), vertices=np.zeros((3, 3)))
        with pytest.raises(MapDecodeError, match="Unknown map format"):
            load_map(path)

    def test_missing_format_tag(self, tmp_path):
        path = tmp_path / "untagged.npz"
        np.savez(path, occupied=np.zeros((2, 2, 2), dtype=bool))
        with pytest.raises(MapDecodeError):
            load_map(path)

    def test_missing_field(self, tmp_path):
        path = tmp_path / "partial.npz"
        np.savez(path, format=np.array("occupancy_grid"), resolution=np.array(0.1))
        with pytest.raises(MapDecodeError, match="occupied"):
            load_map(path)

    def test_malformed_grid(self, tmp_path):
        path = tmp_path / "flat.npz"
        np.savez(
            path,
            format=np.array("occupancy_grid"),
            occupied=np.zeros((4, 4), dtype=bool),
            resolution=np.array(0.1),
            origin=np.zeros(3),
        )
        with pytest.raises(MapDecodeError):
            load_map(path)

    def test_not_an_archive(self, tmp_path):
        path = tmp_path / "garbage.npz"
        path.write_text("this is not a map")
        with pytest.raises(MapDecodeError):
            load_map(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_map(tmp_path / "nope.npz")
