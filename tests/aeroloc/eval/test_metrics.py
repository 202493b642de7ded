"""Tests for pose-tracking metrics and plots."""

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402
import pytest  # noqa: E402
from numpy.testing import assert_allclose  # noqa: E402

from aeroloc.eval import (  # noqa: E402
    compute_error_stats,
    compute_pose_errors,
    plot_particle_cloud,
    plot_tracking_errors,
    save_figure,
)
from aeroloc.localization import build_pose_array  # noqa: E402
from aeroloc.sim import make_box_room  # noqa: E402


class TestComputePoseErrors:
    """Test suite for compute_pose_errors."""

    def test_translation_and_yaw(self):
        truth = np.array([[0.0, 0.0, 0.0, 0.0, 0.0, 3.1], [1.0, 1.0, 1.0, 0.0, 0.0, 0.0]])
        est = np.array([[3.0, 4.0, 0.0, 0.0, 0.0, -3.1], [1.0, 1.0, 1.0, 0.5, 0.5, 0.2]])
        trans, yaw = compute_pose_errors(truth, est)
        assert_allclose(trans, [5.0, 0.0])
        # Yaw error wraps across ±π; roll and pitch are ignored
        assert_allclose(yaw, [2 * np.pi - 6.2, 0.2], atol=1e-12)

    def test_single_pose(self):
        trans, yaw = compute_pose_errors(np.zeros(6), np.array([1.0, 0, 0, 0, 0, 0]))
        assert trans.shape == (1,)
        assert trans[0] == pytest.approx(1.0)

    def test_shape_mismatch(self):
        with pytest.raises(ValueError):
            compute_pose_errors(np.zeros((3, 6)), np.zeros((2, 6)))
        with pytest.raises(ValueError):
            compute_pose_errors(np.zeros((3, 3)), np.zeros((3, 3)))


class TestComputeErrorStats:
    """Test suite for compute_error_stats."""

    def test_values(self):
        stats = compute_error_stats(np.array([1.0, 2.0, 3.0, 4.0]))
        assert stats["mean"] == pytest.approx(2.5)
        assert stats["median"] == pytest.approx(2.5)
        assert stats["rmse"] == pytest.approx(np.sqrt(7.5))
        assert stats["max"] == pytest.approx(4.0)
        assert 3.0 < stats["p95"] <= 4.0

    def test_empty(self):
        with pytest.raises(ValueError):
            compute_error_stats(np.array([]))


class TestPlots:
    """Plots build and save without a display."""

    def test_particle_cloud_and_errors(self, tmp_path):
        room = make_box_room((4.0, 3.0, 2.0), resolution=0.2, boxes=None)
        rng = np.random.default_rng(0)
        states = np.column_stack([rng.uniform(0.5, 3.5, (50, 3)), np.zeros((50, 3))])
        snapshot = build_pose_array(states, np.full(50, 1.0 / 50), 0.0, "map")

        fig = plot_particle_cloud(snapshot, room, truth=states[0], estimate=states[1])
        paths = save_figure(fig, tmp_path, "cloud", formats=("png", "svg"))
        assert [p.name for p in paths] == ["cloud.png", "cloud.svg"]
        assert all(p.exists() for p in paths)

        fig2 = plot_tracking_errors(np.arange(10) * 0.1, np.linspace(0, 1, 10), np.zeros(10))
        assert len(fig2.axes) == 2
        plt.close("all")
