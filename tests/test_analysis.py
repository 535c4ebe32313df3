"""Tests for trace diagnostics and plots."""

import matplotlib
matplotlib.use("Agg")

import numpy as np
import pytest

from analysis import (intersect_path_with_plane, intersect_paths_with_plane, axis_crossing,
                      fit_gaussian_2d, rms_spot_radius, collimation_percentage,
                      circle_of_confusion, plot_sensor_image, plot_spot_diagram)
from geometry import Frame


class TestPlaneCrossings:

    def test_segment_crossing(self):
        path = np.array([[0, 0, 0], [10, 2, 0]], dtype=float)
        p = intersect_path_with_plane(path, point=(4, 0, 0), normal=(1, 0, 0))
        np.testing.assert_allclose(p, [4, 0.8, 0])

    def test_no_crossing(self):
        path = np.array([[0, 0, 0], [2, 0, 0]], dtype=float)
        assert intersect_path_with_plane(path, (4, 0, 0), (1, 0, 0)) is None

    def test_local_coordinates(self):
        frame = Frame.facing((5, 0, 0), (1, 0, 0))
        paths = [np.array([[0, 1, 2], [10, 1, 2]], dtype=float),
                 np.array([[0, 0, 0], [1, 0, 0]], dtype=float)]
        xy = intersect_paths_with_plane(paths, frame)
        np.testing.assert_allclose(xy, [[1, 2]])
        assert intersect_paths_with_plane([], frame).shape == (0, 2)

    def test_axis_crossing(self):
        frame = Frame.facing((0, 0, 0), (1, 0, 0))
        assert axis_crossing(np.array([0, 0.5, 0]), np.array([1, -0.125, 0]), frame) == pytest.approx(4.0)
        assert axis_crossing(np.array([0, 0.3, 0.4]), np.array([1, -0.06, -0.08]), frame) == pytest.approx(5.0)
        assert axis_crossing(np.array([0, 0.5, 0]), np.array([1, 0, 0]), frame) is None
        assert axis_crossing(np.array([2, 0, 0]), np.array([1, 0, 0]), frame) == 2.0


class TestSpots:

    def test_gaussian_fit_principal_axes(self):
        xy = np.array([[1, 0], [-1, 0], [0, 2], [0, -2]], dtype=float)
        pars = fit_gaussian_2d(xy)
        np.testing.assert_allclose(pars['mu'], [0, 0])
        np.testing.assert_allclose(pars['eigvals'], [8 / 3, 2 / 3])
        np.testing.assert_allclose(pars['w'], np.sqrt(2) * np.sqrt([8 / 3, 2 / 3]))
        assert abs(pars['angle_deg']) == pytest.approx(90.0)

    def test_gaussian_fit_empty(self):
        assert fit_gaussian_2d(np.empty((0, 2))) == {}

    def test_rms_spot_radius(self):
        assert rms_spot_radius(np.array([[1.0, 0.0], [-1.0, 0.0]])) == pytest.approx(1.0)
        assert rms_spot_radius(np.array([[3.0, 3.0], [3.0, 3.0]])) == 0.0
        assert rms_spot_radius(np.empty((0, 2))) == 0.0


class TestCollimation:

    def test_parallel_rays_are_fully_collimated(self):
        dirs = [np.array([1.0, 0.0, 0.0])] * 5
        assert collimation_percentage(dirs) == 100.0

    def test_spread_reduces_score(self):
        dirs = [np.array([1.0, 0.01, 0.0]), np.array([1.0, -0.01, 0.0])]
        assert collimation_percentage(dirs) == pytest.approx(80.0)

    def test_score_floors_at_zero(self):
        dirs = [np.array([0.0, 1.0, 0.0]), np.array([0.0, -1.0, 0.0])]
        assert collimation_percentage(dirs) == 0.0

    def test_too_few_rays(self):
        assert collimation_percentage([]) == 100.0
        assert collimation_percentage([np.array([0.0, 1.0, 0.0])]) == 100.0

    def test_other_transverse_axis(self):
        dirs = [np.array([1.0, 0.0, 0.01]), np.array([1.0, 0.0, -0.01])]
        assert collimation_percentage(dirs) == 100.0
        assert collimation_percentage(dirs, axis=(0, 0, 1)) == pytest.approx(80.0)


class TestCircleOfConfusion:

    def test_in_focus(self):
        assert circle_of_confusion(5.0, 10.0, 10.0, 3.5) == pytest.approx(0.0)

    def test_defocus(self):
        assert circle_of_confusion(5.0, 10.0, 12.0, 3.5) == pytest.approx(0.7)
        assert circle_of_confusion(5.0, 10.0, 8.0, 3.5) == pytest.approx(0.7)

    def test_object_at_focal_plane(self):
        assert circle_of_confusion(5.0, 5.0, 8.0, 3.5) == 3.5

    def test_virtual_image(self):
        # so = 2.5, f = 5 -> si = -5: cone diverges from 5 in front of the lens
        assert circle_of_confusion(5.0, 2.5, 5.0, 1.0) == pytest.approx(2.0)

    @pytest.mark.parametrize("args", [(0.0, 10.0, 8.0, 1.0), (5.0, 0.0, 8.0, 1.0),
                                      (5.0, -1.0, 8.0, 1.0), (5.0, 10.0, 8.0, -1.0)])
    def test_invalid_inputs(self, args):
        with pytest.raises(ValueError):
            circle_of_confusion(*args)


class TestPlots:

    def test_plot_sensor_image(self):
        ax = plot_sensor_image(np.zeros((8, 8, 3), dtype=np.uint8), title="empty", show=False)
        assert ax.get_title() == "empty"

    def test_plot_spot_diagram(self):
        xy = np.random.default_rng(0).normal(size=(50, 2))
        ax = plot_spot_diagram(xy, title_prefix="spots", show=False)
        assert ax.get_title().startswith("spots rms=")

    def test_plot_spot_diagram_without_hits(self):
        ax = plot_spot_diagram(np.empty((0, 2)), title_prefix="none", show=False)
        assert "no hits" in ax.get_title()
