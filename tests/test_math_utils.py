"""Unit tests for vector helpers and frame construction."""

import numpy as np
import pytest

from geometry import Frame
from math_utils import orthonormal_frame_from_axis, reflect, rotate_about_axis


class TestOrthonormalFrame:

    @pytest.mark.parametrize("axis", [
        (1.0, 0.0, 0.0), (0.0, 1.0, 0.0), (0.0, 0.0, -3.0),
        (1.0, 2.0, 3.0), (0.95, 0.1, 0.0), (-0.3, 0.4, 0.8),
    ])
    def test_right_handed_orthonormal_triple(self, axis):
        """u, v, w are unit length, mutually perpendicular and u x v = w."""
        u, v, w = orthonormal_frame_from_axis(np.array(axis))
        for vec in (u, v, w):
            assert np.linalg.norm(vec) == pytest.approx(1.0)
        assert u @ v == pytest.approx(0.0, abs=1e-12)
        assert u @ w == pytest.approx(0.0, abs=1e-12)
        assert v @ w == pytest.approx(0.0, abs=1e-12)
        np.testing.assert_allclose(np.cross(u, v), w, atol=1e-12)
        np.testing.assert_allclose(w, np.array(axis) / np.linalg.norm(axis))

    def test_frame_with_normal_along_up(self):
        """A normal parallel to the up reference still yields a right-handed frame."""
        f = Frame.facing((0, 0, 0), (0, 1, 0))
        np.testing.assert_allclose(f.axis, [0, 1, 0])
        assert f.axis @ f.up == pytest.approx(0.0, abs=1e-12)
        assert f.axis @ f.side == pytest.approx(0.0, abs=1e-12)
        np.testing.assert_allclose(np.cross(f.axis, f.up), f.side, atol=1e-12)

    def test_frame_keeps_up_reference(self):
        f = Frame.facing((0, 0, 0), (1, 0, 0))
        np.testing.assert_allclose(f.up, [0, 1, 0])
        np.testing.assert_allclose(f.side, [0, 0, 1])


class TestVectorOps:

    def test_reflect_flips_normal_component(self):
        np.testing.assert_allclose(reflect(np.array([1.0, -1.0, 0.0]) / np.sqrt(2), np.array([0.0, 1.0, 0.0])),
                                   np.array([1.0, 1.0, 0.0]) / np.sqrt(2))

    def test_quarter_turn_about_z(self):
        np.testing.assert_allclose(rotate_about_axis([1.0, 0.0, 0.0], [0.0, 0.0, 1.0], np.pi / 2),
                                   [0.0, 1.0, 0.0], atol=1e-12)
