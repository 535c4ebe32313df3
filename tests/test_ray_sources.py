"""Unit tests for rays, laser patterns and image-object sources."""

import numpy as np
import pytest

from geometry import Frame
from ray_sources import (Ray, PatternConfig, MAX_RAY_COUNT, PATTERN_KINDS, WHITE_LIGHT_WAVELENGTHS,
                         line_offsets, ring_offsets, cross_offsets, disc_offsets, star_offsets,
                         smile_offsets, heart_offsets, generate_pattern_rays,
                         object_samples_from_image, object_cone_rays)


class TestRay:

    def test_direction_is_normalized(self):
        r = Ray(origin=(0, 0, 0), direction=(3, 4, 0))
        np.testing.assert_allclose(r.direction, [0.6, 0.8, 0.0])
        assert r.wavelength_nm == 532.0
        assert r.color is None
        assert r.diffraction_order is None

    def test_arrays_are_read_only(self):
        r = Ray(origin=(0, 0, 0), direction=(1, 0, 0))
        with pytest.raises(ValueError):
            r.origin[0] = 5.0

    def test_derive_keeps_wavelength_color_and_order(self):
        r = Ray((0, 0, 0), (1, 0, 0), wavelength_nm=650, color=(1, 0.5, 0), diffraction_order=1)
        child = r.derive((1, 0, 0), (0, 1, 0))
        assert child.wavelength_nm == 650
        assert child.color == (1.0, 0.5, 0.0)
        assert child.diffraction_order == 1
        assert r.derive((1, 0, 0), (0, 1, 0), diffraction_order=-1).diffraction_order == -1

    def test_point_at(self):
        r = Ray((1, 2, 3), (0, 0, 2))
        np.testing.assert_allclose(r.point_at(2.5), [1, 2, 5.5])


class TestPatternConfig:

    @pytest.mark.parametrize("kwargs", [
        dict(kind='spiral'),
        dict(ray_count=0),
        dict(ray_count=MAX_RAY_COUNT + 1),
        dict(beam_size=0.0),
        dict(wavelength=-10.0),
        dict(wavelength='rainbow'),
    ])
    def test_invalid_config_raises(self, kwargs):
        with pytest.raises(ValueError):
            PatternConfig(**kwargs)

    def test_white_expands_to_three_wavelengths(self):
        cfg = PatternConfig(wavelength='white')
        assert cfg.is_white
        assert cfg.wavelengths == WHITE_LIGHT_WAVELENGTHS == (450.0, 532.0, 650.0)

    def test_single_wavelength(self):
        cfg = PatternConfig(wavelength=650)
        assert not cfg.is_white
        assert cfg.wavelengths == (650.0,)


class TestOffsets:

    def test_line_is_evenly_spaced(self):
        off = line_offsets(5, 1.0)
        np.testing.assert_allclose(off[:, 0], [-0.5, -0.25, 0.0, 0.25, 0.5])
        np.testing.assert_allclose(off[:, 1], 0.0)

    def test_line_single_ray_on_axis(self):
        np.testing.assert_allclose(line_offsets(1, 1.0), [[0.0, 0.0]])

    def test_ring_radius(self):
        off = ring_offsets(4, 2.0)
        np.testing.assert_allclose(np.hypot(off[:, 0], off[:, 1]), 1.0)
        np.testing.assert_allclose(off[0], [0.0, 1.0], atol=1e-12)
        np.testing.assert_allclose(off[1], [1.0, 0.0], atol=1e-12)

    def test_cross_uses_half_the_rays_per_arm(self):
        off = cross_offsets(10, 1.0)
        assert off.shape == (10, 2)
        np.testing.assert_allclose(off[:5, 1], 0.0)
        np.testing.assert_allclose(off[5:, 0], 0.0)
        assert cross_offsets(1, 1.0).shape == (0, 2)
        assert cross_offsets(11, 1.0).shape == (10, 2)

    def test_disc_is_inside_and_reproducible(self):
        a = disc_offsets(500, 2.0, np.random.default_rng(7))
        b = disc_offsets(500, 2.0, np.random.default_rng(7))
        np.testing.assert_array_equal(a, b)
        assert np.all(np.hypot(a[:, 0], a[:, 1]) <= 1.0)

    def test_disc_fills_the_area(self, rng):
        """Uniform area sampling puts about a quarter of the points inside half the radius."""
        off = disc_offsets(4000, 2.0, rng)
        inner = np.mean(np.hypot(off[:, 0], off[:, 1]) < 0.5)
        assert 0.2 < inner < 0.3

    @pytest.mark.parametrize("fn", [star_offsets, smile_offsets])
    def test_silhouettes_fit_the_beam(self, fn):
        off = fn(100, 2.0)
        assert off.shape == (100, 2)
        assert np.all(np.hypot(off[:, 0], off[:, 1]) <= 1.0 + 1e-12)

    def test_heart_count(self):
        off = heart_offsets(64, 1.0)
        assert off.shape == (64, 2)
        assert np.all(np.isfinite(off))

    @pytest.mark.parametrize("n", [1, 2, 3, 7])
    def test_smile_small_counts(self, n):
        assert smile_offsets(n, 1.0).shape == (n, 2)


class TestGeneratePatternRays:

    def test_rays_start_in_source_plane(self):
        cfg = PatternConfig(kind='radial', ray_count=12, source_position=(-9.75, 0, 0))
        rays = generate_pattern_rays(cfg)
        assert len(rays) == 12
        for r in rays:
            assert r.origin[0] == pytest.approx(-9.75)
            np.testing.assert_allclose(r.direction, [1, 0, 0])
            assert np.hypot(r.origin[1], r.origin[2]) == pytest.approx(0.5)

    def test_line_runs_along_world_y(self):
        rays = generate_pattern_rays(PatternConfig(kind='line', ray_count=3))
        np.testing.assert_allclose([r.origin[1] for r in rays], [-0.5, 0.0, 0.5])
        np.testing.assert_allclose([r.origin[2] for r in rays], 0.0, atol=1e-12)

    def test_white_light_repeats_the_pattern(self):
        rays = generate_pattern_rays(PatternConfig(kind='line', ray_count=4, wavelength='white'))
        assert len(rays) == 12
        assert [r.wavelength_nm for r in rays[::4]] == [450.0, 532.0, 650.0]
        np.testing.assert_allclose(rays[0].origin, rays[4].origin)

    def test_seeded_disc_is_reproducible(self):
        cfg = PatternConfig(kind='disc', ray_count=50)
        a = generate_pattern_rays(cfg, np.random.default_rng(3))
        b = generate_pattern_rays(cfg, np.random.default_rng(3))
        for ra, rb in zip(a, b):
            np.testing.assert_array_equal(ra.origin, rb.origin)

    @pytest.mark.parametrize("kind", PATTERN_KINDS)
    def test_every_kind_generates(self, kind, rng):
        rays = generate_pattern_rays(PatternConfig(kind=kind, ray_count=20), rng)
        assert 0 < len(rays) <= 20


class TestImageObject:

    def test_sampling_grid_and_colors(self):
        img = np.full((100, 100, 3), 255, dtype=np.uint8)
        img[0, 0] = (255, 0, 0)
        samples = object_samples_from_image(img, center=(-10, 0, 0), width=4, height=4, step=25)
        assert len(samples) == 16
        first = samples[0]
        np.testing.assert_allclose(first.position, [-10, 2, 2])
        assert first.color == (1.0, 0.0, 0.0)
        assert samples[1].color == (1.0, 1.0, 1.0)

    def test_transparent_pixels_are_skipped(self):
        img = np.zeros((50, 50, 4), dtype=np.uint8)
        img[:25, :, 3] = 255
        samples = object_samples_from_image(img, center=(0, 0, 0), step=25)
        assert len(samples) == 2

    def test_bad_shape_raises(self):
        with pytest.raises(ValueError):
            object_samples_from_image(np.zeros((10, 10)), center=(0, 0, 0))

    def test_cone_rays(self):
        img = np.full((10, 10, 3), 0.5)
        samples = object_samples_from_image(img, center=(-10, 0, 0), step=10)
        frame = Frame.facing((0, 0, 0), (1, 0, 0))
        rays = object_cone_rays(samples, frame, lens_radius=3.5)
        assert len(rays) == 5
        origin = samples[0].position
        np.testing.assert_allclose(rays[0].direction, -origin / np.linalg.norm(origin))
        for r in rays:
            assert r.wavelength_nm == 555.0
            assert r.color == (0.5, 0.5, 0.5)
            t = -r.origin[0] / r.direction[0]
            hit = r.point_at(t)
            assert np.hypot(hit[1], hit[2]) == pytest.approx(0.0 if r is rays[0] else 3.5)
