"""Tests for scene intersection queries.

Tests cover:
- Nearest-hit selection across primitive types
- Materials carried on intersections
- Background radiance for escaped rays
- Self-intersection epsilon
- Concurrent read-only queries
"""

import threading

import pytest


def _ray(origin, direction, wavelength=550.0):
    from prismtrace.core.ray import Ray, normalize

    return Ray(origin=origin, direction=normalize(direction), wavelength=wavelength)


def _two_sphere_scene(background=None):
    from prismtrace.core.spectrum import Spectrum
    from prismtrace.geometry import Sphere
    from prismtrace.materials import DiffuseMaterial, SpecularMaterial
    from prismtrace.scene import Primitive, Scene

    near = DiffuseMaterial(Spectrum.constant(0.5))
    far = SpecularMaterial(Spectrum.constant(0.9))
    scene = Scene(
        [
            Primitive(Sphere((0.0, 0.0, -10.0), 1.0), far),
            Primitive(Sphere((0.0, 0.0, -5.0), 1.0), near),
        ],
        background=background,
    )
    return scene, near, far


class TestSceneConstruction:
    """Tests for Scene construction."""

    def test_empty_scene_rejected(self):
        """Test that a scene needs at least one primitive."""
        from prismtrace.errors import ConfigurationError
        from prismtrace.scene import Scene

        with pytest.raises(ConfigurationError):
            Scene([])

    def test_primitives_are_frozen(self):
        """Test that the scene keeps its own immutable primitive tuple."""
        from prismtrace.core.spectrum import Spectrum
        from prismtrace.geometry import Sphere
        from prismtrace.materials import DiffuseMaterial
        from prismtrace.scene import Primitive, Scene

        prims = [Primitive(Sphere((0.0, 0.0, 0.0), 1.0), DiffuseMaterial(Spectrum.constant(0.5)))]
        scene = Scene(prims)
        prims.clear()

        assert len(scene) == 1
        assert isinstance(scene.primitives, tuple)


class TestSceneIntersect:
    """Tests for Scene.intersect."""

    def test_nearest_hit_wins(self):
        """Test that the closest primitive is returned regardless of order."""
        scene, near, _ = _two_sphere_scene()
        hit = scene.intersect(_ray((0.0, 0.0, 0.0), (0.0, 0.0, -1.0)))

        assert hit is not None
        assert hit.distance == pytest.approx(4.0)
        assert hit.point == pytest.approx((0.0, 0.0, -4.0))
        assert hit.normal == pytest.approx((0.0, 0.0, 1.0))
        assert hit.front_face
        assert hit.material is near

    def test_miss_returns_none(self):
        """Test that escaping rays return None."""
        scene, _, _ = _two_sphere_scene()
        assert scene.intersect(_ray((0.0, 0.0, 0.0), (0.0, 1.0, 0.0))) is None

    def test_t_max_limits_search(self):
        """Test that hits beyond t_max are ignored."""
        scene, _, _ = _two_sphere_scene()
        assert scene.intersect(_ray((0.0, 0.0, 0.0), (0.0, 0.0, -1.0)), t_max=3.0) is None

    def test_epsilon_prevents_self_intersection(self):
        """Test that a ray leaving a surface does not re-hit it at t ~ 0."""
        from prismtrace.scene import T_MIN

        scene, _, far = _two_sphere_scene()
        # Start exactly on the back of the near sphere, heading away
        hit = scene.intersect(_ray((0.0, 0.0, -6.0), (0.0, 0.0, -1.0)))

        assert hit is not None
        assert hit.distance > T_MIN
        assert hit.material is far

    def test_mixed_primitive_types(self):
        """Test nearest-hit over spheres, quads, planes and prisms."""
        from prismtrace.core.spectrum import Spectrum
        from prismtrace.geometry import Plane, Quad, Sphere, triangular_prism
        from prismtrace.materials import DiffuseMaterial, RefractiveMaterial
        from prismtrace.scene import Primitive, Scene

        wall = DiffuseMaterial(Spectrum.constant(0.7))
        glass = RefractiveMaterial(1.5)
        scene = Scene(
            [
                Primitive(Plane((0.0, 0.0, -20.0), (0.0, 0.0, 1.0)), wall),
                Primitive(Quad((-1.0, -1.0, -15.0), (2.0, 0.0, 0.0), (0.0, 2.0, 0.0)), wall),
                Primitive(triangular_prism((0.0, 0.0), 1.0, -8.0, -7.0), glass),
                Primitive(Sphere((5.0, 0.0, -5.0), 1.0), wall),
            ]
        )
        hit = scene.intersect(_ray((0.0, 0.0, 0.0), (0.0, 0.0, -1.0)))

        assert hit.material is glass
        assert hit.distance == pytest.approx(7.0)


class TestBackground:
    """Tests for background radiance."""

    def test_black_without_background(self):
        """Test that no background means zero radiance."""
        scene, _, _ = _two_sphere_scene()
        assert scene.background is None
        assert scene.background_radiance(550.0) == 0.0

    def test_background_spectrum(self):
        """Test that escaped rays see the background spectrum."""
        from prismtrace.core.spectrum import Spectrum

        sky = Spectrum.blackbody(7600.0, 0.5)
        scene, _, _ = _two_sphere_scene(background=sky)
        assert scene.background_radiance(450.0) == pytest.approx(sky.sample(450.0))


class TestConcurrentQueries:
    """Tests for thread-safe read-only access."""

    def test_parallel_intersections_agree(self):
        """Test that many threads querying one scene get identical answers."""
        scene, _, _ = _two_sphere_scene()
        ray = _ray((0.3, 0.2, 0.0), (0.0, 0.0, -1.0))
        expected = scene.intersect(ray)
        results = []
        lock = threading.Lock()

        def query():
            local = [scene.intersect(ray) for _ in range(200)]
            with lock:
                results.extend(local)

        threads = [threading.Thread(target=query) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(results) == 1600
        assert all(r == expected for r in results)
