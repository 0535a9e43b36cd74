"""Sphere primitive with ray-sphere intersection.

This module also defines HitRecord, the per-primitive intersection result
shared by all shapes.

Example:
    >>> from prismtrace.core.ray import Ray
    >>> sphere = Sphere(center=(0.0, 0.0, -3.0), radius=1.0)
    >>> ray = Ray(origin=(0.0, 0.0, 0.0), direction=(0.0, 0.0, -1.0), wavelength=550.0)
    >>> sphere.hit(ray, 1e-4, 1e10).t
    2.0
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from prismtrace.core.ray import Ray, Vec3, dot, ray_at, vec3
from prismtrace.errors import GeometryError


@dataclass(frozen=True, slots=True)
class HitRecord:
    """Record of a ray-primitive intersection.

    Attributes:
        t: The parameter value along the ray where intersection occurred.
        point: The 3D point where the ray intersected the surface.
        normal: The unit surface normal, always facing against the ray.
        front_face: True if the ray hit the outside of the surface.
    """

    t: float
    point: Vec3
    normal: Vec3
    front_face: bool


def make_hit_record(ray: Ray, t: float, outward_normal: Vec3) -> HitRecord:
    """Build a HitRecord, orienting the normal against the ray direction.

    Args:
        ray: The ray that hit the surface.
        t: The ray parameter of the hit.
        outward_normal: The unit normal pointing out of the surface.
    """
    front_face = dot(ray.direction, outward_normal) < 0.0
    if front_face:
        normal = outward_normal
    else:
        normal = (-outward_normal[0], -outward_normal[1], -outward_normal[2])
    return HitRecord(t=t, point=ray_at(ray, t), normal=normal, front_face=front_face)


def _solve_quadratic_robust(h: float, a: float, c: float, sqrt_d: float) -> tuple[float, float]:
    """Solve a*t^2 + 2*h*t + c = 0 using the stable form from Ray Tracing Gems.

    Returns:
        Tuple of (t0, t1) where t0 <= t1.
    """
    # Use sign of h to avoid catastrophic cancellation
    q = -(h + math.copysign(sqrt_d, h))
    if abs(q) < 1e-12:
        t0 = (-h - sqrt_d) / a
        t1 = (-h + sqrt_d) / a
    else:
        t0 = q / a
        t1 = c / q
    if t0 > t1:
        t0, t1 = t1, t0
    return t0, t1


@dataclass(frozen=True)
class Sphere:
    """A sphere defined by its center and radius.

    Attributes:
        center: The center point of the sphere.
        radius: The radius of the sphere (positive).
    """

    center: Vec3
    radius: float

    def __post_init__(self) -> None:
        if not (math.isfinite(self.radius) and self.radius > 0.0):
            raise GeometryError(f"Sphere radius must be positive, got {self.radius}")
        object.__setattr__(self, "center", vec3(*self.center))

    def hit(self, ray: Ray, t_min: float, t_max: float) -> HitRecord | None:
        """Test for ray-sphere intersection.

        Solves |origin + t * direction - center|^2 = radius^2 in half-b form
        and returns the first root in (t_min, t_max).

        Args:
            ray: The ray to test.
            t_min: Minimum t value to consider a valid hit (avoids self-intersection).
            t_max: Maximum t value to consider a valid hit.

        Returns:
            The nearest HitRecord, or None if the ray misses.
        """
        o = ray.origin
        d = ray.direction
        c0 = self.center
        oc = (o[0] - c0[0], o[1] - c0[1], o[2] - c0[2])

        a = dot(d, d)
        h = dot(d, oc)
        c = dot(oc, oc) - self.radius * self.radius
        discriminant = h * h - a * c
        if discriminant < 0.0:
            return None

        t0, t1 = _solve_quadratic_robust(h, a, c, math.sqrt(discriminant))
        t = t0
        if not (t_min < t < t_max):
            t = t1
            if not (t_min < t < t_max):
                return None

        p = ray_at(ray, t)
        inv_r = 1.0 / self.radius
        outward = ((p[0] - c0[0]) * inv_r, (p[1] - c0[1]) * inv_r, (p[2] - c0[2]) * inv_r)
        return make_hit_record(ray, t, outward)
