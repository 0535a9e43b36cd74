"""Infinite planes and discs.

Both primitives are two-sided: the hit normal always faces the incoming ray,
and ``front_face`` tells which side was struck.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from prismtrace.core.ray import Ray, Vec3, dot, length, normalize, ray_at, vec3
from prismtrace.errors import GeometryError

from .sphere import HitRecord, make_hit_record


def _intersect_plane(
    normal: Vec3, point: Vec3, ray: Ray, t_min: float, t_max: float
) -> float | None:
    """Return the ray parameter of the plane crossing, or None."""
    denom = dot(normal, ray.direction)
    if abs(denom) < 1e-8:
        return None
    o = ray.origin
    t = dot(normal, (point[0] - o[0], point[1] - o[1], point[2] - o[2])) / denom
    if not (t_min < t < t_max):
        return None
    return t


def _unit_normal(normal: Vec3) -> Vec3:
    n = vec3(*normal)
    if length(n) < 1e-12:
        raise GeometryError("Plane normal must be non-zero")
    return normalize(n)


@dataclass(frozen=True)
class Plane:
    """An infinitely large plane through ``point`` with the given normal."""

    point: Vec3
    normal: Vec3

    def __post_init__(self) -> None:
        object.__setattr__(self, "point", vec3(*self.point))
        object.__setattr__(self, "normal", _unit_normal(self.normal))

    def hit(self, ray: Ray, t_min: float, t_max: float) -> HitRecord | None:
        t = _intersect_plane(self.normal, self.point, ray, t_min, t_max)
        if t is None:
            return None
        return make_hit_record(ray, t, self.normal)


@dataclass(frozen=True)
class Disc:
    """A flat circular disc, e.g. a round area light.

    Attributes:
        center: The centre of the disc.
        normal: A vector perpendicular to the disc.
        radius: The radius of the disc (positive).
    """

    center: Vec3
    normal: Vec3
    radius: float

    def __post_init__(self) -> None:
        if not (math.isfinite(self.radius) and self.radius > 0.0):
            raise GeometryError(f"Disc radius must be positive, got {self.radius}")
        object.__setattr__(self, "center", vec3(*self.center))
        object.__setattr__(self, "normal", _unit_normal(self.normal))

    def hit(self, ray: Ray, t_min: float, t_max: float) -> HitRecord | None:
        t = _intersect_plane(self.normal, self.center, ray, t_min, t_max)
        if t is None:
            return None
        p = ray_at(ray, t)
        c = self.center
        offset = (p[0] - c[0], p[1] - c[1], p[2] - c[2])
        # Only intersections inside the circle count
        if dot(offset, offset) > self.radius * self.radius:
            return None
        return make_hit_record(ray, t, self.normal)
