"""Quad primitive with ray-quad intersection.

A quad is defined by:
- corner: A corner point Q of the quad
- edge_u: Edge vector from Q to adjacent corner
- edge_v: Edge vector from Q to other adjacent corner

The quad spans the parallelogram from Q to Q+u+v. The outward normal is
normalize(cross(u, v)), following the right-hand rule.

Ray-quad intersection uses the parametric plane test:
1. Find where the ray intersects the plane containing the quad
2. Check whether the intersection point lies within the quad bounds
"""

from __future__ import annotations

from dataclasses import dataclass, field

from prismtrace.core.ray import Ray, Vec3, cross, dot, length, normalize, ray_at, scale, vec3
from prismtrace.errors import GeometryError

from .sphere import HitRecord, make_hit_record


@dataclass(frozen=True)
class Quad:
    """A parallelogram defined by a corner point and two edge vectors.

    Attributes:
        corner: The corner point Q.
        edge_u: Edge vector from Q to adjacent corner.
        edge_v: Edge vector from Q to other adjacent corner.
    """

    corner: Vec3
    edge_u: Vec3
    edge_v: Vec3
    normal: Vec3 = field(init=False)
    _d: float = field(init=False, repr=False)
    _w_u: Vec3 = field(init=False, repr=False)
    _w_v: Vec3 = field(init=False, repr=False)

    def __post_init__(self) -> None:
        corner = vec3(*self.corner)
        u = vec3(*self.edge_u)
        v = vec3(*self.edge_v)
        n = cross(u, v)
        n_dot_n = dot(n, n)
        # Guard against degenerate quad (u and v parallel)
        if n_dot_n < 1e-12:
            raise GeometryError("Quad edges are parallel or zero-length")

        normal = normalize(n)
        # w_u = v x n / |n|^2 and w_v = n x u / |n|^2 satisfy
        # dot(w_u, u) = 1, dot(w_u, v) = 0, dot(w_v, u) = 0, dot(w_v, v) = 1
        object.__setattr__(self, "corner", corner)
        object.__setattr__(self, "edge_u", u)
        object.__setattr__(self, "edge_v", v)
        object.__setattr__(self, "normal", normal)
        object.__setattr__(self, "_d", dot(normal, corner))
        object.__setattr__(self, "_w_u", scale(cross(v, n), 1.0 / n_dot_n))
        object.__setattr__(self, "_w_v", scale(cross(n, u), 1.0 / n_dot_n))

    @property
    def area(self) -> float:
        return length(cross(self.edge_u, self.edge_v))

    def hit(self, ray: Ray, t_min: float, t_max: float) -> HitRecord | None:
        """Test for ray-quad intersection.

        Args:
            ray: The ray to test.
            t_min: Minimum t value to consider a valid hit.
            t_max: Maximum t value to consider a valid hit.

        Returns:
            The HitRecord, or None if the ray misses or runs parallel to the quad.
        """
        denom = dot(self.normal, ray.direction)
        if abs(denom) < 1e-8:
            return None

        t = (self._d - dot(self.normal, ray.origin)) / denom
        if not (t_min < t < t_max):
            return None

        p = ray_at(ray, t)
        pq = (p[0] - self.corner[0], p[1] - self.corner[1], p[2] - self.corner[2])
        alpha = dot(self._w_u, pq)
        beta = dot(self._w_v, pq)
        if not (0.0 <= alpha <= 1.0 and 0.0 <= beta <= 1.0):
            return None

        return make_hit_record(ray, t, self.normal)
