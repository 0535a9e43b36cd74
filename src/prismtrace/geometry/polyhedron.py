"""Convex polyhedra built from half-spaces.

A ConvexPolyhedron is the intersection of a set of half-spaces, each given by
a point on its bounding plane and the plane's outward normal. This covers
prisms, slabs and boxes, the shapes needed to show dispersion through glass.

Intersection uses the slab method generalized to arbitrary planes: the ray
enters the solid at the largest entering-plane distance and leaves at the
smallest exiting-plane distance. A ray starting inside (after refraction into
the glass) only sees the exit distance, and is reported as a back-face hit.

Example:
    >>> prism = triangular_prism(center=(0.0, 0.0), side=2.0, z_min=-1.0, z_max=1.0)
    >>> len(prism.planes)
    5
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

from prismtrace.core.ray import Ray, Vec3, dot, length, normalize, vec3
from prismtrace.errors import GeometryError

from .sphere import HitRecord, make_hit_record


@dataclass(frozen=True)
class HalfSpace:
    """The region behind a plane: dot(p - point, normal) <= 0."""

    point: Vec3
    normal: Vec3

    def __post_init__(self) -> None:
        n = vec3(*self.normal)
        if length(n) < 1e-12:
            raise GeometryError("Half-space normal must be non-zero")
        object.__setattr__(self, "point", vec3(*self.point))
        object.__setattr__(self, "normal", normalize(n))

    def signed_distance(self, p: Vec3) -> float:
        q = self.point
        return dot((p[0] - q[0], p[1] - q[1], p[2] - q[2]), self.normal)


@dataclass(frozen=True)
class ConvexPolyhedron:
    """A convex solid bounded by planes with outward-facing normals."""

    planes: tuple[HalfSpace, ...]

    def __post_init__(self) -> None:
        planes = tuple(self.planes)
        if not planes:
            raise GeometryError("A convex polyhedron needs at least one bounding plane")
        object.__setattr__(self, "planes", planes)

    def contains(self, p: Vec3) -> bool:
        return all(plane.signed_distance(p) <= 0.0 for plane in self.planes)

    def hit(self, ray: Ray, t_min: float, t_max: float) -> HitRecord | None:
        """Test for ray-polyhedron intersection.

        Returns:
            The entry hit if it lies in (t_min, t_max), otherwise the exit hit
            for rays travelling inside the solid, otherwise None.
        """
        t_near = -math.inf
        t_far = math.inf
        near_normal: Vec3 | None = None
        far_normal: Vec3 | None = None

        for plane in self.planes:
            denom = dot(plane.normal, ray.direction)
            dist = plane.signed_distance(ray.origin)
            if abs(denom) < 1e-12:
                # Parallel to this plane: outside it means no intersection at all
                if dist > 0.0:
                    return None
                continue
            t = -dist / denom
            if denom < 0.0:
                if t > t_near:
                    t_near = t
                    near_normal = plane.normal
            elif t < t_far:
                t_far = t
                far_normal = plane.normal
            if t_near > t_far:
                return None

        if near_normal is not None and t_min < t_near < t_max:
            return make_hit_record(ray, t_near, near_normal)
        if far_normal is not None and t_min < t_far < t_max:
            return make_hit_record(ray, t_far, far_normal)
        return None


def extruded_polygon(
    vertices: Sequence[tuple[float, float]], z_min: float, z_max: float
) -> ConvexPolyhedron:
    """Extrude a convex polygon in the xy-plane between two z values.

    Args:
        vertices: Polygon corners (x, y), in either winding order.
        z_min: Lower cap height.
        z_max: Upper cap height.
    """
    if len(vertices) < 3:
        raise GeometryError("A polygon needs at least three vertices")
    if z_max <= z_min:
        raise GeometryError(f"Extrusion range is empty: z_min={z_min}, z_max={z_max}")

    pts = [(float(x), float(y)) for x, y in vertices]
    signed_area = sum(
        a[0] * b[1] - b[0] * a[1] for a, b in zip(pts, pts[1:] + pts[:1])
    )
    if abs(signed_area) < 1e-12:
        raise GeometryError("Polygon has zero area")
    if signed_area < 0.0:
        pts.reverse()

    planes = []
    for a, b in zip(pts, pts[1:] + pts[:1]):
        ex, ey = b[0] - a[0], b[1] - a[1]
        # Counter-clockwise winding: outward normal is the edge rotated clockwise
        planes.append(HalfSpace(point=(a[0], a[1], z_min), normal=(ey, -ex, 0.0)))
    planes.append(HalfSpace(point=(0.0, 0.0, z_max), normal=(0.0, 0.0, 1.0)))
    planes.append(HalfSpace(point=(0.0, 0.0, z_min), normal=(0.0, 0.0, -1.0)))
    return ConvexPolyhedron(planes=tuple(planes))


def triangular_prism(
    center: tuple[float, float],
    side: float,
    z_min: float,
    z_max: float,
    rotation: float = 0.0,
) -> ConvexPolyhedron:
    """An equilateral triangular prism with its axis along z.

    Args:
        center: Centroid of the triangular cross-section (x, y).
        side: Edge length of the triangle.
        z_min: Lower cap height.
        z_max: Upper cap height.
        rotation: Rotation of the cross-section about the z axis, in radians.
            At 0 one corner points along +y.
    """
    if side <= 0.0:
        raise GeometryError(f"Prism side must be positive, got {side}")
    circumradius = side / math.sqrt(3.0)
    corners = []
    for k in range(3):
        angle = rotation + math.pi / 2.0 + k * 2.0 * math.pi / 3.0
        corners.append(
            (center[0] + circumradius * math.cos(angle), center[1] + circumradius * math.sin(angle))
        )
    return extruded_polygon(corners, z_min, z_max)
