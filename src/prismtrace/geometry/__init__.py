"""Geometry module for shape primitives.

Components:
    sphere: Sphere primitive and the shared HitRecord
    quad: Parallelogram primitive
    plane: Infinite two-sided planes and discs
    polyhedron: Convex solids (prisms, slabs) built from half-spaces

Every primitive is an immutable object exposing

    hit(ray, t_min, t_max) -> HitRecord | None

so the scene can query any of them without knowing its type. Primitives are
read-only after construction and safe to share between worker threads.
"""

from .plane import Disc, Plane
from .polyhedron import ConvexPolyhedron, HalfSpace, extruded_polygon, triangular_prism
from .quad import Quad
from .sphere import HitRecord, Sphere, make_hit_record

__all__ = [
    "HitRecord",
    "make_hit_record",
    "Sphere",
    "Quad",
    "Plane",
    "Disc",
    "HalfSpace",
    "ConvexPolyhedron",
    "extruded_polygon",
    "triangular_prism",
]
