"""Scene-level primitive intersection testing.

A Scene owns an immutable tuple of primitives, each pairing a geometry with a
material, and answers nearest-hit queries against all of them. Materials are
shared by reference, so one glass instance can serve every face of a prism.

Once built, a Scene is never mutated, so any number of worker threads can
query it concurrently without locking.

Example:
    >>> from prismtrace.core.ray import Ray
    >>> from prismtrace.core.spectrum import Spectrum
    >>> from prismtrace.geometry import Sphere
    >>> from prismtrace.materials import DiffuseMaterial
    >>> grey = DiffuseMaterial(Spectrum.constant(0.5))
    >>> scene = Scene([Primitive(Sphere((0.0, 0.0, -3.0), 1.0), grey)])
    >>> ray = Ray((0.0, 0.0, 0.0), (0.0, 0.0, -1.0), 550.0)
    >>> scene.intersect(ray).distance
    2.0
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol

from prismtrace.core.ray import Ray, Vec3
from prismtrace.core.spectrum import Spectrum
from prismtrace.errors import ConfigurationError
from prismtrace.geometry import HitRecord
from prismtrace.materials import Material

logger = logging.getLogger(__name__)

# Minimum hit distance, rejects self-intersections caused by rounding
T_MIN = 1e-4
T_MAX = 1e10


class Geometry(Protocol):
    """Anything that can be intersected by a ray."""

    def hit(self, ray: Ray, t_min: float, t_max: float) -> HitRecord | None: ...


@dataclass(frozen=True)
class Primitive:
    """A geometric shape with the material covering it.

    Attributes:
        geometry: The shape (Sphere, Quad, Plane, Disc, ConvexPolyhedron).
        material: The material at every point of the shape.
    """

    geometry: Geometry
    material: Material


@dataclass(frozen=True, slots=True)
class Intersection:
    """Record of a ray-scene intersection with material information.

    Attributes:
        point: The 3D point where the ray intersected the surface.
        normal: The unit surface normal, facing against the ray.
        front_face: True if the ray hit the outside of the surface.
        distance: Ray parameter of the hit (distance for unit directions).
        material: The material of the hit primitive.
    """

    point: Vec3
    normal: Vec3
    front_face: bool
    distance: float
    material: Material


class Scene:
    """An immutable collection of primitives with nearest-hit queries.

    Args:
        primitives: The primitives making up the scene (at least one).
        background: Radiance seen by rays that escape the scene. None means
            black.

    Raises:
        ConfigurationError: If the scene has no primitives.
    """

    __slots__ = ("_primitives", "_background")

    def __init__(self, primitives: Iterable[Primitive], background: Spectrum | None = None) -> None:
        self._primitives = tuple(primitives)
        if not self._primitives:
            raise ConfigurationError("Scene must contain at least one primitive")
        self._background = background
        logger.debug("Built scene with %d primitives", len(self._primitives))

    @property
    def primitives(self) -> tuple[Primitive, ...]:
        return self._primitives

    @property
    def background(self) -> Spectrum | None:
        return self._background

    def background_radiance(self, wavelength: float) -> float:
        """Radiance carried back by a ray that leaves the scene."""
        if self._background is None:
            return 0.0
        return self._background.sample(wavelength)

    def intersect(
        self, ray: Ray, t_min: float = T_MIN, t_max: float = T_MAX
    ) -> Intersection | None:
        """Test a ray against all primitives in the scene.

        Iterates through every primitive and keeps the closest hit
        (smallest distance in (t_min, t_max)).

        Args:
            ray: The ray to test.
            t_min: Minimum distance to consider a valid hit.
            t_max: Maximum distance to consider a valid hit.

        Returns:
            The nearest Intersection, or None if the ray escapes.
        """
        closest_t = t_max
        closest_rec: HitRecord | None = None
        closest_prim: Primitive | None = None

        for prim in self._primitives:
            rec = prim.geometry.hit(ray, t_min, closest_t)
            if rec is not None:
                closest_t = rec.t
                closest_rec = rec
                closest_prim = prim

        if closest_rec is None:
            return None
        return Intersection(
            point=closest_rec.point,
            normal=closest_rec.normal,
            front_face=closest_rec.front_face,
            distance=closest_rec.t,
            material=closest_prim.material,
        )

    def __len__(self) -> int:
        return len(self._primitives)
