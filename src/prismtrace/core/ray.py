"""Ray data structure and vector utilities for spectral path tracing.

This module provides the immutable Ray value and the small set of vector and
sampling helpers used by the geometry, materials and integrator. Vectors are
plain ``(x, y, z)`` float tuples: paths are traced one at a time on worker
threads, and tuples are the cheapest immutable value Python offers for that.

A ray carries its wavelength for its whole lifetime, so dispersion is
resolved once per path. Bounces never mutate a ray; ``Ray.spawn`` produces
the next one.

Example:
    >>> origin = vec3(0.0, 0.0, 0.0)
    >>> direction = vec3(0.0, 0.0, -1.0)
    >>> ray = Ray(origin=origin, direction=direction, wavelength=550.0)
    >>> ray_at(ray, 5.0)
    (0.0, 0.0, -5.0)
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import numpy as np

# Type alias for 3D vectors
Vec3 = tuple[float, float, float]


def vec3(x: float, y: float, z: float) -> Vec3:
    """Build a vector from three components."""
    return (float(x), float(y), float(z))


@dataclass(frozen=True, slots=True)
class Ray:
    """A light path segment travelling backwards from the camera.

    Attributes:
        origin: The starting point of the ray.
        direction: The unit direction vector of the ray.
        wavelength: Wavelength in nanometres, fixed for the whole path.
        throughput: Multiplicative weight accumulated along the path so far.
        depth: Number of bounces that produced this ray (0 for primary rays).
    """

    origin: Vec3
    direction: Vec3
    wavelength: float
    throughput: float = 1.0
    depth: int = 0

    def spawn(self, origin: Vec3, direction: Vec3, throughput: float) -> Ray:
        """Return the ray continuing this path after one more bounce."""
        return Ray(
            origin=origin,
            direction=direction,
            wavelength=self.wavelength,
            throughput=throughput,
            depth=self.depth + 1,
        )


def ray_at(ray: Ray, t: float) -> Vec3:
    """Compute the point along the ray at parameter t.

    Args:
        ray: The ray to evaluate.
        t: The parameter value. Positive values are in front of the origin.

    Returns:
        The point ray.origin + t * ray.direction.
    """
    o = ray.origin
    d = ray.direction
    return (o[0] + t * d[0], o[1] + t * d[1], o[2] + t * d[2])


# =============================================================================
# Vector Utility Functions
# =============================================================================


def add(a: Vec3, b: Vec3) -> Vec3:
    return (a[0] + b[0], a[1] + b[1], a[2] + b[2])


def sub(a: Vec3, b: Vec3) -> Vec3:
    return (a[0] - b[0], a[1] - b[1], a[2] - b[2])


def scale(v: Vec3, s: float) -> Vec3:
    return (v[0] * s, v[1] * s, v[2] * s)


def neg(v: Vec3) -> Vec3:
    return (-v[0], -v[1], -v[2])


def dot(a: Vec3, b: Vec3) -> float:
    """Compute the dot product of two vectors."""
    return a[0] * b[0] + a[1] * b[1] + a[2] * b[2]


def cross(a: Vec3, b: Vec3) -> Vec3:
    """Compute the cross product of two vectors."""
    return (
        a[1] * b[2] - a[2] * b[1],
        a[2] * b[0] - a[0] * b[2],
        a[0] * b[1] - a[1] * b[0],
    )


def length_squared(v: Vec3) -> float:
    """Compute the squared length of a vector."""
    return v[0] * v[0] + v[1] * v[1] + v[2] * v[2]


def length(v: Vec3) -> float:
    """Compute the Euclidean length of a vector."""
    return math.sqrt(length_squared(v))


def normalize(v: Vec3) -> Vec3:
    """Normalize a vector to unit length.

    Args:
        v: The input vector.

    Returns:
        A unit vector in the same direction as v.
        If v is zero-length, returns a zero vector.
    """
    n = length(v)
    if n == 0.0:
        return (0.0, 0.0, 0.0)
    inv = 1.0 / n
    return (v[0] * inv, v[1] * inv, v[2] * inv)


def near_zero(v: Vec3) -> bool:
    """Check if a vector is near zero in all components.

    Useful for detecting degenerate cases in scattering.
    """
    s = 1e-8
    return abs(v[0]) < s and abs(v[1]) < s and abs(v[2]) < s


def reflect(incident: Vec3, normal: Vec3) -> Vec3:
    """Reflect an incident vector about a normal.

    Args:
        incident: The incoming direction vector (pointing toward the surface).
        normal: The surface normal (should be normalized).

    Returns:
        The reflected direction vector.
    """
    k = 2.0 * dot(incident, normal)
    return (
        incident[0] - k * normal[0],
        incident[1] - k * normal[1],
        incident[2] - k * normal[2],
    )


def refract(incident: Vec3, normal: Vec3, eta: float) -> Vec3 | None:
    """Refract an incident vector through a surface.

    Computes the refracted direction using Snell's law.

    Args:
        incident: The incoming direction vector (should be normalized).
        normal: The surface normal, facing against the incident direction.
        eta: The ratio of refractive indices (n_incident / n_transmitted).

    Returns:
        The refracted unit direction, or None if total internal reflection
        occurs.
    """
    cos_i = -dot(incident, normal)
    sin2_t = eta * eta * (1.0 - cos_i * cos_i)
    if sin2_t > 1.0:
        return None
    cos_t = math.sqrt(1.0 - sin2_t)
    k = eta * cos_i - cos_t
    return normalize(
        (
            eta * incident[0] + k * normal[0],
            eta * incident[1] + k * normal[1],
            eta * incident[2] + k * normal[2],
        )
    )


def schlick_fresnel(cosine: float, ref_idx: float) -> float:
    """Compute Fresnel reflectance using Schlick's approximation.

    Args:
        cosine: Cosine of the angle between the ray and the normal, taken on
            the optically less dense side of the interface.
        ref_idx: Ratio of refractive indices.

    Returns:
        The approximate Fresnel reflectance coefficient.
    """
    r0 = ((1.0 - ref_idx) / (1.0 + ref_idx)) ** 2
    return r0 + (1.0 - r0) * ((1.0 - cosine) ** 5)


# =============================================================================
# Random Sampling Utilities for Monte Carlo
# =============================================================================


def concentric_sample_disk(u: float, v: float) -> tuple[float, float]:
    """Map a point of the unit square onto the unit disk.

    Uses Shirley's concentric mapping, which preserves stratification of the
    input sample. Used for thin-lens aperture sampling.

    Args:
        u: First coordinate in [0, 1).
        v: Second coordinate in [0, 1).

    Returns:
        A point (x, y) with x^2 + y^2 <= 1.
    """
    a = 2.0 * u - 1.0
    b = 2.0 * v - 1.0
    if a == 0.0 and b == 0.0:
        return 0.0, 0.0
    if abs(a) > abs(b):
        r = a
        phi = (math.pi / 4.0) * (b / a)
    else:
        r = b
        phi = (math.pi / 2.0) - (math.pi / 4.0) * (a / b)
    return r * math.cos(phi), r * math.sin(phi)


def random_in_unit_sphere(rng: np.random.Generator) -> Vec3:
    """Generate a random point inside the unit sphere.

    Uses rejection sampling; the loop is capped so a pathological generator
    cannot hang a worker.

    Returns:
        A random point with length < 1 (the origin if every draw is rejected).
    """
    for _ in range(100):
        p = (rng.random() * 2.0 - 1.0, rng.random() * 2.0 - 1.0, rng.random() * 2.0 - 1.0)
        if length_squared(p) < 1.0:
            return p
    return (0.0, 0.0, 0.0)


def random_cosine_direction(rng: np.random.Generator) -> Vec3:
    """Generate a random direction with cosine-weighted distribution.

    The distribution has PDF = cos(theta) / pi.

    Returns:
        A random direction in the local coordinate frame (z-up).
    """
    r1 = rng.random()
    r2 = rng.random()
    phi = 2.0 * math.pi * r1
    sqrt_r2 = math.sqrt(r2)
    return (
        math.cos(phi) * sqrt_r2,
        math.sin(phi) * sqrt_r2,
        math.sqrt(max(0.0, 1.0 - r2)),
    )


def build_onb_from_normal(normal: Vec3) -> tuple[Vec3, Vec3, Vec3]:
    """Build an orthonormal basis from a normal vector.

    Args:
        normal: The surface normal (should be normalized).

    Returns:
        A tuple (tangent, bitangent, normal) forming an orthonormal basis.
    """
    # Choose a vector not parallel to normal
    a = (0.0, 1.0, 0.0) if abs(normal[0]) > 0.9 else (1.0, 0.0, 0.0)
    tangent = normalize(cross(a, normal))
    bitangent = cross(normal, tangent)
    return tangent, bitangent, normal


def local_to_world(local_dir: Vec3, tangent: Vec3, bitangent: Vec3, normal: Vec3) -> Vec3:
    """Transform a direction from local (z-up) to world coordinates."""
    x, y, z = local_dir
    return (
        x * tangent[0] + y * bitangent[0] + z * normal[0],
        x * tangent[1] + y * bitangent[1] + z * normal[1],
        x * tangent[2] + y * bitangent[2] + z * normal[2],
    )


def sample_cosine_hemisphere(normal: Vec3, rng: np.random.Generator) -> tuple[Vec3, float]:
    """Cosine-weighted hemisphere sampling for diffuse surfaces.

    Args:
        normal: The surface normal defining the hemisphere orientation.
        rng: Random number generator owned by the calling worker.

    Returns:
        A tuple of (direction, pdf) where pdf = cos(theta) / pi.
    """
    local_dir = random_cosine_direction(rng)
    tangent, bitangent, n = build_onb_from_normal(normal)
    world_dir = local_to_world(local_dir, tangent, bitangent, n)
    pdf = dot(world_dir, normal) / math.pi
    return world_dir, pdf
