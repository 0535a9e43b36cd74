"""Specular (mirror) material implementation.

A perfect mirror reflects deterministically about the normal. A non-zero
roughness perturbs the reflected direction by a random offset inside a sphere
of that radius, giving a glossy mirror; perturbed directions that end up
below the surface are absorbed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from prismtrace.core.ray import Vec3, dot, normalize, random_in_unit_sphere, reflect
from prismtrace.core.spectrum import Spectrum
from prismtrace.errors import MaterialError

if TYPE_CHECKING:
    import numpy as np


@dataclass(frozen=True, eq=False)
class SpecularMaterial:
    """Mirror-like reflector.

    Attributes:
        reflectance: Spectral reflectance in [0, 1].
        roughness: Fuzziness in [0, 1]. 0 = perfect mirror.
    """

    reflectance: Spectrum
    roughness: float = 0.0

    def __post_init__(self) -> None:
        if self.reflectance.max_value > 1.0:
            raise MaterialError(
                f"Reflectance peaks at {self.reflectance.max_value}, above 1. "
                "This would violate energy conservation."
            )
        if not 0.0 <= self.roughness <= 1.0:
            raise MaterialError(f"Roughness = {self.roughness} is outside [0, 1]")


def scatter_specular(
    material: SpecularMaterial,
    incident_direction: Vec3,
    normal: Vec3,
    wavelength: float,
    rng: np.random.Generator,
) -> tuple[Vec3, float] | None:
    """Reflect the incident direction, optionally perturbed by roughness.

    Args:
        material: The specular material.
        incident_direction: The incoming ray direction (normalized).
        normal: The surface normal facing the incoming ray.
        wavelength: The path's wavelength in nanometres.
        rng: Random number generator; untouched for perfect mirrors.

    Returns:
        A tuple of (scattered_direction, throughput_multiplier), or None if
        the perturbed direction points into the surface (absorbed).
    """
    reflected = reflect(incident_direction, normal)

    if material.roughness > 0.0:
        fuzz = random_in_unit_sphere(rng)
        r = material.roughness
        reflected = normalize(
            (reflected[0] + r * fuzz[0], reflected[1] + r * fuzz[1], reflected[2] + r * fuzz[2])
        )
        if dot(reflected, normal) <= 0.0:
            return None

    return reflected, material.reflectance.sample(wavelength)
