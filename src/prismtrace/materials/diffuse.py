"""Diffuse (Lambertian) material implementation.

The Lambertian BRDF is:
    f_r(wi, wo) = reflectance / pi

Directions are drawn from a cosine-weighted hemisphere, pdf = cos(theta) / pi,
so the throughput multiplier for a bounce is

    f_r * cos(theta) / pdf = (reflectance / pi) * cos(theta) / (cos(theta) / pi)
                           = reflectance

evaluated at the path's wavelength.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from prismtrace.core.ray import Vec3, near_zero, normalize, sample_cosine_hemisphere
from prismtrace.core.spectrum import Spectrum
from prismtrace.errors import MaterialError

if TYPE_CHECKING:
    import numpy as np


@dataclass(frozen=True, eq=False)
class DiffuseMaterial:
    """Ideal diffuse reflector.

    Attributes:
        reflectance: Spectral reflectance, each sample in [0, 1] for energy
            conservation.
    """

    reflectance: Spectrum

    def __post_init__(self) -> None:
        if self.reflectance.max_value > 1.0:
            raise MaterialError(
                f"Reflectance peaks at {self.reflectance.max_value}, above 1. "
                "This would violate energy conservation."
            )


def scatter_diffuse(
    material: DiffuseMaterial,
    normal: Vec3,
    wavelength: float,
    rng: np.random.Generator,
) -> tuple[Vec3, float]:
    """Sample a scattered direction for a diffuse surface.

    Args:
        material: The diffuse material.
        normal: The surface normal facing the incoming ray.
        wavelength: The path's wavelength in nanometres.
        rng: Random number generator owned by the calling worker.

    Returns:
        A tuple of (scattered_direction, throughput_multiplier).
    """
    scattered_direction, _ = sample_cosine_hemisphere(normal, rng)

    # Degenerate sample from floating point cancellation
    if near_zero(scattered_direction):
        scattered_direction = normal

    return normalize(scattered_direction), material.reflectance.sample(wavelength)
