"""Material dispatch over the closed set of material variants.

The integrator never inspects material types itself: it asks ``emit`` for
the radiance leaving a surface and ``scatter`` for the next direction and
throughput multiplier. Both dispatch with a single ``match`` on the variant.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, NamedTuple

from prismtrace.core.ray import Vec3

from .diffuse import DiffuseMaterial, scatter_diffuse
from .emissive import EmissiveMaterial, emit_emissive
from .refractive import RefractiveMaterial, scatter_refractive
from .specular import SpecularMaterial, scatter_specular

if TYPE_CHECKING:
    import numpy as np

Material = EmissiveMaterial | DiffuseMaterial | SpecularMaterial | RefractiveMaterial


class ScatterResult(NamedTuple):
    """Outcome of a surface interaction.

    Attributes:
        direction: Unit direction of the continuing path.
        throughput: Non-negative multiplier applied to the path weight.
    """

    direction: Vec3
    throughput: float


def is_emissive(material: Material) -> bool:
    """Return True if paths end on this material."""
    return isinstance(material, EmissiveMaterial)


def emit(material: Material, wavelength: float) -> float:
    """Radiance emitted by a surface at a wavelength (0 for non-emitters)."""
    match material:
        case EmissiveMaterial():
            return emit_emissive(material, wavelength)
        case _:
            return 0.0


def scatter(
    material: Material,
    incident_direction: Vec3,
    normal: Vec3,
    front_face: bool,
    wavelength: float,
    rng: np.random.Generator,
) -> ScatterResult | None:
    """Continue a path at a surface.

    Args:
        material: The material at the hit point.
        incident_direction: Direction of the arriving ray (normalized).
        normal: Surface normal facing the arriving ray.
        front_face: True if the ray hit the outside of the surface.
        wavelength: The path's wavelength in nanometres.
        rng: Random number generator owned by the calling worker.

    Returns:
        The scattered direction and multiplier, or None if the path is
        absorbed (emitters always absorb).

    Raises:
        TypeError: If the material is not one of the known variants.
    """
    match material:
        case EmissiveMaterial():
            return None
        case DiffuseMaterial():
            direction, multiplier = scatter_diffuse(material, normal, wavelength, rng)
        case SpecularMaterial():
            result = scatter_specular(material, incident_direction, normal, wavelength, rng)
            if result is None:
                return None
            direction, multiplier = result
        case RefractiveMaterial():
            direction, multiplier = scatter_refractive(
                material, incident_direction, normal, front_face, wavelength, rng
            )
        case _:
            raise TypeError(f"Unknown material type: {type(material).__name__}")

    if multiplier <= 0.0:
        return None
    return ScatterResult(direction, multiplier)
