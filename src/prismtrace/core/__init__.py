"""Core rendering module.

Components:
    ray: Ray value type, vector helpers and Monte Carlo sampling utilities
    spectrum: Spectral power distributions and CIE 1931 conversion
    integrator: Spectral path tracer (wavelength sampling, Russian roulette)
    accumulator: Per-pixel sample accumulation and partial buffers
    progressive: Multi-process progressive render sessions
    workers: Worker-process side of a session (per-pass streams, batches)

Light transport is solved one wavelength per path: each sample picks a
wavelength, traces it through the scene, and converts the resulting radiance
to CIE XYZ before it is accumulated.
"""

from .ray import (
    Ray,
    Vec3,
    build_onb_from_normal,
    concentric_sample_disk,
    cross,
    dot,
    length,
    length_squared,
    local_to_world,
    near_zero,
    normalize,
    random_cosine_direction,
    random_in_unit_sphere,
    ray_at,
    reflect,
    refract,
    sample_cosine_hemisphere,
    schlick_fresnel,
    vec3,
)
from .spectrum import CMF_Y_INTEGRAL, WAVELENGTH_MAX, WAVELENGTH_MIN, Spectrum, cie_xyz

# Note: integrator, accumulator, progressive and workers are NOT imported here; they
# depend on the scene and camera packages, which import from core.
#
# For progressive rendering, use:
#   from prismtrace.core.progressive import ProgressiveRenderer

__all__ = [
    "Ray",
    "Vec3",
    "ray_at",
    "vec3",
    "length",
    "length_squared",
    "normalize",
    "dot",
    "cross",
    "reflect",
    "refract",
    "schlick_fresnel",
    "near_zero",
    "concentric_sample_disk",
    "random_in_unit_sphere",
    "random_cosine_direction",
    "build_onb_from_normal",
    "local_to_world",
    "sample_cosine_hemisphere",
    "Spectrum",
    "cie_xyz",
    "CMF_Y_INTEGRAL",
    "WAVELENGTH_MIN",
    "WAVELENGTH_MAX",
]
