"""Materials module for spectral scattering models.

Components:
    emissive: Light sources (terminal)
    diffuse: Ideal diffuse (Lambertian) reflection
    specular: Mirror reflection with optional roughness
    refractive: Dispersive glass with Fresnel-weighted reflection/refraction
    dispatch: ``emit`` / ``scatter`` over the closed set of materials

Every material is an immutable value evaluated at a single wavelength per
call, so the same instance can be shared by many primitives and threads.
"""

from .diffuse import DiffuseMaterial, scatter_diffuse
from .dispatch import Material, ScatterResult, emit, is_emissive, scatter
from .emissive import EmissiveMaterial, emit_emissive
from .refractive import (
    BK7_GLASS,
    SF10_GLASS,
    CauchyIOR,
    ConstantIOR,
    IORModel,
    RefractiveMaterial,
    SellmeierIOR,
    cauchy_from_abbe,
    scatter_refractive,
)
from .specular import SpecularMaterial, scatter_specular

__all__ = [
    # Variants
    "EmissiveMaterial",
    "DiffuseMaterial",
    "SpecularMaterial",
    "RefractiveMaterial",
    "Material",
    # Dispersion
    "IORModel",
    "ConstantIOR",
    "CauchyIOR",
    "SellmeierIOR",
    "SF10_GLASS",
    "BK7_GLASS",
    "cauchy_from_abbe",
    # Dispatch
    "ScatterResult",
    "emit",
    "scatter",
    "is_emissive",
    "emit_emissive",
    "scatter_diffuse",
    "scatter_specular",
    "scatter_refractive",
]
