"""Refractive (glass/water) material with wavelength-dependent index.

Key physics:
    - Snell's law for refraction: n1 * sin(theta1) = n2 * sin(theta2)
    - Schlick's approximation for Fresnel reflectance
    - Total internal reflection when sin(theta_t) > 1

The index of refraction is a function of wavelength, so a white beam entering
a prism leaves it fanned out into its colours. Because every path carries a
single wavelength, the scatter only ever needs n(wavelength) for that path.

Three dispersion models are provided:

    ConstantIOR(n)       n(lambda) = n (no dispersion)
    CauchyIOR(a, b)      n(lambda) = a + b / lambda^2, lambda in micrometres
    SellmeierIOR(b, c)   n^2(lambda) = 1 + sum(b_i lambda^2 / (lambda^2 - c_i))

Example:
    >>> glass = RefractiveMaterial(SF10_GLASS)
    >>> glass.ior.index_at(450.0) > glass.ior.index_at(650.0)
    True
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field

import numpy as np

from prismtrace.core.ray import Vec3, dot, reflect, refract, schlick_fresnel
from prismtrace.core.spectrum import WAVELENGTH_MAX, WAVELENGTH_MIN, Spectrum
from prismtrace.errors import MaterialError

# Below this cosine the incidence is treated as grazing and reflects
GRAZING_COSINE = 1e-6


@dataclass(frozen=True)
class ConstantIOR:
    """A non-dispersive index of refraction."""

    n: float

    def index_at(self, wavelength: float) -> float:
        return self.n


@dataclass(frozen=True)
class CauchyIOR:
    """Cauchy's two-term dispersion formula.

    Attributes:
        a: Index at infinite wavelength.
        b: Dispersion coefficient in square micrometres.
    """

    a: float
    b: float

    def index_at(self, wavelength: float) -> float:
        um = wavelength * 1e-3
        return self.a + self.b / (um * um)


@dataclass(frozen=True)
class SellmeierIOR:
    """Three-term Sellmeier equation, the form glass catalogues publish.

    Attributes:
        b: Oscillator strengths.
        c: Resonance wavelengths squared, in square micrometres.
    """

    b: tuple[float, float, float]
    c: tuple[float, float, float]

    def index_at(self, wavelength: float) -> float:
        um2 = (wavelength * 1e-3) ** 2
        n2 = 1.0
        for b_i, c_i in zip(self.b, self.c):
            n2 += b_i * um2 / (um2 - c_i)
        return math.sqrt(n2)


IORModel = ConstantIOR | CauchyIOR | SellmeierIOR

# Schott SF10 dense flint glass
SF10_GLASS = SellmeierIOR(
    b=(1.62153902, 0.256287842, 1.64447552),
    c=(0.0122241457, 0.0595736775, 147.468793),
)

# Schott N-BK7 borosilicate crown glass
BK7_GLASS = SellmeierIOR(
    b=(1.03961212, 0.231792344, 1.01046945),
    c=(0.00600069867, 0.0200179144, 103.560653),
)


def cauchy_from_abbe(n_d: float, abbe_number: float) -> CauchyIOR:
    """Fit a Cauchy model to a catalogue refractive index and Abbe number.

    Uses the Fraunhofer d (587.6 nm), F (486.1 nm) and C (656.3 nm) lines:
    V = (n_d - 1) / (n_F - n_C).

    Raises:
        MaterialError: If the Abbe number is not positive.
    """
    if abbe_number <= 0.0:
        raise MaterialError(f"Abbe number must be positive, got {abbe_number}")
    inv_f = 1.0 / 0.4861**2
    inv_c = 1.0 / 0.6563**2
    inv_d = 1.0 / 0.5876**2
    b = (n_d - 1.0) / abbe_number / (inv_f - inv_c)
    return CauchyIOR(a=n_d - b * inv_d, b=b)


def _validate_ior(ior: IORModel) -> None:
    for wavelength in np.linspace(WAVELENGTH_MIN, WAVELENGTH_MAX, 9):
        n = ior.index_at(float(wavelength))
        if not math.isfinite(n) or n < 1.0:
            raise MaterialError(
                f"Index of refraction = {n} at {wavelength:.0f} nm is less than 1.0. "
                "IOR must be >= 1.0 for physically meaningful materials."
            )


@dataclass(frozen=True, eq=False)
class RefractiveMaterial:
    """Transparent dielectric such as glass or water.

    Attributes:
        ior: Dispersion model giving the index of refraction per wavelength.
        transmittance: Fraction of light surviving each transmission.
    """

    ior: IORModel
    transmittance: Spectrum = field(default_factory=lambda: Spectrum.constant(1.0))

    def __post_init__(self) -> None:
        if isinstance(self.ior, (int, float)):
            object.__setattr__(self, "ior", ConstantIOR(float(self.ior)))
        _validate_ior(self.ior)
        if self.transmittance.max_value > 1.0:
            raise MaterialError(
                f"Transmittance peaks at {self.transmittance.max_value}, above 1. "
                "This would violate energy conservation."
            )


def scatter_refractive(
    material: RefractiveMaterial,
    incident_direction: Vec3,
    normal: Vec3,
    front_face: bool,
    wavelength: float,
    rng: np.random.Generator,
) -> tuple[Vec3, float]:
    """Reflect or refract through a dielectric interface.

    Args:
        material: The refractive material.
        incident_direction: The incoming ray direction (normalized).
        normal: The surface normal facing the incoming ray.
        front_face: True if the ray arrives from outside the material.
        wavelength: The path's wavelength in nanometres.
        rng: Random number generator owned by the calling worker.

    Returns:
        A tuple of (scattered_direction, throughput_multiplier).
    """
    n = material.ior.index_at(wavelength)

    # Entering glass from air: eta = 1/n; leaving it: eta = n
    eta = 1.0 / n if front_face else n

    cos_i = min(-dot(incident_direction, normal), 1.0)
    if cos_i < GRAZING_COSINE:
        return reflect(incident_direction, normal), 1.0

    refracted = refract(incident_direction, normal, eta)
    if refracted is None:
        return reflect(incident_direction, normal), 1.0

    # Schlick must use the angle on the less dense side
    cosine = cos_i if eta <= 1.0 else -dot(refracted, normal)
    if rng.random() < schlick_fresnel(cosine, eta):
        return reflect(incident_direction, normal), 1.0

    return refracted, material.transmittance.sample(wavelength)
