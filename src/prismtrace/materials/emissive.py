"""Emissive (light source) material.

An emitter adds its spectral radiance to the path that reaches it and ends
the path there: light sources in these scenes do not reflect.

Example:
    >>> from prismtrace.core.spectrum import Spectrum
    >>> lamp = EmissiveMaterial(Spectrum.blackbody(5000.0, intensity=10.0))
    >>> emit_emissive(lamp, 550.0) > 0.0
    True
"""

from __future__ import annotations

from dataclasses import dataclass

from prismtrace.core.spectrum import Spectrum
from prismtrace.errors import MaterialError


@dataclass(frozen=True, eq=False)
class EmissiveMaterial:
    """A light-emitting surface.

    Attributes:
        emission: Emitted spectral radiance.
    """

    emission: Spectrum

    def __post_init__(self) -> None:
        if not isinstance(self.emission, Spectrum):
            raise MaterialError("Emission must be a Spectrum")


def emit_emissive(material: EmissiveMaterial, wavelength: float) -> float:
    """Return the emitted radiance at a wavelength."""
    return material.emission.sample(wavelength)
