"""Spectral path tracer with per-wavelength light transport.

This package renders synthetic scenes by tracing one wavelength per light
path, so dispersion and chromatic aberration fall out of the simulation:
- Spectral power distributions and CIE 1931 tristimulus conversion
- Path tracing with Russian roulette termination
- Diffuse, specular, emissive and dispersive refractive materials
- Thin-lens camera with depth of field and chromatic aberration
- Multi-process progressive accumulation with cooperative cancellation
- Tonemapping of the accumulated XYZ estimate into display-ready sRGB

Subpackages:
    core: Rays, spectra, the integrator, accumulation and the render session
    geometry: Shape primitives and intersection algorithms
    materials: Surface response models and their dispatch
    scene: Scene container, nearest-hit queries and demo scenes
    camera: Thin-lens camera ray generation
    preview: Tonemapping of accumulated estimates
"""

__version__ = "0.1.0"
