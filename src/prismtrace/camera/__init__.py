"""Camera models for primary ray generation.

Components:
    thin_lens: Thin-lens camera with depth of field and chromatic aberration
"""

from .thin_lens import REFERENCE_WAVELENGTH, ThinLensCamera

__all__ = ["ThinLensCamera", "REFERENCE_WAVELENGTH"]
