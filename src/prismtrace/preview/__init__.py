"""Preview module: turning accumulated frames into displayable images.

Components:
    tonemap: XYZ to sRGB conversion, HDR curves and gamma (Taichi kernel)
"""

from .tonemap import (
    CURVES,
    XYZ_TO_LINEAR_SRGB,
    Tonemapper,
    image_to_uint8,
    tonemap,
    xyz_to_linear_srgb,
)

__all__ = [
    "Tonemapper",
    "tonemap",
    "image_to_uint8",
    "xyz_to_linear_srgb",
    "XYZ_TO_LINEAR_SRGB",
    "CURVES",
]
