"""Tonemapping from accumulated XYZ to displayable sRGB.

Per pixel:

    1. mean XYZ = sum / count (pixels with no samples get the background)
    2. XYZ -> linear sRGB (D65 primaries)
    3. multiply by exposure
    4. compress with an HDR curve into [0, 1]
    5. encode with the sRGB transfer function, or a plain power-law gamma

Steps 2-5 run as a Taichi kernel over numpy arrays. Kernel launches are
serialized by a module lock, so snapshots can be tonemapped from any thread
while workers keep rendering.

Available curves:
    clamp:    min(c, 1)
    reinhard: c / (1 + c)
    exposure: 1 - exp(-c)
    filmic:   ACES fit, c (2.51 c + 0.03) / (c (2.43 c + 0.59) + 0.14)

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from prismtrace.core.accumulator import Accumulator
    >>> image = Tonemapper(exposure=2.0)(Accumulator(4, 4).snapshot())
    >>> image.shape
    (4, 4, 3)
"""

import math
import threading
from dataclasses import dataclass

import numpy as np
import numpy.typing as npt
import taichi as ti

from prismtrace.core.accumulator import FrameSnapshot
from prismtrace.errors import ConfigurationError

# XYZ to linear sRGB (D65)
XYZ_TO_LINEAR_SRGB = np.array(
    [
        [3.2406, -1.5372, -0.4986],
        [-0.9689, 1.8758, 0.0415],
        [0.0557, -0.2040, 1.0570],
    ],
    dtype=np.float32,
)

CURVES = {"clamp": 0, "reinhard": 1, "exposure": 2, "filmic": 3}

_kernel_lock = threading.Lock()


# =============================================================================
# Taichi Kernels
# =============================================================================


@ti.func
def _apply_curve(c: ti.f32, curve: ti.i32) -> ti.f32:
    """Compress a non-negative linear value into [0, 1]."""
    result = c
    if curve == 1:
        result = c / (1.0 + c)
    elif curve == 2:
        result = 1.0 - ti.exp(-c)
    elif curve == 3:
        result = (c * (2.51 * c + 0.03)) / (c * (2.43 * c + 0.59) + 0.14)
    return ti.min(ti.max(result, 0.0), 1.0)


@ti.func
def _encode(c: ti.f32, gamma: ti.f32) -> ti.f32:
    """Apply the sRGB transfer function (gamma <= 0) or c^(1/gamma)."""
    result = 0.0
    if gamma <= 0.0:
        if c <= 0.0031308:
            result = 12.92 * c
        else:
            result = 1.055 * c ** (1.0 / 2.4) - 0.055
    else:
        result = c ** (1.0 / gamma)
    return result


@ti.kernel
def _tonemap_kernel(
    xyz: ti.types.ndarray(dtype=ti.f32, ndim=3),
    covered: ti.types.ndarray(dtype=ti.i32, ndim=2),
    matrix: ti.types.ndarray(dtype=ti.f32, ndim=2),
    out: ti.types.ndarray(dtype=ti.f32, ndim=3),
    exposure: ti.f32,
    curve: ti.i32,
    gamma: ti.f32,
    bg_r: ti.f32,
    bg_g: ti.f32,
    bg_b: ti.f32,
):
    for i, j in ti.ndrange(covered.shape[0], covered.shape[1]):
        if covered[i, j] == 0:
            out[i, j, 0] = bg_r
            out[i, j, 1] = bg_g
            out[i, j, 2] = bg_b
        else:
            for c in ti.static(range(3)):
                linear = (
                    matrix[c, 0] * xyz[i, j, 0]
                    + matrix[c, 1] * xyz[i, j, 1]
                    + matrix[c, 2] * xyz[i, j, 2]
                )
                linear = ti.max(linear * exposure, 0.0)
                out[i, j, c] = _encode(_apply_curve(linear, curve), gamma)


# =============================================================================
# Public API
# =============================================================================


@dataclass(frozen=True)
class Tonemapper:
    """Display transform for accumulated frames.

    Attributes:
        exposure: Linear scale applied before the curve.
        curve: One of "clamp", "reinhard", "exposure", "filmic".
        gamma: Power-law display gamma. None selects the sRGB transfer
            function.
        background: Display-space RGB for pixels that have no samples yet.
    """

    exposure: float = 1.0
    curve: str = "filmic"
    gamma: float | None = None
    background: tuple[float, float, float] = (0.0, 0.0, 0.0)

    def __post_init__(self) -> None:
        if not (math.isfinite(self.exposure) and self.exposure > 0.0):
            raise ConfigurationError(f"Exposure must be positive, got {self.exposure}")
        if self.curve not in CURVES:
            raise ConfigurationError(
                f"Unknown tonemapping curve {self.curve!r}, expected one of {sorted(CURVES)}"
            )
        if self.gamma is not None and not (math.isfinite(self.gamma) and self.gamma > 0.0):
            raise ConfigurationError(f"Gamma must be positive, got {self.gamma}")
        if len(self.background) != 3 or not all(0.0 <= c <= 1.0 for c in self.background):
            raise ConfigurationError(
                f"Background must be an RGB triple in [0, 1], got {self.background}"
            )
        object.__setattr__(self, "background", tuple(float(c) for c in self.background))

    def __call__(self, snapshot: FrameSnapshot) -> npt.NDArray[np.float32]:
        return self.tonemap_xyz(snapshot.mean(), snapshot.counts)

    def tonemap_xyz(
        self,
        mean_xyz: npt.NDArray[np.floating],
        counts: npt.NDArray[np.integer],
    ) -> npt.NDArray[np.float32]:
        """Tonemap per-pixel mean XYZ values.

        Args:
            mean_xyz: (height, width, 3) mean XYZ per pixel.
            counts: (height, width) sample counts; 0 marks an empty pixel.

        Returns:
            (height, width, 3) float32 image with values in [0, 1].
        """
        xyz = np.ascontiguousarray(np.nan_to_num(mean_xyz, nan=0.0, posinf=0.0), dtype=np.float32)
        covered = np.ascontiguousarray(counts > 0, dtype=np.int32)
        out = np.zeros(xyz.shape, dtype=np.float32)
        bg_r, bg_g, bg_b = self.background
        gamma = 0.0 if self.gamma is None else self.gamma

        with _kernel_lock:
            _tonemap_kernel(
                xyz,
                covered,
                XYZ_TO_LINEAR_SRGB,
                out,
                self.exposure,
                CURVES[self.curve],
                gamma,
                bg_r,
                bg_g,
                bg_b,
            )
        return out


def tonemap(
    snapshot: FrameSnapshot,
    exposure: float = 1.0,
    curve: str = "filmic",
    gamma: float | None = None,
    background: tuple[float, float, float] = (0.0, 0.0, 0.0),
) -> npt.NDArray[np.float32]:
    """Convenience wrapper: ``Tonemapper(...)(snapshot)``."""
    return Tonemapper(exposure, curve, gamma, background)(snapshot)


def xyz_to_linear_srgb(xyz: npt.ArrayLike) -> npt.NDArray[np.float64]:
    """Convert XYZ values (last axis of size 3) to linear sRGB."""
    return np.asarray(xyz, dtype=np.float64) @ XYZ_TO_LINEAR_SRGB.T.astype(np.float64)


def image_to_uint8(image: npt.NDArray[np.floating]) -> npt.NDArray[np.uint8]:
    """Quantize a [0, 1] float image to 8 bits for display or saving."""
    return (np.clip(image, 0.0, 1.0) * 255.0 + 0.5).astype(np.uint8)
