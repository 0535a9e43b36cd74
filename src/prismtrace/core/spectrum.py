"""Spectral power distributions and CIE 1931 tristimulus conversion.

A Spectrum is an ordered, immutable set of (wavelength, intensity) samples,
interpolated linearly in between. Outside the sampled range the first and
last intensities are held constant, so a spectrum given on a few sample
points still answers for every visible wavelength.

Conversion to tristimulus values integrates the spectrum against the CIE 1931
2-degree standard observer colour matching functions (5 nm table from
380 nm to 780 nm) with the trapezoid rule, normalized by the integral of
y_bar. With that normalization a uniform unit spectrum maps to the
equal-energy white point (1, 1, 1), and a path tracer that averages

    L(wavelength) * cmf(wavelength) / (pdf(wavelength) * CMF_Y_INTEGRAL)

over randomly sampled wavelengths converges to exactly the same value.

Example:
    >>> white = Spectrum.constant(1.0)
    >>> x, y, z = white.to_tristimulus()
    >>> round(y, 6)
    1.0
    >>> warm = Spectrum.blackbody(3200.0)
    >>> warm.sample(700.0) > warm.sample(400.0)
    True
"""

from __future__ import annotations

import math
from collections.abc import Sequence

import numpy as np
import numpy.typing as npt

from prismtrace.errors import SpectrumError

# Visible range covered by the colour matching function table (nm)
WAVELENGTH_MIN = 380.0
WAVELENGTH_MAX = 780.0
WAVELENGTH_RANGE = WAVELENGTH_MAX - WAVELENGTH_MIN

# Spacing of the CIE table (nm)
CIE_STEP = 5.0

# Physical constants for Planck's law
PLANCKS_CONSTANT = 6.62606957e-34
BOLTZMANNS_CONSTANT = 1.3806488e-23
SPEED_OF_LIGHT = 299792458.0
WIENS_CONSTANT = 2.897772126e-3

# =============================================================================
# CIE 1931 2-degree colour matching functions, 380-780 nm at 5 nm
# =============================================================================

# fmt: off
_CIE_X = (
    0.001368, 0.002236, 0.004243, 0.007650, 0.014310, 0.023190, 0.043510, 0.077630,
    0.134380, 0.214770, 0.283900, 0.328500, 0.348280, 0.348060, 0.336200, 0.318700,
    0.290800, 0.251100, 0.195360, 0.142100, 0.095640, 0.057950, 0.032010, 0.014700,
    0.004900, 0.002400, 0.009300, 0.029100, 0.063270, 0.109600, 0.165500, 0.225750,
    0.290400, 0.359700, 0.433450, 0.512050, 0.594500, 0.678400, 0.762100, 0.842500,
    0.916300, 0.978600, 1.026300, 1.056700, 1.062200, 1.045600, 1.002600, 0.938400,
    0.854450, 0.751400, 0.642400, 0.541900, 0.447900, 0.360800, 0.283500, 0.218700,
    0.164900, 0.121200, 0.087400, 0.063600, 0.046770, 0.032900, 0.022700, 0.015840,
    0.011359, 0.008111, 0.005790, 0.004109, 0.002899, 0.002049, 0.001440, 0.001000,
    0.000690, 0.000476, 0.000332, 0.000235, 0.000166, 0.000117, 0.000083, 0.000059,
    0.000042,
)

_CIE_Y = (
    0.000039, 0.000064, 0.000120, 0.000217, 0.000396, 0.000640, 0.001210, 0.002180,
    0.004000, 0.007300, 0.011600, 0.016840, 0.023000, 0.029800, 0.038000, 0.048000,
    0.060000, 0.073900, 0.090980, 0.112600, 0.139020, 0.169300, 0.208020, 0.258600,
    0.323000, 0.407300, 0.503000, 0.608200, 0.710000, 0.793200, 0.862000, 0.914850,
    0.954000, 0.980300, 0.994950, 1.000000, 0.995000, 0.978600, 0.952000, 0.915400,
    0.870000, 0.816300, 0.757000, 0.694900, 0.631000, 0.566800, 0.503000, 0.441200,
    0.381000, 0.321000, 0.265000, 0.217000, 0.175000, 0.138200, 0.107000, 0.081600,
    0.061000, 0.044580, 0.032000, 0.023200, 0.017000, 0.011920, 0.008210, 0.005723,
    0.004102, 0.002929, 0.002091, 0.001484, 0.001047, 0.000740, 0.000520, 0.000361,
    0.000249, 0.000172, 0.000120, 0.000085, 0.000060, 0.000042, 0.000030, 0.000021,
    0.000015,
)

_CIE_Z = (
    0.006450, 0.010550, 0.020050, 0.036210, 0.067850, 0.110200, 0.207400, 0.371300,
    0.645600, 1.039050, 1.385600, 1.622960, 1.747060, 1.782600, 1.772110, 1.744100,
    1.669200, 1.528100, 1.287640, 1.041900, 0.812950, 0.616200, 0.465180, 0.353300,
    0.272000, 0.212300, 0.158200, 0.111700, 0.078250, 0.057250, 0.042160, 0.029840,
    0.020300, 0.013400, 0.008750, 0.005750, 0.003900, 0.002750, 0.002100, 0.001800,
    0.001650, 0.001400, 0.001100, 0.001000, 0.000800, 0.000600, 0.000340, 0.000240,
    0.000190, 0.000100, 0.000050, 0.000030, 0.000020, 0.000010, 0.000000, 0.000000,
    0.000000, 0.000000, 0.000000, 0.000000, 0.000000, 0.000000, 0.000000, 0.000000,
    0.000000, 0.000000, 0.000000, 0.000000, 0.000000, 0.000000, 0.000000, 0.000000,
    0.000000, 0.000000, 0.000000, 0.000000, 0.000000, 0.000000, 0.000000, 0.000000,
    0.000000,
)
# fmt: on

_CIE_COUNT = len(_CIE_Y)

CIE_WAVELENGTHS = np.linspace(WAVELENGTH_MIN, WAVELENGTH_MAX, _CIE_COUNT)
CIE_XYZ = np.array([_CIE_X, _CIE_Y, _CIE_Z], dtype=np.float64)
CIE_WAVELENGTHS.flags.writeable = False
CIE_XYZ.flags.writeable = False

# Trapezoid weights on the CIE grid
_TRAPEZOID_WEIGHTS = np.full(_CIE_COUNT, CIE_STEP)
_TRAPEZOID_WEIGHTS[0] = _TRAPEZOID_WEIGHTS[-1] = CIE_STEP / 2.0

# Integral of y_bar over the table (nm); normalizes Y of a unit spectrum to 1
CMF_Y_INTEGRAL = float(np.dot(CIE_XYZ[1], _TRAPEZOID_WEIGHTS))


def cie_xyz(wavelength: float) -> tuple[float, float, float]:
    """Return the interpolated colour matching function values at a wavelength.

    Args:
        wavelength: Wavelength in nanometres.

    Returns:
        (x_bar, y_bar, z_bar). Zero outside the 380-780 nm table.
    """
    if not (WAVELENGTH_MIN <= wavelength <= WAVELENGTH_MAX):
        return 0.0, 0.0, 0.0

    position = (wavelength - WAVELENGTH_MIN) / CIE_STEP
    index = min(int(position), _CIE_COUNT - 2)
    r = position - index
    s = 1.0 - r
    return (
        _CIE_X[index] * s + _CIE_X[index + 1] * r,
        _CIE_Y[index] * s + _CIE_Y[index + 1] * r,
        _CIE_Z[index] * s + _CIE_Z[index + 1] * r,
    )


def planck(wavelength_nm: npt.ArrayLike, temperature: float) -> npt.NDArray[np.float64]:
    """Spectral radiance of a black body (Planck's law), in SI units."""
    wl = np.asarray(wavelength_nm, dtype=np.float64) * 1e-9
    c1 = 2.0 * PLANCKS_CONSTANT * SPEED_OF_LIGHT**2
    c2 = PLANCKS_CONSTANT * SPEED_OF_LIGHT / BOLTZMANNS_CONSTANT
    with np.errstate(over="ignore"):
        return c1 / (wl**5 * np.expm1(c2 / (wl * temperature)))


class Spectrum:
    """An immutable spectral power distribution.

    Instances are safe to share between worker threads: the sample arrays are
    read-only and every operation returns a new Spectrum.

    Args:
        wavelengths: Strictly increasing sample wavelengths in nanometres.
        intensities: Non-negative intensity at each wavelength.

    Raises:
        SpectrumError: If the samples are empty, mismatched, unordered,
            non-finite or negative.
    """

    __slots__ = ("_wavelengths", "_intensities", "_constant")

    def __init__(self, wavelengths: npt.ArrayLike, intensities: npt.ArrayLike) -> None:
        wl = np.array(wavelengths, dtype=np.float64).ravel()
        values = np.array(intensities, dtype=np.float64).ravel()

        if wl.size == 0 or wl.shape != values.shape:
            raise SpectrumError(
                f"Spectrum needs matching, non-empty sample arrays "
                f"(got {wl.size} wavelengths and {values.size} intensities)"
            )
        if not (np.all(np.isfinite(wl)) and np.all(np.isfinite(values))):
            raise SpectrumError("Spectrum samples must be finite")
        if np.any(np.diff(wl) <= 0.0):
            raise SpectrumError("Spectrum wavelengths must be strictly increasing")
        if np.any(values < 0.0):
            raise SpectrumError("Spectrum intensities must be non-negative")

        wl.flags.writeable = False
        values.flags.writeable = False
        self._wavelengths = wl
        self._intensities = values
        self._constant = float(values[0]) if np.all(values == values[0]) else None

    # -------------------------------------------------------------------------
    # Constructors
    # -------------------------------------------------------------------------

    @classmethod
    def constant(cls, value: float) -> Spectrum:
        """A flat spectrum with the same intensity at every wavelength."""
        return cls([WAVELENGTH_MIN, WAVELENGTH_MAX], [value, value])

    @classmethod
    def from_samples(
        cls, wavelengths: Sequence[float], intensities: Sequence[float]
    ) -> Spectrum:
        """Build a spectrum from measured samples."""
        return cls(wavelengths, intensities)

    @classmethod
    def gaussian(
        cls,
        center: float,
        width: float,
        peak: float = 1.0,
        base: float = 0.0,
    ) -> Spectrum:
        """A Gaussian band on top of a flat base, e.g. a coloured reflectance.

        Args:
            center: Wavelength of the peak in nanometres.
            width: Standard deviation of the band in nanometres.
            peak: Intensity at the centre (including the base).
            base: Intensity far from the centre.
        """
        if width <= 0.0:
            raise SpectrumError(f"Gaussian width must be positive, got {width}")
        if peak < base:
            raise SpectrumError(f"Gaussian peak {peak} is below its base {base}")
        wl = np.arange(WAVELENGTH_MIN, WAVELENGTH_MAX + 1.0, 1.0)
        values = base + (peak - base) * np.exp(-0.5 * ((wl - center) / width) ** 2)
        return cls(wl, values)

    @classmethod
    def blackbody(cls, temperature: float, intensity: float = 1.0) -> Spectrum:
        """Black-body emission normalized so its peak equals ``intensity``.

        The peak is taken at Wien's displacement wavelength, which may lie
        outside the visible range; the visible part is then scaled down
        accordingly, so hotter and cooler bodies keep their relative shape.

        Args:
            temperature: Temperature in Kelvin.
            intensity: Radiance at the spectral peak.
        """
        if not math.isfinite(temperature) or temperature <= 0.0:
            raise SpectrumError(f"Black-body temperature must be positive, got {temperature}")
        wl = np.arange(WAVELENGTH_MIN, WAVELENGTH_MAX + 1.0, 5.0)
        peak_wavelength = WIENS_CONSTANT / temperature * 1e9
        peak = float(planck(peak_wavelength, temperature))
        values = planck(wl, temperature) / peak * intensity
        return cls(wl, np.nan_to_num(values, nan=0.0, posinf=0.0))

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def wavelengths(self) -> npt.NDArray[np.float64]:
        return self._wavelengths

    @property
    def intensities(self) -> npt.NDArray[np.float64]:
        return self._intensities

    @property
    def is_constant(self) -> bool:
        return self._constant is not None

    @property
    def max_value(self) -> float:
        return float(self._intensities.max())

    def sample(self, wavelength: float) -> float:
        """Return the intensity at a wavelength (never negative).

        Non-finite wavelengths yield 0.0 rather than propagating NaN into a
        path.
        """
        if not math.isfinite(wavelength):
            return 0.0
        if self._constant is not None:
            return self._constant
        return float(np.interp(wavelength, self._wavelengths, self._intensities))

    def sample_array(self, wavelengths: npt.ArrayLike) -> npt.NDArray[np.float64]:
        """Vectorized ``sample`` over an array of wavelengths."""
        return np.interp(
            np.asarray(wavelengths, dtype=np.float64),
            self._wavelengths,
            self._intensities,
        )

    def to_tristimulus(self) -> tuple[float, float, float]:
        """Integrate the spectrum against the CIE 1931 colour matching functions.

        Returns:
            (X, Y, Z), normalized so a uniform unit spectrum has Y == 1.
        """
        weighted = self.sample_array(CIE_WAVELENGTHS) * _TRAPEZOID_WEIGHTS
        x, y, z = (CIE_XYZ @ weighted) / CMF_Y_INTEGRAL
        return float(x), float(y), float(z)

    # -------------------------------------------------------------------------
    # Combinators
    # -------------------------------------------------------------------------

    def scale(self, factor: float) -> Spectrum:
        """Return this spectrum multiplied by a non-negative scalar."""
        if not math.isfinite(factor) or factor < 0.0:
            raise SpectrumError(f"Scale factor must be finite and non-negative, got {factor}")
        return Spectrum(self._wavelengths, self._intensities * factor)

    def add(self, other: Spectrum) -> Spectrum:
        """Return the pointwise sum of two spectra."""
        wl = self._merged_grid(other)
        return Spectrum(wl, self.sample_array(wl) + other.sample_array(wl))

    def multiply(self, other: Spectrum) -> Spectrum:
        """Return the pointwise product, e.g. an emitter seen through a filter."""
        wl = self._merged_grid(other)
        return Spectrum(wl, self.sample_array(wl) * other.sample_array(wl))

    def _merged_grid(self, other: Spectrum) -> npt.NDArray[np.float64]:
        return np.union1d(self._wavelengths, other._wavelengths)

    def __repr__(self) -> str:
        if self._constant is not None:
            return f"Spectrum.constant({self._constant})"
        return (
            f"Spectrum({self._wavelengths.size} samples, "
            f"{self._wavelengths[0]:.0f}-{self._wavelengths[-1]:.0f} nm)"
        )
