"""Spectral path tracing integrator for Monte Carlo light transport.

Every sample traces a single wavelength. The path picks its wavelength
first, the camera and every material then work at that wavelength, and the
radiance that comes back is converted to CIE XYZ with the colour matching
functions:

    XYZ = L(lambda) * cmf(lambda) / (pdf(lambda) * CMF_Y_INTEGRAL)

Averaged over many wavelengths this converges to the tristimulus value of
the spectrum arriving at the pixel, which is how dispersion, coloured
reflectances and black-body lights all end up in the image.

Key features:
    - Uniform or stratified wavelength sampling over 380-780 nm
    - Iterative bounce loop with material dispatch
    - Russian roulette termination after a minimum number of bounces
    - Self-intersection avoidance with ray offset

Example:
    >>> import numpy as np
    >>> from prismtrace.scene.cornell_box import create_cornell_box_scene
    >>> scene, camera = create_cornell_box_scene()
    >>> tracer = PathTracer(scene, camera)
    >>> x, y, z = tracer.trace(256, 256, 512, 512, np.random.default_rng(0))
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass

import numpy as np

from prismtrace.camera.thin_lens import ThinLensCamera
from prismtrace.errors import ConfigurationError
from prismtrace.materials import emit, scatter
from prismtrace.scene.intersection import Scene

from .accumulator import PartialBuffer
from .ray import Ray, Vec3, dot
from .spectrum import CMF_Y_INTEGRAL, WAVELENGTH_MIN, WAVELENGTH_RANGE, cie_xyz

logger = logging.getLogger(__name__)

# =============================================================================
# Rendering Constants
# =============================================================================

# Maximum ray bounces (path length)
MAX_DEPTH = 50

# Minimum bounces before Russian roulette can terminate paths
MIN_BOUNCES_BEFORE_RR = 3

# Russian roulette survival probability cap
MAX_RR_PROBABILITY = 0.95

# Ray offset epsilon to avoid self-intersection
RAY_EPSILON = 1e-4

WAVELENGTH_SAMPLING_MODES = ("uniform", "stratified")


@dataclass(frozen=True)
class IntegratorConfig:
    """Path termination and sampling settings.

    Attributes:
        max_depth: Maximum number of surface interactions per path.
        min_bounces: Bounces before Russian roulette may end a path.
        rr_max_probability: Upper bound on the survival probability, so even
            bright paths are occasionally cut.
        throughput_threshold: Paths whose weight falls below this face
            Russian roulette even before ``min_bounces``.
        wavelength_sampling: "stratified" spreads the wavelengths of a
            pixel's samples evenly over the visible range when the number of
            passes is known; "uniform" always draws them independently.
    """

    max_depth: int = MAX_DEPTH
    min_bounces: int = MIN_BOUNCES_BEFORE_RR
    rr_max_probability: float = MAX_RR_PROBABILITY
    throughput_threshold: float = 1e-6
    wavelength_sampling: str = "stratified"

    def __post_init__(self) -> None:
        if self.max_depth < 1:
            raise ConfigurationError(f"max_depth must be at least 1, got {self.max_depth}")
        if self.min_bounces < 0:
            raise ConfigurationError(f"min_bounces must be non-negative, got {self.min_bounces}")
        if not 0.0 < self.rr_max_probability <= 1.0:
            raise ConfigurationError(
                f"rr_max_probability must be in (0, 1], got {self.rr_max_probability}"
            )
        if self.throughput_threshold < 0.0:
            raise ConfigurationError("throughput_threshold must be non-negative")
        if self.wavelength_sampling not in WAVELENGTH_SAMPLING_MODES:
            raise ConfigurationError(
                f"Unknown wavelength sampling {self.wavelength_sampling!r}, "
                f"expected one of {WAVELENGTH_SAMPLING_MODES}"
            )


# =============================================================================
# Sampling Helpers
# =============================================================================


def sample_wavelength(
    rng: np.random.Generator,
    stratum: int | None = None,
    strata: int | None = None,
) -> tuple[float, float]:
    """Draw a wavelength uniformly over the visible range.

    Args:
        rng: Random number generator owned by the calling worker.
        stratum: Index of the sub-interval to draw from, in [0, strata).
        strata: Number of equal sub-intervals the range is split into.

    Returns:
        A tuple of (wavelength_nm, pdf). The pdf is 1 / 400 nm^-1 whether or
        not the draw is stratified.
    """
    u = rng.random()
    if stratum is not None and strata:
        u = (stratum + u) / strata
    return WAVELENGTH_MIN + u * WAVELENGTH_RANGE, 1.0 / WAVELENGTH_RANGE


def russian_roulette(
    throughput: float,
    depth: int,
    rng: np.random.Generator,
    config: IntegratorConfig,
) -> float:
    """Probabilistically terminate a path without biasing its expectation.

    Before ``config.min_bounces`` the throughput passes through unchanged,
    unless it has dropped below ``config.throughput_threshold``. Otherwise
    the path survives with probability p = min(throughput, rr_max_probability)
    and survivors are divided by p, so E[result] == throughput.

    Returns:
        The new throughput, or 0.0 if the path was terminated.
    """
    if depth < config.min_bounces and throughput >= config.throughput_threshold:
        return throughput
    rr_prob = min(throughput, config.rr_max_probability)
    if rr_prob <= 0.0 or rng.random() >= rr_prob:
        return 0.0
    return throughput / rr_prob


def offset_ray_origin(point: Vec3, normal: Vec3, direction: Vec3) -> Vec3:
    """Offset ray origin to avoid self-intersection.

    Pushes the point along the normal to the side the new ray travels
    (above the surface for reflection, below it for refraction).
    """
    eps = RAY_EPSILON if dot(direction, normal) >= 0.0 else -RAY_EPSILON
    return (point[0] + eps * normal[0], point[1] + eps * normal[1], point[2] + eps * normal[2])


def radiance_to_xyz(radiance: float, wavelength: float, pdf: float) -> tuple[float, float, float]:
    """Convert a single-wavelength radiance estimate to an XYZ sample."""
    x, y, z = cie_xyz(wavelength)
    k = radiance / (pdf * CMF_Y_INTEGRAL)
    return x * k, y * k, z * k


def _pixel_stratum_offset(pixel_i: int, pixel_j: int, strata: int) -> int:
    # Decorrelates neighbouring pixels so a single pass is not one colour
    return (pixel_i * 7919 + pixel_j * 104729) % strata


@functools.lru_cache(maxsize=16)
def stratum_order(strata: int) -> tuple[int, ...]:
    """Order in which passes visit the wavelength strata.

    The strata are taken in bit-reversed order (a base-2 radical inverse,
    skipping values >= strata), so the first k passes of any session are
    spread over the whole visible range instead of one narrow band. A render
    stopped early is therefore noisier, not tinted.

    Example:
        >>> stratum_order(8)
        (0, 4, 2, 6, 1, 5, 3, 7)
    """
    if strata <= 0:
        raise ConfigurationError(f"strata must be positive, got {strata}")
    bits = max(1, (strata - 1).bit_length())
    order = []
    for k in range(1 << bits):
        reversed_k = int(format(k, f"0{bits}b")[::-1], 2)
        if reversed_k < strata:
            order.append(reversed_k)
    return tuple(order)


# =============================================================================
# Path Tracer
# =============================================================================


class PathTracer:
    """Spectral path tracer over an immutable scene.

    The tracer holds no mutable state: all randomness comes from the
    generator passed into each call, so one instance serves every worker.

    Args:
        scene: The scene to render.
        camera: The camera generating primary rays.
        config: Termination and sampling settings.
    """

    def __init__(
        self,
        scene: Scene,
        camera: ThinLensCamera,
        config: IntegratorConfig | None = None,
    ) -> None:
        self.scene = scene
        self.camera = camera
        self.config = config if config is not None else IntegratorConfig()
        logger.debug("Path tracer over %d primitives: %s", len(scene), self.config)

    def trace_path(self, ray: Ray, rng: np.random.Generator) -> float:
        """Trace one path and return the radiance it carries back.

        Escaped rays pick up the scene background, emitters add their
        radiance and end the path. Every other hit scatters the path on,
        until it is absorbed, its throughput falls below the threshold,
        Russian roulette cuts it or it reaches ``max_depth``.

        Args:
            ray: The primary ray (its wavelength fixes the path's wavelength).
            rng: Random number generator owned by the calling worker.

        Returns:
            The estimated radiance at the ray's wavelength.
        """
        cfg = self.config
        scene = self.scene
        wavelength = ray.wavelength
        throughput = ray.throughput
        radiance = 0.0

        for depth in range(cfg.max_depth):
            hit = scene.intersect(ray)
            if hit is None:
                radiance += throughput * scene.background_radiance(wavelength)
                break

            radiance += throughput * emit(hit.material, wavelength)

            result = scatter(
                hit.material, ray.direction, hit.normal, hit.front_face, wavelength, rng
            )
            if result is None:
                break

            throughput = russian_roulette(throughput * result.throughput, depth, rng, cfg)
            if throughput <= 0.0:
                break

            origin = offset_ray_origin(hit.point, hit.normal, result.direction)
            ray = ray.spawn(origin, result.direction, throughput)

        return radiance

    def trace(
        self,
        pixel_i: int,
        pixel_j: int,
        width: int,
        height: int,
        rng: np.random.Generator,
        stratum: int | None = None,
        strata: int | None = None,
    ) -> tuple[float, float, float]:
        """Trace one sample through a pixel and return it as XYZ.

        Args:
            pixel_i: Pixel column (0 = left).
            pixel_j: Pixel row (0 = top).
            width: Image width in pixels.
            height: Image height in pixels.
            rng: Random number generator owned by the calling worker.
            stratum: Wavelength stratum for this sample, if stratified.
            strata: Number of wavelength strata.

        Returns:
            The (X, Y, Z) sample.
        """
        wavelength, pdf = sample_wavelength(rng, stratum, strata)
        px = (pixel_i + rng.random()) / width
        py = (pixel_j + rng.random()) / height
        lens_sample = (rng.random(), rng.random())
        ray = self.camera.generate_ray(px, py, wavelength, lens_sample)
        return radiance_to_xyz(self.trace_path(ray, rng), wavelength, pdf)

    def render_pass(
        self,
        buffer: PartialBuffer,
        rng: np.random.Generator,
        pass_index: int | None = None,
        pass_count: int | None = None,
    ) -> None:
        """Add one sample to every pixel of a partial buffer.

        Args:
            buffer: The worker's private buffer.
            rng: Random number generator owned by the calling worker.
            pass_index: Index of this pass within the session.
            pass_count: Total passes planned for the session. When both are
                given and sampling is stratified, pass k of a pixel draws its
                wavelength from a different stratum than every other pass.
        """
        width, height = buffer.width, buffer.height
        stratified = (
            self.config.wavelength_sampling == "stratified"
            and pass_index is not None
            and pass_count is not None
            and pass_count > 1
        )

        base = stratum_order(pass_count)[pass_index % pass_count] if stratified else 0

        row = np.empty((width, 3), dtype=np.float64)
        for j in range(height):
            for i in range(width):
                if stratified:
                    stratum = (base + _pixel_stratum_offset(i, j, pass_count)) % pass_count
                    row[i] = self.trace(i, j, width, height, rng, stratum, pass_count)
                else:
                    row[i] = self.trace(i, j, width, height, rng)
            buffer.add_row(j, row)
