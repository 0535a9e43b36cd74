"""Thin-lens camera model with depth of field and chromatic aberration.

The camera builds an orthonormal basis (u, v, w) from the view parameters:
- w: points from look_at toward position (opposite view direction)
- u: points right in the image plane
- v: points up in the image plane

Primary rays start on a lens disc of diameter ``aperture`` centred on the
camera position and pass through the point of the focal plane that the
pixel maps to. Points on the focal plane are sharp; everything else blurs.
With ``aperture == 0`` the camera degenerates to a pinhole.

A simple lens refracts short wavelengths more strongly than long ones. This
is modelled by scaling the image-plane coordinate per wavelength:

    scale(lambda) = 1 + chromatic_aberration * (lambda - 550) / 400

so with a non-zero coefficient the colours of an off-axis edge fan out
radially, the way they do through real uncorrected glass.

Example:
    >>> camera = ThinLensCamera(
    ...     position=(0.0, 0.0, 3.0),
    ...     look_at=(0.0, 0.0, 0.0),
    ...     up=(0.0, 1.0, 0.0),
    ...     vfov=60.0,
    ...     aspect_ratio=16.0 / 9.0,
    ... )
    >>> ray = camera.generate_ray(0.5, 0.5, 550.0, (0.5, 0.5))
    >>> ray.direction
    (0.0, 0.0, -1.0)
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field

import numpy as np

from prismtrace.core.ray import Ray, Vec3, concentric_sample_disk, normalize, vec3
from prismtrace.errors import ConfigurationError

# Wavelength at which chromatic aberration vanishes
REFERENCE_WAVELENGTH = 550.0


@dataclass(frozen=True)
class ThinLensCamera:
    """A perspective camera with a finite aperture.

    Attributes:
        position: Camera position (lens centre) in world space.
        look_at: Point the camera is looking at in world space.
        up: Up direction for camera orientation (typically (0, 1, 0)).
        vfov: Vertical field of view in degrees, in (0, 180).
        aspect_ratio: Width divided by height of the output image.
        aperture: Lens diameter. 0 gives a pinhole camera.
        focal_distance: Distance to the plane in perfect focus. Defaults to
            the distance between position and look_at.
        chromatic_aberration: Relative image-plane scaling per 400 nm of
            wavelength offset from 550 nm.

    Raises:
        ConfigurationError: If the parameters do not describe a valid camera.
    """

    position: Vec3
    look_at: Vec3
    up: Vec3
    vfov: float
    aspect_ratio: float
    aperture: float = 0.0
    focal_distance: float | None = None
    chromatic_aberration: float = 0.0

    u: Vec3 = field(init=False, repr=False)
    v: Vec3 = field(init=False, repr=False)
    w: Vec3 = field(init=False, repr=False)
    half_width: float = field(init=False, repr=False)
    half_height: float = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if not (math.isfinite(self.vfov) and 0.0 < self.vfov < 180.0):
            raise ConfigurationError(f"Field of view must be in (0, 180) degrees, got {self.vfov}")
        if not (math.isfinite(self.aspect_ratio) and self.aspect_ratio > 0.0):
            raise ConfigurationError(f"Aspect ratio must be positive, got {self.aspect_ratio}")
        if not (math.isfinite(self.aperture) and self.aperture >= 0.0):
            raise ConfigurationError(f"Aperture must be non-negative, got {self.aperture}")
        if not math.isfinite(self.chromatic_aberration):
            raise ConfigurationError("Chromatic aberration must be finite")

        # Build orthonormal basis using NumPy
        position = np.array(self.position, dtype=np.float64)
        look_at = np.array(self.look_at, dtype=np.float64)
        up = np.array(self.up, dtype=np.float64)

        w = position - look_at
        distance = float(np.linalg.norm(w))
        if distance < 1e-12:
            raise ConfigurationError("Camera position and look_at coincide")
        w = w / distance

        u = np.cross(up, w)
        u_norm = float(np.linalg.norm(u))
        if u_norm < 1e-12:
            raise ConfigurationError("Camera up vector is parallel to the view direction")
        u = u / u_norm
        v = np.cross(w, u)

        focal_distance = distance if self.focal_distance is None else self.focal_distance
        if not (math.isfinite(focal_distance) and focal_distance > 0.0):
            raise ConfigurationError(f"Focal distance must be positive, got {focal_distance}")

        half_height = math.tan(math.radians(self.vfov) / 2.0)

        object.__setattr__(self, "position", vec3(*position))
        object.__setattr__(self, "look_at", vec3(*look_at))
        object.__setattr__(self, "focal_distance", float(focal_distance))
        object.__setattr__(self, "u", vec3(*u))
        object.__setattr__(self, "v", vec3(*v))
        object.__setattr__(self, "w", vec3(*w))
        object.__setattr__(self, "half_height", half_height)
        object.__setattr__(self, "half_width", self.aspect_ratio * half_height)

    @property
    def lens_radius(self) -> float:
        return self.aperture / 2.0

    def aberration_scale(self, wavelength: float) -> float:
        """Image-plane magnification for a wavelength."""
        return 1.0 + self.chromatic_aberration * (wavelength - REFERENCE_WAVELENGTH) / 400.0

    def generate_ray(
        self,
        pixel_x: float,
        pixel_y: float,
        wavelength: float,
        lens_sample: tuple[float, float],
    ) -> Ray:
        """Generate a primary ray through normalized image coordinates.

        Args:
            pixel_x: Horizontal coordinate in [0, 1] (left to right).
            pixel_y: Vertical coordinate in [0, 1] (top to bottom).
            wavelength: Wavelength the ray carries, in nanometres.
            lens_sample: A point in [0, 1)^2 mapped onto the lens disc.

        Returns:
            A Ray leaving the lens toward the in-focus point for this pixel.
        """
        s = self.aberration_scale(wavelength)
        sx = (2.0 * pixel_x - 1.0) * self.half_width * s
        sy = (1.0 - 2.0 * pixel_y) * self.half_height * s

        u, v, w = self.u, self.v, self.w
        p = self.position
        fd = self.focal_distance
        focus = (
            p[0] + fd * (sx * u[0] + sy * v[0] - w[0]),
            p[1] + fd * (sx * u[1] + sy * v[1] - w[1]),
            p[2] + fd * (sx * u[2] + sy * v[2] - w[2]),
        )

        origin = p
        if self.aperture > 0.0:
            dx, dy = concentric_sample_disk(lens_sample[0], lens_sample[1])
            r = self.lens_radius
            origin = (
                p[0] + r * (dx * u[0] + dy * v[0]),
                p[1] + r * (dx * u[1] + dy * v[1]),
                p[2] + r * (dx * u[2] + dy * v[2]),
            )

        direction = normalize((focus[0] - origin[0], focus[1] - origin[1], focus[2] - origin[2]))
        return Ray(origin=origin, direction=direction, wavelength=wavelength)
