"""Demo scene configurations.

The Cornell box consists of:
- 5 walls forming an open box (left, right, back, floor, ceiling)
- Left wall: red diffuse, right wall: green diffuse, the rest white
- A diffuse sphere, a glossy mirror sphere and a dispersive glass sphere
- An area light on the ceiling emitting a black-body spectrum

Wall colours are smooth reflectance spectra rather than RGB triples, so the
light bouncing between them changes hue the way it does in the real box.

The prism scene lays two glass prisms on a floor between a small, very
bright black-body light and a white screen, which shows the spectrum that
dispersion fans out.

Example:
    >>> scene, camera = create_cornell_box_scene()
    >>> len(scene)
    9
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from prismtrace.camera import ThinLensCamera
from prismtrace.core.spectrum import Spectrum
from prismtrace.materials import BK7_GLASS, SF10_GLASS

from .intersection import Scene
from .manager import SceneManager

# =============================================================================
# Cornell Box Parameters
# =============================================================================


def _red_reflectance() -> Spectrum:
    return Spectrum.gaussian(center=650.0, width=40.0, peak=0.65, base=0.05)


def _green_reflectance() -> Spectrum:
    return Spectrum.gaussian(center=540.0, width=35.0, peak=0.45, base=0.08)


def _white_reflectance() -> Spectrum:
    return Spectrum.constant(0.73)


@dataclass
class CornellBoxParams:
    """Parameters for configuring a Cornell box scene.

    Attributes:
        light_temperature: Black-body temperature of the area light in Kelvin.
        light_intensity: Peak radiance of the area light.
        left_wall: Reflectance spectrum of the left wall (red by default).
        right_wall: Reflectance spectrum of the right wall (green by default).
        white_wall: Reflectance of the back wall, floor and ceiling.
        glass_dispersion: Use SF10 flint glass for the glass sphere instead
            of a constant index of 1.5.
    """

    light_temperature: float = 5000.0
    light_intensity: float = 15.0
    left_wall: Spectrum = field(default_factory=_red_reflectance)
    right_wall: Spectrum = field(default_factory=_green_reflectance)
    white_wall: Spectrum = field(default_factory=_white_reflectance)
    glass_dispersion: bool = True


# Classic Cornell box dimensions (approximately 555x555x555 units)
BOX_SIZE = 555.0

# Classic Cornell box light is ~130x105 units
LIGHT_WIDTH = 130.0
LIGHT_DEPTH = 105.0

SPHERE_RADIUS = 80.0
MIRROR_ROUGHNESS = 0.05


def create_cornell_box_scene(
    box_size: float = BOX_SIZE,
    params: CornellBoxParams | None = None,
    aspect_ratio: float = 1.0,
) -> tuple[Scene, ThinLensCamera]:
    """Create a spectral Cornell box.

    The coordinate system places the box origin at (0, 0, 0) with:
    - X-axis: left to right (0 to box_size)
    - Y-axis: floor to ceiling (0 to box_size)
    - Z-axis: front to back (0 to box_size), camera looks toward +Z

    Args:
        box_size: The size of the box in each dimension.
        params: Light and wall configuration. Defaults to CornellBoxParams().
        aspect_ratio: Width / height of the image the camera renders.

    Returns:
        A tuple of (Scene, ThinLensCamera).
    """
    if params is None:
        params = CornellBoxParams()

    manager = SceneManager()

    red = manager.add_diffuse_material(params.left_wall, name="red wall")
    green = manager.add_diffuse_material(params.right_wall, name="green wall")
    white = manager.add_diffuse_material(params.white_wall, name="white wall")
    light = manager.add_emissive_material(
        Spectrum.blackbody(params.light_temperature, params.light_intensity),
        name="ceiling light",
    )
    mirror = manager.add_specular_material(
        Spectrum.constant(0.95), roughness=MIRROR_ROUGHNESS, name="mirror"
    )
    glass = manager.add_refractive_material(
        SF10_GLASS if params.glass_dispersion else 1.5, name="glass"
    )

    s = box_size
    # Left wall (red), YZ plane at x=0
    manager.add_quad((0.0, 0.0, 0.0), (0.0, s, 0.0), (0.0, 0.0, s), red)
    # Right wall (green), YZ plane at x=s
    manager.add_quad((s, 0.0, s), (0.0, s, 0.0), (0.0, 0.0, -s), green)
    # Back wall, floor, ceiling
    manager.add_quad((0.0, 0.0, s), (s, 0.0, 0.0), (0.0, s, 0.0), white)
    manager.add_quad((0.0, 0.0, 0.0), (s, 0.0, 0.0), (0.0, 0.0, s), white)
    manager.add_quad((0.0, s, s), (s, 0.0, 0.0), (0.0, 0.0, -s), white)

    # Light sits just below the ceiling to avoid z-fighting
    light_x = (s - LIGHT_WIDTH) / 2.0
    light_z = (s - LIGHT_DEPTH) / 2.0
    manager.add_quad(
        (light_x, s - 1.0, light_z), (LIGHT_WIDTH, 0.0, 0.0), (0.0, 0.0, LIGHT_DEPTH), light
    )

    r = SPHERE_RADIUS
    manager.add_sphere((s * 0.27, r, s * 0.35), r, white)
    manager.add_sphere((s * 0.73, r, s * 0.35), r, mirror)
    manager.add_sphere((s * 0.5, r, s * 0.65), r, glass)

    # Camera outside the box, looking in through the open front
    camera = ThinLensCamera(
        position=(s / 2.0, s / 2.0, -800.0),
        look_at=(s / 2.0, s / 2.0, s / 2.0),
        up=(0.0, 1.0, 0.0),
        vfov=40.0,
        aspect_ratio=aspect_ratio,
    )
    return manager.build(), camera


def create_prism_scene(
    aspect_ratio: float = 16.0 / 9.0,
    aperture: float = 0.0,
    chromatic_aberration: float = 0.0,
) -> tuple[Scene, ThinLensCamera]:
    """Create a dispersion demo: glass prisms lit by a small hot light.

    Args:
        aspect_ratio: Width / height of the image the camera renders.
        aperture: Lens diameter of the camera (0 = pinhole).
        chromatic_aberration: Lens chromatic aberration coefficient.

    Returns:
        A tuple of (Scene, ThinLensCamera).
    """
    manager = SceneManager()
    manager.set_background(Spectrum.blackbody(7600.0, 0.02))

    floor = manager.add_diffuse_material(Spectrum.constant(0.6), name="floor")
    screen = manager.add_diffuse_material(Spectrum.constant(0.8), name="screen")
    sun = manager.add_emissive_material(Spectrum.blackbody(6504.0, 80.0), name="sun")
    flint = manager.add_refractive_material(SF10_GLASS, name="SF10")
    crown = manager.add_refractive_material(BK7_GLASS, name="BK7")

    manager.add_plane((0.0, 0.0, 0.0), (0.0, 1.0, 0.0), floor)
    manager.add_quad((4.0, 0.0, -3.0), (0.0, 3.0, 0.0), (0.0, 0.0, 6.0), screen)
    manager.add_sphere((-4.0, 1.0, 0.0), 0.3, sun)

    # Prisms lie on the floor with their axis along z; at rotation 0 one
    # corner points up, so the flat base rests at y = 0
    side = 1.2
    inradius = side / (2.0 * math.sqrt(3.0))
    manager.add_prism((0.0, inradius), side, -1.5, 0.0, flint)
    manager.add_prism((0.0, inradius), side, 0.2, 1.5, crown)

    camera = ThinLensCamera(
        position=(0.0, 4.0, 8.0),
        look_at=(0.5, 0.3, 0.0),
        up=(0.0, 1.0, 0.0),
        vfov=45.0,
        aspect_ratio=aspect_ratio,
        aperture=aperture,
        chromatic_aberration=chromatic_aberration,
    )
    return manager.build(), camera
