"""Scene builder coordinating primitives and materials.

The SceneManager is the mutable counterpart of Scene: it collects materials
and primitives one call at a time and freezes them into an immutable Scene
with ``build()``. Materials are registered once and referred to by a unified
material ID, so many primitives can share the same instance.

Example:
    >>> from prismtrace.core.spectrum import Spectrum
    >>> scene = SceneManager()
    >>> red = scene.add_diffuse_material(Spectrum.gaussian(650.0, 40.0, 0.8, 0.05))
    >>> scene.add_sphere(center=(0.0, 0.0, -1.0), radius=0.5, material_id=red)
    0
    >>> len(scene.build())
    1
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from prismtrace.core.ray import Vec3
from prismtrace.core.spectrum import Spectrum
from prismtrace.errors import ConfigurationError
from prismtrace.geometry import Disc, Plane, Quad, Sphere, triangular_prism
from prismtrace.materials import (
    DiffuseMaterial,
    EmissiveMaterial,
    IORModel,
    Material,
    RefractiveMaterial,
    SpecularMaterial,
)

from .intersection import Geometry, Primitive, Scene

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MaterialInfo:
    """Information about a registered material.

    Attributes:
        material_id: The unified material ID.
        material: The material instance.
        name: Optional human-readable label.
    """

    material_id: int
    material: Material
    name: str | None = None


class SceneManager:
    """Incremental scene builder with material bookkeeping.

    Attributes:
        materials: All registered materials, indexed by material ID.
        primitives: Primitives added so far, in insertion order.
        background: Environment radiance for escaped rays (None = black).
    """

    def __init__(self) -> None:
        self.materials: list[MaterialInfo] = []
        self.primitives: list[Primitive] = []
        self.background: Spectrum | None = None

    def clear(self) -> None:
        """Remove all materials, primitives and the background."""
        self.materials.clear()
        self.primitives.clear()
        self.background = None

    # =========================================================================
    # Material Management
    # =========================================================================

    def add_material(self, material: Material, name: str | None = None) -> int:
        """Register a material and return its ID."""
        if not isinstance(
            material, (EmissiveMaterial, DiffuseMaterial, SpecularMaterial, RefractiveMaterial)
        ):
            raise ConfigurationError(f"Not a material: {type(material).__name__}")
        material_id = len(self.materials)
        self.materials.append(MaterialInfo(material_id, material, name))
        return material_id

    def add_emissive_material(self, emission: Spectrum, name: str | None = None) -> int:
        return self.add_material(EmissiveMaterial(emission), name)

    def add_diffuse_material(self, reflectance: Spectrum, name: str | None = None) -> int:
        return self.add_material(DiffuseMaterial(reflectance), name)

    def add_specular_material(
        self,
        reflectance: Spectrum,
        roughness: float = 0.0,
        name: str | None = None,
    ) -> int:
        return self.add_material(SpecularMaterial(reflectance, roughness), name)

    def add_refractive_material(
        self,
        ior: IORModel | float,
        transmittance: Spectrum | None = None,
        name: str | None = None,
    ) -> int:
        """Register a refractive material.

        Args:
            ior: A dispersion model, or a plain number for constant IOR.
            transmittance: Per-wavelength transmission (default: clear).
            name: Optional label.

        Returns:
            The material ID.
        """
        if transmittance is None:
            material = RefractiveMaterial(ior)
        else:
            material = RefractiveMaterial(ior, transmittance)
        return self.add_material(material, name)

    def get_material(self, material_id: int) -> Material:
        """Look up a registered material.

        Raises:
            ConfigurationError: If the ID was never registered.
        """
        if 0 <= material_id < len(self.materials):
            return self.materials[material_id].material
        raise ConfigurationError(f"Invalid material_id: {material_id}")

    def get_material_count(self) -> int:
        return len(self.materials)

    # =========================================================================
    # Primitive Management
    # =========================================================================

    def add_primitive(self, geometry: Geometry, material_id: int) -> int:
        """Add any geometry with a registered material.

        Returns:
            The index of the added primitive.
        """
        material = self.get_material(material_id)
        self.primitives.append(Primitive(geometry, material))
        return len(self.primitives) - 1

    def add_sphere(self, center: Vec3, radius: float, material_id: int) -> int:
        return self.add_primitive(Sphere(center, radius), material_id)

    def add_quad(self, corner: Vec3, edge_u: Vec3, edge_v: Vec3, material_id: int) -> int:
        """Add a quad (parallelogram) to the scene.

        The quad has vertices at corner, corner+edge_u, corner+edge_v and
        corner+edge_u+edge_v.
        """
        return self.add_primitive(Quad(corner, edge_u, edge_v), material_id)

    def add_plane(self, point: Vec3, normal: Vec3, material_id: int) -> int:
        return self.add_primitive(Plane(point, normal), material_id)

    def add_disc(self, center: Vec3, normal: Vec3, radius: float, material_id: int) -> int:
        return self.add_primitive(Disc(center, normal, radius), material_id)

    def add_prism(
        self,
        center: tuple[float, float],
        side: float,
        z_min: float,
        z_max: float,
        material_id: int,
        rotation: float = 0.0,
    ) -> int:
        """Add an equilateral triangular prism extruded along z."""
        prism = triangular_prism(center, side, z_min, z_max, rotation=rotation)
        return self.add_primitive(prism, material_id)

    def set_background(self, background: Spectrum | None) -> None:
        self.background = background

    def get_primitive_count(self) -> int:
        return len(self.primitives)

    # =========================================================================
    # Build
    # =========================================================================

    def build(self) -> Scene:
        """Freeze the current contents into an immutable Scene.

        The manager can keep being edited afterwards without affecting the
        returned Scene.

        Raises:
            ConfigurationError: If no primitive was added.
        """
        scene = Scene(self.primitives, background=self.background)
        logger.info(
            "Scene ready: %d primitives, %d materials",
            len(self.primitives),
            len(self.materials),
        )
        return scene
