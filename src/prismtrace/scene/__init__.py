"""Scene module: primitives, intersection queries and demo scenes.

Components:
    intersection: Scene, Primitive and Intersection (nearest-hit queries)
    manager: SceneManager incremental builder
    cornell_box: Spectral Cornell box and prism dispersion demo scenes
"""

from .cornell_box import CornellBoxParams, create_cornell_box_scene, create_prism_scene
from .intersection import T_MAX, T_MIN, Geometry, Intersection, Primitive, Scene
from .manager import MaterialInfo, SceneManager

__all__ = [
    "Scene",
    "Primitive",
    "Intersection",
    "Geometry",
    "T_MIN",
    "T_MAX",
    "SceneManager",
    "MaterialInfo",
    "CornellBoxParams",
    "create_cornell_box_scene",
    "create_prism_scene",
]
