"""Scene storage and construction.

Components:
    intersection: Spheres in Taichi fields and closest-hit queries
    manager: SceneManager, unified material ids and material-type dispatch
    presets: The three-spheres and random-spheres demo scenes
"""

from .intersection import (
    MAX_SPHERES,
    SceneHitRecord,
    add_sphere,
    clear_scene,
    get_sphere_count,
    intersect_scene,
    intersect_scene_any,
)
from .manager import (
    MAX_MATERIALS,
    MaterialInfo,
    MaterialType,
    SceneConfig,
    SceneManager,
    SphereInfo,
    get_material_type,
    get_material_type_index,
    material_type_indices,
    material_types,
    num_materials,
)
from .presets import create_random_spheres_scene, create_three_spheres_scene

__all__ = [
    "SceneHitRecord",
    "add_sphere",
    "clear_scene",
    "get_sphere_count",
    "intersect_scene",
    "intersect_scene_any",
    "MAX_SPHERES",
    "SceneManager",
    "MaterialType",
    "MaterialInfo",
    "SphereInfo",
    "SceneConfig",
    "MAX_MATERIALS",
    "get_material_type",
    "get_material_type_index",
    "material_types",
    "material_type_indices",
    "num_materials",
    "create_three_spheres_scene",
    "create_random_spheres_scene",
]
