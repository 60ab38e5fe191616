"""Surface scattering models and their parameter registries.

Every scatter function returns (direction, attenuation, did_scatter), where
did_scatter == 0 means the surface absorbed the ray. Each model keeps its
parameters in Taichi fields addressed by a type-local index; the *_by_id
variants read from there.
"""

from .dielectric import (
    DielectricMaterial,
    add_dielectric_material,
    clear_dielectric_materials,
    fresnel_reflectance,
    get_dielectric_ior,
    get_dielectric_material_count,
    refraction_ratio,
    scatter_dielectric,
    scatter_dielectric_by_id,
    will_reflect,
)
from .lambertian import (
    LambertianMaterial,
    add_lambertian_material,
    clear_lambertian_materials,
    get_lambertian_albedo,
    get_lambertian_material_count,
    scatter_lambertian,
    scatter_lambertian_by_id,
    validate_albedo,
)
from .metal import (
    MetalMaterial,
    add_metal_material,
    clamp_fuzz,
    clear_metal_materials,
    get_metal_albedo,
    get_metal_fuzz,
    get_metal_material_count,
    perturb_reflection,
    resolve_reflection,
    scatter_metal,
    scatter_metal_by_id,
)

__all__ = [
    "LambertianMaterial",
    "scatter_lambertian",
    "scatter_lambertian_by_id",
    "add_lambertian_material",
    "clear_lambertian_materials",
    "get_lambertian_material_count",
    "get_lambertian_albedo",
    "validate_albedo",
    "MetalMaterial",
    "scatter_metal",
    "scatter_metal_by_id",
    "perturb_reflection",
    "resolve_reflection",
    "clamp_fuzz",
    "add_metal_material",
    "clear_metal_materials",
    "get_metal_material_count",
    "get_metal_albedo",
    "get_metal_fuzz",
    "DielectricMaterial",
    "scatter_dielectric",
    "scatter_dielectric_by_id",
    "refraction_ratio",
    "add_dielectric_material",
    "clear_dielectric_materials",
    "get_dielectric_material_count",
    "get_dielectric_ior",
    "fresnel_reflectance",
    "will_reflect",
]
