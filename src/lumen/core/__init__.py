"""Ray primitives, the sky, and the rendering loop.

Components:
    ray: Ray type, reflection/refraction helpers and random direction sampling
    sky: Radiance seen by rays that leave the scene
    integrator: Per-pixel radiance estimation and the shared render target
    progressive: Batched sample accumulation on top of the integrator

Only the ray helpers are re-exported. sky, integrator and progressive import
the scene and material packages, so import them by their full module path.
"""

from .ray import (
    Ray,
    cross,
    dot,
    length,
    length_squared,
    make_ray,
    near_zero,
    normalize,
    random_in_unit_disk,
    random_in_unit_sphere,
    random_on_hemisphere,
    random_unit_vector,
    ray_at,
    reflect,
    refract,
    schlick_reflectance,
    vec3,
)

__all__ = [
    "Ray",
    "make_ray",
    "ray_at",
    "vec3",
    "dot",
    "cross",
    "length",
    "length_squared",
    "normalize",
    "near_zero",
    "reflect",
    "refract",
    "schlick_reflectance",
    "random_in_unit_sphere",
    "random_unit_vector",
    "random_on_hemisphere",
    "random_in_unit_disk",
]
