"""Lambertian (ideal diffuse) material.

A diffuse surface ignores the incoming direction: the outgoing direction is
the normal plus a random unit vector drawn from the normal's hemisphere, which
concentrates samples toward the normal.

The surface never absorbs a ray outright. Energy loss comes entirely from the
albedo, which scales each color channel independently.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.lumen.materials.lambertian import scatter_lambertian
    >>> # Inside a Taichi kernel:
    >>> # direction, attenuation, did_scatter = scatter_lambertian(albedo, normal)
"""

import logging

import taichi as ti
import taichi.math as tm

from src.lumen.core.ray import (
    near_zero,
    random_on_hemisphere,
)

logger = logging.getLogger(__name__)

vec3 = tm.vec3


@ti.dataclass
class LambertianMaterial:
    """Parameters of a diffuse surface.

    Attributes:
        albedo: Fraction of light reflected per channel, each in [0, 1].
    """

    albedo: vec3


@ti.func
def scatter_lambertian(
    albedo: vec3,
    normal: vec3,
):
    """Sample an outgoing direction off a diffuse surface.

    Args:
        albedo: Reflectance per channel.
        normal: Unit surface normal facing against the incoming ray.

    Returns:
        (direction, attenuation, did_scatter): a unit direction on the
        normal's side, the albedo, and always 1.
    """
    direction = normal + random_on_hemisphere(normal)

    # normal + (-normal) would leave no direction at all
    if near_zero(direction):
        direction = normal

    return tm.normalize(direction), albedo, 1


# =============================================================================
# Parameter Registry
# =============================================================================

MAX_LAMBERTIAN_MATERIALS = 1024

lambertian_albedos = ti.Vector.field(3, dtype=ti.f32, shape=MAX_LAMBERTIAN_MATERIALS)
num_lambertian_materials = ti.field(dtype=ti.i32, shape=())


def clear_lambertian_materials() -> None:
    """Forget every registered diffuse material (slots are reused)."""
    num_lambertian_materials[None] = 0


def validate_albedo(albedo: tuple[float, float, float]) -> None:
    """Reject albedos that are not three values in [0, 1].

    Raises:
        ValueError: On a wrong component count or an out-of-range component.
    """
    if len(albedo) != 3:
        raise ValueError(f"Albedo needs 3 components, got {len(albedo)}")
    for channel, value in zip("RGB", albedo):
        if not 0.0 <= value <= 1.0:
            raise ValueError(
                f"Albedo {channel} channel {value} lies outside [0, 1]; "
                "a surface cannot reflect more light than it receives"
            )


def add_lambertian_material(albedo: tuple[float, float, float]) -> int:
    """Register a diffuse material.

    Args:
        albedo: Reflectance as (R, G, B).

    Returns:
        The type-local index of the new material.

    Raises:
        ValueError: If the albedo is invalid.
        RuntimeError: If all MAX_LAMBERTIAN_MATERIALS slots are in use.
    """
    validate_albedo(albedo)

    slot = int(num_lambertian_materials[None])
    if slot >= MAX_LAMBERTIAN_MATERIALS:
        raise RuntimeError(f"Lambertian registry is full ({MAX_LAMBERTIAN_MATERIALS} materials)")

    lambertian_albedos[slot] = vec3(*albedo)
    num_lambertian_materials[None] = slot + 1
    logger.debug("Lambertian #%d: albedo=%s", slot, albedo)
    return slot


def get_lambertian_material_count() -> int:
    return int(num_lambertian_materials[None])


@ti.func
def get_lambertian_albedo(material_idx: ti.i32) -> vec3:
    return lambertian_albedos[material_idx]


@ti.func
def scatter_lambertian_by_id(material_idx: ti.i32, normal: vec3):
    """scatter_lambertian() with the albedo read from the registry."""
    return scatter_lambertian(get_lambertian_albedo(material_idx), normal)
