"""Metal material: mirror reflection blurred by a fuzz factor.

The incoming direction is mirrored about the normal with R = I - 2(I . N)N.
A fuzz of 0 keeps that mirror direction exactly. Larger fuzz adds a random
offset of length fuzz before renormalizing, which smears highlights over a
cone around the mirror direction. An offset that tips the direction below
the surface absorbs the ray.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.lumen.materials.metal import scatter_metal
    >>> # Inside a Taichi kernel:
    >>> # direction, attenuation, did_scatter = scatter_metal(
    >>> #     albedo, fuzz, incident_dir, normal
    >>> # )
"""

import logging

import taichi as ti
import taichi.math as tm

from src.lumen.core.ray import (
    near_zero,
    random_unit_vector,
    reflect,
)
from src.lumen.materials.lambertian import validate_albedo

logger = logging.getLogger(__name__)

vec3 = tm.vec3


@ti.dataclass
class MetalMaterial:
    """Parameters of a reflective surface.

    Attributes:
        albedo: Reflected color per channel, each in [0, 1].
        fuzz: Blur radius in [0, 1]; 0 is a perfect mirror.
    """

    albedo: vec3
    fuzz: ti.f32


def clamp_fuzz(fuzz: float) -> float:
    return min(max(fuzz, 0.0), 1.0)


@ti.func
def perturb_reflection(reflected: vec3, fuzz: ti.f32) -> vec3:
    """Shift `reflected` by a random vector of length `fuzz` (unnormalized)."""
    return reflected + fuzz * random_unit_vector()


@ti.func
def resolve_reflection(perturbed: vec3, normal: vec3):
    """Turn a perturbed reflection into (unit direction, did_scatter).

    The ray scatters only when the direction leaves strictly above the
    surface. A degenerate or inward direction gives (zero vector, 0).
    """
    direction = vec3(0.0)
    did_scatter = 0
    if not near_zero(perturbed):
        unit = tm.normalize(perturbed)
        if tm.dot(unit, normal) > 0.0:
            direction = unit
            did_scatter = 1
    return direction, did_scatter


@ti.func
def scatter_metal(
    albedo: vec3,
    fuzz: ti.f32,
    incident_direction: vec3,
    normal: vec3,
):
    """Reflect an incoming ray off a metal surface.

    Args:
        albedo: Reflected color per channel.
        fuzz: Blur radius, already clamped to [0, 1].
        incident_direction: Incoming direction, any nonzero length.
        normal: Unit normal facing against the incoming ray.

    Returns:
        (direction, attenuation, did_scatter). The direction is unit length
        when did_scatter is 1 and zero when the ray was absorbed.
    """
    mirror = reflect(tm.normalize(incident_direction), normal)
    direction, did_scatter = resolve_reflection(perturb_reflection(mirror, fuzz), normal)
    return direction, albedo, did_scatter


# =============================================================================
# Parameter Registry
# =============================================================================

MAX_METAL_MATERIALS = 1024

metal_albedos = ti.Vector.field(3, dtype=ti.f32, shape=MAX_METAL_MATERIALS)
metal_fuzzes = ti.field(dtype=ti.f32, shape=MAX_METAL_MATERIALS)
num_metal_materials = ti.field(dtype=ti.i32, shape=())


def clear_metal_materials() -> None:
    """Forget every registered metal material (slots are reused)."""
    num_metal_materials[None] = 0


def add_metal_material(
    albedo: tuple[float, float, float],
    fuzz: float = 0.0,
) -> int:
    """Register a metal material.

    Fuzz outside [0, 1] is clamped into range with a warning rather than
    rejected.

    Args:
        albedo: Reflected color as (R, G, B).
        fuzz: Blur radius; 0 gives a perfect mirror.

    Returns:
        The type-local index of the new material.

    Raises:
        ValueError: If the albedo is invalid.
        RuntimeError: If all MAX_METAL_MATERIALS slots are in use.
    """
    validate_albedo(albedo)

    stored_fuzz = clamp_fuzz(fuzz)
    if stored_fuzz != fuzz:
        logger.warning("Metal fuzz %s out of range, clamped to %s", fuzz, stored_fuzz)

    slot = int(num_metal_materials[None])
    if slot >= MAX_METAL_MATERIALS:
        raise RuntimeError(f"Metal registry is full ({MAX_METAL_MATERIALS} materials)")

    metal_albedos[slot] = vec3(*albedo)
    metal_fuzzes[slot] = stored_fuzz
    num_metal_materials[None] = slot + 1
    logger.debug("Metal #%d: albedo=%s fuzz=%s", slot, albedo, stored_fuzz)
    return slot


def get_metal_material_count() -> int:
    return int(num_metal_materials[None])


@ti.func
def get_metal_albedo(material_idx: ti.i32) -> vec3:
    return metal_albedos[material_idx]


@ti.func
def get_metal_fuzz(material_idx: ti.i32) -> ti.f32:
    return metal_fuzzes[material_idx]


@ti.func
def scatter_metal_by_id(
    material_idx: ti.i32,
    incident_direction: vec3,
    normal: vec3,
):
    """scatter_metal() with albedo and fuzz read from the registry."""
    return scatter_metal(
        get_metal_albedo(material_idx),
        get_metal_fuzz(material_idx),
        incident_direction,
        normal,
    )
