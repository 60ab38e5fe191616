"""Dielectric material: clear glass, water and similar transparent media.

A ray hitting a dielectric either reflects or refracts. Refraction follows
Snell's law, n1 sin(theta1) = n2 sin(theta2), with eta = n1 / n2 chosen by
which side of the boundary the ray comes from. When eta * sin(theta1) > 1 no
transmitted direction exists and the ray must reflect (total internal
reflection). Otherwise the choice is random, with the reflection probability
given by Schlick's approximation to the Fresnel equations.

Glass here absorbs nothing, so the attenuation is always white.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.lumen.materials.dielectric import scatter_dielectric
    >>> # Inside a Taichi kernel:
    >>> # direction, attenuation, did_scatter = scatter_dielectric(
    >>> #     ior, incident_dir, normal, front_face
    >>> # )
"""

import logging

import taichi as ti
import taichi.math as tm

from src.lumen.core.ray import (
    near_zero,
    reflect,
    refract,
    schlick_reflectance,
)

logger = logging.getLogger(__name__)

vec3 = tm.vec3


@ti.dataclass
class DielectricMaterial:
    """Parameters of a transparent surface.

    Attributes:
        ior: Refractive index relative to the medium outside the surface,
            e.g. 1.33 for water, 1.5 for glass, 2.4 for diamond, or
            1 / 1.33 for an air pocket inside water.
    """

    ior: ti.f32


@ti.func
def refraction_ratio(ior: ti.f32, front_face: ti.i32) -> ti.f32:
    """eta = n_incident / n_transmitted for the side the ray arrives from."""
    eta = ior
    if front_face != 0:
        eta = 1.0 / ior
    return eta


@ti.func
def _cos_incidence(unit_direction: vec3, normal: vec3) -> ti.f32:
    return tm.min(-tm.dot(unit_direction, normal), 1.0)


@ti.func
def _is_total_internal_reflection(eta: ti.f32, cos_theta: ti.f32) -> ti.i32:
    # must match the sin^2 test in refract()
    sin2_t = eta * eta * (1.0 - cos_theta * cos_theta)
    return ti.select(sin2_t > 1.0, 1, 0)


@ti.func
def scatter_dielectric(
    ior: ti.f32,
    incident_direction: vec3,
    normal: vec3,
    front_face: ti.i32,
):
    """Reflect or refract an incoming ray at a dielectric boundary.

    Args:
        ior: Refractive index of the material.
        incident_direction: Incoming direction, any nonzero length.
        normal: Unit normal facing against the incoming ray.
        front_face: 1 when the ray enters from outside, 0 when it leaves
            from inside.

    Returns:
        (direction, attenuation, did_scatter) with a unit direction, white
        attenuation and did_scatter always 1.
    """
    unit_direction = tm.normalize(incident_direction)
    eta = refraction_ratio(ior, front_face)
    cos_theta = _cos_incidence(unit_direction, normal)

    direction = vec3(0.0)
    if _is_total_internal_reflection(eta, cos_theta) or ti.random(ti.f32) < schlick_reflectance(
        cos_theta, eta
    ):
        direction = reflect(unit_direction, normal)
    else:
        direction = refract(unit_direction, normal, eta)
        if near_zero(direction):
            direction = reflect(unit_direction, normal)

    # renormalize to remove rounding drift
    return tm.normalize(direction), vec3(1.0), 1


@ti.func
def will_reflect(
    ior: ti.f32,
    incident_direction: vec3,
    normal: vec3,
    front_face: ti.i32,
) -> ti.i32:
    """1 if the ray is forced into total internal reflection, else 0."""
    eta = refraction_ratio(ior, front_face)
    cos_theta = _cos_incidence(tm.normalize(incident_direction), normal)
    return _is_total_internal_reflection(eta, cos_theta)


@ti.func
def fresnel_reflectance(
    ior: ti.f32,
    incident_direction: vec3,
    normal: vec3,
    front_face: ti.i32,
) -> ti.f32:
    """Schlick reflection probability for this incident direction."""
    eta = refraction_ratio(ior, front_face)
    cos_theta = _cos_incidence(tm.normalize(incident_direction), normal)
    return schlick_reflectance(cos_theta, eta)


# =============================================================================
# Parameter Registry
# =============================================================================

MAX_DIELECTRIC_MATERIALS = 1024

dielectric_iors = ti.field(dtype=ti.f32, shape=MAX_DIELECTRIC_MATERIALS)
num_dielectric_materials = ti.field(dtype=ti.i32, shape=())


def clear_dielectric_materials() -> None:
    """Forget every registered dielectric material (slots are reused)."""
    num_dielectric_materials[None] = 0


def add_dielectric_material(ior: float = 1.5) -> int:
    """Register a dielectric material.

    Args:
        ior: Refractive index, default 1.5 (window glass). Any positive
            value is accepted; values below 1 describe a pocket of thinner
            medium such as an air bubble.

    Returns:
        The type-local index of the new material.

    Raises:
        ValueError: If ior is zero or negative.
        RuntimeError: If all MAX_DIELECTRIC_MATERIALS slots are in use.
    """
    if ior <= 0.0:
        raise ValueError(f"Refractive index must be positive, got {ior}")

    slot = int(num_dielectric_materials[None])
    if slot >= MAX_DIELECTRIC_MATERIALS:
        raise RuntimeError(f"Dielectric registry is full ({MAX_DIELECTRIC_MATERIALS} materials)")

    dielectric_iors[slot] = ior
    num_dielectric_materials[None] = slot + 1
    logger.debug("Dielectric #%d: ior=%s", slot, ior)
    return slot


def get_dielectric_material_count() -> int:
    return int(num_dielectric_materials[None])


@ti.func
def get_dielectric_ior(material_idx: ti.i32) -> ti.f32:
    return dielectric_iors[material_idx]


@ti.func
def scatter_dielectric_by_id(
    material_idx: ti.i32,
    incident_direction: vec3,
    normal: vec3,
    front_face: ti.i32,
):
    """scatter_dielectric() with the ior read from the registry."""
    return scatter_dielectric(get_dielectric_ior(material_idx), incident_direction, normal, front_face)
