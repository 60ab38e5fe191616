"""Sphere storage and closest-hit queries over the whole scene.

Spheres live in parallel Taichi fields (center, radius, material id) so the
radiance kernel can scan them without touching Python objects. Material ids
are the unified ids handed out by SceneManager.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.lumen.scene.intersection import add_sphere, clear_scene
    >>> clear_scene()
    >>> add_sphere(vec3(0, 0, -1), 0.5, material_id=0)
    >>> # intersect_scene() is then called from a Taichi kernel
"""

import logging

import taichi as ti
import taichi.math as tm

from src.lumen.geometry.sphere import HitRecord, Sphere, hit_sphere

logger = logging.getLogger(__name__)

vec3 = tm.vec3


@ti.dataclass
class SceneHitRecord:
    """Closest hit of a ray against the scene.

    Attributes:
        hit: 1 on a hit, 0 on a miss.
        t: Ray parameter of the hit.
        point: World-space hit position.
        normal: Unit normal oriented against the ray.
        front_face: 1 if the ray struck the outside of the sphere.
        material_id: Unified material id of the sphere, -1 on a miss.
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3
    front_face: ti.i32
    material_id: ti.i32


MAX_SPHERES = 1024

sphere_centers = ti.Vector.field(3, dtype=ti.f32, shape=MAX_SPHERES)
sphere_radii = ti.field(dtype=ti.f32, shape=MAX_SPHERES)
sphere_material_ids = ti.field(dtype=ti.i32, shape=MAX_SPHERES)
num_spheres = ti.field(dtype=ti.i32, shape=())


def clear_scene() -> None:
    """Drop every sphere; stale slots are overwritten by later adds."""
    num_spheres[None] = 0


def add_sphere(center: vec3, radius: float, material_id: int = 0) -> int:
    """Append a sphere to the scene.

    Args:
        center: Sphere center in world space.
        radius: Sphere radius, must be positive.
        material_id: Unified material id used to shade the sphere.

    Returns:
        The sphere's slot index.

    Raises:
        ValueError: If radius <= 0.
        RuntimeError: If MAX_SPHERES spheres are already stored.
    """
    if radius <= 0.0:
        raise ValueError(f"Sphere radius must be positive, got {radius}")

    slot = int(num_spheres[None])
    if slot >= MAX_SPHERES:
        raise RuntimeError(f"Scene is full ({MAX_SPHERES} spheres)")

    sphere_centers[slot] = center
    sphere_radii[slot] = radius
    sphere_material_ids[slot] = material_id
    num_spheres[None] = slot + 1
    logger.debug("Sphere #%d: radius=%s material_id=%d", slot, radius, material_id)
    return slot


def get_sphere_count() -> int:
    return int(num_spheres[None])


@ti.func
def _stored_sphere(i: ti.i32) -> Sphere:
    return Sphere(center=sphere_centers[i], radius=sphere_radii[i])


@ti.func
def _with_material(rec: HitRecord, material_id: ti.i32) -> SceneHitRecord:
    return SceneHitRecord(
        hit=rec.hit,
        t=rec.t,
        point=rec.point,
        normal=rec.normal,
        front_face=rec.front_face,
        material_id=material_id,
    )


@ti.func
def intersect_scene(
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> SceneHitRecord:
    """Closest sphere hit with t in (t_min, t_max).

    Spheres are scanned in insertion order and every hit narrows the upper
    bound to its own t, so ties keep the earlier sphere.

    Returns:
        The closest hit, or a record with hit=0 and material_id=-1.
    """
    result = SceneHitRecord(hit=0, t=0.0, point=vec3(0.0), normal=vec3(0.0), front_face=0, material_id=-1)
    upper = t_max

    for i in range(num_spheres[None]):
        rec = hit_sphere(ray_origin, ray_direction, _stored_sphere(i), t_min, upper)
        if rec.hit == 1:
            upper = rec.t
            result = _with_material(rec, sphere_material_ids[i])

    return result


@ti.func
def intersect_scene_any(
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> ti.i32:
    """1 if some sphere is hit with t in (t_min, t_max), else 0."""
    found = 0
    for i in range(num_spheres[None]):
        if found == 0:
            found = hit_sphere(ray_origin, ray_direction, _stored_sphere(i), t_min, t_max).hit
    return found
