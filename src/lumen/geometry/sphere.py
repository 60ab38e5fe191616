"""Spheres and the analytic ray-sphere test.

Substituting the ray origin + t * direction into |p - center|^2 = r^2 gives
a quadratic in t. With oc = center - origin it reduces to

    a = |direction|^2,  h = direction . oc,  c = |oc|^2 - r^2

whose roots are t = (h -/+ sqrt(h^2 - a*c)) / a. A negative discriminant
means the ray misses; zero means it grazes the surface at a single point.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.lumen.geometry.sphere import Sphere, hit_sphere
    >>> ball = Sphere(center=ti.math.vec3(0, 0, -1), radius=0.5)
    >>> # hit_sphere() is called from a Taichi kernel
"""

import taichi as ti
import taichi.math as tm

vec3 = tm.vec3


@ti.dataclass
class Sphere:
    center: vec3
    radius: ti.f32


@ti.dataclass
class HitRecord:
    """Result of testing one ray against one sphere.

    All fields other than `hit` are meaningful only when hit == 1.

    Attributes:
        hit: 1 on a hit, 0 on a miss.
        t: Ray parameter at the hit.
        point: Hit position.
        normal: Unit normal pointing back toward the ray origin side.
        front_face: 1 if the ray came from outside the sphere.
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3
    front_face: ti.i32


@ti.func
def set_face_normal(ray_direction: vec3, outward_normal: vec3):
    """Flip an outward normal to oppose the ray.

    Returns:
        (normal, front_face) with dot(ray_direction, normal) <= 0 and
        front_face == 1 when no flip was needed.
    """
    front_face = ti.select(tm.dot(ray_direction, outward_normal) < 0.0, 1, 0)
    normal = outward_normal
    if front_face == 0:
        normal = -outward_normal
    return normal, front_face


@ti.func
def _in_open_interval(t: ti.f32, lo: ti.f32, hi: ti.f32) -> ti.i32:
    return lo < t < hi


@ti.func
def hit_sphere(
    ray_origin: vec3,
    ray_direction: vec3,
    sphere: Sphere,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Nearest intersection with t strictly inside (t_min, t_max).

    The near root wins when it is in range. The far root is the fallback,
    which covers rays that start inside the sphere.
    """
    oc = sphere.center - ray_origin
    a = tm.dot(ray_direction, ray_direction)
    h = tm.dot(ray_direction, oc)
    c = tm.dot(oc, oc) - sphere.radius * sphere.radius
    discriminant = h * h - a * c

    rec = HitRecord(hit=0, t=0.0, point=vec3(0.0), normal=vec3(0.0), front_face=0)

    if discriminant >= 0.0:
        root = ti.sqrt(discriminant)
        t = (h - root) / a
        if not _in_open_interval(t, t_min, t_max):
            t = (h + root) / a

        if _in_open_interval(t, t_min, t_max):
            point = ray_origin + t * ray_direction
            normal, front_face = set_face_normal(ray_direction, (point - sphere.center) / sphere.radius)
            rec = HitRecord(hit=1, t=t, point=point, normal=normal, front_face=front_face)

    return rec


@ti.func
def make_sphere(center: vec3, radius: ti.f32) -> Sphere:
    return Sphere(center=center, radius=radius)
